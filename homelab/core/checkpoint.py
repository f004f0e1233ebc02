"""Checkpoint persistence for resumable setup runs."""
import os
from pathlib import Path

from homelab.core.logger import get_logger

logger = get_logger(__name__)


class CheckpointStore:
    """Persist the index of the last completed setup step.

    The file holds a single decimal integer. A missing or unreadable file
    means nothing has completed yet. The file is removed once a run
    finishes so the next invocation starts a fresh cycle.
    """

    def __init__(self, checkpoint_file: Path):
        """Initialize checkpoint store.

        Args:
            checkpoint_file: Path to the checkpoint file
        """
        self.checkpoint_file = Path(checkpoint_file)

    def get(self) -> int:
        """Return the stored checkpoint, 0 when absent or unparseable."""
        try:
            content = self.checkpoint_file.read_text().strip()
        except FileNotFoundError:
            return 0
        except OSError as e:
            logger.warning(f"Cannot read checkpoint file {self.checkpoint_file}: {e}")
            return 0

        try:
            value = int(content)
        except ValueError:
            logger.warning(
                f"Ignoring unparseable checkpoint {content!r} in {self.checkpoint_file}"
            )
            return 0

        if value < 0:
            logger.warning(f"Ignoring negative checkpoint {value} in {self.checkpoint_file}")
            return 0
        return value

    def set(self, value: int) -> None:
        """Persist a new checkpoint value.

        Written to a sibling temp file first and renamed over the old one,
        so a crash never leaves a truncated counter behind.

        Raises:
            ValueError: If value is negative
            OSError: If the checkpoint cannot be written
        """
        if value < 0:
            raise ValueError(f"Checkpoint must be >= 0, got {value}")

        self.checkpoint_file.parent.mkdir(parents=True, exist_ok=True)
        temp_file = self.checkpoint_file.with_name(self.checkpoint_file.name + ".tmp")
        with open(temp_file, "w") as f:
            f.write(f"{value}\n")
            f.flush()
            os.fsync(f.fileno())
        os.replace(temp_file, self.checkpoint_file)
        logger.debug(f"Checkpoint set to {value}")

    def clear(self) -> None:
        """Remove the checkpoint file; a missing file is not an error."""
        try:
            self.checkpoint_file.unlink()
        except FileNotFoundError:
            return
        logger.debug(f"Cleared checkpoint {self.checkpoint_file}")

    def exists(self) -> bool:
        return self.checkpoint_file.exists()
