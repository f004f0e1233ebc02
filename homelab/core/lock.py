"""Single-run guard for setup.

Only one setup run may advance the checkpoint at a time. The guard is an
exclusive flock on a lock file that is never deleted, so every process
contends for the same inode; the file only carries the holder's PID and
start time for `status` and `reset`.
"""
import fcntl
import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from homelab.core.logger import get_logger

logger = get_logger(__name__)


class LockError(Exception):
    """Raised when another setup run holds the lock."""
    pass


@dataclass(frozen=True)
class LockHolder:
    pid: str
    started: str


def _parse_holder(text: str) -> LockHolder:
    lines = text.splitlines()
    pid = lines[0].strip() if lines and lines[0].strip() else "unknown"
    started = lines[1].strip() if len(lines) > 1 and lines[1].strip() else "unknown"
    return LockHolder(pid=pid, started=started)


class RunLock:
    """Exclusive, non-blocking lock held for the duration of one run."""

    def __init__(self, lock_file: Path):
        self.lock_file = Path(lock_file)
        self._fd: Optional[int] = None

    @property
    def held(self) -> bool:
        return self._fd is not None

    def acquire(self) -> None:
        """Take the lock or fail immediately.

        Raises:
            LockError: If another process holds the lock
        """
        self.lock_file.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(self.lock_file, os.O_RDWR | os.O_CREAT, 0o644)
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            holder = _parse_holder(os.pread(fd, 4096, 0).decode(errors="replace"))
            os.close(fd)
            raise LockError(
                f"Another setup run is in progress.\n"
                f"Lock held by PID {holder.pid} since {holder.started}"
            )

        os.ftruncate(fd, 0)
        os.pwrite(fd, f"{os.getpid()}\n{time.strftime('%Y-%m-%d %H:%M:%S')}\n".encode(), 0)
        os.fsync(fd)
        self._fd = fd
        logger.debug(f"Acquired run lock: {self.lock_file}")

    def release(self) -> None:
        """Drop the lock; the file stays in place."""
        if self._fd is None:
            return
        fd, self._fd = self._fd, None
        try:
            os.ftruncate(fd, 0)
            fcntl.flock(fd, fcntl.LOCK_UN)
        finally:
            os.close(fd)
        logger.debug(f"Released run lock: {self.lock_file}")

    def __enter__(self):
        self.acquire()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()
        return False


def current_holder(lock_file: Path) -> Optional[LockHolder]:
    """Return who holds the run lock, or None when no run is active."""
    lock_path = Path(lock_file)
    try:
        fd = os.open(lock_path, os.O_RDONLY)
    except FileNotFoundError:
        return None

    try:
        try:
            fcntl.flock(fd, fcntl.LOCK_SH | fcntl.LOCK_NB)
        except BlockingIOError:
            return _parse_holder(os.pread(fd, 4096, 0).decode(errors="replace"))
        fcntl.flock(fd, fcntl.LOCK_UN)
        return None
    finally:
        os.close(fd)
