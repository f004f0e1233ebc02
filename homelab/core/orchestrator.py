"""Setup orchestration: preconditions, lock, steps, completion."""
from typing import List, Optional

from homelab.core.checkpoint import CheckpointStore
from homelab.core.config import HomelabConfig
from homelab.core.lock import RunLock
from homelab.core.logger import get_logger
from homelab.core.preconditions import PreconditionGate
from homelab.core.runner import RunReport, StepRunner
from homelab.core.steps import Step

logger = get_logger(__name__)


class SetupOrchestrator:
    """Ties the precondition gate, checkpoint store and step runner together."""

    def __init__(
        self,
        config: HomelabConfig,
        steps: List[Step],
        gate: Optional[PreconditionGate] = None,
        store: Optional[CheckpointStore] = None,
    ):
        """Initialize orchestrator.

        Args:
            config: Runtime configuration (lock file, checkpoint path)
            steps: Ordered step registry
            gate: Host checks (defaults to the real host)
            store: Checkpoint store (defaults to config.checkpoint_file)
        """
        self.config = config
        self.steps = steps
        self.gate = gate or PreconditionGate()
        self.store = store or CheckpointStore(config.checkpoint_file)

    def run(self) -> RunReport:
        """Execute one setup run.

        Returns:
            RunReport describing every step

        Raises:
            PreconditionError: Host is not supported
            LockError: Another run holds the lock
            OSError: Checkpoint could not be persisted
        """
        # Preconditions never consult or touch the checkpoint
        self.gate.enforce()

        with RunLock(self.config.lock_file):
            logger.info("Starting Homelab Setup...")
            logger.info(f"Current checkpoint: {self.store.get()}")

            report = StepRunner(self.store).run(self.steps)

            if not report.completed:
                logger.error(
                    f"Setup stopped at {report.failed}; checkpoint remains "
                    f"{report.final_checkpoint}. Fix the problem and run setup again."
                )
                return report

            self.store.clear()
            report.final_checkpoint = 0
            logger.info("Setup checkpoint cleared - setup is complete!")
            if report.missing:
                logger.warning(
                    f"Skipped missing steps: {', '.join(report.missing)}. "
                    f"The next run starts over and retries them."
                )
            return report
