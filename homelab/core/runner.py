"""Run registered steps in order, advancing the checkpoint on success."""
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence

from homelab.core.checkpoint import CheckpointStore
from homelab.core.logger import get_logger
from homelab.core.steps import Step, StepKind

logger = get_logger(__name__)


class RunOutcome(str, Enum):
    COMPLETED = "completed"
    ABORTED = "aborted"


@dataclass
class RunReport:
    """What happened to each step during one run."""

    start_checkpoint: int
    final_checkpoint: int = 0
    outcome: RunOutcome = RunOutcome.COMPLETED
    ran: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    missing: List[str] = field(default_factory=list)
    failed: Optional[str] = None
    error: str = ""

    @property
    def completed(self) -> bool:
        return self.outcome == RunOutcome.COMPLETED

    @property
    def clean(self) -> bool:
        """Completed with every step either run or already done."""
        return self.completed and not self.missing


class StepRunner:
    """Execute steps strictly in registry order.

    A step whose checkpoint is at or below the stored value is trusted to
    be done and skipped. An optional step that cannot run is skipped
    without advancing the checkpoint and reported in `missing`. Every
    success is persisted as soon as it returns, so a failure stops the
    run with the checkpoint at the last step that worked.
    """

    def __init__(self, store: CheckpointStore):
        self.store = store

    def run(self, steps: Sequence[Step]) -> RunReport:
        start = self.store.get()
        report = RunReport(start_checkpoint=start, final_checkpoint=start)

        for step in steps:
            if start >= step.target:
                logger.info(f"✓ Skipping {step.name} (already done)")
                report.skipped.append(step.name)
                continue

            if not step.is_available():
                if step.kind == StepKind.MANDATORY:
                    logger.error(f"✗ {step.unavailable_reason()}")
                    report.outcome = RunOutcome.ABORTED
                    report.failed = step.name
                    report.error = step.unavailable_reason()
                    return report

                logger.warning(step.unavailable_reason())
                report.missing.append(step.name)
                continue

            logger.info(f"Running {step.describe()}...")
            result = step.invoke()

            if not result.ok:
                logger.error(f"✗ {step.describe()} failed: {result.message}")
                report.outcome = RunOutcome.ABORTED
                report.failed = step.name
                report.error = result.message
                return report

            if result.message:
                logger.info(result.message)
            report.ran.append(step.name)
            self.store.set(step.target)
            report.final_checkpoint = step.target

        return report
