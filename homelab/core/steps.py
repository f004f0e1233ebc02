"""Setup step types.

Every step declares whether it is optional or mandatory. An optional
step whose script is missing is skipped and retried on a later run; a
mandatory step that cannot run aborts the whole setup.
"""
import os
import shutil
import subprocess
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional

from homelab.core.logger import get_logger

logger = get_logger(__name__)

Confirm = Callable[[str], bool]
Decryptor = Callable[[Path, Path], bool]
Executor = Callable[[List[str], Optional[int], Optional[Dict[str, str]]], int]


class StepKind(str, Enum):
    MANDATORY = "mandatory"
    OPTIONAL = "optional"


@dataclass
class StepResult:
    """Outcome of invoking one step."""

    ok: bool
    message: str = ""

    @classmethod
    def success(cls, message: str = "") -> "StepResult":
        return cls(ok=True, message=message)

    @classmethod
    def failure(cls, message: str) -> "StepResult":
        return cls(ok=False, message=message)


class Step(ABC):
    """One unit of provisioning work gated by a checkpoint value."""

    kind: StepKind = StepKind.OPTIONAL

    def __init__(self, name: str, target: int):
        self.name = name
        self.target = target

    def is_available(self) -> bool:
        """Whether the step can be invoked at all on this run."""
        return True

    def unavailable_reason(self) -> str:
        return f"{self.name} is not available"

    def describe(self) -> str:
        return self.name

    @abstractmethod
    def invoke(self) -> StepResult:
        """Run the step; must not raise for ordinary failures."""

    def __repr__(self):
        return f"{type(self).__name__}(name={self.name!r}, target={self.target})"


def run_script(cmd: List[str], timeout: Optional[int] = None,
               env: Optional[Dict[str, str]] = None) -> int:
    """Run a command attached to the terminal and return its exit status."""
    merged_env = None
    if env:
        merged_env = dict(os.environ)
        merged_env.update(env)
    return subprocess.run(cmd, check=False, timeout=timeout, env=merged_env).returncode


class ScriptStep(Step):
    """Run an external, self-idempotent shell script."""

    kind = StepKind.OPTIONAL

    def __init__(
        self,
        name: str,
        target: int,
        script: Path,
        shell: str = "bash",
        timeout: Optional[int] = None,
        env: Optional[Dict[str, str]] = None,
        executor: Optional[Executor] = None,
    ):
        super().__init__(name, target)
        self.script = Path(script)
        self.shell = shell
        self.timeout = timeout
        self.env = env
        self.executor = executor or run_script

    def is_available(self) -> bool:
        return self.script.is_file()

    def unavailable_reason(self) -> str:
        return f"Script not found: {self.script}"

    def describe(self) -> str:
        return self.script.name

    def invoke(self) -> StepResult:
        cmd = [self.shell, str(self.script)]
        try:
            returncode = self.executor(cmd, self.timeout, self.env)
        except subprocess.TimeoutExpired:
            return StepResult.failure(
                f"{self.script.name} timed out after {self.timeout}s"
            )
        except OSError as e:
            return StepResult.failure(f"Could not execute {self.script.name}: {e}")

        if returncode != 0:
            return StepResult.failure(f"{self.script.name} exited with status {returncode}")
        return StepResult.success(f"{self.script.name} completed successfully")


class StageSecretsStep(Step):
    """Copy the repository's encrypted secrets into the base directory."""

    kind = StepKind.OPTIONAL

    def __init__(self, name: str, target: int, source: Path, destination: Path):
        super().__init__(name, target)
        self.source = Path(source)
        self.destination = Path(destination)

    def invoke(self) -> StepResult:
        if not self.source.exists():
            return StepResult.success(f"No {self.source.name} in repository, nothing to stage")

        self.destination.parent.mkdir(parents=True, exist_ok=True)
        if self.destination.exists():
            return StepResult.success(f"{self.destination} already staged")

        logger.info(f"Copying {self.source.name} to {self.destination.parent}...")
        shutil.copy2(self.source, self.destination)
        return StepResult.success(f"Staged {self.destination}")


class SecretsGateStep(Step):
    """Make sure the plaintext secrets file exists before later steps run.

    Absence is never a reason to skip: either the plaintext already
    exists, or it is produced by decrypting the encrypted artifact, or
    the run aborts.
    """

    kind = StepKind.MANDATORY

    def __init__(self, name: str, target: int, encrypted: Path, plaintext: Path,
                 decrypt: Decryptor):
        super().__init__(name, target)
        self.encrypted = Path(encrypted)
        self.plaintext = Path(plaintext)
        self.decrypt = decrypt

    def invoke(self) -> StepResult:
        if self.plaintext.exists():
            return StepResult.success(f"✓ {self.plaintext.name} already exists")

        if not self.encrypted.exists():
            return StepResult.failure(
                f"No {self.encrypted.name} or {self.plaintext.name} found in "
                f"{self.plaintext.parent}; encrypted credentials are required"
            )

        logger.info("Encrypted environment file detected")
        logger.info(f"Found: {self.encrypted}")
        logger.warning("Decryption is REQUIRED to continue")

        try:
            decrypted = self.decrypt(self.encrypted, self.plaintext)
        except Exception as e:
            logger.debug(f"Decryptor raised: {e!r}")
            decrypted = False
            reason = str(e)
        else:
            reason = "decryption failed or was cancelled"

        if not decrypted or not self.plaintext.exists():
            # Never leave half-written credentials behind
            self.plaintext.unlink(missing_ok=True)
            return StepResult.failure(
                f"Cannot continue without {self.plaintext.name}: {reason}"
            )
        return StepResult.success(f"Decrypted {self.plaintext}")


class RestoreConfigsStep(Step):
    """Offer to restore optional encrypted configuration backups."""

    kind = StepKind.OPTIONAL

    def __init__(
        self,
        name: str,
        target: int,
        configs_dir: Path,
        restore_script: Path,
        confirm: Optional[Confirm] = None,
        shell: str = "bash",
        executor: Optional[Executor] = None,
    ):
        super().__init__(name, target)
        self.configs_dir = Path(configs_dir)
        self.restore_script = Path(restore_script)
        self.confirm = confirm
        self.shell = shell
        self.executor = executor or run_script

    def encrypted_configs(self) -> List[Path]:
        if not self.configs_dir.is_dir():
            return []
        return sorted(self.configs_dir.glob("*.age"))

    def invoke(self) -> StepResult:
        configs = self.encrypted_configs()
        if not configs:
            return StepResult.success("No optional encrypted configs found")

        logger.info("Optional encrypted configs detected:")
        for path in configs:
            logger.info(f"  - {path.name}")

        if self.confirm is None or not self.confirm("Would you like to restore these configurations?"):
            logger.info("Skipping optional configs restore")
            logger.info(f"You can restore later with: {self.restore_script}")
            return StepResult.success("Optional configs restore skipped")

        if not self.restore_script.is_file():
            logger.warning(f"Decrypt configs script not found: {self.restore_script}")
            return StepResult.success("Optional configs restore unavailable")

        try:
            returncode = self.executor([self.shell, str(self.restore_script)], None, None)
        except OSError as e:
            returncode = None
            logger.warning(f"Could not run {self.restore_script.name}: {e}")

        if returncode != 0:
            logger.warning("Some optional configs were not restored; re-run the restore script manually")
        return StepResult.success("Optional configs restore finished")
