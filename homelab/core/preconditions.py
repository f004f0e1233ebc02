"""Host preconditions that must hold before any setup step runs.

These are re-checked on every invocation and never recorded in the
checkpoint: the OS family and init system cannot become "done".
"""
import shlex
import shutil
import subprocess
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, Optional

from homelab.core.logger import get_logger

logger = get_logger(__name__)

SUPPORTED_OS_FAMILY = "debian"

# WSL2 needs unprivileged ports from 53 upward for Pi-hole
WSL_PORT_START_TARGET = 53


class PreconditionError(Exception):
    """Raised when the host cannot run setup."""
    pass


class OSFamily(str, Enum):
    SUPPORTED = "supported"
    UNSUPPORTED = "unsupported"


class InitSystem(str, Enum):
    PRESENT = "present"
    ABSENT = "absent"


@dataclass
class PreconditionResult:
    """Outcome of the host checks for one run."""

    os_family: OSFamily
    init_system: InitSystem
    os_id: str = "unknown"
    os_version: str = ""
    os_name: str = ""
    init_version: str = ""
    wsl: bool = False
    wsl_fixes_applied: bool = True

    @property
    def ok(self) -> bool:
        return (
            self.os_family == OSFamily.SUPPORTED
            and self.init_system == InitSystem.PRESENT
        )


def parse_os_release(text: str) -> Dict[str, str]:
    """Parse /etc/os-release KEY=value lines into a dict."""
    values = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, raw = line.partition("=")
        try:
            parts = shlex.split(raw)
        except ValueError:
            parts = [raw.strip("\"'")]
        values[key.strip()] = parts[0] if parts else ""
    return values


class PreconditionGate:
    """Verify the host is one the setup steps can assume."""

    def __init__(
        self,
        os_release: Path = Path("/etc/os-release"),
        proc_version: Path = Path("/proc/version"),
        port_start_file: Path = Path("/proc/sys/net/ipv4/ip_unprivileged_port_start"),
        which: Optional[Callable[[str], Optional[str]]] = None,
        run_cmd: Optional[Callable[[str], str]] = None,
        confirm: Optional[Callable[[str], bool]] = None,
    ):
        """Initialize the gate.

        Args:
            os_release: OS identity file
            proc_version: Kernel version file used for WSL2 detection
            port_start_file: sysctl file for the unprivileged port start
            which: Executable lookup (defaults to shutil.which)
            run_cmd: Command runner returning stdout
            confirm: Asked whether to continue on an unpatched WSL2 host
                     (None = refuse)
        """
        self.os_release = Path(os_release)
        self.proc_version = Path(proc_version)
        self.port_start_file = Path(port_start_file)
        self.which = which or shutil.which
        self.run_cmd = run_cmd or self._run
        self.confirm = confirm

    def check_os_family(self) -> OSFamily:
        return self._inspect_os()[0]

    def check_init_system(self) -> InitSystem:
        return self._inspect_init()[0]

    def check(self) -> PreconditionResult:
        """Run all host checks without raising."""
        os_family, os_info = self._inspect_os()
        init_system, init_version = self._inspect_init()
        wsl = self.is_wsl()

        return PreconditionResult(
            os_family=os_family,
            init_system=init_system,
            os_id=os_info.get("ID", "unknown"),
            os_version=os_info.get("VERSION_ID", ""),
            os_name=os_info.get("PRETTY_NAME", ""),
            init_version=init_version,
            wsl=wsl,
            wsl_fixes_applied=self.wsl_fixes_applied() if wsl else True,
        )

    def enforce(self) -> PreconditionResult:
        """Run all host checks and abort on the first unmet one.

        Raises:
            PreconditionError: Unsupported OS, no systemd, or an unpatched
                WSL2 host the user declined to continue on
        """
        logger.info("Running pre-flight checks...")
        result = self.check()

        if result.os_family == OSFamily.UNSUPPORTED:
            raise PreconditionError(
                f"This setup is designed for Debian. Detected: {result.os_id}"
            )
        logger.info(f"Detected {result.os_id} {result.os_version}".rstrip())

        if result.init_system == InitSystem.ABSENT:
            raise PreconditionError("systemd is not available")
        logger.info(f"systemd is available: {result.init_version}")

        if result.wsl:
            logger.warning("WSL2 environment detected")
            if result.wsl_fixes_applied:
                logger.info("✓ WSL2 fixes already applied")
            else:
                logger.error("WSL2 fixes have NOT been applied yet")
                logger.info("Run ./scripts/wsl2-fixes.sh, restart WSL, then run setup again")
                if self.confirm is None or not self.confirm("Continue anyway? (not recommended)"):
                    raise PreconditionError("Setup cancelled. Apply WSL2 fixes first.")

        return result

    def is_wsl(self) -> bool:
        try:
            return "microsoft" in self.proc_version.read_text().lower()
        except OSError:
            return False

    def wsl_fixes_applied(self) -> bool:
        try:
            return int(self.port_start_file.read_text().strip()) == WSL_PORT_START_TARGET
        except (OSError, ValueError):
            return False

    def _inspect_os(self):
        try:
            info = parse_os_release(self.os_release.read_text())
        except OSError:
            return OSFamily.UNSUPPORTED, {"ID": "unknown"}

        os_id = info.get("ID", "").lower()
        like = info.get("ID_LIKE", "").lower().split()
        if os_id == SUPPORTED_OS_FAMILY or SUPPORTED_OS_FAMILY in like:
            return OSFamily.SUPPORTED, info
        return OSFamily.UNSUPPORTED, info

    def _inspect_init(self):
        if not self.which("systemctl"):
            return InitSystem.ABSENT, ""
        try:
            output = self.run_cmd("systemctl --version")
        except (OSError, subprocess.SubprocessError):
            output = ""
        first_line = output.strip().splitlines()[0] if output.strip() else "unknown version"
        return InitSystem.PRESENT, first_line

    @staticmethod
    def _run(cmd: str) -> str:
        result = subprocess.run(
            cmd, shell=True, check=True, capture_output=True, text=True, timeout=5
        )
        return result.stdout
