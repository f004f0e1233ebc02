"""Homelab setup runtime configuration and settings."""
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from homelab.core.runtime import RuntimeProfile, get_runtime


class ConfigError(Exception):
    """Raised when a configuration file cannot be used."""
    pass


def _default_checkpoint_file() -> Path:
    return Path.home() / ".homelab_setup_checkpoint"


def _default_lock_file() -> Path:
    return Path.home() / ".homelab_setup.lock"


@dataclass
class HomelabConfig:
    """Runtime configuration for a setup run.

    Attributes:
        runtime: Container stack to install, "podman" or "docker"
        base_dir: Directory holding the deployed stack and its secrets
                  (default: ~/homelab for podman, /opt/homelab for docker)
        repo_dir: Checkout that ships the step scripts and encrypted artifacts (default: cwd)
        checkpoint_file: Where the completed step index is persisted
        lock_file: Guard against two setup runs at once
        step_timeout: Seconds a step script may run before it counts as failed (None = no limit)
        age_binary: Name or path of the age executable
        shell: Interpreter used to run step scripts
        steps: Optional registry override, list of {name, script, checkpoint}
    """

    runtime: str = "podman"
    base_dir: Optional[Path] = None
    repo_dir: Path = field(default_factory=Path.cwd)
    checkpoint_file: Path = field(default_factory=_default_checkpoint_file)
    lock_file: Path = field(default_factory=_default_lock_file)
    step_timeout: Optional[int] = None
    age_binary: str = "age"
    shell: str = "bash"
    steps: List[Dict[str, Any]] = field(default_factory=list)

    def __post_init__(self):
        try:
            profile = get_runtime(self.runtime)
        except KeyError as e:
            raise ConfigError(e.args[0])
        if self.base_dir is None:
            self.base_dir = profile.default_base_dir()

    @property
    def profile(self) -> RuntimeProfile:
        return get_runtime(self.runtime)

    @property
    def scripts_dir(self) -> Path:
        return self.repo_dir / "scripts"

    @property
    def install_scripts_dir(self) -> Path:
        """Directory holding the runtime's numbered install scripts."""
        return self.repo_dir / self.profile.scripts_subdir

    @property
    def configs_dir(self) -> Path:
        return self.repo_dir / "configs"

    @property
    def env_file(self) -> Path:
        """Plaintext secrets consumed by the deployment steps."""
        return self.base_dir / ".env"

    @property
    def encrypted_env(self) -> Path:
        return self.base_dir / ".env.age"

    @property
    def repo_encrypted_env(self) -> Path:
        """Encrypted secrets as committed to the repository."""
        return self.repo_dir / ".env.age"

    @classmethod
    def from_env(cls) -> "HomelabConfig":
        """Create config from environment variables.

        Environment variables:
            HOMELAB_RUNTIME: podman or docker
            HOMELAB_BASE_DIR: Stack and secrets directory
            HOMELAB_REPO_DIR: Repository checkout with scripts/
            HOMELAB_CHECKPOINT_FILE: Checkpoint file path
            HOMELAB_LOCK_FILE: Lock file path
            HOMELAB_STEP_TIMEOUT: Step timeout in seconds (0 disables)
            HOMELAB_AGE_BIN: age executable

        Returns:
            HomelabConfig instance with values from environment or defaults
        """
        return cls(**_env_values())


_PATH_FIELDS = {"base_dir", "repo_dir", "checkpoint_file", "lock_file"}

_ENV_VARS = {
    "runtime": "HOMELAB_RUNTIME",
    "base_dir": "HOMELAB_BASE_DIR",
    "repo_dir": "HOMELAB_REPO_DIR",
    "checkpoint_file": "HOMELAB_CHECKPOINT_FILE",
    "lock_file": "HOMELAB_LOCK_FILE",
    "step_timeout": "HOMELAB_STEP_TIMEOUT",
    "age_binary": "HOMELAB_AGE_BIN",
}


def _parse_timeout(value: Any) -> Optional[int]:
    try:
        timeout = int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"step_timeout must be an integer, got {value!r}")
    return timeout if timeout > 0 else None


def _env_values() -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    for key, var in _ENV_VARS.items():
        value = os.getenv(var)
        if not value:
            continue
        if key in _PATH_FIELDS:
            values[key] = Path(value).expanduser()
        elif key == "step_timeout":
            values[key] = _parse_timeout(value)
        else:
            values[key] = value
    return values


def load_config(config_path: Optional[str] = None) -> HomelabConfig:
    """Build configuration from the environment, then overlay a YAML file.

    Relative paths in the file are resolved against the file's directory.

    Args:
        config_path: Path to homelab.yml (skipped when None or missing)

    Returns:
        Merged HomelabConfig

    Raises:
        ConfigError: If the file is not a mapping, has unknown keys, or
            names an unknown runtime
    """
    values = _env_values()

    path = Path(config_path) if config_path else None
    if path is None or not path.exists():
        return HomelabConfig(**values)

    try:
        with open(path) as f:
            raw = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}")

    if not isinstance(raw, dict):
        raise ConfigError(f"Config file must be a mapping: {path}")

    known = {f.name for f in fields(HomelabConfig)}
    unknown = sorted(set(raw) - known)
    if unknown:
        raise ConfigError(f"Unknown config keys in {path}: {', '.join(unknown)}")

    for key, value in raw.items():
        if key in _PATH_FIELDS:
            resolved = Path(str(value)).expanduser()
            if not resolved.is_absolute():
                resolved = path.parent / resolved
            values[key] = resolved
        elif key == "step_timeout":
            values[key] = _parse_timeout(value) if value is not None else None
        elif key == "steps":
            if not isinstance(value, list):
                raise ConfigError("'steps' must be a list")
            values[key] = value
        else:
            values[key] = str(value)

    return HomelabConfig(**values)


# Global config instance (can be overridden)
_config: Optional[HomelabConfig] = None


def get_config() -> HomelabConfig:
    """Get the global setup configuration.

    Returns:
        HomelabConfig instance (creates from environment if not set)
    """
    global _config
    if _config is None:
        _config = HomelabConfig.from_env()
    return _config


def set_config(config: Optional[HomelabConfig]):
    """Set the global setup configuration.

    Args:
        config: HomelabConfig instance to use globally (None resets to environment)
    """
    global _config
    _config = config
