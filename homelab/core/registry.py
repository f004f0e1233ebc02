"""Ordered registry of setup steps."""
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from homelab.core.config import HomelabConfig
from homelab.core.steps import (
    Confirm,
    Decryptor,
    Executor,
    RestoreConfigsStep,
    ScriptStep,
    SecretsGateStep,
    StageSecretsStep,
    Step,
)


class RegistryError(ValueError):
    """Raised when a step registry is malformed."""
    pass


def validate_registry(steps: Sequence[Step]) -> None:
    """Check ordering and naming rules.

    Raises:
        RegistryError: Empty registry, duplicate names, or checkpoints
            that are not positive and strictly increasing
    """
    if not steps:
        raise RegistryError("Step registry is empty")

    seen = set()
    previous = 0
    for step in steps:
        if step.name in seen:
            raise RegistryError(f"Duplicate step name: {step.name}")
        seen.add(step.name)

        if step.target <= previous:
            raise RegistryError(
                f"Step '{step.name}' has checkpoint {step.target}; "
                f"checkpoints must be positive and strictly increasing (previous: {previous})"
            )
        previous = step.target


def _script_env(config: HomelabConfig) -> Dict[str, str]:
    return {
        "HOMELAB_BASE_DIR": str(config.base_dir),
        "HOMELAB_REPO_DIR": str(config.repo_dir),
        "HOMELAB_RUNTIME": config.runtime,
    }


def default_registry(
    config: HomelabConfig,
    decrypt: Decryptor,
    confirm: Optional[Confirm] = None,
    executor: Optional[Executor] = None,
) -> List[Step]:
    """Build the standard homelab setup sequence for the configured runtime.

    Args:
        config: Paths and limits for this run
        decrypt: Produces the plaintext secrets from the encrypted file
        confirm: Yes/no prompt for optional interactive steps
        executor: Script runner (tests inject a fake)
    """
    env = _script_env(config)
    scripts = config.scripts_dir

    steps: List[Step] = [
        ScriptStep(
            "git-setup", 1, scripts / "setup-git.sh",
            shell=config.shell, timeout=config.step_timeout, env=env, executor=executor,
        ),
        StageSecretsStep(
            "stage-secrets", 2,
            source=config.repo_encrypted_env,
            destination=config.encrypted_env,
        ),
        SecretsGateStep(
            "decrypt-secrets", 3,
            encrypted=config.encrypted_env,
            plaintext=config.env_file,
            decrypt=decrypt,
        ),
    ]

    for name, script, target in config.profile.install_scripts:
        steps.append(ScriptStep(
            name, target, config.install_scripts_dir / script,
            shell=config.shell, timeout=config.step_timeout, env=env, executor=executor,
        ))

    steps.append(RestoreConfigsStep(
        "restore-configs", 8,
        configs_dir=config.configs_dir,
        restore_script=scripts / "decrypt-configs.sh",
        confirm=confirm,
        shell=config.shell,
        executor=executor,
    ))

    validate_registry(steps)
    return steps


def registry_from_entries(
    entries: List[Dict[str, Any]],
    config: HomelabConfig,
    decrypt: Decryptor,
    executor: Optional[Executor] = None,
) -> List[Step]:
    """Build a registry from config-file entries.

    Each entry is ``{name, script, checkpoint}``. The special script value
    ``@secrets`` places the secrets gate at that checkpoint. Relative
    script paths are resolved against the repository checkout.

    Raises:
        RegistryError: On missing keys or invalid ordering
    """
    env = _script_env(config)
    steps: List[Step] = []

    for index, entry in enumerate(entries):
        if not isinstance(entry, dict):
            raise RegistryError(f"Step entry #{index + 1} must be a mapping")
        missing = [key for key in ("name", "script", "checkpoint") if key not in entry]
        if missing:
            raise RegistryError(
                f"Step entry #{index + 1} is missing: {', '.join(missing)}"
            )

        try:
            target = int(entry["checkpoint"])
        except (TypeError, ValueError):
            raise RegistryError(f"Step '{entry['name']}' has a non-integer checkpoint")

        name = str(entry["name"])
        script = str(entry["script"])
        if script == "@secrets":
            steps.append(SecretsGateStep(
                name, target,
                encrypted=config.encrypted_env,
                plaintext=config.env_file,
                decrypt=decrypt,
            ))
            continue

        script_path = Path(script).expanduser()
        if not script_path.is_absolute():
            script_path = config.repo_dir / script_path
        steps.append(ScriptStep(
            name, target, script_path,
            shell=config.shell, timeout=config.step_timeout, env=env, executor=executor,
        ))

    validate_registry(steps)
    return steps


def build_registry(
    config: HomelabConfig,
    decrypt: Decryptor,
    confirm: Optional[Confirm] = None,
    executor: Optional[Executor] = None,
) -> List[Step]:
    """Return the configured registry, or the default sequence."""
    if config.steps:
        return registry_from_entries(config.steps, config, decrypt, executor=executor)
    return default_registry(config, decrypt, confirm=confirm, executor=executor)
