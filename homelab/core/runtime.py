"""Container runtime variants the setup can install."""
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Tuple


@dataclass(frozen=True)
class RuntimeProfile:
    """Scripts, paths and management hints for one runtime stack.

    Attributes:
        name: Value of the ``runtime`` config key
        default_base_dir: Stack directory used when none is configured
        scripts_subdir: Where the install scripts live in the repository
        install_scripts: (step name, script file, checkpoint) in run order
        management_ui: Name of the web UI installed for the runtime
        management_commands: Shell commands shown after setup
    """

    name: str
    default_base_dir: Callable[[], Path]
    scripts_subdir: str
    install_scripts: Tuple[Tuple[str, str, int], ...]
    management_ui: str
    management_commands: Tuple[str, ...]


PODMAN = RuntimeProfile(
    name="podman",
    default_base_dir=lambda: Path.home() / "homelab",
    scripts_subdir="scripts",
    install_scripts=(
        ("system-prep", "01-system-prep.sh", 4),
        ("install-runtime", "02-install-podman.sh", 5),
        ("install-management-ui", "03-install-cockpit.sh", 6),
        ("deploy-services", "04-deploy-services.sh", 7),
    ),
    management_ui="Cockpit",
    management_commands=(
        "podman ps",
        "podman-compose logs -f",
        "podman-compose restart SERVICE_NAME",
    ),
)

DOCKER = RuntimeProfile(
    name="docker",
    default_base_dir=lambda: Path("/opt/homelab"),
    scripts_subdir="scripts/setup",
    install_scripts=(
        ("system-prep", "01-system-prep.sh", 4),
        ("install-runtime", "02-install-docker.sh", 5),
        ("install-management-ui", "03-install-portainer.sh", 6),
        ("deploy-services", "04-deploy-services.sh", 7),
    ),
    management_ui="Portainer",
    management_commands=(
        "docker ps",
        "docker compose up -d",
        "docker compose logs -f",
        "docker compose restart SERVICE_NAME",
    ),
)

RUNTIMES: Dict[str, RuntimeProfile] = {p.name: p for p in (PODMAN, DOCKER)}


def get_runtime(name: str) -> RuntimeProfile:
    """Look up a runtime profile by name.

    Raises:
        KeyError: If the runtime is not supported
    """
    try:
        return RUNTIMES[name]
    except KeyError:
        raise KeyError(
            f"Unknown runtime '{name}' (expected one of: {', '.join(sorted(RUNTIMES))})"
        ) from None
