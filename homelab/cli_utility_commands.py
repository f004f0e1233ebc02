"""Utility CLI commands - doctor, version."""
import typer
from rich.console import Console
from rich.panel import Panel

from homelab import __version__
from homelab.core.preconditions import InitSystem, OSFamily, PreconditionGate
from homelab.services.secrets import AgeCipher

# Module-level console instance (will be set by register function)
console: Console = Console()


def _mark(ok: bool) -> str:
    return "[green]✓[/green]" if ok else "[red]✗[/red]"


def doctor():
    """Check whether this host can run setup.

    Reports the same OS and init-system checks setup enforces, plus
    WSL2 fixes and the age binary.
    """
    result = PreconditionGate().check()

    os_ok = result.os_family == OSFamily.SUPPORTED
    init_ok = result.init_system == InitSystem.PRESENT

    console.print(Panel(
        f"{_mark(os_ok)} [bold]OS:[/bold] {result.os_name or result.os_id} "
        f"({result.os_family.value})\n"
        f"{_mark(init_ok)} [bold]systemd:[/bold] {result.init_version or 'not found'}",
        title="Preconditions",
        border_style="green" if result.ok else "red",
    ))

    if result.wsl:
        console.print(Panel(
            f"{_mark(result.wsl_fixes_applied)} unprivileged ports from 53"
            + ("" if result.wsl_fixes_applied else "\n[dim]Run ./scripts/wsl2-fixes.sh[/dim]"),
            title="WSL2",
            border_style="yellow",
        ))

    age_ok = AgeCipher().is_available()
    console.print(Panel(
        f"{_mark(age_ok)} age " + ("installed" if age_ok else "missing (sudo apt install -y age)"),
        title="Secrets",
        border_style="green" if age_ok else "yellow",
    ))

    if not result.ok:
        raise typer.Exit(1)


def version():
    """Show version information."""
    console.print(f"homelab-setup {__version__}")


def register_utility_commands(app: typer.Typer, shared_console: Console):
    """Register utility commands with the main Typer app."""
    global console
    console = shared_console

    app.command()(doctor)
    app.command()(version)
