"""Setup CLI commands - setup, status, reset."""
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from homelab.cli_support import (
    confirm_action,
    find_config,
    handle_cli_error,
    make_confirm,
    print_error,
    print_info,
    print_success,
    print_warning,
    setup_file_logging,
)
from homelab.core.checkpoint import CheckpointStore
from homelab.core.config import ConfigError, HomelabConfig, load_config, set_config
from homelab.core.lock import LockError, current_holder
from homelab.core.orchestrator import SetupOrchestrator
from homelab.core.preconditions import PreconditionError, PreconditionGate
from homelab.core.registry import RegistryError, build_registry
from homelab.core.runner import RunReport
from homelab.core.steps import StepKind
from homelab.core.summary import service_endpoints
from homelab.services.secrets import AgeCipher

# Module-level console instance (will be set by register function)
console: Console = Console()


def _load(config_path: Optional[str], verbose: bool = False) -> HomelabConfig:
    try:
        cfg = load_config(find_config(config_path))
    except ConfigError as e:
        handle_cli_error(e, console, verbose)
    set_config(cfg)
    return cfg


def _render_summary(cfg: HomelabConfig, report: RunReport) -> None:
    """Print the completion banner with service URLs."""
    console.print()
    console.print("[bold green]Homelab Setup Complete![/bold green]")
    console.print(
        f"[dim]Ran {len(report.ran)} step(s), skipped {len(report.skipped)} already done[/dim]"
    )

    table = Table(title="Services", show_header=True, header_style="bold")
    table.add_column("Service", style="cyan")
    table.add_column("URL", style="green")
    for endpoint in service_endpoints(cfg):
        table.add_row(endpoint.name, endpoint.url)
    console.print(table)

    console.print("\n[bold]To manage services:[/bold]")
    console.print(f"  cd {cfg.base_dir}")
    for command in cfg.profile.management_commands:
        console.print(f"  {command}")
    console.print(f"\nConfiguration directory: {cfg.base_dir}")


def setup(
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Config file path"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Answer yes to optional prompts"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
    log_file: Optional[str] = typer.Option(None, "--log-file", help="Log file path"),
):
    """Run (or resume) the homelab installation.

    Safe to run repeatedly: completed steps are skipped using the
    checkpoint file, and an interrupted run resumes at the failed step.
    """
    setup_file_logging(log_file=log_file, verbose=verbose)
    cfg = _load(config, verbose)
    confirm = make_confirm(yes)

    try:
        steps = build_registry(cfg, decrypt=AgeCipher(cfg.age_binary).decrypt, confirm=confirm)
        orchestrator = SetupOrchestrator(cfg, steps, gate=PreconditionGate(confirm=confirm))
        report = orchestrator.run()
    except (RegistryError, PreconditionError, LockError, OSError) as e:
        handle_cli_error(e, console, verbose)

    if not report.completed:
        print_error(console, f"Setup failed at step '{report.failed}': {report.error}")
        print_info(console, f"Checkpoint left at {report.final_checkpoint}; re-run 'homelab setup' to resume")
        raise typer.Exit(1)

    if report.missing:
        print_warning(console, f"Skipped missing step(s): {', '.join(report.missing)}")
        print_info(console, "They will be retried on the next 'homelab setup'")

    _render_summary(cfg, report)


def status(
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Config file path"),
):
    """Show setup progress per step."""
    cfg = _load(config)
    store = CheckpointStore(cfg.checkpoint_file)
    current = store.get()

    try:
        steps = build_registry(cfg, decrypt=AgeCipher(cfg.age_binary).decrypt)
    except RegistryError as e:
        handle_cli_error(e, console)

    table = Table(title="Setup Steps", show_header=True, header_style="bold")
    table.add_column("#", justify="right")
    table.add_column("Step", style="cyan")
    table.add_column("Kind")
    table.add_column("State")

    for step in steps:
        if not step.is_available():
            state = "[red]missing[/red]"
        elif current >= step.target:
            state = "[green]done[/green]"
        else:
            state = "[yellow]pending[/yellow]"
        kind = "[bold]mandatory[/bold]" if step.kind == StepKind.MANDATORY else "optional"
        table.add_row(str(step.target), step.name, kind, state)

    console.print(table)
    console.print(f"Current checkpoint: {current}")

    holder = current_holder(cfg.lock_file)
    if holder:
        print_warning(console, f"Setup running (PID {holder.pid} since {holder.started})")


def reset(
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Config file path"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
):
    """Forget setup progress so the next run starts from the first step."""
    cfg = _load(config)
    store = CheckpointStore(cfg.checkpoint_file)

    if not store.exists():
        print_info(console, "No checkpoint recorded; nothing to reset")
        return

    if current_holder(cfg.lock_file):
        print_error(console, "A setup run is in progress; refusing to reset")
        raise typer.Exit(1)

    if not confirm_action(f"Reset checkpoint {store.get()}? The next setup re-runs every step.",
                          yes_flag=yes):
        print_warning(console, "Cancelled")
        raise typer.Exit(0)

    store.clear()
    print_success(console, "Checkpoint cleared")


def register_setup_commands(app: typer.Typer, shared_console: Console):
    """Register setup commands with the main Typer app.

    Args:
        app: Main Typer application
        shared_console: Shared Rich console instance
    """
    global console
    console = shared_console

    app.command()(setup)
    app.command()(status)
    app.command()(reset)
