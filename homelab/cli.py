#!/usr/bin/env python3
"""homelab CLI - resumable setup for a single-host homelab."""

import typer
from rich.console import Console

from homelab.cli_secrets_commands import register_secrets_commands
from homelab.cli_setup_commands import register_setup_commands
from homelab.cli_utility_commands import register_utility_commands

app = typer.Typer(
    name="homelab",
    help="""homelab - resumable setup for a single-host homelab

Container runtime, management UI and services in one idempotent run.

Quick start:
  homelab doctor           # Check this host
  homelab setup            # Install (re-run to resume)
  homelab status           # See which steps are done
""",
    add_completion=False,
)

console = Console()

register_setup_commands(app, console)
register_secrets_commands(app, console)
register_utility_commands(app, console)

if __name__ == "__main__":
    app()
