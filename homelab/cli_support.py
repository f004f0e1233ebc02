"""Shared utilities for homelab CLI modules."""
from __future__ import annotations

import os
from pathlib import Path
from typing import Callable, Optional

import typer
from rich.console import Console

# Default config search paths (ordered by proximity to current run)
CONFIG_PATHS = [
    "./homelab.yml",
    str(Path.home() / ".config" / "homelab" / "homelab.yml"),
    "/etc/homelab/homelab.yml",
]


def find_config(config_path: Optional[str] = None) -> Optional[str]:
    """Locate the active configuration file, None when there is none."""
    if config_path:
        return config_path

    if env_config := os.environ.get("HOMELAB_CONFIG"):
        return env_config

    for path in CONFIG_PATHS:
        if Path(path).exists():
            return path

    return None


def setup_file_logging(log_file: Optional[str] = None, verbose: bool = False) -> None:
    """Set up file logging for CLI commands.

    Args:
        log_file: Path to log file (optional)
        verbose: Enable verbose logging
    """
    from homelab.core.logger import set_verbose, setup_file_logging as _setup_file_logging
    _setup_file_logging(log_file=log_file, verbose=verbose)
    if verbose:
        set_verbose(True)


def confirm_action(message: str, yes_flag: bool = False, default: bool = False) -> bool:
    """Prompt user for confirmation unless --yes.

    Args:
        message: Confirmation message to display
        yes_flag: Skip prompt if True (from --yes flag)
        default: Answer used when the user just presses enter

    Returns:
        True if confirmed, False otherwise
    """
    if yes_flag:
        return True
    return typer.confirm(message, default=default)


def make_confirm(yes_flag: bool = False) -> Callable[[str], bool]:
    """Return a prompt callback for steps that ask yes/no questions."""
    def _confirm(message: str) -> bool:
        return confirm_action(message, yes_flag=yes_flag)
    return _confirm


def handle_cli_error(
    e: Exception,
    console: Console,
    verbose: bool = False,
    exit_code: int = 1
) -> None:
    """Handle CLI errors with consistent formatting.

    Args:
        e: Exception to handle
        console: Rich console for output
        verbose: Show exception traceback if True
        exit_code: Exit code to use
    """
    console.print(f"[red]Error:[/red] {e}")
    if verbose:
        console.print_exception()
    raise typer.Exit(exit_code)


def print_success(console: Console, message: str, prefix: str = "✓") -> None:
    console.print(f"[green]{prefix}[/green] {message}")


def print_error(console: Console, message: str, prefix: str = "✗") -> None:
    console.print(f"[red]{prefix}[/red] {message}")


def print_warning(console: Console, message: str, prefix: str = "⚠") -> None:
    console.print(f"[yellow]{prefix}[/yellow] {message}")


def print_info(console: Console, message: str, prefix: str = "ℹ") -> None:
    console.print(f"[cyan]{prefix}[/cyan] {message}")
