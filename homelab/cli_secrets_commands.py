"""Secrets CLI commands - decrypt and encrypt the stack's .env with age."""
from typing import Optional

import typer
from rich.console import Console

from homelab.cli_support import (
    confirm_action,
    find_config,
    handle_cli_error,
    print_info,
    print_success,
    print_warning,
)
from homelab.core.config import ConfigError, load_config
from homelab.services.secrets import AgeCipher, SecretsError

# Module-level console instance (will be set by register function)
console: Console = Console()
secrets_app = typer.Typer(help="Encrypt and decrypt the stack's .env file")


@secrets_app.command("decrypt")
def decrypt(
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Config file path"),
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing .env"),
):
    """Decrypt .env.age into .env in the base directory."""
    try:
        cfg = load_config(find_config(config))
    except ConfigError as e:
        handle_cli_error(e, console)

    if not cfg.encrypted_env.exists():
        print_warning(console, f"{cfg.encrypted_env} not found")
        console.print("This could mean:")
        console.print("  1. You haven't encrypted your .env yet (use 'homelab secrets encrypt')")
        console.print("  2. The encrypted file wasn't committed to the repository")
        console.print(f"  3. You need to copy .env.age to {cfg.base_dir}")
        raise typer.Exit(1)

    if cfg.env_file.exists() and not confirm_action(
        f"{cfg.env_file} already exists. Overwrite?", yes_flag=force
    ):
        print_info(console, "Decryption cancelled")
        raise typer.Exit(0)

    try:
        ok = AgeCipher(cfg.age_binary).decrypt(cfg.encrypted_env, cfg.env_file)
    except SecretsError as e:
        handle_cli_error(e, console)

    if not ok:
        raise typer.Exit(1)
    print_success(console, f"Decrypted {cfg.env_file}")


@secrets_app.command("encrypt")
def encrypt(
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Config file path"),
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing .env.age"),
):
    """Encrypt .env into the repository's .env.age so it can be committed."""
    try:
        cfg = load_config(find_config(config))
    except ConfigError as e:
        handle_cli_error(e, console)

    if not cfg.env_file.exists():
        print_warning(console, f"{cfg.env_file} not found; nothing to encrypt")
        raise typer.Exit(1)

    target = cfg.repo_encrypted_env
    if target.exists() and not confirm_action(f"{target} already exists. Overwrite?", yes_flag=force):
        print_info(console, "Encryption cancelled")
        raise typer.Exit(0)

    try:
        ok = AgeCipher(cfg.age_binary).encrypt(cfg.env_file, target)
    except SecretsError as e:
        handle_cli_error(e, console)

    if not ok:
        raise typer.Exit(1)
    print_success(console, f"Encrypted {target}")
    print_info(console, "Remember the passphrase; setup asks for it on a fresh host")


def register_secrets_commands(app: typer.Typer, shared_console: Console):
    """Register the secrets command group with the main Typer app."""
    global console
    console = shared_console
    app.add_typer(secrets_app, name="secrets")
