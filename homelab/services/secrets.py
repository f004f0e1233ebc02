"""Encrypt and decrypt secrets files with age.

age prompts for the passphrase on the controlling terminal itself, so
commands run attached to the terminal rather than with captured output.
"""
import os
import shutil
import subprocess
from pathlib import Path
from typing import Optional

from homelab.core.logger import get_logger

logger = get_logger(__name__)


class SecretsError(Exception):
    """Raised when the age tooling is unavailable."""
    pass


class AgeCipher:
    """Passphrase-based age encryption for secrets artifacts."""

    def __init__(self, age_binary: str = "age"):
        self.age_binary = age_binary

    def is_available(self) -> bool:
        return shutil.which(self.age_binary) is not None

    def _require_binary(self):
        if not self.is_available():
            raise SecretsError(
                f"'{self.age_binary}' is not installed. Install it with: sudo apt install -y age"
            )

    def _run_age(self, flag: str, source: Path, target: Path,
                 mode: Optional[int] = None) -> bool:
        """Run age into a sibling temp file, then move it over target.

        An existing target is left untouched unless age succeeds.
        """
        staging = target.with_name(target.name + ".tmp")
        staging.unlink(missing_ok=True)
        try:
            subprocess.run(
                [self.age_binary, flag, "-o", str(staging), str(source)], check=True
            )
        except (subprocess.CalledProcessError, KeyboardInterrupt) as e:
            logger.error(f"age failed: {e}")
            staging.unlink(missing_ok=True)
            return False

        if not staging.exists():
            logger.error(f"age exited cleanly but {target} was not written")
            return False

        if mode is not None:
            staging.chmod(mode)
        os.replace(staging, target)
        return True

    def decrypt(self, encrypted: Path, plaintext: Path) -> bool:
        """Decrypt an age file, prompting for its passphrase.

        Args:
            encrypted: Encrypted input (.age)
            plaintext: Output path; kept as-is if decryption fails

        Returns:
            True if the plaintext file was written
        """
        encrypted, plaintext = Path(encrypted), Path(plaintext)
        if not encrypted.exists():
            logger.error(f"Encrypted file not found: {encrypted}")
            return False

        self._require_binary()
        plaintext.parent.mkdir(parents=True, exist_ok=True)

        logger.info(f"Decrypting {encrypted}...")
        logger.warning("Enter the passphrase you used during encryption")
        if not self._run_age("-d", encrypted, plaintext, mode=0o600):
            logger.error("Make sure you entered the correct passphrase")
            return False

        logger.info(f"✓ Successfully decrypted: {plaintext}")
        return True

    def encrypt(self, plaintext: Path, encrypted: Path) -> bool:
        """Encrypt a file with a passphrase (age prompts twice).

        Args:
            plaintext: File to encrypt
            encrypted: Output path (.age); kept as-is if encryption fails

        Returns:
            True if the encrypted file was written
        """
        plaintext, encrypted = Path(plaintext), Path(encrypted)
        if not plaintext.exists():
            logger.error(f"File to encrypt not found: {plaintext}")
            return False

        self._require_binary()
        encrypted.parent.mkdir(parents=True, exist_ok=True)

        logger.info(f"Encrypting {plaintext}...")
        if not self._run_age("-p", plaintext, encrypted):
            return False

        logger.info(f"✓ Encrypted: {encrypted}")
        return True
