"""Key storage configuration for sealmail."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from .constants import (
    DEFAULT_KEYS_DIR,
    ENV_KEYS_DIR,
    ENV_PASSPHRASE,
    PRIVATE_KEY_FILENAME,
    PUBLIC_KEY_FILENAME,
)


@dataclass
class KeystoreConfig:
    """Where the holder's keys live and how to unlock them.

    Attributes:
        keys_dir: Directory holding the key files.
        passphrase: Passphrase protecting the private key, if configured.
        public_key_file: File name of the base64 public key.
        private_key_file: File name of the sealed private key.
    """

    keys_dir: Path = Path(DEFAULT_KEYS_DIR)
    passphrase: str | None = None
    public_key_file: str = PUBLIC_KEY_FILENAME
    private_key_file: str = PRIVATE_KEY_FILENAME

    @property
    def public_key_path(self) -> Path:
        return self.keys_dir / self.public_key_file

    @property
    def private_key_path(self) -> Path:
        return self.keys_dir / self.private_key_file

    @classmethod
    def from_env(cls, dotenv_path: str | Path | None = None) -> KeystoreConfig:
        """Build a config from the environment and an optional ``.env`` file.

        Variables already set in the environment take precedence over the
        ``.env`` file.

        Args:
            dotenv_path: Explicit ``.env`` location. Defaults to searching
                from the current directory.

        Returns:
            The resulting configuration.
        """
        load_dotenv(dotenv_path)
        return cls(
            keys_dir=Path(os.getenv(ENV_KEYS_DIR, DEFAULT_KEYS_DIR)),
            passphrase=os.getenv(ENV_PASSPHRASE) or None,
        )
