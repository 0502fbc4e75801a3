"""On-disk storage of the holder's keypair for sealmail.

Two files are written: the public key as base64 text, and the private key
sealed under a passphrase as a JSON VaultBlob record. Private key material
is never written in the clear.
"""

from __future__ import annotations

import json
import logging
import os
import secrets
from dataclasses import dataclass
from pathlib import Path

from .config import KeystoreConfig
from .constants import GENERATED_PASSPHRASE_BYTES
from .crypto.keypair import KeyPair, load_key_bytes, verify_keypair
from .crypto.vault import open_private_key, seal_private_key
from .errors import InvalidKeyError, KeystoreError
from .types import VaultBlob
from .utils.encoding import from_base64

logger = logging.getLogger("sealmail")


@dataclass
class KeyPaths:
    """Locations of the two key files.

    Attributes:
        public_key_path: Path of the base64 public key file.
        private_key_path: Path of the sealed private key file.
    """

    public_key_path: Path
    private_key_path: Path


def generate_passphrase() -> str:
    """Generate a random hex passphrase for unattended setups."""
    return secrets.token_hex(GENERATED_PASSPHRASE_BYTES)


def save_keys(keypair: KeyPair, passphrase: str, config: KeystoreConfig | None = None) -> KeyPaths:
    """Write a keypair to disk, sealing the private half.

    The sealed plaintext is the base64 text of the private key, matching the
    format of existing key files. Both files are written to temporary names
    and then moved into place, so an existing pair is never left half
    overwritten by a failed write.

    Args:
        keypair: The keypair to store.
        passphrase: Passphrase protecting the private key.
        config: Storage locations. Defaults to ``KeystoreConfig()``.

    Returns:
        The paths written.

    Raises:
        KeystoreError: If the files cannot be written.
    """
    config = config or KeystoreConfig()
    blob = seal_private_key(keypair.private_key_b64.encode("ascii"), passphrase)
    public_path = config.public_key_path
    private_path = config.private_key_path

    # Stage both files; the live pair is replaced only once both are written
    written: list[Path] = []
    try:
        config.keys_dir.mkdir(parents=True, exist_ok=True)
        private_tmp = _write_private(_tmp_path(private_path), json.dumps(blob.to_dict(), indent=2))
        written.append(private_tmp)
        public_tmp = _tmp_path(public_path)
        public_tmp.write_text(keypair.public_key_b64, encoding="utf-8")
        written.append(public_tmp)

        os.replace(private_tmp, private_path)
        os.replace(public_tmp, public_path)
    except OSError as e:
        raise KeystoreError(f"Failed to write keys to {config.keys_dir}: {e}") from e
    finally:
        for path in written:
            path.unlink(missing_ok=True)

    logger.info("Saved keypair to %s", config.keys_dir)
    return KeyPaths(public_key_path=public_path, private_key_path=private_path)


def _tmp_path(path: Path) -> Path:
    return path.with_name(path.name + ".tmp")


def _write_private(path: Path, text: str) -> Path:
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w", encoding="utf-8") as f:
        f.write(text)
    return path


def load_public_key(config: KeystoreConfig | None = None) -> bytes:
    """Read the holder's public key.

    Raises:
        KeystoreError: If the file is missing or unreadable.
        InvalidKeyError: If it does not hold a 32-byte base64 key.
    """
    config = config or KeystoreConfig()
    try:
        text = config.public_key_path.read_text(encoding="utf-8")
    except OSError as e:
        raise KeystoreError(f"Failed to read public key: {e}") from e
    return load_key_bytes(text.strip(), "public key")


def load_vault_blob(config: KeystoreConfig | None = None) -> VaultBlob:
    """Read the sealed private key record.

    Raises:
        KeystoreError: If the file is missing, unreadable, or malformed.
    """
    config = config or KeystoreConfig()
    try:
        with config.private_key_path.open(encoding="utf-8") as f:
            data = json.load(f)
    except OSError as e:
        raise KeystoreError(f"Failed to read sealed private key: {e}") from e
    except json.JSONDecodeError as e:
        raise KeystoreError(f"Sealed private key is not valid JSON: {e}") from e
    return VaultBlob.from_dict(data)


def load_keys(passphrase: str, config: KeystoreConfig | None = None) -> KeyPair:
    """Load and unlock the holder's keypair.

    Args:
        passphrase: Passphrase protecting the private key.
        config: Storage locations. Defaults to ``KeystoreConfig()``.

    Returns:
        The unlocked keypair.

    Raises:
        KeystoreError: If a key file is missing or malformed.
        AuthenticationError: If the passphrase is wrong or the file was altered.
        InvalidKeyError: If the unlocked private key does not match the
            public key file.
    """
    config = config or KeystoreConfig()
    public_key = load_public_key(config)
    sealed = open_private_key(load_vault_blob(config), passphrase)

    try:
        private_key = from_base64(sealed.decode("ascii").strip())
    except (UnicodeDecodeError, ValueError) as e:
        raise KeystoreError("Unlocked private key is not valid base64") from e

    if not verify_keypair(public_key, private_key):
        raise InvalidKeyError("Private key does not match the stored public key")

    logger.debug("Loaded keypair from %s", config.keys_dir)
    return KeyPair(public_key=public_key, private_key=private_key)

