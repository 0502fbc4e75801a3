"""Passphrase-based sealing of private keys for sealmail.

Private keys are encrypted with AES-256-GCM under a key derived from the
holder's passphrase with PBKDF2-HMAC-SHA512. All parameters are fixed so
that sealed keys stay openable across versions.
"""

from __future__ import annotations

import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from ..errors import AuthenticationError
from ..types import VaultBlob
from ..utils.encoding import wipe
from .constants import (
    PBKDF2_ITERATIONS,
    VAULT_IV_SIZE,
    VAULT_KEY_SIZE,
    VAULT_SALT_SIZE,
    VAULT_TAG_SIZE,
)

# One message for every failure so callers learn nothing about the cause
_OPEN_FAILED = "Unable to open sealed private key: wrong passphrase or corrupted data"


def derive_vault_key(passphrase: str, salt: bytes) -> bytearray:
    """Derive the AES-256 vault key from a passphrase.

    Args:
        passphrase: The holder's passphrase.
        salt: The per-blob salt.

    Returns:
        The 32-byte key in a mutable buffer the caller should wipe.
    """
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA512(),
        length=VAULT_KEY_SIZE,
        salt=salt,
        iterations=PBKDF2_ITERATIONS,
    )
    return bytearray(kdf.derive(passphrase.encode("utf-8")))


def seal_private_key(private_key: bytes, passphrase: str) -> VaultBlob:
    """Encrypt private key material under a passphrase.

    A fresh salt and IV are drawn on every call, so sealing the same key
    twice yields different blobs.

    Args:
        private_key: The key material to protect.
        passphrase: The holder's passphrase.

    Returns:
        The sealed VaultBlob.
    """
    salt = os.urandom(VAULT_SALT_SIZE)
    iv = os.urandom(VAULT_IV_SIZE)
    key = derive_vault_key(passphrase, salt)
    try:
        sealed = AESGCM(bytes(key)).encrypt(iv, bytes(private_key), None)
    finally:
        wipe(key)

    return VaultBlob(
        salt=salt,
        iv=iv,
        auth_tag=sealed[-VAULT_TAG_SIZE:],
        ciphertext=sealed[:-VAULT_TAG_SIZE],
    )


def open_private_key(blob: VaultBlob, passphrase: str) -> bytes:
    """Decrypt a sealed private key.

    Args:
        blob: The sealed key.
        passphrase: The holder's passphrase.

    Returns:
        The original key material.

    Raises:
        AuthenticationError: If the passphrase is wrong or any field of the
            blob was modified. No finer-grained reason is given.
    """
    key = derive_vault_key(passphrase, blob.salt)
    try:
        return AESGCM(bytes(key)).decrypt(blob.iv, blob.ciphertext + blob.auth_tag, None)
    except (InvalidTag, ValueError):
        raise AuthenticationError(_OPEN_FAILED) from None
    finally:
        wipe(key)
