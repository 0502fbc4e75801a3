"""Cryptographic operations for sealmail."""

from .envelope import (
    decrypt,
    decrypt_batch,
    decrypt_text,
    encrypt,
    encrypt_batch,
    generate_encryption_header,
)
from .keypair import (
    KeyPair,
    derive_public_key,
    generate_keypair,
    load_key_bytes,
    verify_keypair,
)
from .validation import is_structurally_valid, validate_envelope
from .vault import derive_vault_key, open_private_key, seal_private_key

__all__ = [
    "KeyPair",
    "decrypt",
    "decrypt_batch",
    "decrypt_text",
    "derive_public_key",
    "derive_vault_key",
    "encrypt",
    "encrypt_batch",
    "generate_encryption_header",
    "generate_keypair",
    "is_structurally_valid",
    "load_key_bytes",
    "open_private_key",
    "seal_private_key",
    "validate_envelope",
    "verify_keypair",
]
