"""X25519 keypair generation and verification for sealmail."""

from __future__ import annotations

import hmac
import os
from dataclasses import dataclass

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.x25519 import X25519PrivateKey, X25519PublicKey

from ..errors import InvalidKeyError
from ..utils.encoding import from_base64, to_base64
from .constants import X25519_KEY_SIZE

KeyInput = bytes | str


@dataclass(frozen=True)
class KeyPair:
    """X25519 keypair for Diffie-Hellman key agreement.

    Attributes:
        public_key: The public key bytes (32 bytes).
        private_key: The clamped private scalar (32 bytes).
    """

    public_key: bytes
    private_key: bytes

    @property
    def public_key_b64(self) -> str:
        """Base64-encoded public key, the form the holder publishes."""
        return to_base64(self.public_key)

    @property
    def private_key_b64(self) -> str:
        """Base64-encoded private key."""
        return to_base64(self.private_key)

    def __repr__(self) -> str:
        return f"KeyPair(public_key={self.public_key_b64!r}, private_key=<redacted>)"


def clamp_scalar(scalar: bytes) -> bytes:
    """Clamp 32 random bytes into a valid X25519 private scalar.

    Clears the three low bits, clears bit 255 and sets bit 254 (RFC 7748).
    """
    if len(scalar) != X25519_KEY_SIZE:
        raise InvalidKeyError(
            f"Invalid private key length: {len(scalar)}, expected {X25519_KEY_SIZE}"
        )
    clamped = bytearray(scalar)
    clamped[0] &= 248
    clamped[31] &= 127
    clamped[31] |= 64
    return bytes(clamped)


def load_key_bytes(key: KeyInput, name: str = "key") -> bytes:
    """Coerce a key given as raw bytes or base64 text into 32 raw bytes.

    Args:
        key: Raw key bytes or its standard base64 encoding.
        name: Key description for error messages.

    Returns:
        The 32 key bytes.

    Raises:
        InvalidKeyError: If the key cannot be decoded or has the wrong length.
    """
    if isinstance(key, str):
        try:
            raw = from_base64(key.strip())
        except ValueError as e:
            raise InvalidKeyError(f"Invalid {name}: {e}") from e
    elif isinstance(key, (bytes, bytearray, memoryview)):
        raw = bytes(key)
    else:
        raise InvalidKeyError(f"Invalid {name} type: {type(key).__name__}")

    if len(raw) != X25519_KEY_SIZE:
        raise InvalidKeyError(f"Invalid {name} length: {len(raw)}, expected {X25519_KEY_SIZE}")
    return raw


def load_private_key(key: KeyInput) -> X25519PrivateKey:
    """Load an X25519 private key object from bytes or base64 text."""
    raw = load_key_bytes(key, "private key")
    return X25519PrivateKey.from_private_bytes(raw)


def load_public_key(key: KeyInput) -> X25519PublicKey:
    """Load an X25519 public key object from bytes or base64 text."""
    raw = load_key_bytes(key, "public key")
    return X25519PublicKey.from_public_bytes(raw)


def public_key_bytes(public_key: X25519PublicKey) -> bytes:
    """Return the raw 32-byte encoding of a public key object."""
    return public_key.public_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PublicFormat.Raw,
    )


def generate_keypair() -> KeyPair:
    """Generate a new X25519 keypair.

    Returns:
        A new KeyPair with a clamped private scalar.
    """
    private_key = clamp_scalar(os.urandom(X25519_KEY_SIZE))
    public_key = public_key_bytes(X25519PrivateKey.from_private_bytes(private_key).public_key())
    return KeyPair(public_key=public_key, private_key=private_key)


def derive_public_key(private_key: KeyInput) -> bytes:
    """Derive the public key for a private scalar.

    Args:
        private_key: The private key as bytes or base64 text.

    Returns:
        The 32-byte public key.

    Raises:
        InvalidKeyError: If the private key is malformed.
    """
    return public_key_bytes(load_private_key(private_key).public_key())


def verify_keypair(public_key: KeyInput, private_key: KeyInput) -> bool:
    """Check that a public key belongs to a private key.

    Args:
        public_key: The claimed public key (bytes or base64 text).
        private_key: The private key (bytes or base64 text).

    Returns:
        True if the keys match, False if they do not or either is malformed.
    """
    try:
        claimed = load_key_bytes(public_key, "public key")
        derived = derive_public_key(private_key)
    except (InvalidKeyError, ValueError):
        return False
    return hmac.compare_digest(claimed, derived)
