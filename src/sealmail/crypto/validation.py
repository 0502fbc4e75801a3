"""Structural envelope validation for sealmail.

Validation is a cheap pre-filter run before any cryptographic work. Passing
it does not mean an envelope will decrypt; only the AEAD tag proves that.
"""

from __future__ import annotations

from typing import Any

from ..errors import MalformedEnvelopeError
from ..types import Envelope
from ..utils.encoding import from_base64
from .constants import CHACHA20_POLY1305_NONCE_SIZE, KEY_ID_SIZE, X25519_KEY_SIZE

REQUIRED_FIELDS = ("ephemeralPublicKey", "nonce", "ciphertext")


def validate_envelope(envelope: Envelope | dict[str, Any]) -> None:
    """Validate an envelope or its wire record.

    Validation steps, in order:
    1. Structure - the value is a record and required fields are present
    2. Encoding - binary fields are canonical standard base64
    3. Sizes - ephemeral key 32 bytes, nonce 12 bytes, ciphertext non-empty
    4. Optional fields - keyId, when present, decodes to 8 bytes and
       timestamp, when present, is a non-negative integer; null is rejected

    Args:
        envelope: An Envelope or a wire record from an untrusted source.

    Raises:
        MalformedEnvelopeError: On the first failed check.
    """
    if isinstance(envelope, Envelope):
        _validate_sizes(envelope.ephemeral_public_key, envelope.nonce, envelope.ciphertext)
        if envelope.key_id is not None:
            _validate_key_id(envelope.key_id)
        if envelope.timestamp is not None:
            _validate_timestamp(envelope.timestamp)
        return

    _validate_structure(envelope)
    ephemeral_public_key = _decode_field(envelope, "ephemeralPublicKey")
    nonce = _decode_field(envelope, "nonce")
    ciphertext = _decode_field(envelope, "ciphertext")
    _validate_sizes(ephemeral_public_key, nonce, ciphertext)
    _validate_optional_fields(envelope)


def is_structurally_valid(envelope: Any) -> bool:
    """Check whether an envelope is well formed.

    Args:
        envelope: An Envelope, a wire record, or anything else.

    Returns:
        True if ``validate_envelope`` accepts it, False otherwise. Never raises.
    """
    try:
        validate_envelope(envelope)
    except MalformedEnvelopeError:
        return False
    return True


def _validate_structure(envelope: Any) -> None:
    """Validate the record type and required fields."""
    if not isinstance(envelope, dict):
        raise MalformedEnvelopeError(
            f"Envelope must be an object, got {type(envelope).__name__}"
        )
    for name in REQUIRED_FIELDS:
        if not envelope.get(name):
            raise MalformedEnvelopeError(f"Missing required field: {name}")


def _decode_field(envelope: dict[str, Any], name: str) -> bytes:
    try:
        return from_base64(envelope[name])
    except ValueError as e:
        raise MalformedEnvelopeError(f"Failed to decode {name}: {e}") from e


def _validate_sizes(ephemeral_public_key: bytes, nonce: bytes, ciphertext: bytes) -> None:
    if len(ephemeral_public_key) != X25519_KEY_SIZE:
        raise MalformedEnvelopeError(
            f"Invalid ephemeralPublicKey size: {len(ephemeral_public_key)} bytes, "
            f"expected {X25519_KEY_SIZE}"
        )
    if len(nonce) != CHACHA20_POLY1305_NONCE_SIZE:
        raise MalformedEnvelopeError(
            f"Invalid nonce size: {len(nonce)} bytes, expected {CHACHA20_POLY1305_NONCE_SIZE}"
        )
    if not ciphertext:
        raise MalformedEnvelopeError("Ciphertext is empty")


def _validate_optional_fields(envelope: dict[str, Any]) -> None:
    # Absent is allowed, an explicit null is not
    if "keyId" in envelope:
        _validate_key_id(_decode_field(envelope, "keyId"))
    if "timestamp" in envelope:
        _validate_timestamp(envelope["timestamp"])


def _validate_key_id(key_id: bytes) -> None:
    if len(key_id) != KEY_ID_SIZE:
        raise MalformedEnvelopeError(
            f"Invalid keyId size: {len(key_id)} bytes, expected {KEY_ID_SIZE}"
        )


def _validate_timestamp(timestamp: Any) -> None:
    if isinstance(timestamp, bool) or not isinstance(timestamp, int) or timestamp < 0:
        raise MalformedEnvelopeError(f"Invalid timestamp: {timestamp!r}")
