"""Encoding utilities for sealmail."""

from __future__ import annotations

import base64
import binascii


def to_base64(data: bytes) -> str:
    """Encode bytes to standard base64.

    Args:
        data: The bytes to encode.

    Returns:
        Standard base64 string with padding.
    """
    return base64.b64encode(data).decode("ascii")


def from_base64(s: str) -> bytes:
    """Decode a standard base64 string, rejecting non-canonical input.

    Only the canonical encoding of a byte string is accepted, so that
    ``to_base64(from_base64(s)) == s`` holds for every accepted ``s``.

    Args:
        s: The base64 string to decode.

    Returns:
        The decoded bytes.

    Raises:
        ValueError: If the string is not canonical standard base64.
    """
    if not isinstance(s, str):
        raise ValueError(f"Expected base64 string, got {type(s).__name__}")
    try:
        decoded = base64.b64decode(s, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"Invalid base64: {e}") from e
    if to_base64(decoded) != s:
        raise ValueError("Invalid base64: non-canonical encoding")
    return decoded


def to_hex(data: bytes) -> str:
    """Encode bytes to lowercase hex."""
    return data.hex()


def from_hex(s: str) -> bytes:
    """Decode a hex string.

    Raises:
        ValueError: If the string is not valid hex.
    """
    if not isinstance(s, str):
        raise ValueError(f"Expected hex string, got {type(s).__name__}")
    return bytes.fromhex(s)


def wipe(buffer: bytearray) -> None:
    """Overwrite a mutable buffer holding key material with zeros."""
    for i in range(len(buffer)):
        buffer[i] = 0
