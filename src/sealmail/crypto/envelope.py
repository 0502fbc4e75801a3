"""Hybrid X25519 + ChaCha20-Poly1305 envelope encryption for sealmail.

Each envelope uses a fresh ephemeral X25519 key. The raw Diffie-Hellman
shared secret is used directly as the ChaCha20-Poly1305 key and no
associated data is bound. Both are fixed by the wire format.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable
from typing import Any

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.asymmetric.x25519 import X25519PublicKey
from cryptography.hazmat.primitives.ciphers.aead import ChaCha20Poly1305

from ..errors import (
    AuthenticationError,
    BatchElementFailure,
    DecryptionError,
    InvalidKeyError,
    SealMailError,
)
from ..types import DecryptResult, Envelope
from ..utils.datetime_utils import now_ms, to_base36
from ..utils.encoding import wipe
from .constants import (
    CHACHA20_POLY1305_NONCE_SIZE,
    CURVE25519_P,
    ENCRYPTION_HEADER_PREFIX,
    KEY_ID_SIZE,
)
from .keypair import KeyInput, generate_keypair, load_key_bytes, load_private_key, public_key_bytes
from .validation import validate_envelope

logger = logging.getLogger("sealmail")

Plaintext = bytes | str


def encrypt(recipient_public_key: KeyInput, plaintext: Plaintext) -> Envelope:
    """Seal a plaintext to a recipient's public key.

    Args:
        recipient_public_key: The recipient's X25519 public key, as raw bytes
            or base64 text.
        plaintext: The message. Strings are UTF-8 encoded.

    Returns:
        A new Envelope.

    Raises:
        InvalidKeyError: If the public key has the wrong length or is a
            low-order point.
    """
    recipient_bytes = load_key_bytes(recipient_public_key, "public key")
    recipient = X25519PublicKey.from_public_bytes(recipient_bytes)
    data = plaintext.encode("utf-8") if isinstance(plaintext, str) else bytes(plaintext)

    # Step 1: Ephemeral keypair, private half dropped on return
    ephemeral = generate_keypair()
    ephemeral_private = load_private_key(ephemeral.private_key)

    # Step 2: ECDH shared secret, used directly as the AEAD key
    try:
        shared_secret = bytearray(ephemeral_private.exchange(recipient))
    except ValueError as e:
        raise InvalidKeyError(f"Unusable recipient public key: {e}") from e

    # Step 3-4: ChaCha20-Poly1305 with a fresh nonce, tag appended
    nonce = os.urandom(CHACHA20_POLY1305_NONCE_SIZE)
    try:
        ciphertext = ChaCha20Poly1305(bytes(shared_secret)).encrypt(nonce, data, None)
    finally:
        wipe(shared_secret)

    return Envelope(
        key_id=recipient_bytes[:KEY_ID_SIZE],
        ephemeral_public_key=ephemeral.public_key,
        nonce=nonce,
        ciphertext=ciphertext,
        timestamp=now_ms(),
    )


def decrypt(recipient_private_key: KeyInput, envelope: Envelope | dict[str, Any]) -> bytes:
    """Open an envelope with the recipient's private key.

    Args:
        recipient_private_key: The private key, as raw bytes or base64 text.
        envelope: An Envelope, or its wire record.

    Returns:
        The plaintext bytes.

    Raises:
        MalformedEnvelopeError: If the envelope is structurally invalid.
        InvalidKeyError: If the private key is malformed.
        AuthenticationError: If the envelope was tampered with or was sealed
            to a different key.
    """
    if not isinstance(envelope, Envelope):
        envelope = Envelope.from_dict(envelope)
    else:
        validate_envelope(envelope)

    private = load_private_key(recipient_private_key)
    if envelope.key_id is not None:
        own_key_id = public_key_bytes(private.public_key())[:KEY_ID_SIZE]
        if own_key_id != envelope.key_id:
            logger.debug("Envelope keyId %s does not match this key", envelope.key_id_b64)

    # Step 1: Recompute the shared secret
    if not _is_canonical_point(envelope.ephemeral_public_key):
        raise AuthenticationError("Envelope authentication failed")
    ephemeral = X25519PublicKey.from_public_bytes(envelope.ephemeral_public_key)
    try:
        shared_secret = bytearray(private.exchange(ephemeral))
    except ValueError:
        raise AuthenticationError("Envelope authentication failed") from None

    # Step 2-3: Verify the trailing tag and decrypt
    try:
        return ChaCha20Poly1305(bytes(shared_secret)).decrypt(
            envelope.nonce, envelope.ciphertext, None
        )
    except (InvalidTag, ValueError):
        raise AuthenticationError("Envelope authentication failed") from None
    finally:
        wipe(shared_secret)


def decrypt_text(recipient_private_key: KeyInput, envelope: Envelope | dict[str, Any]) -> str:
    """Open an envelope and decode the plaintext as UTF-8.

    Raises:
        DecryptionError: If the plaintext is not valid UTF-8, in addition to
            everything ``decrypt`` raises.
    """
    plaintext = decrypt(recipient_private_key, envelope)
    try:
        return plaintext.decode("utf-8")
    except UnicodeDecodeError as e:
        raise DecryptionError(f"Failed to decode decrypted content as UTF-8: {e}") from e


def encrypt_batch(recipient_public_key: KeyInput, plaintexts: Iterable[Plaintext]) -> list[Envelope]:
    """Seal each plaintext to the same recipient.

    Every element gets its own ephemeral key and nonce.
    """
    recipient = load_key_bytes(recipient_public_key, "public key")
    return [encrypt(recipient, plaintext) for plaintext in plaintexts]


def decrypt_batch(
    recipient_private_key: KeyInput,
    envelopes: Iterable[Envelope | dict[str, Any]],
) -> list[DecryptResult]:
    """Open each envelope independently.

    A failing element never aborts the batch: its slot carries a
    BatchElementFailure wrapping the cause. Order and count are preserved.

    Args:
        recipient_private_key: The private key, as raw bytes or base64 text.
        envelopes: Envelopes or wire records.

    Returns:
        One DecryptResult per input element.
    """
    results: list[DecryptResult] = []
    for index, envelope in enumerate(envelopes):
        try:
            plaintext = decrypt(recipient_private_key, envelope)
        except SealMailError as e:
            logger.warning("Failed to decrypt envelope %d: %s", index, e)
            results.append(DecryptResult(index=index, error=BatchElementFailure(index, e)))
        else:
            results.append(DecryptResult(index=index, plaintext=plaintext))
    return results


def generate_encryption_header(public_key_b64: str) -> str:
    """Build the header value that marks a mail as sealed to a key.

    Args:
        public_key_b64: The recipient's base64 public key.

    Returns:
        ``"AI-EMAIL v1; <key prefix>...<base36 timestamp>"``.
    """
    return f"{ENCRYPTION_HEADER_PREFIX}; {public_key_b64[:16]}...{to_base36(now_ms())}"


def _is_canonical_point(encoded: bytes) -> bool:
    """Whether a u-coordinate is in canonical form (below the field prime).

    X25519 ignores bit 255 and reduces modulo p, so without this check some
    distinct encodings would agree on the same shared secret.
    """
    return int.from_bytes(encoded, "little") < CURVE25519_P
