"""Type definitions for sealmail."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, TypedDict

from .errors import KeystoreError, SealMailError
from .utils.datetime_utils import from_epoch_ms
from .utils.encoding import from_base64, from_hex, to_base64, to_hex


class EnvelopeRecord(TypedDict, total=False):
    """Wire form of an envelope.

    Binary fields are standard base64 strings, ``timestamp`` is epoch
    milliseconds.
    """

    keyId: str
    ephemeralPublicKey: str
    nonce: str
    ciphertext: str
    timestamp: int


class VaultRecord(TypedDict):
    """At-rest form of a sealed private key. All fields are hex strings."""

    salt: str
    iv: str
    authTag: str
    ciphertext: str


@dataclass(frozen=True)
class Envelope:
    """A sealed message for a single recipient.

    Attributes:
        key_id: First 8 bytes of the recipient public key (hint only).
        ephemeral_public_key: Sender's one-time X25519 public key (32 bytes).
        nonce: ChaCha20-Poly1305 nonce (12 bytes).
        ciphertext: Encrypted body with the 16-byte Poly1305 tag appended.
        timestamp: Creation time in epoch milliseconds.
    """

    key_id: bytes | None
    ephemeral_public_key: bytes
    nonce: bytes
    ciphertext: bytes
    timestamp: int | None = None

    @property
    def created_at(self) -> datetime | None:
        """Creation time as an aware UTC datetime."""
        if self.timestamp is None:
            return None
        return from_epoch_ms(self.timestamp)

    @property
    def key_id_b64(self) -> str | None:
        """Base64-encoded key id, as carried on the wire."""
        if self.key_id is None:
            return None
        return to_base64(self.key_id)

    def to_dict(self) -> EnvelopeRecord:
        """Serialize to the wire record."""
        record: EnvelopeRecord = {}
        if self.key_id is not None:
            record["keyId"] = to_base64(self.key_id)
        record["ephemeralPublicKey"] = to_base64(self.ephemeral_public_key)
        record["nonce"] = to_base64(self.nonce)
        record["ciphertext"] = to_base64(self.ciphertext)
        if self.timestamp is not None:
            record["timestamp"] = self.timestamp
        return record

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Envelope:
        """Parse a wire record, validating its structure first.

        Args:
            data: The wire record, typically from an untrusted source.

        Returns:
            The decoded envelope.

        Raises:
            MalformedEnvelopeError: If the record is structurally invalid.
        """
        from .crypto.validation import validate_envelope

        validate_envelope(data)
        key_id = data.get("keyId")
        return cls(
            key_id=from_base64(key_id) if key_id is not None else None,
            ephemeral_public_key=from_base64(data["ephemeralPublicKey"]),
            nonce=from_base64(data["nonce"]),
            ciphertext=from_base64(data["ciphertext"]),
            timestamp=data.get("timestamp"),
        )


@dataclass(frozen=True)
class VaultBlob:
    """A private key sealed under a passphrase-derived key.

    Attributes:
        salt: PBKDF2 salt (32 bytes).
        iv: AES-GCM initialization vector (16 bytes).
        auth_tag: AES-GCM authentication tag (16 bytes).
        ciphertext: The encrypted key material.
    """

    salt: bytes
    iv: bytes
    auth_tag: bytes
    ciphertext: bytes

    def to_dict(self) -> VaultRecord:
        """Serialize to the hex-encoded at-rest record."""
        return {
            "salt": to_hex(self.salt),
            "iv": to_hex(self.iv),
            "authTag": to_hex(self.auth_tag),
            "ciphertext": to_hex(self.ciphertext),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> VaultBlob:
        """Parse the at-rest record.

        Files written by older tooling name the ciphertext field ``encrypted``;
        both names are accepted.

        Raises:
            KeystoreError: If a field is missing or is not valid hex.
        """
        if not isinstance(data, dict):
            raise KeystoreError("Sealed private key must be a JSON object")
        ciphertext = data.get("ciphertext", data.get("encrypted"))
        if ciphertext is None:
            raise KeystoreError("Missing required field: ciphertext")
        for name in ("salt", "iv", "authTag"):
            if name not in data:
                raise KeystoreError(f"Missing required field: {name}")
        try:
            return cls(
                salt=from_hex(data["salt"]),
                iv=from_hex(data["iv"]),
                auth_tag=from_hex(data["authTag"]),
                ciphertext=from_hex(ciphertext),
            )
        except ValueError as e:
            raise KeystoreError(f"Sealed private key is not valid hex: {e}") from e


@dataclass
class DecryptResult:
    """Outcome of decrypting one element of a batch.

    Exactly one of ``plaintext`` and ``error`` is set.

    Attributes:
        index: Position of the element in the input batch.
        plaintext: The recovered plaintext on success.
        error: The per-element failure otherwise.
    """

    index: int
    plaintext: bytes | None = None
    error: SealMailError | None = None

    @property
    def ok(self) -> bool:
        """Whether the element decrypted successfully."""
        return self.error is None

    def unwrap(self) -> bytes:
        """Return the plaintext or raise the stored error."""
        if self.error is not None:
            raise self.error
        assert self.plaintext is not None
        return self.plaintext


@dataclass
class Attachment:
    """Attachment metadata carried inside a mail record.

    Attributes:
        filename: Attachment filename.
        content_type: MIME content type.
        size: Size in bytes.
    """

    filename: str | None
    content_type: str | None = None
    size: int = 0


@dataclass
class MailRecord:
    """A stored mail, either in the clear or sealed to the holder's key.

    ``id``, ``encrypted``, ``encryption``, ``decrypted_at`` and ``error`` are
    owned by the record. The remaining fields are mail content and are the
    only ones a sealed payload may set when it is opened.
    """

    id: str
    subject: str = ""
    from_address: str = ""
    to_address: str = ""
    date: str = ""
    body: str = ""
    html: str = ""
    cc: list[str] = field(default_factory=list)
    reply_to: list[str] = field(default_factory=list)
    attachments: list[Attachment] = field(default_factory=list)
    encrypted: bool = False
    encryption: Envelope | None = None
    decrypted_at: int | None = None
    error: str | None = None
