"""Sealing and opening of stored mail records for sealmail.

A sealed record keeps only the fields it owns (id and encryption state);
the mail content travels inside the envelope as JSON. Opening a record
merges back only the known content fields.
"""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Iterable
from dataclasses import replace
from typing import Any

from .crypto.envelope import decrypt, encrypt
from .crypto.keypair import KeyInput, load_key_bytes
from .errors import DecryptionError, SealMailError
from .types import Attachment, Envelope, MailRecord
from .utils.datetime_utils import now_ms

logger = logging.getLogger("sealmail")

# Payload key -> MailRecord attribute for the content a sealed payload may set
SEALED_FIELDS = {
    "subject": "subject",
    "from": "from_address",
    "to": "to_address",
    "date": "date",
    "body": "body",
    "html": "html",
    "cc": "cc",
    "replyTo": "reply_to",
    "attachments": "attachments",
}


def mail_payload(record: MailRecord) -> dict[str, Any]:
    """Build the JSON payload of a record's content fields."""
    payload: dict[str, Any] = {}
    for key, attr in SEALED_FIELDS.items():
        value = getattr(record, attr)
        if attr == "attachments":
            value = [
                {"filename": a.filename, "contentType": a.content_type, "size": a.size}
                for a in value
            ]
        payload[key] = value
    return payload


STRING_LIST_FIELDS = ("cc", "reply_to")


def _parse_attachment(item: Any) -> Attachment:
    if not isinstance(item, dict):
        raise DecryptionError("Mail attachment must be a JSON object")
    filename = item.get("filename")
    content_type = item.get("contentType")
    size = item.get("size", 0)
    for name, value in (("filename", filename), ("contentType", content_type)):
        if value is not None and not isinstance(value, str):
            raise DecryptionError(f"Mail attachment field {name!r} must be a string")
    if isinstance(size, bool) or not isinstance(size, int) or size < 0:
        raise DecryptionError("Mail attachment field 'size' must be a non-negative integer")
    return Attachment(filename=filename, content_type=content_type, size=size)


def _check_field(key: str, attr: str, value: Any) -> Any:
    """Check a payload value has the type of the record field it sets."""
    if attr == "attachments":
        if not isinstance(value, list):
            raise DecryptionError(f"Mail field {key!r} must be a list")
        return [_parse_attachment(item) for item in value]
    if attr in STRING_LIST_FIELDS:
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            raise DecryptionError(f"Mail field {key!r} must be a list of strings")
        return list(value)
    if not isinstance(value, str):
        raise DecryptionError(f"Mail field {key!r} must be a string")
    return value


def _merge_payload(record: MailRecord, payload: Any) -> MailRecord:
    if not isinstance(payload, dict):
        raise DecryptionError("Decrypted mail payload is not a JSON object")

    updates: dict[str, Any] = {}
    for key, value in payload.items():
        attr = SEALED_FIELDS.get(key)
        if attr is None:
            logger.debug("Ignoring unknown field %r in mail %s", key, record.id)
            continue
        updates[attr] = _check_field(key, attr, value)
    return replace(record, **updates)


def seal_mail(public_key: KeyInput, record: MailRecord) -> MailRecord:
    """Seal a mail record's content to the holder's public key.

    Args:
        public_key: The holder's public key.
        record: A plain record.

    Returns:
        A sealed copy with content fields cleared and the envelope attached.
        Already sealed records are returned unchanged.
    """
    if record.encrypted:
        return record
    envelope = encrypt(public_key, json.dumps(mail_payload(record)))
    return MailRecord(id=record.id, encrypted=True, encryption=envelope)


def open_mail(private_key: KeyInput, record: MailRecord) -> MailRecord:
    """Open a sealed mail record.

    Args:
        private_key: The holder's private key.
        record: A record, sealed or not.

    Returns:
        The record with its content restored. Plain records pass through.

    Raises:
        SealMailError: If the envelope cannot be opened or its payload is
            not a mail JSON object.
    """
    if not record.encrypted or record.encryption is None:
        return record

    plaintext = decrypt(private_key, record.encryption)
    try:
        payload = json.loads(plaintext.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise DecryptionError(f"Failed to parse decrypted mail as JSON: {e}") from e

    opened = _merge_payload(record, payload)
    return replace(opened, encrypted=False, decrypted_at=now_ms(), error=None)


def seal_mails(public_key: KeyInput, records: Iterable[MailRecord]) -> list[MailRecord]:
    """Seal every record to the same public key."""
    key = load_key_bytes(public_key, "public key")
    return [seal_mail(key, record) for record in records]


def open_mails(private_key: KeyInput, records: Iterable[MailRecord]) -> list[MailRecord]:
    """Open every record, never aborting on a single failure.

    Records that fail come back still sealed, with ``error`` set.
    """
    opened: list[MailRecord] = []
    for record in records:
        try:
            opened.append(open_mail(private_key, record))
        except SealMailError as e:
            logger.warning("Failed to open mail %s: %s", record.id, e)
            opened.append(replace(record, error=str(e)))
    return opened


def record_to_dict(record: MailRecord) -> dict[str, Any]:
    """Serialize a record for storage or an API response."""
    data: dict[str, Any] = {"id": record.id}
    if not record.encrypted:
        data.update(mail_payload(record))
    data["encrypted"] = record.encrypted
    if record.encryption is not None:
        data["encryption"] = record.encryption.to_dict()
    if record.decrypted_at is not None:
        data["decryptedAt"] = record.decrypted_at
    if record.error is not None:
        data["error"] = record.error
    return data


def record_from_dict(data: dict[str, Any]) -> MailRecord:
    """Parse a stored record.

    Raises:
        MalformedEnvelopeError: If the record carries an invalid envelope.
    """
    encryption = data.get("encryption")
    record = MailRecord(
        id=str(data["id"]),
        encrypted=bool(data.get("encrypted", False)),
        encryption=Envelope.from_dict(encryption) if encryption is not None else None,
        decrypted_at=data.get("decryptedAt"),
        error=data.get("error"),
    )
    return _merge_payload(record, {k: v for k, v in data.items() if k in SEALED_FIELDS})


class EmailStore:
    """In-memory store of mail records keyed by id.

    Safe for use from several threads.
    """

    def __init__(self) -> None:
        self._records: dict[str, MailRecord] = {}
        self._lock = threading.Lock()

    def insert(self, record: MailRecord) -> None:
        """Insert or replace a record."""
        with self._lock:
            self._records[record.id] = record

    def get(self, record_id: str) -> MailRecord | None:
        with self._lock:
            return self._records.get(record_id)

    def list(self, limit: int | None = None, offset: int = 0) -> list[MailRecord]:
        """Return records in insertion order."""
        with self._lock:
            records = list(self._records.values())
        end = None if limit is None else offset + limit
        return records[offset:end]

    def stats(self) -> dict[str, int]:
        """Count total, sealed and plain records."""
        with self._lock:
            records = list(self._records.values())
        encrypted = sum(1 for r in records if r.encrypted)
        return {"total": len(records), "encrypted": encrypted, "decrypted": len(records) - encrypted}

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
