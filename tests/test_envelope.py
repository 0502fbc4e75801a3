"""Tests for crypto/envelope.py module."""

from __future__ import annotations

import logging
import re
from dataclasses import replace
from datetime import datetime, timezone

import pytest
from cryptography.hazmat.primitives.asymmetric.x25519 import X25519PrivateKey, X25519PublicKey
from cryptography.hazmat.primitives.ciphers.aead import ChaCha20Poly1305

from sealmail.crypto import (
    KeyPair,
    decrypt,
    decrypt_batch,
    decrypt_text,
    encrypt,
    encrypt_batch,
    generate_encryption_header,
    generate_keypair,
)
from sealmail.crypto.constants import (
    CHACHA20_POLY1305_NONCE_SIZE,
    CHACHA20_POLY1305_TAG_SIZE,
    KEY_ID_SIZE,
    X25519_KEY_SIZE,
)
from sealmail.errors import (
    AuthenticationError,
    BatchElementFailure,
    DecryptionError,
    InvalidKeyError,
    MalformedEnvelopeError,
)
from sealmail.types import Envelope
from sealmail.utils.encoding import from_base64, to_base64


def flip_bit(data: bytes, bit: int) -> bytes:
    """Return a copy of data with one bit inverted."""
    out = bytearray(data)
    out[bit // 8] ^= 1 << (bit % 8)
    return bytes(out)


@pytest.fixture
def keypair() -> KeyPair:
    return generate_keypair()


class TestEncrypt:
    """Tests for encrypt."""

    def test_concrete_scenario(self, keypair: KeyPair) -> None:
        """Encrypt "hello world" and check the wire fields and round trip."""
        plaintext = "hello world".encode("utf-8")
        assert len(plaintext) == 11
        envelope = encrypt(keypair.public_key, plaintext)
        assert decrypt(keypair.private_key, envelope).decode("utf-8") == "hello world"

        record = envelope.to_dict()
        assert len(from_base64(record["ephemeralPublicKey"])) == 32
        assert len(from_base64(record["nonce"])) == 12

    def test_envelope_fields(self, keypair: KeyPair) -> None:
        """Test key id, sizes and ciphertext length."""
        envelope = encrypt(keypair.public_key, b"payload")
        assert envelope.key_id == keypair.public_key[:KEY_ID_SIZE]
        assert len(envelope.ephemeral_public_key) == X25519_KEY_SIZE
        assert len(envelope.nonce) == CHACHA20_POLY1305_NONCE_SIZE
        assert len(envelope.ciphertext) == len(b"payload") + CHACHA20_POLY1305_TAG_SIZE

    def test_timestamp_is_now(self, keypair: KeyPair) -> None:
        """Test the timestamp is current epoch milliseconds."""
        before = datetime.now(timezone.utc)
        envelope = encrypt(keypair.public_key, b"x")
        after = datetime.now(timezone.utc)
        assert envelope.created_at is not None
        assert before.timestamp() - 1 <= envelope.created_at.timestamp() <= after.timestamp() + 1

    def test_string_plaintext_is_utf8(self, keypair: KeyPair) -> None:
        """Test str plaintexts are UTF-8 encoded."""
        envelope = encrypt(keypair.public_key, "héllo ✉")
        assert decrypt(keypair.private_key, envelope) == "héllo ✉".encode("utf-8")

    def test_base64_public_key(self, keypair: KeyPair) -> None:
        """Test the public key may be given as base64 text."""
        envelope = encrypt(keypair.public_key_b64, b"data")
        assert decrypt(keypair.private_key_b64, envelope) == b"data"

    def test_empty_plaintext(self, keypair: KeyPair) -> None:
        """Test an empty plaintext still produces a tagged ciphertext."""
        envelope = encrypt(keypair.public_key, b"")
        assert len(envelope.ciphertext) == CHACHA20_POLY1305_TAG_SIZE
        assert decrypt(keypair.private_key, envelope) == b""

    def test_large_plaintext(self, keypair: KeyPair) -> None:
        """Test a 1 MiB plaintext round-trips."""
        plaintext = bytes(range(256)) * 4096
        assert decrypt(keypair.private_key, encrypt(keypair.public_key, plaintext)) == plaintext

    def test_fresh_ephemeral_key_and_nonce(self, keypair: KeyPair) -> None:
        """Encrypting the same plaintext twice gives unrelated envelopes."""
        first = encrypt(keypair.public_key, b"same message")
        second = encrypt(keypair.public_key, b"same message")
        assert first.ephemeral_public_key != second.ephemeral_public_key
        assert first.nonce != second.nonce
        assert first.ciphertext != second.ciphertext
        assert decrypt(keypair.private_key, first) == b"same message"
        assert decrypt(keypair.private_key, second) == b"same message"

    def test_raw_shared_secret_is_the_key(self, keypair: KeyPair) -> None:
        """Test the ciphertext uses the raw X25519 shared secret as the AEAD key."""
        envelope = encrypt(keypair.public_key, b"interop")
        private = X25519PrivateKey.from_private_bytes(keypair.private_key)
        shared = private.exchange(X25519PublicKey.from_public_bytes(envelope.ephemeral_public_key))
        assert ChaCha20Poly1305(shared).decrypt(envelope.nonce, envelope.ciphertext, None) == b"interop"

    def test_wrong_length_public_key(self) -> None:
        """Test a short public key raises InvalidKeyError."""
        with pytest.raises(InvalidKeyError):
            encrypt(b"\x01" * 31, b"data")

    def test_low_order_public_key(self) -> None:
        """Test the all-zero point is rejected as InvalidKeyError."""
        with pytest.raises(InvalidKeyError):
            encrypt(b"\x00" * 32, b"data")


class TestDecrypt:
    """Tests for decrypt."""

    def test_wire_record(self, keypair: KeyPair) -> None:
        """Test decrypting the serialized wire record."""
        record = encrypt(keypair.public_key, b"over the wire").to_dict()
        assert decrypt(keypair.private_key, record) == b"over the wire"

    def test_wrong_key(self, keypair: KeyPair) -> None:
        """Test decrypting with another holder's key fails authentication."""
        envelope = encrypt(keypair.public_key, b"secret")
        other = generate_keypair()
        with pytest.raises(AuthenticationError):
            decrypt(other.private_key, envelope)

    def test_wrong_key_many(self) -> None:
        """Test wrong-key rejection across several pairs."""
        pairs = [generate_keypair() for _ in range(5)]
        for sender_idx, target in enumerate(pairs):
            envelope = encrypt(target.public_key, b"m")
            for idx, other in enumerate(pairs):
                if idx == sender_idx:
                    continue
                with pytest.raises(AuthenticationError):
                    decrypt(other.private_key, envelope)

    def test_authentication_error_is_decryption_error(self, keypair: KeyPair) -> None:
        """Test AuthenticationError can be caught as DecryptionError."""
        envelope = encrypt(keypair.public_key, b"x")
        with pytest.raises(DecryptionError):
            decrypt(generate_keypair().private_key, envelope)

    def test_malformed_record(self, keypair: KeyPair) -> None:
        """Test a structurally invalid record raises MalformedEnvelopeError."""
        record = dict(encrypt(keypair.public_key, b"x").to_dict())
        record["nonce"] = "not base64!"
        with pytest.raises(MalformedEnvelopeError):
            decrypt(keypair.private_key, record)

    def test_malformed_envelope_object(self, keypair: KeyPair) -> None:
        """Test an Envelope with a short nonce is rejected before decryption."""
        envelope = encrypt(keypair.public_key, b"x")
        with pytest.raises(MalformedEnvelopeError):
            decrypt(keypair.private_key, replace(envelope, nonce=envelope.nonce[:8]))

    def test_invalid_private_key(self, keypair: KeyPair) -> None:
        """Test a malformed private key raises InvalidKeyError."""
        envelope = encrypt(keypair.public_key, b"x")
        with pytest.raises(InvalidKeyError):
            decrypt(b"short", envelope)

    def test_truncated_ciphertext(self, keypair: KeyPair) -> None:
        """Test a ciphertext shorter than the tag fails authentication."""
        envelope = encrypt(keypair.public_key, b"x")
        with pytest.raises(AuthenticationError):
            decrypt(keypair.private_key, replace(envelope, ciphertext=envelope.ciphertext[:5]))

    def test_key_id_mismatch_is_only_a_hint(
        self, keypair: KeyPair, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Test a wrong key id does not stop decryption."""
        envelope = replace(encrypt(keypair.public_key, b"hint"), key_id=b"\x00" * KEY_ID_SIZE)
        with caplog.at_level(logging.DEBUG, logger="sealmail"):
            assert decrypt(keypair.private_key, envelope) == b"hint"
        assert any("does not match" in r.getMessage() for r in caplog.records)

    def test_missing_key_id_and_timestamp(self, keypair: KeyPair) -> None:
        """Test the optional wire fields may be absent."""
        record = dict(encrypt(keypair.public_key, b"bare").to_dict())
        del record["keyId"]
        del record["timestamp"]
        assert decrypt(keypair.private_key, record) == b"bare"


class TestTamper:
    """Any single-bit change must fail authentication."""

    def test_ciphertext_every_bit(self, keypair: KeyPair) -> None:
        """Test flipping each ciphertext bit, including the tag."""
        envelope = encrypt(keypair.public_key, b"hi")
        for bit in range(len(envelope.ciphertext) * 8):
            tampered = replace(envelope, ciphertext=flip_bit(envelope.ciphertext, bit))
            with pytest.raises(AuthenticationError):
                decrypt(keypair.private_key, tampered)

    def test_nonce_every_bit(self, keypair: KeyPair) -> None:
        """Test flipping each nonce bit."""
        envelope = encrypt(keypair.public_key, b"hi")
        for bit in range(len(envelope.nonce) * 8):
            tampered = replace(envelope, nonce=flip_bit(envelope.nonce, bit))
            with pytest.raises(AuthenticationError):
                decrypt(keypair.private_key, tampered)

    def test_ephemeral_public_key_every_bit(self, keypair: KeyPair) -> None:
        """Test flipping each bit of the ephemeral key, including bit 255."""
        envelope = encrypt(keypair.public_key, b"hi")
        for bit in range(len(envelope.ephemeral_public_key) * 8):
            tampered = replace(
                envelope, ephemeral_public_key=flip_bit(envelope.ephemeral_public_key, bit)
            )
            with pytest.raises(AuthenticationError):
                decrypt(keypair.private_key, tampered)

    def test_low_order_ephemeral_key(self, keypair: KeyPair) -> None:
        """Test a low-order ephemeral key fails authentication."""
        envelope = replace(encrypt(keypair.public_key, b"hi"), ephemeral_public_key=b"\x00" * 32)
        with pytest.raises(AuthenticationError):
            decrypt(keypair.private_key, envelope)

    def test_tampered_wire_record(self, keypair: KeyPair) -> None:
        """Test tampering via the base64 wire record."""
        record = dict(encrypt(keypair.public_key, b"hi").to_dict())
        record["ciphertext"] = to_base64(flip_bit(from_base64(record["ciphertext"]), 3))
        with pytest.raises(AuthenticationError):
            decrypt(keypair.private_key, record)


class TestDecryptText:
    """Tests for decrypt_text."""

    def test_round_trip(self, keypair: KeyPair) -> None:
        """Test text round-trip."""
        envelope = encrypt(keypair.public_key, "hello world")
        assert decrypt_text(keypair.private_key, envelope) == "hello world"

    def test_invalid_utf8(self, keypair: KeyPair) -> None:
        """Test binary plaintext raises DecryptionError."""
        envelope = encrypt(keypair.public_key, b"\xff\xfe\xfd")
        with pytest.raises(DecryptionError, match="UTF-8"):
            decrypt_text(keypair.private_key, envelope)


class TestBatch:
    """Tests for encrypt_batch and decrypt_batch."""

    def test_round_trip(self, keypair: KeyPair) -> None:
        """Test a batch round-trips in order."""
        plaintexts = [f"message {i}".encode() for i in range(5)]
        envelopes = encrypt_batch(keypair.public_key, plaintexts)
        assert len(envelopes) == 5
        results = decrypt_batch(keypair.private_key, envelopes)
        assert [r.unwrap() for r in results] == plaintexts
        assert [r.index for r in results] == list(range(5))

    def test_unique_ephemeral_keys(self, keypair: KeyPair) -> None:
        """Test every batch element has its own ephemeral key and nonce."""
        envelopes = encrypt_batch(keypair.public_key, [b"same"] * 4)
        assert len({e.ephemeral_public_key for e in envelopes}) == 4
        assert len({e.nonce for e in envelopes}) == 4

    def test_empty_batch(self, keypair: KeyPair) -> None:
        """Test empty batches."""
        assert encrypt_batch(keypair.public_key, []) == []
        assert decrypt_batch(keypair.private_key, []) == []

    def test_one_tampered_element(self, keypair: KeyPair) -> None:
        """Test one tampered envelope among N gives N-1 successes and one failure."""
        plaintexts = [f"mail {i}".encode() for i in range(6)]
        envelopes = encrypt_batch(keypair.public_key, plaintexts)
        envelopes[2] = replace(envelopes[2], ciphertext=flip_bit(envelopes[2].ciphertext, 0))

        results = decrypt_batch(keypair.private_key, envelopes)
        assert len(results) == 6
        assert [r.ok for r in results] == [True, True, False, True, True, True]
        for i, result in enumerate(results):
            if i != 2:
                assert result.plaintext == plaintexts[i]

        failure = results[2].error
        assert isinstance(failure, BatchElementFailure)
        assert failure.index == 2
        assert isinstance(failure.cause, AuthenticationError)
        assert results[2].plaintext is None
        with pytest.raises(BatchElementFailure):
            results[2].unwrap()

    def test_malformed_element(self, keypair: KeyPair) -> None:
        """Test a malformed wire record fails only its own slot."""
        good = encrypt(keypair.public_key, b"ok").to_dict()
        bad = {"ephemeralPublicKey": "", "nonce": "", "ciphertext": ""}
        results = decrypt_batch(keypair.private_key, [good, bad, good])
        assert [r.ok for r in results] == [True, False, True]
        assert isinstance(results[1].error, BatchElementFailure)
        assert isinstance(results[1].error.cause, MalformedEnvelopeError)

    def test_failures_are_logged(self, keypair: KeyPair, caplog: pytest.LogCaptureFixture) -> None:
        """Test that per-element failures are logged as warnings."""
        envelope = encrypt(keypair.public_key, b"x")
        with caplog.at_level(logging.WARNING, logger="sealmail"):
            decrypt_batch(generate_keypair().private_key, [envelope])
        assert any("envelope 0" in r.getMessage() for r in caplog.records)


class TestEncryptionHeader:
    """Tests for generate_encryption_header."""

    def test_format(self, keypair: KeyPair) -> None:
        """Test the header carries the version, key prefix and a timestamp."""
        header = generate_encryption_header(keypair.public_key_b64)
        prefix = re.escape(keypair.public_key_b64[:16])
        assert re.fullmatch(rf"AI-EMAIL v1; {prefix}\.\.\.[0-9a-z]+", header)


class TestEnvelopeImmutable:
    """Envelopes are immutable values."""

    def test_frozen(self, keypair: KeyPair) -> None:
        """Test that envelope fields cannot be reassigned."""
        envelope = encrypt(keypair.public_key, b"x")
        with pytest.raises(AttributeError):
            envelope.nonce = b"\x00" * 12  # type: ignore[misc]
        assert isinstance(envelope, Envelope)
