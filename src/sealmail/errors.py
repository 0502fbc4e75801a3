"""Error hierarchy for sealmail."""

from __future__ import annotations


class SealMailError(Exception):
    """Base exception for all sealmail errors."""

    pass


class InvalidKeyError(SealMailError):
    """A key does not decode to the expected length or is not a usable curve point."""

    pass


class DecryptionError(SealMailError):
    """Decryption failure."""

    pass


class AuthenticationError(DecryptionError):
    """An AEAD tag failed verification.

    Raised for both a wrong passphrase and tampered or corrupted ciphertext.
    The two cases are deliberately indistinguishable.
    """

    pass


class MalformedEnvelopeError(SealMailError):
    """Envelope is missing fields, has bad base64 or wrong field lengths."""

    pass


class BatchElementFailure(SealMailError):
    """Failure of a single element inside a batch operation.

    Attached to the element's result slot instead of being raised, so the
    rest of the batch is unaffected.

    Attributes:
        index: Position of the failed element in the input.
        cause: The underlying error.
    """

    def __init__(self, index: int, cause: SealMailError) -> None:
        self.index = index
        self.cause = cause
        super().__init__(f"Element {index} failed: {cause}")


class KeystoreError(SealMailError):
    """Key files are missing, unreadable, or not in the expected format."""

    pass
