"""sealmail.

Receive mail sealed to a published X25519 public key, open it with the
matching private key, and keep that private key on disk under a passphrase.

Example:
    ```python
    from sealmail import decrypt, encrypt, generate_keypair

    keypair = generate_keypair()
    envelope = encrypt(keypair.public_key, "hello world")
    assert decrypt(keypair.private_key, envelope) == b"hello world"
    ```
"""

from .errors import (
    AuthenticationError,
    BatchElementFailure,
    DecryptionError,
    InvalidKeyError,
    KeystoreError,
    MalformedEnvelopeError,
    SealMailError,
)
from .crypto import (
    KeyPair,
    decrypt,
    decrypt_batch,
    decrypt_text,
    encrypt,
    encrypt_batch,
    generate_encryption_header,
    generate_keypair,
    is_structurally_valid,
    open_private_key,
    seal_private_key,
    validate_envelope,
    verify_keypair,
)
from .config import KeystoreConfig
from .keystore import KeyPaths, generate_passphrase, load_keys, save_keys
from .mail import EmailStore, open_mail, open_mails, seal_mail, seal_mails
from .types import Attachment, DecryptResult, Envelope, MailRecord, VaultBlob

__version__ = "0.1.0"

__all__ = [
    # Key pairs
    "KeyPair",
    "generate_keypair",
    "verify_keypair",
    # Passphrase vault
    "VaultBlob",
    "seal_private_key",
    "open_private_key",
    # Envelopes
    "Envelope",
    "DecryptResult",
    "encrypt",
    "decrypt",
    "decrypt_text",
    "encrypt_batch",
    "decrypt_batch",
    "validate_envelope",
    "is_structurally_valid",
    "generate_encryption_header",
    # Key storage
    "KeystoreConfig",
    "KeyPaths",
    "save_keys",
    "load_keys",
    "generate_passphrase",
    # Mail records
    "Attachment",
    "MailRecord",
    "EmailStore",
    "seal_mail",
    "open_mail",
    "seal_mails",
    "open_mails",
    # Errors
    "SealMailError",
    "InvalidKeyError",
    "DecryptionError",
    "AuthenticationError",
    "MalformedEnvelopeError",
    "BatchElementFailure",
    "KeystoreError",
    # Version
    "__version__",
]
