"""Cryptographic protocol constants for sealmail.

These values are part of the wire and at-rest formats and must not change.
"""

# X25519 key agreement
X25519_KEY_SIZE = 32
KEY_ID_SIZE = 8

# Curve25519 field prime, used to reject non-canonical u-coordinates
CURVE25519_P = 2**255 - 19

# ChaCha20-Poly1305 envelope encryption
CHACHA20_POLY1305_KEY_SIZE = 32
CHACHA20_POLY1305_NONCE_SIZE = 12
CHACHA20_POLY1305_TAG_SIZE = 16

# Passphrase vault (PBKDF2-HMAC-SHA512 + AES-256-GCM)
VAULT_SALT_SIZE = 32
VAULT_IV_SIZE = 16
VAULT_TAG_SIZE = 16
VAULT_KEY_SIZE = 32
PBKDF2_ITERATIONS = 100_000

# Prefix of the header advertising an encrypted mail
ENCRYPTION_HEADER_PREFIX = "AI-EMAIL v1"
