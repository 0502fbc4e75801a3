"""Default configuration constants for sealmail."""

# Key storage
DEFAULT_KEYS_DIR = "./keys"
PUBLIC_KEY_FILENAME = "public-key.txt"
PRIVATE_KEY_FILENAME = "private-key.json"

# Environment variables
ENV_PASSPHRASE = "ENCRYPTION_PASSWORD"
ENV_KEYS_DIR = "SEALMAIL_KEYS_DIR"

# Length in bytes of generated passphrases (hex encoded on output)
GENERATED_PASSPHRASE_BYTES = 32
