"""
Security Constants
==================

Defines security-related constants used throughout GitFoil.
These values are part of the on-disk format or user contract and should
not be modified without a format version bump.
"""

from typing import Final

# Password Requirements
MIN_PASSWORD_LENGTH: Final[int] = 8
MAX_PASSWORD_LENGTH: Final[int] = 1024

# Password wrapping (master.key.enc)
WRAP_ALGORITHM: Final[str] = "AES-256-GCM"
KEY_DERIVATION_FUNCTION: Final[str] = "PBKDF2-HMAC-SHA512"
KDF_ITERATIONS: Final[int] = 600_000
KDF_MIN_ITERATIONS: Final[int] = 1
KDF_MAX_ITERATIONS: Final[int] = 10_000_000
KDF_RECOMMENDED_MIN_ITERATIONS: Final[int] = 100_000
SALT_LENGTH_BYTES: Final[int] = 32

# Key storage
KEY_SUBDIRECTORY: Final[str] = "git_foil"
PLAINTEXT_KEY_FILENAME: Final[str] = "master.key"
ENCRYPTED_KEY_FILENAME: Final[str] = "master.key.enc"
PLAINTEXT_BACKUP_PREFIX: Final[str] = "master.key.backup"
ENCRYPTED_BACKUP_PREFIX: Final[str] = "master.key.enc.backup"
KEY_DIRECTORY_MODE: Final[int] = 0o700
KEY_FILE_MODE: Final[int] = 0o600
