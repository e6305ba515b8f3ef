"""
Password-Based Keypair Protection
=================================

Wraps a serialized Keypair under a key-encryption key derived from a
password, producing the contents of master.key.enc.

Construction:
    - KDF: PBKDF2-HMAC-SHA512, iteration count stored in the file
    - AEAD: AES-256-GCM, 12-byte nonce, 16-byte tag
    - Salt: 32 random bytes per write
    - AAD: b"GitFoil.PasswordProtection.v" + version byte

File Format (v1, big-endian):

    VERSION (1) | ITERATIONS (4) | SALT (32) | NONCE (12) | TAG (16) | CIPHERTEXT

Storing the iteration count in-band lets the default rise later without
breaking existing files, and allows per-machine tuning.

Error Semantics:
    - Any structural problem (truncation, wrong version, iteration count
      outside 1..10,000,000) -> InvalidFormat
    - Authentication failure -> InvalidPassword. A wrong password and a
      tampered file are intentionally indistinguishable.
"""

from __future__ import annotations

import logging
import secrets
import struct
from dataclasses import dataclass
from typing import Final

from gitfoil.core.crypto.aes_gcm import AES_NONCE_SIZE, AES_TAG_SIZE, AesGcmProvider
from gitfoil.core.crypto.kdf import benchmark, derive_kek
from gitfoil.core.errors import AuthenticationError, InvalidFormat, InvalidPassword
from gitfoil.core.keys.keypair import Keypair
from gitfoil.core.memory import ZeroizeContext
from gitfoil.security.constants import (
    KDF_ITERATIONS,
    KDF_MAX_ITERATIONS,
    KDF_MIN_ITERATIONS,
    SALT_LENGTH_BYTES,
)
from gitfoil.utils.validators import validate_password

WRAP_VERSION: Final[int] = 1
AAD: Final[bytes] = b"GitFoil.PasswordProtection.v" + bytes([WRAP_VERSION])

_HEADER: Final[struct.Struct] = struct.Struct(f">BI{SALT_LENGTH_BYTES}s{AES_NONCE_SIZE}s{AES_TAG_SIZE}s")
HEADER_SIZE: Final[int] = _HEADER.size  # 65 bytes

_log = logging.getLogger("gitfoil.password_wrap")


@dataclass(frozen=True, slots=True)
class WrappedKeyHeader:
    """Parsed fixed-width header of a wrapped key file."""

    version: int
    iterations: int
    salt: bytes
    nonce: bytes
    tag: bytes

    def __repr__(self) -> str:
        return f"WrappedKeyHeader(v{self.version}, iterations={self.iterations})"


def parse_header(blob: bytes) -> tuple[WrappedKeyHeader, bytes]:
    """
    Structurally parse a wrapped key file.

    Returns:
        (header, ciphertext)

    Raises:
        InvalidFormat: Truncated blob, unsupported version, or iteration
            count outside the sanity bound
    """
    if len(blob) < HEADER_SIZE:
        raise InvalidFormat(
            f"Wrapped key too short: {len(blob)} bytes", operation="decrypt_keypair"
        )

    version, iterations, salt, nonce, tag = _HEADER.unpack_from(blob, 0)

    if version != WRAP_VERSION:
        raise InvalidFormat(
            f"Unsupported encryption version: {version}", operation="decrypt_keypair"
        )
    if not KDF_MIN_ITERATIONS <= iterations <= KDF_MAX_ITERATIONS:
        raise InvalidFormat(
            f"Invalid iteration count: {iterations}", operation="decrypt_keypair"
        )

    header = WrappedKeyHeader(
        version=version, iterations=iterations, salt=salt, nonce=nonce, tag=tag
    )
    return header, blob[HEADER_SIZE:]


def encrypt_keypair(
    keypair: Keypair,
    password: str,
    iterations: int = KDF_ITERATIONS,
) -> bytes:
    """
    Encrypt a keypair with a password.

    Args:
        keypair: Keypair to protect
        password: User password (8..1024 characters)
        iterations: PBKDF2 iteration count, recorded in the header

    Returns:
        Wrapped key file bytes

    Raises:
        PasswordValidationError: Password length out of bounds
        ValueError: Iteration count out of bounds
    """
    validate_password(password)
    if not KDF_MIN_ITERATIONS <= iterations <= KDF_MAX_ITERATIONS:
        raise ValueError(
            f"iterations must be between {KDF_MIN_ITERATIONS} and {KDF_MAX_ITERATIONS}"
        )

    plaintext = keypair.to_bytes()
    salt = secrets.token_bytes(SALT_LENGTH_BYTES)
    cipher = AesGcmProvider()
    nonce = cipher.generate_nonce()

    kek = derive_kek(password, salt, iterations)
    with ZeroizeContext(kek):
        sealed = cipher.seal(bytes(kek), nonce, AAD, plaintext)

    _log.debug("Wrapped keypair with %d PBKDF2 iterations", iterations)

    return b"".join(
        (
            _HEADER.pack(WRAP_VERSION, iterations, salt, nonce, sealed.tag),
            sealed.ciphertext,
        )
    )


def decrypt_keypair(blob: bytes, password: str) -> Keypair:
    """
    Decrypt a wrapped key file.

    The KEK is re-derived with the iteration count and salt stored in the
    file, not the current default.

    Raises:
        InvalidFormat: Structural problem with the blob
        InvalidPassword: Wrong password or tampered data
    """
    header, ciphertext = parse_header(blob)

    cipher = AesGcmProvider()
    kek = derive_kek(password, header.salt, header.iterations)
    with ZeroizeContext(kek):
        try:
            plaintext = cipher.open(bytes(kek), header.nonce, AAD, ciphertext, header.tag)
        except AuthenticationError as e:
            raise InvalidPassword("Invalid password", operation="decrypt_keypair") from e

    try:
        return Keypair.from_bytes(plaintext)
    except InvalidFormat as e:
        # Authenticated but unreadable: treat like any other unlock failure
        raise InvalidPassword("Invalid password", operation="decrypt_keypair") from e


__all__ = [
    "WRAP_VERSION",
    "HEADER_SIZE",
    "WrappedKeyHeader",
    "parse_header",
    "encrypt_keypair",
    "decrypt_keypair",
    "validate_password",
    "benchmark",
]
