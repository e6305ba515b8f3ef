"""
Key Derivation Functions
========================

Implements:
    - PBKDF2-HMAC-SHA512 for password -> key-encryption-key (KEK)
    - HKDF-SHA256 for per-layer subkeys of the layered cipher
    - Master key derivation from a hybrid keypair
"""

from __future__ import annotations

import hashlib
import secrets
import time
from typing import TYPE_CHECKING, Final

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from gitfoil.security.constants import KDF_ITERATIONS, SALT_LENGTH_BYTES

if TYPE_CHECKING:
    from gitfoil.core.keys.keypair import Keypair

KEK_LENGTH: Final[int] = 32

MASTER_KEY_LENGTH: Final[int] = 32
LAYER_INFO_PREFIX: Final[bytes] = b"GitFoil.Layer.v1"


def derive_kek(
    password: str,
    salt: bytes,
    iterations: int = KDF_ITERATIONS,
    length: int = KEK_LENGTH,
) -> bytearray:
    """
    Derive a key-encryption key from a password using PBKDF2-HMAC-SHA512.

    Args:
        password: User password
        salt: Random salt (32 bytes)
        iterations: PBKDF2 iteration count
        length: Output key length

    Returns:
        Derived key as a mutable buffer so the caller can zero it after use
    """
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA512(),
        length=length,
        salt=salt,
        iterations=iterations,
    )
    return bytearray(kdf.derive(password.encode("utf-8")))


def derive_layer_key(
    master_key: bytes,
    layer_index: int,
    layer_name: str,
    length: int,
) -> bytes:
    """
    Expand the master key into the subkey for one cipher layer.

    The HKDF info string binds the layer position and the provider name,
    so no two layers ever share a key even though they share a master key.

    Args:
        master_key: 32-byte master key
        layer_index: 1-based position in the pipeline
        layer_name: Provider name
        length: Provider key size
    """
    info = b"|".join(
        (LAYER_INFO_PREFIX, str(layer_index).encode("ascii"), layer_name.encode("ascii"))
    )
    hkdf = HKDF(
        algorithm=hashes.SHA256(),
        length=length,
        salt=None,
        info=info,
    )
    return hkdf.derive(master_key)


def derive_master_key(keypair: "Keypair") -> bytes:
    """
    Derive the symmetric master key from a hybrid keypair.

    master_key = SHA-512(classical_secret || pq_secret)[0:32]

    Deterministic: the same keypair always yields the same key, whether it
    was unlocked from plaintext or password-protected storage.
    """
    digest = hashlib.sha512(keypair.classical_secret + keypair.pq_secret).digest()
    return digest[:MASTER_KEY_LENGTH]


def benchmark(iterations: int = KDF_ITERATIONS) -> float:
    """
    Time one PBKDF2-HMAC-SHA512 derivation on this machine.

    Useful for tuning the iteration count.

    Returns:
        Elapsed time in milliseconds
    """
    if iterations < 1:
        raise ValueError("iterations must be positive")
    salt = secrets.token_bytes(SALT_LENGTH_BYTES)
    start = time.perf_counter()
    derive_kek("test-password-for-benchmarking", salt, iterations)
    return (time.perf_counter() - start) * 1000.0
