"""
Hybrid Keypair
==============

The long-lived key material of a GitFoil repository: 32 bytes of classical
random material plus an ML-KEM keypair. The master file-encryption key is
derived from the two secret halves (see kdf.derive_master_key).

Serialized form (used for master.key and inside master.key.enc):

    MAGIC "GFKP" (4) | VERSION (1) |
    for each of classical_public, classical_secret, pq_public, pq_secret:
        LEN (4, big-endian) | BYTES
"""

from __future__ import annotations

import secrets
import struct
from dataclasses import dataclass
from typing import Final, Optional

from gitfoil.core.crypto.kyber_pqc import KyberKEM
from gitfoil.core.errors import InvalidFormat

MAGIC_BYTES: Final[bytes] = b"GFKP"  # GitFoil KeyPair
KEYPAIR_VERSION: Final[int] = 1
CLASSICAL_KEY_SIZE: Final[int] = 32
MAX_FIELD_SIZE: Final[int] = 64 * 1024

_FIELDS: Final[tuple[str, ...]] = (
    "classical_public",
    "classical_secret",
    "pq_public",
    "pq_secret",
)


@dataclass(frozen=True, slots=True)
class Keypair:
    """
    Immutable hybrid keypair.

    Attributes:
        classical_public: 32 random bytes
        classical_secret: 32 random bytes
        pq_public: ML-KEM public (encapsulation) key
        pq_secret: ML-KEM secret (decapsulation) key
    """

    classical_public: bytes
    classical_secret: bytes
    pq_public: bytes
    pq_secret: bytes

    def __repr__(self) -> str:
        """Safe representation without exposing key material."""
        return (
            f"Keypair(classical_len={len(self.classical_secret)}, "
            f"pq_public_len={len(self.pq_public)}, pq_secret_len={len(self.pq_secret)})"
        )

    def to_bytes(self) -> bytes:
        """Serialize to the versioned binary form."""
        parts = [MAGIC_BYTES, struct.pack(">B", KEYPAIR_VERSION)]
        for name in _FIELDS:
            value = getattr(self, name)
            parts.append(struct.pack(">I", len(value)))
            parts.append(value)
        return b"".join(parts)

    @classmethod
    def from_bytes(cls, data: bytes) -> "Keypair":
        """
        Deserialize from bytes.

        Raises:
            InvalidFormat: If data is truncated, has trailing bytes, or an
                unknown magic/version
        """
        if len(data) < 5 or data[:4] != MAGIC_BYTES:
            raise InvalidFormat("Invalid keypair: bad magic bytes", operation="load_keypair")
        if data[4] != KEYPAIR_VERSION:
            raise InvalidFormat(f"Unsupported keypair version: {data[4]}", operation="load_keypair")

        offset = 5
        values: dict[str, bytes] = {}
        for name in _FIELDS:
            if offset + 4 > len(data):
                raise InvalidFormat(f"Invalid keypair: truncated before {name}", operation="load_keypair")
            (length,) = struct.unpack_from(">I", data, offset)
            offset += 4
            if length > MAX_FIELD_SIZE or offset + length > len(data):
                raise InvalidFormat(f"Invalid keypair: bad length for {name}", operation="load_keypair")
            values[name] = bytes(data[offset : offset + length])
            offset += length

        if offset != len(data):
            raise InvalidFormat("Invalid keypair: trailing data", operation="load_keypair")
        if len(values["classical_secret"]) != CLASSICAL_KEY_SIZE:
            raise InvalidFormat("Invalid keypair: classical secret must be 32 bytes", operation="load_keypair")

        return cls(**values)


def generate_keypair(kem: Optional[KyberKEM] = None) -> Keypair:
    """
    Generate a fresh hybrid keypair.

    Classical material comes from the OS CSPRNG; post-quantum material from
    the ML-KEM backend.

    Raises:
        BackendUnavailable: If no ML-KEM backend can be loaded
    """
    kem = kem or KyberKEM()
    pq = kem.generate_keypair()
    return Keypair(
        classical_public=secrets.token_bytes(CLASSICAL_KEY_SIZE),
        classical_secret=secrets.token_bytes(CLASSICAL_KEY_SIZE),
        pq_public=pq.public_key,
        pq_secret=pq.secret_key,
    )
