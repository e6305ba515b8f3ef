"""
ML-KEM (CRYSTALS-Kyber) Post-Quantum Key Encapsulation
======================================================

Supplies the post-quantum half of the GitFoil keypair.

ML-KEM-1024 (FIPS 203, NIST level 5) is the default parameter set:
encapsulation key 1568 bytes, decapsulation key 3168 bytes, ciphertext
1568 bytes, shared secret 32 bytes.

Backends (first available wins):
    1. liboqs-python (`oqs`) - native, fastest
    2. kyber-py (`kyber_py`) - pure Python reference implementation

If neither can be loaded, BackendUnavailable is raised. There is no
simulated fallback.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Final, Optional, Tuple

from gitfoil.core.errors import BackendUnavailable

# (encapsulation key, decapsulation key) sizes per parameter set
KYBER_512_PK_SIZE: Final[int] = 800
KYBER_512_SK_SIZE: Final[int] = 1632

KYBER_768_PK_SIZE: Final[int] = 1184
KYBER_768_SK_SIZE: Final[int] = 2400

KYBER_1024_PK_SIZE: Final[int] = 1568
KYBER_1024_SK_SIZE: Final[int] = 3168

SHARED_SECRET_SIZE: Final[int] = 32

DEFAULT_SECURITY_LEVEL: Final[int] = 1024

_KEY_SIZES: Final[dict[int, Tuple[int, int]]] = {
    512: (KYBER_512_PK_SIZE, KYBER_512_SK_SIZE),
    768: (KYBER_768_PK_SIZE, KYBER_768_SK_SIZE),
    1024: (KYBER_1024_PK_SIZE, KYBER_1024_SK_SIZE),
}


@dataclass(frozen=True, slots=True)
class KyberKeypair:
    """
    ML-KEM keypair as returned by a backend.

    public_key is the encapsulation key, secret_key the decapsulation key.
    """

    public_key: bytes
    secret_key: bytes
    security_level: int

    def __repr__(self) -> str:
        return f"KyberKeypair(level=ML-KEM-{self.security_level}, pk_len={len(self.public_key)})"


class KyberBackend(ABC):
    """One ML-KEM library behind a common interface."""

    @abstractmethod
    def keygen(self) -> Tuple[bytes, bytes]:
        """(encapsulation_key, decapsulation_key)"""

    @abstractmethod
    def encapsulate(self, public_key: bytes) -> Tuple[bytes, bytes]:
        """(shared_secret, ciphertext)"""

    @abstractmethod
    def decapsulate(self, ciphertext: bytes, secret_key: bytes) -> bytes:
        """shared_secret"""


class OqsKyberBackend(KyberBackend):
    """ML-KEM via liboqs-python (Open Quantum Safe)."""

    def __init__(self, security_level: int = DEFAULT_SECURITY_LEVEL) -> None:
        import oqs

        self._oqs = oqs
        self._algorithm = f"ML-KEM-{security_level}"
        if self._algorithm not in oqs.get_enabled_kem_mechanisms():
            raise ImportError(f"liboqs does not provide {self._algorithm}")

    def keygen(self) -> Tuple[bytes, bytes]:
        with self._oqs.KeyEncapsulation(self._algorithm) as kem:
            public_key = kem.generate_keypair()
            secret_key = kem.export_secret_key()
        return bytes(public_key), bytes(secret_key)

    def encapsulate(self, public_key: bytes) -> Tuple[bytes, bytes]:
        with self._oqs.KeyEncapsulation(self._algorithm) as kem:
            ciphertext, shared_secret = kem.encap_secret(public_key)
        return bytes(shared_secret), bytes(ciphertext)

    def decapsulate(self, ciphertext: bytes, secret_key: bytes) -> bytes:
        with self._oqs.KeyEncapsulation(self._algorithm, secret_key=secret_key) as kem:
            return bytes(kem.decap_secret(ciphertext))


class PureKyberBackend(KyberBackend):
    """ML-KEM via kyber-py (pure Python, FIPS 203)."""

    def __init__(self, security_level: int = DEFAULT_SECURITY_LEVEL) -> None:
        from kyber_py import ml_kem

        self._kem = getattr(ml_kem, f"ML_KEM_{security_level}")

    def keygen(self) -> Tuple[bytes, bytes]:
        encapsulation_key, decapsulation_key = self._kem.keygen()
        return encapsulation_key, decapsulation_key

    def encapsulate(self, public_key: bytes) -> Tuple[bytes, bytes]:
        shared_secret, ciphertext = self._kem.encaps(public_key)
        return shared_secret, ciphertext

    def decapsulate(self, ciphertext: bytes, secret_key: bytes) -> bytes:
        return self._kem.decaps(secret_key, ciphertext)


# Tried in order; a backend that cannot load raises one of these
_BACKENDS: Final[tuple[tuple[str, type[KyberBackend], tuple[type[BaseException], ...]], ...]] = (
    ("liboqs", OqsKyberBackend, (ImportError, RuntimeError, OSError)),
    ("kyber-py", PureKyberBackend, (ImportError, AttributeError)),
)


class KyberKEM:
    """
    ML-KEM over the first backend that loads.

    GitFoil only needs key generation for the keypair; encapsulation is
    exercised by the startup self-test to prove the backend works.

    Usage:
        kem = KyberKEM()
        keypair = kem.generate_keypair()

    Raises (constructor):
        ValueError: security_level is not 512, 768 or 1024
        BackendUnavailable: No ML-KEM library could be loaded
    """

    __slots__ = ("_security_level", "_backend", "_backend_name")

    def __init__(self, security_level: int = DEFAULT_SECURITY_LEVEL) -> None:
        if security_level not in _KEY_SIZES:
            raise ValueError(f"Unsupported ML-KEM parameter set: {security_level}")
        self._security_level = security_level
        self._backend, self._backend_name = self._load_backend(security_level)

    @staticmethod
    def _load_backend(level: int) -> Tuple[KyberBackend, str]:
        last_error: Optional[BaseException] = None
        for name, backend_cls, load_errors in _BACKENDS:
            try:
                return backend_cls(level), name
            except load_errors as e:
                last_error = e
        raise BackendUnavailable(
            "No ML-KEM backend available; install 'kyber-py' or 'liboqs-python'",
            operation="load_kem",
        ) from last_error

    @property
    def security_level(self) -> int:
        return self._security_level

    @property
    def backend_name(self) -> str:
        return self._backend_name

    @property
    def public_key_size(self) -> int:
        return _KEY_SIZES[self._security_level][0]

    @property
    def secret_key_size(self) -> int:
        return _KEY_SIZES[self._security_level][1]

    def generate_keypair(self) -> KyberKeypair:
        """
        Raises:
            BackendUnavailable: The backend returned keys of unexpected size
        """
        public_key, secret_key = self._backend.keygen()
        if (len(public_key), len(secret_key)) != _KEY_SIZES[self._security_level]:
            raise BackendUnavailable(
                f"{self._backend_name} returned malformed ML-KEM-{self._security_level} keys",
                operation="kem_keygen",
            )
        return KyberKeypair(bytes(public_key), bytes(secret_key), self._security_level)

    def encapsulate(self, public_key: bytes) -> Tuple[bytes, bytes]:
        """(shared_secret, ciphertext) for public_key."""
        return self._backend.encapsulate(public_key)

    def decapsulate(self, ciphertext: bytes, secret_key: bytes) -> bytes:
        return self._backend.decapsulate(ciphertext, secret_key)
