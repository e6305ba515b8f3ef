"""
AEAD Provider Interface
=======================

Every layer of the layered cipher is an AeadProvider: a thin adapter over a
real AEAD implementation that exposes a uniform seal/open pair with the tag
split out from the ciphertext.

Contract:
    seal(key, nonce, aad, plaintext) -> SealResult(ciphertext, tag)
    open(key, nonce, aad, ciphertext, tag) -> plaintext
        raises AuthenticationError on any verification failure

Providers are stateless; a single instance can be shared.
"""

from __future__ import annotations

import secrets
from abc import ABC, abstractmethod
from dataclasses import dataclass

from gitfoil.core.errors import AuthenticationError


@dataclass(frozen=True, slots=True)
class SealResult:
    """
    Output of one AEAD seal operation.

    Attributes:
        ciphertext: Encrypted data without the tag
        tag: Authentication tag (provider.tag_size bytes)
    """

    ciphertext: bytes
    tag: bytes

    def joined(self) -> bytes:
        """Return ciphertext || tag."""
        return self.ciphertext + self.tag

    def __repr__(self) -> str:
        return f"SealResult(ciphertext_len={len(self.ciphertext)}, tag_len={len(self.tag)})"


class AeadProvider(ABC):
    """Abstract base for one cipher layer."""

    __slots__ = ()

    #: Stable identifier, also used for subkey domain separation
    name: str = ""
    key_size: int = 32
    nonce_size: int = 12
    tag_size: int = 16

    def generate_nonce(self) -> bytes:
        """Return a fresh random nonce of this provider's size."""
        return secrets.token_bytes(self.nonce_size)

    def seal(self, key: bytes, nonce: bytes, aad: bytes, plaintext: bytes) -> SealResult:
        """
        Encrypt and authenticate plaintext.

        Raises:
            ValueError: If key or nonce has the wrong size
        """
        self._check_sizes(key, nonce)
        return self._seal(key, nonce, aad, plaintext)

    def open(self, key: bytes, nonce: bytes, aad: bytes, ciphertext: bytes, tag: bytes) -> bytes:
        """
        Verify and decrypt.

        Raises:
            ValueError: If key or nonce has the wrong size
            AuthenticationError: If the tag does not verify
        """
        self._check_sizes(key, nonce)
        if len(tag) != self.tag_size:
            raise AuthenticationError(f"{self.name}: tag must be {self.tag_size} bytes")
        return self._open(key, nonce, aad, ciphertext, tag)

    def _check_sizes(self, key: bytes, nonce: bytes) -> None:
        if len(key) != self.key_size:
            raise ValueError(f"{self.name}: key must be exactly {self.key_size} bytes")
        if len(nonce) != self.nonce_size:
            raise ValueError(f"{self.name}: nonce must be exactly {self.nonce_size} bytes")

    @abstractmethod
    def _seal(self, key: bytes, nonce: bytes, aad: bytes, plaintext: bytes) -> SealResult:
        ...

    @abstractmethod
    def _open(self, key: bytes, nonce: bytes, aad: bytes, ciphertext: bytes, tag: bytes) -> bytes:
        ...

    def _split(self, sealed: bytes) -> SealResult:
        """Split a ciphertext||tag buffer into its parts."""
        return SealResult(
            ciphertext=sealed[: len(sealed) - self.tag_size],
            tag=sealed[len(sealed) - self.tag_size :],
        )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r})"
