"""
Additional AES-based AEAD Modes
===============================

Layers 2-4 of the default pipeline. Each mode has a different
construction, so a flaw in one mode's design does not carry over to the
others.

Modes:
    - AES-256-OCB3 (RFC 7253): single-pass, 96-bit nonce
    - AES-256-GCM-SIV (RFC 8452): nonce-misuse resistant, 96-bit nonce
    - AES-256-SIV (RFC 5297): deterministic SIV; the random nonce is passed
      as the last associated-data component, 512-bit combined key

All three come from the `cryptography` package. GCM-SIV needs an OpenSSL
build that provides it; the startup self-test reports BackendUnavailable
otherwise.
"""

from __future__ import annotations

from typing import Final

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCMSIV, AESOCB3, AESSIV

from gitfoil.core.crypto.aead import AeadProvider, SealResult
from gitfoil.core.errors import AuthenticationError

OCB_NONCE_SIZE: Final[int] = 12
GCM_SIV_NONCE_SIZE: Final[int] = 12
SIV_KEY_SIZE: Final[int] = 64  # two 256-bit halves (MAC key || CTR key)
SIV_NONCE_SIZE: Final[int] = 16
AES_MODE_TAG_SIZE: Final[int] = 16


class AesOcb3Provider(AeadProvider):
    """AES-256-OCB3."""

    __slots__ = ()

    name = "aes-256-ocb3"
    key_size = 32
    nonce_size = OCB_NONCE_SIZE
    tag_size = AES_MODE_TAG_SIZE

    def _seal(self, key: bytes, nonce: bytes, aad: bytes, plaintext: bytes) -> SealResult:
        return self._split(AESOCB3(key).encrypt(nonce, plaintext, aad))

    def _open(self, key: bytes, nonce: bytes, aad: bytes, ciphertext: bytes, tag: bytes) -> bytes:
        try:
            return AESOCB3(key).decrypt(nonce, ciphertext + tag, aad)
        except InvalidTag as e:
            raise AuthenticationError(f"{self.name}: authentication failed") from e


class AesGcmSivProvider(AeadProvider):
    """AES-256-GCM-SIV."""

    __slots__ = ()

    name = "aes-256-gcm-siv"
    key_size = 32
    nonce_size = GCM_SIV_NONCE_SIZE
    tag_size = AES_MODE_TAG_SIZE

    def _seal(self, key: bytes, nonce: bytes, aad: bytes, plaintext: bytes) -> SealResult:
        return self._split(AESGCMSIV(key).encrypt(nonce, plaintext, aad))

    def _open(self, key: bytes, nonce: bytes, aad: bytes, ciphertext: bytes, tag: bytes) -> bytes:
        try:
            return AESGCMSIV(key).decrypt(nonce, ciphertext + tag, aad)
        except InvalidTag as e:
            raise AuthenticationError(f"{self.name}: authentication failed") from e


class AesSivProvider(AeadProvider):
    """
    AES-256-SIV.

    SIV emits the synthetic IV (the tag) in front of the ciphertext, so the
    split here differs from the other providers.
    """

    __slots__ = ()

    name = "aes-256-siv"
    key_size = SIV_KEY_SIZE
    nonce_size = SIV_NONCE_SIZE
    tag_size = AES_MODE_TAG_SIZE

    def _seal(self, key: bytes, nonce: bytes, aad: bytes, plaintext: bytes) -> SealResult:
        sealed = AESSIV(key).encrypt(plaintext, [aad, nonce])
        return SealResult(ciphertext=sealed[self.tag_size :], tag=sealed[: self.tag_size])

    def _open(self, key: bytes, nonce: bytes, aad: bytes, ciphertext: bytes, tag: bytes) -> bytes:
        try:
            return AESSIV(key).decrypt(tag + ciphertext, [aad, nonce])
        except InvalidTag as e:
            raise AuthenticationError(f"{self.name}: authentication failed") from e
