"""
AES-256-GCM Authenticated Encryption
====================================

Layer 1 of the default pipeline and the cipher used to wrap the keypair
under a password-derived KEK.

NIST SP 800-38D with a 96-bit random nonce and a 128-bit tag. A (key,
nonce) pair must never repeat; every seal draws a fresh nonce and every
layer key is single-purpose.
"""

from __future__ import annotations

from typing import Final

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from gitfoil.core.crypto.aead import AeadProvider, SealResult
from gitfoil.core.errors import AuthenticationError

AES_KEY_SIZE: Final[int] = 32
AES_NONCE_SIZE: Final[int] = 12
AES_TAG_SIZE: Final[int] = 16


class AesGcmProvider(AeadProvider):
    """
    AES-256-GCM via the `cryptography` package (OpenSSL backend).

    Usage:
        provider = AesGcmProvider()
        nonce = provider.generate_nonce()
        sealed = provider.seal(key, nonce, aad, plaintext)
        plaintext = provider.open(key, nonce, aad, sealed.ciphertext, sealed.tag)
    """

    __slots__ = ()

    name = "aes-256-gcm"
    key_size = AES_KEY_SIZE
    nonce_size = AES_NONCE_SIZE
    tag_size = AES_TAG_SIZE

    def _seal(self, key: bytes, nonce: bytes, aad: bytes, plaintext: bytes) -> SealResult:
        return self._split(AESGCM(key).encrypt(nonce, plaintext, aad))

    def _open(self, key: bytes, nonce: bytes, aad: bytes, ciphertext: bytes, tag: bytes) -> bytes:
        try:
            return AESGCM(key).decrypt(nonce, ciphertext + tag, aad)
        except InvalidTag as e:
            raise AuthenticationError(f"{self.name}: authentication failed") from e
