"""
ChaCha20-Poly1305 Authenticated Encryption
==========================================

Stream-cipher layers of the default pipeline. Using algorithms from a
different family than AES means a break in AES alone does not expose the
plaintext.

Variants:
    - ChaCha20-Poly1305 (RFC 8439): 96-bit nonce, via `cryptography`
    - XChaCha20-Poly1305: 192-bit extended nonce, via `pycryptodome`

Security Properties:
    - 256-bit key
    - 128-bit Poly1305 authentication tag
    - Constant-time software implementation (no cache-timing side channels)
"""

from __future__ import annotations

from typing import Final

from Crypto.Cipher import ChaCha20_Poly1305
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import ChaCha20Poly1305

from gitfoil.core.crypto.aead import AeadProvider, SealResult
from gitfoil.core.errors import AuthenticationError

# Constants per RFC 8439
CHACHA_KEY_SIZE: Final[int] = 32  # 256 bits
CHACHA_NONCE_SIZE: Final[int] = 12  # 96 bits
XCHACHA_NONCE_SIZE: Final[int] = 24  # 192 bits
CHACHA_TAG_SIZE: Final[int] = 16  # 128 bits (Poly1305)


class ChaCha20Poly1305Provider(AeadProvider):
    """ChaCha20-Poly1305 (IETF) via the `cryptography` package."""

    __slots__ = ()

    name = "chacha20-poly1305"
    key_size = CHACHA_KEY_SIZE
    nonce_size = CHACHA_NONCE_SIZE
    tag_size = CHACHA_TAG_SIZE

    def _seal(self, key: bytes, nonce: bytes, aad: bytes, plaintext: bytes) -> SealResult:
        return self._split(ChaCha20Poly1305(key).encrypt(nonce, plaintext, aad))

    def _open(self, key: bytes, nonce: bytes, aad: bytes, ciphertext: bytes, tag: bytes) -> bytes:
        try:
            return ChaCha20Poly1305(key).decrypt(nonce, ciphertext + tag, aad)
        except InvalidTag as e:
            raise AuthenticationError(f"{self.name}: authentication failed") from e


class XChaCha20Poly1305Provider(AeadProvider):
    """
    XChaCha20-Poly1305 via `pycryptodome`.

    The 24-byte nonce makes random nonces safe for an effectively unlimited
    number of messages under one key.
    """

    __slots__ = ()

    name = "xchacha20-poly1305"
    key_size = CHACHA_KEY_SIZE
    nonce_size = XCHACHA_NONCE_SIZE
    tag_size = CHACHA_TAG_SIZE

    def _seal(self, key: bytes, nonce: bytes, aad: bytes, plaintext: bytes) -> SealResult:
        cipher = ChaCha20_Poly1305.new(key=key, nonce=nonce)
        cipher.update(aad)
        ciphertext, tag = cipher.encrypt_and_digest(plaintext)
        return SealResult(ciphertext=ciphertext, tag=tag)

    def _open(self, key: bytes, nonce: bytes, aad: bytes, ciphertext: bytes, tag: bytes) -> bytes:
        cipher = ChaCha20_Poly1305.new(key=key, nonce=nonce)
        cipher.update(aad)
        try:
            return cipher.decrypt_and_verify(ciphertext, tag)
        except ValueError as e:
            # pycryptodome signals a MAC mismatch with ValueError
            raise AuthenticationError(f"{self.name}: authentication failed") from e
