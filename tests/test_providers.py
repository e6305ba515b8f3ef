"""
Tests for the individual AEAD providers.
"""

import secrets

import pytest

from gitfoil.core.crypto import (
    AesGcmProvider,
    AesGcmSivProvider,
    AesOcb3Provider,
    AesSivProvider,
    ChaCha20Poly1305Provider,
    XChaCha20Poly1305Provider,
)
from gitfoil.core.errors import AuthenticationError

PROVIDERS = [
    AesGcmProvider(),
    AesOcb3Provider(),
    AesGcmSivProvider(),
    AesSivProvider(),
    XChaCha20Poly1305Provider(),
    ChaCha20Poly1305Provider(),
]


@pytest.fixture(params=PROVIDERS, ids=lambda p: p.name)
def provider(request):
    return request.param


def _material(provider):
    return secrets.token_bytes(provider.key_size), provider.generate_nonce()


class TestProviderRoundTrip:
    """Seal/open behaviour shared by every provider."""

    def test_round_trip(self, provider):
        key, nonce = _material(provider)
        sealed = provider.seal(key, nonce, b"aad", b"attack at dawn")

        assert len(sealed.tag) == provider.tag_size
        assert len(sealed.ciphertext) == len(b"attack at dawn")
        assert provider.open(key, nonce, b"aad", sealed.ciphertext, sealed.tag) == b"attack at dawn"

    def test_joined_is_ciphertext_then_tag(self, provider):
        key, nonce = _material(provider)
        sealed = provider.seal(key, nonce, b"", b"payload")
        assert sealed.joined() == sealed.ciphertext + sealed.tag

    def test_nonce_has_declared_size(self, provider):
        assert len(provider.generate_nonce()) == provider.nonce_size
        assert provider.generate_nonce() != provider.generate_nonce()


class TestProviderRejection:
    """Every provider must fail closed."""

    def test_wrong_aad_rejected(self, provider):
        key, nonce = _material(provider)
        sealed = provider.seal(key, nonce, b"path-a", b"data")
        with pytest.raises(AuthenticationError):
            provider.open(key, nonce, b"path-b", sealed.ciphertext, sealed.tag)

    def test_flipped_tag_rejected(self, provider):
        key, nonce = _material(provider)
        sealed = provider.seal(key, nonce, b"", b"data")
        bad_tag = bytes([sealed.tag[0] ^ 0x80]) + sealed.tag[1:]
        with pytest.raises(AuthenticationError):
            provider.open(key, nonce, b"", sealed.ciphertext, bad_tag)

    def test_flipped_ciphertext_rejected(self, provider):
        key, nonce = _material(provider)
        sealed = provider.seal(key, nonce, b"", b"some longer data")
        bad = bytes([sealed.ciphertext[0] ^ 0x01]) + sealed.ciphertext[1:]
        with pytest.raises(AuthenticationError):
            provider.open(key, nonce, b"", bad, sealed.tag)

    def test_wrong_key_rejected(self, provider):
        key, nonce = _material(provider)
        sealed = provider.seal(key, nonce, b"", b"data")
        other = secrets.token_bytes(provider.key_size)
        with pytest.raises(AuthenticationError):
            provider.open(other, nonce, b"", sealed.ciphertext, sealed.tag)

    def test_short_tag_rejected(self, provider):
        key, nonce = _material(provider)
        sealed = provider.seal(key, nonce, b"", b"data")
        with pytest.raises(AuthenticationError):
            provider.open(key, nonce, b"", sealed.ciphertext, sealed.tag[:-1])

    def test_bad_key_size(self, provider):
        with pytest.raises(ValueError):
            provider.seal(b"\x00" * (provider.key_size - 1), provider.generate_nonce(), b"", b"x")

    def test_bad_nonce_size(self, provider):
        key = secrets.token_bytes(provider.key_size)
        with pytest.raises(ValueError):
            provider.seal(key, b"\x00" * (provider.nonce_size + 1), b"", b"x")


def test_siv_places_tag_in_front():
    """AES-SIV output from the library is tag || ciphertext."""
    from cryptography.hazmat.primitives.ciphers.aead import AESSIV

    provider = AesSivProvider()
    key, nonce = _material(provider)
    sealed = provider.seal(key, nonce, b"aad", b"hello siv")
    raw = AESSIV(key).encrypt(b"hello siv", [b"aad", nonce])
    assert raw == sealed.tag + sealed.ciphertext


def test_provider_names_unique():
    names = [p.name for p in PROVIDERS]
    assert len(set(names)) == len(names)
