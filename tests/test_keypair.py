"""
Tests for the hybrid keypair and its serialized form.
"""

import struct

import pytest

from gitfoil.core.crypto.kyber_pqc import KYBER_1024_PK_SIZE, KYBER_1024_SK_SIZE, KyberKEM
from gitfoil.core.errors import InvalidFormat
from gitfoil.core.keys.keypair import MAGIC_BYTES, Keypair, generate_keypair

from conftest import FakeKem


class TestSerialization:

    def test_round_trip(self, keypair):
        assert Keypair.from_bytes(keypair.to_bytes()) == keypair

    def test_layout(self, keypair):
        data = keypair.to_bytes()
        assert data[:4] == MAGIC_BYTES
        assert data[4] == 1
        (first_len,) = struct.unpack_from(">I", data, 5)
        assert first_len == 32

    def test_bad_magic(self, keypair):
        with pytest.raises(InvalidFormat):
            Keypair.from_bytes(b"XXXX" + keypair.to_bytes()[4:])

    def test_bad_version(self, keypair):
        data = bytearray(keypair.to_bytes())
        data[4] = 9
        with pytest.raises(InvalidFormat):
            Keypair.from_bytes(bytes(data))

    def test_truncated(self, keypair):
        with pytest.raises(InvalidFormat):
            Keypair.from_bytes(keypair.to_bytes()[:-1])

    def test_trailing_data(self, keypair):
        with pytest.raises(InvalidFormat):
            Keypair.from_bytes(keypair.to_bytes() + b"\x00")

    def test_wrong_classical_length(self):
        pair = Keypair(b"\x01" * 32, b"\x00" * 16, b"", b"\x11")
        with pytest.raises(InvalidFormat):
            Keypair.from_bytes(pair.to_bytes())

    def test_repr_hides_secrets(self, keypair):
        text = repr(keypair)
        assert "\\x11" not in text
        assert "classical_len=32" in text


class TestGeneration:

    def test_generate_with_injected_kem(self):
        pair = generate_keypair(FakeKem())
        assert len(pair.classical_secret) == 32
        assert len(pair.pq_public) == KYBER_1024_PK_SIZE
        assert len(pair.pq_secret) == KYBER_1024_SK_SIZE

    def test_generated_keypairs_differ(self):
        assert generate_keypair(FakeKem()) != generate_keypair(FakeKem())

    def test_real_kem(self):
        kem = KyberKEM()
        pair = generate_keypair(kem)
        assert len(pair.pq_public) == kem.public_key_size
        assert len(pair.pq_secret) == kem.secret_key_size
        assert Keypair.from_bytes(pair.to_bytes()) == pair

    def test_kem_agreement(self):
        kem = KyberKEM()
        pair = kem.generate_keypair()
        shared, ciphertext = kem.encapsulate(pair.public_key)
        assert kem.decapsulate(ciphertext, pair.secret_key) == shared
