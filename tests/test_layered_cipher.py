"""
Tests for the six-layer onion cipher and its blob format.
"""

import struct

import pytest

from gitfoil.core.crypto import AesGcmProvider, ChaCha20Poly1305Provider, LayeredCipher
from gitfoil.core.crypto.layered import BLOB_VERSION, MAGIC_BYTES, EncryptedBlob, default_providers
from gitfoil.core.errors import DecryptionFailed, InvalidBlobFormat, InvalidPassword

PATH = "secrets/config.yml"


@pytest.fixture(scope="module")
def cipher():
    return LayeredCipher()


class TestLayeredRoundTrip:

    @pytest.mark.parametrize("plaintext", [b"", b"x", b"hello world\n" * 1000, bytes(range(256))])
    def test_round_trip(self, cipher, master_key, plaintext):
        data = cipher.encrypt_bytes(plaintext, master_key, PATH)
        assert cipher.decrypt_bytes(data, master_key, PATH) == plaintext

    def test_default_stack_order(self, cipher):
        assert [p.name for p in cipher.providers] == [
            "aes-256-gcm",
            "aes-256-ocb3",
            "aes-256-gcm-siv",
            "aes-256-siv",
            "xchacha20-poly1305",
            "chacha20-poly1305",
        ]

    def test_blob_structure(self, cipher, master_key):
        blob = cipher.encrypt(b"content", master_key, PATH)
        assert blob.version == BLOB_VERSION
        assert len(blob.layers) == 6
        for provider, record in zip(cipher.providers, blob.layers):
            assert len(record.nonce) == provider.nonce_size
            assert len(record.tag) == provider.tag_size

    def test_serialized_size(self, cipher, master_key):
        data = cipher.encrypt_bytes(b"abc", master_key, PATH)
        assert len(data) == len(b"abc") + cipher.overhead
        assert data[:4] == MAGIC_BYTES
        assert data[4] == BLOB_VERSION
        assert data[5] == 6

    def test_encryption_is_randomized(self, cipher, master_key):
        a = cipher.encrypt_bytes(b"same", master_key, PATH)
        b = cipher.encrypt_bytes(b"same", master_key, PATH)
        assert a != b

    def test_serialize_deserialize_preserves_blob(self, cipher, master_key):
        blob = cipher.encrypt(b"content", master_key, PATH)
        assert cipher.deserialize(cipher.serialize(blob)) == blob

    def test_repr_hides_content(self, cipher, master_key):
        blob = cipher.encrypt(b"content", master_key, PATH)
        assert "content" not in repr(blob)


class TestLayeredAuthentication:

    def test_wrong_path_fails(self, cipher, master_key):
        data = cipher.encrypt_bytes(b"secret", master_key, "a.txt")
        with pytest.raises(DecryptionFailed):
            cipher.decrypt_bytes(data, master_key, "b.txt")

    def test_path_bound_as_raw_bytes(self, cipher, master_key):
        latin1 = b"caf\xe9.txt".decode("utf-8", "surrogateescape")
        data = cipher.encrypt_bytes(b"secret", master_key, latin1)
        assert cipher.decrypt_bytes(data, master_key, latin1) == b"secret"
        with pytest.raises(DecryptionFailed):
            cipher.decrypt_bytes(data, master_key, "caf\xe9.txt")

    def test_wrong_key_fails(self, cipher, master_key):
        data = cipher.encrypt_bytes(b"secret", master_key, PATH)
        with pytest.raises(DecryptionFailed) as exc:
            cipher.decrypt_bytes(data, bytes(32), PATH)
        assert not isinstance(exc.value, InvalidPassword)

    def test_every_byte_is_authenticated(self, cipher, master_key):
        data = cipher.encrypt_bytes(b"tamper me", master_key, PATH)
        header = 6
        for offset in range(header, len(data)):
            tampered = bytearray(data)
            tampered[offset] ^= 0x01
            with pytest.raises(DecryptionFailed):
                cipher.decrypt_bytes(bytes(tampered), master_key, PATH)

    def test_inner_tag_mismatch_detected(self, cipher, master_key):
        blob = cipher.encrypt(b"secret", master_key, PATH)
        layers = list(blob.layers)
        first = layers[0]
        layers[0] = type(first)(nonce=first.nonce, tag=bytes(len(first.tag)))
        forged = EncryptedBlob(version=blob.version, layers=tuple(layers), ciphertext=blob.ciphertext)
        with pytest.raises(DecryptionFailed):
            cipher.decrypt(forged, master_key, PATH)

    def test_master_key_length_checked(self, cipher):
        with pytest.raises(ValueError):
            cipher.encrypt(b"x", b"short", PATH)


class TestBlobFormat:

    def test_not_a_blob(self, cipher):
        with pytest.raises(InvalidBlobFormat):
            cipher.deserialize(b"plain text file contents")

    def test_too_short(self, cipher):
        with pytest.raises(InvalidBlobFormat):
            cipher.deserialize(b"GF")

    def test_wrong_version(self, cipher, master_key):
        data = bytearray(cipher.encrypt_bytes(b"x", master_key, PATH))
        data[4] = 2
        with pytest.raises(InvalidBlobFormat):
            cipher.deserialize(bytes(data))

    def test_wrong_layer_count(self, cipher, master_key):
        data = bytearray(cipher.encrypt_bytes(b"x", master_key, PATH))
        data[5] = 5
        with pytest.raises(InvalidBlobFormat):
            cipher.deserialize(bytes(data))

    @pytest.mark.parametrize("cut", [6, 20, 100])
    def test_truncated_records(self, cipher, master_key, cut):
        data = cipher.encrypt_bytes(b"x", master_key, PATH)
        with pytest.raises(InvalidBlobFormat):
            cipher.deserialize(data[:cut])

    def test_truncated_ciphertext_fails_authentication(self, cipher, master_key):
        data = cipher.encrypt_bytes(b"some file body", master_key, PATH)
        with pytest.raises(DecryptionFailed):
            cipher.decrypt_bytes(data[:-1], master_key, PATH)

    def test_empty_input(self, cipher):
        with pytest.raises(InvalidBlobFormat):
            cipher.deserialize(b"")

    def test_header_layout(self, cipher, master_key):
        data = cipher.encrypt_bytes(b"x", master_key, PATH)
        magic, version, count = struct.unpack_from(">4sBB", data)
        assert (magic, version, count) == (b"GFOL", 1, 6)


class TestCustomStacks:

    def test_two_layer_stack(self, master_key):
        cipher = LayeredCipher([AesGcmProvider(), ChaCha20Poly1305Provider()])
        data = cipher.encrypt_bytes(b"two layers", master_key, PATH)
        assert data[5] == 2
        assert cipher.decrypt_bytes(data, master_key, PATH) == b"two layers"

    def test_stack_mismatch_is_format_error(self, master_key):
        two = LayeredCipher([AesGcmProvider(), ChaCha20Poly1305Provider()])
        six = LayeredCipher()
        data = six.encrypt_bytes(b"x", master_key, PATH)
        with pytest.raises(InvalidBlobFormat):
            two.decrypt_bytes(data, master_key, PATH)

    def test_empty_stack_rejected(self):
        with pytest.raises(ValueError):
            LayeredCipher([])

    def test_duplicate_names_rejected(self):
        with pytest.raises(ValueError):
            LayeredCipher([AesGcmProvider(), AesGcmProvider()])

    def test_default_providers_fresh_each_call(self):
        assert default_providers() is not default_providers()
