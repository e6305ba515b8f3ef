"""
Layered Authenticated Encryption Engine
=======================================

Encrypts one file body under a fixed, ordered stack of independent AEAD
ciphers (onion encryption) for defense-in-depth.

Default stack (layer 1 is applied first and is the innermost):
    1. AES-256-GCM
    2. AES-256-OCB3
    3. AES-256-GCM-SIV
    4. AES-256-SIV
    5. XChaCha20-Poly1305
    6. ChaCha20-Poly1305

Providers are interchangeable; the stack uses only ciphers that the
cryptography and pycryptodome packages ship (no AEGIS, Ascon, Deoxys-II
or Schwaemm bindings are required).

Encryption Flow (per layer i = 1..N):
    subkey_i = HKDF-SHA256(master_key, info="GitFoil.Layer.v1|i|name")
    nonce_i  = fresh random
    aad_i    = "GitFoil.AAD.v1" | version | i | len(path) | path
    buffer   = seal_i(buffer) as ciphertext || tag

Decryption Flow:
    layers are opened N..1; every inner buffer must end with the tag that
    the envelope records for that layer

Blob Format (big-endian):
    MAGIC "GFOL" (4) | VERSION (1) | LAYER_COUNT (1) |
    for each layer 1..N: NONCE (provider.nonce_size) | TAG (provider.tag_size) |
    CIPHERTEXT (output of layer N, without its tag)

Record sizes are fixed by the provider stack, so parsing is unambiguous.

WARNING:
    - Every layer MUST pass authentication
    - Any failure = complete rejection (fail-closed, no partial output)
"""

from __future__ import annotations

import hmac
import logging
import struct
from dataclasses import dataclass
from typing import Final, Optional, Sequence

from gitfoil.core.crypto.aead import AeadProvider
from gitfoil.core.crypto.aes_gcm import AesGcmProvider
from gitfoil.core.crypto.aes_modes import AesGcmSivProvider, AesOcb3Provider, AesSivProvider
from gitfoil.core.crypto.chacha20 import ChaCha20Poly1305Provider, XChaCha20Poly1305Provider
from gitfoil.core.crypto.kdf import MASTER_KEY_LENGTH, derive_layer_key
from gitfoil.core.errors import AuthenticationError, DecryptionFailed, InvalidBlobFormat
from gitfoil.utils.validators import encode_file_path

# Version for format compatibility
BLOB_VERSION: Final[int] = 1
MAGIC_BYTES: Final[bytes] = b"GFOL"  # GitFoil Onion Layers
AAD_LABEL: Final[bytes] = b"GitFoil.AAD.v1"
MAX_LAYERS: Final[int] = 255

_PREAMBLE: Final[struct.Struct] = struct.Struct(">4sBB")

_log = logging.getLogger("gitfoil.crypto")


def default_providers() -> tuple[AeadProvider, ...]:
    """Return the standard six-layer provider stack, innermost first."""
    return (
        AesGcmProvider(),
        AesOcb3Provider(),
        AesGcmSivProvider(),
        AesSivProvider(),
        XChaCha20Poly1305Provider(),
        ChaCha20Poly1305Provider(),
    )


@dataclass(frozen=True, slots=True)
class LayerRecord:
    """Nonce and tag of one layer."""

    nonce: bytes
    tag: bytes


@dataclass(frozen=True, slots=True)
class EncryptedBlob:
    """
    Immutable envelope for one encrypted file body.

    Contains everything needed for decryption except the master key and the
    file path.
    """

    version: int
    layers: tuple[LayerRecord, ...]
    ciphertext: bytes

    def __repr__(self) -> str:
        """Safe representation."""
        return (
            f"EncryptedBlob(v{self.version}, layers={len(self.layers)}, "
            f"ct_len={len(self.ciphertext)})"
        )


class LayeredCipher:
    """
    Onion encryption over a fixed provider stack.

    Usage:
        cipher = LayeredCipher()

        blob = cipher.encrypt(plaintext, master_key, "src/secret.txt")
        data = cipher.serialize(blob)

        blob = cipher.deserialize(data)
        plaintext = cipher.decrypt(blob, master_key, "src/secret.txt")

    Security Notes:
        - Subkeys are domain-separated per layer
        - The file path is authenticated at every layer, so a blob cannot be
          moved to another path undetected
        - Integrity of every layer is verified before plaintext is returned
    """

    __slots__ = ("_providers",)

    def __init__(self, providers: Optional[Sequence[AeadProvider]] = None) -> None:
        """
        Args:
            providers: Ordered layer stack, innermost first. Defaults to
                default_providers().

        Raises:
            ValueError: Empty stack, too many layers, or duplicate names
        """
        stack = tuple(providers) if providers is not None else default_providers()
        if not stack:
            raise ValueError("At least one cipher layer is required")
        if len(stack) > MAX_LAYERS:
            raise ValueError(f"At most {MAX_LAYERS} cipher layers are supported")
        names = [p.name for p in stack]
        if len(set(names)) != len(names):
            raise ValueError(f"Cipher layer names must be unique: {names}")
        self._providers = stack

    @property
    def providers(self) -> tuple[AeadProvider, ...]:
        return self._providers

    @property
    def overhead(self) -> int:
        """Bytes added to a plaintext by encryption + serialization."""
        records = sum(p.nonce_size + p.tag_size for p in self._providers)
        inner_tags = sum(p.tag_size for p in self._providers[:-1])
        return _PREAMBLE.size + records + inner_tags

    # ------------------------------------------------------------------
    # Encryption
    # ------------------------------------------------------------------

    def encrypt(self, plaintext: bytes, master_key: bytes, file_path: str) -> EncryptedBlob:
        """
        Encrypt a file body.

        Args:
            plaintext: File content (may be empty)
            master_key: 32-byte master key
            file_path: Repository-relative path, bound into every layer's AAD

        Returns:
            EncryptedBlob
        """
        self._check_master_key(master_key)

        buffer = plaintext
        records: list[LayerRecord] = []
        final_ciphertext = b""
        last = len(self._providers)

        for index, provider in enumerate(self._providers, start=1):
            key = derive_layer_key(master_key, index, provider.name, provider.key_size)
            nonce = provider.generate_nonce()
            aad = self._build_aad(index, file_path)

            sealed = provider.seal(key, nonce, aad, buffer)
            records.append(LayerRecord(nonce=nonce, tag=sealed.tag))

            if index == last:
                final_ciphertext = sealed.ciphertext
            else:
                buffer = sealed.joined()

        return EncryptedBlob(
            version=BLOB_VERSION,
            layers=tuple(records),
            ciphertext=final_ciphertext,
        )

    def encrypt_bytes(self, plaintext: bytes, master_key: bytes, file_path: str) -> bytes:
        """Encrypt and serialize in one step."""
        return self.serialize(self.encrypt(plaintext, master_key, file_path))

    # ------------------------------------------------------------------
    # Decryption
    # ------------------------------------------------------------------

    def decrypt(self, blob: EncryptedBlob, master_key: bytes, file_path: str) -> bytes:
        """
        Decrypt a blob produced by encrypt().

        A wrong master key is not told apart from tampering: both surface as
        DecryptionFailed, never InvalidPassword. Password errors are raised
        only when unwrapping master.key.enc.

        Raises:
            InvalidBlobFormat: Blob does not match this cipher's layer stack
            DecryptionFailed: Any layer failed authentication (wrong key,
                wrong path, or tampering)
        """
        self._check_master_key(master_key)
        if blob.version != BLOB_VERSION or len(blob.layers) != len(self._providers):
            raise InvalidBlobFormat("Blob does not match the cipher layer stack", path=file_path)

        last = len(self._providers)
        ciphertext = blob.ciphertext
        tag = blob.layers[-1].tag
        buffer = b""

        for index in range(last, 0, -1):
            provider = self._providers[index - 1]
            record = blob.layers[index - 1]

            if index != last:
                # Inner layers arrive as ciphertext || tag
                if len(buffer) < provider.tag_size or not hmac.compare_digest(
                    buffer[-provider.tag_size :], record.tag
                ):
                    raise DecryptionFailed(
                        f"Layer {index} ({provider.name}) tag mismatch",
                        path=file_path,
                        operation="decrypt",
                    )
                ciphertext = buffer[: -provider.tag_size]
                tag = record.tag

            key = derive_layer_key(master_key, index, provider.name, provider.key_size)
            aad = self._build_aad(index, file_path)
            try:
                buffer = provider.open(key, record.nonce, aad, ciphertext, tag)
            except AuthenticationError as e:
                _log.debug("Layer %d (%s) failed authentication", index, provider.name)
                raise DecryptionFailed(
                    f"Layer {index} ({provider.name}) failed authentication",
                    path=file_path,
                    operation="decrypt",
                ) from e

        return buffer

    def decrypt_bytes(self, data: bytes, master_key: bytes, file_path: str) -> bytes:
        """Deserialize and decrypt in one step."""
        return self.decrypt(self.deserialize(data), master_key, file_path)

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def serialize(self, blob: EncryptedBlob) -> bytes:
        """Serialize a blob to its binary wire format."""
        if len(blob.layers) != len(self._providers):
            raise ValueError("Blob layer count does not match the cipher layer stack")

        parts = [_PREAMBLE.pack(MAGIC_BYTES, blob.version, len(blob.layers))]
        for provider, record in zip(self._providers, blob.layers):
            if len(record.nonce) != provider.nonce_size or len(record.tag) != provider.tag_size:
                raise ValueError(f"Malformed record for layer {provider.name}")
            parts.append(record.nonce)
            parts.append(record.tag)
        parts.append(blob.ciphertext)
        return b"".join(parts)

    def deserialize(self, data: bytes) -> EncryptedBlob:
        """
        Parse the binary wire format.

        Never raises anything but InvalidBlobFormat for malformed input.
        """
        if len(data) < _PREAMBLE.size:
            raise InvalidBlobFormat("Blob too short")

        magic, version, layer_count = _PREAMBLE.unpack_from(data, 0)
        if magic != MAGIC_BYTES:
            raise InvalidBlobFormat("Invalid blob: bad magic bytes")
        if version != BLOB_VERSION:
            raise InvalidBlobFormat(f"Unsupported blob version: {version}")
        if layer_count != len(self._providers):
            raise InvalidBlobFormat(
                f"Blob has {layer_count} layers, expected {len(self._providers)}"
            )

        offset = _PREAMBLE.size
        records: list[LayerRecord] = []
        for provider in self._providers:
            end = offset + provider.nonce_size + provider.tag_size
            if end > len(data):
                raise InvalidBlobFormat("Blob truncated inside layer records")
            nonce = bytes(data[offset : offset + provider.nonce_size])
            tag = bytes(data[offset + provider.nonce_size : end])
            records.append(LayerRecord(nonce=nonce, tag=tag))
            offset = end

        return EncryptedBlob(
            version=version,
            layers=tuple(records),
            ciphertext=bytes(data[offset:]),
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _build_aad(layer_index: int, file_path: str) -> bytes:
        path_bytes = encode_file_path(file_path)
        return b"".join(
            (
                AAD_LABEL,
                struct.pack(">BBI", BLOB_VERSION, layer_index, len(path_bytes)),
                path_bytes,
            )
        )

    @staticmethod
    def _check_master_key(master_key: bytes) -> None:
        if len(master_key) != MASTER_KEY_LENGTH:
            raise ValueError(f"Master key must be exactly {MASTER_KEY_LENGTH} bytes")
