"""
GitFoil Cryptographic Core
==========================

Provides the layered AEAD pipeline used by the clean/smudge filter.

Architecture:
    1. AeadProvider: uniform seal/open over six AEAD constructions
    2. LayeredCipher: onion encryption over the ordered provider stack
    3. ML-KEM (Kyber): post-quantum half of the hybrid keypair
    4. password_wrap: PBKDF2 + AES-256-GCM protection of the keypair

Security Properties:
    - All encryption is authenticated (AEAD)
    - Independent subkey per layer (HKDF domain separation)
    - File path bound into every layer's associated data
    - Secure RNG for all nonces, salts and key material

WARNING: This module handles sensitive cryptographic material.
         Incorrect usage can compromise security.
"""

from gitfoil.core.crypto.aead import AeadProvider, SealResult
from gitfoil.core.crypto.aes_gcm import AesGcmProvider
from gitfoil.core.crypto.aes_modes import AesGcmSivProvider, AesOcb3Provider, AesSivProvider
from gitfoil.core.crypto.chacha20 import ChaCha20Poly1305Provider, XChaCha20Poly1305Provider
from gitfoil.core.crypto.kdf import derive_kek, derive_layer_key, derive_master_key
from gitfoil.core.crypto.kyber_pqc import KyberKEM, KyberKeypair
from gitfoil.core.crypto.layered import (
    EncryptedBlob,
    LayeredCipher,
    LayerRecord,
    default_providers,
)

__all__ = [
    "AeadProvider",
    "SealResult",
    "AesGcmProvider",
    "AesOcb3Provider",
    "AesGcmSivProvider",
    "AesSivProvider",
    "XChaCha20Poly1305Provider",
    "ChaCha20Poly1305Provider",
    "derive_kek",
    "derive_layer_key",
    "derive_master_key",
    "KyberKEM",
    "KyberKeypair",
    "EncryptedBlob",
    "LayeredCipher",
    "LayerRecord",
    "default_providers",
]
