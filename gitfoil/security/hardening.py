"""
Backend Self-Tests
==================

Startup self-tests for the cryptographic backends.

GitFoil depends on two native-backed libraries (cryptography and
pycryptodome) plus an ML-KEM implementation. A missing or broken backend
must stop the process before any key file or blob is touched, so every
provider is exercised once at startup.

Checks:
- Seal/open round-trip and tamper rejection for every AEAD provider
- ML-KEM keygen/encapsulate/decapsulate agreement
- PBKDF2 and HKDF availability
- CSPRNG sanity check
"""

from __future__ import annotations

import logging
import secrets
from collections import Counter
from dataclasses import dataclass
from enum import Enum, auto
from typing import Callable, List, Optional

from gitfoil.core.errors import AuthenticationError, BackendUnavailable

_log = logging.getLogger("gitfoil.security")


class SecurityCheckResult(Enum):
    """Outcome of one check. Only FAIL stops startup."""
    PASS = auto()
    WARN = auto()
    FAIL = auto()


@dataclass(frozen=True)
class CheckResult:
    name: str
    result: SecurityCheckResult
    message: str


class CryptoSelfTest:
    """
    Cryptographic backend self-tests.

    Crypto modules are imported inside the tests so that an unimportable
    library is reported as a failed check rather than an import error.
    """

    @staticmethod
    def test_provider(provider: object) -> CheckResult:
        """Round-trip and tamper check for one AEAD provider."""
        name = getattr(provider, "name", provider.__class__.__name__)
        try:
            key = secrets.token_bytes(provider.key_size)
            nonce = provider.generate_nonce()
            aad = b"GitFoil.SelfTest"
            plaintext = b"Test plaintext for provider self-test"

            sealed = provider.seal(key, nonce, aad, plaintext)
            if len(sealed.tag) != provider.tag_size:
                return CheckResult(name, SecurityCheckResult.FAIL, "Unexpected tag length")
            if provider.open(key, nonce, aad, sealed.ciphertext, sealed.tag) != plaintext:
                return CheckResult(name, SecurityCheckResult.FAIL, "Decryption mismatch")

            tampered = bytes([sealed.tag[0] ^ 0x01]) + sealed.tag[1:]
            try:
                provider.open(key, nonce, aad, sealed.ciphertext, tampered)
            except AuthenticationError:
                return CheckResult(name, SecurityCheckResult.PASS, "Self-test passed")
            return CheckResult(name, SecurityCheckResult.FAIL, "Tampered tag accepted")

        except Exception as e:
            return CheckResult(name, SecurityCheckResult.FAIL, f"Self-test failed: {e}")

    @classmethod
    def test_providers(cls) -> List[CheckResult]:
        try:
            from gitfoil.core.crypto.layered import default_providers

            providers = default_providers()
        except Exception as e:
            return [CheckResult("AEAD providers", SecurityCheckResult.FAIL, f"Unavailable: {e}")]
        return [cls.test_provider(p) for p in providers]

    @staticmethod
    def test_kem() -> CheckResult:
        """ML-KEM shared-secret agreement."""
        try:
            from gitfoil.core.crypto.kyber_pqc import SHARED_SECRET_SIZE, KyberKEM

            kem = KyberKEM()
            pair = kem.generate_keypair()
            shared, ciphertext = kem.encapsulate(pair.public_key)
            if len(shared) != SHARED_SECRET_SIZE:
                return CheckResult("ML-KEM", SecurityCheckResult.FAIL, "Unexpected shared secret length")
            if kem.decapsulate(ciphertext, pair.secret_key) != shared:
                return CheckResult("ML-KEM", SecurityCheckResult.FAIL, "Shared secret mismatch")
            return CheckResult("ML-KEM", SecurityCheckResult.PASS, f"Self-test passed ({kem.backend_name})")

        except Exception as e:
            return CheckResult("ML-KEM", SecurityCheckResult.FAIL, f"Self-test failed: {e}")

    @staticmethod
    def test_kdf() -> CheckResult:
        """PBKDF2-HMAC-SHA512 and HKDF-SHA256 produce stable output."""
        try:
            from gitfoil.core.crypto.kdf import derive_kek, derive_layer_key

            salt = bytes(32)
            first = derive_kek("self-test-password", salt, iterations=1)
            second = derive_kek("self-test-password", salt, iterations=1)
            if first != second or len(first) != 32:
                return CheckResult("KDF", SecurityCheckResult.FAIL, "PBKDF2 output unstable")

            a = derive_layer_key(bytes(32), 1, "self-test", 32)
            b = derive_layer_key(bytes(32), 2, "self-test", 32)
            if a == b:
                return CheckResult("KDF", SecurityCheckResult.FAIL, "HKDF ignores info")
            return CheckResult("KDF", SecurityCheckResult.PASS, "Self-test passed")

        except Exception as e:
            return CheckResult("KDF", SecurityCheckResult.FAIL, f"Self-test failed: {e}")

    @staticmethod
    def test_random_generator() -> CheckResult:
        """Nonces and salts come from os.urandom via secrets; sample it."""
        samples = [secrets.token_bytes(32) for _ in range(4)]
        if len(set(samples)) != len(samples):
            return CheckResult("CSPRNG", SecurityCheckResult.FAIL, "Repeated random output")

        distinct = len(set(b"".join(samples)))
        if distinct < 64:
            return CheckResult("CSPRNG", SecurityCheckResult.WARN, f"Only {distinct}/128 distinct byte values")
        return CheckResult("CSPRNG", SecurityCheckResult.PASS, "Self-test passed")

    @classmethod
    def run_all_tests(cls, include_kem: bool = True) -> List[CheckResult]:
        results = cls.test_providers()
        results.append(cls.test_kdf())
        if include_kem:
            results.append(cls.test_kem())
        results.append(cls.test_random_generator())
        return results


_LOG_LEVEL_FOR = {
    SecurityCheckResult.PASS: logging.DEBUG,
    SecurityCheckResult.WARN: logging.WARNING,
    SecurityCheckResult.FAIL: logging.ERROR,
}


class StartupSecurityValidator:
    """
    Runs the self-tests once and keeps their results.

    Args:
        include_kem: Also exercise ML-KEM (slow with the pure Python backend)
        tests: Replacement for CryptoSelfTest.run_all_tests
    """

    def __init__(
        self,
        include_kem: bool = True,
        tests: Optional[Callable[[], List[CheckResult]]] = None,
    ) -> None:
        self._tests = tests or (lambda: CryptoSelfTest.run_all_tests(include_kem=include_kem))
        self._results: List[CheckResult] = []

    def run_all_checks(self) -> bool:
        """True if no check failed."""
        _log.debug("Running cryptographic self-tests")
        self._results = list(self._tests())
        for check in self._results:
            _log.log(_LOG_LEVEL_FOR[check.result], "[%s] %s: %s", check.result.name, check.name, check.message)
        return not self.failures()

    def failures(self) -> List[CheckResult]:
        return [r for r in self._results if r.result is SecurityCheckResult.FAIL]

    def get_results(self) -> List[CheckResult]:
        return list(self._results)

    def get_summary(self) -> str:
        counts = Counter(r.result for r in self._results)
        return (
            f"Security Check Summary: {counts[SecurityCheckResult.PASS]} passed, "
            f"{counts[SecurityCheckResult.WARN]} warnings, "
            f"{counts[SecurityCheckResult.FAIL]} failures"
        )


def ensure_backends(include_kem: bool = True, validator: Optional[StartupSecurityValidator] = None) -> List[CheckResult]:
    """
    Verify every cryptographic backend before doing real work.

    Returns:
        All check results when none failed

    Raises:
        BackendUnavailable: Naming the first failed check
    """
    validator = validator or StartupSecurityValidator(include_kem=include_kem)
    if not validator.run_all_checks():
        first = validator.failures()[0]
        raise BackendUnavailable(
            f"{first.name}: {first.message}", operation="ensure_backends"
        )
    return validator.get_results()
