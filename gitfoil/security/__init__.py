"""
Security module - Constants and startup self-tests.

Security Considerations:
- Use only approved cryptographic algorithms from maintained libraries
- Fail closed: a broken backend stops the process at startup
- No custom cryptography implementations
"""

from gitfoil.security.constants import (
    KDF_ITERATIONS,
    KEY_DERIVATION_FUNCTION,
    MAX_PASSWORD_LENGTH,
    MIN_PASSWORD_LENGTH,
    WRAP_ALGORITHM,
)
from gitfoil.security.hardening import (
    CheckResult,
    CryptoSelfTest,
    SecurityCheckResult,
    StartupSecurityValidator,
    ensure_backends,
)

__all__ = [
    # Constants
    "KDF_ITERATIONS",
    "KEY_DERIVATION_FUNCTION",
    "MAX_PASSWORD_LENGTH",
    "MIN_PASSWORD_LENGTH",
    "WRAP_ALGORITHM",
    # Hardening
    "CheckResult",
    "CryptoSelfTest",
    "SecurityCheckResult",
    "StartupSecurityValidator",
    "ensure_backends",
]
