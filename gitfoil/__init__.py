"""
GitFoil - Transparent Git Encryption Core
=========================================

Encrypts file contents on their way into Git (clean) and decrypts them on
checkout (smudge) under six stacked AEAD layers, with the repository key
protected by an optional password.

Security Notice:
- No secrets are logged
- Fail-closed design pattern
- Key files are written atomically with owner-only permissions
"""

from gitfoil.core.config import FoilConfig
from gitfoil.core.logging import configure_logging, get_secure_logger

__version__ = "0.1.0"

__all__ = ["FoilConfig", "configure_logging", "get_secure_logger", "__version__"]
