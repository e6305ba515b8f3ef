"""
Core module - Configuration, logging, errors and the encryption pipeline.
"""

from gitfoil.core.config import FoilConfig
from gitfoil.core.errors import GitFoilError
from gitfoil.core.logging import SecureLogFilter, configure_logging, get_secure_logger

__all__ = [
    "FoilConfig",
    "GitFoilError",
    "SecureLogFilter",
    "configure_logging",
    "get_secure_logger",
]
