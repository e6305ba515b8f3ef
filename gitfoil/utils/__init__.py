"""
Utils module - Utility functions and helpers.
"""

from gitfoil.utils.paths import RepositoryLocator
from gitfoil.utils.validators import ValidationError, validate_password, validate_file_path

__all__ = [
    "RepositoryLocator",
    "ValidationError",
    "validate_password",
    "validate_file_path",
]
