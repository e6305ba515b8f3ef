"""
Input Validators
================

Checks run on caller-supplied values before they reach key derivation or
the cipher's associated data.
"""

from __future__ import annotations

from typing import Final

from gitfoil.core.errors import GitFoilError, PasswordValidationError
from gitfoil.security.constants import MAX_PASSWORD_LENGTH, MIN_PASSWORD_LENGTH

MAX_PATH_LENGTH: Final[int] = 4096

# Undecodable bytes in a path arrive as lone surrogates (U+DC80..U+DCFF),
# the way sys.argv carries them; this maps them back to the raw bytes.
PATH_ENCODING_ERRORS: Final[str] = "surrogateescape"


class ValidationError(GitFoilError, ValueError):
    """A caller-supplied value was rejected."""


def encode_file_path(file_path: str) -> bytes:
    """
    The bytes Git supplied for file_path.

    Raises:
        ValidationError: Path holds a surrogate that does not stand for a byte
    """
    try:
        return file_path.encode("utf-8", PATH_ENCODING_ERRORS)
    except UnicodeEncodeError as e:
        raise ValidationError(
            f"file_path is not encodable: {e.reason}", operation="validate_path"
        ) from e


def validate_file_path(file_path: str, max_length: int = MAX_PATH_LENGTH) -> str:
    """
    Check a repository-relative path as Git hands it to the filter.

    The path is bound into every layer's associated data, so it must be a
    non-empty string without NUL characters that encodes to bytes.

    Raises:
        ValidationError: Not a string, empty, too long, contains NUL, or
            not encodable
    """
    if not isinstance(file_path, str):
        raise ValidationError("file_path must be a string", operation="validate_path")
    if not file_path:
        raise ValidationError("file_path cannot be empty", operation="validate_path")
    if len(file_path) > max_length:
        raise ValidationError(
            f"file_path exceeds {max_length} characters", operation="validate_path"
        )
    if "\x00" in file_path:
        raise ValidationError("file_path contains a NUL character", operation="validate_path")
    encode_file_path(file_path)
    return file_path


def validate_password(password: str) -> str:
    """
    Check password length bounds before any key derivation is attempted.

    Length is counted in characters, not bytes, so multi-byte passwords are
    judged by what the user typed.

    Raises:
        PasswordValidationError: reason "password_too_short" or "password_too_long"
    """
    if not isinstance(password, str):
        raise PasswordValidationError("Password must be a string", reason="password_invalid")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise PasswordValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
            reason="password_too_short",
        )
    if len(password) > MAX_PASSWORD_LENGTH:
        raise PasswordValidationError(
            f"Password must be at most {MAX_PASSWORD_LENGTH} characters",
            reason="password_too_long",
        )
    return password
