"""
GitFoil Error Taxonomy
======================

Every failure raised by the core derives from GitFoilError so the filter
layer can map it to an exit status with a single handler.

Categories:
    - State: NotInitialized, AlreadyInitialized, Locked, PasswordRequired
    - Authentication: InvalidPassword, DecryptionFailed
    - Structure: InvalidFormat, InvalidBlobFormat
    - Migration: AlreadyEncrypted, AlreadyPlaintext, BackupFailed, RemoveFailed
    - Environment: BackendUnavailable, KeyStorageError

Security Notes:
    - Messages never include key material or passwords
    - InvalidPassword intentionally covers both a wrong password and a
      tampered key file (no oracle)
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional


class GitFoilError(Exception):
    """
    Base class for all GitFoil core errors.

    Attributes:
        exit_code: Process exit status the filter layer should use
        path: File the operation was working on, if any
        operation: Short name of the failed operation, if any
    """

    default_exit_code: int = 1

    def __init__(
        self,
        message: str = "",
        *,
        path: Optional[str | Path] = None,
        operation: Optional[str] = None,
        exit_code: Optional[int] = None,
    ) -> None:
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__
        self.path = str(path) if path is not None else None
        self.operation = operation
        self.exit_code = exit_code if exit_code is not None else self.default_exit_code

    def __str__(self) -> str:
        parts = []
        if self.operation:
            parts.append(f"{self.operation}:")
        parts.append(self.message)
        if self.path:
            parts.append(f"({self.path})")
        return " ".join(parts)


class NotInitialized(GitFoilError):
    """No key file exists; run initialization first."""


class AlreadyInitialized(GitFoilError):
    """A key file already exists; re-initialization must be forced explicitly."""


class Locked(GitFoilError):
    """The session holds no unlocked key."""


class PasswordRequired(GitFoilError):
    """Storage is password-protected and no password could be obtained."""


class InvalidPassword(GitFoilError):
    """
    Authentication of a wrapped key file failed.

    Raised for a wrong password AND for tampered data. The two cases are
    deliberately indistinguishable.
    """


class InvalidFormat(GitFoilError):
    """Structural parse failure (truncated, wrong version, bad header)."""


class InvalidBlobFormat(InvalidFormat):
    """
    Content is not a GitFoil encrypted blob.

    The smudge filter treats this as "pass the content through unchanged".
    """


class AuthenticationError(GitFoilError):
    """A single AEAD provider rejected a ciphertext/tag pair."""


class DecryptionFailed(GitFoilError):
    """A layer of the layered cipher failed authentication."""


class MigrationNoop(GitFoilError):
    """Base for migrations that have nothing to do."""

    default_exit_code = 0


class AlreadyEncrypted(MigrationNoop):
    """The key is already password-protected."""


class AlreadyPlaintext(MigrationNoop):
    """The key is already stored without a password."""


class BackupFailed(GitFoilError):
    """Copying the source key file to a backup failed; nothing was changed."""


class RemoveFailed(GitFoilError):
    """
    The new key file was written but the old one could not be removed.

    Key material is safe; the stale file needs manual cleanup.
    """


class BackendUnavailable(GitFoilError):
    """A cipher or KEM library is missing or broken. Fatal, not retriable."""

    default_exit_code = 2


class KeyStorageError(GitFoilError):
    """Filesystem I/O failure while reading or writing key material."""


class PasswordValidationError(GitFoilError, ValueError):
    """
    Password rejected before any key derivation.

    Attributes:
        reason: "password_too_short" or "password_too_long"
    """

    def __init__(self, message: str, reason: str) -> None:
        super().__init__(message, operation="validate_password")
        self.reason = reason


class PasswordProviderError(GitFoilError):
    """
    Raised by a PasswordProvider when it cannot produce a password.

    Carries the exit code and message the provider wants surfaced.
    """

    def __init__(self, exit_code: int, message: str) -> None:
        super().__init__(message, exit_code=exit_code)
