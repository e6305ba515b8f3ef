"""
Keyring Store
=============

On-disk persistence of the repository keypair under <git-dir>/git_foil/.

Files:
    master.key                      plaintext serialized Keypair (0600)
    master.key.enc                  password-wrapped Keypair (0600)
    master.key.backup.<ts>          copy taken before a migration
    master.key.enc.backup.<ts>      copy taken before a migration

Security Properties:
    - Key directory is forced to 0700, key files to 0600
    - Every write is atomic (temp file + fsync + rename)
    - Retired plaintext key files are renamed aside, then overwritten and unlinked
"""

from __future__ import annotations

import logging
import platform
import shutil
from datetime import datetime, timezone
from pathlib import Path
from typing import Final, Optional

from gitfoil.core.crypto import password_wrap
from gitfoil.core.errors import BackupFailed, KeyStorageError, NotInitialized, RemoveFailed
from gitfoil.core.file_ops import atomic_write, secure_delete
from gitfoil.core.keys.keypair import Keypair
from gitfoil.security.constants import (
    ENCRYPTED_BACKUP_PREFIX,
    ENCRYPTED_KEY_FILENAME,
    KDF_ITERATIONS,
    KEY_DIRECTORY_MODE,
    KEY_FILE_MODE,
    KEY_SUBDIRECTORY,
    PLAINTEXT_BACKUP_PREFIX,
    PLAINTEXT_KEY_FILENAME,
)

_IS_WINDOWS: Final[bool] = platform.system().lower() == "windows"


def backup_timestamp(now: Optional[datetime] = None) -> str:
    """
    ISO-8601 UTC timestamp safe for use in a file name.

    "2025-01-31T12:34:56.789012Z" -> "2025-01-31T12-34-56-789012Z"
    """
    now = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    stamp = now.isoformat(timespec="microseconds").replace("+00:00", "Z")
    return stamp.replace(":", "-").replace(".", "-")


class KeyringStore:
    """
    Reads and writes the key files of one repository.

    Usage:
        store = KeyringStore(Path(".git"))
        store.write_plaintext(keypair)
        keypair = store.read_plaintext()
    """

    __slots__ = ("_key_dir", "_iterations", "_log")

    def __init__(
        self,
        git_dir: Path | str,
        subdirectory: str = KEY_SUBDIRECTORY,
        iterations: int = KDF_ITERATIONS,
    ) -> None:
        """
        Args:
            git_dir: Repository git directory (usually ".git")
            subdirectory: Key directory name inside git_dir
            iterations: PBKDF2 iteration count for new wrapped files
        """
        self._key_dir = Path(git_dir) / subdirectory
        self._iterations = iterations
        self._log = logging.getLogger("gitfoil.storage")

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    @property
    def key_dir(self) -> Path:
        return self._key_dir

    @property
    def plaintext_path(self) -> Path:
        return self._key_dir / PLAINTEXT_KEY_FILENAME

    @property
    def wrapped_path(self) -> Path:
        return self._key_dir / ENCRYPTED_KEY_FILENAME

    @property
    def iterations(self) -> int:
        return self._iterations

    def plaintext_exists(self) -> bool:
        return self.plaintext_path.is_file()

    def wrapped_exists(self) -> bool:
        return self.wrapped_path.is_file()

    def ensure_directory(self) -> Path:
        """Create the key directory if needed and force mode 0700."""
        try:
            self._key_dir.mkdir(mode=KEY_DIRECTORY_MODE, parents=True, exist_ok=True)
            if not _IS_WINDOWS:
                self._key_dir.chmod(KEY_DIRECTORY_MODE)
        except OSError as e:
            raise KeyStorageError(
                f"Cannot create key directory: {e}",
                path=self._key_dir,
                operation="ensure_directory",
            ) from e
        return self._key_dir

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    def atomic_write(self, path: Path, data: bytes) -> Path:
        """Atomically write data to path inside the key directory."""
        self.ensure_directory()
        return atomic_write(path, data, KEY_FILE_MODE)

    def write_plaintext(self, keypair: Keypair) -> Path:
        path = self.atomic_write(self.plaintext_path, keypair.to_bytes())
        self._log.info("Wrote plaintext key file")
        return path

    def write_wrapped(
        self,
        keypair: Keypair,
        password: str,
        iterations: Optional[int] = None,
    ) -> Path:
        """
        Wrap keypair with password and write master.key.enc.

        Raises:
            PasswordValidationError: Password length out of bounds
            KeyStorageError: Write failed
        """
        blob = password_wrap.encrypt_keypair(keypair, password, iterations or self._iterations)
        path = self.atomic_write(self.wrapped_path, blob)
        self._log.info("Wrote password-protected key file")
        return path

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def _read(self, path: Path) -> bytes:
        try:
            return path.read_bytes()
        except FileNotFoundError as e:
            raise NotInitialized(
                "GitFoil is not initialized in this repository",
                path=path,
                operation="read_key",
            ) from e
        except OSError as e:
            raise KeyStorageError(f"Cannot read key file: {e}", path=path, operation="read_key") from e

    def read_plaintext(self) -> Keypair:
        """
        Raises:
            NotInitialized: master.key does not exist
            InvalidFormat: File content is not a serialized keypair
        """
        return Keypair.from_bytes(self._read(self.plaintext_path))

    def read_wrapped(self, password: str) -> Keypair:
        """
        Raises:
            NotInitialized: master.key.enc does not exist
            InvalidFormat: Structurally invalid wrapped file
            InvalidPassword: Wrong password or tampered file
        """
        return password_wrap.decrypt_keypair(self._read(self.wrapped_path), password)

    # ------------------------------------------------------------------
    # Backup and removal
    # ------------------------------------------------------------------

    def backup(self, path: Path, prefix: str) -> Path:
        """
        Copy path to "<prefix>.<timestamp>" in the key directory.

        The copy keeps the source permissions and is then forced to 0600.

        Raises:
            BackupFailed: Source missing or copy failed
        """
        stamp = backup_timestamp()
        target = self._key_dir / f"{prefix}.{stamp}"
        counter = 1
        while target.exists():
            target = self._key_dir / f"{prefix}.{stamp}-{counter}"
            counter += 1

        try:
            shutil.copyfile(path, target)
            shutil.copymode(path, target)
            target.chmod(KEY_FILE_MODE)
        except OSError as e:
            try:
                target.unlink()
            except OSError:
                pass
            raise BackupFailed(f"Backup failed: {e}", path=path, operation="backup") from e

        self._log.info("Backed up %s to %s", path.name, target.name)
        return target

    def backup_plaintext(self) -> Path:
        return self.backup(self.plaintext_path, PLAINTEXT_BACKUP_PREFIX)

    def backup_wrapped(self) -> Path:
        return self.backup(self.wrapped_path, ENCRYPTED_BACKUP_PREFIX)

    def remove(self, path: Path) -> None:
        """
        Remove a key file. A missing file is fine.

        The plaintext key file goes through secure_delete.

        Raises:
            RemoveFailed: Removal failed
        """
        if path == self.plaintext_path:
            secure_delete(path)
            return
        try:
            path.unlink()
        except FileNotFoundError:
            return
        except OSError as e:
            raise RemoveFailed(f"Cannot remove file: {e}", path=path, operation="remove") from e

    def delete_plaintext(self) -> None:
        self.remove(self.plaintext_path)

    def delete_wrapped(self) -> None:
        self.remove(self.wrapped_path)

    def list_backups(self) -> list[Path]:
        """All backup files, oldest name first."""
        if not self._key_dir.is_dir():
            return []
        prefixes = (f"{PLAINTEXT_BACKUP_PREFIX}.", f"{ENCRYPTED_BACKUP_PREFIX}.")
        return sorted(p for p in self._key_dir.iterdir() if p.name.startswith(prefixes))

    def __repr__(self) -> str:
        return f"KeyringStore(key_dir={str(self._key_dir)!r})"
