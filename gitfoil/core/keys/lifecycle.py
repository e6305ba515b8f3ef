"""
Key Lifecycle Management
========================

Initializes, unlocks and migrates the repository keypair.

States:
    NOT_INITIALIZED
    PLAINTEXT           (locked | unlocked)
    PASSWORD_PROTECTED  (locked | unlocked)

Locked/unlocked is not global: it lives in a caller-owned KeySession.
A clean/smudge process holds one session for its lifetime so a batch of
files unlocks once; tests create as many independent sessions as they
like.

Migration (ENCRYPT: plaintext -> password-protected, DECRYPT: reverse):
    1. read and verify the source keypair
    2. back up the source file          (failure -> BackupFailed)
    3. write the destination file       (failure -> re-raised, source untouched)
    4. remove the source file           (failure -> warning on the result)
    5. clear the session
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional

from gitfoil.core.crypto.kdf import derive_master_key
from gitfoil.core.crypto.kyber_pqc import KyberKEM
from gitfoil.core.errors import (
    AlreadyEncrypted,
    AlreadyInitialized,
    AlreadyPlaintext,
    Locked,
    NotInitialized,
    PasswordProviderError,
    PasswordRequired,
    RemoveFailed,
)
from gitfoil.core.keys.keypair import Keypair, generate_keypair
from gitfoil.core.keys.keyring_store import KeyringStore
from gitfoil.core.keys.password_provider import (
    PasswordProvider,
    PasswordSource,
    default_provider,
)
from gitfoil.core.memory import secure_zero
from gitfoil.utils.validators import validate_password

UNLOCK_PROMPT = "GitFoil password: "


class StorageMode(Enum):
    """How the keypair is currently persisted."""

    NOT_INITIALIZED = "not_initialized"
    PLAINTEXT = "plaintext"
    PASSWORD_PROTECTED = "password_protected"


class MigrationDirection(Enum):
    ENCRYPT = "encrypt"  # plaintext -> password-protected
    DECRYPT = "decrypt"  # password-protected -> plaintext


@dataclass(frozen=True, slots=True)
class MigrationResult:
    """
    Outcome of a successful migration.

    Attributes:
        backup_path: Timestamped copy of the source file
        new_path: Freshly written destination file
        removed_path: Source file that was (or should have been) removed
        warning: RemoveFailed if the source file is still on disk
    """

    backup_path: Path
    new_path: Path
    removed_path: Path
    warning: Optional[RemoveFailed] = None

    @property
    def clean(self) -> bool:
        return self.warning is None


@dataclass(slots=True)
class KeySession:
    """
    Process-local unlock state.

    Holds the keypair and derived master key once unlocked. clear() zeroes
    the master key buffer and forgets both.
    """

    keypair: Optional[Keypair] = None
    _master_key: Optional[bytearray] = field(default=None, repr=False)

    @property
    def unlocked(self) -> bool:
        return self._master_key is not None

    @property
    def master_key(self) -> Optional[bytes]:
        return bytes(self._master_key) if self._master_key is not None else None

    def store(self, keypair: Keypair, master_key: bytes) -> None:
        self.clear()
        self.keypair = keypair
        self._master_key = bytearray(master_key)

    def clear(self) -> None:
        if self._master_key is not None:
            secure_zero(self._master_key)
        self._master_key = None
        self.keypair = None

    def __repr__(self) -> str:
        return f"KeySession(unlocked={self.unlocked})"


class KeyLifecycleManager:
    """
    Owns the key state machine for one repository.

    Usage:
        manager = KeyLifecycleManager(KeyringStore(git_dir))
        session = KeySession()

        manager.initialize(StorageMode.PLAINTEXT, session=session)
        master_key = manager.unlock(session)

        result = manager.migrate(MigrationDirection.ENCRYPT, "correct horse")

    Security Notes:
        - Master key is derived on unlock, never stored on disk
        - Password prompts go through the injected PasswordProvider
        - Migration clears the session; callers must unlock again
    """

    def __init__(
        self,
        store: KeyringStore,
        password_provider: Optional[PasswordProvider] = None,
        password_source: PasswordSource = PasswordSource.TERMINAL,
        kem: Optional[KyberKEM] = None,
    ) -> None:
        self._store = store
        self._provider = password_provider
        self._source = password_source
        self._kem = kem
        self._log = logging.getLogger("gitfoil.keys")

    @property
    def store(self) -> KeyringStore:
        return self._store

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def status(self) -> StorageMode:
        """Plaintext wins when both files exist."""
        if self._store.plaintext_exists():
            return StorageMode.PLAINTEXT
        if self._store.wrapped_exists():
            return StorageMode.PASSWORD_PROTECTED
        return StorageMode.NOT_INITIALIZED

    @staticmethod
    def is_unlocked(session: KeySession) -> bool:
        return session.unlocked

    @staticmethod
    def clear_cache(session: KeySession) -> None:
        session.clear()

    # ------------------------------------------------------------------
    # Initialization
    # ------------------------------------------------------------------

    def initialize(
        self,
        mode: StorageMode,
        password: Optional[str] = None,
        session: Optional[KeySession] = None,
    ) -> Keypair:
        """
        Generate and persist a fresh keypair.

        Args:
            mode: PLAINTEXT or PASSWORD_PROTECTED
            password: Required for PASSWORD_PROTECTED
            session: If given, left unlocked with the new key

        Raises:
            AlreadyInitialized: A key file already exists
            PasswordRequired: PASSWORD_PROTECTED without a password
            PasswordValidationError: Password length out of bounds
            BackendUnavailable: No ML-KEM backend
        """
        if mode is StorageMode.NOT_INITIALIZED:
            raise ValueError("Cannot initialize into NOT_INITIALIZED")
        if self.status() is not StorageMode.NOT_INITIALIZED:
            raise AlreadyInitialized(
                "GitFoil is already initialized in this repository",
                path=self._store.key_dir,
                operation="initialize",
            )
        if mode is StorageMode.PASSWORD_PROTECTED and password is None:
            raise PasswordRequired("A password is required", operation="initialize")

        keypair = generate_keypair(self._kem)

        if mode is StorageMode.PASSWORD_PROTECTED:
            self._store.write_wrapped(keypair, password)
        else:
            self._store.write_plaintext(keypair)

        self._log.info("Initialized key storage (%s)", mode.value)

        if session is not None:
            session.store(keypair, derive_master_key(keypair))
        return keypair

    # ------------------------------------------------------------------
    # Unlocking
    # ------------------------------------------------------------------

    def unlock(self, session: KeySession) -> bytes:
        """
        Return the master key, loading it into the session if needed.

        Raises:
            NotInitialized: No key file
            PasswordRequired: The provider could not supply a password
            InvalidPassword: Wrong password
        """
        if session.unlocked:
            return session.master_key

        if self._store.plaintext_exists():
            return self.unlock_without_password(session)
        if not self._store.wrapped_exists():
            raise NotInitialized(
                "GitFoil is not initialized in this repository", operation="unlock"
            )

        provider = self._provider or default_provider()
        try:
            password = provider.obtain(UNLOCK_PROMPT, self._source)
        except PasswordProviderError as e:
            raise PasswordRequired(e.message, operation="unlock", exit_code=e.exit_code) from e

        return self.unlock_with_password(password, session)

    def unlock_with_password(self, password: str, session: KeySession) -> bytes:
        """
        Unlock password-protected storage.

        Raises:
            NotInitialized: master.key.enc does not exist
            InvalidPassword: Wrong password or tampered file
        """
        keypair = self._store.read_wrapped(password)
        return self._cache(keypair, session)

    def unlock_without_password(self, session: KeySession) -> bytes:
        """
        Unlock plaintext storage.

        Raises:
            PasswordRequired: Only the password-protected file exists
            NotInitialized: No key file
        """
        if not self._store.plaintext_exists():
            if self._store.wrapped_exists():
                raise PasswordRequired(
                    "Key is password-protected", operation="unlock"
                )
            raise NotInitialized(
                "GitFoil is not initialized in this repository", operation="unlock"
            )
        keypair = self._store.read_plaintext()
        return self._cache(keypair, session)

    def _cache(self, keypair: Keypair, session: KeySession) -> bytes:
        master_key = derive_master_key(keypair)
        session.store(keypair, master_key)
        self._log.debug("Key unlocked")
        return master_key

    @staticmethod
    def get_master_key(session: KeySession) -> bytes:
        """Cache-only lookup. Raises Locked."""
        if not session.unlocked:
            raise Locked("Key is locked", operation="get_master_key")
        return session.master_key

    @staticmethod
    def get_keypair(session: KeySession) -> Keypair:
        """Cache-only lookup. Raises Locked."""
        if session.keypair is None:
            raise Locked("Key is locked", operation="get_keypair")
        return session.keypair

    # ------------------------------------------------------------------
    # Migration
    # ------------------------------------------------------------------

    def migrate(
        self,
        direction: MigrationDirection,
        password: str,
        session: Optional[KeySession] = None,
    ) -> MigrationResult:
        """
        Switch between plaintext and password-protected storage.

        Raises:
            AlreadyEncrypted / AlreadyPlaintext: Nothing to do
            NotInitialized: Source file missing
            InvalidPassword: DECRYPT with a wrong password
            PasswordValidationError: ENCRYPT with a password out of bounds
            BackupFailed: Backup could not be written; nothing changed
            KeyStorageError: Destination could not be written; source intact
        """
        store = self._store

        if direction is MigrationDirection.ENCRYPT:
            if store.wrapped_exists():
                raise AlreadyEncrypted("Key is already password-protected", operation="migrate")
            if not store.plaintext_exists():
                raise NotInitialized("No plaintext key to encrypt", operation="migrate")

            validate_password(password)
            keypair = store.read_plaintext()
            source = store.plaintext_path
            backup_path = store.backup_plaintext()
            new_path = store.write_wrapped(keypair, password)
        else:
            if not store.wrapped_exists():
                if store.plaintext_exists():
                    raise AlreadyPlaintext("Key is not password-protected", operation="migrate")
                raise NotInitialized("No password-protected key to decrypt", operation="migrate")

            keypair = store.read_wrapped(password)
            source = store.wrapped_path
            backup_path = store.backup_wrapped()
            new_path = store.write_plaintext(keypair)

        warning: Optional[RemoveFailed] = None
        try:
            store.remove(source)
        except RemoveFailed as e:
            self._log.warning("Migration left %s on disk: %s", source.name, e.message)
            warning = e

        if session is not None:
            session.clear()

        self._log.info("Migrated key storage (%s)", direction.value)
        return MigrationResult(
            backup_path=backup_path,
            new_path=new_path,
            removed_path=source,
            warning=warning,
        )
