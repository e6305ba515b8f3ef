"""
Git Clean/Smudge Filter
=======================

Git invokes the filter once per file:

    git config filter.gitfoil.clean  "git-foil clean %f"
    git config filter.gitfoil.smudge "git-foil smudge %f"

Data Flow:
    clean:  stdin (plaintext)  -> encrypt -> stdout (blob)
    smudge: stdin (blob)       -> decrypt -> stdout (plaintext)

Error Handling:
    - Errors go to stderr as one line; stdout stays empty
    - Exit status is the error's exit_code (non-zero tells Git to stop)
    - Smudge passes content through unchanged when it is not a GitFoil
      blob, so files committed before encryption was enabled still check out
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import BinaryIO, Optional, TextIO

from gitfoil.core.config import FoilConfig
from gitfoil.core.crypto.layered import LayeredCipher
from gitfoil.core.errors import GitFoilError, InvalidBlobFormat, PasswordRequired
from gitfoil.core.keys.keyring_store import KeyringStore
from gitfoil.core.keys.lifecycle import KeyLifecycleManager, KeySession
from gitfoil.core.keys.password_provider import PasswordProvider, PasswordSource
from gitfoil.core.logging import configure_logging
from gitfoil.security.hardening import ensure_backends
from gitfoil.utils.paths import RepositoryLocator
from gitfoil.utils.validators import validate_file_path

CLEAN = "clean"
SMUDGE = "smudge"


class GitFilter:
    """
    Clean/smudge over a LayeredCipher with one KeySession per instance.

    Args:
        manager: Key lifecycle for the repository
        cipher: Layer stack (default six-layer stack)
        session: Unlock state; a fresh session if not given
    """

    def __init__(
        self,
        manager: KeyLifecycleManager,
        cipher: Optional[LayeredCipher] = None,
        session: Optional[KeySession] = None,
    ) -> None:
        self._manager = manager
        self._cipher = cipher or LayeredCipher()
        self._session = session if session is not None else KeySession()
        self._log = logging.getLogger("gitfoil.filter")

    @classmethod
    def from_config(
        cls,
        config: FoilConfig,
        password_provider: Optional[PasswordProvider] = None,
        password_source: PasswordSource = PasswordSource.TERMINAL,
        cwd: Optional[Path | str] = None,
        log_stream: Optional[TextIO] = None,
    ) -> GitFilter:
        """
        Build a filter for the repository described by config.

        Configures logging, runs the backend self-test when
        config.security.run_self_test is set, and locates the key directory
        through config.paths (git rev-parse when git_dir is unset).

        Raises:
            BackendUnavailable: A cipher or KDF backend failed its self-test
        """
        configure_logging(config, stream=log_stream)
        if config.security.run_self_test:
            # clean/smudge never generate keys, so ML-KEM is not required
            ensure_backends(include_kem=False)

        git_dir = RepositoryLocator(config.paths.git_dir, cwd=cwd).git_dir()
        store = KeyringStore(
            git_dir,
            subdirectory=config.paths.key_subdirectory,
            iterations=config.security.pbkdf2_iterations,
        )
        manager = KeyLifecycleManager(
            store,
            password_provider=password_provider,
            password_source=password_source,
        )
        return cls(manager)

    @property
    def manager(self) -> KeyLifecycleManager:
        return self._manager

    @property
    def session(self) -> KeySession:
        return self._session

    def clean(self, plaintext: bytes, file_path: str) -> bytes:
        """Encrypt working-tree content for the index."""
        file_path = validate_file_path(file_path)
        master_key = self._manager.unlock(self._session)
        return self._cipher.encrypt_bytes(plaintext, master_key, file_path)

    def smudge(self, data: bytes, file_path: str) -> bytes:
        """Decrypt index content for the working tree."""
        file_path = validate_file_path(file_path)
        master_key = self._manager.unlock(self._session)
        try:
            blob = self._cipher.deserialize(data)
        except InvalidBlobFormat:
            self._log.debug("Not a GitFoil blob, passing through: %s", file_path)
            return data
        return self._cipher.decrypt(blob, master_key, file_path)

    def process(
        self,
        operation: str,
        file_path: str,
        stdin: BinaryIO,
        stdout: BinaryIO,
        stderr: TextIO,
    ) -> int:
        """
        Run one filter invocation over streams.

        Returns:
            Process exit status
        """
        if operation == CLEAN:
            handler = self.clean
        elif operation == SMUDGE:
            handler = self.smudge
        else:
            stderr.write(f"Error: Unknown filter operation: {operation}\n")
            return 2

        data = stdin.read()
        if not data:
            return 0

        try:
            output = handler(data, file_path)
        except GitFoilError as e:
            self._log.debug("%s failed for %s: %s", operation, file_path, e)
            if isinstance(e, PasswordRequired):
                stderr.write(f"{e.message}\n")
            else:
                stderr.write(f"Error: {operation} failed: {e}\n")
            stderr.flush()
            return e.exit_code

        stdout.write(output)
        stdout.flush()
        return 0
