"""
Path Utilities
==============

Locating the repository's git directory.
"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import Final, Optional

from gitfoil.security.constants import KEY_SUBDIRECTORY

GIT_TIMEOUT_SECONDS: Final[int] = 10

_log = logging.getLogger("gitfoil.paths")


class RepositoryLocator:
    """
    Resolves <git-dir> for the current repository.

    Resolution order:
        1. explicit git_dir passed to the constructor
        2. `git rev-parse --git-dir` run in cwd
        3. ./.git

    Usage:
        key_dir = RepositoryLocator().key_directory()
    """

    def __init__(
        self,
        git_dir: Optional[Path | str] = None,
        cwd: Optional[Path | str] = None,
        git_executable: str = "git",
    ) -> None:
        self._explicit = Path(git_dir) if git_dir is not None else None
        self._cwd = Path(cwd) if cwd is not None else Path.cwd()
        self._git = git_executable

    def git_dir(self) -> Path:
        """Return the absolute git directory."""
        if self._explicit is not None:
            return self._resolve(self._explicit)

        try:
            result = subprocess.run(
                [self._git, "rev-parse", "--git-dir"],
                cwd=self._cwd,
                capture_output=True,
                text=True,
                timeout=GIT_TIMEOUT_SECONDS,
                check=False,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            _log.debug("git rev-parse unavailable: %s", e)
        else:
            output = result.stdout.strip()
            if result.returncode == 0 and output:
                return self._resolve(Path(output))
            _log.debug("git rev-parse failed with status %d", result.returncode)

        return self._resolve(Path(".git"))

    def key_directory(self, subdirectory: str = KEY_SUBDIRECTORY) -> Path:
        return self.git_dir() / subdirectory

    def _resolve(self, path: Path) -> Path:
        if not path.is_absolute():
            path = self._cwd / path
        return path.resolve()

