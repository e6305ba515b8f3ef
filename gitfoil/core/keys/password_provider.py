"""
Password Providers
==================

The key lifecycle never reads a password itself; it asks a
PasswordProvider. This keeps the clean/smudge path usable from Git (where
stdin carries file content) and from scripts.

Sources:
    TERMINAL  masked prompt on the controlling terminal
    STDIN     first line of standard input
    FILE      first line of a file
    FD        first line of an inherited file descriptor

Non-interactive values have their trailing newline stripped and are
rejected if they carry leading or trailing whitespace.
"""

from __future__ import annotations

import getpass
import io
import sys
from abc import ABC, abstractmethod
from enum import Enum
from pathlib import Path
from typing import Callable, Final, Optional, TextIO

from gitfoil.core.errors import PasswordProviderError

EXIT_INPUT_ERROR: Final[int] = 2
EXIT_INTERRUPTED: Final[int] = 130


class PasswordSource(Enum):
    """Where a password is read from."""

    TERMINAL = "tty"
    STDIN = "stdin"
    FILE = "file"
    FD = "fd"


class PasswordProvider(ABC):
    """Supplies passwords on request."""

    @abstractmethod
    def obtain(self, prompt: str, source: PasswordSource = PasswordSource.TERMINAL) -> str:
        """
        Return a password.

        Raises:
            PasswordProviderError: No password could be obtained
        """


class StaticPasswordProvider(PasswordProvider):
    """Returns a fixed password regardless of source. For scripted use."""

    def __init__(self, password: Optional[str]) -> None:
        self._password = password

    def obtain(self, prompt: str, source: PasswordSource = PasswordSource.TERMINAL) -> str:
        if self._password is None:
            raise PasswordProviderError(EXIT_INPUT_ERROR, "Error: No password provided.")
        return self._password

    def __repr__(self) -> str:
        return "StaticPasswordProvider(password=***)"


def strip_trailing_newline(value: str) -> str:
    for suffix in ("\r\n", "\n", "\r"):
        if value.endswith(suffix):
            return value[: -len(suffix)]
    return value


class SourcePasswordProvider(PasswordProvider):
    """
    Reads a password from the terminal, stdin, a file, or a descriptor.

    Args:
        file_path: Used for PasswordSource.FILE
        fd: Used for PasswordSource.FD
        stdin: Text stream for PasswordSource.STDIN (default sys.stdin)
        prompt_func: Masked prompt for PasswordSource.TERMINAL
    """

    def __init__(
        self,
        file_path: Optional[Path | str] = None,
        fd: Optional[int] = None,
        stdin: Optional[TextIO] = None,
        prompt_func: Callable[[str], str] = getpass.getpass,
    ) -> None:
        self._file_path = Path(file_path) if file_path is not None else None
        self._fd = fd
        self._stdin = stdin
        self._prompt_func = prompt_func

    def obtain(self, prompt: str, source: PasswordSource = PasswordSource.TERMINAL) -> str:
        if source is PasswordSource.TERMINAL:
            return self._from_terminal(prompt)
        line = self._read_line(source)
        return self._validate(line, source)

    # ------------------------------------------------------------------

    def _from_terminal(self, prompt: str) -> str:
        try:
            value = self._prompt_func(prompt)
        except KeyboardInterrupt as e:
            raise PasswordProviderError(EXIT_INTERRUPTED, "Cancelled.") from e
        except (EOFError, OSError) as e:
            raise PasswordProviderError(
                EXIT_INPUT_ERROR, "Error: Cannot read password from terminal."
            ) from e

        value = strip_trailing_newline(value)
        if value != value.strip():
            raise PasswordProviderError(
                EXIT_INPUT_ERROR, "Error: Password has leading or trailing whitespace."
            )
        return value

    def _read_line(self, source: PasswordSource) -> str:
        label = self._label(source)
        try:
            if source is PasswordSource.STDIN:
                line = (self._stdin or sys.stdin).readline()
            elif source is PasswordSource.FILE:
                if self._file_path is None:
                    raise PasswordProviderError(EXIT_INPUT_ERROR, "Error: No password file given.")
                with open(self._file_path, "r", encoding="utf-8") as f:
                    line = f.readline()
            elif source is PasswordSource.FD:
                if self._fd is None or self._fd < 0:
                    raise PasswordProviderError(EXIT_INPUT_ERROR, "Error: No password descriptor given.")
                # closefd=False: the descriptor belongs to the parent process
                with io.open(self._fd, "r", encoding="utf-8", closefd=False) as f:
                    line = f.readline()
            else:
                raise PasswordProviderError(EXIT_INPUT_ERROR, f"Error: Unsupported password source {source}.")
        except (OSError, UnicodeDecodeError) as e:
            raise PasswordProviderError(
                EXIT_INPUT_ERROR, f"Error: Cannot read password from {label}."
            ) from e

        if not line:
            raise PasswordProviderError(EXIT_INPUT_ERROR, f"Error: No password provided on {label}.")
        return line

    def _validate(self, line: str, source: PasswordSource) -> str:
        value = strip_trailing_newline(line)
        label = self._label(source)
        if not value:
            raise PasswordProviderError(EXIT_INPUT_ERROR, f"Error: Password from {label} is empty.")
        if value != value.strip():
            raise PasswordProviderError(
                EXIT_INPUT_ERROR,
                f"Error: Password from {label} has leading or trailing whitespace.",
            )
        return value

    def _label(self, source: PasswordSource) -> str:
        if source is PasswordSource.FILE:
            return f"password file {self._file_path}"
        if source is PasswordSource.FD:
            return f"file descriptor {self._fd}"
        if source is PasswordSource.STDIN:
            return "standard input"
        return "terminal"


def default_provider() -> PasswordProvider:
    """Provider used when none is supplied: terminal prompt via getpass."""
    return SourcePasswordProvider()


__all__ = [
    "PasswordSource",
    "PasswordProvider",
    "StaticPasswordProvider",
    "SourcePasswordProvider",
    "default_provider",
]
