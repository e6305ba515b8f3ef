"""
Atomic File Replacement
=======================

Writes key files so that a reader only ever sees the old content or the
complete new content, never a partial file.

Procedure:
    1. Create ".<name>.tmp.<random>" next to the target with
       O_CREAT | O_EXCL | O_WRONLY and mode 0600
    2. Write, flush, fsync
    3. chmod 0600 (umask may have widened nothing, but be explicit)
    4. os.replace() over the target
    5. fsync the containing directory where the platform allows

On any failure the temporary file is removed and KeyStorageError is raised
with the original error chained.
"""

from __future__ import annotations

import logging
import os
import platform
import secrets
from pathlib import Path
from typing import Final

from gitfoil.core.errors import KeyStorageError
from gitfoil.security.constants import KEY_FILE_MODE

TEMP_SUFFIX_BYTES: Final[int] = 8

_log = logging.getLogger("gitfoil.storage")


def temp_path_for(path: Path) -> Path:
    """Return a fresh, unpredictable temp path beside the target."""
    return path.with_name(f".{path.name}.tmp.{secrets.token_hex(TEMP_SUFFIX_BYTES)}")


def fsync_directory(directory: Path) -> None:
    """Flush directory metadata so a completed rename survives power loss."""
    if platform.system().lower() == "windows":
        return
    try:
        fd = os.open(directory, os.O_RDONLY)
    except OSError:
        return
    try:
        os.fsync(fd)
    except OSError:
        # Some filesystems refuse fsync on directories
        pass
    finally:
        os.close(fd)


def atomic_write(path: Path | str, data: bytes, mode: int = KEY_FILE_MODE) -> Path:
    """
    Atomically replace path with data.

    Args:
        path: Destination file
        data: Full new content
        mode: Permission bits for the resulting file

    Returns:
        The destination path

    Raises:
        KeyStorageError: If any step fails. The destination is left as it
            was and no temporary file remains.
    """
    path = Path(path)
    tmp = temp_path_for(path)
    flags = os.O_CREAT | os.O_EXCL | os.O_WRONLY | getattr(os, "O_BINARY", 0)

    try:
        fd = os.open(tmp, flags, mode)
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.chmod(tmp, mode)
        os.replace(tmp, path)
    except OSError as e:
        _log.error("Atomic write failed for %s: %s", path.name, e.strerror or e)
        try:
            tmp.unlink()
        except FileNotFoundError:
            pass
        except OSError:
            _log.warning("Could not remove temporary file %s", tmp.name)
        raise KeyStorageError(
            f"Failed to write file: {e}", path=path, operation="atomic_write"
        ) from e

    fsync_directory(path.parent)
    return path
