"""
Secure Deletion Module
======================

Overwrites key files before unlinking them.

Used when a plaintext master.key is retired by migration, so the raw
keypair does not linger in freed blocks. Recovery remains possible on
copy-on-write filesystems and SSDs with wear leveling; this raises the
bar, it does not guarantee erasure.

The file is renamed to a temp name beside it before the first overwrite,
so the original name never refers to a partly wiped file.
"""

from __future__ import annotations

import os
import secrets
from pathlib import Path
from typing import Final

from gitfoil.core.errors import RemoveFailed
from gitfoil.core.file_ops.atomic import fsync_directory, temp_path_for

DEFAULT_OVERWRITE_PASSES: Final[int] = 3
BLOCK_SIZE: Final[int] = 4096

# pass 0 zeros, pass 1 ones, later passes random
_FIXED_PATTERNS: Final[tuple[bytes, ...]] = (b"\x00" * BLOCK_SIZE, b"\xff" * BLOCK_SIZE)


def _block(pass_index: int, size: int) -> bytes:
    if pass_index < len(_FIXED_PATTERNS):
        return _FIXED_PATTERNS[pass_index][:size]
    return secrets.token_bytes(size)


def _overwrite(path: Path, passes: int) -> None:
    size = path.stat().st_size
    with open(path, "r+b") as f:
        for pass_index in range(passes):
            f.seek(0)
            for offset in range(0, size, BLOCK_SIZE):
                f.write(_block(pass_index, min(BLOCK_SIZE, size - offset)))
            f.flush()
            os.fsync(f.fileno())
        f.truncate(0)


def secure_delete(
    path: Path | str,
    passes: int = DEFAULT_OVERWRITE_PASSES,
    verify: bool = True,
) -> None:
    """
    Overwrite then delete a file. A missing file is not an error.

    Overwrite Pattern:
        Pass 1: All zeros
        Pass 2: All ones
        Pass 3+: Random data

    If the rename fails, path is left untouched. If a later step fails,
    path is already gone and the wiped remainder sits under its temp name.

    Raises:
        RemoveFailed: If the path is not a regular file, or renaming,
            overwriting or unlinking fails
    """
    path = Path(path)

    if not path.exists():
        return

    if not path.is_file():
        raise RemoveFailed("Not a regular file", path=path, operation="secure_delete")

    retired = temp_path_for(path)
    try:
        os.replace(path, retired)
    except FileNotFoundError:
        return
    except OSError as e:
        raise RemoveFailed(
            f"Secure deletion failed: {e}", path=path, operation="secure_delete"
        ) from e
    fsync_directory(path.parent)

    try:
        _overwrite(retired, passes)
        retired.unlink()
    except FileNotFoundError:
        return
    except OSError as e:
        raise RemoveFailed(
            f"Secure deletion failed, wiped remainder left at {retired.name}: {e}",
            path=retired,
            operation="secure_delete",
        ) from e

    if verify and retired.exists():
        raise RemoveFailed(
            "File still exists after deletion", path=retired, operation="secure_delete"
        )
