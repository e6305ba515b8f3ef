"""
GitFoil File Operations Module
==============================

Durable, permission-restricted writes and removal of key files.

Components:
- atomic.py: temp file + fsync + rename replacement
- secure_delete.py: overwrite-before-unlink removal
"""

from gitfoil.core.file_ops.atomic import atomic_write, fsync_directory
from gitfoil.core.file_ops.secure_delete import secure_delete

__all__ = [
    "atomic_write",
    "fsync_directory",
    "secure_delete",
]
