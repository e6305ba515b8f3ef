"""
GitFoil Memory Security Module
==============================

Best-effort zeroization of key buffers.

WARNING:
- Python's memory model doesn't guarantee secure erasure
- These are best-effort mitigations
"""

from gitfoil.core.memory.zeroization import (
    secure_zero,
    ZeroizeContext,
)

__all__ = [
    "secure_zero",
    "ZeroizeContext",
]
