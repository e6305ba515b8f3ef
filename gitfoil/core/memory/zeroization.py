"""
Buffer Zeroization
==================

Best-effort wiping of key buffers (KEKs, master keys) once they are no
longer needed.

WARNING:
    - Python may hold copies of any bytes object; only bytearray buffers
      that we own can be overwritten
    - Wipe as soon as the key has been used, not at garbage collection
"""

from __future__ import annotations

import ctypes
from contextlib import contextmanager
from typing import Iterator


def _wipe_slow(buffer: bytearray | memoryview) -> None:
    buffer[:] = bytes(len(buffer))


def secure_zero(data: bytearray | memoryview) -> None:
    """
    Overwrite a mutable buffer with zeros in place.

    bytearrays are wiped through ctypes.memset (zeros, ones, zeros);
    memoryviews and buffers that cannot be mapped are wiped by slice
    assignment.
    """
    size = len(data)
    if not size:
        return
    if not isinstance(data, bytearray):
        _wipe_slow(data)
        return

    try:
        view = (ctypes.c_char * size).from_buffer(data)
    except (TypeError, ValueError, BufferError):
        _wipe_slow(data)
        return
    address = ctypes.addressof(view)
    for pattern in (0x00, 0xFF, 0x00):
        ctypes.memset(address, pattern, size)
    del view


@contextmanager
def ZeroizeContext(*buffers: bytearray) -> Iterator[None]:
    """
    Wipe every buffer when the block exits, normally or by exception.

    Usage:
        kek = bytearray(derive_kek(password, salt, iterations))
        with ZeroizeContext(kek):
            AESGCM(bytes(kek)).encrypt(...)
    """
    try:
        yield
    finally:
        for buffer in buffers:
            secure_zero(buffer)
