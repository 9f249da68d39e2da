# MIT License © 2025 Motohiro Suzuki
"""
crypto/zeroize.py

Best-effort wipe of secret buffers (ECDH shared secrets, derived AES keys).

'bytes' is immutable in Python, so only 'bytearray' can be cleared in place.
Calls on 'bytes' are explicit markers of where a secret's lifetime ends.
"""

from __future__ import annotations

from typing import Any


def wipe_bytearray(b: bytearray) -> None:
    for i in range(len(b)):
        b[i] = 0


def wipe_bytes_like(x: Any) -> None:
    if isinstance(x, bytearray):
        wipe_bytearray(x)
        return
    if isinstance(x, bytes):
        tmp = bytearray(x)
        wipe_bytearray(tmp)
