# MIT License © 2025 Motohiro Suzuki
"""
serialauth/crypto/zeroize.py

Best-effort secret zeroization.

- 'bytes' is immutable; the original object cannot be wiped in place.
- 'bytearray' / writable 'memoryview' can be wiped in place, so the
  pre-shared key is held in a SecretBox and wiped at session teardown.
"""

from __future__ import annotations


def wipe_bytearray(b: bytearray) -> None:
    for i in range(len(b)):
        b[i] = 0


class SecretBox:
    """Holds key bytes in a bytearray so they can be wiped."""
    __slots__ = ("_buf", "_wiped")

    def __init__(self, data: bytes | bytearray) -> None:
        self._buf = bytearray(data)
        self._wiped = False

    def bytes(self) -> bytes:
        if self._wiped:
            raise ValueError("secret already wiped")
        return bytes(self._buf)

    def wipe(self) -> None:
        wipe_bytearray(self._buf)
        self._wiped = True

    @property
    def wiped(self) -> bool:
        return self._wiped

    def __len__(self) -> int:
        return len(self._buf)

    def __repr__(self) -> str:
        return f"SecretBox(len={len(self._buf)}, wiped={self._wiped})"
