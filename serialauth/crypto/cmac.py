# MIT License © 2025 Motohiro Suzuki
"""
serialauth/crypto/cmac.py

MAC backends for the challenge/response handshake.

- AES-128 CMAC (RFC 4493) via cryptography.
- Key length is fixed at 16 bytes; a wrong length fails at construction,
  never per call.
- compute() is pure: same key + message -> same 16-byte tag.
"""

from __future__ import annotations

from cryptography.hazmat.primitives import cmac
from cryptography.hazmat.primitives.ciphers import algorithms

from serialauth.crypto.zeroize import SecretBox
from serialauth.protocol.errors import InvalidKeyLength

KEY_LEN = 16


# =========================
# Base
# =========================

class MacBackend:
    name: str

    def compute(self, message: bytes) -> bytes:
        raise NotImplementedError

    def compute_hex(self, message: bytes) -> str:
        return self.compute(message).hex()

    def wipe(self) -> None:
        raise NotImplementedError


# =========================
# AES-CMAC
# =========================

class AesCmac(MacBackend):
    def __init__(self, key: bytes | bytearray) -> None:
        self.name = "aes-cmac"
        if not isinstance(key, (bytes, bytearray)):
            raise TypeError("key must be bytes")
        if len(key) != KEY_LEN:
            raise InvalidKeyLength(f"AES-CMAC key must be {KEY_LEN} bytes, got {len(key)}")
        self._key = SecretBox(key)

    def compute(self, message: bytes) -> bytes:
        c = cmac.CMAC(algorithms.AES(self._key.bytes()))
        c.update(bytes(message))
        return c.finalize()

    def wipe(self) -> None:
        self._key.wipe()

    @property
    def wiped(self) -> bool:
        return self._key.wiped


# =========================
# Resolver
# =========================

def get_mac_backend(name: str, key: bytes | bytearray) -> MacBackend:
    n = name.strip().lower()

    if n in ("aes-cmac", "aescmac", "cmac"):
        return AesCmac(key)

    raise ValueError(f"unknown mac backend: {name}")
