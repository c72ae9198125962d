# MIT License © 2025 Motohiro Suzuki
"""
serialauth/keysources/base.py

Pre-shared key providers.

The handshake key is injected at session construction through a KeySource
instead of living in a module constant, so tests and deployments can supply
any key without editing code.
"""

from __future__ import annotations

import binascii
import os

from serialauth.protocol.errors import KeySourceError


def parse_key_hex(text: str) -> bytes:
    s = text.strip()
    try:
        return binascii.unhexlify(s)
    except (binascii.Error, ValueError) as e:
        raise KeySourceError("pre-shared key is not valid hex") from e


class KeySource:
    name: str

    def provide(self) -> bytes:
        raise NotImplementedError


class StaticKeySource(KeySource):
    name = "static"

    def __init__(self, key: bytes | str) -> None:
        if isinstance(key, str):
            key = parse_key_hex(key)
        self._key = bytes(key)

    def provide(self) -> bytes:
        return self._key


class EnvKeySource(KeySource):
    """
    Reads the key as hex from an environment variable at provide() time.
    """
    name = "env"

    def __init__(self, var: str = "SERIALAUTH_PSK_HEX") -> None:
        self.var = var

    def provide(self) -> bytes:
        v = os.getenv(self.var, "").strip()
        if not v:
            raise KeySourceError(f"environment variable {self.var} is not set")
        return parse_key_hex(v)
