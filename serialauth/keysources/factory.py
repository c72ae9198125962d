# MIT License © 2025 Motohiro Suzuki
"""
serialauth/keysources/factory.py

Pick a KeySource from config:
  - cfg.psk_hex set      -> StaticKeySource
  - otherwise            -> EnvKeySource(cfg.psk_env)
"""

from __future__ import annotations

from typing import Any

from serialauth.keysources.base import EnvKeySource, KeySource, StaticKeySource


def _psk_hex(cfg: Any) -> str | None:
    v = getattr(cfg, "psk_hex", None)
    if isinstance(v, str) and v.strip():
        return v.strip()
    return None


def make_key_source(cfg: Any) -> KeySource:
    psk = _psk_hex(cfg)
    if psk is not None:
        return StaticKeySource(psk)

    var = getattr(cfg, "psk_env", None)
    if isinstance(var, str) and var.strip():
        return EnvKeySource(var.strip())
    return EnvKeySource()
