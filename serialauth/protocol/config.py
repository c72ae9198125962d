# MIT License © 2025 Motohiro Suzuki
"""
serialauth/protocol/config.py

SessionConfig:
- serial line settings (port, baud_rate, data_bits, parity, stop_bits, flow_control)
- outbound policy (line_buffered, echo)
- key selection (psk_hex, psk_env) and MAC algorithm
- optional challenge_timeout (None = wait for the challenge until disconnect)
- optional audit_log_path (JSONL)

load_config() reads the same keys from a YAML mapping. Unknown keys are ignored.
"""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml

from serialauth.protocol.errors import ConfigError

PARITIES = ("none", "even", "odd", "mark", "space")
DATA_BITS = (5, 6, 7, 8)
STOP_BITS = (1, 2)


@dataclass(frozen=True)
class SessionConfig:
    port: Optional[str] = None
    baud_rate: int = 115200
    data_bits: int = 8
    parity: str = "none"
    stop_bits: int = 1
    flow_control: bool = False

    line_buffered: bool = False
    echo: bool = False

    psk_hex: Optional[str] = None
    psk_env: str = "SERIALAUTH_PSK_HEX"
    mac_alg: str = "aes-cmac"

    challenge_timeout: Optional[float] = None
    audit_log_path: Optional[str] = None
    read_size: int = 1024

    def __post_init__(self) -> None:
        if self.baud_rate <= 0:
            raise ConfigError(f"baud_rate must be > 0, got {self.baud_rate}")
        if self.data_bits not in DATA_BITS:
            raise ConfigError(f"data_bits must be one of {DATA_BITS}, got {self.data_bits}")
        if self.parity not in PARITIES:
            raise ConfigError(f"parity must be one of {PARITIES}, got {self.parity!r}")
        if self.stop_bits not in STOP_BITS:
            raise ConfigError(f"stop_bits must be one of {STOP_BITS}, got {self.stop_bits}")
        if self.challenge_timeout is not None and self.challenge_timeout <= 0:
            raise ConfigError("challenge_timeout must be > 0 when set")
        if self.read_size <= 0:
            raise ConfigError("read_size must be > 0")

    def with_overrides(self, **kw: Any) -> "SessionConfig":
        """Return a copy with every non-None keyword applied."""
        return replace(self, **_normalize({k: v for k, v in kw.items() if v is not None}))


def _opt_str(v: Any) -> Optional[str]:
    if v is None:
        return None
    s = str(v).strip()
    return s or None


def _bool(v: Any) -> bool:
    if isinstance(v, str):
        return v.strip().lower() in ("1", "true", "yes", "on")
    return bool(v)


_COERCE = {
    "port": _opt_str,
    "baud_rate": int,
    "data_bits": int,
    "parity": lambda v: str(v).strip().lower(),
    "stop_bits": int,
    "flow_control": _bool,
    "line_buffered": _bool,
    "echo": _bool,
    "psk_hex": _opt_str,
    "psk_env": lambda v: str(v).strip(),
    "mac_alg": lambda v: str(v).strip().lower(),
    "challenge_timeout": lambda v: None if v is None else float(v),
    "audit_log_path": _opt_str,
    "read_size": int,
}


def _normalize(raw: Mapping[str, Any]) -> dict:
    out = {}
    for k, v in raw.items():
        conv = _COERCE.get(k)
        if conv is None:
            continue
        try:
            out[k] = conv(v)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"invalid value for {k}: {v!r}") from e
    return out


def config_from_mapping(raw: Mapping[str, Any]) -> SessionConfig:
    if not isinstance(raw, Mapping):
        raise ConfigError("config must be a mapping")
    known = {f.name for f in fields(SessionConfig)}
    return SessionConfig(**{k: v for k, v in _normalize(raw).items() if k in known})


def load_config(path: str | Path) -> SessionConfig:
    p = Path(path)
    if not p.exists():
        raise ConfigError(f"config file not found: {p}")

    try:
        data = yaml.safe_load(p.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigError(f"config file is not valid YAML: {p}") from e

    if data is None:
        return SessionConfig()
    # accept either a flat mapping or one nested under "session:"
    if isinstance(data, Mapping) and isinstance(data.get("session"), Mapping):
        data = data["session"]
    return config_from_mapping(data)
