# MIT License © 2025 Motohiro Suzuki
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class FailureLayer(str, Enum):
    PROTOCOL = "protocol"
    TRANSPORT = "transport"


class FailurePhase(str, Enum):
    PROBE = "probe"
    CHALLENGE = "challenge"
    RESPONSE = "response"
    DATA = "data"


class FailureCode(str, Enum):
    ERR_NO_PREFIX = "ERR_NO_PREFIX"
    ERR_NO_TERMINATOR = "ERR_NO_TERMINATOR"
    ERR_MALFORMED_CHALLENGE = "ERR_MALFORMED_CHALLENGE"
    ERR_TIMEOUT = "ERR_TIMEOUT"
    ERR_TRANSPORT_READ = "ERR_TRANSPORT_READ"
    ERR_TRANSPORT_WRITE = "ERR_TRANSPORT_WRITE"


@dataclass(frozen=True)
class Failure:
    """
    Structured record of an error the session absorbed or surfaced.

    fatal=False: the session degraded (no response sent) but kept running.
    fatal=True : the session was torn down.
    detail is for local logs only; it may quote device output.
    """
    layer: FailureLayer
    phase: FailurePhase
    code: FailureCode
    fatal: bool
    detail: Optional[str] = None

    def as_record(self) -> dict:
        return {
            "layer": self.layer.value,
            "phase": self.phase.value,
            "code": self.code.value,
            "fatal": self.fatal,
        }
