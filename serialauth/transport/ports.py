# MIT License © 2025 Motohiro Suzuki
from __future__ import annotations

from dataclasses import dataclass

from serial.tools import list_ports


@dataclass(frozen=True)
class PortInfo:
    device: str
    description: str
    hwid: str


def available_ports() -> list[PortInfo]:
    """Serial ports currently visible to the host, sorted by device name."""
    out = [
        PortInfo(device=p.device, description=p.description or "", hwid=p.hwid or "")
        for p in list_ports.comports()
    ]
    return sorted(out, key=lambda p: p.device)
