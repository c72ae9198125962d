# MIT License © 2025 Motohiro Suzuki
"""
serialauth/protocol/audit.py

Append-only JSONL audit trail of handshake events, one record per line:
    {"ts": ..., "session": ..., "event": "probe_sent", ...}

Records never carry key material, challenge bytes or tags.
"""

from __future__ import annotations

import json
import time
from pathlib import Path
from typing import Any, Optional


class HandshakeAudit:
    def __init__(self, path: Optional[str | Path], session_id: str) -> None:
        self.path = Path(path) if path else None
        self.session_id = session_id

    def emit(self, event: str, **fields: Any) -> None:
        if self.path is None:
            return
        record = {"ts": time.time(), "session": self.session_id, "event": event}
        record.update(fields)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("a", encoding="utf-8") as f:
            json.dump(record, f, ensure_ascii=False)
            f.write("\n")
