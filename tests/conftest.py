# MIT License © 2025 Motohiro Suzuki
from __future__ import annotations

import asyncio

import pytest

from serialauth.protocol.errors import TransportError
from serialauth.transport.io_async import AsyncByteIO

KEY_HEX = "7b0e19c6d9b74acc996d3561a9745a7f"


class FakeIO(AsyncByteIO):
    """In-memory duplex transport: tests push inbound chunks, writes are recorded."""
    name = "fake"

    def __init__(self, fail_writes_from: int | None = None) -> None:
        super().__init__()
        self.writes: list[bytes] = []
        self.cancelled = 0
        self._fail_writes_from = fail_writes_from
        self._attempts = 0
        self._q: asyncio.Queue = asyncio.Queue()

    def feed(self, chunk: bytes) -> None:
        self._q.put_nowait(chunk)

    def feed_eof(self) -> None:
        self._q.put_nowait(None)

    def fail(self, exc: Exception) -> None:
        self._q.put_nowait(exc)

    async def read_chunk(self) -> bytes | None:
        item = await self._q.get()
        if isinstance(item, Exception):
            raise item
        return item

    async def _write(self, data: bytes) -> None:
        n = self._attempts
        self._attempts += 1
        if self._fail_writes_from is not None and n >= self._fail_writes_from:
            raise TransportError(f"{self.name}: write failed: unplugged")
        self.writes.append(data)

    def cancel_read(self) -> None:
        self.cancelled += 1


@pytest.fixture
def key() -> bytes:
    return bytes.fromhex(KEY_HEX)
