# MIT License © 2025 Motohiro Suzuki
"""
serialauth/protocol/outbound.py

OutboundBuffer: decides when typed/command text reaches the transport.

- immediate mode    : every push() is UTF-8 encoded and written at once.
- line-buffered mode: push() appends to a pending buffer; the buffer is
                      written and cleared only when the pushed text is
                      exactly "\r" (flush on Enter).

If the transport is not writable the push is dropped with a warning.
Each write holds transport.write_lock for its whole duration and re-checks
that the transport is still open once the lock is held.
"""

from __future__ import annotations

import inspect
from typing import Any, Callable, Optional

from serialauth.protocol.commands import CR
from serialauth.protocol.errors import TransportUnavailable
from serialauth.transport.io_async import AsyncByteIO
from serialauth.utils.logging import get_logger

log = get_logger(__name__)

EchoFn = Callable[[str], Any]


class OutboundBuffer:
    def __init__(
        self,
        io: AsyncByteIO,
        *,
        line_buffered: bool = False,
        echo: Optional[EchoFn] = None,
    ) -> None:
        self._io = io
        self.line_buffered = bool(line_buffered)
        self._echo = echo
        self._pending = ""

    @property
    def pending(self) -> str:
        return self._pending

    async def push(self, text: str) -> None:
        await self._local_echo(text)

        if not self._io.writable:
            log.warning("[outbound] unable to find writable transport; dropped %d chars", len(text))
            return

        if not self.line_buffered:
            await self._write(text)
            return

        self._pending += text
        if text == CR:
            await self._flush()

    async def push_line(self, text: str) -> None:
        """
        Send text followed by "\r" as a single write in either mode.
        In line-buffered mode any text already pending goes out with it.
        """
        if not self.line_buffered:
            await self.push(text + CR)
            return
        await self.push(text)
        await self.push(CR)

    async def _flush(self) -> None:
        data, self._pending = self._pending, ""
        await self._write(data)

    async def _write(self, text: str) -> None:
        async with self._io.write_lock:
            # transport may have closed while we waited for the lock
            if not self._io.writable:
                log.warning("[outbound] transport closed while waiting; dropped %d chars", len(text))
                return
            try:
                await self._io.write(text.encode("utf-8"))
            except TransportUnavailable as e:
                log.warning("[outbound] %s", e)

    async def _local_echo(self, text: str) -> None:
        if self._echo is None:
            return
        r = self._echo(text)
        if inspect.isawaitable(r):
            await r
