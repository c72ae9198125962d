# MIT License © 2025 Motohiro Suzuki
"""
serialauth/protocol/session.py

HandshakeSession: one per open connection.

    IDLE --start()--> AWAITING_CHALLENGE --challenge--> AUTHENTICATED
                                  |                          |
                                  +--"OK" w/o challenge------+   (no response sent)
    any state --teardown()/EOF/read error--> DISCONNECTED

Guarantees:
- exactly one probe (AT+AUTHSTART\r) per session
- at most one response (AT+AUTHRESP=<hex>\r) per session
- every inbound chunk is handed to the display before it is scanned
- chunks are processed strictly one after another
- after DISCONNECTED no scanner or MAC work happens; the key copy is wiped

Handshake-protocol problems (missing markers, bad hex) never raise: they are
recorded in .failure and the session moves to AUTHENTICATED without a
response. Transport read/write errors and the optional challenge timeout are
fatal: .failure is set, the session is torn down and the error is raised to
the owner.
"""

from __future__ import annotations

import asyncio
import inspect
import uuid
from enum import Enum
from typing import Any, Callable, Optional

from serialauth.crypto.cmac import MacBackend, get_mac_backend
from serialauth.keysources.base import KeySource
from serialauth.keysources.factory import make_key_source
from serialauth.protocol.audit import HandshakeAudit
from serialauth.protocol.commands import PROBE, auth_response
from serialauth.protocol.config import SessionConfig
from serialauth.protocol.errors import (
    HandshakeError,
    HandshakeTimeout,
    MalformedChallenge,
    TransportError,
    TransportReadError,
)
from serialauth.protocol.failure import Failure, FailureCode, FailureLayer, FailurePhase
from serialauth.protocol.outbound import EchoFn, OutboundBuffer
from serialauth.protocol.scanner import ChallengeEvent, ChallengeScanner, ScanOutcome
from serialauth.transport.io_async import AsyncByteIO
from serialauth.utils.logging import get_logger

log = get_logger(__name__)

DisplayFn = Callable[[bytes], Any]

_OUTCOME_CODES = {
    ScanOutcome.NO_PREFIX: FailureCode.ERR_NO_PREFIX,
    ScanOutcome.NO_TERMINATOR: FailureCode.ERR_NO_TERMINATOR,
}


class SessionState(str, Enum):
    IDLE = "IDLE"
    AWAITING_CHALLENGE = "AWAITING_CHALLENGE"
    AUTHENTICATED = "AUTHENTICATED"
    DISCONNECTED = "DISCONNECTED"


class HandshakeSession:
    def __init__(
        self,
        io: AsyncByteIO,
        mac: MacBackend,
        *,
        line_buffered: bool = False,
        display: Optional[DisplayFn] = None,
        echo: Optional[EchoFn] = None,
        challenge_timeout: Optional[float] = None,
        audit: Optional[HandshakeAudit] = None,
        session_id: Optional[str] = None,
    ) -> None:
        self.session_id = session_id or uuid.uuid4().hex[:12]
        self.state = SessionState.IDLE
        self.failure: Optional[Failure] = None
        self.probes_sent = 0
        self.responses_sent = 0

        self._io = io
        self._mac = mac
        self._display = display
        self._challenge_timeout = challenge_timeout
        self._audit = audit or HandshakeAudit(None, self.session_id)

        self.scanner = ChallengeScanner()
        self.outbound = OutboundBuffer(io, line_buffered=line_buffered, echo=echo)
        self._closed = asyncio.Event()

    @classmethod
    def from_config(
        cls,
        io: AsyncByteIO,
        cfg: SessionConfig,
        *,
        key_source: Optional[KeySource] = None,
        display: Optional[DisplayFn] = None,
        echo: Optional[EchoFn] = None,
    ) -> "HandshakeSession":
        ks = key_source or make_key_source(cfg)
        mac = get_mac_backend(cfg.mac_alg, ks.provide())
        sid = uuid.uuid4().hex[:12]
        return cls(
            io,
            mac,
            line_buffered=cfg.line_buffered,
            display=display,
            echo=echo,
            challenge_timeout=cfg.challenge_timeout,
            audit=HandshakeAudit(cfg.audit_log_path, sid),
            session_id=sid,
        )

    @property
    def responded(self) -> bool:
        return self.responses_sent > 0

    # -------------------------
    # handshake steps
    # -------------------------
    async def start(self) -> None:
        if self.state is not SessionState.IDLE:
            raise HandshakeError(f"probe already sent (state={self.state.value})")

        self.state = SessionState.AWAITING_CHALLENGE
        await self._send_line(PROBE, FailurePhase.PROBE)
        self.probes_sent += 1
        log.info("[session] probe sent session=%s", self.session_id)
        self._audit.emit("probe_sent")

    async def on_data(self, chunk: bytes) -> None:
        if self.state is SessionState.DISCONNECTED:
            return

        await self._show(chunk)

        # state may have changed while the display was busy
        if self.state is not SessionState.AWAITING_CHALLENGE:
            return

        try:
            ev = self.scanner.feed(chunk)
        except MalformedChallenge as e:
            self._absorb(FailureCode.ERR_MALFORMED_CHALLENGE, str(e))
            return

        if ev is not None:
            await self._respond(ev)
            return

        if self.scanner.disabled:
            self._absorb(_OUTCOME_CODES[self.scanner.outcome], f"outcome={self.scanner.outcome.value}")

    async def _respond(self, ev: ChallengeEvent) -> None:
        self.state = SessionState.AUTHENTICATED
        tag = self._mac.compute(ev.challenge)
        log.info("[session] challenge extracted session=%s challenge_len=%d", self.session_id, len(ev.challenge))
        await self._send_line(auth_response(tag), FailurePhase.RESPONSE)
        self.responses_sent += 1
        log.info("[session] response sent session=%s mac=%s", self.session_id, self._mac.name)
        self._audit.emit("response_sent", challenge_len=len(ev.challenge), mac=self._mac.name)

    async def send_line(self, text: str) -> None:
        """Forward a user-typed line; a write failure ends the session."""
        if self.state is SessionState.DISCONNECTED:
            log.warning("[session] line dropped after disconnect session=%s", self.session_id)
            return
        await self._send_line(text, FailurePhase.DATA)

    async def _send_line(self, text: str, phase: FailurePhase) -> None:
        try:
            await self.outbound.push_line(text)
        except TransportError as e:
            await self._fail(FailureLayer.TRANSPORT, phase, FailureCode.ERR_TRANSPORT_WRITE, e)

    def _absorb(self, code: FailureCode, detail: str) -> None:
        self.failure = Failure(
            layer=FailureLayer.PROTOCOL,
            phase=FailurePhase.CHALLENGE,
            code=code,
            fatal=False,
            detail=detail,
        )
        self.state = SessionState.AUTHENTICATED
        log.warning("[session] no response sent session=%s code=%s detail=%s", self.session_id, code.value, detail)
        self._audit.emit("response_skipped", **self.failure.as_record())

    async def _show(self, chunk: bytes) -> None:
        if self._display is None:
            return
        r = self._display(chunk)
        if inspect.isawaitable(r):
            await r

    # -------------------------
    # read loop
    # -------------------------
    async def run(self) -> None:
        """
        Send the probe (if not sent yet) and process inbound chunks until
        end-of-stream or teardown(). Always ends DISCONNECTED.
        """
        loop = asyncio.get_running_loop()
        deadline = None
        if self._challenge_timeout is not None:
            deadline = loop.time() + float(self._challenge_timeout)

        try:
            if self.state is SessionState.IDLE:
                await self.start()

            while self.state is not SessionState.DISCONNECTED:
                wait_for = None
                if deadline is not None and self.state is SessionState.AWAITING_CHALLENGE:
                    wait_for = max(0.0, deadline - loop.time())

                chunk = await self._next_chunk(wait_for)
                if chunk is None:
                    break
                await self.on_data(chunk)
        finally:
            await self.teardown()

    async def _next_chunk(self, wait_for: Optional[float]) -> Optional[bytes]:
        read = asyncio.ensure_future(self._io.read_chunk())
        closed = asyncio.ensure_future(self._closed.wait())
        try:
            done, _ = await asyncio.wait({read, closed}, timeout=wait_for, return_when=asyncio.FIRST_COMPLETED)
        finally:
            closed.cancel()
            if not read.done():
                read.cancel()
                self._io.cancel_read()

        if read not in done:
            if self._closed.is_set():
                return None
            await self._fail(
                FailureLayer.PROTOCOL,
                FailurePhase.CHALLENGE,
                FailureCode.ERR_TIMEOUT,
                HandshakeTimeout(f"no challenge within {self._challenge_timeout}s"),
            )

        try:
            chunk = read.result()
        except (TransportReadError, OSError) as e:
            err = e if isinstance(e, TransportReadError) else TransportReadError(str(e))
            await self._fail(FailureLayer.TRANSPORT, FailurePhase.DATA, FailureCode.ERR_TRANSPORT_READ, err, cause=e)

        if chunk is None:
            log.info("[session] end of stream session=%s", self.session_id)
        return chunk

    async def _fail(
        self,
        layer: FailureLayer,
        phase: FailurePhase,
        code: FailureCode,
        err: Exception,
        *,
        cause: Optional[BaseException] = None,
    ) -> None:
        self.failure = Failure(layer=layer, phase=phase, code=code, fatal=True, detail=str(err))
        log.error("[session] fatal session=%s code=%s detail=%s", self.session_id, code.value, err)
        self._audit.emit("session_failed", **self.failure.as_record())
        await self.teardown()
        if cause is not None and cause is not err:
            raise err from cause
        raise err

    # -------------------------
    # teardown
    # -------------------------
    async def teardown(self) -> None:
        """Cancel any pending read, close the transport and wipe the key. Idempotent."""
        if self.state is SessionState.DISCONNECTED:
            return
        prev = self.state
        self.state = SessionState.DISCONNECTED
        self._closed.set()

        self._io.cancel_read()
        await self._io.close()
        self._mac.wipe()

        log.info("[session] disconnected session=%s from_state=%s", self.session_id, prev.value)
        self._audit.emit("disconnected", from_state=prev.value, responded=self.responded)
