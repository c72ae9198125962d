# MIT License © 2025 Motohiro Suzuki
"""
serialauth/transport/io_async.py

Duplex byte transports for the handshake session.

AsyncByteIO contract:
- read_chunk() -> bytes, or None at end-of-stream; chunks are delivered in order.
- write(data) raises TransportUnavailable once the transport is closed.
- write_lock is held by OutboundBuffer for the whole of each write so two
  writes never interleave on the wire.
- cancel_read() unblocks a pending read_chunk() (used by teardown).

Implementations:
- StreamByteIO : asyncio StreamReader/StreamWriter (TCP serial bridges, tests)
- SerialByteIO : pyserial port; blocking calls run in the default executor
"""

from __future__ import annotations

import asyncio

import serial

from serialauth.protocol.config import SessionConfig
from serialauth.protocol.errors import TransportError, TransportReadError, TransportUnavailable
from serialauth.utils.logging import get_logger

log = get_logger(__name__)


class AsyncByteIO:
    name: str = "io"

    def __init__(self) -> None:
        self._write_lock = asyncio.Lock()
        self._closed = False

    @property
    def writable(self) -> bool:
        return not self._closed

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def write_lock(self) -> asyncio.Lock:
        return self._write_lock

    async def read_chunk(self) -> bytes | None:
        raise NotImplementedError

    async def write(self, data: bytes) -> None:
        if not self.writable:
            raise TransportUnavailable(f"{self.name}: write on closed transport")
        await self._write(bytes(data))

    async def _write(self, data: bytes) -> None:
        raise NotImplementedError

    def cancel_read(self) -> None:
        pass

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._close()

    async def _close(self) -> None:
        pass


# -------------------------
# asyncio streams
# -------------------------
class StreamByteIO(AsyncByteIO):
    name = "stream"

    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter, read_size: int = 1024) -> None:
        super().__init__()
        self._r = reader
        self._w = writer
        self._read_size = int(read_size)

    async def read_chunk(self) -> bytes | None:
        try:
            data = await self._r.read(self._read_size)
        except (OSError, ConnectionError) as e:
            raise TransportReadError(f"{self.name}: {e}") from e
        return data or None

    async def _write(self, data: bytes) -> None:
        self._w.write(data)
        await self._w.drain()

    async def _close(self) -> None:
        self._w.close()
        try:
            await self._w.wait_closed()
        except (OSError, ConnectionError) as e:
            log.debug("[io] close error ignored: %s", e)


async def open_connection(host: str, port: int, read_size: int = 1024) -> StreamByteIO:
    try:
        reader, writer = await asyncio.open_connection(host, port)
    except OSError as e:
        raise TransportError(f"cannot connect to {host}:{port}: {e}") from e
    return StreamByteIO(reader, writer, read_size=read_size)


# -------------------------
# pyserial
# -------------------------
_PARITY_MAP = {
    "none": serial.PARITY_NONE,
    "even": serial.PARITY_EVEN,
    "odd": serial.PARITY_ODD,
    "mark": serial.PARITY_MARK,
    "space": serial.PARITY_SPACE,
}

_STOPBITS_MAP = {
    1: serial.STOPBITS_ONE,
    2: serial.STOPBITS_TWO,
}

_BYTESIZE_MAP = {
    5: serial.FIVEBITS,
    6: serial.SIXBITS,
    7: serial.SEVENBITS,
    8: serial.EIGHTBITS,
}


class SerialByteIO(AsyncByteIO):
    name = "serial"

    def __init__(self, ser: serial.Serial, read_size: int = 1024) -> None:
        super().__init__()
        self._ser = ser
        self._read_size = int(read_size)

    def _read_blocking(self) -> bytes:
        # blocks until one byte arrives or cancel_read() is called
        first = self._ser.read(1)
        if not first:
            return b""
        waiting = self._ser.in_waiting
        if waiting:
            return first + self._ser.read(min(waiting, self._read_size - 1))
        return first

    async def read_chunk(self) -> bytes | None:
        if self._closed:
            return None
        loop = asyncio.get_running_loop()
        try:
            data = await loop.run_in_executor(None, self._read_blocking)
        except (serial.SerialException, OSError) as e:
            raise TransportReadError(f"{self.name}: {e}") from e
        return data or None

    def _write_blocking(self, data: bytes) -> None:
        self._ser.write(data)
        self._ser.flush()

    async def _write(self, data: bytes) -> None:
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self._write_blocking, data)
        except (serial.SerialException, OSError) as e:
            raise TransportError(f"{self.name}: write failed: {e}") from e

    def cancel_read(self) -> None:
        if self._ser.is_open:
            self._ser.cancel_read()

    async def _close(self) -> None:
        self.cancel_read()
        self._ser.close()


def open_serial(cfg: SessionConfig) -> SerialByteIO:
    if not cfg.port:
        raise TransportError("no serial port configured")

    try:
        ser = serial.Serial(
            port=cfg.port,
            baudrate=cfg.baud_rate,
            bytesize=_BYTESIZE_MAP[cfg.data_bits],
            parity=_PARITY_MAP[cfg.parity],
            stopbits=_STOPBITS_MAP[cfg.stop_bits],
            rtscts=cfg.flow_control,
            timeout=None,
        )
    except (serial.SerialException, ValueError) as e:
        raise TransportError(f"cannot open {cfg.port}: {e}") from e

    log.info(
        "[io] opened port=%s baud=%d bits=%d parity=%s stop=%d rtscts=%s",
        cfg.port, cfg.baud_rate, cfg.data_bits, cfg.parity, cfg.stop_bits, cfg.flow_control,
    )
    return SerialByteIO(ser, read_size=cfg.read_size)
