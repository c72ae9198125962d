# MIT License © 2025 Motohiro Suzuki
import asyncio
import logging

from conftest import FakeIO
from serialauth.protocol.outbound import OutboundBuffer


def test_line_buffered_flushes_on_carriage_return():
    async def main():
        io = FakeIO()
        out = OutboundBuffer(io, line_buffered=True)
        for c in ("A", "T", "\r"):
            await out.push(c)
        return io.writes, out.pending

    writes, pending = asyncio.run(main())
    assert writes == [b"AT\r"]
    assert pending == ""


def test_line_buffered_without_cr_writes_nothing():
    async def main():
        io = FakeIO()
        out = OutboundBuffer(io, line_buffered=True)
        await out.push("A")
        await out.push("T")
        return io.writes, out.pending

    writes, pending = asyncio.run(main())
    assert writes == []
    assert pending == "AT"


def test_line_buffered_flushes_only_on_exact_cr():
    async def main():
        io = FakeIO()
        out = OutboundBuffer(io, line_buffered=True)
        await out.push("AT+X\r")
        return io.writes, out.pending

    writes, pending = asyncio.run(main())
    assert writes == []
    assert pending == "AT+X\r"


def test_immediate_writes_every_push_utf8():
    async def main():
        io = FakeIO()
        out = OutboundBuffer(io)
        await out.push("A")
        await out.push("é")
        return io.writes

    assert asyncio.run(main()) == [b"A", "é".encode("utf-8")]


def test_push_line_is_single_write_in_both_modes():
    async def main(line_buffered):
        io = FakeIO()
        out = OutboundBuffer(io, line_buffered=line_buffered)
        await out.push_line("AT+AUTHSTART")
        return io.writes

    assert asyncio.run(main(False)) == [b"AT+AUTHSTART\r"]
    assert asyncio.run(main(True)) == [b"AT+AUTHSTART\r"]


def test_push_line_carries_pending_text():
    async def main():
        io = FakeIO()
        out = OutboundBuffer(io, line_buffered=True)
        await out.push("AT")
        await out.push_line("+GMR")
        return io.writes

    assert asyncio.run(main()) == [b"AT+GMR\r"]


def test_closed_transport_is_noop_with_warning(caplog):
    async def main():
        io = FakeIO()
        await io.close()
        out = OutboundBuffer(io)
        await out.push("AT\r")
        return io.writes

    with caplog.at_level(logging.WARNING, logger="serialauth"):
        writes = asyncio.run(main())
    assert writes == []
    assert "unable to find writable transport" in caplog.text


def test_local_echo_sees_every_push():
    seen = []

    async def main():
        io = FakeIO()
        out = OutboundBuffer(io, line_buffered=True, echo=seen.append)
        await out.push("A")
        await out.push("\r")

    asyncio.run(main())
    assert seen == ["A", "\r"]


class SlowIO(FakeIO):
    def __init__(self) -> None:
        super().__init__()
        self.events = []

    async def _write(self, data: bytes) -> None:
        self.events.append(("begin", data))
        await asyncio.sleep(0.01)
        self.events.append(("end", data))
        self.writes.append(data)


def test_concurrent_writes_do_not_interleave():
    async def main():
        io = SlowIO()
        out = OutboundBuffer(io)
        await asyncio.gather(out.push("first"), out.push("second"))
        return io.events

    events = asyncio.run(main())
    assert [e[0] for e in events] == ["begin", "end", "begin", "end"]
    assert events[0][1] == events[1][1]
    assert events[2][1] == events[3][1]


def test_write_waiting_on_lock_is_dropped_after_close(caplog):
    async def main():
        io = SlowIO()
        out = OutboundBuffer(io)

        async def close_soon():
            await asyncio.sleep(0.005)
            await io.close()

        await asyncio.gather(out.push("first"), out.push("second"), close_soon())
        return io

    with caplog.at_level(logging.WARNING, logger="serialauth"):
        io = asyncio.run(main())
    assert io.writes == [b"first"]
    assert "closed while waiting" in caplog.text
