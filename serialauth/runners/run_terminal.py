# MIT License © 2025 Motohiro Suzuki
"""
serialauth/runners/run_terminal.py

Console terminal for a device that requires the AT+AUTHSTART handshake.

- opens the serial port (or a TCP serial bridge with --connect HOST:PORT)
- sends the probe and answers the challenge automatically
- prints every inbound byte to stdout
- forwards stdin lines to the device ("/play", "/mic1", "/mic2", "/micstop",
  "/leavetesting" send the device test commands); --no-stdin skips this for
  non-interactive runs

The key is never taken from the command line: set it in the YAML config
(psk_hex) or in the environment (SERIALAUTH_PSK_HEX, or --psk-env NAME).
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import threading
from typing import Optional

from serialauth.protocol.commands import TEST_COMMANDS, device_test_command
from serialauth.protocol.config import SessionConfig, load_config
from serialauth.protocol.errors import SerialAuthError
from serialauth.protocol.session import HandshakeSession
from serialauth.transport.io_async import AsyncByteIO, open_connection, open_serial
from serialauth.transport.ports import available_ports
from serialauth.utils.logging import get_logger, set_level

log = get_logger(__name__)


def _display(chunk: bytes) -> None:
    sys.stdout.buffer.write(chunk)
    sys.stdout.buffer.flush()


def _echo(text: str) -> None:
    sys.stdout.write(text)
    sys.stdout.flush()


def _marker(text: str) -> None:
    sys.stdout.write(f"\r\n<{text}>\r\n")
    sys.stdout.flush()


def parse_host_port(s: str) -> tuple[str, int]:
    host, sep, port = s.rpartition(":")
    if not sep or not host:
        raise argparse.ArgumentTypeError(f"expected HOST:PORT, got {s!r}")
    try:
        return host, int(port)
    except ValueError:
        raise argparse.ArgumentTypeError(f"bad port in {s!r}") from None


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="serialauth-term", description="Serial terminal with AT+AUTHSTART handshake")
    ap.add_argument("--list-ports", action="store_true", help="list serial ports and exit")
    ap.add_argument("--config", help="YAML session config")
    ap.add_argument("--port", help="serial device, e.g. /dev/ttyACM0 or COM3")
    ap.add_argument("--connect", type=parse_host_port, metavar="HOST:PORT", help="use a TCP serial bridge instead of a port")
    ap.add_argument("--baud", type=int, help="baud rate (default 115200)")
    ap.add_argument("--line-buffered", action="store_true", default=None, help="flush typed input only on Enter")
    ap.add_argument("--echo", action="store_true", default=None, help="echo typed input locally")
    ap.add_argument("--timeout", type=float, help="give up if no challenge arrives within N seconds")
    ap.add_argument("--psk-env", help="environment variable holding the key as hex")
    ap.add_argument("--no-stdin", action="store_true", help="do not read stdin; run until the device disconnects")
    ap.add_argument("--audit-log", help="append handshake events to this JSONL file")
    ap.add_argument("-v", "--verbose", action="store_true")
    return ap


def make_config(args: argparse.Namespace) -> SessionConfig:
    base = load_config(args.config) if args.config else SessionConfig()
    return base.with_overrides(
        port=args.port,
        baud_rate=args.baud,
        line_buffered=args.line_buffered,
        echo=args.echo,
        challenge_timeout=args.timeout,
        psk_env=args.psk_env,
        audit_log_path=args.audit_log,
    )


def _stdin_reader(loop: asyncio.AbstractEventLoop, q: "asyncio.Queue[Optional[str]]") -> None:
    # daemon thread: a blocked readline must not keep the process alive
    for line in sys.stdin:
        if loop.is_closed():
            return
        loop.call_soon_threadsafe(q.put_nowait, line)
    loop.call_soon_threadsafe(q.put_nowait, None)


async def _forward_stdin(session: HandshakeSession) -> None:
    loop = asyncio.get_running_loop()
    q: asyncio.Queue[Optional[str]] = asyncio.Queue()
    threading.Thread(target=_stdin_reader, args=(loop, q), daemon=True).start()
    while True:
        line = await q.get()
        if line is None:
            break
        text = line.rstrip("\r\n")
        if text.startswith("/"):
            try:
                text = device_test_command(text[1:])
            except ValueError as e:
                log.warning("[term] %s (known: %s)", e, ", ".join(sorted(TEST_COMMANDS)))
                continue
        await session.send_line(text)
    await session.teardown()


async def _open(args: argparse.Namespace, cfg: SessionConfig) -> AsyncByteIO:
    if args.connect is not None:
        host, port = args.connect
        return await open_connection(host, port, read_size=cfg.read_size)
    return open_serial(cfg)


async def amain(args: argparse.Namespace) -> int:
    io: Optional[AsyncByteIO] = None
    try:
        cfg = make_config(args)
        io = await _open(args, cfg)
        session = HandshakeSession.from_config(io, cfg, display=_display, echo=_echo if cfg.echo else None)
    except (SerialAuthError, ValueError) as e:
        _marker(f"ERROR: {e}")
        if io is not None:
            await io.close()
        return 1

    _marker("CONNECTED")
    stdin_task = None
    if not args.no_stdin:
        stdin_task = asyncio.ensure_future(_forward_stdin(session))
    try:
        await session.run()
    except SerialAuthError as e:
        _marker(f"ERROR: {e}")
        return 1
    finally:
        if stdin_task is not None:
            await _reap(stdin_task)
        _marker("DISCONNECTED")

    if session.failure is not None:
        if session.failure.fatal:
            _marker(f"ERROR: {session.failure.detail}")
            return 1
        log.warning("[term] handshake ended without response: %s", session.failure.code.value)
    return 0


async def _reap(task: "asyncio.Future[None]") -> None:
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass
    except SerialAuthError as e:
        # already recorded on the session by send_line
        log.debug("[term] input forwarding stopped: %s", e)


def cli(argv: Optional[list[str]] = None) -> None:
    args = build_parser().parse_args(argv)
    if args.verbose:
        set_level(logging.DEBUG)

    if args.list_ports:
        for p in available_ports():
            print(f"{p.device}\t{p.description}\t{p.hwid}")
        return

    if args.port is None and args.connect is None and args.config is None:
        build_parser().error("one of --port, --connect or --config is required")

    try:
        rc = asyncio.run(amain(args))
    except KeyboardInterrupt:
        rc = 130
    sys.exit(rc)


if __name__ == "__main__":
    cli()
