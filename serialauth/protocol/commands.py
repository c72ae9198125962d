# MIT License © 2025 Motohiro Suzuki
"""
serialauth/protocol/commands.py

AT command literals exchanged with the device.

Commands are kept WITHOUT the trailing carriage return; OutboundBuffer.push_line()
appends it so the same text goes out in immediate and line-buffered mode.
"""

from __future__ import annotations

CR = "\r"
CRLF = "\r\n"

# handshake
PROBE = "AT+AUTHSTART"
RESPONSE_PREFIX = "AT+AUTHRESP="

# markers inside the device's reply
MARK_DONE = "OK"
MARK_CHALLENGE = "AUTHSTART:"

# device test commands (runner shortcuts)
TEST_COMMANDS = {
    "play": "AT+AUDIOPLAYTESTTONE",
    "mic1": "AT+LOOPBACKSTART=2,48,48000",
    "mic2": "AT+LOOPBACKSTART=3,48,48000",
    "micstop": "AT+LOOPBACKSTOP",
    "leavetesting": "AT+DTSENDTESTING=0",
}


def auth_response(tag: bytes) -> str:
    return RESPONSE_PREFIX + bytes(tag).hex()


def device_test_command(name: str) -> str:
    n = name.strip().lower()
    try:
        return TEST_COMMANDS[n]
    except KeyError:
        raise ValueError(f"unknown test command: {name}") from None
