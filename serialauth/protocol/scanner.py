# MIT License © 2025 Motohiro Suzuki
"""
serialauth/protocol/scanner.py

ChallengeScanner: finds the device challenge inside free-form serial output.

Device reply (anywhere in the stream, any order relative to "OK"):
    AUTHSTART:<hex challenge>\r\n ... OK

Rules:
- Input is appended to one growing text buffer; nothing is ever dropped
  while scanning, so markers split across chunks are still found.
- Nothing is decided until "OK" has been seen.
- Once "OK" is seen the scanner stops for good, whether or not a challenge
  could be extracted. At most one ChallengeEvent per scanner.
"""

from __future__ import annotations

import binascii
import codecs
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from serialauth.protocol.commands import CRLF, MARK_CHALLENGE, MARK_DONE
from serialauth.protocol.errors import MalformedChallenge


class ScanState(str, Enum):
    SCANNING = "SCANNING"
    DISABLED = "DISABLED"


class ScanOutcome(str, Enum):
    PENDING = "PENDING"
    FOUND = "FOUND"
    NO_PREFIX = "NO_PREFIX"
    NO_TERMINATOR = "NO_TERMINATOR"
    MALFORMED = "MALFORMED"


@dataclass(frozen=True)
class ChallengeEvent:
    challenge: bytes


class ChallengeScanner:
    def __init__(self) -> None:
        self.state = ScanState.SCANNING
        self.outcome = ScanOutcome.PENDING
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buf = ""
        # "OK" cannot start before this index
        self._ok_from = 0

    @property
    def buffer(self) -> str:
        return self._buf

    @property
    def disabled(self) -> bool:
        return self.state is ScanState.DISABLED

    def feed(self, chunk: bytes) -> Optional[ChallengeEvent]:
        """
        Consume one inbound chunk.

        Returns a ChallengeEvent exactly once (the chunk that completes a
        well-formed reply), otherwise None.

        Raises MalformedChallenge if the challenge text is not valid hex;
        the scanner is disabled before raising.
        """
        if self.state is not ScanState.SCANNING:
            return None

        self._buf += self._decoder.decode(bytes(chunk))

        if self._buf.find(MARK_DONE, self._ok_from) == -1:
            # a trailing "O" may still become "OK"
            self._ok_from = max(0, len(self._buf) - (len(MARK_DONE) - 1))
            return None

        return self._extract()

    def _extract(self) -> Optional[ChallengeEvent]:
        start = self._buf.find(MARK_CHALLENGE)
        if start == -1:
            self._stop(ScanOutcome.NO_PREFIX)
            return None

        begin = start + len(MARK_CHALLENGE)
        end = self._buf.find(CRLF, begin)
        if end == -1:
            self._stop(ScanOutcome.NO_TERMINATOR)
            return None

        text = self._buf[begin:end]
        try:
            challenge = binascii.unhexlify(text)
        except (binascii.Error, ValueError) as e:
            self._stop(ScanOutcome.MALFORMED)
            raise MalformedChallenge(f"challenge is not valid hex (len={len(text)})") from e

        self._stop(ScanOutcome.FOUND)
        return ChallengeEvent(challenge=challenge)

    def _stop(self, outcome: ScanOutcome) -> None:
        self.state = ScanState.DISABLED
        self.outcome = outcome
