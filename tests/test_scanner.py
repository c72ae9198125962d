# MIT License © 2025 Motohiro Suzuki
import pytest

from serialauth.protocol.errors import MalformedChallenge
from serialauth.protocol.scanner import ChallengeScanner, ScanOutcome, ScanState


def test_single_chunk_extracts_challenge():
    s = ChallengeScanner()
    ev = s.feed(b"AUTHSTART:a1b2\r\nOK")
    assert ev is not None
    assert ev.challenge == b"\xa1\xb2"
    assert s.state is ScanState.DISABLED
    assert s.outcome is ScanOutcome.FOUND


def test_split_chunks_give_same_challenge():
    s = ChallengeScanner()
    assert s.feed(b"AUTHSTART:a1") is None
    ev = s.feed(b"b2\r\nOK")
    assert ev is not None
    assert ev.challenge == bytes([0xA1, 0xB2])


def test_ok_split_across_chunks():
    s = ChallengeScanner()
    assert s.feed(b"AUTHSTART:0f\r\nO") is None
    assert s.state is ScanState.SCANNING
    ev = s.feed(b"K\r\n")
    assert ev.challenge == b"\x0f"


def test_nothing_decided_before_ok():
    s = ChallengeScanner()
    assert s.feed(b"AT+AUTHSTART\r\r\n") is None
    assert s.feed(b"AUTHSTART:0011\r\n") is None
    assert s.state is ScanState.SCANNING
    ev = s.feed(b"\r\nOK\r\n")
    assert ev.challenge == b"\x00\x11"


def test_challenge_may_follow_ok_in_buffer():
    s = ChallengeScanner()
    ev = s.feed(b"OK\r\nAUTHSTART:beef\r\n")
    assert ev.challenge == b"\xbe\xef"


def test_second_ok_has_no_effect():
    s = ChallengeScanner()
    events = [
        s.feed(b"AUTHSTART:01\r\nOK\r\n"),
        s.feed(b"AUTHSTART:02\r\nOK\r\n"),
    ]
    assert [e for e in events if e is not None] == [events[0]]
    assert events[0].challenge == b"\x01"


def test_feed_after_disabled_does_not_grow_buffer():
    s = ChallengeScanner()
    s.feed(b"OK")
    before = s.buffer
    assert s.feed(b"AUTHSTART:00\r\nOK") is None
    assert s.buffer == before


def test_malformed_hex_disables():
    s = ChallengeScanner()
    with pytest.raises(MalformedChallenge):
        s.feed(b"AUTHSTART:zz\r\nOK")
    assert s.state is ScanState.DISABLED
    assert s.outcome is ScanOutcome.MALFORMED
    assert s.feed(b"AUTHSTART:00\r\nOK") is None


def test_odd_length_hex_is_malformed():
    s = ChallengeScanner()
    with pytest.raises(MalformedChallenge):
        s.feed(b"AUTHSTART:abc\r\nOK")
    assert s.disabled


def test_missing_prefix_disables():
    s = ChallengeScanner()
    assert s.feed(b"ERROR\r\nOK\r\n") is None
    assert s.state is ScanState.DISABLED
    assert s.outcome is ScanOutcome.NO_PREFIX


def test_missing_terminator_disables():
    s = ChallengeScanner()
    assert s.feed(b"OK AUTHSTART:a1b2") is None
    assert s.disabled
    assert s.outcome is ScanOutcome.NO_TERMINATOR


def test_uppercase_hex_accepted():
    s = ChallengeScanner()
    ev = s.feed(b"AUTHSTART:A1B2\r\nOK")
    assert ev.challenge == b"\xa1\xb2"


def test_multibyte_text_split_across_chunks():
    s = ChallengeScanner()
    text = "héllo AUTHSTART:10\r\nOK".encode("utf-8")
    cut = text.index(b"\xa9")
    assert s.feed(text[:cut]) is None
    ev = s.feed(text[cut:])
    assert ev.challenge == b"\x10"
    assert s.buffer.startswith("héllo")
