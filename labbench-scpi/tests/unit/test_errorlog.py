"""Tests for the error-queue accumulator."""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Callable
from datetime import datetime

import pytest

from labbench_scpi.errorlog import (
    COMMUNICATION_ENTRY,
    UNEXPECTED_ENTRY,
    ErrorLog,
    ErrorLogEntry,
    Severity,
    drain_queue,
    parse_error_entry,
    parse_event_entry,
)
from labbench_scpi.status import Reply, Status


def _fetcher(*lines: str | None) -> Callable[[], Reply]:
    """Return a fetch callable replaying *lines*; None simulates a failed exchange."""
    pending = deque(lines)

    def fetch() -> Reply:
        line = pending.popleft()
        return Reply.failed() if line is None else Reply(Status.OK, line)

    return fetch


# ---------------------------------------------------------------------------
# Line parsers
# ---------------------------------------------------------------------------


class TestParseErrorEntry:
    """Tests for SYST:ERR? lines."""

    def test_error(self) -> None:
        entry = parse_error_entry('-113,"Undefined header"')
        assert entry is not None
        assert entry.code == -113
        assert entry.severity is Severity.ERROR
        assert entry.description == "Undefined header"

    def test_positive_code_is_warning(self) -> None:
        entry = parse_error_entry('+201,"Device busy"')
        assert entry is not None
        assert entry.severity is Severity.WARNING

    @pytest.mark.parametrize("line", ['0,"No error"', "+0,\"No Error\"", "No error"])
    def test_empty_queue(self, line: str) -> None:
        assert parse_error_entry(line) is None

    def test_malformed(self) -> None:
        entry = parse_error_entry("garbage")
        assert entry is not None
        assert entry.code is None
        assert entry.severity is Severity.UNKNOWN
        assert entry.description == f"{UNEXPECTED_ENTRY}: garbage"


class TestParseEventEntry:
    """Tests for Keithley event log lines."""

    def test_information(self) -> None:
        entry = parse_event_entry('2710,"Output disabled;4;2025/09/01 10:12:13.456"')
        assert entry is not None
        assert entry.code == 2710
        assert entry.severity is Severity.INFO
        assert entry.description == "Output disabled"
        assert entry.timestamp == datetime(2025, 9, 1, 10, 12, 13, 456000)

    def test_error_and_warning(self) -> None:
        error = parse_event_entry('-221,"Settings conflict;1;2025/09/01 10:00:00.000"')
        warning = parse_event_entry('4917,"Buffer full;2;2025/09/01 10:00:00.000"')
        assert error is not None and error.severity is Severity.ERROR
        assert warning is not None and warning.severity is Severity.WARNING

    def test_unknown_type(self) -> None:
        entry = parse_event_entry('7,"Odd;8;2025/09/01 10:00:00.000"')
        assert entry is not None
        assert entry.severity is Severity.UNKNOWN

    def test_bad_timestamp_uses_now(self) -> None:
        before = datetime.now()
        entry = parse_event_entry('7,"Odd;4;yesterday"')
        assert entry is not None
        assert entry.timestamp >= before

    def test_end_of_log(self) -> None:
        assert parse_event_entry('0,"No error;0;1970/01/01 00:00:00.000"') is None

    def test_wrong_part_count(self) -> None:
        entry = parse_event_entry('5,"only a message"')
        assert entry is not None
        assert entry.code is None


class TestErrorLogEntry:
    """Tests for entry rendering."""

    def test_str(self) -> None:
        entry = ErrorLogEntry(datetime(2026, 1, 2, 3, 4, 5), -100, Severity.ERROR, "Command error")
        assert str(entry) == "2026-01-02 03:04:05 [Error] -100: Command error"

    def test_str_without_code(self) -> None:
        entry = ErrorLogEntry(datetime(2026, 1, 2), None, Severity.UNKNOWN, "x")
        assert "] ?: x" in str(entry)


# ---------------------------------------------------------------------------
# ErrorLog
# ---------------------------------------------------------------------------


class TestErrorLog:
    """Tests for the append-only log."""

    def test_append_and_snapshot(self) -> None:
        log = ErrorLog()
        entry = ErrorLogEntry(datetime.now(), 1, Severity.WARNING, "a")
        log.append(entry)
        snapshot = log.entries
        log.extend([entry])
        assert snapshot == (entry,)
        assert len(log) == 2
        assert log.latest is entry
        assert list(log) == [entry, entry]

    def test_clear(self) -> None:
        log = ErrorLog()
        log.append(ErrorLogEntry(datetime.now(), 1, Severity.WARNING, "a"))
        log.clear()
        assert log.entries == ()
        assert log.latest is None


# ---------------------------------------------------------------------------
# drain_queue
# ---------------------------------------------------------------------------


class TestDrainQueue:
    """Tests for drain_queue."""

    def test_until_empty(self) -> None:
        fetch = _fetcher('-100,"Command error"', '-222,"Data out of range"', '0,"No error"')
        entries = drain_queue(fetch, parse_error_entry)
        assert [e.code for e in entries] == [-100, -222]

    def test_empty_queue(self) -> None:
        assert drain_queue(_fetcher('0,"No error"'), parse_error_entry) == []

    def test_communication_failure(self) -> None:
        entries = drain_queue(_fetcher('-100,"Command error"', None), parse_error_entry)
        assert len(entries) == 2
        assert entries[1].description == COMMUNICATION_ENTRY
        assert entries[1].code is None

    def test_bounded(self, caplog: pytest.LogCaptureFixture) -> None:
        fetch = _fetcher(*['-350,"Queue overflow"'] * 5)
        with caplog.at_level(logging.WARNING):
            entries = drain_queue(fetch, parse_error_entry, limit=3)
        assert len(entries) == 3
        assert "still not empty after 3 reads" in caplog.text
