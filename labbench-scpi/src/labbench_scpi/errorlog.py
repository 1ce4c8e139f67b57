"""Error-queue accumulator.

Instruments report problems through a queue that is read one entry per
query. :func:`drain_queue` reads that queue until the device reports that it
is empty or a read limit is reached, and converts each line into an
:class:`ErrorLogEntry`. Entries are collected in an :class:`ErrorLog` owned
by the session, which only grows until it is explicitly cleared.

Two line formats are understood:

* SCPI ``SYST:ERR?``: ``-113,"Undefined header"``
* Keithley event log: ``2710,"Output disabled;4;2025/09/01 10:12:13.456"``
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from labbench_scpi.status import Reply

logger = logging.getLogger(__name__)

MAX_QUEUE_READS = 10
"""Default upper bound of queue reads per drain."""

UNEXPECTED_ENTRY = "unexpected response"
COMMUNICATION_ENTRY = "communication problem"

_ENTRY_RE = re.compile(r'^\s*([+-]?\d+)\s*,\s*"?(.*?)"?\s*$')
_NO_ERROR_RE = re.compile(r"no\s+error", re.IGNORECASE)
_EVENT_TIME_FORMAT = "%Y/%m/%d %H:%M:%S.%f"


class Severity(Enum):
    """Classification of a log entry."""

    ERROR = "Error"
    WARNING = "Warning"
    INFO = "Information"
    UNKNOWN = "unknown"


_EVENT_TYPES: dict[str, Severity] = {
    "1": Severity.ERROR,
    "2": Severity.WARNING,
    "4": Severity.INFO,
}


@dataclass(frozen=True)
class ErrorLogEntry:
    """One entry of a device error or event queue.

    Attributes:
        timestamp: Device event time if reported, otherwise the local time
            the entry was read.
        code: Device error code, or None if the line could not be parsed.
        severity: Entry classification.
        description: Device message, or a marker for malformed lines.
    """

    timestamp: datetime
    code: int | None
    severity: Severity
    description: str

    def __str__(self) -> str:
        code = "?" if self.code is None else str(self.code)
        return f"{self.timestamp:%Y-%m-%d %H:%M:%S} [{self.severity.value}] {code}: {self.description}"


class ErrorLog:
    """Append-only error history of one session.

    Example:
        >>> log = ErrorLog()
        >>> log.extend(drain_queue(fetch, parse_error_entry))
        >>> for entry in log:
        ...     print(entry)
    """

    def __init__(self) -> None:
        self._entries: list[ErrorLogEntry] = []

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[ErrorLogEntry]:
        return iter(self._entries)

    @property
    def entries(self) -> tuple[ErrorLogEntry, ...]:
        """Snapshot of all entries, oldest first."""
        return tuple(self._entries)

    @property
    def latest(self) -> ErrorLogEntry | None:
        """The most recent entry, or None when empty."""
        return self._entries[-1] if self._entries else None

    def append(self, entry: ErrorLogEntry) -> None:
        self._entries.append(entry)

    def extend(self, entries: tuple[ErrorLogEntry, ...] | list[ErrorLogEntry]) -> None:
        self._entries.extend(entries)

    def clear(self) -> None:
        self._entries.clear()


# ---------------------------------------------------------------------------
# Line parsers
# ---------------------------------------------------------------------------


def sentinel_entry(raw: str, marker: str = UNEXPECTED_ENTRY) -> ErrorLogEntry:
    """Build the entry recorded for a line that could not be interpreted."""
    description = f"{marker}: {raw}" if raw else marker
    return ErrorLogEntry(datetime.now(), None, Severity.UNKNOWN, description)


def parse_error_entry(text: str) -> ErrorLogEntry | None:
    """Parse a ``SYST:ERR?`` line.

    Returns:
        None if the line reports an empty queue (code 0 or a "no error"
        phrase), otherwise an entry. Malformed lines become a sentinel entry
        with ``code=None``.
    """
    raw = text.strip()
    if _NO_ERROR_RE.search(raw):
        return None
    match = _ENTRY_RE.match(raw)
    if match is None:
        return sentinel_entry(raw)
    code = int(match.group(1))
    if code == 0:
        return None
    severity = Severity.ERROR if code < 0 else Severity.WARNING
    return ErrorLogEntry(datetime.now(), code, severity, match.group(2).strip())


def parse_event_entry(text: str) -> ErrorLogEntry | None:
    """Parse a Keithley ``:SYST:EVEN:NEXT?`` line.

    The quoted part holds ``description;type;timestamp``. Event type 1 is an
    error, 2 a warning, 4 information; anything else is unknown.

    Returns:
        None for code 0 (no more events), an entry otherwise; malformed
        lines become a sentinel entry.
    """
    raw = text.strip()
    match = _ENTRY_RE.match(raw)
    if match is None:
        return sentinel_entry(raw)
    code = int(match.group(1))
    if code == 0:
        return None
    parts = match.group(2).split(";")
    if len(parts) != 3:
        return sentinel_entry(raw)
    description, event_type, stamp = (part.strip() for part in parts)
    try:
        timestamp = datetime.strptime(stamp, _EVENT_TIME_FORMAT)
    except ValueError:
        timestamp = datetime.now()
    return ErrorLogEntry(timestamp, code, _EVENT_TYPES.get(event_type, Severity.UNKNOWN), description)


# ---------------------------------------------------------------------------
# Draining
# ---------------------------------------------------------------------------


def drain_queue(
    fetch: Callable[[], Reply],
    parse: Callable[[str], ErrorLogEntry | None],
    limit: int = MAX_QUEUE_READS,
) -> list[ErrorLogEntry]:
    """Read queue entries until the device reports empty or *limit* is hit.

    Args:
        fetch: Issues one "next entry" query.
        parse: Line parser returning None for the empty-queue marker.
        limit: Maximum number of reads.

    Returns:
        The entries read, oldest first. A failed exchange appends one
        communication-problem sentinel and ends the drain.
    """
    entries: list[ErrorLogEntry] = []
    for _ in range(limit):
        reply = fetch()
        if not reply.ok:
            entries.append(sentinel_entry("", COMMUNICATION_ENTRY))
            break
        entry = parse(reply.text)
        if entry is None:
            break
        entries.append(entry)
    else:
        logger.warning("Error queue still not empty after %d reads", limit)
    return entries
