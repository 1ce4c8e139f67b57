"""In-process SCPI device emulation.

:class:`ScpiEmulator` implements the :class:`ScpiTransport` protocol and
answers like a real instrument: IEEE 488.2 common commands, a ``SYST:ERR?``
error queue, and device-specific commands registered in two dispatch tables
(setters and queries) by subclasses. Headers are normalized so that long,
short and mixed-case spellings (``:Source:Current``, ``SOUR:CURR``,
``sour:curr``) reach the same handler.

The emulator also records every received line and can simulate transport
failures, which makes it the main fixture of the driver tests.
"""

from __future__ import annotations

import re
from collections import deque
from typing import Callable

from labbench_scpi.errors import ScpiTimeoutError, ScpiTransportError

_KEYWORD_RE = re.compile(r"^([A-Z]+)(\d*)$")
_VOWELS = frozenset("AEIOU")

DEFAULT_OPTIONAL_SEGMENTS: frozenset[str] = frozenset({"SOUR", "LEV", "IMM", "AMPL", "STAT"})


def short_form(keyword: str) -> str:
    """Return the SCPI short form of an upper-case keyword.

    Keywords of four characters or fewer are their own short form; longer
    ones keep their first four characters, or three if the fourth is a
    vowel. A numeric suffix is preserved (``MEASURE2`` -> ``MEAS2``).
    """
    match = _KEYWORD_RE.match(keyword)
    if match is None:
        return keyword
    stem, suffix = match.groups()
    if len(stem) <= 4:
        return keyword
    short = stem[:4]
    if short[3] in _VOWELS:
        short = short[:3]
    return short + suffix


def normalize_header(
    header: str,
    optional_segments: frozenset[str] = DEFAULT_OPTIONAL_SEGMENTS,
    short_forms: bool = True,
) -> str:
    """Normalize a SCPI header to canonical short form.

    1. Uppercase and strip a leading colon
    2. Split on ``:``
    3. Map long forms to short forms (if *short_forms*)
    4. Drop optional segments
    5. Rejoin with ``:``
    """
    upper = header.strip().upper()
    if upper.startswith(":"):
        upper = upper[1:]
    segments = upper.split(":")
    if short_forms:
        segments = [short_form(seg) for seg in segments]
    return ":".join(seg for seg in segments if seg not in optional_segments)


class ScpiEmulator:
    """Base class of the in-process device emulators.

    Subclasses fill :attr:`_set_handlers` (normalized header -> handler
    taking the argument text) and :attr:`_query_handlers` (normalized header
    with trailing ``?`` -> handler taking the argument text and returning the
    response line), and override :meth:`reset_state`.

    Args:
        identity: ``*IDN?`` response string.
    """

    OPTIONAL_SEGMENTS: frozenset[str] = DEFAULT_OPTIONAL_SEGMENTS
    SHORT_FORMS = True
    ECHO = False

    def __init__(self, identity: str) -> None:
        if not identity:
            raise ValueError("identity must be non-empty")
        self._identity = identity
        self._responses: deque[str] = deque()
        self._error_queue: list[tuple[int, str]] = []
        self._set_handlers: dict[str, Callable[[str], None]] = {}
        self._query_handlers: dict[str, Callable[[str], str]] = {}
        self._pending_failures = 0
        self._frozen: set[str] = set()
        self._status_byte = 0
        self._received: list[str] = []
        self._closed = False

    # -- Transport interface ------------------------------------------------

    def write(self, message: str) -> None:
        """Process one SCPI command or query line."""
        self._maybe_fail("write")
        line = message.strip()
        self._received.append(line)
        if self.ECHO:
            self._responses.append(line)
        if not line:
            return

        is_query, header, args = self._parse_line(line)
        if self._handle_common_command(header, is_query):
            return
        self._dispatch(header, args, is_query)

    def read(self) -> str:
        """Return the oldest pending response line.

        Raises:
            ScpiTimeoutError: If no response is pending.
        """
        self._maybe_fail("read")
        if not self._responses:
            raise ScpiTimeoutError("no response pending")
        return self._responses.popleft()

    def close(self) -> None:
        """Mark the emulator closed (no resources to release)."""
        self._closed = True

    # -- Test helpers -------------------------------------------------------

    @property
    def received(self) -> tuple[str, ...]:
        """Every line written to the emulator, in order."""
        return tuple(self._received)

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending_errors(self) -> tuple[tuple[int, str], ...]:
        return tuple(self._error_queue)

    def clear_received(self) -> None:
        self._received.clear()

    def freeze(self, header: str) -> None:
        """Accept but ignore further writes to *header*, like a stuck setting."""
        self._frozen.add(self.normalize(header))

    def fail_next(self, count: int = 1) -> None:
        """Make the next *count* transport calls raise ScpiTransportError."""
        self._pending_failures = count

    def push_error(self, code: int, message: str) -> None:
        """Queue a device error as if a command had failed."""
        self._error_queue.append((code, message))

    def set_status_byte(self, value: int) -> None:
        self._status_byte = value

    # -- Hooks for subclasses -----------------------------------------------

    def reset_state(self) -> None:
        """Restore power-on defaults (``*RST``)."""

    def clear_errors(self) -> None:
        """Empty the error queue (``*CLS``)."""
        self._error_queue.clear()

    def pop_error(self) -> str:
        if self._error_queue:
            code, msg = self._error_queue.pop(0)
            return f'{code},"{msg}"'
        return '0,"No error"'

    def normalize(self, header: str) -> str:
        return normalize_header(header, self.OPTIONAL_SEGMENTS, self.SHORT_FORMS)

    # -- Argument helpers ---------------------------------------------------

    def parse_float_arg(self, args: str) -> float | None:
        """Parse a numeric argument; queue a parameter error on failure."""
        try:
            return float(args.strip().strip('"'))
        except ValueError:
            self.push_error(-220, "Parameter error")
            return None

    def parse_bool_arg(self, args: str) -> bool | None:
        """Parse ``1``/``0``/``ON``/``OFF``; queue a parameter error otherwise."""
        token = args.strip().upper()
        if token in ("ON", "1"):
            return True
        if token in ("OFF", "0"):
            return False
        self.push_error(-220, "Parameter error")
        return None

    # -- Private helpers ----------------------------------------------------

    def _maybe_fail(self, operation: str) -> None:
        if self._pending_failures > 0:
            self._pending_failures -= 1
            raise ScpiTransportError(f"simulated {operation} failure")

    @staticmethod
    def _parse_line(line: str) -> tuple[bool, str, str]:
        """Parse a SCPI line into (is_query, header, args)."""
        parts = line.split(None, 1)
        header = parts[0]
        args = parts[1].strip() if len(parts) > 1 else ""
        return header.endswith("?"), header, args

    def _respond(self, text: str) -> None:
        self._responses.append(text)

    def _handle_common_command(self, header: str, is_query: bool) -> bool:
        """Handle IEEE 488.2 and SYST:ERR? commands. Returns True if handled."""
        upper_header = header.upper()
        if upper_header == "*IDN?":
            self._respond(self._identity)
            return True
        if upper_header == "*OPC?":
            self._respond("1")
            return True
        if upper_header == "*STB?":
            self._respond(str(self._status_byte))
            return True
        if upper_header == "*RST":
            self.reset_state()
            return True
        if upper_header == "*CLS":
            self.clear_errors()
            return True
        if is_query and self.normalize(header.rstrip("?")) in ("SYST:ERR", "SYST:ERR:NEXT"):
            self._respond(self.pop_error())
            return True
        return False

    def _dispatch(self, header: str, args: str, is_query: bool) -> None:
        """Dispatch a normalized command or query to the handler tables."""
        if is_query:
            query_handler = self._query_handlers.get(self.normalize(header.rstrip("?")) + "?")
            if query_handler is not None:
                self._respond(query_handler(args))
                return
        else:
            norm_key = self.normalize(header)
            set_handler = self._set_handlers.get(norm_key)
            if set_handler is not None and norm_key in self._frozen:
                return
            if set_handler is not None:
                set_handler(args)
                return
        self.push_error(-100, "Command error")
