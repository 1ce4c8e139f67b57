"""SCPI session: one device, one transport, status codes instead of exceptions.

:class:`ScpiSession` wraps a transport and provides the operations every
driver builds on:

* ``write`` / ``query`` returning :class:`Status` / :class:`Reply`
  (transport exceptions never escape),
* typed queries that collapse failures to sentinels,
* the setter pipeline validate -> build -> write -> read back -> verify,
* the session error log and its drain/clear operations,
* echo handling for devices that repeat every received line.

Typical usage::

    from labbench_scpi import ScpiSession, SessionConfig, open_transport

    config = SessionConfig(address="USB0::0x05E6::0x2450::04512345::0::INSTR", name="Smu2450")
    session = ScpiSession(open_transport(config), config)

    print(session.identify())
    nplc = session.query_float(":SENS:VOLT:NPLC?")
    for entry in session.drain_errors():
        print(entry)

    session.close()
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable, Mapping
from typing import TYPE_CHECKING, Any

from labbench_core.types.common import InstrumentIdentity

from labbench_scpi.commands import CommandSpec, CommandValue
from labbench_scpi.config import SessionConfig
from labbench_scpi.errorlog import ErrorLog, ErrorLogEntry, drain_queue, parse_error_entry
from labbench_scpi.errors import ScpiTimeoutError, ScpiTransportError
from labbench_scpi.messages import Reporter, Verbosity
from labbench_scpi.params import Accepted, ParamResult, accept_choice, accept_flag, accept_number
from labbench_scpi.responses import (
    DEFAULT_TRUE_TOKENS,
    parse_choice,
    parse_flag,
    parse_float,
    parse_integer,
    parse_state,
    unquote,
)
from labbench_scpi.status import Reply, Status
from labbench_scpi.verify import Check, ReadbackTolerance, verify

if TYPE_CHECKING:
    from labbench_scpi.transport import ScpiTransport

logger = logging.getLogger(__name__)

Readback = Callable[[], Any]


def parse_idn_response(response: str) -> InstrumentIdentity:
    """Parse a SCPI ``*IDN?`` response into an :class:`InstrumentIdentity`.

    The standard response has four comma-separated fields::

        manufacturer,model,serial_number,firmware_version

    Extra fields are joined into the firmware string.

    Raises:
        ValueError: If the response has fewer than four fields.
    """
    parts = [p.strip() for p in response.split(",")]
    if len(parts) < 4:
        raise ValueError(
            f"Expected at least 4 comma-separated fields in *IDN? response, "
            f"got {len(parts)}: {response!r}"
        )
    return InstrumentIdentity(
        manufacturer=parts[0],
        model=parts[1],
        serial=parts[2],
        firmware=",".join(parts[3:]),
    )


def _same_line(received: str, sent: str) -> bool:
    return " ".join(received.split()).upper() == " ".join(sent.split()).upper()


class ScpiSession:
    """Protocol session for one instrument.

    The session holds its transport by composition and never lets a
    :class:`ScpiTransportError` escape: writes report :attr:`Status.FAILED`,
    queries return a failed :class:`Reply`, and the typed queries map that
    to NaN, False or a marker string.

    Args:
        transport: An open transport.
        config: Session settings; a default in-process config if omitted.
        sleep: Pause function, replaceable in tests.
    """

    def __init__(
        self,
        transport: ScpiTransport,
        config: SessionConfig | None = None,
        *,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._transport = transport
        self._config = config or SessionConfig(address="in-process")
        self._sleep = sleep
        self._reporter = Reporter(self._config.name, self._config.verbosity)
        self._error_log = ErrorLog()

    # -- Properties ----------------------------------------------------------

    @property
    def config(self) -> SessionConfig:
        return self._config

    @property
    def name(self) -> str:
        return self._config.name

    @property
    def reporter(self) -> Reporter:
        return self._reporter

    @property
    def verbosity(self) -> Verbosity:
        return self._reporter.verbosity

    @verbosity.setter
    def verbosity(self, value: Verbosity | str | bool) -> None:
        self._reporter.verbosity = Verbosity.parse(value)

    @property
    def tolerance(self) -> ReadbackTolerance:
        return self._config.tolerance

    @property
    def error_log(self) -> ErrorLog:
        """The append-only error history of this session."""
        return self._error_log

    # -- Core exchanges ------------------------------------------------------

    def write(self, command: str) -> Status:
        """Send a command that has no response.

        On an echoing device the echoed line is read and discarded.

        Returns:
            OK, or FAILED if the transport raised.
        """
        self._reporter.traffic(">>", command)
        try:
            self._transport.write(command)
            if self._config.echo:
                self.pause(self._config.settle.write_s)
                self._discard_echo(command)
        except ScpiTransportError as exc:
            self._reporter.diagnostic("write %r failed: %s", command, exc)
            return Status.FAILED
        return Status.OK

    def query(self, command: str) -> Reply:
        """Send a query and read one response line.

        On an echoing device the first line is compared with the command
        and, if it is the echo, the next line is taken as the response.

        Returns:
            The reply; ``Reply(FAILED, "")`` if the transport raised.
        """
        self._reporter.traffic(">>", command)
        try:
            self._transport.write(command)
            if self._config.echo:
                self.pause(self._config.settle.query_s)
            line = self._transport.read().strip()
            if self._config.echo and _same_line(line, command):
                line = self._transport.read().strip()
        except ScpiTransportError as exc:
            self._reporter.diagnostic("query %r failed: %s", command, exc)
            return Reply.failed()
        self._reporter.traffic("<<", line)
        return Reply(Status.OK, line)

    def _discard_echo(self, command: str) -> None:
        try:
            line = self._transport.read().strip()
        except ScpiTimeoutError:
            logger.debug("%s: no echo received for %r", self.name, command)
            return
        if not _same_line(line, command):
            self._reporter.diagnostic("unexpected echo %r for %r", line, command)

    # -- Typed queries -------------------------------------------------------

    def query_float(self, command: str, scale: float = 1.0) -> float:
        """Query a number, divided by *scale*; NaN on failure."""
        return parse_float(self.query(command), scale)

    def query_int(self, command: str) -> int | None:
        """Query an integer; None on failure."""
        return parse_integer(self.query(command))

    def query_flag(self, command: str, true_tokens: Iterable[str] = DEFAULT_TRUE_TOKENS) -> bool:
        """Query a status flag; False on failure (fail-safe)."""
        return parse_flag(self.query(command), true_tokens)

    def query_state(self, command: str) -> bool | None:
        """Query a boolean setting; None on failure."""
        return parse_state(self.query(command))

    def query_choice(self, command: str, choices: Mapping[str, str]) -> str:
        """Query an enumerated setting mapped to its canonical name."""
        return parse_choice(self.query(command), choices)

    def query_text(self, command: str) -> str:
        """Query a free-text value (quotes removed); empty on failure."""
        reply = self.query(command)
        return unquote(reply.text) if reply.ok else ""

    # -- IEEE 488.2 convenience methods --------------------------------------

    def identify(self) -> str:
        """Raw ``*IDN?`` string, empty on failure."""
        return self.query_text("*IDN?")

    def get_identity(self) -> InstrumentIdentity | None:
        """Parsed ``*IDN?`` response, or None if it is missing or malformed."""
        text = self.identify()
        try:
            return parse_idn_response(text)
        except ValueError as exc:
            self._reporter.diagnostic("%s", exc)
            return None

    def opc(self) -> Status:
        """Wait for pending operations (``*OPC?``)."""
        return Status.OK if self.query("*OPC?").ok else Status.FAILED

    def reset(self, command: str = "*RST") -> Status:
        """Reset the device and wait for its firmware to settle."""
        self._reporter.progress("reset")
        status = self.write(command)
        self.pause(self._config.settle.reset_s)
        return status

    def clear_status(self, command: str = "*CLS") -> Status:
        """Clear the status registers and device error queue."""
        status = self.write(command)
        self.pause(self._config.settle.clear_s)
        return status

    def pause(self, seconds: float) -> None:
        if seconds > 0:
            self._sleep(seconds)

    # -- Setter pipeline -----------------------------------------------------

    def apply(
        self,
        spec: CommandSpec,
        value: CommandValue | None,
        *,
        check: Check = Check.RELATIVE,
        readback: Readback | None = None,
    ) -> Status:
        """Write a validated value and verify it by readback.

        Args:
            spec: Command description.
            value: Client value; None means nothing is sent.
            check: Comparison used for the readback.
            readback: Returns the applied value in client units; defaults
                to querying ``spec.query`` and parsing by value type.

        Returns:
            NOT_SENT if *value* is None, OK if the command was written and
            the readback confirms the (clipped) value, MISMATCH otherwise.
            A failed write is still read back but never reports OK.
        """
        if value is None:
            return Status.NOT_SENT
        requested: Any = value
        if not isinstance(value, (bool, str)):
            requested = spec.clip(float(value))
        self._reporter.progress("set %s to %s", spec.name, spec.describe(value))
        written = self.write(spec.build(value)) is Status.OK
        if not written:
            self._reporter.diagnostic("parameter '%s' was not sent", spec.name)
        actual = readback() if readback is not None else self.read_back(spec, requested)
        if written and verify(check, requested, actual, self._config.tolerance):
            return Status.OK
        self._reporter.diagnostic(
            "parameter '%s' was not set properly (wanted value: %s, actually set value: %s)",
            spec.name,
            requested,
            actual,
        )
        return Status.MISMATCH

    def read_back(self, spec: CommandSpec, requested: Any) -> Any:
        """Query ``spec.query`` and parse it like *requested*.

        Raises:
            ValueError: If the command has no readback query.
        """
        if spec.query is None:
            raise ValueError(f"Command {spec.name!r} has no readback query")
        reply = self.query(spec.query)
        if isinstance(requested, bool):
            return parse_state(reply)
        if isinstance(requested, str):
            return unquote(reply.text) if reply.ok else None
        return parse_float(reply, spec.unit_scale)

    def set_number(
        self,
        spec: CommandSpec,
        value: Any,
        *,
        check: Check = Check.RELATIVE,
        readback: Readback | None = None,
    ) -> Status:
        """Validate a numeric input, then :meth:`apply` it."""
        accepted = self.accepted(accept_number(value, spec.name))
        if accepted is None:
            return Status.NOT_SENT
        return self.apply(spec, accepted, check=check, readback=readback)

    def set_flag(self, spec: CommandSpec, value: Any, *, readback: Readback | None = None) -> Status:
        """Validate a boolean input, then :meth:`apply` it with exact readback."""
        accepted = self.accepted(accept_flag(value, spec.name))
        if accepted is None:
            return Status.NOT_SENT
        return self.apply(spec, bool(accepted), check=Check.EXACT, readback=readback)

    def set_choice(
        self,
        spec: CommandSpec,
        value: Any,
        aliases: Mapping[str, str],
        *,
        readback: Readback | None = None,
        expected: Callable[[str], Any] | None = None,
    ) -> Status:
        """Validate an enumerated input, then :meth:`apply` it.

        Args:
            spec: Command description.
            value: Client input.
            aliases: Accepted spelling -> wire token.
            readback: Custom readback returning the canonical name.
            expected: Maps the accepted wire token to the value *readback*
                is expected to return; identity if omitted.
        """
        accepted = self.accepted(accept_choice(value, aliases, spec.name))
        if accepted is None:
            return Status.NOT_SENT
        token = str(accepted)
        if readback is None:
            return self.apply(spec, token, check=Check.EXACT)
        want = expected(token) if expected is not None else token

        def confirmed() -> Any:
            actual = readback()
            if isinstance(actual, str) and actual.lower() == str(want).lower():
                return token
            return actual

        return self.apply(spec, token, check=Check.EXACT, readback=confirmed)

    def accepted(self, result: ParamResult) -> Any:
        """Return the accepted value, or None after reporting a rejection.

        Absent values are not reported; they simply mean "leave unchanged".
        """
        if isinstance(result, Accepted):
            return result.value
        if not result.is_absent:
            self._reporter.diagnostic("invalid %s: %s. Nothing sent.", result.name, result.reason)
        return None

    # -- Error log -----------------------------------------------------------

    def collect_errors(
        self,
        fetch: Callable[[], Reply],
        parse: Callable[[str], ErrorLogEntry | None],
        limit: int | None = None,
    ) -> tuple[ErrorLogEntry, ...]:
        """Drain a queue with a custom fetch/parse pair into the session log.

        Returns:
            Only the entries added by this drain.
        """
        entries = drain_queue(fetch, parse, limit or self._config.max_error_reads)
        self.record_errors(entries)
        return tuple(entries)

    def record_errors(self, entries: Iterable[ErrorLogEntry]) -> None:
        """Append entries to the session log and report them."""
        for entry in entries:
            self._error_log.append(entry)
            self._reporter.diagnostic("device reported %s", entry)

    def drain_errors(self, query: str = "SYST:ERR?") -> tuple[ErrorLogEntry, ...]:
        """Drain the SCPI error queue into the session log.

        Returns:
            Only the entries added by this drain (empty if the device queue
            was empty).
        """
        return self.collect_errors(lambda: self.query(query), parse_error_entry)

    def clear_error_log(self, command: str = "*CLS") -> Status:
        """Clear the device-side queue, then the local log.

        The local log is kept if the device command could not be sent.
        """
        status = self.write(command)
        if status is not Status.OK:
            self._reporter.diagnostic("could not clear device error queue; local error log kept")
            return status
        self.pause(self._config.settle.clear_s)
        self._error_log.clear()
        self._reporter.progress("error log cleared")
        return Status.OK

    # -- Lifecycle -----------------------------------------------------------

    def close(self) -> None:
        """Close the underlying transport."""
        self._transport.close()

    def __enter__(self) -> ScpiSession:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

