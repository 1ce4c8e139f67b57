"""Keithley 2450 source-measure unit driver.

Wraps a :class:`ScpiSession` with typed accessors for the 2450 SCPI command
set. Source and sense parameters depend on the active source or sense
function; they are reached through two accessor tables built at
construction, so the command header of every parameter is resolved against
the function the instrument currently reports:

    >>> smu = create_instrument("USB0::0x05E6::0x2450::04512345::0::INSTR")
    >>> smu.set_operation_mode("SVMI")
    <Status.OK: 0>
    >>> smu.set_source("output_value", 1.5)      # :Source:Voltage:Level:Amplitude 1.5
    <Status.OK: 0>
    >>> smu.get_sense("nplc")
    1.0

Read-only parameters (``interlock_signal``, ``limit_tripped``,
``ov_protection_tripped``) reject writes with NOT_SENT.
"""

from __future__ import annotations

import math
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import date
from typing import Any

from labbench_core.types.common import DriverInfo
from labbench_scpi.commands import CommandSpec
from labbench_scpi.config import SessionConfig, open_transport, resolve_config
from labbench_scpi.errorlog import COMMUNICATION_ENTRY, ErrorLogEntry, parse_event_entry, sentinel_entry
from labbench_scpi.params import ParamField, ParamTable, accept_choice, accept_number
from labbench_scpi.responses import COMMUNICATION_PROBLEM, UNEXPECTED_RESPONSE, unquote
from labbench_scpi.session import ScpiSession
from labbench_scpi.status import Status
from labbench_scpi.verify import Check

DRIVER_INFO = DriverInfo(name="Smu2450", version="1.0.1", released=date(2025, 9, 1))

DEFAULT_CONFIG = SessionConfig(address="USB0::0x05E6::0x2450::INSTR", name="Smu2450")
"""Default session settings; the address is replaced by :func:`create_instrument`."""

EVENT_LOG_UNREADABLE = "Could not read event buffer from SMU"
TRIGGER_RESTART_PAUSE_S = 1.0

# ---------------------------------------------------------------------------
# Command table
# ---------------------------------------------------------------------------

OUTPUT_ON = ":OUTP ON"
OUTPUT_OFF = ":OUTP OFF"
CLEAR_BUFFER = ':TRAC:CLE "defbuffer1"'
CLEAR_EVENT_LOG = ":System:Clear"
EVENT_COUNT = ":System:Eventlog:Count? All"
EVENT_NEXT = ":System:Eventlog:Next?"
BEEPER = ":System:Beeper {frequency:g},{duration:g}"

OUTPUT_STATE = CommandSpec(
    name="output state",
    template=":Output:State {value}",
    query=":Output:State?",
)
TERMINALS = CommandSpec(
    name="terminals",
    template=":Route:Terminals {value}",
    query=":Route:Terminals?",
)
SOURCE_FUNCTION = CommandSpec(
    name="source mode",
    template=":Source:Function {value}",
    query=":Source:Function?",
)
SENSE_FUNCTION = CommandSpec(
    name="sense mode",
    template=':Sense:Function "{value}"',
    query=":Sense:Function?",
)
OV_PROTECTION = CommandSpec(
    name="overvoltage protection",
    template=":Source:Voltage:Protection:Level {value}",
    query=":Source:Voltage:Protection:Level?",
)

TERMINAL_ALIASES = {
    "f": "FRON",
    "fr": "FRON",
    "fro": "FRON",
    "fron": "FRON",
    "front": "FRON",
    "r": "REAR",
    "re": "REAR",
    "rea": "REAR",
    "rear": "REAR",
}
TERMINAL_CHOICES = {"fron": "front", "front": "front", "rear": "rear"}

SOURCE_MODE_ALIASES = {
    "voltage": "VOLT",
    "volt": "VOLT",
    "v": "VOLT",
    "current": "CURR",
    "curr": "CURR",
    "i": "CURR",
}
SOURCE_MODE_CHOICES = {"volt": "voltage", "curr": "current"}

SENSE_MODE_ALIASES = {
    "voltage": "VOLT:DC",
    "volt": "VOLT:DC",
    "v": "VOLT:DC",
    "current": "CURR:DC",
    "curr": "CURR:DC",
    "i": "CURR:DC",
    "resistance": "RES",
    "res": "RES",
    "r": "RES",
}
SENSE_MODE_CHOICES = {"volt:dc": "voltage", "curr:dc": "current", "res": "resistance"}

OPERATION_MODE_ALIASES = {
    "svmi": "SVMI",
    "source:v_sense:i": "SVMI",
    "simv": "SIMV",
    "source:i_sense:v": "SIMV",
}

OUTPUT_OFF_ALIASES = {
    **dict.fromkeys(("normal", "norm", "nor", "no", "n"), "NORM"),
    **dict.fromkeys(("himpedance", "himp", "him", "hiz", "hi", "h"), "HIMP"),
    **dict.fromkeys(("zero", "zer", "ze", "z"), "ZERO"),
    **dict.fromkeys(("guard", "guar", "gua", "gu", "g"), "GUAR"),
}
OUTPUT_OFF_CHOICES = {"norm": "normal", "himp": "himpedance", "zero": "zero", "guar": "guard"}

SENSE_UNIT_ALIASES = {
    "volt": "VOLT",
    "v": "VOLT",
    "ampere": "AMP",
    "amp": "AMP",
    "a": "AMP",
    "ohm": "OHM",
    "o": "OHM",
    "watt": "WATT",
    "w": "WATT",
}
SENSE_UNIT_CHOICES = {"volt": "volt", "amp": "ampere", "ohm": "ohm", "watt": "watt"}

AVERAGE_MODE_ALIASES = {
    **dict.fromkeys(("repeatingaverage", "repeating", "repeat", "rep"), "REP"),
    **dict.fromkeys(("movingaverage", "moving", "mov"), "MOV"),
}
AVERAGE_MODE_CHOICES = {"rep": "repeatingAverage", "mov": "movingAverage"}

# Command header word of each function, keyed by the canonical mode name.
FUNCTION_WORDS = {"voltage": "Voltage", "current": "Current", "resistance": "Resistance"}

_UNITS = {"Voltage": "V", "Current": "A", "Resistance": "Ohm"}
_LIMIT_WORDS = {"Current": "Vlimit", "Voltage": "Ilimit"}
_LIMIT_UNITS = {"Current": "V", "Voltage": "A"}

SOURCE_LEVEL_RANGES = {"Current": (-1.05, 1.05), "Voltage": (-210.0, 210.0)}
SOURCE_RANGES = {"Current": (1e-8, 1.0), "Voltage": (0.02, 200.0)}
LIMIT_RANGES = {"Current": (0.002, 210.0), "Voltage": (1e-9, 1.05)}
SENSE_RANGES = {"Current": (1e-8, 1.0), "Voltage": (0.02, 200.0), "Resistance": (20.0, 200e6)}
DELAY_RANGE = (0.0, 1.0)
NPLC_RANGE = (0.01, 10.0)
AVERAGE_COUNT_RANGE = (0.0, 100.0)

# Quantisation of the overvoltage protection: a request above the
# threshold selects the token; nothing is sent for requests <= 0.
_OV_PROTECTION_LEVELS = (
    (180.0, "NONE"),
    (160.0, "PROT180"),
    (140.0, "PROT160"),
    (120.0, "PROT140"),
    (100.0, "PROT120"),
    (80.0, "PROT100"),
    (60.0, "PROT80"),
    (40.0, "PROT60"),
    (20.0, "PROT40"),
    (10.0, "PROT20"),
    (5.0, "PROT10"),
    (2.0, "PROT5"),
    (0.0, "PROT2"),
)

TONE_PARAMS = ParamTable(
    (
        ParamField("frequency", ("freq", "f")),
        ParamField("duration", ("dur", "d")),
    )
)
DEFAULT_TONE_FREQUENCY = 1e3
DEFAULT_TONE_DURATION = 1.0
TONE_FREQUENCY_RANGE = (20.0, 8e3)
TONE_DURATION_RANGE = (1e-3, 1e2)


def ov_protection_token(limit: float) -> str | None:
    """Map a protection level in volts to the next protection step.

    Returns:
        ``"PROT2"`` .. ``"PROT180"``, ``"NONE"`` above 180 V, or None for
        levels that are not positive.
    """
    for threshold, token in _OV_PROTECTION_LEVELS:
        if limit > threshold:
            return token
    return None


def _flag_spec(name: str, header: str) -> CommandSpec:
    return CommandSpec(name=name, template=header + " {value}", query=header + "?")


def _number_spec(
    name: str, header: str, value_range: tuple[float, float] | None, unit: str = ""
) -> CommandSpec:
    return CommandSpec(
        name=name,
        template=header + " {value}",
        query=header + "?",
        value_range=value_range,
        unit=unit,
    )


def _header(template: str, function: str) -> str:
    return template.format(f=function, lim=_LIMIT_WORDS.get(function, ""))


def _tone_value(text: str | None, default: float, limits: tuple[float, float]) -> float:
    if text is None:
        return default
    try:
        value = float(text)
    except ValueError:
        return default
    if math.isnan(value):
        return default
    return min(max(value, limits[0]), limits[1])


def _show(value: Any, unit: str = "") -> str:
    if value is None:
        return "unknown"
    if isinstance(value, bool):
        return "On  (1)" if value else "Off (0)"
    if isinstance(value, float):
        text = "unknown" if math.isnan(value) else f"{value:g}"
        return f"{text} {unit}".rstrip()
    return str(value)


@dataclass(frozen=True)
class Accessor:
    """Typed access to one function-dependent parameter.

    Attributes:
        read: Reads the value for a function word (``"Voltage"``, ...).
        write: Writes and verifies a value; None for read-only parameters.
        missing: Value returned when the active function is unknown.
        unit: Unit label per function word, for the settings report.
    """

    read: Callable[[str], Any]
    write: Callable[[str, Any], Status] | None = None
    missing: Any = math.nan
    unit: Mapping[str, str] | None = None

    @property
    def read_only(self) -> bool:
        return self.write is None


class Smu2450:
    """High-level driver for the Keithley 2450 source-measure unit.

    The output is switched off when the driver is created and again when it
    is closed.

    Args:
        session: An open session to the instrument.
        info: Driver version metadata.
    """

    def __init__(self, session: ScpiSession, info: DriverInfo = DRIVER_INFO) -> None:
        self._session = session
        self._info = info
        self._source_params = self._build_source_table()
        self._sense_params = self._build_sense_table()
        session.reporter.progress("%s initialized", info)
        self.output_disable()

    @property
    def session(self) -> ScpiSession:
        return self._session

    @property
    def info(self) -> DriverInfo:
        return self._info

    # -- Identity / lifecycle -----------------------------------------------

    def identify(self) -> str:
        """Query the identification string (``*IDN?``)."""
        return self._session.identify()

    def reset(self) -> Status:
        """Reset the instrument, clear the default buffer and the status, output off."""
        status = Status.first_failure(
            self._session.reset(),
            self._session.write(CLEAR_BUFFER),
            self._session.clear_status(),
            self.output_disable(),
        )
        if status is not Status.OK:
            self._session.reporter.diagnostic("reset failed")
        return status

    def clear(self) -> Status:
        """Clear the status registers (``*CLS``) and wait for completion."""
        self._session.reporter.progress("clear status")
        status = Status.first_failure(self._session.clear_status(), self._session.opc())
        if status is not Status.OK:
            self._session.reporter.diagnostic("clear failed")
        return status

    def lock(self) -> Status:
        """Front panel locking is not available on the 2450; always OK."""
        self._session.reporter.diagnostic("lock is not supported; the front panel stays usable")
        return Status.OK

    def unlock(self) -> Status:
        self._session.reporter.diagnostic("unlock is not supported; the front panel stays usable")
        return Status.OK

    def close(self) -> None:
        """Switch the output off and close the connection."""
        self._session.reporter.progress("close connection")
        self._session.write(OUTPUT_OFF)
        self._session.opc()
        self._session.close()

    def __enter__(self) -> Smu2450:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # -- Actions ------------------------------------------------------------

    def output_enable(self) -> Status:
        self._session.reporter.progress("enable output")
        return Status.first_failure(self._session.write(OUTPUT_ON), self._session.opc())

    def output_disable(self) -> Status:
        self._session.reporter.progress("disable output")
        return Status.first_failure(self._session.write(OUTPUT_OFF), self._session.opc())

    def output_tone(self, *args: Any, **kwargs: Any) -> Status:
        """Sound the beeper.

        Fields: ``frequency`` (freq, f) in Hz, default 1 kHz, clipped to
        20..8000; ``duration`` (dur, d) in s, default 1, clipped to
        0.001..100. The call returns about one second before the tone ends.

        Example:
            >>> smu.output_tone("frequency", 440, "duration", 0.5)
            <Status.OK: 0>
        """
        params = TONE_PARAMS.check(*args, **kwargs).params
        frequency = _tone_value(params.get("frequency"), DEFAULT_TONE_FREQUENCY, TONE_FREQUENCY_RANGE)
        duration = _tone_value(params.get("duration"), DEFAULT_TONE_DURATION, TONE_DURATION_RANGE)
        self._session.reporter.progress("output tone %g Hz for %g s", frequency, duration)
        status = self._session.write(BEEPER.format(frequency=frequency, duration=duration))
        self._session.pause(max(0.0, duration - 1.0))
        return Status.first_failure(status, self._session.opc())

    def restart_trigger(self) -> Status:
        """Restart continuous measurements."""
        self._session.reporter.progress("restart trigger (continuous measurements)")
        status = self._session.write(":Trigger:Continuous Restart")
        self._session.pause(TRIGGER_RESTART_PAUSE_S)
        return status

    def abort_trigger(self) -> Status:
        self._session.reporter.progress("abort trigger")
        return Status.first_failure(self._session.write(":Abort"), self._session.opc())

    def refresh_zero_reference(self) -> Status:
        """Refresh the reference and zero measurements once."""
        self._session.reporter.progress("refresh of the reference and zero measurement")
        return Status.first_failure(self._session.write(":Sense:Azero:Once"), self._session.opc())

    # -- Instrument state ---------------------------------------------------

    @property
    def terminals(self) -> str:
        """``"front"``, ``"rear"`` or a marker string."""
        return self._session.query_choice(TERMINALS.query, TERMINAL_CHOICES)

    def set_terminals(self, terminals: Any) -> Status:
        """Select the front or rear terminals (prefixes of front/rear accepted)."""
        return self._session.set_choice(
            TERMINALS,
            terminals,
            TERMINAL_ALIASES,
            readback=lambda: self.terminals,
            expected=lambda token: TERMINAL_CHOICES[token.lower()],
        )

    @property
    def output_state(self) -> float:
        """1.0 for on, 0.0 for off, NaN if unknown."""
        state = self._session.query_state(OUTPUT_STATE.query)
        return math.nan if state is None else float(state)

    def set_output_state(self, enabled: Any) -> Status:
        return self._session.set_flag(OUTPUT_STATE, enabled)

    @property
    def source_mode(self) -> str:
        """``"voltage"``, ``"current"`` or a marker string."""
        return self._session.query_choice(SOURCE_FUNCTION.query, SOURCE_MODE_CHOICES)

    def set_source_mode(self, mode: Any) -> Status:
        return self._session.set_choice(
            SOURCE_FUNCTION,
            mode,
            SOURCE_MODE_ALIASES,
            readback=lambda: self.source_mode,
            expected=lambda token: SOURCE_MODE_CHOICES[token.lower()],
        )

    @property
    def sense_mode(self) -> str:
        """``"voltage"``, ``"current"``, ``"resistance"`` or a marker string."""
        return self._session.query_choice(SENSE_FUNCTION.query, SENSE_MODE_CHOICES)

    def set_sense_mode(self, mode: Any) -> Status:
        return self._session.set_choice(
            SENSE_FUNCTION,
            mode,
            SENSE_MODE_ALIASES,
            readback=lambda: self.sense_mode,
            expected=lambda token: SENSE_MODE_CHOICES[token.lower()],
        )

    @property
    def operation_mode(self) -> str:
        """``"Source:V_Sense:I"``, ``"Source:I_Sense:V"`` or ``"unknown"``."""
        source, sense = self.source_mode, self.sense_mode
        if source == "voltage" and sense == "current":
            return "Source:V_Sense:I"
        if source == "current" and sense == "voltage":
            return "Source:I_Sense:V"
        return "unknown"

    def set_operation_mode(self, mode: Any) -> Status:
        """Set sense and source function together.

        ``SVMI`` (or ``Source:V_Sense:I``) sources voltage and measures
        current; ``SIMV`` (or ``Source:I_Sense:V``) the reverse.
        """
        token = self._session.accepted(accept_choice(mode, OPERATION_MODE_ALIASES, "operation mode"))
        if token is None:
            return Status.NOT_SENT
        if token == "SVMI":
            return Status.first_failure(self.set_sense_mode("current"), self.set_source_mode("voltage"))
        return Status.first_failure(self.set_sense_mode("voltage"), self.set_source_mode("current"))

    @property
    def trigger_state(self) -> str:
        """First field of the trigger state (e.g. ``"idle"``), or a marker string."""
        reply = self._session.query(":Trigger:State?")
        if not reply.ok:
            return COMMUNICATION_PROBLEM
        parts = unquote(reply.text).lower().split(";")
        return parts[0] if len(parts) == 3 else UNEXPECTED_RESPONSE

    @property
    def power_line_frequency(self) -> float:
        """Line frequency in Hz used for NPLC timing."""
        return self._session.query_float(":System:LFrequency?")

    @property
    def active_buffer(self) -> str:
        reply = self._session.query(":Display:Buffer:Active?")
        return unquote(reply.text).lower() if reply.ok else COMMUNICATION_PROBLEM

    # -- Source and sense parameters ----------------------------------------

    @property
    def source_parameter_names(self) -> tuple[str, ...]:
        return tuple(self._source_params)

    @property
    def sense_parameter_names(self) -> tuple[str, ...]:
        return tuple(self._sense_params)

    def get_source(self, name: str) -> Any:
        """Read a source parameter for the active source function.

        Raises:
            KeyError: If *name* is not a source parameter.
        """
        return self._get(self._source_params, name, self._source_word())

    def set_source(self, name: str, value: Any) -> Status:
        """Write and verify a source parameter for the active source function.

        Raises:
            KeyError: If *name* is not a source parameter.
        """
        return self._set(self._source_params, name, value, self._source_word)

    def get_sense(self, name: str) -> Any:
        """Read a sense parameter for the active sense function.

        Raises:
            KeyError: If *name* is not a sense parameter.
        """
        return self._get(self._sense_params, name, self._sense_word())

    def set_sense(self, name: str, value: Any) -> Status:
        """Write and verify a sense parameter for the active sense function.

        Raises:
            KeyError: If *name* is not a sense parameter.
        """
        return self._set(self._sense_params, name, value, self._sense_word)

    def source_parameters(self) -> dict[str, Any]:
        """All source parameters of the active source function."""
        function = self._source_word()
        return {name: self._get(self._source_params, name, function) for name in self._source_params}

    def sense_parameters(self) -> dict[str, Any]:
        """All sense parameters of the active sense function."""
        function = self._sense_word()
        return {name: self._get(self._sense_params, name, function) for name in self._sense_params}

    def set_source_parameters(self, values: Mapping[str, Any]) -> dict[str, Status]:
        """Apply several source parameters; unknown names are reported and skipped."""
        return self._set_many(self._source_params, values, self._source_word, "source")

    def set_sense_parameters(self, values: Mapping[str, Any]) -> dict[str, Status]:
        """Apply several sense parameters; unknown names are reported and skipped."""
        return self._set_many(self._sense_params, values, self._sense_word, "sense")

    def _source_word(self) -> str | None:
        return self._function_word(self.source_mode, "source")

    def _sense_word(self) -> str | None:
        return self._function_word(self.sense_mode, "sense")

    def _function_word(self, mode: str, kind: str) -> str | None:
        word = FUNCTION_WORDS.get(mode)
        if word is None:
            self._session.reporter.diagnostic("%s function unknown (%s)", kind, mode)
        return word

    @staticmethod
    def _lookup(table: Mapping[str, Accessor], name: str) -> Accessor:
        key = name.strip().lower()
        if key not in table:
            raise KeyError(f"Unknown parameter {name!r}; expected one of {sorted(table)}")
        return table[key]

    def _get(self, table: Mapping[str, Accessor], name: str, function: str | None) -> Any:
        accessor = self._lookup(table, name)
        if function is None:
            return accessor.missing
        return accessor.read(function)

    def _set(
        self,
        table: Mapping[str, Accessor],
        name: str,
        value: Any,
        function_word: Callable[[], str | None],
    ) -> Status:
        accessor = self._lookup(table, name)
        if accessor.write is None:
            self._session.reporter.diagnostic("%s is read-only. Nothing sent.", name)
            return Status.NOT_SENT
        function = function_word()
        if function is None:
            return Status.NOT_SENT
        return accessor.write(function, value)

    def _set_many(
        self,
        table: Mapping[str, Accessor],
        values: Mapping[str, Any],
        function_word: Callable[[], str | None],
        kind: str,
    ) -> dict[str, Status]:
        results: dict[str, Status] = {}
        for name, value in values.items():
            if not isinstance(name, str) or name.strip().lower() not in table:
                self._session.reporter.diagnostic("unknown %s parameter %r ignored", kind, name)
                continue
            results[name] = self._set(table, name, value, function_word)
        return results

    # -- Accessor tables ----------------------------------------------------

    def _flag(self, name: str, header: str) -> Accessor:
        session = self._session
        return Accessor(
            lambda f: session.query_state(_header(header, f) + "?"),
            lambda f, value: session.set_flag(_flag_spec(name, _header(header, f)), value),
            missing=None,
        )

    def _status_flag(self, header: str) -> Accessor:
        session = self._session
        return Accessor(lambda f: session.query_state(_header(header, f) + "?"), missing=None)

    def _number(
        self,
        name: str,
        header: str,
        ranges: Mapping[str, tuple[float, float]] | tuple[float, float],
        units: Mapping[str, str],
        check: Check = Check.RELATIVE,
    ) -> Accessor:
        session = self._session

        def write(f: str, value: Any) -> Status:
            value_range = ranges if isinstance(ranges, tuple) else ranges.get(f)
            spec = _number_spec(name, _header(header, f), value_range, units.get(f, ""))
            return session.set_number(spec, value, check=check)

        return Accessor(lambda f: session.query_float(_header(header, f) + "?"), write, unit=units)

    def _choice(self, name: str, header: str, aliases: Mapping[str, str], choices: Mapping[str, str]) -> Accessor:
        session = self._session
        return Accessor(
            lambda f: session.query_choice(_header(header, f) + "?", choices),
            lambda f, value: session.set_choice(
                CommandSpec(name=name, template=_header(header, f) + " {value}", query=_header(header, f) + "?"),
                value,
                aliases,
            ),
            missing=UNEXPECTED_RESPONSE,
        )

    def _build_source_table(self) -> dict[str, Accessor]:
        return {
            "output_value": self._number(
                "source output value", ":Source:{f}:Level:Amplitude", SOURCE_LEVEL_RANGES, _UNITS
            ),
            "readback": self._flag("source readback", ":Source:{f}:Read:Back"),
            "range": self._number(
                "source range", ":Source:{f}:Range", SOURCE_RANGES, _UNITS, check=Check.RANGE
            ),
            "auto_range": self._flag("source auto range", ":Source:{f}:Range:Auto"),
            "output_off_state": self._choice(
                "output off state", ":Output:{f}:SMode", OUTPUT_OFF_ALIASES, OUTPUT_OFF_CHOICES
            ),
            "interlock": self._flag("interlock", ":Output:Interlock:State"),
            "interlock_signal": self._status_flag(":Output:Interlock:Tripped"),
            "limit_value": self._number(
                "source limit", ":Source:{f}:{lim}", LIMIT_RANGES, _LIMIT_UNITS
            ),
            "limit_tripped": self._status_flag(":Source:{f}:{lim}:Tripped"),
            "ov_protection_value": Accessor(
                self._get_ov_protection, self._set_ov_protection, unit={"Voltage": "V", "Current": "V"}
            ),
            "ov_protection_tripped": self._status_flag(":Source:Voltage:Protection:Tripped"),
            "delay": self._number(
                "source delay", ":Source:{f}:Delay", DELAY_RANGE, {"Voltage": "s", "Current": "s"}
            ),
            "auto_delay": self._flag("source auto delay", ":Source:{f}:Delay:Auto"),
            "high_cap_mode": self._flag("high capacitance mode", ":Source:{f}:High:Cap"),
        }

    def _build_sense_table(self) -> dict[str, Accessor]:
        session = self._session
        return {
            "unit": self._choice("sense unit", ":Sense:{f}:Unit", SENSE_UNIT_ALIASES, SENSE_UNIT_CHOICES),
            "range": self._number(
                "sense range", ":Sense:{f}:Range", SENSE_RANGES, _UNITS, check=Check.RANGE
            ),
            "auto_range": self._flag("sense auto range", ":Sense:{f}:Range:Auto"),
            "auto_range_lower_limit": Accessor(
                lambda f: session.query_float(f":Sense:{f}:Range:Auto:LLimit?"),
                self._set_lower_limit,
                unit=_UNITS,
            ),
            "auto_range_rebound": self._flag("auto range rebound", ":Sense:{f}:Range:Auto:Rebound"),
            "nplc": self._number("NPLC", ":Sense:{f}:NPLCycles", NPLC_RANGE, {}),
            "average_count": Accessor(self._get_average_count, self._set_average_count),
            "average_mode": self._choice(
                "average mode", ":Sense:{f}:Average:Tcontrol", AVERAGE_MODE_ALIASES, AVERAGE_MODE_CHOICES
            ),
            "remote_sensing": self._flag("remote sensing", ":Sense:{f}:Rsense"),
            "auto_zero": self._flag("auto zero", ":Sense:{f}:Azero:State"),
            "offset_compensation": self._flag("offset compensation", ":Sense:{f}:Ocompensated"),
        }

    # -- Special accessors --------------------------------------------------

    def _get_ov_protection(self, _function: str) -> float:
        """Protection level in V; inf for NONE, NaN if unknown."""
        reply = self._session.query(OV_PROTECTION.query)
        if not reply.ok:
            return math.nan
        token = unquote(reply.text).lower()
        if token == "none":
            return math.inf
        if token.startswith("prot") and len(token) >= 5:
            try:
                return float(token[4:])
            except ValueError:
                return math.nan
        return math.nan

    def _set_ov_protection(self, _function: str, value: Any) -> Status:
        limit = self._session.accepted(accept_number(value, OV_PROTECTION.name))
        if limit is None:
            return Status.NOT_SENT
        token = ov_protection_token(limit)
        if token is None:
            self._session.reporter.diagnostic(
                "invalid %s: %s V is not positive. Nothing sent.", OV_PROTECTION.name, limit
            )
            return Status.NOT_SENT
        return self._session.apply(OV_PROTECTION, token, check=Check.EXACT)

    def _set_lower_limit(self, function: str, value: Any) -> Status:
        name = "auto range lower limit"
        limit = self._session.accepted(accept_number(value, name))
        if limit is None:
            return Status.NOT_SENT
        low, high = SENSE_RANGES[function]
        upper = self._session.query_float(f":Sense:{function}:Range:Auto:ULimit?")
        if not math.isnan(upper):
            high = upper
        spec = _number_spec(name, f":Sense:{function}:Range:Auto:LLimit", (low, high), _UNITS[function])
        return self._session.apply(spec, limit, check=Check.RANGE)

    def _get_average_count(self, function: str) -> float:
        """0 while averaging is off, the filter count otherwise."""
        state = self._session.query_state(f":Sense:{function}:Average:State?")
        if state is None:
            return math.nan
        if not state:
            return 0.0
        return self._session.query_float(f":Sense:{function}:Average:Count?")

    def _set_average_count(self, function: str, value: Any) -> Status:
        number = self._session.accepted(accept_number(value, "average count"))
        if number is None:
            return Status.NOT_SENT
        low, high = AVERAGE_COUNT_RANGE
        count = round(min(max(number, low), high))
        state = _flag_spec("averaging", f":Sense:{function}:Average:State")
        status = self._session.apply(state, count > 0, check=Check.EXACT)
        if count == 0 or status is not Status.OK:
            return status
        spec = _number_spec("average count", f":Sense:{function}:Average:Count", AVERAGE_COUNT_RANGE)
        return self._session.apply(spec, count)

    # -- Error log ----------------------------------------------------------

    def error_messages(self) -> tuple[ErrorLogEntry, ...]:
        """Read the new event log entries and return the full session log.

        The number of pending events is queried first and that many entries
        are read, bounded by the session's ``max_error_reads``.
        """
        count = self._session.query_int(EVENT_COUNT)
        entries: list[ErrorLogEntry] = []
        if count is None or count < 0:
            entries.append(sentinel_entry("", EVENT_LOG_UNREADABLE))
        else:
            limit = min(count, self._session.config.max_error_reads)
            if limit < count:
                self._session.reporter.diagnostic("reading %d of %d pending events", limit, count)
            for _ in range(limit):
                reply = self._session.query(EVENT_NEXT)
                if not reply.ok:
                    entries.append(sentinel_entry("", COMMUNICATION_ENTRY))
                    break
                entry = parse_event_entry(reply.text)
                if entry is None:
                    break
                entries.append(entry)
        self._session.record_errors(entries)
        return self._session.error_log.entries

    def clear_error_messages(self) -> Status:
        """Clear the instrument event log and the session error log."""
        return self._session.clear_error_log(CLEAR_EVENT_LOG)

    # -- Report -------------------------------------------------------------

    def settings_report(self) -> str:
        """Render all instrument settings as a text listing."""
        source_word = self._source_word()
        sense_word = self._sense_word()
        output_state = self.output_state
        lines = [
            f"Settings of {self._session.name}",
            f"  ActiveBuffer         = {self.active_buffer}",
            f"  OutputState          = {_show(None if math.isnan(output_state) else bool(output_state))}",
            f"  TriggerState         = {self.trigger_state}",
            f"  Terminals            = {self.terminals}",
            f"  PowerLineFrequency   = {_show(self.power_line_frequency, 'Hz')}",
            f"  OperationMode        = {self.operation_mode}",
            f"  SourceMode           = {self.source_mode}",
            "  SourceParameters:",
        ]
        lines.extend(self._report_lines(self._source_params, source_word))
        lines.append(f"  SenseMode            = {self.sense_mode}")
        lines.append("  SenseParameters:")
        lines.extend(self._report_lines(self._sense_params, sense_word))
        entries = self.error_messages()
        if entries:
            lines.append("  ErrorMessages:")
            lines.extend(f"   {entry}" for entry in entries)
        else:
            lines.append("  ErrorMessages        = none")
        self._session.opc()
        return "\n".join(lines)

    def _report_lines(self, table: Mapping[str, Accessor], function: str | None) -> list[str]:
        lines = []
        for name, accessor in table.items():
            value = self._get(table, name, function)
            unit = accessor.unit.get(function, "") if accessor.unit and function else ""
            lines.append(f"   .{name:<20s}= {_show(value, unit)}")
        return lines


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


def create_instrument(target: str | Mapping[str, Any] | SessionConfig, **overrides: Any) -> Smu2450:
    """Create a Keithley 2450 driver.

    Args:
        target: VISA resource string, a mapping of session settings, or a
            complete :class:`SessionConfig`.
        **overrides: Session fields replacing the defaults.

    Returns:
        Connected driver instance with the output switched off.

    Raises:
        InstrumentConnectionError: If the transport cannot be opened.
    """
    config = resolve_config(target, DEFAULT_CONFIG, **overrides)
    session = ScpiSession(open_transport(config), config)
    return Smu2450(session)
