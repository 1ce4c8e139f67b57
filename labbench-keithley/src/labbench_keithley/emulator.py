"""Keithley 2450 source-measure unit emulator.

Provides an in-process SCPI emulator implementing the ``ScpiTransport``
protocol. Ranges snap to the discrete hardware steps, errors are recorded in
an event log read with ``:SYST:EVEN:NEXT?``, and source/sense settings are
kept per function like on the instrument.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from labbench_scpi.emulation import ScpiEmulator

VOLTAGE_RANGES = (0.02, 0.2, 2.0, 20.0, 200.0)
CURRENT_RANGES = (1e-8, 1e-7, 1e-6, 1e-5, 1e-4, 1e-3, 1e-2, 1e-1, 1.0)
RESISTANCE_RANGES = (20.0, 200.0, 2e3, 2e4, 2e5, 2e6, 2e7, 2e8)

_RANGES = {"VOLT": VOLTAGE_RANGES, "CURR": CURRENT_RANGES, "RES": RESISTANCE_RANGES}
_LEVEL_LIMITS = {"VOLT": 210.0, "CURR": 1.05}
_LIMIT_BOUNDS = {"VLIM": (0.002, 210.0), "ILIM": (1e-9, 1.05)}
_OV_PROTECTION_TOKENS = frozenset(
    {"NONE"} | {f"PROT{level}" for level in (2, 5, 10, 20, 40, 60, 80, 100, 120, 140, 160, 180)}
)
_SENSE_FUNCTIONS = {"VOLT": "VOLT:DC", "CURR": "CURR:DC", "RES": "RES"}
_EVENT_TIME_FORMAT = "%Y/%m/%d %H:%M:%S.%f"

EVENT_ERROR = 1
EVENT_WARNING = 2
EVENT_INFO = 4

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Smu2450EmulatorConfig:
    """Configuration for a Keithley 2450 emulator instance.

    Args:
        identity: ``*IDN?`` response string.
        line_frequency: Power line frequency in Hz (50 or 60).
    """

    identity: str
    line_frequency: float = 50.0

    def __post_init__(self) -> None:
        if not self.identity:
            raise ValueError("identity must be non-empty")
        if self.line_frequency not in (50.0, 60.0):
            raise ValueError(f"line_frequency must be 50 or 60, got {self.line_frequency}")


# ---------------------------------------------------------------------------
# Internal state
# ---------------------------------------------------------------------------


@dataclass
class _SourceState:
    level: float = 0.0
    readback: bool = True
    range: float = 2.0
    auto_range: bool = True
    off_mode: str = "NORM"
    limit: float = 1.05e-4
    delay: float = 0.0
    auto_delay: bool = True
    high_cap: bool = False


@dataclass
class _SenseState:
    unit: str
    range: float
    lower_limit: float
    upper_limit: float
    auto_range: bool = True
    rebound: bool = False
    nplc: float = 1.0
    average: bool = False
    average_count: int = 10
    average_mode: str = "REP"
    remote_sensing: bool = False
    auto_zero: bool = True
    offset_compensation: bool = False


def _default_sources() -> dict[str, _SourceState]:
    return {
        "VOLT": _SourceState(range=2.0, limit=1.05e-4),
        "CURR": _SourceState(range=1e-4, limit=21.0),
    }


def _default_senses() -> dict[str, _SenseState]:
    return {
        "VOLT": _SenseState(unit="VOLT", range=2.0, lower_limit=0.02, upper_limit=200.0),
        "CURR": _SenseState(unit="AMP", range=1e-4, lower_limit=1e-8, upper_limit=1.0),
        "RES": _SenseState(unit="OHM", range=2e5, lower_limit=20.0, upper_limit=2e8),
    }


@dataclass
class _SmuState:
    source_function: str = "VOLT"
    sense_function: str = "CURR"
    terminals: str = "FRON"
    output_enabled: bool = False
    interlock: bool = False
    ov_protection: str = "NONE"
    trigger: str = "idle"
    sources: dict[str, _SourceState] = field(default_factory=_default_sources)
    senses: dict[str, _SenseState] = field(default_factory=_default_senses)


def _fmt(value: float) -> str:
    return f"{value:.6E}"


def _flag(value: bool) -> str:
    return "1" if value else "0"


# ---------------------------------------------------------------------------
# Emulator
# ---------------------------------------------------------------------------


class Smu2450Emulator(ScpiEmulator):
    """In-process Keithley 2450 emulator implementing ``ScpiTransport``.

    Args:
        config: Emulator configuration.
    """

    def __init__(self, config: Smu2450EmulatorConfig) -> None:
        super().__init__(config.identity)
        self._config = config
        self._state = _SmuState()
        self._events: list[tuple[int, str, int, datetime]] = []
        self._interlock_signal = False
        self._limit_tripped = False
        self._ov_tripped = False
        self._beeps: list[tuple[float, float]] = []
        self._cleared_buffers: list[str] = []
        self._zero_refreshes = 0

        self._set_handlers = {
            "FUNC": self._set_source_function,
            "SENS:FUNC": self._set_sense_function,
            "ROUT:TERM": self._set_terminals,
            "OUTP": self._set_output,
            "OUTP:INT": self._set_interlock,
            "VOLT:PROT": self._set_ov_protection,
            "SYST:CLE": lambda _: self._events.clear(),
            "SYST:BEEP": self._beep,
            "TRIG:CONT": self._restart_trigger,
            "ABOR": self._abort,
            "SENS:AZER:ONCE": self._refresh_zero,
            "TRAC:CLE": lambda args: self._cleared_buffers.append(args.strip('"')),
        }
        self._query_handlers = {
            "FUNC?": lambda _: self._state.source_function,
            "SENS:FUNC?": lambda _: f'"{_SENSE_FUNCTIONS[self._state.sense_function]}"',
            "ROUT:TERM?": lambda _: self._state.terminals,
            "OUTP?": lambda _: _flag(self._state.output_enabled),
            "OUTP:INT?": lambda _: _flag(self._state.interlock),
            "OUTP:INT:TRIP?": lambda _: _flag(self._interlock_signal),
            "VOLT:PROT?": lambda _: self._state.ov_protection,
            "VOLT:PROT:TRIP?": lambda _: _flag(self._ov_tripped),
            "SYST:EVEN:COUN?": lambda _: str(len(self._events)),
            "SYST:EVEN:NEXT?": self._next_event,
            "SYST:LFR?": lambda _: f"{self._config.line_frequency:g}",
            "TRIG?": lambda _: f"{self._state.trigger};{self._state.trigger};",
            "DISP:BUFF:ACT?": lambda _: "defbuffer1",
        }
        for function in ("VOLT", "CURR"):
            self._register_source(function)
        for function in ("VOLT", "CURR", "RES"):
            self._register_sense(function)

    def _register_source(self, f: str) -> None:
        limit = "ILIM" if f == "VOLT" else "VLIM"

        def source() -> _SourceState:
            return self._state.sources[f]

        self._set_handlers.update(
            {
                f: lambda args: self._set_level(f, args),
                f"{f}:READ:BACK": lambda args: self._set_attr(source(), "readback", args),
                f"{f}:RANG": lambda args: self._set_source_range(f, args),
                f"{f}:RANG:AUTO": lambda args: self._set_attr(source(), "auto_range", args),
                f"OUTP:{f}:SMOD": lambda args: self._set_off_mode(f, args),
                f"{f}:{limit}": lambda args: self._set_limit(f, limit, args),
                f"{f}:DEL": lambda args: self._set_delay(f, args),
                f"{f}:DEL:AUTO": lambda args: self._set_attr(source(), "auto_delay", args),
                f"{f}:HIGH:CAP": lambda args: self._set_attr(source(), "high_cap", args),
            }
        )
        self._query_handlers.update(
            {
                f"{f}?": lambda _: _fmt(source().level),
                f"{f}:READ:BACK?": lambda _: _flag(source().readback),
                f"{f}:RANG?": lambda _: _fmt(source().range),
                f"{f}:RANG:AUTO?": lambda _: _flag(source().auto_range),
                f"OUTP:{f}:SMOD?": lambda _: source().off_mode,
                f"{f}:{limit}?": lambda _: _fmt(source().limit),
                f"{f}:{limit}:TRIP?": lambda _: _flag(self._limit_tripped),
                f"{f}:DEL?": lambda _: _fmt(source().delay),
                f"{f}:DEL:AUTO?": lambda _: _flag(source().auto_delay),
                f"{f}:HIGH:CAP?": lambda _: _flag(source().high_cap),
            }
        )

    def _register_sense(self, f: str) -> None:
        def sense() -> _SenseState:
            return self._state.senses[f]

        prefix = f"SENS:{f}"
        self._set_handlers.update(
            {
                f"{prefix}:UNIT": lambda args: self._set_unit(f, args),
                f"{prefix}:RANG": lambda args: self._set_sense_range(f, args),
                f"{prefix}:RANG:AUTO": lambda args: self._set_attr(sense(), "auto_range", args),
                f"{prefix}:RANG:AUTO:LLIM": lambda args: self._set_lower_limit(f, args),
                f"{prefix}:RANG:AUTO:REB": lambda args: self._set_attr(sense(), "rebound", args),
                f"{prefix}:NPLC": lambda args: self._set_nplc(f, args),
                f"{prefix}:AVER": lambda args: self._set_attr(sense(), "average", args),
                f"{prefix}:AVER:COUN": lambda args: self._set_average_count(f, args),
                f"{prefix}:AVER:TCON": lambda args: self._set_average_mode(f, args),
                f"{prefix}:RSEN": lambda args: self._set_attr(sense(), "remote_sensing", args),
                f"{prefix}:AZER": lambda args: self._set_attr(sense(), "auto_zero", args),
                f"{prefix}:OCOM": lambda args: self._set_attr(sense(), "offset_compensation", args),
            }
        )
        self._query_handlers.update(
            {
                f"{prefix}:UNIT?": lambda _: sense().unit,
                f"{prefix}:RANG?": lambda _: _fmt(sense().range),
                f"{prefix}:RANG:AUTO?": lambda _: _flag(sense().auto_range),
                f"{prefix}:RANG:AUTO:LLIM?": lambda _: _fmt(sense().lower_limit),
                f"{prefix}:RANG:AUTO:ULIM?": lambda _: _fmt(sense().upper_limit),
                f"{prefix}:RANG:AUTO:REB?": lambda _: _flag(sense().rebound),
                f"{prefix}:NPLC?": lambda _: _fmt(sense().nplc),
                f"{prefix}:AVER?": lambda _: _flag(sense().average),
                f"{prefix}:AVER:COUN?": lambda _: str(sense().average_count),
                f"{prefix}:AVER:TCON?": lambda _: sense().average_mode,
                f"{prefix}:RSEN?": lambda _: _flag(sense().remote_sensing),
                f"{prefix}:AZER?": lambda _: _flag(sense().auto_zero),
                f"{prefix}:OCOM?": lambda _: _flag(sense().offset_compensation),
            }
        )

    # -- Test helpers -------------------------------------------------------

    @property
    def state(self) -> _SmuState:
        """Live emulator state (for assertions)."""
        return self._state

    @property
    def beeps(self) -> tuple[tuple[float, float], ...]:
        """``(frequency, duration)`` of every beeper command received."""
        return tuple(self._beeps)

    @property
    def cleared_buffers(self) -> tuple[str, ...]:
        return tuple(self._cleared_buffers)

    @property
    def zero_refreshes(self) -> int:
        return self._zero_refreshes

    @property
    def events(self) -> tuple[tuple[int, str, int, datetime], ...]:
        """Pending event log entries ``(code, message, type, time)``."""
        return tuple(self._events)

    def add_event(self, code: int, message: str, event_type: int = EVENT_INFO) -> None:
        """Append an entry to the event log."""
        self._events.append((code, message, event_type, datetime.now()))

    def set_interlock_signal(self, present: bool) -> None:
        self._interlock_signal = present

    def set_limit_tripped(self, tripped: bool) -> None:
        self._limit_tripped = tripped

    def set_ov_tripped(self, tripped: bool) -> None:
        self._ov_tripped = tripped

    # -- Hooks --------------------------------------------------------------

    def reset_state(self) -> None:
        self._state = _SmuState()

    def clear_errors(self) -> None:
        super().clear_errors()
        self._events.clear()

    def push_error(self, code: int, message: str) -> None:
        """Queue a device error; it also appears in the event log."""
        super().push_error(code, message)
        self.add_event(code, message, EVENT_ERROR)

    # -- Set handlers -------------------------------------------------------

    def _bounded(self, args: str, low: float, high: float) -> float | None:
        value = self.parse_float_arg(args)
        if value is None:
            return None
        if not low <= value <= high:
            self.push_error(-222, "Data out of range")
            return None
        return value

    def _set_attr(self, target: object, name: str, args: str) -> None:
        value = self.parse_bool_arg(args)
        if value is not None:
            setattr(target, name, value)

    def _set_source_function(self, args: str) -> None:
        token = self.normalize(args)
        if token in ("VOLT", "CURR"):
            self._state.source_function = token
        else:
            self.push_error(-224, "Illegal parameter value")

    def _set_sense_function(self, args: str) -> None:
        token = self.normalize(args.strip().strip('"').split(":")[0])
        if token in _SENSE_FUNCTIONS:
            self._state.sense_function = token
        else:
            self.push_error(-224, "Illegal parameter value")

    def _set_terminals(self, args: str) -> None:
        token = self.normalize(args)
        if token in ("FRON", "REAR"):
            self._state.terminals = token
        else:
            self.push_error(-224, "Illegal parameter value")

    def _set_output(self, args: str) -> None:
        enabled = self.parse_bool_arg(args)
        if enabled is None:
            return
        if enabled and self._state.interlock and not self._interlock_signal:
            self.push_error(-221, "Settings conflict, interlock signal missing")
            return
        self._state.output_enabled = enabled

    def _set_interlock(self, args: str) -> None:
        self._set_attr(self._state, "interlock", args)

    def _set_ov_protection(self, args: str) -> None:
        token = args.strip().upper()
        if token in _OV_PROTECTION_TOKENS:
            self._state.ov_protection = token
        else:
            self.push_error(-224, "Illegal parameter value")

    def _set_level(self, f: str, args: str) -> None:
        limit = _LEVEL_LIMITS[f]
        value = self._bounded(args, -limit, limit)
        if value is not None:
            self._state.sources[f].level = value

    @staticmethod
    def _step(value: float, steps: tuple[float, ...]) -> float | None:
        for step in steps:
            if step >= value * (1 - 1e-9):
                return step
        return None

    def _set_source_range(self, f: str, args: str) -> None:
        value = self.parse_float_arg(args)
        if value is None:
            return
        step = self._step(abs(value), _RANGES[f])
        if step is None:
            self.push_error(-222, "Data out of range")
            return
        source = self._state.sources[f]
        source.range = step
        source.auto_range = False

    def _set_off_mode(self, f: str, args: str) -> None:
        token = args.strip().upper()
        if token in ("NORM", "HIMP", "ZERO", "GUAR"):
            self._state.sources[f].off_mode = token
        else:
            self.push_error(-224, "Illegal parameter value")

    def _set_limit(self, f: str, limit: str, args: str) -> None:
        value = self._bounded(args, *_LIMIT_BOUNDS[limit])
        if value is not None:
            self._state.sources[f].limit = value

    def _set_delay(self, f: str, args: str) -> None:
        value = self._bounded(args, 0.0, 1e4)
        if value is not None:
            source = self._state.sources[f]
            source.delay = value
            source.auto_delay = False

    def _set_unit(self, f: str, args: str) -> None:
        token = args.strip().upper()
        if token in ("VOLT", "AMP", "OHM", "WATT"):
            self._state.senses[f].unit = token
        else:
            self.push_error(-224, "Illegal parameter value")

    def _set_sense_range(self, f: str, args: str) -> None:
        value = self.parse_float_arg(args)
        if value is None:
            return
        step = self._step(abs(value), _RANGES[f])
        if step is None:
            self.push_error(-222, "Data out of range")
            return
        sense = self._state.senses[f]
        sense.range = step
        sense.auto_range = False

    def _set_lower_limit(self, f: str, args: str) -> None:
        sense = self._state.senses[f]
        value = self._bounded(args, _RANGES[f][0], sense.upper_limit)
        if value is not None:
            sense.lower_limit = self._step(value, _RANGES[f]) or sense.upper_limit

    def _set_nplc(self, f: str, args: str) -> None:
        value = self._bounded(args, 0.01, 10.0)
        if value is not None:
            self._state.senses[f].nplc = value

    def _set_average_count(self, f: str, args: str) -> None:
        value = self._bounded(args, 1.0, 100.0)
        if value is not None:
            self._state.senses[f].average_count = round(value)

    def _set_average_mode(self, f: str, args: str) -> None:
        token = self.normalize(args)
        if token in ("REP", "MOV"):
            self._state.senses[f].average_mode = token
        else:
            self.push_error(-224, "Illegal parameter value")

    def _beep(self, args: str) -> None:
        parts = args.split(",")
        if len(parts) != 2:
            self.push_error(-109, "Missing parameter")
            return
        frequency = self._bounded(parts[0], 20.0, 8e3)
        duration = self._bounded(parts[1], 1e-3, 1e2)
        if frequency is not None and duration is not None:
            self._beeps.append((frequency, duration))

    def _restart_trigger(self, args: str) -> None:
        if self.normalize(args) == "REST":
            self._state.trigger = "running"
        else:
            self.push_error(-224, "Illegal parameter value")

    def _abort(self, _: str) -> None:
        self._state.trigger = "idle"

    def _refresh_zero(self, _: str) -> None:
        self._zero_refreshes += 1

    # -- Query handlers -----------------------------------------------------

    def _next_event(self, _: str) -> str:
        if not self._events:
            return '0,"No error;0;1970/01/01 00:00:00.000"'
        code, message, event_type, stamp = self._events.pop(0)
        return f'{code},"{message};{event_type};{stamp.strftime(_EVENT_TIME_FORMAT)[:-3]}"'


# ---------------------------------------------------------------------------
# Factory functions
# ---------------------------------------------------------------------------


def make_smu2450_emulator(serial: str = "04512345") -> Smu2450Emulator:
    """Create a Keithley 2450 emulator at 50 Hz line frequency.

    Args:
        serial: Serial number for the ``*IDN?`` response.
    """
    config = Smu2450EmulatorConfig(
        identity=f"KEITHLEY INSTRUMENTS,MODEL 2450,{serial},1.7.12b",
    )
    return Smu2450Emulator(config)
