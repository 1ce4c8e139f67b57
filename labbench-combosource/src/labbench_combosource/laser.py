"""ComboSource 6301 laser diode controller driver.

Wraps a :class:`ScpiSession` with typed methods for the Arroyo ComboSource
6301 (laser current/power source with integrated TEC). Client units are mA,
mW and degC; the wire carries A and W.

Every setter validates its input, writes the command, reads the setting
back and returns a :class:`Status`:

    >>> laser = create_instrument("ASRL3::INSTR")
    >>> laser.set_current_limit(150)
    <Status.OK: 0>
    >>> laser.set_current(100)
    <Status.OK: 0>
    >>> laser.set_mode("bogus")  # nothing is sent
    <Status.NOT_SENT: 1>
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, replace
from datetime import date
from enum import Enum
from typing import Any

from labbench_core.types.common import DriverInfo
from labbench_scpi.commands import CommandSpec
from labbench_scpi.config import SessionConfig, open_transport, resolve_config
from labbench_scpi.errorlog import ErrorLogEntry
from labbench_scpi.params import TOKEN_PATTERN, ParamField, ParamTable, format_parameter_set
from labbench_scpi.responses import is_marker
from labbench_scpi.session import ScpiSession
from labbench_scpi.status import Status

DRIVER_INFO = DriverInfo(name="ComboSource6301", version="1.0.0", released=date(2026, 1, 19))

DEFAULT_CONFIG = SessionConfig(address="ASRL1::INSTR", name="ComboSource6301")
"""Default session settings; the address is replaced by :func:`create_instrument`."""

# ---------------------------------------------------------------------------
# Command table
# ---------------------------------------------------------------------------

MA_TO_A = 1e-3
MW_TO_W = 1e-3

CURRENT = CommandSpec(
    name="current",
    template="SOUR:CURR {value}",
    query="SOUR:CURR?",
    unit_scale=MA_TO_A,
    value_range=(0.0, 1000.0),
    decimals=6,
    unit="mA",
)
CURRENT_LIMIT = CommandSpec(
    name="current limit",
    template="SOUR:CURR:LIM {value}",
    query="SOUR:CURR:LIM?",
    unit_scale=MA_TO_A,
    value_range=(0.0, 1000.0),
    decimals=6,
    unit="mA",
)
POWER = CommandSpec(
    name="power",
    template="SOUR:POW {value}",
    query="SOUR:POW?",
    unit_scale=MW_TO_W,
    value_range=(0.0, 500.0),
    decimals=6,
    unit="mW",
)
POWER_LIMIT = CommandSpec(
    name="power limit",
    template="SOUR:POW:LIM {value}",
    query="SOUR:POW:LIM?",
    unit_scale=MW_TO_W,
    value_range=(0.0, 500.0),
    decimals=6,
    unit="mW",
)
TEMP_LIMIT_LOW = CommandSpec(
    name="minimum temperature limit",
    template="SOUR:TEMP:LIM:LOW {value}",
    query="SOUR:TEMP:LIM:LOW?",
    value_range=(-20.0, 80.0),
    decimals=3,
    unit="degC",
)
TEMP_LIMIT_HIGH = CommandSpec(
    name="maximum temperature limit",
    template="SOUR:TEMP:LIM:HIGH {value}",
    query="SOUR:TEMP:LIM:HIGH?",
    value_range=(-20.0, 80.0),
    decimals=3,
    unit="degC",
)
OUTPUT = CommandSpec(
    name="laser output",
    template="OUTP {value}",
    query="OUTP?",
    bool_tokens=("ON", "OFF"),
)
LOCK = CommandSpec(
    name="front panel lock",
    template="SYST:LOCK {value}",
    query="SYST:LOCK?",
    bool_tokens=("ON", "OFF"),
)
MODE = CommandSpec(
    name="operating mode",
    template="SOUR:FUNC:MODE {value}",
    query="SOUR:FUNC:MODE?",
)


class LaserMode(Enum):
    """Regulation mode of the laser source."""

    CURRENT = "current"
    POWER = "power"


MODE_ALIASES: dict[str, str] = {
    "current": "CURR",
    "curr": "CURR",
    "cc": "CURR",
    "i": "CURR",
    "power": "POW",
    "pow": "POW",
    "cp": "POW",
    "p": "POW",
}
"""Accepted mode spellings (lower case) -> wire token."""

MODE_CHOICES: dict[str, str] = {
    "curr": LaserMode.CURRENT.value,
    "current": LaserMode.CURRENT.value,
    "pow": LaserMode.POWER.value,
    "power": LaserMode.POWER.value,
}
"""Mode response token (lower case) -> canonical name."""

_TOKEN_MODES = {"CURR": LaserMode.CURRENT, "POW": LaserMode.POWER}

INTERLOCK_CLOSED_TOKENS = ("1", "CLOSED")
OVER_TEMPERATURE_TOKENS = ("1", "ON")

CONFIGURE_PARAMS = ParamTable(
    (
        ParamField("current", ("curr", "i")),
        ParamField("power", ("pow", "p")),
        ParamField("temperature", ("temp", "t")),
        ParamField("mode", ("opmode",), TOKEN_PATTERN),
        ParamField("enable", ("output",), TOKEN_PATTERN),
        ParamField("limit", ("lim",)),
    )
)

_CONFIGURE_ORDER = ("mode", "limit", "temperature", "current", "power", "enable")


@dataclass
class DeviceStatus:
    """Driver-side view of the laser state.

    Attributes:
        output_enabled: Last known output state.
        mode: Last known regulation mode, or None if not yet known.
        last_error: Description of the most recent device error, or None.
    """

    output_enabled: bool = False
    mode: LaserMode | None = None
    last_error: str | None = None


class ComboSource6301:
    """High-level driver for the ComboSource 6301 laser controller.

    Args:
        session: An open session to the instrument.
        info: Driver version metadata.
    """

    def __init__(self, session: ScpiSession, info: DriverInfo = DRIVER_INFO) -> None:
        self._session = session
        self._info = info
        self._status = DeviceStatus()
        session.reporter.progress("%s initialized", info)

    @property
    def session(self) -> ScpiSession:
        return self._session

    @property
    def info(self) -> DriverInfo:
        return self._info

    @property
    def status(self) -> DeviceStatus:
        """Snapshot of the cached device state."""
        return replace(self._status)

    # -- Identity / lifecycle -----------------------------------------------

    def identify(self) -> str:
        """Query the identification string (``*IDN?``)."""
        return self._session.identify()

    def reset(self) -> Status:
        """Reset to factory defaults (``*RST``) and forget the cached state."""
        status = self._session.reset()
        self._status = DeviceStatus(last_error=self._status.last_error)
        if status is not Status.OK:
            self._session.reporter.diagnostic("reset failed")
        return status

    def clear(self) -> Status:
        """Clear the status registers (``*CLS``)."""
        self._session.reporter.progress("clear device status")
        return self._session.clear_status()

    def lock(self) -> Status:
        """Lock the front panel."""
        return self._session.set_flag(LOCK, True)

    def unlock(self) -> Status:
        """Unlock the front panel."""
        return self._session.set_flag(LOCK, False)

    def close(self) -> None:
        self._session.reporter.progress("close connection")
        self._session.close()

    def __enter__(self) -> ComboSource6301:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # -- Output -------------------------------------------------------------

    def enable_laser(self) -> Status:
        """Switch the laser output on; refused by the device while the interlock is open."""
        return self.set_output(True)

    def disable_laser(self) -> Status:
        """Switch the laser output off."""
        return self.set_output(False)

    def set_output(self, enabled: Any) -> Status:
        """Switch the output; accepts bools and on/off/yes/no/1/0 words."""

        def readback() -> bool | None:
            state = self._session.query_state("OUTP?")
            self._status.output_enabled = bool(state)
            return state

        return self._session.set_flag(OUTPUT, enabled, readback=readback)

    def is_output_enabled(self) -> bool:
        """Query the output state; False if it cannot be read."""
        enabled = self._session.query_flag("OUTP?")
        self._status.output_enabled = enabled
        return enabled

    # -- Current ------------------------------------------------------------

    def set_current(self, current: Any) -> Status:
        """Set the laser current setpoint in mA (clipped to 0..1000)."""
        return self._session.set_number(CURRENT, current)

    def get_current(self) -> float:
        """Current setpoint in mA."""
        return self._session.query_float("SOUR:CURR?", MA_TO_A)

    def measure_current(self) -> float:
        """Measured laser current in mA."""
        return self._session.query_float("MEAS:CURR?", MA_TO_A)

    def set_current_limit(self, limit: Any) -> Status:
        """Set the current limit in mA."""
        return self._session.set_number(CURRENT_LIMIT, limit)

    def get_current_limit(self) -> float:
        return self._session.query_float("SOUR:CURR:LIM?", MA_TO_A)

    # -- Power --------------------------------------------------------------

    def set_power(self, power: Any) -> Status:
        """Set the optical power setpoint in mW (clipped to 0..500)."""
        return self._session.set_number(POWER, power)

    def get_power(self) -> float:
        """Power setpoint in mW."""
        return self._session.query_float("SOUR:POW?", MW_TO_W)

    def measure_power(self) -> float:
        """Measured optical power in mW."""
        return self._session.query_float("MEAS:POW?", MW_TO_W)

    def set_power_limit(self, limit: Any) -> Status:
        """Set the power limit in mW."""
        return self._session.set_number(POWER_LIMIT, limit)

    def get_power_limit(self) -> float:
        return self._session.query_float("SOUR:POW:LIM?", MW_TO_W)

    # -- Temperature --------------------------------------------------------

    def measure_temperature(self) -> float:
        """Laser mount temperature in degC."""
        return self._session.query_float("MEAS:TEMP?")

    def measure_tec_current(self) -> float:
        """TEC drive current in A."""
        return self._session.query_float("MEAS:TEC:CURR?")

    def set_temperature_limits(self, low: Any = None, high: Any = None) -> tuple[Status, Status]:
        """Set the TEC temperature window in degC (each clipped to -20..80).

        Either bound may be omitted; its status is then NOT_SENT.

        Returns:
            ``(low_status, high_status)``.
        """
        return (
            self._session.set_number(TEMP_LIMIT_LOW, low),
            self._session.set_number(TEMP_LIMIT_HIGH, high),
        )

    def get_temperature_limits(self) -> tuple[float, float]:
        """``(low, high)`` temperature limits in degC."""
        return (
            self._session.query_float("SOUR:TEMP:LIM:LOW?"),
            self._session.query_float("SOUR:TEMP:LIM:HIGH?"),
        )

    # -- Mode ---------------------------------------------------------------

    def set_mode(self, mode: Any) -> Status:
        """Select constant-current or constant-power regulation.

        Accepts ``current``/``curr``/``cc``/``i`` and ``power``/``pow``/``cp``/``p``
        in any case, or a :class:`LaserMode`. Anything else is rejected with
        NOT_SENT and nothing is written.
        """
        if isinstance(mode, LaserMode):
            mode = mode.value
        status = self._session.set_choice(MODE, mode, MODE_ALIASES)
        if status is Status.OK:
            self._status.mode = _TOKEN_MODES[MODE_ALIASES[mode.strip().lower()]]
        return status

    def get_mode(self) -> str:
        """Regulation mode as ``"current"``/``"power"``, or a marker string."""
        mode = self._session.query_choice("SOUR:FUNC:MODE?", MODE_CHOICES)
        if not is_marker(mode):
            self._status.mode = LaserMode(mode)
        return mode

    # -- Status -------------------------------------------------------------

    def read_status_byte(self) -> int | None:
        """IEEE 488.2 status byte (``*STB?``); None if unreadable."""
        return self._session.query_int("*STB?")

    def is_interlock_closed(self) -> bool:
        """True only if the device positively reports a closed interlock."""
        return self._session.query_flag("SYST:INTL?", INTERLOCK_CLOSED_TOKENS)

    def is_over_temperature(self) -> bool:
        """True if the over-temperature protection has tripped."""
        return self._session.query_flag("SYST:TEMP:PROT?", OVER_TEMPERATURE_TOKENS)

    # -- Batch configuration ------------------------------------------------

    def configure(self, *args: Any, **kwargs: Any) -> dict[str, Status]:
        """Apply several settings given as name/value pairs.

        Fields (aliases in brackets): ``current`` (curr, i) in mA, ``power``
        (pow, p) in mW, ``temperature`` (temp, t) as the upper temperature
        limit in degC, ``mode`` (opmode), ``enable`` (output), ``limit``
        (lim) as current or power limit depending on the mode. Unknown or
        malformed pairs are dropped with a warning.

        Settings are applied in the order mode, limit, temperature,
        current, power, enable, so the output is switched on last.

        Example:
            >>> laser.configure("mode", "cc", "lim", 150, "i", 100, "output", "on")
            {'mode': <Status.OK: 0>, 'limit': <Status.OK: 0>, ...}

        Returns:
            Status per applied field, in application order.
        """
        check = CONFIGURE_PARAMS.check(*args, **kwargs)
        params = check.params
        if params:
            self._session.reporter.progress("configure\n%s", "\n".join(format_parameter_set(params)))

        results: dict[str, Status] = {}
        for name in _CONFIGURE_ORDER:
            if name not in params:
                continue
            value = params[name]
            if name == "mode":
                results[name] = self.set_mode(value)
            elif name == "limit":
                results[name] = self._set_mode_limit(value)
            elif name == "temperature":
                results[name] = self.set_temperature_limits(high=value)[1]
            elif name == "current":
                results[name] = self.set_current(value)
            elif name == "power":
                results[name] = self.set_power(value)
            else:
                results[name] = self.set_output(value)
        return results

    def _set_mode_limit(self, value: str) -> Status:
        if self._status.mode is LaserMode.POWER:
            return self.set_power_limit(value)
        return self.set_current_limit(value)

    # -- Error queue --------------------------------------------------------

    def error_messages(self) -> tuple[ErrorLogEntry, ...]:
        """Drain the device error queue and return the full session log."""
        new_entries = self._session.drain_errors("SYST:ERR?")
        if new_entries:
            self._status.last_error = new_entries[-1].description
        return self._session.error_log.entries

    def clear_error_messages(self) -> Status:
        """Clear the device error queue and the session error log."""
        status = self._session.clear_error_log("*CLS")
        if status is Status.OK:
            self._status.last_error = None
        return status


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


def create_instrument(
    target: str | Mapping[str, Any] | SessionConfig, **overrides: Any
) -> ComboSource6301:
    """Create a ComboSource 6301 driver.

    Standard factory entry point for bench files and programmatic use.

    Args:
        target: VISA resource string or serial port, a mapping of session
            settings, or a complete :class:`SessionConfig`.
        **overrides: Session fields replacing the defaults.

    Returns:
        Connected driver instance.

    Raises:
        InstrumentConnectionError: If the transport cannot be opened.
    """
    config = resolve_config(target, DEFAULT_CONFIG, **overrides)
    session = ScpiSession(open_transport(config), config)
    return ComboSource6301(session)
