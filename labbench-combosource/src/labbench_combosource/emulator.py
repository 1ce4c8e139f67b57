"""ComboSource 6301 laser diode controller emulator.

Provides an in-process SCPI emulator implementing the ``ScpiTransport``
protocol. Currents and powers are held in SI units (A, W) as on the real
wire.
"""

from __future__ import annotations

from dataclasses import dataclass

from labbench_scpi.emulation import ScpiEmulator

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ComboSourceEmulatorConfig:
    """Configuration for a ComboSource emulator instance.

    Args:
        identity: ``*IDN?`` response string.
        max_current: Largest accepted current setpoint/limit in amps (> 0).
        max_power: Largest accepted power setpoint/limit in watts (> 0).
        ambient_temperature: Temperature reported by ``MEAS:TEMP?`` in degC.
    """

    identity: str
    max_current: float = 1.0
    max_power: float = 0.5
    ambient_temperature: float = 25.0

    def __post_init__(self) -> None:
        if not self.identity:
            raise ValueError("identity must be non-empty")
        if self.max_current <= 0:
            raise ValueError("max_current must be > 0")
        if self.max_power <= 0:
            raise ValueError("max_power must be > 0")


# ---------------------------------------------------------------------------
# Internal state
# ---------------------------------------------------------------------------


@dataclass
class _LaserState:
    current: float = 0.0
    current_limit: float = 0.5
    power: float = 0.0
    power_limit: float = 0.25
    temp_limit_low: float = 10.0
    temp_limit_high: float = 40.0
    mode: str = "CURR"
    output_enabled: bool = False
    locked: bool = False


# ---------------------------------------------------------------------------
# Emulator
# ---------------------------------------------------------------------------


class ComboSourceEmulator(ScpiEmulator):
    """In-process ComboSource 6301 emulator implementing ``ScpiTransport``.

    Args:
        config: Emulator configuration.
    """

    def __init__(self, config: ComboSourceEmulatorConfig) -> None:
        super().__init__(config.identity)
        self._config = config
        self._state = _LaserState()
        self._interlock_closed = True
        self._over_temperature = False
        self._temperature = config.ambient_temperature
        self._tec_current = 0.0

        self._set_handlers = {
            "CURR": self._set_current,
            "CURR:LIM": self._set_current_limit,
            "POW": self._set_power,
            "POW:LIM": self._set_power_limit,
            "TEMP:LIM:LOW": self._set_temp_limit_low,
            "TEMP:LIM:HIGH": self._set_temp_limit_high,
            "FUNC:MODE": self._set_mode,
            "OUTP": self._set_output,
            "SYST:LOCK": self._set_lock,
        }

        self._query_handlers = {
            "CURR?": lambda _: f"{self._state.current:.6f}",
            "CURR:LIM?": lambda _: f"{self._state.current_limit:.6f}",
            "POW?": lambda _: f"{self._state.power:.6f}",
            "POW:LIM?": lambda _: f"{self._state.power_limit:.6f}",
            "TEMP:LIM:LOW?": lambda _: f"{self._state.temp_limit_low:.3f}",
            "TEMP:LIM:HIGH?": lambda _: f"{self._state.temp_limit_high:.3f}",
            "FUNC:MODE?": lambda _: self._state.mode,
            "OUTP?": lambda _: "1" if self._state.output_enabled else "0",
            "SYST:LOCK?": lambda _: "1" if self._state.locked else "0",
            "MEAS:CURR?": self._measure_current,
            "MEAS:POW?": self._measure_power,
            "MEAS:TEMP?": lambda _: f"{self._temperature:.3f}",
            "MEAS:TEC:CURR?": lambda _: f"{self._tec_current:.4f}",
            "SYST:INTL?": lambda _: "1" if self._interlock_closed else "0",
            "SYST:TEMP:PROT?": lambda _: "1" if self._over_temperature else "0",
        }

    # -- Test helpers -------------------------------------------------------

    @property
    def state(self) -> _LaserState:
        """Live emulator state (for assertions)."""
        return self._state

    def set_interlock(self, closed: bool) -> None:
        self._interlock_closed = closed

    def set_over_temperature(self, tripped: bool) -> None:
        self._over_temperature = tripped

    def set_temperature(self, value: float, tec_current: float = 0.0) -> None:
        self._temperature = value
        self._tec_current = tec_current

    # -- Hooks --------------------------------------------------------------

    def reset_state(self) -> None:
        self._state = _LaserState()

    # -- Set handlers -------------------------------------------------------

    def _bounded(self, args: str, high: float, low: float = 0.0) -> float | None:
        value = self.parse_float_arg(args)
        if value is None:
            return None
        if not low <= value <= high:
            self.push_error(-222, "Data out of range")
            return None
        return value

    def _set_current(self, args: str) -> None:
        value = self._bounded(args, self._config.max_current)
        if value is not None:
            self._state.current = min(value, self._state.current_limit)

    def _set_current_limit(self, args: str) -> None:
        value = self._bounded(args, self._config.max_current)
        if value is not None:
            self._state.current_limit = value

    def _set_power(self, args: str) -> None:
        value = self._bounded(args, self._config.max_power)
        if value is not None:
            self._state.power = min(value, self._state.power_limit)

    def _set_power_limit(self, args: str) -> None:
        value = self._bounded(args, self._config.max_power)
        if value is not None:
            self._state.power_limit = value

    def _set_temp_limit_low(self, args: str) -> None:
        value = self._bounded(args, 100.0, -50.0)
        if value is not None:
            self._state.temp_limit_low = value

    def _set_temp_limit_high(self, args: str) -> None:
        value = self._bounded(args, 100.0, -50.0)
        if value is not None:
            self._state.temp_limit_high = value

    def _set_mode(self, args: str) -> None:
        token = self.normalize(args)
        if token in ("CURR", "POW"):
            self._state.mode = token
        else:
            self.push_error(-224, "Illegal parameter value")

    def _set_output(self, args: str) -> None:
        enabled = self.parse_bool_arg(args)
        if enabled is None:
            return
        if enabled and not self._interlock_closed:
            self.push_error(-221, "Settings conflict; interlock open")
            return
        self._state.output_enabled = enabled

    def _set_lock(self, args: str) -> None:
        locked = self.parse_bool_arg(args)
        if locked is not None:
            self._state.locked = locked

    # -- Query handlers -----------------------------------------------------

    def _measure_current(self, _: str) -> str:
        state = self._state
        if not state.output_enabled:
            return "0.000000"
        if state.mode == "CURR":
            return f"{state.current:.6f}"
        return f"{state.power * 2.0:.6f}"

    def _measure_power(self, _: str) -> str:
        state = self._state
        if not state.output_enabled:
            return "0.000000"
        if state.mode == "POW":
            return f"{state.power:.6f}"
        return f"{state.current * 0.5:.6f}"


# ---------------------------------------------------------------------------
# Factory functions
# ---------------------------------------------------------------------------


def make_combosource_emulator(serial: str = "SN000001") -> ComboSourceEmulator:
    """Create a ComboSource 6301 emulator (1 A, 500 mW).

    Args:
        serial: Serial number for the ``*IDN?`` response.
    """
    config = ComboSourceEmulatorConfig(
        identity=f"Arroyo Instruments,6301,{serial},1.0.6",
    )
    return ComboSourceEmulator(config)
