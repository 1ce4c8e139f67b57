"""HTWD-DT-2025 rotary platform emulator.

Implements the ``ScpiTransport`` protocol for the platform firmware: every
received line is echoed before any response, and headers are matched in
their full spelling only. The motor follows a new target once both enables
are set and no under-voltage lockout is active; test code can delay the
arrival by a number of ``ROTAtion:REACHED?`` polls.
"""

from __future__ import annotations

from dataclasses import dataclass

from labbench_scpi.emulation import ScpiEmulator

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RotaryEmulatorConfig:
    """Configuration for a rotary platform emulator instance.

    Args:
        identity: ``*IDN?`` response string.
        angle_limit: Largest accepted absolute angle in degrees (> 0).
    """

    identity: str
    angle_limit: float = 360.0

    def __post_init__(self) -> None:
        if not self.identity:
            raise ValueError("identity must be non-empty")
        if self.angle_limit <= 0:
            raise ValueError("angle_limit must be > 0")


# ---------------------------------------------------------------------------
# Internal state
# ---------------------------------------------------------------------------


@dataclass
class _PlatformState:
    target: float = 0.0
    position: float = 0.0
    upper_limit: float = 360.0
    lower_limit: float = -360.0
    local_locked: bool = False
    local_enabled: bool = False
    remote_enabled: bool = False


def _flag(value: bool) -> str:
    return "1" if value else "0"


# ---------------------------------------------------------------------------
# Emulator
# ---------------------------------------------------------------------------


class RotaryEmulator(ScpiEmulator):
    """In-process rotary platform emulator implementing ``ScpiTransport``.

    Args:
        config: Emulator configuration.
    """

    ECHO = True
    # ENABLED, ENABLELOCAL and ENABLEREMOTE share a short form.
    SHORT_FORMS = False
    OPTIONAL_SEGMENTS: frozenset[str] = frozenset()

    def __init__(self, config: RotaryEmulatorConfig) -> None:
        super().__init__(config.identity)
        self._config = config
        self._state = _PlatformState(upper_limit=config.angle_limit, lower_limit=-config.angle_limit)
        self._voltage_lockout = False
        self._motion_polls = 0
        self._remaining_polls = 0

        self._set_handlers = {
            "SYSTEM:LOCAL:LOCK": lambda _: self._set_local_lock(True),
            "SYSTEM:LOCAL:UNLOCK": lambda _: self._set_local_lock(False),
            "ROTATION:ANGLE": self._set_angle,
            "ROTATION:LIMIT:UPPER": self._set_upper_limit,
            "ROTATION:LIMIT:LOWER": self._set_lower_limit,
            "MOTOR:ENABLEREMOTE": lambda args: self._set_enable("remote_enabled", args),
            "MOTOR:ENABLELOCAL": lambda args: self._set_enable("local_enabled", args),
        }
        self._query_handlers = {
            "SYSTEM:ERROR?": lambda _: self.pop_error(),
            "SYSTEM:LOCAL:LOCK?": lambda _: _flag(self._state.local_locked),
            "ROTATION:ANGLE?": lambda _: f"{self._state.target:.2f}",
            "ROTATION:POSITION?": lambda _: f"{self._state.position:.2f}",
            "ROTATION:REACHED?": self._reached,
            "ROTATION:LIMIT:UPPER?": lambda _: f"{self._state.upper_limit:.2f}",
            "ROTATION:LIMIT:LOWER?": lambda _: f"{self._state.lower_limit:.2f}",
            "MOTOR:ENABLED?": lambda _: _flag(self.motor_enabled),
            "MOTOR:ENABLELOCAL?": lambda _: _flag(self._state.local_enabled),
            "MOTOR:ENABLEREMOTE?": lambda _: _flag(self._state.remote_enabled),
            "MOTOR:VOLTLOCKOUT?": lambda _: _flag(self._voltage_lockout),
        }

    # -- Test helpers -------------------------------------------------------

    @property
    def state(self) -> _PlatformState:
        """Live emulator state (for assertions)."""
        return self._state

    @property
    def motor_enabled(self) -> bool:
        state = self._state
        return state.local_enabled and state.remote_enabled and not self._voltage_lockout

    def set_voltage_lockout(self, active: bool) -> None:
        self._voltage_lockout = active

    def hold_motion(self, polls: int) -> None:
        """Let later moves arrive only after *polls* ``ROTAtion:REACHED?`` queries."""
        if polls < 0:
            raise ValueError("polls must be >= 0")
        self._motion_polls = polls

    # -- Hooks --------------------------------------------------------------

    def reset_state(self) -> None:
        self._state = _PlatformState(
            upper_limit=self._config.angle_limit, lower_limit=-self._config.angle_limit
        )
        self._remaining_polls = 0

    # -- Set handlers -------------------------------------------------------

    def _angle_arg(self, args: str) -> float | None:
        value = self.parse_float_arg(args)
        if value is None:
            return None
        if abs(value) > self._config.angle_limit:
            self.push_error(-222, "Data out of range")
            return None
        return value

    def _set_local_lock(self, locked: bool) -> None:
        self._state.local_locked = locked

    def _set_angle(self, args: str) -> None:
        value = self._angle_arg(args)
        if value is None:
            return
        if not self._state.lower_limit <= value <= self._state.upper_limit:
            self.push_error(-222, "Data out of range")
            return
        self._state.target = value
        self._remaining_polls = self._motion_polls
        self._move()

    def _set_upper_limit(self, args: str) -> None:
        value = self._angle_arg(args)
        if value is None:
            return
        if value < self._state.lower_limit:
            self.push_error(-221, "Settings conflict")
            return
        self._state.upper_limit = value

    def _set_lower_limit(self, args: str) -> None:
        value = self._angle_arg(args)
        if value is None:
            return
        if value > self._state.upper_limit:
            self.push_error(-221, "Settings conflict")
            return
        self._state.lower_limit = value

    def _set_enable(self, name: str, args: str) -> None:
        enabled = self.parse_bool_arg(args)
        if enabled is None:
            return
        setattr(self._state, name, enabled)
        self._move()

    def _move(self) -> None:
        if self.motor_enabled and self._remaining_polls == 0:
            self._state.position = self._state.target

    # -- Query handlers -----------------------------------------------------

    def _reached(self, _: str) -> str:
        if self._remaining_polls > 0 and self.motor_enabled:
            self._remaining_polls -= 1
            self._move()
        return _flag(self._state.position == self._state.target)


# ---------------------------------------------------------------------------
# Factory functions
# ---------------------------------------------------------------------------


def make_rotary_emulator(serial: str = "SN12345") -> RotaryEmulator:
    """Create a rotary platform emulator with a +-360 degree range.

    Args:
        serial: Serial number for the ``*IDN?`` response.
    """
    config = RotaryEmulatorConfig(
        identity=f"HTW Dresden,HTWD-DT-2025,{serial},FW_V1.0,HW_V1.0",
    )
    return RotaryEmulator(config)
