"""HTWD-DT-2025 rotary platform driver.

The platform is a stepper-driven turntable reached over a USB serial port
(115200 baud, 8N1, CR/LF). Its firmware echoes every received line, so the
session is configured with ``echo=True`` and short settle pauses after each
write and before each read.

Angles are in degrees. Boolean queries report ``1`` for true; any other
reply, including a failed exchange, is treated as false.

    >>> platform = create_instrument("COM13")
    >>> platform.enable_remote()
    <Status.OK: 0>
    >>> platform.set_angle(90)
    <Status.OK: 0>
    >>> platform.wait_for_target(timeout_s=20)
    True
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from datetime import date
from typing import Any

from labbench_core.types.common import DriverInfo
from labbench_scpi.commands import CommandSpec
from labbench_scpi.config import SessionConfig, SettleTimes, open_transport, resolve_config
from labbench_scpi.errorlog import ErrorLogEntry
from labbench_scpi.params import TOKEN_PATTERN, ParamField, ParamTable, format_parameter_set
from labbench_scpi.session import ScpiSession
from labbench_scpi.status import Status
from labbench_scpi.verify import Check

DRIVER_INFO = DriverInfo(name="RotaryPlatform", version="2.0.0", released=date(2026, 1, 19))

DEFAULT_CONFIG = SessionConfig(
    address="COM13",
    name="RotaryPlatform",
    timeout_ms=10000,
    read_termination="\r\n",
    write_termination="\r\n",
    echo=True,
    settle=SettleTimes(write_s=0.05, query_s=0.1),
)
"""Default session settings; the address is replaced by :func:`create_instrument`."""

ANGLE_RANGE = (-360.0, 360.0)
TRUE_TOKENS = ("1",)

# ---------------------------------------------------------------------------
# Command table
# ---------------------------------------------------------------------------

ANGLE = CommandSpec(
    name="target angle",
    template="ROTAtion:ANGLE {value}",
    query="ROTAtion:ANGLE?",
    value_range=ANGLE_RANGE,
    unit="deg",
)
UPPER_LIMIT = CommandSpec(
    name="upper angle limit",
    template="ROTAtion:LIMit:UPPer {value}",
    query="ROTAtion:LIMit:UPPer?",
    value_range=ANGLE_RANGE,
    unit="deg",
)
LOWER_LIMIT = CommandSpec(
    name="lower angle limit",
    template="ROTAtion:LIMit:LOWer {value}",
    query="ROTAtion:LIMit:LOWer?",
    value_range=ANGLE_RANGE,
    unit="deg",
)
LOCK_LOCAL = CommandSpec(name="local lock", template="SYSTem:LOCal:LOCK", query="SYSTem:LOCal:LOCK?")
UNLOCK_LOCAL = CommandSpec(name="local lock", template="SYSTem:LOCal:UNLock", query="SYSTem:LOCal:LOCK?")
REMOTE_ENABLE = CommandSpec(
    name="remote motor enable",
    template="MOTOR:ENABLEREMote {value}",
    query="MOTOR:ENABLEREMote?",
)
LOCAL_ENABLE = CommandSpec(
    name="local motor enable",
    template="MOTOR:ENABLELOCal {value}",
    query="MOTOR:ENABLELOCal?",
)

CONFIGURE_PARAMS = ParamTable(
    (
        ParamField("angle", ("position", "pos")),
        ParamField("upper", ("upper_limit",)),
        ParamField("lower", ("lower_limit",)),
        ParamField("enable", ("remote",), TOKEN_PATTERN),
    )
)

# Limits first so the target angle is checked against the new window, and
# the motor is enabled before it is asked to move.
_CONFIGURE_ORDER = ("lower", "upper", "enable", "angle")


class RotaryPlatform:
    """High-level driver for the HTWD-DT-2025 rotary platform.

    Args:
        session: An open session to the platform.
        info: Driver version metadata.
    """

    def __init__(self, session: ScpiSession, info: DriverInfo = DRIVER_INFO) -> None:
        self._session = session
        self._info = info
        session.reporter.progress("%s initialized", info)
        identity = session.identify()
        if identity:
            session.reporter.progress("device: %s", identity)
        else:
            session.reporter.diagnostic("could not communicate with device")

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

    def close(self) -> None:
        self._session.reporter.progress("close connection")
        self._session.close()

    def __enter__(self) -> RotaryPlatform:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # -- Local control ------------------------------------------------------

    def lock_local(self) -> Status:
        """Disable the buttons on the device (remote-only control)."""
        return self._session.apply(LOCK_LOCAL, True, check=Check.EXACT)

    def unlock_local(self) -> Status:
        """Re-enable the buttons on the device."""
        return self._session.apply(UNLOCK_LOCAL, False, check=Check.EXACT)

    def is_local_locked(self) -> bool:
        return self._session.query_flag("SYSTem:LOCal:LOCK?", TRUE_TOKENS)

    # -- Rotation -----------------------------------------------------------

    def set_angle(self, angle: Any) -> Status:
        """Command a new target angle in degrees (clipped to -360..360).

        The device refuses angles outside its configured limit window; the
        readback then reports MISMATCH.
        """
        return self._session.set_number(ANGLE, angle)

    def get_angle(self) -> float:
        """Commanded target angle in degrees."""
        return self._session.query_float("ROTAtion:ANGLE?")

    def get_position(self) -> float:
        """Actual platform position in degrees."""
        return self._session.query_float("ROTAtion:POSition?")

    def is_target_reached(self) -> bool:
        """True once the target angle is reached and held."""
        return self._session.query_flag("ROTAtion:REACHED?", TRUE_TOKENS)

    def wait_for_target(self, timeout_s: float = 30.0, poll_s: float = 0.5) -> bool:
        """Poll :meth:`is_target_reached` until it reports True.

        Returns:
            True if the target was reached within *timeout_s*.
        """
        polls = max(1, math.ceil(timeout_s / poll_s)) if poll_s > 0 else 1
        for _ in range(polls):
            if self.is_target_reached():
                return True
            self._session.pause(poll_s)
        reached = self.is_target_reached()
        if not reached:
            self._session.reporter.diagnostic("target not reached within %g s", timeout_s)
        return reached

    # -- Limits -------------------------------------------------------------

    def set_upper_limit(self, angle: Any) -> Status:
        """Set the maximum allowed angle in degrees."""
        return self._session.set_number(UPPER_LIMIT, angle)

    def get_upper_limit(self) -> float:
        return self._session.query_float("ROTAtion:LIMit:UPPer?")

    def set_lower_limit(self, angle: Any) -> Status:
        """Set the minimum allowed angle in degrees."""
        return self._session.set_number(LOWER_LIMIT, angle)

    def get_lower_limit(self) -> float:
        return self._session.query_float("ROTAtion:LIMit:LOWer?")

    # -- Motor --------------------------------------------------------------

    def is_motor_enabled(self) -> bool:
        """True if the motor is active: local and remote enable, no voltage lockout."""
        return self._session.query_flag("MOTOR:ENABLED?", TRUE_TOKENS)

    def is_local_enabled(self) -> bool:
        """True while the green enable button releases the motor."""
        return self._session.query_flag("MOTOR:ENABLELOCal?", TRUE_TOKENS)

    def is_remote_enabled(self) -> bool:
        return self._session.query_flag("MOTOR:ENABLEREMote?", TRUE_TOKENS)

    def is_voltage_locked_out(self) -> bool:
        """True if an under-voltage condition keeps the motor off."""
        return self._session.query_flag("MOTOR:VOLTLOCKout?", TRUE_TOKENS)

    def enable_remote(self) -> Status:
        return self.set_remote_enable(True)

    def disable_remote(self) -> Status:
        """Lock the motor from the remote side; the device shows a message on its LCD."""
        return self.set_remote_enable(False)

    def set_remote_enable(self, enabled: Any) -> Status:
        return self._session.set_flag(REMOTE_ENABLE, enabled)

    def enable_local(self) -> Status:
        """Release the motor as if the green button had been pressed."""
        return self.set_local_enable(True)

    def disable_local(self) -> Status:
        return self.set_local_enable(False)

    def set_local_enable(self, enabled: Any) -> Status:
        return self._session.set_flag(LOCAL_ENABLE, enabled)

    # -- Batch configuration ------------------------------------------------

    def configure(self, *args: Any, **kwargs: Any) -> dict[str, Status]:
        """Apply several settings given as name/value pairs.

        Fields (aliases in brackets): ``angle`` (position, pos), ``upper``
        (upper_limit), ``lower`` (lower_limit) in degrees, and ``enable``
        (remote) for the remote motor enable. They are applied in the order
        lower, upper, enable, angle.

        Example:
            >>> platform.configure("lower", -90, "upper", 90, "enable", "on", "pos", 45)
            {'lower': <Status.OK: 0>, 'upper': <Status.OK: 0>, ...}
        """
        params = CONFIGURE_PARAMS.check(*args, **kwargs).params
        if params:
            self._session.reporter.progress("configure\n%s", "\n".join(format_parameter_set(params)))

        setters = {
            "lower": self.set_lower_limit,
            "upper": self.set_upper_limit,
            "enable": self.set_remote_enable,
            "angle": self.set_angle,
        }
        return {name: setters[name](params[name]) for name in _CONFIGURE_ORDER if name in params}

    # -- Error queue --------------------------------------------------------

    def error_messages(self) -> tuple[ErrorLogEntry, ...]:
        """Drain the device error queue and return the full session log."""
        self._session.drain_errors("SYSTem:ERRor?")
        return self._session.error_log.entries

    def clear_error_messages(self) -> Status:
        return self._session.clear_error_log("*CLS")


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


def create_instrument(
    target: str | Mapping[str, Any] | SessionConfig, **overrides: Any
) -> RotaryPlatform:
    """Create a rotary platform driver.

    Args:
        target: Serial port (``COM13``, ``/dev/ttyACM0``), a mapping of
            session settings, or a complete :class:`SessionConfig`.
        **overrides: Session fields replacing the defaults.

    Raises:
        InstrumentConnectionError: If the port cannot be opened.
    """
    config = resolve_config(target, DEFAULT_CONFIG, **overrides)
    session = ScpiSession(open_transport(config), config)
    return RotaryPlatform(session)
