"""Session configuration and transport selection.

A :class:`SessionConfig` carries everything needed to reach one instrument
and to tune the protocol layer for it: address, serial line settings,
terminators, verbosity, echo handling, settle pauses, readback tolerances
and the error-queue read limit.

Example:
    >>> config = SessionConfig(address="COM13", name="RotaryPlatform", echo=True,
    ...                        read_termination="\\r\\n", write_termination="\\r\\n")
    >>> transport = open_transport(config)  # SerialResource at 115200 baud
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field, fields, replace
from typing import Any

from labbench_scpi.errorlog import MAX_QUEUE_READS
from labbench_scpi.messages import Verbosity
from labbench_scpi.serial_port import DEFAULT_BAUD_RATE, SerialResource
from labbench_scpi.transport import ScpiTransport
from labbench_scpi.verify import ReadbackTolerance
from labbench_scpi.visa import VisaResource

_SERIAL_PORT_RE = re.compile(r"^(COM\d+|/dev/.+)$", re.IGNORECASE)


@dataclass(frozen=True)
class SettleTimes:
    """Fixed pauses in seconds that let device firmware catch up.

    Attributes:
        reset_s: After ``*RST`` and similar reset commands.
        clear_s: After ``*CLS``.
        write_s: After every write to an echoing device.
        query_s: Between write and read of a query on an echoing device.
    """

    reset_s: float = 0.5
    clear_s: float = 0.0
    write_s: float = 0.0
    query_s: float = 0.0

    def __post_init__(self) -> None:
        for item in fields(self):
            if getattr(self, item.name) < 0:
                raise ValueError(f"{item.name} must be >= 0")


NO_SETTLE = SettleTimes(reset_s=0.0)
"""Pauses disabled; used with in-process emulators."""


@dataclass(frozen=True)
class SessionConfig:
    """Configuration for one instrument session.

    Attributes:
        address: VISA resource string, or a serial port (``COM13``,
            ``/dev/ttyACM0``) for the raw serial transport.
        name: Device name used in messages.
        baud_rate: Serial line speed.
        timeout_ms: Transport I/O timeout.
        read_termination: Response line terminator.
        write_termination: Command line terminator.
        verbosity: Operator message level.
        echo: True if the device echoes each received line.
        settle: Fixed pauses.
        tolerance: Readback comparison constants.
        max_error_reads: Upper bound of queue reads per error drain.

    Raises:
        ValueError: On empty address/name/terminators or non-positive numbers.
    """

    address: str
    name: str = "instrument"
    baud_rate: int = DEFAULT_BAUD_RATE
    timeout_ms: int = 5000
    read_termination: str = "\n"
    write_termination: str = "\n"
    verbosity: Verbosity = Verbosity.FEW
    echo: bool = False
    settle: SettleTimes = field(default_factory=SettleTimes)
    tolerance: ReadbackTolerance = field(default_factory=ReadbackTolerance)
    max_error_reads: int = MAX_QUEUE_READS

    def __post_init__(self) -> None:
        if not self.address:
            raise ValueError("address must be non-empty")
        if not self.name:
            raise ValueError("name must be non-empty")
        if self.baud_rate <= 0:
            raise ValueError("baud_rate must be > 0")
        if self.timeout_ms <= 0:
            raise ValueError("timeout_ms must be > 0")
        if not self.read_termination or not self.write_termination:
            raise ValueError("terminations must be non-empty")
        if self.max_error_reads < 1:
            raise ValueError("max_error_reads must be >= 1")
        object.__setattr__(self, "verbosity", Verbosity.parse(self.verbosity))

    @property
    def is_serial_port(self) -> bool:
        """True if :attr:`address` names a raw serial port."""
        return bool(_SERIAL_PORT_RE.match(self.address))

    def with_overrides(self, **overrides: Any) -> SessionConfig:
        """Return a copy with the given fields replaced."""
        return replace(self, **overrides)

    @classmethod
    def from_dict(cls, data: dict[str, Any], defaults: SessionConfig | None = None) -> SessionConfig:
        """Build a config from a plain mapping (e.g. parsed YAML).

        Nested ``settle`` and ``tolerance`` mappings are converted to their
        dataclasses. Keys not given fall back to *defaults*.

        Raises:
            ValueError: For unknown keys or invalid values.
        """
        known = {item.name for item in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown session config keys: {sorted(unknown)}")
        values = dict(data)
        if isinstance(values.get("settle"), dict):
            values["settle"] = SettleTimes(**values["settle"])
        if isinstance(values.get("tolerance"), dict):
            values["tolerance"] = ReadbackTolerance(**values["tolerance"])
        if defaults is not None:
            return replace(defaults, **values)
        return cls(**values)


def resolve_config(
    target: str | Mapping[str, Any] | SessionConfig,
    defaults: SessionConfig,
    **overrides: Any,
) -> SessionConfig:
    """Turn a device factory argument into a complete config.

    Args:
        target: An address, a mapping of settings (as read from a bench
            file) layered over *defaults*, or a finished config.
        defaults: The device's default settings.
        **overrides: Fields replaced last.

    Raises:
        ValueError: For unknown keys or invalid values.
    """
    if isinstance(target, SessionConfig):
        config = target
    elif isinstance(target, Mapping):
        config = SessionConfig.from_dict(dict(target), defaults)
    else:
        config = defaults.with_overrides(address=target)
    return config.with_overrides(**overrides) if overrides else config


def open_transport(config: SessionConfig) -> ScpiTransport:
    """Create and open the transport named by *config*.

    Serial port names select :class:`SerialResource`; everything else is
    treated as a VISA resource string.

    Raises:
        InstrumentConnectionError: If the transport cannot be opened.
    """
    if config.is_serial_port:
        serial_resource = SerialResource(
            config.address,
            baud_rate=config.baud_rate,
            timeout_ms=config.timeout_ms,
            read_termination=config.read_termination,
            write_termination=config.write_termination,
        )
        serial_resource.open()
        return serial_resource
    visa_resource = VisaResource(
        config.address,
        timeout_ms=config.timeout_ms,
        read_termination=config.read_termination,
        write_termination=config.write_termination,
        baud_rate=config.baud_rate,
    )
    visa_resource.open()
    return visa_resource
