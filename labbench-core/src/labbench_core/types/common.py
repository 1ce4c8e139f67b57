"""Common types used across labbench packages.

Classes:
    InstrumentIdentity: Parsed ``*IDN?`` identification metadata.
    DriverInfo: Name and version metadata injected into each driver.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date

_VERSION_RE = re.compile(r"^\d+\.\d+\.\d+$")


@dataclass(frozen=True)
class InstrumentIdentity:
    """Instrument identification metadata.

    Represents the four standard fields returned by the SCPI ``*IDN?`` query.

    Attributes:
        manufacturer: Instrument manufacturer name (e.g., "KEITHLEY INSTRUMENTS").
        model: Instrument model number or name (e.g., "MODEL 2450").
        serial: Serial number string.
        firmware: Firmware or hardware version string.

    Example:
        >>> identity = InstrumentIdentity(
        ...     manufacturer="Arroyo Instruments",
        ...     model="6301",
        ...     serial="123456",
        ...     firmware="1.0.0"
        ... )
    """

    manufacturer: str
    model: str
    serial: str
    firmware: str

    def __str__(self) -> str:
        return f"{self.manufacturer} {self.model} (SN {self.serial}, FW {self.firmware})"


@dataclass(frozen=True)
class DriverInfo:
    """Version metadata for an instrument driver.

    Drivers receive an instance at construction instead of carrying
    module-level version constants, so a deployment can stamp its own
    build information.

    Attributes:
        name: Driver class or product name (e.g., "ComboSource6301").
        version: Semantic version string ``major.minor.patch``.
        released: Release date of this driver version.

    Raises:
        ValueError: If name is empty or version is not ``major.minor.patch``.
    """

    name: str
    version: str
    released: date

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("name must be non-empty")
        if not _VERSION_RE.match(self.version):
            raise ValueError(f"version must be 'major.minor.patch', got {self.version!r}")

    def __str__(self) -> str:
        return f"{self.name} {self.version} ({self.released.isoformat()})"
