"""Command builder: named operation + typed value -> SCPI command line.

Each device module declares its command table as module-level
:class:`CommandSpec` constants. A spec knows how to clip a client value to
the documented bounds, convert it to the wire unit and format it with the
device's precision, so drivers never assemble command strings by hand.

Example:
    >>> SET_CURRENT = CommandSpec(
    ...     name="current",
    ...     template="SOUR:CURR {value}",
    ...     query="SOUR:CURR?",
    ...     unit_scale=1e-3,  # mA -> A
    ...     value_range=(0.0, 1000.0),
    ...     decimals=6,
    ... )
    >>> SET_CURRENT.build(100)
    'SOUR:CURR 0.100000'
    >>> SET_CURRENT.build(5000)
    'SOUR:CURR 1.000000'
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from labbench_scpi.number import format_bool, format_fixed, format_number

CommandValue = float | int | bool | str


@dataclass(frozen=True)
class CommandSpec:
    """Immutable description of one settable device parameter.

    Attributes:
        name: Human-readable parameter name used in progress and mismatch
            messages.
        template: Write command with a ``{value}`` placeholder, or a fixed
            command without one (e.g. ``"SYST:LOCK ON"``).
        query: Readback query, or None for write-only commands.
        unit_scale: Multiplier converting the client unit to the wire unit
            (``1e-3`` for mA -> A).
        value_range: ``(min, max)`` in client units; numeric values are
            clipped into it before transmission.
        decimals: Fixed number of decimals on the wire, or None for the
            shortest exact representation.
        unit: Client unit label for messages (e.g. ``"mA"``).
        bool_tokens: ``(true, false)`` tokens of the device's boolean dialect.

    Raises:
        ValueError: If the range is inverted, the scale is not a positive
            finite number, or decimals is negative.
    """

    name: str
    template: str
    query: str | None = None
    unit_scale: float = 1.0
    value_range: tuple[float, float] | None = None
    decimals: int | None = None
    unit: str = ""
    bool_tokens: tuple[str, str] = ("1", "0")

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("name must be non-empty")
        if not math.isfinite(self.unit_scale) or self.unit_scale <= 0:
            raise ValueError(f"unit_scale must be a positive number, got {self.unit_scale}")
        if self.value_range is not None and self.value_range[0] > self.value_range[1]:
            raise ValueError(f"value_range min > max: {self.value_range}")
        if self.decimals is not None and self.decimals < 0:
            raise ValueError(f"decimals must be >= 0, got {self.decimals}")

    # -- Value conversion ----------------------------------------------------

    def clip(self, value: float) -> float:
        """Clip a client value into ``value_range`` (no-op without a range)."""
        if self.value_range is None or math.isnan(value):
            return value
        low, high = self.value_range
        return min(max(value, low), high)

    def to_wire(self, value: float) -> float:
        """Clip and convert a client value to the wire unit."""
        return self.clip(value) * self.unit_scale

    def to_client(self, wire_value: float) -> float:
        """Convert a wire value (e.g. a readback) to the client unit."""
        return wire_value / self.unit_scale

    def format_value(self, value: CommandValue) -> str:
        """Render a value as its wire token.

        Booleans use :attr:`bool_tokens`, strings pass through unchanged
        (they are already canonical wire tokens), numbers are clipped, scaled
        and formatted.
        """
        if isinstance(value, bool):
            return format_bool(value, self.bool_tokens)
        if isinstance(value, str):
            return value
        wire = self.to_wire(float(value))
        if self.decimals is not None:
            return format_fixed(wire, self.decimals)
        return format_number(wire)

    # -- Building ------------------------------------------------------------

    def build(self, value: CommandValue | None = None) -> str:
        """Build the command line for *value*.

        Args:
            value: Value to substitute for ``{value}``; ignored for fixed
                templates.

        Returns:
            A single-line command without terminator.
        """
        if "{value}" not in self.template:
            return self.template
        if value is None:
            raise ValueError(f"Command {self.name!r} needs a value")
        return self.template.format(value=self.format_value(value))

    def describe(self, value: CommandValue) -> str:
        """Render a client value with its unit for progress messages."""
        if isinstance(value, bool):
            return "on" if value else "off"
        if isinstance(value, str):
            return value
        text = format_number(self.clip(float(value)))
        return f"{text} {self.unit}" if self.unit else text
