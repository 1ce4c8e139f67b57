"""Readback verification for setters.

After a setter writes a value it re-queries the device and hands both values
to one of the checks below. Each check is a small frozen dataclass with a
``check(actual)`` method:

    RelativeTolerance: continuous values within a fraction of the request.
    RangeBand: discrete hardware range steps (asymmetric band).
    ExactMatch: booleans and enumerated tokens.

The numeric constants live in :class:`ReadbackTolerance` so a session can be
tuned to the hardware at hand.

Example:
    >>> tolerance = ReadbackTolerance()
    >>> verify(Check.RELATIVE, 100.0, 100.4, tolerance)
    True
    >>> verify(Check.RANGE, 0.5, 2.0, tolerance)  # 2 V range holds 0.5 V
    True
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol

from labbench_core.errors import ToleranceError

from labbench_scpi.status import Status

__all__ = [
    "Check",
    "ExactMatch",
    "RangeBand",
    "ReadbackCheck",
    "ReadbackTolerance",
    "RelativeTolerance",
    "Status",
    "make_check",
    "verify",
]


class Check(Enum):
    """Readback comparison strategy for a setting."""

    EXACT = "exact"
    RELATIVE = "relative"
    RANGE = "range"


@dataclass(frozen=True)
class ReadbackTolerance:
    """Tunable readback constants.

    Attributes:
        relative: Allowed fraction of the requested value (0.01 = 1%).
        absolute: Floor for the allowed deviation, so a request of 0 can
            tolerate a tiny readback offset. Defaults to exact.
        range_headroom: A range step is accepted if
            ``range_headroom * actual >= requested``.
        range_span: ... and ``actual <= range_span * requested``.

    Raises:
        ToleranceError: On negative tolerances or non-positive band factors.
    """

    relative: float = 0.01
    absolute: float = 0.0
    range_headroom: float = 1.05
    range_span: float = 9.6

    def __post_init__(self) -> None:
        if self.relative < 0:
            raise ToleranceError(f"relative tolerance must be >= 0, got {self.relative}")
        if self.absolute < 0:
            raise ToleranceError(f"absolute tolerance must be >= 0, got {self.absolute}")
        if self.range_headroom <= 0 or self.range_span <= 0:
            raise ToleranceError(
                f"range band factors must be > 0, got {self.range_headroom}/{self.range_span}"
            )


class ReadbackCheck(Protocol):
    """Interface of the readback checks."""

    def check(self, actual: Any) -> bool:
        """Return True if *actual* confirms the requested value."""


def _is_missing(value: Any) -> bool:
    return value is None or (isinstance(value, float) and math.isnan(value))


@dataclass(frozen=True)
class RelativeTolerance:
    """``|actual - requested| <= max(fraction * |requested|, absolute)``."""

    requested: float
    fraction: float
    absolute: float = 0.0

    def check(self, actual: Any) -> bool:
        if _is_missing(actual) or _is_missing(self.requested):
            return False
        allowed = max(self.fraction * abs(self.requested), self.absolute)
        return abs(actual - self.requested) <= allowed


@dataclass(frozen=True)
class RangeBand:
    """Accept a selected range step that can hold the requested value.

    The device picks a discrete range at or above the request, so the
    readback is larger than the request by up to roughly one decade.
    """

    requested: float
    headroom: float
    span: float

    def check(self, actual: Any) -> bool:
        if _is_missing(actual) or _is_missing(self.requested):
            return False
        return self.headroom * actual >= self.requested and actual <= self.span * self.requested


@dataclass(frozen=True)
class ExactMatch:
    """Equality; strings compare case-insensitively."""

    requested: Any

    def check(self, actual: Any) -> bool:
        if _is_missing(actual):
            return False
        if isinstance(self.requested, str) and isinstance(actual, str):
            return actual.strip().lower() == self.requested.strip().lower()
        return bool(actual == self.requested)


def make_check(kind: Check, requested: Any, tolerance: ReadbackTolerance) -> ReadbackCheck:
    """Build the check object of *kind* for a requested value."""
    if kind is Check.RELATIVE:
        return RelativeTolerance(float(requested), tolerance.relative, tolerance.absolute)
    if kind is Check.RANGE:
        return RangeBand(float(requested), tolerance.range_headroom, tolerance.range_span)
    return ExactMatch(requested)


def verify(kind: Check, requested: Any, actual: Any, tolerance: ReadbackTolerance) -> bool:
    """Return True if *actual* confirms *requested* under *kind*."""
    return make_check(kind, requested, tolerance).check(actual)
