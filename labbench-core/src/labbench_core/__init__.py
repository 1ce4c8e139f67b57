"""Core library for laboratory instrument control.

This package provides the error hierarchy and the small metadata types shared
by the protocol layer and the instrument drivers. It has no third-party
dependencies so every other labbench package can build on it.

Example:
    >>> from datetime import date
    >>> from labbench_core import DriverInfo
    >>> info = DriverInfo(name="ComboSource6301", version="1.0.0", released=date(2026, 1, 19))
    >>> print(info)
    ComboSource6301 1.0.0 (2026-01-19)
"""

from labbench_core.errors import InstrumentConnectionError, LabbenchError, ToleranceError
from labbench_core.types import DriverInfo, InstrumentIdentity

__all__ = [
    # Errors
    "InstrumentConnectionError",
    "LabbenchError",
    "ToleranceError",
    # Types
    "DriverInfo",
    "InstrumentIdentity",
]
