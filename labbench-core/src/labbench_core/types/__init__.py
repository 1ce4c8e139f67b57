"""Core data types for labbench.

Submodules:
    common: Identification and driver metadata types.
"""

from labbench_core.types.common import DriverInfo, InstrumentIdentity

__all__ = [
    "DriverInfo",
    "InstrumentIdentity",
]
