"""HTWD-DT-2025 rotary platform driver and emulator for labbench.

Modules:
    platform: Serial driver for angle, limit, motor-enable and local-lock control.
    emulator: In-process SCPI emulator (with line echo) for testing without hardware.
"""

from labbench_rotary.emulator import (
    RotaryEmulator,
    RotaryEmulatorConfig,
    make_rotary_emulator,
)
from labbench_rotary.platform import (
    DEFAULT_CONFIG,
    DRIVER_INFO,
    RotaryPlatform,
    create_instrument,
)

__all__ = [
    # Emulator
    "RotaryEmulator",
    "RotaryEmulatorConfig",
    "make_rotary_emulator",
    # Driver
    "DEFAULT_CONFIG",
    "DRIVER_INFO",
    "RotaryPlatform",
    "create_instrument",
]
