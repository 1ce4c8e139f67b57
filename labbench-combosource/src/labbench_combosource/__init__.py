"""ComboSource 6301 laser diode controller driver and emulator for labbench.

Modules:
    laser: High-level driver with verified setters and a status cache.
    emulator: In-process SCPI emulator for testing without hardware.

Example:
    Connect to a real instrument::

        from labbench_combosource import create_instrument

        laser = create_instrument("ASRL3::INSTR")
        laser.set_mode("cc")
        laser.set_current_limit(150)
        laser.set_current(100)
        if laser.is_interlock_closed():
            laser.enable_laser()

    Use an emulator for testing::

        from labbench_combosource import ComboSource6301, make_combosource_emulator
        from labbench_scpi import NO_SETTLE, ScpiSession, SessionConfig

        emulator = make_combosource_emulator()
        session = ScpiSession(emulator, SessionConfig(address="emulator", settle=NO_SETTLE))
        laser = ComboSource6301(session)
"""

from labbench_combosource.emulator import (
    ComboSourceEmulator,
    ComboSourceEmulatorConfig,
    make_combosource_emulator,
)
from labbench_combosource.laser import (
    DEFAULT_CONFIG,
    DRIVER_INFO,
    ComboSource6301,
    DeviceStatus,
    LaserMode,
    create_instrument,
)

__all__ = [
    # Emulator
    "ComboSourceEmulator",
    "ComboSourceEmulatorConfig",
    "make_combosource_emulator",
    # Driver
    "DEFAULT_CONFIG",
    "DRIVER_INFO",
    "ComboSource6301",
    "DeviceStatus",
    "LaserMode",
    "create_instrument",
]
