"""Keithley 2450 source-measure unit driver and emulator for labbench.

Modules:
    smu: High-level driver with function-dependent source and sense accessors.
    emulator: In-process SCPI emulator for testing without hardware.

Example:
    Source voltage, measure current::

        from labbench_keithley import create_instrument

        with create_instrument("USB0::0x05E6::0x2450::04512345::0::INSTR") as smu:
            smu.set_operation_mode("SVMI")
            smu.set_source("limit_value", 0.01)
            smu.set_source("output_value", 1.5)
            smu.set_sense("nplc", 1)
            smu.output_enable()
            print(smu.settings_report())
"""

from labbench_keithley.emulator import (
    Smu2450Emulator,
    Smu2450EmulatorConfig,
    make_smu2450_emulator,
)
from labbench_keithley.smu import (
    DEFAULT_CONFIG,
    DRIVER_INFO,
    Accessor,
    Smu2450,
    create_instrument,
    ov_protection_token,
)

__all__ = [
    # Emulator
    "Smu2450Emulator",
    "Smu2450EmulatorConfig",
    "make_smu2450_emulator",
    # Driver
    "DEFAULT_CONFIG",
    "DRIVER_INFO",
    "Accessor",
    "Smu2450",
    "create_instrument",
    "ov_protection_token",
]
