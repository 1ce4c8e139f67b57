"""Tests for the rotary platform emulator."""

from __future__ import annotations

import pytest

from labbench_rotary.emulator import RotaryEmulator, RotaryEmulatorConfig, make_rotary_emulator

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _query(emu: RotaryEmulator, cmd: str) -> str:
    """Send a query, check the echo and return the response."""
    emu.write(cmd)
    assert emu.read() == cmd
    return emu.read()


def _write(emu: RotaryEmulator, cmd: str) -> None:
    emu.write(cmd)
    assert emu.read() == cmd


# ---------------------------------------------------------------------------
# TestRotaryEmulatorConfig
# ---------------------------------------------------------------------------


class TestRotaryEmulatorConfig:
    """Tests for RotaryEmulatorConfig validation."""

    def test_empty_identity(self) -> None:
        with pytest.raises(ValueError, match="identity"):
            RotaryEmulatorConfig(identity="")

    def test_angle_limit(self) -> None:
        with pytest.raises(ValueError, match="angle_limit"):
            RotaryEmulatorConfig(identity="HTWD", angle_limit=0.0)

    def test_custom_range(self) -> None:
        emu = RotaryEmulator(RotaryEmulatorConfig(identity="HTWD", angle_limit=180.0))
        assert _query(emu, "ROTAtion:LIMit:UPPer?") == "180.00"
        _write(emu, "ROTAtion:LIMit:UPPer 200")
        assert emu.pending_errors == ((-222, "Data out of range"),)


# ---------------------------------------------------------------------------
# TestEchoAndHeaders
# ---------------------------------------------------------------------------


class TestEchoAndHeaders:
    """Tests for line echo and full-spelling header matching."""

    def test_idn_echoed(self) -> None:
        emu = make_rotary_emulator(serial="SN1")
        assert _query(emu, "*IDN?") == "HTW Dresden,HTWD-DT-2025,SN1,FW_V1.0,HW_V1.0"

    def test_case_insensitive(self) -> None:
        emu = make_rotary_emulator()
        _write(emu, "rotation:angle 12.5")
        assert _query(emu, "ROTATION:ANGLE?") == "12.50"

    def test_short_form_unknown(self) -> None:
        emu = make_rotary_emulator()
        _write(emu, "ROT:ANGLE 5")
        assert emu.pending_errors == ((-100, "Command error"),)

    def test_enable_headers_distinct(self) -> None:
        emu = make_rotary_emulator()
        _write(emu, "MOTOR:ENABLELOCal 1")
        assert _query(emu, "MOTOR:ENABLELOCal?") == "1"
        assert _query(emu, "MOTOR:ENABLEREMote?") == "0"
        assert _query(emu, "MOTOR:ENABLED?") == "0"

    def test_error_queue(self) -> None:
        emu = make_rotary_emulator()
        _write(emu, "FOO")
        assert _query(emu, "SYSTem:ERRor?") == '-100,"Command error"'
        assert _query(emu, "SYSTem:ERRor?") == '0,"No error"'


# ---------------------------------------------------------------------------
# TestMotion
# ---------------------------------------------------------------------------


class TestMotion:
    """Tests for target, position and arrival."""

    def test_position_follows_enabled_motor(self) -> None:
        emu = make_rotary_emulator()
        _write(emu, "ROTAtion:ANGLE 30")
        assert _query(emu, "ROTAtion:POSition?") == "0.00"
        _write(emu, "MOTOR:ENABLELOCal ON")
        _write(emu, "MOTOR:ENABLEREMote ON")
        assert _query(emu, "ROTAtion:POSition?") == "30.00"
        assert _query(emu, "ROTAtion:REACHED?") == "1"

    def test_voltage_lockout_stops_motor(self) -> None:
        emu = make_rotary_emulator()
        emu.set_voltage_lockout(True)
        _write(emu, "MOTOR:ENABLELOCal 1")
        _write(emu, "MOTOR:ENABLEREMote 1")
        _write(emu, "ROTAtion:ANGLE -15")
        assert _query(emu, "MOTOR:VOLTLOCKout?") == "1"
        assert _query(emu, "ROTAtion:REACHED?") == "0"

    def test_hold_motion(self) -> None:
        emu = make_rotary_emulator()
        emu.hold_motion(2)
        _write(emu, "MOTOR:ENABLELOCal 1")
        _write(emu, "MOTOR:ENABLEREMote 1")
        _write(emu, "ROTAtion:ANGLE 45")
        assert _query(emu, "ROTAtion:REACHED?") == "0"
        assert _query(emu, "ROTAtion:REACHED?") == "1"
        assert emu.state.position == pytest.approx(45.0)

    def test_hold_motion_negative(self) -> None:
        with pytest.raises(ValueError, match="polls"):
            make_rotary_emulator().hold_motion(-1)

    def test_angle_outside_window(self) -> None:
        emu = make_rotary_emulator()
        _write(emu, "ROTAtion:LIMit:LOWer 0")
        _write(emu, "ROTAtion:ANGLE -10")
        assert emu.pending_errors == ((-222, "Data out of range"),)
        assert emu.state.target == pytest.approx(0.0)

    def test_bad_number(self) -> None:
        emu = make_rotary_emulator()
        _write(emu, "ROTAtion:ANGLE abc")
        assert emu.pending_errors == ((-220, "Parameter error"),)


# ---------------------------------------------------------------------------
# TestLimitsAndLock
# ---------------------------------------------------------------------------


class TestLimitsAndLock:
    """Tests for the limit window and the local lock."""

    def test_inverted_window(self) -> None:
        emu = make_rotary_emulator()
        _write(emu, "ROTAtion:LIMit:UPPer -400")
        assert emu.pending_errors == ((-222, "Data out of range"),)
        _write(emu, "ROTAtion:LIMit:LOWer 10")
        _write(emu, "ROTAtion:LIMit:UPPer 5")
        assert emu.pending_errors[-1] == (-221, "Settings conflict")
        assert _query(emu, "ROTAtion:LIMit:UPPer?") == "360.00"

    def test_local_lock(self) -> None:
        emu = make_rotary_emulator()
        _write(emu, "SYSTem:LOCal:LOCK")
        assert _query(emu, "SYSTem:LOCal:LOCK?") == "1"
        _write(emu, "SYSTem:LOCal:UNLock")
        assert _query(emu, "SYSTem:LOCal:LOCK?") == "0"

    def test_rst_restores_defaults(self) -> None:
        emu = make_rotary_emulator()
        _write(emu, "ROTAtion:LIMit:UPPer 90")
        _write(emu, "SYSTem:LOCal:LOCK")
        _write(emu, "*RST")
        assert emu.state.upper_limit == pytest.approx(360.0)
        assert not emu.state.local_locked
