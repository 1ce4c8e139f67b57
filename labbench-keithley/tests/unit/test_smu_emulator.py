"""Tests for the Keithley 2450 emulator."""

from __future__ import annotations

import pytest

from labbench_keithley.emulator import (
    EVENT_WARNING,
    Smu2450Emulator,
    Smu2450EmulatorConfig,
    make_smu2450_emulator,
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _query(emu: Smu2450Emulator, cmd: str) -> str:
    """Send a query and return the response."""
    emu.write(cmd)
    return emu.read()


# ---------------------------------------------------------------------------
# TestSmu2450EmulatorConfig
# ---------------------------------------------------------------------------


class TestSmu2450EmulatorConfig:
    """Tests for Smu2450EmulatorConfig validation."""

    def test_defaults(self) -> None:
        assert Smu2450EmulatorConfig(identity="SMU").line_frequency == 50.0

    def test_empty_identity(self) -> None:
        with pytest.raises(ValueError, match="identity"):
            Smu2450EmulatorConfig(identity="")

    def test_line_frequency(self) -> None:
        with pytest.raises(ValueError, match="line_frequency"):
            Smu2450EmulatorConfig(identity="SMU", line_frequency=400.0)

    def test_sixty_hertz(self) -> None:
        emu = Smu2450Emulator(Smu2450EmulatorConfig(identity="SMU", line_frequency=60.0))
        assert _query(emu, ":SYST:LFR?") == "60"
        assert _query(emu, ":System:LFrequency?") == "60"
        assert _query(emu, ":System:LFrequency?") == "60"


# ---------------------------------------------------------------------------
# TestFunctions
# ---------------------------------------------------------------------------


class TestFunctions:
    """Tests for source and sense function selection."""

    def test_defaults(self) -> None:
        emu = make_smu2450_emulator()
        assert _query(emu, ":SOUR:FUNC?") == "VOLT"
        assert _query(emu, ":SENS:FUNC?") == '"CURR:DC"'

    def test_long_form(self) -> None:
        emu = make_smu2450_emulator()
        emu.write(":Source:Function CURRent")
        emu.write(':Sense:Function "VOLT:DC"')
        assert emu.state.source_function == "CURR"
        assert emu.state.sense_function == "VOLT"

    def test_invalid_function(self) -> None:
        emu = make_smu2450_emulator()
        emu.write(":SOUR:FUNC RES")
        assert emu.pending_errors == ((-224, "Illegal parameter value"),)

    def test_terminals(self) -> None:
        emu = make_smu2450_emulator()
        emu.write(":ROUT:TERM REAR")
        assert _query(emu, ":Route:Terminals?") == "REAR"


# ---------------------------------------------------------------------------
# TestSource
# ---------------------------------------------------------------------------


class TestSource:
    """Tests for per-function source settings."""

    def test_level_per_function(self) -> None:
        emu = make_smu2450_emulator()
        emu.write(":SOUR:VOLT 1.5")
        emu.write(":SOUR:CURR 0.01")
        assert float(_query(emu, ":SOUR:VOLT:LEV:AMPL?")) == pytest.approx(1.5)
        assert float(_query(emu, ":SOUR:CURR?")) == pytest.approx(0.01)

    def test_level_out_of_range(self) -> None:
        emu = make_smu2450_emulator()
        emu.write(":SOUR:VOLT 300")
        assert emu.pending_errors == ((-222, "Data out of range"),)

    def test_range_snaps_to_step(self) -> None:
        emu = make_smu2450_emulator()
        emu.write(":SOUR:VOLT:RANG 3")
        assert float(_query(emu, ":SOUR:VOLT:RANG?")) == pytest.approx(20.0)
        assert _query(emu, ":SOUR:VOLT:RANG:AUTO?") == "0"

    def test_range_above_top_step(self) -> None:
        emu = make_smu2450_emulator()
        emu.write(":SOUR:CURR:RANG 2")
        assert emu.pending_errors[0][0] == -222

    def test_limits(self) -> None:
        emu = make_smu2450_emulator()
        emu.write(":SOUR:VOLT:ILIM 0.5")
        emu.write(":SOUR:CURR:VLIM 10")
        assert float(_query(emu, ":SOUR:VOLT:ILIM?")) == pytest.approx(0.5)
        assert float(_query(emu, ":SOUR:CURR:VLIM?")) == pytest.approx(10.0)

    def test_limit_tripped(self) -> None:
        emu = make_smu2450_emulator()
        emu.set_limit_tripped(True)
        assert _query(emu, ":SOUR:VOLT:ILIM:TRIP?") == "1"

    def test_delay_clears_auto_delay(self) -> None:
        emu = make_smu2450_emulator()
        emu.write(":SOUR:VOLT:DEL 0.1")
        assert _query(emu, ":SOUR:VOLT:DEL:AUTO?") == "0"

    def test_off_mode(self) -> None:
        emu = make_smu2450_emulator()
        emu.write(":OUTP:CURR:SMOD GUAR")
        assert _query(emu, ":OUTP:CURR:SMOD?") == "GUAR"
        assert _query(emu, ":OUTP:VOLT:SMOD?") == "NORM"

    def test_ov_protection(self) -> None:
        emu = make_smu2450_emulator()
        emu.write(":SOUR:VOLT:PROT PROT20")
        assert _query(emu, ":SOUR:VOLT:PROT:LEV?") == "PROT20"
        emu.write(":SOUR:VOLT:PROT PROT7")
        assert emu.pending_errors[0][0] == -224

    def test_rst_restores_defaults(self) -> None:
        emu = make_smu2450_emulator()
        emu.write(":SOUR:VOLT 2")
        emu.write("*RST")
        assert float(_query(emu, ":SOUR:VOLT?")) == pytest.approx(0.0)


# ---------------------------------------------------------------------------
# TestSense
# ---------------------------------------------------------------------------


class TestSense:
    """Tests for per-function sense settings."""

    def test_nplc(self) -> None:
        emu = make_smu2450_emulator()
        emu.write(":SENS:CURR:NPLC 2")
        assert float(_query(emu, ":Sense:Current:NPLCycles?")) == pytest.approx(2.0)
        assert float(_query(emu, ":SENS:VOLT:NPLC?")) == pytest.approx(1.0)

    def test_average(self) -> None:
        emu = make_smu2450_emulator()
        emu.write(":SENS:CURR:AVER:STAT ON")
        emu.write(":SENS:CURR:AVER:COUN 20")
        emu.write(":SENS:CURR:AVER:TCON MOV")
        assert _query(emu, ":SENS:CURR:AVER?") == "1"
        assert _query(emu, ":SENS:CURR:AVER:COUN?") == "20"
        assert _query(emu, ":SENS:CURR:AVER:TCON?") == "MOV"

    def test_lower_limit_bounded_by_upper(self) -> None:
        emu = make_smu2450_emulator()
        emu.write(":SENS:VOLT:RANG:AUTO:LLIM 300")
        assert emu.pending_errors[0][0] == -222
        assert float(_query(emu, ":SENS:VOLT:RANG:AUTO:ULIM?")) == pytest.approx(200.0)

    def test_resistance_range(self) -> None:
        emu = make_smu2450_emulator()
        emu.write(":SENS:RES:RANG 5e4")
        assert float(_query(emu, ":SENS:RES:RANG?")) == pytest.approx(2e5)

    def test_unit(self) -> None:
        emu = make_smu2450_emulator()
        emu.write(":SENS:VOLT:UNIT WATT")
        assert _query(emu, ":SENS:VOLT:UNIT?") == "WATT"
        emu.write(":SENS:VOLT:UNIT FOO")
        assert emu.pending_errors[0][0] == -224


# ---------------------------------------------------------------------------
# TestOutputAndTrigger
# ---------------------------------------------------------------------------


class TestOutputAndTrigger:
    """Tests for output, interlock, trigger and housekeeping commands."""

    def test_output_toggle(self) -> None:
        emu = make_smu2450_emulator()
        emu.write(":OUTP ON")
        assert _query(emu, ":OUTP:STAT?") == "1"

    def test_interlock_blocks_output(self) -> None:
        emu = make_smu2450_emulator()
        emu.write(":OUTP:INT:STAT ON")
        emu.write(":OUTP ON")
        assert _query(emu, ":OUTP?") == "0"
        assert emu.pending_errors[0][0] == -221
        emu.set_interlock_signal(True)
        assert _query(emu, ":OUTP:INT:TRIP?") == "1"
        emu.write(":OUTP ON")
        assert _query(emu, ":OUTP?") == "1"

    def test_trigger(self) -> None:
        emu = make_smu2450_emulator()
        assert _query(emu, ":TRIG:STAT?") == "idle;idle;"
        emu.write(":TRIG:CONT REST")
        assert _query(emu, ":TRIG:STAT?").startswith("running")
        emu.write(":ABOR")
        assert _query(emu, ":TRIG:STAT?").startswith("idle")

    def test_beeper(self) -> None:
        emu = make_smu2450_emulator()
        emu.write(":SYST:BEEP 500,0.2")
        assert emu.beeps == ((500.0, 0.2),)
        emu.write(":SYST:BEEP 500")
        assert emu.pending_errors == ((-109, "Missing parameter"),)

    def test_housekeeping(self) -> None:
        emu = make_smu2450_emulator()
        emu.write(':TRAC:CLE "defbuffer1"')
        emu.write(":SENS:AZER:ONCE")
        assert emu.cleared_buffers == ("defbuffer1",)
        assert emu.zero_refreshes == 1
        assert _query(emu, ":DISP:BUFF:ACT?") == "defbuffer1"


# ---------------------------------------------------------------------------
# TestEventLog
# ---------------------------------------------------------------------------


class TestEventLog:
    """Tests for the event log."""

    def test_empty(self) -> None:
        emu = make_smu2450_emulator()
        assert _query(emu, ":SYST:EVEN:COUN? ALL") == "0"
        assert _query(emu, ":SYST:EVEN:NEXT?").startswith("0,")

    def test_entry_format(self) -> None:
        emu = make_smu2450_emulator()
        emu.add_event(4917, "Buffer full", EVENT_WARNING)
        assert _query(emu, ":System:Eventlog:Count? All") == "1"
        line = _query(emu, ":SYST:EVEN:NEXT?")
        assert line.startswith('4917,"Buffer full;2;')
        assert line.endswith('"')
        assert emu.events == ()

    def test_errors_are_logged(self) -> None:
        emu = make_smu2450_emulator()
        emu.write(":FOO")
        assert _query(emu, ":SYST:EVEN:NEXT?").startswith('-100,"Command error;1;')

    def test_clear(self) -> None:
        emu = make_smu2450_emulator()
        emu.add_event(1, "one")
        emu.write(":SYST:CLE")
        assert emu.events == ()

    def test_cls_clears_events(self) -> None:
        emu = make_smu2450_emulator()
        emu.add_event(1, "one")
        emu.write("*CLS")
        assert emu.events == ()
