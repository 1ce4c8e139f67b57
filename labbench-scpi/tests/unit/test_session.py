"""Tests for ScpiSession against a small in-process device."""

from __future__ import annotations

import logging
import math

import pytest

from labbench_core.types.common import InstrumentIdentity
from labbench_scpi.commands import CommandSpec
from labbench_scpi.config import NO_SETTLE, SessionConfig, SettleTimes
from labbench_scpi.emulation import ScpiEmulator
from labbench_scpi.errorlog import Severity
from labbench_scpi.params import Accepted, Rejected
from labbench_scpi.responses import COMMUNICATION_PROBLEM, UNEXPECTED_RESPONSE
from labbench_scpi.session import ScpiSession, parse_idn_response
from labbench_scpi.status import Reply, Status
from labbench_scpi.verify import Check

# ---------------------------------------------------------------------------
# Fixture device
# ---------------------------------------------------------------------------


class _Supply(ScpiEmulator):
    """Current source with an output switch and a mode selector."""

    def __init__(self) -> None:
        super().__init__("ACME,PS100,SN7,1.0")
        self.current = 0.0
        self.output = False
        self.mode = "CC"
        self._set_handlers = {
            "CURR": self._set_current,
            "OUTP": self._set_output,
            "MODE": self._set_mode,
        }
        self._query_handlers = {
            "CURR?": lambda _: f"{self.current:.6f}",
            "OUTP?": lambda _: "1" if self.output else "0",
            "MODE?": lambda _: f'"{self.mode}"',
            "COUN?": lambda _: "17",
        }

    def _set_current(self, args: str) -> None:
        value = self.parse_float_arg(args)
        if value is not None:
            self.current = min(value, 1.0)

    def _set_output(self, args: str) -> None:
        value = self.parse_bool_arg(args)
        if value is not None:
            self.output = value

    def _set_mode(self, args: str) -> None:
        self.mode = args.strip().upper()


CURRENT = CommandSpec(
    name="current",
    template="SOUR:CURR {value}",
    query="SOUR:CURR?",
    unit_scale=1e-3,
    value_range=(0.0, 2000.0),
    unit="mA",
)
OUTPUT = CommandSpec(name="output", template="OUTP {value}", query="OUTP?")
MODE = CommandSpec(name="mode", template="MODE {value}", query="MODE?")
MODE_ALIASES = {"cc": "CC", "constant current": "CC", "cp": "CP"}


def _make_session(**config: object) -> tuple[ScpiSession, _Supply, list[float]]:
    emu = _Supply()
    pauses: list[float] = []
    settings: dict[str, object] = {"address": "emulator", "name": "Supply", "settle": NO_SETTLE}
    settings.update(config)
    session = ScpiSession(emu, SessionConfig(**settings), sleep=pauses.append)  # type: ignore[arg-type]
    return session, emu, pauses


# ---------------------------------------------------------------------------
# parse_idn_response / Status
# ---------------------------------------------------------------------------


class TestParseIdn:
    """Tests for parse_idn_response."""

    def test_four_fields(self) -> None:
        identity = parse_idn_response("ACME, PS100 ,SN7,1.0")
        assert identity == InstrumentIdentity("ACME", "PS100", "SN7", "1.0")

    def test_extra_fields_joined(self) -> None:
        identity = parse_idn_response("HTW Dresden,HTWD-DT-2025,SN1,FW_V1.0,HW_V1.0")
        assert identity.firmware == "FW_V1.0,HW_V1.0"

    def test_too_few_fields(self) -> None:
        with pytest.raises(ValueError, match="at least 4"):
            parse_idn_response("ACME,PS100")


class TestStatus:
    """Tests for Status and Reply helpers."""

    def test_values(self) -> None:
        assert [int(s) for s in Status] == [-1, 0, 1, 2]

    def test_first_failure(self) -> None:
        assert Status.first_failure(Status.OK, Status.MISMATCH, Status.FAILED) is Status.MISMATCH
        assert Status.first_failure(Status.OK, Status.OK) is Status.OK
        assert Status.first_failure() is Status.OK

    def test_failed_reply(self) -> None:
        reply = Reply.failed()
        assert not reply.ok
        assert reply.text == ""


# ---------------------------------------------------------------------------
# Core exchanges
# ---------------------------------------------------------------------------


class TestExchanges:
    """Tests for write and query."""

    def test_write(self) -> None:
        session, emu, _ = _make_session()
        assert session.write("SOUR:CURR 0.5") is Status.OK
        assert emu.current == pytest.approx(0.5)

    def test_write_failure(self, caplog: pytest.LogCaptureFixture) -> None:
        session, emu, _ = _make_session()
        emu.fail_next()
        with caplog.at_level(logging.WARNING):
            assert session.write("OUTP 1") is Status.FAILED
        assert "Supply: write 'OUTP 1' failed" in caplog.text

    def test_query(self) -> None:
        session, _, _ = _make_session()
        assert session.query("*IDN?") == Reply(Status.OK, "ACME,PS100,SN7,1.0")

    def test_query_without_response(self, caplog: pytest.LogCaptureFixture) -> None:
        session, _, _ = _make_session()
        with caplog.at_level(logging.WARNING):
            reply = session.query("OUTP 1")
        assert reply == Reply.failed()
        assert "no response pending" in caplog.text

    def test_traffic_logged_at_all(self, caplog: pytest.LogCaptureFixture) -> None:
        session, _, _ = _make_session(verbosity="all")
        with caplog.at_level(logging.INFO):
            session.query("OUTP?")
        assert "Supply >> OUTP?" in caplog.text
        assert "Supply << 0" in caplog.text

    def test_quiet_session(self, caplog: pytest.LogCaptureFixture) -> None:
        session, emu, _ = _make_session()
        session.verbosity = "none"
        emu.fail_next()
        with caplog.at_level(logging.INFO):
            session.write("OUTP 1")
        assert caplog.text == ""


class TestTypedQueries:
    """Tests for the sentinel-returning queries."""

    def test_float(self) -> None:
        session, emu, _ = _make_session()
        emu.current = 0.25
        assert session.query_float("CURR?", 1e-3) == pytest.approx(250.0)

    def test_float_failure(self) -> None:
        session, emu, _ = _make_session()
        emu.fail_next()
        assert math.isnan(session.query_float("CURR?"))

    def test_int(self) -> None:
        session, _, _ = _make_session()
        assert session.query_int("COUNT?") == 17
        assert session.query_int("CURR?") is None

    def test_flag_and_state(self) -> None:
        session, emu, _ = _make_session()
        emu.output = True
        assert session.query_flag("OUTP?") is True
        assert session.query_state("OUTP?") is True
        emu.fail_next()
        assert session.query_flag("OUTP?") is False

    def test_choice(self) -> None:
        session, emu, _ = _make_session()
        choices = {"cc": "constant current"}
        assert session.query_choice("MODE?", choices) == "constant current"
        emu.mode = "CV"
        assert session.query_choice("MODE?", choices) == UNEXPECTED_RESPONSE
        emu.fail_next()
        assert session.query_choice("MODE?", choices) == COMMUNICATION_PROBLEM

    def test_text(self) -> None:
        session, emu, _ = _make_session()
        assert session.query_text("MODE?") == "CC"
        emu.fail_next()
        assert session.query_text("MODE?") == ""


class TestCommonCommands:
    """Tests for identify, reset, clear and opc."""

    def test_identity(self) -> None:
        session, _, _ = _make_session()
        identity = session.get_identity()
        assert identity is not None
        assert identity.model == "PS100"

    def test_identity_failure(self, caplog: pytest.LogCaptureFixture) -> None:
        session, emu, _ = _make_session()
        emu.fail_next()
        with caplog.at_level(logging.WARNING):
            assert session.get_identity() is None
        assert "at least 4" in caplog.text

    def test_reset_pauses(self) -> None:
        session, emu, pauses = _make_session(settle=SettleTimes(reset_s=0.5, clear_s=0.1))
        assert session.reset() is Status.OK
        assert session.clear_status() is Status.OK
        assert pauses == [0.5, 0.1]
        assert emu.received == ("*RST", "*CLS")

    def test_opc(self) -> None:
        session, emu, _ = _make_session()
        assert session.opc() is Status.OK
        emu.fail_next()
        assert session.opc() is Status.FAILED


# ---------------------------------------------------------------------------
# Setter pipeline
# ---------------------------------------------------------------------------


class TestApply:
    """Tests for the validate -> write -> read back -> verify pipeline."""

    def test_ok(self) -> None:
        session, emu, _ = _make_session()
        assert session.apply(CURRENT, 100) is Status.OK
        assert emu.received == ("SOUR:CURR 0.1", "SOUR:CURR?")

    def test_none_not_sent(self) -> None:
        session, emu, _ = _make_session()
        assert session.apply(CURRENT, None) is Status.NOT_SENT
        assert emu.received == ()

    def test_clipped_value_verified(self) -> None:
        session, emu, _ = _make_session()
        assert session.apply(CURRENT, -5) is Status.OK
        assert emu.received[0] == "SOUR:CURR 0"

    def test_mismatch(self, caplog: pytest.LogCaptureFixture) -> None:
        session, _, _ = _make_session()
        with caplog.at_level(logging.WARNING):
            assert session.apply(CURRENT, 1500) is Status.MISMATCH
        assert (
            "parameter 'current' was not set properly "
            "(wanted value: 1500.0, actually set value: 1000.0)"
        ) in caplog.text

    def test_progress_message(self, caplog: pytest.LogCaptureFixture) -> None:
        session, _, _ = _make_session()
        with caplog.at_level(logging.INFO):
            session.apply(CURRENT, 250)
        assert "Supply: set current to 250 mA" in caplog.text

    def test_frozen_setting(self) -> None:
        session, emu, _ = _make_session()
        emu.freeze("CURR")
        assert session.apply(CURRENT, 100) is Status.MISMATCH

    def test_write_failure(self, caplog: pytest.LogCaptureFixture) -> None:
        session, emu, _ = _make_session()
        emu.fail_next()
        with caplog.at_level(logging.WARNING):
            assert session.apply(CURRENT, 100) is Status.MISMATCH
        assert "parameter 'current' was not sent" in caplog.text
        assert "wanted value: 100.0" in caplog.text
        assert emu.received == ("SOUR:CURR?",)

    def test_write_failure_with_value_already_set(self) -> None:
        session, emu, _ = _make_session()
        assert session.apply(CURRENT, 100) is Status.OK
        emu.clear_received()
        emu.fail_next()
        assert session.apply(CURRENT, 100) is Status.MISMATCH
        assert emu.received == ("SOUR:CURR?",)

    def test_dead_transport_is_mismatch(self) -> None:
        session, emu, _ = _make_session()
        emu.fail_next(10)
        assert session.apply(CURRENT, 100) is Status.MISMATCH

    def test_readback_failure(self) -> None:
        session, _, _ = _make_session()
        assert session.apply(CURRENT, 100, readback=lambda: math.nan) is Status.MISMATCH

    def test_custom_readback(self) -> None:
        session, _, _ = _make_session()
        assert session.apply(OUTPUT, True, check=Check.EXACT, readback=lambda: True) is Status.OK

    def test_read_back_without_query(self) -> None:
        session, _, _ = _make_session()
        with pytest.raises(ValueError, match="no readback query"):
            session.read_back(CommandSpec(name="x", template="X"), 1.0)


class TestSetters:
    """Tests for set_number, set_flag and set_choice."""

    def test_number_from_string(self) -> None:
        session, emu, _ = _make_session()
        assert session.set_number(CURRENT, "200") is Status.OK
        assert emu.current == pytest.approx(0.2)

    def test_number_rejected(self, caplog: pytest.LogCaptureFixture) -> None:
        session, emu, _ = _make_session()
        with caplog.at_level(logging.WARNING):
            assert session.set_number(CURRENT, "lots") is Status.NOT_SENT
        assert "invalid current: invalid value 'lots'. Nothing sent." in caplog.text
        assert emu.received == ()

    def test_number_absent_is_silent(self, caplog: pytest.LogCaptureFixture) -> None:
        session, _, _ = _make_session()
        with caplog.at_level(logging.WARNING):
            assert session.set_number(CURRENT, None) is Status.NOT_SENT
        assert caplog.text == ""

    @pytest.mark.parametrize("value", ["on", "YES", 1, True])
    def test_flag(self, value: object) -> None:
        session, emu, _ = _make_session()
        assert session.set_flag(OUTPUT, value) is Status.OK
        assert emu.output

    def test_flag_rejected(self) -> None:
        session, _, _ = _make_session()
        assert session.set_flag(OUTPUT, "sometimes") is Status.NOT_SENT

    def test_choice(self) -> None:
        session, emu, _ = _make_session()
        assert session.set_choice(MODE, "CP", MODE_ALIASES) is Status.OK
        assert emu.mode == "CP"
        assert emu.received[0] == "MODE CP"

    def test_choice_with_readback(self) -> None:
        session, _, _ = _make_session()
        names = {"cc": "constant current", "cp": "constant power"}
        status = session.set_choice(
            MODE,
            "constant current",
            MODE_ALIASES,
            readback=lambda: session.query_choice("MODE?", names),
            expected=lambda token: names[token.lower()],
        )
        assert status is Status.OK

    def test_choice_unknown(self) -> None:
        session, emu, _ = _make_session()
        assert session.set_choice(MODE, "cv", MODE_ALIASES) is Status.NOT_SENT
        assert emu.received == ()

    def test_accepted(self) -> None:
        session, _, _ = _make_session()
        assert session.accepted(Accepted("x", 3.0)) == 3.0
        assert session.accepted(Rejected("x", "bad")) is None


# ---------------------------------------------------------------------------
# Error log
# ---------------------------------------------------------------------------


class TestErrorLog:
    """Tests for drain_errors and clear_error_log."""

    def test_drain_accumulates(self, caplog: pytest.LogCaptureFixture) -> None:
        session, emu, _ = _make_session()
        emu.write("BOGUS")
        with caplog.at_level(logging.WARNING):
            added = session.drain_errors()
        assert [e.code for e in added] == [-100]
        assert "device reported" in caplog.text
        emu.push_error(-222, "Data out of range")
        assert [e.code for e in session.drain_errors()] == [-222]
        assert [e.code for e in session.error_log.entries] == [-100, -222]

    def test_drain_bounded_by_config(self) -> None:
        session, emu, _ = _make_session(max_error_reads=2)
        for _ in range(5):
            emu.push_error(-350, "Queue overflow")
        assert len(session.drain_errors()) == 2

    def test_drain_communication_problem(self) -> None:
        session, emu, _ = _make_session()
        emu.fail_next()
        entries = session.drain_errors()
        assert len(entries) == 1
        assert entries[0].severity is Severity.UNKNOWN

    def test_clear(self) -> None:
        session, emu, pauses = _make_session(settle=SettleTimes(reset_s=0.0, clear_s=0.2))
        emu.push_error(-100, "Command error")
        session.drain_errors()
        assert session.clear_error_log() is Status.OK
        assert len(session.error_log) == 0
        assert pauses == [0.2]

    def test_clear_failure_keeps_log(self, caplog: pytest.LogCaptureFixture) -> None:
        session, emu, _ = _make_session()
        emu.push_error(-100, "Command error")
        session.drain_errors()
        emu.fail_next()
        with caplog.at_level(logging.WARNING):
            assert session.clear_error_log() is Status.FAILED
        assert len(session.error_log) == 1
        assert "local error log kept" in caplog.text


# ---------------------------------------------------------------------------
# Echo and lifecycle
# ---------------------------------------------------------------------------


class _EchoSupply(_Supply):
    ECHO = True


class TestEcho:
    """Tests for devices that echo every line."""

    def _make(self) -> tuple[ScpiSession, _EchoSupply, list[float]]:
        emu = _EchoSupply()
        pauses: list[float] = []
        config = SessionConfig(
            address="emulator",
            name="Echo",
            echo=True,
            settle=SettleTimes(reset_s=0.0, write_s=0.05, query_s=0.1),
        )
        return ScpiSession(emu, config, sleep=pauses.append), emu, pauses

    def test_query_skips_echo(self) -> None:
        session, _, pauses = self._make()
        assert session.query("*IDN?").text == "ACME,PS100,SN7,1.0"
        assert pauses == [0.1]

    def test_write_discards_echo(self) -> None:
        session, _, pauses = self._make()
        assert session.write("OUTP 1") is Status.OK
        assert session.query_flag("OUTP?")
        assert pauses == [0.05, 0.1]

    def test_missing_echo_tolerated(self) -> None:
        session, emu, _ = self._make()
        emu.ECHO = False
        assert session.write("OUTP 1") is Status.OK


class TestLifecycle:
    """Tests for close and the context manager."""

    def test_context_manager(self) -> None:
        session, emu, _ = _make_session()
        with session as entered:
            assert entered is session
        assert emu.closed

    def test_properties(self) -> None:
        session, _, _ = _make_session()
        assert session.name == "Supply"
        assert session.tolerance.relative == 0.01
        assert session.reporter.name == "Supply"
