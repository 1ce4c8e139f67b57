"""Tests for the sentinel-returning response parsers."""

from __future__ import annotations

import math

import pytest

from labbench_scpi.responses import (
    COMMUNICATION_PROBLEM,
    UNEXPECTED_RESPONSE,
    is_marker,
    parse_choice,
    parse_flag,
    parse_float,
    parse_integer,
    parse_state,
    unquote,
)
from labbench_scpi.status import Reply, Status

FAILED = Reply.failed()


def _ok(text: str) -> Reply:
    return Reply(Status.OK, text)


class TestUnquote:
    """Tests for unquote."""

    def test_quoted(self) -> None:
        assert unquote(' "CURR:DC" ') == "CURR:DC"

    def test_unquoted(self) -> None:
        assert unquote("VOLT") == "VOLT"

    def test_single_quote_char(self) -> None:
        assert unquote('"') == '"'


class TestParseFloat:
    """Tests for parse_float."""

    def test_value(self) -> None:
        assert parse_float(_ok("1.5E-3")) == pytest.approx(0.0015)

    def test_scale(self) -> None:
        assert parse_float(_ok("0.25"), 1e-3) == pytest.approx(250.0)

    def test_failed_reply(self) -> None:
        assert math.isnan(parse_float(FAILED))

    def test_garbage(self) -> None:
        assert math.isnan(parse_float(_ok("ERR")))


class TestParseInteger:
    """Tests for parse_integer."""

    def test_value(self) -> None:
        assert parse_integer(_ok("12")) == 12

    def test_failure(self) -> None:
        assert parse_integer(FAILED) is None
        assert parse_integer(_ok("1.2")) is None


class TestParseFlag:
    """Tests for the fail-safe flag parser."""

    @pytest.mark.parametrize("text", ["1", "on", "CLOSED"])
    def test_default_true_tokens(self, text: str) -> None:
        assert parse_flag(_ok(text)) is True

    def test_other_token_is_false(self) -> None:
        assert parse_flag(_ok("0")) is False
        assert parse_flag(_ok("maybe")) is False

    def test_failed_reply_is_false(self) -> None:
        assert parse_flag(FAILED) is False

    def test_custom_tokens(self) -> None:
        assert parse_flag(_ok("1"), ("ON",)) is False
        assert parse_flag(_ok("On"), ("ON",)) is True


class TestParseState:
    """Tests for the tri-state boolean parser."""

    def test_values(self) -> None:
        assert parse_state(_ok("ON")) is True
        assert parse_state(_ok("0")) is False

    def test_unknown(self) -> None:
        assert parse_state(_ok("YES")) is None
        assert parse_state(FAILED) is None


class TestParseChoice:
    """Tests for enumerated replies."""

    CHOICES = {"fron": "front", "rear": "rear"}

    def test_known(self) -> None:
        assert parse_choice(_ok("FRON"), self.CHOICES) == "front"

    def test_quoted(self) -> None:
        assert parse_choice(_ok('"REAR"'), self.CHOICES) == "rear"

    def test_unexpected(self) -> None:
        assert parse_choice(_ok("SIDE"), self.CHOICES) == UNEXPECTED_RESPONSE

    def test_communication_problem(self) -> None:
        assert parse_choice(FAILED, self.CHOICES) == COMMUNICATION_PROBLEM

    def test_is_marker(self) -> None:
        assert is_marker(UNEXPECTED_RESPONSE)
        assert is_marker(COMMUNICATION_PROBLEM)
        assert not is_marker("front")
