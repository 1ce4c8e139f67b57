"""Tests for the CommandSpec command builder."""

from __future__ import annotations

import math

import pytest

from labbench_scpi.commands import CommandSpec

CURRENT = CommandSpec(
    name="current",
    template="SOUR:CURR {value}",
    query="SOUR:CURR?",
    unit_scale=1e-3,
    value_range=(0.0, 1000.0),
    decimals=6,
    unit="mA",
)


class TestValidation:
    """Tests for CommandSpec construction checks."""

    def test_empty_name(self) -> None:
        with pytest.raises(ValueError, match="name"):
            CommandSpec(name="", template="X")

    def test_inverted_range(self) -> None:
        with pytest.raises(ValueError, match="value_range"):
            CommandSpec(name="x", template="X {value}", value_range=(2.0, 1.0))

    @pytest.mark.parametrize("scale", [0.0, -1.0, math.nan, math.inf])
    def test_bad_scale(self, scale: float) -> None:
        with pytest.raises(ValueError, match="unit_scale"):
            CommandSpec(name="x", template="X {value}", unit_scale=scale)

    def test_negative_decimals(self) -> None:
        with pytest.raises(ValueError, match="decimals"):
            CommandSpec(name="x", template="X {value}", decimals=-1)


class TestBuild:
    """Tests for building command lines."""

    def test_scaled_fixed_precision(self) -> None:
        assert CURRENT.build(100) == "SOUR:CURR 0.100000"

    def test_clipped_high(self) -> None:
        assert CURRENT.build(5000) == "SOUR:CURR 1.000000"

    def test_clipped_low(self) -> None:
        assert CURRENT.build(-3) == "SOUR:CURR 0.000000"

    def test_shortest_representation(self) -> None:
        spec = CommandSpec(name="nplc", template=":SENS:VOLT:NPLC {value}")
        assert spec.build(5) == ":SENS:VOLT:NPLC 5"
        assert spec.build(0.01) == ":SENS:VOLT:NPLC 0.01"

    def test_bool_tokens(self) -> None:
        spec = CommandSpec(name="output", template="OUTP {value}", bool_tokens=("ON", "OFF"))
        assert spec.build(True) == "OUTP ON"
        assert spec.build(False) == "OUTP OFF"

    def test_string_passes_through(self) -> None:
        spec = CommandSpec(name="mode", template="SOUR:MODE {value}")
        assert spec.build("CC") == "SOUR:MODE CC"

    def test_fixed_template_ignores_value(self) -> None:
        spec = CommandSpec(name="lock", template="SYST:LOCK ON")
        assert spec.build() == "SYST:LOCK ON"
        assert spec.build(42) == "SYST:LOCK ON"

    def test_missing_value(self) -> None:
        with pytest.raises(ValueError, match="needs a value"):
            CURRENT.build()

    def test_nan_not_clipped(self) -> None:
        spec = CommandSpec(name="x", template="X {value}", value_range=(0.0, 1.0))
        assert spec.build(math.nan) == "X NAN"


class TestConversion:
    """Tests for unit conversion and describe."""

    def test_to_wire_and_back(self) -> None:
        assert CURRENT.to_wire(250) == pytest.approx(0.25)
        assert CURRENT.to_client(0.25) == pytest.approx(250.0)

    def test_clip_without_range(self) -> None:
        spec = CommandSpec(name="x", template="X {value}")
        assert spec.clip(1e9) == 1e9

    def test_describe(self) -> None:
        assert CURRENT.describe(100) == "100 mA"
        assert CURRENT.describe(2000) == "1000 mA"
        assert CURRENT.describe(True) == "on"
        assert CURRENT.describe("CC") == "CC"
