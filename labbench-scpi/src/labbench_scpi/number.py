"""SCPI number parsing and formatting utilities.

Handles NR1 (integer), NR2 (fixed-point) and NR3 (scientific notation)
numeric formats and the SCPI special values NAN, INF and NINF. These are the
strict building blocks; :mod:`labbench_scpi.responses` layers the
sentinel-returning parsers on top of them.
"""

from __future__ import annotations

import math

_SPECIAL_FLOAT_MAP: dict[str, float] = {
    "NAN": float("nan"),
    "INF": float("inf"),
    "+INF": float("inf"),
    "NINF": float("-inf"),
    "-INF": float("-inf"),
}

# Keithley reports "not a number" as 9.91E37
_SCPI_NAN_VALUE = 9.91e37


def parse_number(text: str) -> float:
    """Parse a SCPI numeric response into a float.

    Accepts NR1 (``"42"``), NR2 (``"1.23"``), NR3 (``"1.23E+4"``), the special
    tokens ``NAN``, ``INF``, ``NINF`` and ``-INF``, and the IEEE 488.2 NaN
    value ``9.91E37``.

    Args:
        text: The raw response string (leading/trailing whitespace is stripped).

    Returns:
        The parsed float value.

    Raises:
        ValueError: If *text* cannot be parsed as a SCPI number.
    """
    token = text.strip().upper()
    special = _SPECIAL_FLOAT_MAP.get(token)
    if special is not None:
        return special
    try:
        value = float(token)
    except ValueError:
        raise ValueError(f"Invalid SCPI number: {text!r}") from None
    if value == _SCPI_NAN_VALUE:
        return float("nan")
    return value


def parse_int(text: str) -> int:
    """Parse a SCPI NR1 (integer) response.

    Args:
        text: The raw response string.

    Returns:
        The parsed integer.

    Raises:
        ValueError: If *text* is not a valid integer.
    """
    token = text.strip()
    try:
        return int(token)
    except ValueError:
        raise ValueError(f"Invalid SCPI integer: {text!r}") from None


def parse_bool(text: str) -> bool:
    """Parse a SCPI boolean response.

    Accepts ``"1"`` / ``"0"`` and ``"ON"`` / ``"OFF"`` (case-insensitive).

    Raises:
        ValueError: If *text* is not a recognized boolean token.
    """
    token = text.strip().upper()
    if token in ("1", "ON"):
        return True
    if token in ("0", "OFF"):
        return False
    raise ValueError(f"Invalid SCPI boolean: {text!r}")


def format_number(value: float) -> str:
    """Format a float for use in a SCPI command.

    ``nan``, ``inf`` and ``-inf`` are rendered as ``NAN``, ``INF`` and
    ``NINF``. Finite values use ``str()``, which round-trips exactly.

    Args:
        value: The numeric value to format.

    Returns:
        A SCPI-compatible string representation.
    """
    if math.isnan(value):
        return "NAN"
    if math.isinf(value):
        return "NINF" if value < 0 else "INF"
    if float(value).is_integer() and abs(value) < 1e15:
        return str(int(value))
    return str(float(value))


def format_fixed(value: float, decimals: int) -> str:
    """Format a float with a fixed number of decimal places.

    Args:
        value: The numeric value to format.
        decimals: Digits after the decimal point.

    Returns:
        The formatted string, e.g. ``format_fixed(0.1, 6) == "0.100000"``.
    """
    if not math.isfinite(value):
        return format_number(value)
    text = f"{value:.{decimals}f}"
    if text.startswith("-") and float(text) == 0.0:
        return text[1:]
    return text


def format_bool(value: bool, tokens: tuple[str, str] = ("1", "0")) -> str:
    """Format a boolean for use in a SCPI command.

    Args:
        value: The boolean to format.
        tokens: ``(true_token, false_token)`` of the device dialect.

    Returns:
        ``tokens[0]`` for True, ``tokens[1]`` for False.
    """
    return tokens[0] if value else tokens[1]
