"""Response parser: raw reply -> typed value with failure sentinels.

Every parser accepts a :class:`~labbench_scpi.status.Reply` and never
raises. A failed exchange or an unparseable response collapses to the
sentinel of the target type:

==============  =====================================================
Target type     Sentinel
==============  =====================================================
float           ``nan``
bool (flag)     ``False`` (a safety condition is never assumed met)
tri-state       ``None``
enumerated      :data:`UNEXPECTED_RESPONSE` / :data:`COMMUNICATION_PROBLEM`
==============  =====================================================
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping

from labbench_scpi.number import parse_bool, parse_int, parse_number
from labbench_scpi.status import Reply

UNEXPECTED_RESPONSE = "error - unexpected response"
COMMUNICATION_PROBLEM = "error - communication problem"

DEFAULT_TRUE_TOKENS: tuple[str, ...] = ("1", "ON", "CLOSED")


def unquote(text: str) -> str:
    """Strip surrounding whitespace and one pair of double quotes."""
    token = text.strip()
    if len(token) >= 2 and token[0] == token[-1] == '"':
        return token[1:-1]
    return token


def parse_float(reply: Reply, scale: float = 1.0) -> float:
    """Parse a numeric reply, dividing by *scale* (wire -> client unit).

    Returns:
        The value, or ``nan`` on transport failure or parse failure.
    """
    if not reply.ok:
        return math.nan
    try:
        return parse_number(unquote(reply.text)) / scale
    except ValueError:
        return math.nan


def parse_integer(reply: Reply) -> int | None:
    """Parse an NR1 reply; None on failure."""
    if not reply.ok:
        return None
    try:
        return parse_int(unquote(reply.text))
    except ValueError:
        return None


def parse_flag(reply: Reply, true_tokens: Iterable[str] = DEFAULT_TRUE_TOKENS) -> bool:
    """Parse a boolean status reply with a fail-safe default.

    Only a recognized true token yields True. Everything else, including a
    failed exchange, yields False.
    """
    if not reply.ok:
        return False
    token = unquote(reply.text).upper()
    return token in {t.upper() for t in true_tokens}


def parse_state(reply: Reply) -> bool | None:
    """Parse a boolean setting for readback comparison.

    Returns:
        True or False for ``1``/``ON`` and ``0``/``OFF``; None when the
        reply failed or holds anything else.
    """
    if not reply.ok:
        return None
    try:
        return parse_bool(unquote(reply.text))
    except ValueError:
        return None


def parse_choice(reply: Reply, choices: Mapping[str, str]) -> str:
    """Map an enumerated reply to its canonical long form.

    Args:
        reply: The query reply.
        choices: Lower-case response token -> canonical name, e.g.
            ``{"fron": "front", "rear": "rear"}``.

    Returns:
        The canonical name, :data:`COMMUNICATION_PROBLEM` if the exchange
        failed, or :data:`UNEXPECTED_RESPONSE` for an unknown token.
    """
    if not reply.ok:
        return COMMUNICATION_PROBLEM
    return choices.get(unquote(reply.text).lower(), UNEXPECTED_RESPONSE)


def is_marker(value: object) -> bool:
    """Return True if *value* is one of the failure marker strings."""
    return value in (UNEXPECTED_RESPONSE, COMMUNICATION_PROBLEM)
