"""Parameter validator for loosely typed driver arguments.

Drivers accept settings either as single values (``set_current(100)``) or
as name/value pairs (``configure("curr", 100, "mode", "cc")``). This module
normalizes both into canonical, pattern-checked values and reports every
problem as a :class:`Rejected` result instead of raising, so a batch script
keeps running when it passes a typo'd or malformed parameter.

Multi-parameter calls are described by a :class:`ParamTable`:

    >>> table = ParamTable((
    ...     ParamField("current", ("curr", "i")),
    ...     ParamField("mode", ("opmode",), TOKEN_PATTERN),
    ... ))
    >>> check = table.check("I", 100, "Mode", "cc", "speed", 3)
    >>> check.params
    {'current': '100', 'mode': 'CC'}
    >>> [r.name for r in check.rejections]
    ['speed']

Single values go through :func:`accept_number`, :func:`accept_flag` and
:func:`accept_choice`.
"""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

NUMERIC_PATTERN = re.compile(r"^[\w\.\+\-]+$")
TOKEN_PATTERN = re.compile(r"^\w+$")

NO_VALUE = "no value given"

_DISPLAY_WIDTH = 44
_DISPLAY_KEEP = 40

_TRUE_WORDS = frozenset({"1", "on", "yes", "true"})
_FALSE_WORDS = frozenset({"0", "off", "no", "false"})

# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Accepted:
    """A value that passed validation.

    Attributes:
        name: Canonical parameter name.
        value: Coerced value (string for table fields, typed for single values).
    """

    name: str
    value: Any


@dataclass(frozen=True)
class Rejected:
    """A value that was dropped, with the reason.

    Attributes:
        name: Canonical parameter name, or the raw name if it was unknown.
        reason: Human-readable reason.
    """

    name: str
    reason: str

    @property
    def is_absent(self) -> bool:
        """True when nothing was supplied (as opposed to something invalid)."""
        return self.reason == NO_VALUE


ParamResult = Accepted | Rejected

ParameterSet = dict[str, str]
"""Canonical name -> coerced value string, in field-table order."""


@dataclass(frozen=True)
class ParamCheck:
    """Outcome of validating a list of name/value pairs.

    Attributes:
        params: The accepted parameters in canonical order.
        rejections: Every dropped pair, in input order.
    """

    params: ParameterSet
    rejections: tuple[Rejected, ...] = ()

    def get(self, name: str) -> str | None:
        return self.params.get(name)


# ---------------------------------------------------------------------------
# Coercion
# ---------------------------------------------------------------------------


def _is_sequence(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes))


def coerce_value(value: Any) -> str:
    """Convert a client value to its canonical text form.

    * ``None`` -> ``""`` (absent)
    * strings -> upper-cased
    * booleans -> ``"1"`` / ``"0"``
    * numbers -> up to 10 significant digits, upper-cased (``1E-05``)
    * flat sequences and 1-d arrays -> elements joined with ``", "``

    Raises:
        TypeError: For nested (non-vector) sequences, multi-dimensional
            arrays and unsupported types.
    """
    if value is None:
        return ""
    if isinstance(value, str):
        return value.upper()
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, (int, float)):
        return format(value, ".10g").upper()
    ndim = getattr(value, "ndim", None)
    if ndim is not None:
        if ndim > 1:
            raise TypeError(f"expected a scalar or vector, got a {ndim}-d array")
        value = value.tolist()
        if not isinstance(value, list):
            return coerce_value(value)
    if _is_sequence(value):
        if any(_is_sequence(item) or getattr(item, "ndim", 0) for item in value):
            raise TypeError("expected a scalar or vector, got a nested sequence")
        return ", ".join(coerce_value(item) for item in value)
    raise TypeError(f"unsupported value type {type(value).__name__}")


# ---------------------------------------------------------------------------
# Field tables
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ParamField:
    """One canonical parameter of a multi-parameter call.

    Attributes:
        name: Canonical name; always accepted as an alias of itself.
        aliases: Additional accepted names (matched case-insensitively).
        pattern: Shape every coerced value must match.
    """

    name: str
    aliases: tuple[str, ...] = ()
    pattern: re.Pattern[str] = NUMERIC_PATTERN

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("name must be non-empty")

    @property
    def names(self) -> tuple[str, ...]:
        """All accepted names, lower-cased."""
        return tuple(n.lower() for n in (self.name, *self.aliases))


@dataclass(frozen=True)
class ParamTable:
    """Closed, ordered set of canonical fields for one device operation.

    Raises:
        ValueError: If two fields claim the same alias.
    """

    fields: tuple[ParamField, ...]
    _lookup: dict[str, ParamField] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        lookup: dict[str, ParamField] = {}
        for param in self.fields:
            for alias in param.names:
                if alias in lookup:
                    raise ValueError(
                        f"alias {alias!r} used by {lookup[alias].name!r} and {param.name!r}"
                    )
                lookup[alias] = param
        object.__setattr__(self, "_lookup", lookup)

    @property
    def names(self) -> tuple[str, ...]:
        """Canonical names in table order."""
        return tuple(f.name for f in self.fields)

    def resolve(self, name: str) -> ParamField | None:
        """Return the field for *name* or any of its aliases, or None."""
        return self._lookup.get(name.strip().lower())

    def validate(self, name: str, value: Any) -> ParamResult:
        """Validate one name/value pair.

        Returns:
            :class:`Accepted` with the canonical name and coerced text, or
            :class:`Rejected` explaining why the pair was dropped.
        """
        param = self.resolve(name)
        if param is None:
            return Rejected(name, "unknown parameter")
        try:
            text = coerce_value(value)
        except TypeError as exc:
            return Rejected(param.name, f"invalid type ({exc})")
        if not text:
            return Rejected(param.name, NO_VALUE)
        if not param.pattern.match(text):
            return Rejected(param.name, f"invalid value {text!r}")
        return Accepted(param.name, text)

    def check(self, *args: Any, only: Iterable[str] | None = None, **kwargs: Any) -> ParamCheck:
        """Validate name/value pairs and build the canonical parameter set.

        Positional arguments are read as alternating names and values;
        keyword arguments are appended as further pairs. A dangling final
        name is dropped with a warning. Unknown names and invalid values are
        logged and reported in :attr:`ParamCheck.rejections`; the remaining
        pairs are still processed. A later valid value for a field replaces
        an earlier one; an invalid one leaves the earlier value in place.

        Args:
            *args: Alternating names and values.
            only: Restrict the result to these canonical names.
            **kwargs: Additional name/value pairs.

        Returns:
            The accepted parameters in table order and the rejections.
        """
        tokens: list[Any] = list(args)
        if len(tokens) % 2:
            logger.warning("Odd number of parameters. Ignore last input %r.", tokens[-1])
            tokens.pop()
        for key, value in kwargs.items():
            tokens.extend((key, value))

        found: dict[str, str] = {}
        rejections: list[Rejected] = []
        for raw_name, value in zip(tokens[0::2], tokens[1::2]):
            if _is_sequence(raw_name) and all(isinstance(part, str) for part in raw_name):
                raw_name = "".join(raw_name)
            if not isinstance(raw_name, str):
                logger.warning("Parameter names have to be strings, got %r. Ignore parameter.", raw_name)
                rejections.append(Rejected(repr(raw_name), "parameter name is not a string"))
                continue
            result = self.validate(raw_name, value)
            if isinstance(result, Accepted):
                found[result.name] = result.value
                continue
            rejections.append(result)
            if result.reason == "unknown parameter":
                logger.warning("Parameter name '%s' is unknown. Ignore parameter.", raw_name)
            elif not result.is_absent:
                logger.warning("Parameter '%s': %s. Ignore parameter.", result.name, result.reason)

        wanted = None if only is None else {name.lower() for name in only}
        params = {
            name: found[name]
            for name in self.names
            if name in found and (wanted is None or name.lower() in wanted)
        }
        return ParamCheck(params=params, rejections=tuple(rejections))


def format_parameter_set(params: Mapping[str, str]) -> list[str]:
    """Render a parameter set as aligned display lines.

    Values longer than 44 characters are cut to 40 characters plus ``" ..."``.
    """
    lines = []
    for name, value in params.items():
        if len(value) > _DISPLAY_WIDTH:
            value = value[:_DISPLAY_KEEP] + " ..."
        lines.append(f"  - {name:<13s}: {value}")
    return lines


# ---------------------------------------------------------------------------
# Single-value acceptors
# ---------------------------------------------------------------------------


def accept_number(value: Any, name: str = "value") -> ParamResult:
    """Accept a finite number or numeric string.

    Booleans count as 0/1. Strings are parsed with ``float()``.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        return Rejected(name, NO_VALUE)
    if isinstance(value, bool):
        return Accepted(name, float(value))
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return Rejected(name, f"invalid value {value!r}")
    else:
        return Rejected(name, f"invalid type {type(value).__name__}")
    if not math.isfinite(number):
        return Rejected(name, f"invalid value {value!r}")
    return Accepted(name, number)


def accept_flag(value: Any, name: str = "value") -> ParamResult:
    """Accept a boolean given as bool, 0/1, or yes/no/on/off/true/false."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return Rejected(name, NO_VALUE)
    if isinstance(value, bool):
        return Accepted(name, value)
    if isinstance(value, (int, float)):
        if value in (0, 1):
            return Accepted(name, bool(value))
        return Rejected(name, f"invalid value {value!r}")
    if isinstance(value, str):
        word = value.strip().lower()
        if word in _TRUE_WORDS:
            return Accepted(name, True)
        if word in _FALSE_WORDS:
            return Accepted(name, False)
        return Rejected(name, f"invalid value {value!r}")
    return Rejected(name, f"invalid type {type(value).__name__}")


def accept_choice(value: Any, aliases: Mapping[str, str], name: str = "value") -> ParamResult:
    """Accept one of a closed set of options.

    Args:
        value: Client input.
        aliases: Lower-case accepted spelling -> wire token.
        name: Parameter name for the result.

    Returns:
        :class:`Accepted` with the wire token, or :class:`Rejected`.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        return Rejected(name, NO_VALUE)
    if not isinstance(value, str):
        return Rejected(name, f"invalid type {type(value).__name__}")
    token = aliases.get(value.strip().lower())
    if token is None:
        return Rejected(name, f"unknown option {value!r}")
    return Accepted(name, token)
