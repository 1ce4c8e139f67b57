"""Verbosity-gated operator messages.

Drivers narrate what they do ("set current to 100 mA") for the person
watching a lab script. How much of that narration reaches the log is a
per-session setting:

=======  ==========================================================
none     progress and diagnostics are logged at DEBUG only
few      progress at INFO, diagnostics at WARNING (the default)
all      as ``few``, plus every wire transaction at INFO
=======  ==========================================================

Everything goes through the standard :mod:`logging` machinery, so the
application decides where the text ends up.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any


class Verbosity(Enum):
    """Amount of operator text a session emits."""

    NONE = "none"
    FEW = "few"
    ALL = "all"

    @classmethod
    def parse(cls, value: Verbosity | str | bool) -> Verbosity:
        """Accept an enum member, its name in any case, or a bool.

        ``True`` maps to FEW and ``False`` to NONE.

        Raises:
            ValueError: For unknown names.
        """
        if isinstance(value, Verbosity):
            return value
        if isinstance(value, bool):
            return cls.FEW if value else cls.NONE
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(
                f"verbosity must be one of none/few/all, got {value!r}"
            ) from None


class Reporter:
    """Emit progress, traffic and diagnostic lines for one device session.

    Args:
        name: Device name prefixed to every line.
        verbosity: Initial verbosity.
        logger: Target logger; defaults to this module's logger.
    """

    def __init__(
        self,
        name: str,
        verbosity: Verbosity = Verbosity.FEW,
        logger: logging.Logger | None = None,
    ) -> None:
        self._name = name
        self.verbosity = verbosity
        self._logger = logger or logging.getLogger(__name__)

    @property
    def name(self) -> str:
        return self._name

    def progress(self, message: str, *args: Any) -> None:
        """Operator-facing progress line."""
        level = logging.DEBUG if self.verbosity is Verbosity.NONE else logging.INFO
        self._logger.log(level, "%s: " + message, self._name, *args)

    def diagnostic(self, message: str, *args: Any) -> None:
        """Something went wrong but the operation continues."""
        level = logging.DEBUG if self.verbosity is Verbosity.NONE else logging.WARNING
        self._logger.log(level, "%s: " + message, self._name, *args)

    def traffic(self, direction: str, text: str) -> None:
        """A single wire transaction (``direction`` is ``">>"`` or ``"<<"``)."""
        level = logging.INFO if self.verbosity is Verbosity.ALL else logging.DEBUG
        self._logger.log(level, "%s %s %s", self._name, direction, text)
