"""Status codes and the reply type shared by the protocol layer."""

from __future__ import annotations

from enum import IntEnum
from typing import NamedTuple


class Status(IntEnum):
    """Outcome of a protocol operation.

    Setters return OK, NOT_SENT or MISMATCH. Plain commands return OK or
    FAILED. The integer values are stable and may be compared with ints.
    """

    FAILED = -1
    OK = 0
    NOT_SENT = 1
    MISMATCH = 2

    @classmethod
    def first_failure(cls, *statuses: Status) -> Status:
        """Return the first status that is not OK, or OK if all are."""
        for status in statuses:
            if status is not cls.OK:
                return status
        return cls.OK


class Reply(NamedTuple):
    """Result of a query: transport status plus the response text.

    ``text`` is empty whenever ``status`` is not OK.
    """

    status: Status
    text: str

    @property
    def ok(self) -> bool:
        return self.status == Status.OK

    @classmethod
    def failed(cls) -> Reply:
        return cls(Status.FAILED, "")
