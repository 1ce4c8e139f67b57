"""Exception types for labbench-core.

All labbench exceptions inherit from LabbenchError, so callers can catch any
framework-specific error with a single except clause.

Exception hierarchy:
    LabbenchError (base)
    +-- InstrumentConnectionError: A transport could not be opened
    +-- ToleranceError: Invalid readback tolerance configuration
"""


class LabbenchError(Exception):
    """Base exception for all labbench errors."""


class InstrumentConnectionError(LabbenchError):
    """Raised when the transport to an instrument cannot be opened.

    This is the only communication failure that propagates out of a driver:
    once a session exists, transport hiccups are reported through status
    codes and sentinel values instead.
    """


class ToleranceError(LabbenchError):
    """Raised for invalid readback tolerance definitions.

    This includes negative fractions and range bands whose headroom or span
    factors are not positive.
    """
