"""SCPI protocol error types.

All exceptions inherit from :class:`labbench_core.errors.LabbenchError`.
Transports raise :class:`ScpiTransportError`; :class:`ScpiSession` catches it
and turns it into status codes and sentinel values, so driver code never sees
these exceptions for an individual failed exchange.
"""

from __future__ import annotations

from labbench_core.errors import LabbenchError


class ScpiError(LabbenchError):
    """Base exception for SCPI protocol errors."""


class ScpiTransportError(ScpiError):
    """Raised by a transport when a write or read fails.

    Covers closed resources, I/O errors reported by the VISA or serial
    library, and lost connections.
    """


class ScpiTimeoutError(ScpiTransportError):
    """Raised by a transport when no complete response arrived in time."""
