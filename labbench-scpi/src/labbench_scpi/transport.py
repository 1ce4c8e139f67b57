"""SCPI transport protocol definition.

This module defines the :class:`ScpiTransport` protocol, the interface every
physical link must provide. Implementations include:

- :class:`labbench_scpi.visa.VisaResource`: PyVISA-backed transport
- :class:`labbench_scpi.serial_port.SerialResource`: pyserial-backed transport
- :class:`labbench_scpi.emulation.ScpiEmulator` and the device emulators
"""

from __future__ import annotations

from typing import Protocol


class ScpiTransport(Protocol):
    """Protocol for line-oriented SCPI message transport.

    This is a structural subtyping protocol. Any object with ``write()``,
    ``read()`` and ``close()`` methods of these signatures is accepted by
    :class:`labbench_scpi.session.ScpiSession`, which holds the transport by
    composition.

    Implementations raise :class:`labbench_scpi.errors.ScpiTransportError`
    (or a subclass) when an exchange fails.

    Example:
        >>> class LoopbackTransport:
        ...     def __init__(self) -> None:
        ...         self._last = ""
        ...     def write(self, message: str) -> None:
        ...         self._last = message
        ...     def read(self) -> str:
        ...         return self._last
        ...     def close(self) -> None:
        ...         pass
        ...
        >>> transport: ScpiTransport = LoopbackTransport()
    """

    def write(self, message: str) -> None:
        """Send one line to the instrument (the terminator is appended here).

        Args:
            message: The SCPI command or query string to send.
        """
        ...

    def read(self) -> str:
        """Read one line from the instrument.

        Returns:
            The line without its terminator.
        """
        ...

    def close(self) -> None:
        """Close the transport and release resources."""
        ...
