"""PyVISA transport for SCPI instruments.

Wraps the PyVISA library, which is lazily imported so the rest of
labbench-scpi works without VISA installed.

Supported resource string formats include:
- TCPIP: ``TCPIP::192.168.1.100::INSTR`` (LAN instruments)
- USB: ``USB0::0x05E6::0x2450::04512345::0::INSTR``
- GPIB: ``GPIB0::18::INSTR``
- Serial: ``ASRL3::INSTR`` (baud rate applied on open)
"""

from __future__ import annotations

import logging
from typing import Any

from labbench_core.errors import InstrumentConnectionError

from labbench_scpi.errors import ScpiTimeoutError, ScpiTransportError

logger = logging.getLogger(__name__)


class VisaResource:
    """SCPI transport backed by PyVISA.

    Implements the :class:`ScpiTransport` protocol. Opening failures raise
    :class:`InstrumentConnectionError`; I/O failures on an open resource
    raise :class:`ScpiTransportError` (:class:`ScpiTimeoutError` for
    timeouts).

    Args:
        resource_string: VISA resource address.
        timeout_ms: I/O timeout in milliseconds (applied on open).
        read_termination: Character(s) that terminate read operations.
        write_termination: Character(s) appended to write operations.
        baud_rate: Baud rate for ``ASRL`` resources; ignored otherwise.

    Example:
        >>> resource = VisaResource("USB0::0x05E6::0x2450::04512345::0::INSTR")
        >>> resource.open()
        >>> resource.write("*IDN?")
        >>> print(resource.read())
        >>> resource.close()
    """

    def __init__(
        self,
        resource_string: str,
        *,
        timeout_ms: int = 5000,
        read_termination: str = "\n",
        write_termination: str = "\n",
        baud_rate: int | None = None,
    ) -> None:
        self._resource_string = resource_string
        self._timeout_ms = timeout_ms
        self._read_termination = read_termination
        self._write_termination = write_termination
        self._baud_rate = baud_rate
        self._rm: Any = None
        self._resource: Any = None
        self._io_errors: tuple[type[BaseException], ...] = (OSError,)
        self._timeout_code: Any = None

    # -- Properties ----------------------------------------------------------

    @property
    def resource_string(self) -> str:
        """The VISA resource string."""
        return self._resource_string

    @property
    def is_open(self) -> bool:
        """Return True if the resource is currently open."""
        return self._resource is not None

    # -- Lifecycle -----------------------------------------------------------

    def open(self) -> None:
        """Open the VISA resource.

        Lazily imports ``pyvisa`` and creates a ``ResourceManager``.

        Raises:
            InstrumentConnectionError: If ``pyvisa`` is not installed or the
                resource cannot be opened.
        """
        if self._resource is not None:
            return

        try:
            import pyvisa  # type: ignore[import-not-found]  # pylint: disable=import-outside-toplevel
        except ImportError as exc:
            raise InstrumentConnectionError(
                "pyvisa library is not installed. Install with: pip install pyvisa"
            ) from exc

        try:
            self._rm = pyvisa.ResourceManager()
            self._resource = self._rm.open_resource(
                self._resource_string,
                read_termination=self._read_termination,
                write_termination=self._write_termination,
            )
            self._resource.timeout = self._timeout_ms
            if self._baud_rate is not None and self._resource_string.upper().startswith("ASRL"):
                self._resource.baud_rate = self._baud_rate
        except Exception as exc:
            self._resource = None
            if self._rm is not None:
                try:
                    self._rm.close()
                except Exception:  # pylint: disable=broad-except
                    pass
            self._rm = None
            raise InstrumentConnectionError(
                f"Failed to open VISA resource {self._resource_string!r}: {exc}"
            ) from exc

        self._io_errors = (pyvisa.errors.VisaIOError, OSError)
        self._timeout_code = pyvisa.constants.StatusCode.error_timeout
        logger.debug("Opened VISA resource %s", self._resource_string)

    def close(self) -> None:
        """Close the VISA resource and resource manager.

        Safe to call multiple times.
        """
        if self._resource is not None:
            try:
                self._resource.close()
            except Exception:  # pylint: disable=broad-except
                pass
            self._resource = None
        if self._rm is not None:
            try:
                self._rm.close()
            except Exception:  # pylint: disable=broad-except
                pass
            self._rm = None

    # -- Transport interface -------------------------------------------------

    def write(self, message: str) -> None:
        """Send a message to the instrument.

        Args:
            message: The SCPI command or query string.

        Raises:
            ScpiTransportError: If the resource is not open or the write fails.
        """
        if self._resource is None:
            raise ScpiTransportError("VISA resource is not open")
        try:
            self._resource.write(message)
        except self._io_errors as exc:
            raise ScpiTransportError(f"VISA write to {self._resource_string} failed: {exc}") from exc

    def read(self) -> str:
        """Read a response from the instrument.

        Returns:
            The response string.

        Raises:
            ScpiTimeoutError: If the read timed out.
            ScpiTransportError: If the resource is not open or the read fails.
        """
        if self._resource is None:
            raise ScpiTransportError("VISA resource is not open")
        try:
            result: str = self._resource.read()
        except self._io_errors as exc:
            if getattr(exc, "error_code", None) == self._timeout_code:
                raise ScpiTimeoutError(
                    f"VISA read from {self._resource_string} timed out"
                ) from exc
            raise ScpiTransportError(f"VISA read from {self._resource_string} failed: {exc}") from exc
        return result
