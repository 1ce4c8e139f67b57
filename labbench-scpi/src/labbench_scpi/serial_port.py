"""pyserial transport for SCPI devices on a raw serial port.

Used for microcontroller-based devices (such as the rotary platform) that
speak line-oriented SCPI over a USB CDC or RS-232 port without a VISA
driver. ``pyserial`` is imported lazily on :meth:`SerialResource.open`.
"""

from __future__ import annotations

import logging
from typing import Any

from labbench_core.errors import InstrumentConnectionError

from labbench_scpi.errors import ScpiTimeoutError, ScpiTransportError

logger = logging.getLogger(__name__)

DEFAULT_BAUD_RATE = 115200


class SerialResource:
    """SCPI transport backed by ``serial.Serial``.

    Implements the :class:`ScpiTransport` protocol. One call to :meth:`read`
    returns one line; a read that ends without the terminator is reported as
    :class:`ScpiTimeoutError`.

    Args:
        port: Port name (``"COM13"``, ``"/dev/ttyACM0"``).
        baud_rate: Line speed. Defaults to 115200.
        timeout_ms: Read and write timeout in milliseconds.
        read_termination: Line terminator expected on responses.
        write_termination: Terminator appended to each written line.
        encoding: Character encoding of the wire text.
    """

    def __init__(
        self,
        port: str,
        *,
        baud_rate: int = DEFAULT_BAUD_RATE,
        timeout_ms: int = 10000,
        read_termination: str = "\r\n",
        write_termination: str = "\r\n",
        encoding: str = "ascii",
    ) -> None:
        self._port = port
        self._baud_rate = baud_rate
        self._timeout_ms = timeout_ms
        self._read_termination = read_termination
        self._write_termination = write_termination
        self._encoding = encoding
        self._serial: Any = None
        self._io_errors: tuple[type[BaseException], ...] = (OSError,)

    # -- Properties ----------------------------------------------------------

    @property
    def port(self) -> str:
        """The serial port name."""
        return self._port

    @property
    def is_open(self) -> bool:
        """Return True if the port is currently open."""
        return self._serial is not None

    # -- Lifecycle -----------------------------------------------------------

    def open(self) -> None:
        """Open the serial port and flush stale input.

        Raises:
            InstrumentConnectionError: If ``pyserial`` is not installed or the
                port cannot be opened.
        """
        if self._serial is not None:
            return

        try:
            import serial  # type: ignore[import-untyped]  # pylint: disable=import-outside-toplevel
        except ImportError as exc:
            raise InstrumentConnectionError(
                "pyserial library is not installed. Install with: pip install pyserial"
            ) from exc

        timeout_s = self._timeout_ms / 1000.0
        try:
            self._serial = serial.Serial(
                port=self._port,
                baudrate=self._baud_rate,
                timeout=timeout_s,
                write_timeout=timeout_s,
            )
            self._serial.reset_input_buffer()
        except Exception as exc:
            self._serial = None
            raise InstrumentConnectionError(
                f"Failed to open serial port {self._port!r}: {exc}"
            ) from exc

        self._io_errors = (serial.SerialException, OSError)
        logger.debug("Opened serial port %s at %d baud", self._port, self._baud_rate)

    def close(self) -> None:
        """Close the serial port. Safe to call multiple times."""
        if self._serial is not None:
            try:
                self._serial.close()
            except Exception:  # pylint: disable=broad-except
                pass
            self._serial = None

    # -- Transport interface -------------------------------------------------

    def write(self, message: str) -> None:
        """Send one terminated line.

        Raises:
            ScpiTransportError: If the port is not open or the write fails.
        """
        if self._serial is None:
            raise ScpiTransportError("Serial port is not open")
        try:
            payload = (message + self._write_termination).encode(self._encoding)
        except UnicodeEncodeError as exc:
            raise ScpiTransportError(f"Cannot encode command for {self._port}: {exc}") from exc
        try:
            self._serial.write(payload)
            self._serial.flush()
        except self._io_errors as exc:
            raise ScpiTransportError(f"Serial write to {self._port} failed: {exc}") from exc

    def read(self) -> str:
        """Read one line and strip its terminator.

        Raises:
            ScpiTimeoutError: If the terminator did not arrive within the timeout.
            ScpiTransportError: If the port is not open or the read fails.
        """
        if self._serial is None:
            raise ScpiTransportError("Serial port is not open")
        terminator = self._read_termination.encode(self._encoding)
        try:
            raw: bytes = self._serial.read_until(terminator)
        except self._io_errors as exc:
            raise ScpiTransportError(f"Serial read from {self._port} failed: {exc}") from exc
        if not raw.endswith(terminator):
            raise ScpiTimeoutError(
                f"Serial read from {self._port} timed out after {self._timeout_ms} ms "
                f"(partial: {raw!r})"
            )
        return raw[: -len(terminator)].decode(self._encoding, errors="replace")
