"""SCPI protocol client for laboratory instruments.

This package is the shared protocol layer of the labbench drivers:

- Transports: PyVISA (:class:`VisaResource`) and raw serial
  (:class:`SerialResource`) behind the :class:`ScpiTransport` protocol
- Command builder (:class:`CommandSpec`) with clipping, unit scaling and
  fixed-precision formatting
- Response parsers that map failures to NaN / False / marker strings
- Parameter validator for loosely typed name/value pairs
- Readback verification and setter status codes
- Error-queue accumulator with an append-only session log
- :class:`ScpiSession` tying these together for one instrument

Typical usage::

    from labbench_scpi import ScpiSession, SessionConfig, open_transport

    config = SessionConfig(address="ASRL3::INSTR", name="ComboSource6301")
    session = ScpiSession(open_transport(config), config)
    print(session.identify())
    session.close()
"""

from labbench_scpi.commands import CommandSpec
from labbench_scpi.config import NO_SETTLE, SessionConfig, SettleTimes, open_transport, resolve_config
from labbench_scpi.emulation import ScpiEmulator, normalize_header
from labbench_scpi.errorlog import (
    MAX_QUEUE_READS,
    ErrorLog,
    ErrorLogEntry,
    Severity,
    drain_queue,
    parse_error_entry,
    parse_event_entry,
)
from labbench_scpi.errors import ScpiError, ScpiTimeoutError, ScpiTransportError
from labbench_scpi.messages import Reporter, Verbosity
from labbench_scpi.params import (
    NUMERIC_PATTERN,
    TOKEN_PATTERN,
    Accepted,
    ParamCheck,
    ParamField,
    ParamTable,
    Rejected,
    accept_choice,
    accept_flag,
    accept_number,
    format_parameter_set,
)
from labbench_scpi.responses import COMMUNICATION_PROBLEM, UNEXPECTED_RESPONSE
from labbench_scpi.serial_port import SerialResource
from labbench_scpi.session import ScpiSession, parse_idn_response
from labbench_scpi.status import Reply, Status
from labbench_scpi.transport import ScpiTransport
from labbench_scpi.verify import Check, ReadbackTolerance
from labbench_scpi.visa import VisaResource

__all__ = [
    # Session
    "ScpiSession",
    "parse_idn_response",
    "Reply",
    "Status",
    # Configuration
    "NO_SETTLE",
    "SessionConfig",
    "SettleTimes",
    "open_transport",
    "resolve_config",
    "Reporter",
    "Verbosity",
    # Commands and responses
    "CommandSpec",
    "COMMUNICATION_PROBLEM",
    "UNEXPECTED_RESPONSE",
    # Validation
    "NUMERIC_PATTERN",
    "TOKEN_PATTERN",
    "Accepted",
    "ParamCheck",
    "ParamField",
    "ParamTable",
    "Rejected",
    "accept_choice",
    "accept_flag",
    "accept_number",
    "format_parameter_set",
    # Readback
    "Check",
    "ReadbackTolerance",
    # Error log
    "MAX_QUEUE_READS",
    "ErrorLog",
    "ErrorLogEntry",
    "Severity",
    "drain_queue",
    "parse_error_entry",
    "parse_event_entry",
    # Errors
    "ScpiError",
    "ScpiTimeoutError",
    "ScpiTransportError",
    # Transports
    "ScpiTransport",
    "SerialResource",
    "VisaResource",
    # Emulation
    "ScpiEmulator",
    "normalize_header",
]
