"""Command-line interface for labbench-scpi.

Usage:
    # Send a query and print the response
    labbench query USB0::0x05E6::0x2450::04512345::0::INSTR "*IDN?"

    # Send a command to an echoing serial device
    labbench write COM13 "ROTAtion:ANGLE 90" --echo --termination crlf

    # Drain and print the error queue
    labbench errors ASRL3::INSTR

    # Identify every instrument on a bench
    labbench bench bench.yaml
"""

from __future__ import annotations

import argparse
import logging
import sys

from labbench_core.errors import InstrumentConnectionError

from labbench_scpi.bench import load_bench_config, open_instrument
from labbench_scpi.config import SessionConfig, open_transport
from labbench_scpi.session import ScpiSession
from labbench_scpi.status import Status

_TERMINATIONS = {"lf": "\n", "crlf": "\r\n", "cr": "\r"}


def setup_logging(debug: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def _open_session(args: argparse.Namespace) -> ScpiSession:
    termination = _TERMINATIONS[args.termination]
    config = SessionConfig(
        address=args.address,
        name=args.address,
        baud_rate=args.baud,
        timeout_ms=args.timeout_ms,
        read_termination=termination,
        write_termination=termination,
        verbosity=args.verbosity,
        echo=args.echo,
    )
    return ScpiSession(open_transport(config), config)


def cmd_query(args: argparse.Namespace) -> int:
    """Send a query and print the response."""
    with _open_session(args) as session:
        reply = session.query(args.command)
    if not reply.ok:
        print("Error: no response", file=sys.stderr)
        return 1
    print(reply.text)
    return 0


def cmd_write(args: argparse.Namespace) -> int:
    """Send a command without response."""
    with _open_session(args) as session:
        status = session.write(args.command)
    return 0 if status is Status.OK else 1


def cmd_errors(args: argparse.Namespace) -> int:
    """Drain the device error queue and print it."""
    with _open_session(args) as session:
        entries = session.drain_errors(args.error_query)
    if not entries:
        print("No errors")
    for entry in entries:
        print(entry)
    return 0


def cmd_bench(args: argparse.Namespace) -> int:
    """Open every instrument of a bench file and print its identity."""
    try:
        bench = load_bench_config(args.config)
    except (FileNotFoundError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    print(f"Bench: {bench.bench_id}")
    if bench.description:
        print(f"  {bench.description}")
    failures = 0
    for entry in bench.instruments:
        try:
            driver = open_instrument(entry)
        except InstrumentConnectionError as exc:
            print(f"  {entry.name}: not reachable ({exc})")
            failures += 1
            continue
        except (ImportError, AttributeError, TypeError, ValueError) as exc:
            print(f"Error: {entry.name}: {exc}", file=sys.stderr)
            failures += 1
            continue
        try:
            identity = driver.identify()
            mismatch = entry.expected_model is not None and entry.expected_model not in identity
            marker = "  (unexpected model)" if mismatch else ""
            failures += int(mismatch)
            print(f"  {entry.name}: {identity or '(no response)'}{marker}")
        finally:
            driver.close()
    return 1 if failures else 0


def _add_session_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("address", help="VISA resource string or serial port")
    parser.add_argument("--baud", type=int, default=115200, help="Serial baud rate")
    parser.add_argument("--timeout-ms", type=int, default=5000, help="I/O timeout")
    parser.add_argument(
        "--termination",
        choices=sorted(_TERMINATIONS),
        default="lf",
        help="Line terminator for reads and writes",
    )
    parser.add_argument("--echo", action="store_true", help="Device echoes each command")
    parser.add_argument(
        "--verbosity",
        choices=["none", "few", "all"],
        default="few",
        help="Operator message level",
    )


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="SCPI protocol client for laboratory instruments",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command_name", help="Command to run")

    query_parser = subparsers.add_parser("query", help="Send a query and print the response")
    _add_session_arguments(query_parser)
    query_parser.add_argument("command", help="SCPI query, e.g. '*IDN?'")
    query_parser.set_defaults(func=cmd_query)

    write_parser = subparsers.add_parser("write", help="Send a command")
    _add_session_arguments(write_parser)
    write_parser.add_argument("command", help="SCPI command")
    write_parser.set_defaults(func=cmd_write)

    errors_parser = subparsers.add_parser("errors", help="Drain the error queue")
    _add_session_arguments(errors_parser)
    errors_parser.add_argument(
        "--error-query", default="SYST:ERR?", help="Query returning the next queue entry"
    )
    errors_parser.set_defaults(func=cmd_errors)

    bench_parser = subparsers.add_parser("bench", help="Identify all instruments of a bench")
    bench_parser.add_argument("config", help="Bench YAML file")
    bench_parser.set_defaults(func=cmd_bench)

    args = parser.parse_args(argv)
    setup_logging(args.debug)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    try:
        result: int = args.func(args)
    except InstrumentConnectionError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    return result


if __name__ == "__main__":
    sys.exit(main())
