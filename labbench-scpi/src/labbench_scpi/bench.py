"""YAML description of a lab bench and dynamic driver loading.

A bench file names each instrument, the factory that builds its driver and
the session settings passed to that factory.

Example YAML configuration:
    bench:
      id: "optics-lab-1"
      description: "Laser characterisation bench"

    instruments:
      laser:
        driver: "labbench_combosource.laser:create_instrument"
        session:
          address: "ASRL3::INSTR"
          verbosity: few
      smu:
        driver: "labbench_keithley.smu:create_instrument"
        expected_model: "MODEL 2450"
        session:
          address: "USB0::0x05E6::0x2450::04512345::0::INSTR"
          tolerance:
            relative: 0.02
      rotary:
        driver: "labbench_rotary.platform:create_instrument"
        session:
          address: "COM13"
"""

from __future__ import annotations

import importlib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

import yaml

from labbench_core.errors import ToleranceError

from labbench_scpi.config import SessionConfig


@dataclass(frozen=True)
class InstrumentEntry:
    """One instrument of a bench.

    Attributes:
        name: Unique instrument name within the bench.
        driver: Factory path in ``"module:function"`` format.
        session: Session settings passed to the factory, which layers them
            over the device defaults.
        expected_model: Model string the ``*IDN?`` reply should contain.
    """

    name: str
    driver: str
    session: dict[str, Any]
    expected_model: str | None = None


@dataclass(frozen=True)
class BenchConfig:
    """Parsed bench file.

    Attributes:
        bench_id: Unique identifier of the bench.
        description: Human-readable description.
        instruments: Instrument entries in file order.
    """

    bench_id: str
    description: str
    instruments: tuple[InstrumentEntry, ...]

    def get(self, name: str) -> InstrumentEntry:
        """Return the entry called *name*.

        Raises:
            KeyError: If there is no such instrument.
        """
        for entry in self.instruments:
            if entry.name == name:
                return entry
        raise KeyError(f"No instrument named {name!r} on bench {self.bench_id!r}")


def parse_bench_config(data: Any) -> BenchConfig:
    """Build a :class:`BenchConfig` from parsed YAML data.

    Raises:
        ValueError: If the data is invalid or missing required fields.
    """
    if not isinstance(data, dict):
        raise ValueError("Config must be a YAML mapping")

    bench_section = data.get("bench", {})
    bench_id = bench_section.get("id")
    if not bench_id:
        raise ValueError("Missing required field: bench.id")

    instruments_data = data.get("instruments", {})
    if not isinstance(instruments_data, dict):
        raise ValueError("instruments must be a mapping")

    instruments: list[InstrumentEntry] = []
    for name, inst_data in instruments_data.items():
        if not isinstance(inst_data, dict):
            raise ValueError(f"Instrument '{name}' must be a mapping")
        driver = inst_data.get("driver")
        if not driver:
            raise ValueError(f"Instrument '{name}' missing required field: driver")
        session_data = inst_data.get("session", {})
        if not isinstance(session_data, dict) or not session_data.get("address"):
            raise ValueError(f"Instrument '{name}' missing required field: session.address")
        session_data = {"name": name, **session_data}
        try:
            SessionConfig.from_dict(session_data)
        except (TypeError, ValueError, ToleranceError) as exc:
            raise ValueError(f"Instrument '{name}' has invalid session settings: {exc}") from exc
        instruments.append(
            InstrumentEntry(
                name=name,
                driver=driver,
                session=session_data,
                expected_model=inst_data.get("expected_model"),
            )
        )

    return BenchConfig(
        bench_id=bench_id,
        description=bench_section.get("description", ""),
        instruments=tuple(instruments),
    )


def load_bench_config(path: str | Path) -> BenchConfig:
    """Load a bench description from a YAML file.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        ValueError: If the content is invalid.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    return parse_bench_config(data)


def load_driver(driver_path: str) -> Callable[..., Any]:
    """Load a driver factory from a ``"module:function"`` path.

    Raises:
        ValueError: If the path format is invalid.
        ImportError: If the module cannot be imported.
        AttributeError: If the function doesn't exist in the module.
        TypeError: If the attribute is not callable.
    """
    if ":" not in driver_path:
        raise ValueError(
            f"Invalid driver path '{driver_path}': must be in 'module:function' format"
        )
    module_path, func_name = driver_path.rsplit(":", 1)
    if not module_path or not func_name:
        raise ValueError(f"Invalid driver path '{driver_path}': module and function names required")

    try:
        module = importlib.import_module(module_path)
    except ImportError as exc:
        raise ImportError(f"Failed to import module '{module_path}': {exc}") from exc

    try:
        factory = getattr(module, func_name)
    except AttributeError as exc:
        raise AttributeError(f"Module '{module_path}' has no attribute '{func_name}'") from exc

    if not callable(factory):
        raise TypeError(f"'{driver_path}' is not callable")
    return factory


def open_instrument(entry: InstrumentEntry) -> Any:
    """Build the driver for *entry* through its factory.

    Raises:
        InstrumentConnectionError: If the transport cannot be opened.
    """
    factory = load_driver(entry.driver)
    return factory(entry.session)
