"""Root conftest.py for the labbench monorepo.

Puts every package's ``src`` directory on ``sys.path`` so the suite runs from
a plain checkout, registers the shared markers, and tags tests that replace
parts of the system under test with mocks (``uses_mock``) so hardware-free
coverage can be told apart from emulator-backed coverage.
"""

from __future__ import annotations

import ast
import inspect
import sys
import textwrap
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

if TYPE_CHECKING:
    from _pytest.config import Config
    from _pytest.nodes import Item


PROJECT_ROOT = Path(__file__).parent
for pkg_dir in sorted(PROJECT_ROOT.glob("labbench-*/src")):
    if str(pkg_dir) not in sys.path:
        sys.path.insert(0, str(pkg_dir))

_MOCK_NAMES = frozenset({"MagicMock", "Mock", "patch", "create_autospec", "PropertyMock"})


def pytest_configure(config: Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "uses_mock: Test uses mocking (auto-detected or manual)")
    config.addinivalue_line("markers", "integration: Integration test requiring real hardware")
    config.addinivalue_line("markers", "slow: Slow-running test")


class MockDetector(ast.NodeVisitor):
    """Find calls to unittest.mock helpers (``patch(...)``, ``patch.dict(...)``, ...)."""

    def __init__(self) -> None:
        self.uses_mock = False

    def visit_Call(self, node: ast.Call) -> None:
        func = node.func
        if isinstance(func, ast.Attribute) and isinstance(func.value, ast.Name):
            # patch.dict / patch.object
            name = func.value.id
        elif isinstance(func, ast.Attribute):
            name = func.attr
        elif isinstance(func, ast.Name):
            name = func.id
        else:
            name = ""
        if name in _MOCK_NAMES:
            self.uses_mock = True
        self.generic_visit(node)


def _uses_mock(item: Item) -> bool:
    function = getattr(item, "function", None)
    if function is None:
        return False
    try:
        source = textwrap.dedent(inspect.getsource(function))
    except (OSError, TypeError):
        return False
    detector = MockDetector()
    detector.visit(ast.parse(source))
    return detector.uses_mock


def pytest_collection_modifyitems(config: Config, items: list[Item]) -> None:
    """Auto-detect and mark tests that use mocking."""
    for item in items:
        if item.get_closest_marker("uses_mock") is None and _uses_mock(item):
            item.add_marker(pytest.mark.uses_mock)


def pytest_report_header(config: Config) -> list[str]:
    """Add coverage mode info to the pytest header."""
    lines = ["labbench monorepo test suite"]
    if getattr(config.option, "cov_source", None):
        lines.append("Coverage: enabled with mock detection")
    return lines
