#!/usr/bin/env python3
"""Run the labbench unit tests with coverage.

Each package is tested in its own pytest run and the data files are combined
afterwards. With ``--analyze-mocks`` the combined data is split by test
context into lines reached only by mocked tests (PyVISA and pyserial
replaced by ``MagicMock``) and lines reached through the device emulators.

Usage:
    # All packages
    python scripts/run_coverage.py

    # One package, then the mock analysis
    python scripts/run_coverage.py --package labbench-scpi --analyze-mocks

    # Only analyse existing data
    python scripts/run_coverage.py --skip-tests
"""

from __future__ import annotations

import argparse
import json
import os
import subprocess
import sys
from dataclasses import dataclass, field
from pathlib import Path

PROJECT_ROOT = Path(__file__).parent.parent
COVERAGE_DIR = PROJECT_ROOT / "coverage"

PACKAGES = [
    "labbench-core",
    "labbench-scpi",
    "labbench-combosource",
    "labbench-keithley",
    "labbench-rotary",
]

# Test modules whose tests replace the transport library with a mock.
MOCKED_MODULES = ("test_visa", "test_serial_port", "test_cli", "test_session_config")


@dataclass
class CoverageStats:
    """Covered lines split by the kind of test that reached them."""

    total_lines: int = 0
    covered_lines: int = 0
    mocked_only_lines: int = 0
    files: dict[str, tuple[int, int, int]] = field(default_factory=dict)

    @property
    def coverage_percent(self) -> float:
        if self.total_lines == 0:
            return 100.0
        return self.covered_lines / self.total_lines * 100


def _coverage_env(data_file: Path) -> dict[str, str]:
    env = dict(os.environ)
    env["COVERAGE_FILE"] = str(data_file)
    return env


def run_pytest_with_coverage(packages: list[str], verbose: bool = True) -> int:
    """Run pytest with coverage for each package and combine the data.

    Returns:
        0 if all tests passed, 1 otherwise.
    """
    COVERAGE_DIR.mkdir(exist_ok=True)
    all_passed = True
    data_files: list[Path] = []

    for pkg in packages:
        test_path = PROJECT_ROOT / pkg / "tests" / "unit"
        if not test_path.exists():
            print(f"Skipping {pkg}: no unit tests")
            continue
        print(f"\n{'=' * 60}\nTesting: {pkg}\n{'=' * 60}")
        data_file = COVERAGE_DIR / f".coverage.{pkg}"
        data_files.append(data_file)
        cmd = [
            sys.executable,
            "-m",
            "pytest",
            f"--cov={PROJECT_ROOT / pkg / 'src'}",
            "--cov-report=",
            "--cov-context=test",
            str(test_path),
        ]
        if verbose:
            cmd.append("-v")
        result = subprocess.run(cmd, cwd=PROJECT_ROOT, env=_coverage_env(data_file))
        all_passed = all_passed and result.returncode == 0

    existing = [str(path) for path in data_files if path.exists()]
    if existing:
        env = _coverage_env(COVERAGE_DIR / ".coverage")
        coverage = [sys.executable, "-m", "coverage"]
        subprocess.run([*coverage, "combine", "--keep", *existing], cwd=PROJECT_ROOT, env=env)
        subprocess.run([*coverage, "report", "--show-missing"], cwd=PROJECT_ROOT, env=env)
        subprocess.run(
            [*coverage, "json", "--show-contexts", "-o", str(COVERAGE_DIR / "coverage.json")],
            cwd=PROJECT_ROOT,
            env=env,
        )
    return 0 if all_passed else 1


def analyze_mocked_coverage() -> CoverageStats:
    """Count lines reached only by tests from :data:`MOCKED_MODULES`."""
    coverage_json = COVERAGE_DIR / "coverage.json"
    stats = CoverageStats()
    if not coverage_json.exists():
        print(f"Coverage data not found at {coverage_json}")
        return stats

    with open(coverage_json, encoding="utf-8") as f:
        data = json.load(f)

    for filename, file_data in data.get("files", {}).items():
        if "/tests/" in filename:
            continue
        covered = len(file_data.get("executed_lines", []))
        total = covered + len(file_data.get("missing_lines", []))
        mocked_only = 0
        for contexts in file_data.get("contexts", {}).values():
            tests = [ctx for ctx in contexts if ctx]
            if tests and all(any(mod in ctx for mod in MOCKED_MODULES) for ctx in tests):
                mocked_only += 1
        stats.total_lines += total
        stats.covered_lines += covered
        stats.mocked_only_lines += mocked_only
        rel_path = filename.replace(str(PROJECT_ROOT) + "/", "")
        stats.files[rel_path] = (total, covered, mocked_only)
    return stats


def print_mock_analysis(stats: CoverageStats) -> None:
    print("\n" + "=" * 80)
    print("MOCK COVERAGE ANALYSIS")
    print("=" * 80)
    print(f"Total lines:           {stats.total_lines:,}")
    print(f"Covered lines:         {stats.covered_lines:,} ({stats.coverage_percent:.1f}%)")
    print(f"Covered by mocks only: {stats.mocked_only_lines:,}")
    ranked = sorted(stats.files.items(), key=lambda item: item[1][2], reverse=True)
    for filename, (total, covered, mocked_only) in ranked[:15]:
        if mocked_only:
            print(f"  {filename}: {mocked_only} lines mock-only ({covered}/{total} covered)")


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Run coverage and analyze mock usage",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--package",
        "-p",
        action="append",
        dest="packages",
        choices=PACKAGES,
        help="Package to test (repeatable)",
    )
    parser.add_argument("--analyze-mocks", "-m", action="store_true", help="Report mock-only lines")
    parser.add_argument("--skip-tests", action="store_true", help="Only analyze existing data")
    parser.add_argument("--quiet", "-q", action="store_true", help="Minimal output")
    args = parser.parse_args()

    exit_code = 0
    if not args.skip_tests:
        exit_code = run_pytest_with_coverage(args.packages or PACKAGES, verbose=not args.quiet)
    if args.analyze_mocks or args.skip_tests:
        print_mock_analysis(analyze_mocked_coverage())
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
