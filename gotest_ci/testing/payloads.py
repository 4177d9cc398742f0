"""Payload helpers for tool output and store responses in tests."""

from collections.abc import Sequence
from typing import Any


def go_test_output(
    unit: str,
    *,
    passed: Sequence[str] = (),
    failed: Sequence[str] = (),
    skipped: Sequence[str] = (),
) -> str:
    """Create ``go test -v`` output for one unit.

    Each failing test logs one line before its result, each skipped test one
    line after it.
    """
    lines: list[str] = []
    for name in passed:
        lines += [f"=== RUN   {name}", f"--- PASS: {name} (0.01s)"]
    for name in failed:
        lines += [
            f"=== RUN   {name}",
            f"    {name.lower()}_test.go:12: unexpected result",
            f"--- FAIL: {name} (0.02s)",
        ]
    for name in skipped:
        lines += [
            f"=== RUN   {name}",
            f"--- SKIP: {name} (0.00s)",
            f"    {name.lower()}_test.go:7: requires network",
        ]
    if failed:
        lines += ["FAIL", "exit status 1", f"FAIL\t{unit}\t0.05s"]
    else:
        lines += ["PASS", f"ok  \t{unit}\t0.03s"]
    return "\n".join(lines) + "\n"


def build_failure_output(unit: str) -> str:
    """Create compiler output for a unit that does not build."""
    return f"# {unit}\n./main.go:3:2: undefined: missing\n"


def coverage_profile(*records: str, mode: str = "set") -> str:
    """Create a line-coverage profile."""
    return "\n".join([f"mode: {mode}", *records]) + "\n"


def snapshot_index(
    *,
    date: str = "2099-01-01",
    binaries: Sequence[str] = ("agentd", "deviced"),
) -> dict[str, Any]:
    """Create a snapshot index payload for testing."""
    return {
        "date": date,
        "binaries": [
            {"name": name, "path": f"snapshots/{date}/bin/{name}"} for name in binaries
        ],
    }
