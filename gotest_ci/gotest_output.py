"""Parse verbose ``go test`` output into a report suite."""

import re
from dataclasses import dataclass, field

from gotest_ci.models.report import Case, Failure, Suite

MAX_LINE_LENGTH = 64 * 1024

_RESULT = re.compile(
    r"^\s*--- (?P<status>PASS|FAIL|SKIP): (?P<name>\S+) "
    r"\((?P<time>\d+(?:\.\d+)?)(?:s| seconds)\)$"
)
_START = re.compile(r"^=== (?:RUN|CONT|NAME)\s+(?P<name>\S+)")
_PAUSE = re.compile(r"^=== PAUSE\s")
_BENCH_HEADER = re.compile(r"^\s*--- BENCH: (?P<name>\S+)")
_BENCHMARK = re.compile(
    r"^(?P<name>Benchmark\S+?)(?:-\d+)?\s+\d+\s+(?P<ns>\d+(?:\.\d+)?) ns/op"
)
_SUMMARY = re.compile(r"^(?:PASS|FAIL|ok\s+\S+.*|FAIL\s+\S+.*|coverage: .*|exit status \d+)$")


class TestOutputParseError(ValueError):
    """Raised when test output cannot be interpreted."""

    __test__ = False


class LineTooLongError(TestOutputParseError):
    """Raised when a single output line exceeds the parser's line limit."""


@dataclass(kw_only=True)
class _Record:
    status: str = ""
    time: float = 0.0
    lines: list[str] = field(default_factory=list)


def parse_test_output(unit: str, output: str) -> Suite:
    """Build the suite for ``unit`` from ``go test -v`` output.

    Log lines are attributed to the most recently started or finished test;
    result lines without a duration, as printed by tests running ``go test``
    themselves, count as log lines too. Benchmark times are seconds per
    operation.
    Tests that never reported a result are left out.

    Raises:
        LineTooLongError: If a line is longer than MAX_LINE_LENGTH

    """
    records: dict[str, _Record] = {}
    order: list[str] = []
    current: str | None = None

    def record(name: str) -> _Record:
        if name not in records:
            records[name] = _Record()
            order.append(name)
        return records[name]

    for number, line in enumerate(output.splitlines(), start=1):
        if len(line) > MAX_LINE_LENGTH:
            raise LineTooLongError(
                f"{unit}: line {number} is {len(line)} characters long"
            )

        if match := _START.match(line):
            current = match.group("name")
            record(current)
            continue
        if _PAUSE.match(line):
            continue

        if match := _RESULT.match(line):
            current = match.group("name")
            entry = record(current)
            entry.status = match.group("status")
            entry.time = float(match.group("time"))
            continue
        if match := _BENCHMARK.match(line):
            entry = record(match.group("name"))
            entry.status = "PASS"
            entry.time = float(match.group("ns")) / 1e9
            current = None
            continue
        if match := _BENCH_HEADER.match(line):
            current = None
            continue

        if _SUMMARY.match(line):
            continue
        if current is not None:
            records[current].lines.append(line.strip())

    suite = Suite(name=unit)
    for name in order:
        entry = records[name]
        if not entry.status:
            continue
        case = Case(name=name, classname=unit, time=entry.time)
        details = "\n".join(entry.lines)
        if entry.status == "FAIL":
            case.failures.append(Failure(message="Failed", data=details))
        elif entry.status == "SKIP":
            case.skipped = details or "skipped"
        suite.cases.append(case)
    return suite
