"""Models for the suite/case report and run verdicts."""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

type RunStatus = Literal["passed", "failed", "skipped"]


@dataclass(frozen=True, kw_only=True)
class Failure:
    """A failure record attached to a case."""

    message: str
    data: str = ""


@dataclass(kw_only=True)
class Case:
    """One discrete test (or build step) inside a suite."""

    name: str
    classname: str
    time: float = 0.0
    failures: list[Failure] = field(default_factory=list)
    skipped: str | None = None

    @property
    def failed(self) -> bool:
        return bool(self.failures)


@dataclass(kw_only=True)
class Suite:
    """All cases reported for one unit."""

    name: str
    cases: list[Case] = field(default_factory=list)

    @property
    def tests(self) -> int:
        return len(self.cases)

    @property
    def failures(self) -> int:
        return sum(1 for case in self.cases if case.failed)

    @property
    def skip(self) -> int:
        return sum(1 for case in self.cases if case.skipped is not None)

    @property
    def time(self) -> float:
        return sum(case.time for case in self.cases)

    @property
    def failed(self) -> bool:
        return self.failures > 0


@dataclass(frozen=True, kw_only=True)
class RunResult:
    """Verdict of one pipeline run."""

    status: RunStatus
    suites: Sequence[Suite] = ()
    excluded_tests: Mapping[str, Sequence[str]] = field(default_factory=dict)
    skipped_tests: Mapping[str, Sequence[str]] = field(default_factory=dict)
    report_path: Path | None = None
    coverage_report_path: Path | None = None
