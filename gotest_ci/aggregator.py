"""Conversion of per-unit outcomes into suites, side tables and a verdict."""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

from gotest_ci.coverage import CoverageProfile, write_cobertura_report
from gotest_ci.executor import ExecutionMode
from gotest_ci.gotest_output import (
    LineTooLongError,
    TestOutputParseError,
    parse_test_output,
)
from gotest_ci.models.outcome import ExecutionOutcome, TaskStatus
from gotest_ci.models.report import Case, RunResult, Suite
from gotest_ci.report import (
    cobertura_report_path,
    create_suite_with_failure,
    write_xunit_report,
    xunit_report_path,
)

log = logging.getLogger(__name__)

NO_TEST_FILES = "no test files"
NO_WORK_TO_DO = "no work to do"
PACKAGE_EXCLUDED = "package excluded"

SENTINELS = (NO_TEST_FILES, NO_WORK_TO_DO, PACKAGE_EXCLUDED)

LINE_TOO_LONG_MESSAGE = "test output contains lines that are too long to parse"
PARSE_ERROR_MESSAGE = "test output could not be parsed"

_STEP_NAMES: dict[ExecutionMode, str] = {
    "build": "Build",
    "test": "Test",
    "coverage": "TestCoverage",
}


def has_sentinel(output: str) -> bool:
    return any(sentinel in output for sentinel in SENTINELS)


@dataclass(kw_only=True)
class ResultAggregator:
    """Collects outcomes in arrival order.

    Coverage artifacts carried by outcomes are read and released as soon as
    they are added, whatever the outcome's status.
    """

    mode: ExecutionMode = "test"
    suffix: str = ""
    suites: list[Suite] = field(default_factory=list)
    excluded_tests: dict[str, list[str]] = field(default_factory=dict)
    skipped_tests: dict[str, list[str]] = field(default_factory=dict)
    coverage: CoverageProfile = field(default_factory=CoverageProfile)
    units_seen: int = 0

    @property
    def step_name(self) -> str:
        return _STEP_NAMES[self.mode]

    @property
    def failed(self) -> bool:
        return any(suite.failed for suite in self.suites)

    def add_all(self, outcomes: Iterable[ExecutionOutcome]) -> None:
        """Add every outcome, releasing all artifacts even if one add fails."""
        pending = list(outcomes)
        try:
            for outcome in pending:
                self.add(outcome)
        finally:
            for outcome in pending:
                if outcome.coverage is not None:
                    outcome.coverage.release()

    def add(self, outcome: ExecutionOutcome) -> None:
        self.units_seen += 1
        if outcome.coverage is not None:
            with outcome.coverage as artifact:
                self.coverage.add_profile(artifact.read())

        if outcome.excluded_names:
            self.excluded_tests[outcome.unit] = list(outcome.excluded_names)

        suite = self._suite_for(outcome)
        if suite is not None:
            skipped = [case.name for case in suite.cases if case.skipped is not None]
            if skipped:
                self.skipped_tests[outcome.unit] = skipped
            if self.suffix:
                for case in suite.cases:
                    case.name = f"{case.name} {self.suffix}"
            self._log_suite(outcome, suite)
            self.suites.append(suite)

        if excluded := self.excluded_tests.get(outcome.unit):
            log.info("PASS %s (excluded tests: %s)", outcome.unit, ", ".join(excluded))

    def _suite_for(self, outcome: ExecutionOutcome) -> Suite | None:
        match outcome.status:
            case TaskStatus.BUILD_FAILED:
                return self._failure_suite(outcome, "build failure")
            case TaskStatus.TIMED_OUT:
                return self._failure_suite(outcome, "timed out")
            case _ if self.mode == "build":
                return Suite(
                    name=outcome.unit,
                    cases=[
                        Case(
                            name=self.step_name,
                            classname=outcome.unit,
                            time=outcome.duration,
                        )
                    ],
                )

        if has_sentinel(outcome.output):
            suite = None
        else:
            try:
                suite = parse_test_output(outcome.unit, outcome.output)
            except LineTooLongError:
                log.warning("Output of %s has lines too long to parse", outcome.unit)
                return self._failure_suite(outcome, LINE_TOO_LONG_MESSAGE, data="")
            except TestOutputParseError as e:
                log.warning("Output of %s could not be parsed: %s", outcome.unit, e)
                return self._failure_suite(outcome, PARSE_ERROR_MESSAGE)

        if outcome.status == TaskStatus.TEST_FAILED and (suite is None or not suite.failed):
            # The tool failed without reporting a failing test, e.g. a panic in init.
            return self._failure_suite(outcome, "test failure")
        return suite

    def _failure_suite(
        self, outcome: ExecutionOutcome, message: str, data: str | None = None
    ) -> Suite:
        suite = create_suite_with_failure(
            suite_name=outcome.unit,
            case_name=self.step_name,
            classname=outcome.unit,
            message=message,
            data=outcome.output if data is None else data,
        )
        suite.cases[0].time = outcome.duration
        return suite

    def _log_suite(self, outcome: ExecutionOutcome, suite: Suite) -> None:
        if suite.failed:
            log.info("FAIL %s\n%s", outcome.unit, outcome.output)
        else:
            log.info("PASS %s", outcome.unit)
        if skipped := self.skipped_tests.get(outcome.unit):
            log.info("PASS %s (skipped tests: %s)", outcome.unit, ", ".join(skipped))

    def result(
        self, *, report_path: Path | None = None, coverage_report_path: Path | None = None
    ) -> RunResult:
        return RunResult(
            status="failed" if self.failed else "passed",
            suites=tuple(self.suites),
            excluded_tests={unit: tuple(names) for unit, names in self.excluded_tests.items()},
            skipped_tests={unit: tuple(names) for unit, names in self.skipped_tests.items()},
            report_path=report_path,
            coverage_report_path=coverage_report_path,
        )

    def write_reports(self, report_dir: Path, name: str) -> RunResult:
        """Persist the xUnit report, plus the Cobertura report in coverage mode."""
        report_path = write_xunit_report(self.suites, xunit_report_path(report_dir, name))
        coverage_path = None
        if self.mode == "coverage":
            coverage_path = write_cobertura_report(
                self.coverage, cobertura_report_path(report_dir, name)
            )
            log.info("Wrote coverage report to %s", coverage_path)
        return self.result(report_path=report_path, coverage_report_path=coverage_path)
