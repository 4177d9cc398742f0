"""Pipelines that fan one operation out over a unit universe."""

import logging
import tempfile
from collections.abc import Mapping, Sequence
from contextlib import ExitStack
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from gotest_ci.aggregator import PACKAGE_EXCLUDED, ResultAggregator
from gotest_ci.dispatcher import WorkerPool
from gotest_ci.errors import OrchestrationError
from gotest_ci.exclusions import (
    default_exclusions,
    describe_exclusions,
    filter_excluded_tests,
    race_exclusions,
)
from gotest_ci.executor import UnitExecutor, run_process
from gotest_ci.host import HostPlatform, case_name_suffix
from gotest_ci.models.config import (
    INTEGRATION_MATCHER,
    BuildConfig,
    CoverageConfig,
    TestConfig,
    parse_duration,
)
from gotest_ci.models.outcome import ExecutionOutcome, Task, TaskStatus
from gotest_ci.models.report import RunResult
from gotest_ci.report import write_failure_report
from gotest_ci.toolchain import Toolchain

log = logging.getLogger(__name__)

BIN_DIR_ENV = "GOTEST_CI_BIN_DIR"

RACE_TIMEOUT = "15m"
INTEGRATION_RUN_PATTERN = "^TestIntegration"
INTEGRATION_NON_TEST_ARGS = ("-integration.tests",)
BENCHMARK_ARGS = ("-bench", ".", "-run", "XXX")

PREBUILD_SUITE = "BuildTestDependencies"


def _seconds(duration: str) -> float | None:
    """Convert a duration to seconds, where zero means no limit."""
    return parse_duration(duration).total_seconds() or None


def _with_defaults[C: TestConfig](config: C, **defaults: Any) -> C:
    """Fill fields the caller did not set explicitly."""
    update = {
        name: value
        for name, value in defaults.items()
        if name not in config.model_fields_set
    }
    return config.model_copy(update=update)


@dataclass(frozen=True, kw_only=True)
class TestOrchestrator:
    """Runs build, test and coverage pipelines over a unit universe.

    Every pipeline writes its xUnit report into ``report_dir`` and returns
    the run's verdict. Unit failures end up in the report; only failures of
    the pipeline itself raise.
    """

    __test__ = False

    toolchain: Toolchain
    report_dir: Path
    host: HostPlatform = field(default_factory=HostPlatform.detect)
    default_units: Sequence[str] = ("./...",)
    bin_dir: Path | None = None
    env: Mapping[str, str] = field(default_factory=dict)
    cwd: Path | None = None

    async def validate_units(self, requested: Sequence[str]) -> Sequence[str]:
        """Check that every requested unit belongs to the default universe.

        Returns the default selectors when nothing is requested, otherwise the
        expanded list of requested units.
        """
        if not requested:
            return tuple(self.default_units)

        defaults = set(await self.toolchain.list_units(self.default_units))
        units = await self.toolchain.list_units(requested)
        for unit in units:
            if unit not in defaults:
                raise OrchestrationError(
                    f"requested unit {unit} is not one of {list(self.default_units)}",
                    stage="Init",
                )
        return units

    async def select_part(
        self, selectors: Sequence[str], parts: Sequence[str], part: int | None
    ) -> Sequence[str]:
        """Pick the units of one shard.

        ``parts`` names the selectors of the first N-1 shards; shard N takes
        every unit not covered by them.
        """
        if not parts or part is None:
            return selectors
        if part < len(parts):
            return await self.toolchain.list_units([parts[part]])
        if part == len(parts):
            covered: set[str] = set()
            for selector in parts:
                covered.update(await self.toolchain.list_units([selector]))
            units = await self.toolchain.list_units(selectors)
            return [unit for unit in units if unit not in covered]
        raise OrchestrationError(
            f"invalid part index: {part}/{len(parts)}", stage="Init"
        )

    async def prebuild(
        self, name: str, units: Sequence[str], case_name: str
    ) -> RunResult | None:
        """Compile the non-test dependencies of ``units``.

        Returns a failed verdict, after writing a failure report, when the
        build fails; None when the pipeline can proceed.
        """
        log.info("Building test dependencies...")
        result = await run_process(
            self.toolchain.prebuild_command(units), env=self.env, cwd=self.cwd
        )
        if result.succeeded:
            log.info("Test dependencies built")
            return None

        log.error("Building test dependencies failed:\n%s", result.output)
        report_path = write_failure_report(
            self.report_dir,
            name,
            suite_name=PREBUILD_SUITE,
            case_name=case_name,
            message="dependencies build failure",
            data=result.output,
        )
        return RunResult(status="failed", report_path=report_path)

    async def run_build(self, name: str, config: BuildConfig) -> RunResult:
        """Compile every unit, one build step per unit."""
        selectors = await self.validate_units(config.units)
        units = await self.toolchain.list_units(selectors)

        with ExitStack() as stack:
            output_dir = self.bin_dir or Path(
                stack.enter_context(tempfile.TemporaryDirectory(prefix="gotest-ci-build-"))
            )
            executor = UnitExecutor(
                command=lambda task, _: self.toolchain.build_command(
                    task, args=config.args, output_dir=output_dir
                ),
                mode="build",
                timeout=_seconds(config.timeout),
                env=self.env,
                cwd=self.cwd,
            )
            pool = WorkerPool(
                executor=executor, num_workers=config.num_workers, max_startup_delay=0
            )
            outcomes = await pool.run([Task(unit=unit) for unit in units])

        return self._finish(name, ResultAggregator(mode="build"), outcomes)

    async def run_tests(self, name: str, config: TestConfig) -> RunResult:
        """Run unit tests with the default exclusions."""
        config = _with_defaults(
            config,
            suffix=case_name_suffix(self.host, "GoTest"),
            exclusions=default_exclusions(self.host),
        )
        return await self._run_test_pipeline(name, config)

    async def run_race(self, name: str, config: TestConfig) -> RunResult:
        """Run unit tests under the race detector."""
        exclusions = (
            config.exclusions
            if "exclusions" in config.model_fields_set
            else default_exclusions(self.host)
        )
        config = _with_defaults(
            config,
            timeout=RACE_TIMEOUT,
            suffix=case_name_suffix(self.host, "GoRace"),
        ).model_copy(
            update={
                "args": ("-race", *config.args),
                "exclusions": (*exclusions, *race_exclusions()),
            }
        )
        return await self._run_test_pipeline(name, config)

    async def run_benchmarks(self, name: str, config: TestConfig) -> RunResult:
        """Run benchmarks only, skipping regular tests."""
        config = config.model_copy(update={"args": (*BENCHMARK_ARGS, *config.args)})
        return await self._run_test_pipeline(name, config)

    async def run_integration(
        self,
        name: str,
        config: TestConfig,
        *,
        pattern: str = INTEGRATION_RUN_PATTERN,
        bin_dir: Path | None = None,
    ) -> RunResult:
        """Run integration tests against the binaries in ``bin_dir``."""
        env = dict(config.env)
        if (bin_dir := bin_dir or self.bin_dir) is not None:
            env[BIN_DIR_ENV] = str(bin_dir)
        config = _with_defaults(
            config,
            suffix=case_name_suffix(self.host, "IntegrationTest"),
            matcher=INTEGRATION_MATCHER,
            non_test_args=INTEGRATION_NON_TEST_ARGS,
        ).model_copy(update={"args": ("-run", pattern, *config.args), "env": env})
        return await self._run_test_pipeline(name, config)

    async def run_coverage(self, name: str, config: CoverageConfig) -> RunResult:
        """Collect line coverage for every unit and render both reports."""
        selectors = await self.validate_units(config.units)
        if failed := await self.prebuild(name, selectors, "TestCoverage"):
            return failed

        units = await self.toolchain.list_units(selectors)
        timeout = config.timeout
        executor = UnitExecutor(
            command=lambda task, profile: self.toolchain.test_command(
                task, timeout=timeout, args=config.args, coverage_profile=profile
            ),
            mode="coverage",
            timeout=_seconds(timeout),
            env=self.env,
            cwd=self.cwd,
        )
        pool = WorkerPool(
            executor=executor, num_workers=config.num_workers, max_startup_delay=0
        )
        outcomes = await pool.run([Task(unit=unit) for unit in units])
        return self._finish(name, ResultAggregator(mode="coverage"), outcomes)

    async def _run_test_pipeline(self, name: str, config: TestConfig) -> RunResult:
        selectors = await self.validate_units(config.units)
        selectors = await self.select_part(selectors, config.parts, config.part)

        case_name = f"{name} {config.suffix}" if config.suffix else name
        if failed := await self.prebuild(name, selectors, case_name):
            return failed

        units = await self.toolchain.list_units(selectors)
        tests = await self.toolchain.list_test_functions(units, config.matcher)

        if excluded := describe_exclusions(config.exclusions):
            log.info("Excluded tests:\n  %s", "\n  ".join(excluded))

        tasks: list[Task] = []
        synthetic: list[ExecutionOutcome] = []
        for unit in units:
            if unit not in tests:
                continue
            selection = filter_excluded_tests(unit, tests[unit], config.exclusions)
            if selection.include:
                tasks.append(
                    Task(
                        unit=unit,
                        specific_names=selection.names_to_run,
                        excluded_names=selection.excluded_names,
                    )
                )
            else:
                synthetic.append(
                    ExecutionOutcome(
                        unit=unit,
                        status=TaskStatus.PASSED,
                        output=PACKAGE_EXCLUDED,
                        duration=0.0,
                        excluded_names=selection.excluded_names,
                    )
                )

        timeout = config.timeout
        executor = UnitExecutor(
            command=lambda task, _: self.toolchain.test_command(
                task,
                timeout=timeout,
                args=config.args,
                non_test_args=config.non_test_args,
            ),
            mode="test",
            timeout=_seconds(timeout),
            env={**self.env, **config.env},
            cwd=self.cwd,
        )
        pool = WorkerPool(
            executor=executor,
            num_workers=config.num_workers,
            max_startup_delay=config.max_startup_delay,
        )
        outcomes = await pool.run(tasks, synthetic)
        aggregator = ResultAggregator(mode="test", suffix=config.suffix)
        return self._finish(name, aggregator, outcomes)

    def _finish(
        self,
        name: str,
        aggregator: ResultAggregator,
        outcomes: Sequence[ExecutionOutcome],
    ) -> RunResult:
        aggregator.add_all(outcomes)
        result = aggregator.write_reports(self.report_dir, name)
        log.info("%s %s (%d unit(s))", name, result.status, aggregator.units_seen)
        return result
