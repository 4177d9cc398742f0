"""CLI entry point for the CI test engine."""

import argparse
import asyncio
import json
import logging
import os
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import aiohttp

from gotest_ci.exclusions import default_exclusions
from gotest_ci.host import HostPlatform
from gotest_ci.models.config import (
    BuildConfig,
    CoverageConfig,
    RegressionConfig,
    TestConfig,
)
from gotest_ci.models.report import RunResult, RunStatus
from gotest_ci.orchestrator import TestOrchestrator
from gotest_ci.regression import RegressionWorkflow
from gotest_ci.rules_loader import load_exclusion_rules
from gotest_ci.snapshots.loading import (
    SnapshotSourceNotFoundError,
    load_snapshot_manifest,
)
from gotest_ci.toolchain import GoToolchain

STATUS_SYMBOLS = {
    "passed": "✅",
    "failed": "❌",
    "skipped": "⏭️",
}

EXIT_CODES: dict[RunStatus, int] = {
    "passed": 0,
    "failed": 1,
    "skipped": 3,
}

TEST_COMMANDS = ("test", "race", "bench", "integration")


def log_results_summary(log: logging.Logger, name: str, result: RunResult) -> None:
    """Log a formatted summary of a run, one line per unit."""
    log.info("=" * 80)
    log.info("Results Summary: %s", name)
    log.info("=" * 80)

    for suite in result.suites:
        status = "failed" if suite.failed else "passed"
        log.info(
            "%s %s: %d test(s), %d failure(s), %d skipped (%.2fs)",
            STATUS_SYMBOLS[status],
            suite.name,
            suite.tests,
            suite.failures,
            suite.skip,
            suite.time,
        )
    for unit, names in result.excluded_tests.items():
        log.info("  Excluded in %s: %s", unit, ", ".join(names))
    for unit, names in result.skipped_tests.items():
        log.info("  Skipped in %s: %s", unit, ", ".join(names))
    log.info("%s %s", STATUS_SYMBOLS[result.status], result.status.upper())


def format_output(name: str, result: RunResult) -> dict[str, Any]:
    """Format a run result for JSON output."""
    return {
        "name": name,
        "status": result.status,
        "units": len(result.suites),
        "tests": sum(suite.tests for suite in result.suites),
        "failures": sum(suite.failures for suite in result.suites),
        "skipped": sum(suite.skip for suite in result.suites),
        "failed_units": [suite.name for suite in result.suites if suite.failed],
        "excluded_tests": {unit: list(names) for unit, names in result.excluded_tests.items()},
        "skipped_tests": {unit: list(names) for unit, names in result.skipped_tests.items()},
        "report": str(result.report_path) if result.report_path else None,
        "coverage_report": (
            str(result.coverage_report_path) if result.coverage_report_path else None
        ),
    }


def parse_list(value: str) -> Sequence[str]:
    """Parse a comma-separated list."""
    return tuple(item.strip() for item in value.split(",") if item.strip())


def pipeline_options(args: argparse.Namespace) -> dict[str, Any]:
    """Collect the options shared by every pipeline configuration."""
    data: dict[str, Any] = {"units": args.units, "args": args.tool_args}
    if args.num_workers is not None:
        data["num_workers"] = args.num_workers
    if args.timeout is not None:
        data["timeout"] = args.timeout
    return data


async def build_test_config(args: argparse.Namespace, host: HostPlatform) -> TestConfig:
    data = pipeline_options(args)
    if args.max_startup_delay is not None:
        data["max_startup_delay"] = args.max_startup_delay
    if args.parts:
        data["parts"] = parse_list(args.parts)
        data["part"] = args.part
    if args.rules is not None:
        rules = await load_exclusion_rules(args.rules, host)
        data["exclusions"] = (*default_exclusions(host), *rules)
    return TestConfig.model_validate(data)


async def run(args: argparse.Namespace) -> int:
    """Run the selected pipeline and return the exit code."""
    log = logging.getLogger("gotest_ci")
    host = HostPlatform.detect()
    name = args.name or f"gotest-ci-{args.command}"

    orchestrator = TestOrchestrator(
        toolchain=GoToolchain(cwd=args.cwd),
        report_dir=args.report_dir,
        host=host,
        default_units=args.default_units,
        bin_dir=args.bin_dir,
        cwd=args.cwd,
    )

    try:
        result = await dispatch(args, name, orchestrator, host)
    except (
        RuntimeError,
        ValueError,
        OSError,
        aiohttp.ClientError,
        SnapshotSourceNotFoundError,
    ) as e:
        log.error("%s failed: %s", name, e)
        print(json.dumps({"name": name, "status": "error", "message": str(e)}))
        return 1

    log_results_summary(log, name, result)
    print(json.dumps(format_output(name, result), indent=2))
    return EXIT_CODES[result.status]


async def dispatch(
    args: argparse.Namespace,
    name: str,
    orchestrator: TestOrchestrator,
    host: HostPlatform,
) -> RunResult:
    common = pipeline_options(args)

    match args.command:
        case "build":
            return await orchestrator.run_build(name, BuildConfig.model_validate(common))
        case "coverage":
            return await orchestrator.run_coverage(
                name, CoverageConfig.model_validate(common)
            )
        case "test":
            config = await build_test_config(args, host)
            return await orchestrator.run_tests(name, config)
        case "race":
            config = await build_test_config(args, host)
            return await orchestrator.run_race(name, config)
        case "bench":
            config = await build_test_config(args, host)
            return await orchestrator.run_benchmarks(name, config)
        case "integration":
            config = await build_test_config(args, host)
            return await orchestrator.run_integration(name, config)
        case "regression":
            return await run_regression(args, name, orchestrator, host)
    raise ValueError(f"unknown command {args.command!r}")


async def run_regression(
    args: argparse.Namespace,
    name: str,
    orchestrator: TestOrchestrator,
    host: HostPlatform,
) -> RunResult:
    log = logging.getLogger("gotest_ci")
    regression_config = RegressionConfig.from_env(os.environ)
    test_config = await build_test_config(args, host)

    log.info("Loading snapshot source: %s", args.snapshot_source)
    manifest = load_snapshot_manifest(args.snapshot_source)
    source_config = manifest.config_cls(**json.loads(args.snapshot_config))

    async with manifest.source_factory(source_config) as source:
        workflow = RegressionWorkflow(
            orchestrator=orchestrator,
            snapshots=source,
            work_dir=args.work_dir,
            install_units=args.default_units,
        )
        return await workflow.run(name, regression_config, test_config)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Build and test Go units in parallel and write CI reports"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "units",
        nargs="*",
        help="Units to run; must belong to the default universe",
    )
    common.add_argument(
        "--name",
        default=None,
        help="Report name (default: gotest-ci-<command>)",
    )
    common.add_argument(
        "--report-dir",
        type=Path,
        default=Path("."),
        help="Directory receiving the xUnit and Cobertura reports",
    )
    common.add_argument(
        "--default-units",
        type=parse_list,
        default=("./...",),
        help="Comma-separated selectors of the default unit universe",
    )
    common.add_argument(
        "--cwd",
        type=Path,
        default=None,
        help="Directory the Go tool runs in",
    )
    common.add_argument(
        "--bin-dir",
        type=Path,
        default=None,
        help="Directory receiving built binaries, exported to integration tests",
    )
    common.add_argument("--num-workers", type=int, default=None)
    common.add_argument("--timeout", default=None, help="Per-unit timeout, e.g. 5m")
    common.add_argument(
        "--tool-args",
        type=parse_list,
        default=(),
        help="Comma-separated extra arguments passed to the Go tool",
    )

    tests = argparse.ArgumentParser(add_help=False)
    tests.add_argument(
        "--rules",
        type=Path,
        default=None,
        help="YAML file with exclusion rules added to the built-in ones",
    )
    tests.add_argument(
        "--parts",
        default="",
        help="Comma-separated unit selectors of the first N-1 shards",
    )
    tests.add_argument("--part", type=int, default=None, help="Shard index to run")
    tests.add_argument(
        "--max-startup-delay",
        type=float,
        default=None,
        help="Upper bound of the random delay before each worker starts",
    )

    subparsers.add_parser("build", parents=[common], help="Build every unit")
    subparsers.add_parser("coverage", parents=[common], help="Collect line coverage")
    for command in TEST_COMMANDS:
        subparsers.add_parser(command, parents=[common, tests], help=f"Run {command} tests")

    regression = subparsers.add_parser(
        "regression",
        parents=[common, tests],
        help="Run integration tests across old and new binaries",
    )
    regression.add_argument(
        "--snapshot-source",
        required=True,
        help="Snapshot source key (command, http)",
    )
    regression.add_argument(
        "--snapshot-config",
        required=True,
        help="JSON configuration for the snapshot source",
    )
    regression.add_argument(
        "--work-dir",
        type=Path,
        required=True,
        help="Directory holding new, downloaded and assembled binaries",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> None:
    """CLI entry point."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    exit_code = asyncio.run(run(args))
    sys.exit(exit_code)


if __name__ == "__main__":  # pragma: no cover
    main()
