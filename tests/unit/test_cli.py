"""Tests for CLI module."""

import json
import logging
from collections.abc import Iterator
from pathlib import Path
from unittest.mock import AsyncMock, Mock, patch

import pytest

from gotest_ci.cli import (
    build_parser,
    build_test_config,
    format_output,
    log_results_summary,
    main,
    parse_list,
    run,
)
from gotest_ci.errors import OrchestrationError
from gotest_ci.exclusions import default_exclusions
from gotest_ci.host import HostPlatform
from gotest_ci.models.config import BuildConfig, TestConfig
from gotest_ci.models.exclusion import exclusion
from gotest_ci.models.report import Case, Failure, RunResult, Suite

HOST = HostPlatform(os="linux", arch="amd64")


def failed_result() -> RunResult:
    return RunResult(
        status="failed",
        suites=(
            Suite(
                name="example.com/a",
                cases=[
                    Case(name="TestOne", classname="example.com/a", time=0.5),
                    Case(
                        name="TestTwo",
                        classname="example.com/a",
                        time=1.0,
                        failures=[Failure(message="Failed")],
                    ),
                ],
            ),
            Suite(
                name="example.com/b",
                cases=[
                    Case(
                        name="TestThree",
                        classname="example.com/b",
                        skipped="requires network",
                    )
                ],
            ),
        ),
        excluded_tests={"example.com/c": ("TestSlow",)},
        skipped_tests={"example.com/b": ("TestThree",)},
        report_path=Path("/reports/tests_unit.xml"),
    )


def test_log_results_summary(caplog: pytest.LogCaptureFixture) -> None:
    """Logs one line per unit plus the side tables and the verdict."""
    with caplog.at_level(logging.INFO):
        log_results_summary(logging.getLogger(), "unit", failed_result())

    assert "Results Summary: unit" in caplog.text
    assert "❌ example.com/a: 2 test(s), 1 failure(s), 0 skipped (1.50s)" in caplog.text
    assert "✅ example.com/b: 1 test(s), 0 failure(s), 1 skipped (0.00s)" in caplog.text
    assert "Excluded in example.com/c: TestSlow" in caplog.text
    assert "Skipped in example.com/b: TestThree" in caplog.text
    assert "❌ FAILED" in caplog.text


def test_format_output() -> None:
    """Summarizes totals and report locations."""
    output = format_output("unit", failed_result())

    assert output == {
        "name": "unit",
        "status": "failed",
        "units": 2,
        "tests": 3,
        "failures": 1,
        "skipped": 1,
        "failed_units": ["example.com/a"],
        "excluded_tests": {"example.com/c": ["TestSlow"]},
        "skipped_tests": {"example.com/b": ["TestThree"]},
        "report": "/reports/tests_unit.xml",
        "coverage_report": None,
    }


def test_parse_list() -> None:
    assert parse_list(" a, b,,c ") == ("a", "b", "c")


def test_parser_reads_test_options() -> None:
    args = build_parser().parse_args(
        ["race", "pkg1", "pkg2", "--num-workers", "2", "--parts", "a,b", "--part", "1"]
    )

    assert args.command == "race"
    assert args.units == ["pkg1", "pkg2"]
    assert args.num_workers == 2
    assert args.part == 1
    assert args.default_units == ("./...",)


async def test_build_test_config_adds_rules_to_defaults() -> None:
    """Rules from a file extend the built-in table."""
    rule = exclusion("example.com/a", "TestSlow")
    args = build_parser().parse_args(
        ["test", "--rules", "rules.yaml", "--parts", "a,b", "--part", "2"]
    )

    with patch(
        "gotest_ci.cli.load_exclusion_rules",
        new_callable=AsyncMock,
        return_value=[rule],
    ) as mock_load:
        config = await build_test_config(args, HOST)

    mock_load.assert_awaited_once_with(Path("rules.yaml"), HOST)
    assert list(config.exclusions) == [*default_exclusions(HOST), rule]
    assert list(config.parts) == ["a", "b"]
    assert config.part == 2


async def test_build_test_config_without_rules_leaves_exclusions_unset() -> None:
    """The pipeline then applies its own defaults."""
    args = build_parser().parse_args(["test", "--timeout", "2m"])

    config = await build_test_config(args, HOST)

    assert "exclusions" not in config.model_fields_set
    assert config.timeout == "2m"


class TestRun:
    """Tests for run function."""

    @pytest.fixture
    def mock_orchestrator(self) -> Mock:
        """Patch the orchestrator the CLI creates."""
        orchestrator = Mock()
        orchestrator.run_build = AsyncMock(return_value=RunResult(status="passed"))
        orchestrator.run_tests = AsyncMock(return_value=failed_result())
        return orchestrator

    @pytest.fixture(autouse=True)
    def patch_orchestrator(self, mock_orchestrator: Mock) -> Iterator[Mock]:
        with patch(
            "gotest_ci.cli.TestOrchestrator", return_value=mock_orchestrator
        ) as mock_cls:
            yield mock_cls

    async def test_returns_zero_when_build_passes(
        self, mock_orchestrator: Mock, capsys: pytest.CaptureFixture[str]
    ) -> None:
        """Returns 0 and prints the summary."""
        args = build_parser().parse_args(["build", "--num-workers", "3"])

        exit_code = await run(args)

        assert exit_code == 0
        name, config = mock_orchestrator.run_build.await_args.args
        assert name == "gotest-ci-build"
        assert isinstance(config, BuildConfig)
        assert config.num_workers == 3
        assert json.loads(capsys.readouterr().out)["status"] == "passed"

    async def test_returns_one_when_tests_fail(
        self, mock_orchestrator: Mock, capsys: pytest.CaptureFixture[str]
    ) -> None:
        args = build_parser().parse_args(["test", "--name", "unit"])

        exit_code = await run(args)

        assert exit_code == 1
        _, config = mock_orchestrator.run_tests.await_args.args
        assert isinstance(config, TestConfig)
        assert json.loads(capsys.readouterr().out)["failed_units"] == ["example.com/a"]

    async def test_returns_one_on_orchestration_error(
        self, mock_orchestrator: Mock, capsys: pytest.CaptureFixture[str]
    ) -> None:
        """Reports the error instead of a summary."""
        mock_orchestrator.run_tests.side_effect = OrchestrationError(
            "requested unit x is not one of ['./...']", stage="Init"
        )
        args = build_parser().parse_args(["test", "x", "--name", "unit"])

        exit_code = await run(args)

        assert exit_code == 1
        assert json.loads(capsys.readouterr().out) == {
            "name": "unit",
            "status": "error",
            "message": "Init: requested unit x is not one of ['./...']",
        }

    @pytest.mark.parametrize(
        "argv",
        [
            ["test", "--timeout", "bogus", "--name", "unit"],
            ["build", "--timeout", "10 minutes", "--name", "unit"],
        ],
    )
    async def test_returns_one_on_invalid_configuration(
        self, argv: list[str], capsys: pytest.CaptureFixture[str]
    ) -> None:
        """A rejected setting still yields a machine-readable error line."""
        exit_code = await run(build_parser().parse_args(argv))

        assert exit_code == 1
        output = json.loads(capsys.readouterr().out)
        assert output["name"] == "unit"
        assert output["status"] == "error"

    async def test_returns_one_on_snapshot_download_error(
        self, mock_orchestrator: Mock, capsys: pytest.CaptureFixture[str]
    ) -> None:
        mock_orchestrator.run_tests.side_effect = RuntimeError(
            "Failed to download snapshot index: 503"
        )
        args = build_parser().parse_args(["test", "--name", "unit"])

        exit_code = await run(args)

        assert exit_code == 1
        assert json.loads(capsys.readouterr().out)["message"] == (
            "Failed to download snapshot index: 503"
        )

    async def test_skipped_regression_returns_three(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """A missing snapshot skips the run with a distinct exit code."""
        monkeypatch.setenv("GOTEST_CI_REGTEST_BINSET", "agentonly")
        source = Mock()
        context = AsyncMock()
        context.__aenter__.return_value = source
        context.__aexit__.return_value = None
        manifest = Mock()
        manifest.config_cls = Mock(return_value=Mock())
        manifest.source_factory = Mock(return_value=context)
        args = build_parser().parse_args(
            [
                "regression",
                "--snapshot-source",
                "command",
                "--snapshot-config",
                '{"command": ["fetch", "{date}"]}',
                "--work-dir",
                "/work",
            ]
        )

        with (
            patch("gotest_ci.cli.load_snapshot_manifest", return_value=manifest),
            patch("gotest_ci.cli.RegressionWorkflow") as mock_workflow_cls,
        ):
            mock_workflow_cls.return_value.run = AsyncMock(
                return_value=RunResult(status="skipped")
            )
            exit_code = await run(args)

        assert exit_code == 3
        manifest.config_cls.assert_called_once_with(command=["fetch", "{date}"])
        assert mock_workflow_cls.call_args.kwargs["snapshots"] is source
        _, regression_config, _ = mock_workflow_cls.return_value.run.await_args.args
        assert regression_config.bin_set == "agentonly"


def test_main_exits_with_run_code() -> None:
    with (
        patch("gotest_ci.cli.run", new_callable=AsyncMock, return_value=3),
        pytest.raises(SystemExit) as exc_info,
    ):
        main(["build"])

    assert exc_info.value.code == 3
