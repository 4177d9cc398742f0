"""Tests for the worker pool."""

import asyncio
from pathlib import Path
from unittest.mock import AsyncMock, Mock, patch

import pytest

from gotest_ci.dispatcher import WorkerPool
from gotest_ci.executor import UnitExecutor
from gotest_ci.models.outcome import CoverageArtifact, ExecutionOutcome, Task
from gotest_ci.testing.factories import ExecutionOutcomeFactory, TaskFactory


def executor_mock() -> Mock:
    """Create an executor returning a passed outcome per task."""
    executor = Mock(spec=UnitExecutor)
    executor.execute = AsyncMock(
        side_effect=lambda task: ExecutionOutcomeFactory.build(unit=task.unit)
    )
    return executor


@pytest.mark.parametrize("num_workers", [1, 2, 3, 8, 20])
async def test_returns_one_outcome_per_task(num_workers: int) -> None:
    """Collects exactly one outcome per task regardless of worker count."""
    tasks = [Task(unit=f"pkg{i}") for i in range(10)]
    pool = WorkerPool(
        executor=executor_mock(), num_workers=num_workers, max_startup_delay=0
    )

    outcomes = await pool.run(tasks)

    assert sorted(outcome.unit for outcome in outcomes) == sorted(
        task.unit for task in tasks
    )


async def test_synthetic_outcomes_bypass_executor() -> None:
    """Passes synthetic outcomes through without executing them."""
    executor = executor_mock()
    synthetic = [ExecutionOutcomeFactory.build(unit="excluded")]
    pool = WorkerPool(executor=executor, num_workers=2, max_startup_delay=0)

    outcomes = await pool.run([TaskFactory.build(unit="pkgA")], synthetic)

    assert [outcome.unit for outcome in outcomes] == ["excluded", "pkgA"]
    executor.execute.assert_awaited_once()


async def test_empty_run() -> None:
    """Returns nothing when there is nothing to do."""
    pool = WorkerPool(executor=executor_mock(), num_workers=4, max_startup_delay=0)

    assert await pool.run([]) == []


async def test_single_worker_does_not_stagger() -> None:
    """Starts a lone worker immediately."""
    pool = WorkerPool(executor=executor_mock(), num_workers=1, max_startup_delay=30)

    with patch("gotest_ci.dispatcher.asyncio.sleep", new=AsyncMock()) as sleep:
        await pool.run([Task(unit="pkgA")])

    sleep.assert_not_awaited()


async def test_multiple_workers_stagger_once_each() -> None:
    """Delays each worker once, within the configured bound."""
    pool = WorkerPool(executor=executor_mock(), num_workers=3, max_startup_delay=30)

    with patch("gotest_ci.dispatcher.asyncio.sleep", new=AsyncMock()) as sleep:
        await pool.run([Task(unit=f"pkg{i}") for i in range(6)])

    assert sleep.await_count == 3
    for call in sleep.await_args_list:
        assert 0 <= call.args[0] <= 30


async def test_bounds_concurrency() -> None:
    """Never runs more tasks at once than there are workers."""
    running = peak = 0

    async def execute(task: Task) -> ExecutionOutcome:
        nonlocal running, peak
        running += 1
        peak = max(peak, running)
        await asyncio.sleep(0.01)
        running -= 1
        return ExecutionOutcomeFactory.build(unit=task.unit)

    executor = Mock(spec=UnitExecutor)
    executor.execute = AsyncMock(side_effect=execute)
    pool = WorkerPool(executor=executor, num_workers=3, max_startup_delay=0)

    outcomes = await pool.run([Task(unit=f"pkg{i}") for i in range(12)])

    assert len(outcomes) == 12
    assert peak == 3


async def test_worker_error_propagates_and_releases_artifacts(tmp_path: Path) -> None:
    """Releases collected coverage artifacts when a worker fails."""
    artifact = CoverageArtifact.create(tmp_path)

    async def execute(task: Task) -> ExecutionOutcome:
        if task.unit == "broken":
            raise OSError("disk full")
        return ExecutionOutcomeFactory.build(unit=task.unit, coverage=artifact)

    executor = Mock(spec=UnitExecutor)
    executor.execute = AsyncMock(side_effect=execute)
    pool = WorkerPool(executor=executor, num_workers=1, max_startup_delay=0)

    with pytest.raises(OSError, match="disk full"):
        await pool.run([Task(unit="pkgA"), Task(unit="broken")])

    assert not artifact.path.exists()
