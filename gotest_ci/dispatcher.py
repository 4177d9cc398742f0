"""Bounded pool of workers draining a fixed set of tasks."""

import asyncio
import logging
import random
from collections.abc import Sequence
from dataclasses import dataclass

from gotest_ci.errors import OrchestrationError
from gotest_ci.executor import UnitExecutor
from gotest_ci.models.outcome import ExecutionOutcome, Task

log = logging.getLogger(__name__)


def release_coverage(outcomes: Sequence[ExecutionOutcome]) -> None:
    for outcome in outcomes:
        if outcome.coverage is not None:
            outcome.coverage.release()


@dataclass(frozen=True, kw_only=True)
class WorkerPool:
    """Runs tasks through an executor with at most ``num_workers`` in flight.

    When more than one worker runs, each sleeps a random delay up to
    ``max_startup_delay`` seconds before its first task so concurrent
    toolchain invocations do not all start at once.
    """

    executor: UnitExecutor
    num_workers: int = 1
    max_startup_delay: float = 30.0

    async def run(
        self,
        tasks: Sequence[Task],
        synthetic: Sequence[ExecutionOutcome] = (),
    ) -> list[ExecutionOutcome]:
        """Execute every task and return one outcome per task plus ``synthetic``.

        Outcomes are returned in completion order, synthetic outcomes first.

        Raises:
            OrchestrationError: If the number of outcomes does not match
            Exception: Whatever a worker raised; remaining workers are cancelled

        """
        queue: asyncio.Queue[Task] = asyncio.Queue()
        for task in tasks:
            queue.put_nowait(task)

        results: list[ExecutionOutcome] = list(synthetic)
        workers = max(1, self.num_workers)
        stagger = workers > 1 and self.max_startup_delay > 0

        async def worker(index: int) -> None:
            if stagger:
                delay = random.uniform(0, self.max_startup_delay)
                log.debug("Worker %d sleeping %.1fs before starting", index, delay)
                await asyncio.sleep(delay)
            while True:
                try:
                    task = queue.get_nowait()
                except asyncio.QueueEmpty:
                    return
                outcome = await self.executor.execute(task)
                log.debug(
                    "Finished %s: %s (%.2fs)", outcome.unit, outcome.status, outcome.duration
                )
                results.append(outcome)

        log.info("Running %d task(s) on %d worker(s)", len(tasks), workers)
        running = [asyncio.create_task(worker(index)) for index in range(workers)]
        try:
            await asyncio.gather(*running)
        except BaseException:
            for pending in running:
                pending.cancel()
            await asyncio.gather(*running, return_exceptions=True)
            release_coverage(results)
            raise

        expected = len(tasks) + len(synthetic)
        if len(results) != expected:
            release_coverage(results)
            raise OrchestrationError(
                f"expected {expected} outcomes, collected {len(results)}",
                stage="Dispatch",
            )
        return results
