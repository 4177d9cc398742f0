"""Execution of one tool invocation per unit."""

import asyncio
import logging
import os
import signal
import time
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from gotest_ci.classifier import classify_failure
from gotest_ci.models.outcome import CoverageArtifact, ExecutionOutcome, Task, TaskStatus

log = logging.getLogger(__name__)

_READ_CHUNK = 64 * 1024

type CommandTemplate = Callable[[Task, Path | None], Sequence[str]]
type ExecutionMode = Literal["build", "test", "coverage"]


@dataclass(frozen=True, kw_only=True)
class ProcessResult:
    """Exit status and captured output of one subprocess."""

    exit_code: int | None
    output: str
    errors: str = ""
    duration: float = 0.0
    timed_out: bool = False

    @property
    def succeeded(self) -> bool:
        return not self.timed_out and self.exit_code == 0


def _kill(process: asyncio.subprocess.Process) -> None:
    """Kill the process and, on POSIX, the children it spawned."""
    try:
        if hasattr(os, "killpg"):
            os.killpg(process.pid, signal.SIGKILL)
        else:
            process.kill()
    except ProcessLookupError:
        pass


async def run_process(
    argv: Sequence[str],
    *,
    timeout: float | None = None,
    env: Mapping[str, str] | None = None,
    cwd: Path | None = None,
    merge_stderr: bool = True,
) -> ProcessResult:
    """Run ``argv`` to completion, killing it once ``timeout`` seconds pass.

    Output is buffered in memory. On timeout the process is killed and
    whatever it printed so far is kept.
    """
    full_env = None if env is None else {**os.environ, **env}
    start = time.monotonic()
    process = await asyncio.create_subprocess_exec(
        *argv,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.STDOUT if merge_stderr else asyncio.subprocess.PIPE,
        stdin=asyncio.subprocess.DEVNULL,
        env=full_env,
        cwd=cwd,
        start_new_session=hasattr(os, "killpg"),
    )

    stdout, stderr = bytearray(), bytearray()

    async def drain(stream: asyncio.StreamReader | None, buffer: bytearray) -> None:
        if stream is None:
            return
        while chunk := await stream.read(_READ_CHUNK):
            buffer.extend(chunk)

    timed_out = False
    try:
        async with asyncio.timeout(timeout):
            await asyncio.gather(
                drain(process.stdout, stdout),
                drain(process.stderr, stderr),
            )
            await process.wait()
    except TimeoutError:
        timed_out = True
        log.debug("Killing %s after %.1fs", argv[0], timeout)
        _kill(process)
        await process.wait()
    except asyncio.CancelledError:
        _kill(process)
        await process.wait()
        raise

    return ProcessResult(
        exit_code=process.returncode,
        output=stdout.decode(errors="replace"),
        errors=stderr.decode(errors="replace"),
        duration=time.monotonic() - start,
        timed_out=timed_out,
    )


@dataclass(frozen=True, kw_only=True)
class UnitExecutor:
    """Runs one task's command and classifies the result.

    In coverage mode a temporary profile is allocated before the command runs
    and handed to the caller through the outcome, which then owns it.
    """

    command: CommandTemplate
    mode: ExecutionMode = "test"
    timeout: float | None = None
    env: Mapping[str, str] | None = None
    cwd: Path | None = None

    async def execute(self, task: Task) -> ExecutionOutcome:
        coverage = CoverageArtifact.create() if self.mode == "coverage" else None
        try:
            argv = self.command(task, coverage.path if coverage else None)
            log.debug("Running %s", " ".join(argv))
            result = await run_process(
                argv, timeout=self.timeout, env=self.env, cwd=self.cwd
            )
        except BaseException:
            if coverage is not None:
                coverage.release()
            raise

        return ExecutionOutcome(
            unit=task.unit,
            status=self._status(task.unit, result),
            output=result.output,
            duration=result.duration,
            excluded_names=task.excluded_names,
            coverage=coverage,
        )

    def _status(self, unit: str, result: ProcessResult) -> TaskStatus:
        if result.succeeded:
            return TaskStatus.PASSED
        if self.mode == "build" and not result.timed_out:
            return TaskStatus.BUILD_FAILED
        exit_code = result.exit_code
        if exit_code is not None and exit_code < 0:
            exit_code = None
        return classify_failure(
            unit=unit,
            output=result.output,
            exit_code=exit_code,
            timed_out=result.timed_out,
        )
