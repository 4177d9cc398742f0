"""Models for per-unit tasks and their execution outcomes."""

import logging
import os
import tempfile
from collections.abc import Sequence
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from types import TracebackType
from typing import Self

log = logging.getLogger(__name__)


class TaskStatus(StrEnum):
    """Terminal classification of one task's execution."""

    BUILD_FAILED = "build-failed"
    TEST_FAILED = "test-failed"
    TIMED_OUT = "timed-out"
    PASSED = "passed"


@dataclass(frozen=True, kw_only=True)
class Task:
    """Work order for one unit.

    ``specific_names`` of ``None`` runs everything in the unit. An empty
    sequence would render an empty ``-run`` alternation, so it is rejected.
    """

    __test__ = False

    unit: str
    specific_names: Sequence[str] | None = None
    excluded_names: Sequence[str] = ()

    def __post_init__(self) -> None:
        if self.specific_names is not None and not self.specific_names:
            raise ValueError(f"Task for {self.unit} has no tests to run")


@dataclass(frozen=True)
class CoverageArtifact:
    """Temporary file receiving one unit's line-coverage profile."""

    path: Path

    @classmethod
    def create(cls, directory: Path | None = None) -> Self:
        """Allocate an empty profile file."""
        fd, name = tempfile.mkstemp(prefix="gotest-ci-", suffix=".cov", dir=directory)
        os.close(fd)
        return cls(Path(name))

    def read(self) -> str:
        """Return the profile text, empty when the tool never wrote it."""
        try:
            return self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return ""

    def release(self) -> None:
        """Remove the file. Safe to call more than once."""
        self.path.unlink(missing_ok=True)
        log.debug("Released coverage artifact %s", self.path)

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()


@dataclass(frozen=True, kw_only=True)
class ExecutionOutcome:
    """Result of executing exactly one task."""

    unit: str
    status: TaskStatus
    output: str
    duration: float
    excluded_names: Sequence[str] = ()
    coverage: CoverageArtifact | None = None
