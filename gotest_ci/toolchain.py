"""The external build/test tool, seen through the commands the pipelines need."""

import asyncio
import logging
import posixpath
import re
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path

from gotest_ci.errors import OrchestrationError
from gotest_ci.executor import run_process
from gotest_ci.models.config import FuncMatcher
from gotest_ci.models.outcome import Task

log = logging.getLogger(__name__)

_LIST_FORMAT = (
    '{{.ImportPath}}\t{{.Dir}}\t{{join .TestGoFiles " "}}\t{{join .XTestGoFiles " "}}'
)


def run_pattern(names: Sequence[str]) -> str:
    """Build the ``-run`` alternation selecting exactly ``names``."""
    if not names:
        raise ValueError("cannot restrict a run to zero tests")
    return "^(" + "|".join(names) + ")$"


def func_pattern(matcher: FuncMatcher) -> re.Pattern[str]:
    prefix = re.escape(matcher.prefix)
    if matcher.param_type is None:
        return re.compile(rf"^func\s+({prefix}\w*)\s*\(", re.MULTILINE)
    param = re.escape(matcher.param_type)
    return re.compile(
        rf"^func\s+({prefix}\w*)\s*\(\s*\w+\s+{param}\s*\)\s*\{{", re.MULTILINE
    )


def find_test_functions(source: str, matcher: FuncMatcher) -> list[str]:
    """Return the top-level functions in ``source`` selected by ``matcher``."""
    return func_pattern(matcher).findall(source)


class Toolchain(ABC):
    """Abstract base for the tool invoked once per unit.

    Command methods only build argument vectors; running them is up to the
    executor. Listing methods run the tool themselves and raise
    OrchestrationError when it fails.
    """

    @abstractmethod
    async def list_units(self, selectors: Sequence[str]) -> Sequence[str]:
        """Expand unit selectors into the ordered unit universe."""

    @abstractmethod
    async def list_test_functions(
        self, units: Sequence[str], matcher: FuncMatcher
    ) -> Mapping[str, Sequence[str]]:
        """Map each unit to its candidate test names; units without tests are omitted."""

    @abstractmethod
    def build_command(
        self,
        task: Task,
        *,
        args: Sequence[str] = (),
        output_dir: Path | None = None,
    ) -> Sequence[str]:
        """Command compiling one unit."""

    @abstractmethod
    def test_command(
        self,
        task: Task,
        *,
        timeout: str,
        args: Sequence[str] = (),
        non_test_args: Sequence[str] = (),
        coverage_profile: Path | None = None,
    ) -> Sequence[str]:
        """Command testing one unit, restricted to the task's names if any."""

    @abstractmethod
    def prebuild_command(self, units: Sequence[str]) -> Sequence[str]:
        """Command compiling the non-test dependencies of ``units``."""

    @abstractmethod
    def install_command(self, selectors: Sequence[str], output_dir: Path) -> Sequence[str]:
        """Command placing every binary of ``selectors`` into ``output_dir``."""


@dataclass(frozen=True, kw_only=True)
class GoToolchain(Toolchain):
    """The ``go`` command."""

    go: Sequence[str] = ("go",)
    env: Mapping[str, str] | None = None
    cwd: Path | None = None

    async def list_units(self, selectors: Sequence[str]) -> Sequence[str]:
        result = await run_process(
            [*self.go, "list", *selectors],
            env=self.env,
            cwd=self.cwd,
            merge_stderr=False,
        )
        if not result.succeeded:
            raise OrchestrationError(
                f"failed to list packages {list(selectors)}: {result.errors.strip()}",
                stage="List",
            )
        return [line.strip() for line in result.output.splitlines() if line.strip()]

    async def list_test_functions(
        self, units: Sequence[str], matcher: FuncMatcher
    ) -> Mapping[str, Sequence[str]]:
        if not units:
            return {}
        result = await run_process(
            [*self.go, "list", "-f", _LIST_FORMAT, *units],
            env=self.env,
            cwd=self.cwd,
            merge_stderr=False,
        )
        if not result.succeeded:
            raise OrchestrationError(
                f"failed to list test files: {result.errors.strip()}", stage="List"
            )

        matched: dict[str, list[str]] = {}
        for line in result.output.splitlines():
            if not line.strip():
                continue
            unit, directory, test_files, xtest_files = line.split("\t")
            for name in (*test_files.split(), *xtest_files.split()):
                source = await asyncio.to_thread(
                    (Path(directory) / name).read_text, encoding="utf-8"
                )
                matched.setdefault(unit, []).extend(find_test_functions(source, matcher))
        return {unit: names for unit, names in matched.items() if names}

    def build_command(
        self,
        task: Task,
        *,
        args: Sequence[str] = (),
        output_dir: Path | None = None,
    ) -> Sequence[str]:
        output: list[str] = []
        if output_dir is not None:
            output = ["-o", str(output_dir / posixpath.basename(task.unit))]
        return [*self.go, "build", *output, *args, task.unit]

    def test_command(
        self,
        task: Task,
        *,
        timeout: str,
        args: Sequence[str] = (),
        non_test_args: Sequence[str] = (),
        coverage_profile: Path | None = None,
    ) -> Sequence[str]:
        argv = [*self.go, "test"]
        if coverage_profile is not None:
            argv += ["-cover", "-coverprofile", str(coverage_profile)]
        argv += ["-timeout", timeout, "-v", *args]
        if task.specific_names is not None:
            argv += ["-run", run_pattern(task.specific_names)]
        return [*argv, task.unit, *non_test_args]

    def prebuild_command(self, units: Sequence[str]) -> Sequence[str]:
        return [*self.go, "build", *units]

    def install_command(self, selectors: Sequence[str], output_dir: Path) -> Sequence[str]:
        # A trailing separator makes "go build -o" treat the path as a directory.
        return [*self.go, "build", "-o", f"{output_dir}/", *selectors]
