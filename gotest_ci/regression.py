"""Integration tests run across old and new binary provenances."""

import logging
import shutil
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path

from gotest_ci.errors import OrchestrationError
from gotest_ci.executor import run_process
from gotest_ci.models.config import ENV_PREFIX, Direction, RegressionConfig, TestConfig
from gotest_ci.models.report import RunResult, Suite
from gotest_ci.orchestrator import TestOrchestrator
from gotest_ci.snapshots.base import NoSnapshotError, SnapshotSource

log = logging.getLogger(__name__)

REGTEST_DATE_ENV = f"{ENV_PREFIX}DATE"


def assemble_binaries(in1: Path, in2: Path, take1: frozenset[str]) -> dict[str, Path]:
    """Choose a source for every binary name.

    Everything in ``in2`` is taken first. A binary from ``in1`` replaces it
    when its name is in ``take1`` or ``in2`` lacks it.
    """
    binaries = {entry.name: entry for entry in in2.iterdir()}
    for entry in in1.iterdir():
        if entry.name in take1 or entry.name not in binaries:
            binaries[entry.name] = entry
    return binaries


def prepare_binaries(in1: Path, in2: Path, out: Path, take1: frozenset[str]) -> dict[str, Path]:
    """Recreate ``out`` as a directory of symlinks to the assembled binaries."""
    binaries = assemble_binaries(in1, in2, take1)
    shutil.rmtree(out, ignore_errors=True)
    out.mkdir(parents=True)

    # Hold-outs first, each group sorted.
    for holdout in (True, False):
        for name in sorted(binaries):
            if (name in take1) != holdout:
                continue
            (out / name).symlink_to(binaries[name].absolute())
            log.info("Using %s from %s", name, binaries[name])
    return binaries


@dataclass(frozen=True, kw_only=True)
class RegressionWorkflow:
    """Checks binaries built at head against a published snapshot.

    For each direction a binary directory is assembled in which the named set
    comes from one provenance and everything else from the other; the
    integration tests then run against it.
    """

    orchestrator: TestOrchestrator
    snapshots: SnapshotSource
    work_dir: Path
    install_units: Sequence[str] = ("./...",)
    today: Callable[[], date] = field(default=date.today, repr=False)

    def __post_init__(self) -> None:
        # Links and the exported bin dir must not depend on the caller's cwd.
        object.__setattr__(self, "work_dir", self.work_dir.absolute())

    async def run(
        self,
        test_name: str,
        config: RegressionConfig,
        test_config: TestConfig | None = None,
    ) -> RunResult:
        against = config.reference_date(self.today())
        binary_set = config.binary_set()
        log.info(
            "Regression testing against %s with %s",
            against.isoformat(),
            ", ".join(sorted(binary_set)),
        )

        new_dir = await self.build_new_binaries()
        try:
            old_dir = await self.fetch_old_binaries(against)
        except NoSnapshotError as e:
            log.warning("Skipping regression tests: %s", e)
            return RunResult(status="skipped")

        out_dir = self.work_dir / "bin"
        test_config = test_config or TestConfig()
        test_config = test_config.model_copy(
            update={"env": {**test_config.env, REGTEST_DATE_ENV: against.isoformat()}}
        )
        suites: list[Suite] = []
        for direction in config.directions():
            in1, in2 = self._inputs(direction, old_dir, new_dir)
            log.info("Running %s-set regression phase", direction)
            prepare_binaries(in1, in2, out_dir, binary_set)
            result = await self.orchestrator.run_integration(
                test_name, test_config, pattern=config.tests, bin_dir=out_dir
            )
            if result.status not in ("passed", "skipped"):
                return result
            suites.extend(result.suites)
        return RunResult(status="passed", suites=tuple(suites))

    @staticmethod
    def _inputs(direction: Direction, old_dir: Path, new_dir: Path) -> tuple[Path, Path]:
        if direction == "new":
            return new_dir, old_dir
        return old_dir, new_dir

    async def build_new_binaries(self) -> Path:
        """Install every binary built from the current tree."""
        new_dir = self.work_dir / "new" / "bin"
        shutil.rmtree(new_dir, ignore_errors=True)
        new_dir.mkdir(parents=True)
        toolchain = self.orchestrator.toolchain
        result = await run_process(
            toolchain.install_command(self.install_units, new_dir),
            env=self.orchestrator.env,
            cwd=self.orchestrator.cwd,
        )
        if not result.succeeded:
            raise OrchestrationError(
                f"failed to build binaries:\n{result.output}", stage="Install"
            )
        return new_dir

    async def fetch_old_binaries(self, against: date) -> Path:
        """Download the snapshot for ``against``, reusing an earlier download."""
        old_dir = self.work_dir / against.isoformat()
        if old_dir.is_dir():
            log.info("Reusing snapshot binaries in %s", old_dir)
            return old_dir
        try:
            await self.snapshots.fetch(against, old_dir)
        except BaseException:
            shutil.rmtree(old_dir, ignore_errors=True)
            raise
        if not old_dir.is_dir():
            raise OrchestrationError(
                f"snapshot {against.isoformat()} produced no binaries", stage="Snapshot"
            )
        return old_dir
