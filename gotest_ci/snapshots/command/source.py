"""Snapshot source running an external downloader program."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import date
from pathlib import Path

from gotest_ci.errors import OrchestrationError
from gotest_ci.executor import run_process
from gotest_ci.snapshots.base import NoSnapshotError, SnapshotSource
from gotest_ci.snapshots.command.config import CommandSnapshotConfig

log = logging.getLogger(__name__)


@dataclass(frozen=True, kw_only=True)
class CommandSnapshotSource(SnapshotSource):
    """Runs the configured command to download a snapshot."""

    config: CommandSnapshotConfig

    @classmethod
    @asynccontextmanager
    async def from_config(
        cls, config: CommandSnapshotConfig
    ) -> AsyncGenerator["CommandSnapshotSource", None]:
        yield cls(config=config)

    def argv(self, snapshot_date: date, output_dir: Path) -> list[str]:
        values = {"date": snapshot_date.isoformat(), "output_dir": str(output_dir)}
        return [arg.format(**values) for arg in self.config.command]

    async def fetch(self, snapshot_date: date, output_dir: Path) -> None:
        argv = self.argv(snapshot_date, output_dir)
        log.info("Downloading snapshot %s with %s", snapshot_date, argv[0])
        result = await run_process(
            argv, timeout=self.config.timeout, env=self.config.env or None
        )
        if result.succeeded:
            return
        if result.exit_code == self.config.no_snapshot_exit_code:
            raise NoSnapshotError(snapshot_date)
        reason = "timed out" if result.timed_out else f"exited with {result.exit_code}"
        raise OrchestrationError(
            f"snapshot download {reason}:\n{result.output}", stage="Snapshot"
        )
