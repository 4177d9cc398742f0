"""Snapshot source backed by an HTTP store."""

import asyncio
import logging
from collections.abc import AsyncGenerator, Mapping
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path

import aiohttp

from gotest_ci.snapshots.base import NoSnapshotError, SnapshotSource
from gotest_ci.snapshots.http.config import HttpSnapshotConfig
from gotest_ci.snapshots.http.models import SnapshotIndex

log = logging.getLogger(__name__)

EXECUTABLE_MODE = 0o755


@dataclass(frozen=True, kw_only=True)
class HttpSnapshotSource(SnapshotSource):
    """Downloads snapshots listed in per-day index documents."""

    config: HttpSnapshotConfig
    session: aiohttp.ClientSession = field(repr=False)

    @classmethod
    @asynccontextmanager
    async def from_config(
        cls, config: HttpSnapshotConfig
    ) -> AsyncGenerator["HttpSnapshotSource", None]:
        """Create source with managed session lifecycle."""
        headers: Mapping[str, str] = {}
        if config.token is not None:
            headers = {"Authorization": f"Bearer {config.token.get_secret_value()}"}
        async with aiohttp.ClientSession(
            base_url=config.base_url,
            headers=headers,
            timeout=aiohttp.ClientTimeout(total=config.timeout),
        ) as session:
            yield cls(config=config, session=session)

    async def get_index(self, snapshot_date: date) -> SnapshotIndex:
        """Get the index of the snapshot published on ``snapshot_date``."""
        url = f"snapshots/{snapshot_date.isoformat()}/index.json"
        async with self.session.get(url) as response:
            if response.status == 404:
                raise NoSnapshotError(snapshot_date)
            if response.status != 200:
                text = await response.text()
                raise RuntimeError(
                    f"Failed to get snapshot index: {response.status} {text}"
                )
            data = await response.json()

        return SnapshotIndex.model_validate(data)

    async def fetch(self, snapshot_date: date, output_dir: Path) -> None:
        index = await self.get_index(snapshot_date)
        output_dir.mkdir(parents=True, exist_ok=True)
        log.info(
            "Downloading %d binaries from snapshot %s",
            len(index.binaries),
            snapshot_date,
        )
        for binary in index.binaries:
            async with self.session.get(binary.path) as response:
                if response.status != 200:
                    text = await response.text()
                    raise RuntimeError(
                        f"Failed to download {binary.name}: {response.status} {text}"
                    )
                content = await response.read()

            target = output_dir / binary.name
            await asyncio.to_thread(target.write_bytes, content)
            target.chmod(EXECUTABLE_MODE)
            log.debug("Downloaded %s to %s", binary.name, target)
