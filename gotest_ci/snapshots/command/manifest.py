"""Command snapshot source manifest."""

from gotest_ci.snapshots.command.config import CommandSnapshotConfig
from gotest_ci.snapshots.command.source import CommandSnapshotSource
from gotest_ci.snapshots.manifest import SnapshotSourceManifest

command_manifest = SnapshotSourceManifest(
    config_cls=CommandSnapshotConfig,
    source_factory=CommandSnapshotSource.from_config,
)
