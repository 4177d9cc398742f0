"""Command snapshot source module."""

from gotest_ci.snapshots.command.config import CommandSnapshotConfig
from gotest_ci.snapshots.command.manifest import command_manifest
from gotest_ci.snapshots.command.source import CommandSnapshotSource

__all__ = ["CommandSnapshotConfig", "CommandSnapshotSource", "command_manifest"]
