"""Loading of snapshot sources from entry points."""

from importlib.metadata import entry_points
from typing import Any

from gotest_ci.snapshots.manifest import SnapshotSourceManifest

ENTRY_POINT_GROUP = "gotest_ci.snapshots"


class SnapshotSourceNotFoundError(Exception):
    """Raised when a snapshot source is not found."""


def load_snapshot_manifest(key: str) -> SnapshotSourceManifest[Any]:
    """Load a snapshot source manifest by key.

    Args:
        key: The source key as registered in pyproject.toml ("command", "http")

    Raises:
        SnapshotSourceNotFoundError: If no source with the given key is found

    """
    entries = entry_points(group=ENTRY_POINT_GROUP)

    for entry in entries:
        if entry.name == key:
            manifest: SnapshotSourceManifest[Any] = entry.load()
            return manifest

    available = [e.name for e in entries]
    raise SnapshotSourceNotFoundError(
        f"Snapshot source '{key}' not found. Available sources: {available}"
    )
