"""HTTP snapshot source manifest."""

from gotest_ci.snapshots.http.config import HttpSnapshotConfig
from gotest_ci.snapshots.http.source import HttpSnapshotSource
from gotest_ci.snapshots.manifest import SnapshotSourceManifest

http_manifest = SnapshotSourceManifest(
    config_cls=HttpSnapshotConfig,
    source_factory=HttpSnapshotSource.from_config,
)
