"""HTTP snapshot source module."""

from gotest_ci.snapshots.http.config import HttpSnapshotConfig
from gotest_ci.snapshots.http.manifest import http_manifest
from gotest_ci.snapshots.http.source import HttpSnapshotSource

__all__ = ["HttpSnapshotConfig", "HttpSnapshotSource", "http_manifest"]
