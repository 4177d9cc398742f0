"""Tests for snapshot source loading module."""

import pytest

from gotest_ci.snapshots.command import CommandSnapshotConfig, command_manifest
from gotest_ci.snapshots.http import http_manifest
from gotest_ci.snapshots.loading import (
    SnapshotSourceNotFoundError,
    load_snapshot_manifest,
)


def test_load_snapshot_manifest_returns_manifest() -> None:
    """Loads snapshot source manifests by key."""
    assert load_snapshot_manifest("command") is command_manifest
    assert load_snapshot_manifest("http") is http_manifest


def test_load_snapshot_manifest_raises_for_unknown_source() -> None:
    """Raises SnapshotSourceNotFoundError for unknown source key."""
    with pytest.raises(SnapshotSourceNotFoundError) as exc_info:
        load_snapshot_manifest("unknown-source")

    assert "unknown-source" in str(exc_info.value)
    assert "Available sources" in str(exc_info.value)


def test_manifest_validates_config() -> None:
    """The manifest's config class rejects an empty command."""
    assert command_manifest.config_cls is CommandSnapshotConfig
    with pytest.raises(ValueError):
        command_manifest.config_cls(command=[])
