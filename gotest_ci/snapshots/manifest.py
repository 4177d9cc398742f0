"""Snapshot source manifest definition for the plugin system."""

from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass

from pydantic import BaseModel

from gotest_ci.snapshots.base import SnapshotSource


@dataclass(frozen=True, kw_only=True)
class SnapshotSourceManifest[ConfigT: BaseModel]:
    """Manifest describing a snapshot source plugin.

    Holds the configuration class and the factory opening a source, so sources
    are only imported once selected by key.
    """

    config_cls: type[ConfigT]
    source_factory: Callable[[ConfigT], AbstractAsyncContextManager[SnapshotSource]]
