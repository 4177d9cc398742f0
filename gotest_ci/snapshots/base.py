"""Abstract base class for historical binary snapshot sources."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from pathlib import Path


class NoSnapshotError(Exception):
    """Raised when no snapshot was published for the requested date."""

    def __init__(self, snapshot_date: date) -> None:
        super().__init__(f"no snapshot for {snapshot_date.isoformat()}")
        self.snapshot_date = snapshot_date


@dataclass(frozen=True, kw_only=True)
class SnapshotSource(ABC):
    """Abstract base for stores of previously published binaries."""

    @abstractmethod
    async def fetch(self, snapshot_date: date, output_dir: Path) -> None:
        """Download every binary of the snapshot for ``snapshot_date``.

        Args:
            snapshot_date: Date the snapshot was published
            output_dir: Directory receiving the binaries; it does not exist yet

        Raises:
            NoSnapshotError: If nothing was published for that date

        """
