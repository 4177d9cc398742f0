"""Configuration for the command snapshot source."""

from collections.abc import Mapping, Sequence

from pydantic import BaseModel, Field


class CommandSnapshotConfig(BaseModel):
    """Configuration for a downloader program run once per snapshot.

    Arguments may contain ``{date}`` (``YYYY-MM-DD``) and ``{output_dir}``
    placeholders. The program signals a missing snapshot by exiting with
    ``no_snapshot_exit_code``.
    """

    command: Sequence[str] = Field(..., min_length=1)
    no_snapshot_exit_code: int = 3
    timeout: float | None = Field(default=None, gt=0)
    env: Mapping[str, str] = Field(default_factory=dict)
