"""Pydantic models for the snapshot store's index documents."""

import datetime

from pydantic import BaseModel, field_validator


class SnapshotBinary(BaseModel):
    """A binary published in a snapshot."""

    name: str
    path: str

    @field_validator("name")
    @classmethod
    def _plain_file_name(cls, value: str) -> str:
        if not value or "/" in value or "\\" in value or value in {".", ".."}:
            raise ValueError(f"invalid binary name {value!r}")
        return value


class SnapshotIndex(BaseModel):
    """The index of one day's snapshot."""

    date: datetime.date
    binaries: list[SnapshotBinary]
