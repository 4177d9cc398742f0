"""Configuration for the HTTP snapshot source."""

from pydantic import BaseModel, SecretStr, field_validator


class HttpSnapshotConfig(BaseModel):
    """Configuration for a snapshot store served over HTTP.

    The store publishes ``snapshots/<YYYY-MM-DD>/index.json`` listing the
    binaries of each day, with paths relative to ``base_url``.
    """

    base_url: str
    token: SecretStr | None = None
    timeout: float = 300.0

    @field_validator("base_url")
    @classmethod
    def _trailing_slash(cls, value: str) -> str:
        return value if value.endswith("/") else value + "/"
