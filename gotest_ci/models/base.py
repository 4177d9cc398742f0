"""Base model configuration for configuration structures."""

from pydantic import BaseModel, ConfigDict


class Model(BaseModel):
    """Base model with standard configuration.

    Configuration values are built once and never mutated; unknown fields are
    rejected so a typo in a rules file or JSON config fails loudly.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")
