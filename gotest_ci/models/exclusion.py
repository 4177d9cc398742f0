"""Models for test exclusion rules."""

import re

from pydantic import Field

from gotest_ci.models.base import Model


class ExclusionRule(Model):
    """A pattern pair suppressing matching unit/test-name combinations.

    Patterns use search semantics, so ``"golang.org/x/tools"`` also matches
    every unit below that path unless anchored.
    """

    unit_pattern: re.Pattern[str] = Field(..., description="Pattern over unit ids")
    name_pattern: re.Pattern[str] = Field(..., description="Pattern over test names")
    active: bool = Field(default=True, description="Inactive rules never exclude")
    reason: str = Field(default="", description="Why the tests are excluded")

    def matches(self, unit: str, name: str) -> bool:
        """Return True when this rule excludes ``name`` in ``unit``."""
        return (
            self.active
            and self.unit_pattern.search(unit) is not None
            and self.name_pattern.search(name) is not None
        )

    def describe(self) -> str:
        return f"unit: {self.unit_pattern.pattern}, name: {self.name_pattern.pattern}"


def exclusion(unit: str, name: str, active: bool = True, reason: str = "") -> ExclusionRule:
    """Build a rule from raw patterns."""
    return ExclusionRule.model_validate(
        {"unit_pattern": unit, "name_pattern": name, "active": active, "reason": reason}
    )
