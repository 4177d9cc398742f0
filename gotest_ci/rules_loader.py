"""Load exclusion rules from a YAML file."""

import asyncio
from collections.abc import Sequence
from pathlib import Path

import yaml
from pydantic import Field, ValidationError

from gotest_ci.host import HostPlatform
from gotest_ci.models.base import Model
from gotest_ci.models.exclusion import ExclusionRule


class RuleCondition(Model):
    """Host conditions under which a rule is active; unset fields match any host."""

    os: str | None = None
    arch: str | None = None
    ci: bool | None = None

    def holds(self, host: HostPlatform) -> bool:
        return (
            (self.os is None or self.os == host.os)
            and (self.arch is None or self.arch == host.arch)
            and (self.ci is None or self.ci == host.ci)
        )


class RuleEntry(Model):
    """One rule as written in the rules file."""

    unit: str = Field(..., description="Pattern over unit identifiers")
    name: str = Field(default=".*", description="Pattern over test names")
    reason: str = ""
    enabled: bool = Field(default=True, description="False documents a waived rule")
    when: RuleCondition = RuleCondition()


class RulesFile(Model):
    """Top-level structure of the rules file."""

    rules: Sequence[RuleEntry] = Field(default_factory=list)


async def load_exclusion_rules(path: Path, host: HostPlatform) -> tuple[ExclusionRule, ...]:
    """Load exclusion rules from ``path``, resolving host conditions.

    Raises:
        FileNotFoundError: If the rules file does not exist
        ValueError: If the file is empty, not valid YAML, or fails validation

    """
    if not path.is_file():
        raise FileNotFoundError(f"Rules file not found: {path}")

    content = await asyncio.to_thread(path.read_text, encoding="utf-8")

    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        raise ValueError(f"Empty rules file: {path}")

    try:
        rules_file = RulesFile.model_validate(data)
        return tuple(
            ExclusionRule.model_validate(
                {
                    "unit_pattern": entry.unit,
                    "name_pattern": entry.name,
                    "active": entry.enabled and entry.when.holds(host),
                    "reason": entry.reason,
                }
            )
            for entry in rules_file.rules
        )
    except ValidationError as e:
        raise ValueError(f"Invalid exclusion rules schema in {path}: {e}") from e
