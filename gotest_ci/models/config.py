"""Configuration structures, one per pipeline operation."""

import os
import re
from collections.abc import Mapping, Sequence
from datetime import date, timedelta
from typing import Annotated, Literal, Self

from pydantic import AfterValidator, Field, field_validator

from gotest_ci.models.base import Model
from gotest_ci.models.exclusion import ExclusionRule

_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")

_UNIT_SECONDS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}


def parse_duration(text: str) -> timedelta:
    """Parse a Go-style duration such as ``"5m"`` or ``"1h30m"``."""
    if text == "0":
        return timedelta(0)
    position, seconds = 0, 0.0
    while position < len(text):
        match = _DURATION_PART.match(text, position)
        if match is None:
            raise ValueError(f"invalid duration {text!r}")
        seconds += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
        position = match.end()
    if position == 0:
        raise ValueError(f"invalid duration {text!r}")
    return timedelta(seconds=seconds)


def _validate_duration(value: str) -> str:
    parse_duration(value)
    return value


Duration = Annotated[str, AfterValidator(_validate_duration)]


def default_num_workers() -> int:
    return os.cpu_count() or 1


class FuncMatcher(Model):
    """Criteria selecting test functions from test sources.

    With ``param_type`` set, only functions taking exactly that one parameter
    and returning nothing match.
    """

    prefix: str = "Test"
    param_type: str | None = None


INTEGRATION_MATCHER = FuncMatcher(prefix="TestIntegration", param_type="*integration.T")


class _PipelineConfig(Model):
    units: Sequence[str] = Field(
        default=(), description="Unit selectors; empty selects the default universe"
    )
    args: Sequence[str] = Field(default=(), description="Extra tool arguments")
    num_workers: int = Field(default_factory=default_num_workers)

    @field_validator("num_workers")
    @classmethod
    def _floor_workers(cls, value: int) -> int:
        return max(1, value)


class BuildConfig(_PipelineConfig):
    """Configuration for building every unit."""

    timeout: Duration = "10m"


class TestConfig(_PipelineConfig):
    """Configuration for running tests, benchmarks and integration tests."""

    __test__ = False

    timeout: Duration = "5m"
    non_test_args: Sequence[str] = Field(
        default=(), description="Arguments placed after the unit, passed to tests"
    )
    suffix: str = Field(default="", description="Appended to every case name")
    exclusions: Sequence[ExclusionRule] = ()
    matcher: FuncMatcher = FuncMatcher()
    max_startup_delay: float = Field(default=30.0, ge=0)
    parts: Sequence[str] = Field(
        default=(), description="Unit selectors of the first N-1 shards"
    )
    part: int | None = Field(default=None, ge=0)
    env: Mapping[str, str] = Field(default_factory=dict)


class CoverageConfig(_PipelineConfig):
    """Configuration for collecting line coverage."""

    timeout: Duration = "5m"


type Direction = Literal["old", "new"]

REGRESSION_BIN_SETS: Mapping[str, frozenset[str]] = {
    "agentonly": frozenset({"agentd"}),
    "agentdevice": frozenset({"agentd", "deviced"}),
    "prodservices": frozenset(
        {
            "agentd",
            "deviced",
            "applicationd",
            "binaryd",
            "identityd",
            "proxyd",
            "mounttabled",
        }
    ),
}

DEFAULT_BIN_SET = "prodservices"

# Command-line interfaces change often, so only smoke tests run by default.
DEFAULT_REGRESSION_TESTS = "^TestSmoke.*"

ENV_PREFIX = "GOTEST_CI_REGTEST_"


class RegressionConfig(Model):
    """Configuration for running integration tests across binary provenances."""

    against_date: date | None = None
    days: int = Field(default=1, ge=0)
    bin_set: str | None = None
    binaries: Sequence[str] = ()
    direction: Direction | None = None
    tests: str = DEFAULT_REGRESSION_TESTS

    @field_validator("bin_set")
    @classmethod
    def _known_bin_set(cls, value: str | None) -> str | None:
        if value is not None and value not in REGRESSION_BIN_SETS:
            raise ValueError(f"specified binset {value!r} is not valid")
        return value

    @classmethod
    def from_env(cls, environ: Mapping[str, str]) -> Self:
        """Read the ``GOTEST_CI_REGTEST_*`` variables; empty values are unset."""

        def get(name: str) -> str | None:
            return environ.get(ENV_PREFIX + name) or None

        data: dict[str, object] = {}
        if (value := get("DATE")) is not None:
            data["against_date"] = value
        if (value := get("DAYS")) is not None:
            data["days"] = value
        if (value := get("BINSET")) is not None:
            data["bin_set"] = value
        if (value := get("BINARIES")) is not None:
            data["binaries"] = [name for name in value.split(",") if name]
        if (value := get("DIR")) is not None:
            data["direction"] = value
        if (value := get("TESTS")) is not None:
            data["tests"] = value
        return cls.model_validate(data)

    def reference_date(self, today: date) -> date:
        if self.against_date is not None:
            return self.against_date
        return today - timedelta(days=self.days)

    def binary_set(self) -> frozenset[str]:
        """Resolve the named set: preset, then explicit list, then default."""
        if self.bin_set is not None:
            return REGRESSION_BIN_SETS[self.bin_set]
        if self.binaries:
            return frozenset(self.binaries)
        return REGRESSION_BIN_SETS[DEFAULT_BIN_SET]

    def directions(self) -> Sequence[Direction]:
        if self.direction is not None:
            return (self.direction,)
        return ("old", "new")
