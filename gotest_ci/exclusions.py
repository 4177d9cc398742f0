"""Filtering of candidate test names through exclusion rules."""

from collections.abc import Sequence
from dataclasses import dataclass

from gotest_ci.host import HostPlatform
from gotest_ci.models.exclusion import ExclusionRule, exclusion


@dataclass(frozen=True, kw_only=True)
class FilterResult:
    """Outcome of applying exclusion rules to one unit.

    ``names_to_run`` of ``None`` means the unit runs unfiltered.
    """

    include: bool
    names_to_run: Sequence[str] | None = None
    excluded_names: Sequence[str] = ()


def filter_excluded_tests(
    unit: str,
    candidate_names: Sequence[str],
    rules: Sequence[ExclusionRule],
) -> FilterResult:
    """Decide whether ``unit`` runs and which of its tests are restricted.

    Args:
        unit: Unit identifier
        candidate_names: Test names discovered in the unit
        rules: Exclusion rules; inactive ones are ignored

    Returns:
        Whether to run the unit, the names to restrict it to (None for all),
        and the names excluded by the rules.

    """
    excluded = [
        name
        for name in candidate_names
        if any(rule.matches(unit, name) for rule in rules)
    ]
    if not excluded:
        return FilterResult(include=True)

    excluded_set = set(excluded)
    remaining = [name for name in candidate_names if name not in excluded_set]
    if not remaining:
        return FilterResult(include=False, excluded_names=tuple(excluded))
    return FilterResult(
        include=True,
        names_to_run=tuple(remaining),
        excluded_names=tuple(excluded),
    )


def describe_exclusions(rules: Sequence[ExclusionRule]) -> Sequence[str]:
    """List the active rules in human-readable form."""
    return [rule.describe() for rule in rules if rule.active]


def default_exclusions(host: HostPlatform) -> tuple[ExclusionRule, ...]:
    """Build the rule table applied to every test pipeline."""
    return (
        exclusion(
            "v.io/x/ref/runtime/internal/rpc/stream/vc",
            "TestConcurrentFlows",
            host.is_darwin and host.arch == "386",
            reason="Triggers a garbage collector bug on darwin/386",
        ),
        exclusion(
            "github.com/howeyc/fsnotify",
            ".*",
            host.is_darwin,
            reason="Flaky on darwin",
        ),
        exclusion(
            "golang.org/x/mobile",
            ".*",
            reason="Not maintained and broken on all platforms",
        ),
        exclusion(
            "golang.org/x/net/icmp",
            "TestPingGoogle",
            host.ci,
            reason="Requires IPv6, unavailable on CI instances",
        ),
        exclusion("golang.org/x/tools", "TestCheck", reason="Out of date"),
        exclusion(
            "golang.org/x/tools/go/loader", "TestStdlib", reason="Uses too much memory"
        ),
        exclusion(
            "golang.org/x/tools/go/ssa", "TestStdlib", reason="Uses too much memory"
        ),
        exclusion(
            "golang.org/x/tools/go/ssa/interp",
            "TestTestmainPackage",
            reason="Expects FAIL lines in its output, confusing report parsing",
        ),
        exclusion(
            "golang.org/x/tools/cmd/godoc",
            "TestWeb",
            reason="String matching clashes with local command names",
        ),
        exclusion(
            "github.com/go-sql-driver/mysql",
            ".*",
            reason="Requires a MySQL database",
        ),
        exclusion(
            "gopkg.in/check.v1",
            ".*",
            reason="Flaky benchmarks that sometimes never complete",
        ),
    )


def race_exclusions() -> tuple[ExclusionRule, ...]:
    """Build the extra rules applied only under the race detector."""
    return (
        exclusion(
            "v.io/x/devtools/gotest-ci",
            "TestGenerate",
            reason="Takes too long with the race detector",
        ),
    )
