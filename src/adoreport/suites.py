"""Suite history aggregation and flakiness classification.

Provides:
- Suite history: per-suite pass/fail outcomes folded across builds.
- Single-branch flakiness: flaky, new, consistently failing and stable suites.
- Cross-branch flakiness: compares a feature branch against its baseline
  to separate regressions from environmental flakiness.

A suite counts as failed in a build when any of its tests failed in
that build, regardless of how many.
"""

from __future__ import annotations

import enum
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Callable

from adoreport.logging import get_logger
from adoreport.models import InputError, TestRun

log = get_logger("suites")

UNKNOWN_BUILD = "?"


# ---------------------------------------------------------------------------
# Suite history
# ---------------------------------------------------------------------------


class SuiteVerdict(enum.Enum):
    """Per-branch classification of a suite's history."""

    ALWAYS_PASSES = "always_passes"
    ALWAYS_FAILS = "always_fails"
    FLAKY = "flaky"
    UNCLASSIFIED = "unclassified"


@dataclass
class BuildOutcome:
    """A suite's counts in a single build."""

    build_id: str
    passed: int
    failed: int
    total: int

    @property
    def is_failed(self) -> bool:
        return self.failed > 0


@dataclass
class SuiteHistory:
    """Pass/fail outcomes of one suite across an ordered series of builds.

    ``passed`` and ``failed`` count builds, not tests, so
    ``passed + failed == total == len(builds)`` always holds.
    """

    name: str
    total: int = 0
    passed: int = 0
    failed: int = 0
    builds: list[BuildOutcome] = field(default_factory=list)

    def record(self, build_id: str, run: TestRun) -> None:
        """Fold one build's run of this suite into the history."""
        outcome = BuildOutcome(
            build_id=build_id,
            passed=run.passed,
            failed=run.failed,
            total=run.total,
        )
        self.builds.append(outcome)
        self.total += 1
        if outcome.is_failed:
            self.failed += 1
        else:
            self.passed += 1

    @property
    def pass_rate(self) -> float:
        """Fraction of builds in which the suite passed (1.0 when empty)."""
        if self.total == 0:
            return 1.0
        return self.passed / self.total

    @property
    def is_flaky(self) -> bool:
        return self.passed > 0 and self.failed > 0

    @property
    def always_fails(self) -> bool:
        return self.total > 0 and self.failed == self.total

    @property
    def always_passes(self) -> bool:
        return self.total > 0 and self.passed == self.total

    @property
    def verdict(self) -> SuiteVerdict:
        if self.is_flaky:
            return SuiteVerdict.FLAKY
        if self.always_fails:
            return SuiteVerdict.ALWAYS_FAILS
        if self.always_passes:
            return SuiteVerdict.ALWAYS_PASSES
        return SuiteVerdict.UNCLASSIFIED

    @property
    def is_new_failure(self) -> bool:
        """True if only the most recent of several builds failed."""
        if len(self.builds) < 2:
            return False
        *previous, latest = self.builds
        return latest.is_failed and not any(b.is_failed for b in previous)


def aggregate_suite_history(
    builds: Iterable[tuple[str, Sequence[TestRun]]],
) -> dict[str, SuiteHistory]:
    """Fold per-build test runs into one history per suite.

    Args:
        builds: ``(build_id, runs)`` pairs in build order.

    Returns:
        Suite name to history, in order of first appearance. A suite
        missing from some builds simply has fewer entries.
    """
    histories: dict[str, SuiteHistory] = {}
    for build_id, runs in builds:
        for run in runs:
            history = histories.get(run.name)
            if history is None:
                history = histories[run.name] = SuiteHistory(name=run.name)
            history.record(build_id, run)
    return histories


def label_builds(
    build_runs: Sequence[Sequence[TestRun]],
    build_ids: Sequence[str],
) -> list[tuple[str, Sequence[TestRun]]]:
    """Pair each build's runs with its positional label."""
    if len(build_runs) != len(build_ids):
        log.warning(
            "Got %d build ids for %d builds of test data; labels are matched by position",
            len(build_ids),
            len(build_runs),
        )
    return [
        (build_ids[i] if i < len(build_ids) else UNKNOWN_BUILD, runs)
        for i, runs in enumerate(build_runs)
    ]


# ---------------------------------------------------------------------------
# Single-branch flakiness
# ---------------------------------------------------------------------------


@dataclass
class FlakinessReport:
    """Classification of every suite seen across a series of builds."""

    build_ids: list[str]
    build_count: int
    histories: dict[str, SuiteHistory]
    flaky: list[SuiteHistory] = field(default_factory=list)
    new_failures: list[SuiteHistory] = field(default_factory=list)
    consistent_failures: list[SuiteHistory] = field(default_factory=list)
    consistent_passes: list[SuiteHistory] = field(default_factory=list)


def analyze_flakiness(
    build_runs: Sequence[Sequence[TestRun]],
    build_ids: Sequence[str],
) -> FlakinessReport:
    """Detect flaky and newly failing suites across builds of one branch.

    Args:
        build_runs: Test runs per build, oldest first.
        build_ids: Display labels, matched to *build_runs* by position.

    Returns:
        FlakinessReport. Flaky suites are sorted by ascending pass rate;
        every other list keeps first-appearance order. New failures may
        also appear in another list.
    """
    histories = aggregate_suite_history(label_builds(build_runs, build_ids))
    report = FlakinessReport(
        build_ids=list(build_ids),
        build_count=len(build_runs),
        histories=histories,
    )

    buckets = {
        SuiteVerdict.FLAKY: report.flaky,
        SuiteVerdict.ALWAYS_FAILS: report.consistent_failures,
        SuiteVerdict.ALWAYS_PASSES: report.consistent_passes,
    }
    for history in histories.values():
        bucket = buckets.get(history.verdict)
        if bucket is not None:
            bucket.append(history)
        if history.is_new_failure:
            report.new_failures.append(history)

    report.flaky.sort(key=lambda h: h.pass_rate)
    log.debug(
        "Classified %d suites: %d flaky, %d new failures",
        len(histories),
        len(report.flaky),
        len(report.new_failures),
    )
    return report


# ---------------------------------------------------------------------------
# Cross-branch flakiness
# ---------------------------------------------------------------------------


class CrossBranchCategory(enum.Enum):
    """Verdict for a suite compared between a feature branch and its baseline."""

    TRULY_FLAKY = "truly_flaky"
    NEW_REGRESSION = "new_regression"
    BRANCH_SPECIFIC_FLAKINESS = "branch_specific_flakiness"
    PRE_EXISTING_FAILURE = "pre_existing_failure"
    STABLE = "stable"


_Rule = Callable[[SuiteHistory, SuiteHistory], bool]

# (category, predicate(feature, master)) in precedence order; first match wins.
_CROSS_BRANCH_RULES: list[tuple[CrossBranchCategory, _Rule]] = [
    (
        CrossBranchCategory.TRULY_FLAKY,
        lambda f, m: f.is_flaky and m.is_flaky,
    ),
    (
        CrossBranchCategory.NEW_REGRESSION,
        lambda f, m: (f.always_fails or f.is_flaky) and m.always_passes,
    ),
    (
        CrossBranchCategory.PRE_EXISTING_FAILURE,
        lambda f, m: (f.always_fails or f.failed > 0) and (m.always_fails or m.failed > 0),
    ),
    (
        CrossBranchCategory.BRANCH_SPECIFIC_FLAKINESS,
        lambda f, m: f.is_flaky and not m.is_flaky,
    ),
    (
        CrossBranchCategory.STABLE,
        lambda f, m: f.always_passes and m.always_passes,
    ),
]


def classify_cross_branch(
    feature: SuiteHistory,
    master: SuiteHistory,
) -> CrossBranchCategory | None:
    """Classify a suite from its feature-branch and baseline histories.

    Returns None when no rule applies.
    """
    for category, rule in _CROSS_BRANCH_RULES:
        if rule(feature, master):
            return category
    return None


def _is_mainline(branch: str) -> bool:
    return "master" in branch or "main" in branch


def select_branches(branches: Sequence[str]) -> tuple[str, str]:
    """Pick the feature branch and the baseline branch to compare.

    The feature branch is the first whose name mentions neither
    ``master`` nor ``main``. The baseline is the first that mentions one
    of them, or the first branch overall.

    Raises:
        InputError: If every branch looks like a mainline branch.
    """
    if not branches:
        raise InputError("No branches to compare")
    feature = next((b for b in branches if not _is_mainline(b)), None)
    if feature is None:
        raise InputError(
            f"No feature branch found among {', '.join(branches)}; "
            "every branch name contains 'master' or 'main'"
        )
    master = next((b for b in branches if _is_mainline(b)), branches[0])
    return feature, master


@dataclass
class CrossBranchSuite:
    """One suite's histories on every branch and its verdict."""

    name: str
    category: CrossBranchCategory
    histories: dict[str, SuiteHistory]
    feature: SuiteHistory
    master: SuiteHistory


@dataclass
class CrossBranchReport:
    """Cross-branch classification of every suite seen on any branch."""

    branches: list[str]
    feature_branch: str
    master_branch: str
    total_suites: int = 0
    suites: list[CrossBranchSuite] = field(default_factory=list)

    def by_category(self, category: CrossBranchCategory) -> list[CrossBranchSuite]:
        return [s for s in self.suites if s.category is category]


def analyze_cross_branch(branch_runs: dict[str, list[list[TestRun]]]) -> CrossBranchReport:
    """Compare suite histories between a feature branch and its baseline.

    Each branch's builds are aggregated independently. Suites without
    data on every branch are skipped. Only one feature and one baseline
    branch take part in classification; extra branches still count for
    the every-branch requirement and appear in per-branch details.

    Args:
        branch_runs: Branch name to test runs per build, in input order.

    Returns:
        CrossBranchReport with classified suites in first-appearance order.

    Raises:
        InputError: If fewer than two branches are given or no feature
            branch can be identified.
    """
    branches = list(branch_runs)
    if len(branches) < 2:
        raise InputError("Please provide test data from at least 2 branches")

    feature_branch, master_branch = select_branches(branches)
    ignored = [b for b in branches if b not in (feature_branch, master_branch)]
    if ignored:
        log.warning(
            "Only %s and %s are compared; ignoring %s for classification",
            feature_branch,
            master_branch,
            ", ".join(ignored),
        )

    per_branch: dict[str, dict[str, SuiteHistory]] = {}
    for branch, build_runs in branch_runs.items():
        labelled = [(str(i), runs) for i, runs in enumerate(build_runs, 1)]
        per_branch[branch] = aggregate_suite_history(labelled)

    all_suites: dict[str, None] = {}
    for histories in per_branch.values():
        all_suites.update(dict.fromkeys(histories))

    report = CrossBranchReport(
        branches=branches,
        feature_branch=feature_branch,
        master_branch=master_branch,
        total_suites=len(all_suites),
    )

    for name in all_suites:
        if not all(name in per_branch[b] for b in branches):
            log.debug("Skipping %s: missing from at least one branch", name)
            continue
        histories = {b: per_branch[b][name] for b in branches}
        feature = histories[feature_branch]
        master = histories[master_branch]
        category = classify_cross_branch(feature, master)
        if category is None:
            log.debug("Suite %s matches no cross-branch category", name)
            continue
        report.suites.append(
            CrossBranchSuite(
                name=name,
                category=category,
                histories=histories,
                feature=feature,
                master=master,
            )
        )

    return report
