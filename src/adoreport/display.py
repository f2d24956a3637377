"""Terminal display formatting for every adoreport report.

Each ``format_*`` function takes already-parsed records or analysis
results and returns the complete report text, without a trailing
newline. Nothing here reads input or decides exit codes.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, tzinfo

from adoreport.config import ReportConfig
from adoreport.failures import FailureAnalysis, class_source_path
from adoreport.formatting import (
    banner,
    format_build_duration,
    format_date,
    format_pass_rate,
    format_remaining,
    parse_timestamp,
    pluralize,
    short_branch,
    short_suite,
)
from adoreport.models import Build, CommentThread, TestRun
from adoreport.suites import (
    CrossBranchCategory,
    CrossBranchReport,
    CrossBranchSuite,
    FlakinessReport,
    SuiteHistory,
)


def _branch_rate(history: SuiteHistory) -> str:
    return format_pass_rate(history.passed, history.total, empty="100")


# ---------------------------------------------------------------------------
# Build status
# ---------------------------------------------------------------------------

_BUILD_RESULT_ICONS = {
    "succeeded": "✅",
    "failed": "❌",
    "canceled": "⚠️",
    "partiallySucceeded": "⚠️",
}

_BUILD_STATUS_ICONS = {
    "inProgress": "🔄",
    "notStarted": "⏳",
}


def build_status_icon(status: str, result: str | None) -> str:
    """Return the glyph for a build's status and result."""
    if status == "completed" and result in _BUILD_RESULT_ICONS:
        return _BUILD_RESULT_ICONS[result]
    return _BUILD_STATUS_ICONS.get(status, "❓")


def format_builds(
    builds: Sequence[Build],
    *,
    now: datetime,
    tz: tzinfo | None = None,
) -> str:
    """Format a numbered list of builds.

    Output::

        === Azure DevOps Build Status ===

        1. ✅ Build #20240115.3 (ID: 4711)
           Status: completed - succeeded
           Branch: feature/login
           Started: Jan 15, 10:30 AM
           Finished: Jan 15, 10:42 AM (12m 5s)
           Requested by: Jane Doe
           Commit: 1a2b3c4d
    """
    if not builds:
        return "No builds found."

    lines = ["", "=== Azure DevOps Build Status ===", ""]

    for index, build in enumerate(builds, 1):
        start = parse_timestamp(build.start_time)
        finish = parse_timestamp(build.finish_time)
        if build.finish_time and finish is None:
            duration = "unknown"
        else:
            duration = format_build_duration(start, finish, now)
        icon = build_status_icon(build.status, build.result)
        result = f" - {build.result}" if build.result else ""

        lines.append(f"{index}. {icon} Build #{build.build_number} (ID: {build.id})")
        lines.append(f"   Status: {build.status}{result}")
        lines.append(f"   Branch: {short_branch(build.source_branch)}")
        lines.append(f"   Started: {format_date(start, tz)}")
        if build.finish_time:
            lines.append(f"   Finished: {format_date(finish, tz)} ({duration})")
        elif build.status == "inProgress":
            lines.append(f"   Running for: {duration}")
        lines.append(f"   Requested by: {build.requested_for}")
        if build.source_version:
            lines.append(f"   Commit: {build.source_version[:8]}")
        lines.append("")

    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Test results
# ---------------------------------------------------------------------------


def format_test_results(runs: Sequence[TestRun], *, suite_prefix: str = "testSuite") -> str:
    """Format totals and per-suite status for one build's test runs.

    Output::

        ⚠️ Overall Summary:
           Total Tests: 15
           Passed: 13 (86.7%)
           Failed: 2

        ❌ Suites with Failures:
           B: 3/5 passed, 2 failed
              https://dev.azure.com/...

        ✅ 1 Suite Passed:
           A
    """
    if not runs:
        return "No test runs found."

    total = sum(r.total for r in runs)
    passed = sum(r.passed for r in runs)
    failed = sum(r.failed for r in runs)
    not_applicable = sum(r.not_applicable for r in runs)
    incomplete = sum(r.incomplete for r in runs)
    unanalyzed = sum(r.unanalyzed for r in runs)

    overall = "✅" if failed == 0 and incomplete == 0 else "⚠️"

    lines = ["", "=== Azure DevOps Test Results ===", ""]
    lines.append(f"{overall} Overall Summary:")
    lines.append(f"   Total Tests: {total}")
    lines.append(f"   Passed: {passed} ({format_pass_rate(passed, total)}%)")
    if failed > 0:
        lines.append(f"   Failed: {failed}")
    if unanalyzed > 0:
        lines.append(f"   Unanalyzed: {unanalyzed}")
    if incomplete > 0:
        lines.append(f"   Incomplete: {incomplete}")
    if not_applicable > 0:
        lines.append(f"   Not Applicable: {not_applicable}")
    lines.append("")

    failing: list[TestRun] = []
    unanalyzed_runs: list[TestRun] = []
    passing: list[TestRun] = []
    for r in runs:
        if r.failed > 0 or r.incomplete > 0:
            failing.append(r)
        elif r.unanalyzed > 0:
            unanalyzed_runs.append(r)
        else:
            passing.append(r)

    if failing:
        lines.append("❌ Suites with Failures:")
        for r in failing:
            name = short_suite(r.name, suite_prefix)
            lines.append(f"   {name}: {r.passed}/{r.total} passed, {r.failed} failed")
            if r.unanalyzed > 0:
                lines.append(f"      ({r.unanalyzed} unanalyzed)")
            if r.web_url:
                lines.append(f"      {r.web_url}")
        lines.append("")

    if unanalyzed_runs:
        lines.append("⚠️  Suites with Unanalyzed Tests:")
        for r in unanalyzed_runs:
            name = short_suite(r.name, suite_prefix)
            lines.append(f"   {name}: {r.passed}/{r.total} passed, {r.unanalyzed} unanalyzed")
        lines.append("")

    if passing:
        count = len(passing)
        lines.append(f"✅ {count} {pluralize(count, 'Suite')} Passed:")
        lines.append("   " + ", ".join(short_suite(r.name, suite_prefix) for r in passing))
        lines.append("")

    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Failed tests
# ---------------------------------------------------------------------------


def format_failed_tests(analysis: FailureAnalysis, config: ReportConfig) -> str:
    """Format failed tests grouped by error category.

    Output::

        === Failed Test Analysis ===

        Total Failed Tests: 3

        ## Failures by Error Type:

        ### Timeout (2 tests)
           - com.acme.LoginTest.testLogin
             Error: Timed out after 30s
        ...
    """
    if analysis.total == 0:
        return "No failed tests found."

    lines = ["", "=== Failed Test Analysis ===", ""]
    lines.append(f"Total Failed Tests: {analysis.total}")
    lines.append("")

    lines.append("## Failures by Error Type:")
    lines.append("")
    for category, records in analysis.categories_by_size():
        count = len(records)
        lines.append(f"### {category.value} ({count} {pluralize(count, 'test')})")
        for record in records[: config.max_category_examples]:
            lines.append(f"   - {record.test_id}")
            lines.append(f"     Error: {record.error_message.replace(chr(10), ' ')}")
        more = format_remaining(config.max_category_examples, count)
        if more:
            lines.append(more)
        lines.append("")

    if analysis.new_failures:
        new = analysis.new_failures
        lines.append(f"## 🆕 New Failures ({len(new)}):")
        lines.append("")
        lines.append("These tests started failing in THIS build:")
        lines.append("")
        for record in new[: config.max_new_failures]:
            lines.append(f"   - {record.test_id}")
            lines.append(f"     Type: {record.category.value}")
        more = format_remaining(config.max_new_failures, len(new))
        if more:
            lines.append(more)
        lines.append("")

    if analysis.existing_failures:
        existing = analysis.existing_failures
        lines.append(f"## ⚠️  Existing Failures ({len(existing)}):")
        lines.append("")
        lines.append("These tests were already failing in previous builds:")
        lines.append("")
        for record in existing[: config.max_existing_failures]:
            lines.append(f"   - {record.test_id}")
            lines.append(f"     Failing since: {record.failing_since_build}")
        more = format_remaining(config.max_existing_failures, len(existing))
        if more:
            lines.append(more)
        lines.append("")

    classes = analysis.sorted_classes()
    lines.append(f"## Classes Involved in Failures ({len(classes)}):")
    lines.append("")
    lines.append("Check these classes for recent changes:")
    lines.append("")
    for class_name in classes[: config.max_classes]:
        lines.append(f"   - {class_name}")
        lines.append(f"     File: {class_source_path(class_name)}")
    more = format_remaining(config.max_classes, len(classes))
    if more:
        lines.append(more)
    lines.append("")

    lines.append("## Suggested Next Steps:")
    lines.append("")
    if analysis.new_failures:
        lines.append(
            "1. Focus on NEW failures first - these are most likely related to recent code changes"
        )
        lines.append("2. Use `git diff master` to see what changed in the involved classes")
        lines.append(
            "3. Check recent commits on this branch for changes to the classes listed above"
        )
    else:
        lines.append(
            "1. All failures are existing - these were already failing in previous builds"
        )
        lines.append("2. Consider investigating the most common error patterns first")
    lines.append("")

    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Single-branch flakiness
# ---------------------------------------------------------------------------


def format_flakiness(report: FlakinessReport, *, suite_prefix: str = "testSuite") -> str:
    """Format the flakiness analysis for one branch.

    Output::

        ## 🎲 Flaky Tests (1):

        These test suites have inconsistent results across builds:

           X - Pass Rate: 66.7%
           Build History:
              Build 101: ✅ passed (4/4)
              Build 102: ❌ 1 failed (3/4)
              Build 103: ✅ passed (4/4)
    """

    def name(history: SuiteHistory) -> str:
        return short_suite(history.name, suite_prefix)

    lines = ["", "=== Test Flakiness Analysis ===", ""]
    lines.append(f"Analyzing {report.build_count} builds: {', '.join(report.build_ids)}")
    lines.append("")

    if report.flaky:
        lines.append(f"## 🎲 Flaky Tests ({len(report.flaky)}):")
        lines.append("")
        lines.append("These test suites have inconsistent results across builds:")
        lines.append("")
        for history in report.flaky:
            rate = format_pass_rate(history.passed, history.total)
            lines.append(f"   {name(history)} - Pass Rate: {rate}%")
            lines.append("   Build History:")
            for build in history.builds:
                status = f"❌ {build.failed} failed" if build.is_failed else "✅ passed"
                lines.append(
                    f"      Build {build.build_id}: {status} ({build.passed}/{build.total})"
                )
            lines.append("")

    if report.new_failures:
        lines.append(f"## 🆕 New Failures ({len(report.new_failures)}):")
        lines.append("")
        lines.append("These test suites started failing in the most recent build:")
        lines.append("")
        for history in report.new_failures:
            latest = history.builds[-1]
            lines.append(
                f"   {name(history)} - {latest.failed} failed out of {latest.total}"
            )
        lines.append("")

    if report.consistent_failures:
        lines.append(f"## ❌ Consistent Failures ({len(report.consistent_failures)}):")
        lines.append("")
        lines.append("These test suites fail in ALL builds analyzed:")
        lines.append("")
        for history in report.consistent_failures:
            lines.append(f"   {name(history)}")
        lines.append("")

    if report.consistent_passes:
        lines.append(f"## ✅ Stable Tests ({len(report.consistent_passes)}):")
        lines.append("")
        lines.append("These test suites consistently pass:")
        lines.append("")
        lines.append("   " + ", ".join(name(h) for h in report.consistent_passes))
        lines.append("")

    lines.append("## Summary:")
    lines.append("")
    lines.append(f"   Total test suites analyzed: {len(report.histories)}")
    lines.append(f"   Flaky tests: {len(report.flaky)}")
    lines.append(f"   New failures: {len(report.new_failures)}")
    lines.append(f"   Consistent failures: {len(report.consistent_failures)}")
    lines.append(f"   Stable tests: {len(report.consistent_passes)}")
    lines.append("")

    if report.flaky:
        lines.append("⚠️  Focus on flaky tests - these may not be related to code changes")
    if report.new_failures:
        lines.append(
            "🔍 Investigate new failures - these are likely caused by recent code changes"
        )

    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Cross-branch flakiness
# ---------------------------------------------------------------------------


def _branch_rates(suite: CrossBranchSuite) -> list[str]:
    return [
        f"      {short_branch(branch)}: {_branch_rate(history)}% pass rate"
        for branch, history in suite.histories.items()
    ]


def format_cross_branch(report: CrossBranchReport, *, suite_prefix: str = "testSuite") -> str:
    """Format the comparison of a feature branch against its baseline.

    Output::

        ### 🆕 New Regressions (1):

        These tests fail on your branch but pass on master - INVESTIGATE YOUR CHANGES:

           Y
              Feature branch: 0.0% pass rate
              Master: 100.0% pass rate
           🔍 Your code changes likely caused this
    """
    truly_flaky = report.by_category(CrossBranchCategory.TRULY_FLAKY)
    regressions = report.by_category(CrossBranchCategory.NEW_REGRESSION)
    branch_flaky = report.by_category(CrossBranchCategory.BRANCH_SPECIFIC_FLAKINESS)
    pre_existing = report.by_category(CrossBranchCategory.PRE_EXISTING_FAILURE)
    stable = report.by_category(CrossBranchCategory.STABLE)

    def name(suite: CrossBranchSuite) -> str:
        return short_suite(suite.name, suite_prefix)

    lines = ["", "=== Cross-Branch Test Flakiness Analysis ===", ""]
    lines.append(f"Comparing branches: {', '.join(report.branches)}")
    lines.append("")
    lines.append("## Analysis Results:")
    lines.append("")

    if truly_flaky:
        lines.append(f"### 🎲 Truly Flaky Tests ({len(truly_flaky)}):")
        lines.append("")
        lines.append(
            "These tests fail intermittently on ALL branches - "
            "likely environmental/timing issues:"
        )
        lines.append("")
        for suite in truly_flaky:
            lines.append(f"   {name(suite)}")
            lines.extend(_branch_rates(suite))
            lines.append("   ⚠️  Can likely ignore - not related to your code changes")
            lines.append("")

    if regressions:
        lines.append(f"### 🆕 New Regressions ({len(regressions)}):")
        lines.append("")
        lines.append(
            "These tests fail on your branch but pass on master - INVESTIGATE YOUR CHANGES:"
        )
        lines.append("")
        for suite in regressions:
            lines.append(f"   {name(suite)}")
            lines.append(f"      Feature branch: {_branch_rate(suite.feature)}% pass rate")
            lines.append(f"      Master: {_branch_rate(suite.master)}% pass rate")
            lines.append("   🔍 Your code changes likely caused this")
            lines.append("")

    if branch_flaky:
        lines.append(f"### ⚠️  Branch-Specific Flakiness ({len(branch_flaky)}):")
        lines.append("")
        lines.append("These tests are flaky on your branch but stable on master:")
        lines.append("")
        for suite in branch_flaky:
            lines.append(f"   {name(suite)}")
            lines.append(
                f"      Feature branch: {_branch_rate(suite.feature)}% pass rate (flaky)"
            )
            lines.append(f"      Master: {_branch_rate(suite.master)}% pass rate (stable)")
            lines.append("   🤔 Could be your changes affecting test stability")
            lines.append("")

    if pre_existing:
        lines.append(f"### 📋 Pre-Existing Failures ({len(pre_existing)}):")
        lines.append("")
        lines.append("These tests fail on BOTH your branch and master - not your problem:")
        lines.append("")
        for suite in pre_existing:
            lines.append(f"   {name(suite)}")
            lines.extend(_branch_rates(suite))
            lines.append("   ✅ Safe to ignore - already broken")
            lines.append("")

    if stable:
        lines.append(f"### ✅ Stable Tests ({len(stable)}):")
        lines.append("")
        lines.append("   " + ", ".join(name(s) for s in stable))
        lines.append("")

    lines.append("")
    lines.append("## Summary:")
    lines.append("")
    lines.append(f"   Total test suites: {report.total_suites}")
    lines.append(f"   Truly flaky (all branches): {len(truly_flaky)}")
    lines.append(f"   New regressions (your changes): {len(regressions)}")
    lines.append(f"   Branch-specific flakiness: {len(branch_flaky)}")
    lines.append(f"   Pre-existing failures: {len(pre_existing)}")
    lines.append(f"   Stable tests: {len(stable)}")
    lines.append("")

    lines.append("## Recommendations:")
    lines.append("")
    if regressions:
        lines.append(
            "🔴 PRIORITY: Investigate new regressions - "
            "these are likely caused by your code changes"
        )
    if branch_flaky:
        lines.append("🟡 CONSIDER: Branch-specific flakiness might be caused by your changes")
    if truly_flaky:
        lines.append(
            "⚪ IGNORE: Truly flaky tests are environmental issues, not related to your code"
        )
    if pre_existing:
        lines.append(
            "⚪ IGNORE: Pre-existing failures were already broken before your changes"
        )

    return "\n".join(lines)


# ---------------------------------------------------------------------------
# PR comments
# ---------------------------------------------------------------------------


def format_pr_comments(threads: Sequence[CommentThread]) -> str:
    """Format PR comment threads with a status summary.

    Output::

        ======================================================================
        Thread 1 [ACTIVE]
        ======================================================================
        Location: /src/app.py:42

          [Jane Doe] 2024-01-15 10:30:45
          ------------------------------------------------------------------
          Please rename this variable.
    """
    rule = banner("=", 70)
    statuses = [t.status for t in threads]

    lines = [rule, "PR Comment Threads Summary", rule, ""]
    lines.append(f"Total threads: {len(threads)}")
    lines.append(f"Active (unresolved): {statuses.count('active')}")
    lines.append(f"Resolved: {statuses.count('fixed')}")
    lines.append(f"Closed: {statuses.count('closed')}")
    unknown = sum(1 for s in statuses if s in ("", "unknown"))
    if unknown > 0:
        lines.append(f"Unknown status: {unknown}")
    lines.append("")

    for index, thread in enumerate(threads, 1):
        location = thread.file_path or "General comment"
        if thread.line:
            location = f"{location}:{thread.line}"

        lines.append("")
        lines.append(rule)
        lines.append(f"Thread {index} [{thread.display_status.upper()}]")
        lines.append(rule)
        lines.append(f"Location: {location}")
        lines.append("")

        for position, comment in enumerate(thread.comments):
            if not comment.is_displayable:
                continue
            if position > 0:
                lines.append("")
            date = comment.published_date[:19].replace("T", " ")
            lines.append(f"  [{comment.author}] {date}")
            lines.append(f"  {banner('-', 66)}")
            lines.extend(f"  {line}" for line in comment.content.split("\n"))

    lines.append("")
    lines.append(rule)
    return "\n".join(lines)
