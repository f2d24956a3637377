"""Tests for adoreport.display — report rendering."""

from __future__ import annotations

import unittest
from datetime import datetime, timezone

from report_test_helpers import make_run, suite_builds

from adoreport.config import ReportConfig
from adoreport.display import (
    build_status_icon,
    format_builds,
    format_cross_branch,
    format_failed_tests,
    format_flakiness,
    format_pr_comments,
    format_test_results,
)
from adoreport.failures import analyze_failed_tests
from adoreport.models import Build, Comment, CommentThread, FailedTestResult
from adoreport.suites import analyze_cross_branch, analyze_flakiness

UTC = timezone.utc
NOW = datetime(2024, 1, 15, 12, 0, tzinfo=UTC)


# ---------------------------------------------------------------------------
# Builds
# ---------------------------------------------------------------------------


class TestBuildStatusIcon(unittest.TestCase):
    def test_completed_results(self) -> None:
        self.assertEqual(build_status_icon("completed", "succeeded"), "✅")
        self.assertEqual(build_status_icon("completed", "failed"), "❌")
        self.assertEqual(build_status_icon("completed", "canceled"), "⚠️")
        self.assertEqual(build_status_icon("completed", "partiallySucceeded"), "⚠️")

    def test_running_states(self) -> None:
        self.assertEqual(build_status_icon("inProgress", None), "🔄")
        self.assertEqual(build_status_icon("notStarted", None), "⏳")

    def test_unknown(self) -> None:
        self.assertEqual(build_status_icon("completed", "weird"), "❓")
        self.assertEqual(build_status_icon("cancelling", None), "❓")


class TestFormatBuilds(unittest.TestCase):
    def test_completed_build(self) -> None:
        build = Build(
            id="4711",
            build_number="20240115.3",
            status="completed",
            result="succeeded",
            source_branch="refs/heads/feature/login",
            start_time="2024-01-15T10:30:00Z",
            finish_time="2024-01-15T10:42:05Z",
            requested_for="Jane Doe",
            source_version="1a2b3c4d5e6f7a8b",
        )
        text = format_builds([build], now=NOW, tz=UTC)
        expected = "\n".join(
            [
                "",
                "=== Azure DevOps Build Status ===",
                "",
                "1. ✅ Build #20240115.3 (ID: 4711)",
                "   Status: completed - succeeded",
                "   Branch: feature/login",
                "   Started: Jan 15, 10:30 AM",
                "   Finished: Jan 15, 10:42 AM (12m 5s)",
                "   Requested by: Jane Doe",
                "   Commit: 1a2b3c4d",
                "",
            ]
        )
        self.assertEqual(text, expected)

    def test_in_progress(self) -> None:
        build = Build(
            id="1",
            build_number="7",
            status="inProgress",
            start_time="2024-01-15T11:55:30Z",
        )
        text = format_builds([build], now=NOW, tz=UTC)
        self.assertIn("1. 🔄 Build #7 (ID: 1)", text)
        self.assertIn("   Status: inProgress\n", text)
        self.assertIn("   Running for: 4m 30s", text)
        self.assertNotIn("Commit:", text)
        self.assertNotIn("Finished:", text)

    def test_unparseable_finish_time(self) -> None:
        build = Build(
            id="2",
            build_number="8",
            status="completed",
            result="succeeded",
            start_time="2024-01-15T11:00:00Z",
            finish_time="not a date",
        )
        text = format_builds([build], now=NOW, tz=UTC)
        self.assertIn("   Finished: unknown (unknown)\n", text)

    def test_numbering(self) -> None:
        builds = [Build(id=str(i), status="notStarted") for i in range(3)]
        text = format_builds(builds, now=NOW, tz=UTC)
        self.assertIn("3. ⏳ Build # (ID: 2)", text)

    def test_empty(self) -> None:
        self.assertEqual(format_builds([], now=NOW), "No builds found.")


# ---------------------------------------------------------------------------
# Test results
# ---------------------------------------------------------------------------


class TestFormatTestResults(unittest.TestCase):
    def test_suite_with_failures(self) -> None:
        runs = [
            make_run("testSuiteA", total=10, passed=10),
            make_run("testSuiteB", total=5, passed=3, web_url="https://dev.azure.com/r/2"),
        ]
        text = format_test_results(runs)
        expected = "\n".join(
            [
                "",
                "=== Azure DevOps Test Results ===",
                "",
                "⚠️ Overall Summary:",
                "   Total Tests: 15",
                "   Passed: 13 (86.7%)",
                "   Failed: 2",
                "",
                "❌ Suites with Failures:",
                "   B: 3/5 passed, 2 failed",
                "      https://dev.azure.com/r/2",
                "",
                "✅ 1 Suite Passed:",
                "   A",
                "",
            ]
        )
        self.assertEqual(text, expected)

    def test_all_passed(self) -> None:
        text = format_test_results([make_run("testSuiteA"), make_run("testSuiteB")])
        self.assertIn("✅ Overall Summary:", text)
        self.assertIn("✅ 2 Suites Passed:\n   A, B", text)
        self.assertNotIn("Failed:", text)

    def test_incomplete_is_a_problem(self) -> None:
        text = format_test_results([make_run("S", total=4, passed=3, incomplete=1)])
        self.assertIn("⚠️ Overall Summary:", text)
        self.assertIn("   Incomplete: 1", text)
        self.assertIn("   S: 3/4 passed, 0 failed", text)

    def test_unanalyzed(self) -> None:
        text = format_test_results(
            [
                make_run("S", total=4, passed=4, unanalyzed=2),
                make_run("T", total=4, passed=3, unanalyzed=1),
            ]
        )
        self.assertIn("   Unanalyzed: 3", text)
        self.assertIn(
            "⚠️  Suites with Unanalyzed Tests:\n   S: 4/4 passed, 2 unanalyzed", text
        )
        self.assertIn("   T: 3/4 passed, 1 failed\n      (1 unanalyzed)", text)

    def test_not_applicable(self) -> None:
        text = format_test_results([make_run("S", total=4, passed=3, not_applicable=1)])
        self.assertIn("   Not Applicable: 1", text)
        self.assertIn("✅ Overall Summary:", text)

    def test_custom_prefix(self) -> None:
        text = format_test_results([make_run("IT_Login")], suite_prefix="IT_")
        self.assertIn("   Login", text)

    def test_zero_total(self) -> None:
        text = format_test_results([make_run("S", total=0, passed=0)])
        self.assertIn("   Passed: 0 (0.0%)", text)

    def test_empty(self) -> None:
        self.assertEqual(format_test_results([]), "No test runs found.")


# ---------------------------------------------------------------------------
# Failed tests
# ---------------------------------------------------------------------------


def _result(index: int, message: str, **kwargs: str | None) -> FailedTestResult:
    return FailedTestResult(
        test_class=f"com.entero.T{index}",
        test_method=f"test{index}",
        error_message=message,
        **kwargs,  # type: ignore[arg-type]
    )


class TestFormatFailedTests(unittest.TestCase):
    def test_sections(self) -> None:
        analysis = analyze_failed_tests(
            [
                _result(1, "Timeout\nafter 30s", failing_since_build="9", current_build="9"),
                _result(2, "timeout", failing_since_build="3", current_build="9"),
            ]
        )
        text = format_failed_tests(analysis, ReportConfig())
        self.assertIn("Total Failed Tests: 2", text)
        self.assertIn("### Timeout (2 tests)", text)
        self.assertIn("   - com.entero.T1.test1\n     Error: Timeout after 30s", text)
        self.assertIn("## 🆕 New Failures (1):", text)
        self.assertIn("     Type: Timeout", text)
        self.assertIn("## ⚠️  Existing Failures (1):", text)
        self.assertIn("     Failing since: 3", text)
        self.assertIn("## Classes Involved in Failures (2):", text)
        self.assertIn("     File: modules/*/src/**/java/com/entero/T1.java", text)
        self.assertIn("1. Focus on NEW failures first", text)

    def test_singular_and_truncation(self) -> None:
        results = [_result(i, "expected") for i in range(7)] + [_result(99, "database")]
        text = format_failed_tests(analyze_failed_tests(results), ReportConfig())
        self.assertIn("### Assertion Failure (7 tests)", text)
        self.assertIn("### Database Issue (1 test)", text)
        self.assertLess(text.index("Assertion Failure"), text.index("Database Issue"))
        self.assertIn("   ... and 2 more", text)
        self.assertIn("1. All failures are existing", text)
        self.assertNotIn("New Failures", text)

    def test_limits_from_config(self) -> None:
        results = [_result(i, "boom") for i in range(4)]
        config = ReportConfig(max_category_examples=1, max_classes=2)
        text = format_failed_tests(analyze_failed_tests(results), config)
        self.assertIn("   ... and 3 more", text)
        self.assertIn("   ... and 2 more", text)
        self.assertEqual(text.count("     Error: boom"), 1)

    def test_empty(self) -> None:
        text = format_failed_tests(analyze_failed_tests([]), ReportConfig())
        self.assertEqual(text, "No failed tests found.")


# ---------------------------------------------------------------------------
# Flakiness
# ---------------------------------------------------------------------------


class TestFormatFlakiness(unittest.TestCase):
    def test_flaky_history(self) -> None:
        flaky = suite_builds("testSuiteX", "PFP")
        stable = suite_builds("S", "PPP")
        builds = [a + b for a, b in zip(flaky, stable)]
        text = format_flakiness(analyze_flakiness(builds, ["101", "102", "103"]))
        self.assertIn("Analyzing 3 builds: 101, 102, 103", text)
        self.assertIn("## 🎲 Flaky Tests (1):", text)
        self.assertIn("   X - Pass Rate: 66.7%", text)
        self.assertIn(
            "      Build 101: ✅ passed (4/4)\n"
            "      Build 102: ❌ 1 failed (3/4)\n"
            "      Build 103: ✅ passed (4/4)",
            text,
        )
        self.assertIn("## ✅ Stable Tests (1):", text)
        self.assertIn("   Total test suites analyzed: 2", text)
        self.assertIn("⚠️  Focus on flaky tests", text)
        self.assertNotIn("New Failures", text)

    def test_new_and_consistent_failures(self) -> None:
        builds = [a + b for a, b in zip(suite_builds("N", "PPF"), suite_builds("C", "FFF"))]
        text = format_flakiness(analyze_flakiness(builds, ["1", "2", "3"]))
        self.assertIn("## 🆕 New Failures (1):", text)
        self.assertIn("   N - 1 failed out of 4", text)
        self.assertIn("## ❌ Consistent Failures (1):", text)
        self.assertIn("   Consistent failures: 1", text)
        self.assertIn("🔍 Investigate new failures", text)


# ---------------------------------------------------------------------------
# Cross-branch
# ---------------------------------------------------------------------------


class TestFormatCrossBranch(unittest.TestCase):
    def test_new_regression(self) -> None:
        report = analyze_cross_branch(
            {
                "refs/heads/feature/y": suite_builds("testSuiteY", "FFF"),
                "refs/heads/master": suite_builds("testSuiteY", "PPP"),
            }
        )
        text = format_cross_branch(report)
        self.assertIn("Comparing branches: refs/heads/feature/y, refs/heads/master", text)
        self.assertIn("### 🆕 New Regressions (1):", text)
        self.assertIn(
            "   Y\n      Feature branch: 0.0% pass rate\n      Master: 100.0% pass rate", text
        )
        self.assertIn("   New regressions (your changes): 1", text)
        self.assertIn("🔴 PRIORITY", text)

    def test_truly_flaky_lists_every_branch(self) -> None:
        report = analyze_cross_branch(
            {
                "refs/heads/feature/y": suite_builds("Z", "PF"),
                "refs/heads/master": suite_builds("Z", "FPP"),
            }
        )
        text = format_cross_branch(report)
        self.assertIn("### 🎲 Truly Flaky Tests (1):", text)
        self.assertIn("      feature/y: 50.0% pass rate\n      master: 66.7% pass rate", text)
        self.assertIn("⚪ IGNORE: Truly flaky tests", text)
        self.assertNotIn("New Regressions", text)

    def test_pre_existing_and_stable(self) -> None:
        feature = [a + b for a, b in zip(suite_builds("P", "FF"), suite_builds("S", "PP"))]
        master = [a + b for a, b in zip(suite_builds("P", "FF"), suite_builds("S", "PP"))]
        text = format_cross_branch(analyze_cross_branch({"feature/y": feature, "main": master}))
        self.assertIn("### 📋 Pre-Existing Failures (1):", text)
        self.assertIn("   ✅ Safe to ignore - already broken", text)
        self.assertIn("### ✅ Stable Tests (1):\n\n   S", text)
        self.assertIn("   Total test suites: 2", text)


# ---------------------------------------------------------------------------
# PR comments
# ---------------------------------------------------------------------------


class TestFormatPrComments(unittest.TestCase):
    def test_thread(self) -> None:
        thread = CommentThread(
            status="active",
            file_path="/src/app.py",
            line=42,
            comments=[
                Comment("text", "Jane Doe", "Rename this.\nPlease.", "2024-01-15T10:30:45.12Z"),
                Comment("codeChange", "Bot", "ignored", ""),
                Comment("system", "System", "Voted", "2024-01-15T11:00:00Z"),
            ],
        )
        text = format_pr_comments([thread])
        self.assertIn("Total threads: 1\nActive (unresolved): 1\nResolved: 0\nClosed: 0", text)
        self.assertNotIn("Unknown status", text)
        self.assertIn("Thread 1 [ACTIVE]", text)
        self.assertIn("Location: /src/app.py:42", text)
        self.assertIn("  [Jane Doe] 2024-01-15 10:30:45\n  " + "-" * 66, text)
        self.assertIn("  Rename this.\n  Please.", text)
        self.assertNotIn("ignored", text)
        self.assertIn("  Please.\n\n  [System] 2024-01-15 11:00:00", text)
        self.assertTrue(text.endswith("=" * 70))

    def test_status_counts(self) -> None:
        threads = [
            CommentThread(status="fixed"),
            CommentThread(status="closed"),
            CommentThread(status=""),
            CommentThread(status="unknown"),
            CommentThread(status="byDesign"),
        ]
        text = format_pr_comments(threads)
        self.assertIn("Resolved: 1", text)
        self.assertIn("Closed: 1", text)
        self.assertIn("Unknown status: 2", text)
        self.assertIn("Thread 3 [UNKNOWN]", text)
        self.assertIn("Thread 5 [BYDESIGN]", text)
        self.assertIn("Location: General comment", text)


if __name__ == "__main__":
    unittest.main()
