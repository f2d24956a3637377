"""Shared test helpers for adoreport test modules."""

from __future__ import annotations

from typing import Any

from adoreport.models import TestRun


def run_dict(name: str, total: int, passed: int, **kwargs: Any) -> dict[str, Any]:
    """Create a test-run record the way Azure DevOps serializes it."""
    data: dict[str, Any] = {"name": name, "totalTests": total, "passedTests": passed}
    data.update(kwargs)
    return data


def make_run(
    name: str = "testSuiteA",
    total: int = 10,
    passed: int = 10,
    **kwargs: Any,
) -> TestRun:
    """Create a TestRun with sensible defaults."""
    return TestRun(name=name, total=total, passed=passed, **kwargs)


def envelope(*records: dict[str, Any]) -> dict[str, Any]:
    """Wrap records in a REST response envelope."""
    return {"count": len(records), "value": list(records)}


def suite_builds(name: str, outcomes: str, total: int = 4) -> list[list[TestRun]]:
    """Build per-build runs for one suite from a pass/fail string.

    Example: suite_builds("X", "PFP") gives three builds where X fails
    one test in the second.
    """
    return [
        [make_run(name, total=total, passed=total if c == "P" else total - 1)]
        for c in outcomes
    ]
