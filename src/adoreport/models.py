"""Typed records for the Azure DevOps JSON consumed by the reports.

Each dataclass mirrors one record shape of the Azure DevOps REST API and
provides a ``from_dict`` that maps the camelCase wire keys onto Python
fields. Optional fields get documented defaults; a record whose overall
shape is wrong (not an object, or a test run without a ``name``) raises
:class:`InputError`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from adoreport.logging import get_logger

log = get_logger("models")


class InputError(ValueError):
    """Raised when input JSON does not have the expected shape."""


def _require_mapping(data: Any, what: str) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise InputError(f"Expected {what} to be an object, got {type(data).__name__}")
    return data


def _count(data: dict[str, Any], key: str) -> int:
    """Read a count field, treating a missing or null value as 0."""
    value = data.get(key)
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InputError(f"Field {key!r} must be a number, got {value!r}")
    return int(value)


def _text(data: dict[str, Any], key: str, default: str = "") -> str:
    """Read a string field, falling back to *default* when missing or empty."""
    value = data.get(key)
    if value is None or value == "":
        return default
    return str(value)


def _nested(data: dict[str, Any], *keys: str) -> Any:
    """Walk nested objects, returning None as soon as a level is missing."""
    current: Any = data
    for key in keys:
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current


# ---------------------------------------------------------------------------
# Test runs
# ---------------------------------------------------------------------------


@dataclass
class TestRun:
    """One suite's run outcome for one build."""

    __test__ = False  # Not a pytest test class.

    name: str
    total: int = 0
    passed: int = 0
    not_applicable: int = 0
    incomplete: int = 0
    unanalyzed: int = 0
    web_url: str | None = None

    @property
    def raw_failed(self) -> int:
        """Failed count exactly as derived from the upstream counts."""
        return self.total - self.passed - self.not_applicable - self.incomplete

    @property
    def failed(self) -> int:
        """Failed count, never below zero."""
        return max(self.raw_failed, 0)

    @classmethod
    def from_dict(cls, data: Any) -> TestRun:
        data = _require_mapping(data, "test run")
        name = data.get("name")
        if not isinstance(name, str) or not name:
            raise InputError("Test run record has no 'name'")
        run = cls(
            name=name,
            total=_count(data, "totalTests"),
            passed=_count(data, "passedTests"),
            not_applicable=_count(data, "notApplicableTests"),
            incomplete=_count(data, "incompleteTests"),
            unanalyzed=_count(data, "unanalyzedTests"),
            web_url=data.get("webAccessUrl"),
        )
        if run.raw_failed < 0:
            log.warning(
                "Suite %s has inconsistent counts (total=%d, passed=%d); "
                "treating failed as 0 instead of %d",
                name,
                run.total,
                run.passed,
                run.raw_failed,
            )
        return run


# ---------------------------------------------------------------------------
# Builds
# ---------------------------------------------------------------------------


@dataclass
class Build:
    """A pipeline build as listed by ``az pipelines build list``."""

    id: str = ""
    build_number: str = ""
    status: str = ""
    result: str | None = None
    source_branch: str = ""
    start_time: str | None = None
    finish_time: str | None = None
    requested_for: str = "Unknown"
    source_version: str | None = None

    @classmethod
    def from_dict(cls, data: Any) -> Build:
        data = _require_mapping(data, "build")
        return cls(
            id=_text(data, "id"),
            build_number=_text(data, "buildNumber"),
            status=_text(data, "status"),
            result=data.get("result") or None,
            source_branch=_text(data, "sourceBranch"),
            start_time=data.get("startTime") or None,
            finish_time=data.get("finishTime") or None,
            requested_for=_nested(data, "requestedFor", "displayName") or "Unknown",
            source_version=data.get("sourceVersion") or None,
        )


# ---------------------------------------------------------------------------
# Failed test results
# ---------------------------------------------------------------------------


@dataclass
class FailedTestResult:
    """One failed test case from a test-results-by-outcome query.

    ``failing_since_build`` is None when the platform supplied no
    failing-since build for the test.
    """

    test_class: str = "Unknown"
    test_method: str = "Unknown"
    error_message: str = "No error message"
    stack_trace: str = ""
    failing_since_build: str | None = None
    current_build: str = ""

    @classmethod
    def from_dict(cls, data: Any) -> FailedTestResult:
        data = _require_mapping(data, "test result")
        failing_since: str | None = None
        since_build = _nested(data, "failingSince", "build")
        if isinstance(since_build, dict):
            number = _nested(since_build, "number")
            failing_since = "unknown" if number is None else str(number)
        return cls(
            test_class=_text(data, "automatedTestStorage", "Unknown"),
            test_method=_text(data, "automatedTestName", "Unknown"),
            error_message=_text(data, "errorMessage", "No error message"),
            stack_trace=_text(data, "stackTrace"),
            failing_since_build=failing_since,
            current_build=str(_nested(data, "build", "name") or ""),
        )


# ---------------------------------------------------------------------------
# PR comment threads
# ---------------------------------------------------------------------------


@dataclass
class Comment:
    """A single comment inside a PR thread."""

    comment_type: str = ""
    author: str = "System"
    content: str = ""
    published_date: str = ""

    @property
    def is_displayable(self) -> bool:
        return self.comment_type in ("text", "system")

    @classmethod
    def from_dict(cls, data: Any) -> Comment:
        data = _require_mapping(data, "comment")
        return cls(
            comment_type=_text(data, "commentType"),
            author=_nested(data, "author", "displayName") or "System",
            content=_text(data, "content"),
            published_date=_text(data, "publishedDate"),
        )


@dataclass
class CommentThread:
    """A PR comment thread with its location and comments."""

    status: str = ""
    file_path: str | None = None
    line: int | None = None
    comments: list[Comment] = field(default_factory=list)

    @property
    def display_status(self) -> str:
        return self.status or "unknown"

    @classmethod
    def from_dict(cls, data: Any) -> CommentThread:
        data = _require_mapping(data, "comment thread")
        comments = data.get("comments") or []
        if not isinstance(comments, list):
            raise InputError("Thread 'comments' must be an array")
        return cls(
            status=_text(data, "status"),
            file_path=_nested(data, "threadContext", "filePath") or None,
            line=_nested(data, "threadContext", "rightFileStart", "line") or None,
            comments=[Comment.from_dict(c) for c in comments],
        )
