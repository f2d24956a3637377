"""Categorize failed test cases by the kind of error they hit.

This module buckets failed tests by an error category inferred from the
error message, separates failures that started in the current build
from ones that were already failing, and collects the classes involved
so they can be checked for recent changes.
"""

from __future__ import annotations

import enum
import re
from collections.abc import Iterable
from dataclasses import dataclass, field

from adoreport.logging import get_logger
from adoreport.models import FailedTestResult

log = get_logger("failures")


class ErrorCategory(enum.Enum):
    """Kind of error a failed test hit, in classification priority order."""

    NULL_POINTER = "NullPointerException"
    ILLEGAL_STATE = "IllegalStateException"
    ASSERTION = "Assertion Failure"
    TIMEOUT = "Timeout"
    DATABASE = "Database Issue"
    UI_NOT_VISIBLE = "UI Component Not Visible"
    OTHER = "Other Error"


# (substrings, category) checked in order; the first rule with any
# substring present in the message wins.
_ERROR_RULES: list[tuple[tuple[str, ...], ErrorCategory]] = [
    (("NullPointerException",), ErrorCategory.NULL_POINTER),
    (("IllegalStateException",), ErrorCategory.ILLEGAL_STATE),
    (("AssertionError", "expected"), ErrorCategory.ASSERTION),
    (("Timeout", "timeout"), ErrorCategory.TIMEOUT),
    (("SQLException", "database"), ErrorCategory.DATABASE),
    (("showing on the screen",), ErrorCategory.UI_NOT_VISIBLE),
]

_STACK_FRAME = re.compile(r"at\s+([\w.]+)", re.ASCII)


def categorize_error(message: str) -> ErrorCategory:
    """Infer the error category of a failure message.

    Matching is case-sensitive substring search. A message that matches
    several rules gets the category of the earliest rule, e.g.
    ``"expected true but got Timeout"`` is an assertion failure.
    """
    for needles, category in _ERROR_RULES:
        if any(needle in message for needle in needles):
            return category
    return ErrorCategory.OTHER


def extract_stack_classes(stack_trace: str, namespace: str) -> list[str]:
    """Return the enclosing class of every in-namespace stack frame.

    Each line is searched for ``at <dotted.identifier>``; frames whose
    identifier contains *namespace* contribute the identifier minus its
    last segment (``com.acme.Foo.bar`` gives ``com.acme.Foo``).
    """
    classes: list[str] = []
    for line in stack_trace.split("\n"):
        match = _STACK_FRAME.search(line)
        if match is None:
            continue
        frame = match.group(1)
        if namespace in frame:
            classes.append(frame.rpartition(".")[0])
    return classes


def class_source_path(class_name: str) -> str:
    """Map a dotted class name to a source-tree glob for its Java file."""
    return f"modules/*/src/**/java/{class_name.replace('.', '/')}.java"


@dataclass
class FailureRecord:
    """A failed test case with its inferred error category."""

    test_class: str
    test_method: str
    error_message: str
    stack_trace: str
    category: ErrorCategory
    failing_since_build: str | None = None
    current_build: str = ""

    @property
    def test_id(self) -> str:
        return f"{self.test_class}.{self.test_method}"

    @property
    def has_failing_since(self) -> bool:
        return self.failing_since_build is not None

    @property
    def is_new(self) -> bool:
        """True if the test started failing in the current build."""
        return self.failing_since_build == self.current_build


@dataclass
class FailureAnalysis:
    """Failed tests grouped for triage."""

    total: int = 0
    by_category: dict[ErrorCategory, list[FailureRecord]] = field(default_factory=dict)
    new_failures: list[FailureRecord] = field(default_factory=list)
    existing_failures: list[FailureRecord] = field(default_factory=list)
    classes_involved: set[str] = field(default_factory=set)

    def categories_by_size(self) -> list[tuple[ErrorCategory, list[FailureRecord]]]:
        """Categories with their records, largest first, ties in first-seen order."""
        return sorted(self.by_category.items(), key=lambda item: -len(item[1]))

    def sorted_classes(self) -> list[str]:
        return sorted(self.classes_involved)


def analyze_failed_tests(
    results: Iterable[FailedTestResult],
    *,
    namespace: str = "com.entero",
    message_length: int = 200,
) -> FailureAnalysis:
    """Group failed tests by error category and failure age.

    Args:
        results: Failed test results in query order.
        namespace: Only stack frames containing this namespace are mined
            for class names.
        message_length: Error messages are cut to this many characters.

    Returns:
        FailureAnalysis. Tests without failing-since metadata are in
        neither the new nor the existing failure list.
    """
    analysis = FailureAnalysis()

    for result in results:
        analysis.total += 1
        record = FailureRecord(
            test_class=result.test_class,
            test_method=result.test_method,
            error_message=result.error_message[:message_length],
            stack_trace=result.stack_trace,
            category=categorize_error(result.error_message),
            failing_since_build=result.failing_since_build,
            current_build=result.current_build,
        )
        analysis.by_category.setdefault(record.category, []).append(record)

        analysis.classes_involved.add(record.test_class)
        analysis.classes_involved.update(extract_stack_classes(record.stack_trace, namespace))

        if record.has_failing_since:
            if record.is_new:
                analysis.new_failures.append(record)
            else:
                analysis.existing_failures.append(record)

    log.debug(
        "Analyzed %d failed tests in %d categories",
        analysis.total,
        len(analysis.by_category),
    )
    return analysis
