"""Reading Azure DevOps JSON from streams and files.

Every REST response is either a bare array or an object wrapping the
array in ``value``. The cross-branch input adds one more level: an
object keyed by branch name, each mapping to an array of responses.
"""

from __future__ import annotations

import json
from typing import IO, Any

from adoreport.logging import get_logger
from adoreport.models import InputError, TestRun

log = get_logger("inputs")


def read_json(stream: IO[str]) -> Any:
    """Read *stream* to the end and parse it as JSON."""
    text = stream.read()
    log.debug("Read %d characters of input", len(text))
    return json.loads(text)


def unwrap_envelope(data: Any) -> list[Any]:
    """Return the record array inside a REST response envelope.

    A bare array is returned unchanged; an object yields its ``value``
    array (empty when absent or null).

    Raises:
        InputError: If *data* is neither an array nor an object, or
            ``value`` is not an array.
    """
    if isinstance(data, list):
        return data
    if not isinstance(data, dict):
        raise InputError(f"Expected a JSON array or object, got {type(data).__name__}")
    records = data.get("value")
    if records is None:
        return []
    if not isinstance(records, list):
        raise InputError("Expected 'value' to be an array")
    return records


def parse_test_runs(data: Any) -> list[TestRun]:
    """Parse one test-run response into :class:`TestRun` records."""
    return [TestRun.from_dict(r) for r in unwrap_envelope(data)]


def parse_build_test_runs(data: Any) -> list[list[TestRun]]:
    """Parse an array of test-run responses, one per build, in build order.

    Raises:
        InputError: If *data* is not an array.
    """
    if not isinstance(data, list):
        raise InputError("Expected an array of build test run data")
    return [parse_test_runs(response) for response in data]


def parse_branch_test_runs(data: Any) -> dict[str, list[list[TestRun]]]:
    """Parse the cross-branch input, preserving branch order.

    Raises:
        InputError: If *data* is not an object keyed by branch name, or a
            branch does not map to an array of responses.
    """
    if not isinstance(data, dict):
        raise InputError("Expected an object with branch names as keys")
    branches: dict[str, list[list[TestRun]]] = {}
    for branch, responses in data.items():
        if not isinstance(responses, list):
            raise InputError(f"Expected an array of test run data for branch {branch!r}")
        branches[branch] = [parse_test_runs(response) for response in responses]
    return branches
