"""Report configuration loading.

Handles:
- Loading report settings from a YAML file.
- Validating the resolved settings before any report runs.

Every setting has a default, so running without a config file is the
common case.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

import yaml

from adoreport.logging import get_logger

log = get_logger("config")

ENV_VAR = "ADOREPORT_CONFIG"


# ---------------------------------------------------------------------------
# ReportConfig
# ---------------------------------------------------------------------------


@dataclass
class ReportConfig:
    """Resolved settings shared by all reports."""

    # Stack frames are only mined for classes under this namespace.
    namespace_filter: str = "com.entero"
    # Dropped from suite names for display.
    suite_prefix: str = "testSuite"

    # Display limits for the failed-test report.
    max_category_examples: int = 5
    max_new_failures: int = 10
    max_existing_failures: int = 5
    max_classes: int = 15
    error_message_length: int = 200

    default_comments_file: str = "pr_comments.json"


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


@dataclass
class ValidationError:
    """A single configuration validation error."""

    field: str
    message: str


_LIMIT_FIELDS = (
    "max_category_examples",
    "max_new_failures",
    "max_existing_failures",
    "max_classes",
    "error_message_length",
)


def validate_config(config: ReportConfig) -> list[ValidationError]:
    """Validate a report configuration.

    Returns a list of validation errors.  Empty list means valid.
    """
    errors: list[ValidationError] = []

    for name in _LIMIT_FIELDS:
        value = getattr(config, name)
        if isinstance(value, bool) or not isinstance(value, int):
            errors.append(
                ValidationError(field=name, message=f"must be an integer, got {value!r}")
            )
        elif value < 0:
            errors.append(
                ValidationError(field=name, message=f"must not be negative, got {value}")
            )

    for name in ("namespace_filter", "suite_prefix", "default_comments_file"):
        if not isinstance(getattr(config, name), str):
            errors.append(ValidationError(field=name, message="must be a string"))

    if isinstance(config.namespace_filter, str) and not config.namespace_filter:
        errors.append(ValidationError(field="namespace_filter", message="must not be empty"))

    return errors


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


def config_from_dict(data: dict[str, Any]) -> ReportConfig:
    """Build a :class:`ReportConfig` from a mapping, ignoring unknown keys."""
    known = {f.name for f in fields(ReportConfig)}
    for key in sorted(set(data) - known):
        log.warning("Ignoring unknown config key: %s", key)
    return ReportConfig(**{k: v for k, v in data.items() if k in known})


def load_config(path: Path | None) -> ReportConfig:
    """Load and validate a report configuration.

    Args:
        path: YAML file to read, or None for the defaults.

    Returns:
        The resolved configuration.

    Raises:
        ValueError: If the file is not a YAML mapping or any value is invalid.
    """
    if path is None:
        return ReportConfig()

    text = path.read_text(encoding="utf-8")
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in {path}: {exc}") from exc

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a mapping")

    config = config_from_dict(data)
    errors = validate_config(config)
    if errors:
        details = "; ".join(f"{e.field}: {e.message}" for e in errors)
        raise ValueError(f"Invalid config {path}: {details}")

    log.debug("Loaded config from %s", path)
    return config
