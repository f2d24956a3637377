"""Command-line interface for adoreport.

Provides the ``adoreport`` command group with one subcommand per report:
``builds``, ``test-results``, ``failed-tests``, ``flakiness``,
``cross-branch`` and ``pr-comments``. Each subcommand is also installed
as a standalone script so it can sit on its own in a shell pipeline.
"""

from __future__ import annotations

import json
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import IO, Any, Callable, TypeVar

import click

from adoreport import __version__
from adoreport.config import ENV_VAR, ReportConfig, load_config
from adoreport.logging import setup_logging

F = TypeVar("F", bound=Callable[..., Any])

# ---------------------------------------------------------------------------
# Shared options
# ---------------------------------------------------------------------------

_input_option = click.option(
    "--input",
    "-i",
    "input_file",
    type=click.File("r", encoding="utf-8"),
    default="-",
    show_default=True,
    help="JSON file to read ('-' for stdin).",
)
_config_option = click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    envvar=ENV_VAR,
    default=None,
    help=f"YAML report settings (also read from ${ENV_VAR}).",
)
_verbose_option = click.option("-v", "--verbose", is_flag=True, help="Show debug logging.")
_quiet_option = click.option("-q", "--quiet", is_flag=True, help="Only log errors.")
_log_file_option = click.option(
    "--log-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Also write a DEBUG log to this file.",
)


def _common_options(func: F) -> F:
    """Attach the config and logging options shared by every report."""
    for option in (_log_file_option, _quiet_option, _verbose_option, _config_option):
        func = option(func)
    return func


@contextmanager
def _report_errors(action: str) -> Iterator[None]:
    """Turn bad input into a one-line error on stderr and exit status 1."""
    try:
        yield
    except (ValueError, TypeError) as exc:
        click.echo(f"Error {action}: {exc}", err=True)
        raise SystemExit(1) from exc


def _prepare(
    config_path: Path | None,
    verbose: bool,
    quiet: bool,
    log_file: Path | None,
) -> ReportConfig:
    """Set up logging and load the report configuration."""
    setup_logging(verbose=verbose, quiet=quiet, log_file=log_file)
    with _report_errors("loading config"):
        return load_config(config_path)


@contextmanager
def _usage_exits_one() -> Iterator[None]:
    """Make click's own usage errors exit with status 1 like ours do."""
    try:
        yield
    except click.UsageError as exc:
        exc.exit_code = 1
        raise


class ReportCommand(click.Command):
    """A report command; bad arguments or options exit with status 1."""

    def make_context(
        self,
        info_name: str | None,
        args: list[str],
        parent: click.Context | None = None,
        **extra: Any,
    ) -> click.Context:
        with _usage_exits_one():
            return super().make_context(info_name, args, parent=parent, **extra)


class ReportGroup(click.Group):
    """The ``adoreport`` group; usage errors exit with status 1."""

    command_class = ReportCommand

    def make_context(
        self,
        info_name: str | None,
        args: list[str],
        parent: click.Context | None = None,
        **extra: Any,
    ) -> click.Context:
        with _usage_exits_one():
            return super().make_context(info_name, args, parent=parent, **extra)

    def resolve_command(
        self, ctx: click.Context, args: list[str]
    ) -> tuple[str | None, click.Command | None, list[str]]:
        with _usage_exits_one():
            return super().resolve_command(ctx, args)


def _usage(ctx: click.Context, arguments: str, *details: str) -> None:
    """Print a usage message on stderr and exit with status 1."""
    click.echo(f"Usage: {ctx.command_path} {arguments}", err=True)
    for line in details:
        click.echo(line, err=True)
    sys.exit(1)


# ---------------------------------------------------------------------------
# Command group
# ---------------------------------------------------------------------------


@click.group(cls=ReportGroup)
@click.version_option(version=__version__)
def main() -> None:
    """adoreport — Readable reports from Azure DevOps build and test JSON."""


# ---------------------------------------------------------------------------
# builds
# ---------------------------------------------------------------------------


@main.command()
@_input_option
@click.option("--utc", is_flag=True, help="Show times in UTC instead of local time.")
@_common_options
def builds(
    input_file: IO[str],
    utc: bool,
    config_path: Path | None,
    verbose: bool,
    quiet: bool,
    log_file: Path | None,
) -> None:
    """Show the status of a list of pipeline builds.

    \b
    Examples:
        az pipelines build list --top 5 -o json | adoreport builds
    """
    from adoreport.display import format_builds
    from adoreport.inputs import read_json, unwrap_envelope
    from adoreport.models import Build

    _prepare(config_path, verbose, quiet, log_file)

    with _report_errors("parsing build data"):
        records = [Build.from_dict(b) for b in unwrap_envelope(read_json(input_file))]
        text = format_builds(
            records,
            now=datetime.now(timezone.utc),
            tz=timezone.utc if utc else None,
        )
    click.echo(text)


# ---------------------------------------------------------------------------
# test-results
# ---------------------------------------------------------------------------


@main.command("test-results")
@_input_option
@_common_options
def test_results(
    input_file: IO[str],
    config_path: Path | None,
    verbose: bool,
    quiet: bool,
    log_file: Path | None,
) -> None:
    """Summarize test runs of one build, suite by suite.

    \b
    Examples:
        az rest --url ".../_apis/test/runs?buildUri=..." | adoreport test-results
    """
    from adoreport.display import format_test_results
    from adoreport.inputs import parse_test_runs, read_json

    config = _prepare(config_path, verbose, quiet, log_file)

    with _report_errors("parsing test results"):
        runs = parse_test_runs(read_json(input_file))
        text = format_test_results(runs, suite_prefix=config.suite_prefix)
    click.echo(text)


# ---------------------------------------------------------------------------
# failed-tests
# ---------------------------------------------------------------------------


@main.command("failed-tests")
@_input_option
@_common_options
def failed_tests(
    input_file: IO[str],
    config_path: Path | None,
    verbose: bool,
    quiet: bool,
    log_file: Path | None,
) -> None:
    """Group failed tests by error type and show where to look.

    \b
    Examples:
        az rest --url ".../_apis/test/runs/<RUN_ID>/results?outcomes=Failed" \\
            | adoreport failed-tests
    """
    from adoreport.display import format_failed_tests
    from adoreport.failures import analyze_failed_tests
    from adoreport.inputs import read_json, unwrap_envelope
    from adoreport.models import FailedTestResult

    config = _prepare(config_path, verbose, quiet, log_file)

    with _report_errors("parsing failed test data"):
        results = [
            FailedTestResult.from_dict(r) for r in unwrap_envelope(read_json(input_file))
        ]
        analysis = analyze_failed_tests(
            results,
            namespace=config.namespace_filter,
            message_length=config.error_message_length,
        )
        text = format_failed_tests(analysis, config)
    click.echo(text)


# ---------------------------------------------------------------------------
# flakiness
# ---------------------------------------------------------------------------


@main.command()
@click.argument("build_ids", nargs=-1)
@_input_option
@_common_options
@click.pass_context
def flakiness(
    ctx: click.Context,
    build_ids: tuple[str, ...],
    input_file: IO[str],
    config_path: Path | None,
    verbose: bool,
    quiet: bool,
    log_file: Path | None,
) -> None:
    """Find flaky suites across several builds of one branch.

    Reads a JSON array with one test-run response per build, in the same
    order as BUILD_IDS.

    \b
    Examples:
        adoreport flakiness 101 102 103 < runs.json
    """
    from adoreport.display import format_flakiness
    from adoreport.inputs import parse_build_test_runs, read_json
    from adoreport.suites import analyze_flakiness

    if len(build_ids) < 2:
        _usage(
            ctx,
            "<build1> <build2> <build3> ...",
            "Please provide at least 2 build IDs to compare",
        )

    config = _prepare(config_path, verbose, quiet, log_file)

    with _report_errors("analyzing test flakiness"):
        build_runs = parse_build_test_runs(read_json(input_file))
        report = analyze_flakiness(build_runs, list(build_ids))
        text = format_flakiness(report, suite_prefix=config.suite_prefix)
    click.echo(text)


# ---------------------------------------------------------------------------
# cross-branch
# ---------------------------------------------------------------------------


@main.command("cross-branch")
@_input_option
@_common_options
def cross_branch(
    input_file: IO[str],
    config_path: Path | None,
    verbose: bool,
    quiet: bool,
    log_file: Path | None,
) -> None:
    """Compare suite flakiness between a feature branch and master.

    Reads a JSON object mapping each branch name to an array of
    test-run responses, one per build.

    \b
    Examples:
        adoreport cross-branch < branches.json
    """
    from adoreport.display import format_cross_branch
    from adoreport.inputs import parse_branch_test_runs, read_json
    from adoreport.suites import analyze_cross_branch

    config = _prepare(config_path, verbose, quiet, log_file)

    with _report_errors("analyzing test flakiness"):
        branch_runs = parse_branch_test_runs(read_json(input_file))
        report = analyze_cross_branch(branch_runs)
        text = format_cross_branch(report, suite_prefix=config.suite_prefix)
    click.echo(text)


# ---------------------------------------------------------------------------
# pr-comments
# ---------------------------------------------------------------------------


@main.command("pr-comments")
@click.argument("filename", required=False)
@_common_options
@click.pass_context
def pr_comments(
    ctx: click.Context,
    filename: str | None,
    config_path: Path | None,
    verbose: bool,
    quiet: bool,
    log_file: Path | None,
) -> None:
    """Show PR comment threads saved to FILENAME.

    FILENAME defaults to ``pr_comments.json``.

    \b
    Examples:
        az repos pr thread list --id 42 > pr_comments.json && adoreport pr-comments
    """
    from adoreport.display import format_pr_comments
    from adoreport.inputs import unwrap_envelope
    from adoreport.models import CommentThread

    config = _prepare(config_path, verbose, quiet, log_file)
    path = Path(filename or config.default_comments_file)

    if not path.is_file():
        click.echo(f"Error: File '{path}' not found", err=True)
        _usage(ctx, "[filename]")

    with _report_errors("parsing JSON file"):
        data = json.loads(path.read_text(encoding="utf-8"))

    with _report_errors("reading comment threads"):
        threads = [CommentThread.from_dict(t) for t in unwrap_envelope(data)]
        text = format_pr_comments(threads)
    click.echo(text)
