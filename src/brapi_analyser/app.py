"""Typer application and CLI entry point for brapi-analyser.

Two commands are registered on the root application:

* ``analyse`` -- run the catalog against a live server and print the
  report table.
* ``validate`` -- dry run: build the catalog and list what would run,
  without any HTTP traffic.

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``. It installs the Ctrl-C handler, invokes the Typer app,
and maps :class:`~brapi_analyser.exceptions.AnalyserError` to its exit code.

See Also:
    :mod:`brapi_analyser.config`: Options precedence and credential sources.
    :mod:`brapi_analyser.output`: Output formatting initialised in :func:`main_callback`.
"""

from __future__ import annotations

import logging
import signal
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Optional

import typer
from rich.logging import RichHandler

from brapi_analyser import __version__
from brapi_analyser.exit_codes import (
    EXIT_CANCELLED,
    EXIT_GENERIC_FAILURE,
    EXIT_VALIDATION_FAILURE,
)

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="brapi-analyser",
    help="Check a live BrAPI server against its OpenAPI 3.0/3.1 contract.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"brapi-analyser {__version__}")
        raise typer.Exit()


def _configure_logging(verbose: bool) -> None:
    """Send ``brapi_analyser`` log records to stderr through Rich."""
    from brapi_analyser.output import get_output

    package_logger = logging.getLogger("brapi_analyser")
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)

    handler = RichHandler(
        console=get_output().stderr_console,
        show_time=False,
        show_path=verbose,
        markup=False,
    )
    package_logger.addHandler(handler)
    package_logger.setLevel(logging.DEBUG if verbose else logging.WARNING)


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    json_output: bool = typer.Option(
        False, "--json", help="JSON output format."
    ),
    plain_output: bool = typer.Option(
        False, "--plain", help="Plain text output."
    ),
    no_color: bool = typer.Option(
        False, "--no-color", help="Disable color output."
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress non-essential output."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug output."
    ),
) -> None:
    """Root callback executed before every sub-command.

    Installs the global :class:`~brapi_analyser.output.OutputManager` and
    the log handler from the output flags.
    """
    from brapi_analyser.output import OutputFormat, OutputManager, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    set_output(OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose))
    _configure_logging(verbose)

    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose


# ------------------------------------------------------------------ #
# analyse
# ------------------------------------------------------------------ #


@app.command("analyse")
def analyse_command(
    spec: str = typer.Argument(..., help="OpenAPI document: file path, URL, or '-' for stdin."),
    base_url: str = typer.Argument(..., help="Base URL of the BrAPI server, e.g. https://host/brapi/v2."),
    entities: Optional[list[str]] = typer.Option(
        None, "--entity", "-e", help="Entity to analyse (repeatable), or a file with one entity per line."
    ),
    options_file: Optional[str] = typer.Option(
        None, "--options", "-o", help="Analysis options file (YAML or JSON)."
    ),
    report_file: Optional[str] = typer.Option(
        None, "--report", "-r", help="Write the report table to this file (.csv, .tsv or .json)."
    ),
    username: Optional[str] = typer.Option(None, "--username", "-u", help="Basic auth username."),
    password: Optional[str] = typer.Option(
        None, "--password", "-p", help="Basic auth password, or env:NAME / file:PATH / prompt."
    ),
    token: Optional[str] = typer.Option(
        None, "--token", "-t", help="Bearer token, or env:NAME / file:PATH / prompt."
    ),
    summary: bool = typer.Option(False, "--summary", "-x", help="Also print a per-entity summary."),
    timeout: float = typer.Option(30.0, "--timeout", help="Per-request timeout in seconds."),
    deadline: Optional[float] = typer.Option(
        None, "--deadline", help="Stop the run after this many seconds."
    ),
    fail_on_error: bool = typer.Option(
        False, "--fail-on-error", help="Exit with code 8 when any ERROR-level finding is reported."
    ),
) -> None:
    """Analyse a live server against its OpenAPI contract.

    Special endpoints run first, then every entity (or the ones given with
    ``--entity``) in name order.

    Example::

        brapi-analyser analyse brapi.yaml https://test-server.brapi.org/brapi/v2 -e Study -x
    """
    from brapi_analyser.analyser import AnalyserFactory, CancellationToken
    from brapi_analyser.auth import create_authorization_provider
    from brapi_analyser.config import resolve_credential, resolve_options
    from brapi_analyser.exceptions import AnalyserError
    from brapi_analyser.output import OutputFormat, get_output
    from brapi_analyser.parser import load_spec
    from brapi_analyser.report import (
        REPORT_HEADERS,
        SUMMARY_HEADERS,
        has_errors,
        report_rows,
        summarise,
        summary_records,
        write_report,
    )

    output = get_output()
    cancellation = CancellationToken(timeout=deadline)
    try:
        options = resolve_options(options_file)
        if password is not None:
            password = resolve_credential(password)
        provider = create_authorization_provider(username, password, token)
        document = load_spec(spec)
        output.debug(f"Loaded OpenAPI {document.get('openapi')} document from {spec}")
        names = _read_entity_names(entities or [])

        factory = AnalyserFactory(
            base_url,
            authorization_provider=provider,
            options=options,
            timeout=timeout,
            cancellation=cancellation,
        )
        with factory.analyser(document) as analyser, _cancel_on_interrupt(cancellation):
            _report_catalog(analyser.catalog)
            output.info(f"Analysing {base_url}")
            reports = analyser.analyse_entities(names) if names else analyser.analyse_all()
            cancelled = analyser.cancelled

        if report_file:
            written = write_report(report_file, reports)
            output.success(f"Report written to {written}")
    except AnalyserError as exc:
        output.error(exc.message)
        raise typer.Exit(code=exc.exit_code) from None

    rows = report_rows(reports)
    if output.format == OutputFormat.JSON:
        payload: dict[str, Any] = {"reports": [dict(zip(REPORT_HEADERS, row)) for row in rows]}
        if summary:
            payload["summary"] = summary_records(reports)
        output.print_json(payload)
    else:
        output.print_table(REPORT_HEADERS, rows, title=f"Analysis of {base_url}", level_column="Message Level")
        if summary:
            output.print_table(SUMMARY_HEADERS, [s.row() for s in summarise(reports)], title="Summary")

    if cancelled:
        output.warning(f"Analysis cancelled after {len(reports)} requests")
        raise typer.Exit(code=EXIT_CANCELLED)
    if fail_on_error and has_errors(reports):
        output.error("ERROR-level findings reported")
        raise typer.Exit(code=EXIT_VALIDATION_FAILURE)


# ------------------------------------------------------------------ #
# validate
# ------------------------------------------------------------------ #


@app.command("validate")
def validate_command(
    spec: str = typer.Argument(..., help="OpenAPI document: file path, URL, or '-' for stdin."),
    base_url: str = typer.Argument(..., help="Base URL of the BrAPI server."),
    options_file: Optional[str] = typer.Option(
        None, "--options", "-o", help="Analysis options file (YAML or JSON)."
    ),
) -> None:
    """Build the request catalog and list it without sending anything.

    Example::

        brapi-analyser --plain validate brapi.yaml https://test-server.brapi.org/brapi/v2
    """
    from brapi_analyser.analyser import AnalyserFactory
    from brapi_analyser.config import resolve_options
    from brapi_analyser.exceptions import AnalyserError
    from brapi_analyser.output import OutputFormat, get_output
    from brapi_analyser.parser import load_spec

    output = get_output()
    try:
        options = resolve_options(options_file)
        catalog = AnalyserFactory(base_url, options=options).validate(load_spec(spec))
    except AnalyserError as exc:
        output.error(exc.message)
        raise typer.Exit(code=exc.exit_code) from None

    request_headers = ["Entity", "Request", "Method", "Path", "Index", "Prerequisites"]
    request_rows = [
        [
            request.entity_name or "",
            request.name,
            request.method.value.upper(),
            request.path_template,
            str(request.index),
            ", ".join(request.prerequisites),
        ]
        for request in catalog.special_requests
        + [r for group in catalog.requests_by_entity().values() for r in group]
    ]
    endpoint_headers = ["Category", "Method", "Path", "Entity"]
    endpoint_rows = [
        [endpoint.category, endpoint.method.value.upper(), endpoint.path, endpoint.entity_name or ""]
        for endpoint in catalog.skipped_endpoints
        + catalog.deprecated_endpoints
        + catalog.unmatched_endpoints
    ]

    if output.format == OutputFormat.JSON:
        output.print_json(
            {
                "requests": [dict(zip(request_headers, row)) for row in request_rows],
                "endpoints": [dict(zip(endpoint_headers, row)) for row in endpoint_rows],
                "errors": [str(error) for error in catalog.errors],
            }
        )
        return

    output.print_table(request_headers, request_rows, title=f"Requests ({len(request_rows)})")
    if endpoint_rows:
        output.print_table(endpoint_headers, endpoint_rows, title=f"Not analysed ({len(endpoint_rows)})")
    for error in catalog.errors:
        output.warning(str(error))


# ------------------------------------------------------------------ #
# Helpers
# ------------------------------------------------------------------ #


def _read_entity_names(values: list[str]) -> list[str]:
    """Expand ``--entity`` values; a value naming a file contributes one entity per line."""
    names: list[str] = []
    for value in values:
        path = Path(value)
        if path.is_file():
            for line in path.read_text(encoding="utf-8").splitlines():
                line = line.strip()
                if line and not line.startswith("#"):
                    names.append(line)
        else:
            names.extend(part.strip() for part in value.split(",") if part.strip())
    return names


def _report_catalog(catalog: Any) -> None:
    from brapi_analyser.output import get_output

    output = get_output()
    output.info(
        f"{len(catalog.requests)} requests for {len(catalog.entity_names)} entities, "
        f"{len(catalog.skipped_endpoints)} skipped, {len(catalog.unmatched_endpoints)} unmatched, "
        f"{len(catalog.deprecated_endpoints)} deprecated"
    )
    for error in catalog.errors:
        output.warning(str(error))


@contextmanager
def _cancel_on_interrupt(cancellation: Any) -> Iterator[None]:
    """Turn Ctrl-C into a cancellation of the current run for the duration of the block."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelling after the current request...\n")
        cancellation.cancel()

    try:
        previous = signal.signal(signal.SIGINT, _handler)
    except ValueError:
        # Not on the main thread; leave the handler alone.
        yield
        return
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C outside a run exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(EXIT_CANCELLED)

    signal.signal(signal.SIGINT, _handler)


def main() -> None:
    """CLI entry point invoked by the ``brapi-analyser`` console script.

    Unhandled :class:`~brapi_analyser.exceptions.AnalyserError` instances
    cause a clean exit with the error's ``exit_code``. Anything else is
    logged and exits with a generic failure.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
    """
    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(EXIT_CANCELLED)
    except Exception as exc:
        from brapi_analyser.exceptions import AnalyserError
        from brapi_analyser.output import error, suggest

        if isinstance(exc, AnalyserError):
            error(exc.message)
            sys.exit(exc.exit_code)
        logger.debug("Unexpected error", exc_info=True)
        error(f"Unexpected error: {type(exc).__name__}: {exc}")
        suggest("Run again with --verbose for details")
        sys.exit(EXIT_GENERIC_FAILURE)
