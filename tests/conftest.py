"""Shared test fixtures for brapi_analyser.

Provides reusable fixtures for loading the BrAPI fixture document, a mock
BrAPI server built on :class:`httpx.MockTransport`, isolated options
environments, output state management, and a CLI runner. These fixtures
are automatically discovered by pytest and available to all test modules
without explicit imports.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import httpx
import pytest
import yaml

from brapi_analyser.models import AnalysisOptions
from brapi_analyser.output import OutputFormat, OutputManager, reset_output, set_output


FIXTURES_DIR = Path(__file__).parent / "fixtures"
BASE_URL = "http://test/brapi/v2"


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time. When Typer's CliRunner redirects those streams during
    a test and the test finishes, the cached references become stale
    ("I/O operation on closed file"). Resetting forces a fresh manager
    to be created on next use. The package logger gets the same treatment
    because the CLI attaches a handler bound to the redirected stderr.
    """
    yield
    reset_output()
    package_logger = logging.getLogger("brapi_analyser")
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
    package_logger.setLevel(logging.NOTSET)


# ---------------------------------------------------------------------------
# Document fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def brapi_spec_path() -> Path:
    return FIXTURES_DIR / "brapi_mini.yaml"


@pytest.fixture
def brapi_spec_text(brapi_spec_path: Path) -> str:
    return brapi_spec_path.read_text(encoding="utf-8")


@pytest.fixture
def brapi_spec(brapi_spec_text: str) -> dict[str, Any]:
    """The parsed mini BrAPI 3.0 document."""
    return yaml.safe_load(brapi_spec_text)


@pytest.fixture
def default_options() -> AnalysisOptions:
    return AnalysisOptions.model_validate({})


# ---------------------------------------------------------------------------
# Mock BrAPI server
# ---------------------------------------------------------------------------


def _list(*items: Any) -> dict[str, Any]:
    return {"metadata": {"pagination": {"currentPage": 0, "pageSize": 10}}, "result": {"data": list(items)}}


def _single(item: Any) -> dict[str, Any]:
    return {"metadata": {}, "result": item}


_STUDY = {"studyDbId": "s1", "studyName": "Yield trial", "commonCropName": None}
_GERMPLASM = {"germplasmDbId": "g1", "germplasmName": "B73"}

_ROUTES: dict[tuple[str, str], tuple[int, Any]] = {
    ("GET", "/brapi/v2/commoncropnames"): (200, _list("Maize", "Wheat")),
    ("GET", "/brapi/v2/studies"): (200, _list(_STUDY)),
    ("GET", "/brapi/v2/studies/s1"): (200, _single(_STUDY)),
    ("POST", "/brapi/v2/search/studies"): (202, {"metadata": {}, "result": {"searchResultsDbId": "abc"}}),
    ("GET", "/brapi/v2/search/studies/abc"): (200, _list(_STUDY)),
    ("GET", "/brapi/v2/germplasm"): (200, _list(_GERMPLASM)),
    ("GET", "/brapi/v2/germplasm/g1"): (200, _single(_GERMPLASM)),
    ("GET", "/brapi/v2/germplasm/g1/pedigree"): (200, _single({"germplasmDbId": "g1", "pedigreeString": None})),
    ("GET", "/brapi/v2/observations/table"): (200, {"result": {}}),
}


class MockBrAPIServer:
    """Route table behind an :class:`httpx.MockTransport` that records every request."""

    def __init__(self) -> None:
        self.routes = dict(_ROUTES)
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"metadata": {}, "result": None})
        status, body = route
        return httpx.Response(status, json=body)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def calls(self, method: str, path: str) -> int:
        return sum(1 for r in self.requests if r.method == method and r.url.path == path)


@pytest.fixture
def brapi_server() -> MockBrAPIServer:
    return MockBrAPIServer()


@pytest.fixture
def base_url() -> str:
    return BASE_URL


# ---------------------------------------------------------------------------
# Options isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_options(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate options discovery to a temporary directory.

    Clears ``BRAPI_ANALYSER_OPTIONS`` and changes the working directory to
    tmp_path so that a project-local ``brapi-analyser.yaml`` never leaks
    into tests.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.delenv("BRAPI_ANALYSER_OPTIONS", raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a PLAIN-format, quiet OutputManager as the global output."""
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True)
    set_output(output)
    yield output
    reset_output()


@pytest.fixture
def json_output() -> OutputManager:
    """Install a JSON-format OutputManager as the global output."""
    output = OutputManager(format=OutputFormat.JSON)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()
