"""CLI tests for the analyse and validate commands."""

from __future__ import annotations

import csv
import json
from pathlib import Path
from typing import Any

import httpx
import pytest

from brapi_analyser import __version__
from brapi_analyser.analyser import AnalyserFactory
from brapi_analyser.app import _read_entity_names, app


@pytest.fixture
def mock_factory(monkeypatch: pytest.MonkeyPatch, brapi_server) -> list[AnalyserFactory]:
    """Route every factory the CLI builds through the mock BrAPI server."""
    created: list[AnalyserFactory] = []

    class _MockFactory(AnalyserFactory):
        def __init__(self, *args: Any, **kwargs: Any) -> None:
            kwargs.setdefault("transport", brapi_server.transport)
            super().__init__(*args, **kwargs)
            created.append(self)

    monkeypatch.setattr("brapi_analyser.analyser.AnalyserFactory", _MockFactory)
    return created


def _analyse(cli_runner, spec_path: Path, base_url: str, *extra: str, flags: tuple[str, ...] = ("--json", "-q")):
    return cli_runner.invoke(app, [*flags, "analyse", str(spec_path), base_url, *extra])


def _paths(payload: dict[str, Any]) -> list[str]:
    return list(dict.fromkeys(row["Path"] for row in payload["reports"]))


# ---------------------------------------------------------------------------
# Root options
# ---------------------------------------------------------------------------


class TestRoot:
    def test_version(self, cli_runner) -> None:
        result = cli_runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert f"brapi-analyser {__version__}" in result.output

    def test_no_args_shows_help(self, cli_runner) -> None:
        result = cli_runner.invoke(app, [])
        assert "analyse" in result.output
        assert "validate" in result.output


# ---------------------------------------------------------------------------
# validate
# ---------------------------------------------------------------------------


class TestValidate:
    def test_json(self, cli_runner, isolated_options, brapi_spec_path, base_url) -> None:
        result = cli_runner.invoke(app, ["--json", "validate", str(brapi_spec_path), base_url])
        assert result.exit_code == 0, result.output

        payload = json.loads(result.stdout)
        assert len(payload["requests"]) == 9
        assert payload["requests"][0]["Request"] == "Get /commoncropnames"
        categories = sorted(e["Category"] for e in payload["endpoints"])
        assert categories == ["Deprecated", "Skipped", "Skipped", "Skipped", "Unmatched"]
        assert payload["errors"] == []

    def test_plain(self, cli_runner, isolated_options, brapi_spec_path, base_url) -> None:
        result = cli_runner.invoke(app, ["--plain", "validate", str(brapi_spec_path), base_url])
        assert result.exit_code == 0, result.output

        lines = result.stdout.splitlines()
        assert lines[0] == "Entity\tRequest\tMethod\tPath\tIndex\tPrerequisites"
        (pedigree,) = [line for line in lines if line.startswith("PedigreeNode\t")]
        assert pedigree.endswith("\t/germplasm")

    def test_options_file(self, cli_runner, isolated_options, brapi_spec_path, base_url) -> None:
        options_path = isolated_options / "options.yaml"
        options_path.write_text("analyse_deprecated: true\n", encoding="utf-8")
        result = cli_runner.invoke(
            app, ["--json", "validate", str(brapi_spec_path), base_url, "--options", str(options_path)]
        )
        assert result.exit_code == 0, result.output
        paths = [r["Path"] for r in json.loads(result.stdout)["requests"]]
        assert "/programs" in paths

    def test_swagger_document(self, cli_runner, isolated_options, base_url) -> None:
        spec_path = isolated_options / "swagger.json"
        spec_path.write_text(json.dumps({"swagger": "2.0", "paths": {}}), encoding="utf-8")
        result = cli_runner.invoke(app, ["validate", str(spec_path), base_url])
        assert result.exit_code == 7

    def test_missing_document(self, cli_runner, isolated_options, base_url) -> None:
        result = cli_runner.invoke(app, ["validate", str(isolated_options / "nope.yaml"), base_url])
        assert result.exit_code != 0


# ---------------------------------------------------------------------------
# analyse
# ---------------------------------------------------------------------------


class TestAnalyse:
    def test_all_entities(self, cli_runner, isolated_options, mock_factory, brapi_spec_path, base_url) -> None:
        result = _analyse(cli_runner, brapi_spec_path, base_url)
        assert result.exit_code == 0, result.output

        paths = _paths(json.loads(result.stdout))
        assert paths[0] == "http://test/brapi/v2/commoncropnames"
        assert "http://test/brapi/v2/search/studies/abc" in paths
        assert len(paths) == 9

    def test_summary(self, cli_runner, isolated_options, mock_factory, brapi_spec_path, base_url) -> None:
        result = _analyse(cli_runner, brapi_spec_path, base_url, "--summary")
        payload = json.loads(result.stdout)
        assert [s["entity_name"] for s in payload["summary"]] == [
            "(special)",
            "Germplasm",
            "Observation",
            "PedigreeNode",
            "Study",
        ]
        assert payload["summary"][-1]["requests"] == 4

    def test_entity_filter(self, cli_runner, isolated_options, mock_factory, brapi_spec_path, base_url) -> None:
        result = _analyse(cli_runner, brapi_spec_path, base_url, "-e", "germplasm")
        assert _paths(json.loads(result.stdout)) == [
            "http://test/brapi/v2/commoncropnames",
            "http://test/brapi/v2/germplasm",
            "http://test/brapi/v2/germplasm/g1",
        ]

    def test_entity_file(self, cli_runner, isolated_options, mock_factory, brapi_spec_path, base_url) -> None:
        entity_file = isolated_options / "entities.txt"
        entity_file.write_text("# wanted\nObservation\n\n", encoding="utf-8")
        result = _analyse(cli_runner, brapi_spec_path, base_url, "-e", str(entity_file))
        assert _paths(json.loads(result.stdout)) == [
            "http://test/brapi/v2/commoncropnames",
            "http://test/brapi/v2/observations/table",
        ]

    def test_report_file(self, cli_runner, isolated_options, mock_factory, brapi_spec_path, base_url) -> None:
        report_path = isolated_options / "report.csv"
        result = _analyse(cli_runner, brapi_spec_path, base_url, "--report", str(report_path))
        assert result.exit_code == 0, result.output
        with report_path.open(encoding="utf-8", newline="") as handle:
            rows = list(csv.reader(handle))
        assert rows[0][:3] == ["Path", "Method", "Status Code"]
        assert rows[1][:3] == ["http://test/brapi/v2/commoncropnames", "GET", "200"]

    def test_bearer_token_sent(
        self, cli_runner, isolated_options, mock_factory, brapi_server, brapi_spec_path, base_url
    ) -> None:
        result = _analyse(cli_runner, brapi_spec_path, base_url, "--token", "tok")
        assert result.exit_code == 0, result.output
        assert all(r.headers["authorization"] == "Bearer tok" for r in brapi_server.requests)

    def test_conflicting_credentials(
        self, cli_runner, isolated_options, mock_factory, brapi_server, brapi_spec_path, base_url
    ) -> None:
        result = _analyse(cli_runner, brapi_spec_path, base_url, "--token", "tok", "-u", "user", "-p", "pw")
        assert result.exit_code == 2
        assert brapi_server.requests == []


class TestAnalyseExitCodes:
    def test_fail_on_error(
        self, cli_runner, isolated_options, mock_factory, brapi_server, brapi_spec_path, base_url
    ) -> None:
        brapi_server.routes[("GET", "/brapi/v2/studies")] = (
            200,
            {"metadata": {}, "result": {"data": [{"studyName": "missing id"}]}},
        )
        assert _analyse(cli_runner, brapi_spec_path, base_url).exit_code == 0

        result = _analyse(cli_runner, brapi_spec_path, base_url, "--fail-on-error")
        assert result.exit_code == 8
        assert "ERROR-level findings reported" in result.output

    def test_transport_errors_fail_on_error(
        self, cli_runner, isolated_options, monkeypatch, brapi_spec_path, base_url
    ) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        class _Unreachable(AnalyserFactory):
            def __init__(self, *args: Any, **kwargs: Any) -> None:
                kwargs["transport"] = httpx.MockTransport(handler)
                super().__init__(*args, **kwargs)

        monkeypatch.setattr("brapi_analyser.analyser.AnalyserFactory", _Unreachable)
        result = _analyse(cli_runner, brapi_spec_path, base_url, "--fail-on-error", flags=("--plain", "-q"))
        assert result.exit_code == 8
        assert "Transport" in result.output

    def test_deadline_cancels(
        self, cli_runner, isolated_options, mock_factory, brapi_server, brapi_spec_path, base_url
    ) -> None:
        result = _analyse(cli_runner, brapi_spec_path, base_url, "--deadline", "0", flags=("--plain", "-q"))
        assert result.exit_code == 130
        assert "Analysis cancelled after 0 requests" in result.output
        assert brapi_server.requests == []


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class TestReadEntityNames:
    def test_comma_separated(self) -> None:
        assert _read_entity_names(["Study, Trial", "Germplasm"]) == ["Study", "Trial", "Germplasm"]

    def test_file(self, tmp_path) -> None:
        path = tmp_path / "entities"
        path.write_text("Study\n# comment\n\n  Trial  \n", encoding="utf-8")
        assert _read_entity_names([str(path)]) == ["Study", "Trial"]
