"""Tests for loading and version-checking OpenAPI documents."""

from __future__ import annotations

import io
import json
from pathlib import Path

import httpx
import pytest

from brapi_analyser.exceptions import SpecParseError
from brapi_analyser.parser.loader import load_spec, parse_spec, validate_openapi_version


MINIMAL = {"openapi": "3.0.0", "info": {"title": "t", "version": "1"}, "paths": {}}


# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------


class TestLoadFromFile:
    def test_yaml_fixture(self, brapi_spec_path: Path) -> None:
        spec = load_spec(str(brapi_spec_path))
        assert spec["openapi"] == "3.0.0"
        assert "/studies" in spec["paths"]

    def test_json_file(self, tmp_path: Path) -> None:
        path = tmp_path / "spec.json"
        path.write_text(json.dumps(MINIMAL), encoding="utf-8")
        assert load_spec(str(path)) == MINIMAL

    def test_unknown_extension_detects_content(self, tmp_path: Path) -> None:
        path = tmp_path / "spec.txt"
        path.write_text("openapi: 3.1.0\npaths: {}\n", encoding="utf-8")
        assert load_spec(str(path))["openapi"] == "3.1.0"

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(SpecParseError, match="not found"):
            load_spec(str(tmp_path / "missing.yaml"))

    def test_empty_file(self, tmp_path: Path) -> None:
        path = tmp_path / "empty.yaml"
        path.write_text("   \n", encoding="utf-8")
        with pytest.raises(SpecParseError, match="empty"):
            load_spec(str(path))

    def test_invalid_json_with_json_extension(self, tmp_path: Path) -> None:
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(SpecParseError, match="Invalid JSON"):
            load_spec(str(path))


# ---------------------------------------------------------------------------
# Stdin and URLs
# ---------------------------------------------------------------------------


class TestLoadFromStdinAndUrl:
    def test_stdin(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("sys.stdin", io.StringIO(json.dumps(MINIMAL)))
        assert load_spec("-") == MINIMAL

    def test_stdin_empty(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("sys.stdin", io.StringIO(""))
        with pytest.raises(SpecParseError, match="No input"):
            load_spec("-")

    def test_url(self, monkeypatch: pytest.MonkeyPatch, brapi_spec_text: str) -> None:
        def fake_get(url: str, **kwargs: object) -> httpx.Response:
            return httpx.Response(
                200,
                text=brapi_spec_text,
                headers={"content-type": "application/yaml"},
                request=httpx.Request("GET", url),
            )

        monkeypatch.setattr("httpx.get", fake_get)
        spec = load_spec("https://brapi.org/specification/brapi.yaml")
        assert spec["info"]["title"] == "BrAPI mini"

    def test_url_http_error(self, monkeypatch: pytest.MonkeyPatch) -> None:
        def fake_get(url: str, **kwargs: object) -> httpx.Response:
            return httpx.Response(404, request=httpx.Request("GET", url))

        monkeypatch.setattr("httpx.get", fake_get)
        with pytest.raises(SpecParseError, match="HTTP 404"):
            load_spec("https://brapi.org/missing.yaml")

    def test_url_connection_error(self, monkeypatch: pytest.MonkeyPatch) -> None:
        def fake_get(url: str, **kwargs: object) -> httpx.Response:
            raise httpx.ConnectError("refused", request=httpx.Request("GET", url))

        monkeypatch.setattr("httpx.get", fake_get)
        with pytest.raises(SpecParseError, match="Failed to fetch"):
            load_spec("https://brapi.org/spec.yaml")


# ---------------------------------------------------------------------------
# In-memory text
# ---------------------------------------------------------------------------


class TestParseSpec:
    def test_json_text(self) -> None:
        assert parse_spec(json.dumps(MINIMAL)) == MINIMAL

    def test_yaml_text(self, brapi_spec_text: str) -> None:
        assert "/germplasm" in parse_spec(brapi_spec_text)["paths"]

    def test_blank_text(self) -> None:
        with pytest.raises(SpecParseError, match="empty"):
            parse_spec("  ")

    def test_scalar_document(self) -> None:
        with pytest.raises(SpecParseError, match="must be a JSON/YAML object"):
            parse_spec("42")

    def test_unparseable(self) -> None:
        with pytest.raises(SpecParseError, match="Failed to parse"):
            parse_spec("key: [unclosed")


# ---------------------------------------------------------------------------
# Version check
# ---------------------------------------------------------------------------


class TestValidateOpenAPIVersion:
    @pytest.mark.parametrize("version", ["3.0.0", "3.0.3", "3.1.0"])
    def test_supported(self, version: str) -> None:
        assert validate_openapi_version({"openapi": version}) == version

    def test_swagger_rejected(self) -> None:
        with pytest.raises(SpecParseError, match="Swagger 2.0"):
            validate_openapi_version({"swagger": "2.0"})

    def test_missing_field(self) -> None:
        with pytest.raises(SpecParseError, match="Missing 'openapi'"):
            validate_openapi_version({"paths": {}})

    def test_unsupported_major(self) -> None:
        with pytest.raises(SpecParseError, match="Unsupported"):
            validate_openapi_version({"openapi": "4.0.0"})

    def test_exit_code(self) -> None:
        with pytest.raises(SpecParseError) as exc_info:
            validate_openapi_version({})
        assert exc_info.value.exit_code == 7
