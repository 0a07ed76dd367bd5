"""Load OpenAPI documents from a URL, local file, stdin, or raw text.

BrAPI publishes its OpenAPI contract as both JSON and YAML, and test servers
usually serve it from a URL. Each source is read into text plus a format
hint, then decoded by the same JSON-then-YAML parser.

The public functions are:

* :func:`load_spec` -- Load and parse a document from any supported source.
* :func:`parse_spec` -- Parse a document that is already in memory as text.
* :func:`validate_openapi_version` -- Check and return the ``openapi``
  version string, rejecting Swagger 2.x and unsupported versions.

:func:`brapi_analyser.config.load_options` parses options files with
:func:`parse_spec` too.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any

import httpx
import yaml

from brapi_analyser.exceptions import SpecParseError

_SUFFIX_HINTS = {".json": "json", ".yaml": "yaml", ".yml": "yaml"}
_FETCH_TIMEOUT = 30.0


def load_spec(source: str) -> dict[str, Any]:
    """Load an OpenAPI document from URL, file path, or stdin ('-').

    Args:
        source: A URL (http/https), file path, or '-' for stdin.

    Returns:
        The parsed document as a dictionary.

    Raises:
        SpecParseError: If the source cannot be loaded or parsed.
    """
    if source == "-":
        text, hint = _read_stdin(), ""
    elif source.startswith(("http://", "https://")):
        text, hint = _fetch(source)
    else:
        text, hint = _read_file(Path(source))
    return _decode(text, hint)


def parse_spec(content: str, hint: str = "") -> dict[str, Any]:
    """Parse an in-memory OpenAPI document given as JSON or YAML text.

    Args:
        content: The raw document text.
        hint: Optional format hint ('json' or 'yaml').

    Raises:
        SpecParseError: If the text is empty or cannot be parsed.
    """
    if not content.strip():
        raise SpecParseError("Document text is empty")
    return _decode(content, hint)


# ------------------------------------------------------------------ #
# Sources
# ------------------------------------------------------------------ #


def _read_stdin() -> str:
    try:
        text = sys.stdin.read()
    except OSError as exc:
        raise SpecParseError(f"Failed to read the document from stdin: {exc}") from exc
    if not text.strip():
        raise SpecParseError("No input received from stdin")
    return text


def _fetch(url: str) -> tuple[str, str]:
    """Download *url*; the response content type becomes the format hint."""
    try:
        response = httpx.get(url, timeout=_FETCH_TIMEOUT, follow_redirects=True)
        response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        raise SpecParseError(f"HTTP {exc.response.status_code} while downloading {url}") from exc
    except httpx.RequestError as exc:
        raise SpecParseError(f"Failed to fetch {url}: {exc}") from exc

    content_type = response.headers.get("content-type", "").lower()
    if "json" in content_type:
        return response.text, "json"
    if "yaml" in content_type or "yml" in content_type:
        return response.text, "yaml"
    return response.text, ""


def _read_file(path: Path) -> tuple[str, str]:
    """Read a local document; unknown suffixes leave detection to the content."""
    if not path.is_file():
        raise SpecParseError(f"OpenAPI document not found: {path}")
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise SpecParseError(f"Cannot read {path}: {exc}") from exc
    if not text.strip():
        raise SpecParseError(f"OpenAPI document is empty: {path}")
    return text, _SUFFIX_HINTS.get(path.suffix.lower(), "")


# ------------------------------------------------------------------ #
# Decoding
# ------------------------------------------------------------------ #


def _decode(text: str, hint: str) -> dict[str, Any]:
    """Decode *text* as JSON, falling back to YAML unless *hint* says JSON.

    Raises:
        SpecParseError: If neither format applies, or the top level is not
            a mapping.
    """
    problems: list[str] = []

    if hint != "yaml":
        try:
            return _require_mapping(json.loads(text))
        except json.JSONDecodeError as exc:
            if hint == "json":
                raise SpecParseError(f"Invalid JSON: {exc}") from exc
            problems.append(f"JSON error: {exc}")

    try:
        return _require_mapping(yaml.safe_load(text))
    except yaml.YAMLError as exc:
        problems.append(f"YAML error: {exc}")

    raise SpecParseError("Failed to parse document as JSON or YAML\n  " + "\n  ".join(problems))


def _require_mapping(document: Any) -> dict[str, Any]:
    if isinstance(document, dict):
        return document
    kind = "empty document" if document is None else type(document).__name__
    raise SpecParseError(f"Document must be a JSON/YAML object (got {kind})")


# ------------------------------------------------------------------ #
# Version check
# ------------------------------------------------------------------ #


def validate_openapi_version(spec: dict[str, Any]) -> str:
    """Return the ``openapi`` version of *spec* if it is a 3.x document.

    3.0.x gets Draft 4 validation with ``nullable``; 3.1.x and any later
    3.x get Draft 2020-12 (see :mod:`brapi_analyser.analyser.validator`).

    Raises:
        SpecParseError: If the version is missing, unsupported, or indicates
            Swagger 2.x.
    """
    if "swagger" in spec:
        raise SpecParseError(
            f"Swagger {spec['swagger']} documents are not supported; convert to OpenAPI 3.0 or 3.1 first"
        )

    version = spec.get("openapi")
    if version is None:
        raise SpecParseError("Missing 'openapi' field. Is this an OpenAPI 3.x document?")

    version = str(version)
    if not version.startswith("3."):
        raise SpecParseError(f"Unsupported OpenAPI version {version}; expected 3.0.x or 3.1.x")
    return version
