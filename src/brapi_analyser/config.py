"""Options loading, precedence resolution, and credential sources.

This module handles everything the analyser reads from outside the
OpenAPI document itself:

* **Options files** -- :func:`load_options` reads a YAML or JSON file into
  :class:`~brapi_analyser.models.AnalysisOptions`. Keys missing from the
  file take the built-in defaults.
* **Precedence resolution** -- :func:`resolve_options` picks the options
  file from the CLI flag, the ``BRAPI_ANALYSER_OPTIONS`` environment
  variable, or a project-local ``brapi-analyser.yaml``, falling back to the
  defaults.
* **Credential resolution** -- :func:`resolve_credential` reads secrets
  from env vars, files, or an interactive prompt.
"""

from __future__ import annotations

import getpass
import logging
import os
import sys
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from brapi_analyser.exceptions import ConfigurationError, SpecParseError
from brapi_analyser.models import AnalysisOptions
from brapi_analyser.parser.loader import parse_spec

logger = logging.getLogger(__name__)

OPTIONS_ENV_VAR = "BRAPI_ANALYSER_OPTIONS"
PROJECT_OPTIONS_FILENAME = "brapi-analyser.yaml"


# --- Options files ---


def load_options(path: str | Path) -> AnalysisOptions:
    """Load analysis options from a YAML or JSON file.

    Args:
        path: Path to the options file.

    Returns:
        The options, with defaults filled in for every missing key.

    Raises:
        ConfigurationError: If the file is missing, unreadable, not a
            mapping, or does not match the options schema.
    """
    file_path = Path(path).expanduser()
    if not file_path.is_file():
        raise ConfigurationError(f"Options file not found: {file_path}")

    try:
        content = file_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigurationError(f"Cannot read options file {file_path}: {exc}") from exc

    if not content.strip():
        logger.debug("Options file %s is empty, using defaults", file_path)
        return AnalysisOptions.model_validate({})

    suffix = file_path.suffix.lower()
    hint = "json" if suffix == ".json" else "yaml" if suffix in (".yaml", ".yml") else ""
    try:
        data = parse_spec(content, hint=hint)
    except SpecParseError as exc:
        raise ConfigurationError(f"Invalid options file {file_path}: {exc.message}") from exc

    try:
        options = AnalysisOptions.model_validate(data)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid options file {file_path}: {exc}") from exc

    logger.debug("Loaded options from %s", file_path)
    return options


def resolve_options(cli_path: Optional[str] = None) -> AnalysisOptions:
    """Resolve options with the full precedence chain.

    Precedence (high to low):
        1. CLI flag (``cli_path``)
        2. Environment variable (``BRAPI_ANALYSER_OPTIONS``)
        3. Project file (``./brapi-analyser.yaml``)
        4. Built-in defaults

    Raises:
        ConfigurationError: If the selected file can not be loaded.
    """
    if cli_path:
        return load_options(cli_path)

    env_path = os.environ.get(OPTIONS_ENV_VAR)
    if env_path:
        return load_options(env_path)

    project_path = Path.cwd() / PROJECT_OPTIONS_FILENAME
    if project_path.is_file():
        return load_options(project_path)

    return AnalysisOptions.model_validate({})


# --- Credentials ---


def resolve_credential(source: str) -> str:
    """Resolve a credential from its source descriptor.

    Supported formats:
        - ``"env:VAR_NAME"`` -- reads ``os.environ["VAR_NAME"]``
        - ``"file:/path/to/file"`` -- reads file content, stripped of whitespace
        - ``"prompt"`` -- prompts user interactively (requires a TTY)

    Any other string is returned unchanged as a literal credential.

    Raises:
        ConfigurationError: If the source can't be resolved.
    """
    if source.startswith("env:"):
        var_name = source[4:]
        value = os.environ.get(var_name)
        if value is None:
            raise ConfigurationError(
                f"Environment variable '{var_name}' is not set (source: {source})"
            )
        return value

    if source.startswith("file:"):
        path = Path(source[5:]).expanduser()
        if not path.is_file():
            raise ConfigurationError(f"Credential file not found: {path} (source: {source})")
        try:
            return path.read_text(encoding="utf-8").strip()
        except OSError as exc:
            raise ConfigurationError(f"Cannot read credential file {path}: {exc}") from exc

    if source == "prompt":
        if not sys.stdin.isatty():
            raise ConfigurationError(
                "Cannot prompt for credentials: stdin is not a TTY (source: prompt)"
            )
        return getpass.getpass("Enter credential: ")

    return source
