"""Entity naming helpers.

BrAPI groups endpoints by *entity* (Study, Germplasm, ObservationUnit, ...).
The entity behind an endpoint is read from the title of its 200 response
schema when the document provides one, and otherwise rebuilt from the path
segments (``/observationunits`` -> ``ObservationUnit`` is not recoverable
from lower-case segments, so the response title is always preferred).
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from typing import Any, Optional

from brapi_analyser.exceptions import SchemaResolutionError
from brapi_analyser.models import Operation
from brapi_analyser.parser.resolver import deref, find_property, ref_name

_UNCOUNTABLE = frozenset({"germplasm", "data", "info", "metadata", "series", "species", "status"})

_IRREGULAR = {"people": "person", "children": "child"}

_SINGULAR_RULES: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"(.*ss)$"), r"\1"),
    (re.compile(r"(.*)ies$"), r"\1y"),
    (re.compile(r"(.*)ves$"), r"\1f"),
    (re.compile(r"(.*)(s|x|z|sh|ch)es$"), r"\1\2"),
    (re.compile(r"(.*)s$"), r"\1"),
)

_PRIMITIVE_TYPES = frozenset({"string", "boolean", "integer", "number"})

# Title suffix -> property path from the response object to the entity schema
_RESPONSE_SUFFIXES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("ListResponse", ("result", "data", "[]")),
    ("SingleResponse", ("result",)),
    ("Response", ("result",)),
)


def singular(word: str) -> str:
    """Return the singular form of an English (BrAPI) plural."""
    lowered = word.lower()
    if lowered in _UNCOUNTABLE:
        return word
    for plural, single in _IRREGULAR.items():
        if lowered.endswith(plural):
            return word[: len(word) - len(plural)] + _match_case(word[-len(plural):], single)
    for pattern, replacement in _SINGULAR_RULES:
        if pattern.match(word):
            return pattern.sub(replacement, word)
    return word


def capitalise(word: str) -> str:
    return word[:1].upper() + word[1:]


def lower_first(word: str) -> str:
    return word[:1].lower() + word[1:]


def name_from_segments(segments: Iterable[Optional[str]]) -> str:
    """``("vendor", "orders")`` -> ``"VendorOrder"``."""
    return "".join(capitalise(singular(segment)) for segment in segments if segment)


def entity_name_for(
    document: dict[str, Any],
    operation: Operation,
    segments: Iterable[Optional[str]],
) -> str:
    """Work out the entity an operation belongs to.

    Uses the title of the ``200`` / ``application/json`` response schema:

    * ``...ListResponse`` -> name of ``result.data`` items,
    * ``...SingleResponse`` / ``...Response`` -> name of ``result``,

    falling back to the title with the suffix removed when the nested schema
    is unnamed or primitive. Any other title is singularised and capitalised.
    Titles starting with ``200`` (generated placeholders) and missing
    schemas fall back to :func:`name_from_segments`.
    """
    schema = operation.response_schema("200")
    name = _name_from_response(document, schema) if schema is not None else None
    return name or name_from_segments(segments)


def _name_from_response(document: dict[str, Any], schema: dict[str, Any]) -> Optional[str]:
    try:
        resolved = deref(document, schema)
    except SchemaResolutionError:
        return None
    if not isinstance(resolved, dict):
        return None

    title = resolved.get("title") or ref_name(schema)
    if not title or title.startswith("200"):
        return None
    title = title.replace(" ", "")

    for suffix, child_path in _RESPONSE_SUFFIXES:
        if title.endswith(suffix):
            child = _child_name(document, resolved, child_path)
            if child:
                return capitalise(child)
            stripped = title[: -len(suffix)]
            return capitalise(singular(stripped)) if stripped else None

    return capitalise(singular(title))


def _child_name(
    document: dict[str, Any], schema: dict[str, Any], path: tuple[str, ...]
) -> Optional[str]:
    node: Any = schema
    for segment in path:
        if segment == "[]":
            node = _resolve(document, node)
            node = node.get("items") if isinstance(node, dict) else None
        else:
            node = _property(document, node, segment)
        if node is None:
            return None

    name = ref_name(node)
    resolved = _resolve(document, node)
    if not isinstance(resolved, dict):
        return None
    if resolved.get("type") in _PRIMITIVE_TYPES:
        return None
    title = resolved.get("title")
    return name or (title.replace(" ", "") if isinstance(title, str) else None)


def _property(document: dict[str, Any], node: Any, name: str) -> Any:
    try:
        return find_property(document, node, name)
    except SchemaResolutionError:
        return None


def _resolve(document: dict[str, Any], node: Any) -> Any:
    try:
        return deref(document, node)
    except SchemaResolutionError:
        return None


def _match_case(original: str, replacement: str) -> str:
    if original[:1].isupper():
        return capitalise(replacement)
    return replacement
