"""Extract per-path operations from an OpenAPI document.

This module walks the ``paths`` object and builds one
:class:`~brapi_analyser.models.PathItem` per path template, holding an
:class:`~brapi_analyser.models.Operation` per declared HTTP method.

Parameter merging follows the OpenAPI specification: path-level parameters
provide defaults, and operation-level parameters override them when they share
the same ``name`` and ``in`` values.

Parameter, request body and response objects that are themselves ``$ref``
objects (``#/components/parameters/...``, ``#/components/requestBodies/...``,
``#/components/responses/...``) are followed one hop. Schemas are left
untouched.
"""

from __future__ import annotations

import logging
from typing import Any

from brapi_analyser.exceptions import SchemaResolutionError
from brapi_analyser.models import (
    HTTPMethod,
    Operation,
    OperationParameter,
    ParameterLocation,
    PathItem,
)
from brapi_analyser.parser.resolver import deref

logger = logging.getLogger(__name__)


def extract_paths(spec: dict[str, Any]) -> list[PathItem]:
    """Extract every path item from *spec*, in document order.

    Methods within a path item are ordered as in
    :class:`~brapi_analyser.models.HTTPMethod`, so two extractions of the
    same document always agree.

    Args:
        spec: The parsed OpenAPI document.

    Returns:
        One :class:`~brapi_analyser.models.PathItem` per path template.
    """
    items: list[PathItem] = []
    for path, raw_item in (spec.get("paths") or {}).items():
        path_item = _deref_or_none(spec, raw_item, f"path item {path}")
        if not isinstance(path_item, dict):
            continue

        path_params = path_item.get("parameters", [])
        operations: dict[HTTPMethod, Operation] = {}
        for method in HTTPMethod:
            operation = path_item.get(method.value)
            if not isinstance(operation, dict):
                continue
            merged = _merge_parameters(
                _deref_all(spec, path_params), _deref_all(spec, operation.get("parameters", []))
            )
            operations[method] = Operation(
                path=path,
                method=method,
                operation_id=operation.get("operationId"),
                parameters=_extract_parameters(merged),
                request_body_schema=_extract_request_body(spec, operation.get("requestBody")),
                responses=_extract_responses(spec, operation.get("responses", {})),
                deprecated=bool(operation.get("deprecated", False)),
            )
        items.append(PathItem(path=path, operations=operations))
    return items


def _deref_or_none(spec: dict[str, Any], node: Any, what: str) -> Any:
    """Follow *node* one hop, logging and dropping it when the reference is broken."""
    try:
        return deref(spec, node)
    except SchemaResolutionError as exc:
        logger.warning("Ignoring %s: %s", what, exc)
        return None


def _deref_all(spec: dict[str, Any], params: list[Any]) -> list[dict[str, Any]]:
    resolved: list[dict[str, Any]] = []
    for param in params:
        value = _deref_or_none(spec, param, "parameter")
        if isinstance(value, dict):
            resolved.append(value)
    return resolved


def _merge_parameters(
    path_params: list[dict[str, Any]],
    op_params: list[dict[str, Any]],
) -> list[dict[str, Any]]:
    """Merge path-level and operation-level parameters.

    Operation-level parameters override path-level parameters with the same
    name and location (``in`` field).
    """
    op_keys = {(p.get("name", ""), p.get("in", "")) for p in op_params}
    merged = [
        p for p in path_params if (p.get("name", ""), p.get("in", "")) not in op_keys
    ]
    merged.extend(op_params)
    return merged


def _extract_parameters(params_list: list[dict[str, Any]]) -> list[OperationParameter]:
    """Convert raw parameter dicts, skipping unknown ``in`` locations.

    Path parameters are always required, whatever the document says.
    """
    parameters: list[OperationParameter] = []
    for param in params_list:
        try:
            location = ParameterLocation(param.get("in", "query"))
        except ValueError:
            continue
        if location == ParameterLocation.BODY:
            # Swagger 2 style body parameter, not valid in OpenAPI 3
            continue
        schema = param.get("schema")
        parameters.append(
            OperationParameter(
                name=param.get("name", ""),
                location=location,
                required=location == ParameterLocation.PATH or bool(param.get("required", False)),
                schema=schema if isinstance(schema, dict) else None,
            )
        )
    return parameters


def _extract_request_body(spec: dict[str, Any], body: Any) -> dict[str, Any] | None:
    """Return the JSON schema of a request body, preferring ``application/json``."""
    body = _deref_or_none(spec, body, "request body")
    if not isinstance(body, dict):
        return None
    return _pick_schema(body.get("content", {}))


def _extract_responses(
    spec: dict[str, Any], responses: dict[str, Any]
) -> dict[str, dict[str, Any]]:
    result: dict[str, dict[str, Any]] = {}
    for status_code, response in responses.items():
        response = _deref_or_none(spec, response, f"response {status_code}")
        if not isinstance(response, dict):
            continue
        content = response.get("content") or {}
        result[str(status_code)] = {
            content_type: media.get("schema")
            for content_type, media in content.items()
            if isinstance(media, dict)
        }
    return result


def _pick_schema(content: dict[str, Any]) -> dict[str, Any] | None:
    media = content.get("application/json")
    if isinstance(media, dict) and isinstance(media.get("schema"), dict):
        return media["schema"]
    for media in content.values():
        if isinstance(media, dict) and isinstance(media.get("schema"), dict):
            return media["schema"]
    return None
