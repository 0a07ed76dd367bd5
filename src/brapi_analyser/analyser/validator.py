"""Check request/response pairs against the OpenAPI contract.

The :class:`OpenAPIValidator` is built once per analysis run from the full
document. The whole document is registered as a single :mod:`referencing`
resource, and every schema is validated through a ``$ref`` pointing into
it, so ``#/components/schemas/...`` references inside schemas resolve
against the original document.

OpenAPI 3.0 schemas are a dialect of JSON Schema Draft 4 with an extra
``nullable`` keyword; that keyword is folded into ``type`` before the
document is registered. OpenAPI 3.1 schemas are plain Draft 2020-12.

Findings are returned as :class:`~brapi_analyser.models.ValidationMessage`
objects. A mismatch is the product of an analysis run, not an error, so
:meth:`OpenAPIValidator.validate` never raises for a non-conforming server.
"""

from __future__ import annotations

import copy
import logging
from typing import Any, Optional

import httpx
from jsonschema import Draft4Validator, Draft202012Validator
from jsonschema.protocols import Validator
from referencing import Registry
from referencing.exceptions import Unresolvable
from referencing.jsonschema import DRAFT4, DRAFT202012

from brapi_analyser.exceptions import SchemaResolutionError
from brapi_analyser.models import APIRequest, ValidationLevel, ValidationMessage
from brapi_analyser.parser.loader import parse_spec, validate_openapi_version
from brapi_analyser.parser.resolver import follow_ref

logger = logging.getLogger(__name__)

DOCUMENT_URI = "urn:brapi-analyser:openapi"

PATH_MISSING = "validation.request.path.missing"
OPERATION_NOT_ALLOWED = "validation.request.operation.notAllowed"
REQUEST_BODY_SCHEMA = "validation.request.body.schema"
STATUS_UNKNOWN = "validation.response.status.unknown"
CONTENT_TYPE_NOT_ALLOWED = "validation.response.contentType.notAllowed"
BODY_MISSING = "validation.response.body.missing"
BODY_INVALID_JSON = "validation.response.body.invalidJson"
RESPONSE_BODY_SCHEMA = "validation.response.body.schema"
SCHEMA_UNRESOLVABLE = "validation.schema.unresolvable"


class OpenAPIValidator:
    """Validate requests and responses against one OpenAPI 3.x document.

    Args:
        specification: The document as JSON/YAML text or an already
            parsed mapping. A mapping is copied, never modified.

    Raises:
        SpecParseError: If the text cannot be parsed or is not OpenAPI 3.x.
    """

    def __init__(self, specification: str | dict[str, Any]) -> None:
        document = parse_spec(specification) if isinstance(specification, str) else specification
        version = validate_openapi_version(document)

        if version.startswith("3.0"):
            self._document = _fold_nullable(copy.deepcopy(document))
            self._validator_class: Any = Draft4Validator
            resource = DRAFT4.create_resource(self._document)
        else:
            self._document = copy.deepcopy(document)
            self._validator_class = Draft202012Validator
            resource = DRAFT202012.create_resource(self._document)

        self._registry: Registry[Any] = Registry().with_resource(DOCUMENT_URI, resource)
        self._validators: dict[str, Validator] = {}
        logger.debug(
            "Validator ready for OpenAPI %s (%s)", version, self._validator_class.__name__
        )

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    def validate(
        self,
        request: APIRequest,
        response: httpx.Response,
        body: Any = None,
    ) -> list[ValidationMessage]:
        """Validate one exchange.

        Args:
            request: The request that was sent; its path template and
                method select the operation.
            response: The server's response.
            body: The substituted request body that was sent, if any.

        Returns:
            Every finding, in a stable order. An empty list means the
            exchange conforms.
        """
        paths = self._document.get("paths") or {}
        if request.path_template not in paths:
            return [_error(PATH_MISSING, f"No path '{request.path_template}' in the specification")]

        try:
            path_pointer, path_item = self._locate("/paths/" + _escape(request.path_template))
        except SchemaResolutionError as exc:
            return [_error(SCHEMA_UNRESOLVABLE, exc.message)]

        method = request.method.value
        operation = path_item.get(method) if isinstance(path_item, dict) else None
        if not isinstance(operation, dict):
            return [
                _error(
                    OPERATION_NOT_ALLOWED,
                    f"{method.upper()} operation not allowed on path '{request.path_template}'",
                )
            ]

        operation_pointer = f"{path_pointer}/{method}"
        messages: list[ValidationMessage] = []
        try:
            if body is not None and "requestBody" in operation:
                messages.extend(self._validate_request_body(operation_pointer, body))
            messages.extend(self._validate_response(operation_pointer, operation, response))
        except SchemaResolutionError as exc:
            messages.append(_error(SCHEMA_UNRESOLVABLE, exc.message))
        return messages

    # ------------------------------------------------------------------ #
    # Request
    # ------------------------------------------------------------------ #

    def _validate_request_body(self, operation_pointer: str, body: Any) -> list[ValidationMessage]:
        body_pointer, request_body = self._locate(f"{operation_pointer}/requestBody")
        content = request_body.get("content") if isinstance(request_body, dict) else None
        if not isinstance(content, dict):
            return []
        content_type = _json_media_type(content)
        if content_type is None or "schema" not in content[content_type]:
            return []
        schema_pointer = f"{body_pointer}/content/{_escape(content_type)}/schema"
        return self._schema_messages(schema_pointer, body, REQUEST_BODY_SCHEMA)

    # ------------------------------------------------------------------ #
    # Response
    # ------------------------------------------------------------------ #

    def _validate_response(
        self,
        operation_pointer: str,
        operation: dict[str, Any],
        response: httpx.Response,
    ) -> list[ValidationMessage]:
        responses = operation.get("responses") or {}
        status = str(response.status_code)
        status_key = _match_status(responses, status)
        if status_key is None:
            return [
                _error(
                    STATUS_UNKNOWN,
                    f"Response status {status} is not defined and there is no default response",
                )
            ]

        response_pointer, declared = self._locate(
            f"{operation_pointer}/responses/{_escape(status_key)}"
        )
        content = declared.get("content") if isinstance(declared, dict) else None
        if not isinstance(content, dict) or not content:
            return []

        if not response.content:
            if any(isinstance(media, dict) and "schema" in media for media in content.values()):
                return [_error(BODY_MISSING, f"A response body is expected for status {status}")]
            return []

        received = response.headers.get("content-type", "").split(";")[0].strip().lower()
        content_type = _match_content_type(content, received)
        if content_type is None:
            return [
                _error(
                    CONTENT_TYPE_NOT_ALLOWED,
                    f"Response content-type '{received}' is not allowed for status {status} "
                    f"(expected one of {sorted(content)})",
                )
            ]

        media = content[content_type]
        if not isinstance(media, dict) or "schema" not in media or not _is_json(received):
            return []

        try:
            instance = response.json()
        except ValueError as exc:
            return [_error(BODY_INVALID_JSON, f"Response body is not valid JSON: {exc}")]

        schema_pointer = f"{response_pointer}/content/{_escape(content_type)}/schema"
        return self._schema_messages(schema_pointer, instance, RESPONSE_BODY_SCHEMA)

    # ------------------------------------------------------------------ #
    # Schema validation
    # ------------------------------------------------------------------ #

    def _schema_messages(self, pointer: str, instance: Any, key_prefix: str) -> list[ValidationMessage]:
        validator = self._validator_for(pointer)
        try:
            errors = sorted(
                validator.iter_errors(instance),
                key=lambda e: (e.json_path, str(e.validator)),
            )
        except Unresolvable as exc:
            return [_error(SCHEMA_UNRESOLVABLE, f"Can not resolve schema reference: {exc}")]
        return [
            _error(f"{key_prefix}.{error.validator}", f"[Path '{error.json_path}'] {error.message}")
            for error in errors
        ]

    def _validator_for(self, pointer: str) -> Validator:
        validator = self._validators.get(pointer)
        if validator is None:
            validator = self._validator_class(
                {"$ref": f"{DOCUMENT_URI}#{pointer}"}, registry=self._registry
            )
            self._validators[pointer] = validator
        return validator

    def _locate(self, pointer: str) -> tuple[str, Any]:
        """Return the node at *pointer*, following local ``$ref`` objects.

        The returned pointer is the location of the final node, so child
        pointers built from it address the real schema.

        Raises:
            SchemaResolutionError: For a dangling or circular reference.
        """
        node = follow_ref(self._document, "#" + pointer)
        seen: set[str] = set()
        while isinstance(node, dict) and isinstance(node.get("$ref"), str):
            ref = node["$ref"]
            if not ref.startswith("#"):
                raise SchemaResolutionError(f"External reference '{ref}' at '{pointer}' is not supported")
            if ref in seen:
                raise SchemaResolutionError(f"Circular reference '{ref}' at '{pointer}'")
            seen.add(ref)
            pointer = ref[1:]
            node = follow_ref(self._document, ref)
        return pointer, node


def _error(key: str, message: str) -> ValidationMessage:
    return ValidationMessage(key=key, level=ValidationLevel.ERROR, message=message)


def _escape(token: str) -> str:
    return token.replace("~", "~0").replace("/", "~1")


def _match_status(responses: dict[str, Any], status: str) -> Optional[str]:
    if status in responses:
        return status
    wildcard = f"{status[0]}XX"
    for key in responses:
        if str(key).upper() == wildcard:
            return str(key)
    if "default" in responses:
        return "default"
    return None


def _match_content_type(content: dict[str, Any], received: str) -> Optional[str]:
    if received in content:
        return received
    family = received.split("/")[0] + "/*"
    if received and family in content:
        return family
    if "*/*" in content:
        return "*/*"
    return None


def _json_media_type(content: dict[str, Any]) -> Optional[str]:
    if "application/json" in content:
        return "application/json"
    for media_type in content:
        if _is_json(media_type):
            return media_type
    return None


def _is_json(media_type: str) -> bool:
    return media_type == "application/json" or media_type.endswith("+json") or media_type.endswith("/*")


def _fold_nullable(node: Any) -> Any:
    """Rewrite OpenAPI 3.0 ``nullable: true`` as a JSON Schema type union, in place."""
    if isinstance(node, dict):
        if node.get("nullable") is True:
            schema_type = node.get("type")
            if isinstance(schema_type, str):
                node["type"] = [schema_type, "null"]
            enum_values = node.get("enum")
            if isinstance(enum_values, list) and None not in enum_values:
                enum_values.append(None)
        for value in node.values():
            _fold_nullable(value)
    elif isinstance(node, list):
        for item in node:
            _fold_nullable(item)
    return node
