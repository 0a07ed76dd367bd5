"""Canonical Pydantic models shared across all brapi_analyser modules.

This is the single source of truth for data shapes in the project. The models
fall into two groups:

**Options models** -- loaded from YAML or JSON options files by
:mod:`brapi_analyser.config`:
    :class:`RequiredParameterOptions`, :class:`APIRequestOptions`,
    :class:`PropertiesOptions`, :class:`CacheVariableOptions`,
    :class:`SpecialEndpointOptions`, and :class:`AnalysisOptions`.

**Analysis models** -- built from the OpenAPI document and produced while
running requests against a server:
    :class:`Endpoint`, :class:`Parameter`, :class:`Variable`,
    :class:`VariableValue`, :class:`APIRequest`,
    :class:`ValidationMessage`, and :class:`AnalysisReport`.

Analysis models are frozen: requests are built once per run and reports
are never changed after the executor creates them.
"""

from __future__ import annotations

import copy
import enum
from datetime import datetime, timedelta
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from brapi_analyser.exceptions import ConfigurationError


# --- Enumerations ---


class HTTPMethod(str, enum.Enum):
    """HTTP methods recognised by OpenAPI 3.x path-item objects."""

    GET = "get"
    POST = "post"
    PUT = "put"
    PATCH = "patch"
    DELETE = "delete"
    HEAD = "head"
    OPTIONS = "options"
    TRACE = "trace"


class ParameterLocation(str, enum.Enum):
    """Locations where a parameter can appear.

    ``BODY`` is not an OpenAPI ``in`` value; it marks a placeholder inside a
    request body template.
    """

    QUERY = "query"
    HEADER = "header"
    PATH = "path"
    COOKIE = "cookie"
    BODY = "body"


class RequestKind(str, enum.Enum):
    """The operation kinds that can be switched on or off per entity."""

    LIST = "list"
    GET = "get"
    SEARCH = "search"
    SEARCH_RESULT = "search_result"
    TABLE = "table"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class RequestIndex(enum.IntEnum):
    """Execution priority of a request within its entity group (ascending)."""

    SPECIAL = 0
    LIST = 10
    GET = 20
    SEARCH = 30
    SEARCH_RESULTS = 40
    TABLE = 50
    CREATE = 60
    UPDATE = 70
    DELETE = 80


class ValidationLevel(str, enum.Enum):
    """Severity of a validation finding or report-level error."""

    ERROR = "ERROR"
    WARN = "WARN"
    INFO = "INFO"
    IGNORE = "IGNORE"


class PrerequisiteStrategy(str, enum.Enum):
    """How often a prerequisite shared by several requests is executed.

    ``ALWAYS`` runs it again for every dependent so the variables it caches
    are fresh; ``ONCE`` runs it on first use and reuses that report for the
    rest of the run.
    """

    ALWAYS = "always"
    ONCE = "once"


def catalog_key(method: HTTPMethod, path: str) -> str:
    """Return the catalog key for *method* on *path*.

    GET requests are keyed by their bare path template so that prerequisite
    lists can name them as ``"/germplasm"``; every other method is prefixed,
    e.g. ``"POST /search/studies"``.
    """
    if method == HTTPMethod.GET:
        return path
    return f"{method.value.upper()} {path}"


def normalise_catalog_key(key: str) -> str:
    """Accept ``"/x"``, ``"GET /x"`` or ``"post /x"`` and return the catalog key.

    Raises:
        ConfigurationError: If the key has an unknown method prefix.
    """
    method, sep, path = key.strip().partition(" ")
    if not sep:
        return key.strip()
    try:
        http_method = HTTPMethod(method.lower())
    except ValueError:
        raise ConfigurationError(
            f"Unknown HTTP method '{method}' in request key '{key}'"
        ) from None
    return catalog_key(http_method, path.strip())


# --- Options ---


class RequiredParameterOptions(BaseModel):
    """A parameter that must be bound to a variable for a given entity.

    Example (YAML)::

        list_entity:
          required_parameters_for:
            Observation:
              - parameter_name: studyDbId
                location: query
    """

    parameter_name: str
    variable_name: Optional[str] = None
    location: ParameterLocation = ParameterLocation.QUERY

    @property
    def resolved_variable_name(self) -> str:
        return self.variable_name or f"{self.parameter_name}1"


class APIRequestOptions(BaseModel):
    """Options for one kind of request (list, get, search, ...).

    ``analyse`` is the default gate for every entity; ``analyse_for``
    overrides it per entity name.
    """

    analyse: Optional[bool] = True
    analyse_for: dict[str, bool] = Field(default_factory=dict)
    required_parameters_for: dict[str, list[RequiredParameterOptions]] = Field(
        default_factory=dict
    )
    prerequisites_for: dict[str, list[str]] = Field(default_factory=dict)

    def is_analysing_entity(self, entity_name: Optional[str]) -> bool:
        if entity_name is not None:
            override = _lookup(self.analyse_for, entity_name)
            if override is not None:
                return override
        return bool(self.analyse)

    def get_required_parameters_for(
        self, entity_name: Optional[str]
    ) -> list[RequiredParameterOptions]:
        if entity_name is None:
            return []
        return list(_lookup(self.required_parameters_for, entity_name) or [])

    def get_prerequisites_for(self, entity_name: Optional[str]) -> list[str]:
        if entity_name is None:
            return []
        return list(_lookup(self.prerequisites_for, entity_name) or [])


_PRIMITIVE_TYPES = frozenset({"string", "boolean", "integer", "number"})


class PropertiesOptions(BaseModel):
    """Naming rules for entity properties."""

    id_property_names: dict[str, str] = Field(default_factory=dict)
    id_suffix: str = "DbId"

    def id_property_name_for(self, entity_name: str) -> Optional[str]:
        """Return the id property for *entity_name*, or ``None`` for primitive types.

        An explicit entry in ``id_property_names`` wins; otherwise the name
        is the entity name with a lower-case first letter plus
        ``id_suffix`` (``Study`` -> ``studyDbId``).
        """
        if entity_name.lower() in _PRIMITIVE_TYPES:
            return None
        explicit = _lookup(self.id_property_names, entity_name)
        if explicit:
            return explicit
        return entity_name[:1].lower() + entity_name[1:] + self.id_suffix


class CacheVariableOptions(BaseModel):
    variable_name: str
    parameter_name: Optional[str] = None
    json_path: str
    convert_to_list: bool = False


class SpecialEndpointOptions(BaseModel):
    """An endpoint analysed before every entity group, outside any entity."""

    path: str
    name: Optional[str] = None
    cache_variables: list[CacheVariableOptions] = Field(default_factory=list)


_DEFAULT_OPTIONS: dict[str, Any] = {
    "list_entity": {"analyse": True},
    "get_entity": {"analyse": True},
    "search_entity": {"analyse": True},
    "search_result": {"analyse": True},
    "table": {"analyse": True},
    "create_entity": {"analyse": False},
    "update_entity": {"analyse": False},
    "delete_entity": {"analyse": False},
    "partitioned_by_crop": False,
    "analyse_deprecated": False,
    "prerequisite_strategy": PrerequisiteStrategy.ALWAYS.value,
    "properties": {},
    "special_endpoints": [
        {
            "path": "/commoncropnames",
            "name": "Get /commoncropnames",
            "cache_variables": [
                {
                    "variable_name": "commonCropName",
                    "parameter_name": "commonCropName",
                    "json_path": "$.result.data[0]",
                },
                {
                    "variable_name": "commonCropNames",
                    "parameter_name": "commonCropNames",
                    "json_path": "$.result.data[0]",
                    "convert_to_list": True,
                },
            ],
        }
    ],
}

_KIND_FIELDS: dict[RequestKind, str] = {
    RequestKind.LIST: "list_entity",
    RequestKind.GET: "get_entity",
    RequestKind.SEARCH: "search_entity",
    RequestKind.SEARCH_RESULT: "search_result",
    RequestKind.TABLE: "table",
    RequestKind.CREATE: "create_entity",
    RequestKind.UPDATE: "update_entity",
    RequestKind.DELETE: "delete_entity",
}


class AnalysisOptions(BaseModel):
    """Top-level analysis options.

    Values missing from an options file are taken from the built-in
    defaults, merged key by key, so that ``create_entity: {analyse_for:
    {Study: true}}`` keeps ``create_entity.analyse`` at its default of
    ``False``.

    Mutating requests (create, update, delete) are disabled by default so
    that a default run only reads from the server.
    """

    list_entity: APIRequestOptions
    get_entity: APIRequestOptions
    search_entity: APIRequestOptions
    search_result: APIRequestOptions
    table: APIRequestOptions
    create_entity: APIRequestOptions
    update_entity: APIRequestOptions
    delete_entity: APIRequestOptions
    partitioned_by_crop: Optional[bool] = None
    analyse_deprecated: Optional[bool] = None
    prerequisite_strategy: Optional[PrerequisiteStrategy] = None
    properties: PropertiesOptions = Field(default_factory=PropertiesOptions)
    special_endpoints: list[SpecialEndpointOptions] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _merge_defaults(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        return _deep_merge(copy.deepcopy(_DEFAULT_OPTIONS), data)

    def request_options(self, kind: RequestKind) -> APIRequestOptions:
        return getattr(self, _KIND_FIELDS[kind])

    def is_analysing(self, kind: RequestKind, entity_name: Optional[str]) -> bool:
        """Gate for building *kind* requests for *entity_name*."""
        return self.request_options(kind).is_analysing_entity(entity_name)

    def validate_options(self) -> list[str]:
        """Return a message for every required option that is null or malformed.

        An empty list means the options can be used for a run.
        """
        problems: list[str] = []
        for field_name in _KIND_FIELDS.values():
            if getattr(self, field_name).analyse is None:
                problems.append(
                    f"'{field_name}.analyse' option on {type(self).__name__} is null"
                )
        for field_name in ("partitioned_by_crop", "analyse_deprecated", "prerequisite_strategy"):
            if getattr(self, field_name) is None:
                problems.append(
                    f"'{field_name}' option on {type(self).__name__} is null"
                )
        for field_name in _KIND_FIELDS.values():
            for entity_name, keys in getattr(self, field_name).prerequisites_for.items():
                for key in keys:
                    try:
                        normalise_catalog_key(key)
                    except ConfigurationError as exc:
                        problems.append(
                            f"'{field_name}.prerequisites_for.{entity_name}': {exc.message}"
                        )
        for index, special in enumerate(self.special_endpoints):
            if not special.path.startswith("/"):
                problems.append(
                    f"'special_endpoints[{index}].path' must start with '/' (got {special.path!r})"
                )
        return problems


def _lookup(mapping: dict[str, Any], entity_name: str) -> Any:
    """Look up *entity_name* exactly, then case-insensitively."""
    if entity_name in mapping:
        return mapping[entity_name]
    lowered = entity_name.lower()
    for key, value in mapping.items():
        if key.lower() == lowered:
            return value
    return None


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            base[key] = _deep_merge(base[key], value)
        else:
            base[key] = value
    return base


# --- Parser Output Models ---


class OperationParameter(BaseModel):
    """A parameter declared on an operation (or inherited from its path item)."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    location: ParameterLocation
    required: bool = False
    schema_: Optional[dict[str, Any]] = Field(default=None, alias="schema")


class Operation(BaseModel):
    """One HTTP method on one path, as declared in the document.

    Schemas are kept exactly as written, including any ``$ref`` objects;
    consumers follow references with :func:`brapi_analyser.parser.resolver.deref`.
    ``responses`` maps a status code string to ``{content_type: schema}``.
    """

    path: str
    method: HTTPMethod
    operation_id: Optional[str] = None
    parameters: list[OperationParameter] = Field(default_factory=list)
    request_body_schema: Optional[dict[str, Any]] = None
    responses: dict[str, dict[str, Any]] = Field(default_factory=dict)
    deprecated: bool = False

    def find_parameter(
        self, name: str, location: Optional[ParameterLocation] = None
    ) -> Optional[OperationParameter]:
        for param in self.parameters:
            if param.name == name and (location is None or param.location == location):
                return param
        return None

    def response_schema(
        self, status_code: str = "200", content_type: str = "application/json"
    ) -> Optional[dict[str, Any]]:
        return self.responses.get(status_code, {}).get(content_type)


class PathItem(BaseModel):
    """All operations declared under one path template, in method order."""

    path: str
    operations: dict[HTTPMethod, Operation] = Field(default_factory=dict)


# --- Analysis Models ---


class Endpoint(BaseModel):
    """Diagnostic record for an endpoint that produced no request.

    ``category`` is the reason: ``"Unmatched"``, ``"Skipped"`` or
    ``"Deprecated"``.
    """

    model_config = ConfigDict(frozen=True)

    path: str
    method: HTTPMethod
    entity_name: Optional[str] = None
    category: str

    def __str__(self) -> str:
        return f"{self.method.value.upper()} {self.path}"


class Parameter(BaseModel):
    """Binds a request placeholder to a variable in the store."""

    model_config = ConfigDict(frozen=True)

    parameter_name: str
    variable_name: str
    location: ParameterLocation = ParameterLocation.QUERY


class Variable(BaseModel):
    """Rule for extracting a value from a request's own response body."""

    model_config = ConfigDict(frozen=True)

    variable_name: str
    parameter_name: Optional[str] = None
    json_path: str
    convert_to_list: bool = False


class VariableValue(BaseModel):
    model_config = ConfigDict(frozen=True)

    variable_name: str
    parameter_name: Optional[str] = None
    value: Any = None


class APIRequest(BaseModel):
    """An executable request derived from one operation in the document.

    ``body`` is a template: dicts and lists are walked recursively, and any
    :class:`Parameter` leaf is replaced with the bound variable's value at
    execution time.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    index: int
    entity_name: Optional[str] = None
    method: HTTPMethod
    path_template: str
    path_parameters: tuple[Parameter, ...] = ()
    query_parameters: tuple[Parameter, ...] = ()
    body: Any = None
    cache_variables: tuple[Variable, ...] = ()
    prerequisites: tuple[str, ...] = ()
    deprecated: bool = False

    @property
    def key(self) -> str:
        return catalog_key(self.method, self.path_template)

    def __str__(self) -> str:
        return f"{self.method.value.upper()} {self.path_template}"


class ValidationMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    key: str
    level: ValidationLevel
    message: str


class AnalysisReport(BaseModel):
    """The outcome of executing (or short-circuiting) one request.

    ``error_key`` / ``error_level`` / ``error_message`` are set when the
    request could not be sent (``"Pre-Execution"``), the send failed
    (``"Transport"``), or cache variables could not be extracted
    (``"Cache-Variables"``). Contract findings are in
    ``validation_messages``.
    """

    model_config = ConfigDict(frozen=True)

    request: APIRequest
    uri: Optional[str] = None
    start_time: datetime
    end_time: datetime
    status_code: Optional[int] = None
    validation_messages: tuple[ValidationMessage, ...] = ()
    error_key: Optional[str] = None
    error_level: Optional[ValidationLevel] = None
    error_message: Optional[str] = None

    @property
    def elapsed(self) -> timedelta:
        return self.end_time - self.start_time

    @property
    def has_error(self) -> bool:
        return self.error_key is not None

    @property
    def is_successful(self) -> bool:
        return self.status_code is not None and 200 <= self.status_code < 300

    def messages_at(self, level: ValidationLevel) -> list[ValidationMessage]:
        return [m for m in self.validation_messages if m.level == level]
