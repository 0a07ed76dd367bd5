"""Derive executable requests from classified endpoints.

For each path item the :class:`RequestBuilder` classifies the path, then
looks up a *recipe* for every declared method. A recipe names the request,
fixes its execution index, selects the option gate that switches it on or
off, and says which extras it needs:

* an id path parameter (single-entity, search-result and sub-path requests),
* a body template (create, update, search and table searches),
* cache variables that later requests consume,
* a prerequisite on the parent collection (sub-path lists).

A ``(kind, method)`` pair without a recipe is recorded as an unmatched
endpoint. Errors while building one request (a missing parameter or body
schema) are recorded on the catalog and do not affect any other request.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Any, Optional

from brapi_analyser.analyser.catalog import DEPRECATED, SKIPPED, UNMATCHED, RequestCatalog
from brapi_analyser.analyser.classifier import PathClassifier, PathKind, PathMatch
from brapi_analyser.analyser.naming import capitalise, entity_name_for, lower_first
from brapi_analyser.exceptions import AnalyserError, ConfigurationError, SchemaResolutionError
from brapi_analyser.models import (
    AnalysisOptions,
    APIRequest,
    Endpoint,
    HTTPMethod,
    Operation,
    Parameter,
    ParameterLocation,
    PathItem,
    RequestIndex,
    RequestKind,
    RequiredParameterOptions,
    SpecialEndpointOptions,
    Variable,
    normalise_catalog_key,
)
from brapi_analyser.parser.resolver import deref, find_property
from brapi_analyser.result import Result

logger = logging.getLogger(__name__)

CROP_PARAMETER = "commonCropName"
CROP_LIST_PROPERTY = "commonCropNames"
SEARCH_RESULTS_PARAMETER = "searchResultsDbId"


class IdBinding(enum.Enum):
    """Where the id path parameter of a request comes from."""

    NONE = "none"
    ENTITY = "entity"
    SEARCH_RESULT = "search_result"
    SUB_PATH = "sub_path"


class Caching(enum.Enum):
    NONE = "none"
    LIST_IDS = "list_ids"
    CREATED = "created"
    SEARCH_RESULTS = "search_results"


@dataclass(frozen=True)
class Recipe:
    name: str
    index: RequestIndex
    kind: RequestKind
    id_binding: IdBinding = IdBinding.NONE
    body: bool = False
    caching: Caching = Caching.NONE


_RECIPES: dict[tuple[PathKind, HTTPMethod], Recipe] = {
    (PathKind.ENTITIES, HTTPMethod.GET): Recipe(
        "List Entities", RequestIndex.LIST, RequestKind.LIST, caching=Caching.LIST_IDS
    ),
    (PathKind.ENTITIES, HTTPMethod.POST): Recipe(
        "Create Entities", RequestIndex.CREATE, RequestKind.CREATE, body=True, caching=Caching.CREATED
    ),
    (PathKind.ENTITIES, HTTPMethod.PUT): Recipe(
        "Update Entities", RequestIndex.UPDATE, RequestKind.UPDATE, body=True
    ),
    (PathKind.ENTITY, HTTPMethod.GET): Recipe(
        "Get Entity", RequestIndex.GET, RequestKind.GET, id_binding=IdBinding.ENTITY
    ),
    (PathKind.ENTITY, HTTPMethod.PUT): Recipe(
        "Update Entity", RequestIndex.UPDATE, RequestKind.UPDATE, id_binding=IdBinding.ENTITY, body=True
    ),
    (PathKind.ENTITY, HTTPMethod.DELETE): Recipe(
        "Delete Entity", RequestIndex.DELETE, RequestKind.DELETE, id_binding=IdBinding.ENTITY
    ),
    (PathKind.SEARCH, HTTPMethod.POST): Recipe(
        "Search Entities", RequestIndex.SEARCH, RequestKind.SEARCH, body=True, caching=Caching.SEARCH_RESULTS
    ),
    (PathKind.SEARCH_RESULT, HTTPMethod.GET): Recipe(
        "Search Results", RequestIndex.SEARCH_RESULTS, RequestKind.SEARCH_RESULT, id_binding=IdBinding.SEARCH_RESULT
    ),
    (PathKind.TABLE, HTTPMethod.GET): Recipe("Get Table", RequestIndex.TABLE, RequestKind.TABLE),
    (PathKind.TABLE, HTTPMethod.POST): Recipe(
        "Search Table", RequestIndex.TABLE, RequestKind.TABLE, body=True
    ),
    (PathKind.SUB_PATH, HTTPMethod.GET): Recipe(
        "List Sub Entities", RequestIndex.LIST, RequestKind.LIST, id_binding=IdBinding.SUB_PATH
    ),
}


def search_results_variable(search_path: str) -> str:
    """Variable holding the ``searchResultsDbId`` returned by the search at *search_path*.

    ``/search/studies`` -> ``searchResultsDbIdStudies``. The search POST and
    its result GET both derive the name from the search path, so each search
    has its own variable.
    """
    parts = [p for p in search_path.strip("/").split("/") if p and p != "search"]
    return SEARCH_RESULTS_PARAMETER + "".join(capitalise(p) for p in parts)


class RequestBuilder:
    """Build :class:`~brapi_analyser.models.APIRequest` objects into a catalog.

    Args:
        document: The parsed OpenAPI document, used to follow ``$ref``
            objects in response and request-body schemas.
        options: The analysis options (gates, id naming, crop partitioning).
        classifier: Path classifier; a default one is created if omitted.
    """

    def __init__(
        self,
        document: dict[str, Any],
        options: AnalysisOptions,
        classifier: Optional[PathClassifier] = None,
    ) -> None:
        self._document = document
        self._options = options
        self._classifier = classifier or PathClassifier()
        self._special = {special.path: special for special in options.special_endpoints}

    # ------------------------------------------------------------------ #
    # Entry point
    # ------------------------------------------------------------------ #

    def build(self, path_item: PathItem, catalog: RequestCatalog) -> None:
        """Add the requests and diagnostics for *path_item* to *catalog*."""
        special = self._special.get(path_item.path)
        if special is not None:
            self._build_special(special, path_item, catalog)
            return

        classified = self._classifier.classify(path_item.path)
        if classified.failed:
            logger.debug("%s", classified.combined_message())
            for method in path_item.operations:
                catalog.unmatched_endpoints.append(
                    Endpoint(path=path_item.path, method=method, category=UNMATCHED)
                )
            return

        match: PathMatch = classified.value  # type: ignore[assignment]
        for method, operation in path_item.operations.items():
            recipe = _RECIPES.get((match.kind, method))
            if recipe is None:
                catalog.unmatched_endpoints.append(
                    Endpoint(path=path_item.path, method=method, category=UNMATCHED)
                )
                continue

            entity_name = entity_name_for(self._document, operation, match.segments)

            if operation.deprecated and not self._options.analyse_deprecated:
                catalog.deprecated_endpoints.append(
                    Endpoint(path=path_item.path, method=method, entity_name=entity_name, category=DEPRECATED)
                )
                continue

            if not self._options.is_analysing(recipe.kind, entity_name):
                catalog.skipped_endpoints.append(
                    Endpoint(path=path_item.path, method=method, entity_name=entity_name, category=SKIPPED)
                )
                continue

            result = self._build_request(recipe, match, operation, entity_name)
            if result.failed:
                for error in result.errors:
                    logger.warning("Can not build '%s %s': %s", method.value.upper(), path_item.path, error)
                catalog.errors.extend(result.errors)
            else:
                catalog.add(result.value)  # type: ignore[arg-type]

    # ------------------------------------------------------------------ #
    # Special endpoints
    # ------------------------------------------------------------------ #

    def _build_special(
        self,
        special: SpecialEndpointOptions,
        path_item: PathItem,
        catalog: RequestCatalog,
    ) -> None:
        for method in path_item.operations:
            if method != HTTPMethod.GET:
                catalog.unmatched_endpoints.append(
                    Endpoint(path=path_item.path, method=method, category=UNMATCHED)
                )

        if HTTPMethod.GET not in path_item.operations:
            return

        catalog.add_special(
            APIRequest(
                name=special.name or f"Get {special.path}",
                index=RequestIndex.SPECIAL,
                entity_name=None,
                method=HTTPMethod.GET,
                path_template=special.path,
                cache_variables=tuple(
                    Variable(
                        variable_name=v.variable_name,
                        parameter_name=v.parameter_name,
                        json_path=v.json_path,
                        convert_to_list=v.convert_to_list,
                    )
                    for v in special.cache_variables
                ),
            )
        )

    # ------------------------------------------------------------------ #
    # Entity requests
    # ------------------------------------------------------------------ #

    def _build_request(
        self,
        recipe: Recipe,
        match: PathMatch,
        operation: Operation,
        entity_name: str,
    ) -> Result[APIRequest]:
        request_options = self._options.request_options(recipe.kind)
        id_property = self._options.properties.id_property_name_for(entity_name)
        errors: list[AnalyserError] = []
        path_parameters: list[Parameter] = []
        query_parameters: list[Parameter] = []
        body_parameters: list[RequiredParameterOptions] = []

        id_parameter = self._id_parameter(recipe, match, operation, id_property)
        if id_parameter.failed:
            errors.extend(id_parameter.errors)
        elif id_parameter.value is not None:
            path_parameters.append(id_parameter.value)

        for required in request_options.get_required_parameters_for(entity_name):
            if required.location == ParameterLocation.BODY:
                body_parameters.append(required)
                continue
            if not _declares(operation, required.parameter_name, required.location):
                errors.append(
                    SchemaResolutionError(
                        f"Can not find {required.location.value} parameter "
                        f"'{required.parameter_name}' on {_describe(operation)}"
                    )
                )
                continue
            target = path_parameters if required.location == ParameterLocation.PATH else query_parameters
            _append_unique(
                target,
                Parameter(
                    parameter_name=required.parameter_name,
                    variable_name=required.resolved_variable_name,
                    location=required.location,
                ),
            )

        if self._options.partitioned_by_crop:
            declared = operation.find_parameter(CROP_PARAMETER)
            if declared is not None and declared.location in (ParameterLocation.QUERY, ParameterLocation.PATH):
                target = path_parameters if declared.location == ParameterLocation.PATH else query_parameters
                _append_unique(
                    target,
                    Parameter(
                        parameter_name=CROP_PARAMETER,
                        variable_name=CROP_PARAMETER,
                        location=declared.location,
                    ),
                )

        body: Any = None
        if recipe.body:
            template = self._body_template(operation, body_parameters)
            if template.failed:
                errors.extend(template.errors)
            else:
                body = template.value
        elif body_parameters:
            errors.append(
                SchemaResolutionError(
                    f"Body parameters configured for {entity_name} but {_describe(operation)} takes no body"
                )
            )

        configured = Result.collect(
            _catalog_key_result(key) for key in request_options.get_prerequisites_for(entity_name)
        )
        errors.extend(configured.errors)

        if errors:
            return Result(errors=errors)

        prerequisites: list[str] = configured.or_else([])
        if recipe.id_binding == IdBinding.SUB_PATH and match.parent:
            prerequisites.insert(0, f"/{match.parent}")

        return Result.success(
            APIRequest(
                name=recipe.name,
                index=recipe.index,
                entity_name=entity_name,
                method=operation.method,
                path_template=operation.path,
                path_parameters=tuple(path_parameters),
                query_parameters=tuple(query_parameters),
                body=body,
                cache_variables=self._cache_variables(recipe, match, entity_name, id_property),
                prerequisites=tuple(dict.fromkeys(prerequisites)),
                deprecated=operation.deprecated,
            )
        )

    def _id_parameter(
        self,
        recipe: Recipe,
        match: PathMatch,
        operation: Operation,
        id_property: Optional[str],
    ) -> Result[Optional[Parameter]]:
        if recipe.id_binding == IdBinding.NONE:
            return Result.success(None)

        if recipe.id_binding == IdBinding.ENTITY:
            if id_property is None:
                return Result.fail(
                    SchemaResolutionError(f"No id property for the entity of {_describe(operation)}")
                )
            if not _declares(operation, id_property, ParameterLocation.PATH):
                return Result.fail(
                    SchemaResolutionError(
                        f"Can not find path parameter '{id_property}' on {_describe(operation)}"
                    )
                )
            return Result.success(
                Parameter(parameter_name=id_property, variable_name=f"{id_property}1", location=ParameterLocation.PATH)
            )

        assert match.id_parameter is not None
        if recipe.id_binding == IdBinding.SEARCH_RESULT:
            variable_name = search_results_variable(match.path.rsplit("/", 1)[0])
        else:
            variable_name = f"{match.id_parameter}1"
        return Result.success(
            Parameter(
                parameter_name=match.id_parameter,
                variable_name=variable_name,
                location=ParameterLocation.PATH,
            )
        )

    def _body_template(
        self,
        operation: Operation,
        body_parameters: list[RequiredParameterOptions],
    ) -> Result[Any]:
        """Build the body template for a POST/PUT operation.

        Only fields bound to variables appear in the template; everything
        else is omitted. Array bodies (BrAPI create endpoints take a list)
        become a single-element list holding the object template.
        """
        if operation.request_body_schema is None:
            return Result.fail(
                SchemaResolutionError(f"No request body schema on {_describe(operation)}")
            )
        try:
            schema = deref(self._document, operation.request_body_schema)
            is_array = isinstance(schema, dict) and schema.get("type") == "array"
            object_schema = deref(self._document, schema.get("items")) if is_array else schema
        except SchemaResolutionError as exc:
            return Result.fail(exc)

        if not _is_object_schema(object_schema):
            return Result.fail(
                SchemaResolutionError(f"Request body of {_describe(operation)} is not an object schema")
            )

        template: dict[str, Any] = {}
        errors: list[AnalyserError] = []
        for required in body_parameters:
            error_count = len(errors)
            if self._has_property(object_schema, required.parameter_name, errors):
                template[required.parameter_name] = Parameter(
                    parameter_name=required.parameter_name,
                    variable_name=required.resolved_variable_name,
                    location=ParameterLocation.BODY,
                )
            elif len(errors) == error_count:
                errors.append(
                    SchemaResolutionError(
                        f"Can not find body property '{required.parameter_name}' on {_describe(operation)}"
                    )
                )

        if self._options.partitioned_by_crop and self._has_property(object_schema, CROP_LIST_PROPERTY, errors):
            template[CROP_LIST_PROPERTY] = Parameter(
                parameter_name=CROP_LIST_PROPERTY,
                variable_name=CROP_LIST_PROPERTY,
                location=ParameterLocation.BODY,
            )

        if errors:
            return Result(errors=errors)
        return Result.success([template] if is_array else template)

    def _has_property(self, schema: Any, name: str, errors: list[AnalyserError]) -> bool:
        try:
            return find_property(self._document, schema, name) is not None
        except SchemaResolutionError as exc:
            errors.append(exc)
            return False

    def _cache_variables(
        self,
        recipe: Recipe,
        match: PathMatch,
        entity_name: str,
        id_property: Optional[str],
    ) -> tuple[Variable, ...]:
        if recipe.caching == Caching.LIST_IDS and id_property:
            return (
                Variable(
                    variable_name=f"{id_property}1",
                    parameter_name=id_property,
                    json_path=f"$.result.data[0].{id_property}",
                ),
                Variable(
                    variable_name=f"{id_property}s1",
                    parameter_name=f"{id_property}s",
                    json_path=f"$.result.data[0:10].{id_property}",
                ),
            )
        if recipe.caching == Caching.CREATED:
            return (
                Variable(
                    variable_name=f"new{entity_name}",
                    parameter_name=lower_first(entity_name),
                    json_path="$.result.data[0]",
                ),
            )
        if recipe.caching == Caching.SEARCH_RESULTS:
            return (
                Variable(
                    variable_name=search_results_variable(match.path),
                    parameter_name=SEARCH_RESULTS_PARAMETER,
                    json_path=f"$.result.{SEARCH_RESULTS_PARAMETER}",
                ),
            )
        return ()


def _declares(operation: Operation, name: str, location: ParameterLocation) -> bool:
    if operation.find_parameter(name, location) is not None:
        return True
    return location == ParameterLocation.PATH and f"{{{name}}}" in operation.path


def _append_unique(parameters: list[Parameter], parameter: Parameter) -> None:
    if all(p.parameter_name != parameter.parameter_name for p in parameters):
        parameters.append(parameter)


def _is_object_schema(schema: Any) -> bool:
    if not isinstance(schema, dict):
        return False
    return (
        schema.get("type") == "object"
        or "properties" in schema
        or "allOf" in schema
        or "additionalProperties" in schema
    )


def _describe(operation: Operation) -> str:
    return f"{operation.method.value.upper()} {operation.path}"


def _catalog_key_result(key: str) -> Result[str]:
    try:
        return Result.success(normalise_catalog_key(key))
    except ConfigurationError as exc:
        return Result.fail(exc)
