"""Execute one catalog request and produce its report.

:meth:`RequestExecutor.execute` runs the full per-request procedure:

1. run the request's prerequisites (recursively, through this executor);
2. substitute path, query and body placeholders from the variable store;
3. ask the authorization provider for a header;
4. send the request;
5. cache variables from a 2xx response body;
6. validate the exchange against the OpenAPI document.

Every failure in steps 1-5 ends up in the returned
:class:`~brapi_analyser.models.AnalysisReport`; only cancellation escapes
as an exception.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional
from urllib.parse import quote

import httpx

from brapi_analyser.analyser.cancellation import CancellationToken
from brapi_analyser.analyser.catalog import RequestCatalog
from brapi_analyser.analyser.validator import OpenAPIValidator
from brapi_analyser.analyser.variables import VariableStore, extract_variable
from brapi_analyser.auth.base import AuthorizationProvider, NoAuthorizationProvider
from brapi_analyser.client.sync_client import AnalysisClient
from brapi_analyser.exceptions import AnalyserError, VariableResolutionError
from brapi_analyser.models import (
    AnalysisReport,
    APIRequest,
    Parameter,
    PrerequisiteStrategy,
    ValidationLevel,
    ValidationMessage,
)
from brapi_analyser.result import Result

logger = logging.getLogger(__name__)

PRE_EXECUTION = "Pre-Execution"
TRANSPORT = "Transport"
CACHE_VARIABLES = "Cache-Variables"

_TOKEN = re.compile(r"\{([^{}]+)\}")
_NOT_JSON = object()


@dataclass
class _Prepared:
    path: str
    params: dict[str, str] = field(default_factory=dict)
    headers: dict[str, str] = field(default_factory=dict)
    body: Any = None


class RequestExecutor:
    """Run :class:`~brapi_analyser.models.APIRequest` objects for one analysis run.

    Args:
        catalog: Catalog used to look up prerequisites by key.
        store: The run's variable store.
        client: HTTP client for the server under analysis.
        validator: Validator for the document the catalog was built from.
            ``None`` skips validation.
        authorization_provider: Supplies the ``Authorization`` header.
        prerequisite_strategy: ``ALWAYS`` re-runs a prerequisite for every
            dependent, ``ONCE`` reuses its first report for the whole run.
        cancellation: Token checked before every prerequisite and send.
    """

    def __init__(
        self,
        catalog: RequestCatalog,
        store: VariableStore,
        client: AnalysisClient,
        validator: Optional[OpenAPIValidator] = None,
        authorization_provider: Optional[AuthorizationProvider] = None,
        prerequisite_strategy: PrerequisiteStrategy = PrerequisiteStrategy.ALWAYS,
        cancellation: Optional[CancellationToken] = None,
    ) -> None:
        self._catalog = catalog
        self._store = store
        self._client = client
        self._validator = validator
        self._authorization = authorization_provider or NoAuthorizationProvider()
        self._strategy = prerequisite_strategy
        self._cancellation = cancellation or CancellationToken()
        self._prerequisite_reports: dict[str, AnalysisReport] = {}

    @property
    def store(self) -> VariableStore:
        return self._store

    def execute(self, request: APIRequest) -> AnalysisReport:
        """Execute *request* and return its report.

        Raises:
            AnalysisCancelledError: If the run is cancelled or passes its
                deadline before the request is sent.
        """
        return self._execute(request, (request.key,))

    # ------------------------------------------------------------------ #
    # Procedure
    # ------------------------------------------------------------------ #

    def _execute(self, request: APIRequest, chain: tuple[str, ...]) -> AnalysisReport:
        start = _now()

        prepared = self._run_prerequisites(request, chain).flat_map(lambda _: self._prepare(request))
        if prepared.failed:
            return self._short_circuit(request, start, prepared.errors)
        ready: _Prepared = prepared.value  # type: ignore[assignment]

        self._cancellation.raise_if_cancelled()
        sent = self._client.send(
            request.method.value,
            ready.path,
            params=ready.params,
            headers=ready.headers,
            json_body=ready.body,
            timeout=self._request_timeout(),
        )
        if sent.failed:
            return AnalysisReport(
                request=request,
                start_time=start,
                end_time=_now(),
                error_key=TRANSPORT,
                error_level=ValidationLevel.ERROR,
                error_message=sent.combined_message(),
            )

        response: httpx.Response = sent.value  # type: ignore[assignment]
        end = _now()
        document = _json_body(response)

        cache_errors: list[AnalyserError] = []
        if response.is_success and request.cache_variables:
            cache_errors = self._cache(request, document)

        messages: list[ValidationMessage] = []
        if self._validator is not None:
            messages = self._validator.validate(request, response, ready.body)

        report = AnalysisReport(
            request=request,
            uri=str(response.request.url),
            start_time=start,
            end_time=end,
            status_code=response.status_code,
            validation_messages=tuple(messages),
            error_key=CACHE_VARIABLES if cache_errors else None,
            error_level=ValidationLevel.WARN if cache_errors else None,
            error_message=Result(errors=cache_errors).combined_message() if cache_errors else None,
        )
        logger.debug(
            "%s -> %d (%d validation messages)", request, response.status_code, len(messages)
        )
        return report

    def _run_prerequisites(self, request: APIRequest, chain: tuple[str, ...]) -> Result[None]:
        errors: list[AnalyserError] = []
        for key in request.prerequisites:
            self._cancellation.raise_if_cancelled()
            prerequisite = self._catalog.get(key)
            if prerequisite is None:
                errors.append(
                    VariableResolutionError(f"Prerequisite '{key}' of {request} is not in the catalog")
                )
                continue
            if prerequisite.key in chain:
                cycle = " -> ".join(chain + (prerequisite.key,))
                errors.append(VariableResolutionError(f"Prerequisite cycle: {cycle}"))
                continue

            report = self._prerequisite_report(prerequisite, chain)
            if report.has_error:
                errors.append(
                    VariableResolutionError(
                        f"Prerequisite '{key}' failed: {report.error_message}"
                    )
                )
        return Result(errors=errors)

    def _prerequisite_report(self, prerequisite: APIRequest, chain: tuple[str, ...]) -> AnalysisReport:
        if self._strategy == PrerequisiteStrategy.ONCE:
            cached = self._prerequisite_reports.get(prerequisite.key)
            if cached is not None:
                return cached
        logger.debug("Running prerequisite %s", prerequisite)
        report = self._execute(prerequisite, chain + (prerequisite.key,))
        if self._strategy == PrerequisiteStrategy.ONCE:
            self._prerequisite_reports[prerequisite.key] = report
        return report

    # ------------------------------------------------------------------ #
    # Substitution
    # ------------------------------------------------------------------ #

    def _prepare(self, request: APIRequest) -> Result[_Prepared]:
        errors: list[AnalyserError] = []
        prepared = _Prepared(path=self._substitute_path(request, errors))

        query_values = Result.collect(
            self._store.get(parameter.variable_name).map(lambda bound: _encode_query_value(bound.value))
            for parameter in request.query_parameters
        )
        if query_values.failed:
            errors.extend(query_values.errors)
        else:
            names = (parameter.parameter_name for parameter in request.query_parameters)
            prepared.params.update(zip(names, query_values.or_else([])))

        if request.body is not None:
            prepared.body = self._substitute_body(request.body, errors)

        authorization = self._authorization.get_authorization()
        if authorization.failed:
            errors.extend(authorization.errors)
        elif authorization.value:
            prepared.headers["Authorization"] = authorization.value

        if errors:
            return Result(errors=errors)
        return Result.success(prepared)

    def _substitute_path(self, request: APIRequest, errors: list[AnalyserError]) -> str:
        bound = {p.parameter_name: p for p in request.path_parameters}

        def replace(match: re.Match[str]) -> str:
            parameter = bound.get(match.group(1))
            if parameter is None:
                return match.group(0)
            value = self._store.get(parameter.variable_name)
            if value.failed:
                errors.extend(value.errors)
                return match.group(0)
            return _encode_path_value(value.value.value)  # type: ignore[union-attr]

        path = _TOKEN.sub(replace, request.path_template)
        unresolved = _TOKEN.findall(path)
        if unresolved:
            errors.append(
                VariableResolutionError(
                    f"Unresolved path parameters {', '.join(unresolved)} in '{request.path_template}'"
                )
            )
        return path

    def _substitute_body(self, node: Any, errors: list[AnalyserError]) -> Any:
        if isinstance(node, Parameter):
            value = self._store.get(node.variable_name)
            if value.failed:
                errors.extend(value.errors)
                return None
            return value.value.value  # type: ignore[union-attr]
        if isinstance(node, dict):
            return {key: self._substitute_body(child, errors) for key, child in node.items()}
        if isinstance(node, (list, tuple)):
            return [self._substitute_body(child, errors) for child in node]
        return node

    # ------------------------------------------------------------------ #
    # Response handling
    # ------------------------------------------------------------------ #

    def _cache(self, request: APIRequest, document: Any) -> list[AnalyserError]:
        if document is _NOT_JSON:
            return [VariableResolutionError(f"Response body of {request} is not JSON, no variables cached")]

        errors: list[AnalyserError] = []
        for variable in request.cache_variables:
            extracted = extract_variable(document, variable)
            if extracted.failed:
                errors.extend(extracted.errors)
                continue
            self._store.put(variable.variable_name, extracted.value)  # type: ignore[arg-type]
            logger.debug("Cached %s = %r", variable.variable_name, extracted.value.value)  # type: ignore[union-attr]
        return errors

    def _short_circuit(
        self, request: APIRequest, start: datetime, errors: list[AnalyserError]
    ) -> AnalysisReport:
        message = Result(errors=errors).combined_message()
        logger.warning("Not sending %s: %s", request, message)
        return AnalysisReport(
            request=request,
            start_time=start,
            end_time=_now(),
            error_key=PRE_EXECUTION,
            error_level=ValidationLevel.WARN,
            error_message=message,
        )

    def _request_timeout(self) -> float:
        remaining = self._cancellation.remaining()
        if remaining is None:
            return self._client.timeout
        return min(self._client.timeout, remaining)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _json_body(response: httpx.Response) -> Any:
    if not response.content:
        return _NOT_JSON
    try:
        return response.json()
    except ValueError:
        return _NOT_JSON


def _encode_path_value(value: Any) -> str:
    text = value if isinstance(value, str) else json.dumps(value)
    return quote(text, safe="")


def _encode_query_value(value: Any) -> str:
    return value if isinstance(value, str) else json.dumps(value)
