"""Run a whole analysis: special requests first, then entity groups.

:class:`AnalyserFactory` is the entry point. It validates the options,
parses the document, builds the catalog and the validator once, and hands
back an :class:`Analyser` bound to a fresh variable store and HTTP client::

    factory = AnalyserFactory("https://test-server.brapi.org/brapi/v2")
    with factory.analyser(spec_text) as analyser:
        reports = analyser.analyse_entities(["Study", "Trial"])

Entity groups run in entity-name order, and requests within a group in
index order. A failed request never stops the run; a cancelled run stops
after the request in flight and returns the reports collected so far.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any, Optional

import httpx

from brapi_analyser.analyser.cancellation import CancellationToken
from brapi_analyser.analyser.catalog import RequestCatalog, build_catalog
from brapi_analyser.analyser.executor import RequestExecutor
from brapi_analyser.analyser.validator import OpenAPIValidator
from brapi_analyser.analyser.variables import VariableStore
from brapi_analyser.auth.base import AuthorizationProvider, NoAuthorizationProvider
from brapi_analyser.client.sync_client import AnalysisClient
from brapi_analyser.exceptions import AnalyserError, AnalysisCancelledError, ConfigurationError
from brapi_analyser.models import AnalysisOptions, AnalysisReport, APIRequest, Endpoint, PrerequisiteStrategy
from brapi_analyser.parser.loader import parse_spec, validate_openapi_version

logger = logging.getLogger(__name__)


class Analyser:
    """One analysis run over a built catalog.

    Created by :meth:`AnalyserFactory.analyser`. Owns the HTTP client, so
    use it as a context manager or call :meth:`close`.
    """

    def __init__(
        self,
        catalog: RequestCatalog,
        executor: RequestExecutor,
        client: AnalysisClient,
    ) -> None:
        self._catalog = catalog
        self._executor = executor
        self._client = client
        self._cancelled = False

    def __enter__(self) -> Analyser:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    # ------------------------------------------------------------------ #
    # Catalog view
    # ------------------------------------------------------------------ #

    @property
    def catalog(self) -> RequestCatalog:
        return self._catalog

    @property
    def entity_names(self) -> list[str]:
        return self._catalog.entity_names

    @property
    def endpoints(self) -> list[Endpoint]:
        return self._catalog.endpoints

    @property
    def unmatched_endpoints(self) -> list[Endpoint]:
        return list(self._catalog.unmatched_endpoints)

    @property
    def skipped_endpoints(self) -> list[Endpoint]:
        return list(self._catalog.skipped_endpoints)

    @property
    def deprecated_endpoints(self) -> list[Endpoint]:
        return list(self._catalog.deprecated_endpoints)

    @property
    def errors(self) -> list[AnalyserError]:
        return list(self._catalog.errors)

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    # ------------------------------------------------------------------ #
    # Running
    # ------------------------------------------------------------------ #

    def analyse_special(self) -> list[AnalysisReport]:
        """Run the special requests (e.g. ``/commoncropnames``)."""
        return self._run(self._catalog.special_requests)

    def analyse_all(self) -> list[AnalysisReport]:
        """Run the special requests, then every entity group."""
        return self.analyse_entities(self.entity_names)

    def analyse_entities(self, entity_names: Iterable[str]) -> list[AnalysisReport]:
        """Run the special requests, then the named entity groups.

        Names match case-insensitively; unknown names are logged and
        skipped. Groups run in entity-name order whatever the order given.
        """
        known = {name.lower(): name for name in self.entity_names}
        selected: dict[str, str] = {}
        for name in entity_names:
            match = known.get(name.strip().lower())
            if match is None:
                logger.warning("Unknown entity '%s', skipping it", name)
                continue
            selected[match] = match

        reports = self.analyse_special()
        for name in sorted(selected):
            if self._cancelled:
                break
            reports.extend(self.analyse_entity(name))
        return reports

    def analyse_entity(self, entity_name: str) -> list[AnalysisReport]:
        """Run one entity group in index order; special requests are not run."""
        requests = self._catalog.requests_for(entity_name)
        if not requests:
            logger.warning("No requests for entity '%s'", entity_name)
        logger.debug("Analysing %s (%d requests)", entity_name, len(requests))
        return self._run(requests)

    def _run(self, requests: list[APIRequest]) -> list[AnalysisReport]:
        reports: list[AnalysisReport] = []
        for request in requests:
            if self._cancelled:
                break
            try:
                reports.append(self._executor.execute(request))
            except AnalysisCancelledError as exc:
                self._cancelled = True
                logger.warning("%s before %s", exc.message, request)
        return reports


class AnalyserFactory:
    """Build :class:`Analyser` instances for one server.

    Args:
        base_url: Base URL of the server under analysis.
        authorization_provider: Supplies the ``Authorization`` header;
            defaults to no authorization.
        options: Analysis options; defaults to the built-in defaults.
        timeout: Per-request timeout in seconds.
        verify_ssl: Verify TLS certificates.
        transport: Optional httpx transport (tests use
            :class:`httpx.MockTransport`).
        cancellation: Token shared by every analyser this factory builds.
    """

    def __init__(
        self,
        base_url: str,
        authorization_provider: Optional[AuthorizationProvider] = None,
        options: Optional[AnalysisOptions] = None,
        timeout: float = 30.0,
        verify_ssl: bool = True,
        transport: Optional[httpx.BaseTransport] = None,
        cancellation: Optional[CancellationToken] = None,
    ) -> None:
        self._base_url = base_url
        self._authorization = authorization_provider or NoAuthorizationProvider()
        self._options = options if options is not None else AnalysisOptions.model_validate({})
        self._timeout = timeout
        self._verify_ssl = verify_ssl
        self._transport = transport
        self._cancellation = cancellation or CancellationToken()

    @property
    def options(self) -> AnalysisOptions:
        return self._options

    def analyser(self, specification: str | dict[str, Any]) -> Analyser:
        """Build the catalog and validator for *specification*.

        Raises:
            ConfigurationError: If a required option is null.
            SpecParseError: If the document can not be parsed.
        """
        document = self._prepare(specification)
        catalog = build_catalog(document, self._options)
        validator = OpenAPIValidator(document)
        client = AnalysisClient(
            self._base_url,
            timeout=self._timeout,
            verify_ssl=self._verify_ssl,
            transport=self._transport,
        )
        executor = RequestExecutor(
            catalog,
            VariableStore(),
            client,
            validator=validator,
            authorization_provider=self._authorization,
            prerequisite_strategy=self._options.prerequisite_strategy or PrerequisiteStrategy.ALWAYS,
            cancellation=self._cancellation,
        )
        return Analyser(catalog, executor, client)

    def analyse(
        self,
        specification: str | dict[str, Any],
        entity_names: Optional[Iterable[str]] = None,
    ) -> list[AnalysisReport]:
        """Run special requests, then all (or the named) entity groups."""
        with self.analyser(specification) as analyser:
            if entity_names is None:
                return analyser.analyse_all()
            return analyser.analyse_entities(entity_names)

    def validate(self, specification: str | dict[str, Any]) -> RequestCatalog:
        """Build the catalog without sending any request."""
        return build_catalog(self._prepare(specification), self._options)

    def _prepare(self, specification: str | dict[str, Any]) -> dict[str, Any]:
        problems = self._options.validate_options()
        if problems:
            raise ConfigurationError("Invalid analysis options: " + "; ".join(problems))
        document = parse_spec(specification) if isinstance(specification, str) else specification
        validate_openapi_version(document)
        return document
