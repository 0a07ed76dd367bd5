"""The request catalog built from one OpenAPI document.

A :class:`RequestCatalog` holds every :class:`~brapi_analyser.models.APIRequest`
derived from the document, keyed by catalog key (see
:func:`~brapi_analyser.models.catalog_key`), plus the diagnostics collected
while building it: unmatched, skipped and deprecated endpoints, and the
per-endpoint errors that stopped individual requests from being built.
None of these diagnostics abort construction.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from typing import Any, Optional

from brapi_analyser.exceptions import AnalyserError, ConfigurationError
from brapi_analyser.models import AnalysisOptions, APIRequest, Endpoint, normalise_catalog_key

logger = logging.getLogger(__name__)

UNMATCHED = "Unmatched"
SKIPPED = "Skipped"
DEPRECATED = "Deprecated"


class RequestCatalog:
    """Requests and build diagnostics for one analysis run."""

    def __init__(self) -> None:
        self._requests: dict[str, APIRequest] = {}
        self._special_keys: list[str] = []
        self.unmatched_endpoints: list[Endpoint] = []
        self.skipped_endpoints: list[Endpoint] = []
        self.deprecated_endpoints: list[Endpoint] = []
        self.errors: list[AnalyserError] = []

    # ------------------------------------------------------------------ #
    # Building
    # ------------------------------------------------------------------ #

    def add(self, request: APIRequest) -> None:
        if request.key in self._requests:
            logger.warning("Replacing catalog entry '%s'", request.key)
        self._requests[request.key] = request

    def add_special(self, request: APIRequest) -> None:
        self.add(request)
        if request.key not in self._special_keys:
            self._special_keys.append(request.key)

    # ------------------------------------------------------------------ #
    # Lookup
    # ------------------------------------------------------------------ #

    def get(self, key: str) -> Optional[APIRequest]:
        """Look up a request by catalog key (``"/studies"``, ``"POST /search/studies"``).

        Raises:
            ConfigurationError: If *key* has an unknown method prefix.
        """
        return self._requests.get(normalise_catalog_key(key))

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, str):
            return False
        try:
            return self.get(key) is not None
        except ConfigurationError:
            return False

    def __len__(self) -> int:
        return len(self._requests)

    def __iter__(self) -> Iterator[APIRequest]:
        return iter(self._requests.values())

    @property
    def keys(self) -> list[str]:
        return list(self._requests)

    @property
    def requests(self) -> list[APIRequest]:
        """Entity requests in insertion order (special requests excluded)."""
        return [r for k, r in self._requests.items() if k not in self._special_keys]

    @property
    def special_requests(self) -> list[APIRequest]:
        return [self._requests[k] for k in self._special_keys]

    @property
    def endpoints(self) -> list[Endpoint]:
        """One :class:`Endpoint` record per built request, special requests first."""
        ordered = self.special_requests + self.requests
        return [
            Endpoint(
                path=r.path_template,
                method=r.method,
                entity_name=r.entity_name,
                category=r.name,
            )
            for r in ordered
        ]

    def requests_by_entity(self) -> dict[str, list[APIRequest]]:
        """Group entity requests by entity name.

        Groups are returned in entity-name order; requests within a group
        are sorted by index, keeping insertion order for equal indices.
        """
        groups: dict[str, list[APIRequest]] = {}
        for request in self.requests:
            if request.entity_name is None:
                continue
            groups.setdefault(request.entity_name, []).append(request)
        return {
            name: sorted(groups[name], key=lambda r: r.index)
            for name in sorted(groups)
        }

    @property
    def entity_names(self) -> list[str]:
        return list(self.requests_by_entity())

    def requests_for(self, entity_name: str) -> list[APIRequest]:
        """Requests for one entity, matched case-insensitively, in execution order."""
        lowered = entity_name.lower()
        for name, requests in self.requests_by_entity().items():
            if name.lower() == lowered:
                return requests
        return []


def build_catalog(document: dict[str, Any], options: AnalysisOptions) -> RequestCatalog:
    """Build the catalog for *document* under *options*.

    Every path item is classified and built independently; problems are
    recorded on the returned catalog rather than raised.
    """
    from brapi_analyser.analyser.builder import RequestBuilder
    from brapi_analyser.parser.extractor import extract_paths

    builder = RequestBuilder(document, options)
    catalog = RequestCatalog()
    for path_item in extract_paths(document):
        builder.build(path_item, catalog)

    logger.debug(
        "Catalog built: %d requests, %d special, %d skipped, %d unmatched, %d deprecated, %d errors",
        len(catalog.requests),
        len(catalog.special_requests),
        len(catalog.skipped_endpoints),
        len(catalog.unmatched_endpoints),
        len(catalog.deprecated_endpoints),
        len(catalog.errors),
    )
    return catalog
