"""Tests for the request catalog container."""

from __future__ import annotations

from typing import Any

import pytest

from brapi_analyser.analyser.catalog import RequestCatalog, build_catalog
from brapi_analyser.models import AnalysisOptions, APIRequest, HTTPMethod


def _request(path: str, index: int, entity: str | None = "Study", method: HTTPMethod = HTTPMethod.GET) -> APIRequest:
    return APIRequest(name=f"r{index}", index=index, entity_name=entity, method=method, path_template=path)


class TestRequestCatalog:
    def test_lookup_by_key_forms(self) -> None:
        catalog = RequestCatalog()
        catalog.add(_request("/studies", 10))
        catalog.add(_request("/search/studies", 30, method=HTTPMethod.POST))
        assert catalog.get("/studies") is not None
        assert catalog.get("GET /studies") is not None
        assert catalog.get("post /search/studies") is not None
        assert catalog.get("/search/studies") is None
        assert "POST /search/studies" in catalog
        assert 42 not in catalog
        assert "GETT /studies" not in catalog
        assert len(catalog) == 2

    def test_replacing_entry_logs(self, caplog: pytest.LogCaptureFixture) -> None:
        catalog = RequestCatalog()
        catalog.add(_request("/studies", 10))
        catalog.add(_request("/studies", 11))
        assert len(catalog) == 1
        assert catalog.get("/studies").index == 11
        assert "Replacing catalog entry '/studies'" in caplog.text

    def test_special_requests_kept_apart(self) -> None:
        catalog = RequestCatalog()
        catalog.add(_request("/studies", 10))
        catalog.add_special(_request("/commoncropnames", 0, entity=None))
        assert [r.key for r in catalog.special_requests] == ["/commoncropnames"]
        assert [r.key for r in catalog.requests] == ["/studies"]
        assert [e.path for e in catalog.endpoints] == ["/commoncropnames", "/studies"]
        assert catalog.keys == ["/studies", "/commoncropnames"]

    def test_groups_sorted_by_name_then_index(self) -> None:
        catalog = RequestCatalog()
        catalog.add(_request("/trials/{trialDbId}", 20, entity="Trial"))
        catalog.add(_request("/studies/{studyDbId}", 20))
        catalog.add(_request("/trials", 10, entity="Trial"))
        catalog.add(_request("/studies", 10))
        groups = catalog.requests_by_entity()
        assert list(groups) == ["Study", "Trial"]
        assert [r.path_template for r in groups["Trial"]] == ["/trials", "/trials/{trialDbId}"]

    def test_equal_indices_keep_insertion_order(self) -> None:
        catalog = RequestCatalog()
        catalog.add(_request("/observations/table", 50, entity="Observation"))
        catalog.add(_request("/observations/table", 50, entity="Observation", method=HTTPMethod.POST))
        assert [r.method for r in catalog.requests_for("Observation")] == [HTTPMethod.GET, HTTPMethod.POST]

    def test_requests_for_is_case_insensitive(self) -> None:
        catalog = RequestCatalog()
        catalog.add(_request("/studies", 10))
        assert len(catalog.requests_for("study")) == 1
        assert catalog.requests_for("trial") == []

    def test_endpoint_records(self) -> None:
        catalog = RequestCatalog()
        catalog.add(_request("/studies", 10))
        (endpoint,) = catalog.endpoints
        assert endpoint.category == "r10"
        assert endpoint.entity_name == "Study"
        assert str(endpoint) == "GET /studies"


class TestBuildCatalog:
    def test_empty_document(self) -> None:
        catalog = build_catalog({"openapi": "3.0.0", "paths": {}}, AnalysisOptions.model_validate({}))
        assert len(catalog) == 0
        assert catalog.entity_names == []

    def test_every_request_iterable(self, brapi_spec: dict[str, Any]) -> None:
        catalog = build_catalog(brapi_spec, AnalysisOptions.model_validate({}))
        assert len(list(catalog)) == len(catalog) == 9
