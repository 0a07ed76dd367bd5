"""Tests for structural path classification."""

from __future__ import annotations

import pytest

from brapi_analyser.analyser.classifier import PathClassifier, PathKind
from brapi_analyser.exceptions import ClassificationError


@pytest.fixture
def classifier() -> PathClassifier:
    return PathClassifier()


class TestClassify:
    @pytest.mark.parametrize(
        "path, kind",
        [
            ("/search/studies/{searchResultsDbId}", PathKind.SEARCH_RESULT),
            ("/search/germplasm/attributes/{searchResultsDbId}", PathKind.SEARCH_RESULT),
            ("/search/studies", PathKind.SEARCH),
            ("/search/germplasm/attributevalues", PathKind.SEARCH),
            ("/studies", PathKind.ENTITIES),
            ("/vendor/orders", PathKind.ENTITIES),
            ("/germplasm/attributes/categories", PathKind.ENTITIES),
            ("/studies/{studyDbId}", PathKind.ENTITY),
            ("/vendor/orders/{orderId}", PathKind.ENTITY),
            ("/observations/table", PathKind.TABLE),
            ("/germplasm/{germplasmDbId}/pedigree", PathKind.SUB_PATH),
            ("/vendor/plates/{vendorPlateDbId}/results", PathKind.SUB_PATH),
        ],
    )
    def test_kind(self, classifier: PathClassifier, path: str, kind: PathKind) -> None:
        result = classifier.classify(path)
        assert result.ok
        assert result.value.kind == kind
        assert result.value.path == path

    def test_search_result_beats_entity(self, classifier: PathClassifier) -> None:
        match = classifier.classify("/search/studies/{searchResultsDbId}").value
        assert match.kind == PathKind.SEARCH_RESULT
        assert match.segments == ("studies",)
        assert match.id_parameter == "searchResultsDbId"

    def test_search_beats_entities(self, classifier: PathClassifier) -> None:
        assert classifier.classify("/search/studies").value.kind == PathKind.SEARCH

    def test_table_is_not_an_entity_list(self, classifier: PathClassifier) -> None:
        match = classifier.classify("/observationunits/table").value
        assert match.kind == PathKind.TABLE
        assert match.segments == ("observationunits",)

    def test_entity_captures(self, classifier: PathClassifier) -> None:
        match = classifier.classify("/vendor/orders/{orderId}").value
        assert match.segments == ("vendor", "orders")
        assert match.id_parameter == "orderId"
        assert match.parent is None

    def test_entities_captures(self, classifier: PathClassifier) -> None:
        match = classifier.classify("/germplasm/attributes/categories").value
        assert match.segments == ("germplasm", "attributes", "categories")
        assert match.id_parameter is None

    def test_sub_path_captures(self, classifier: PathClassifier) -> None:
        match = classifier.classify("/germplasm/{germplasmDbId}/pedigree").value
        assert match.parent == "germplasm"
        assert match.id_parameter == "germplasmDbId"
        assert match.segments == ("germplasm", "pedigree")


class TestUnmatched:
    @pytest.mark.parametrize(
        "path",
        [
            "/maps/{mapDbId}/linkagegroups/{linkageGroupDbId}",
            "/a/b/c/d",
            "/",
            "studies",
            "/studies/{studyDbId}/",
        ],
    )
    def test_no_pattern(self, classifier: PathClassifier, path: str) -> None:
        result = classifier.classify(path)
        assert result.failed
        (error,) = result.errors
        assert isinstance(error, ClassificationError)
        assert path in error.message

    def test_deterministic(self, classifier: PathClassifier) -> None:
        first = classifier.classify("/germplasm/{germplasmDbId}/pedigree").value
        second = PathClassifier().classify("/germplasm/{germplasmDbId}/pedigree").value
        assert first == second

    def test_nested_table_is_unmatched(self, classifier: PathClassifier) -> None:
        # a trailing /table never lists entities, and only /<entity>/table is a table
        result = classifier.classify("/germplasm/attributes/table")
        assert result.failed
        assert isinstance(result.errors[0], ClassificationError)
        assert classifier.classify("/germplasm/table").value.kind == PathKind.TABLE
