"""Tests for the variable store and JSONPath extraction."""

from __future__ import annotations

import threading

import pytest

from brapi_analyser.analyser.variables import VariableStore, extract_variable, is_definite
from brapi_analyser.exceptions import VariableResolutionError
from brapi_analyser.models import Variable, VariableValue


BODY = {
    "result": {
        "data": [
            {"studyDbId": "s1", "seasons": ["2020"]},
            {"studyDbId": "s2"},
            {"studyDbId": "s3"},
        ],
        "searchResultsDbId": "abc",
    }
}


class TestVariableStore:
    def test_put_and_get(self) -> None:
        store = VariableStore()
        store.put("studyDbId1", VariableValue(variable_name="studyDbId1", value="s1"))
        result = store.get("studyDbId1")
        assert result.ok
        assert result.value.value == "s1"
        assert "studyDbId1" in store
        assert len(store) == 1

    def test_miss_is_an_error(self) -> None:
        result = VariableStore().get("studyDbId1")
        assert result.failed
        (error,) = result.errors
        assert isinstance(error, VariableResolutionError)
        assert "studyDbId1" in error.message

    def test_later_put_wins(self) -> None:
        store = VariableStore()
        store.put("x", VariableValue(variable_name="x", value=1))
        store.put("x", VariableValue(variable_name="x", value=2))
        assert store.snapshot() == {"x": 2}

    def test_clear(self) -> None:
        store = VariableStore()
        store.put("x", VariableValue(variable_name="x", value=1))
        store.clear()
        assert len(store) == 0

    def test_concurrent_puts(self) -> None:
        store = VariableStore()

        def worker(offset: int) -> None:
            for i in range(100):
                name = f"v{offset}-{i}"
                store.put(name, VariableValue(variable_name=name, value=i))

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        assert len(store) == 400


class TestIsDefinite:
    @pytest.mark.parametrize(
        "path, definite",
        [
            ("$.result.data[0].studyDbId", True),
            ("$.result.searchResultsDbId", True),
            ("$.result.data[0:10].studyDbId", False),
            ("$.result.data[*].studyDbId", False),
            ("$..studyDbId", False),
            ("$.result.data[0,1]", False),
        ],
    )
    def test_paths(self, path: str, definite: bool) -> None:
        assert is_definite(path) is definite


class TestExtractVariable:
    def test_definite_path(self) -> None:
        result = extract_variable(
            BODY, Variable(variable_name="studyDbId1", parameter_name="studyDbId", json_path="$.result.data[0].studyDbId")
        )
        assert result.ok
        assert result.value == VariableValue(variable_name="studyDbId1", parameter_name="studyDbId", value="s1")

    def test_definite_path_without_match(self) -> None:
        result = extract_variable(BODY, Variable(variable_name="x", json_path="$.result.missing"))
        assert result.failed
        assert "No results for path '$.result.missing'" in result.combined_message()

    def test_indefinite_path_gives_list(self) -> None:
        result = extract_variable(
            BODY, Variable(variable_name="studyDbIds1", json_path="$.result.data[0:2].studyDbId")
        )
        assert result.value.value == ["s1", "s2"]

    def test_indefinite_path_may_be_empty(self) -> None:
        result = extract_variable({"result": {"data": []}}, Variable(variable_name="ids", json_path="$.result.data[*].id"))
        assert result.ok
        assert result.value.value == []

    def test_convert_to_list(self) -> None:
        result = extract_variable(
            {"result": {"data": ["Maize", "Wheat"]}},
            Variable(variable_name="commonCropNames", json_path="$.result.data[0]", convert_to_list=True),
        )
        assert result.value.value == ["Maize"]

    def test_object_value(self) -> None:
        result = extract_variable(BODY, Variable(variable_name="newStudy", json_path="$.result.data[0]"))
        assert result.value.value == {"studyDbId": "s1", "seasons": ["2020"]}

    def test_invalid_expression(self) -> None:
        result = extract_variable(BODY, Variable(variable_name="x", json_path="$.result[["))
        assert result.failed
        assert "Invalid JSONPath" in result.combined_message()
