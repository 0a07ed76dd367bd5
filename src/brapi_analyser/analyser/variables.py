"""Run-scoped variable store and JSONPath extraction.

Requests pass values to each other through a :class:`VariableStore`: a list
request caches ``studyDbId1`` from its response, and the get request for the
same entity substitutes it into ``/studies/{studyDbId}``. A store lives for
exactly one analysis run and is handed to the executor explicitly.

A lookup miss is always an explicit
:class:`~brapi_analyser.exceptions.VariableResolutionError`, never an empty
string.
"""

from __future__ import annotations

import re
import threading
from typing import Any

from jsonpath_ng import parse as parse_jsonpath
from jsonpath_ng.exceptions import JsonPathLexerError, JsonPathParserError

from brapi_analyser.exceptions import VariableResolutionError
from brapi_analyser.models import Variable, VariableValue
from brapi_analyser.result import Result

# Slices, wildcards, filters and recursive descent can match many nodes
_INDEFINITE = re.compile(r"\[\s*-?\d*\s*:|\*|\.\.|\?\s*\(|\[[^\]]*,")


class VariableStore:
    """Map from variable name to the most recently extracted value.

    Reads and writes are serialised with a lock so that a store can be
    shared if requests are ever scheduled on more than one thread.
    """

    def __init__(self) -> None:
        self._values: dict[str, VariableValue] = {}
        self._lock = threading.Lock()

    def put(self, name: str, value: VariableValue) -> None:
        with self._lock:
            self._values[name] = value

    def get(self, name: str) -> Result[VariableValue]:
        with self._lock:
            value = self._values.get(name)
        if value is None:
            return Result.fail(VariableResolutionError(f"Variable '{name}' has no value"))
        return Result.success(value)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._values

    def __len__(self) -> int:
        with self._lock:
            return len(self._values)

    def snapshot(self) -> dict[str, Any]:
        """Return ``{name: value}`` for every stored variable."""
        with self._lock:
            return {name: v.value for name, v in self._values.items()}

    def clear(self) -> None:
        with self._lock:
            self._values.clear()


def is_definite(json_path: str) -> bool:
    """Whether *json_path* can match at most one node."""
    return _INDEFINITE.search(json_path) is None


def extract_variable(document: Any, variable: Variable) -> Result[VariableValue]:
    """Evaluate *variable* against a parsed response body.

    A definite path yields the single matching value and fails when nothing
    matches. An indefinite path yields the list of matches (possibly empty).
    With ``convert_to_list`` the value is wrapped in a single-element list.
    """
    try:
        expression = parse_jsonpath(variable.json_path)
    except (JsonPathLexerError, JsonPathParserError) as exc:
        return Result.fail(
            VariableResolutionError(f"Invalid JSONPath '{variable.json_path}': {exc}")
        )

    matches = [match.value for match in expression.find(document)]
    if is_definite(variable.json_path):
        if not matches:
            return Result.fail(
                VariableResolutionError(
                    f"No results for path '{variable.json_path}' (variable '{variable.variable_name}')"
                )
            )
        value: Any = matches[0]
    else:
        value = matches

    if variable.convert_to_list:
        value = [value]

    return Result.success(
        VariableValue(
            variable_name=variable.variable_name,
            parameter_name=variable.parameter_name,
            value=value,
        )
    )
