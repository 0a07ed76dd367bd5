"""Structural classification of BrAPI endpoint paths.

Every endpoint path is matched against an ordered list of patterns. The first
pattern that matches the *whole* path wins, and the kind of that pattern
decides which requests the builder derives from the path's operations.

Order matters because several patterns accept the same string once their
optional groups are empty: ``/search/germplasm/{searchResultsDbId}`` also has
the shape of an entity-with-id path, and must be tried as a search result
first.

=============  ===================================  ======================
Kind           Example                              Captures
=============  ===================================  ======================
SEARCH_RESULT  ``/search/studies/{searchResultsDbId}``  entity, id parameter
SEARCH         ``/search/studies``                  entity
ENTITIES       ``/studies``, ``/vendor/orders``     segments
ENTITY         ``/studies/{studyDbId}``             segments, id parameter
TABLE          ``/observations/table``              entity
SUB_PATH       ``/germplasm/{germplasmDbId}/mcpd``  parent, id, sub-entity
=============  ===================================  ======================
"""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass
from typing import Optional

from brapi_analyser.exceptions import ClassificationError
from brapi_analyser.result import Result


class PathKind(str, enum.Enum):
    SEARCH_RESULT = "search_result"
    SEARCH = "search"
    ENTITIES = "entities"
    ENTITY = "entity"
    TABLE = "table"
    SUB_PATH = "sub_path"


@dataclass(frozen=True)
class PathMatch:
    """The outcome of classifying one path.

    Attributes:
        kind: Which structural pattern matched.
        path: The classified path template.
        segments: Entity path segments used to name the entity when the
            response schema has no usable title.
        id_parameter: Name of the ``{...}`` id parameter, if the pattern
            has one.
        parent: First path segment of a sub-path, i.e. the parent entity's
            collection (``germplasm`` in ``/germplasm/{id}/mcpd``).
    """

    kind: PathKind
    path: str
    segments: tuple[str, ...]
    id_parameter: Optional[str] = None
    parent: Optional[str] = None


def _segments(*groups: Optional[str]) -> tuple[str, ...]:
    return tuple(group for group in groups if group)


def _search_result(m: re.Match[str], path: str) -> PathMatch:
    return PathMatch(PathKind.SEARCH_RESULT, path, _segments(m.group(1)), id_parameter=m.group(3))


def _search(m: re.Match[str], path: str) -> PathMatch:
    return PathMatch(PathKind.SEARCH, path, _segments(m.group(1)))


def _entities(m: re.Match[str], path: str) -> PathMatch:
    return PathMatch(PathKind.ENTITIES, path, _segments(m.group(1), m.group(2), m.group(3)))


def _entity(m: re.Match[str], path: str) -> PathMatch:
    return PathMatch(PathKind.ENTITY, path, _segments(m.group(1), m.group(2)), id_parameter=m.group(3))


def _table(m: re.Match[str], path: str) -> PathMatch:
    return PathMatch(PathKind.TABLE, path, _segments(m.group(1)))


def _sub_path(m: re.Match[str], path: str) -> PathMatch:
    return PathMatch(
        PathKind.SUB_PATH,
        path,
        _segments(m.group(1), m.group(2), m.group(4)),
        id_parameter=m.group(3),
        parent=m.group(1),
    )


_RULES = (
    (re.compile(r"/search/(\w+)(/attributes|/attributevalues)?/\{(\w+)\}"), _search_result),
    (re.compile(r"/search/(\w+)(/attributes|/attributevalues)?"), _search),
    (re.compile(r"/(\w+)(?:/(\w+))?(?:/(\w+))?(?<!/table)"), _entities),
    (re.compile(r"/(\w+)(?:/(\w+))?/\{(\w+)\}"), _entity),
    (re.compile(r"/(\w+)/table"), _table),
    (re.compile(r"/(\w+)(?:/(\w+))?/\{(\w+)\}/(\w+)"), _sub_path),
)


class PathClassifier:
    """Route endpoint paths to exactly one :class:`PathKind`."""

    def __init__(self) -> None:
        self._rules = _RULES

    def classify(self, path: str) -> Result[PathMatch]:
        """Classify *path* by the first fully matching pattern.

        Returns:
            A successful result holding the :class:`PathMatch`, or a failed
            result carrying a :class:`~brapi_analyser.exceptions.ClassificationError`
            when no pattern matches.
        """
        for pattern, handler in self._rules:
            match = pattern.fullmatch(path)
            if match:
                return Result.success(handler(match, path))
        return Result.fail(ClassificationError(f"Path '{path}' matches no known pattern"))
