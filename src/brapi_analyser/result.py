"""Error-accumulating result container.

Building a catalog and executing requests both need to carry on after a
failure and report *every* problem found, not just the first. A
:class:`Result` holds either a value or an ordered list of
:class:`~brapi_analyser.exceptions.AnalyserError` instances, and the
combinators below thread values through a pipeline while errors pile up.

Example::

    values = Result.collect(store.get(name) for name in names)
    if values.failed:
        return report_failure(values.combined_message())
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import Any, Generic, Optional, TypeVar

from brapi_analyser.exceptions import AnalyserError

T = TypeVar("T")
U = TypeVar("U")


class Result(Generic[T]):
    """A value, or the errors explaining why there is no value.

    A result with an empty error list is *successful*; its value may still
    be ``None`` (e.g. "no authorization header needed").

    Args:
        value: The successful value.
        errors: Errors accumulated while trying to produce the value.
    """

    __slots__ = ("_value", "_errors")

    def __init__(
        self,
        value: Optional[T] = None,
        errors: Optional[list[AnalyserError]] = None,
    ) -> None:
        self._value = value
        self._errors: list[AnalyserError] = list(errors or [])

    # ------------------------------------------------------------------ #
    # Construction
    # ------------------------------------------------------------------ #

    @classmethod
    def success(cls, value: Optional[T] = None) -> Result[T]:
        return cls(value=value)

    @classmethod
    def fail(cls, *errors: AnalyserError) -> Result[T]:
        if not errors:
            raise ValueError("Result.fail() needs at least one error")
        return cls(errors=list(errors))

    @classmethod
    def collect(cls, results: Iterable[Result[Any]]) -> Result[list[Any]]:
        """Merge many results into one.

        The merged value is the list of every successful value, in order.
        The merged result fails when any input failed, and then carries the
        errors of *all* failed inputs rather than only the first.
        """
        values: list[Any] = []
        errors: list[AnalyserError] = []
        for result in results:
            if result.failed:
                errors.extend(result.errors)
            else:
                values.append(result.value)
        if errors:
            return cls(errors=errors)
        return cls(value=values)

    # ------------------------------------------------------------------ #
    # Inspection
    # ------------------------------------------------------------------ #

    @property
    def ok(self) -> bool:
        return not self._errors

    @property
    def failed(self) -> bool:
        return bool(self._errors)

    @property
    def value(self) -> Optional[T]:
        return self._value

    @property
    def errors(self) -> list[AnalyserError]:
        return list(self._errors)

    def messages(self) -> list[str]:
        return [str(error) for error in self._errors]

    def combined_message(self, separator: str = ", ") -> str:
        return separator.join(self.messages())

    # ------------------------------------------------------------------ #
    # Combinators
    # ------------------------------------------------------------------ #

    def map(self, fn: Callable[[T], U]) -> Result[U]:
        """Apply *fn* to the value of a successful result."""
        if self.failed:
            return Result(errors=self._errors)
        return Result(value=fn(self._value))  # type: ignore[arg-type]

    def flat_map(self, fn: Callable[[T], Result[U]]) -> Result[U]:
        """Chain a step that may itself fail."""
        if self.failed:
            return Result(errors=self._errors)
        return fn(self._value)  # type: ignore[arg-type]

    def or_else(self, default: T) -> T:
        if self.failed:
            return default
        return self._value  # type: ignore[return-value]

    def __repr__(self) -> str:
        if self.failed:
            return f"Result(errors={self.messages()!r})"
        return f"Result(value={self._value!r})"
