"""
Result values returned by parsers.

Parsers never raise; they return ``Ok(value)`` or ``Err(error)``. Errors are
usually exception instances so that ``unwrap()`` can raise them.
"""

from dataclasses import dataclass
from typing import Any, Callable, Generic, TypeVar, Union

from .equality import values_equal

V = TypeVar("V")
E = TypeVar("E")


@dataclass(frozen=True, slots=True)
class Ok(Generic[V]):
    value: V

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False

    def unwrap(self) -> V:
        return self.value

    def unwrap_or(self, default: Any) -> V:
        return self.value

    def unwrap_err(self):
        raise ValueError(f"Called unwrap_err on {self!r}")

    def map(self, fn: Callable[[V], Any]) -> "Ok":
        return Ok(fn(self.value))

    def and_then(self, fn: Callable[[V], "Result"]) -> "Result":
        return fn(self.value)

    def map_err(self, fn: Callable[[Any], Any]) -> "Ok":
        return self


@dataclass(frozen=True, slots=True)
class Err(Generic[E]):
    error: E

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True

    def unwrap(self):
        if isinstance(self.error, BaseException):
            raise self.error
        raise ValueError(f"Called unwrap on {self!r}")

    def unwrap_or(self, default: Any) -> Any:
        return default

    def unwrap_err(self) -> E:
        return self.error

    def map(self, fn: Callable[[Any], Any]) -> "Err":
        return self

    def and_then(self, fn: Callable[[Any], "Result"]) -> "Err":
        return self

    def map_err(self, fn: Callable[[E], Any]) -> "Err":
        return Err(fn(self.error))


Result = Union[Ok[V], Err[E]]


def errors_equal(a: Any, b: Any) -> bool:
    """Exceptions compare by type and message; anything else structurally."""
    if isinstance(a, BaseException) or isinstance(b, BaseException):
        return type(a) is type(b) and str(a) == str(b)
    return values_equal(a, b)


def result_equality(
    equals: Callable[[Any, Any], bool] = values_equal,
) -> Callable[[Any, Any], bool]:
    """
    Lift ``equals`` over results.

    Two successes compare their values with ``equals``, two failures compare
    their errors with ``errors_equal``, a success never equals a failure.
    """

    def results_equal(a: Any, b: Any) -> bool:
        if isinstance(a, Ok) and isinstance(b, Ok):
            return equals(a.value, b.value)
        if isinstance(a, Err) and isinstance(b, Err):
            return errors_equal(a.error, b.error)
        return False

    return results_equal
