from typing import Any, Callable, Generic, Optional, TypeVar

T = TypeVar("T")

_MISSING = object()


class OptionalResult(Generic[T]):
    """
    Explicit container for a value that may be absent.

    Returned by find_by_id and by optional-shaped query methods so that
    "not found" is a value the caller inspects rather than a None check.
    """

    __slots__ = ("_value",)

    def __init__(self, value: Any = _MISSING):
        self._value = value

    @classmethod
    def of(cls, value: T) -> "OptionalResult[T]":
        if value is None:
            raise ValueError("OptionalResult.of() requires a value; use empty()")
        return cls(value)

    @classmethod
    def of_nullable(cls, value: Optional[T]) -> "OptionalResult[T]":
        return cls() if value is None else cls(value)

    @classmethod
    def empty(cls) -> "OptionalResult[T]":
        return cls()

    def is_present(self) -> bool:
        return self._value is not _MISSING

    def is_empty(self) -> bool:
        return self._value is _MISSING

    def get(self) -> T:
        if self._value is _MISSING:
            raise LookupError("No value present")
        return self._value

    def or_else(self, other: Optional[T]) -> Optional[T]:
        return self._value if self._value is not _MISSING else other

    def map(self, func: Callable[[T], Any]) -> "OptionalResult[Any]":
        if self._value is _MISSING:
            return self
        return OptionalResult.of_nullable(func(self._value))

    def __bool__(self) -> bool:
        return self.is_present()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, OptionalResult):
            return NotImplemented
        return self._value is other._value or (
            self._value is not _MISSING
            and other._value is not _MISSING
            and self._value == other._value
        )

    def __repr__(self) -> str:
        if self._value is _MISSING:
            return "OptionalResult.empty"
        return f"OptionalResult[{self._value!r}]"
