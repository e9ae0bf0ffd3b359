"""A tagged union holding exactly one value of a fixed list of types."""

from __future__ import annotations

from typing import Any, Sequence


class BadVariantAccess(RuntimeError):
    """The variant does not hold the requested alternative."""

    def __init__(self, message: str = "bad variant access") -> None:
        super().__init__(message)


_UNSET = object()


class Variant:
    """Holds one value whose exact type is one of ``types``."""

    def __init__(self, types: Sequence[type], value: Any = _UNSET) -> None:
        self._types = tuple(types)
        if not self._types:
            raise ValueError("variant must contain at least one type")
        if value is _UNSET:
            self._index = 0
            self._value = self._types[0]()
        else:
            self.set(value)

    def __repr__(self) -> str:
        return f"Variant({self._types[self._index].__name__}, {self._value!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Variant):
            return NotImplemented
        return (
            self._types == other._types
            and self._index == other._index
            and self._value == other._value
        )

    @property
    def index(self) -> int:
        """Position of the held alternative in the type list."""
        return self._index

    @property
    def types(self) -> tuple:
        return self._types

    def _index_of(self, kind: type) -> int:
        try:
            return self._types.index(kind)
        except ValueError:
            raise TypeError(f"{kind!r} is not an alternative of this variant") from None

    def holds_alternative(self, kind: type) -> bool:
        return self._index == self._index_of(kind)

    def get(self, kind: type) -> Any:
        """The held value, if it is of type ``kind``."""
        if not self.holds_alternative(kind):
            raise BadVariantAccess()
        return self._value

    def get_index(self, index: int) -> Any:
        """The held value, if it is the alternative at ``index``."""
        if not 0 <= index < len(self._types):
            raise IndexError("index out of bounds")
        if self._index != index:
            raise BadVariantAccess()
        return self._value

    def set(self, value: Any) -> None:
        """Replace the held value; its exact type must be an alternative."""
        self._index = self._index_of(type(value))
        self._value = value