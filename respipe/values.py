from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1


@dataclass(frozen=True)
class SimpleString:
    value: str


@dataclass(frozen=True)
class RespError:
    message: str

    @property
    def prefix(self) -> str:
        """Leading error word, e.g. ``ERR`` or ``WRONGTYPE``."""
        return self.message.split(" ", 1)[0] if self.message else ""


@dataclass(frozen=True)
class Integer:
    value: int

    def __post_init__(self) -> None:
        if not INT64_MIN <= self.value <= INT64_MAX:
            raise ValueError(f"integer reply out of 64-bit range: {self.value}")


@dataclass(frozen=True)
class BulkString:
    value: bytes | None

    @property
    def is_null(self) -> bool:
        return self.value is None

    def text(self, encoding: str = "utf-8") -> str | None:
        if self.value is None:
            return None
        return self.value.decode(encoding, errors="replace")


@dataclass(frozen=True)
class Array:
    items: tuple[RespValue, ...] | None

    def __post_init__(self) -> None:
        # Callers may hand in a list; freeze it so the tree stays immutable.
        if self.items is not None and not isinstance(self.items, tuple):
            object.__setattr__(self, "items", tuple(self.items))

    @property
    def is_null(self) -> bool:
        return self.items is None

    def __len__(self) -> int:
        return 0 if self.items is None else len(self.items)

    def __iter__(self):
        return iter(self.items or ())

    def __getitem__(self, index: int) -> RespValue:
        if self.items is None:
            raise IndexError("null array has no elements")
        return self.items[index]


RespValue = Union[SimpleString, RespError, Integer, BulkString, Array]

NULL_BULK_STRING = BulkString(None)
NULL_ARRAY = Array(None)


def to_python(value: RespValue, decode: bool = False) -> Any:
    """Flatten a reply tree into plain Python values.

    Simple strings become ``str``, integers ``int``, bulk strings ``bytes``
    (or ``str`` when *decode* is set), arrays ``list`` and both nils
    ``None``.  Errors are kept as :class:`RespError` so they stay
    distinguishable from data.
    """
    if isinstance(value, SimpleString):
        return value.value
    if isinstance(value, RespError):
        return value
    if isinstance(value, Integer):
        return value.value
    if isinstance(value, BulkString):
        return value.text() if decode else value.value
    if isinstance(value, Array):
        if value.items is None:
            return None
        return [to_python(v, decode) for v in value.items]
    raise TypeError(f"not a RESP value: {value!r}")
