"""
Value model for the expression evaluator.

A Value is a tagged variant: the type tag decides which accessor is valid.
Values are immutable once built; lists are stored as tuples and maps as
read-only mappings that keep insertion order.
"""

import math
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Union

from .errors import TypeMismatchError, UnsupportedAttributeError


class ValueType(Enum):
    """Type tags of the value model."""
    STRING = "string"
    NUMBER = "number"
    BOOL = "bool"
    LIST = "list"
    MAP = "map"
    NULL = "null"


Number = Union[int, float]


@dataclass(frozen=True)
class Value:
    """
    A tagged evaluator value.

    Attributes:
        tag: ValueType tag
        raw: Underlying Python payload (str, int/float, bool, tuple of
            Value, read-only mapping of str to Value, or None)
    """
    tag: ValueType
    raw: Any = None

    def __post_init__(self):
        if self.tag == ValueType.LIST and not isinstance(self.raw, tuple):
            object.__setattr__(self, "raw", tuple(self.raw))
        elif self.tag == ValueType.MAP and not isinstance(self.raw, MappingProxyType):
            object.__setattr__(self, "raw", MappingProxyType(dict(self.raw)))

    # -- construction ---------------------------------------------------

    @classmethod
    def string(cls, value: str) -> "Value":
        return cls(ValueType.STRING, value)

    @classmethod
    def number(cls, value: Number) -> "Value":
        return cls(ValueType.NUMBER, value)

    @classmethod
    def boolean(cls, value: bool) -> "Value":
        return cls(ValueType.BOOL, bool(value))

    @classmethod
    def sequence(cls, items) -> "Value":
        return cls(ValueType.LIST, tuple(items))

    @classmethod
    def mapping(cls, entries: Mapping[str, "Value"]) -> "Value":
        return cls(ValueType.MAP, dict(entries))

    @classmethod
    def null(cls) -> "Value":
        return cls(ValueType.NULL, None)

    @classmethod
    def from_python(cls, obj: Any) -> "Value":
        """
        Build a Value from plain Python data.

        Args:
            obj: str, int, float, bool, None, list/tuple, dict or Value

        Returns:
            Equivalent Value

        Raises:
            TypeMismatchError: If obj has no counterpart in the value model
        """
        if isinstance(obj, Value):
            return obj
        if obj is None:
            return cls.null()
        # bool first: bool is a subclass of int
        if isinstance(obj, bool):
            return cls.boolean(obj)
        if isinstance(obj, (int, float)):
            return cls.number(obj)
        if isinstance(obj, str):
            return cls.string(obj)
        if isinstance(obj, (list, tuple)):
            return cls.sequence(cls.from_python(item) for item in obj)
        if isinstance(obj, dict):
            return cls.mapping({str(k): cls.from_python(v) for k, v in obj.items()})
        raise TypeMismatchError(f"Cannot convert {type(obj).__name__} to a value")

    def to_python(self) -> Any:
        """Convert back to plain Python data (lists and dicts)."""
        if self.tag == ValueType.LIST:
            return [item.to_python() for item in self.raw]
        if self.tag == ValueType.MAP:
            return {key: item.to_python() for key, item in self.raw.items()}
        return self.raw

    # -- accessors ------------------------------------------------------

    def _expect(self, expected: ValueType) -> Any:
        if self.tag != expected:
            raise TypeMismatchError(
                f"Expected {expected.value}, got {self.tag.value}"
            )
        return self.raw

    def as_string(self) -> str:
        return self._expect(ValueType.STRING)

    def as_number(self) -> Number:
        return self._expect(ValueType.NUMBER)

    def as_bool(self) -> bool:
        return self._expect(ValueType.BOOL)

    def as_list(self) -> List["Value"]:
        return list(self._expect(ValueType.LIST))

    def as_map(self) -> Dict[str, "Value"]:
        return dict(self._expect(ValueType.MAP))

    @property
    def is_null(self) -> bool:
        return self.tag == ValueType.NULL

    def to_template_string(self) -> str:
        """
        Coerce to a string for interpolation.

        Only String, Number and Bool may be interpolated. Integral numbers
        render without a fractional part (2.0 -> "2").

        Raises:
            TypeMismatchError: For Null, List and Map values
        """
        if self.tag == ValueType.STRING:
            return self.raw
        if self.tag == ValueType.BOOL:
            return "true" if self.raw else "false"
        if self.tag == ValueType.NUMBER:
            return format_number(self.raw)
        raise TypeMismatchError(
            f"Cannot use a {self.tag.value} value in string interpolation"
        )

    def get_attr(self, name: str) -> "Value":
        """
        Read a map attribute.

        Raises:
            TypeMismatchError: If this value is not a map
            UnsupportedAttributeError: If the map has no such key
        """
        if self.tag != ValueType.MAP:
            raise TypeMismatchError(
                f"Cannot access attribute '{name}' on a {self.tag.value} value"
            )
        if name not in self.raw:
            raise UnsupportedAttributeError(
                f"This object does not have an attribute named '{name}'"
            )
        return self.raw[name]

    def index(self, key: "Value") -> "Value":
        """
        Index a list by number or a map by string key.

        Raises:
            TypeMismatchError: If the key type does not fit the collection
            UnsupportedAttributeError: If the index or key is absent
        """
        if self.tag == ValueType.LIST:
            position = whole_number(key.as_number(), "List index")
            if position < 0 or position >= len(self.raw):
                raise UnsupportedAttributeError(
                    f"Index {position} out of range for list of length {len(self.raw)}"
                )
            return self.raw[position]
        if self.tag == ValueType.MAP:
            return self.get_attr(key.as_string())
        raise TypeMismatchError(f"Cannot index a {self.tag.value} value")

    def __repr__(self) -> str:
        return f"Value({self.tag.value}, {self.to_python()!r})"


def whole_number(number: Number, what: str) -> int:
    """
    Convert a number used as a count or index to an int.

    Raises:
        TypeMismatchError: If the number is NaN, infinite or fractional
    """
    if not math.isfinite(number) or number != int(number):
        raise TypeMismatchError(f"{what} must be a whole number, got {number}")
    return int(number)


def format_number(number: Number) -> str:
    """Format a number the way interpolation renders it."""
    if isinstance(number, float) and number.is_integer():
        return str(int(number))
    return str(number)


def common_type(first: ValueType, second: ValueType) -> Optional[ValueType]:
    """
    Find the type two values reconcile to, or None when they cannot.

    Equal tags reconcile to themselves, Null reconciles with anything, and
    Number/Bool reconcile with String to String.
    """
    if first == second:
        return first
    if first == ValueType.NULL:
        return second
    if second == ValueType.NULL:
        return first
    scalars = {ValueType.NUMBER, ValueType.BOOL}
    if first == ValueType.STRING and second in scalars:
        return ValueType.STRING
    if second == ValueType.STRING and first in scalars:
        return ValueType.STRING
    return None


TRUE = Value.boolean(True)
FALSE = Value.boolean(False)
NULL = Value.null()
