"""
Built-in functions callable from expressions.

Each function takes evaluated Values and returns a Value. Argument type
checks go through the strict Value accessors, so a wrong type surfaces
as a TypeMismatchError.
"""

import math
from typing import Callable, Dict, List, Optional

from .errors import TypeMismatchError
from .values import Value, ValueType


def _require_args(name: str, args: tuple, minimum: int, maximum: Optional[int] = None):
    if len(args) < minimum or (maximum is not None and len(args) > maximum):
        if maximum == minimum:
            expected = str(minimum)
        elif maximum is None:
            expected = f"at least {minimum}"
        else:
            expected = f"{minimum} to {maximum}"
        raise TypeMismatchError(
            f"Function '{name}' expects {expected} arguments, got {len(args)}"
        )


def fn_length(*args: Value) -> Value:
    _require_args("length", args, 1, 1)
    value = args[0]
    if value.tag in (ValueType.LIST, ValueType.MAP, ValueType.STRING):
        return Value.number(len(value.raw))
    raise TypeMismatchError(f"Cannot take the length of a {value.tag.value} value")


def fn_upper(*args: Value) -> Value:
    _require_args("upper", args, 1, 1)
    return Value.string(args[0].as_string().upper())


def fn_lower(*args: Value) -> Value:
    _require_args("lower", args, 1, 1)
    return Value.string(args[0].as_string().lower())


def fn_join(*args: Value) -> Value:
    _require_args("join", args, 2)
    separator = args[0].as_string()
    parts: List[str] = []
    for collection in args[1:]:
        parts.extend(item.to_template_string() for item in collection.as_list())
    return Value.string(separator.join(parts))


def fn_concat(*args: Value) -> Value:
    items: List[Value] = []
    for collection in args:
        items.extend(collection.as_list())
    return Value.sequence(items)


def fn_lookup(*args: Value) -> Value:
    """lookup(map, key[, default])"""
    _require_args("lookup", args, 2, 3)
    entries = args[0].as_map()
    key = args[1].as_string()
    if key in entries:
        return entries[key]
    if len(args) == 3:
        return args[2]
    return args[0].get_attr(key)


def fn_keys(*args: Value) -> Value:
    """Map keys in lexical order."""
    _require_args("keys", args, 1, 1)
    return Value.sequence(Value.string(key) for key in sorted(args[0].as_map()))


def fn_values(*args: Value) -> Value:
    """Map values ordered by their keys' lexical order."""
    _require_args("values", args, 1, 1)
    entries = args[0].as_map()
    return Value.sequence(entries[key] for key in sorted(entries))


def fn_tostring(*args: Value) -> Value:
    _require_args("tostring", args, 1, 1)
    value = args[0]
    if value.is_null:
        return value
    return Value.string(value.to_template_string())


def fn_tonumber(*args: Value) -> Value:
    _require_args("tonumber", args, 1, 1)
    value = args[0]
    if value.is_null or value.tag == ValueType.NUMBER:
        return value
    text = value.as_string().strip()
    try:
        return Value.number(int(text))
    except ValueError:
        pass
    try:
        number = float(text)
    except ValueError:
        raise TypeMismatchError(f"Cannot convert {text!r} to a number")
    if not math.isfinite(number):
        raise TypeMismatchError(f"Cannot convert {text!r} to a number")
    return Value.number(number)


def fn_contains(*args: Value) -> Value:
    _require_args("contains", args, 2, 2)
    return Value.boolean(args[1] in args[0].as_list())


def fn_merge(*args: Value) -> Value:
    merged: Dict[str, Value] = {}
    for entries in args:
        if entries.is_null:
            continue
        merged.update(entries.as_map())
    return Value.mapping(merged)


def fn_coalesce(*args: Value) -> Value:
    """First argument that is neither null nor an empty string."""
    _require_args("coalesce", args, 1)
    for value in args:
        if value.is_null:
            continue
        if value.tag == ValueType.STRING and value.raw == "":
            continue
        return value
    raise TypeMismatchError("No non-null, non-empty-string arguments to coalesce")


BUILTIN_FUNCTIONS: Dict[str, Callable[..., Value]] = {
    "length": fn_length,
    "upper": fn_upper,
    "lower": fn_lower,
    "join": fn_join,
    "concat": fn_concat,
    "lookup": fn_lookup,
    "keys": fn_keys,
    "values": fn_values,
    "tostring": fn_tostring,
    "tonumber": fn_tonumber,
    "contains": fn_contains,
    "merge": fn_merge,
    "coalesce": fn_coalesce,
}
