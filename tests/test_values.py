"""
Tests for the value model.
"""

import pytest

from tfeval.core import TypeMismatchError, UnsupportedAttributeError, Value, ValueType
from tfeval.core.values import common_type, format_number


def test_from_python_checks_bool_before_number():
    """True must become a Bool, not the Number 1."""
    assert Value.from_python(True).tag == ValueType.BOOL
    assert Value.from_python(1).tag == ValueType.NUMBER


def test_from_python_nested_round_trip():
    """Nested lists and dicts convert back to the same Python data."""
    data = {"rules": [{"port": 22, "open": True}], "name": "web", "extra": None}
    value = Value.from_python(data)

    assert value.tag == ValueType.MAP
    assert value.as_map()["rules"].tag == ValueType.LIST
    assert value.to_python() == data


def test_from_python_rejects_unknown_types():
    with pytest.raises(TypeMismatchError):
        Value.from_python(object())


def test_accessors_enforce_tag():
    """Each accessor only works for its own tag."""
    value = Value.string("dev")
    assert value.as_string() == "dev"

    for accessor in (value.as_number, value.as_bool, value.as_list, value.as_map):
        with pytest.raises(TypeMismatchError) as exc_info:
            accessor()
        assert "got string" in str(exc_info.value)


def test_values_are_immutable():
    """Lists are stored as tuples, maps as read-only mappings."""
    source = [Value.number(1)]
    value = Value.sequence(source)
    source.append(Value.number(2))
    assert len(value.raw) == 1

    mapping = Value.mapping({"a": Value.number(1)})
    with pytest.raises(TypeError):
        mapping.raw["b"] = Value.number(2)


def test_map_preserves_insertion_order():
    value = Value.from_python({"zeta": 1, "alpha": 2, "mid": 3})
    assert list(value.as_map()) == ["zeta", "alpha", "mid"]


def test_get_attr_on_map():
    value = Value.from_python({"port": 22})
    assert value.get_attr("port") == Value.number(22)


def test_get_attr_missing_key_is_unsupported_attribute():
    value = Value.from_python({"port": 22})
    with pytest.raises(UnsupportedAttributeError):
        value.get_attr("protocol")


def test_get_attr_on_non_map_is_type_mismatch():
    with pytest.raises(TypeMismatchError):
        Value.from_python([1, 2]).get_attr("port")


def test_index_list_and_map():
    """Lists take whole-number indexes, maps take string keys."""
    items = Value.from_python(["a", "b"])
    assert items.index(Value.number(1)) == Value.string("b")

    with pytest.raises(UnsupportedAttributeError):
        items.index(Value.number(5))
    with pytest.raises(TypeMismatchError):
        items.index(Value.number(0.5))
    with pytest.raises(TypeMismatchError):
        items.index(Value.number(float("nan")))
    with pytest.raises(TypeMismatchError):
        items.index(Value.number(float("inf")))
    with pytest.raises(TypeMismatchError):
        items.index(Value.string("0"))

    entries = Value.from_python({"key": "v"})
    assert entries.index(Value.string("key")) == Value.string("v")


def test_to_template_string_coercions():
    """Only strings, numbers and bools may be interpolated."""
    assert Value.string("x").to_template_string() == "x"
    assert Value.number(2.0).to_template_string() == "2"
    assert Value.number(2.5).to_template_string() == "2.5"
    assert Value.boolean(False).to_template_string() == "false"

    for value in (Value.null(), Value.from_python([1]), Value.from_python({"a": 1})):
        with pytest.raises(TypeMismatchError):
            value.to_template_string()


def test_format_number():
    assert format_number(3) == "3"
    assert format_number(3.0) == "3"
    assert format_number(0.25) == "0.25"


@pytest.mark.parametrize("first,second,expected", [
    (ValueType.STRING, ValueType.STRING, ValueType.STRING),
    (ValueType.NULL, ValueType.LIST, ValueType.LIST),
    (ValueType.MAP, ValueType.NULL, ValueType.MAP),
    (ValueType.NUMBER, ValueType.STRING, ValueType.STRING),
    (ValueType.STRING, ValueType.BOOL, ValueType.STRING),
    (ValueType.NUMBER, ValueType.BOOL, None),
    (ValueType.LIST, ValueType.MAP, None),
    (ValueType.LIST, ValueType.STRING, None),
])
def test_common_type(first, second, expected):
    assert common_type(first, second) == expected


def test_error_message_includes_kind():
    """String form of an error starts with its kind."""
    with pytest.raises(TypeMismatchError) as exc_info:
        Value.number(1).as_bool()
    assert str(exc_info.value) == "TypeMismatch: Expected bool, got number"
