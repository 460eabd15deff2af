"""
Tests for the expression evaluator: conditionals, splats and the
supporting expression kinds.
"""

import pytest

from tfeval.core import (
    BinaryOp,
    BinaryOperator,
    Environment,
    Evaluator,
    FunctionCall,
    GetAttr,
    Literal,
    Splat,
    TemplateExpr,
    Ternary,
    TupleExpr,
    TypeMismatchError,
    UndefinedVariableError,
    UnsupportedAttributeError,
    Value,
    ValueType,
    VariableRef,
    evaluate,
    parse_expression,
)
from tfeval.core.evaluator import static_type


def lit(obj):
    return Literal(Value.from_python(obj))


def run(text, variables=None, **kwargs):
    """Parse and evaluate, returning plain Python data."""
    return evaluate(parse_expression(text), variables, **kwargs).to_python()


# -- conditionals ---------------------------------------------------------

def test_ternary_true_selects_then():
    assert evaluate(Ternary(lit(True), lit("a"), lit("b"))) == Value.string("a")


def test_ternary_false_selects_else():
    assert evaluate(Ternary(lit(False), lit("a"), lit("b"))) == Value.string("b")


def test_ternary_does_not_evaluate_unselected_branch():
    """A branch that would fail is never touched when not selected."""
    failing = VariableRef("undefined_name")

    assert evaluate(Ternary(lit(True), lit(1), failing)) == Value.number(1)
    assert evaluate(Ternary(lit(False), failing, lit(2))) == Value.number(2)


def test_ternary_selected_branch_failure_propagates():
    with pytest.raises(UndefinedVariableError):
        evaluate(Ternary(lit(True), VariableRef("undefined_name"), lit(2)))


def test_ternary_non_bool_condition_is_type_mismatch():
    """No truthy or falsy coercion of the condition."""
    for condition in (lit(1), lit("true"), lit(None), lit([])):
        with pytest.raises(TypeMismatchError) as exc_info:
            evaluate(Ternary(condition, lit("a"), lit("b")))
        assert exc_info.value.expression == condition


def test_ternary_instance_type_example():
    expression = 'var.environment == "prod" ? "t3.large" : "t2.micro"'

    assert run(expression, {"var": {"environment": "dev"}}) == "t2.micro"
    assert run(expression, {"var": {"environment": "prod"}}) == "t3.large"


def test_ternary_number_and_string_branches_reconcile_to_string():
    assert evaluate(Ternary(lit(True), lit(1), lit("none"))) == Value.string("1")
    assert evaluate(Ternary(lit(False), lit("none"), lit(True))) == Value.string("true")


def test_ternary_null_branch_reconciles_with_anything():
    assert evaluate(Ternary(lit(True), lit(None), lit([1]))).is_null
    assert evaluate(Ternary(lit(False), lit(None), lit([1]))).to_python() == [1]


def test_ternary_inconsistent_branch_types_fail():
    """A list and a string cannot be reconciled."""
    with pytest.raises(TypeMismatchError) as exc_info:
        evaluate(Ternary(lit(True), TupleExpr((lit(1),)), lit("x")))
    assert "inconsistent types" in str(exc_info.value)


def test_ternary_unknown_branch_type_is_not_checked():
    """A reference in the unselected branch has no static type."""
    result = evaluate(Ternary(lit(True), lit([1]), VariableRef("anything")))
    assert result.to_python() == [1]


def test_static_type():
    assert static_type(lit("a")) == ValueType.STRING
    assert static_type(TupleExpr()) == ValueType.LIST
    assert static_type(TemplateExpr(("a-", VariableRef("x")))) == ValueType.STRING
    assert static_type(VariableRef("x")) is None
    assert static_type(BinaryOp(BinaryOperator.ADD, lit(1), lit(2))) == ValueType.NUMBER
    assert static_type(Ternary(VariableRef("c"), lit(1), lit("a"))) == ValueType.STRING


# -- splat ----------------------------------------------------------------

INSTANCES = [
    {"instance_type": "t2.micro", "tags": {"Name": "a"}},
    {"instance_type": "t3.large", "tags": {"Name": "b"}},
    {"instance_type": "t2.micro", "tags": {"Name": "c"}},
]


def test_splat_preserves_length_and_order():
    """One projected value per element, duplicates kept, order kept."""
    result = evaluate(Splat(lit(INSTANCES), ("instance_type",)))

    assert result.to_python() == ["t2.micro", "t3.large", "t2.micro"]
    assert len(result.as_list()) == len(INSTANCES)


def test_splat_nested_attribute_path():
    result = evaluate(Splat(VariableRef("web"), ("tags", "Name")), {"web": INSTANCES})
    assert result.to_python() == ["a", "b", "c"]


def test_splat_empty_list():
    assert evaluate(Splat(lit([]), ("id",))).to_python() == []


def test_splat_requires_list():
    with pytest.raises(TypeMismatchError):
        evaluate(Splat(lit({"id": "x"}), ("id",)))


def test_splat_missing_attribute_fails_whole_expression():
    """A single bad element fails the splat and names its index."""
    items = [{"id": "a"}, {"id": "b"}, {"name": "c"}]

    with pytest.raises(TypeMismatchError) as exc_info:
        evaluate(Splat(lit(items), ("id",)))
    assert "Element 2" in str(exc_info.value)
    assert isinstance(exc_info.value.expression, Splat)


def test_splat_non_map_element_fails():
    with pytest.raises(TypeMismatchError) as exc_info:
        evaluate(Splat(lit([{"id": "a"}, "b"]), ("id",)))
    assert "Element 1" in str(exc_info.value)


def test_splat_syntax_forms():
    variables = {"var": {"servers": INSTANCES}}

    assert run("var.servers[*].tags.Name", variables) == ["a", "b", "c"]
    assert run("var.servers.*.instance_type", variables) == ["t2.micro", "t3.large", "t2.micro"]
    assert run("length(var.servers[*].instance_type)", variables) == 3


def test_splat_index_applies_per_element():
    variables = {"var": {"rules": [
        {"cidrs": ["10.0.0.0/8", "a"], "tags": {"Name": "ssh"}},
        {"cidrs": ["0.0.0.0/0", "b"], "tags": {"Name": "http"}},
    ]}}

    assert run("var.rules[*].cidrs[0]", variables) == ["10.0.0.0/8", "0.0.0.0/0"]
    assert run('var.rules[*].tags["Name"]', variables) == ["ssh", "http"]
    assert run("var.rules.*.cidrs[0]", variables) == ["10.0.0.0/8", "a"]


def test_splat_index_out_of_range_fails_whole_expression():
    variables = {"var": {"rules": [{"cidrs": ["a", "b"]}, {"cidrs": ["c"]}]}}

    with pytest.raises(TypeMismatchError) as exc_info:
        run("var.rules[*].cidrs[1]", variables)
    assert "Element 1" in str(exc_info.value)
    assert "cidrs[1]" in str(exc_info.value)


def test_non_finite_index_is_type_mismatch():
    variables = {"var": {"l": ["a", "b"]}}

    with pytest.raises(TypeMismatchError):
        run('var.l[tonumber("nan")]', variables)
    with pytest.raises(TypeMismatchError):
        evaluate(parse_expression("var.l[n]"), {"var": {"l": ["a"]}, "n": float("inf")})


# -- other expression kinds -----------------------------------------------

def test_template_interpolation():
    variables = {"var": {"env": "dev", "n": 3, "on": True}}
    assert run('"${var.env}-${var.n}-${var.on}"', variables) == "dev-3-true"


def test_lone_interpolation_keeps_type():
    assert run('"${var.ports}"', {"var": {"ports": [22, 80]}}) == [22, 80]


def test_interpolating_a_list_fails():
    with pytest.raises(TypeMismatchError):
        run('"ports: ${var.ports}"', {"var": {"ports": [22]}})


def test_undefined_variable_reported():
    with pytest.raises(UndefinedVariableError) as exc_info:
        run("var.environment", {})
    assert "var" in str(exc_info.value)


def test_missing_attribute_reported():
    with pytest.raises(UnsupportedAttributeError):
        run("var.missing", {"var": {"environment": "dev"}})


def test_error_expression_is_innermost_node():
    expression = GetAttr(GetAttr(VariableRef("var"), "settings"), "port")

    with pytest.raises(UnsupportedAttributeError) as exc_info:
        evaluate(expression, {"var": {"settings": {}}})
    assert exc_info.value.expression == expression


def test_arithmetic_and_comparison():
    assert run("1 + 2 * 3") == 7
    assert run("(1 + 2) * 3") == 9
    assert run("10 / 4") == 2.5
    assert run("10 / 5") == 2
    assert run("7 % 3") == 1
    assert run("-var.n + 1", {"var": {"n": 5}}) == -4
    assert run("3 >= 3 && 2 < 1") is False


def test_division_by_zero():
    with pytest.raises(TypeMismatchError):
        run("1 / 0")


def test_arithmetic_requires_numbers():
    with pytest.raises(TypeMismatchError):
        run('"1" + 1')


def test_logical_operators_short_circuit():
    assert run("false && var.missing") is False
    assert run("true || var.missing") is True


def test_logical_operators_require_bools():
    with pytest.raises(TypeMismatchError):
        run("1 && true")


def test_equality_compares_values():
    assert run('"a" == "a"') is True
    assert run("1 == 1.0") is True
    assert run('1 == "1"') is False
    assert run("[1, 2] != [1, 2]") is False


def test_object_and_tuple_constructors():
    result = run('{ name = "web", "ports" = [22, 80], (var.k) = true }', {"var": {"k": "dyn"}})
    assert result == {"name": "web", "ports": [22, 80], "dyn": True}


def test_builtin_functions():
    variables = {"var": {"tags": {"b": "2", "a": "1"}, "names": ["x", "y"]}}

    assert run('upper("dev")') == "DEV"
    assert run('join(",", var.names)', variables) == "x,y"
    assert run("keys(var.tags)", variables) == ["a", "b"]
    assert run("values(var.tags)", variables) == ["1", "2"]
    assert run('lookup(var.tags, "c", "none")', variables) == "none"
    assert run('contains(var.names, "y")', variables) is True
    assert run("concat(var.names, [\"z\"])", variables) == ["x", "y", "z"]
    assert run('merge(var.tags, { c = "3" })', variables) == {"b": "2", "a": "1", "c": "3"}
    assert run('coalesce("", null, "fallback")') == "fallback"
    assert run('tonumber("42")') == 42
    with pytest.raises(TypeMismatchError):
        run('tonumber("inf")')
    assert run("tostring(42)") == "42"


def test_unknown_function_is_undefined():
    with pytest.raises(UndefinedVariableError):
        evaluate(FunctionCall("no_such_function", (lit(1),)))


def test_wrong_argument_count():
    with pytest.raises(TypeMismatchError):
        run("length()")


def test_custom_functions():
    """Extra functions are merged over the built-ins."""
    evaluator = Evaluator(functions={"double": lambda value: Value.number(value.as_number() * 2)})
    result = evaluator.evaluate(parse_expression("double(21)"), Environment())
    assert result == Value.number(42)


def test_unknown_map_order_rejected():
    with pytest.raises(ValueError):
        Evaluator(map_order="random")


def test_evaluation_does_not_mutate_environment():
    env = Environment.from_python({"var": {"environment": "dev"}})
    before = env.flatten()

    Evaluator().evaluate(parse_expression('var.environment == "dev" ? 1 : 2'), env)

    assert env.flatten() == before
