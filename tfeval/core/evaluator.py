"""
Tree-walking expression evaluator.

Evaluation is a pure function of (expression, environment): no node
mutates the environment, and a failure anywhere aborts the whole
expression without returning a partial value.
"""

import logging
from typing import Any, Callable, Dict, List, Mapping, Optional

from .ast_nodes import (
    BinaryOp,
    BinaryOperator,
    Expression,
    ForEachExpand,
    FunctionCall,
    GetAttr,
    Index,
    Literal,
    ObjectExpr,
    Splat,
    TemplateExpr,
    Ternary,
    TupleExpr,
    UnaryOp,
    UnaryOperator,
    VariableRef,
)
from .block_expander import MAP_ORDER_INSERTION, MAP_ORDERS, BlockExpander, ExpandedBlock
from .environment import Environment
from .errors import (
    EvaluationError,
    TypeMismatchError,
    UndefinedVariableError,
)
from .functions import BUILTIN_FUNCTIONS
from .values import FALSE, TRUE, Value, ValueType, common_type

logger = logging.getLogger(__name__)

_COMPARISONS = {
    BinaryOperator.LESS_THAN: lambda a, b: a < b,
    BinaryOperator.LESS_EQUAL: lambda a, b: a <= b,
    BinaryOperator.GREATER_THAN: lambda a, b: a > b,
    BinaryOperator.GREATER_EQUAL: lambda a, b: a >= b,
}

_ARITHMETIC = {
    BinaryOperator.ADD: lambda a, b: a + b,
    BinaryOperator.SUBTRACT: lambda a, b: a - b,
    BinaryOperator.MULTIPLY: lambda a, b: a * b,
    BinaryOperator.DIVIDE: lambda a, b: a / b,
    BinaryOperator.MODULO: lambda a, b: a % b,
}


class Evaluator:
    """
    Evaluates expression trees against an Environment.

    Args:
        map_order: Iteration order for maps in dynamic blocks,
            "insertion" (default) or "lexical"
        functions: Extra functions callable from expressions, merged over
            the built-ins
    """

    def __init__(
        self,
        map_order: str = MAP_ORDER_INSERTION,
        functions: Optional[Mapping[str, Callable[..., Value]]] = None,
    ):
        if map_order not in MAP_ORDERS:
            raise ValueError(
                f"Unknown map order '{map_order}', expected one of {', '.join(MAP_ORDERS)}"
            )
        self.map_order = map_order
        self.functions: Dict[str, Callable[..., Value]] = dict(BUILTIN_FUNCTIONS)
        if functions:
            self.functions.update(functions)
        self.expander = BlockExpander(self)
        self._handlers = {
            Literal: self._eval_literal,
            VariableRef: self._eval_variable,
            GetAttr: self._eval_get_attr,
            Index: self._eval_index,
            TemplateExpr: self._eval_template,
            BinaryOp: self._eval_binary,
            UnaryOp: self._eval_unary,
            TupleExpr: self._eval_tuple,
            ObjectExpr: self._eval_object,
            FunctionCall: self._eval_function,
            Ternary: self._eval_ternary,
            Splat: self._eval_splat,
            ForEachExpand: self._eval_for_each,
        }

    def evaluate(self, expr: Expression, env: Environment) -> Value:
        """
        Evaluate an expression.

        Args:
            expr: Expression node
            env: Scope holding the visible variables

        Returns:
            Resulting Value

        Raises:
            UndefinedVariableError: Reference to an unbound name or function
            TypeMismatchError: Operand of the wrong type
            UnsupportedAttributeError: Missing map attribute or list index
        """
        handler = self._handlers.get(type(expr))
        if handler is None:
            raise TypeError(f"Unsupported expression node: {type(expr).__name__}")
        try:
            return handler(expr, env)
        except EvaluationError as error:
            # Innermost failing node wins
            if error.expression is None:
                error.expression = expr
            raise

    def expand(self, node: ForEachExpand, env: Environment) -> List[ExpandedBlock]:
        """Expand a dynamic block; see BlockExpander.expand."""
        return self.expander.expand(node, env)

    # -- leaves and traversal -------------------------------------------

    def _eval_literal(self, expr: Literal, env: Environment) -> Value:
        return expr.value

    def _eval_variable(self, expr: VariableRef, env: Environment) -> Value:
        return env.lookup(expr.name)

    def _eval_get_attr(self, expr: GetAttr, env: Environment) -> Value:
        return self.evaluate(expr.target, env).get_attr(expr.name)

    def _eval_index(self, expr: Index, env: Environment) -> Value:
        target = self.evaluate(expr.target, env)
        return target.index(self.evaluate(expr.key, env))

    def _eval_template(self, expr: TemplateExpr, env: Environment) -> Value:
        # A lone interpolation yields its value unconverted
        if len(expr.parts) == 1 and isinstance(expr.parts[0], Expression):
            return self.evaluate(expr.parts[0], env)

        chunks = []
        for part in expr.parts:
            if isinstance(part, str):
                chunks.append(part)
            else:
                chunks.append(self.evaluate(part, env).to_template_string())
        return Value.string("".join(chunks))

    # -- operators ------------------------------------------------------

    def _eval_binary(self, expr: BinaryOp, env: Environment) -> Value:
        operator = expr.operator

        if operator == BinaryOperator.AND:
            if not self.evaluate(expr.left, env).as_bool():
                return FALSE
            return Value.boolean(self.evaluate(expr.right, env).as_bool())
        if operator == BinaryOperator.OR:
            if self.evaluate(expr.left, env).as_bool():
                return TRUE
            return Value.boolean(self.evaluate(expr.right, env).as_bool())

        left = self.evaluate(expr.left, env)
        right = self.evaluate(expr.right, env)

        if operator == BinaryOperator.EQUALS:
            return Value.boolean(left == right)
        if operator == BinaryOperator.NOT_EQUALS:
            return Value.boolean(left != right)
        if operator in _COMPARISONS:
            return Value.boolean(_COMPARISONS[operator](left.as_number(), right.as_number()))

        a, b = left.as_number(), right.as_number()
        if operator in (BinaryOperator.DIVIDE, BinaryOperator.MODULO) and b == 0:
            raise TypeMismatchError("Division by zero")
        return Value.number(_normalize_number(_ARITHMETIC[operator](a, b)))

    def _eval_unary(self, expr: UnaryOp, env: Environment) -> Value:
        operand = self.evaluate(expr.operand, env)
        if expr.operator == UnaryOperator.NOT:
            return Value.boolean(not operand.as_bool())
        return Value.number(-operand.as_number())

    # -- constructors and calls -----------------------------------------

    def _eval_tuple(self, expr: TupleExpr, env: Environment) -> Value:
        return Value.sequence([self.evaluate(item, env) for item in expr.items])

    def _eval_object(self, expr: ObjectExpr, env: Environment) -> Value:
        entries: Dict[str, Value] = {}
        for key, value_expr in expr.items:
            if isinstance(key, Expression):
                key = self.evaluate(key, env).to_template_string()
            entries[key] = self.evaluate(value_expr, env)
        return Value.mapping(entries)

    def _eval_function(self, expr: FunctionCall, env: Environment) -> Value:
        function = self.functions.get(expr.name)
        if function is None:
            raise UndefinedVariableError(f"Call to unknown function '{expr.name}'")
        args = [self.evaluate(arg, env) for arg in expr.args]
        return function(*args)

    # -- the three language features ------------------------------------

    def _eval_ternary(self, expr: Ternary, env: Environment) -> Value:
        condition = self.evaluate(expr.condition, env)
        if condition.tag != ValueType.BOOL:
            raise TypeMismatchError(
                f"Condition must be a bool, got {condition.tag.value}", expr.condition
            )

        if condition.raw:
            selected, unselected = expr.then_expr, expr.else_expr
        else:
            selected, unselected = expr.else_expr, expr.then_expr

        value = self.evaluate(selected, env)
        other = static_type(unselected)
        if other is None:
            return value

        target = common_type(value.tag, other)
        if target is None:
            raise TypeMismatchError(
                f"Conditional branches have inconsistent types: "
                f"{value.tag.value} and {other.value}",
                expr,
            )
        if target == ValueType.STRING and value.tag in (ValueType.NUMBER, ValueType.BOOL):
            return Value.string(value.to_template_string())
        return value

    def _eval_splat(self, expr: Splat, env: Environment) -> Value:
        collection = self.evaluate(expr.list_expr, env)
        if collection.tag != ValueType.LIST:
            raise TypeMismatchError(
                f"Splat requires a list, got {collection.tag.value}", expr.list_expr
            )

        # Index keys do not depend on the element
        steps = [
            step if isinstance(step, str) else self.evaluate(step, env)
            for step in expr.attribute_path
        ]

        # Validate every element before building any output
        projected = []
        for position, element in enumerate(collection.raw):
            current = element
            try:
                for step in steps:
                    if isinstance(step, str):
                        current = current.get_attr(step)
                    else:
                        current = current.index(step)
            except EvaluationError as error:
                path = _describe_path(steps)
                raise TypeMismatchError(
                    f"Element {position} does not expose '{path}': {error.message}", expr
                )
            projected.append(current)

        logger.debug(f"Splat projected {len(projected)} elements")
        return Value.sequence(projected)

    def _eval_for_each(self, expr: ForEachExpand, env: Environment) -> Value:
        return Value.sequence(block.to_value() for block in self.expand(expr, env))


def _describe_path(steps: List[Any]) -> str:
    parts = []
    for step in steps:
        if isinstance(step, str):
            parts.append(f".{step}" if parts else step)
        elif step.tag == ValueType.STRING:
            parts.append(f'["{step.raw}"]')
        else:
            parts.append(f"[{step.to_python()!r}]")
    return "".join(parts)


def static_type(expr: Any) -> Optional[ValueType]:
    """
    Type of an expression when it is known without evaluating it.

    Returns None when the type depends on the environment.
    """
    if isinstance(expr, Literal):
        return expr.value.tag
    if isinstance(expr, TemplateExpr):
        if len(expr.parts) == 1 and isinstance(expr.parts[0], Expression):
            return static_type(expr.parts[0])
        return ValueType.STRING
    if isinstance(expr, (TupleExpr, Splat, ForEachExpand)):
        return ValueType.LIST
    if isinstance(expr, ObjectExpr):
        return ValueType.MAP
    if isinstance(expr, UnaryOp):
        return ValueType.BOOL if expr.operator == UnaryOperator.NOT else ValueType.NUMBER
    if isinstance(expr, BinaryOp):
        if expr.operator in _ARITHMETIC:
            return ValueType.NUMBER
        return ValueType.BOOL
    if isinstance(expr, Ternary):
        then_type = static_type(expr.then_expr)
        else_type = static_type(expr.else_expr)
        if then_type is None or else_type is None:
            return None
        return common_type(then_type, else_type)
    return None


def _normalize_number(number):
    if isinstance(number, float) and number.is_integer():
        return int(number)
    return number


def evaluate(expr: Expression, variables: Optional[Mapping[str, Any]] = None, **kwargs) -> Value:
    """
    Evaluate an expression against plain Python variables.

    Args:
        expr: Expression node
        variables: Name to Python value (or Value) bindings
        **kwargs: Passed to Evaluator

    Returns:
        Resulting Value
    """
    return Evaluator(**kwargs).evaluate(expr, Environment.from_python(variables))


def expand(node: ForEachExpand, variables: Optional[Mapping[str, Any]] = None, **kwargs) -> List[ExpandedBlock]:
    """Expand a dynamic block against plain Python variables."""
    return Evaluator(**kwargs).expand(node, Environment.from_python(variables))
