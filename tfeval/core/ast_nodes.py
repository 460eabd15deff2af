"""
Expression syntax tree.

Nodes are immutable dataclasses holding structure only; evaluation lives
in the evaluator and block expander.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple, Union

from .values import Value


class Expression:
    """Base class for all expression nodes."""


class BinaryOperator(Enum):
    """Binary operators, grouped by HCL precedence (lowest first)."""
    OR = "||"
    AND = "&&"
    EQUALS = "=="
    NOT_EQUALS = "!="
    LESS_THAN = "<"
    LESS_EQUAL = "<="
    GREATER_THAN = ">"
    GREATER_EQUAL = ">="
    ADD = "+"
    SUBTRACT = "-"
    MULTIPLY = "*"
    DIVIDE = "/"
    MODULO = "%"


class UnaryOperator(Enum):
    NOT = "!"
    NEGATE = "-"


@dataclass(frozen=True)
class Literal(Expression):
    """A constant value."""
    value: Value


@dataclass(frozen=True)
class VariableRef(Expression):
    """
    Reference to a name bound in the environment.

    Terraform references such as ``var.environment`` are a VariableRef
    for ``var`` wrapped in a GetAttr for ``environment``.
    """
    name: str


@dataclass(frozen=True)
class GetAttr(Expression):
    """Attribute access: ``target.name``."""
    target: Expression
    name: str


@dataclass(frozen=True)
class Index(Expression):
    """Index access: ``target[key]``."""
    target: Expression
    key: Expression


@dataclass(frozen=True)
class TemplateExpr(Expression):
    """
    String template with interpolations.

    Attributes:
        parts: Literal text chunks (str) and interpolated Expressions,
            in source order
    """
    parts: Tuple[Union[str, Expression], ...]


@dataclass(frozen=True)
class BinaryOp(Expression):
    operator: BinaryOperator
    left: Expression
    right: Expression


@dataclass(frozen=True)
class UnaryOp(Expression):
    operator: UnaryOperator
    operand: Expression


@dataclass(frozen=True)
class TupleExpr(Expression):
    """Tuple constructor: ``[a, b, c]``."""
    items: Tuple[Expression, ...] = ()


@dataclass(frozen=True)
class ObjectExpr(Expression):
    """
    Object constructor: ``{ name = expr, ... }``.

    Attributes:
        items: (key, value) pairs; a key is a plain str or an Expression
            that must evaluate to a string
    """
    items: Tuple[Tuple[Union[str, Expression], Expression], ...] = ()


@dataclass(frozen=True)
class FunctionCall(Expression):
    name: str
    args: Tuple[Expression, ...] = ()


@dataclass(frozen=True)
class Ternary(Expression):
    """
    Conditional expression: ``condition ? then_expr : else_expr``.

    The condition must be a bool. Only the selected branch is evaluated.
    """
    condition: Expression
    then_expr: Expression
    else_expr: Expression


@dataclass(frozen=True)
class Splat(Expression):
    """
    Splat projection: ``list_expr[*].a.b`` or ``list_expr[*].a["k"][0]``.

    Attributes:
        list_expr: Expression that must evaluate to a list
        attribute_path: Traversal applied to every element, in order. A str
            step reads an attribute; an Expression step is an index key.
    """
    list_expr: Expression
    attribute_path: Tuple[Union[str, Expression], ...]


@dataclass(frozen=True)
class BlockTemplate:
    """
    Body of a block whose attributes are still expressions.

    Attributes:
        block_type: Block type name (e.g. "ingress"), may be None
        attributes: (name, expression) pairs in declaration order
        blocks: Nested blocks, each a BlockTemplate (static) or a
            ForEachExpand (dynamic), in declaration order
    """
    block_type: Optional[str] = None
    attributes: Tuple[Tuple[str, Expression], ...] = ()
    blocks: Tuple[Union["BlockTemplate", "ForEachExpand"], ...] = ()


@dataclass(frozen=True)
class ForEachExpand(Expression):
    """
    Dynamic block: one concrete block per element of a collection.

    Attributes:
        collection: Expression that must evaluate to a list or map
        body: BlockTemplate, or an Expression evaluating to a map whose
            entries become the block's attributes
        iterator: Optional name bound to ``{key, value}`` per element, in
            addition to the plain ``key`` and ``value`` bindings
        block_type: Type name of the generated blocks
    """
    collection: Expression
    body: Union[BlockTemplate, Expression]
    iterator: Optional[str] = None
    block_type: Optional[str] = None
