"""
Core evaluation functionality for tfeval.

This module provides the business logic:
- The value model, scoped environments and expression tree
- Evaluation of conditional, splat and dynamic block expressions
- Parsing Terraform configuration files and rendering them to values
"""

from .values import Value, ValueType
from .errors import (
    ErrorKind,
    EvaluationError,
    ExpressionSyntaxError,
    TypeMismatchError,
    UndefinedVariableError,
    UnsupportedAttributeError,
)
from .environment import Environment
from .ast_nodes import (
    BinaryOp,
    BinaryOperator,
    BlockTemplate,
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
from .block_expander import BlockExpander, CollectionItem, ExpandedBlock, iterate_collection
from .evaluator import Evaluator, evaluate, expand
from .expression_parser import parse_expression, parse_template
from .config_loader import ConfigLoader, RenderedConfig, RenderedResource, TerraformVariable
from .tfvars_handler import TfvarsHandler

__all__ = [
    "Value",
    "ValueType",
    "ErrorKind",
    "EvaluationError",
    "ExpressionSyntaxError",
    "TypeMismatchError",
    "UndefinedVariableError",
    "UnsupportedAttributeError",
    "Environment",
    "BinaryOp",
    "BinaryOperator",
    "BlockTemplate",
    "Expression",
    "ForEachExpand",
    "FunctionCall",
    "GetAttr",
    "Index",
    "Literal",
    "ObjectExpr",
    "Splat",
    "TemplateExpr",
    "Ternary",
    "TupleExpr",
    "UnaryOp",
    "UnaryOperator",
    "VariableRef",
    "BlockExpander",
    "CollectionItem",
    "ExpandedBlock",
    "iterate_collection",
    "Evaluator",
    "evaluate",
    "expand",
    "parse_expression",
    "parse_template",
    "ConfigLoader",
    "RenderedConfig",
    "RenderedResource",
    "TerraformVariable",
    "TfvarsHandler",
]
