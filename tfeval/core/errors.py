"""
Evaluation errors for tfeval.

All evaluation errors are terminal for the expression being evaluated.
The innermost failure aborts the enclosing expression and no partial
result is ever returned to the caller.
"""

from enum import Enum
from typing import Any, Optional


class ErrorKind(Enum):
    """Kinds of evaluation failure surfaced to the caller."""
    UNDEFINED_VARIABLE = "UndefinedVariable"
    TYPE_MISMATCH = "TypeMismatch"
    UNSUPPORTED_ATTRIBUTE = "UnsupportedAttribute"


class EvaluationError(Exception):
    """
    Base class for all evaluation errors.

    Attributes:
        kind: ErrorKind of the failure
        message: Human-readable description
        expression: Sub-expression that triggered the failure (may be None)
    """

    kind: ErrorKind = ErrorKind.TYPE_MISMATCH

    def __init__(self, message: str, expression: Optional[Any] = None):
        self.message = message
        self.expression = expression
        super().__init__(message)

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.message}"

    def with_context(self, context: str) -> "EvaluationError":
        """Return a copy of this error with a location prefix added."""
        error = type(self)(f"{context}: {self.message}", self.expression)
        error.__cause__ = self
        return error


class UndefinedVariableError(EvaluationError):
    """Raised when a name is not bound in any enclosing scope."""
    kind = ErrorKind.UNDEFINED_VARIABLE


class TypeMismatchError(EvaluationError):
    """Raised when a value's type tag does not fit the operation."""
    kind = ErrorKind.TYPE_MISMATCH


class UnsupportedAttributeError(EvaluationError):
    """Raised when a map has no such attribute or a list no such index."""
    kind = ErrorKind.UNSUPPORTED_ATTRIBUTE


class ExpressionSyntaxError(ValueError):
    """Raised when expression text cannot be parsed."""

    def __init__(self, message: str, source: str = "", position: int = 0):
        self.source = source
        self.position = position
        if source:
            message = f"{message} at position {position} in {source!r}"
        super().__init__(message)
