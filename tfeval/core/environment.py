"""
Scoped variable bindings for expression evaluation.
"""

import re
from types import MappingProxyType
from typing import Any, Dict, Iterator, Mapping, Optional

from .errors import UndefinedVariableError
from .values import Value

# HCL identifiers: letter or underscore, then letters, digits, underscores, hyphens
IDENTIFIER_PATTERN = re.compile(r'^[A-Za-z_][A-Za-z0-9_-]*$')


class Environment:
    """
    Immutable mapping from variable name to Value.

    A child scope shadows its parent's bindings without mutating them.
    Loop iterations of a dynamic block each get their own child scope.
    """

    def __init__(
        self,
        bindings: Optional[Mapping[str, Value]] = None,
        parent: Optional["Environment"] = None,
    ):
        bindings = dict(bindings or {})
        for name, value in bindings.items():
            if not IDENTIFIER_PATTERN.match(name):
                raise ValueError(f"Invalid binding name: {name!r}")
            if not isinstance(value, Value):
                raise TypeError(f"Binding '{name}' is not a Value: {value!r}")
        self._bindings = MappingProxyType(bindings)
        self._parent = parent

    @classmethod
    def from_python(cls, variables: Optional[Mapping[str, Any]] = None) -> "Environment":
        """
        Build a root scope from plain Python data.

        Args:
            variables: Dict of name to str/number/bool/list/dict/None

        Returns:
            Root Environment
        """
        variables = variables or {}
        return cls({name: Value.from_python(value) for name, value in variables.items()})

    @property
    def parent(self) -> Optional["Environment"]:
        return self._parent

    def child(self, bindings: Mapping[str, Value]) -> "Environment":
        """Return a new scope whose bindings shadow this one."""
        return Environment(bindings, parent=self)

    def lookup(self, name: str) -> Value:
        """
        Resolve a name, innermost scope first.

        Raises:
            UndefinedVariableError: If no enclosing scope binds the name
        """
        scope: Optional[Environment] = self
        while scope is not None:
            if name in scope._bindings:
                return scope._bindings[name]
            scope = scope._parent
        raise UndefinedVariableError(f"Variable '{name}' is not defined")

    def __contains__(self, name: str) -> bool:
        try:
            self.lookup(name)
        except UndefinedVariableError:
            return False
        return True

    def names(self) -> Iterator[str]:
        """Iterate visible names, innermost scope first, without duplicates."""
        seen = set()
        scope: Optional[Environment] = self
        while scope is not None:
            for name in scope._bindings:
                if name not in seen:
                    seen.add(name)
                    yield name
            scope = scope._parent

    def flatten(self) -> Dict[str, Value]:
        """Return the visible bindings as a plain dict."""
        return {name: self.lookup(name) for name in self.names()}

    def __repr__(self) -> str:
        return f"Environment({sorted(self.names())})"
