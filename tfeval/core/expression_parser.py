"""
Parser for HCL expression text.

Turns the expression strings found in Terraform configuration (and in
python-hcl2 output, which wraps expressions as ``${...}``) into the
expression tree used by the evaluator.

Supported syntax: number, string (with ``${}`` interpolation), bool and
null literals; references with ``.attr``, ``[index]``, ``[*]`` and legacy
``.*`` splat traversals; the conditional operator; logical, comparison
and arithmetic operators; tuples, objects, function calls, parentheses.
``for`` expressions, heredocs and template directives are not supported.
"""

import re
from dataclasses import dataclass
from typing import Any, List, Tuple, Union

from .ast_nodes import (
    BinaryOp,
    BinaryOperator,
    Expression,
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
from .errors import ExpressionSyntaxError
from .values import NULL, Value

_NUMBER_RE = re.compile(r'\d+(\.\d+)?([eE][+-]?\d+)?')
_IDENT_RE = re.compile(r'[A-Za-z_][A-Za-z0-9_-]*')

_TWO_CHAR_OPERATORS = ("==", "!=", "<=", ">=", "&&", "||")
_ONE_CHAR_OPERATORS = "<>+-*/%!?:.,()[]{}="

_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", '"': '"', "\\": "\\"}

# Binary precedence levels, lowest first
_PRECEDENCE = (
    {"||": BinaryOperator.OR},
    {"&&": BinaryOperator.AND},
    {"==": BinaryOperator.EQUALS, "!=": BinaryOperator.NOT_EQUALS},
    {
        "<": BinaryOperator.LESS_THAN,
        "<=": BinaryOperator.LESS_EQUAL,
        ">": BinaryOperator.GREATER_THAN,
        ">=": BinaryOperator.GREATER_EQUAL,
    },
    {"+": BinaryOperator.ADD, "-": BinaryOperator.SUBTRACT},
    {"*": BinaryOperator.MULTIPLY, "/": BinaryOperator.DIVIDE, "%": BinaryOperator.MODULO},
)


@dataclass(frozen=True)
class Token:
    kind: str  # NUMBER, IDENT, TEMPLATE, OP, EOF
    value: Any
    position: int


def tokenize(source: str) -> List[Token]:
    """
    Split expression text into tokens.

    String literals become a single TEMPLATE token whose value is the
    tuple of template parts (text chunks and parsed interpolations).

    Raises:
        ExpressionSyntaxError: On an unexpected character or unterminated string
    """
    tokens: List[Token] = []
    position = 0
    length = len(source)

    while position < length:
        char = source[position]

        if char.isspace():
            position += 1
            continue

        match = _NUMBER_RE.match(source, position)
        if match:
            text = match.group(0)
            number = float(text) if match.group(1) or match.group(2) else int(text)
            tokens.append(Token("NUMBER", number, position))
            position = match.end()
            continue

        match = _IDENT_RE.match(source, position)
        if match:
            tokens.append(Token("IDENT", match.group(0), position))
            position = match.end()
            continue

        if char == '"':
            parts, end = _scan_template(source, position + 1, quoted=True)
            tokens.append(Token("TEMPLATE", parts, position))
            position = end
            continue

        pair = source[position:position + 2]
        if pair in _TWO_CHAR_OPERATORS:
            tokens.append(Token("OP", pair, position))
            position += 2
            continue

        if char in _ONE_CHAR_OPERATORS:
            tokens.append(Token("OP", char, position))
            position += 1
            continue

        raise ExpressionSyntaxError(f"Unexpected character {char!r}", source, position)

    tokens.append(Token("EOF", None, length))
    return tokens


def _scan_template(source: str, start: int, quoted: bool) -> Tuple[Tuple[Union[str, Expression], ...], int]:
    """
    Scan a template body starting at ``start``.

    Args:
        source: Full source text
        start: Index of the first character of the body
        quoted: If True the body ends at an unescaped double quote and
            backslash escapes are processed; otherwise it runs to the end

    Returns:
        (parts, index just past the body)
    """
    parts: List[Union[str, Expression]] = []
    text: List[str] = []
    position = start
    length = len(source)

    while position < length:
        char = source[position]

        if quoted and char == '"':
            if text:
                parts.append("".join(text))
            return tuple(parts), position + 1

        if quoted and char == "\\":
            if position + 1 >= length:
                break
            escaped = source[position + 1]
            text.append(_ESCAPES.get(escaped, "\\" + escaped))
            position += 2
            continue

        if source.startswith("$${", position) or source.startswith("%%{", position):
            text.append(source[position + 1:position + 3])
            position += 3
            continue

        if source.startswith("%{", position):
            raise ExpressionSyntaxError("Template directives are not supported", source, position)

        if source.startswith("${", position):
            end = _find_interpolation_end(source, position + 2)
            inner = source[position + 2:end].strip().strip("~").strip()
            if text:
                parts.append("".join(text))
                text = []
            parts.append(parse_expression(inner))
            position = end + 1
            continue

        text.append(char)
        position += 1

    if quoted:
        raise ExpressionSyntaxError("Unterminated string literal", source, start - 1)
    if text:
        parts.append("".join(text))
    return tuple(parts), length


def _find_interpolation_end(source: str, start: int) -> int:
    """Index of the brace closing an interpolation opened just before start."""
    depth = 0
    position = start
    in_string = False

    while position < len(source):
        char = source[position]
        if in_string:
            if char == "\\":
                position += 2
                continue
            if char == '"':
                in_string = False
        elif char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            if depth == 0:
                return position
            depth -= 1
        position += 1

    raise ExpressionSyntaxError("Unterminated interpolation", source, start - 2)


class _Parser:
    """Recursive-descent parser over a token list."""

    def __init__(self, source: str):
        self.source = source
        self.tokens = tokenize(source)
        self.position = 0

    # -- token helpers --------------------------------------------------

    def _peek(self, offset: int = 0) -> Token:
        index = min(self.position + offset, len(self.tokens) - 1)
        return self.tokens[index]

    def _advance(self) -> Token:
        token = self.tokens[self.position]
        if token.kind != "EOF":
            self.position += 1
        return token

    def _is_op(self, value: str, offset: int = 0) -> bool:
        token = self._peek(offset)
        return token.kind == "OP" and token.value == value

    def _match(self, value: str) -> bool:
        if self._is_op(value):
            self._advance()
            return True
        return False

    def _expect(self, value: str) -> Token:
        if not self._is_op(value):
            self._error(f"Expected '{value}'")
        return self._advance()

    def _error(self, message: str):
        token = self._peek()
        found = "end of input" if token.kind == "EOF" else repr(token.value)
        raise ExpressionSyntaxError(f"{message}, found {found}", self.source, token.position)

    # -- grammar --------------------------------------------------------

    def parse(self) -> Expression:
        expression = self._expression()
        if self._peek().kind != "EOF":
            self._error("Unexpected trailing input")
        return expression

    def _expression(self) -> Expression:
        condition = self._binary(0)
        if self._match("?"):
            then_expr = self._expression()
            self._expect(":")
            else_expr = self._expression()
            return Ternary(condition, then_expr, else_expr)
        return condition

    def _binary(self, level: int) -> Expression:
        if level == len(_PRECEDENCE):
            return self._unary()
        operators = _PRECEDENCE[level]
        left = self._binary(level + 1)
        while self._peek().kind == "OP" and self._peek().value in operators:
            operator = operators[self._advance().value]
            left = BinaryOp(operator, left, self._binary(level + 1))
        return left

    def _unary(self) -> Expression:
        if self._match("!"):
            return UnaryOp(UnaryOperator.NOT, self._unary())
        if self._match("-"):
            operand = self._unary()
            if isinstance(operand, Literal) and isinstance(operand.value.raw, (int, float)) \
                    and not isinstance(operand.value.raw, bool):
                return Literal(Value.number(-operand.value.raw))
            return UnaryOp(UnaryOperator.NEGATE, operand)
        return self._postfix()

    def _postfix(self) -> Expression:
        expression = self._primary()
        while True:
            if self._is_op("[") and self._is_op("*", 1) and self._is_op("]", 2):
                self.position += 3
                expression = Splat(expression, self._splat_path(full=True))
            elif self._is_op(".") and self._is_op("*", 1):
                self.position += 2
                expression = Splat(expression, self._splat_path(full=False))
            elif self._match("."):
                token = self._advance()
                if token.kind == "IDENT":
                    expression = GetAttr(expression, token.value)
                elif token.kind == "NUMBER" and isinstance(token.value, int):
                    expression = Index(expression, Literal(Value.number(token.value)))
                else:
                    if token.kind != "EOF":
                        self.position -= 1
                    self._error("Expected attribute name after '.'")
            elif self._match("["):
                key = self._expression()
                self._expect("]")
                expression = Index(expression, key)
            else:
                return expression

    def _splat_path(self, full: bool) -> Tuple[Union[str, Expression], ...]:
        """
        Collect the traversal applied to each element of a splat.

        The legacy ``.*`` form only takes attribute names; the full ``[*]``
        form also takes index steps, up to the next splat or operator.
        """
        path: List[Union[str, Expression]] = []
        while True:
            if self._is_op(".") and self._peek(1).kind == "IDENT":
                self.position += 1
                path.append(self._advance().value)
            elif not full:
                break
            elif self._is_op(".") and self._peek(1).kind == "NUMBER" \
                    and isinstance(self._peek(1).value, int):
                self.position += 1
                path.append(Literal(Value.number(self._advance().value)))
            elif self._is_op("[") and not (self._is_op("*", 1) and self._is_op("]", 2)):
                self.position += 1
                key = self._expression()
                self._expect("]")
                path.append(key)
            else:
                break
        return tuple(path)

    def _primary(self) -> Expression:
        token = self._peek()

        if token.kind == "NUMBER":
            self._advance()
            return Literal(Value.number(token.value))

        if token.kind == "TEMPLATE":
            self._advance()
            return template_node(token.value)

        if token.kind == "IDENT":
            self._advance()
            if token.value == "true":
                return Literal(Value.boolean(True))
            if token.value == "false":
                return Literal(Value.boolean(False))
            if token.value == "null":
                return Literal(NULL)
            if self._is_op("("):
                return self._call(token.value)
            return VariableRef(token.value)

        if self._match("("):
            expression = self._expression()
            self._expect(")")
            return expression

        if self._match("["):
            return self._tuple()

        if self._match("{"):
            return self._object()

        self._error("Expected an expression")

    def _call(self, name: str) -> Expression:
        self._expect("(")
        args = []
        while not self._is_op(")"):
            args.append(self._expression())
            if not self._match(","):
                break
        self._expect(")")
        return FunctionCall(name, tuple(args))

    def _tuple(self) -> Expression:
        if self._peek().kind == "IDENT" and self._peek().value == "for":
            self._error("'for' expressions are not supported")
        items = []
        while not self._is_op("]"):
            items.append(self._expression())
            if not self._match(","):
                break
        self._expect("]")
        return TupleExpr(tuple(items))

    def _object(self) -> Expression:
        if self._peek().kind == "IDENT" and self._peek().value == "for":
            self._error("'for' expressions are not supported")
        items = []
        while not self._is_op("}"):
            items.append((self._object_key(), self._after_key()))
            self._match(",")
        self._expect("}")
        return ObjectExpr(tuple(items))

    def _object_key(self) -> Union[str, Expression]:
        token = self._peek()
        if token.kind == "IDENT" and not (self._is_op("(", 1)):
            self._advance()
            return token.value
        key = self._expression()
        if isinstance(key, Literal) and isinstance(key.value.raw, str):
            return key.value.raw
        return key

    def _after_key(self) -> Expression:
        if not (self._match("=") or self._match(":")):
            self._error("Expected '=' or ':' after object key")
        return self._expression()


def template_node(parts: Tuple[Union[str, Expression], ...]) -> Expression:
    """Build the simplest node for a scanned template."""
    if not parts:
        return Literal(Value.string(""))
    if all(isinstance(part, str) for part in parts):
        return Literal(Value.string("".join(parts)))
    if len(parts) == 1:
        return parts[0]
    return TemplateExpr(tuple(parts))


def parse_expression(source: str) -> Expression:
    """
    Parse HCL expression text.

    Args:
        source: Expression text, e.g. ``var.env == "prod" ? "t3.large" : "t2.micro"``

    Returns:
        Expression tree

    Raises:
        ExpressionSyntaxError: If the text is not a supported expression
    """
    if not source or not source.strip():
        raise ExpressionSyntaxError("Empty expression", source or "", 0)
    return _Parser(source).parse()


def parse_template(text: str) -> Expression:
    """
    Parse a string value as produced by python-hcl2.

    ``"${var.x}"`` becomes the expression ``var.x`` itself, text with
    interpolations becomes a template, plain text a string literal. A
    value still wrapped in double quotes is parsed as a quoted string.
    """
    if len(text) >= 2 and text.startswith('"') and text.endswith('"'):
        return parse_expression(text)
    if "${" not in text and "%{" not in text:
        return Literal(Value.string(text))
    parts, _ = _scan_template(text, 0, quoted=False)
    return template_node(parts)


def hcl_to_expression(obj: Any) -> Expression:
    """
    Convert a python-hcl2 attribute value into an expression tree.

    Strings are parsed as templates, lists and dicts become tuple and
    object constructors, scalars become literals.
    """
    if isinstance(obj, Expression):
        return obj
    if isinstance(obj, str):
        return parse_template(obj)
    if isinstance(obj, list):
        return TupleExpr(tuple(hcl_to_expression(item) for item in obj))
    if isinstance(obj, dict):
        return ObjectExpr(tuple(
            (unquote(str(key)), hcl_to_expression(value))
            for key, value in obj.items()
            if not is_meta_key(key)
        ))
    return Literal(Value.from_python(obj))


def unquote(text: str) -> str:
    """Strip one pair of surrounding double quotes, if present."""
    if len(text) >= 2 and text.startswith('"') and text.endswith('"'):
        return text[1:-1]
    return text


def is_meta_key(key: Any) -> bool:
    """True for the line-number keys python-hcl2 adds with with_meta."""
    return isinstance(key, str) and key.startswith("__") and key.endswith("__")
