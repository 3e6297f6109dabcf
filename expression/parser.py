"""
Parser for matrix-algebra assignment statements.

Grammar (binary operators are left-associative, ' binds tightest):

    statement := NAME '=' expr
    expr      := term (('+' | '-') term)*
    term      := unary ('*' unary)*
    unary     := '-' unary | postfix
    postfix   := primary "'"*
    primary   := NUMBER | NAME | 'inv' '(' expr ')' | '(' expr ')'

Example:
    >>> parse("K = P*H'*inv(H*P*H' + R)")
"""

import re
from dataclasses import dataclass
from typing import List, Optional, Union


class ExpressionError(ValueError):
    """Invalid expression (unknown name, bad binding, ...)."""


class ExpressionSyntaxError(ExpressionError):
    """Source text does not match the grammar."""

    def __init__(self, message: str, source: str, position: int):
        self.source = source
        self.position = position
        super().__init__(f"{message} at column {position}: {source!r}")


# =============================================================================
# Syntax tree
# =============================================================================

@dataclass(frozen=True)
class Name:
    id: str


@dataclass(frozen=True)
class Number:
    value: float


@dataclass(frozen=True)
class Negate:
    operand: "Node"


@dataclass(frozen=True)
class Transpose:
    operand: "Node"


@dataclass(frozen=True)
class Inverse:
    operand: "Node"


@dataclass(frozen=True)
class BinOp:
    op: str  # one of '+', '-', '*'
    left: "Node"
    right: "Node"


@dataclass(frozen=True)
class Assign:
    target: str
    value: "Node"


Node = Union[Name, Number, Negate, Transpose, Inverse, BinOp]


# =============================================================================
# Tokenizer
# =============================================================================

_TOKEN_RE = re.compile(r"""
    (?P<ws>\s+)
  | (?P<number>(?:\d+\.\d*|\.\d+|\d+)(?:[eE][+-]?\d+)?)
  | (?P<name>[A-Za-z_][A-Za-z0-9_]*)
  | (?P<op>[=+\-*'()])
""", re.VERBOSE)


@dataclass(frozen=True)
class Token:
    kind: str  # 'number', 'name', 'op', 'end'
    text: str
    position: int


def tokenize(source: str) -> List[Token]:
    """Split source into tokens, terminated by an 'end' token."""
    tokens = []
    pos = 0
    while pos < len(source):
        match = _TOKEN_RE.match(source, pos)
        if match is None:
            raise ExpressionSyntaxError(
                f"unexpected character {source[pos]!r}", source, pos
            )
        kind = match.lastgroup
        if kind != "ws":
            tokens.append(Token(kind, match.group(), pos))
        pos = match.end()
    tokens.append(Token("end", "", len(source)))
    return tokens


# =============================================================================
# Recursive-descent parser
# =============================================================================

class _Parser:

    def __init__(self, source: str):
        self.source = source
        self.tokens = tokenize(source)
        self.index = 0

    @property
    def current(self) -> Token:
        return self.tokens[self.index]

    def _advance(self) -> Token:
        token = self.tokens[self.index]
        self.index += 1
        return token

    def _accept(self, text: str) -> Optional[Token]:
        if self.current.kind == "op" and self.current.text == text:
            return self._advance()
        return None

    def _expect(self, text: str) -> Token:
        token = self._accept(text)
        if token is None:
            self._fail(f"expected {text!r}")
        return token

    def _fail(self, message: str):
        token = self.current
        found = "end of input" if token.kind == "end" else repr(token.text)
        raise ExpressionSyntaxError(f"{message}, found {found}", self.source, token.position)

    def statement(self) -> Assign:
        if self.current.kind != "name" or self.current.text == "inv":
            self._fail("expected assignment target")
        target = self._advance().text
        self._expect("=")
        value = self.expr()
        if self.current.kind != "end":
            self._fail("unexpected trailing input")
        return Assign(target, value)

    def expr(self) -> Node:
        node = self.term()
        while True:
            token = self._accept("+") or self._accept("-")
            if token is None:
                return node
            node = BinOp(token.text, node, self.term())

    def term(self) -> Node:
        node = self.unary()
        while self._accept("*"):
            node = BinOp("*", node, self.unary())
        return node

    def unary(self) -> Node:
        if self._accept("-"):
            return Negate(self.unary())
        return self.postfix()

    def postfix(self) -> Node:
        node = self.primary()
        while self._accept("'"):
            node = Transpose(node)
        return node

    def primary(self) -> Node:
        token = self.current
        if token.kind == "number":
            self._advance()
            return Number(float(token.text))
        if token.kind == "name":
            self._advance()
            if token.text == "inv":
                self._expect("(")
                node = Inverse(self.expr())
                self._expect(")")
                return node
            return Name(token.text)
        if self._accept("("):
            node = self.expr()
            self._expect(")")
            return node
        self._fail("expected operand")


def parse(source: str) -> Assign:
    """Parse a `target = expr` statement."""
    return _Parser(source).statement()


def free_names(node: Node) -> List[str]:
    """Names read by an expression, in order of first appearance."""
    seen = []

    def visit(n):
        if isinstance(n, Name):
            if n.id not in seen:
                seen.append(n.id)
        elif isinstance(n, BinOp):
            visit(n.left)
            visit(n.right)
        elif isinstance(n, (Negate, Transpose, Inverse)):
            visit(n.operand)

    visit(node)
    return seen
