"""Monkey AST Node hierarchy - compile-time representation with source location metadata.

These nodes are produced by a parser (not part of this package) and are consumed
read-only by the compiler.  They are separate from runtime MonkeyValue types so
that source metadata is never carried into the bytecode or the VM.
"""

from dataclasses import dataclass, field
from typing import Tuple


@dataclass(frozen=True)
class MonkeyASTNode:
    """
    Base class for all Monkey AST nodes.

    Source location fields are keyword-only so node fields stay positional.
    """
    line: int | None = field(default=None, kw_only=True)
    column: int | None = field(default=None, kw_only=True)


@dataclass(frozen=True)
class MonkeyExpression(MonkeyASTNode):
    """Base class for expression nodes."""


@dataclass(frozen=True)
class MonkeyStatement(MonkeyASTNode):
    """Base class for statement nodes."""


@dataclass(frozen=True)
class MonkeyBlockStatement(MonkeyASTNode):
    """A braced sequence of statements (function bodies, if branches)."""
    statements: Tuple[MonkeyStatement, ...] = ()


@dataclass(frozen=True)
class MonkeyProgram(MonkeyASTNode):
    """A parsed program: the sequence of top-level statements."""
    statements: Tuple[MonkeyStatement, ...] = ()


# Expressions

@dataclass(frozen=True)
class MonkeyIdentifier(MonkeyExpression):
    """Reference to a named binding."""
    name: str


@dataclass(frozen=True)
class MonkeyIntegerLiteral(MonkeyExpression):
    """Integer literal."""
    value: int


@dataclass(frozen=True)
class MonkeyStringLiteral(MonkeyExpression):
    """String literal."""
    value: str


@dataclass(frozen=True)
class MonkeyBooleanLiteral(MonkeyExpression):
    """Boolean literal (`true` / `false`)."""
    value: bool


@dataclass(frozen=True)
class MonkeyPrefixExpression(MonkeyExpression):
    """Prefix operator application: `!x`, `-x`."""
    operator: str
    right: MonkeyExpression


@dataclass(frozen=True)
class MonkeyInfixExpression(MonkeyExpression):
    """Binary operator application; precedence is already resolved by the tree shape."""
    left: MonkeyExpression
    operator: str
    right: MonkeyExpression


@dataclass(frozen=True)
class MonkeyArrayLiteral(MonkeyExpression):
    """Array literal: `[a, b, c]`."""
    elements: Tuple[MonkeyExpression, ...] = ()


@dataclass(frozen=True)
class MonkeyHashMapLiteral(MonkeyExpression):
    """Hashmap literal: `{k1: v1, k2: v2}`, pairs in source order."""
    pairs: Tuple[Tuple[MonkeyExpression, MonkeyExpression], ...] = ()


@dataclass(frozen=True)
class MonkeyIndexExpression(MonkeyExpression):
    """Index expression: `left[index]`."""
    left: MonkeyExpression
    index: MonkeyExpression


@dataclass(frozen=True)
class MonkeyFunctionLiteral(MonkeyExpression):
    """
    Function literal: `fn(params) { body }`.

    Parameters are recorded by the parser but never bound by the compiler.
    """
    parameters: Tuple[MonkeyIdentifier, ...]
    body: MonkeyBlockStatement


@dataclass(frozen=True)
class MonkeyCallExpression(MonkeyExpression):
    """Call expression: `function(arguments)`.  Arguments are not compiled."""
    function: MonkeyExpression
    arguments: Tuple[MonkeyExpression, ...] = ()


@dataclass(frozen=True)
class MonkeyIfExpression(MonkeyExpression):
    """Conditional expression with an optional else branch."""
    condition: MonkeyExpression
    consequence: MonkeyBlockStatement
    alternative: MonkeyBlockStatement | None = None


# Statements

@dataclass(frozen=True)
class MonkeyLetStatement(MonkeyStatement):
    """Binding statement: `let name = value;`."""
    name: str
    value: MonkeyExpression


@dataclass(frozen=True)
class MonkeyReturnStatement(MonkeyStatement):
    """Return statement: `return value;`."""
    value: MonkeyExpression


@dataclass(frozen=True)
class MonkeyExpressionStatement(MonkeyStatement):
    """An expression evaluated for its value, which is then discarded."""
    expression: MonkeyExpression
