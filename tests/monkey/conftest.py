"""Shared fixtures and utilities for Monkey tests."""

import pytest
from typing import Any

from monkey import Monkey
from monkey.monkey_ast import (
    MonkeyArrayLiteral, MonkeyBlockStatement, MonkeyBooleanLiteral, MonkeyCallExpression,
    MonkeyExpression, MonkeyExpressionStatement, MonkeyFunctionLiteral, MonkeyHashMapLiteral,
    MonkeyIdentifier, MonkeyIfExpression, MonkeyIndexExpression, MonkeyInfixExpression,
    MonkeyIntegerLiteral, MonkeyLetStatement, MonkeyPrefixExpression, MonkeyProgram,
    MonkeyReturnStatement, MonkeyStatement, MonkeyStringLiteral
)
from monkey.monkey_compiler import MonkeyCompiler
from monkey.monkey_value import MonkeyValue
from monkey.monkey_vm import MonkeyVM


@pytest.fixture
def monkey():
    """Create a fresh Monkey session for each test."""
    return Monkey()


class MonkeyTestHelpers:
    """
    Helper utilities for Monkey testing.

    There is no parser in this package, so tests build ASTs directly.  Bare
    Python ints, strs and bools are accepted wherever an expression is expected.
    """

    @staticmethod
    def expr(value: Any) -> MonkeyExpression:
        """Coerce a Python literal to a literal node; pass AST nodes through."""
        if isinstance(value, MonkeyExpression):
            return value

        if isinstance(value, bool):
            return MonkeyBooleanLiteral(value)

        if isinstance(value, int):
            return MonkeyIntegerLiteral(value)

        if isinstance(value, str):
            return MonkeyStringLiteral(value)

        raise TypeError(f"Cannot build expression from {value!r}")

    @staticmethod
    def stmt(value: Any) -> MonkeyStatement:
        """Wrap an expression in an expression statement; pass statements through."""
        if isinstance(value, MonkeyStatement):
            return value

        return MonkeyExpressionStatement(MonkeyTestHelpers.expr(value))

    @staticmethod
    def program(*statements: Any) -> MonkeyProgram:
        return MonkeyProgram(tuple(MonkeyTestHelpers.stmt(s) for s in statements))

    @staticmethod
    def block(*statements: Any) -> MonkeyBlockStatement:
        return MonkeyBlockStatement(tuple(MonkeyTestHelpers.stmt(s) for s in statements))

    @staticmethod
    def ident(name: str) -> MonkeyIdentifier:
        return MonkeyIdentifier(name)

    @staticmethod
    def infix(left: Any, operator: str, right: Any) -> MonkeyInfixExpression:
        return MonkeyInfixExpression(MonkeyTestHelpers.expr(left), operator, MonkeyTestHelpers.expr(right))

    @staticmethod
    def prefix(operator: str, right: Any) -> MonkeyPrefixExpression:
        return MonkeyPrefixExpression(operator, MonkeyTestHelpers.expr(right))

    @staticmethod
    def let(name: str, value: Any) -> MonkeyLetStatement:
        return MonkeyLetStatement(name, MonkeyTestHelpers.expr(value))

    @staticmethod
    def ret(value: Any) -> MonkeyReturnStatement:
        return MonkeyReturnStatement(MonkeyTestHelpers.expr(value))

    @staticmethod
    def array(*elements: Any) -> MonkeyArrayLiteral:
        return MonkeyArrayLiteral(tuple(MonkeyTestHelpers.expr(e) for e in elements))

    @staticmethod
    def hashmap(*pairs: Any) -> MonkeyHashMapLiteral:
        return MonkeyHashMapLiteral(
            tuple((MonkeyTestHelpers.expr(k), MonkeyTestHelpers.expr(v)) for k, v in pairs)
        )

    @staticmethod
    def index(left: Any, index: Any) -> MonkeyIndexExpression:
        return MonkeyIndexExpression(MonkeyTestHelpers.expr(left), MonkeyTestHelpers.expr(index))

    @staticmethod
    def fn(*body: Any) -> MonkeyFunctionLiteral:
        return MonkeyFunctionLiteral((), MonkeyTestHelpers.block(*body))

    @staticmethod
    def call(function: Any, *arguments: Any) -> MonkeyCallExpression:
        return MonkeyCallExpression(
            MonkeyTestHelpers.expr(function),
            tuple(MonkeyTestHelpers.expr(a) for a in arguments)
        )

    @staticmethod
    def if_(condition: Any, consequence: tuple, alternative: tuple | None = None) -> MonkeyIfExpression:
        return MonkeyIfExpression(
            MonkeyTestHelpers.expr(condition),
            MonkeyTestHelpers.block(*consequence),
            MonkeyTestHelpers.block(*alternative) if alternative is not None else None
        )

    @staticmethod
    def compile_and_run(*statements: Any) -> MonkeyValue:
        """Compile a program built from statements and return the VM's result."""
        compiler = MonkeyCompiler()
        compiler.compile(MonkeyTestHelpers.program(*statements))
        vm = MonkeyVM(compiler.bytecode())
        return vm.run()


@pytest.fixture
def helpers():
    """Provide test helper utilities."""
    return MonkeyTestHelpers
