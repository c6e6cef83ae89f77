"""Monkey bytecode compiler and virtual machine."""

# Main API
from monkey.monkey import Monkey

# Exceptions
from monkey.monkey_error import MonkeyError, MonkeyCompileError, MonkeyRuntimeError, MonkeyBytecodeError

# AST types
from monkey.monkey_ast import (
    MonkeyASTNode, MonkeyProgram, MonkeyBlockStatement,
    MonkeyLetStatement, MonkeyReturnStatement, MonkeyExpressionStatement,
    MonkeyIdentifier, MonkeyIntegerLiteral, MonkeyStringLiteral, MonkeyBooleanLiteral,
    MonkeyPrefixExpression, MonkeyInfixExpression, MonkeyArrayLiteral, MonkeyHashMapLiteral,
    MonkeyIndexExpression, MonkeyFunctionLiteral, MonkeyCallExpression, MonkeyIfExpression
)

# Value types
from monkey.monkey_value import (
    MonkeyValue, MonkeyInteger, MonkeyString, MonkeyBoolean, MonkeyNull, MonkeyArray, MonkeyHashMap,
    MonkeyCompiledFunction, MONKEY_TRUE, MONKEY_FALSE, MONKEY_NULL
)

# Lower-level components (for advanced usage)
from monkey.monkey_bytecode import MonkeyBytecode, Opcode
from monkey.monkey_compiler import MonkeyCompiler
from monkey.monkey_symbol_table import MonkeySymbol, MonkeySymbolTable
from monkey.monkey_vm import MonkeyVM


__all__ = [
    # Main API
    "Monkey",

    # Exceptions
    "MonkeyError", "MonkeyCompileError", "MonkeyRuntimeError", "MonkeyBytecodeError",

    # AST types
    "MonkeyASTNode", "MonkeyProgram", "MonkeyBlockStatement",
    "MonkeyLetStatement", "MonkeyReturnStatement", "MonkeyExpressionStatement",
    "MonkeyIdentifier", "MonkeyIntegerLiteral", "MonkeyStringLiteral", "MonkeyBooleanLiteral",
    "MonkeyPrefixExpression", "MonkeyInfixExpression", "MonkeyArrayLiteral", "MonkeyHashMapLiteral",
    "MonkeyIndexExpression", "MonkeyFunctionLiteral", "MonkeyCallExpression", "MonkeyIfExpression",

    # Value types
    "MonkeyValue", "MonkeyInteger", "MonkeyString", "MonkeyBoolean", "MonkeyNull", "MonkeyArray",
    "MonkeyHashMap", "MonkeyCompiledFunction", "MONKEY_TRUE", "MONKEY_FALSE", "MONKEY_NULL",

    # Lower-level components
    "MonkeyBytecode", "Opcode", "MonkeyCompiler", "MonkeySymbol", "MonkeySymbolTable", "MonkeyVM"
]
