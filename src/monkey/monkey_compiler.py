"""Monkey bytecode compiler - compiles AST to bytecode."""

import difflib
import logging
from dataclasses import dataclass, field
from typing import Dict, List

from monkey.monkey_ast import (
    MonkeyArrayLiteral, MonkeyBlockStatement, MonkeyBooleanLiteral, MonkeyCallExpression,
    MonkeyExpression, MonkeyExpressionStatement, MonkeyFunctionLiteral, MonkeyHashMapLiteral,
    MonkeyIdentifier, MonkeyIfExpression, MonkeyIndexExpression, MonkeyInfixExpression,
    MonkeyIntegerLiteral, MonkeyLetStatement, MonkeyPrefixExpression, MonkeyProgram,
    MonkeyReturnStatement, MonkeyStatement, MonkeyStringLiteral
)
from monkey.monkey_bytecode import MonkeyBytecode, Opcode, decode_opcode, make_instruction, patch_operand
from monkey.monkey_error import MonkeyBytecodeError, MonkeyCompileError
from monkey.monkey_symbol_table import MonkeySymbolTable
from monkey.monkey_value import MonkeyCompiledFunction, MonkeyInteger, MonkeyString, MonkeyValue


@dataclass
class EmittedInstruction:
    """Opcode and byte offset of an instruction already written to a scope."""
    opcode: Opcode
    position: int


@dataclass
class CompilationScope:
    """
    One in-progress instruction buffer: the top-level program or a function body.

    Tracks the last two emitted instructions so a trailing POP can be removed
    or rewritten without re-decoding the stream.
    """
    instructions: bytearray = field(default_factory=bytearray)
    last_instruction: EmittedInstruction | None = None
    previous_instruction: EmittedInstruction | None = None


class MonkeyCompiler:
    """
    Compiles Monkey AST to bytecode.

    Single pass.  Every binding lives in one flat global symbol table shared by
    top-level code and function bodies; functions get their own instruction
    buffer but no private locals.
    """

    # Operands are 2 bytes wide.
    MAX_OPERAND = 0xFFFF

    INFIX_OPCODES: Dict[str, Opcode] = {
        '+': Opcode.ADD,
        '-': Opcode.SUB,
        '*': Opcode.MUL,
        '/': Opcode.DIV,
        '>': Opcode.GREATER_THAN,
        '>=': Opcode.GREATER_EQUAL,
        '==': Opcode.EQUAL,
        '!=': Opcode.NOT_EQUAL,
        '&&': Opcode.AND,
        '||': Opcode.OR,
    }

    # `a < b` is compiled as `b > a`, and `a <= b` as `b >= a`.
    SWAPPED_INFIX_OPCODES: Dict[str, Opcode] = {
        '<': Opcode.GREATER_THAN,
        '<=': Opcode.GREATER_EQUAL,
    }

    PREFIX_OPCODES: Dict[str, Opcode] = {
        '!': Opcode.NOT,
        '-': Opcode.NEG,
    }

    # Placeholder written into jumps until their target is known.
    PLACEHOLDER_TARGET = 9999

    def __init__(
        self,
        symbol_table: MonkeySymbolTable | None = None,
        constants: List[MonkeyValue] | None = None
    ) -> None:
        """
        Initialize compiler.

        Args:
            symbol_table: Existing global bindings to compile against (fresh table if None)
            constants: Existing constant pool to append to (empty pool if None)
        """
        self.symbol_table = symbol_table if symbol_table is not None else MonkeySymbolTable()
        self.constants: List[MonkeyValue] = constants if constants is not None else []
        self.scopes: List[CompilationScope] = [CompilationScope()]
        self.scope_index = 0
        self._failed = False
        self._logger = logging.getLogger("MonkeyCompiler")

    @classmethod
    def with_state(cls, symbol_table: MonkeySymbolTable, constants: List[MonkeyValue]) -> 'MonkeyCompiler':
        """
        Create a compiler that continues from a previous compilation.

        Bindings and constants from earlier inputs stay valid, so successive
        top-level inputs can refer to each other's globals.
        """
        return cls(symbol_table=symbol_table, constants=constants)

    def compile(self, program: MonkeyProgram) -> None:
        """
        Compile a program into the top-level scope.

        Raises:
            MonkeyCompileError: On the first error; the compiler then refuses to
                produce bytecode
        """
        self._logger.debug("Compiling program with %d statements", len(program.statements))
        try:
            self._compile_statements(program.statements)

        except MonkeyCompileError:
            self._failed = True
            raise

    def bytecode(self) -> MonkeyBytecode:
        """Return the finished top-level instructions and the full constant pool."""
        if self._failed:
            raise MonkeyCompileError(
                message="No bytecode available: compilation failed",
                suggestion="Fix the reported compile error and compile again with a fresh compiler"
            )

        return MonkeyBytecode(
            instructions=bytes(self.current_instructions()),
            constants=tuple(self.constants)
        )

    # Scope management

    def current_instructions(self) -> bytearray:
        """Instruction buffer of the active scope."""
        return self.scopes[self.scope_index].instructions

    def enter_scope(self) -> None:
        """Push a new instruction buffer and make it the active one."""
        self.scopes.append(CompilationScope())
        self.scope_index += 1
        self._logger.debug("Entered compilation scope %d", self.scope_index)

    def leave_scope(self) -> bytes:
        """Pop the active instruction buffer and return its finished stream."""
        instructions = bytes(self.current_instructions())
        self.scopes.pop()
        self.scope_index -= 1
        self._logger.debug("Left compilation scope, back in scope %d", self.scope_index)
        return instructions

    # Emission

    def emit(self, opcode: Opcode, *operands: int) -> int:
        """Emit an instruction into the active scope and return its byte offset."""
        try:
            instruction = make_instruction(opcode, *operands)

        except MonkeyBytecodeError as e:
            raise MonkeyCompileError(
                message=f"Cannot encode {opcode.name}: {e.message}",
                expected=e.expected
            ) from e

        instructions = self.current_instructions()
        position = len(instructions)
        instructions += instruction

        scope = self.scopes[self.scope_index]
        scope.previous_instruction = scope.last_instruction
        scope.last_instruction = EmittedInstruction(opcode, position)
        return position

    def _last_instruction_is(self, opcode: Opcode) -> bool:
        last = self.scopes[self.scope_index].last_instruction
        return last is not None and last.opcode == opcode

    def _remove_last_instruction(self) -> None:
        """Truncate the active stream back to before its last instruction."""
        scope = self.scopes[self.scope_index]
        last = scope.last_instruction
        if last is None:
            return

        del scope.instructions[last.position:]
        scope.last_instruction = scope.previous_instruction

    def _replace_last_pop_with_return(self) -> None:
        """Rewrite a trailing POP in place as RETURN_VALUE (both are one byte)."""
        scope = self.scopes[self.scope_index]
        last = scope.last_instruction
        assert last is not None and last.opcode == Opcode.POP

        scope.instructions[last.position:last.position + Opcode.POP.length] = make_instruction(Opcode.RETURN_VALUE)
        last.opcode = Opcode.RETURN_VALUE

    def _change_operand(self, position: int, operand: int) -> None:
        """Backpatch the operand of the instruction at position in the active scope."""
        instructions = self.current_instructions()
        try:
            opcode = decode_opcode(instructions, position)
            patch_operand(instructions, position, operand)

        except MonkeyBytecodeError as e:
            raise MonkeyCompileError(
                message=f"Invalid backpatch at offset {position}: {e.message}",
                context=e.context
            ) from e

        self._logger.debug("Patched %s at %d -> %d", opcode.name, position, operand)

    def add_constant(self, value: MonkeyValue) -> int:
        """
        Append a value to the constant pool and return its index.

        Identical literals are not deduplicated; every literal gets its own slot.
        """
        self.constants.append(value)
        return len(self.constants) - 1

    # Statements

    def _compile_statements(self, statements: tuple) -> None:
        for statement in statements:
            self._compile_statement(statement)

    def _compile_block(self, block: MonkeyBlockStatement) -> None:
        self._compile_statements(block.statements)

    def _compile_statement(self, node: MonkeyStatement) -> None:
        if isinstance(node, MonkeyExpressionStatement):
            self._compile_expression(node.expression)
            self.emit(Opcode.POP)
            return

        if isinstance(node, MonkeyLetStatement):
            self._compile_expression(node.value)
            symbol = self.symbol_table.define(node.name)
            if symbol.index > self.MAX_OPERAND:
                raise MonkeyCompileError(
                    message=f"Too many global bindings: cannot define '{node.name}'",
                    context=f"At most {self.MAX_OPERAND + 1} global slots are addressable",
                    line=node.line,
                    column=node.column
                )

            self.emit(Opcode.SET_GLOBAL, symbol.index)
            return

        if isinstance(node, MonkeyReturnStatement):
            self._compile_expression(node.value)
            self.emit(Opcode.RETURN_VALUE)
            return

        raise MonkeyCompileError(
            message=f"Unknown statement node: {type(node).__name__}",
            line=node.line,
            column=node.column
        )

    # Expressions

    def _compile_expression(self, node: MonkeyExpression) -> None:
        if isinstance(node, MonkeyInfixExpression):
            self._compile_infix(node)
            return

        if isinstance(node, MonkeyPrefixExpression):
            self._compile_prefix(node)
            return

        if isinstance(node, MonkeyIntegerLiteral):
            self._emit_constant(MonkeyInteger(node.value), node)
            return

        if isinstance(node, MonkeyStringLiteral):
            self._emit_constant(MonkeyString(node.value), node)
            return

        if isinstance(node, MonkeyBooleanLiteral):
            self.emit(Opcode.LOAD_TRUE if node.value else Opcode.LOAD_FALSE)
            return

        if isinstance(node, MonkeyIdentifier):
            self._compile_identifier(node)
            return

        if isinstance(node, MonkeyIfExpression):
            self._compile_if(node)
            return

        if isinstance(node, MonkeyArrayLiteral):
            self._compile_array(node)
            return

        if isinstance(node, MonkeyHashMapLiteral):
            self._compile_hashmap(node)
            return

        if isinstance(node, MonkeyIndexExpression):
            self._compile_expression(node.left)
            self._compile_expression(node.index)
            self.emit(Opcode.INDEX)
            return

        if isinstance(node, MonkeyFunctionLiteral):
            self._compile_function(node)
            return

        if isinstance(node, MonkeyCallExpression):
            # Calls carry no arguments: any argument list on the node is ignored.
            self._compile_expression(node.function)
            self.emit(Opcode.CALL)
            return

        raise MonkeyCompileError(
            message=f"Unknown expression node: {type(node).__name__}",
            line=node.line,
            column=node.column
        )

    def _compile_infix(self, node: MonkeyInfixExpression) -> None:
        swapped = self.SWAPPED_INFIX_OPCODES.get(node.operator)
        if swapped is not None:
            self._compile_expression(node.right)
            self._compile_expression(node.left)
            self.emit(swapped)
            return

        opcode = self.INFIX_OPCODES.get(node.operator)
        if opcode is None:
            raise MonkeyCompileError(
                message=f"Unknown operator: {node.operator}",
                expected=f"One of: {', '.join(list(self.INFIX_OPCODES) + list(self.SWAPPED_INFIX_OPCODES))}",
                line=node.line,
                column=node.column
            )

        # Both sides are always evaluated, including for && and ||.
        self._compile_expression(node.left)
        self._compile_expression(node.right)
        self.emit(opcode)

    def _compile_prefix(self, node: MonkeyPrefixExpression) -> None:
        opcode = self.PREFIX_OPCODES.get(node.operator)
        if opcode is None:
            raise MonkeyCompileError(
                message=f"Unknown operator: {node.operator}",
                expected=f"One of: {', '.join(self.PREFIX_OPCODES)}",
                line=node.line,
                column=node.column
            )

        self._compile_expression(node.right)
        self.emit(opcode)

    def _compile_identifier(self, node: MonkeyIdentifier) -> None:
        symbol = self.symbol_table.resolve(node.name)
        if symbol is not None:
            self.emit(Opcode.GET_GLOBAL, symbol.index)
            return

        similar = difflib.get_close_matches(node.name, self.symbol_table.names(), n=3, cutoff=0.6)
        raise MonkeyCompileError(
            message=f"Undefined variable: {node.name}",
            suggestion=(
                f"Did you mean: {', '.join(similar)}?" if similar
                else "Check spelling or define it with a let statement first"
            ),
            example=f"let {node.name} = 5;",
            line=node.line,
            column=node.column
        )

    def _emit_constant(self, value: MonkeyValue, node: MonkeyExpression) -> None:
        index = self.add_constant(value)
        if index > self.MAX_OPERAND:
            raise MonkeyCompileError(
                message="Constant pool overflow",
                context=f"At most {self.MAX_OPERAND + 1} constants are addressable",
                line=node.line,
                column=node.column
            )

        self.emit(Opcode.LOAD_CONST, index)

    def _compile_array(self, node: MonkeyArrayLiteral) -> None:
        count = len(node.elements)
        if count > self.MAX_OPERAND:
            raise MonkeyCompileError(
                message=f"Invalid array length: {count}",
                expected=f"At most {self.MAX_OPERAND} elements",
                line=node.line,
                column=node.column
            )

        for element in node.elements:
            self._compile_expression(element)

        self.emit(Opcode.BUILD_ARRAY, count)

    def _compile_hashmap(self, node: MonkeyHashMapLiteral) -> None:
        # Keys and values each count as one element.
        count = len(node.pairs) * 2
        if count > self.MAX_OPERAND:
            raise MonkeyCompileError(
                message=f"Invalid hashmap length: {len(node.pairs)} pairs",
                expected=f"At most {self.MAX_OPERAND // 2} pairs",
                line=node.line,
                column=node.column
            )

        for key, value in node.pairs:
            self._compile_expression(key)
            self._compile_expression(value)

        self.emit(Opcode.BUILD_HASHMAP, count)

    def _compile_function(self, node: MonkeyFunctionLiteral) -> None:
        self.enter_scope()
        try:
            self._compile_block(node.body)

            # The value of a trailing expression statement is the function's result.
            if self._last_instruction_is(Opcode.POP):
                self._replace_last_pop_with_return()

        finally:
            instructions = self.leave_scope()

        self._emit_constant(MonkeyCompiledFunction(instructions), node)

    def _compile_branch(self, block: MonkeyBlockStatement) -> None:
        """Compile one arm of a conditional so that it leaves exactly one value on the stack."""
        self._compile_block(block)
        if self._last_instruction_is(Opcode.POP):
            self._remove_last_instruction()
            return

        # An arm ending in a return never reaches the join point.
        if self._last_instruction_is(Opcode.RETURN_VALUE):
            return

        # An empty arm, or one ending in a let, still has to produce a value.
        self.emit(Opcode.LOAD_NULL)

    def _compile_if(self, node: MonkeyIfExpression) -> None:
        self._compile_expression(node.condition)
        jump_not_truthy_pos = self.emit(Opcode.JUMP_IF_NOT_TRUTHY, self.PLACEHOLDER_TARGET)

        self._compile_branch(node.consequence)
        jump_pos = self.emit(Opcode.JUMP, self.PLACEHOLDER_TARGET)

        self._change_operand(jump_not_truthy_pos, len(self.current_instructions()))

        if node.alternative is not None:
            self._compile_branch(node.alternative)

        else:
            self.emit(Opcode.LOAD_NULL)

        self._change_operand(jump_pos, len(self.current_instructions()))
