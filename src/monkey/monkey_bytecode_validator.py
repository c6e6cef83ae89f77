"""
Bytecode validator for the Monkey virtual machine.

This validator performs a static pass over bytecode to ensure it's well-formed
before execution, so corrupt streams are reported up front rather than halfway
through a run.

The validator checks:
- Every opcode byte is known and no operand is cut off by the end of the stream
- Jump targets land on an instruction boundary (or the end of the stream)
- Constant pool and global slot indices are in bounds
- Hashmap element counts are even
- Compiled-function constants, recursively
"""

from dataclasses import dataclass
from enum import Enum
from typing import Set

from monkey.monkey_bytecode import MonkeyBytecode, Opcode, decode_opcode, read_operands
from monkey.monkey_error import MonkeyBytecodeError
from monkey.monkey_value import MonkeyCompiledFunction


class ValidationErrorType(Enum):
    """Types of validation errors."""
    INVALID_OPCODE = "invalid_opcode"
    TRUNCATED_INSTRUCTION = "truncated_instruction"
    INVALID_JUMP_TARGET = "invalid_jump_target"
    INDEX_OUT_OF_BOUNDS = "index_out_of_bounds"
    INVALID_OPERAND = "invalid_operand"


class ValidationError(MonkeyBytecodeError):
    """Bytecode validation error with the offending offset and opcode."""

    def __init__(
        self,
        error_type: ValidationErrorType,
        message: str,
        offset: int | None = None,
        opcode: Opcode | None = None
    ):
        self.error_type = error_type
        self.offset = offset
        self.opcode = opcode

        context_parts = []
        if offset is not None:
            context_parts.append(f"at offset {offset}")

        if opcode is not None:
            context_parts.append(f"opcode {opcode.name}")

        super().__init__(
            message=f"Bytecode validation error: {message}",
            context=", ".join(context_parts) if context_parts else None
        )


@dataclass
class _DecodedInstruction:
    """One instruction located during the structural pass."""
    offset: int
    opcode: Opcode
    operands: list


class MonkeyBytecodeValidator:
    """Validates Monkey bytecode for correctness and safety."""

    JUMP_OPCODES = (Opcode.JUMP, Opcode.JUMP_IF_NOT_TRUTHY)
    GLOBAL_OPCODES = (Opcode.GET_GLOBAL, Opcode.SET_GLOBAL)

    def __init__(self, globals_size: int) -> None:
        """
        Initialize validator.

        Args:
            globals_size: Number of global slots the executing VM provides
        """
        self.globals_size = globals_size

    def validate(self, bytecode: MonkeyBytecode) -> None:
        """
        Validate a bytecode object.

        Raises ValidationError if bytecode is invalid.
        """
        for constant in bytecode.constants:
            if isinstance(constant, MonkeyCompiledFunction):
                self._validate_stream(constant.instructions, len(bytecode.constants))

        self._validate_stream(bytecode.instructions, len(bytecode.constants))

    def _validate_stream(self, stream: bytes, constant_count: int) -> None:
        """Validate a single instruction stream."""
        instructions = self._decode_structure(stream)
        boundaries: Set[int] = {instr.offset for instr in instructions}
        boundaries.add(len(stream))

        for instr in instructions:
            opcode = instr.opcode

            if opcode == Opcode.LOAD_CONST:
                const_index = instr.operands[0]
                if const_index >= constant_count:
                    raise ValidationError(
                        ValidationErrorType.INDEX_OUT_OF_BOUNDS,
                        f"Constant index {const_index} out of bounds (pool size: {constant_count})",
                        offset=instr.offset,
                        opcode=opcode
                    )

            elif opcode in self.GLOBAL_OPCODES:
                slot = instr.operands[0]
                if slot >= self.globals_size:
                    raise ValidationError(
                        ValidationErrorType.INDEX_OUT_OF_BOUNDS,
                        f"Global slot {slot} out of bounds (globals size: {self.globals_size})",
                        offset=instr.offset,
                        opcode=opcode
                    )

            elif opcode == Opcode.BUILD_HASHMAP:
                count = instr.operands[0]
                if count % 2 != 0:
                    raise ValidationError(
                        ValidationErrorType.INVALID_OPERAND,
                        f"Hashmap element count {count} is odd (keys and values come in pairs)",
                        offset=instr.offset,
                        opcode=opcode
                    )

            elif opcode in self.JUMP_OPCODES:
                target = instr.operands[0]
                if target not in boundaries:
                    raise ValidationError(
                        ValidationErrorType.INVALID_JUMP_TARGET,
                        f"Jump target {target} is not an instruction boundary (stream length: {len(stream)})",
                        offset=instr.offset,
                        opcode=opcode
                    )

    def _decode_structure(self, stream: bytes) -> list[_DecodedInstruction]:
        """Walk the stream once, checking every opcode and operand is present."""
        instructions = []
        position = 0
        while position < len(stream):
            try:
                opcode = decode_opcode(stream, position)

            except MonkeyBytecodeError as e:
                raise ValidationError(
                    ValidationErrorType.INVALID_OPCODE,
                    f"Unknown opcode byte {stream[position]}",
                    offset=position
                ) from e

            try:
                operands, read = read_operands(opcode, stream, position + 1)

            except MonkeyBytecodeError as e:
                raise ValidationError(
                    ValidationErrorType.TRUNCATED_INSTRUCTION,
                    "Instruction operands run past the end of the stream",
                    offset=position,
                    opcode=opcode
                ) from e

            instructions.append(_DecodedInstruction(position, opcode, operands))
            position += 1 + read

        return instructions


def validate_bytecode(bytecode: MonkeyBytecode, globals_size: int) -> None:
    """
    Convenience function to validate bytecode.

    Args:
        bytecode: Bytecode to validate
        globals_size: Number of global slots available at runtime

    Raises:
        ValidationError: If bytecode is invalid
    """
    validator = MonkeyBytecodeValidator(globals_size)
    validator.validate(bytecode)
