"""Bytecode definitions for the Monkey virtual machine.

An instruction stream is a flat byte sequence.  Each instruction is one opcode
byte followed by that opcode's operands, each a fixed-width big-endian unsigned
integer.  Operand widths are declared once per opcode on the Opcode enum and
never vary by call site, so a stream can be decoded with no lookahead.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import List, Tuple

from monkey.monkey_error import MonkeyBytecodeError
from monkey.monkey_value import MonkeyCompiledFunction, MonkeyValue


def _op(n: int, *operand_widths: int) -> Tuple[int, Tuple[int, ...]]:
    """Helper to construct an Opcode value: (byte_value, operand_widths).

    operand_widths lists the byte width of each operand that follows the
    opcode byte in the instruction stream (an empty tuple for opcodes whose
    operands all come from the value stack).
    """
    return (n, operand_widths)


class Opcode(IntEnum):
    """Bytecode operation codes.

    Each member's value is a (byte_value, operand_widths) tuple.  The byte
    value is what appears in the instruction stream; operand_widths is the
    single source of truth for how many operand bytes follow it.
    """

    _operand_widths: Tuple[int, ...]  # Set in __new__; declared here so mypy knows the attribute exists

    def __new__(cls, int_value: int, operand_widths: Tuple[int, ...] = ()) -> 'Opcode':
        obj = int.__new__(cls, int_value)
        obj._value_ = int_value
        obj._operand_widths = operand_widths
        return obj

    @property
    def operand_widths(self) -> Tuple[int, ...]:
        """Byte width of each instruction-stream operand."""
        return self._operand_widths

    @property
    def length(self) -> int:
        """Total encoded length of an instruction with this opcode."""
        return 1 + sum(self._operand_widths)

    # Constants
    LOAD_CONST = _op(0, 2)              # LOAD_CONST const_index
    LOAD_TRUE = _op(1)                  # Push true
    LOAD_FALSE = _op(2)                 # Push false
    LOAD_NULL = _op(3)                  # Push null

    # Stack
    POP = _op(4)                        # Pop and discard top of stack

    # Arithmetic (pop right, pop left, push result)
    ADD = _op(5)
    SUB = _op(6)
    MUL = _op(7)
    DIV = _op(8)

    # Comparison - `<` and `<=` are compiled as swapped GREATER_THAN / GREATER_EQUAL
    EQUAL = _op(9)
    NOT_EQUAL = _op(10)
    GREATER_THAN = _op(11)
    GREATER_EQUAL = _op(12)

    # Logical (both operands always evaluated)
    AND = _op(13)
    OR = _op(14)

    # Unary
    NOT = _op(15)                       # Boolean negate
    NEG = _op(16)                       # Arithmetic negate

    # Control flow - targets are absolute byte offsets into the current stream
    JUMP = _op(17, 2)                   # JUMP offset
    JUMP_IF_NOT_TRUTHY = _op(18, 2)     # Pop condition, JUMP offset if falsy

    # Globals
    GET_GLOBAL = _op(19, 2)             # GET_GLOBAL slot
    SET_GLOBAL = _op(20, 2)             # SET_GLOBAL slot (pops the value)

    # Collections
    BUILD_ARRAY = _op(21, 2)            # BUILD_ARRAY element_count
    BUILD_HASHMAP = _op(22, 2)          # BUILD_HASHMAP element_count (keys + values)
    INDEX = _op(23)                     # Pop index, pop collection, push element

    # Functions
    CALL = _op(24)                      # Pop callee, push a frame over its instructions
    RETURN_VALUE = _op(25)              # Pop return value, leave frame, push value


# Byte value -> Opcode, for O(1) decoding.
_OPCODES_BY_BYTE: List[Opcode | None] = [None] * 256
for _opcode in Opcode:
    _OPCODES_BY_BYTE[_opcode] = _opcode


def make_instruction(opcode: Opcode, *operands: int) -> bytes:
    """
    Encode one instruction.

    Args:
        opcode: Operation to encode
        operands: One integer per operand width declared for the opcode

    Returns:
        The encoded instruction bytes

    Raises:
        MonkeyBytecodeError: If the operand count does not match the opcode's
            signature, or an operand does not fit its width
    """
    widths = opcode.operand_widths
    if len(operands) != len(widths):
        raise MonkeyBytecodeError(
            message=f"Wrong number of operands for {opcode.name}",
            expected=f"{len(widths)} operand{'s' if len(widths) != 1 else ''}",
            received=f"{len(operands)} operand{'s' if len(operands) != 1 else ''}"
        )

    encoded = bytearray([opcode])
    for operand, width in zip(operands, widths):
        limit = 1 << (8 * width)
        if operand < 0 or operand >= limit:
            raise MonkeyBytecodeError(
                message=f"Operand {operand} does not fit in {width} bytes for {opcode.name}",
                expected=f"Value in range 0..{limit - 1}"
            )

        encoded += operand.to_bytes(width, "big")

    return bytes(encoded)


def decode_opcode(stream: bytes | bytearray, position: int) -> Opcode:
    """
    Decode the opcode byte at position.

    Raises:
        MonkeyBytecodeError: If position is outside the stream or the byte is
            not a known opcode
    """
    if position < 0 or position >= len(stream):
        raise MonkeyBytecodeError(
            message=f"Instruction offset {position} is outside the stream",
            context=f"Stream length: {len(stream)}"
        )

    opcode = _OPCODES_BY_BYTE[stream[position]]
    if opcode is None:
        raise MonkeyBytecodeError(
            message=f"Unknown opcode byte {stream[position]} at offset {position}",
            suggestion="The instruction stream is corrupt"
        )

    return opcode


def read_uint16(stream: bytes | bytearray, position: int) -> int:
    """Read a big-endian 2-byte operand."""
    return (stream[position] << 8) | stream[position + 1]


def read_operands(opcode: Opcode, stream: bytes | bytearray, position: int) -> Tuple[List[int], int]:
    """
    Decode the operands of one instruction.

    Args:
        opcode: The already-decoded opcode
        stream: Instruction stream
        position: Offset of the first operand byte (just after the opcode)

    Returns:
        (operands, bytes_read)
    """
    operands = []
    offset = position
    for width in opcode.operand_widths:
        if offset + width > len(stream):
            raise MonkeyBytecodeError(
                message=f"Truncated operand for {opcode.name} at offset {offset}",
                context=f"Stream length: {len(stream)}"
            )

        if width == 2:
            operands.append(read_uint16(stream, offset))

        else:
            operands.append(int.from_bytes(stream[offset:offset + width], "big"))

        offset += width

    return operands, offset - position


def patch_operand(stream: bytearray, position: int, new_value: int) -> None:
    """
    Overwrite the operand of the single-operand instruction at position.

    The instruction is re-encoded with its own opcode, so the stream length
    never changes and every previously computed offset stays valid.
    """
    opcode = decode_opcode(stream, position)
    instruction = make_instruction(opcode, new_value)
    if position + len(instruction) > len(stream):
        raise MonkeyBytecodeError(
            message=f"Cannot patch truncated {opcode.name} instruction at offset {position}",
            context=f"Stream length: {len(stream)}"
        )

    stream[position:position + len(instruction)] = instruction


def disassemble(stream: bytes | bytearray) -> str:
    """Render an instruction stream as one `offset OPCODE operands` line per instruction."""
    lines = []
    position = 0
    while position < len(stream):
        opcode = decode_opcode(stream, position)
        operands, read = read_operands(opcode, stream, position + 1)
        text = " ".join([opcode.name] + [str(operand) for operand in operands])
        lines.append(f"{position:04d} {text}")
        position += 1 + read

    return "\n".join(lines)


@dataclass(frozen=True)
class MonkeyBytecode:
    """
    Compiler output: the finished top-level instruction stream and the full constant pool.

    This is the only artifact handed from the compiler to the VM.
    """
    instructions: bytes
    constants: Tuple[MonkeyValue, ...]

    def __repr__(self) -> str:
        """Human-readable representation."""
        lines = ["MonkeyBytecode:"]
        lines.append("  Constants:")
        for i, constant in enumerate(self.constants):
            if isinstance(constant, MonkeyCompiledFunction):
                lines.append(f"    {i:3d}: compiled function")
                for instr_line in disassemble(constant.instructions).splitlines():
                    lines.append(f"           {instr_line}")

                continue

            lines.append(f"    {i:3d}: {constant.describe()}")

        lines.append("  Instructions:")
        for instr_line in disassemble(self.instructions).splitlines():
            lines.append(f"    {instr_line}")

        return "\n".join(lines)

    def disassemble(self) -> str:
        """Return disassembled bytecode for debugging."""
        return repr(self)
