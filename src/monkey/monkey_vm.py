"""Monkey Virtual Machine - executes bytecode."""

import logging
from dataclasses import dataclass
from typing import Any, Callable, List

from monkey.monkey_bytecode import MonkeyBytecode, Opcode, read_uint16
from monkey.monkey_bytecode_validator import ValidationError, validate_bytecode
from monkey.monkey_value import (
    MONKEY_FALSE, MONKEY_NULL, MONKEY_TRUE, MonkeyArray, MonkeyBoolean, MonkeyCompiledFunction,
    MonkeyHashMap, MonkeyInteger, MonkeyNull, MonkeyString, MonkeyValue
)
from monkey.monkey_error import MonkeyRuntimeError


@dataclass
class Frame:
    """
    Execution frame for one function invocation (or the top-level program).

    base_pointer is the stack height when the frame was entered; returning
    from the frame discards everything above it.
    """
    instructions: bytes
    ip: int = 0  # Instruction pointer (byte offset)
    base_pointer: int = 0


def _native_bool(value: bool) -> MonkeyBoolean:
    return MONKEY_TRUE if value else MONKEY_FALSE


def _is_truthy(value: MonkeyValue) -> bool:
    """Every value is truthy except false and null."""
    if isinstance(value, MonkeyBoolean):
        return value.value

    return not isinstance(value, MonkeyNull)


class MonkeyVM:
    """
    Virtual machine for executing Monkey bytecode.

    Uses a fixed-size operand stack with a stack pointer (one past the top),
    a fixed-size global slot array and a stack of call frames.
    """

    DEFAULT_STACK_SIZE = 2048
    DEFAULT_MAX_FRAMES = 1024

    # One slot per value of a 2-byte global operand.
    GLOBALS_SIZE = 65536

    def __init__(
        self,
        bytecode: MonkeyBytecode,
        globals_store: List[MonkeyValue | None] | None = None,
        stack_size: int = DEFAULT_STACK_SIZE,
        max_frames: int = DEFAULT_MAX_FRAMES,
        validate: bool = True
    ) -> None:
        """
        Initialize the VM over finished bytecode.

        Args:
            bytecode: Compiler output to execute
            globals_store: Global slot array carried over from a previous run (fresh if None)
            stack_size: Maximum operand stack depth
            max_frames: Maximum call depth, including the top-level frame
            validate: Whether to validate bytecode before execution
        """
        self.bytecode = bytecode
        self.constants = bytecode.constants
        self.stack: List[MonkeyValue | None] = [None] * stack_size
        self.sp = 0
        self.globals: List[MonkeyValue | None] = (
            globals_store if globals_store is not None else [None] * self.GLOBALS_SIZE
        )
        self.frames: List[Frame] = [Frame(bytecode.instructions)]
        self.max_frames = max_frames
        self.validate_bytecode = validate
        self._halted = False
        self._logger = logging.getLogger("MonkeyVM")

        # Per-byte decode tables, so the loop never consults the enum.
        self._opcodes: List[Opcode | None] = [None] * 256
        self._operand_lengths = [0] * 256
        for opcode in Opcode:
            self._opcodes[opcode] = opcode
            self._operand_lengths[opcode] = opcode.length - 1

        self._dispatch_table = self._build_dispatch_table()

    def _build_dispatch_table(self) -> List[Any]:
        """
        Build jump table for opcode dispatch.

        Every Opcode member must have a handler; a missing one is caught here
        rather than in the middle of a run.
        """
        handlers = {
            Opcode.LOAD_CONST: self._op_load_const,
            Opcode.LOAD_TRUE: self._op_load_true,
            Opcode.LOAD_FALSE: self._op_load_false,
            Opcode.LOAD_NULL: self._op_load_null,
            Opcode.POP: self._op_pop,
            Opcode.ADD: self._op_binary,
            Opcode.SUB: self._op_binary,
            Opcode.MUL: self._op_binary,
            Opcode.DIV: self._op_binary,
            Opcode.EQUAL: self._op_binary,
            Opcode.NOT_EQUAL: self._op_binary,
            Opcode.GREATER_THAN: self._op_binary,
            Opcode.GREATER_EQUAL: self._op_binary,
            Opcode.AND: self._op_binary,
            Opcode.OR: self._op_binary,
            Opcode.NOT: self._op_not,
            Opcode.NEG: self._op_neg,
            Opcode.JUMP: self._op_jump,
            Opcode.JUMP_IF_NOT_TRUTHY: self._op_jump_if_not_truthy,
            Opcode.GET_GLOBAL: self._op_get_global,
            Opcode.SET_GLOBAL: self._op_set_global,
            Opcode.BUILD_ARRAY: self._op_build_array,
            Opcode.BUILD_HASHMAP: self._op_build_hashmap,
            Opcode.INDEX: self._op_index,
            Opcode.CALL: self._op_call,
            Opcode.RETURN_VALUE: self._op_return_value,
        }

        missing = [opcode.name for opcode in Opcode if opcode not in handlers]
        assert not missing, f"No VM handler for opcodes: {', '.join(missing)}"

        table: List[Callable[[Frame, Opcode, int], None] | None] = [None] * 256
        for opcode, handler in handlers.items():
            table[opcode] = handler

        return table

    def run(self) -> MonkeyValue:
        """
        Execute the bytecode to completion.

        Returns:
            The last value popped from the operand stack, or null if nothing was popped

        Raises:
            MonkeyRuntimeError: On the first runtime error; execution stops immediately
        """
        if self.validate_bytecode:
            try:
                validate_bytecode(self.bytecode, len(self.globals))

            except ValidationError as e:
                raise MonkeyRuntimeError(
                    message="Bytecode failed validation",
                    context=e.message,
                    received=e.context
                ) from e

        self._logger.debug(
            "Running %d bytes of instructions with %d constants",
            len(self.bytecode.instructions),
            len(self.constants)
        )
        self._execute()
        result = self.last_popped_stack_element()
        self._logger.debug("Run finished with %s", result.describe() if result is not None else "no value")
        return result if result is not None else MONKEY_NULL

    def last_popped_stack_element(self) -> MonkeyValue | None:
        """Return the value most recently popped, which stays in the slot just above the stack top."""
        if self.sp >= len(self.stack):
            return None

        return self.stack[self.sp]

    def _execute(self) -> None:
        """Fetch-decode-dispatch loop."""
        dispatch = self._dispatch_table
        opcodes = self._opcodes
        operand_lengths = self._operand_lengths

        while not self._halted:
            frame = self.frames[-1]
            instructions = frame.instructions
            ip = frame.ip

            if ip >= len(instructions):
                if len(self.frames) == 1:
                    break

                # Falling off the end of a function body returns null.
                self._return_from_frame(MONKEY_NULL)
                continue

            op_byte = instructions[ip]
            handler = dispatch[op_byte]
            if handler is None:
                raise MonkeyRuntimeError(
                    message=f"Unknown opcode byte {op_byte} at offset {ip}",
                    suggestion="The instruction stream is corrupt"
                )

            operand = 0
            operand_length = operand_lengths[op_byte]
            if operand_length:
                if ip + 1 + operand_length > len(instructions):
                    raise MonkeyRuntimeError(
                        message=f"Truncated instruction at offset {ip}",
                        suggestion="The instruction stream is corrupt"
                    )

                operand = read_uint16(instructions, ip + 1)

            # Advance before dispatch so jumps can override
            frame.ip = ip + 1 + operand_length
            handler(frame, opcodes[op_byte], operand)

    # Stack primitives

    def _push(self, value: MonkeyValue) -> None:
        if self.sp >= len(self.stack):
            raise MonkeyRuntimeError(
                message="Stack overflow",
                context=f"Stack size: {len(self.stack)}"
            )

        self.stack[self.sp] = value
        self.sp += 1

    def _pop(self) -> MonkeyValue:
        if self.sp <= 0:
            raise MonkeyRuntimeError("Stack underflow")

        self.sp -= 1
        value = self.stack[self.sp]
        assert value is not None
        return value

    def _return_from_frame(self, value: MonkeyValue) -> None:
        frame = self.frames.pop()
        self.sp = frame.base_pointer
        self._push(value)
        self._logger.debug("Returned to frame depth %d", len(self.frames))

    # Opcode handlers

    def _op_load_const(self, _frame: Frame, _opcode: Opcode, index: int) -> None:
        """LOAD_CONST: Push constant from pool onto stack."""
        self._push(self.constants[index])

    def _op_load_true(self, _frame: Frame, _opcode: Opcode, _operand: int) -> None:
        """LOAD_TRUE: Push boolean true onto stack."""
        self._push(MONKEY_TRUE)

    def _op_load_false(self, _frame: Frame, _opcode: Opcode, _operand: int) -> None:
        """LOAD_FALSE: Push boolean false onto stack."""
        self._push(MONKEY_FALSE)

    def _op_load_null(self, _frame: Frame, _opcode: Opcode, _operand: int) -> None:
        """LOAD_NULL: Push null onto stack."""
        self._push(MONKEY_NULL)

    def _op_pop(self, _frame: Frame, _opcode: Opcode, _operand: int) -> None:
        """POP: Discard top of stack (it remains readable as the last popped element)."""
        self._pop()

    def _op_binary(self, _frame: Frame, opcode: Opcode, _operand: int) -> None:
        """Binary operators: pop right, pop left, push result."""
        right = self._pop()
        left = self._pop()

        if opcode == Opcode.EQUAL:
            self._push(_native_bool(left == right))
            return

        if opcode == Opcode.NOT_EQUAL:
            self._push(_native_bool(left != right))
            return

        if opcode in (Opcode.AND, Opcode.OR):
            self._execute_logical_operation(opcode, left, right)
            return

        if isinstance(left, MonkeyInteger) and isinstance(right, MonkeyInteger):
            self._execute_integer_operation(opcode, left.value, right.value)
            return

        if isinstance(left, MonkeyString) and isinstance(right, MonkeyString) and opcode == Opcode.ADD:
            self._push(MonkeyString(left.value + right.value))
            return

        raise MonkeyRuntimeError(
            message=f"Unsupported types for {opcode.name}: {left.type_name()} and {right.type_name()}",
            received=f"{left.describe()} and {right.describe()}",
            expected="Two integers (or two strings for +)"
        )

    def _execute_integer_operation(self, opcode: Opcode, left: int, right: int) -> None:
        if opcode == Opcode.ADD:
            self._push(MonkeyInteger(left + right))

        elif opcode == Opcode.SUB:
            self._push(MonkeyInteger(left - right))

        elif opcode == Opcode.MUL:
            self._push(MonkeyInteger(left * right))

        elif opcode == Opcode.DIV:
            if right == 0:
                raise MonkeyRuntimeError(
                    message="Division by zero",
                    received=f"{left} / {right}"
                )

            # Truncate toward zero
            quotient = abs(left) // abs(right)
            self._push(MonkeyInteger(quotient if (left < 0) == (right < 0) else -quotient))

        elif opcode == Opcode.GREATER_THAN:
            self._push(_native_bool(left > right))

        elif opcode == Opcode.GREATER_EQUAL:
            self._push(_native_bool(left >= right))

        else:
            raise MonkeyRuntimeError(f"Unknown integer operator: {opcode.name}")

    def _execute_logical_operation(self, opcode: Opcode, left: MonkeyValue, right: MonkeyValue) -> None:
        if not isinstance(left, MonkeyBoolean) or not isinstance(right, MonkeyBoolean):
            raise MonkeyRuntimeError(
                message=f"Unsupported types for {opcode.name}: {left.type_name()} and {right.type_name()}",
                received=f"{left.describe()} and {right.describe()}",
                expected="Two booleans"
            )

        if opcode == Opcode.AND:
            self._push(_native_bool(left.value and right.value))
            return

        self._push(_native_bool(left.value or right.value))

    def _op_not(self, _frame: Frame, _opcode: Opcode, _operand: int) -> None:
        """NOT: Boolean negation; `!null` is true."""
        operand = self._pop()
        if isinstance(operand, MonkeyBoolean):
            self._push(_native_bool(not operand.value))
            return

        if isinstance(operand, MonkeyNull):
            self._push(MONKEY_TRUE)
            return

        raise MonkeyRuntimeError(
            message=f"Unsupported type for !: {operand.type_name()}",
            received=operand.describe(),
            expected="Boolean or null"
        )

    def _op_neg(self, _frame: Frame, _opcode: Opcode, _operand: int) -> None:
        """NEG: Arithmetic negation."""
        operand = self._pop()
        if not isinstance(operand, MonkeyInteger):
            raise MonkeyRuntimeError(
                message=f"Unsupported type for negation: {operand.type_name()}",
                received=operand.describe(),
                expected="Integer"
            )

        self._push(MonkeyInteger(-operand.value))

    def _op_jump(self, frame: Frame, _opcode: Opcode, target: int) -> None:
        """JUMP: Unconditional jump to byte offset."""
        frame.ip = target

    def _op_jump_if_not_truthy(self, frame: Frame, _opcode: Opcode, target: int) -> None:
        """JUMP_IF_NOT_TRUTHY: Pop condition, jump if it is false or null."""
        condition = self._pop()
        if not _is_truthy(condition):
            frame.ip = target

    def _op_get_global(self, _frame: Frame, _opcode: Opcode, slot: int) -> None:
        """GET_GLOBAL: Push the value in a global slot."""
        value = self.globals[slot]
        if value is None:
            raise MonkeyRuntimeError(
                message=f"Global slot {slot} read before assignment",
                suggestion="The binding's let statement was compiled but never executed"
            )

        self._push(value)

    def _op_set_global(self, _frame: Frame, _opcode: Opcode, slot: int) -> None:
        """SET_GLOBAL: Pop a value into a global slot."""
        self.globals[slot] = self._pop()

    def _take_elements(self, count: int) -> tuple:
        """Remove the top count values, returned in push order."""
        if count > self.sp:
            raise MonkeyRuntimeError(
                message="Stack underflow",
                context=f"Needed {count} values, stack holds {self.sp}"
            )

        start = self.sp - count
        elements = tuple(self.stack[start:self.sp])
        self.sp = start
        return elements

    def _op_build_array(self, _frame: Frame, _opcode: Opcode, count: int) -> None:
        """BUILD_ARRAY: Collect count values into an array."""
        self._push(MonkeyArray(self._take_elements(count)))

    def _op_build_hashmap(self, _frame: Frame, _opcode: Opcode, count: int) -> None:
        """BUILD_HASHMAP: Collect count values (alternating keys and values) into a hashmap."""
        if count % 2 != 0:
            raise MonkeyRuntimeError(
                message=f"Invalid hashmap element count: {count}",
                expected="An even count (one key and one value per entry)"
            )

        elements = self._take_elements(count)
        pairs = {}
        for i in range(0, count, 2):
            key = elements[i]
            if not key.hashable:
                raise MonkeyRuntimeError(
                    message=f"Unusable as hash key: {key.type_name()}",
                    received=key.describe(),
                    expected="Integer, string or boolean"
                )

            pairs[key] = elements[i + 1]

        self._push(MonkeyHashMap(pairs))

    def _op_index(self, _frame: Frame, _opcode: Opcode, _operand: int) -> None:
        """INDEX: Pop index, pop collection, push the element (null if absent)."""
        index = self._pop()
        left = self._pop()

        if isinstance(left, MonkeyArray) and isinstance(index, MonkeyInteger):
            self._push(left.get(index.value))
            return

        if isinstance(left, MonkeyHashMap):
            if not index.hashable:
                raise MonkeyRuntimeError(
                    message=f"Unusable as hash key: {index.type_name()}",
                    received=index.describe(),
                    expected="Integer, string or boolean"
                )

            self._push(left.get(index))
            return

        raise MonkeyRuntimeError(
            message=f"Index operator not supported: {left.type_name()}[{index.type_name()}]",
            received=f"{left.describe()}[{index.describe()}]",
            expected="ARRAY[INTEGER] or HASH[key]"
        )

    def _op_call(self, _frame: Frame, _opcode: Opcode, _operand: int) -> None:
        """CALL: Pop callee and enter a new frame over its instructions."""
        callee = self._pop()
        if not isinstance(callee, MonkeyCompiledFunction):
            raise MonkeyRuntimeError(
                message="Cannot call non-function value",
                received=f"Attempted to call: {callee.describe()} ({callee.type_name()})",
                expected="Function"
            )

        if len(self.frames) >= self.max_frames:
            raise MonkeyRuntimeError(
                message="Frame overflow: maximum call depth exceeded",
                context=f"Maximum frames: {self.max_frames}"
            )

        self.frames.append(Frame(callee.instructions, ip=0, base_pointer=self.sp))
        self._logger.debug("Entered frame depth %d", len(self.frames))

    def _op_return_value(self, frame: Frame, _opcode: Opcode, _operand: int) -> None:
        """RETURN_VALUE: Pop return value, leave the frame and push the value for the caller."""
        if self.sp <= frame.base_pointer:
            raise MonkeyRuntimeError(
                message="Stack underflow on return",
                context="No return value on the stack"
            )

        value = self._pop()

        # A top-level return ends the program with the returned value as its result.
        if len(self.frames) == 1:
            self._halted = True
            return

        self._return_from_frame(value)
