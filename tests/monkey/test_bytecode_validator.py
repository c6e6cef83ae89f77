"""Tests for bytecode validator.

This tests the validator's ability to catch corrupt instruction streams
before the VM runs them.
"""

import pytest

from monkey.monkey_bytecode import MonkeyBytecode, Opcode, make_instruction as mk
from monkey.monkey_bytecode_validator import (
    MonkeyBytecodeValidator, ValidationError, ValidationErrorType, validate_bytecode
)
from monkey.monkey_compiler import MonkeyCompiler
from monkey.monkey_error import MonkeyBytecodeError
from monkey.monkey_value import MonkeyCompiledFunction, MonkeyInteger


GLOBALS_SIZE = 16


class TestBytecodeValidator:
    """Test bytecode validation."""

    def test_valid_simple_code(self):
        """Test that valid bytecode passes validation."""
        bytecode = MonkeyBytecode(mk(Opcode.LOAD_CONST, 0) + mk(Opcode.POP), (MonkeyInteger(42),))

        # Should not raise
        validate_bytecode(bytecode, GLOBALS_SIZE)

    def test_compiler_output_is_valid(self, helpers):
        """Test that everything the compiler emits passes validation."""
        compiler = MonkeyCompiler()
        compiler.compile(helpers.program(
            helpers.let("f", helpers.fn(helpers.if_(True, (1,), (helpers.let("g", 2),)))),
            helpers.if_(helpers.call(helpers.ident("f")), (helpers.array(1, 2),)),
            helpers.hashmap(("a", helpers.index(helpers.array(3), 0)))
        ))

        validate_bytecode(compiler.bytecode(), GLOBALS_SIZE)

    def test_empty_stream(self):
        """Test that an empty program is valid."""
        validate_bytecode(MonkeyBytecode(b"", ()), GLOBALS_SIZE)

    def test_invalid_opcode(self):
        """Test that unknown opcode bytes are caught."""
        bytecode = MonkeyBytecode(mk(Opcode.LOAD_TRUE) + bytes([250]), ())

        with pytest.raises(ValidationError) as exc_info:
            validate_bytecode(bytecode, GLOBALS_SIZE)

        assert exc_info.value.error_type == ValidationErrorType.INVALID_OPCODE
        assert exc_info.value.offset == 1
        assert "Unknown opcode byte 250" in exc_info.value.message

    def test_truncated_instruction(self):
        """Test that an operand cut off by the end of the stream is caught."""
        bytecode = MonkeyBytecode(bytes([Opcode.LOAD_CONST, 0x00]), (MonkeyInteger(1),))

        with pytest.raises(ValidationError) as exc_info:
            validate_bytecode(bytecode, GLOBALS_SIZE)

        assert exc_info.value.error_type == ValidationErrorType.TRUNCATED_INSTRUCTION
        assert exc_info.value.opcode == Opcode.LOAD_CONST

    def test_invalid_constant_index(self):
        """Test that invalid constant index is caught."""
        bytecode = MonkeyBytecode(mk(Opcode.LOAD_CONST, 5) + mk(Opcode.POP), (MonkeyInteger(42),))

        with pytest.raises(ValidationError) as exc_info:
            validate_bytecode(bytecode, GLOBALS_SIZE)

        assert exc_info.value.error_type == ValidationErrorType.INDEX_OUT_OF_BOUNDS
        assert "Constant index" in exc_info.value.message

    @pytest.mark.parametrize("opcode", [Opcode.GET_GLOBAL, Opcode.SET_GLOBAL])
    def test_invalid_global_slot(self, opcode):
        """Test that global slots past the VM's globals are caught."""
        bytecode = MonkeyBytecode(mk(Opcode.LOAD_TRUE) + mk(opcode, GLOBALS_SIZE), ())

        with pytest.raises(ValidationError) as exc_info:
            validate_bytecode(bytecode, GLOBALS_SIZE)

        assert exc_info.value.error_type == ValidationErrorType.INDEX_OUT_OF_BOUNDS
        assert "Global slot 16" in exc_info.value.message

    def test_jump_past_end(self):
        """Test that jumps beyond the stream are caught."""
        bytecode = MonkeyBytecode(mk(Opcode.JUMP, 100), ())

        with pytest.raises(ValidationError) as exc_info:
            validate_bytecode(bytecode, GLOBALS_SIZE)

        assert exc_info.value.error_type == ValidationErrorType.INVALID_JUMP_TARGET

    def test_jump_into_operand(self):
        """Test that jumps landing inside an instruction are caught."""
        bytecode = MonkeyBytecode(
            mk(Opcode.LOAD_TRUE) + mk(Opcode.JUMP_IF_NOT_TRUTHY, 2) + mk(Opcode.LOAD_NULL),
            ()
        )

        with pytest.raises(ValidationError) as exc_info:
            validate_bytecode(bytecode, GLOBALS_SIZE)

        assert exc_info.value.error_type == ValidationErrorType.INVALID_JUMP_TARGET
        assert exc_info.value.offset == 1

    def test_jump_to_end_of_stream(self):
        """Test that a jump to the end of the stream is allowed."""
        bytecode = MonkeyBytecode(mk(Opcode.JUMP, 3), ())

        validate_bytecode(bytecode, GLOBALS_SIZE)

    def test_function_constants_are_validated(self):
        """Test that errors inside compiled function bodies are caught."""
        function = MonkeyCompiledFunction(mk(Opcode.LOAD_CONST, 9) + mk(Opcode.RETURN_VALUE))
        bytecode = MonkeyBytecode(mk(Opcode.LOAD_CONST, 0) + mk(Opcode.POP), (function,))

        with pytest.raises(ValidationError) as exc_info:
            validate_bytecode(bytecode, GLOBALS_SIZE)

        assert exc_info.value.error_type == ValidationErrorType.INDEX_OUT_OF_BOUNDS

    def test_function_jumps_checked_against_own_stream(self):
        """Test that a function's jump targets are measured within the function body."""
        function = MonkeyCompiledFunction(mk(Opcode.JUMP, 6))
        bytecode = MonkeyBytecode(
            mk(Opcode.LOAD_CONST, 0) + mk(Opcode.POP) + mk(Opcode.LOAD_TRUE) + mk(Opcode.POP),
            (function,)
        )

        with pytest.raises(ValidationError) as exc_info:
            validate_bytecode(bytecode, GLOBALS_SIZE)

        assert exc_info.value.error_type == ValidationErrorType.INVALID_JUMP_TARGET

    def test_odd_hashmap_count(self):
        """Test that a hashmap count that splits a key from its value is caught."""
        bytecode = MonkeyBytecode(
            mk(Opcode.LOAD_TRUE) + mk(Opcode.LOAD_TRUE) + mk(Opcode.LOAD_TRUE) + mk(Opcode.BUILD_HASHMAP, 3),
            ()
        )

        with pytest.raises(ValidationError) as exc_info:
            validate_bytecode(bytecode, GLOBALS_SIZE)

        assert exc_info.value.error_type == ValidationErrorType.INVALID_OPERAND
        assert exc_info.value.offset == 3
        assert exc_info.value.opcode == Opcode.BUILD_HASHMAP

    def test_validator_class(self):
        """Test using the validator directly."""
        validator = MonkeyBytecodeValidator(globals_size=1)
        validator.validate(MonkeyBytecode(mk(Opcode.LOAD_TRUE) + mk(Opcode.SET_GLOBAL, 0), ()))

        with pytest.raises(ValidationError):
            validator.validate(MonkeyBytecode(mk(Opcode.LOAD_TRUE) + mk(Opcode.SET_GLOBAL, 1), ()))


class TestValidationErrorFormatting:
    """Test how validation errors report themselves."""

    def test_error_is_bytecode_error(self):
        with pytest.raises(MonkeyBytecodeError):
            validate_bytecode(MonkeyBytecode(bytes([255]), ()), GLOBALS_SIZE)

    def test_message_includes_offset_and_opcode(self):
        bytecode = MonkeyBytecode(mk(Opcode.LOAD_TRUE) + mk(Opcode.JUMP, 50), ())

        with pytest.raises(ValidationError) as exc_info:
            validate_bytecode(bytecode, GLOBALS_SIZE)

        text = str(exc_info.value)
        assert text.startswith("Error: Bytecode validation error: Jump target 50")
        assert "Context: at offset 1, opcode JUMP" in text
