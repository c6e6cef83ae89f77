"""Main Monkey class - compiles and runs successive programs against shared global state."""

import logging
from typing import Any, List

from monkey.monkey_ast import MonkeyProgram
from monkey.monkey_bytecode import MonkeyBytecode
from monkey.monkey_compiler import MonkeyCompiler
from monkey.monkey_symbol_table import MonkeySymbolTable
from monkey.monkey_value import MonkeyValue
from monkey.monkey_vm import MonkeyVM


class Monkey:
    """
    Incremental Monkey compiler and VM.

    Each call compiles one parsed program (for example one line of input)
    against the bindings and constants left by earlier calls, then runs it on
    the shared global slots.  A failed compilation leaves the symbol table
    and constant pool exactly as they were.
    """

    def __init__(
        self,
        stack_size: int = MonkeyVM.DEFAULT_STACK_SIZE,
        max_frames: int = MonkeyVM.DEFAULT_MAX_FRAMES,
        validate: bool = True
    ) -> None:
        """
        Initialize a session with empty global state.

        Args:
            stack_size: Maximum operand stack depth for each run
            max_frames: Maximum call depth for each run
            validate: Whether to validate bytecode before each run
        """
        self.stack_size = stack_size
        self.max_frames = max_frames
        self.validate = validate

        self.symbol_table = MonkeySymbolTable()
        self.constants: List[MonkeyValue] = []
        self.globals: List[MonkeyValue | None] = [None] * MonkeyVM.GLOBALS_SIZE
        self._logger = logging.getLogger("Monkey")

    def compile(self, program: MonkeyProgram) -> MonkeyBytecode:
        """
        Compile a program against the session's bindings and commit them on success.

        Raises:
            MonkeyCompileError: If compilation fails (session state is unchanged)
        """
        compiler = MonkeyCompiler.with_state(self.symbol_table.copy(), list(self.constants))
        compiler.compile(program)
        bytecode = compiler.bytecode()

        self.symbol_table = compiler.symbol_table
        self.constants = compiler.constants
        self._logger.debug(
            "Committed %d globals and %d constants",
            len(self.symbol_table),
            len(self.constants)
        )
        return bytecode

    def run(self, program: MonkeyProgram) -> MonkeyValue:
        """
        Compile and execute a program, returning the last popped value.

        Raises:
            MonkeyCompileError: If compilation fails
            MonkeyRuntimeError: If execution fails (globals assigned before the error keep their values)
        """
        bytecode = self.compile(program)
        vm = MonkeyVM(
            bytecode,
            globals_store=self.globals,
            stack_size=self.stack_size,
            max_frames=self.max_frames,
            validate=self.validate
        )
        return vm.run()

    def evaluate(self, program: MonkeyProgram) -> Any:
        """Compile and execute a program, returning the result converted to Python types."""
        return self.run(program).to_python()
