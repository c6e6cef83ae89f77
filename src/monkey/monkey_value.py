"""Monkey Value hierarchy - immutable runtime value types.

These are lightweight runtime values used by the constant pool and the VM.
They do NOT carry source location metadata - that's only in MonkeyASTNode.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, List, Tuple


@dataclass(frozen=True)
class MonkeyValue(ABC):
    """
    Abstract base class for all Monkey runtime values.

    All runtime values are immutable.  Only value types that set `hashable`
    may be used as hashmap keys.
    """

    hashable: ClassVar[bool] = False

    @abstractmethod
    def to_python(self) -> Any:
        """Convert to Python value."""

    @abstractmethod
    def type_name(self) -> str:
        """Return Monkey type name for error messages."""

    @abstractmethod
    def describe(self) -> str:
        """Describe the value."""


@dataclass(frozen=True)
class MonkeyInteger(MonkeyValue):
    """Represents integer values."""
    value: int

    hashable: ClassVar[bool] = True

    def to_python(self) -> int:
        return self.value

    def type_name(self) -> str:
        return "INTEGER"

    def describe(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class MonkeyString(MonkeyValue):
    """Represents string values."""
    value: str

    hashable: ClassVar[bool] = True

    def to_python(self) -> str:
        return self.value

    def type_name(self) -> str:
        return "STRING"

    def describe(self) -> str:
        return f'"{self.value}"'


@dataclass(frozen=True)
class MonkeyBoolean(MonkeyValue):
    """Represents boolean values."""
    value: bool

    hashable: ClassVar[bool] = True

    def to_python(self) -> bool:
        return self.value

    def type_name(self) -> str:
        return "BOOLEAN"

    def describe(self) -> str:
        return "true" if self.value else "false"


@dataclass(frozen=True)
class MonkeyNull(MonkeyValue):
    """Represents the absence of a value."""

    def to_python(self) -> None:
        return None

    def type_name(self) -> str:
        return "NULL"

    def describe(self) -> str:
        return "null"


# Module-level singletons - booleans and null are never boxed into the constant pool.
MONKEY_TRUE = MonkeyBoolean(True)
MONKEY_FALSE = MonkeyBoolean(False)
MONKEY_NULL = MonkeyNull()


@dataclass(frozen=True)
class MonkeyArray(MonkeyValue):
    """Represents ordered arrays of Monkey values."""
    elements: Tuple[MonkeyValue, ...] = ()

    def to_python(self) -> List[Any]:
        """Convert to Python list with Python values."""
        return [elem.to_python() for elem in self.elements]

    def type_name(self) -> str:
        return "ARRAY"

    def describe(self) -> str:
        return f"[{', '.join(elem.describe() for elem in self.elements)}]"

    def get(self, index: int) -> MonkeyValue:
        """Get element at index, or null if the index is out of range."""
        if index < 0 or index >= len(self.elements):
            return MONKEY_NULL

        return self.elements[index]


@dataclass(frozen=True)
class MonkeyHashMap(MonkeyValue):
    """
    Represents hashmaps - immutable key-value mappings.

    Keys must be hashable Monkey values (integers, strings, booleans).
    Equality ignores insertion order.
    """
    pairs: Dict[MonkeyValue, MonkeyValue] = field(default_factory=dict, hash=False)

    def to_python(self) -> Dict[Any, Any]:
        """
        Convert to Python dict with Python keys and values.

        Python treats 1 and True (and 0 and False) as the same dict key, so a
        hashmap holding both an integer and a boolean key with those values
        converts to a single entry; the later pair wins.  The MonkeyHashMap
        itself keeps them distinct.
        """
        return {key.to_python(): value.to_python() for key, value in self.pairs.items()}

    def type_name(self) -> str:
        return "HASH"

    def describe(self) -> str:
        items = ', '.join(f"{key.describe()}: {value.describe()}" for key, value in self.pairs.items())
        return f"{{{items}}}"

    def get(self, key: MonkeyValue) -> MonkeyValue:
        """Get the value stored under key, or null if it is missing."""
        return self.pairs.get(key, MONKEY_NULL)


@dataclass(frozen=True)
class MonkeyCompiledFunction(MonkeyValue):
    """
    Represents a compiled function body.

    Functions take no parameters and run against the shared globals, so the
    instruction stream is all a call needs.
    """
    instructions: bytes

    def to_python(self) -> 'MonkeyCompiledFunction':
        """Functions return themselves as Python values."""
        return self

    def type_name(self) -> str:
        return "COMPILED_FUNCTION"

    def describe(self) -> str:
        return f"<compiled function ({len(self.instructions)} bytes)>"
