"""Symbol Table for the Monkey compiler.

There is a single flat global namespace: function bodies resolve names against
the same table as top-level code, so there are no nested scopes to walk.
"""

from dataclasses import dataclass, field
from typing import Dict, List


@dataclass(frozen=True)
class MonkeySymbol:
    """A named binding and the global slot it occupies."""
    name: str
    index: int

    def __repr__(self) -> str:
        """Human-readable representation."""
        return f"MonkeySymbol({self.name}, idx={self.index})"


@dataclass
class MonkeySymbolTable:
    """
    Maps identifier names to global slots.

    Slots are allocated densely from 0.  Re-defining a name allocates a fresh
    slot and shadows the previous mapping; the old slot is never reused.
    """
    store: Dict[str, MonkeySymbol] = field(default_factory=dict)
    num_definitions: int = 0

    def define(self, name: str) -> MonkeySymbol:
        """
        Define name in the next free slot.

        Args:
            name: Identifier to bind

        Returns:
            The newly created symbol
        """
        symbol = MonkeySymbol(name=name, index=self.num_definitions)
        self.store[name] = symbol
        self.num_definitions += 1
        return symbol

    def resolve(self, name: str) -> MonkeySymbol | None:
        """Look up name, returning None if it has never been defined."""
        return self.store.get(name)

    def names(self) -> List[str]:
        """Return all currently visible names (used for error suggestions)."""
        return list(self.store.keys())

    def __len__(self) -> int:
        return self.num_definitions

    def copy(self) -> 'MonkeySymbolTable':
        """Return an independent table with the same bindings and next free slot."""
        return MonkeySymbolTable(store=dict(self.store), num_definitions=self.num_definitions)
