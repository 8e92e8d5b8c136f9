"""
Symbol table management for the treelox resolver.

Provides the stack of local lexical scopes the resolver walks to compute
scope distances. Global bindings are not tracked here: a name that is not
found in any local scope is left for the interpreter to look up by name.
"""

from dataclasses import dataclass, field
from typing import Optional, Dict, List
from enum import Enum, auto

from .tokens import SourceSpan


class SymbolKind(Enum):
    """The kind of symbol being tracked."""
    VARIABLE = auto()
    PARAMETER = auto()
    FUNCTION = auto()
    CLASS = auto()
    THIS = auto()
    SUPER = auto()


@dataclass
class Symbol:
    """A name bound in a local scope."""
    name: str
    kind: SymbolKind
    span: Optional[SourceSpan] = None  # Where it was declared
    defined: bool = False  # False between declaration and end of initializer


@dataclass
class Scope:
    """A single local scope in the scope stack."""
    symbols: Dict[str, Symbol] = field(default_factory=dict)
    name: str = ""  # For debugging: "block", "function add", "class Point", ...

    def declare(self, symbol: Symbol) -> None:
        """Declare a symbol in this scope."""
        self.symbols[symbol.name] = symbol

    def lookup_local(self, name: str) -> Optional[Symbol]:
        """Look up a symbol in this scope only."""
        return self.symbols.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self.symbols


class ScopeStack:
    """
    Stack of local scopes, innermost last.

    Distances count scopes outward from the innermost one, so a name bound
    in the innermost scope has distance 0. An empty stack means the resolver
    is at top level.
    """

    def __init__(self):
        self._scopes: List[Scope] = []

    def __len__(self) -> int:
        return len(self._scopes)

    @property
    def is_global(self) -> bool:
        """True when no local scope is open."""
        return not self._scopes

    @property
    def current(self) -> Optional[Scope]:
        return self._scopes[-1] if self._scopes else None

    def push(self, name: str = "") -> Scope:
        """Push a new scope onto the stack."""
        scope = Scope(name=name)
        self._scopes.append(scope)
        return scope

    def pop(self) -> Scope:
        """Pop the innermost scope."""
        return self._scopes.pop()

    def declare(self, symbol: Symbol) -> bool:
        """
        Declare a symbol in the innermost scope, not yet defined.

        Returns False if the name is already declared in that scope.
        At top level this is a no-op that always succeeds.
        """
        scope = self.current
        if scope is None:
            return True
        if symbol.name in scope:
            return False
        scope.declare(symbol)
        return True

    def define(self, name: str) -> None:
        """Mark a declared name as fully initialized."""
        scope = self.current
        if scope is None:
            return
        symbol = scope.lookup_local(name)
        if symbol is not None:
            symbol.defined = True

    def bind(self, name: str, kind: SymbolKind, span: Optional[SourceSpan] = None) -> None:
        """Declare and define a name in one step (this, super, parameters)."""
        scope = self.current
        if scope is not None:
            scope.declare(Symbol(name=name, kind=kind, span=span, defined=True))

    def lookup_local(self, name: str) -> Optional[Symbol]:
        """Look up a name in the innermost scope only."""
        scope = self.current
        if scope is None:
            return None
        return scope.lookup_local(name)

    def resolve(self, name: str) -> Optional[int]:
        """Return the distance to the innermost scope binding ``name``, or None."""
        for distance, scope in enumerate(reversed(self._scopes)):
            if name in scope:
                return distance
        return None
