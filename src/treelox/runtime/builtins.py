"""
Built-in function registry for the treelox interpreter.

Every registered function is bound as a global when an interpreter
starts. The default registry is deliberately small: the language's only
standard output channel is the print statement.
"""

import time
from dataclasses import dataclass
from typing import Callable, Dict, Iterator, Optional

from .values import Value, NativeFunction, number_val


@dataclass
class BuiltinFunction:
    """
    A built-in function with its implementation and arity.
    """
    name: str
    arity: int
    implementation: Callable[..., Value]
    doc: str = ""

    def to_native(self) -> NativeFunction:
        """The callable object bound in the global environment."""
        return NativeFunction(self.name, self.arity, self.implementation)


class BuiltinRegistry:
    """
    Registry of all built-in functions.

    Functions are registered by name and seeded into the globals of each
    new interpreter.
    """

    def __init__(self):
        self._functions: Dict[str, BuiltinFunction] = {}
        self._register_all()

    def get_function(self, name: str) -> Optional[BuiltinFunction]:
        """Look up a function by name."""
        return self._functions.get(name)

    def register(self, func: BuiltinFunction) -> None:
        """Register a function, replacing any previous one of that name."""
        self._functions[func.name] = func

    def __iter__(self) -> Iterator[BuiltinFunction]:
        return iter(self._functions.values())

    def __contains__(self, name: str) -> bool:
        return name in self._functions

    def __len__(self) -> int:
        return len(self._functions)

    def _register_all(self) -> None:
        """Register all built-in functions."""
        self._register_time_functions()

    # --- Time Functions ---

    def _register_time_functions(self) -> None:

        def _clock() -> Value:
            return number_val(time.time())

        self.register(BuiltinFunction(
            "clock",
            0,
            _clock,
            "Seconds since the Unix epoch, as a number.",
        ))


# Global singleton registry
_registry: Optional[BuiltinRegistry] = None


def get_builtin_registry() -> BuiltinRegistry:
    """Get the global built-in function registry."""
    global _registry
    if _registry is None:
        _registry = BuiltinRegistry()
    return _registry
