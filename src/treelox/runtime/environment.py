"""
Environment chain for the treelox interpreter.

An Environment maps names to values for one lexical scope and links to
its enclosing scope. Environments are shared, never copied: a closure
holds a reference to the environment it was created in, so assignments
made through one alias are visible through every other.
"""

from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional, TYPE_CHECKING

from ..errors import error_runtime
from ..tokens import Token

if TYPE_CHECKING:
    from .values import Value


@dataclass(eq=False)
class Environment:
    """
    A single scope containing variable bindings.

    Environments form a chain via the `parent` field for lexical scoping.
    """
    parent: Optional["Environment"] = None
    values: Dict[str, "Value"] = field(default_factory=dict)
    name: str = "anonymous"  # For debugging

    def define(self, name: str, value: "Value") -> None:
        """Bind a name in this scope, replacing any existing binding."""
        self.values[name] = value

    def get(self, name: Token) -> "Value":
        """Look up a name in this scope or parent scopes."""
        env = self
        while env is not None:
            if name.lexeme in env.values:
                return env.values[name.lexeme]
            env = env.parent
        raise error_runtime(name, f"Undefined variable '{name.lexeme}'.", "E303")

    def assign(self, name: Token, value: "Value") -> None:
        """
        Update an existing binding.

        Searches up the chain for the scope that defines the name; assigning
        to a name that was never declared is an error.
        """
        env = self
        while env is not None:
            if name.lexeme in env.values:
                env.values[name.lexeme] = value
                return
            env = env.parent
        raise error_runtime(name, f"Undefined variable '{name.lexeme}'.", "E303")

    def ancestor(self, distance: int) -> "Environment":
        """Return the environment exactly ``distance`` parent links away."""
        env = self
        for _ in range(distance):
            env = env.parent
        return env

    def get_at(self, distance: int, name: str) -> "Value":
        """Read a binding the resolver located ``distance`` scopes out."""
        return self.ancestor(distance).values[name]

    def assign_at(self, distance: int, name: Token, value: "Value") -> None:
        """Write a binding the resolver located ``distance`` scopes out."""
        self.ancestor(distance).values[name.lexeme] = value

    def contains(self, name: str) -> bool:
        """Check if a name is bound in this scope or parents."""
        env = self
        while env is not None:
            if name in env.values:
                return True
            env = env.parent
        return False

    @property
    def depth(self) -> int:
        """Number of parent links up to the global scope."""
        depth = 0
        env = self.parent
        while env is not None:
            depth += 1
            env = env.parent
        return depth


@dataclass
class ExecutionContext:
    """
    Mutable interpreter state for one session.

    Tracks:
    - The global environment (persists across runs)
    - The environment statements currently execute in
    - Call depth, bounded by ``max_call_depth``
    - The innermost active call, for locating host stack exhaustion
    - Where ``print`` output goes
    """
    globals: Environment = field(default_factory=lambda: Environment(name="global"))
    environment: Optional[Environment] = None
    max_call_depth: int = 200
    call_depth: int = 0
    active_call: Optional[Token] = None
    output: Callable[[str], None] = print

    def __post_init__(self):
        if self.environment is None:
            self.environment = self.globals

    @contextmanager
    def new_scope(self, name: str = "block"):
        """
        Context manager to create a new nested scope.

        Usage:
            with ctx.new_scope("block"):
                # variables defined here are local to this scope
                ctx.environment.define("i", number_val(0))
        """
        with self.use_environment(Environment(parent=self.environment, name=name)) as env:
            yield env

    @contextmanager
    def use_environment(self, environment: Environment):
        """Execute within ``environment``, restoring the previous one afterwards."""
        old_environment = self.environment
        self.environment = environment
        try:
            yield environment
        finally:
            self.environment = old_environment

    @contextmanager
    def enter_call(self, token: Token):
        """Account for one nested call; too deep a nesting is a runtime error."""
        if self.call_depth >= self.max_call_depth:
            raise error_runtime(token, "Stack overflow.", "E312")
        enclosing = self.active_call
        self.call_depth += 1
        self.active_call = token
        try:
            yield
        finally:
            self.call_depth -= 1
        # Only restored on a normal return; a failing call stays recorded
        self.active_call = enclosing

    def reset(self) -> None:
        """Return to the global scope after an aborted run."""
        self.environment = self.globals
        self.call_depth = 0
        self.active_call = None
