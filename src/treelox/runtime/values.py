"""
Runtime values for the treelox interpreter.

Every value the interpreter handles is a ``Value``: a payload plus a
``ValueType`` tag. Operators dispatch on the tag and raise a runtime
error on a mismatch rather than coercing.
"""

import math
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Callable, Dict, List, Optional, Union, TYPE_CHECKING

from ..ast import FunctionDecl, FunctionExpr, Statement
from ..errors import error_runtime
from ..tokens import Token
from .environment import Environment

if TYPE_CHECKING:
    from .interpreter import Interpreter


class ValueType(Enum):
    """Runtime type tags."""
    NIL = auto()
    BOOLEAN = auto()
    NUMBER = auto()
    STRING = auto()
    FUNCTION = auto()   # LoxFunction
    NATIVE = auto()     # NativeFunction
    CLASS = auto()      # LoxClass
    INSTANCE = auto()   # LoxInstance


CALLABLE_TYPES = frozenset({ValueType.FUNCTION, ValueType.NATIVE, ValueType.CLASS})


@dataclass(eq=False)
class Value:
    """
    A runtime value with its type tag.

    The `data` field holds the Python payload: None, bool, float, str, or
    one of the callable/instance objects below.
    """
    data: Any
    type: ValueType

    def __repr__(self) -> str:
        return f"Value({self.data!r}, {self.type.name})"

    def __str__(self) -> str:
        return stringify(self)

    def is_truthy(self) -> bool:
        """nil and false are falsey; everything else is truthy."""
        if self.type == ValueType.NIL:
            return False
        if self.type == ValueType.BOOLEAN:
            return bool(self.data)
        return True

    @property
    def is_callable(self) -> bool:
        return self.type in CALLABLE_TYPES


NIL = Value(None, ValueType.NIL)
TRUE = Value(True, ValueType.BOOLEAN)
FALSE = Value(False, ValueType.BOOLEAN)


# Convenience constructors for primitive values

def nil_val() -> Value:
    """The nil value."""
    return NIL


def bool_val(b: bool) -> Value:
    """Create a boolean value."""
    return TRUE if b else FALSE


def number_val(x: float) -> Value:
    """Create a number value."""
    return Value(float(x), ValueType.NUMBER)


def string_val(s: str) -> Value:
    """Create a string value."""
    return Value(str(s), ValueType.STRING)


def wrap_value(data: Any) -> Value:
    """Wrap a Python object in a Value, picking the tag from its type."""
    if isinstance(data, Value):
        return data
    if data is None:
        return NIL
    if isinstance(data, bool):
        return bool_val(data)
    if isinstance(data, (int, float)):
        return number_val(data)
    if isinstance(data, str):
        return string_val(data)
    if isinstance(data, LoxFunction):
        return Value(data, ValueType.FUNCTION)
    if isinstance(data, NativeFunction):
        return Value(data, ValueType.NATIVE)
    if isinstance(data, LoxClass):
        return Value(data, ValueType.CLASS)
    if isinstance(data, LoxInstance):
        return Value(data, ValueType.INSTANCE)
    raise TypeError(f"Cannot wrap {type(data).__name__} as a treelox value")


def unwrap_value(v: Value) -> Any:
    """Extract the raw Python payload from a Value."""
    return v.data


def values_equal(a: Value, b: Value) -> bool:
    """
    Equality as the == operator sees it.

    Values of different types are never equal. Numbers, strings and
    booleans compare by value (so NaN != NaN); callables and instances
    compare by identity.
    """
    if a.type != b.type:
        return False
    if a.type == ValueType.NIL:
        return True
    if a.type in (ValueType.BOOLEAN, ValueType.NUMBER, ValueType.STRING):
        return a.data == b.data
    return a.data is b.data


def format_number(x: float) -> str:
    """Render a number the way print shows it."""
    if math.isnan(x):
        return "NaN"
    if math.isinf(x):
        return "Infinity" if x > 0 else "-Infinity"
    if x == int(x):
        text = str(int(x))
        # Keep the sign of negative zero
        if x == 0 and math.copysign(1.0, x) < 0:
            return "-0"
        return text
    return repr(x)


def stringify(v: Value) -> str:
    """Render a value the way print shows it."""
    if v.type == ValueType.NIL:
        return "nil"
    if v.type == ValueType.BOOLEAN:
        return "true" if v.data else "false"
    if v.type == ValueType.NUMBER:
        return format_number(v.data)
    if v.type == ValueType.STRING:
        return v.data
    return str(v.data)


# =============================================================================
# Statement Outcomes
# =============================================================================

class Normal:
    """Outcome of a statement that completed without returning."""

    def __repr__(self) -> str:
        return "NORMAL"


NORMAL = Normal()


@dataclass
class ReturnOutcome:
    """
    Outcome of a statement that executed 'return'.

    Propagates out through enclosing blocks and loops until the function
    call that owns it consumes it.
    """
    value: Value
    keyword: Token


Outcome = Union[Normal, ReturnOutcome]


# =============================================================================
# Callables and Instances
# =============================================================================

@dataclass(eq=False)
class NativeFunction:
    """A function implemented in Python, taking and returning Values."""
    name: str
    arity_count: int
    implementation: Callable[..., Value]

    def arity(self) -> int:
        return self.arity_count

    def call(self, interpreter: "Interpreter", arguments: List[Value]) -> Value:
        return wrap_value(self.implementation(*arguments))

    def __str__(self) -> str:
        return "<native fn>"


@dataclass(eq=False)
class LoxFunction:
    """
    A user-defined function or method.

    ``closure`` is the environment the function was declared in; it is
    shared with that scope, not copied.
    """
    declaration: Union[FunctionDecl, FunctionExpr]
    closure: Environment
    is_initializer: bool = False

    @property
    def name(self) -> Optional[str]:
        if isinstance(self.declaration, FunctionDecl):
            return self.declaration.name.lexeme
        return None

    @property
    def params(self) -> List[Token]:
        return self.declaration.params

    @property
    def body(self) -> List[Statement]:
        return self.declaration.body

    def arity(self) -> int:
        return len(self.declaration.params)

    def bind(self, instance: "LoxInstance") -> "LoxFunction":
        """Return a copy of this method whose 'this' is ``instance``."""
        environment = Environment(parent=self.closure, name=f"this {instance.klass.name}")
        environment.define("this", wrap_value(instance))
        return LoxFunction(self.declaration, environment, self.is_initializer)

    def call(self, interpreter: "Interpreter", arguments: List[Value]) -> Value:
        environment = Environment(parent=self.closure, name=f"call {self.name or 'lambda'}")
        for param, argument in zip(self.params, arguments):
            environment.define(param.lexeme, argument)

        outcome = interpreter.execute_block(self.body, environment)

        if self.is_initializer:
            if isinstance(outcome, ReturnOutcome) and outcome.value.type != ValueType.NIL:
                raise error_runtime(outcome.keyword,
                                    "Can't return a value from an initializer.", "E311")
            return self.closure.get_at(0, "this")

        if isinstance(outcome, ReturnOutcome):
            return outcome.value
        return NIL

    def __str__(self) -> str:
        if self.name is None:
            return "<fn>"
        return f"<fn {self.name}>"


@dataclass(eq=False)
class LoxClass:
    """
    A class: its name, optional superclass and method table.

    The method table is fixed once the class is declared and is shared by
    every instance and subclass.
    """
    name: str
    superclass: Optional["LoxClass"] = None
    methods: Dict[str, LoxFunction] = field(default_factory=dict)

    def find_method(self, name: str) -> Optional[LoxFunction]:
        """Look a method up here, then up the superclass chain."""
        klass = self
        while klass is not None:
            method = klass.methods.get(name)
            if method is not None:
                return method
            klass = klass.superclass
        return None

    def arity(self) -> int:
        initializer = self.find_method("init")
        if initializer is None:
            return 0
        return initializer.arity()

    def call(self, interpreter: "Interpreter", arguments: List[Value]) -> Value:
        instance = LoxInstance(self)
        initializer = self.find_method("init")
        if initializer is not None:
            initializer.bind(instance).call(interpreter, arguments)
        return wrap_value(instance)

    def __str__(self) -> str:
        return self.name


@dataclass(eq=False)
class LoxInstance:
    """An instance of a class with its own mutable fields."""
    klass: LoxClass
    fields: Dict[str, Value] = field(default_factory=dict)

    def get(self, name: Token) -> Value:
        """Read a property; fields shadow methods."""
        if name.lexeme in self.fields:
            return self.fields[name.lexeme]

        method = self.klass.find_method(name.lexeme)
        if method is not None:
            return wrap_value(method.bind(self))

        raise error_runtime(name, f"Undefined property '{name.lexeme}'.", "E309")

    def set(self, name: Token, value: Value) -> None:
        """Write a field on this instance."""
        self.fields[name.lexeme] = value

    def __str__(self) -> str:
        return f"{self.klass.name} instance"
