"""
treelox runtime - tree-walking evaluation of resolved programs.

This module provides:
- Interpreter: Executes statements and evaluates expressions
- Value: Runtime values with type tags
- Environment: Shared lexical scope chain
- ExecutionContext: Current scope, call depth and output
- BuiltinRegistry: Native functions seeded into the globals
"""

from .values import (
    Value,
    ValueType,
    NIL,
    NORMAL,
    ReturnOutcome,
    NativeFunction,
    LoxFunction,
    LoxClass,
    LoxInstance,
    nil_val,
    bool_val,
    number_val,
    string_val,
    wrap_value,
    unwrap_value,
    values_equal,
    stringify,
    format_number,
)

from .environment import (
    Environment,
    ExecutionContext,
)

from .builtins import (
    BuiltinFunction,
    BuiltinRegistry,
    get_builtin_registry,
)

from .interpreter import (
    Interpreter,
    ExecutionResult,
)

__all__ = [
    # Values
    'Value',
    'ValueType',
    'NIL',
    'NORMAL',
    'ReturnOutcome',
    'NativeFunction',
    'LoxFunction',
    'LoxClass',
    'LoxInstance',
    'nil_val',
    'bool_val',
    'number_val',
    'string_val',
    'wrap_value',
    'unwrap_value',
    'values_equal',
    'stringify',
    'format_number',

    # Environment
    'Environment',
    'ExecutionContext',

    # Builtins
    'BuiltinFunction',
    'BuiltinRegistry',
    'get_builtin_registry',

    # Interpreter
    'Interpreter',
    'ExecutionResult',
]
