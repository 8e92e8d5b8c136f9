"""
Tree-walking interpreter for treelox.

Executes resolved syntax trees directly. Statements return an explicit
outcome (``NORMAL`` or a ``ReturnOutcome``) that every block and loop
checks after each nested statement, so 'return' unwinds exactly to the
call that owns it. Runtime errors are raised as ``LoxRuntimeError`` and
turned into an ``ExecutionResult`` at the ``execute`` boundary.
"""

import logging
import math
import sys
import weakref
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from .values import (
    Value, ValueType, NIL, NORMAL, Outcome, ReturnOutcome,
    LoxFunction, LoxClass,
    bool_val, number_val, string_val, wrap_value,
    values_equal, stringify,
)
from .environment import Environment, ExecutionContext
from .builtins import BuiltinRegistry, get_builtin_registry

from ..ast import (
    Expression, Literal, Grouping, Unary, Binary, Logical, Variable, Assign,
    Call, Get, Set, This, Super, FunctionExpr,
    Statement, ExpressionStatement, PrintStatement, VarDecl, Block,
    IfStatement, WhileStatement, FunctionDecl, ReturnStatement, ClassDecl,
)
from ..errors import LoxRuntimeError, error_runtime, error_runtime_at
from ..tokens import Token, TokenType

logger = logging.getLogger(__name__)

# Python frames used per treelox call in the common case; used to size the
# host recursion limit so max_call_depth is reached before the host limit
_FRAMES_PER_CALL = 16


@dataclass
class ExecutionResult:
    """Result of executing a program or evaluating an expression."""
    success: bool
    error: Optional[LoxRuntimeError] = None
    value: Optional[Value] = None  # Set by evaluate()

    @property
    def error_message(self) -> Optional[str]:
        if self.error is None:
            return None
        return self.error.diagnostic.message


class Interpreter:
    """
    Tree-walking interpreter for treelox.

    Evaluates AST nodes by dispatching to type-specific methods. The global
    environment outlives individual ``execute`` calls, so one interpreter
    can serve a whole REPL session.
    """

    def __init__(self, output: Callable[[str], None] = print, max_call_depth: int = 200,
                 registry: Optional[BuiltinRegistry] = None):
        """
        Initialize the interpreter.

        Args:
            output: Receives one line of text per print statement
            max_call_depth: Deepest allowed call nesting before 'Stack overflow.'
            registry: Built-in functions to bind as globals (default registry if None)
        """
        self.ctx = ExecutionContext(max_call_depth=max_call_depth, output=output)
        # Keyed weakly so nodes of finished REPL lines can be collected
        self.locals = weakref.WeakKeyDictionary()

        registry = registry if registry is not None else get_builtin_registry()
        for builtin in registry:
            self.globals.define(builtin.name, wrap_value(builtin.to_native()))

    @property
    def globals(self) -> Environment:
        return self.ctx.globals

    def resolve_locals(self, locals: Dict[Expression, int]) -> None:
        """Add the resolver's scope distances for a newly parsed program."""
        self.locals.update(locals)

    def execute(self, statements: List[Statement]) -> ExecutionResult:
        """
        Execute a program.

        Returns:
            ExecutionResult; on failure ``error`` holds the runtime error and
            the interpreter is back in the global scope, ready for more input
        """
        stmt = None
        try:
            with self._host_stack():
                for stmt in statements:
                    if self._execute_statement(stmt) is not NORMAL:
                        break
        except LoxRuntimeError as e:
            return self._fail(e)
        except RecursionError:
            return self._fail(self._stack_overflow(stmt))
        return ExecutionResult(success=True)

    def evaluate(self, expr: Expression) -> ExecutionResult:
        """Evaluate a single expression in the global scope."""
        try:
            with self._host_stack():
                value = self._evaluate(expr)
        except LoxRuntimeError as e:
            return self._fail(e)
        except RecursionError:
            return self._fail(self._stack_overflow(expr))
        return ExecutionResult(success=True, value=value)

    def execute_block(self, statements: List[Statement], environment: Environment) -> Outcome:
        """Execute statements inside ``environment`` (used for calls)."""
        with self.ctx.use_environment(environment):
            return self._execute_statements(statements)

    def _fail(self, error: LoxRuntimeError) -> ExecutionResult:
        logger.debug("runtime error at line %d: %s", error.line, error.diagnostic.message)
        self.ctx.reset()
        return ExecutionResult(success=False, error=error)

    @contextmanager
    def _host_stack(self):
        """Raise the host recursion limit to fit max_call_depth for one run."""
        previous = sys.getrecursionlimit()
        needed = self.ctx.max_call_depth * _FRAMES_PER_CALL + 1000
        if previous < needed:
            sys.setrecursionlimit(needed)
        try:
            yield
        finally:
            sys.setrecursionlimit(previous)

    def _stack_overflow(self, node) -> LoxRuntimeError:
        """Locate host stack exhaustion at the failing call, else at ``node``."""
        token = self.ctx.active_call
        if token is not None:
            return error_runtime(token, "Stack overflow.", "E312")
        return error_runtime_at(node.span, "Expression nesting too deep.", "E313")

    # =========================================================================
    # Statements
    # =========================================================================

    def _execute_statements(self, statements: List[Statement]) -> Outcome:
        for stmt in statements:
            outcome = self._execute_statement(stmt)
            if outcome is not NORMAL:
                return outcome
        return NORMAL

    def _execute_statement(self, stmt: Statement) -> Outcome:
        """Execute a statement."""
        if isinstance(stmt, ExpressionStatement):
            self._evaluate(stmt.expression)
        elif isinstance(stmt, PrintStatement):
            value = self._evaluate(stmt.expression)
            self.ctx.output(stringify(value))
        elif isinstance(stmt, VarDecl):
            value = NIL
            if stmt.initializer is not None:
                value = self._evaluate(stmt.initializer)
            self.ctx.environment.define(stmt.name.lexeme, value)
        elif isinstance(stmt, Block):
            with self.ctx.new_scope("block"):
                return self._execute_statements(stmt.statements)
        elif isinstance(stmt, IfStatement):
            return self._execute_if_statement(stmt)
        elif isinstance(stmt, WhileStatement):
            return self._execute_while(stmt)
        elif isinstance(stmt, FunctionDecl):
            function = LoxFunction(stmt, self.ctx.environment)
            self.ctx.environment.define(stmt.name.lexeme, wrap_value(function))
        elif isinstance(stmt, ReturnStatement):
            value = NIL
            if stmt.value is not None:
                value = self._evaluate(stmt.value)
            return ReturnOutcome(value, stmt.keyword)
        elif isinstance(stmt, ClassDecl):
            self._execute_class(stmt)
        else:
            raise TypeError(f"Unknown statement type: {type(stmt).__name__}")
        return NORMAL

    def _execute_if_statement(self, stmt: IfStatement) -> Outcome:
        if self._evaluate(stmt.condition).is_truthy():
            return self._execute_statement(stmt.then_branch)
        if stmt.else_branch is not None:
            return self._execute_statement(stmt.else_branch)
        return NORMAL

    def _execute_while(self, stmt: WhileStatement) -> Outcome:
        while self._evaluate(stmt.condition).is_truthy():
            outcome = self._execute_statement(stmt.body)
            if outcome is not NORMAL:
                return outcome
        return NORMAL

    def _execute_class(self, stmt: ClassDecl) -> None:
        superclass = None
        if stmt.superclass is not None:
            value = self._evaluate(stmt.superclass)
            if value.type != ValueType.CLASS:
                raise error_runtime(stmt.superclass.name, "Superclass must be a class.", "E310")
            superclass = value.data

        self.ctx.environment.define(stmt.name.lexeme, NIL)

        # Methods close over an extra scope binding 'super'
        method_env = self.ctx.environment
        if superclass is not None:
            method_env = Environment(parent=self.ctx.environment, name=f"super {stmt.name.lexeme}")
            method_env.define("super", wrap_value(superclass))

        methods = {}
        for method in stmt.methods:
            methods[method.name.lexeme] = LoxFunction(
                method, method_env, is_initializer=method.name.lexeme == "init"
            )

        klass = LoxClass(stmt.name.lexeme, superclass, methods)
        self.ctx.environment.assign(stmt.name, wrap_value(klass))

    # =========================================================================
    # Expressions
    # =========================================================================

    def _evaluate(self, expr: Expression) -> Value:
        """Evaluate an expression to produce a Value."""
        if isinstance(expr, Literal):
            return wrap_value(expr.value)
        elif isinstance(expr, Grouping):
            return self._evaluate(expr.expression)
        elif isinstance(expr, Unary):
            return self._eval_unary(expr)
        elif isinstance(expr, Binary):
            return self._eval_binary(expr)
        elif isinstance(expr, Logical):
            return self._eval_logical(expr)
        elif isinstance(expr, Variable):
            return self._look_up_variable(expr.name, expr)
        elif isinstance(expr, Assign):
            return self._eval_assign(expr)
        elif isinstance(expr, Call):
            return self._eval_call(expr)
        elif isinstance(expr, Get):
            return self._eval_get(expr)
        elif isinstance(expr, Set):
            return self._eval_set(expr)
        elif isinstance(expr, This):
            return self._look_up_variable(expr.keyword, expr)
        elif isinstance(expr, Super):
            return self._eval_super(expr)
        elif isinstance(expr, FunctionExpr):
            return wrap_value(LoxFunction(expr, self.ctx.environment))
        else:
            raise TypeError(f"Unknown expression type: {type(expr).__name__}")

    def _look_up_variable(self, name: Token, expr: Expression) -> Value:
        distance = self.locals.get(expr)
        if distance is not None:
            return self.ctx.environment.get_at(distance, name.lexeme)
        return self.globals.get(name)

    def _eval_assign(self, expr: Assign) -> Value:
        value = self._evaluate(expr.value)
        distance = self.locals.get(expr)
        if distance is not None:
            self.ctx.environment.assign_at(distance, expr.name, value)
        else:
            self.globals.assign(expr.name, value)
        return value

    def _eval_unary(self, expr: Unary) -> Value:
        """Evaluate a unary operation."""
        operand = self._evaluate(expr.operand)

        if expr.operator.type == TokenType.MINUS:
            _check_number_operand(expr.operator, operand)
            return number_val(-operand.data)
        elif expr.operator.type == TokenType.BANG:
            return bool_val(not operand.is_truthy())
        else:
            raise TypeError(f"Unknown unary operator: {expr.operator.lexeme}")

    def _eval_binary(self, expr: Binary) -> Value:
        """Evaluate a binary operation."""
        left = self._evaluate(expr.left)
        right = self._evaluate(expr.right)
        op = expr.operator.type

        # Equality works on any pair of values
        if op == TokenType.EQUAL_EQUAL:
            return bool_val(values_equal(left, right))
        elif op == TokenType.BANG_EQUAL:
            return bool_val(not values_equal(left, right))

        if op == TokenType.PLUS:
            if left.type == ValueType.NUMBER and right.type == ValueType.NUMBER:
                return number_val(left.data + right.data)
            if left.type == ValueType.STRING and right.type == ValueType.STRING:
                return string_val(left.data + right.data)
            raise error_runtime(expr.operator,
                                "Operands must be two numbers or two strings.", "E304")

        _check_number_operands(expr.operator, left, right)
        a, b = left.data, right.data

        if op == TokenType.MINUS:
            return number_val(a - b)
        elif op == TokenType.STAR:
            return number_val(a * b)
        elif op == TokenType.SLASH:
            return number_val(_divide(a, b))
        elif op == TokenType.GREATER:
            return bool_val(a > b)
        elif op == TokenType.GREATER_EQUAL:
            return bool_val(a >= b)
        elif op == TokenType.LESS:
            return bool_val(a < b)
        elif op == TokenType.LESS_EQUAL:
            return bool_val(a <= b)
        else:
            raise TypeError(f"Unknown binary operator: {expr.operator.lexeme}")

    def _eval_logical(self, expr: Logical) -> Value:
        """Evaluate 'and' / 'or', yielding the last operand evaluated."""
        left = self._evaluate(expr.left)

        if expr.operator.type == TokenType.OR:
            if left.is_truthy():
                return left
        elif not left.is_truthy():
            return left

        return self._evaluate(expr.right)

    def _eval_call(self, expr: Call) -> Value:
        """Evaluate a call to a function, native function or class."""
        callee = self._evaluate(expr.callee)
        arguments = [self._evaluate(argument) for argument in expr.arguments]

        if not callee.is_callable:
            raise error_runtime(expr.paren, "Can only call functions and classes.", "E305")

        function = callee.data
        if len(arguments) != function.arity():
            raise error_runtime(
                expr.paren,
                f"Expected {function.arity()} arguments but got {len(arguments)}.",
                "E306",
            )

        with self.ctx.enter_call(expr.paren):
            return function.call(self, arguments)

    def _eval_get(self, expr: Get) -> Value:
        obj = self._evaluate(expr.object)
        if obj.type != ValueType.INSTANCE:
            raise error_runtime(expr.name, "Only instances have properties.", "E307")
        return obj.data.get(expr.name)

    def _eval_set(self, expr: Set) -> Value:
        obj = self._evaluate(expr.object)
        if obj.type != ValueType.INSTANCE:
            raise error_runtime(expr.name, "Only instances have fields.", "E308")
        value = self._evaluate(expr.value)
        obj.data.set(expr.name, value)
        return value

    def _eval_super(self, expr: Super) -> Value:
        """Look a method up starting at the enclosing class's superclass."""
        distance = self.locals[expr]
        superclass: LoxClass = self.ctx.environment.get_at(distance, "super").data
        # 'this' lives in the scope just inside the one binding 'super'
        instance = self.ctx.environment.get_at(distance - 1, "this").data

        method = superclass.find_method(expr.method.lexeme)
        if method is None:
            raise error_runtime(expr.method, f"Undefined property '{expr.method.lexeme}'.", "E309")
        return wrap_value(method.bind(instance))


def _check_number_operand(operator: Token, operand: Value) -> None:
    if operand.type != ValueType.NUMBER:
        raise error_runtime(operator, "Operand must be a number.", "E301")


def _check_number_operands(operator: Token, left: Value, right: Value) -> None:
    if left.type != ValueType.NUMBER or right.type != ValueType.NUMBER:
        raise error_runtime(operator, "Operands must be numbers.", "E302")


def _divide(a: float, b: float) -> float:
    """IEEE-754 division: x/0 is a signed infinity, 0/0 is NaN."""
    if b == 0.0:
        if a == 0.0 or math.isnan(a):
            return math.nan
        return math.copysign(math.inf, a) * math.copysign(1.0, b)
    return a / b
