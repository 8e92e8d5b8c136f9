"""
Static scope resolver for treelox.

Traverses the AST once before execution and records, for every local
variable reference, how many scopes separate it from its binding. The
interpreter uses those distances to read and write variables directly,
so closures always see the binding that was in scope where they were
written. Names not found in any local scope are left out of the table
and looked up as globals at run time.

The pass also rejects a handful of programs that can never be correct:
reading a local in its own initializer, redeclaring a local, returning
from top-level code, and misplaced 'this' / 'super'.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Dict, List, Optional

from .ast import (
    Expression, Literal, Grouping, Unary, Binary, Logical, Variable, Assign,
    Call, Get, Set, This, Super, FunctionExpr,
    Statement, ExpressionStatement, PrintStatement, VarDecl, Block,
    IfStatement, WhileStatement, FunctionDecl, ReturnStatement, ClassDecl,
)
from .errors import Diagnostic, DiagnosticCollector, error_resolver, error_resolver_nesting
from .symbols import ScopeStack, Symbol, SymbolKind
from .tokens import Token

logger = logging.getLogger(__name__)


class FunctionType(Enum):
    """The kind of function body currently being resolved."""
    NONE = auto()
    FUNCTION = auto()
    METHOD = auto()
    INITIALIZER = auto()
    LAMBDA = auto()


class ClassType(Enum):
    """The kind of class body currently being resolved."""
    NONE = auto()
    CLASS = auto()
    SUBCLASS = auto()


@dataclass
class ResolveResult:
    """Result of resolving a program."""
    locals: Dict[Expression, int] = field(default_factory=dict)
    diagnostics: List[Diagnostic] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return len(self.diagnostics) > 0


class Resolver:
    """
    Scope resolver for treelox.

    Usage:
        resolver = Resolver()
        result = resolver.resolve(statements)
        interpreter.resolve_locals(result.locals)

    Locals are keyed by AST node identity.
    """

    def __init__(self, max_errors: int = 20, source: Optional[str] = None):
        self.scopes = ScopeStack()
        self.diagnostics = DiagnosticCollector(max_errors)
        self.locals: Dict[Expression, int] = {}
        self._current_function = FunctionType.NONE
        self._current_class = ClassType.NONE
        self._lines = source.splitlines() if source is not None else []

    def resolve(self, statements: List[Statement]) -> ResolveResult:
        """Resolve a complete program."""
        for stmt in statements:
            try:
                self._resolve_statement(stmt)
            except RecursionError:
                self._too_deep(stmt)
        logger.debug("resolved %d local reference(s), %d error(s)",
                     len(self.locals), self.diagnostics.error_count)
        return ResolveResult(locals=self.locals, diagnostics=self.diagnostics.diagnostics)

    def resolve_expression(self, expr: Expression) -> ResolveResult:
        """Resolve a standalone expression (top-level scope)."""
        try:
            self._resolve_expression(expr)
        except RecursionError:
            self._too_deep(expr)
        return ResolveResult(locals=self.locals, diagnostics=self.diagnostics.diagnostics)

    # =========================================================================
    # Statements
    # =========================================================================

    def _resolve_statements(self, statements: List[Statement]) -> None:
        for stmt in statements:
            self._resolve_statement(stmt)

    def _resolve_statement(self, stmt: Statement) -> None:
        """Resolve a statement."""
        if self.diagnostics.should_stop:
            return

        if isinstance(stmt, Block):
            self.scopes.push("block")
            self._resolve_statements(stmt.statements)
            self.scopes.pop()
        elif isinstance(stmt, VarDecl):
            self._declare(stmt.name, SymbolKind.VARIABLE)
            if stmt.initializer is not None:
                self._resolve_expression(stmt.initializer)
            self.scopes.define(stmt.name.lexeme)
        elif isinstance(stmt, FunctionDecl):
            # Defined before the body so the function can recurse
            self._declare(stmt.name, SymbolKind.FUNCTION)
            self.scopes.define(stmt.name.lexeme)
            self._resolve_function(stmt.params, stmt.body, FunctionType.FUNCTION,
                                   f"function {stmt.name.lexeme}")
        elif isinstance(stmt, ClassDecl):
            self._resolve_class(stmt)
        elif isinstance(stmt, ExpressionStatement):
            self._resolve_expression(stmt.expression)
        elif isinstance(stmt, PrintStatement):
            self._resolve_expression(stmt.expression)
        elif isinstance(stmt, IfStatement):
            self._resolve_expression(stmt.condition)
            self._resolve_statement(stmt.then_branch)
            if stmt.else_branch is not None:
                self._resolve_statement(stmt.else_branch)
        elif isinstance(stmt, WhileStatement):
            self._resolve_expression(stmt.condition)
            self._resolve_statement(stmt.body)
        elif isinstance(stmt, ReturnStatement):
            if self._current_function == FunctionType.NONE:
                self._error(stmt.keyword, "Can't return from top-level code.", "E203")
            # Returning a value from an initializer is checked at run time
            if stmt.value is not None:
                self._resolve_expression(stmt.value)
        else:
            raise TypeError(f"Unknown statement type: {type(stmt).__name__}")

    def _resolve_class(self, stmt: ClassDecl) -> None:
        enclosing_class = self._current_class
        self._current_class = ClassType.CLASS

        self._declare(stmt.name, SymbolKind.CLASS)
        self.scopes.define(stmt.name.lexeme)

        if stmt.superclass is not None:
            if stmt.superclass.name.lexeme == stmt.name.lexeme:
                self._error(stmt.superclass.name, "A class can't inherit from itself.", "E207")
            self._current_class = ClassType.SUBCLASS
            self._resolve_expression(stmt.superclass)

            self.scopes.push(f"super {stmt.name.lexeme}")
            self.scopes.bind("super", SymbolKind.SUPER, stmt.superclass.span)

        self.scopes.push(f"class {stmt.name.lexeme}")
        self.scopes.bind("this", SymbolKind.THIS, stmt.name.span)

        for method in stmt.methods:
            kind = FunctionType.METHOD
            if method.name.lexeme == "init":
                kind = FunctionType.INITIALIZER
            self._resolve_function(method.params, method.body, kind,
                                   f"method {stmt.name.lexeme}.{method.name.lexeme}")

        self.scopes.pop()
        if stmt.superclass is not None:
            self.scopes.pop()

        self._current_class = enclosing_class

    def _resolve_function(self, params: List[Token], body: List[Statement],
                          kind: FunctionType, name: str) -> None:
        """Resolve a function body in a fresh scope holding its parameters."""
        enclosing_function = self._current_function
        self._current_function = kind

        self.scopes.push(name)
        for param in params:
            self._declare(param, SymbolKind.PARAMETER)
            self.scopes.define(param.lexeme)
        self._resolve_statements(body)
        self.scopes.pop()

        self._current_function = enclosing_function

    # =========================================================================
    # Expressions
    # =========================================================================

    def _resolve_expression(self, expr: Expression) -> None:
        """Resolve an expression."""
        if isinstance(expr, Variable):
            symbol = self.scopes.lookup_local(expr.name.lexeme)
            if symbol is not None and not symbol.defined:
                self._error(expr.name, "Can't read local variable in its own initializer.", "E201")
            self._resolve_local(expr, expr.name.lexeme)
        elif isinstance(expr, Assign):
            self._resolve_expression(expr.value)
            self._resolve_local(expr, expr.name.lexeme)
        elif isinstance(expr, (Binary, Logical)):
            self._resolve_expression(expr.left)
            self._resolve_expression(expr.right)
        elif isinstance(expr, Unary):
            self._resolve_expression(expr.operand)
        elif isinstance(expr, Grouping):
            self._resolve_expression(expr.expression)
        elif isinstance(expr, Literal):
            pass
        elif isinstance(expr, Call):
            self._resolve_expression(expr.callee)
            for argument in expr.arguments:
                self._resolve_expression(argument)
        elif isinstance(expr, Get):
            # Property names are looked up dynamically
            self._resolve_expression(expr.object)
        elif isinstance(expr, Set):
            self._resolve_expression(expr.value)
            self._resolve_expression(expr.object)
        elif isinstance(expr, This):
            if self._current_class == ClassType.NONE:
                self._error(expr.keyword, "Can't use 'this' outside of a class.", "E204")
                return
            self._resolve_local(expr, "this")
        elif isinstance(expr, Super):
            if self._current_class == ClassType.NONE:
                self._error(expr.keyword, "Can't use 'super' outside of a class.", "E205")
                return
            if self._current_class != ClassType.SUBCLASS:
                self._error(expr.keyword, "Can't use 'super' in a class with no superclass.", "E206")
                return
            self._resolve_local(expr, "super")
        elif isinstance(expr, FunctionExpr):
            self._resolve_function(expr.params, expr.body, FunctionType.LAMBDA, "lambda")
        else:
            raise TypeError(f"Unknown expression type: {type(expr).__name__}")

    def _resolve_local(self, expr: Expression, name: str) -> None:
        """Record the scope distance for ``expr``; globals are left unrecorded."""
        distance = self.scopes.resolve(name)
        if distance is not None:
            self.locals[expr] = distance

    # =========================================================================
    # Diagnostics
    # =========================================================================

    def _declare(self, name: Token, kind: SymbolKind) -> None:
        existing = self.scopes.lookup_local(name.lexeme)
        symbol = Symbol(name=name.lexeme, kind=kind, span=name.span)
        if not self.scopes.declare(symbol):
            hints = []
            if existing is not None and existing.span is not None:
                hints.append(f"'{name.lexeme}' is already declared as a "
                             f"{existing.kind.name.lower()} on line {existing.span.start.line}")
            self._error(name, "Already a variable with this name in this scope.", "E202", hints)

    def _source_line(self, line: int) -> Optional[str]:
        return self._lines[line - 1] if 1 <= line <= len(self._lines) else None

    def _error(self, token: Token, message: str, code: str, hints: List[str] = None) -> None:
        """Record an error diagnostic."""
        source_line = self._source_line(token.line)
        self.diagnostics.add_error(error_resolver(token, message, code, source_line, hints))

    def _too_deep(self, node) -> None:
        """Record a nesting error for a top-level node and reset the walk state."""
        self.scopes = ScopeStack()
        self._current_function = FunctionType.NONE
        self._current_class = ClassType.NONE
        logger.debug("nesting limit reached at line %d", node.span.start.line)
        self.diagnostics.add_error(
            error_resolver_nesting(node.span, self._source_line(node.span.start.line)))


def resolve(statements: List[Statement], max_errors: int = 20,
            source: Optional[str] = None) -> ResolveResult:
    """
    Convenience function to resolve a parsed program.

    Args:
        statements: The parsed program
        max_errors: Maximum errors before stopping (default 20)
        source: Optional original source code for error excerpts

    Returns:
        ResolveResult with the scope-distance table and diagnostics
    """
    resolver = Resolver(max_errors=max_errors, source=source)
    return resolver.resolve(statements)
