"""
Abstract Syntax Tree (AST) node definitions for treelox.

The AST represents the structure of a parsed program, which is then
resolved and interpreted.

Nodes compare and hash by identity (``eq=False``): the resolver keys its
scope-distance table on the node objects themselves, so two textually
identical references at different places stay distinct.
"""

from dataclasses import dataclass, field
from typing import Optional, List, Any
from abc import ABC
from .tokens import SourceSpan, Token


# =============================================================================
# Base Classes
# =============================================================================

@dataclass(eq=False)
class AstNode(ABC):
    """Base class for all AST nodes."""
    span: SourceSpan  # Source location for error reporting

    def accept(self, visitor: "AstVisitor") -> Any:
        """Accept a visitor for traversal."""
        method_name = f"visit_{self.__class__.__name__}"
        method = getattr(visitor, method_name, visitor.generic_visit)
        return method(self)


class AstVisitor(ABC):
    """Base class for AST visitors."""

    def generic_visit(self, node: AstNode) -> Any:
        """Default visit method."""
        raise NotImplementedError(f"No visitor for {node.__class__.__name__}")


# =============================================================================
# Expression Nodes
# =============================================================================

@dataclass(eq=False)
class Expression(AstNode):
    """Base class for all expressions."""
    pass


@dataclass(eq=False)
class Literal(Expression):
    """A literal value: float, str, bool or None (nil)."""
    value: Any


@dataclass(eq=False)
class Grouping(Expression):
    """A parenthesized expression."""
    expression: Expression


@dataclass(eq=False)
class Unary(Expression):
    """A unary operation (e.g., !x, -n)."""
    operator: Token
    operand: Expression


@dataclass(eq=False)
class Binary(Expression):
    """An arithmetic, comparison or equality operation."""
    left: Expression
    operator: Token
    right: Expression


@dataclass(eq=False)
class Logical(Expression):
    """A short-circuiting 'and' / 'or'."""
    left: Expression
    operator: Token
    right: Expression


@dataclass(eq=False)
class Variable(Expression):
    """A variable reference."""
    name: Token


@dataclass(eq=False)
class Assign(Expression):
    """An assignment to a variable (e.g., x = 5)."""
    name: Token
    value: Expression


@dataclass(eq=False)
class Call(Expression):
    """A call; ``paren`` is the closing parenthesis, used to locate errors."""
    callee: Expression
    paren: Token
    arguments: List[Expression] = field(default_factory=list)


@dataclass(eq=False)
class Get(Expression):
    """Property access (e.g., point.x)."""
    object: Expression
    name: Token


@dataclass(eq=False)
class Set(Expression):
    """Property assignment (e.g., point.x = 1)."""
    object: Expression
    name: Token
    value: Expression


@dataclass(eq=False)
class This(Expression):
    """The 'this' keyword inside a method."""
    keyword: Token


@dataclass(eq=False)
class Super(Expression):
    """A superclass method reference (e.g., super.init)."""
    keyword: Token
    method: Token


@dataclass(eq=False)
class FunctionExpr(Expression):
    """An anonymous function (e.g., fun (a, b) { return a + b; })."""
    keyword: Token
    params: List[Token]
    body: List["Statement"]


# =============================================================================
# Statement Nodes
# =============================================================================

@dataclass(eq=False)
class Statement(AstNode):
    """Base class for all statements."""
    pass


@dataclass(eq=False)
class ExpressionStatement(Statement):
    """An expression evaluated for its side effects."""
    expression: Expression


@dataclass(eq=False)
class PrintStatement(Statement):
    """print <expression>;"""
    expression: Expression


@dataclass(eq=False)
class VarDecl(Statement):
    """A variable declaration; a missing initializer binds nil."""
    name: Token
    initializer: Optional[Expression] = None


@dataclass(eq=False)
class Block(Statement):
    """A brace-delimited block; it owns a new lexical scope."""
    statements: List[Statement] = field(default_factory=list)


@dataclass(eq=False)
class IfStatement(Statement):
    """if (condition) then_branch [else else_branch]"""
    condition: Expression
    then_branch: Statement
    else_branch: Optional[Statement] = None


@dataclass(eq=False)
class WhileStatement(Statement):
    """while (condition) body; 'for' loops are desugared into this."""
    condition: Expression
    body: Statement


@dataclass(eq=False)
class FunctionDecl(Statement):
    """A named function or method declaration.

    Syntax:
        fun name(param1, param2) {
            ...
        }

    Inside a class body the 'fun' keyword is omitted.
    """
    name: Token
    params: List[Token]
    body: List[Statement]


@dataclass(eq=False)
class ReturnStatement(Statement):
    """return [value];"""
    keyword: Token
    value: Optional[Expression] = None


@dataclass(eq=False)
class ClassDecl(Statement):
    """A class declaration with an optional single superclass.

    Syntax:
        class Name < Superclass {
            init(a) { this.a = a; }
            method() { ... }
        }
    """
    name: Token
    superclass: Optional[Variable]
    methods: List[FunctionDecl] = field(default_factory=list)
