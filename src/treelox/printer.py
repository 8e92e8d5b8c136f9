"""
Parenthesized prefix rendering of treelox syntax trees.

    (+ 1.0 (group 2.0))
    (var a (* 2.0 3.0))
    (block (print a))
"""

from typing import Any, List

from .ast import (
    AstNode, AstVisitor,
    Literal, Grouping, Unary, Binary, Logical, Variable, Assign,
    Call, Get, Set, This, Super, FunctionExpr,
    ExpressionStatement, PrintStatement, VarDecl, Block,
    IfStatement, WhileStatement, FunctionDecl, ReturnStatement, ClassDecl,
)


class AstPrinter(AstVisitor):
    """Renders expressions and statements as s-expressions."""

    def print(self, node: AstNode) -> str:
        return node.accept(self)

    def _parenthesize(self, name: str, *parts: Any) -> str:
        rendered = [name]
        for part in parts:
            if isinstance(part, AstNode):
                rendered.append(part.accept(self))
            elif isinstance(part, list):
                rendered.extend(item.accept(self) for item in part)
            else:
                rendered.append(str(part))
        return "(" + " ".join(rendered) + ")"

    @staticmethod
    def _params(params: List) -> str:
        return "(" + " ".join(p.lexeme for p in params) + ")"

    # --- Expressions ---

    def visit_Literal(self, node: Literal) -> str:
        if node.value is None:
            return "nil"
        if isinstance(node.value, bool):
            return "true" if node.value else "false"
        if isinstance(node.value, float):
            return repr(node.value)
        return node.value

    def visit_Grouping(self, node: Grouping) -> str:
        return self._parenthesize("group", node.expression)

    def visit_Unary(self, node: Unary) -> str:
        return self._parenthesize(node.operator.lexeme, node.operand)

    def visit_Binary(self, node: Binary) -> str:
        return self._parenthesize(node.operator.lexeme, node.left, node.right)

    def visit_Logical(self, node: Logical) -> str:
        return self._parenthesize(node.operator.lexeme, node.left, node.right)

    def visit_Variable(self, node: Variable) -> str:
        return node.name.lexeme

    def visit_Assign(self, node: Assign) -> str:
        return self._parenthesize("=", node.name.lexeme, node.value)

    def visit_Call(self, node: Call) -> str:
        return self._parenthesize("call", node.callee, node.arguments)

    def visit_Get(self, node: Get) -> str:
        return self._parenthesize(".", node.object, node.name.lexeme)

    def visit_Set(self, node: Set) -> str:
        return self._parenthesize("=", node.object, node.name.lexeme, node.value)

    def visit_This(self, node: This) -> str:
        return "this"

    def visit_Super(self, node: Super) -> str:
        return self._parenthesize("super", node.method.lexeme)

    def visit_FunctionExpr(self, node: FunctionExpr) -> str:
        return self._parenthesize("fun", self._params(node.params), node.body)

    # --- Statements ---

    def visit_ExpressionStatement(self, node: ExpressionStatement) -> str:
        return self._parenthesize(";", node.expression)

    def visit_PrintStatement(self, node: PrintStatement) -> str:
        return self._parenthesize("print", node.expression)

    def visit_VarDecl(self, node: VarDecl) -> str:
        if node.initializer is None:
            return self._parenthesize("var", node.name.lexeme)
        return self._parenthesize("var", node.name.lexeme, node.initializer)

    def visit_Block(self, node: Block) -> str:
        return self._parenthesize("block", node.statements)

    def visit_IfStatement(self, node: IfStatement) -> str:
        if node.else_branch is None:
            return self._parenthesize("if", node.condition, node.then_branch)
        return self._parenthesize("if-else", node.condition, node.then_branch, node.else_branch)

    def visit_WhileStatement(self, node: WhileStatement) -> str:
        return self._parenthesize("while", node.condition, node.body)

    def visit_FunctionDecl(self, node: FunctionDecl) -> str:
        return self._parenthesize("fun", node.name.lexeme, self._params(node.params), node.body)

    def visit_ReturnStatement(self, node: ReturnStatement) -> str:
        if node.value is None:
            return "(return)"
        return self._parenthesize("return", node.value)

    def visit_ClassDecl(self, node: ClassDecl) -> str:
        if node.superclass is None:
            return self._parenthesize("class", node.name.lexeme, node.methods)
        return self._parenthesize("class", node.name.lexeme, "<",
                                  node.superclass.name.lexeme, node.methods)
