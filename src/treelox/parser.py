"""
Recursive descent parser for treelox.

Converts a token stream into an Abstract Syntax Tree (AST).
Syntax errors are collected rather than raised: after an error the parser
discards tokens up to the next statement boundary and keeps going, so one
run reports every independent mistake.
"""

import logging
from typing import List, Optional, Tuple

from .tokens import Token, TokenType, SourceSpan, STATEMENT_KEYWORDS
from .ast import (
    # Expressions
    Expression, Literal, Grouping, Unary, Binary, Logical, Variable, Assign,
    Call, Get, Set, This, Super, FunctionExpr,
    # Statements
    Statement, ExpressionStatement, PrintStatement, VarDecl, Block,
    IfStatement, WhileStatement, FunctionDecl, ReturnStatement, ClassDecl,
)
from .errors import (
    ParserError,
    error_unexpected_token,
    error_invalid_assignment_target,
    error_too_many,
    error_nesting_too_deep,
    DiagnosticCollector,
)

logger = logging.getLogger(__name__)

MAX_ARGUMENTS = 255


class Parser:
    """
    Recursive descent parser for treelox.

    Usage:
        parser = Parser(tokens)
        statements = parser.parse()
        if parser.diagnostics.has_errors:
            ...

    Expression precedence, lowest to highest:
        assignment (right-associative)
        or
        and
        == !=
        < > <= >=
        + -
        * /
        unary (! -)
        call / property access
        primary
    """

    def __init__(self, tokens: List[Token], filename: Optional[str] = None,
                 source: Optional[str] = None, max_errors: int = 20):
        self.tokens = tokens
        self.filename = filename
        self.source = source  # Original source code for error excerpts
        self.pos = 0
        self.diagnostics = DiagnosticCollector(max_errors)
        self._lines = source.splitlines() if source is not None else []

    # =========================================================================
    # Token Navigation
    # =========================================================================

    def _current(self) -> Token:
        """Get current token."""
        if self.pos >= len(self.tokens):
            return self.tokens[-1]  # EOF
        return self.tokens[self.pos]

    def _previous(self) -> Token:
        """Get the most recently consumed token."""
        return self.tokens[max(0, self.pos - 1)]

    def _peek(self, offset: int = 0) -> Token:
        """Peek at token at current position + offset."""
        idx = self.pos + offset
        if idx >= len(self.tokens):
            return self.tokens[-1]  # EOF
        return self.tokens[idx]

    def _is_at_end(self) -> bool:
        """Check if at end of tokens."""
        return self._current().type == TokenType.EOF

    def _check(self, token_type: TokenType) -> bool:
        """Check if current token is of given type."""
        return self._current().type == token_type

    def _check_ahead(self, token_type: TokenType, offset: int = 1) -> bool:
        """Check if token at current position + offset is of given type."""
        return self._peek(offset).type == token_type

    def _advance(self) -> Token:
        """Consume and return current token."""
        token = self._current()
        if not self._is_at_end():
            self.pos += 1
        return token

    def _consume(self, token_type: TokenType, message: str) -> Token:
        """Consume token of expected type, or raise error."""
        if self._check(token_type):
            return self._advance()
        raise self._error(self._current(), message)

    def _match(self, *token_types: TokenType) -> Optional[Token]:
        """Consume token if it matches any of the given types."""
        if self._current().type in token_types:
            return self._advance()
        return None

    def _source_line(self, token: Token) -> Optional[str]:
        line = token.line
        if 1 <= line <= len(self._lines):
            return self._lines[line - 1]
        return None

    def _error(self, token: Token, message: str) -> ParserError:
        """Build a parser error located at ``token``; the caller raises it."""
        return error_unexpected_token(token, message, self._source_line(token))

    def _report(self, error: ParserError) -> None:
        """Record an error that does not require resynchronizing."""
        self.diagnostics.add_error(error)

    def _too_deep(self) -> None:
        token = self._current()
        logger.debug("nesting limit reached at line %d", token.line)
        self._report(error_nesting_too_deep(token, self._source_line(token)))

    def _span_from(self, start: Token) -> SourceSpan:
        """Create a span from start token to the last consumed token."""
        end_token = self._previous()
        if end_token.span.end.offset < start.span.start.offset:
            end_token = start
        return SourceSpan(start.span.start, end_token.span.end)

    def _synchronize(self) -> None:
        """Discard tokens until the start of the next statement."""
        self._advance()
        while not self._is_at_end():
            if self._previous().type == TokenType.SEMICOLON:
                return
            if self._current().type in STATEMENT_KEYWORDS:
                return
            self._advance()

    # =========================================================================
    # Declarations
    # =========================================================================

    def _declaration(self) -> Optional[Statement]:
        """Parse a declaration, recovering from any syntax error inside it."""
        try:
            if self._check(TokenType.CLASS):
                return self._parse_class_decl()
            if self._check(TokenType.FUN) and self._check_ahead(TokenType.IDENTIFIER):
                self._advance()  # consume 'fun'
                return self._parse_function("function")
            if self._check(TokenType.VAR):
                return self._parse_var_decl()
            return self._parse_statement()
        except ParserError as e:
            self.diagnostics.add_error(e)
            self._synchronize()
            return None
        except RecursionError:
            self._too_deep()
            self._synchronize()
            return None

    def _parse_class_decl(self) -> ClassDecl:
        start = self._advance()  # consume 'class'
        name = self._consume(TokenType.IDENTIFIER, "Expect class name.")

        superclass = None
        if self._match(TokenType.LESS):
            super_name = self._consume(TokenType.IDENTIFIER, "Expect superclass name.")
            superclass = Variable(span=super_name.span, name=super_name)

        self._consume(TokenType.LEFT_BRACE, "Expect '{' before class body.")

        methods = []
        while not self._check(TokenType.RIGHT_BRACE) and not self._is_at_end():
            methods.append(self._parse_function("method"))

        self._consume(TokenType.RIGHT_BRACE, "Expect '}' after class body.")
        return ClassDecl(
            span=self._span_from(start),
            name=name,
            superclass=superclass,
            methods=methods,
        )

    def _parse_function(self, kind: str) -> FunctionDecl:
        """Parse the name, parameters and body of a function or method."""
        name = self._consume(TokenType.IDENTIFIER, f"Expect {kind} name.")
        self._consume(TokenType.LEFT_PAREN, f"Expect '(' after {kind} name.")
        params = self._parse_parameters()
        self._consume(TokenType.LEFT_BRACE, f"Expect '{{' before {kind} body.")
        body = self._parse_block_body()
        return FunctionDecl(
            span=self._span_from(name),
            name=name,
            params=params,
            body=body,
        )

    def _parse_parameters(self) -> List[Token]:
        """Parse a parameter list; the opening '(' is already consumed."""
        params: List[Token] = []
        if not self._check(TokenType.RIGHT_PAREN):
            while True:
                if len(params) >= MAX_ARGUMENTS:
                    self._report(error_too_many(
                        self._current(), "parameters", MAX_ARGUMENTS,
                        self._source_line(self._current())
                    ))
                params.append(self._consume(TokenType.IDENTIFIER, "Expect parameter name."))
                if not self._match(TokenType.COMMA):
                    break
        self._consume(TokenType.RIGHT_PAREN, "Expect ')' after parameters.")
        return params

    def _parse_var_decl(self) -> VarDecl:
        start = self._advance()  # consume 'var'
        name = self._consume(TokenType.IDENTIFIER, "Expect variable name.")

        initializer = None
        if self._match(TokenType.EQUAL):
            initializer = self._parse_expression()

        self._consume(TokenType.SEMICOLON, "Expect ';' after variable declaration.")
        return VarDecl(span=self._span_from(start), name=name, initializer=initializer)

    # =========================================================================
    # Statements
    # =========================================================================

    def _parse_statement(self) -> Statement:
        """Parse a single statement."""
        if self._check(TokenType.FOR):
            return self._parse_for_statement()
        if self._check(TokenType.IF):
            return self._parse_if_statement()
        if self._check(TokenType.PRINT):
            return self._parse_print_statement()
        if self._check(TokenType.RETURN):
            return self._parse_return_statement()
        if self._check(TokenType.WHILE):
            return self._parse_while_statement()
        if self._check(TokenType.LEFT_BRACE):
            start = self._advance()
            statements = self._parse_block_body()
            return Block(span=self._span_from(start), statements=statements)
        return self._parse_expression_statement()

    def _parse_for_statement(self) -> Statement:
        """Parse a C-style for loop, desugared into a while loop.

        for (init; cond; incr) body

        becomes

        { init; while (cond) { body; incr; } }
        """
        start = self._advance()  # consume 'for'
        self._consume(TokenType.LEFT_PAREN, "Expect '(' after 'for'.")

        if self._match(TokenType.SEMICOLON):
            initializer = None
        elif self._check(TokenType.VAR):
            initializer = self._parse_var_decl()
        else:
            initializer = self._parse_expression_statement()

        condition = None
        if not self._check(TokenType.SEMICOLON):
            condition = self._parse_expression()
        self._consume(TokenType.SEMICOLON, "Expect ';' after loop condition.")

        increment = None
        if not self._check(TokenType.RIGHT_PAREN):
            increment = self._parse_expression()
        self._consume(TokenType.RIGHT_PAREN, "Expect ')' after for clauses.")

        body = self._parse_statement()
        span = self._span_from(start)

        if increment is not None:
            body = Block(span=span, statements=[
                body,
                ExpressionStatement(span=increment.span, expression=increment),
            ])

        if condition is None:
            condition = Literal(span=start.span, value=True)
        loop: Statement = WhileStatement(span=span, condition=condition, body=body)

        if initializer is not None:
            loop = Block(span=span, statements=[initializer, loop])

        return loop

    def _parse_if_statement(self) -> IfStatement:
        start = self._advance()  # consume 'if'
        self._consume(TokenType.LEFT_PAREN, "Expect '(' after 'if'.")
        condition = self._parse_expression()
        self._consume(TokenType.RIGHT_PAREN, "Expect ')' after if condition.")

        then_branch = self._parse_statement()
        else_branch = None
        if self._match(TokenType.ELSE):
            else_branch = self._parse_statement()

        return IfStatement(
            span=self._span_from(start),
            condition=condition,
            then_branch=then_branch,
            else_branch=else_branch,
        )

    def _parse_print_statement(self) -> PrintStatement:
        start = self._advance()  # consume 'print'
        value = self._parse_expression()
        self._consume(TokenType.SEMICOLON, "Expect ';' after value.")
        return PrintStatement(span=self._span_from(start), expression=value)

    def _parse_return_statement(self) -> ReturnStatement:
        keyword = self._advance()  # consume 'return'
        value = None
        if not self._check(TokenType.SEMICOLON):
            value = self._parse_expression()
        self._consume(TokenType.SEMICOLON, "Expect ';' after return value.")
        return ReturnStatement(span=self._span_from(keyword), keyword=keyword, value=value)

    def _parse_while_statement(self) -> WhileStatement:
        start = self._advance()  # consume 'while'
        self._consume(TokenType.LEFT_PAREN, "Expect '(' after 'while'.")
        condition = self._parse_expression()
        self._consume(TokenType.RIGHT_PAREN, "Expect ')' after condition.")
        body = self._parse_statement()
        return WhileStatement(span=self._span_from(start), condition=condition, body=body)

    def _parse_block_body(self) -> List[Statement]:
        """Parse declarations up to the closing brace; '{' is already consumed."""
        statements = []
        while not self._check(TokenType.RIGHT_BRACE) and not self._is_at_end():
            stmt = self._declaration()
            if stmt is not None:
                statements.append(stmt)
        self._consume(TokenType.RIGHT_BRACE, "Expect '}' after block.")
        return statements

    def _parse_expression_statement(self) -> ExpressionStatement:
        start = self._current()
        expr = self._parse_expression()
        self._consume(TokenType.SEMICOLON, "Expect ';' after expression.")
        return ExpressionStatement(span=self._span_from(start), expression=expr)

    # =========================================================================
    # Expressions
    # =========================================================================

    def _parse_expression(self) -> Expression:
        return self._parse_assignment()

    def _parse_assignment(self) -> Expression:
        """Parse an assignment (right-associative) or anything tighter."""
        expr = self._parse_or()

        equals = self._match(TokenType.EQUAL)
        if equals is None:
            return expr

        value = self._parse_assignment()
        span = SourceSpan(expr.span.start, value.span.end)

        if isinstance(expr, Variable):
            return Assign(span=span, name=expr.name, value=value)
        if isinstance(expr, Get):
            return Set(span=span, object=expr.object, name=expr.name, value=value)

        # Report without synchronizing; the parser is not confused
        self._report(error_invalid_assignment_target(equals, self._source_line(equals)))
        return expr

    def _parse_or(self) -> Expression:
        expr = self._parse_and()
        operator = self._match(TokenType.OR)
        while operator is not None:
            right = self._parse_and()
            expr = Logical(span=SourceSpan(expr.span.start, right.span.end),
                           left=expr, operator=operator, right=right)
            operator = self._match(TokenType.OR)
        return expr

    def _parse_and(self) -> Expression:
        expr = self._parse_equality()
        operator = self._match(TokenType.AND)
        while operator is not None:
            right = self._parse_equality()
            expr = Logical(span=SourceSpan(expr.span.start, right.span.end),
                           left=expr, operator=operator, right=right)
            operator = self._match(TokenType.AND)
        return expr

    def _parse_binary(self, operand, *operators: TokenType) -> Expression:
        """Parse a left-associative binary level over ``operators``."""
        expr = operand()
        operator = self._match(*operators)
        while operator is not None:
            right = operand()
            expr = Binary(span=SourceSpan(expr.span.start, right.span.end),
                          left=expr, operator=operator, right=right)
            operator = self._match(*operators)
        return expr

    def _parse_equality(self) -> Expression:
        return self._parse_binary(self._parse_comparison,
                                  TokenType.BANG_EQUAL, TokenType.EQUAL_EQUAL)

    def _parse_comparison(self) -> Expression:
        return self._parse_binary(self._parse_term,
                                  TokenType.GREATER, TokenType.GREATER_EQUAL,
                                  TokenType.LESS, TokenType.LESS_EQUAL)

    def _parse_term(self) -> Expression:
        return self._parse_binary(self._parse_factor, TokenType.MINUS, TokenType.PLUS)

    def _parse_factor(self) -> Expression:
        return self._parse_binary(self._parse_unary, TokenType.SLASH, TokenType.STAR)

    def _parse_unary(self) -> Expression:
        operator = self._match(TokenType.BANG, TokenType.MINUS)
        if operator is not None:
            operand = self._parse_unary()
            return Unary(span=SourceSpan(operator.span.start, operand.span.end),
                         operator=operator, operand=operand)
        return self._parse_call()

    def _parse_call(self) -> Expression:
        """Parse call and property-access postfixes."""
        expr = self._parse_primary()

        while True:
            if self._match(TokenType.LEFT_PAREN):
                expr = self._finish_call(expr)
            elif self._match(TokenType.DOT):
                name = self._consume(TokenType.IDENTIFIER, "Expect property name after '.'.")
                expr = Get(span=SourceSpan(expr.span.start, name.span.end),
                           object=expr, name=name)
            else:
                break

        return expr

    def _finish_call(self, callee: Expression) -> Call:
        """Parse call arguments; the opening '(' is already consumed."""
        arguments: List[Expression] = []
        if not self._check(TokenType.RIGHT_PAREN):
            while True:
                if len(arguments) >= MAX_ARGUMENTS:
                    self._report(error_too_many(
                        self._current(), "arguments", MAX_ARGUMENTS,
                        self._source_line(self._current())
                    ))
                arguments.append(self._parse_expression())
                if not self._match(TokenType.COMMA):
                    break

        paren = self._consume(TokenType.RIGHT_PAREN, "Expect ')' after arguments.")
        return Call(span=SourceSpan(callee.span.start, paren.span.end),
                    callee=callee, paren=paren, arguments=arguments)

    def _parse_primary(self) -> Expression:
        """Parse a primary expression (literal, name, grouping, lambda)."""
        token = self._current()

        if self._match(TokenType.FALSE):
            return Literal(span=token.span, value=False)
        if self._match(TokenType.TRUE):
            return Literal(span=token.span, value=True)
        if self._match(TokenType.NIL):
            return Literal(span=token.span, value=None)
        if self._match(TokenType.NUMBER, TokenType.STRING):
            return Literal(span=token.span, value=token.value)

        if self._match(TokenType.THIS):
            return This(span=token.span, keyword=token)

        if self._match(TokenType.SUPER):
            self._consume(TokenType.DOT, "Expect '.' after 'super'.")
            method = self._consume(TokenType.IDENTIFIER, "Expect superclass method name.")
            return Super(span=self._span_from(token), keyword=token, method=method)

        if self._match(TokenType.IDENTIFIER):
            return Variable(span=token.span, name=token)

        if self._match(TokenType.FUN):
            return self._parse_function_expr(token)

        if self._match(TokenType.LEFT_PAREN):
            expr = self._parse_expression()
            self._consume(TokenType.RIGHT_PAREN, "Expect ')' after expression.")
            return Grouping(span=self._span_from(token), expression=expr)

        raise self._error(token, "Expect expression.")

    def _parse_function_expr(self, keyword: Token) -> FunctionExpr:
        """Parse an anonymous function; 'fun' is already consumed."""
        self._consume(TokenType.LEFT_PAREN, "Expect '(' after 'fun'.")
        params = self._parse_parameters()
        self._consume(TokenType.LEFT_BRACE, "Expect '{' before function body.")
        body = self._parse_block_body()
        return FunctionExpr(span=self._span_from(keyword), keyword=keyword,
                            params=params, body=body)

    # =========================================================================
    # Entry Points
    # =========================================================================

    def parse(self) -> List[Statement]:
        """Parse a complete program.

        Statements that failed to parse are dropped; their errors are in
        ``self.diagnostics``. Parsing stops early once the error limit is hit.
        """
        statements = []
        while not self._is_at_end():
            stmt = self._declaration()
            if stmt is not None:
                statements.append(stmt)
            if self.diagnostics.should_stop:
                logger.debug("error limit reached, abandoning parse")
                break

        logger.debug("parsed %d statement(s) with %d syntax error(s)",
                     len(statements), self.diagnostics.error_count)
        return statements

    def parse_expression(self) -> Optional[Expression]:
        """Parse a single expression spanning the whole token stream.

        Returns None if there was a syntax error.
        """
        try:
            expr = self._parse_expression()
            if not self._is_at_end():
                raise self._error(self._current(), "Expect end of expression.")
        except ParserError as e:
            self.diagnostics.add_error(e)
            return None
        except RecursionError:
            self._too_deep()
            return None
        if self.diagnostics.has_errors:
            return None
        return expr


def parse(tokens: List[Token], filename: Optional[str] = None, source: Optional[str] = None,
          max_errors: int = 20) -> Tuple[List[Statement], DiagnosticCollector]:
    """
    Convenience function to parse tokens into a program.

    Args:
        tokens: List of tokens from the lexer
        filename: Optional filename for error messages
        source: Optional original source code for error excerpts
        max_errors: Error limit for the returned collector

    Returns:
        (statements, diagnostics)
    """
    parser = Parser(tokens, filename, source, max_errors)
    statements = parser.parse()
    return statements, parser.diagnostics
