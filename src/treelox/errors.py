"""
Diagnostics and exceptions for treelox.

Error code ranges:
- E0xx: Lexer errors
- E1xx: Parser errors
- E2xx: Resolver errors
- E3xx: Runtime errors
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, List
from .tokens import SourceSpan, Token, TokenType


class ErrorSeverity(Enum):
    """Severity levels for diagnostics."""
    ERROR = "error"


@dataclass
class Diagnostic:
    """A single diagnostic message."""
    code: str                       # E001, E101, etc.
    message: str                    # Human-readable message
    severity: ErrorSeverity
    span: SourceSpan
    source_line: Optional[str] = None   # The actual line of source code
    hints: List[str] = field(default_factory=list)
    where: str = ""                 # " at 'x'" / " at end", for parser errors

    @property
    def line(self) -> int:
        return self.span.start.line

    def format(self, show_source: bool = False) -> str:
        """Format the diagnostic for display."""
        label = self.severity.value.capitalize()
        parts = [f"[line {self.line}] {label}{self.where}: {self.message}"]

        # Source line with caret
        if show_source and self.source_line is not None:
            parts.append("  |")
            line_num = str(self.span.start.line)
            parts.append(f"{line_num:>3} | {self.source_line}")

            col = self.span.start.column
            end_col = self.span.end.column if self.span.start.line == self.span.end.line else len(self.source_line) + 1
            underline_len = max(1, end_col - col)
            parts.append(f"    | {' ' * (col - 1)}{'^' * underline_len}")

        if show_source:
            for hint in self.hints:
                parts.append(f"    = hint: {hint}")

        return "\n".join(parts)


class LoxError(Exception):
    """Base exception for treelox errors."""

    def __init__(self, diagnostic: Diagnostic):
        self.diagnostic = diagnostic
        super().__init__(diagnostic.message)

    def __str__(self) -> str:
        return self.diagnostic.format()


class LexerError(LoxError):
    """Error during lexical analysis (E0xx)."""
    pass


class ParserError(LoxError):
    """Error during parsing (E1xx)."""
    pass


class ResolverError(LoxError):
    """Error during scope resolution (E2xx)."""
    pass


class LoxRuntimeError(LoxError):
    """Error raised while evaluating a program (E3xx)."""

    def __init__(self, token: Optional[Token], diagnostic: Diagnostic):
        self.token = token
        super().__init__(diagnostic)

    @property
    def line(self) -> int:
        return self.diagnostic.line

    def report(self) -> str:
        """Render the error as ``message`` followed by ``[line N]``."""
        return f"{self.diagnostic.message}\n[line {self.line}]"


def token_location(token: Token) -> str:
    """Describe where a token sits, for parser and resolver messages."""
    if token.type == TokenType.EOF:
        return " at end"
    return f" at '{token.lexeme}'"


# --- Lexer error codes ---

def error_unexpected_character(char: str, span: SourceSpan, source_line: str = None) -> LexerError:
    """E001: Unexpected character."""
    diag = Diagnostic(
        code="E001",
        message=f"Unexpected character: {char}",
        severity=ErrorSeverity.ERROR,
        span=span,
        source_line=source_line,
    )
    return LexerError(diag)


def error_unterminated_string(span: SourceSpan, source_line: str = None) -> LexerError:
    """E002: Unterminated string literal."""
    diag = Diagnostic(
        code="E002",
        message="Unterminated string.",
        severity=ErrorSeverity.ERROR,
        span=span,
        source_line=source_line,
        hints=["string literals must be closed with '\"' on the same line"],
    )
    return LexerError(diag)


def error_unterminated_comment(span: SourceSpan, source_line: str = None) -> LexerError:
    """E004: Unterminated block comment."""
    diag = Diagnostic(
        code="E004",
        message="Unterminated block comment.",
        severity=ErrorSeverity.ERROR,
        span=span,
        source_line=source_line,
        hints=["block comments nest; every '/*' needs a matching '*/'"],
    )
    return LexerError(diag)


# --- Parser error codes ---

def error_unexpected_token(token: Token, message: str, source_line: str = None) -> ParserError:
    """E101: Unexpected token (Expect ... style messages)."""
    code = "E102" if token.type == TokenType.EOF else "E101"
    diag = Diagnostic(
        code=code,
        message=message,
        severity=ErrorSeverity.ERROR,
        span=token.span,
        source_line=source_line,
        where=token_location(token),
    )
    return ParserError(diag)


def error_invalid_assignment_target(token: Token, source_line: str = None) -> ParserError:
    """E104: Left-hand side of '=' is not assignable."""
    diag = Diagnostic(
        code="E104",
        message="Invalid assignment target.",
        severity=ErrorSeverity.ERROR,
        span=token.span,
        source_line=source_line,
        where=token_location(token),
    )
    return ParserError(diag)


def error_too_many(token: Token, what: str, limit: int, source_line: str = None) -> ParserError:
    """E105: Parameter or argument list exceeds the limit."""
    diag = Diagnostic(
        code="E105",
        message=f"Can't have more than {limit} {what}.",
        severity=ErrorSeverity.ERROR,
        span=token.span,
        source_line=source_line,
        where=token_location(token),
    )
    return ParserError(diag)


def error_nesting_too_deep(token: Token, source_line: str = None) -> ParserError:
    """E106: Expression nests deeper than the parser can follow."""
    diag = Diagnostic(
        code="E106",
        message="Expression nesting too deep.",
        severity=ErrorSeverity.ERROR,
        span=token.span,
        source_line=source_line,
        where=token_location(token),
    )
    return ParserError(diag)


# --- Resolver error codes ---

def error_resolver(token: Token, message: str, code: str, source_line: str = None,
                   hints: List[str] = None) -> ResolverError:
    """E2xx: Static scoping error located at a token."""
    diag = Diagnostic(
        code=code,
        message=message,
        severity=ErrorSeverity.ERROR,
        span=token.span,
        source_line=source_line,
        hints=list(hints or []),
        where=token_location(token),
    )
    return ResolverError(diag)


def error_resolver_nesting(span: SourceSpan, source_line: str = None) -> ResolverError:
    """E208: Statement nests deeper than the resolver can follow."""
    diag = Diagnostic(
        code="E208",
        message="Expression nesting too deep.",
        severity=ErrorSeverity.ERROR,
        span=span,
        source_line=source_line,
    )
    return ResolverError(diag)


# --- Runtime error codes ---

def error_runtime(token: Token, message: str, code: str = "E300") -> LoxRuntimeError:
    """E3xx: Runtime error located at a token."""
    diag = Diagnostic(
        code=code,
        message=message,
        severity=ErrorSeverity.ERROR,
        span=token.span,
    )
    return LoxRuntimeError(token, diag)


def error_runtime_at(span: SourceSpan, message: str, code: str = "E300") -> LoxRuntimeError:
    """E3xx: Runtime error with no single token to blame."""
    diag = Diagnostic(
        code=code,
        message=message,
        severity=ErrorSeverity.ERROR,
        span=span,
    )
    return LoxRuntimeError(None, diag)


class DiagnosticCollector:
    """Collects diagnostics during compilation."""

    def __init__(self, max_errors: int = 20):
        self.diagnostics: List[Diagnostic] = []
        self.max_errors = max_errors
        self._error_count = 0

    def add(self, diagnostic: Diagnostic) -> None:
        """Add a diagnostic."""
        self.diagnostics.append(diagnostic)
        if diagnostic.severity == ErrorSeverity.ERROR:
            self._error_count += 1

    def add_error(self, error: LoxError) -> None:
        """Add an error exception as a diagnostic."""
        self.add(error.diagnostic)

    @property
    def error_count(self) -> int:
        return self._error_count

    @property
    def has_errors(self) -> bool:
        return self._error_count > 0

    @property
    def should_stop(self) -> bool:
        """Check if we've hit the max error limit."""
        return self._error_count >= self.max_errors

    def format_all(self, show_source: bool = False) -> str:
        """Format all diagnostics for display."""
        return "\n".join(d.format(show_source) for d in self.diagnostics)
