"""
Token types for the treelox lexer.

Token type categories follow the diagnostic code ranges:
- E0xx: Lexer errors
- E1xx: Parser errors
- E2xx: Resolver errors
- E3xx: Runtime errors
"""

from enum import Enum, auto
from dataclasses import dataclass
from typing import Any, Optional


class TokenType(Enum):
    """All token types recognized by the lexer."""

    # --- Single-character punctuation ---
    LEFT_PAREN = auto()         # (
    RIGHT_PAREN = auto()        # )
    LEFT_BRACE = auto()         # {
    RIGHT_BRACE = auto()        # }
    COMMA = auto()              # ,
    DOT = auto()                # .
    MINUS = auto()              # -
    PLUS = auto()               # +
    SEMICOLON = auto()          # ;
    SLASH = auto()              # /
    STAR = auto()               # *

    # --- One or two character operators ---
    BANG = auto()               # !
    BANG_EQUAL = auto()         # !=
    EQUAL = auto()              # =
    EQUAL_EQUAL = auto()        # ==
    GREATER = auto()            # >
    GREATER_EQUAL = auto()      # >=
    LESS = auto()               # <
    LESS_EQUAL = auto()         # <=

    # --- Literals ---
    IDENTIFIER = auto()         # user-defined names
    STRING = auto()             # "hello"
    NUMBER = auto()             # 42, 3.14

    # --- Keywords ---
    AND = auto()
    CLASS = auto()
    ELSE = auto()
    FALSE = auto()
    FOR = auto()
    FUN = auto()
    IF = auto()
    NIL = auto()
    OR = auto()
    PRINT = auto()
    RETURN = auto()
    SUPER = auto()
    THIS = auto()
    TRUE = auto()
    VAR = auto()
    WHILE = auto()

    # --- Special ---
    EOF = auto()                # end of input


@dataclass(frozen=True)
class SourceLocation:
    """Represents a position in source code."""
    line: int           # 1-indexed line number
    column: int         # 1-indexed column number
    offset: int         # 0-indexed character offset from start
    filename: Optional[str] = None

    def __str__(self) -> str:
        if self.filename:
            return f"{self.filename}:{self.line}:{self.column}"
        return f"{self.line}:{self.column}"


@dataclass(frozen=True)
class SourceSpan:
    """Represents a range in source code."""
    start: SourceLocation
    end: SourceLocation

    def __str__(self) -> str:
        if self.start.filename:
            return f"{self.start.filename}:{self.start.line}:{self.start.column}-{self.end.line}:{self.end.column}"
        return f"{self.start.line}:{self.start.column}-{self.end.line}:{self.end.column}"


@dataclass(frozen=True)
class Token:
    """A single token from the lexer."""
    type: TokenType
    value: Any              # Literal value (float for NUMBER, str for STRING), else None
    lexeme: str             # The original source text
    span: SourceSpan        # Location in source

    @property
    def line(self) -> int:
        return self.span.start.line

    def describe(self) -> str:
        """Render the token as a ``TYPE lexeme literal`` dump line."""
        return f"{self.type.name} {self.lexeme} {format_literal(self)}"

    def __str__(self) -> str:
        if self.type in (TokenType.NUMBER, TokenType.STRING, TokenType.IDENTIFIER):
            return f"{self.type.name}({self.lexeme})"
        return self.type.name


def format_literal(token: Token) -> str:
    """Format a token's literal value for token dumps."""
    if token.type == TokenType.STRING:
        return token.value
    if token.type == TokenType.NUMBER:
        return repr(float(token.value))
    return "null"


# Keyword mapping - maps reserved word to token type
KEYWORDS: dict[str, TokenType] = {
    "and": TokenType.AND,
    "class": TokenType.CLASS,
    "else": TokenType.ELSE,
    "false": TokenType.FALSE,
    "for": TokenType.FOR,
    "fun": TokenType.FUN,
    "if": TokenType.IF,
    "nil": TokenType.NIL,
    "or": TokenType.OR,
    "print": TokenType.PRINT,
    "return": TokenType.RETURN,
    "super": TokenType.SUPER,
    "this": TokenType.THIS,
    "true": TokenType.TRUE,
    "var": TokenType.VAR,
    "while": TokenType.WHILE,
}


# Tokens that begin a statement; the parser resynchronizes on these
STATEMENT_KEYWORDS: frozenset = frozenset({
    TokenType.CLASS,
    TokenType.FUN,
    TokenType.VAR,
    TokenType.FOR,
    TokenType.IF,
    TokenType.WHILE,
    TokenType.PRINT,
    TokenType.RETURN,
})
