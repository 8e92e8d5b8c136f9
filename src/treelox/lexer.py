"""
Lexer for treelox.

Converts source text into a stream of tokens for the parser.
Supports:
- Single-line comments (//)
- Block comments (/* */), which may nest
- Single-line string literals
- Number literals (integer and decimal, always stored as float)
- Identifiers and reserved keywords
- Maximal-munch one and two character operators

Lexical errors never stop the scan: each one is recorded in the lexer's
diagnostics and scanning resumes with the next character, so a single run
reports every bad character in the source.
"""

import logging
from typing import List, Optional, Iterator, Tuple

from .tokens import Token, TokenType, SourceLocation, SourceSpan, KEYWORDS
from .errors import (
    DiagnosticCollector,
    error_unexpected_character,
    error_unterminated_string,
    error_unterminated_comment,
)

logger = logging.getLogger(__name__)


class Lexer:
    """
    Tokenizer for treelox source text.

    Usage:
        lexer = Lexer(source_code)
        tokens = lexer.tokenize()

    Or for streaming:
        lexer = Lexer(source_code)
        for token in lexer:
            process(token)

    A lexer makes one pass over its source; iterate it once.
    """

    def __init__(self, source: str, filename: Optional[str] = None, max_errors: int = 20):
        self.source = source
        self.filename = filename
        self.pos = 0            # Current position in source
        self.line = 1           # Current line (1-indexed)
        self.column = 1         # Current column (1-indexed)
        self._lines: Optional[List[str]] = None  # Cached line list
        self.diagnostics = DiagnosticCollector(max_errors)

    @property
    def lines(self) -> List[str]:
        """Lazy-load line list for error reporting."""
        if self._lines is None:
            self._lines = self.source.splitlines()
        return self._lines

    def get_source_line(self, line_num: int) -> Optional[str]:
        """Get a specific line of source (1-indexed)."""
        if 1 <= line_num <= len(self.lines):
            return self.lines[line_num - 1]
        return None

    def _location(self) -> SourceLocation:
        """Get current source location."""
        return SourceLocation(self.line, self.column, self.pos, self.filename)

    def _span(self, start: SourceLocation) -> SourceSpan:
        """Create a span from start to current position."""
        return SourceSpan(start, self._location())

    def _peek(self, offset: int = 0) -> str:
        """Look at character at current position + offset without consuming."""
        idx = self.pos + offset
        if idx >= len(self.source):
            return '\0'
        return self.source[idx]

    def _advance(self) -> str:
        """Consume and return current character."""
        if self.pos >= len(self.source):
            return '\0'
        ch = self.source[self.pos]
        self.pos += 1
        if ch == '\n':
            self.line += 1
            self.column = 1
        else:
            self.column += 1
        return ch

    def _match(self, expected: str) -> bool:
        """Consume character if it matches expected."""
        if not self._is_at_end() and self._peek() == expected:
            self._advance()
            return True
        return False

    def _is_at_end(self) -> bool:
        """Check if we've reached end of source."""
        return self.pos >= len(self.source)

    def _skip_comment(self) -> None:
        """Skip a line comment (// to end of line)."""
        while self._peek() != '\n' and not self._is_at_end():
            self._advance()

    def _skip_block_comment(self) -> None:
        """Skip /* ... */ comment."""
        start = self._location()
        self._advance()  # consume '/'
        self._advance()  # consume '*'
        depth = 1

        while not self._is_at_end() and depth > 0:
            if self._peek() == '/' and self._peek(1) == '*':
                self._advance()
                self._advance()
                depth += 1
            elif self._peek() == '*' and self._peek(1) == '/':
                self._advance()
                self._advance()
                depth -= 1
            else:
                self._advance()

        if depth > 0:
            self.diagnostics.add_error(error_unterminated_comment(
                self._span(start),
                self.get_source_line(start.line)
            ))

    def _skip_trivia(self) -> None:
        """Skip whitespace and comments."""
        while not self._is_at_end():
            ch = self._peek()
            if ch in ' \t\r\n':
                self._advance()
            elif ch == '/' and self._peek(1) == '/':
                self._skip_comment()
            elif ch == '/' and self._peek(1) == '*':
                self._skip_block_comment()
            else:
                return

    def _make_token(self, token_type: TokenType, value, start: SourceLocation,
                    lexeme: Optional[str] = None) -> Token:
        """Create a token."""
        span = self._span(start)
        if lexeme is None:
            lexeme = self.source[start.offset:self.pos]
        return Token(token_type, value, lexeme, span)

    def _scan_string(self) -> Optional[Token]:
        """Scan a string literal; returns None if it is unterminated."""
        start = self._location()
        self._advance()  # consume opening quote

        while not self._is_at_end() and self._peek() != '"':
            if self._peek() == '\n':
                break
            self._advance()

        if self._peek() != '"':
            # Leave the newline in place so line counting stays exact
            self.diagnostics.add_error(error_unterminated_string(
                self._span(start),
                self.get_source_line(start.line)
            ))
            return None

        self._advance()  # consume closing quote
        value = self.source[start.offset + 1:self.pos - 1]
        return self._make_token(TokenType.STRING, value, start)

    def _scan_number(self) -> Token:
        """Scan a numeric literal (integer or decimal)."""
        start = self._location()

        while _is_digit(self._peek()):
            self._advance()

        # A fractional part needs at least one digit after the point
        if self._peek() == '.' and _is_digit(self._peek(1)):
            self._advance()  # consume '.'
            while _is_digit(self._peek()):
                self._advance()

        lexeme = self.source[start.offset:self.pos]
        return self._make_token(TokenType.NUMBER, float(lexeme), start, lexeme)

    def _scan_identifier_or_keyword(self) -> Token:
        """Scan an identifier or keyword."""
        start = self._location()

        while _is_identifier_char(self._peek()):
            self._advance()

        lexeme = self.source[start.offset:self.pos]
        token_type = KEYWORDS.get(lexeme, TokenType.IDENTIFIER)
        return self._make_token(token_type, None, start, lexeme)

    def _scan_token(self) -> Optional[Token]:
        """Scan the next token; None means the character produced no token."""
        start = self._location()
        ch = self._peek()

        if ch == '"':
            return self._scan_string()

        if _is_digit(ch):
            return self._scan_number()

        if _is_identifier_start(ch):
            return self._scan_identifier_or_keyword()

        self._advance()

        # Two-character operators
        if ch == '!':
            if self._match('='):
                return self._make_token(TokenType.BANG_EQUAL, None, start)
            return self._make_token(TokenType.BANG, None, start)
        if ch == '=':
            if self._match('='):
                return self._make_token(TokenType.EQUAL_EQUAL, None, start)
            return self._make_token(TokenType.EQUAL, None, start)
        if ch == '<':
            if self._match('='):
                return self._make_token(TokenType.LESS_EQUAL, None, start)
            return self._make_token(TokenType.LESS, None, start)
        if ch == '>':
            if self._match('='):
                return self._make_token(TokenType.GREATER_EQUAL, None, start)
            return self._make_token(TokenType.GREATER, None, start)

        single_char_tokens = {
            '(': TokenType.LEFT_PAREN,
            ')': TokenType.RIGHT_PAREN,
            '{': TokenType.LEFT_BRACE,
            '}': TokenType.RIGHT_BRACE,
            ',': TokenType.COMMA,
            '.': TokenType.DOT,
            '-': TokenType.MINUS,
            '+': TokenType.PLUS,
            ';': TokenType.SEMICOLON,
            '/': TokenType.SLASH,
            '*': TokenType.STAR,
        }

        if ch in single_char_tokens:
            return self._make_token(single_char_tokens[ch], None, start)

        self.diagnostics.add_error(error_unexpected_character(
            ch, self._span(start), self.get_source_line(start.line)
        ))
        return None

    def tokenize(self) -> List[Token]:
        """Tokenize the entire source, returning a list of tokens."""
        tokens = list(self)
        logger.debug("scanned %d tokens with %d lexical error(s)",
                     len(tokens), self.diagnostics.error_count)
        return tokens

    def __iter__(self) -> Iterator[Token]:
        """Iterate over tokens, ending with EOF."""
        while True:
            self._skip_trivia()
            if self._is_at_end():
                yield self._make_token(TokenType.EOF, None, self._location(), "")
                return
            token = self._scan_token()
            if token is not None:
                yield token


def _is_digit(ch: str) -> bool:
    return '0' <= ch <= '9'


def _is_identifier_start(ch: str) -> bool:
    return ('a' <= ch <= 'z') or ('A' <= ch <= 'Z') or ch == '_'


def _is_identifier_char(ch: str) -> bool:
    # Any Unicode letter or digit may continue a name
    return ch.isalnum() or ch == '_'


def tokenize(source: str, filename: Optional[str] = None,
             max_errors: int = 20) -> Tuple[List[Token], DiagnosticCollector]:
    """
    Convenience function to tokenize source code.

    Args:
        source: The source code to tokenize
        filename: Optional filename for error messages
        max_errors: Error limit for the returned collector

    Returns:
        (tokens, diagnostics); tokens always end with EOF
    """
    lexer = Lexer(source, filename, max_errors)
    tokens = lexer.tokenize()
    return tokens, lexer.diagnostics
