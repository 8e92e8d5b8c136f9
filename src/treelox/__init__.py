"""
treelox - a tree-walking interpreter for the Lox scripting language.

This module provides:
- Lexer: Tokenizes Lox source code
- Parser: Builds an AST from tokens, recovering from syntax errors
- Resolver: Computes static scope distances for local variables
- Interpreter: Executes the resolved AST
- Session: Runs source text end to end and reports the outcome

Usage:
    from treelox import Session, BufferSink

    sink = BufferSink()
    result = Session(sink=sink).run('''
        fun make() {
            var i = 0;
            fun inc() { i = i + 1; return i; }
            return inc;
        }
        var c = make();
        c();
        print c();
    ''')
    assert result.ok and sink.output == ["2"]
"""

import logging

from importlib.metadata import PackageNotFoundError, version

from .tokens import (
    Token,
    TokenType,
    SourceLocation,
    SourceSpan,
    KEYWORDS,
)

from .lexer import (
    Lexer,
    tokenize,
)

from .parser import (
    Parser,
    parse,
)

from .ast import (
    AstNode,
    AstVisitor,
    Expression,
    Statement,
)

from .resolver import (
    Resolver,
    ResolveResult,
    resolve,
)

from .printer import AstPrinter

from .errors import (
    Diagnostic,
    DiagnosticCollector,
    ErrorSeverity,
    LoxError,
    LexerError,
    ParserError,
    ResolverError,
    LoxRuntimeError,
)

from .config import LoxConfig, load_config

from .session import (
    Session,
    RunResult,
    RunStatus,
    RuntimeFailure,
    ConsoleSink,
    BufferSink,
    run,
)

try:
    __version__ = version("treelox")
except PackageNotFoundError:  # pragma: no cover - handled when package not installed
    __version__ = "unknown"

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    # Tokens
    'Token',
    'TokenType',
    'SourceLocation',
    'SourceSpan',
    'KEYWORDS',

    # Lexer
    'Lexer',
    'tokenize',

    # Parser
    'Parser',
    'parse',

    # AST
    'AstNode',
    'AstVisitor',
    'Expression',
    'Statement',
    'AstPrinter',

    # Resolver
    'Resolver',
    'ResolveResult',
    'resolve',

    # Errors
    'Diagnostic',
    'DiagnosticCollector',
    'ErrorSeverity',
    'LoxError',
    'LexerError',
    'ParserError',
    'ResolverError',
    'LoxRuntimeError',

    # Config
    'LoxConfig',
    'load_config',

    # Session
    'Session',
    'RunResult',
    'RunStatus',
    'RuntimeFailure',
    'ConsoleSink',
    'BufferSink',
    'run',
]
