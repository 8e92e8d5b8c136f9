#!/usr/bin/env python3
"""
CLI for the treelox interpreter.

Usage:
    python -m treelox tokenize FILE
    python -m treelox parse FILE
    python -m treelox evaluate FILE
    python -m treelox run FILE
    python -m treelox [repl]

Exit codes:
    0   success
    64  usage error
    65  lexical, syntax or resolution error, or unreadable file
    70  runtime error

Examples:
    # Dump the token stream
    python -m treelox tokenize examples/fib.lox

    # Print an expression as a parenthesized tree
    python -m treelox parse expr.lox

    # Run a script with a larger call depth
    python -m treelox --config treelox.yaml run examples/fib.lox
"""

import argparse
import logging
import sys
from pathlib import Path

EXIT_OK = 0
EXIT_USAGE = 64
EXIT_DATA = 65
EXIT_SOFTWARE = 70


def _read_source(path_str: str):
    """Read a source file, or report why it can't be read and return None."""
    source_path = Path(path_str)
    try:
        return source_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        print(f"Failed to read file {source_path}: {e}", file=sys.stderr)
        return None


def cmd_tokenize(args, config):
    """Print one line per token; lexical errors go to stderr."""
    from .lexer import tokenize

    source = _read_source(args.file)
    if source is None:
        return EXIT_DATA

    tokens, diagnostics = tokenize(source, args.file, config.max_errors)
    for diag in diagnostics.diagnostics:
        print(diag.format(config.show_source), file=sys.stderr)
    for token in tokens:
        print(token.describe())

    return EXIT_DATA if diagnostics.has_errors else EXIT_OK


def cmd_parse(args, config):
    """Parse a single expression and print it as an s-expression."""
    from .lexer import tokenize
    from .parser import Parser
    from .printer import AstPrinter

    source = _read_source(args.file)
    if source is None:
        return EXIT_DATA

    tokens, lex_diagnostics = tokenize(source, args.file, config.max_errors)
    parser = Parser(tokens, args.file, source, config.max_errors)
    expr = parser.parse_expression()

    diagnostics = lex_diagnostics.diagnostics + parser.diagnostics.diagnostics
    for diag in diagnostics:
        print(diag.format(config.show_source), file=sys.stderr)
    if diagnostics or expr is None:
        return EXIT_DATA

    print(AstPrinter().print(expr))
    return EXIT_OK


def _exit_code(result):
    from .session import RunStatus

    if result.status == RunStatus.STATIC_ERROR:
        return EXIT_DATA
    if result.status == RunStatus.RUNTIME_ERROR:
        return EXIT_SOFTWARE
    return EXIT_OK


def cmd_evaluate(args, config):
    """Evaluate a single expression and print its value."""
    from .session import Session

    source = _read_source(args.file)
    if source is None:
        return EXIT_DATA

    return _exit_code(Session(config).evaluate(source, args.file))


def cmd_run(args, config):
    """Run a script."""
    from .session import Session

    source = _read_source(args.file)
    if source is None:
        return EXIT_DATA

    return _exit_code(Session(config).run(source, args.file))


def cmd_repl(args, config):
    """Read-evaluate-print loop; each line runs in the same session."""
    from .session import Session

    session = Session(config, interactive=True)
    while True:
        try:
            line = input(config.prompt)
        except EOFError:
            print()
            return EXIT_OK
        except KeyboardInterrupt:
            print()
            continue
        if line.strip():
            session.run(line, "<stdin>")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='python -m treelox',
        description='Tree-walking interpreter for the Lox language',
    )
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Log pipeline stages to stderr')
    parser.add_argument('--config', metavar='FILE',
                        help='YAML settings file')

    subparsers = parser.add_subparsers(dest='action')

    tokenize_parser = subparsers.add_parser('tokenize', help='Print the tokens of a file')
    tokenize_parser.add_argument('file', help='Lox source file')

    parse_parser = subparsers.add_parser('parse', help='Print the syntax tree of an expression')
    parse_parser.add_argument('file', help='Lox source file holding one expression')

    evaluate_parser = subparsers.add_parser('evaluate', help='Evaluate an expression')
    evaluate_parser.add_argument('file', help='Lox source file holding one expression')

    run_parser = subparsers.add_parser('run', help='Run a script')
    run_parser.add_argument('file', help='Lox source file')

    subparsers.add_parser('repl', help='Interactive prompt (the default)')

    return parser


def main(argv=None):
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as e:
        # argparse exits 2 on bad usage; report the sysexits usage code instead
        return EXIT_OK if e.code == 0 else EXIT_USAGE

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG,
                            format='%(levelname)s %(name)s: %(message)s')

    from .config import LoxConfig, load_config

    config = LoxConfig()
    if args.config:
        try:
            config = load_config(args.config)
        except (OSError, ValueError) as e:
            print(f"Error: invalid config {args.config}: {e}", file=sys.stderr)
            return EXIT_USAGE

    if args.action == 'tokenize':
        return cmd_tokenize(args, config)
    elif args.action == 'parse':
        return cmd_parse(args, config)
    elif args.action == 'evaluate':
        return cmd_evaluate(args, config)
    elif args.action == 'run':
        return cmd_run(args, config)
    else:
        return cmd_repl(args, config)


if __name__ == '__main__':
    sys.exit(main())
