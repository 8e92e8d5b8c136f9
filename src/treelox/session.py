"""
Run entry points for treelox.

A ``Session`` drives the whole pipeline for one unit of source text:

    source -> Lexer -> Parser -> Resolver -> Interpreter

Static errors from the first three stages are collected together and stop
the unit before anything executes. A runtime error stops the unit where it
happened. Either way the outcome is returned as a ``RunResult`` and also
reported through the session's sink; nothing is raised to the caller.

The session's global environment survives between ``run`` calls, which is
what a REPL needs:

    session = Session(interactive=True)
    session.run("var a = 1;")
    session.run("print a + 1;")   # prints 2
"""

import logging
import sys
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import List, Optional, Tuple

from .config import LoxConfig
from .errors import Diagnostic
from .lexer import tokenize
from .parser import Parser
from .resolver import Resolver
from .runtime import Interpreter, Value, stringify

logger = logging.getLogger(__name__)


class RunStatus(Enum):
    OK = auto()
    STATIC_ERROR = auto()
    RUNTIME_ERROR = auto()


@dataclass
class RuntimeFailure:
    """A runtime error as reported to the host."""
    message: str
    line: int
    fatal: bool  # True when the whole script is abandoned (not in a REPL)


@dataclass
class RunResult:
    """Outcome of running one unit of source."""
    status: RunStatus
    diagnostics: List[Diagnostic] = field(default_factory=list)
    runtime_error: Optional[RuntimeFailure] = None
    value: Optional[Value] = None  # Set by Session.evaluate

    @property
    def ok(self) -> bool:
        return self.status == RunStatus.OK

    @property
    def errors(self) -> List[Tuple[int, str]]:
        """Every reported error as ``(line, message)``, in report order."""
        errors = [(d.line, d.message) for d in self.diagnostics]
        if self.runtime_error is not None:
            errors.append((self.runtime_error.line, self.runtime_error.message))
        return errors


class ConsoleSink:
    """Program output to stdout, errors to stderr."""

    def print(self, text: str) -> None:
        print(text)

    def error(self, text: str) -> None:
        print(text, file=sys.stderr)


class BufferSink:
    """Records output and error lines in memory."""

    def __init__(self):
        self.output: List[str] = []
        self.errors: List[str] = []

    def print(self, text: str) -> None:
        self.output.append(text)

    def error(self, text: str) -> None:
        self.errors.append(text)

    @property
    def text(self) -> str:
        """Printed output, one line per print statement."""
        return "".join(line + "\n" for line in self.output)


class Session:
    """
    Runs treelox source against one persistent interpreter.

    Args:
        config: Settings (defaults if None)
        sink: Receives program output and error reports (console if None)
        interactive: REPL mode; runtime errors are then not fatal
    """

    def __init__(self, config: Optional[LoxConfig] = None, sink=None, interactive: bool = False):
        self.config = config or LoxConfig()
        self.sink = sink if sink is not None else ConsoleSink()
        self.interactive = interactive
        self.interpreter = Interpreter(
            output=self.sink.print,
            max_call_depth=self.config.max_call_depth,
        )

    def run(self, source: str, filename: Optional[str] = None) -> RunResult:
        """Lex, parse, resolve and execute a program."""
        max_errors = self.config.max_errors

        tokens, lex_diagnostics = tokenize(source, filename, max_errors)
        parser = Parser(tokens, filename, source, max_errors)
        statements = parser.parse()

        diagnostics = lex_diagnostics.diagnostics + parser.diagnostics.diagnostics
        if diagnostics:
            return self._static_failure(diagnostics)

        resolved = Resolver(max_errors, source).resolve(statements)
        if resolved.has_errors:
            return self._static_failure(resolved.diagnostics)

        self.interpreter.resolve_locals(resolved.locals)
        result = self.interpreter.execute(statements)
        if not result.success:
            return self._runtime_failure(result.error)

        return RunResult(status=RunStatus.OK)

    def evaluate(self, source: str, filename: Optional[str] = None) -> RunResult:
        """Evaluate a single expression and print its value."""
        max_errors = self.config.max_errors

        tokens, lex_diagnostics = tokenize(source, filename, max_errors)
        parser = Parser(tokens, filename, source, max_errors)
        expr = parser.parse_expression()

        diagnostics = lex_diagnostics.diagnostics + parser.diagnostics.diagnostics
        if diagnostics or expr is None:
            return self._static_failure(diagnostics)

        resolved = Resolver(max_errors, source).resolve_expression(expr)
        if resolved.has_errors:
            return self._static_failure(resolved.diagnostics)

        self.interpreter.resolve_locals(resolved.locals)
        result = self.interpreter.evaluate(expr)
        if not result.success:
            return self._runtime_failure(result.error)

        self.sink.print(stringify(result.value))
        return RunResult(status=RunStatus.OK, value=result.value)

    def _static_failure(self, diagnostics: List[Diagnostic]) -> RunResult:
        logger.debug("rejecting unit with %d static error(s)", len(diagnostics))
        for diagnostic in diagnostics:
            self.sink.error(diagnostic.format(self.config.show_source))
        return RunResult(status=RunStatus.STATIC_ERROR, diagnostics=list(diagnostics))

    def _runtime_failure(self, error) -> RunResult:
        self.sink.error(error.report())
        failure = RuntimeFailure(
            message=error.diagnostic.message,
            line=error.line,
            fatal=not self.interactive,
        )
        return RunResult(status=RunStatus.RUNTIME_ERROR, runtime_error=failure)


def run(source: str, config: Optional[LoxConfig] = None, sink=None) -> RunResult:
    """Run a complete program in a fresh session."""
    return Session(config, sink).run(source)
