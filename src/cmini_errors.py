"""Error taxonomy for the cmini interpreter.

Parse failures raise `CSyntaxError`; everything that goes wrong while a
program runs raises a subclass of `EvalError`. Both are fatal: the
interpreter never recovers a partial result.
"""

from typing import List, Optional


class CMiniError(Exception):
    """Base class for interpreter errors."""


class CSyntaxError(CMiniError):
    """Raised when the source text is not a well-formed program."""

    def __init__(self, message: str, line: int, col: int, source_line: str = "") -> None:
        super().__init__(message)
        self.message = message
        self.line = line
        self.col = col
        self.source_line = source_line

    def __str__(self) -> str:
        return f"syntax error at line {self.line}, column {self.col}: {self.message}"

    def caret(self) -> str:
        """Return the offending line with a caret under the error column."""
        return f"{self.source_line}\n{' ' * max(self.col - 1, 0)}^"


class EvalError(CMiniError):
    """Raised for runtime faults.

    The evaluator fills in `function`, `line` and `call_stack` as the error
    propagates out of the statement that raised it.
    """

    def __init__(self, message: str, *, function: Optional[str] = None, line: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.function = function
        self.line = line
        self.call_stack: List[str] = []

    def __str__(self) -> str:
        where = []
        if self.function is not None:
            where.append(f"in {self.function}")
        if self.line:
            where.append(f"(line {self.line})")
        if where:
            return f"{' '.join(where)}: {self.message}"
        return self.message

    @property
    def kind(self) -> str:
        return type(self).__name__


class UndefinedIdentifier(EvalError):
    pass


class UndefinedFunction(EvalError):
    pass


class DuplicateDeclaration(EvalError):
    pass


class ArityMismatch(EvalError):
    pass


class TypeMismatch(EvalError):
    pass


class IndexOutOfBounds(EvalError):
    pass


class DivisionByZero(EvalError):
    """Integer division or remainder by zero."""


class MissingReturn(EvalError):
    pass


class StackOverflow(EvalError):
    pass


class InternalError(EvalError):
    """The evaluator met a node it has no rule for (a malformed AST)."""
