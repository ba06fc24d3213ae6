"""Variable bindings and the call stack.

Every call gets one CallFrame whose outermost scope has the global scope as
its parent, so a callee can see globals but never its caller's locals.
Blocks inside a function push further scopes onto the frame.
"""

from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional

import cmini
from cmini_errors import DuplicateDeclaration, StackOverflow, TypeMismatch, UndefinedIdentifier
from cmini_types import Value, coerce

DEFAULT_MAX_DEPTH = 256


class Slot:
    """A mutable storage location holding a Value of a fixed declared type."""

    __slots__ = ("type", "value")

    def __init__(self, type: cmini.Type, value: Value):
        self.type = type
        self.value = coerce(value, type)

    def get(self) -> Value:
        return self.value

    def set(self, value: Value) -> None:
        if isinstance(self.type, cmini.ArrayType):
            raise TypeMismatch(f"cannot assign to an array of type `{self.type}`")
        self.value = coerce(value, self.type)

    def __repr__(self):
        return f"Slot({self.type}, {self.value})"


class Scope:
    def __init__(self, parent: Optional["Scope"] = None):
        self.slots: Dict[str, Slot] = {}
        self.parent = parent

    def find(self, name: str) -> Optional[Slot]:
        scope = self
        while scope is not None:
            if name in scope.slots:
                return scope.slots[name]
            scope = scope.parent
        return None


class CallFrame:
    """One in-progress function call."""

    def __init__(self, function: str, parent: Scope):
        self.function = function
        self.base = Scope(parent)
        self.scope = self.base
        self.return_value: Optional[Value] = None
        self.line = 0

    def __repr__(self):
        return f"CallFrame({self.function}, line {self.line})"


class Environment:
    def __init__(self, max_depth: int = DEFAULT_MAX_DEPTH):
        self.globals = Scope()
        self.frames: List[CallFrame] = []
        self.max_depth = max_depth

    @property
    def frame(self) -> Optional[CallFrame]:
        return self.frames[-1] if self.frames else None

    @property
    def current_scope(self) -> Scope:
        return self.frames[-1].scope if self.frames else self.globals

    def declare(self, name: str, value: Value, type: Optional[cmini.Type] = None) -> Slot:
        """Create `name` in the innermost scope, converting `value` to `type`."""
        scope = self.current_scope
        if name in scope.slots:
            raise DuplicateDeclaration(f"redeclaration of `{name}`")
        slot = Slot(type if type is not None else value.type, value)
        scope.slots[name] = slot
        return slot

    def lookup(self, name: str) -> Slot:
        slot = self.current_scope.find(name)
        if slot is None:
            raise UndefinedIdentifier(f"use of undeclared identifier `{name}`")
        return slot

    def enter_call(self, function: str) -> CallFrame:
        if len(self.frames) >= self.max_depth:
            raise StackOverflow(f"call depth exceeded {self.max_depth} frames calling `{function}`")
        frame = CallFrame(function, self.globals)
        self.frames.append(frame)
        return frame

    def exit_call(self) -> CallFrame:
        return self.frames.pop()

    def enter_block(self) -> None:
        frame = self.frames[-1]
        frame.scope = Scope(frame.scope)

    def exit_block(self) -> None:
        frame = self.frames[-1]
        frame.scope = frame.scope.parent

    @contextmanager
    def call(self, function: str) -> Iterator[CallFrame]:
        frame = self.enter_call(function)
        try:
            yield frame
        finally:
            self.exit_call()

    @contextmanager
    def block(self) -> Iterator[None]:
        self.enter_block()
        try:
            yield
        finally:
            self.exit_block()

    def call_stack(self) -> List[str]:
        """Active calls, outermost first, as `name:line` strings."""
        return [f"{f.function}:{f.line}" for f in self.frames]
