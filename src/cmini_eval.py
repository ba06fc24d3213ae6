"""Tree-walking evaluator for cmini programs.

Statements are executed by `Interpreter.exec_stmt`, which returns a control
flow signal instead of raising: `NEXT` to fall through to the following
statement, `BROKE`/`CONTINUED` for loop control, or `Returned(value)` once a
`return` has completed the current frame. Every enclosing block and loop
hands the signal upward until the call boundary consumes it.
"""

import sys
from dataclasses import dataclass
from typing import Any, Dict, List, Sequence

import cmini as c
import cmini_types as ct
from cmini_env import DEFAULT_MAX_DEPTH, Environment
from cmini_errors import (
    ArityMismatch, DuplicateDeclaration, EvalError, InternalError, MissingReturn, StackOverflow, TypeMismatch,
    UndefinedFunction
)
from cmini_sink import Sink, StdoutSink, c_string

BUILTINS = frozenset(["printf"])

# Upper bound on Python frames used by one interpreted call (statement
# nesting plus expression depth); sizes the recursion limit.
_PY_FRAMES_PER_CALL = 40

# The recursion limit is never raised past this; deeper programs hit
# StackOverflow when the host stack runs out.
_RECURSION_CEILING = 1_000_000


@dataclass(frozen=True)
class Flow:
    pass

@dataclass(frozen=True)
class Next(Flow):
    pass

@dataclass(frozen=True)
class Broke(Flow):
    pass

@dataclass(frozen=True)
class Continued(Flow):
    pass

@dataclass(frozen=True)
class Returned(Flow):
    value: ct.Value

NEXT = Next()
BROKE = Broke()
CONTINUED = Continued()


def _ensure_recursion_limit(max_depth: int) -> None:
    needed = min(max_depth * _PY_FRAMES_PER_CALL + 1000, _RECURSION_CEILING)
    if sys.getrecursionlimit() < needed:
        sys.setrecursionlimit(needed)


class Interpreter:
    """Runs functions of one Program against a shared global scope."""

    def __init__(
        self,
        program: c.Program,
        *,
        sink: Sink = None,
        max_depth: int = DEFAULT_MAX_DEPTH,
        verbose: bool = False,
    ):
        self.program = program
        self.sink = sink if sink is not None else StdoutSink()
        self.verbose = verbose
        self.functions: Dict[str, c.FunctionDecl] = {}
        for f in program.functions:
            if f.name in self.functions or f.name in BUILTINS:
                raise DuplicateDeclaration(f"redefinition of function `{f.name}`", function=f.name, line=f.line)
            self.functions[f.name] = f

        self.env = Environment(max_depth)
        _ensure_recursion_limit(max_depth)
        for d in program.globals:
            self.exec_stmt(d)

    # --- Calls ---

    def call(self, name: str, args: Sequence[Any] = ()) -> ct.Value:
        """Call function `name` from Python; `args` may be Values or plain Python data."""
        fn = self.functions.get(name)
        if fn is None:
            raise UndefinedFunction(f"no function named `{name}`")
        try:
            return self.invoke(fn, [ct.from_python(a) for a in args])
        except RecursionError:
            raise StackOverflow(f"host stack exhausted while running `{name}`", function=name) from None

    def invoke(self, fn: c.FunctionDecl, args: List[ct.Value]) -> ct.Value:
        if len(args) != len(fn.params):
            raise ArityMismatch(f"`{fn.name}` expects {len(fn.params)} arguments, got {len(args)}")

        depth = len(self.env.frames)
        if self.verbose:
            shown = ", ".join(str(a) for a in args)
            print(f"{'  ' * depth}-> {fn.name}({shown})", file=sys.stderr)

        with self.env.call(fn.name) as frame:
            frame.line = fn.line
            # Scalars are copied into the callee's slots; array Values share
            # their storage with the caller.
            for p, v in zip(fn.params, args):
                self.env.declare(p.name, v, p.type)

            # Parameters and top-level locals live in the same scope
            flow = self.exec_block(fn.body.stmts)

            if isinstance(flow, Returned):
                result = frame.return_value
            elif isinstance(fn.ret_type, c.VoidType):
                result = ct.VOID_VALUE
            else:
                err = MissingReturn(
                    f"control reached end of non-void function `{fn.name}`", function=fn.name, line=frame.line
                )
                err.call_stack = self.env.call_stack()
                raise err

        if self.verbose:
            print(f"{'  ' * depth}<- {fn.name} = {result}", file=sys.stderr)
        return result

    def call_exp(self, name: str, arg_exps: List[c.Exp]) -> ct.Value:
        if name == "printf":
            return self.call_printf(arg_exps)
        fn = self.functions.get(name)
        if fn is None:
            raise UndefinedFunction(f"call to undeclared function `{name}`")
        # Arguments are evaluated left to right in the caller's scope
        args = [self.eval_value(a) for a in arg_exps]
        return self.invoke(fn, args)

    def call_printf(self, arg_exps: List[c.Exp]) -> ct.Value:
        if not arg_exps:
            raise ArityMismatch("`printf` expects a format string")
        values = [self.eval_value(a) for a in arg_exps]
        fmt = c_string(values[0])
        return ct.int_value(self.sink.write(fmt, values[1:]))

    # --- Statements ---

    def _annotate(self, err: EvalError, line: int) -> None:
        if err.function is not None:
            return
        frame = self.env.frame
        err.function = frame.function if frame is not None else "<global>"
        err.line = line
        err.call_stack = self.env.call_stack()

    def exec_block(self, stmts: List[c.Stmt]) -> Flow:
        for st in stmts:
            flow = self.exec_stmt(st)
            if flow is not NEXT:
                return flow
        return NEXT

    def exec_stmt(self, s: c.Stmt) -> Flow:
        frame = self.env.frame
        if frame is not None:
            frame.line = s.line
        try:
            return self._exec(s)
        except EvalError as err:
            self._annotate(err, s.line)
            raise

    def _exec(self, s: c.Stmt) -> Flow:
        match s:
            case c.Decl():
                self.exec_decl(s)
                return NEXT

            case c.Assign(dest, src):
                self.store(dest, self.eval_value(src))
                return NEXT

            case c.ExpStmt(e):
                self.eval_exp(e)
                return NEXT

            case c.Block(stmts):
                with self.env.block():
                    return self.exec_block(stmts)

            case c.If(cond, t, f):
                if ct.truthy(self.eval_value(cond)):
                    return self.exec_stmt(t)
                if f is not None:
                    return self.exec_stmt(f)
                return NEXT

            case c.For(init, cond, step, body):
                # The header's declarations are scoped to the loop
                with self.env.block():
                    for st in init:
                        self.exec_stmt(st)
                    while cond is None or ct.truthy(self.eval_value(cond)):
                        flow = self.exec_stmt(body)
                        if isinstance(flow, Returned):
                            return flow
                        if flow is BROKE:
                            break
                        if step is not None:
                            self.exec_stmt(step)
                return NEXT

            case c.While(cond, body):
                while ct.truthy(self.eval_value(cond)):
                    flow = self.exec_stmt(body)
                    if isinstance(flow, Returned):
                        return flow
                    if flow is BROKE:
                        break
                return NEXT

            case c.Break():
                return BROKE

            case c.Continue():
                return CONTINUED

            case c.Return(val):
                fn = self.functions[self.env.frame.function]
                if val is None:
                    if not isinstance(fn.ret_type, c.VoidType):
                        raise TypeMismatch(f"`return` with no value in function `{fn.name}` returning `{fn.ret_type}`")
                    value = ct.VOID_VALUE
                else:
                    if isinstance(fn.ret_type, c.VoidType):
                        raise TypeMismatch(f"`return` with a value in void function `{fn.name}`")
                    value = ct.coerce(self.eval_value(val), fn.ret_type)
                self.env.frame.return_value = value
                return Returned(value)

            case _:
                raise InternalError(f"exec_stmt got {type(s)}: {s}")

    def exec_decl(self, d: c.Decl) -> None:
        if isinstance(d.type, c.ArrayType):
            value = self.make_array(d)
        elif d.init is None:
            value = ct.zero_value(d.type)
        else:
            value = self.eval_value(d.init)
        self.env.declare(d.name, value, d.type)

    def make_array(self, d: c.Decl) -> ct.Value:
        items: List[ct.Value] = []
        match d.init:
            case c.InitList(exps):
                items = [self.eval_value(e) for e in exps]
            case c.StrConst(text):
                items = [ct.char_value(ord(ch)) for ch in text] + [ct.char_value(0)]
        if d.size is None:
            length = len(items)
        else:
            length = self.eval_index(d.size)
            # char s[3] = "abc" fills the array exactly and has no NUL
            if isinstance(d.init, c.StrConst) and length == len(items) - 1:
                items.pop()
        return ct.new_array(d.type.base, length, items)

    def store(self, dest: c.Exp, value: ct.Value) -> None:
        match dest:
            case c.Var(name):
                self.env.lookup(name).set(value)
            case c.ArrayAccess(arr, idx):
                storage = self.eval_array(arr)
                storage.set(self.eval_index(idx), value)
            case _:
                raise TypeMismatch(f"expression is not assignable: {dest}")

    # --- Expressions ---

    def eval_value(self, e: c.Exp) -> ct.Value:
        """Evaluate `e` where a value is required (void is rejected)."""
        v = self.eval_exp(e)
        if isinstance(v.type, c.VoidType):
            raise TypeMismatch("void value not ignored as it ought to be")
        return v

    def eval_array(self, e: c.Exp) -> ct.ArrayStorage:
        v = self.eval_value(e)
        if not isinstance(v.type, c.ArrayType):
            raise TypeMismatch(f"subscripted value of type `{v.type}` is not an array")
        return v.data

    def eval_index(self, e: c.Exp) -> int:
        v = self.eval_value(e)
        if not isinstance(v.type, (c.IntType, c.CharType)):
            raise TypeMismatch(f"array subscript of type `{v.type}` is not an integer")
        return v.data

    def eval_exp(self, e: c.Exp) -> ct.Value:
        match e:
            case c.IntConst(val):
                return ct.int_value(val)
            case c.FloatConst(val):
                return ct.float_value(val)
            case c.CharConst(val):
                return ct.char_value(val)
            case c.StrConst(text):
                chars = [ct.char_value(ord(ch)) for ch in text] + [ct.char_value(0)]
                return ct.new_array(c.CHAR, len(chars), chars)
            case c.Var(name):
                return self.env.lookup(name).get()

            # && and || short-circuit and always yield int 0/1
            case c.BinOp("&&", l, r):
                if not ct.truthy(self.eval_value(l)):
                    return ct.int_value(0)
                return ct.int_value(ct.truthy(self.eval_value(r)))
            case c.BinOp("||", l, r):
                if ct.truthy(self.eval_value(l)):
                    return ct.int_value(1)
                return ct.int_value(ct.truthy(self.eval_value(r)))

            case c.BinOp(op, l, r):
                return ct.binary(op, self.eval_value(l), self.eval_value(r))
            case c.UnOp(op, arg):
                return ct.unary(op, self.eval_value(arg))
            case c.Cast(typ, arg):
                if isinstance(typ, c.VoidType):
                    self.eval_exp(arg)
                    return ct.VOID_VALUE
                return ct.coerce(self.eval_value(arg), typ)
            case c.ArrayAccess(arr, idx):
                storage = self.eval_array(arr)
                return storage.get(self.eval_index(idx))
            case c.Call(name, args):
                return self.call_exp(name, args)
            case c.InitList(_):
                raise TypeMismatch("brace initializer outside an array declaration")
            case _:
                raise InternalError(f"eval_exp got {type(e)}: {e}")


def evaluate(
    program: c.Program,
    entry: str = "main",
    args: Sequence[Any] = (),
    *,
    sink: Sink = None,
    max_depth: int = DEFAULT_MAX_DEPTH,
    verbose: bool = False,
) -> ct.Value:
    """Run `entry(*args)` to completion against freshly initialized globals."""
    interp = Interpreter(program, sink=sink, max_depth=max_depth, verbose=verbose)
    return interp.call(entry, args)


def run_program(
    program: c.Program,
    *,
    entry: str = "main",
    sink: Sink = None,
    max_depth: int = DEFAULT_MAX_DEPTH,
    verbose: bool = False,
) -> int:
    """Run the program's entry point with no arguments and return its int result."""
    result = evaluate(program, entry, (), sink=sink, max_depth=max_depth, verbose=verbose)
    if not isinstance(result.type, c.IntType):
        raise TypeMismatch(f"`{entry}` must return int, returned `{result.type}`", function=entry)
    return result.data
