"""Utilities for printing cmini ASTs.

`stringify_program` renders a parsed Program back to C-like source (fully
parenthesized, compound assignments shown desugared); the CLI uses it for
`--dump-ast`.
"""

import cmini as c
from typing import List

_ESCAPES = {"\n": "\\n", "\t": "\\t", "\r": "\\r", "\0": "\\0", "\\": "\\\\"}


def _escape(text: str, quote: str) -> str:
    out = []
    for ch in text:
        if ch == quote:
            out.append("\\" + ch)
        else:
            out.append(_ESCAPES.get(ch, ch))
    return "".join(out)


def stringify(e: c.Exp) -> str:
    """Convert expression `e` to a fully parenthesized string."""
    match e:
        case c.Var(name): return name
        case c.IntConst(v): return str(v)
        case c.FloatConst(v): return repr(v)
        case c.CharConst(v): return f"'{_escape(chr(v & 0xFF), chr(39))}'"
        case c.StrConst(v): return f'"{_escape(v, chr(34))}"'
        case c.BinOp(op, l, r): return f"({stringify(l)} {op} {stringify(r)})"
        case c.UnOp(op, arg): return f"({op}{stringify(arg)})"
        case c.Cast(t, arg): return f"(({t}) {stringify(arg)})"
        case c.ArrayAccess(arr, idx): return f"{stringify(arr)}[{stringify(idx)}]"
        case c.Call(name, args): return f"{name}({', '.join(stringify(a) for a in args)})"
        case c.InitList(items): return "{" + ", ".join(stringify(i) for i in items) + "}"
        case _: return str(e)


def _decl_head(d: c.Decl) -> str:
    if isinstance(d.type, c.ArrayType):
        size = stringify(d.size) if d.size is not None else ""
        head = f"{d.type.base} {d.name}[{size}]"
    else:
        head = f"{d.type} {d.name}"
    if d.init is None:
        return head
    return f"{head} = {stringify(d.init)}"


def _simple(s: c.Stmt) -> str:
    """Render a statement that fits in a `for` header (no trailing `;`)."""
    match s:
        case c.Decl(): return _decl_head(s)
        case c.Assign(dest, src): return f"{stringify(dest)} = {stringify(src)}"
        case c.ExpStmt(e): return stringify(e)
        case _: return stringify_stmt(s).strip()


def stringify_stmt(s: c.Stmt, indent: int = 0) -> str:
    """Convert statement `s` to (possibly multi-line) source text."""
    space = "    " * indent
    match s:
        case c.Decl() | c.Assign() | c.ExpStmt():
            return f"{space}{_simple(s)};"
        case c.Block(stmts):
            inner = [stringify_stmt(x, indent + 1) for x in stmts]
            return "\n".join([f"{space}{{"] + inner + [f"{space}}}"])
        case c.If(cond, t, f):
            out = f"{space}if ({stringify(cond)})\n{stringify_stmt(t, indent)}"
            if f is not None:
                out += f"\n{space}else\n{stringify_stmt(f, indent)}"
            return out
        case c.For(init, cond, step, body):
            head_init = ", ".join(_simple(x) for x in init)
            head_cond = stringify(cond) if cond is not None else ""
            head_step = _simple(step) if step is not None else ""
            return f"{space}for ({head_init}; {head_cond}; {head_step})\n{stringify_stmt(body, indent)}"
        case c.While(cond, body):
            return f"{space}while ({stringify(cond)})\n{stringify_stmt(body, indent)}"
        case c.Break(): return f"{space}break;"
        case c.Continue(): return f"{space}continue;"
        case c.Return(val):
            return f"{space}return {stringify(val)};" if val is not None else f"{space}return;"
        case _: return f"{space}{s}"


def stringify_function(f: c.FunctionDecl) -> str:
    params = []
    for p in f.params:
        if isinstance(p.type, c.ArrayType):
            params.append(f"{p.type.base} {p.name}[]")
        else:
            params.append(f"{p.type} {p.name}")
    return f"{f.ret_type} {f.name}({', '.join(params)})\n{stringify_stmt(f.body)}"


def stringify_program(prog: c.Program) -> str:
    parts: List[str] = [stringify_stmt(d) for d in prog.globals]
    parts += [stringify_function(f) for f in prog.functions]
    return "\n\n".join(parts) + "\n"
