import cmini as c
import pyparsing
from pyparsing import (
    Word, alphas, alphanums, Literal, Keyword, Opt, ZeroOrMore, OneOrMore,
    Forward, Suppress, FollowedBy, Group, infix_notation, one_of, OpAssoc,
    ParserElement, Regex
)
import re
from typing import List

from cmini_errors import CSyntaxError

# Enable packrat for performance
ParserElement.enable_packrat()

_ESCAPES = {
    "n": "\n", "t": "\t", "r": "\r", "a": "\a", "b": "\b", "f": "\f", "v": "\v",
    "\\": "\\", "'": "'", '"': '"', "?": "?",
}

_ESCAPE_RE = re.compile(r"\\([0-7]{1,3}|x[0-9a-fA-F]+|.)")


def _unescape_one(m: re.Match) -> str:
    e = m.group(1)
    if e[0] in "01234567":
        return chr(int(e, 8) & 0xFF)
    if e[0] == "x":
        return chr(int(e[1:], 16) & 0xFF)
    return _ESCAPES.get(e, e)


def unescape(body: str) -> str:
    """Resolve C escape sequences in the body of a char or string literal."""
    return _ESCAPE_RE.sub(_unescape_one, body)


def _int_literal(text: str) -> int:
    if text[:2] in ("0x", "0X"):
        return int(text[2:], 16)
    if len(text) > 1 and text[0] == "0":
        return int(text, 8)
    return int(text)


def _at(build):
    """Wrap a node builder so the nodes it returns record their source line."""
    def action(s: str, loc: int, t):
        res = build(t)
        line = pyparsing.lineno(loc, s)
        for node in (res if isinstance(res, list) else [res]):
            if hasattr(node, "line"):
                node.line = line
        return res
    return action


def file_parse(text: str) -> c.Program:
    """Parse C-subset source text into a `cmini.Program`.

    Raises `CSyntaxError` (carrying line/column) if the text is malformed.
    """
    LineComment = Regex(r"//.*")
    BlockComment = Regex(r"/\*.*?\*/", flags=re.DOTALL)
    # `#include <stdio.h>` and friends; there is no preprocessor
    Directive = Regex(r"#.*")

    # Keywords
    INT = Keyword("int")
    FLOAT = Keyword("float")
    CHAR = Keyword("char")
    VOID = Keyword("void")
    IF = Keyword("if")
    ELSE = Keyword("else")
    FOR = Keyword("for")
    WHILE = Keyword("while")
    RETURN = Keyword("return")
    BREAK = Keyword("break")
    CONTINUE = Keyword("continue")

    # Punctuation
    LPAREN = Suppress("(")
    RPAREN = Suppress(")")
    LBRACE = Suppress("{")
    RBRACE = Suppress("}")
    LBRACKET = Suppress("[")
    RBRACKET = Suppress("]")
    SEMI = Suppress(";")
    COMMA = Suppress(",")
    ASSIGN_OP = Regex(r"=(?!=)")
    COMPOUND_OP = Regex(r"[-+*/%]=")
    INCDEC = Literal("++") | Literal("--")

    # Identifiers
    Ident = Word(alphas + "_", alphanums + "_")
    Reserved = INT | FLOAT | CHAR | VOID | IF | ELSE | FOR | WHILE | RETURN | BREAK | CONTINUE
    Identifier = (~Reserved + Ident).set_parse_action(lambda t: t[0])

    # Must use copy() to avoid mutating Identifier which is used elsewhere as string
    VarIdent = Identifier.copy().set_parse_action(_at(lambda t: c.Var(t[0])))

    _type_names = {"int": c.INT, "float": c.FLOAT, "char": c.CHAR, "void": c.VOID}
    TypeName = (INT | FLOAT | CHAR | VOID).set_parse_action(lambda t: _type_names[t[0]])

    Exp = Forward()

    # --- Literals ---
    FloatLit = Regex(r"(\d+\.\d*|\.\d+)([eE][+-]?\d+)?[fF]?|\d+[eE][+-]?\d+[fF]?").set_parse_action(
        _at(lambda t: c.FloatConst(float(t[0].rstrip("fF"))))
    )
    IntLit = Regex(r"0[xX][0-9a-fA-F]+|\d+").set_parse_action(
        _at(lambda t: c.IntConst(_int_literal(t[0])))
    )
    CharLit = Regex(r"'(\\[0-7]{1,3}|\\x[0-9a-fA-F]+|\\.|[^\\'\n])'").set_parse_action(
        _at(lambda t: c.CharConst(ord(unescape(t[0][1:-1]))))
    )
    # Adjacent string literals are concatenated, as in C
    StrPiece = Regex(r'"(\\.|[^\\"\n])*"')
    StrLit = OneOrMore(StrPiece).set_parse_action(
        _at(lambda t: c.StrConst("".join(unescape(p[1:-1]) for p in t)))
    )

    ArgList = Opt(Exp + ZeroOrMore(COMMA + Exp))
    CallExp = (Identifier + LPAREN + ArgList + RPAREN).set_parse_action(
        _at(lambda t: c.Call(t[0], list(t[1:])))
    )

    Primary = FloatLit | IntLit | CharLit | StrLit | CallExp | VarIdent | (LPAREN + Exp + RPAREN)

    # Array access: Atom[idx][idx]...
    def reduce_index(t):
        res = t[0]
        for i in range(1, len(t)):
            res = c.ArrayAccess(res, t[i])
        return res

    Postfix = (Primary + ZeroOrMore(LBRACKET + Exp + RBRACKET)).set_parse_action(_at(reduce_index))

    def make_unop(t):
        op = t[0][0]
        arg = t[0][1]
        if isinstance(op, c.Type):
            return c.Cast(op, arg)
        return c.UnOp(op, arg)

    def make_binop(t):
        tokens = t[0]
        res = tokens[0]
        i = 1
        while i < len(tokens):
            res = c.BinOp(tokens[i], res, tokens[i + 1])
            i += 2
        return res

    CastOp = LPAREN + TypeName + RPAREN
    UnaryOp = Literal("!") | Regex(r"-(?!-)") | Regex(r"\+(?!\+)") | CastOp

    # Standard C precedence, tightest first
    Exp <<= infix_notation(Postfix, [
        (UnaryOp, 1, OpAssoc.RIGHT, _at(make_unop)),
        (one_of("* / %"), 2, OpAssoc.LEFT, _at(make_binop)),
        (one_of("+ -"), 2, OpAssoc.LEFT, _at(make_binop)),
        (one_of("<= >= < >"), 2, OpAssoc.LEFT, _at(make_binop)),
        (one_of("== !="), 2, OpAssoc.LEFT, _at(make_binop)),
        (Literal("&&"), 2, OpAssoc.LEFT, _at(make_binop)),
        (Literal("||"), 2, OpAssoc.LEFT, _at(make_binop)),
    ])

    # --- Declarations ---

    InitList = (LBRACE + Opt(Exp + ZeroOrMore(COMMA + Exp) + Opt(COMMA)) + RBRACE).set_parse_action(
        _at(lambda t: c.InitList(list(t)))
    )
    ArraySuffix = Group(LBRACKET + Opt(Exp) + RBRACKET)
    Declarator = Group(
        Identifier("name") + Opt(ArraySuffix("dims")) + Opt(Suppress(ASSIGN_OP) + (InitList | Exp))
    )

    def make_decl(s: str, loc: int, base: c.Type, d) -> c.Decl:
        name = d["name"]
        # The initializer, when present, is the last token of the group
        init = d[-1] if isinstance(d[-1], c.Node) else None
        if isinstance(base, c.VoidType):
            raise pyparsing.ParseFatalException(s, loc, f"variable `{name}` declared void")
        if "dims" not in d:
            if isinstance(init, c.InitList):
                raise pyparsing.ParseFatalException(s, loc, f"brace initializer for scalar `{name}`")
            return c.Decl(base, name, init)

        size = d["dims"][0] if len(d["dims"]) else None
        if size is None and init is None:
            raise pyparsing.ParseFatalException(s, loc, f"array size missing in `{name}`")
        if init is not None and not isinstance(init, (c.InitList, c.StrConst)):
            raise pyparsing.ParseFatalException(s, loc, f"invalid initializer for array `{name}`")
        if isinstance(init, c.StrConst) and not isinstance(base, c.CharType):
            raise pyparsing.ParseFatalException(s, loc, f"string initializer for non-char array `{name}`")
        if isinstance(size, c.IntConst) and isinstance(init, c.InitList) and len(init.items) > size.value:
            raise pyparsing.ParseFatalException(s, loc, f"too many initializers for `{name}[{size.value}]`")
        return c.Decl(c.ArrayType(base), name, init, size)

    def make_decls(s: str, loc: int, t) -> List[c.Decl]:
        decls = [make_decl(s, loc, t[0], d) for d in t[1:]]
        line = pyparsing.lineno(loc, s)
        for d in decls:
            d.line = line
        return decls

    DeclBody = (TypeName + Declarator + ZeroOrMore(COMMA + Declarator)).set_parse_action(make_decls)
    DeclStmt = DeclBody + SEMI

    # --- Simple statements (also usable in `for` headers) ---

    def make_assign(t):
        lhs = t[0]
        rhs = t[2]
        if not isinstance(lhs, (c.Var, c.ArrayAccess)):
            raise pyparsing.ParseException(f"Invalid assignment target: {lhs}")
        return c.Assign(lhs, rhs)

    def make_compound(t):
        # x op= e  ==>  x = x op e
        lhs, op, rhs = t[0], t[1][0], t[2]
        if not isinstance(lhs, (c.Var, c.ArrayAccess)):
            raise pyparsing.ParseException(f"Invalid assignment target: {lhs}")
        return c.Assign(lhs, c.BinOp(op, lhs, rhs))

    def make_incdec(lhs, op):
        if not isinstance(lhs, (c.Var, c.ArrayAccess)):
            raise pyparsing.ParseException(f"Invalid increment target: {lhs}")
        return c.Assign(lhs, c.BinOp(op[0], lhs, c.IntConst(1)))

    AssignBody = (Postfix + ASSIGN_OP + Exp).set_parse_action(_at(make_assign))
    CompoundBody = (Postfix + COMPOUND_OP + Exp).set_parse_action(_at(make_compound))
    PostIncBody = (Postfix + INCDEC).set_parse_action(_at(lambda t: make_incdec(t[0], t[1])))
    PreIncBody = (INCDEC + Postfix).set_parse_action(_at(lambda t: make_incdec(t[1], t[0])))
    ExpBody = Exp.copy().set_parse_action(_at(lambda t: c.ExpStmt(t[0])))

    Simple = AssignBody | CompoundBody | PostIncBody | PreIncBody | ExpBody

    # --- Compound statements ---

    Stmt = Forward()

    Block = (LBRACE - ZeroOrMore(Stmt) + RBRACE).set_parse_action(
        _at(lambda t: c.Block(list(t)))
    )

    IfStmt = (IF - LPAREN + Exp + RPAREN + Stmt + Opt(ELSE + Stmt)).set_parse_action(
        _at(lambda t: c.If(t[1], t[2], t[4] if len(t) > 4 else None))
    )

    ForStmt = (
        FOR - LPAREN + Group(Opt(DeclBody | Simple)) + SEMI +
        Group(Opt(Exp)) + SEMI +
        Group(Opt(Simple)) + RPAREN + Stmt
    ).set_parse_action(
        _at(lambda t: c.For(
            list(t[1]),
            t[2][0] if len(t[2]) else None,
            t[3][0] if len(t[3]) else None,
            t[4],
        ))
    )

    WhileStmt = (WHILE - LPAREN + Exp + RPAREN + Stmt).set_parse_action(
        _at(lambda t: c.While(t[1], t[2]))
    )

    ReturnStmt = (RETURN - Opt(Exp) + SEMI).set_parse_action(
        _at(lambda t: c.Return(t[1] if len(t) > 1 else None))
    )

    BreakStmt = (BREAK - SEMI).set_parse_action(_at(lambda _: c.Break()))
    ContinueStmt = (CONTINUE - SEMI).set_parse_action(_at(lambda _: c.Continue()))
    EmptyStmt = Literal(";").set_parse_action(_at(lambda _: c.Block([])))

    Stmt <<= (
        Block |
        DeclStmt |
        IfStmt |
        ForStmt |
        WhileStmt |
        ReturnStmt |
        BreakStmt |
        ContinueStmt |
        EmptyStmt |
        (Simple + SEMI)
    )

    # --- Functions ---

    def make_param(s: str, loc: int, t):
        g = t[0]
        if isinstance(g[0], c.VoidType):
            raise pyparsing.ParseFatalException(s, loc, f"parameter `{g[1]}` declared void")
        typ = c.ArrayType(g[0]) if len(g) > 2 else g[0]
        return c.Param(typ, g[1])

    Param = Group(TypeName + Identifier + Opt(Group(LBRACKET + Opt(IntLit) + RBRACKET))).set_parse_action(make_param)
    ParamList = Opt((VOID + FollowedBy(")")).suppress() | (Param + ZeroOrMore(COMMA + Param)))

    Function = (TypeName + Identifier + LPAREN + Group(ParamList) + RPAREN + Block).set_parse_action(
        _at(lambda t: c.FunctionDecl(t[0], t[1], list(t[2]), t[3]))
    )

    ProgramParser = OneOrMore(Function | DeclStmt)

    ProgramParser.ignore(LineComment)
    ProgramParser.ignore(BlockComment)
    ProgramParser.ignore(Directive)

    try:
        toks = ProgramParser.parse_string(text, parse_all=True)
    except pyparsing.ParseBaseException as e:
        raise CSyntaxError(e.msg, e.lineno, e.col, e.line) from e

    functions = [x for x in toks if isinstance(x, c.FunctionDecl)]
    globals_ = [x for x in toks if isinstance(x, c.Decl)]
    lines = text.splitlines()
    if not functions:
        raise CSyntaxError("program declares no functions", 1, 1, lines[0] if lines else "")
    for f in functions:
        _check_loop_control(f.body, False, lines)
    return c.Program(functions, globals_)


def _check_loop_control(s: c.Stmt, in_loop: bool, lines: List[str]) -> None:
    """Reject `break` and `continue` outside of a loop body."""
    match s:
        case c.Break() | c.Continue():
            if not in_loop:
                word = "break" if isinstance(s, c.Break) else "continue"
                src = lines[s.line - 1] if 0 < s.line <= len(lines) else ""
                raise CSyntaxError(f"`{word}` statement not within a loop", s.line, 1, src)
        case c.Block(stmts):
            for st in stmts:
                _check_loop_control(st, in_loop, lines)
        case c.If(_, t, f):
            _check_loop_control(t, in_loop, lines)
            if f is not None:
                _check_loop_control(f, in_loop, lines)
        case c.For(_, _, _, body) | c.While(_, body):
            _check_loop_control(body, True, lines)
        case _:
            return
