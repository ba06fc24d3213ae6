from dataclasses import dataclass, field
from typing import List, Optional

@dataclass(frozen=True)
class Type:
    pass

@dataclass(frozen=True)
class IntType(Type):
    def __repr__(self):
        return "int"

@dataclass(frozen=True)
class FloatType(Type):
    def __repr__(self):
        return "float"

@dataclass(frozen=True)
class CharType(Type):
    def __repr__(self):
        return "char"

@dataclass(frozen=True)
class VoidType(Type):
    def __repr__(self):
        return "void"

@dataclass(frozen=True)
class ArrayType(Type):
    base: Type
    def __repr__(self):
        return f"{self.base}[]"

INT = IntType()
FLOAT = FloatType()
CHAR = CharType()
VOID = VoidType()

@dataclass
class Node:
    pass

# Source line of a node. Not part of structural equality so that tests can
# compare trees built by hand against parser output.
def _line():
    return field(default=0, compare=False, repr=False, kw_only=True)

@dataclass
class Exp(Node):
    pass

@dataclass
class IntConst(Exp):
    value: int
    line: int = _line()

@dataclass
class FloatConst(Exp):
    value: float
    line: int = _line()

@dataclass
class CharConst(Exp):
    value: int
    line: int = _line()

@dataclass
class StrConst(Exp):
    """A string literal; only valid as a `printf` argument."""
    value: str
    line: int = _line()

@dataclass
class Var(Exp):
    name: str
    line: int = _line()

@dataclass
class BinOp(Exp):
    op: str
    left: Exp
    right: Exp
    line: int = _line()

@dataclass
class UnOp(Exp):
    op: str
    arg: Exp
    line: int = _line()

@dataclass
class Cast(Exp):
    type: Type
    arg: Exp
    line: int = _line()

@dataclass
class ArrayAccess(Exp):
    arr: Exp
    index: Exp
    line: int = _line()

@dataclass
class Call(Exp):
    name: str
    args: List[Exp]
    line: int = _line()

@dataclass
class Stmt(Node):
    pass

@dataclass
class Decl(Stmt):
    """`type name;`, `type name = e;`, `type name[n];` or `type name[] = {...};`

    For arrays `type` is an ArrayType, `size` is the bracketed length (None
    when omitted) and `init` is an InitList.
    """
    type: Type
    name: str
    init: Optional[Exp]
    size: Optional[Exp] = None
    line: int = _line()

@dataclass
class InitList(Exp):
    items: List[Exp]
    line: int = _line()

@dataclass
class Assign(Stmt):
    dest: Exp # Var or ArrayAccess
    source: Exp
    line: int = _line()

@dataclass
class ExpStmt(Stmt):
    exp: Exp
    line: int = _line()

@dataclass
class Block(Stmt):
    stmts: List[Stmt]
    line: int = _line()

@dataclass
class If(Stmt):
    cond: Exp
    true_branch: Stmt
    false_branch: Optional[Stmt]
    line: int = _line()

@dataclass
class For(Stmt):
    init: List[Stmt]
    cond: Optional[Exp]
    step: Optional[Stmt]
    body: Stmt
    line: int = _line()

@dataclass
class While(Stmt):
    cond: Exp
    body: Stmt
    line: int = _line()

@dataclass
class Break(Stmt):
    line: int = _line()

@dataclass
class Continue(Stmt):
    line: int = _line()

@dataclass
class Return(Stmt):
    val: Optional[Exp]
    line: int = _line()

@dataclass
class Param(Node):
    type: Type
    name: str

@dataclass
class FunctionDecl(Node):
    ret_type: Type
    name: str
    params: List[Param]
    body: Block
    line: int = _line()

@dataclass
class Program(Node):
    functions: List[FunctionDecl]
    globals: List[Decl] = field(default_factory=list)

    def function(self, name: str) -> Optional[FunctionDecl]:
        for f in self.functions:
            if f.name == name:
                return f
        return None
