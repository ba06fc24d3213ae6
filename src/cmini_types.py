"""Runtime values and the C numeric promotion rules.

Values are small immutable records tagged with their `cmini.Type`. Floats are
held as `numpy.float32` so that every arithmetic step rounds to IEEE-754
single precision; integers are Python ints wrapped to 64 bits; chars are
signed bytes. An array Value points at an `ArrayStorage`, which is shared
(never copied) between every variable that aliases it.

Promotion follows the lattice char < int < float: if either operand is a
float both are computed as float, otherwise both are computed as int.
"""

import operator
from dataclasses import dataclass
from typing import Any, List

import numpy as np

import cmini
from cmini_errors import DivisionByZero, IndexOutOfBounds, TypeMismatch

INT_BITS = 64
_INT_MASK = (1 << INT_BITS) - 1
_INT_SIGN = 1 << (INT_BITS - 1)

ARITH_OPS = frozenset(["+", "-", "*", "/", "%"])
COMPARE_OPS = frozenset(["<", "<=", ">", ">=", "==", "!="])
LOGIC_OPS = frozenset(["&&", "||"])

_COMPARE = {
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
    "==": operator.eq,
    "!=": operator.ne,
}

_FLOAT_ARITH = {
    "+": operator.add,
    "-": operator.sub,
    "*": operator.mul,
    "/": operator.truediv,
}


def wrap_int(v: int) -> int:
    """Wrap `v` to a signed 64-bit integer (two's complement)."""
    v &= _INT_MASK
    return v - (1 << INT_BITS) if v & _INT_SIGN else v


def wrap_char(v: int) -> int:
    """Wrap `v` to a signed byte."""
    v &= 0xFF
    return v - 256 if v >= 128 else v


class ArrayStorage:
    """The cells of one array object.

    Cells hold raw scalar data (int or numpy.float32) of `elem_type`.
    """

    def __init__(self, elem_type: cmini.Type, cells: List[Any]):
        self.elem_type = elem_type
        self.cells = cells

    def __len__(self) -> int:
        return len(self.cells)

    def _check(self, index: int) -> None:
        if not 0 <= index < len(self.cells):
            raise IndexOutOfBounds(f"index {index} out of bounds for array of length {len(self.cells)}")

    def get(self, index: int) -> "Value":
        self._check(index)
        return Value(self.elem_type, self.cells[index])

    def set(self, index: int, value: "Value") -> None:
        self._check(index)
        self.cells[index] = coerce(value, self.elem_type).data

    def __repr__(self):
        return f"{{{', '.join(str(Value(self.elem_type, c)) for c in self.cells)}}}"


@dataclass(frozen=True)
class Value:
    type: cmini.Type
    data: Any

    def __str__(self):
        match self.type:
            case cmini.FloatType():
                return f"{float(self.data)}f"
            case cmini.CharType():
                return repr(chr(self.data & 0xFF))
            case cmini.VoidType():
                return "void"
            case _:
                return str(self.data)

    def to_python(self) -> Any:
        """Convert to the closest Python object (list for arrays, None for void)."""
        match self.type:
            case cmini.IntType():
                return self.data
            case cmini.FloatType():
                return float(self.data)
            case cmini.CharType():
                return chr(self.data & 0xFF)
            case cmini.ArrayType(_):
                return [Value(self.data.elem_type, c).to_python() for c in self.data.cells]
            case _:
                return None


VOID_VALUE = Value(cmini.VOID, None)


def int_value(v: int) -> Value:
    return Value(cmini.INT, wrap_int(int(v)))


def float_value(v) -> Value:
    return Value(cmini.FLOAT, np.float32(v))


def char_value(v: int) -> Value:
    return Value(cmini.CHAR, wrap_char(int(v)))


def is_scalar(t: cmini.Type) -> bool:
    return isinstance(t, (cmini.IntType, cmini.FloatType, cmini.CharType))


def zero_value(t: cmini.Type) -> Value:
    """Default value of a scalar variable declared without an initializer."""
    match t:
        case cmini.IntType():
            return int_value(0)
        case cmini.FloatType():
            return float_value(0.0)
        case cmini.CharType():
            return char_value(0)
        case _:
            raise TypeMismatch(f"no default value for type `{t}`")


def new_array(elem_type: cmini.Type, length: int, items: List[Value] = ()) -> Value:
    """Allocate a zero-filled array of `length` cells, then store `items` from index 0."""
    if not is_scalar(elem_type):
        raise TypeMismatch(f"arrays of `{elem_type}` are not supported")
    if length < 0:
        raise TypeMismatch(f"negative array length {length}")
    if len(items) > length:
        raise IndexOutOfBounds(f"{len(items)} initializers for array of length {length}")
    storage = ArrayStorage(elem_type, [zero_value(elem_type).data] * length)
    for i, item in enumerate(items):
        storage.set(i, item)
    return Value(cmini.ArrayType(elem_type), storage)


def _require_scalar(t: cmini.Type, what: str) -> None:
    if not is_scalar(t):
        raise TypeMismatch(f"{what} must be a scalar, got `{t}`")


def promote(lt: cmini.Type, rt: cmini.Type) -> cmini.Type:
    """Common type both operands are converted to before a binary operator runs."""
    _require_scalar(lt, "operand")
    _require_scalar(rt, "operand")
    if isinstance(lt, cmini.FloatType) or isinstance(rt, cmini.FloatType):
        return cmini.FLOAT
    return cmini.INT


def result_type(lt: cmini.Type, rt: cmini.Type, op: str) -> cmini.Type:
    """Result type of `l op r`.

    Arithmetic yields the promoted operand type; comparisons and logical
    operators always yield int.
    """
    if op not in ARITH_OPS and op not in COMPARE_OPS and op not in LOGIC_OPS:
        raise TypeMismatch(f"unknown binary operator `{op}`")
    common = promote(lt, rt)
    if op in ARITH_OPS:
        if op == "%" and isinstance(common, cmini.FloatType):
            raise TypeMismatch("invalid operands to `%`: float")
        return common
    return cmini.INT


def truthy(v: Value) -> bool:
    _require_scalar(v.type, "condition")
    return bool(v.data != 0)


def _to_int(v: Value) -> int:
    if isinstance(v.type, cmini.FloatType):
        if not np.isfinite(v.data):
            raise TypeMismatch(f"cannot convert {float(v.data)} to an integer type")
        # int() truncates toward zero, like a C conversion
        return int(float(v.data))
    return v.data


def coerce(v: Value, target: cmini.Type) -> Value:
    """Convert `v` to `target` the way a C assignment would."""
    if v.type == target:
        return v
    if not is_scalar(target) or not is_scalar(v.type):
        raise TypeMismatch(f"cannot convert `{v.type}` to `{target}`")
    match target:
        case cmini.IntType():
            return int_value(_to_int(v))
        case cmini.CharType():
            return char_value(_to_int(v))
        case _:
            return float_value(v.data)


def _trunc_div(a: int, b: int) -> int:
    q = abs(a) // abs(b)
    return q if (a < 0) == (b < 0) else -q


def _int_arith(op: str, a: int, b: int) -> int:
    match op:
        case "+":
            r = a + b
        case "-":
            r = a - b
        case "*":
            r = a * b
        case "/":
            if b == 0:
                raise DivisionByZero("integer division by zero")
            r = _trunc_div(a, b)
        case "%":
            if b == 0:
                raise DivisionByZero("integer remainder by zero")
            r = a - b * _trunc_div(a, b)
        case _:
            raise TypeMismatch(f"unknown arithmetic operator `{op}`")
    return wrap_int(r)


def binary(op: str, l: Value, r: Value) -> Value:
    """Evaluate `l op r` on already-evaluated operands (no short circuit)."""
    rtype = result_type(l.type, r.type, op)
    common = promote(l.type, r.type)
    if op in LOGIC_OPS:
        if op == "&&":
            return int_value(truthy(l) and truthy(r))
        return int_value(truthy(l) or truthy(r))

    a = coerce(l, common).data
    b = coerce(r, common).data
    if op in COMPARE_OPS:
        return int_value(bool(_COMPARE[op](a, b)))
    if isinstance(rtype, cmini.FloatType):
        # IEEE-754 results for x/0.0, overflow and NaN; no numpy warnings
        with np.errstate(all="ignore"):
            return Value(cmini.FLOAT, np.float32(_FLOAT_ARITH[op](a, b)))
    return Value(cmini.INT, _int_arith(op, a, b))


def unary(op: str, v: Value) -> Value:
    match op:
        case "!":
            return int_value(not truthy(v))
        case "-":
            common = promote(v.type, v.type)
            if isinstance(common, cmini.FloatType):
                return Value(cmini.FLOAT, np.float32(-v.data))
            return int_value(-coerce(v, common).data)
        case "+":
            return coerce(v, promote(v.type, v.type))
        case _:
            raise TypeMismatch(f"unknown unary operator `{op}`")


def from_python(x: Any) -> Value:
    """Build a Value from a Python int, float, one-character str or list."""
    if isinstance(x, Value):
        return x
    if isinstance(x, bool):
        return int_value(int(x))
    if isinstance(x, int):
        return int_value(x)
    if isinstance(x, (float, np.floating)):
        return float_value(x)
    if isinstance(x, str) and len(x) == 1:
        return char_value(ord(x))
    if isinstance(x, (list, tuple)):
        items = [from_python(i) for i in x]
        if any(isinstance(i.type, cmini.FloatType) for i in items):
            elem = cmini.FLOAT
        elif items and all(isinstance(i.type, cmini.CharType) for i in items):
            elem = cmini.CHAR
        else:
            elem = cmini.INT
        return new_array(elem, len(items), items)
    raise TypeMismatch(f"cannot convert Python value {x!r}")
