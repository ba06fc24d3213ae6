"""printf-style output.

The evaluator hands every `printf` call to a Sink as a format string plus the
already-evaluated argument Values; the Sink picks the textual shape from each
conversion specifier and emits the result.
"""

import re
import sys
from typing import List

import cmini
from cmini_errors import TypeMismatch
from cmini_types import Value

_SPEC = re.compile(r"%(?P<flags>[-+ 0#]*)(?P<width>\d+)?(?:\.(?P<prec>\d+))?(?P<conv>[a-zA-Z%])")

_INT_CONVS = "diuxXoc"
_FLOAT_CONVS = "fFeEgG"

# %u, %x and %o print the bits of a 32-bit unsigned int
_UINT_MASK = (1 << 32) - 1


def c_string(v: Value) -> str:
    """Decode a char array up to its first NUL."""
    if v.type != cmini.ArrayType(cmini.CHAR):
        raise TypeMismatch(f"`%s` expects a string, got `{v.type}`")
    out = []
    for c in v.data.cells:
        if c == 0:
            break
        out.append(chr(c & 0xFF))
    return "".join(out)


def _convert(conv: str, spec: str, v: Value) -> str:
    if conv in _INT_CONVS:
        if not isinstance(v.type, (cmini.IntType, cmini.CharType)):
            raise TypeMismatch(f"`%{conv}` expects an integer argument, got `{v.type}`")
        if conv == "c":
            return spec % chr(v.data & 0xFF)
        if conv == "u":
            return (spec[:-1] + "d") % (v.data & _UINT_MASK)
        if conv in "xXo":
            return spec % (v.data & _UINT_MASK)
        return spec % v.data
    if conv in _FLOAT_CONVS:
        if not isinstance(v.type, cmini.FloatType):
            raise TypeMismatch(f"`%{conv}` expects a floating argument, got `{v.type}`")
        return spec % float(v.data)
    if conv == "s":
        return spec % c_string(v)
    raise TypeMismatch(f"unsupported conversion `%{conv}`")


def format_printf(fmt: str, values: List[Value]) -> str:
    out = []
    pos = 0
    args = iter(values)
    used = 0
    for m in _SPEC.finditer(fmt):
        out.append(fmt[pos:m.start()])
        pos = m.end()
        conv = m.group("conv")
        if conv == "%":
            out.append("%")
            continue
        try:
            v = next(args)
        except StopIteration:
            raise TypeMismatch(f"too few arguments for format {fmt!r}") from None
        used += 1
        out.append(_convert(conv, m.group(0), v))
    out.append(fmt[pos:])
    if used != len(values):
        raise TypeMismatch(f"format {fmt!r} consumes {used} arguments but {len(values)} were given")
    return "".join(out)


class Sink:
    """Receives formatted output requests."""

    def write(self, fmt: str, values: List[Value]) -> int:
        text = format_printf(fmt, values)
        self.emit(text)
        return len(text)

    def emit(self, text: str) -> None:
        raise NotImplementedError


class StdoutSink(Sink):
    def emit(self, text: str) -> None:
        sys.stdout.write(text)


class BufferSink(Sink):
    """Collects everything written so it can be inspected afterwards."""

    def __init__(self):
        self.parts: List[str] = []

    def emit(self, text: str) -> None:
        self.parts.append(text)

    def getvalue(self) -> str:
        return "".join(self.parts)

    def clear(self) -> None:
        self.parts.clear()
