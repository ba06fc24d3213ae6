import math

import numpy as np
import pytest

import cmini as c
import cmini_types as ct
from cmini_errors import DivisionByZero, IndexOutOfBounds, TypeMismatch


@pytest.mark.parametrize("lt, rt, op, want", [
    (c.INT, c.INT, "+", c.INT),
    (c.INT, c.FLOAT, "*", c.FLOAT),
    (c.FLOAT, c.CHAR, "-", c.FLOAT),
    (c.CHAR, c.CHAR, "+", c.INT),
    (c.CHAR, c.INT, "/", c.INT),
    (c.FLOAT, c.FLOAT, "<", c.INT),
    (c.INT, c.FLOAT, "==", c.INT),
    (c.FLOAT, c.INT, "&&", c.INT),
])
def test_result_type(lt, rt, op, want):
    assert ct.result_type(lt, rt, op) == want


def test_result_type_rejects_bad_operands():
    with pytest.raises(TypeMismatch):
        ct.result_type(c.FLOAT, c.INT, "%")
    with pytest.raises(TypeMismatch):
        ct.result_type(c.ArrayType(c.INT), c.INT, "+")
    with pytest.raises(TypeMismatch):
        ct.result_type(c.VOID, c.INT, "+")


class TestIntArithmetic:
    def test_division_truncates_toward_zero(self):
        assert ct.binary("/", ct.int_value(7), ct.int_value(-2)) == ct.int_value(-3)
        assert ct.binary("/", ct.int_value(-7), ct.int_value(2)) == ct.int_value(-3)

    def test_remainder_takes_sign_of_dividend(self):
        assert ct.binary("%", ct.int_value(7), ct.int_value(-2)) == ct.int_value(1)
        assert ct.binary("%", ct.int_value(-7), ct.int_value(2)) == ct.int_value(-1)

    def test_division_by_zero(self):
        with pytest.raises(DivisionByZero):
            ct.binary("/", ct.int_value(1), ct.int_value(0))
        with pytest.raises(DivisionByZero):
            ct.binary("%", ct.int_value(1), ct.char_value(0))

    def test_wraps_to_64_bits(self):
        big = ct.int_value(2**63 - 1)
        assert ct.binary("+", big, ct.int_value(1)) == ct.int_value(-(2**63))
        assert ct.wrap_int(2**64 + 5) == 5

    def test_char_operands_promote_to_int(self):
        v = ct.binary("+", ct.char_value(100), ct.char_value(100))
        assert v.type == c.INT
        assert v.data == 200

    def test_comparison_yields_int(self):
        assert ct.binary("<", ct.int_value(1), ct.float_value(1.5)) == ct.int_value(1)
        assert ct.binary("==", ct.char_value(43), ct.int_value(43)) == ct.int_value(1)
        assert ct.binary("!=", ct.int_value(2), ct.int_value(2)) == ct.int_value(0)


class TestFloatArithmetic:
    def test_mixed_operands_promote_to_float(self):
        for op in ["+", "-", "*", "/"]:
            mixed = ct.binary(op, ct.int_value(20), ct.float_value(5.5))
            promoted = ct.binary(op, ct.float_value(20), ct.float_value(5.5))
            assert mixed.type == c.FLOAT
            assert mixed.data == promoted.data

    def test_single_precision_rounding(self):
        v = ct.binary("/", ct.int_value(20), ct.float_value(5.5))
        assert isinstance(v.data, np.float32)
        assert float(v.data) == float(np.float32(20) / np.float32(5.5))
        assert float(v.data) != 20 / 5.5

    def test_division_by_zero_is_ieee(self):
        assert math.isinf(ct.binary("/", ct.float_value(1.0), ct.int_value(0)).data)
        assert math.isnan(ct.binary("/", ct.float_value(0.0), ct.float_value(0.0)).data)

    def test_unary(self):
        assert ct.unary("-", ct.float_value(2.5)).data == np.float32(-2.5)
        assert ct.unary("-", ct.char_value(5)) == ct.int_value(-5)
        assert ct.unary("!", ct.float_value(0.0)) == ct.int_value(1)
        assert ct.unary("+", ct.char_value(7)) == ct.int_value(7)


class TestCoerce:
    def test_float_to_int_truncates(self):
        assert ct.coerce(ct.float_value(3.9), c.INT) == ct.int_value(3)
        assert ct.coerce(ct.float_value(-3.9), c.INT) == ct.int_value(-3)

    def test_int_to_char_wraps(self):
        assert ct.coerce(ct.int_value(300), c.CHAR) == ct.char_value(44)
        assert ct.coerce(ct.int_value(200), c.CHAR).data == -56

    def test_int_to_float(self):
        v = ct.coerce(ct.int_value(20), c.FLOAT)
        assert v.type == c.FLOAT
        assert float(v.data) == 20.0

    def test_non_finite_to_int(self):
        with pytest.raises(TypeMismatch):
            ct.coerce(ct.float_value(float("inf")), c.INT)

    def test_array_and_scalar_do_not_mix(self):
        arr = ct.new_array(c.INT, 2)
        with pytest.raises(TypeMismatch):
            ct.coerce(arr, c.INT)
        with pytest.raises(TypeMismatch):
            ct.coerce(ct.int_value(1), c.ArrayType(c.INT))


def test_truthy():
    assert ct.truthy(ct.int_value(-1))
    assert not ct.truthy(ct.char_value(0))
    assert ct.truthy(ct.float_value(0.25))
    with pytest.raises(TypeMismatch):
        ct.truthy(ct.new_array(c.INT, 1))


class TestArrays:
    def test_new_array_zero_fills(self):
        arr = ct.new_array(c.FLOAT, 3, [ct.int_value(2)])
        assert arr.type == c.ArrayType(c.FLOAT)
        assert arr.to_python() == [2.0, 0.0, 0.0]

    def test_bounds(self):
        arr = ct.new_array(c.INT, 2).data
        with pytest.raises(IndexOutOfBounds):
            arr.get(2)
        with pytest.raises(IndexOutOfBounds):
            arr.set(-1, ct.int_value(0))

    def test_store_coerces_to_element_type(self):
        arr = ct.new_array(c.INT, 1).data
        arr.set(0, ct.float_value(7.75))
        assert arr.get(0) == ct.int_value(7)

    def test_too_many_items(self):
        with pytest.raises(IndexOutOfBounds):
            ct.new_array(c.INT, 1, [ct.int_value(1), ct.int_value(2)])


def test_from_python():
    assert ct.from_python(5) == ct.int_value(5)
    assert ct.from_python(5.5).type == c.FLOAT
    assert ct.from_python("+") == ct.char_value(ord("+"))
    assert ct.from_python([1, 2, 3]).type == c.ArrayType(c.INT)
    assert ct.from_python([1, 2.5]).type == c.ArrayType(c.FLOAT)
    assert ct.from_python(["h", "i"]).to_python() == ["h", "i"]
    with pytest.raises(TypeMismatch):
        ct.from_python({"a": 1})
