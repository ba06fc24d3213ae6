import pytest

import cmini as c
import cmini_types as ct
from cmini_env import Environment
from cmini_errors import DuplicateDeclaration, StackOverflow, TypeMismatch, UndefinedIdentifier


@pytest.fixture
def env():
    return Environment(max_depth=8)


def test_declare_and_lookup(env):
    env.declare("g", ct.int_value(1))
    with env.call("main"):
        env.declare("x", ct.int_value(2))
        assert env.lookup("x").get() == ct.int_value(2)
        assert env.lookup("g").get() == ct.int_value(1)


def test_duplicate_in_same_scope(env):
    with env.call("main"):
        env.declare("x", ct.int_value(1))
        with pytest.raises(DuplicateDeclaration):
            env.declare("x", ct.int_value(2))


def test_undefined(env):
    with env.call("main"):
        with pytest.raises(UndefinedIdentifier):
            env.lookup("nope")


def test_callee_cannot_see_caller_locals(env):
    with env.call("main"):
        env.declare("local", ct.int_value(1))
        with env.call("helper"):
            with pytest.raises(UndefinedIdentifier):
                env.lookup("local")
        assert env.lookup("local").get() == ct.int_value(1)


def test_block_shadowing(env):
    with env.call("main"):
        env.declare("x", ct.int_value(1))
        with env.block():
            env.declare("x", ct.int_value(2))
            env.declare("y", ct.int_value(3))
            assert env.lookup("x").get() == ct.int_value(2)
        assert env.lookup("x").get() == ct.int_value(1)
        with pytest.raises(UndefinedIdentifier):
            env.lookup("y")


def test_slot_coerces_to_declared_type(env):
    with env.call("main"):
        slot = env.declare("f", ct.int_value(20), c.FLOAT)
        assert slot.get().type == c.FLOAT
        slot.set(ct.char_value(65))
        assert float(slot.get().data) == 65.0


def test_array_slot_not_assignable(env):
    with env.call("main"):
        slot = env.declare("a", ct.new_array(c.INT, 2))
        with pytest.raises(TypeMismatch):
            slot.set(ct.new_array(c.INT, 2))


def test_arrays_share_storage_across_frames(env):
    arr = ct.new_array(c.INT, 3)
    with env.call("main"):
        env.declare("a", arr)
        with env.call("fill"):
            env.declare("p", arr, c.ArrayType(c.INT))
            env.lookup("p").get().data.set(1, ct.int_value(9))
        assert env.lookup("a").get().to_python() == [0, 9, 0]


def test_stack_overflow(env):
    for i in range(8):
        env.enter_call(f"f{i}")
    with pytest.raises(StackOverflow):
        env.enter_call("f8")


def test_frame_popped_after_error(env):
    with pytest.raises(UndefinedIdentifier):
        with env.call("main"):
            env.lookup("missing")
    assert env.frames == []
    assert env.current_scope is env.globals


def test_call_stack(env):
    with env.call("main") as outer:
        outer.line = 4
        with env.call("fact") as inner:
            inner.line = 9
            assert env.call_stack() == ["main:4", "fact:9"]
