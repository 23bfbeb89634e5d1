"""Tests for the argument scope stack and loop bindings."""

import pytest

from cubescript.idents import IdentFlag
from cubescript.registry import IdentRegistry
from cubescript.scope import LoopBinding, ScopeStack
from cubescript.values import Value, ValueType


@pytest.fixture
def registry(console):
    return IdentRegistry(console=console)


@pytest.fixture
def scope(registry):
    return ScopeStack([registry.arg(i) for i in range(25)])


class TestFrames:
    def test_enter_binds_args(self, registry, scope):
        owner = registry.declare_alias("f", "")
        scope.enter(owner, [Value.of_str("a"), Value.of_int(2)])
        assert registry.arg(0).get_str() == "a"
        assert registry.arg(1).get_int() == 2
        assert scope.is_bound(registry.arg(1))
        assert not scope.is_bound(registry.arg(2))
        assert scope.depth() == 1

    def test_leave_restores_previous_values(self, registry, scope):
        outer = scope.enter(None, [Value.of_str("outer")])
        inner = scope.enter(None, [Value.of_str("inner")])
        assert registry.arg(0).get_str() == "inner"
        scope.leave(inner)
        assert registry.arg(0).get_str() == "outer"
        scope.leave(outer)
        assert registry.arg(0).value.type == ValueType.NULL
        assert scope.top is scope.root

    def test_lazily_bound_args_are_popped(self, registry, scope):
        frame = scope.enter(None, [])
        scope.set_arg(registry.arg(3), Value.of_str("late"))
        assert scope.is_bound(registry.arg(3))
        scope.leave(frame)
        assert registry.arg(3).value.type == ValueType.NULL
        assert registry.arg(3).stack == []

    def test_frames_iterate_innermost_first(self, registry, scope):
        f = registry.declare_alias("f", "")
        g = registry.declare_alias("g", "")
        scope.enter(f, [])
        scope.enter(g, [])
        assert [frame.owner.name for frame in scope.frames()] == ["g", "f"]


class TestUndoArgs:
    def test_exposes_caller_args(self, registry, scope):
        caller = scope.enter(None, [Value.of_str("outer")])
        callee = scope.enter(None, [Value.of_str("inner")])
        link = scope.undo_args()
        assert registry.arg(0).get_str() == "outer"
        scope.redo_args(link)
        assert registry.arg(0).get_str() == "inner"
        scope.leave(callee)
        scope.leave(caller)
        assert registry.arg(0).value.type == ValueType.NULL

    def test_at_root_there_is_nothing_to_undo(self, scope):
        assert scope.undo_args() is None


class TestLocalShadowing:
    def test_push_and_pop_alias(self, registry):
        ident = registry.declare_alias("x", "1")
        ScopeStack.push_alias(ident)
        assert ident.value.type == ValueType.NULL
        ScopeStack.pop_alias(ident)
        assert ident.get_str() == "1"

    def test_args_are_not_shadowed_as_locals(self, registry):
        arg = registry.arg(0)
        ScopeStack.push_alias(arg)
        assert arg.stack == []


class TestLoopBinding:
    def test_set_then_release(self, registry):
        ident = registry.lookup_or_create_unknown("i")
        with LoopBinding(ident) as binding:
            binding.set(Value.of_int(0))
            binding.set(Value.of_int(1))
            assert ident.get_int() == 1
            assert len(ident.stack) == 1
            assert not ident.flags & IdentFlag.UNKNOWN
        assert ident.value.type == ValueType.NULL
        assert ident.stack == []

    def test_release_without_set_is_harmless(self, registry):
        ident = registry.declare_alias("i", "keep")
        LoopBinding(ident).release()
        assert ident.get_str() == "keep"
