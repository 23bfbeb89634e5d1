"""Tests for the ident registry: declarations, lookups and variable writes."""

import pytest

from cubescript.constants import MAX_ARGS
from cubescript.errors import DuplicateIdentError
from cubescript.idents import IdentFlag, IdentType, VarStorage
from cubescript.registry import IdentRegistry
from cubescript.signature import NativeCommand
from cubescript.values import Value, ValueType


@pytest.fixture
def registry(console):
    return IdentRegistry([NativeCommand("noop", "", lambda args, vm: None)], console)


class TestLayout:
    def test_args_take_first_indices(self, registry):
        for i in range(MAX_ARGS):
            ident = registry.arg(i)
            assert ident.name == f"arg{i + 1}"
            assert ident.index == i
            assert ident.flags & IdentFlag.ARG

    def test_indices_are_stable(self, registry):
        ident = registry.declare_alias("later", "x")
        assert registry.identmap[ident.index] is ident

    def test_builtin_vars(self, registry):
        assert registry.lookup("numargs").flags & IdentFlag.READONLY
        assert registry.lookup("dbgalias").type == IdentType.VAR

    def test_contains_and_len(self, registry):
        assert "noop" in registry
        assert len(registry) == len(list(registry))


class TestLookup:
    def test_missing_name(self, registry):
        assert registry.lookup("ghost") is None

    def test_create_unknown_placeholder(self, registry):
        ident = registry.lookup_or_create_unknown("ghost")
        assert ident.type == IdentType.ALIAS
        assert ident.flags & IdentFlag.UNKNOWN
        assert ident.get_value().type == ValueType.NULL
        assert registry.lookup("ghost") is ident

    def test_number_names_map_to_dummy(self, registry, console):
        assert registry.lookup_or_create_unknown("12") is registry.dummy
        assert "number 12 is not a valid identifier name" in console.errors()


class TestDeclarations:
    def test_duplicate_command_rejected(self, registry):
        with pytest.raises(DuplicateIdentError):
            registry.declare_command("noop", "", None)

    def test_var_over_command_rejected(self, registry):
        with pytest.raises(DuplicateIdentError):
            registry.declare_var("noop", 0, 0, 1)

    def test_redeclaring_alias_keeps_identity(self, registry):
        first = registry.declare_alias("greeting", "hello")
        second = registry.declare_alias("greeting", "bye")
        assert first is second
        assert second.get_str() == "bye"

    def test_declaring_over_unknown_placeholder(self, registry):
        placeholder = registry.lookup_or_create_unknown("speed")
        var = registry.declare_var("speed", 0, 5, 10)
        assert var is placeholder
        assert var.type == IdentType.VAR
        assert not var.flags & IdentFlag.UNKNOWN

    def test_alias_named_like_number_rejected(self, registry):
        with pytest.raises(ValueError):
            registry.declare_alias("5", "x")

    def test_min_above_max_is_read_only(self, registry):
        ident = registry.declare_var("version", 5, 5, 1)
        assert ident.flags & IdentFlag.READONLY

    def test_host_storage_is_shared(self, registry):
        storage = VarStorage(0)
        registry.declare_var("shared", 0, 3, 10, storage=storage)
        registry.set_var("shared", 7)
        assert storage.value == 7


class TestVariableWrites:
    def test_clamps_and_warns(self, registry, console):
        registry.declare_var("level", 0, 5, 10)
        registry.set_var("level", 15)
        assert registry.get_var("level") == 10
        assert "valid range for level is 0..10" in console.errors()

    def test_clamp_can_be_skipped(self, registry):
        registry.declare_var("level", 0, 5, 10)
        registry.set_var("level", 15, clamp=False)
        assert registry.get_var("level") == 15

    def test_hex_range_message(self, registry, console):
        registry.declare_var("tint", 0, 0, 0xFFFFFF, flags=IdentFlag.HEX)
        registry.set_var("tint", -1)
        assert "valid range for tint is 0..0xFFFFFF" in console.errors()

    def test_float_clamp(self, registry, console):
        registry.declare_float_var("scale", 0.5, 1.0, 2.0)
        registry.set_var("scale", 9)
        assert registry.get_var("scale") == 2.0
        assert "valid range for scale is 0.5..2.0" in console.errors()

    def test_read_only_write_ignored(self, registry, console):
        registry.declare_var("version", 5, 5, 1)
        registry.set_var("version", 3)
        assert registry.get_var("version") == 5
        assert "variable version is read-only" in console.errors()

    def test_callback_runs_once(self, registry):
        calls = []
        registry.declare_var("level", 0, 0, 10, on_change=calls.append)
        registry.set_var("level", 4)
        assert [ident.name for ident in calls] == ["level"]

    def test_callback_can_be_suppressed(self, registry):
        calls = []
        registry.declare_var("level", 0, 0, 10, on_change=calls.append)
        registry.set_var("level", 4, run_callback=False)
        assert calls == []

    def test_missing_var_raises(self, registry):
        with pytest.raises(KeyError):
            registry.set_var("ghost", 1)

    def test_hex_components(self, registry):
        ident = registry.declare_var("tint", 0, 0, 0xFFFFFF, flags=IdentFlag.HEX)
        registry.set_var_components(ident, [Value.of_int(255), Value.of_int(128), Value.of_int(0)])
        assert ident.storage.value == 0xFF8000

    def test_format_var(self, registry):
        tint = registry.declare_var("tint", 0, 0xFF8000, 0xFFFFFF, flags=IdentFlag.HEX)
        level = registry.declare_var("level", 0, 3, 10)
        name = registry.declare_string_var("name", "bob")
        scale = registry.declare_float_var("scale", 0, 1, 2)
        assert registry.format_var(tint) == "tint = 0xFF8000 (255, 128, 0)"
        assert registry.format_var(level) == "level = 3"
        assert registry.format_var(name) == 'name = "bob"'
        assert registry.format_var(scale) == "scale = 1.0"


class TestOverrides:
    def test_override_flag_records_original(self, registry):
        registry.declare_var("fog", 0, 5, 10, flags=IdentFlag.OVERRIDE)
        registry.set_var("fog", 8)
        ident = registry.lookup("fog")
        assert ident.flags & IdentFlag.OVERRIDDEN
        registry.clear_overrides()
        assert registry.get_var("fog") == 5
        assert not ident.flags & IdentFlag.OVERRIDDEN

    def test_persistent_cannot_be_overridden(self, registry, console):
        registry.declare_var("fog", 0, 5, 10, flags=IdentFlag.OVERRIDE | IdentFlag.PERSIST)
        registry.set_var("fog", 8)
        assert registry.get_var("fog") == 5
        assert "cannot override persistent variable fog" in console.errors()

    def test_flag_context_restores(self, registry):
        with registry.flag_context(IdentFlag.PERSIST):
            assert registry.ident_flags & IdentFlag.PERSIST
        assert registry.ident_flags == IdentFlag.NONE

    def test_clear_aliases(self, registry):
        ident = registry.declare_alias("greet", "echo hi")
        registry.clear_aliases()
        assert ident.value.type == ValueType.NULL
        assert registry.lookup("greet") is ident


class TestDebug:
    def test_nodebug_suppresses(self, registry, console):
        registry.nodebug = 1
        registry.debug("hidden")
        assert console.errors() == []

    def test_trace_hook_runs_after_message(self, registry, console):
        registry.trace = lambda: console.error("trace")
        registry.debug("shown")
        assert console.errors() == ["shown", "trace"]
