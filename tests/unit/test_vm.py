"""Tests for the stack VM: calls, scoping, variables and entry points."""

from cubescript.idents import IdentFlag
from cubescript.signature import NativeCommand
from cubescript.values import ValueType
from cubescript.run import create_vm
from cubescript.run_types import VMConfig


class TestEntryPoints:
    def test_execute_returns_result(self, vm):
        assert vm.execute_int("+ 2 3") == 5

    def test_number_literal(self, vm):
        assert vm.execute_int("0x1F") == 31
        assert vm.execute_float("result 3.5") == 3.5

    def test_string_result(self, vm):
        assert vm.execute_str("result hello") == "hello"

    def test_bool_result(self, vm):
        assert vm.execute_bool("result 1")
        assert not vm.execute_bool("result 0")

    def test_compile_error_is_reported_not_raised(self, vm, console):
        outcome = vm.run_source("echo [oops")
        assert not outcome.ok
        assert outcome.value.type == ValueType.NULL
        assert any('missing "]"' in m for m in console.errors())

    def test_statements_run_in_order(self, vm):
        assert vm.execute_int("x = 1; x = (+ $x 1)\nresult $x") == 2

    def test_execute_ident(self, vm):
        vm.execute("seven = [result 7]")
        assert vm.execute_ident("seven").get_int() == 7
        assert vm.execute_ident("missing", 3).get_int() == 3


class TestVariables:
    def test_assignment_fires_callback_once(self, vm):
        calls = []
        vm.registry.declare_var("myvar", 0, 0, 10, on_change=calls.append)
        vm.execute("myvar = 7")
        assert vm.registry.get_var("myvar") == 7
        assert len(calls) == 1

    def test_clamping_warns(self, vm, console):
        vm.registry.declare_var("myvar", 0, 0, 10)
        vm.execute("myvar 15")
        assert vm.registry.get_var("myvar") == 10
        assert "valid range for myvar is 0..10" in console.errors()

    def test_read_only(self, vm, console):
        vm.registry.declare_var("version", 3, 3, 0)
        vm.execute("version = 9")
        assert vm.registry.get_var("version") == 3
        assert "variable version is read-only" in console.errors()

    def test_lookup_coerces(self, vm):
        vm.registry.declare_float_var("scale", 0, 1.5, 10)
        assert vm.execute_str("result $scale") == "1.5"
        assert vm.execute_int("+ $scale 1") == 2

    def test_bare_var_prints(self, vm, console):
        vm.registry.declare_var("level", 0, 4, 10)
        vm.execute("level")
        assert "level = 4" in console.infos()

    def test_string_var(self, vm):
        vm.registry.declare_string_var("name", "bob")
        vm.execute("name alice")
        assert vm.registry.get_var("name") == "alice"

    def test_hex_components(self, vm):
        vm.registry.declare_var("tint", 0, 0, 0xFFFFFF, flags=IdentFlag.HEX)
        vm.execute("tint 255 128 0")
        assert vm.registry.get_var("tint") == 0xFF8000

    def test_numargs_is_read_only(self, vm):
        vm.execute("numargs = 4")
        assert vm.registry.get_var("numargs") == 0


class TestAliases:
    def test_define_and_call(self, vm):
        vm.execute("double = [* $arg1 2]")
        assert vm.execute_int("double 21") == 42

    def test_recursion_restores_arguments(self, vm):
        vm.execute("f = [if (> $arg1 0) [f (- $arg1 1)]; result $arg1]")
        assert vm.execute_int("f 3") == 3
        assert vm.registry.arg(0).value.type == ValueType.NULL

    def test_factorial(self, vm):
        vm.execute(
            "fact = [if (<= $arg1 1) [result 1] [* $arg1 (fact (- $arg1 1))]]"
        )
        assert vm.execute_int("fact 5") == 120

    def test_recursion_returns_base_case(self, vm):
        vm.execute("f = [if $arg1 [f (- $arg1 1)] [result base]]")
        assert vm.execute_str("f 3") == "base"

    def test_recursion_preserves_callers_argument(self, vm):
        vm.execute("f = [if $arg1 [f (- $arg1 1)] [result base]]")
        vm.execute("g = [concat (f 3) $arg1]")
        assert vm.execute_str("g keep") == "base keep"
        assert vm.registry.arg(0).value.type == ValueType.NULL

    def test_numargs_reflects_call(self, vm):
        vm.execute("count = [result $numargs]")
        assert vm.execute_int("count a b c") == 3
        assert vm.registry.get_var("numargs") == 0

    def test_unbound_args_read_as_empty(self, vm):
        vm.execute("second = [result $arg2]")
        assert vm.execute_str("second only") == ""

    def test_unknown_lookup_is_null(self, vm, console):
        value = vm.execute("result $ghost")
        assert value.type == ValueType.NULL
        assert vm.registry.lookup("ghost").flags & IdentFlag.UNKNOWN
        assert "unknown alias lookup: ghost" in console.errors()

    def test_dynamic_lookup_creates_placeholder(self, vm, console):
        value = vm.execute("result $(concatword gh ost)")
        assert value.type == ValueType.NULL
        assert vm.registry.lookup("ghost").flags & IdentFlag.UNKNOWN
        assert "unknown alias lookup: ghost" in console.errors()

    def test_dynamic_lookup_of_number_creates_nothing(self, vm):
        vm.execute("result $(+ 2 3)")
        assert vm.registry.lookup("5") is None

    def test_unknown_command(self, vm, console):
        assert vm.execute("nosuchcommand 1").type == ValueType.NULL
        assert "unknown command: nosuchcommand" in console.errors()

    def test_alias_defined_at_runtime_is_callable(self, vm):
        assert vm.execute_int("alias later [result 9]; later") == 9

    def test_cannot_alias_number(self, vm, console):
        vm.execute('alias 5 "x"')
        assert "cannot alias number 5" in console.errors()

    def test_cannot_redefine_builtin(self, vm, console):
        vm.execute('alias echo "x"')
        assert "cannot redefine builtin echo with an alias" in console.errors()

    def test_dynamic_lookup(self, vm):
        vm.execute("name = target; target = found")
        assert vm.execute_str("result $$name") == "found"

    def test_block_substitution(self, vm):
        vm.execute("who = world; msg = [hello @who]")
        assert vm.execute_str("result $msg") == "hello world"

    def test_recursion_limit(self, vm, console):
        vm.execute("forever = [forever]")
        vm.execute("forever")
        assert "exceeded recursion limit" in console.errors()
        assert vm.depth == 0

    def test_configured_depth(self, console):
        shallow = create_vm(VMConfig(max_run_depth=5), console=console)
        shallow.execute("down = [down]")
        shallow.execute("down")
        assert shallow.stats.max_depth == 5


class TestLocal:
    def test_local_shadows_until_block_ends(self, vm):
        vm.execute("x = outer")
        vm.execute("f = [local x; x = inner; result $x]")
        assert vm.execute_str("f") == "inner"
        assert vm.execute_str("result $x") == "outer"

    def test_local_by_dynamic_call(self, vm):
        vm.execute("x = outer")
        vm.execute("f = [[local] x; x = inner]")
        vm.execute("f")
        assert vm.execute_str("result $x") == "outer"


class TestDoargs:
    def test_sees_callers_arguments(self, vm):
        vm.execute("inner = [doargs [result $arg1]]")
        vm.execute("outer = [inner nested]")
        assert vm.execute_str("outer top") == "top"

    def test_at_top_level_behaves_like_do(self, vm):
        assert vm.execute_int("doargs [result 4]") == 4


class TestHostCommands:
    def test_missing_int_args_default_to_zero(self, console):
        vm = create_vm(
            commands=[NativeCommand("pair", "ii", lambda args, vm: "%d,%d" % (args[0].data, args[1].data))],
            console=console,
        )
        assert vm.execute_str("pair 5") == "5,0"

    def test_runtime_call_marshals_defaults(self, console):
        vm = create_vm(
            commands=[NativeCommand("pair", "ii", lambda args, vm: "%d,%d" % (args[0].data, args[1].data))],
            console=console,
        )
        assert vm.execute_str("(concatword pa ir) 7") == "7,0"

    def test_trailing_string_collects_rest(self, console):
        seen = []
        vm = create_vm(
            commands=[NativeCommand("one", "s", lambda args, vm: seen.append(args[0].get_str()))],
            console=console,
        )
        vm.execute("one a b c")
        assert seen == ["a b c"]

    def test_extra_args_are_dropped(self, console):
        seen = []
        vm = create_vm(
            commands=[NativeCommand("num", "i", lambda args, vm: seen.append(len(args)))],
            console=console,
        )
        vm.execute("num 1 2 3")
        assert seen == [1]

    def test_self_parameter(self, console):
        seen = []
        vm = create_vm(
            commands=[NativeCommand("who", "$", lambda args, vm: seen.append(args[0].data.name))],
            console=console,
        )
        vm.execute("who")
        assert seen == ["who"]

    def test_count_parameter_excludes_defaults(self, console):
        seen = []
        vm = create_vm(
            commands=[NativeCommand("tally", "ssN", lambda args, vm: seen.append(args[2].get_int()))],
            console=console,
        )
        vm.execute("tally")
        vm.execute("tally x")
        vm.execute("(concatword tal ly) x y")
        assert seen == [0, 1, 2]

    def test_stats_count_calls(self, vm):
        vm.execute("f = [+ 1 2]; f; f")
        assert vm.stats.alias_calls == 2
        assert vm.stats.command_calls >= 2
        assert vm.stats.instructions > 0


class TestKeyBinds:
    def test_onrelease_runs_on_key_up(self, vm, console):
        vm.execute_bind("K", "onrelease [echo released]", True)
        assert "released" not in console.infos()
        vm.execute_bind("K", "", False)
        assert "released" in console.infos()
        assert vm.release_actions == []

    def test_bind_command_gets_press_flag(self, console):
        calls = []
        vm = create_vm(
            commands=[NativeCommand("hold", "sD", lambda args, vm: calls.append((args[0].get_str(), args[1].get_int())))],
            console=console,
        )
        vm.execute_bind("K", "hold fire", True)
        vm.release_key("K")
        assert calls == [("fire", 1), ("fire", 0)]

    def test_outside_bind_no_release_action(self, vm):
        vm.execute("onrelease [echo x]")
        assert vm.release_actions == []
