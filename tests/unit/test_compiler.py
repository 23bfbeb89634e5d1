"""Tests for the single-pass compiler: emitted opcodes, caching and errors."""

import pytest

from cubescript.bytecode import Opcode, decode, opcode_of
from cubescript.compiler import Compiler, compile_source
from cubescript.errors import CompileError


def ops(program) -> list[Opcode]:
    return [opcode_of(word) for word in program.code]


class TestStatements:
    def test_empty_source_is_just_exit(self, vm):
        assert ops(vm.compiler.compile("")) == [Opcode.EXIT]

    def test_alias_assignment(self, vm):
        assert ops(vm.compiler.compile("x = hello")) == [Opcode.VAL, Opcode.ALIAS, Opcode.EXIT]

    def test_arg_assignment_uses_arg_form(self, vm):
        assert Opcode.ALIASARG in ops(vm.compiler.compile("arg1 = 5"))

    def test_var_assignment(self, vm):
        vm.registry.declare_var("level", 0, 0, 10)
        assert ops(vm.compiler.compile("level = 3")) == [Opcode.VALI, Opcode.IVAR1, Opcode.EXIT]

    def test_var_statement_without_args_prints(self, vm):
        vm.registry.declare_var("level", 0, 0, 10)
        assert ops(vm.compiler.compile("level")) == [Opcode.PRINT, Opcode.EXIT]

    def test_hex_var_takes_three_components(self, vm):
        from cubescript.idents import IdentFlag

        vm.registry.declare_var("tint", 0, 0, 0xFFFFFF, flags=IdentFlag.HEX)
        assert Opcode.IVAR3 in ops(vm.compiler.compile("tint 255 0 0"))

    def test_command_call_encodes_argc(self, vm):
        program = vm.compiler.compile("strstr abc b")
        inst = decode(program.code[2])
        assert inst.opcode == Opcode.COM
        assert inst.argc == 2
        assert vm.registry.identmap[inst.index].name == "strstr"

    def test_missing_command_args_get_defaults(self, vm):
        program = vm.compiler.compile("strstr abc")
        inst = decode(program.code[-2])
        assert inst.argc == 2

    def test_variadic_command(self, vm):
        assert Opcode.COMC in ops(vm.compiler.compile("echo a b c"))
        assert Opcode.COMV in ops(vm.compiler.compile("concat a b c"))

    def test_unknown_word_is_dynamic_call(self, vm):
        assert ops(vm.compiler.compile("nosuch 1 2")) == [
            Opcode.VAL,
            Opcode.VAL,
            Opcode.VAL,
            Opcode.CALLU,
            Opcode.EXIT,
        ]

    def test_number_statement_is_result(self, vm):
        assert ops(vm.compiler.compile("42")) == [Opcode.VALI, Opcode.RESULT, Opcode.EXIT]

    def test_known_alias_is_direct_call(self, vm):
        vm.registry.declare_alias("greet", "echo hi")
        assert Opcode.CALL in ops(vm.compiler.compile("greet"))

    def test_parenthesised_argument_is_nested_run(self, vm):
        assert ops(vm.compiler.compile("result (+ 1 2)"))[0] == Opcode.ENTER

    def test_comments_are_skipped(self, vm):
        assert ops(vm.compiler.compile("// nothing here\n")) == [Opcode.EXIT]


class TestBlocks:
    def test_literal_block_is_pooled_program(self, vm):
        program = vm.compiler.compile("do [echo hi]")
        assert opcode_of(program.code[0]) == Opcode.BLOCK
        nested = decode(program.code[0], program).constant
        assert Opcode.COMC in ops(nested)

    def test_empty_block(self, vm):
        assert opcode_of(vm.compiler.compile("do []").code[0]) == Opcode.EMPTY

    def test_substitution_concatenates(self, vm):
        program = vm.compiler.compile("x = [a @y b]")
        assert Opcode.CONCM in ops(program)

    def test_nested_substitution_left_alone(self, vm):
        program = vm.compiler.compile("x = [a [@y] b]")
        assert Opcode.CONCM not in ops(program)


class TestInlining:
    def test_if_with_literal_blocks_uses_jumps(self, vm):
        found = ops(vm.compiler.compile("if 1 [echo a] [echo b]"))
        assert Opcode.JUMP_FALSE in found
        assert Opcode.JUMP in found
        assert Opcode.COM not in found

    def test_if_with_dynamic_branch_calls_command(self, vm):
        found = ops(vm.compiler.compile("if 1 $body"))
        assert Opcode.JUMP_FALSE not in found
        assert Opcode.COM in found

    def test_and_with_blocks_short_circuits(self, vm):
        found = ops(vm.compiler.compile("&& [a] [b] [c]"))
        assert found.count(Opcode.JUMP_RESULT_FALSE) == 2
        assert found.count(Opcode.DO) == 3

    def test_or_with_no_args(self, vm):
        assert ops(vm.compiler.compile("||")) == [Opcode.FALSE, Opcode.EXIT]


class TestCache:
    def test_same_text_reuses_program(self, vm):
        assert vm.compiler.compile("echo hi") is vm.compiler.compile("echo hi")

    def test_cache_is_bounded(self, vm):
        compiler = Compiler(vm.registry, cache_size=2)
        first = compiler.compile("a")
        compiler.compile("b")
        compiler.compile("c")
        assert compiler.compile("a") is not first

    def test_clear_cache(self, vm):
        first = vm.compiler.compile("echo hi")
        vm.compiler.clear_cache()
        assert vm.compiler.compile("echo hi") is not first


class TestErrors:
    def test_unterminated_block(self, vm):
        with pytest.raises(CompileError, match='missing "]"'):
            vm.compiler.compile("echo [abc")

    def test_unterminated_paren(self, vm):
        with pytest.raises(CompileError, match='missing "\\)"'):
            vm.compiler.compile("echo (abc")

    def test_unterminated_string(self, vm):
        with pytest.raises(CompileError, match="missing"):
            vm.compiler.compile('echo "abc')

    def test_error_carries_name_and_line(self, vm):
        with pytest.raises(CompileError) as info:
            vm.compiler.compile("echo ok\necho [x", "script.cfg")
        assert info.value.line == 2
        assert str(info.value).startswith("script.cfg:2:")

    def test_unexpected_closer_is_a_warning(self, vm, console):
        vm.compiler.compile("echo a ]")
        assert any('unexpected "]"' in m for m in console.errors())

    def test_module_level_helper(self, vm):
        assert ops(compile_source(vm.registry, "x = 1"))[-1] == Opcode.EXIT
