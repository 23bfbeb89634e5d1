"""Tests for the composable API functions in cubescript.api and cubescript.run."""

from cubescript.api import (
    compile_source,
    dump_bytecode,
    evaluate,
    ident_names,
    opcode_stats,
    to_python,
)
from cubescript.bytecode import Program
from cubescript.run import create_vm, run
from cubescript.values import Value


class TestEvaluate:
    def test_integer_result(self):
        assert evaluate("+ 40 2") == 42

    def test_float_result(self):
        assert evaluate("result 1.5") == 1.5

    def test_string_result(self):
        assert evaluate("concat a b") == "a b"

    def test_compile_error_is_none(self):
        assert evaluate("echo [") is None

    def test_shares_vm_state(self, vm):
        evaluate("x = 5", vm)
        assert evaluate("result $x", vm) == "5"

    def test_to_python_null(self):
        assert to_python(Value()) is None


class TestRun:
    def test_collects_statistics(self):
        result = run("f = [+ 1 2]; f")
        assert result.ok
        assert result.value.get_int() == 3
        assert result.code_words > 0
        assert result.stats.alias_calls == 1
        assert result.source_lines == 1

    def test_report(self):
        report = run("+ 1 2").report()
        assert "Run Statistics" in report
        assert "Compile" in report
        assert "'3' (ok)" in report

    def test_compile_error(self, vm):
        result = run("echo [", vm=vm)
        assert not result.ok
        assert result.code_words == 0


class TestCompileHelpers:
    def test_compile_source(self):
        assert isinstance(compile_source("echo hi"), Program)

    def test_dump_bytecode(self):
        listing = dump_bytecode("echo hi")
        assert "comc" in listing
        assert listing.splitlines()[-1].strip().endswith("exit")

    def test_dump_nested_block(self):
        listing = dump_bytecode("do [echo hi]")
        assert "<block" in listing

    def test_opcode_stats_include_nested_blocks(self):
        stats = opcode_stats("do [echo hi]")
        assert stats["EXIT"] == 2
        assert stats["COMC"] == 1

    def test_ident_names_sorted(self):
        names = ident_names(create_vm().registry)
        assert names == sorted(names)
        assert "echo" in names
