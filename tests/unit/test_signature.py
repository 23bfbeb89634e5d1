"""Tests for native command signature parsing."""

import pytest

from cubescript.signature import ParamDefault, ParamKind, parse_signature
from cubescript.values import ValueType


class TestParseSignature:
    def test_fixed_parameters(self):
        sig = parse_signature("isf", "cmd")
        assert [p.kind for p in sig.params] == [ParamKind.VALUE] * 3
        assert [p.wordtype for p in sig.params] == [
            ValueType.INTEGER,
            ValueType.CSTRING,
            ValueType.FLOAT,
        ]
        assert str(sig) == "isf"

    def test_empty_signature(self):
        assert parse_signature("", "cmd").params == ()

    def test_defaults(self):
        sig = parse_signature("ibFSer", "cmd")
        assert [p.default for p in sig.params] == [
            ParamDefault.ZERO_INT,
            ParamDefault.INT_MIN,
            ParamDefault.PREVIOUS_FLOAT,
            ParamDefault.PREVIOUS_STR,
            ParamDefault.EMPTY_CODE,
            ParamDefault.DUMMY_IDENT,
        ]

    def test_rest_parameters(self):
        concat = parse_signature("C", "cmd").params[0]
        values = parse_signature("V", "cmd").params[0]
        assert concat.kind == values.kind == ParamKind.REST
        assert concat.concat
        assert not values.concat

    def test_repeat_records_span(self):
        sig = parse_signature("ee2V", "cond")
        assert sig.params[2].kind == ParamKind.REPEAT
        assert sig.params[2].back == 2

    def test_trailing_string_collects_rest(self):
        sig = parse_signature("ss", "cmd")
        assert not sig.params[0].collects_rest
        assert sig.params[1].collects_rest
        assert not parse_signature("si", "cmd").params[0].collects_rest

    def test_special_slots(self):
        kinds = [p.kind for p in parse_signature("$ND", "cmd").params]
        assert kinds == [ParamKind.SELF, ParamKind.COUNT, ParamKind.BIND]

    def test_bind_must_be_last(self):
        with pytest.raises(ValueError, match="D last"):
            parse_signature("Ds", "hold")

    def test_illegal_character_rejected(self):
        with pytest.raises(ValueError, match="illegal type"):
            parse_signature("iq", "bad")

    def test_too_many_fixed_args_rejected(self):
        with pytest.raises(ValueError, match="too many args"):
            parse_signature("i" * 13, "wide")

    def test_repeat_fills_to_arg_limit_when_variadic(self):
        assert len(parse_signature("i1V", "+").params) == 3

    def test_repeat_before_start_rejected(self):
        with pytest.raises(ValueError):
            parse_signature("2i", "bad")

    def test_signature_is_immutable(self):
        sig = parse_signature("i", "cmd")
        with pytest.raises(Exception):
            sig.text = "s"
