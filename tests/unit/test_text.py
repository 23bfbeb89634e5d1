"""Tests for escaping, block validation and list parsing."""

from cubescript.config import escape_id, escape_string, unescape_string, validate_block
from cubescript.text import (
    explode_list,
    list_elements,
    list_len,
    strip_colors,
    word_end,
)


class TestEscaping:
    def test_escape_special_characters(self):
        assert escape_string('a"b\nc^') == '"a^"b^nc^^"'

    def test_escape_tab_and_formfeed(self):
        assert escape_string("\t\f") == '"^t^f"'

    def test_round_trip(self):
        text = 'say "hi"\n\tthen ^ leave'
        assert unescape_string(escape_string(text)) == text

    def test_unescape_without_quotes(self):
        assert unescape_string("a^nb") == "a\nb"

    def test_unknown_escape_keeps_character(self):
        assert unescape_string('"^q"') == "q"

    def test_escape_id_plain(self):
        assert escape_id("plain") == "plain"

    def test_escape_id_with_space(self):
        assert escape_id("has space") == '"has space"'


class TestValidateBlock:
    def test_balanced(self):
        assert validate_block("echo [a (b)]")

    def test_unbalanced_close(self):
        assert not validate_block("a ] b")

    def test_unclosed(self):
        assert not validate_block("[a")

    def test_comment_rejected(self):
        assert not validate_block("x // note")

    def test_substitution_rejected(self):
        assert not validate_block("echo @x")

    def test_quoted_bracket_allowed(self):
        assert validate_block('echo "]"')


class TestWordEnd:
    def test_stops_at_space(self):
        assert word_end("abc def", 0) == 3

    def test_balanced_brackets_inside_word(self):
        assert word_end("a[bc]d e", 0) == 6

    def test_space_ends_word_inside_brackets(self):
        assert word_end("a[b c]", 0) == 3

    def test_stops_at_comment(self):
        assert word_end("ab//c", 0) == 2


class TestLists:
    def test_plain_words(self):
        assert explode_list("a b  c") == ["a", "b", "c"]

    def test_brackets_and_quotes(self):
        assert explode_list('a [b c] "d e"') == ["a", "b c", "d e"]

    def test_quoted_element_is_unescaped(self):
        assert explode_list('"x^ny"') == ["x\ny"]

    def test_len(self):
        assert list_len("a (b c) d") == 3
        assert list_len("") == 0

    def test_comments_skipped(self):
        assert explode_list("a // b\nc") == ["a", "c"]

    def test_raw_keeps_delimiters(self):
        text = 'x "y z"'
        raws = [e.raw(text) for e in list_elements(text)]
        assert raws == ["x", '"y z"']


class TestStripColors:
    def test_removes_color_codes(self):
        assert strip_colors("\f3red\f7 text") == "red text"
