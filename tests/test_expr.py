"""Tests for Nix literal rendering."""

import pytest

from nixstore import expr


class TestString:
    def test_plain(self):
        assert expr.string("hello") == '"hello"'

    def test_escapes(self):
        assert expr.string('a"b\\c') == '"a\\"b\\\\c"'
        assert expr.string("line\nnext\ttab") == '"line\\nnext\\ttab"'

    def test_interpolation_is_escaped(self):
        assert expr.string("${x}") == '"\\${x}"'

    def test_lone_dollar_untouched(self):
        assert expr.string("$HOME") == '"$HOME"'


class TestAttrName:
    def test_identifier(self):
        assert expr.attr_name("cacheEntries") == "cacheEntries"
        assert expr.attr_name("with-dash'") == "with-dash'"

    def test_locator_is_quoted(self):
        assert expr.attr_name("left-pad@npm:1.3.0") == '"left-pad@npm:1.3.0"'

    def test_keyword_is_quoted(self):
        assert expr.attr_name("inherit") == '"inherit"'

    def test_leading_digit_is_quoted(self):
        assert expr.attr_name("1abc") == '"1abc"'


class TestPath:
    @pytest.mark.parametrize("p, out", [
        (".yarn/releases/yarn.cjs", "./.yarn/releases/yarn.cjs"),
        ("./yarn.lock", "./yarn.lock"),
        ("../yarn.lock", "../yarn.lock"),
        ("/abs/yarn.cjs", "/abs/yarn.cjs"),
        ("sub/dir/", "./sub/dir"),
        ("", "/."),
        ("/", "/."),
        (".", "./."),
        ("./", "./."),
        ("..", "../."),
    ])
    def test_literals(self, p, out):
        assert expr.path(p) == out

    def test_unusual_characters_fall_back_to_concatenation(self):
        assert expr.path("my dir/yarn.lock") == '(./. + "/my dir/yarn.lock")'
        assert expr.path("/my dir/x") == '(/. + "/my dir/x")'


class TestValue:
    def test_scalars(self):
        assert expr.value(True) == "true"
        assert expr.value(False) == "false"
        assert expr.value(3) == "3"
        assert expr.value("s") == '"s"'

    def test_lists(self):
        assert expr.value([]) == "[ ]"
        assert expr.value(["a", 1]) == '[ "a" 1 ]'

    def test_attrset_sorted(self):
        assert expr.attrset({"b": 1, "a": "x"}) == '{ a = "x"; b = 1; }'
        assert expr.attrset({}) == "{ }"

    def test_unsupported_type(self):
        with pytest.raises(TypeError):
            expr.value(1.5)


def test_indented_string_text():
    assert expr.indented_string_text("a''b") == 'a${"\'\'"}b'
    assert expr.indented_string_text("${x}") == '${"\\${"}x}'
    assert expr.indented_string_text("plain $x") == "plain $x"
