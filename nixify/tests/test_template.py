"""Tests for the template node tree."""

import pytest

from nixify import template
from nixify.template import Cond, Text, Var, parse, render, variables


def test_parse_text_and_vars():
    assert parse("a @@X@@ b\n") == (Text("a "), Var("X"), Text(" b\n"))


def test_var_at_line_start_keeps_indent():
    nodes = parse("  @@X@@\n")
    assert nodes == (Text("  "), Var("X", "  "), Text("\n"))


def test_conditional_block():
    nodes = parse("a\n#@@ IF ON\nb\n#@@ ENDIF\nc\n")
    assert nodes == (Text("a\n"), Cond("ON", (Text("b\n"),)), Text("c\n"))


def test_nested_blocks():
    nodes = parse("#@@ IF A\n#@@ IF B\nx\n#@@ ENDIF\n#@@ ENDIF\n")
    assert nodes == (Cond("A", (Cond("B", (Text("x\n"),)),)),)


@pytest.mark.parametrize("text", ["#@@ ENDIF\n", "#@@ IF A\nx\n"])
def test_unbalanced(text):
    with pytest.raises(ValueError):
        parse(text)


def test_variables():
    nodes = parse("@@A@@\n#@@ IF B\n@@C@@\n#@@ ENDIF\n")
    assert variables(nodes) == {"A", "B", "C"}


class TestRender:
    def test_substitution(self):
        assert render(parse("x = @@X@@;\n"), {"X": "1"}) == "x = 1;\n"

    def test_multiline_value_reindented(self):
        out = render(parse("{\n  @@BODY@@\n}\n"), {"BODY": "a = 1;\nb = {\n  c = 2;\n};"})
        assert out == "{\n  a = 1;\n  b = {\n    c = 2;\n  };\n}\n"

    def test_blank_lines_not_indented(self):
        assert render(parse("  @@X@@\n"), {"X": "a\n\nb"}) == "  a\n\n  b\n"

    def test_mid_line_var_not_reindented(self):
        assert render(parse("x = @@X@@\n"), {"X": "a\nb"}) == "x = a\nb\n"

    def test_condition_false_drops_block_and_directives(self):
        text = "a\n#@@ IF ON\nb @@X@@\n#@@ ENDIF\nc\n"
        assert render(parse(text), {"ON": False}) == "a\nc\n"
        assert render(parse(text), {"ON": True, "X": "!"}) == "a\nb !\nc\n"

    def test_missing_value(self):
        with pytest.raises(KeyError):
            render(parse("@@X@@"), {})

    def test_missing_condition(self):
        with pytest.raises(KeyError):
            render(parse("#@@ IF ON\nx\n#@@ ENDIF\n"), {})


def test_bundled_templates():
    assert variables(template.load("yarn-project.nix.in")) == {
        "YARN_PATH", "LOCKFILE", "CACHE_FOLDER", "PROJECT_NAME", "CACHE_ENTRIES",
        "ISOLATED", "NEED_ISOLATED_BUILD_SUPPORT", "ISOLATED_INTEGRATION",
    }
    assert variables(template.load("default.nix.in")) == {"PROJECT_EXPR"}
