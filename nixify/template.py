"""Templates as a small node tree instead of string replacement.

Template files (``nixify/tmpl/*.in``) use two constructs:

    @@NAME@@                  a variable, replaced by a string value
    #@@ IF NAME               on its own line: start of a block kept only
    ...                       when the value of NAME is truthy
    #@@ ENDIF

``parse()`` turns a template into a tuple of ``Text``, ``Var`` and ``Cond``
nodes; ``render()`` is the only serializer. A variable that starts a line
(after indentation) carries that indentation, and multi-line values are
re-indented to it, so callers hand in unindented text.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Union

_TMPL = Path(__file__).parent / "tmpl"

_DIRECTIVE = re.compile(r"^[ \t]*#@@ (?:IF (\w+)|(ENDIF))[ \t]*$")
_VAR = re.compile(r"@@(\w+)@@")


@dataclass(frozen=True)
class Text:
    text: str


@dataclass(frozen=True)
class Var:
    name: str
    indent: str = ""


@dataclass(frozen=True)
class Cond:
    name: str
    body: tuple[Node, ...]


Node = Union[Text, Var, Cond]


def _append_text(out: list[Node], text: str) -> None:
    if not text:
        return
    if out and isinstance(out[-1], Text):
        out[-1] = Text(out[-1].text + text)
    else:
        out.append(Text(text))


def _parse_line(line: str, out: list[Node]) -> None:
    pos = 0
    for m in _VAR.finditer(line):
        _append_text(out, line[pos:m.start()])
        prefix = line[:m.start()]
        out.append(Var(m.group(1), prefix if not prefix.strip() else ""))
        pos = m.end()
    _append_text(out, line[pos:])


def parse(text: str) -> tuple[Node, ...]:
    """Parse template text into nodes. Raises ValueError on unbalanced blocks."""
    stack: list[tuple[str | None, list[Node]]] = [(None, [])]
    for lineno, line in enumerate(text.splitlines(keepends=True), 1):
        m = _DIRECTIVE.match(line.rstrip("\r\n"))
        if m is None:
            _parse_line(line, stack[-1][1])
        elif m.group(1):
            stack.append((m.group(1), []))
        else:
            if len(stack) == 1:
                raise ValueError(f"line {lineno}: ENDIF without IF")
            name, body = stack.pop()
            stack[-1][1].append(Cond(name, tuple(body)))
    if len(stack) != 1:
        raise ValueError(f"IF {stack[-1][0]} is never closed")
    return tuple(stack[0][1])


def variables(nodes: tuple[Node, ...]) -> set[str]:
    """Every name a template refers to, in variables and conditions."""
    names: set[str] = set()
    for node in nodes:
        if isinstance(node, Var):
            names.add(node.name)
        elif isinstance(node, Cond):
            names.add(node.name)
            names |= variables(node.body)
    return names


def _reindent(value: str, indent: str) -> str:
    if not indent:
        return value
    lines = value.split("\n")
    return "\n".join([lines[0]] + [indent + line if line else line for line in lines[1:]])


def _render(nodes: tuple[Node, ...], values: Mapping[str, object], parts: list[str]) -> None:
    for node in nodes:
        if isinstance(node, Text):
            parts.append(node.text)
        elif isinstance(node, Var):
            if node.name not in values:
                raise KeyError(f"no value for template variable {node.name}")
            parts.append(_reindent(str(values[node.name]), node.indent))
        else:
            if node.name not in values:
                raise KeyError(f"no value for template condition {node.name}")
            if values[node.name]:
                _render(node.body, values, parts)


def render(nodes: tuple[Node, ...], values: Mapping[str, object]) -> str:
    parts: list[str] = []
    _render(nodes, values, parts)
    return "".join(parts)


@lru_cache(maxsize=None)
def load(name: str) -> tuple[Node, ...]:
    """Parse a bundled template from nixify/tmpl."""
    return parse((_TMPL / name).read_text())
