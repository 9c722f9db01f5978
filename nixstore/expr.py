"""Rendering of Python values as Nix expression literals.

Everything the generator splices into a Nix file goes through these
helpers, so escaping lives in one place and the output is stable:
attribute sets are always written with their keys sorted.

    string('a"b')            → "a\\"b"
    path(".yarn/cache")      → ./.yarn/cache
    attrset({"b": 1, "a": 2}) → { a = 2; b = 1; }

See: nix/src/libexpr/lexer.l: STR, PATH and ID tokens
"""

import re

_ID = re.compile(r"[A-Za-z_][A-Za-z0-9_'-]*")
_PATH = re.compile(r"[A-Za-z0-9._+\-/]+")
_KEYWORDS = frozenset({
    "assert", "else", "if", "in", "inherit", "let", "or", "rec", "then", "with",
})


def _escape(s: str) -> str:
    return (
        s.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("${", "\\${")
        .replace("\n", "\\n")
        .replace("\r", "\\r")
        .replace("\t", "\\t")
    )


def string(s: str) -> str:
    """A double-quoted Nix string."""
    return f'"{_escape(s)}"'


def attr_name(name: str) -> str:
    """An attribute name, quoted unless it is a plain identifier."""
    if _ID.fullmatch(name) and name not in _KEYWORDS:
        return name
    return string(name)


def path(p: str) -> str:
    """A Nix path literal for a relative or absolute filesystem path.

    Relative paths are anchored at the expression's own directory. Paths
    with characters the lexer does not accept in a path token fall back to
    string concatenation, which Nix still coerces to a path.
    """
    p = p.rstrip("/")
    if p in ("", "/"):
        return "/."
    if p in (".", "./"):
        return "./."
    if p.startswith("/"):
        literal = p
    elif p == "..":
        return "../."
    elif p.startswith("../"):
        literal = p
    else:
        literal = "./" + (p[2:] if p.startswith("./") else p)
    if _PATH.fullmatch(literal):
        return literal
    if literal.startswith("/"):
        return f"(/. + {string(literal)})"
    return f"(./. + {string('/' + literal.removeprefix('./'))})"


def value(v) -> str:
    """Render a str, bool, int, list or dict as a Nix literal."""
    if isinstance(v, bool):
        return "true" if v else "false"
    if isinstance(v, int):
        return str(v)
    if isinstance(v, str):
        return string(v)
    if isinstance(v, (list, tuple)):
        if not v:
            return "[ ]"
        return "[ " + " ".join(value(item) for item in v) + " ]"
    if isinstance(v, dict):
        return attrset(v)
    raise TypeError(f"cannot render {type(v).__name__} as a Nix value")


def attrset(attrs: dict) -> str:
    """A single-line attribute set, keys sorted."""
    if not attrs:
        return "{ }"
    body = " ".join(f"{attr_name(k)} = {value(attrs[k])};" for k in sorted(attrs))
    return "{ " + body + " }"


def indented_string_text(s: str) -> str:
    """Escape text for the body of an indented ('' ... '') string.

    ``''`` and ``${`` are spliced back in as interpolated plain strings,
    which reads unambiguously whatever characters surround them.
    """
    return re.sub(r"''|\$\{", lambda m: "${" + string(m.group(0)) + "}", s)
