"""Yarn package identities: idents, descriptors and locators.

    ident       @types/node                 a package name, optionally scoped
    descriptor  @types/node@npm:^18.0.0     an ident plus an unresolved range
    locator     @types/node@npm:18.11.9     an ident plus a resolved reference

Two kinds of locator wrap another locator inside their reference:

    virtual  react-dom@virtual:4e5f...#npm:18.2.0
             the same package in one particular peer-dependency context.
             Devirtualizing drops the context: react-dom@npm:18.2.0

    patch    resolve@patch:resolve@npm%3A1.22.1#~builtin<compat/resolve>::version=1.22.1
             a source package plus patch files. Delinking recovers the
             unpatched source: resolve@npm:1.22.1

``classify()`` turns a locator into one of ``Plain``, ``Virtual`` or
``Patched`` so callers never sniff reference prefixes themselves.

Hashes and slugs replicate Yarn's structUtils byte for byte, because cache
archive names and unplugged folder names are built from them.

See: yarnpkg/berry packages/yarnpkg-core/sources/structUtils.ts
"""

from __future__ import annotations

import hashlib
import re
from dataclasses import dataclass
from typing import Union
from urllib.parse import parse_qsl, unquote

VIRTUAL_PROTOCOL = "virtual:"
PATCH_PROTOCOL = "patch:"

_IDENT = re.compile(r"^(?:@([^/]+?)/)?([^@/]+)$")
_WITH_RANGE = re.compile(r"^(?:@([^/]+?)/)?([^@/]+?)(?:@(.+))$")
_RANGE = re.compile(r"^([^#:]*:)?((?:(?!::)[^#])*)(?:#((?:(?!::).)*))?(?:::(.*))?$")

_NUM = r"0|[1-9]\d*"
_PRE_ID = rf"(?:{_NUM}|\d*[A-Za-z-][0-9A-Za-z-]*)"
_SEMVER = re.compile(
    rf"^v?({_NUM})\.({_NUM})\.({_NUM})"
    rf"(?:-({_PRE_ID}(?:\.{_PRE_ID})*))?"
    r"(?:\+[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*)?$"
)

SLUG_HASH_LENGTH = 10


def make_hash(*parts: str | None) -> str:
    """Yarn's hashUtils.makeHash for string arguments: sha512 hex of the
    concatenation, with None parts skipped."""
    return hashlib.sha512("".join(p for p in parts if p).encode()).hexdigest()


def semver_valid(version: str) -> str | None:
    """Normalized version if ``version`` is a strict semver, else None.

    Mirrors ``semver.valid``: surrounding whitespace and a leading "v" are
    accepted, build metadata is dropped.
    """
    m = _SEMVER.match(version.strip())
    if m is None:
        return None
    major, minor, patch, pre = m.groups()
    return f"{major}.{minor}.{patch}" + (f"-{pre}" if pre else "")


@dataclass(frozen=True)
class Range:
    protocol: str | None
    source: str | None
    selector: str
    params: tuple[tuple[str, str], ...] = ()


def parse_range(range_: str) -> Range:
    """Split a range or reference into protocol, source, selector and params.

        npm:^1.0.0                → ("npm:", None, "^1.0.0")
        virtual:abc#npm:1.0.0     → ("virtual:", "abc", "npm:1.0.0")
        patch:x@npm%3A1#a.patch::version=1
                                  → ("patch:", "x@npm:1", "a.patch", [("version", "1")])
    """
    m = _RANGE.match(range_)
    if m is None:
        raise ValueError(f"invalid range: {range_!r}")
    protocol, head, tail, query = m.groups()
    if tail is not None:
        source, selector = unquote(head), unquote(tail)
    else:
        source, selector = None, unquote(head)
    params = tuple(parse_qsl(query, keep_blank_values=True)) if query else ()
    return Range(protocol, source, selector, params)


@dataclass(frozen=True)
class Ident:
    scope: str | None
    name: str

    def __str__(self) -> str:
        return f"@{self.scope}/{self.name}" if self.scope else self.name

    @property
    def ident_hash(self) -> str:
        return make_hash(self.scope, self.name)

    @property
    def slug(self) -> str:
        return f"@{self.scope}-{self.name}" if self.scope else self.name

    @property
    def vendor_path(self) -> str:
        """Where the package sits inside a node_modules tree."""
        return f"node_modules/{self}"


@dataclass(frozen=True)
class Descriptor:
    ident: Ident
    range: str

    def __str__(self) -> str:
        return f"{self.ident}@{self.range}"


@dataclass(frozen=True)
class Locator:
    ident: Ident
    reference: str

    def __str__(self) -> str:
        return f"{self.ident}@{self.reference}"

    @property
    def name(self) -> str:
        return self.ident.name

    @property
    def scope(self) -> str | None:
        return self.ident.scope

    @property
    def locator_hash(self) -> str:
        return make_hash(self.ident.ident_hash, self.reference)

    @property
    def slug(self) -> str:
        """Yarn's slugifyLocator, used for cache and unplugged folder names."""
        r = parse_range(self.reference)
        protocol = r.protocol[:-1] if r.protocol else "exotic"
        version = semver_valid(r.selector)
        human = f"{protocol}-{version}" if version is not None else protocol
        return f"{self.ident.slug}-{human}-{self.locator_hash[:SLUG_HASH_LENGTH]}"


def parse_ident(s: str) -> Ident:
    m = _IDENT.match(s)
    if m is None:
        raise ValueError(f"invalid ident: {s!r}")
    return Ident(m.group(1), m.group(2))


def parse_descriptor(s: str) -> Descriptor:
    m = _WITH_RANGE.match(s)
    if m is None:
        raise ValueError(f"invalid descriptor: {s!r}")
    return Descriptor(Ident(m.group(1), m.group(2)), m.group(3))


def parse_locator(s: str) -> Locator:
    m = _WITH_RANGE.match(s)
    if m is None:
        raise ValueError(f"invalid locator: {s!r}")
    return Locator(Ident(m.group(1), m.group(2)), m.group(3))


# --- Locator kinds ---

@dataclass(frozen=True)
class Plain:
    locator: Locator


@dataclass(frozen=True)
class Virtual:
    locator: Locator
    underlying: Locator
    context: str


@dataclass(frozen=True)
class Patched:
    locator: Locator
    source: Locator
    patches: tuple[str, ...]
    params: tuple[tuple[str, str], ...] = ()


LocatorKind = Union[Plain, Virtual, Patched]


def classify(locator: Locator) -> LocatorKind:
    """Tell plain, virtual and patch locators apart.

    A virtual locator around a patch locator classifies as Virtual; the
    patch shows up once the underlying locator is classified in turn.
    """
    ref = locator.reference
    if ref.startswith(VIRTUAL_PROTOCOL):
        hash_end = ref.find("#")
        if hash_end == -1:
            raise ValueError(f"virtual locator without inner reference: {locator}")
        context = ref[len(VIRTUAL_PROTOCOL):hash_end]
        return Virtual(locator, Locator(locator.ident, ref[hash_end + 1:]), context)
    if ref.startswith(PATCH_PROTOCOL):
        r = parse_range(ref)
        if r.source is None:
            raise ValueError(f"patch locator without source: {locator}")
        patches = tuple(p for p in r.selector.split("&") if p)
        return Patched(locator, parse_locator(r.source), patches, r.params)
    return Plain(locator)


def devirtualize(locator: Locator) -> Locator:
    """The locator itself, or what it wraps if it is virtual."""
    kind = classify(locator)
    return kind.underlying if isinstance(kind, Virtual) else locator


def upper_camelize(name: str) -> str:
    """``native-lib`` → ``NativeLib``, used to name per-package override args."""
    return "".join(w[:1].upper() + w[1:] for w in re.split(r"[^A-Za-z0-9]+", name) if w)
