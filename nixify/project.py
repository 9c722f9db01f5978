"""The resolved project graph, as handed over by the package manager.

A ``Project`` is an arena of ``ResolvedPackage`` nodes keyed by locator
string, plus the descriptor→locator table the resolver produced. Nodes
refer to each other only through those strings, and every hop goes through
one of the lookups below, which raise a ``GraphConsistencyError`` subclass
instead of returning None:

    project.package(locator)        locator string → node
    project.resolve(descriptor)     dependency edge → node
    project.devirtualize(pkg)       virtual node → its plain node
    project.delink(pkg)             patch node → its unpatched source node

Two loaders build a Project from disk:

    Project.from_snapshot(path)   JSON written by the Yarn integration after
                                  an install, including virtual packages and
                                  the install plan
    Project.from_lockfile(path)   yarn.lock (Berry format, which is YAML);
                                  no virtual packages, and every hard-linked
                                  package counts as installed
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from nixify.errors import (
    DescriptorNotFoundError,
    LocatorNotFoundError,
    ProjectLoadError,
)
from nixify.locator import (
    Ident,
    Locator,
    Patched,
    Virtual,
    classify,
    parse_ident,
    parse_locator,
    parse_range,
)

DEFAULT_PROJECT_NAME = "workspace"
TOP_LEVEL_WORKSPACE = "workspace:."


@dataclass(frozen=True)
class ResolvedPackage:
    locator: Locator
    version: str | None = None
    dependencies: tuple[str, ...] = ()  # descriptor strings
    bin: tuple[tuple[str, str], ...] = ()  # (command, script path), sorted
    link_type: str = "hard"

    @property
    def key(self) -> str:
        return str(self.locator)

    @property
    def ident(self) -> Ident:
        return self.locator.ident

    @property
    def name(self) -> str:
        return self.locator.name

    @property
    def reference(self) -> str:
        return self.locator.reference


@dataclass(frozen=True)
class Project:
    cwd: Path
    packages: dict[str, ResolvedPackage]
    resolutions: dict[str, str]
    checksums: dict[str, str] = field(default_factory=dict)
    build_state: tuple[str, ...] = ()  # install plan, in install order
    name: str | None = None
    cache_key: str | None = None

    @property
    def display_name(self) -> str:
        return self.name or DEFAULT_PROJECT_NAME

    def package(self, locator: str, wanted_by: str | None = None) -> ResolvedPackage:
        try:
            return self.packages[locator]
        except KeyError:
            raise LocatorNotFoundError(locator, wanted_by) from None

    def resolve(self, descriptor: str, wanted_by: str | None = None) -> ResolvedPackage:
        try:
            locator = self.resolutions[descriptor]
        except KeyError:
            raise DescriptorNotFoundError(descriptor, wanted_by) from None
        return self.package(locator, wanted_by)

    def devirtualize(self, pkg: ResolvedPackage) -> ResolvedPackage:
        kind = classify(pkg.locator)
        if not isinstance(kind, Virtual):
            return pkg
        return self.package(str(kind.underlying), pkg.key)

    def delink(self, pkg: ResolvedPackage) -> ResolvedPackage | None:
        """The unpatched source of a patch package, None for other kinds."""
        kind = classify(pkg.locator)
        if not isinstance(kind, Patched):
            return None
        return self.package(str(kind.source), pkg.key)

    def checksum(self, pkg: ResolvedPackage) -> str | None:
        return self.checksums.get(pkg.key)

    # --- Loaders ---

    @classmethod
    def from_snapshot(cls, path: str | Path, cwd: str | Path | None = None) -> Project:
        path = Path(path)
        try:
            data = json.loads(path.read_text())
        except (OSError, ValueError) as e:
            raise ProjectLoadError(f"cannot read project snapshot {path}: {e}") from e

        packages: dict[str, ResolvedPackage] = {}
        checksums: dict[str, str] = {}
        try:
            for entry in data["packages"]:
                pkg = ResolvedPackage(
                    locator=parse_locator(entry["locator"]),
                    version=entry.get("version"),
                    dependencies=tuple(entry.get("dependencies", ())),
                    bin=tuple(sorted((entry.get("bin") or {}).items())),
                    link_type=entry.get("linkType", "hard").lower(),
                )
                # malformed virtual and patch references fail here, not mid-walk
                classify(pkg.locator)
                packages[pkg.key] = pkg
                if entry.get("checksum"):
                    checksums[pkg.key] = entry["checksum"]
            resolutions = dict(data["resolutions"])
        except (KeyError, TypeError, ValueError) as e:
            raise ProjectLoadError(f"malformed project snapshot {path}: {e}") from e

        return cls(
            cwd=Path(cwd) if cwd is not None else path.parent,
            packages=packages,
            resolutions=resolutions,
            checksums=checksums,
            build_state=tuple(data.get("buildState", ())),
            name=data.get("name"),
            cache_key=_opt_str(data.get("cacheKey")),
        )

    @classmethod
    def from_lockfile(cls, path: str | Path, cwd: str | Path | None = None) -> Project:
        path = Path(path)
        try:
            data = yaml.safe_load(path.read_text())
        except (OSError, yaml.YAMLError) as e:
            raise ProjectLoadError(f"cannot read lockfile {path}: {e}") from e
        if not isinstance(data, dict) or "__metadata" not in data:
            raise ProjectLoadError(f"{path} is not a Yarn 2+ lockfile")

        metadata = data.pop("__metadata") or {}
        resolutions: dict[str, str] = {}
        entries: dict[str, dict] = {}
        try:
            for keys, entry in data.items():
                locator = entry["resolution"]
                entries[locator] = entry
                for descriptor in str(keys).split(","):
                    resolutions[descriptor.strip()] = locator

            packages: dict[str, ResolvedPackage] = {}
            checksums: dict[str, str] = {}
            name = None
            for locator, entry in entries.items():
                deps = tuple(
                    _lockfile_descriptor(dep_name, str(dep_range), resolutions)
                    for dep_name, dep_range in (entry.get("dependencies") or {}).items()
                )
                pkg = ResolvedPackage(
                    locator=parse_locator(locator),
                    version=_opt_str(entry.get("version")),
                    dependencies=deps,
                    bin=tuple(sorted((entry.get("bin") or {}).items())),
                    link_type=str(entry.get("linkType", "hard")).lower(),
                )
                # malformed virtual and patch references fail here, not mid-walk
                classify(pkg.locator)
                packages[pkg.key] = pkg
                if entry.get("checksum"):
                    checksums[pkg.key] = str(entry["checksum"])
                if pkg.reference == TOP_LEVEL_WORKSPACE:
                    name = str(pkg.ident)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise ProjectLoadError(f"malformed lockfile {path}: {e}") from e

        build_state = tuple(sorted(k for k, p in packages.items() if p.link_type == "hard"))
        return cls(
            cwd=Path(cwd) if cwd is not None else path.parent,
            packages=packages,
            resolutions=resolutions,
            checksums=checksums,
            build_state=build_state,
            name=name,
            cache_key=_opt_str(metadata.get("cacheKey")),
        )


def _opt_str(v) -> str | None:
    return None if v is None else str(v)


def _lockfile_descriptor(name: str, range_: str, resolutions: dict[str, str]) -> str:
    """Descriptor string for a lockfile dependency entry.

    Yarn writes dependency ranges without the default ``npm:`` protocol
    while the entry keys always carry it, so a bare range is tried both ways.
    """
    parse_ident(name)
    descriptor = f"{name}@{range_}"
    if descriptor in resolutions or parse_range(range_).protocol is not None:
        return descriptor
    return f"{name}@npm:{range_}"
