"""Offline closure of a package: which cache entries its install needs.

Reaching a package's full set of archives means following three kinds of
edge, not just dependencies:

    dependency   descriptor → resolved package, via project.resolve()
    virtual      virtual package → the plain package it wraps
    patch        patch package → the unpatched source it applies to

The virtual wrapper and the patch package may have no archive of their
own, but Yarn still needs the archive of the package underneath, and that
package's dependencies, to install them.

The walk uses an explicit stack and a seen-set of locator strings, so
cycles and diamonds terminate and deep graphs do not hit the recursion
limit.
"""

from __future__ import annotations

from collections.abc import Mapping

from nixify.cache_index import CacheEntry
from nixify.project import Project, ResolvedPackage


def successors(project: Project, pkg: ResolvedPackage) -> list[ResolvedPackage]:
    """Packages one edge away from pkg, in edge order."""
    out = []
    devirt = project.devirtualize(pkg)
    if devirt is not pkg:
        out.append(devirt)
    source = project.delink(pkg)
    if source is not None:
        out.append(source)
    for descriptor in pkg.dependencies:
        out.append(project.resolve(descriptor, pkg.key))
    return out


def collect_closure(
    project: Project,
    root: ResolvedPackage,
    entries: Mapping[str, CacheEntry],
) -> set[str]:
    """Cache-entry keys reachable from root, root included when cached.

    Raises the project's GraphConsistencyError subclasses on a dangling
    edge; a partial closure would make the isolated build fail offline.
    """
    seen: set[str] = set()
    found: set[str] = set()
    stack = [root]
    while stack:
        pkg = stack.pop()
        if pkg.key in seen:
            continue
        seen.add(pkg.key)
        if pkg.key in entries:
            found.add(pkg.key)
        stack.extend(successors(project, pkg))
    return found


def sorted_closure(
    project: Project,
    root: ResolvedPackage,
    entries: Mapping[str, CacheEntry],
) -> list[str]:
    """collect_closure() in the lexicographic order used in generated output."""
    return sorted(collect_closure(project, root, entries))
