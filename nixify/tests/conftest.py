"""Shared builders for in-memory project graphs."""

from pathlib import Path

import pytest

from nixify.cache_index import CacheEntry
from nixify.config import NixifyConfig
from nixify.locator import devirtualize, parse_locator, parse_range, semver_valid
from nixify.project import Project, ResolvedPackage


def make_package(locator, deps=(), *, link_type="hard"):
    loc = parse_locator(locator)
    version = semver_valid(parse_range(devirtualize(loc).reference).selector)
    return ResolvedPackage(loc, version=version, dependencies=tuple(d for d, _ in deps),
                           link_type=link_type)


def make_project(graph, *, cwd="/proj", build_state=None, **kwargs):
    """graph: {locator: [(descriptor, resolved locator), ...]}"""
    packages = {}
    resolutions = {}
    for locator, deps in graph.items():
        pkg = make_package(locator, deps)
        packages[pkg.key] = pkg
        for descriptor, target in deps:
            resolutions[descriptor] = target
    return Project(
        cwd=Path(cwd),
        packages=packages,
        resolutions=resolutions,
        build_state=tuple(graph) if build_state is None else tuple(build_state),
        **kwargs,
    )


def make_entries(*locators):
    return {
        loc: CacheEntry(loc, f"{parse_locator(loc).slug}-8.zip", f"{i:0128x}")
        for i, loc in enumerate(locators, 1)
    }


@pytest.fixture
def config(tmp_path):
    return NixifyConfig.for_project(tmp_path)


LOCKFILE = """\
# This file is generated by running "yarn install" inside your project.
# Manual changes might be lost - proceed with caution!

__metadata:
  version: 8
  cacheKey: 10c0

"left-pad@npm:^1.3.0":
  version: 1.3.0
  resolution: "left-pad@npm:1.3.0"
  checksum: 10c0/%s
  languageName: node
  linkType: hard

"my-app@workspace:.":
  version: 0.0.0-use.local
  resolution: "my-app@workspace:."
  dependencies:
    left-pad: "npm:^1.3.0"
    tiny: "npm:^2.0.0"
  languageName: unknown
  linkType: soft

"tiny@npm:^2.0.0":
  version: 2.0.0
  resolution: "tiny@npm:2.0.0"
  bin:
    tiny: ./cli.js
    tiny-server: ./server.js
  languageName: node
  linkType: hard
""" % ("cd" * 64)


def write_yarn_project(root, rc="yarnPath: .yarn/releases/yarn-4.0.2.cjs\nenableNixPreload: false\n"):
    """A small installed project on disk: lockfile, rc file, Yarn release, cache."""
    (root / ".yarn" / "releases").mkdir(parents=True)
    (root / ".yarn" / "releases" / "yarn-4.0.2.cjs").write_text("// yarn\n")
    (root / ".yarnrc.yml").write_text(rc)
    (root / "yarn.lock").write_text(LOCKFILE)
    cache = root / ".yarn" / "cache"
    cache.mkdir()
    left_pad = parse_locator("left-pad@npm:1.3.0").slug
    tiny = parse_locator("tiny@npm:2.0.0").slug
    (cache / f"{left_pad}-{'cd' * 5}.zip").write_bytes(b"left-pad zip")
    (cache / f"{tiny}-10c0.zip").write_bytes(b"tiny zip")
    return root
