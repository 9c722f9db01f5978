"""Choose isolated builds and where their outputs get injected.

An isolated build compiles one package (usually one with a slow native
build step) in its own derivation, so Nix caches it independently of the
rest of the project. During the main install its output is copied into the
package's unplugged folder before ``yarn install`` runs, and Yarn sees an
already-built package.

Peer dependencies make Yarn install the same package several times, once
per peer context, each under its own virtual locator and unplugged folder.
The isolated build has no peer context, so it is keyed by the devirtualized
locator: one build per package, one injection per occurrence.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass

from nixify.cache_index import CacheEntry
from nixify.closure import sorted_closure
from nixify.config import NixifyConfig
from nixify.errors import UnsupportedConfigurationError
from nixify.locator import upper_camelize
from nixify.project import Project, ResolvedPackage

logger = logging.getLogger(__name__)

SUPPORTED_LINKER = "pnp"


@dataclass(frozen=True)
class IsolatedBuildTarget:
    locator: str  # devirtualized
    ident: str
    version: str | None
    reference: str
    locators: tuple[str, ...]  # sorted closure

    @property
    def pname(self) -> str:
        """Derivation pname; Nix names cannot hold "@" or "/"."""
        return self.ident.lstrip("@").replace("/", "-")

    @property
    def override_arg(self) -> str:
        """Argument users pass to the generated function to tweak this build."""
        return f"override{upper_camelize(self.ident.rsplit('/', 1)[-1])}Attrs"


@dataclass(frozen=True)
class InjectionStep:
    locator: str  # the occurrence, possibly virtual
    target: str  # IsolatedBuildTarget.locator
    ident: str
    location: str  # relative to the project root


@dataclass(frozen=True)
class IsolationPlan:
    targets: tuple[IsolatedBuildTarget, ...] = ()
    steps: tuple[InjectionStep, ...] = ()

    @property
    def needs_injection(self) -> bool:
        return bool(self.steps)


def install_location(pkg: ResolvedPackage, config: NixifyConfig) -> str:
    """Unplugged folder of a package under the pnp linker, relative to the root."""
    path = config.unplugged_folder / pkg.locator.slug / pkg.ident.vendor_path
    return os.path.relpath(path, config.project_cwd).replace(os.sep, "/")


def plan_isolated_builds(
    project: Project,
    entries: Mapping[str, CacheEntry],
    config: NixifyConfig,
) -> IsolationPlan:
    """Plan isolated builds for installed packages on the allow-list.

    Only packages in the install plan are considered; a package that was
    never installed has no folder to inject into. An allow-list entry
    matches the bare package name (``sharp`` matches ``@img/sharp``) or
    the full ident.

    Raises:
        UnsupportedConfigurationError: a package matched while the linker
            is not pnp, so there is no stable install location.
        GraphConsistencyError: an installed package or its closure is
            missing from the resolved set.
    """
    allowed = set(config.isolated_nix_builds)
    if not allowed:
        return IsolationPlan()

    targets: dict[str, IsolatedBuildTarget] = {}
    steps: list[InjectionStep] = []
    for key in project.build_state:
        pkg = project.package(key)
        if pkg.name not in allowed and str(pkg.ident) not in allowed:
            continue

        if config.node_linker != SUPPORTED_LINKER:
            raise UnsupportedConfigurationError(
                f"the nodeLinker {config.node_linker!r} is not supported for "
                f"isolated Nix builds (only {SUPPORTED_LINKER!r} is)"
            )

        location = install_location(pkg, config)
        build_pkg = project.devirtualize(pkg)
        if build_pkg.key not in targets:
            targets[build_pkg.key] = IsolatedBuildTarget(
                locator=build_pkg.key,
                ident=str(build_pkg.ident),
                version=build_pkg.version,
                reference=build_pkg.reference,
                locators=tuple(sorted_closure(project, pkg, entries)),
            )
            logger.debug("isolated build for %s (%d cache entries)",
                         build_pkg.key, len(targets[build_pkg.key].locators))
        steps.append(InjectionStep(pkg.key, build_pkg.key, str(pkg.ident), location))

    return IsolationPlan(tuple(targets.values()), tuple(steps))
