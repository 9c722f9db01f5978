"""Render the project's Nix expression and write it out.

The renderer only formats what the indexer and planner computed. Map
keys are sorted and lists keep the order they were planned in, so the
same inputs always produce the same bytes. That matters because the
generated file is itself a build input.
"""

from __future__ import annotations

import logging
import os
import shlex
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from nixify import template
from nixify.cache_index import CacheEntry
from nixify.config import NixifyConfig
from nixify.errors import UnsupportedConfigurationError
from nixify.isolation import IsolationPlan
from nixify.project import Project
from nixstore import expr

logger = logging.getLogger(__name__)

PROJECT_TEMPLATE = "yarn-project.nix.in"
DEFAULT_TEMPLATE = "default.nix.in"
DEFAULT_EXPR = "default.nix"
FLAKE_EXPR = "flake.nix"


@dataclass(frozen=True)
class ExprPaths:
    yarn_path: str  # relative to the expression's directory, or absolute
    lockfile: str  # relative to the expression's directory
    cache_folder: str  # relative to the project root, or absolute


def _relpath(path: Path, start: Path) -> str:
    return os.path.relpath(path, start).replace(os.sep, "/")


def _outside(rel: str) -> bool:
    return rel == ".." or rel.startswith("../")


def resolve_paths(config: NixifyConfig) -> ExprPaths:
    """Paths the expression refers to, warning about any the sandbox can't see.

    The Nix build only sees the project directory. Anything outside it is
    written as an absolute path, which works on this machine at best.
    """
    cwd = config.project_cwd
    expr_dir = config.nix_expr_path.parent

    if config.yarn_path is None:
        raise UnsupportedConfigurationError(
            "yarnPath is not set; the Nix build needs a Yarn release checked into the project"
        )
    if _outside(_relpath(config.yarn_path, cwd)):
        logger.warning("The Yarn path %s is outside the project - it may not be "
                       "reachable by the Nix build", config.yarn_path)
        yarn_path = str(config.yarn_path)
    else:
        yarn_path = _relpath(config.yarn_path, expr_dir)

    cache_folder = _relpath(config.cache_folder, cwd)
    if _outside(cache_folder):
        logger.warning("The cache folder %s is outside the project - it may not be "
                       "reachable by the Nix build", config.cache_folder)
        cache_folder = str(config.cache_folder)

    for source in config.sources:
        if source.startswith("<"):
            continue
        if _outside(_relpath(Path(source), cwd)):
            logger.warning("The config file %s is outside the project - it may not be "
                           "reachable by the Nix build", source)

    return ExprPaths(
        yarn_path=yarn_path,
        lockfile=_relpath(config.lockfile_filename, expr_dir),
        cache_folder=cache_folder,
    )


# --- Code blocks ---

def cache_entries_code(entries: Mapping[str, CacheEntry]) -> str:
    if not entries:
        return "cacheEntries = { };"
    lines = ["cacheEntries = {"]
    for key in sorted(entries):
        e = entries[key]
        fields = expr.attrset({"filename": e.filename, "sha512": e.sha512})
        lines.append(f"  {expr.attr_name(key)} = {fields};")
    lines.append("};")
    return "\n".join(lines)


def isolated_code(plan: IsolationPlan) -> str:
    if not plan.targets:
        return "isolated = { };"
    lines = ["isolated = {"]
    for t in plan.targets:
        lines.append(
            f"  {expr.attr_name(t.locator)} = optionalOverride "
            f"(args.{t.override_arg} or null) (mkIsolatedBuild {{"
        )
        lines.append(f"    pname = {expr.string(t.pname)};")
        lines.append(f"    version = {expr.string(t.version or '')};")
        lines.append(f"    ident = {expr.string(t.ident)};")
        lines.append(f"    reference = {expr.string(t.reference)};")
        lines.append("    locators = [")
        lines.extend(f"      {expr.string(loc)}" for loc in t.locators)
        lines.append("    ];")
        lines.append("  });")
    lines.append("};")
    return "\n".join(lines)


def _sh(s: str) -> str:
    """Shell-quoted, and safe inside a Nix indented string."""
    return expr.indented_string_text(shlex.quote(s))


def integration_code(plan: IsolationPlan) -> str:
    """Shell run before ``yarn install`` that copies isolated outputs in place."""
    lines = ["# Copy in isolated builds."]
    for step in plan.steps:
        lines.extend([
            f"echo {_sh('injecting build for ' + step.ident)}",
            "yarn nixify inject-build \\",
            f"  {_sh(step.locator)} \\",
            f"  ${{isolated.{expr.attr_name(step.target)}}} \\",
            f"  {_sh(step.location)}",
        ])
    lines.append("echo 'running yarn install'")
    return "\n".join(lines)


def render_project_expr(
    project: Project,
    entries: Mapping[str, CacheEntry],
    plan: IsolationPlan,
    paths: ExprPaths,
) -> str:
    values = {
        "PROJECT_NAME": expr.string(project.display_name),
        "YARN_PATH": expr.path(paths.yarn_path),
        "LOCKFILE": expr.path(paths.lockfile),
        "CACHE_FOLDER": expr.string(paths.cache_folder),
        "CACHE_ENTRIES": cache_entries_code(entries),
        "ISOLATED": isolated_code(plan),
        "NEED_ISOLATED_BUILD_SUPPORT": plan.needs_injection,
        "ISOLATED_INTEGRATION": integration_code(plan) if plan.needs_injection else "",
    }
    return template.render(template.load(PROJECT_TEMPLATE), values)


def render_default_expr(config: NixifyConfig) -> str:
    project_expr = _relpath(config.nix_expr_path, config.project_cwd)
    return template.render(template.load(DEFAULT_TEMPLATE), {"PROJECT_EXPR": expr.path(project_expr)})


# --- Output ---

def write_project_expr(text: str, config: NixifyConfig) -> Path:
    path = config.nix_expr_path
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)
    logger.info("Wrote: %s", path)
    return path


def write_default_expr(config: NixifyConfig) -> Path | None:
    """Write the default.nix wrapper unless the project has an entry point."""
    if not config.generate_default_nix:
        return None
    cwd = config.project_cwd
    default_path = cwd / DEFAULT_EXPR
    if default_path.exists() or (cwd / FLAKE_EXPR).exists():
        return None
    default_path.write_text(render_default_expr(config))
    logger.info("A minimal default.nix was created. You may want to customize it.")
    return default_path
