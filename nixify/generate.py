"""One generation run: index, plan, render, write, preload.

Steps run in sequence and any error aborts the run. The expression is
written only after indexing and planning have succeeded, so a failed run
leaves the previous expression in place.
"""

from __future__ import annotations

import logging
import subprocess
import tempfile
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from pathlib import Path

from nixify.cache_index import CacheEntry, index_cache_entries
from nixify.config import NixifyConfig
from nixify.isolation import IsolationPlan, plan_isolated_builds
from nixify.preload import preload_cache_entries
from nixify.project import Project
from nixify.render import (
    render_project_expr,
    resolve_paths,
    write_default_expr,
    write_project_expr,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GenerateResult:
    expr_path: Path
    default_expr_path: Path | None = None
    entries: dict[str, CacheEntry] = field(default_factory=dict)
    plan: IsolationPlan = field(default_factory=IsolationPlan)
    preloaded: int = 0


def load_project(config: NixifyConfig, snapshot: str | Path | None = None) -> Project:
    """The resolved graph, from a snapshot if given, else from the lockfile."""
    if snapshot is not None:
        return Project.from_snapshot(snapshot, cwd=config.project_cwd)
    return Project.from_lockfile(config.lockfile_filename, cwd=config.project_cwd)


def is_temporary_project(cwd: Path) -> bool:
    """True for projects under the system temp dir, e.g. ``yarn dlx`` sandboxes."""
    tmp = Path(tempfile.gettempdir()).resolve()
    return cwd.resolve().is_relative_to(tmp)


def generate(
    project: Project,
    config: NixifyConfig,
    *,
    cache_files: Iterable[str] | None = None,
    run: Callable[..., subprocess.CompletedProcess] = subprocess.run,
) -> GenerateResult:
    paths = resolve_paths(config)
    entries = index_cache_entries(project, config, cache_files)
    plan = plan_isolated_builds(project, entries, config)
    logger.debug("%d cache entries, %d isolated builds, %d injections",
                 len(entries), len(plan.targets), len(plan.steps))

    text = render_project_expr(project, entries, plan, paths)
    expr_path = write_project_expr(text, config)
    default_path = write_default_expr(config)
    preloaded = preload_cache_entries(entries, config, run=run)

    return GenerateResult(
        expr_path=expr_path,
        default_expr_path=default_path,
        entries=entries,
        plan=plan,
        preloaded=preloaded,
    )
