"""Generation settings, read once and passed explicitly.

Settings come from the same places Yarn reads them, lowest precedence
first:

    ~/.yarnrc.yml
    .yarnrc.yml in every directory from / down to the project root
    YARN_<SETTING> environment variables (cacheFolder → YARN_CACHE_FOLDER)

Relative paths in an rc file are relative to that file's directory;
relative paths from the environment are relative to the project root.
The result is a frozen ``NixifyConfig``; no code below ``load_config``
looks at files or the environment for settings.
"""

from __future__ import annotations

import os
import re
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

import yaml

from nixify.errors import ProjectLoadError

RC_FILENAME = ".yarnrc.yml"
ENV_SOURCE = "<environment>"
DEFAULT_CACHE_KEY = "8"

# setting name → (kind, default)
SETTINGS: dict[str, tuple[str, object]] = {
    "yarnPath": ("path", None),
    "cacheFolder": ("path", "./.yarn/cache"),
    "lockfileFilename": ("path", "yarn.lock"),
    "nixExprPath": ("path", "yarn-project.nix"),
    "generateDefaultNix": ("bool", True),
    "enableNixPreload": ("bool", True),
    "isolatedNixBuilds": ("list", ()),
    "nodeLinker": ("str", "pnp"),
    "pnpUnpluggedFolder": ("path", "./.yarn/unplugged"),
    "cacheKey": ("str", None),
    "storeDir": ("str", "/nix/store"),
    "nixStoreTool": ("str", "nix-store"),
}


@dataclass(frozen=True)
class NixifyConfig:
    project_cwd: Path
    yarn_path: Path | None
    cache_folder: Path
    lockfile_filename: Path
    nix_expr_path: Path
    generate_default_nix: bool = True
    enable_nix_preload: bool = True
    isolated_nix_builds: tuple[str, ...] = ()
    node_linker: str = "pnp"
    pnp_unplugged_folder: Path | None = None
    cache_key: str = DEFAULT_CACHE_KEY
    store_dir: str = "/nix/store"
    nix_store_tool: str = "nix-store"
    sources: tuple[str, ...] = ()

    @property
    def unplugged_folder(self) -> Path:
        return self.pnp_unplugged_folder or self.project_cwd / ".yarn" / "unplugged"

    @classmethod
    def for_project(cls, project_cwd: str | Path, **overrides) -> NixifyConfig:
        """Defaults for a project root, with keyword overrides. Mostly for tests."""
        cwd = Path(project_cwd)
        values = dict(
            project_cwd=cwd,
            yarn_path=cwd / ".yarn" / "releases" / "yarn.cjs",
            cache_folder=cwd / ".yarn" / "cache",
            lockfile_filename=cwd / "yarn.lock",
            nix_expr_path=cwd / "yarn-project.nix",
            pnp_unplugged_folder=cwd / ".yarn" / "unplugged",
        )
        values.update(overrides)
        return cls(**values)


def env_name(setting: str) -> str:
    """``cacheFolder`` → ``YARN_CACHE_FOLDER``."""
    return "YARN_" + re.sub(r"(?<!^)(?=[A-Z])", "_", setting).upper()


def rc_files(project_cwd: Path, home: Path | None = None) -> list[Path]:
    """Existing rc files, lowest precedence first."""
    candidates: list[Path] = []
    if home is not None:
        candidates.append(home / RC_FILENAME)
    chain = [project_cwd, *project_cwd.parents]
    candidates.extend(d / RC_FILENAME for d in reversed(chain))
    seen: set[Path] = set()
    found = []
    for c in candidates:
        if c in seen or not c.is_file():
            continue
        seen.add(c)
        found.append(c)
    return found


def _read_rc(path: Path) -> dict:
    try:
        data = yaml.safe_load(path.read_text())
    except (OSError, yaml.YAMLError) as e:
        raise ProjectLoadError(f"cannot read {path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ProjectLoadError(f"{path} must contain a mapping of settings")
    return data


def _coerce(setting: str, kind: str, raw, base: Path):
    if kind == "path":
        p = Path(os.path.expanduser(str(raw)))
        return p if p.is_absolute() else base / p
    if kind == "bool":
        if isinstance(raw, bool):
            return raw
        text = str(raw).strip().lower()
        if text in ("1", "true", "yes"):
            return True
        if text in ("0", "false", "no", ""):
            return False
        raise ProjectLoadError(f"{setting}: expected a boolean, got {raw!r}")
    if kind == "list":
        if isinstance(raw, str):
            return tuple(s.strip() for s in raw.split(",") if s.strip())
        if isinstance(raw, (list, tuple)):
            return tuple(str(s) for s in raw)
        raise ProjectLoadError(f"{setting}: expected a list, got {raw!r}")
    return str(raw)


def load_config(
    project_cwd: str | Path,
    env: Mapping[str, str] | None = None,
    *,
    home: str | Path | None = None,
) -> NixifyConfig:
    """Build the configuration for a project.

    Args:
        project_cwd: The project root (where package.json lives).
        env: Environment to read ``YARN_*`` overrides from (default: os.environ).
        home: Directory holding the user's global rc file (default: none).
    """
    cwd = Path(project_cwd).resolve()
    env = os.environ if env is None else env

    values: dict[str, object] = {}
    sources: list[str] = []
    for rc in rc_files(cwd, Path(home) if home is not None else None):
        data = _read_rc(rc)
        for setting, raw in data.items():
            if setting in SETTINGS and raw is not None:
                kind, _ = SETTINGS[setting]
                values[setting] = _coerce(setting, kind, raw, rc.parent)
        if data:
            sources.append(str(rc))

    env_used = False
    for setting, (kind, _) in SETTINGS.items():
        raw = env.get(env_name(setting))
        if raw is not None:
            values[setting] = _coerce(setting, kind, raw, cwd)
            env_used = True
    if env_used:
        sources.append(ENV_SOURCE)

    for setting, (kind, default) in SETTINGS.items():
        if setting not in values and default is not None:
            values[setting] = _coerce(setting, kind, default, cwd)

    return NixifyConfig(
        project_cwd=cwd,
        yarn_path=values.get("yarnPath"),
        cache_folder=values["cacheFolder"],
        lockfile_filename=values["lockfileFilename"],
        nix_expr_path=values["nixExprPath"],
        generate_default_nix=values["generateDefaultNix"],
        enable_nix_preload=values["enableNixPreload"],
        isolated_nix_builds=values["isolatedNixBuilds"],
        node_linker=values["nodeLinker"],
        pnp_unplugged_folder=values["pnpUnpluggedFolder"],
        cache_key=str(values.get("cacheKey") or DEFAULT_CACHE_KEY),
        store_dir=values["storeDir"],
        nix_store_tool=values["nixStoreTool"],
        sources=tuple(sources),
    )
