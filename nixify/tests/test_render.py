"""Tests for expression rendering and output files."""

import logging
from pathlib import Path

import pytest

from nixify.config import NixifyConfig
from nixify.errors import UnsupportedConfigurationError
from nixify.isolation import IsolationPlan, plan_isolated_builds
from nixify.render import (
    ExprPaths,
    cache_entries_code,
    integration_code,
    isolated_code,
    render_default_expr,
    render_project_expr,
    resolve_paths,
    write_default_expr,
    write_project_expr,
)

from conftest import make_entries, make_project

PATHS = ExprPaths(yarn_path=".yarn/releases/yarn.cjs", lockfile="yarn.lock", cache_folder=".yarn/cache")

VIRT_A = "native-lib@virtual:aaa#npm:1.0.0"
VIRT_B = "native-lib@virtual:bbb#npm:1.0.0"


@pytest.fixture
def simple():
    project = make_project({
        "app@workspace:.": [("left-pad@npm:^1.3.0", "left-pad@npm:1.3.0")],
        "left-pad@npm:1.3.0": [],
    }, name="my-app")
    return project, make_entries("left-pad@npm:1.3.0")


@pytest.fixture
def isolated(tmp_path):
    project = make_project({
        "app@workspace:.": [
            ("native-lib@virtual:aaa#npm:^1.0.0", VIRT_A),
            ("native-lib@virtual:bbb#npm:^1.0.0", VIRT_B),
        ],
        VIRT_A: [],
        VIRT_B: [],
        "native-lib@npm:1.0.0": [],
    }, build_state=["app@workspace:.", VIRT_A, VIRT_B])
    entries = make_entries("native-lib@npm:1.0.0")
    config = NixifyConfig.for_project(tmp_path, isolated_nix_builds=("native-lib",))
    return project, entries, plan_isolated_builds(project, entries, config)


class TestResolvePaths:
    def test_inside_project(self, tmp_path):
        paths = resolve_paths(NixifyConfig.for_project(tmp_path))
        assert paths == PATHS

    def test_expr_in_subdirectory(self, tmp_path):
        config = NixifyConfig.for_project(tmp_path, nix_expr_path=tmp_path / "nix" / "yarn-project.nix")
        paths = resolve_paths(config)
        assert paths.yarn_path == "../.yarn/releases/yarn.cjs"
        assert paths.lockfile == "../yarn.lock"
        assert paths.cache_folder == ".yarn/cache"

    def test_outside_project_warns(self, tmp_path, caplog):
        outside = tmp_path.parent / "elsewhere"
        config = NixifyConfig.for_project(
            tmp_path / "proj",
            yarn_path=outside / "yarn.cjs",
            cache_folder=outside / "cache",
            sources=(str(outside / ".yarnrc.yml"), "<environment>"),
        )
        with caplog.at_level(logging.WARNING, logger="nixify.render"):
            paths = resolve_paths(config)
        assert paths.yarn_path == str(outside / "yarn.cjs")
        assert paths.cache_folder == str(outside / "cache")
        warnings = [r.getMessage() for r in caplog.records if r.levelno == logging.WARNING]
        assert len(warnings) == 3
        assert all("outside the project" in w for w in warnings)

    def test_yarn_path_required(self, tmp_path):
        with pytest.raises(UnsupportedConfigurationError, match="yarnPath"):
            resolve_paths(NixifyConfig.for_project(tmp_path, yarn_path=None))


class TestCodeBlocks:
    def test_cache_entries_sorted(self):
        entries = make_entries("b@npm:1.0.0", "a@npm:1.0.0")
        lines = cache_entries_code(entries).splitlines()
        assert lines[0] == "cacheEntries = {"
        assert lines[1].startswith('  "a@npm:1.0.0" = { filename = "a-npm-1.0.0-')
        assert lines[1].endswith(f'sha512 = "{2:0128x}"; }};')
        assert lines[2].startswith('  "b@npm:1.0.0" = ')
        assert lines[-1] == "};"

    def test_empty_blocks(self):
        assert cache_entries_code({}) == "cacheEntries = { };"
        assert isolated_code(IsolationPlan()) == "isolated = { };"

    def test_isolated_block(self, isolated):
        _, _, plan = isolated
        code = isolated_code(plan)
        assert ('"native-lib@npm:1.0.0" = optionalOverride '
                "(args.overrideNativeLibAttrs or null) (mkIsolatedBuild {") in code
        assert 'pname = "native-lib";' in code
        assert 'version = "1.0.0";' in code
        assert 'reference = "npm:1.0.0";' in code
        assert '      "native-lib@npm:1.0.0"\n    ];' in code

    def test_integration_block(self, isolated):
        _, _, plan = isolated
        code = integration_code(plan)
        assert code.splitlines()[0] == "# Copy in isolated builds."
        assert code.count("yarn nixify inject-build") == 2
        assert code.count('${isolated."native-lib@npm:1.0.0"}') == 2
        assert f"'{VIRT_A}'" in code
        assert code.splitlines()[-1] == "echo 'running yarn install'"


class TestProjectExpr:
    def test_no_isolated_builds(self, simple):
        project, entries = simple
        text = render_project_expr(project, entries, IsolationPlan(), PATHS)
        assert "isolated = { };" in text
        assert "Copy in isolated builds" not in text
        assert "inject-build" not in text
        assert "@@" not in text

    def test_slots(self, simple):
        project, entries = simple
        text = render_project_expr(project, entries, IsolationPlan(), PATHS)
        assert "yarnBin = ./.yarn/releases/yarn.cjs;" in text
        assert "lockfile = ./yarn.lock;" in text
        assert 'cacheFolder = ".yarn/cache";' in text
        assert 'name = "my-app";' in text
        assert '  cacheEntries = {\n    "left-pad@npm:1.3.0" = {' in text

    def test_injection_before_install(self, isolated):
        project, entries, plan = isolated
        text = render_project_expr(project, entries, plan, PATHS)
        assert text.index("inject-build") < text.index("yarn install --immutable")
        assert "      # Copy in isolated builds.\n      echo " in text
        assert "#@@" not in text

    def test_deterministic(self, isolated):
        project, entries, plan = isolated
        reordered = dict(reversed(list(entries.items())))
        first = render_project_expr(project, entries, plan, PATHS)
        assert render_project_expr(project, reordered, plan, PATHS) == first
        assert render_project_expr(project, entries, plan, PATHS) == first


class TestOutput:
    def test_write_project_expr(self, tmp_path, caplog):
        config = NixifyConfig.for_project(tmp_path, nix_expr_path=tmp_path / "nix" / "out.nix")
        with caplog.at_level(logging.INFO, logger="nixify.render"):
            path = write_project_expr("{ }\n", config)
        assert path.read_text() == "{ }\n"
        assert "Wrote:" in caplog.text

    def test_default_expr_created(self, tmp_path):
        config = NixifyConfig.for_project(tmp_path)
        path = write_default_expr(config)
        assert path == tmp_path / "default.nix"
        assert "pkgs.callPackage ./yarn-project.nix { } {" in path.read_text()

    def test_default_expr_points_at_subdirectory(self, tmp_path):
        config = NixifyConfig.for_project(tmp_path, nix_expr_path=tmp_path / "nix" / "yarn-project.nix")
        assert "pkgs.callPackage ./nix/yarn-project.nix { }" in render_default_expr(config)

    @pytest.mark.parametrize("existing", ["default.nix", "flake.nix"])
    def test_default_expr_not_overwritten(self, tmp_path, existing):
        (tmp_path / existing).write_text("custom")
        assert write_default_expr(NixifyConfig.for_project(tmp_path)) is None
        if existing == "default.nix":
            assert (tmp_path / "default.nix").read_text() == "custom"
        else:
            assert not (tmp_path / "default.nix").exists()

    def test_default_expr_disabled(self, tmp_path):
        config = NixifyConfig.for_project(tmp_path, generate_default_nix=False)
        assert write_default_expr(config) is None
        assert not Path(tmp_path / "default.nix").exists()
