"""Tests for workspace mode detection."""

from __future__ import annotations

from pathlib import Path

from ctxscan.detect import detect_mode, detect_mono_repo, load_json, resolve_packages
from tests._fixtures.workspace_builder import WorkspaceBuilder


def test_pnpm_workspace_is_a_mono_repo(workspace_builder: WorkspaceBuilder) -> None:
    workspace_builder.write({"pnpm-workspace.yaml": "packages:\n  - 'apps/*'\n  - 'packages/*'\n"})
    workspace_builder.write_json("apps/web/package.json", {"name": "@acme/web", "description": "Storefront"})
    workspace_builder.write({"apps/web/tsconfig.json": "{}"})
    workspace_builder.write_json("packages/ui/package.json", {"name": "@acme/ui"})
    workspace_builder.write({"apps/README.md": "not a package"})

    detection = detect_mode(workspace_builder.path())

    assert detection.mode == "mono-repo"
    assert detection.manager == "pnpm"
    assert detection.package_globs == ["apps/*", "packages/*"]
    assert [pkg.name for pkg in detection.packages] == ["@acme/web", "@acme/ui"]
    web = detection.packages[0]
    assert web.relative_path == "apps/web"
    assert web.language == "typescript"
    assert web.description == "Storefront"
    assert detection.packages[1].language == "javascript"


def test_package_json_workspaces_pick_the_manager(workspace_builder: WorkspaceBuilder) -> None:
    workspace_builder.write_json("package.json", {"workspaces": {"packages": ["services/*"]}})
    workspace_builder.write_json("services/api/package.json", {"devDependencies": {"typescript": "^5"}})
    workspace_builder.write({"turbo.json": "{}", "yarn.lock": ""})

    detection = detect_mono_repo(workspace_builder.path())

    assert detection is not None
    assert detection.manager == "turborepo"
    assert detection.packages[0].name == "services-api"
    assert detection.packages[0].language == "typescript"


def test_yarn_and_npm_managers(workspace_builder: WorkspaceBuilder) -> None:
    workspace_builder.write_json("package.json", {"workspaces": ["pkgs/*"]})
    workspace_builder.write_json("pkgs/a/package.json", {"name": "a"})

    assert detect_mono_repo(workspace_builder.path()).manager == "npm"

    workspace_builder.write({"yarn.lock": ""})
    assert detect_mono_repo(workspace_builder.path()).manager == "yarn"


def test_workspace_globs_without_packages_are_not_a_mono_repo(workspace_builder: WorkspaceBuilder) -> None:
    workspace_builder.write_json("package.json", {"workspaces": ["missing/*"]})

    assert detect_mono_repo(workspace_builder.path()) is None


def test_multiple_git_repositories_are_a_multi_repo(workspace_builder: WorkspaceBuilder) -> None:
    workspace_builder.git_repo("api")
    workspace_builder.git_repo("web")

    assert detect_mode(workspace_builder.path()).mode == "multi-repo"


def test_single_repository_fallback(workspace_builder: WorkspaceBuilder) -> None:
    workspace_builder.git_repo("only")

    assert detect_mode(workspace_builder.path()).mode == "single-repo"


def test_resolve_packages_skips_negations_and_duplicates(tmp_path: Path) -> None:
    (tmp_path / "apps" / "web").mkdir(parents=True)
    (tmp_path / "apps" / "web" / "package.json").write_text('{"name": "web"}', encoding="utf-8")

    packages = resolve_packages(tmp_path, ["apps/*", "apps/web/", "!apps/legacy"])

    assert [pkg.name for pkg in packages] == ["web"]


def test_load_json_tolerates_bad_input(tmp_path: Path) -> None:
    (tmp_path / "broken.json").write_text("{nope", encoding="utf-8")
    (tmp_path / "list.json").write_text("[1, 2]", encoding="utf-8")

    assert load_json(tmp_path / "broken.json") == {}
    assert load_json(tmp_path / "list.json") == {}
    assert load_json(tmp_path / "absent.json") == {}
