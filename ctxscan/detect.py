"""Workspace operating-mode detection."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .repo_scanner import find_git_roots


@dataclass
class WorkspacePackage:
    """A package declared by a mono-repo workspace manifest."""

    name: str
    path: Path
    relative_path: str
    language: Optional[str] = None
    description: Optional[str] = None


@dataclass
class ModeDetection:
    mode: str
    manager: Optional[str] = None
    package_globs: List[str] = field(default_factory=list)
    packages: List[WorkspacePackage] = field(default_factory=list)


def load_json(path: Path) -> Dict[str, Any]:
    """Return the parsed JSON object at ``path`` or an empty dict."""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        return {}
    return data if isinstance(data, dict) else {}


def detect_mono_repo(root: Path) -> Optional[ModeDetection]:
    """Return a mono-repo detection when workspace packages are declared and present."""
    root = Path(root)
    pnpm_workspace = root / "pnpm-workspace.yaml"
    if pnpm_workspace.is_file():
        try:
            parsed = yaml.safe_load(pnpm_workspace.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError:
            parsed = {}
        globs = _string_list(parsed.get("packages") if isinstance(parsed, dict) else None)
        packages = resolve_packages(root, globs)
        if not packages:
            return None
        return ModeDetection(mode="mono-repo", manager="pnpm", package_globs=globs, packages=packages)

    workspaces = load_json(root / "package.json").get("workspaces")
    if isinstance(workspaces, dict):
        workspaces = workspaces.get("packages")
    globs = _string_list(workspaces)
    if not globs:
        return None

    if (root / "turbo.json").exists():
        manager = "turborepo"
    elif (root / "yarn.lock").exists():
        manager = "yarn"
    else:
        manager = "npm"
    packages = resolve_packages(root, globs)
    if not packages:
        return None
    return ModeDetection(mode="mono-repo", manager=manager, package_globs=globs, packages=packages)


def resolve_packages(root: Path, globs: List[str]) -> List[WorkspacePackage]:
    """Expand workspace globs into directories that carry a package.json."""
    packages: List[WorkspacePackage] = []
    seen: set[Path] = set()
    for pattern in globs:
        pattern = pattern.rstrip("/")
        if not pattern or pattern.startswith("!"):
            continue
        for candidate in sorted(root.glob(pattern)):
            manifest = candidate / "package.json"
            if candidate in seen or not candidate.is_dir() or not manifest.is_file():
                continue
            seen.add(candidate)
            pkg = load_json(manifest)
            relative = candidate.relative_to(root).as_posix()
            name = pkg.get("name") if isinstance(pkg.get("name"), str) else None
            packages.append(
                WorkspacePackage(
                    name=name or relative.replace("/", "-"),
                    path=candidate.resolve(),
                    relative_path=relative,
                    language=_package_language(candidate, pkg),
                    description=pkg.get("description") if isinstance(pkg.get("description"), str) else None,
                )
            )
    return packages


def detect_mode(root: Path | str, *, max_depth: int = 3) -> ModeDetection:
    """Classify the workspace as mono-repo, multi-repo or single-repo."""
    root_path = Path(root).resolve()
    mono = detect_mono_repo(root_path)
    if mono is not None:
        return mono
    sub_repos = [path for path in find_git_roots(root_path, max_depth) if path != root_path]
    if len(sub_repos) >= 2:
        return ModeDetection(mode="multi-repo")
    return ModeDetection(mode="single-repo")


def _package_language(directory: Path, pkg: Dict[str, Any]) -> Optional[str]:
    if (directory / "tsconfig.json").exists():
        return "typescript"
    deps: Dict[str, Any] = {}
    for key in ("dependencies", "devDependencies"):
        if isinstance(pkg.get(key), dict):
            deps.update(pkg[key])
    if "typescript" in deps:
        return "typescript"
    return "javascript"


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str)]


__all__ = [
    "ModeDetection",
    "WorkspacePackage",
    "detect_mode",
    "detect_mono_repo",
    "load_json",
    "resolve_packages",
]
