"""Shared helper utilities for analysis pass implementations."""

from __future__ import annotations

import re
import tomllib
from pathlib import Path
from typing import Dict, Iterable, Iterator, Mapping, Sequence, Tuple

from ..config import ContextOptions
from ..repo_scanner import RepoScanner, read_text

# File walking


def iter_source_files(
    repo_path: str | Path,
    options: ContextOptions,
    suffixes: Sequence[str],
    *,
    max_depth: int | None = None,
) -> Iterator[Tuple[str, str]]:
    """Yield ``(relative_path, text)`` for readable files ending in ``suffixes``."""
    scanner = RepoScanner(
        exclude=options.exclude_patterns,
        max_depth=options.max_depth if max_depth is None else max_depth,
    )
    manifest = scanner.scan(repo_path)
    for meta in manifest.files:
        if not meta.path.endswith(tuple(suffixes)):
            continue
        text = read_text(repo_path, meta.path, max_size=options.max_file_size)
        if text is not None:
            yield meta.path, text


def line_of(text: str, offset: int) -> int:
    return text.count("\n", 0, offset) + 1


# Python dependency helpers


def load_python_requirements(root: Path) -> Tuple[str, Dict[str, str]]:
    """Return the manifest used and ``{package: version spec}`` for a Python project."""
    pyproject = root / "pyproject.toml"
    if pyproject.is_file():
        return "pyproject.toml", _parse_pyproject(pyproject)
    requirements = root / "requirements.txt"
    if requirements.is_file():
        return "requirements.txt", _parse_requirements(requirements)
    return "", {}


def _split_requirement(spec: str) -> Tuple[str, str]:
    name = re.split(r"[<>=!~;\[ ]", spec, 1)[0].strip()
    return name, spec[len(name):].strip() or "*"


def _parse_requirements(path: Path) -> Dict[str, str]:
    packages: Dict[str, str] = {}
    for line in path.read_text(encoding="utf-8", errors="ignore").splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith(("#", "-")):
            continue
        name, version = _split_requirement(stripped)
        if name:
            packages[name] = version
    return packages


def _parse_pyproject(path: Path) -> Dict[str, str]:
    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except (OSError, tomllib.TOMLDecodeError):
        return {}

    packages: Dict[str, str] = {}
    project = data.get("project")
    if isinstance(project, dict):
        for dep in project.get("dependencies", []) or []:
            if isinstance(dep, str):
                name, version = _split_requirement(dep)
                if name:
                    packages[name] = version

    tool = data.get("tool")
    poetry = tool.get("poetry", {}) if isinstance(tool, dict) else {}
    if isinstance(poetry, dict):
        for name, version in (poetry.get("dependencies") or {}).items():
            if name.lower() != "python":
                packages[name] = version if isinstance(version, str) else "*"
    return packages


# Go helpers


_GO_REQUIRE = re.compile(r"^\s*(?:require\s+)?([\w.\-/]+\.[\w.\-/]+)\s+(v[\w.\-+]+)", re.MULTILINE)


def parse_go_requirements(go_mod: str) -> Dict[str, str]:
    requirements: Dict[str, str] = {}
    for match in _GO_REQUIRE.finditer(go_mod):
        requirements[match.group(1)] = match.group(2)
    return requirements


# Framework heuristics


FRAMEWORK_INDICATORS: Dict[str, Tuple[str, ...]] = {
    "react": ("react", "react-dom", "next", "@tanstack/react-query"),
    "vue": ("vue", "nuxt", "@vue/"),
    "angular": ("@angular/core",),
    "svelte": ("svelte", "@sveltejs/"),
    "express": ("express",),
    "hono": ("hono",),
    "fastify": ("fastify",),
    "nestjs": ("@nestjs/core",),
    "django": ("django",),
    "flask": ("flask",),
    "fastapi": ("fastapi",),
    "gin": ("github.com/gin-gonic/gin",),
    "prisma": ("prisma", "@prisma/client"),
    "drizzle": ("drizzle-orm",),
}

_GO_FRAMEWORKS = (
    ("github.com/gin-gonic/gin", "gin"),
    ("github.com/labstack/echo", "echo"),
    ("github.com/gorilla/mux", "gorilla"),
    ("github.com/gofiber/fiber", "fiber"),
)

_PYTHON_FRAMEWORKS = ("fastapi", "django", "flask", "starlette")


def detect_framework(dependencies: Iterable[str]) -> str:
    """Return the first framework whose indicator matches a dependency name."""
    names = [dep.lower() for dep in dependencies]
    for framework, indicators in FRAMEWORK_INDICATORS.items():
        for indicator in indicators:
            if any(name == indicator or name.startswith(indicator) for name in names):
                return framework
    return ""


def detect_go_framework(go_mod: str) -> str:
    for module, framework in _GO_FRAMEWORKS:
        if module in go_mod:
            return framework
    return ""


def detect_python_framework(dependencies: Iterable[str]) -> str:
    lower = {dep.lower() for dep in dependencies}
    for framework in _PYTHON_FRAMEWORKS:
        if framework in lower:
            return framework
    return ""


def merged(*mappings: Mapping[str, str]) -> Dict[str, str]:
    result: Dict[str, str] = {}
    for mapping in mappings:
        result.update(mapping)
    return result


def slugify(value: str) -> str:
    return re.sub(r"[^a-z0-9-]", "-", value, flags=re.IGNORECASE)


__all__ = [
    "FRAMEWORK_INDICATORS",
    "detect_framework",
    "detect_go_framework",
    "detect_python_framework",
    "iter_source_files",
    "line_of",
    "load_python_requirements",
    "merged",
    "parse_go_requirements",
    "slugify",
]
