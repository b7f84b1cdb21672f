"""Pass that reads package manifests to classify each repository."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict

from ..detect import load_json
from ..models import ContextDelta, RepoInfo, WorkspaceContext
from ..pipeline.base import PassLogger
from ..repo_scanner import read_text
from .base import Pass
from .utils import (
    detect_framework,
    detect_go_framework,
    detect_python_framework,
    load_python_requirements,
    merged,
    parse_go_requirements,
)

_TYPESCRIPT_MARKERS = ("typescript", "ts-node", "tsup", "tsx")


class ManifestParsingPass(Pass):
    """Detects language, framework, dependencies and scripts per repository."""

    name = "manifest-parsing"
    description = "Parse package.json, go.mod, pyproject.toml to detect language and framework"
    dependencies = ("repo-detection",)

    def execute(self, ctx: WorkspaceContext, logger: PassLogger) -> ContextDelta:
        delta = ContextDelta()
        for repo in ctx.repos:
            values = self._inspect(repo)
            if not values:
                logger.warning("%s: no manifest found", repo.name)
                continue
            # Values declared in ctx.yaml take precedence over detection.
            if repo.language:
                values.pop("language", None)
            if repo.framework:
                values.pop("framework", None)
            if repo.description:
                values.pop("description", None)
            delta.update_repo(repo.name, **values)
            logger.debug(
                "%s: %s/%s (%s)",
                repo.name,
                values.get("language", repo.language),
                values.get("framework", repo.framework) or "-",
                values["manifest_type"],
            )
        return delta

    def _inspect(self, repo: RepoInfo) -> Dict[str, Any]:
        root = Path(repo.path)

        package_json = root / "package.json"
        if package_json.is_file():
            pkg = load_json(package_json)
            dependencies = _string_map(pkg.get("dependencies"))
            dev_dependencies = _string_map(pkg.get("devDependencies"))
            all_deps = merged(dependencies, dev_dependencies)
            typed = any(marker in all_deps for marker in _TYPESCRIPT_MARKERS)
            description = pkg.get("description")
            return {
                "manifest_type": "package.json",
                "language": "typescript" if typed else "javascript",
                "framework": detect_framework(all_deps),
                "description": description if isinstance(description, str) else "",
                "dependencies": dependencies,
                "dev_dependencies": dev_dependencies,
                "scripts": _string_map(pkg.get("scripts")),
            }

        go_mod = read_text(root, "go.mod")
        if go_mod is not None:
            return {
                "manifest_type": "go.mod",
                "language": "go",
                "framework": detect_go_framework(go_mod),
                "dependencies": parse_go_requirements(go_mod),
            }

        manifest_type, requirements = load_python_requirements(root)
        if manifest_type:
            return {
                "manifest_type": manifest_type,
                "language": "python",
                "framework": detect_python_framework(requirements),
                "dependencies": requirements,
            }

        return {}


def _string_map(value: Any) -> Dict[str, str]:
    if not isinstance(value, dict):
        return {}
    return {str(key): str(item) for key, item in value.items()}
