"""Pass that finds exported types referenced across repositories."""

from __future__ import annotations

import re
from typing import Dict, List, Set, Tuple

from ..models import ContextDelta, SharedType, WorkspaceContext
from ..pipeline.base import PassLogger
from .base import Pass
from .utils import iter_source_files

TYPE_FILE_EXTENSIONS = (".ts", ".tsx")
CODE_EXTENSIONS = (".ts", ".tsx", ".js", ".jsx")
_LANGUAGES = ("typescript", "javascript")

TYPE_EXPORT_PATTERNS: Tuple[Tuple[str, re.Pattern[str]], ...] = (
    ("interface", re.compile(r"export\s+(?:declare\s+)?interface\s+(\w+)")),
    ("type", re.compile(r"export\s+(?:declare\s+)?type\s+(\w+)\s*(?:<[^>]*>)?\s*=")),
    ("enum", re.compile(r"export\s+(?:declare\s+)?(?:const\s+)?enum\s+(\w+)")),
    ("class", re.compile(r"export\s+(?:default\s+)?(?:abstract\s+)?class\s+(\w+)")),
)

_Exports = Dict[str, Tuple[str, str]]


class TypeExtractionPass(Pass):
    """Cross-references exported TypeScript types with other repositories' sources."""

    name = "type-extraction"
    description = "Find exported types/interfaces and cross-reference imports across repos"
    dependencies = ("repo-detection", "manifest-parsing")
    config_keys = ("feature.types",)

    def execute(self, ctx: WorkspaceContext, logger: PassLogger) -> ContextDelta:
        repos = [repo for repo in ctx.repos if repo.language in _LANGUAGES]
        options = ctx.config.options

        exports: Dict[str, _Exports] = {}
        sources: Dict[str, List[str]] = {}
        for repo in repos:
            repo_exports: _Exports = {}
            texts: List[str] = []
            for relative, content in iter_source_files(repo.path, options, CODE_EXTENSIONS):
                texts.append(content)
                if not relative.endswith(TYPE_FILE_EXTENSIONS):
                    continue
                for kind, pattern in TYPE_EXPORT_PATTERNS:
                    for match in pattern.finditer(content):
                        repo_exports.setdefault(match.group(1), (kind, relative))
            exports[repo.name] = repo_exports
            sources[repo.name] = texts
            logger.debug("%s: found %d exported types", repo.name, len(repo_exports))

        delta = ContextDelta()
        for owner, repo_exports in exports.items():
            for type_name, (kind, file) in sorted(repo_exports.items()):
                used_by = self._consumers(type_name, owner, sources)
                if used_by:
                    delta.shared_types.append(
                        SharedType(name=type_name, kind=kind, defined_in=owner, file=file, used_by=used_by)
                    )

        logger.info("Found %d shared types across repos", len(delta.shared_types))
        return delta

    @staticmethod
    def _consumers(type_name: str, owner: str, sources: Dict[str, List[str]]) -> List[str]:
        pattern = re.compile(rf"\b{re.escape(type_name)}\b")
        used_by: Set[str] = set()
        for repo_name, texts in sources.items():
            if repo_name == owner:
                continue
            if any(pattern.search(text) for text in texts):
                used_by.add(repo_name)
        return sorted(used_by)
