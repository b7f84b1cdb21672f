"""Pass that records key directories, entry points and file counts."""

from __future__ import annotations

from pathlib import Path

from ..models import ContextDelta, WorkspaceContext
from ..pipeline.base import PassLogger
from ..repo_scanner import RepoScanner
from .base import Pass

KEY_DIRS = (
    "src", "lib", "app", "pages", "routes", "api", "components", "hooks", "utils",
    "services", "models", "schemas", "prisma", "db", "migrations", "config",
    "scripts", "cmd", "pkg", "internal",
)

ENTRY_POINTS = (
    "src/index.ts", "src/index.js", "src/main.ts", "src/main.js",
    "src/app.ts", "src/app.js", "src/server.ts", "src/server.js",
    "index.ts", "index.js", "main.ts", "main.js",
    "app.ts", "app.js", "server.ts", "server.js",
    "app/layout.tsx", "app/page.tsx", "pages/_app.tsx", "pages/index.tsx",
    "main.go", "cmd/main.go", "main.py", "app.py", "manage.py",
)

# File counts look deeper than options.max_depth.
_COUNT_DEPTH = 8


class StructureMappingPass(Pass):
    name = "structure-mapping"
    description = "Identify key directories, entry points, and file counts"
    dependencies = ("repo-detection",)

    def execute(self, ctx: WorkspaceContext, logger: PassLogger) -> ContextDelta:
        delta = ContextDelta()
        scanner = RepoScanner(exclude=ctx.config.options.exclude_patterns, max_depth=_COUNT_DEPTH)
        for repo in ctx.repos:
            root = Path(repo.path)
            key_dirs = [name for name in KEY_DIRS if (root / name).is_dir()]
            entry_points = [name for name in ENTRY_POINTS if (root / name).is_file()]
            file_count = len(scanner.scan(root).files) if root.is_dir() else 0
            delta.update_repo(
                repo.name, key_dirs=key_dirs, entry_points=entry_points, file_count=file_count
            )
            logger.debug(
                "%s: %d key dirs, %d entry points, %d files",
                repo.name,
                len(key_dirs),
                len(entry_points),
                file_count,
            )
        return delta
