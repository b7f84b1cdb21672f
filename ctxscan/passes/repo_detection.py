"""Pass that discovers the repositories making up the workspace."""

from __future__ import annotations

from pathlib import Path
from typing import List

from ..detect import detect_mono_repo
from ..models import ContextDelta, RepoInfo, WorkspaceContext
from ..pipeline.base import PassLogger
from ..repo_scanner import find_git_roots
from .base import Pass


class RepoDetectionPass(Pass):
    """Populates repository stubs from config, workspace packages or git roots."""

    name = "repo-detection"
    description = "Find repositories in the workspace and create repo stubs"

    def execute(self, ctx: WorkspaceContext, logger: PassLogger) -> ContextDelta:
        root = Path(ctx.workspace_root)
        delta = ContextDelta()

        if ctx.config.repos:
            for entry in ctx.config.repos:
                repo_path = (root / entry.path).resolve()
                logger.debug("Using configured repo: %s at %s", entry.name, repo_path)
                delta.repos.append(
                    RepoInfo(
                        name=entry.name,
                        path=str(repo_path),
                        language=entry.language or "",
                        framework=entry.framework or "",
                        description=entry.description or "",
                    )
                )
            logger.info("Found %d configured repos", len(delta.repos))
            return delta

        if ctx.mode == "mono-repo":
            mono = detect_mono_repo(root)
            if mono is not None:
                for package in mono.packages:
                    logger.debug("Workspace package: %s at %s", package.name, package.relative_path)
                    delta.repos.append(
                        RepoInfo(
                            name=package.name,
                            path=str(package.path),
                            language=package.language or "",
                            description=package.description or "",
                        )
                    )
                logger.info("Found %d workspace packages (%s)", len(delta.repos), mono.manager)
                return delta

        for repo_root in self._repo_roots(root, ctx.config.options.max_depth):
            logger.debug("Detected repo: %s at %s", repo_root.name, repo_root)
            delta.repos.append(RepoInfo(name=repo_root.name, path=str(repo_root)))

        logger.info("Detected %d repos", len(delta.repos))
        return delta

    @staticmethod
    def _repo_roots(root: Path, max_depth: int) -> List[Path]:
        root = root.resolve()
        git_roots = find_git_roots(root, max_depth)
        sub_repos = [path for path in git_roots if path != root]
        if sub_repos:
            return sub_repos
        # The workspace itself is the only repository.
        return [root]
