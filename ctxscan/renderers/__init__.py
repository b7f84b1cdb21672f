"""Renderers that turn a workspace context into context shards on disk."""

from __future__ import annotations

import shutil
from pathlib import Path
from typing import Dict, List

from ..logging import get_logger
from ..models import WorkspaceContext
from .overview import render_overview
from .shards import (
    dump_yaml,
    render_endpoints,
    render_env,
    render_index,
    render_questions,
    render_repo,
    render_topology,
    render_types,
)

# Directories holding one shard per repository; cleared before each write.
_PER_REPO_DIRS = ("repos", "endpoints")


def shard_name(repo_name: str) -> str:
    """Return a file-name-safe form of a repository name (scoped npm names contain a slash)."""
    return repo_name.replace("/", "-")


def render_shards(ctx: WorkspaceContext, output_dir_name: str = ".ctx") -> Dict[str, str]:
    """Return ``{relative path: file content}`` for every shard."""
    files: Dict[str, str] = {"index.yaml": dump_yaml(render_index(ctx, output_dir_name))}
    for repo in ctx.repos:
        files[f"repos/{shard_name(repo.name)}.yaml"] = dump_yaml(render_repo(ctx, repo))
    for repo_name in dict.fromkeys(endpoint.repo for endpoint in ctx.endpoints):
        files[f"endpoints/{shard_name(repo_name)}.yaml"] = dump_yaml(render_endpoints(ctx, repo_name))
    files["types/shared.yaml"] = dump_yaml(render_types(ctx))
    files["env/all.yaml"] = dump_yaml(render_env(ctx))
    files["topology/graph.yaml"] = dump_yaml(render_topology(ctx))
    files["questions/pending.yaml"] = dump_yaml(render_questions(ctx))
    files["overview.md"] = render_overview(ctx)
    return files


def write_shards(ctx: WorkspaceContext, output_dir: Path) -> List[str]:
    """Write every shard under ``output_dir`` and return the relative paths written."""
    logger = get_logger("renderers")
    output_dir = Path(output_dir)
    files = render_shards(ctx, output_dir.name)

    for name in _PER_REPO_DIRS:
        stale = output_dir / name
        if stale.is_dir():
            shutil.rmtree(stale)

    for relative, content in files.items():
        target = output_dir / relative
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
        logger.debug("Wrote %s", target)

    logger.info("Wrote %d context shards to %s", len(files), output_dir)
    return list(files)


__all__ = ["render_overview", "render_shards", "shard_name", "write_shards"]
