"""Markdown overview rendered with Jinja2."""

from __future__ import annotations

from collections import defaultdict
from pathlib import Path
from typing import Dict, List

from jinja2 import Environment, FileSystemLoader

from ..models import Convention, WorkspaceContext
from .shards import relative_repo_path

TEMPLATE_NAME = "overview.md.j2"


def _create_env(templates_dir: Path | None = None) -> Environment:
    directories: List[str] = []
    if templates_dir:
        directories.append(str(templates_dir))
    directories.append(str(Path(__file__).with_name("templates")))
    loader = FileSystemLoader(directories)
    return Environment(loader=loader, autoescape=False, trim_blocks=True, lstrip_blocks=True)


def render_overview(ctx: WorkspaceContext, *, templates_dir: Path | None = None) -> str:
    """Render the human-readable workspace overview."""
    conventions: Dict[str, List[Convention]] = defaultdict(list)
    for convention in ctx.conventions:
        conventions[convention.repo].append(convention)

    template = _create_env(templates_dir).get_template(TEMPLATE_NAME)
    rendered = template.render(
        ctx=ctx,
        repos=[
            {
                "info": repo,
                "path": relative_repo_path(ctx, repo),
                "endpoints": [endpoint for endpoint in ctx.endpoints if endpoint.repo == repo.name],
                "conventions": conventions.get(repo.name, []),
            }
            for repo in ctx.repos
        ],
        pending=ctx.pending_questions(),
    )
    return rendered.rstrip() + "\n"


__all__ = ["render_overview"]
