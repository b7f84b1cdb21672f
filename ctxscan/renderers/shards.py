"""YAML shard payloads built from a finished workspace context."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, List

import yaml

from ..models import RepoInfo, WorkspaceContext

INDEX_VERSION = "1.0"


def dump_yaml(data: Any) -> str:
    return yaml.safe_dump(data, sort_keys=False, allow_unicode=True, width=120)


def relative_repo_path(ctx: WorkspaceContext, repo: RepoInfo) -> str:
    relative = os.path.relpath(repo.path, ctx.workspace_root)
    if relative == ".":
        return "."
    return "./" + Path(relative).as_posix()


def render_index(ctx: WorkspaceContext, output_dir: str = ".ctx") -> Dict[str, Any]:
    repos: List[Dict[str, Any]] = []
    for repo in ctx.repos:
        entry: Dict[str, Any] = {
            "name": repo.name,
            "language": repo.language or None,
            "framework": repo.framework or None,
            "path": relative_repo_path(ctx, repo),
        }
        endpoints = sum(1 for endpoint in ctx.endpoints if endpoint.repo == repo.name)
        defined = sum(1 for shared in ctx.shared_types if shared.defined_in == repo.name)
        consumed = sum(
            1
            for shared in ctx.shared_types
            if shared.defined_in != repo.name and repo.name in shared.used_by
        )
        if endpoints:
            entry["endpoints"] = endpoints
        if defined:
            entry["types_defined"] = defined
        if consumed:
            entry["types_consumed"] = consumed
        repos.append(entry)

    data: Dict[str, Any] = {
        "ctxscan": INDEX_VERSION,
        "mode": ctx.mode,
        "scanned_at": ctx.metadata.generated_at,
        "workspace": ctx.workspace_root,
        "repos": repos,
    }
    if ctx.relationships:
        data["relationships"] = [
            {"from": rel.source, "to": rel.target, "type": rel.type} for rel in ctx.relationships
        ]
    data["totals"] = {
        "repos": len(ctx.repos),
        "endpoints": len(ctx.endpoints),
        "shared_types": len(ctx.shared_types),
        "env_vars": len(ctx.env_vars),
        "conventions": len(ctx.conventions),
        "pending_questions": len(ctx.pending_questions()),
    }
    data["shards"] = {
        "repos": f"{output_dir}/repos/{{name}}.yaml",
        "endpoints": f"{output_dir}/endpoints/{{name}}.yaml",
        "types": f"{output_dir}/types/shared.yaml",
        "env": f"{output_dir}/env/all.yaml",
        "topology": f"{output_dir}/topology/graph.yaml",
        "questions": f"{output_dir}/questions/pending.yaml",
    }
    return data


def render_repo(ctx: WorkspaceContext, repo: RepoInfo) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "name": repo.name,
        "path": relative_repo_path(ctx, repo),
        "language": repo.language or None,
        "framework": repo.framework or None,
        "description": repo.description or None,
        "manifest_type": repo.manifest_type or None,
        "file_count": repo.file_count,
        "entry_points": list(repo.entry_points),
        "key_dirs": list(repo.key_dirs),
        "scripts": dict(repo.scripts),
        "dependencies": dict(repo.dependencies),
        "dev_dependencies": dict(repo.dev_dependencies),
    }
    conventions = [
        {"category": item.category, "pattern": item.pattern, "description": item.description}
        for item in ctx.conventions
        if item.repo == repo.name
    ]
    if conventions:
        data["conventions"] = conventions
    return data


def render_endpoints(ctx: WorkspaceContext, repo_name: str) -> Dict[str, Any]:
    endpoints = [endpoint for endpoint in ctx.endpoints if endpoint.repo == repo_name]
    return {
        "repo": repo_name,
        "count": len(endpoints),
        "endpoints": [
            _drop_none(
                {
                    "method": endpoint.method,
                    "path": endpoint.path,
                    "file": endpoint.file,
                    "line": endpoint.line,
                    "handler": endpoint.handler,
                    "framework": endpoint.framework,
                }
            )
            for endpoint in endpoints
        ],
    }


def render_types(ctx: WorkspaceContext) -> Dict[str, Any]:
    return {
        "count": len(ctx.shared_types),
        "shared_types": [
            {
                "name": shared.name,
                "kind": shared.kind,
                "defined_in": shared.defined_in,
                "file": shared.file,
                "used_by": list(shared.used_by),
            }
            for shared in ctx.shared_types
        ],
    }


def render_env(ctx: WorkspaceContext) -> Dict[str, Any]:
    return {
        "count": len(ctx.env_vars),
        "env_vars": [
            {
                "name": env_var.name,
                "repos": list(env_var.repos),
                "sources": [
                    {"repo": source.repo, "file": source.file, "type": source.kind}
                    for source in env_var.sources
                ],
            }
            for env_var in ctx.env_vars
        ],
    }


def render_topology(ctx: WorkspaceContext) -> Dict[str, Any]:
    return {
        "repos": [
            {
                "name": repo.name,
                "path": relative_repo_path(ctx, repo),
                "language": repo.language or None,
                "framework": repo.framework or None,
            }
            for repo in ctx.repos
        ],
        "edges": [
            {
                "from": rel.source,
                "to": rel.target,
                "type": rel.type,
                "confidence": rel.confidence,
                "evidence": rel.evidence,
            }
            for rel in ctx.relationships
        ],
    }


def render_questions(ctx: WorkspaceContext) -> Dict[str, Any]:
    pending = ctx.pending_questions()
    return {
        "pending": len(pending),
        "questions": [
            {
                "id": question.id,
                "pass": question.pass_name,
                "category": question.category,
                "question": question.question,
                "context": question.context,
                "confidence": question.confidence,
            }
            for question in pending
        ],
    }


def _drop_none(values: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in values.items() if value is not None}


__all__ = [
    "dump_yaml",
    "relative_repo_path",
    "render_endpoints",
    "render_env",
    "render_index",
    "render_questions",
    "render_repo",
    "render_topology",
    "render_types",
]
