"""Pass that infers edges between repositories and raises open questions."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple
from urllib.parse import urlsplit

from ..detect import load_json
from ..models import (
    ApiEndpoint,
    ContextDelta,
    InferredRelationship,
    Question,
    WorkspaceContext,
)
from ..pipeline.base import PassLogger
from .base import Pass
from .utils import iter_source_files, merged, slugify

CLIENT_EXTENSIONS = (".ts", ".js", ".tsx", ".jsx", ".mjs", ".py")

HTTP_CALL_PATTERNS: Tuple[re.Pattern[str], ...] = (
    re.compile(r"fetch\s*\(\s*['\"`]([^'\"`]+)['\"`]"),
    re.compile(r"axios\.\w+\s*\(\s*['\"`]([^'\"`]+)['\"`]"),
    re.compile(r"(?:requests|httpx|client|session)\.(?:get|post|put|patch|delete)\s*\(\s*f?['\"]([^'\"]+)['\"]"),
)

_DATA_STORE_VARS = re.compile(r"DATABASE|(?:^|_)DB(?:_|$)|POSTGRES|MYSQL|MONGO|REDIS|SQL", re.I)

_Edge = Tuple[str, str, str]


class RelationshipInferencePass(Pass):
    """Combines dependency, HTTP and env evidence with declared relationships."""

    name = "relationship-inference"
    description = "Infer cross-repo relationships from dependencies, HTTP clients, shared config"
    dependencies = ("repo-detection", "manifest-parsing", "api-discovery", "env-scanning")

    def execute(self, ctx: WorkspaceContext, logger: PassLogger) -> ContextDelta:
        edges: Dict[_Edge, InferredRelationship] = {}
        questions: List[Question] = []

        if ctx.mode == "single-repo":
            self._declared(ctx, edges)
            logger.info(
                "Single-repo mode: skipped cross-repo inference, %d declared relationships",
                len(edges),
            )
            return ContextDelta(relationships=list(edges.values()))

        self._workspace_dependencies(ctx, edges)
        self._package_dependencies(ctx, edges)
        self._api_consumers(ctx, edges, questions)
        self._shared_data_stores(ctx, edges)
        self._declared(ctx, edges)

        logger.info("Inferred %d relationships, %d open questions", len(edges), len(questions))
        return ContextDelta(relationships=list(edges.values()), questions=questions)

    # ------------------------------------------------------------------
    # Evidence sources

    def _workspace_dependencies(self, ctx: WorkspaceContext, edges: Dict[_Edge, InferredRelationship]) -> None:
        root_pkg = load_json(Path(ctx.workspace_root) / "package.json")
        if not root_pkg.get("workspaces"):
            return
        names = [repo.name for repo in ctx.repos]
        for repo in ctx.repos:
            for dep in merged(repo.dependencies, repo.dev_dependencies):
                for other in names:
                    if other != repo.name and (dep == other or dep.endswith(f"/{other}")):
                        _add(
                            edges,
                            InferredRelationship(
                                source=repo.name,
                                target=other,
                                type="workspace",
                                evidence=f"Workspace dependency: {dep} in {repo.name}/package.json",
                                confidence=0.95,
                            ),
                        )

    def _package_dependencies(self, ctx: WorkspaceContext, edges: Dict[_Edge, InferredRelationship]) -> None:
        names = [repo.name for repo in ctx.repos]
        for repo in ctx.repos:
            for dep in merged(repo.dependencies, repo.dev_dependencies):
                for other in names:
                    if other == repo.name or other not in dep:
                        continue
                    if _connected(edges, repo.name, other):
                        continue
                    _add(
                        edges,
                        InferredRelationship(
                            source=repo.name,
                            target=other,
                            type="dependency",
                            evidence=f"Package dependency: {dep}",
                            confidence=0.7,
                        ),
                    )

    def _api_consumers(
        self,
        ctx: WorkspaceContext,
        edges: Dict[_Edge, InferredRelationship],
        questions: List[Question],
    ) -> None:
        if not ctx.endpoints:
            return
        matchers = [(endpoint, route_matcher(endpoint.path)) for endpoint in ctx.endpoints]
        consumed: set[Tuple[str, str, str]] = set()

        for repo in ctx.repos:
            for _relative, content in iter_source_files(repo.path, ctx.config.options, CLIENT_EXTENSIONS):
                for url in _called_urls(content):
                    url_path = _url_path(url)
                    for endpoint, matcher in matchers:
                        if endpoint.repo == repo.name or matcher is None:
                            continue
                        if not matcher.search(url_path):
                            continue
                        consumed.add((endpoint.repo, endpoint.method, endpoint.path))
                        _add(
                            edges,
                            InferredRelationship(
                                source=repo.name,
                                target=endpoint.repo,
                                type="api-consumer",
                                evidence=f"HTTP call to {endpoint.method} {endpoint.path} (found in code)",
                                confidence=0.8,
                            ),
                        )

        for endpoint in ctx.endpoints:
            if (endpoint.repo, endpoint.method, endpoint.path) in consumed:
                continue
            questions.append(_unknown_consumer_question(endpoint, self.name))

    def _shared_data_stores(self, ctx: WorkspaceContext, edges: Dict[_Edge, InferredRelationship]) -> None:
        for env_var in ctx.env_vars:
            if len(env_var.repos) < 2 or not _DATA_STORE_VARS.search(env_var.name):
                continue
            for index, first in enumerate(env_var.repos):
                for second in env_var.repos[index + 1:]:
                    if _connected(edges, first, second) or _connected(edges, second, first):
                        continue
                    _add(
                        edges,
                        InferredRelationship(
                            source=first,
                            target=second,
                            type="shared-db",
                            evidence=f"Shared environment variable: {env_var.name}",
                            confidence=0.5,
                        ),
                    )

    def _declared(self, ctx: WorkspaceContext, edges: Dict[_Edge, InferredRelationship]) -> None:
        for declared in ctx.config.relationships:
            _add(
                edges,
                InferredRelationship(
                    source=declared.source,
                    target=declared.target,
                    type=declared.type,
                    evidence=f"Declared in ctx.yaml: {declared.description or ''}".rstrip(),
                    confidence=1.0,
                ),
            )


def route_matcher(path: str) -> Optional[re.Pattern[str]]:
    """Return a regex matching URL paths that end with the route ``path``.

    Path parameters (``{id}``) match a single segment. The root route never
    matches since every URL would qualify.
    """
    if not path or path == "/":
        return None
    parts = re.split(r"(\{[^}]+\})", path)
    body = "".join("[^/]+" if part.startswith("{") else re.escape(part) for part in parts)
    return re.compile(rf"{body}/?$")


def _called_urls(content: str) -> Iterable[str]:
    for pattern in HTTP_CALL_PATTERNS:
        for match in pattern.finditer(content):
            yield match.group(1)


def _url_path(url: str) -> str:
    # Interpolations (`${BASE}/users/${id}`, f"{base}/users") become one opaque segment.
    url = re.sub(r"\$\{[^}]*\}|\{[^}]*\}", "x", url)
    try:
        path = urlsplit(url).path
    except ValueError:
        return url
    return path or url


def _connected(edges: Dict[_Edge, InferredRelationship], source: str, target: str) -> bool:
    return any(key[0] == source and key[1] == target for key in edges)


def _add(edges: Dict[_Edge, InferredRelationship], relationship: InferredRelationship) -> None:
    edges.setdefault((relationship.source, relationship.target, relationship.type), relationship)


def _unknown_consumer_question(endpoint: ApiEndpoint, pass_name: str) -> Question:
    return Question(
        id=slugify(f"api-{endpoint.repo}-{endpoint.method}-{endpoint.path}"),
        pass_name=pass_name,
        category="api",
        question=f"API consumer unknown for {endpoint.method} {endpoint.path}",
        context=(
            f"{endpoint.repo} serves {endpoint.method} {endpoint.path} ({endpoint.file}) "
            "but no consumer was detected in the workspace."
        ),
        confidence=0.3,
    )


__all__ = ["RelationshipInferencePass", "route_matcher"]
