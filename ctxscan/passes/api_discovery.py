"""Pass that discovers HTTP routes served by each repository."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from ..models import ApiEndpoint, ContextDelta, RepoInfo, WorkspaceContext
from ..pipeline.base import PassLogger
from .base import Pass
from .utils import iter_source_files, line_of

CODE_EXTENSIONS = (".ts", ".js", ".tsx", ".jsx", ".mjs", ".py", ".go")

_ROUTE_FILE_HINTS = re.compile(r"route|controller|handler|endpoint|api|server\.|app\.|main\.", re.I)
_NEXT_ROUTE_FILE = re.compile(r"(?:^|/)app/(.*?)/?route\.(?:ts|js)$")
_NEXT_HANDLER = re.compile(r"export\s+(?:async\s+)?function\s+(GET|POST|PUT|PATCH|DELETE)\s*\(")
_FLASK_METHODS = re.compile(r"['\"](\w+)['\"]")


@dataclass(frozen=True)
class RoutePattern:
    framework: str
    pattern: re.Pattern[str]
    method_group: int
    path_group: int
    methods_group: int = 0


ROUTE_PATTERNS: Tuple[RoutePattern, ...] = (
    RoutePattern(
        "express",
        re.compile(r"(?<![@\w])(?:app|router)\.(get|post|put|patch|delete|all)\s*\(\s*['\"`]([^'\"`]+)['\"`]", re.I),
        1,
        2,
    ),
    RoutePattern(
        "hono",
        re.compile(r"(?<![@\w])(?:app|api|router)\.(get|post|put|patch|delete|all)\s*\(\s*['\"`]([^'\"`]+)['\"`]", re.I),
        1,
        2,
    ),
    RoutePattern(
        "fastapi",
        re.compile(r"@\w+\.(get|post|put|patch|delete)\s*\(\s*['\"]([^'\"]+)['\"]", re.I),
        1,
        2,
    ),
    RoutePattern(
        "flask",
        re.compile(
            r"@(?:app|bp|blueprint|\w+_bp)\.route\s*\(\s*['\"]([^'\"]+)['\"](?:[^)]*?methods\s*=\s*[\[(]([^\])]*)[\])])?",
            re.I,
        ),
        0,
        1,
        methods_group=2,
    ),
    RoutePattern(
        "go-http",
        re.compile(r"\.(?:HandleFunc|Handle)\s*\(\s*\"([^\"]+)\""),
        0,
        1,
    ),
    RoutePattern(
        "gin",
        re.compile(r"\b\w+\.(GET|POST|PUT|PATCH|DELETE)\s*\(\s*\"([^\"]+)\""),
        1,
        2,
    ),
)

# Generic enough to apply whatever the detected framework is.
_ALWAYS_APPLIED = {"express", "go-http"}

_PARAM_PATTERNS: List[Tuple[re.Pattern[str], str]] = [
    (re.compile(r"/:([A-Za-z_][A-Za-z0-9_]*)"), r"/{\1}"),
    (re.compile(r"/<(?:(?:[A-Za-z_][A-Za-z0-9_]*):)?([A-Za-z_][A-Za-z0-9_]*)>"), r"/{\1}"),
    (re.compile(r"/\[([A-Za-z_][A-Za-z0-9_]*)\]"), r"/{\1}"),
    (re.compile(r"\{([A-Za-z_][A-Za-z0-9_]*)\s*:\s*[^}]+\}"), r"{\1}"),
]


def normalize_path(path: str) -> str:
    """Return a canonical representation for endpoint paths."""
    result = (path or "").strip()
    if not result.startswith("/"):
        result = "/" + result
    for pattern, replacement in _PARAM_PATTERNS:
        result = pattern.sub(replacement, result)
    result = re.sub(r"/{2,}", "/", result)
    if len(result) > 1 and result.endswith("/"):
        result = result[:-1]
    return result


def extract_routes(content: str, repo: str, file: str, framework: str = "") -> List[ApiEndpoint]:
    """Return endpoints declared in ``content``, deduplicated by method and path."""
    found: Dict[Tuple[str, str], ApiEndpoint] = {}
    # The repo's own framework claims a route before the generic patterns do.
    ordered = sorted(ROUTE_PATTERNS, key=lambda route: route.framework != framework)
    for route in ordered:
        if framework and route.framework != framework and route.framework not in _ALWAYS_APPLIED:
            continue
        for match in route.pattern.finditer(content):
            raw_path = match.group(route.path_group)
            if not raw_path:
                continue
            path = normalize_path(raw_path)
            for method in _methods(match, route):
                key = (method, path)
                if key in found:
                    continue
                found[key] = ApiEndpoint(
                    repo=repo,
                    method=method,
                    path=path,
                    file=file,
                    line=line_of(content, match.start()),
                    framework=route.framework,
                )
    return list(found.values())


def _methods(match: re.Match[str], route: RoutePattern) -> Iterable[str]:
    if route.methods_group:
        listed = match.group(route.methods_group)
        if listed:
            return [method.upper() for method in _FLASK_METHODS.findall(listed)] or ["GET"]
        return ["GET"]
    if route.method_group:
        method = match.group(route.method_group).upper()
        return ["ANY" if method == "ALL" else method]
    return ["ANY"] if route.framework == "go-http" else ["GET"]


def next_app_route(relative: str) -> Optional[str]:
    """Map ``app/api/users/[id]/route.ts`` to ``/api/users/{id}``."""
    match = _NEXT_ROUTE_FILE.search(relative)
    if match is None:
        return None
    return normalize_path(match.group(1))


class ApiDiscoveryPass(Pass):
    """Finds API routes with per-framework regular expressions."""

    name = "api-discovery"
    description = "Discover API routes via regex patterns and Next.js route handlers"
    dependencies = ("repo-detection", "manifest-parsing", "structure-mapping")
    config_keys = ("feature.endpoints",)

    def execute(self, ctx: WorkspaceContext, logger: PassLogger) -> ContextDelta:
        delta = ContextDelta()
        for repo in ctx.repos:
            endpoints = self._scan_repo(ctx, repo)
            delta.endpoints.extend(endpoints)
            logger.debug("%s: found %d endpoints", repo.name, len(endpoints))
        logger.info("Total: %d API endpoints discovered", len(delta.endpoints))
        return delta

    def _scan_repo(self, ctx: WorkspaceContext, repo: RepoInfo) -> List[ApiEndpoint]:
        entry_points = set(repo.entry_points)
        check_next = repo.framework in ("react", "")
        endpoints: List[ApiEndpoint] = []
        for relative, content in iter_source_files(repo.path, ctx.config.options, CODE_EXTENSIONS):
            next_path = next_app_route(relative) if check_next else None
            if next_path is not None:
                for match in _NEXT_HANDLER.finditer(content):
                    endpoints.append(
                        ApiEndpoint(
                            repo=repo.name,
                            method=match.group(1).upper(),
                            path=next_path,
                            file=relative,
                            line=line_of(content, match.start()),
                            framework="nextjs",
                        )
                    )
                continue
            if relative in entry_points or _ROUTE_FILE_HINTS.search(relative):
                endpoints.extend(extract_routes(content, repo.name, relative, repo.framework))
        return endpoints


__all__ = ["ApiDiscoveryPass", "ROUTE_PATTERNS", "extract_routes", "next_app_route", "normalize_path"]
