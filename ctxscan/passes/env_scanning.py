"""Pass that collects environment variable names. Values are never read into the context."""

from __future__ import annotations

import re
from collections import OrderedDict
from pathlib import Path
from typing import Dict, Tuple

from ..models import ContextDelta, EnvVar, EnvVarSource, WorkspaceContext
from ..pipeline.base import PassLogger
from ..repo_scanner import read_text
from .base import Pass
from .utils import iter_source_files

CODE_EXTENSIONS = (".ts", ".js", ".tsx", ".jsx", ".mjs", ".py", ".go")
ENV_FILES = (".env", ".env.example", ".env.local", ".env.development", ".env.production", ".env.test")
COMPOSE_FILES = ("docker-compose.yml", "docker-compose.yaml", "compose.yml", "compose.yaml")

_DOTENV = re.compile(r"^\s*(?:export\s+)?([A-Za-z_]\w*)\s*=", re.MULTILINE)
_COMPOSE_ENV = re.compile(r"^\s+-?\s*([A-Z_][A-Z0-9_]*)\s*[:=]", re.MULTILINE)

CODE_PATTERNS: Tuple[re.Pattern[str], ...] = (
    re.compile(r"process\.env\.(\w+)|process\.env\[['\"`](\w+)['\"`]\]"),
    re.compile(r"os\.environ(?:\.get)?\s*\(\s*['\"](\w+)['\"]|os\.environ\[['\"](\w+)['\"]\]"),
    re.compile(r"os\.getenv\s*\(\s*['\"](\w+)['\"]"),
    re.compile(r"Deno\.env\.get\s*\(\s*['\"`](\w+)['\"`]\)"),
    re.compile(r"os\.Getenv\s*\(\s*\"(\w+)\"\)"),
    re.compile(r"import\.meta\.env\.(\w+)"),
)


class EnvScanningPass(Pass):
    name = "env-scanning"
    description = "Scan .env files and code references for environment variable names (never values)"
    dependencies = ("repo-detection",)

    def execute(self, ctx: WorkspaceContext, logger: PassLogger) -> ContextDelta:
        found: Dict[str, EnvVar] = OrderedDict()
        max_size = ctx.config.options.max_file_size

        for repo in ctx.repos:
            root = Path(repo.path)
            for env_file in ENV_FILES:
                content = read_text(root, env_file, max_size=max_size)
                if content is None:
                    continue
                for match in _DOTENV.finditer(content):
                    _record(found, match.group(1), repo.name, env_file, "env-file")

            for compose_file in COMPOSE_FILES:
                content = read_text(root, compose_file, max_size=max_size)
                if content is None:
                    continue
                for match in _COMPOSE_ENV.finditer(content):
                    _record(found, match.group(1), repo.name, compose_file, "docker-compose")

            for relative, content in iter_source_files(root, ctx.config.options, CODE_EXTENSIONS):
                for pattern in CODE_PATTERNS:
                    for match in pattern.finditer(content):
                        name = next((group for group in match.groups() if group), None)
                        if name:
                            _record(found, name, repo.name, relative, "code-reference")

        logger.info("Found %d unique environment variables", len(found))
        return ContextDelta(env_vars=list(found.values()))


def _record(found: Dict[str, EnvVar], name: str, repo: str, file: str, kind: str) -> None:
    env_var = found.setdefault(name, EnvVar(name=name))
    if repo not in env_var.repos:
        env_var.repos.append(repo)
    source = EnvVarSource(repo=repo, file=file, kind=kind)
    if source not in env_var.sources:
        env_var.sources.append(source)
