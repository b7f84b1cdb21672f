"""Pass that detects tooling, naming, layout and testing conventions."""

from __future__ import annotations

import re
from pathlib import Path, PurePosixPath
from typing import List, Sequence

from ..models import Convention, ContextDelta, RepoInfo, WorkspaceContext
from ..pipeline.base import PassLogger
from ..repo_scanner import RepoScanner
from .base import Pass

TOOLING_FILES = {
    ".eslintrc.json": "ESLint",
    ".eslintrc.js": "ESLint",
    ".eslintrc.cjs": "ESLint",
    "eslint.config.js": "ESLint (flat config)",
    "eslint.config.mjs": "ESLint (flat config)",
    ".prettierrc": "Prettier",
    ".prettierrc.json": "Prettier",
    "prettier.config.js": "Prettier",
    "biome.json": "Biome",
    "biome.jsonc": "Biome",
    ".editorconfig": "EditorConfig",
    "tsconfig.json": "TypeScript",
    "jest.config.js": "Jest",
    "jest.config.ts": "Jest",
    "vitest.config.ts": "Vitest",
    "vitest.config.js": "Vitest",
    "playwright.config.ts": "Playwright",
    "cypress.config.ts": "Cypress",
    ".github/workflows": "GitHub Actions",
    "Dockerfile": "Docker",
    "docker-compose.yml": "Docker Compose",
    "docker-compose.yaml": "Docker Compose",
    "Makefile": "Make",
    "Taskfile.yml": "Task",
    "turbo.json": "Turborepo",
    "nx.json": "Nx",
    "pnpm-workspace.yaml": "pnpm workspaces",
    "lerna.json": "Lerna",
    "ruff.toml": "Ruff",
    ".pre-commit-config.yaml": "pre-commit",
    "tox.ini": "tox",
}

NAMING_STYLES = (
    ("kebab-case", re.compile(r"^[a-z][a-z0-9]*(?:-[a-z0-9]+)+$")),
    ("snake_case", re.compile(r"^[a-z][a-z0-9]*(?:_[a-z0-9]+)+$")),
    ("camelCase", re.compile(r"^[a-z][a-z0-9]*[A-Z][a-zA-Z0-9]*$")),
    ("PascalCase", re.compile(r"^[A-Z][a-zA-Z0-9]*$")),
)
_NAMING_THRESHOLD = 0.3
_NAMING_EXTENSIONS = (".ts", ".tsx", ".js", ".jsx", ".py", ".go")

ARCHITECTURES = (
    ("component-based", "React/component-based architecture with hooks", ("components", "hooks"), ("pages", "app")),
    ("MVC", "MVC-style architecture (routes/services/models)", ("routes", "services", "models"), ()),
    ("go-standard", "Go standard project layout (cmd/pkg/internal)", ("cmd", "pkg", "internal"), ()),
    ("src-lib", "Source/library separation (src/lib)", ("src", "lib"), ()),
)

_TEST_FILE = re.compile(r"\.(?:test|spec)\.(?:ts|js|tsx|jsx)$|_test\.(?:go|py)$|^test_.*\.py$")
_TEST_DIRS = {"__tests__", "test", "tests"}


class ConventionDetectionPass(Pass):
    name = "convention-detection"
    description = "Detect file naming patterns, architecture styles, and tooling configs"
    dependencies = ("repo-detection", "structure-mapping")
    config_keys = ("feature.conventions",)

    def execute(self, ctx: WorkspaceContext, logger: PassLogger) -> ContextDelta:
        delta = ContextDelta()
        scanner = RepoScanner(
            exclude=ctx.config.options.exclude_patterns, max_depth=ctx.config.options.max_depth
        )
        for repo in ctx.repos:
            root = Path(repo.path)
            if not root.is_dir():
                logger.warning("%s: repository path %s does not exist", repo.name, root)
                continue
            paths = scanner.scan(root).paths()
            found: List[Convention] = []
            found.extend(self._tooling(repo, root))
            found.extend(naming_conventions(repo.name, paths))
            found.extend(architecture_conventions(repo))
            found.extend(detect_testing_conventions(repo.name, paths))
            delta.conventions.extend(found)
            logger.debug("%s: found %d conventions", repo.name, len(found))
        logger.info("Total: %d conventions detected", len(delta.conventions))
        return delta

    @staticmethod
    def _tooling(repo: RepoInfo, root: Path) -> List[Convention]:
        return [
            Convention(repo=repo.name, category="tooling", pattern=file, description=f"Uses {tool}")
            for file, tool in TOOLING_FILES.items()
            if (root / file).exists()
        ]


def naming_conventions(repo: str, paths: Sequence[str]) -> List[Convention]:
    stems = [
        PurePosixPath(path).name.split(".")[0]
        for path in paths
        if path.endswith(_NAMING_EXTENSIONS) and path.count("/") < 3
    ]
    stems = [stem for stem in stems if stem and stem not in ("index", "main", "__init__")]
    if not stems:
        return []
    conventions: List[Convention] = []
    for style, pattern in NAMING_STYLES:
        share = sum(1 for stem in stems if pattern.match(stem)) / len(stems)
        if share > _NAMING_THRESHOLD:
            conventions.append(
                Convention(
                    repo=repo,
                    category="naming",
                    pattern=style,
                    description=f"File names use {style} ({round(share * 100)}% of files)",
                )
            )
    return conventions


def architecture_conventions(repo: RepoInfo) -> List[Convention]:
    dirs = set(repo.key_dirs)
    conventions: List[Convention] = []
    for pattern, description, required, any_of in ARCHITECTURES:
        if not dirs.issuperset(required):
            continue
        if any_of and not dirs.intersection(any_of):
            continue
        conventions.append(
            Convention(repo=repo.name, category="structure", pattern=pattern, description=description)
        )
    return conventions


def detect_testing_conventions(repo: str, paths: Sequence[str]) -> List[Convention]:
    tests = [path for path in paths if _TEST_FILE.search(PurePosixPath(path).name)]
    if not tests:
        return []
    separated = sum(1 for path in tests if _TEST_DIRS.intersection(path.split("/")[:-1]))
    colocated = len(tests) - separated
    if colocated > separated:
        pattern = "colocated"
        description = f"Tests colocated with source files ({len(tests)} test files)"
    else:
        pattern = "separated"
        description = f"Tests in separate directories ({len(tests)} test files)"
    return [Convention(repo=repo, category="testing", pattern=pattern, description=description)]
