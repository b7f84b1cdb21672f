"""Repository walking and manifest building utilities."""

from __future__ import annotations

import hashlib
import os
from dataclasses import dataclass
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Iterator, List, Optional, Sequence

from .models import FileMeta, RepoManifest

_ALWAYS_EXCLUDED_DIRS = {
    ".git",
    ".hg",
    ".svn",
    ".ctx",
    ".pytest_cache",
    ".mypy_cache",
    ".idea",
}

_EXCLUDED_FILES = {
    ".DS_Store",
    "Thumbs.db",
}

_LANGUAGE_BY_SUFFIX = {
    ".py": "Python",
    ".pyi": "Python",
    ".js": "JavaScript",
    ".mjs": "JavaScript",
    ".cjs": "JavaScript",
    ".jsx": "JavaScript",
    ".ts": "TypeScript",
    ".tsx": "TypeScript",
    ".go": "Go",
    ".rs": "Rust",
    ".java": "Java",
    ".kt": "Kotlin",
    ".rb": "Ruby",
    ".php": "PHP",
    ".cs": "C#",
    ".sh": "Shell",
    ".yaml": "YAML",
    ".yml": "YAML",
    ".json": "JSON",
    ".toml": "TOML",
}

_ROLE_RULES: tuple[tuple[str, str], ...] = (
    ("tests", "test"),
    ("test", "test"),
    ("__tests__", "test"),
    ("docs", "docs"),
    ("examples", "examples"),
    ("config", "config"),
    ("infra", "infra"),
)


@dataclass
class IgnoreRule:
    """Represents an ignore rule parsed from .gitignore."""

    pattern: str
    directory_only: bool
    anchored: bool
    negate: bool
    has_slash: bool

    def matches(self, rel_path: str, is_dir: bool) -> bool:
        if not self.pattern:
            return False
        if self.directory_only and not is_dir:
            return False

        if self.anchored or self.has_slash:
            if fnmatchcase(rel_path, self.pattern):
                return True
            if self.directory_only and rel_path.startswith(f"{self.pattern}/"):
                return True
            return False

        return any(fnmatchcase(part, self.pattern) for part in rel_path.split("/"))


def _build_ignore_rule(pattern: str, negate: bool = False) -> IgnoreRule | None:
    pattern = pattern.strip()
    if not pattern:
        return None

    directory_only = pattern.endswith("/")
    if directory_only:
        pattern = pattern[:-1]

    anchored = pattern.startswith("/")
    if anchored:
        pattern = pattern[1:]

    return IgnoreRule(
        pattern=pattern,
        directory_only=directory_only,
        anchored=anchored,
        negate=negate,
        has_slash="/" in pattern,
    )


def _parse_gitignore(path: Path) -> List[IgnoreRule]:
    if not path.exists():
        return []

    rules: List[IgnoreRule] = []
    for raw_line in path.read_text(encoding="utf-8", errors="ignore").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        negate = line.startswith("!")
        if negate:
            line = line[1:]
        rule = _build_ignore_rule(line, negate=negate)
        if rule is not None:
            rules.append(rule)
    return rules


def _should_ignore(rel_path: str, is_dir: bool, rules: Sequence[IgnoreRule]) -> bool:
    ignored = False
    for rule in rules:
        if rule.matches(rel_path, is_dir):
            ignored = not rule.negate
    return ignored


def detect_language(path: str) -> str | None:
    return _LANGUAGE_BY_SUFFIX.get(Path(path).suffix.lower())


def _detect_role(relative_path: str) -> str:
    parts = relative_path.split("/")
    for segment, role in _ROLE_RULES:
        if segment in parts[:-1]:
            return role
    name = parts[-1]
    if name.startswith("test_") or ".test." in name or ".spec." in name:
        return "test"
    if relative_path.endswith((".md", ".rst")):
        return "docs"
    return "src"


def hash_file(path: Path) -> str:
    digest = hashlib.sha256()
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(1024 * 1024), b""):
            digest.update(chunk)
    return digest.hexdigest()


def read_text(root: Path | str, relative: str, *, max_size: int | None = None) -> Optional[str]:
    """Return file contents, or ``None`` when missing, unreadable or too large."""
    path = Path(root) / relative
    try:
        if not path.is_file():
            return None
        if max_size is not None and path.stat().st_size > max_size:
            return None
        return path.read_text(encoding="utf-8", errors="ignore")
    except OSError:
        return None


def find_git_roots(root: Path | str, max_depth: int = 3) -> List[Path]:
    """Return directories containing a ``.git`` entry, without descending into them."""
    roots: List[Path] = []

    def walk(current: Path, depth: int) -> None:
        if depth > max_depth:
            return
        if (current / ".git").exists():
            roots.append(current)
            return
        try:
            children = sorted(entry for entry in current.iterdir() if entry.is_dir())
        except OSError:
            return
        for child in children:
            if child.name in _ALWAYS_EXCLUDED_DIRS or child.name == "node_modules":
                continue
            walk(child, depth + 1)

    walk(Path(root).resolve(), 0)
    return roots


class RepoScanner:
    """Walks a repository to produce a normalized manifest."""

    def __init__(
        self,
        *,
        exclude: Sequence[str] = (),
        max_depth: int | None = None,
        max_file_size: int | None = None,
        hash_files: bool = False,
    ) -> None:
        self.exclude = set(exclude)
        self.max_depth = max_depth
        self.max_file_size = max_file_size
        self.hash_files = hash_files

    def scan(self, root: str | Path) -> RepoManifest:
        """Return a manifest describing project files and roles."""
        root_path = Path(root).expanduser().resolve()
        if not root_path.exists():
            raise FileNotFoundError(f"Repository path not found: {root}")
        if not root_path.is_dir():
            raise NotADirectoryError(f"Repository path is not a directory: {root}")

        rules = _parse_gitignore(root_path / ".gitignore")
        files: List[FileMeta] = []
        for path in self._iter_files(root_path, rules):
            rel_path = path.relative_to(root_path).as_posix()
            try:
                size = path.stat().st_size
            except OSError:
                continue
            files.append(
                FileMeta(
                    path=rel_path,
                    size=size,
                    language=detect_language(rel_path),
                    role=_detect_role(rel_path),
                    hash=hash_file(path) if self.hash_files else "",
                )
            )
        files.sort(key=lambda item: item.path)
        return RepoManifest(root=str(root_path), files=files)

    def _iter_files(self, root: Path, rules: Sequence[IgnoreRule]) -> Iterator[Path]:
        for dirpath, dirnames, filenames in os.walk(root):
            current_dir = Path(dirpath)
            rel_dir = current_dir.relative_to(root).as_posix() if current_dir != root else ""
            depth = rel_dir.count("/") + 1 if rel_dir else 0

            kept = []
            for name in sorted(dirnames):
                if name in _ALWAYS_EXCLUDED_DIRS or name in self.exclude:
                    continue
                if self.max_depth is not None and depth + 1 > self.max_depth:
                    continue
                rel_path = f"{rel_dir}/{name}" if rel_dir else name
                if _should_ignore(rel_path, True, rules):
                    continue
                kept.append(name)
            dirnames[:] = kept

            for filename in sorted(filenames):
                if filename in _EXCLUDED_FILES or filename in self.exclude:
                    continue
                rel_path = f"{rel_dir}/{filename}" if rel_dir else filename
                if _should_ignore(rel_path, False, rules):
                    continue
                yield current_dir / filename


__all__ = [
    "IgnoreRule",
    "RepoScanner",
    "detect_language",
    "find_git_roots",
    "hash_file",
    "read_text",
]
