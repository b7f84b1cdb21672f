"""Tests for ctxscan.repo_scanner."""

from __future__ import annotations

from hashlib import sha256
from pathlib import Path

import pytest

from ctxscan.repo_scanner import RepoScanner, detect_language, find_git_roots, read_text


def _write(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def test_scan_builds_manifest_with_roles_and_language(tmp_path: Path) -> None:
    repo_root = tmp_path / "repo"
    repo_root.mkdir()

    _write(repo_root / "src" / "app.ts", "export const x = 1;\n")
    _write(repo_root / "src" / "app.test.ts", "test('x', () => {});\n")
    _write(repo_root / "tests" / "test_app.py", "def test_ok():\n    assert True\n")
    _write(repo_root / "docs" / "overview.md", "# Overview\n")
    _write(repo_root / "config" / "settings.yaml", "debug: true\n")
    _write(repo_root / ".git" / "HEAD", "ref: refs/heads/main\n")
    _write(repo_root / ".ctx" / "index.yaml", "ctxscan: {}\n")

    manifest = RepoScanner(hash_files=True).scan(str(repo_root))

    assert manifest.root == str(repo_root.resolve())
    paths = {file.path: file for file in manifest.files}

    assert paths["src/app.ts"].language == "TypeScript"
    assert paths["src/app.ts"].role == "src"
    assert paths["src/app.test.ts"].role == "test"
    assert paths["tests/test_app.py"].role == "test"
    assert paths["docs/overview.md"].role == "docs"
    assert paths["config/settings.yaml"].role == "config"
    assert ".git/HEAD" not in paths
    assert ".ctx/index.yaml" not in paths
    assert manifest.paths() == sorted(paths)

    expected_hash = sha256((repo_root / "src" / "app.ts").read_bytes()).hexdigest()
    assert paths["src/app.ts"].hash == expected_hash


def test_hashing_is_opt_in(tmp_path: Path) -> None:
    _write(tmp_path / "main.go", "package main\n")

    manifest = RepoScanner().scan(tmp_path)

    assert manifest.files[0].hash == ""


def test_scan_rejects_missing_directory(tmp_path: Path) -> None:
    missing = tmp_path / "missing"

    with pytest.raises(FileNotFoundError, match="missing"):
        RepoScanner().scan(str(missing))


def test_scan_rejects_files(tmp_path: Path) -> None:
    target = tmp_path / "file.txt"
    _write(target, "x")

    with pytest.raises(NotADirectoryError):
        RepoScanner().scan(target)


def test_scan_respects_gitignore(tmp_path: Path) -> None:
    repo_root = tmp_path / "repo"
    repo_root.mkdir()

    _write(repo_root / ".gitignore", "build/\n*.log\n!keep.log\n")
    _write(repo_root / "src" / "main.py", "print('ok')\n")
    _write(repo_root / "build" / "artifact.txt", "binary data\n")
    _write(repo_root / "notes.log", "ignore me\n")
    _write(repo_root / "keep.log", "keep me\n")

    paths = set(RepoScanner().scan(str(repo_root)).paths())

    assert "src/main.py" in paths
    assert "keep.log" in paths
    assert "build/artifact.txt" not in paths
    assert "notes.log" not in paths


def test_scan_honours_exclude_and_max_depth(tmp_path: Path) -> None:
    _write(tmp_path / "node_modules" / "pkg" / "index.js", "module.exports = 1;\n")
    _write(tmp_path / "src" / "a.js", "1\n")
    _write(tmp_path / "src" / "deep" / "b.js", "2\n")

    paths = RepoScanner(exclude=["node_modules"], max_depth=1).scan(tmp_path).paths()

    assert paths == ["src/a.js"]


def test_detect_language() -> None:
    assert detect_language("cmd/server/main.go") == "Go"
    assert detect_language("src/App.TSX") == "TypeScript"
    assert detect_language("README") is None


def test_read_text_handles_missing_and_large_files(tmp_path: Path) -> None:
    _write(tmp_path / "small.txt", "hello")
    _write(tmp_path / "big.txt", "x" * 100)

    assert read_text(tmp_path, "small.txt") == "hello"
    assert read_text(tmp_path, "missing.txt") is None
    assert read_text(tmp_path, "big.txt", max_size=10) is None


def test_find_git_roots_stops_at_repositories(tmp_path: Path) -> None:
    (tmp_path / "api" / ".git").mkdir(parents=True)
    (tmp_path / "api" / "vendor" / "lib" / ".git").mkdir(parents=True)
    (tmp_path / "group" / "web" / ".git").mkdir(parents=True)
    (tmp_path / "node_modules" / "dep" / ".git").mkdir(parents=True)
    (tmp_path / "a" / "b" / "c" / "d" / ".git").mkdir(parents=True)

    roots = find_git_roots(tmp_path, max_depth=3)

    assert roots == [(tmp_path / "api").resolve(), (tmp_path / "group" / "web").resolve()]
