"""Persistent record of the last successful scan, keyed by repository fingerprints."""

from __future__ import annotations

import hashlib
import json
from datetime import UTC, datetime
from pathlib import Path
from typing import Dict, Mapping, Optional

from ..repo_scanner import RepoScanner

_CACHE_VERSION = 1
CACHE_RELATIVE_PATH = Path(".cache") / "scan-cache.json"


def repo_fingerprint(root: Path | str, scanner: RepoScanner) -> str:
    """Digest of every file path and content hash under ``root``."""
    root = Path(root)
    if not root.is_dir():
        return ""
    manifest = scanner.scan(root)
    entries = sorted((file.path, file.hash or "") for file in manifest.files)
    digest = hashlib.sha256()
    for path, file_hash in entries:
        digest.update(path.encode("utf-8"))
        digest.update(b"\0")
        digest.update(file_hash.encode("utf-8"))
        digest.update(b"\0")
    digest.update(str(len(entries)).encode("utf-8"))
    return digest.hexdigest()


def text_digest(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


class ScanCache:
    """Stores the config digest and per-repo fingerprints of the last clean scan."""

    def __init__(self, path: Path | None) -> None:
        self._path = path
        self._config_digest: Optional[str] = None
        self._repos: Dict[str, Dict[str, str]] = {}
        self._updated_at: Optional[str] = None
        self._dirty = False
        if self._path is not None:
            self._load(self._path)

    @classmethod
    def for_output_dir(cls, output_dir: Path) -> "ScanCache":
        return cls(Path(output_dir) / CACHE_RELATIVE_PATH)

    @property
    def path(self) -> Path | None:
        return self._path

    @property
    def updated_at(self) -> Optional[str]:
        return self._updated_at

    def repo_paths(self) -> Dict[str, str]:
        return {name: entry["path"] for name, entry in self._repos.items()}

    def is_fresh(self, config_digest: str, fingerprints: Mapping[str, str]) -> bool:
        """Return True when nothing recorded has changed since the last clean scan."""
        if not self._repos or self._config_digest != config_digest:
            return False
        if set(fingerprints) != set(self._repos):
            return False
        return all(
            self._repos[name].get("fingerprint") == fingerprint
            for name, fingerprint in fingerprints.items()
        )

    def store(self, config_digest: str, repos: Mapping[str, tuple[str, str]]) -> None:
        """Record ``{name: (path, fingerprint)}`` for a completed scan."""
        self._config_digest = config_digest
        self._repos = {
            name: {"path": path, "fingerprint": fingerprint}
            for name, (path, fingerprint) in repos.items()
        }
        self._updated_at = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        self._dirty = True

    def persist(self) -> None:
        if not self._dirty or self._path is None:
            return
        payload = {
            "version": _CACHE_VERSION,
            "config_digest": self._config_digest,
            "updated_at": self._updated_at,
            "repos": self._repos,
        }
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
        self._dirty = False

    def clear(self) -> None:
        self._config_digest = None
        self._repos.clear()
        self._dirty = True

    # ------------------------------------------------------------------
    # Internal helpers

    def _load(self, path: Path) -> None:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            return
        if not isinstance(data, dict) or data.get("version") != _CACHE_VERSION:
            return
        repos = data.get("repos")
        if not isinstance(repos, dict):
            return
        valid: Dict[str, Dict[str, str]] = {}
        for name, raw in repos.items():
            if not isinstance(raw, dict):
                continue
            if not isinstance(raw.get("path"), str) or not isinstance(raw.get("fingerprint"), str):
                continue
            valid[name] = {"path": raw["path"], "fingerprint": raw["fingerprint"]}
        digest = data.get("config_digest")
        self._config_digest = digest if isinstance(digest, str) else None
        updated = data.get("updated_at")
        self._updated_at = updated if isinstance(updated, str) else None
        self._repos = valid
        self._dirty = False


__all__ = ["CACHE_RELATIVE_PATH", "ScanCache", "repo_fingerprint", "text_digest"]
