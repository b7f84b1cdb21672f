"""Workspace orchestration for the init and scan flows."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

from .config import (
    CONFIG_FILENAME,
    ConfigError,
    CtxConfig,
    RepoEntry,
    default_config,
    load_config,
    serialize_config,
)
from .detect import ModeDetection, detect_mode
from .errors import CtxscanError
from .logging import get_logger, pass_logger
from .models import WorkspaceContext
from .passes import RepoDetectionPass, default_registry
from .pipeline import (
    DEFAULT_MAX_CONCURRENCY,
    CancelToken,
    PassRegistry,
    RunReport,
    run_pipeline,
)
from .renderers import write_shards
from .repo_scanner import RepoScanner, find_git_roots
from .stores import ScanCache, repo_fingerprint, text_digest

ANSWERS_FILENAME = "answers.yaml"


@dataclass
class ScanOutcome:
    """Result of a scan run."""

    workspace_root: Path
    output_dir: Path
    context: Optional[WorkspaceContext] = None
    report: Optional[RunReport] = None
    written: List[str] = field(default_factory=list)
    fresh: bool = False

    @property
    def exit_code(self) -> int:
        if self.fresh or self.report is None:
            return 0
        return self.report.exit_code

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "workspace": str(self.workspace_root),
            "output_dir": str(self.output_dir),
            "fresh": self.fresh,
            "written": list(self.written),
        }
        if self.context is not None:
            payload["mode"] = self.context.mode
            payload["repos"] = [repo.name for repo in self.context.repos]
        if self.report is not None:
            payload["report"] = self.report.to_dict()
        return payload


class Orchestrator:
    """Coordinates config, detection, the pass pipeline, rendering and caching."""

    def __init__(self, registry: PassRegistry | None = None) -> None:
        self._registry = registry
        self.logger = get_logger("orchestrator")

    def run_init(self, path: str | Path, *, force: bool = False) -> Path:
        """Write a ctx.yaml describing the workspace at ``path``."""
        root = Path(path).expanduser().resolve()
        if not root.is_dir():
            raise CtxscanError(f"Workspace path is not a directory: {root}")
        target = root / CONFIG_FILENAME
        if target.exists() and not force:
            raise CtxscanError(f"{CONFIG_FILENAME} already exists at {target}; use --force to overwrite")

        detection = detect_mode(root)
        repos = self._initial_repos(root, detection)
        config = default_config(root, repos, mode=detection.mode)
        target.write_text(serialize_config(config), encoding="utf-8")
        self.logger.info(
            "Wrote %s (%s, %d repos)", target, detection.mode, len(repos)
        )
        return target

    def run_scan(
        self,
        path: str | Path,
        *,
        parallel: bool = True,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        force: bool = False,
        with_answers: bool = False,
        timeout: float | None = None,
        flag_overrides: Mapping[str, bool] | None = None,
        cancel: CancelToken | None = None,
    ) -> ScanOutcome:
        """Analyse the workspace at ``path`` and write context shards."""
        config = self._load_config(Path(path))
        if flag_overrides:
            config = replace(config, flags={**config.flags, **flag_overrides})
        workspace_root = (config.root / config.workspace).resolve()
        if not workspace_root.is_dir():
            raise CtxscanError(f"Workspace path is not a directory: {workspace_root}")
        output_dir = workspace_root / config.options.output_dir
        self.logger.info("Starting scan of %s", workspace_root)

        mode = config.mode or detect_mode(workspace_root, max_depth=config.options.max_depth).mode
        scanner = self._fingerprint_scanner(config)
        config_digest = text_digest(serialize_config(config))
        cache = ScanCache.for_output_dir(output_dir)
        fresh = not force and self._is_fresh(
            cache, config_digest, scanner, output_dir, config, workspace_root, mode
        )
        if fresh:
            self.logger.info("Context in %s is up to date; use --force to rescan", output_dir)
            return ScanOutcome(workspace_root=workspace_root, output_dir=output_dir, fresh=True)

        ctx = WorkspaceContext.create(config, str(workspace_root), mode=mode)
        if with_answers:
            ctx.answers = load_answers(output_dir / ANSWERS_FILENAME)
            self.logger.info("Loaded %d answers", len(ctx.answers))

        registry = self._registry if self._registry is not None else default_registry()
        report = run_pipeline(
            ctx,
            registry,
            self.logger,
            parallel=parallel,
            max_concurrency=max_concurrency,
            cancel=cancel,
            timeout=timeout,
        )

        outcome = ScanOutcome(
            workspace_root=workspace_root, output_dir=output_dir, context=ctx, report=report
        )
        if report.cancelled:
            self.logger.warning("Scan cancelled; no shards written")
            return outcome

        outcome.written = write_shards(ctx, output_dir)
        if report.ok:
            cache.store(
                config_digest,
                {repo.name: (repo.path, repo_fingerprint(repo.path, scanner)) for repo in ctx.repos},
            )
            cache.persist()
        else:
            # Shards from a partial run must not be reported as fresh next time.
            cache.clear()
            cache.persist()
            self.logger.warning("Scan finished with failed passes: %s", ", ".join(report.failed))
        return outcome

    def describe_passes(self) -> PassRegistry:
        return self._registry if self._registry is not None else default_registry()

    # ------------------------------------------------------------------
    # Internal helpers

    def _load_config(self, path: Path) -> CtxConfig:
        path = path.expanduser()
        if not path.exists():
            raise CtxscanError(f"Workspace path not found: {path}")
        return load_config(path)

    @staticmethod
    def _fingerprint_scanner(config: CtxConfig) -> RepoScanner:
        output_name = Path(config.options.output_dir).name
        return RepoScanner(
            exclude=[*config.options.exclude_patterns, output_name],
            max_depth=config.options.max_depth,
            hash_files=True,
        )

    def _is_fresh(
        self,
        cache: ScanCache,
        config_digest: str,
        scanner: RepoScanner,
        output_dir: Path,
        config: CtxConfig,
        workspace_root: Path,
        mode: str,
    ) -> bool:
        if not (output_dir / "index.yaml").is_file():
            return False
        recorded = cache.repo_paths()
        if not recorded:
            return False
        detected = self._detect_repos(config, workspace_root, mode)
        if detected != recorded:
            added = sorted(set(detected) - set(recorded))
            removed = sorted(set(recorded) - set(detected))
            self.logger.info(
                "Repository set changed (added: %s; removed: %s)",
                ", ".join(added) or "none",
                ", ".join(removed) or "none",
            )
            return False
        fingerprints = {name: repo_fingerprint(path, scanner) for name, path in recorded.items()}
        return cache.is_fresh(config_digest, fingerprints)

    def _detect_repos(self, config: CtxConfig, workspace_root: Path, mode: str) -> Dict[str, str]:
        """Run repository detection on a scratch context and return ``{name: path}``."""
        scratch = WorkspaceContext.create(config, str(workspace_root), mode=mode)
        detection = RepoDetectionPass()
        delta = detection.execute(scratch, pass_logger(self.logger, detection.name))
        repos: Dict[str, str] = {}
        for repo in delta.repos:
            repos.setdefault(repo.name, repo.path)
        return repos

    @staticmethod
    def _initial_repos(root: Path, detection: ModeDetection) -> List[RepoEntry]:
        if detection.mode == "mono-repo":
            return [
                RepoEntry(
                    name=package.name,
                    path=package.relative_path,
                    language=package.language,
                    description=package.description,
                )
                for package in detection.packages
            ]
        if detection.mode == "multi-repo":
            return [
                RepoEntry(name=repo.name, path=repo.relative_to(root).as_posix())
                for repo in find_git_roots(root)
                if repo != root
            ]
        return [RepoEntry(name=root.name, path=".")]


def load_answers(path: Path) -> Dict[str, str]:
    """Return ``{question id: answer}`` from answers.yaml, or ``{}`` when missing."""
    if not path.is_file():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    if isinstance(data, dict) and isinstance(data.get("answers"), dict):
        data = data["answers"]
    if not isinstance(data, dict):
        raise ConfigError(f"{path.name} must map question ids to answers")
    return {str(key): str(value) for key, value in data.items() if value is not None}


__all__ = ["ANSWERS_FILENAME", "Orchestrator", "ScanOutcome", "load_answers"]
