"""Core data models shared across ctxscan components."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from datetime import UTC, datetime
from typing import Any, Dict, List, Optional

from .config import CtxConfig


@dataclass
class FileMeta:
    """Metadata for an individual repository file."""

    path: str
    size: int
    language: Optional[str]
    role: str
    hash: str = ""


@dataclass
class RepoManifest:
    """Normalized view of one repository for passes."""

    root: str
    files: List[FileMeta]

    def paths(self) -> List[str]:
        return [file.path for file in self.files]


@dataclass
class RepoInfo:
    """A repository discovered in the workspace."""

    name: str
    path: str
    language: str = ""
    framework: str = ""
    description: str = ""
    manifest_type: str = ""
    entry_points: List[str] = field(default_factory=list)
    key_dirs: List[str] = field(default_factory=list)
    file_count: int = 0
    dependencies: Dict[str, str] = field(default_factory=dict)
    dev_dependencies: Dict[str, str] = field(default_factory=dict)
    scripts: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ApiEndpoint:
    """HTTP route served by one of the workspace repositories."""

    repo: str
    method: str
    path: str
    file: str
    line: Optional[int] = None
    handler: Optional[str] = None
    framework: Optional[str] = None


@dataclass
class SharedType:
    """Exported type that at least one other repository references."""

    name: str
    kind: str
    defined_in: str
    file: str
    used_by: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class EnvVarSource:
    """Location where an environment variable name was observed."""

    repo: str
    file: str
    kind: str


@dataclass
class EnvVar:
    """Environment variable name (never its value) and where it appears."""

    name: str
    repos: List[str] = field(default_factory=list)
    sources: List[EnvVarSource] = field(default_factory=list)


@dataclass(frozen=True)
class InferredRelationship:
    """Directed edge between two repositories."""

    source: str
    target: str
    type: str
    evidence: str
    confidence: float


@dataclass(frozen=True)
class Convention:
    """Tooling, naming or layout convention detected in a repository."""

    repo: str
    category: str
    pattern: str
    description: str


@dataclass(frozen=True)
class Question:
    """Open question raised by a pass for a human (or agent) to answer."""

    id: str
    pass_name: str
    category: str
    question: str
    context: str
    confidence: float


@dataclass
class RunMetadata:
    """Facts about the run itself."""

    generated_at: str
    mode: str


@dataclass
class ContextDelta:
    """Partial update returned by a pass and merged into the context by the runner."""

    repos: List[RepoInfo] = field(default_factory=list)
    repo_updates: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    endpoints: List[ApiEndpoint] = field(default_factory=list)
    shared_types: List[SharedType] = field(default_factory=list)
    env_vars: List[EnvVar] = field(default_factory=list)
    relationships: List[InferredRelationship] = field(default_factory=list)
    conventions: List[Convention] = field(default_factory=list)
    questions: List[Question] = field(default_factory=list)

    def update_repo(self, name: str, **values: Any) -> None:
        """Stage field assignments for the repository called ``name``."""
        self.repo_updates.setdefault(name, {}).update(values)

    def is_empty(self) -> bool:
        return not any(
            (
                self.repos,
                self.repo_updates,
                self.endpoints,
                self.shared_types,
                self.env_vars,
                self.relationships,
                self.conventions,
                self.questions,
            )
        )


_REPO_FIELDS = {item.name for item in fields(RepoInfo)} - {"name", "path"}


@dataclass
class WorkspaceContext:
    """Aggregate of every analysis result for one scan of the workspace."""

    workspace_root: str
    config: CtxConfig
    metadata: RunMetadata
    repos: List[RepoInfo] = field(default_factory=list)
    endpoints: List[ApiEndpoint] = field(default_factory=list)
    shared_types: List[SharedType] = field(default_factory=list)
    env_vars: List[EnvVar] = field(default_factory=list)
    relationships: List[InferredRelationship] = field(default_factory=list)
    conventions: List[Convention] = field(default_factory=list)
    questions: List[Question] = field(default_factory=list)
    answers: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def create(
        cls,
        config: CtxConfig,
        workspace_root: str,
        *,
        mode: str | None = None,
        generated_at: datetime | None = None,
    ) -> "WorkspaceContext":
        """Return a fresh, empty context for a new run."""
        timestamp = generated_at or datetime.now(UTC)
        metadata = RunMetadata(
            generated_at=timestamp.isoformat().replace("+00:00", "Z"),
            mode=mode or config.mode or "single-repo",
        )
        return cls(workspace_root=workspace_root, config=config, metadata=metadata)

    @property
    def mode(self) -> str:
        return self.metadata.mode

    def repo(self, name: str) -> Optional[RepoInfo]:
        for repo in self.repos:
            if repo.name == name:
                return repo
        return None

    def apply(self, delta: ContextDelta | None) -> None:
        """Merge ``delta`` into the context. Existing entries are never removed."""
        if delta is None:
            return
        self._check_repo_updates(delta)

        known = {repo.name for repo in self.repos}
        for repo in delta.repos:
            if repo.name not in known:
                self.repos.append(repo)
                known.add(repo.name)

        for name, values in delta.repo_updates.items():
            target = self.repo(name)
            for key, value in values.items():
                setattr(target, key, value)

        seen_endpoints = {(ep.repo, ep.method, ep.path, ep.file) for ep in self.endpoints}
        for endpoint in delta.endpoints:
            key = (endpoint.repo, endpoint.method, endpoint.path, endpoint.file)
            if key not in seen_endpoints:
                self.endpoints.append(endpoint)
                seen_endpoints.add(key)

        for shared in delta.shared_types:
            self._merge_shared_type(shared)

        for env_var in delta.env_vars:
            self._merge_env_var(env_var)

        seen_edges = {(rel.source, rel.target, rel.type) for rel in self.relationships}
        for relationship in delta.relationships:
            key = (relationship.source, relationship.target, relationship.type)
            if key not in seen_edges:
                self.relationships.append(relationship)
                seen_edges.add(key)

        for convention in delta.conventions:
            if convention not in self.conventions:
                self.conventions.append(convention)

        seen_questions = {question.id for question in self.questions}
        for question in delta.questions:
            if question.id not in seen_questions:
                self.questions.append(question)
                seen_questions.add(question.id)

    def pending_questions(self) -> List[Question]:
        return [question for question in self.questions if question.id not in self.answers]

    def to_dict(self) -> Dict[str, Any]:
        """Return a plain, serialisable snapshot of the context."""
        return {
            "workspace_root": self.workspace_root,
            "metadata": asdict(self.metadata),
            "repos": [asdict(repo) for repo in self.repos],
            "endpoints": [asdict(endpoint) for endpoint in self.endpoints],
            "shared_types": [asdict(shared) for shared in self.shared_types],
            "env_vars": [asdict(env_var) for env_var in self.env_vars],
            "relationships": [asdict(rel) for rel in self.relationships],
            "conventions": [asdict(convention) for convention in self.conventions],
            "questions": [asdict(question) for question in self.questions],
            "answers": dict(self.answers),
        }

    # ------------------------------------------------------------------
    # Internal helpers

    def _check_repo_updates(self, delta: ContextDelta) -> None:
        # Runs before any mutation so a rejected delta leaves the context untouched.
        known = {repo.name for repo in self.repos} | {repo.name for repo in delta.repos}
        for name, values in delta.repo_updates.items():
            if name not in known:
                raise KeyError(f"Cannot update unknown repository '{name}'")
            unknown = set(values) - _REPO_FIELDS
            if unknown:
                raise AttributeError(
                    f"RepoInfo has no updatable field(s): {', '.join(sorted(unknown))}"
                )

    def _merge_shared_type(self, incoming: SharedType) -> None:
        for existing in self.shared_types:
            if existing.name == incoming.name and existing.defined_in == incoming.defined_in:
                for repo in incoming.used_by:
                    if repo not in existing.used_by:
                        existing.used_by.append(repo)
                return
        self.shared_types.append(
            SharedType(
                name=incoming.name,
                kind=incoming.kind,
                defined_in=incoming.defined_in,
                file=incoming.file,
                used_by=list(incoming.used_by),
            )
        )

    def _merge_env_var(self, incoming: EnvVar) -> None:
        existing = next((item for item in self.env_vars if item.name == incoming.name), None)
        if existing is None:
            existing = EnvVar(name=incoming.name)
            self.env_vars.append(existing)
        for repo in incoming.repos:
            if repo not in existing.repos:
                existing.repos.append(repo)
        for source in incoming.sources:
            if source not in existing.sources:
                existing.sources.append(source)


__all__ = [
    "ApiEndpoint",
    "ContextDelta",
    "Convention",
    "EnvVar",
    "EnvVarSource",
    "FileMeta",
    "InferredRelationship",
    "Question",
    "RepoInfo",
    "RepoManifest",
    "RunMetadata",
    "SharedType",
    "WorkspaceContext",
]
