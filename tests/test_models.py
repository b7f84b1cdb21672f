"""Tests for WorkspaceContext merging."""

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

import pytest

from ctxscan.config import CtxConfig
from ctxscan.models import (
    ApiEndpoint,
    ContextDelta,
    EnvVar,
    EnvVarSource,
    InferredRelationship,
    Question,
    RepoInfo,
    SharedType,
    WorkspaceContext,
)


def _context(tmp_path: Path) -> WorkspaceContext:
    ctx = WorkspaceContext.create(
        CtxConfig(root=tmp_path, mode="multi-repo"),
        str(tmp_path),
        generated_at=datetime(2024, 5, 1, 12, 0, tzinfo=UTC),
    )
    ctx.apply(ContextDelta(repos=[RepoInfo(name="api", path="/w/api"), RepoInfo(name="web", path="/w/web")]))
    return ctx


def test_create_stamps_metadata(tmp_path: Path) -> None:
    ctx = _context(tmp_path)

    assert ctx.metadata.generated_at == "2024-05-01T12:00:00Z"
    assert ctx.mode == "multi-repo"
    assert WorkspaceContext.create(CtxConfig(root=tmp_path), "/w").mode == "single-repo"


def test_apply_none_is_a_no_op(tmp_path: Path) -> None:
    ctx = _context(tmp_path)
    before = ctx.to_dict()

    ctx.apply(None)
    ctx.apply(ContextDelta())

    assert ctx.to_dict() == before
    assert ContextDelta().is_empty()


def test_repos_are_added_once_and_updated_in_place(tmp_path: Path) -> None:
    ctx = _context(tmp_path)
    delta = ContextDelta(repos=[RepoInfo(name="api", path="/elsewhere")])
    delta.update_repo("api", language="go", framework="gin")
    delta.update_repo("api", file_count=12)

    ctx.apply(delta)

    assert [repo.name for repo in ctx.repos] == ["api", "web"]
    api = ctx.repo("api")
    assert api.path == "/w/api"
    assert (api.language, api.framework, api.file_count) == ("go", "gin", 12)
    assert ctx.repo("missing") is None


def test_updating_unknown_repo_raises(tmp_path: Path) -> None:
    ctx = _context(tmp_path)
    delta = ContextDelta()
    delta.update_repo("ghost", language="go")

    with pytest.raises(KeyError):
        ctx.apply(delta)


def test_updating_unknown_field_raises(tmp_path: Path) -> None:
    ctx = _context(tmp_path)
    delta = ContextDelta()
    delta.update_repo("api", colour="blue")

    with pytest.raises(AttributeError, match="colour"):
        ctx.apply(delta)


def test_rejected_delta_leaves_context_untouched(tmp_path: Path) -> None:
    ctx = _context(tmp_path)
    before = ctx.to_dict()
    delta = ContextDelta(
        repos=[RepoInfo(name="worker", path="/w/worker")],
        endpoints=[ApiEndpoint(repo="worker", method="GET", path="/jobs", file="main.go", line=1)],
    )
    delta.update_repo("worker", language="go")
    delta.update_repo("api", language="typescript")
    delta.update_repo("ghost", language="go")

    with pytest.raises(KeyError):
        ctx.apply(delta)

    assert ctx.to_dict() == before


def test_new_repos_can_be_patched_in_the_same_delta(tmp_path: Path) -> None:
    ctx = _context(tmp_path)
    delta = ContextDelta(repos=[RepoInfo(name="worker", path="/w/worker")])
    delta.update_repo("worker", language="go")

    ctx.apply(delta)

    assert ctx.repo("worker").language == "go"


def test_duplicates_are_dropped(tmp_path: Path) -> None:
    ctx = _context(tmp_path)
    endpoint = ApiEndpoint(repo="api", method="GET", path="/users", file="src/routes.ts", line=3)
    edge = InferredRelationship(source="web", target="api", type="api-consumer", evidence="calls /users", confidence=0.8)
    question = Question(
        id="q1", pass_name="relationship-inference", category="api", question="?", context="", confidence=0.3
    )
    delta = ContextDelta(endpoints=[endpoint], relationships=[edge], questions=[question])

    ctx.apply(delta)
    ctx.apply(
        ContextDelta(
            endpoints=[ApiEndpoint(repo="api", method="GET", path="/users", file="src/routes.ts", line=9)],
            relationships=[
                InferredRelationship(source="web", target="api", type="api-consumer", evidence="other", confidence=0.5)
            ],
            questions=[question],
        )
    )

    assert ctx.endpoints == [endpoint]
    assert ctx.relationships == [edge]
    assert ctx.questions == [question]


def test_shared_types_merge_used_by(tmp_path: Path) -> None:
    ctx = _context(tmp_path)
    ctx.apply(ContextDelta(shared_types=[SharedType("User", "interface", "api", "src/types.ts", ["web"])]))
    ctx.apply(ContextDelta(shared_types=[SharedType("User", "interface", "api", "src/types.ts", ["web", "admin"])]))

    assert len(ctx.shared_types) == 1
    assert ctx.shared_types[0].used_by == ["web", "admin"]


def test_env_vars_merge_by_name(tmp_path: Path) -> None:
    ctx = _context(tmp_path)
    api_source = EnvVarSource(repo="api", file=".env.example", kind="env-file")
    web_source = EnvVarSource(repo="web", file="src/db.ts", kind="code-reference")

    ctx.apply(ContextDelta(env_vars=[EnvVar("DATABASE_URL", ["api"], [api_source])]))
    ctx.apply(ContextDelta(env_vars=[EnvVar("DATABASE_URL", ["web", "api"], [web_source, api_source])]))

    assert len(ctx.env_vars) == 1
    assert ctx.env_vars[0].repos == ["api", "web"]
    assert ctx.env_vars[0].sources == [api_source, web_source]


def test_pending_questions_excludes_answered(tmp_path: Path) -> None:
    ctx = _context(tmp_path)
    first = Question("q1", "p", "api", "Who calls /a?", "", 0.3)
    second = Question("q2", "p", "api", "Who calls /b?", "", 0.3)
    ctx.apply(ContextDelta(questions=[first, second]))
    ctx.answers["q1"] = "nobody"

    assert ctx.pending_questions() == [second]
    assert ctx.to_dict()["answers"] == {"q1": "nobody"}
