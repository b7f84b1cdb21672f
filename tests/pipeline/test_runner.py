"""Tests for the sequential and parallel runners."""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Dict

import pytest

from ctxscan.config import CtxConfig
from ctxscan.errors import CyclicDependencyError, PassExecutionError
from ctxscan.models import ContextDelta, RepoInfo, WorkspaceContext
from ctxscan.pipeline import (
    SKIP_DEPENDENCY,
    SKIP_DISABLED,
    CancelToken,
    PassDefinition,
    PassRegistry,
    PassStatus,
    run_parallel,
    run_pipeline,
    run_sequential,
)
from tests._fixtures.passes import CallLog, contributed, make_pass


def _context(tmp_path: Path, flags: Dict[str, bool] | None = None) -> WorkspaceContext:
    config = CtxConfig(root=tmp_path, flags=dict(flags or {}))
    return WorkspaceContext.create(config, str(tmp_path))


def _diamond(log: CallLog) -> PassRegistry:
    return PassRegistry(
        [
            make_pass("A", log=log),
            make_pass("B", ["A"], log=log, error=RuntimeError("boom")),
            make_pass("C", ["A"], log=log),
            make_pass("D", ["B", "C"], log=log),
        ]
    )


@pytest.mark.parametrize("runner", ["sequential", "parallel"])
def test_failed_pass_skips_dependents_only(tmp_path: Path, runner: str) -> None:
    log = CallLog()
    ctx = _context(tmp_path)

    report = run_pipeline(ctx, _diamond(log), parallel=runner == "parallel")

    assert report.statuses() == {
        "A": PassStatus.SUCCESS,
        "B": PassStatus.FAILED,
        "C": PassStatus.SUCCESS,
        "D": PassStatus.SKIPPED,
    }
    assert "D" not in log.started
    assert report.outcomes["D"].reason == SKIP_DEPENDENCY
    assert contributed(ctx) == ["A", "C"]
    assert report.exit_code == 1
    assert not report.ok


def test_failure_is_wrapped_with_pass_name(tmp_path: Path) -> None:
    cause = ValueError("bad input")
    registry = PassRegistry([make_pass("broken", error=cause)])

    report = run_sequential(_context(tmp_path), registry)

    error = report.outcomes["broken"].error
    assert isinstance(error, PassExecutionError)
    assert error.pass_name == "broken"
    assert error.cause is cause
    assert error.__cause__ is cause
    assert report.errors() == [error]


def test_skip_cascades_transitively(tmp_path: Path) -> None:
    log = CallLog()
    registry = PassRegistry(
        [
            make_pass("root", log=log, error=RuntimeError("fail")),
            make_pass("child", ["root"], log=log),
            make_pass("grandchild", ["child"], log=log),
            make_pass("unrelated", log=log),
            make_pass("after-unrelated", ["unrelated"], log=log),
        ]
    )

    report = run_sequential(_context(tmp_path), registry)

    assert report.skipped == ["child", "grandchild"]
    assert report.succeeded == ["unrelated", "after-unrelated"]
    assert sorted(log.started) == ["after-unrelated", "root", "unrelated"]


@pytest.mark.parametrize("runner", ["sequential", "parallel"])
def test_disabled_config_key_skips_without_invoking(tmp_path: Path, runner: str) -> None:
    log = CallLog()
    registry = PassRegistry(
        [
            make_pass("base", log=log),
            make_pass("E", ["base"], ["feature.endpoints"], log=log),
            make_pass("after-E", ["E"], log=log),
        ]
    )
    ctx = _context(tmp_path, {"feature.endpoints": False})

    report = run_pipeline(ctx, registry, parallel=runner == "parallel")

    assert report.outcomes["E"].status is PassStatus.SKIPPED
    assert report.outcomes["E"].reason == SKIP_DISABLED
    assert report.outcomes["after-E"].reason == SKIP_DEPENDENCY
    assert log.started == ["base"]
    assert report.exit_code == 0


def test_config_check_wins_over_dependency_failure(tmp_path: Path) -> None:
    registry = PassRegistry(
        [
            make_pass("base", error=RuntimeError("nope")),
            make_pass("E", ["base"], ["feature.endpoints"]),
        ]
    )

    report = run_sequential(_context(tmp_path), registry, flags={"feature.endpoints": False})

    assert report.outcomes["E"].reason == SKIP_DISABLED


def test_missing_flags_count_as_enabled(tmp_path: Path) -> None:
    registry = PassRegistry([make_pass("E", config_keys=["feature.endpoints"])])

    report = run_sequential(_context(tmp_path), registry, flags={})

    assert report.status_of("E") is PassStatus.SUCCESS


def test_explicit_flags_override_config_flags(tmp_path: Path) -> None:
    registry = PassRegistry([make_pass("E", config_keys=["feature.endpoints"])])
    ctx = _context(tmp_path, {"feature.endpoints": False})

    report = run_sequential(ctx, registry, flags={"feature.endpoints": True})

    assert report.status_of("E") is PassStatus.SUCCESS


def test_independent_passes_serialise_with_one_worker(tmp_path: Path) -> None:
    parallel_log = CallLog()
    parallel_registry = PassRegistry(
        [make_pass("F", log=parallel_log, delay=0.02), make_pass("G", log=parallel_log, delay=0.02)]
    )
    sequential_registry = PassRegistry([make_pass("F"), make_pass("G")])

    parallel = run_parallel(_context(tmp_path), parallel_registry, max_concurrency=1)
    sequential = run_sequential(_context(tmp_path), sequential_registry)

    assert parallel.statuses() == sequential.statuses()
    assert parallel.statuses() == {"F": PassStatus.SUCCESS, "G": PassStatus.SUCCESS}
    assert parallel_log.peak == 1


def test_wave_passes_overlap_when_workers_allow(tmp_path: Path) -> None:
    barrier = threading.Barrier(2, timeout=5)

    def wait_for_peer(ctx: WorkspaceContext) -> None:
        barrier.wait()

    registry = PassRegistry(
        [make_pass("left", hook=wait_for_peer), make_pass("right", hook=wait_for_peer)]
    )

    report = run_parallel(_context(tmp_path), registry, max_concurrency=2)

    assert report.succeeded == ["left", "right"]


def test_next_wave_waits_for_the_whole_previous_wave(tmp_path: Path) -> None:
    log = CallLog()
    registry = PassRegistry(
        [
            make_pass("fast", log=log),
            make_pass("slow", log=log, delay=0.05),
            make_pass("next", ["fast"], log=log),
        ]
    )

    run_parallel(_context(tmp_path), registry, max_concurrency=4)

    assert log.started.index("next") > log.finished.index("slow")


def _content_registry() -> PassRegistry:
    def detect(ctx: WorkspaceContext, logger: logging.Logger) -> ContextDelta:
        return ContextDelta(repos=[RepoInfo(name="api", path="/w/api"), RepoInfo(name="web", path="/w/web")])

    def classify(ctx: WorkspaceContext, logger: logging.Logger) -> ContextDelta:
        delta = ContextDelta()
        for repo in ctx.repos:
            delta.update_repo(repo.name, language="typescript", framework=repo.name + "-fw")
        return delta

    def count(ctx: WorkspaceContext, logger: logging.Logger) -> ContextDelta:
        delta = ContextDelta()
        for index, repo in enumerate(ctx.repos):
            delta.update_repo(repo.name, file_count=10 * (index + 1))
        return delta

    return PassRegistry(
        [
            PassDefinition("detect", detect),
            PassDefinition("classify", classify, dependencies=("detect",)),
            PassDefinition("count", count, dependencies=("detect",)),
            make_pass("tag-a", ["classify"]),
            make_pass("tag-b", ["count"]),
            make_pass("tag-c", ["detect"]),
        ]
    )


def _snapshot(ctx: WorkspaceContext) -> dict:
    data = ctx.to_dict()
    data.pop("metadata")
    return data


def test_runners_produce_identical_contexts(tmp_path: Path) -> None:
    sequential_ctx = _context(tmp_path)
    parallel_ctx = _context(tmp_path)

    sequential = run_sequential(sequential_ctx, _content_registry())
    parallel = run_parallel(parallel_ctx, _content_registry(), max_concurrency=3)

    assert sequential.statuses() == parallel.statuses()
    assert _snapshot(sequential_ctx) == _snapshot(parallel_ctx)
    assert sequential_ctx.repo("web").file_count == 20
    assert sequential_ctx.repo("api").framework == "api-fw"


def test_rerun_is_reproducible(tmp_path: Path) -> None:
    first = _context(tmp_path)
    second = _context(tmp_path)

    run_parallel(first, _content_registry())
    run_parallel(second, _content_registry())

    assert _snapshot(first) == _snapshot(second)


def test_intra_wave_deltas_merge_in_registration_order(tmp_path: Path) -> None:
    registry = PassRegistry(
        [
            make_pass("first", delay=0.05),
            make_pass("second"),
            make_pass("third", delay=0.01),
        ]
    )
    ctx = _context(tmp_path)

    run_parallel(ctx, registry, max_concurrency=3)

    assert contributed(ctx) == ["first", "second", "third"]


def test_pass_returning_none_succeeds(tmp_path: Path) -> None:
    registry = PassRegistry([make_pass("quiet", emit=False)])
    ctx = _context(tmp_path)

    report = run_parallel(ctx, registry)

    assert report.status_of("quiet") is PassStatus.SUCCESS
    assert contributed(ctx) == []


def test_non_delta_return_value_fails_the_pass(tmp_path: Path) -> None:
    registry = PassRegistry([PassDefinition("odd", lambda ctx, logger: {"repos": []})])  # type: ignore[arg-type,return-value]

    report = run_sequential(_context(tmp_path), registry)

    assert report.status_of("odd") is PassStatus.FAILED
    assert isinstance(report.outcomes["odd"].error.cause, TypeError)


def test_merge_failure_marks_pass_failed(tmp_path: Path) -> None:
    def patch_unknown(ctx: WorkspaceContext, logger: logging.Logger) -> ContextDelta:
        delta = ContextDelta()
        delta.update_repo("ghost", language="go")
        return delta

    registry = PassRegistry(
        [PassDefinition("patch", patch_unknown), make_pass("after", ["patch"])]
    )

    report = run_parallel(_context(tmp_path), registry)

    assert report.status_of("patch") is PassStatus.FAILED
    assert report.status_of("after") is PassStatus.SKIPPED


@pytest.mark.parametrize("runner", [run_sequential, run_parallel])
def test_failed_merge_contributes_nothing(tmp_path: Path, runner) -> None:  # noqa: ANN001
    def half_valid(ctx: WorkspaceContext, logger: logging.Logger) -> ContextDelta:
        delta = ContextDelta(repos=[RepoInfo(name="leaked", path=str(tmp_path / "leaked"))])
        delta.update_repo("leaked", language="go")
        delta.update_repo("ghost", language="go")
        return delta

    ctx = _context(tmp_path)
    report = runner(ctx, PassRegistry([PassDefinition("half", half_valid)]))

    assert report.status_of("half") is PassStatus.FAILED
    assert ctx.repos == []


def test_registration_errors_raise_before_any_pass_runs(tmp_path: Path) -> None:
    log = CallLog()
    registry = PassRegistry(
        [make_pass("ok", log=log), make_pass("x", ["y"], log=log), make_pass("y", ["x"], log=log)]
    )

    with pytest.raises(CyclicDependencyError):
        run_parallel(_context(tmp_path), registry)
    with pytest.raises(CyclicDependencyError):
        run_sequential(_context(tmp_path), registry)

    assert log.started == []


@pytest.mark.parametrize("runner", ["sequential", "parallel"])
def test_cancel_before_start_runs_nothing(tmp_path: Path, runner: str) -> None:
    token = CancelToken()
    token.cancel()
    log = CallLog()
    registry = PassRegistry([make_pass("a", log=log), make_pass("b", ["a"], log=log)])

    report = run_pipeline(_context(tmp_path), registry, parallel=runner == "parallel", cancel=token)

    assert report.cancelled
    assert report.pending == ["a", "b"]
    assert report.outcomes == {}
    assert log.started == []
    assert report.exit_code == 2


@pytest.mark.parametrize("runner", ["sequential", "parallel"])
def test_cancel_takes_effect_at_the_next_wave_boundary(tmp_path: Path, runner: str) -> None:
    token = CancelToken()

    def cancel_run(ctx: WorkspaceContext) -> None:
        token.cancel()

    log = CallLog()
    registry = PassRegistry(
        [
            make_pass("a", log=log, hook=cancel_run),
            make_pass("sibling", log=log),
            make_pass("b", ["a"], log=log),
            make_pass("c", ["b"], log=log),
        ]
    )

    report = run_pipeline(_context(tmp_path), registry, parallel=runner == "parallel", cancel=token)

    assert report.succeeded == ["a", "sibling"]
    assert report.pending == ["b", "c"]
    assert not report.complete
    assert "b" not in log.started


def test_timeout_stops_later_waves(tmp_path: Path) -> None:
    registry = PassRegistry([make_pass("slow", delay=0.3), make_pass("late", ["slow"])])

    report = run_parallel(_context(tmp_path), registry, timeout=0.1)

    assert report.status_of("slow") is PassStatus.SUCCESS
    assert report.cancelled
    assert report.pending == ["late"]


def test_max_concurrency_must_be_positive(tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        run_parallel(_context(tmp_path), PassRegistry([make_pass("a")]), max_concurrency=0)


def test_pass_logger_is_tagged_with_pass_name(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    def chatty(ctx: WorkspaceContext, logger: logging.Logger) -> None:
        logger.warning("hello from inside")

    registry = PassRegistry([PassDefinition("chatty", chatty)])

    with caplog.at_level(logging.DEBUG, logger="ctxscan"):
        run_parallel(_context(tmp_path), registry)

    records = [record for record in caplog.records if "hello from inside" in record.getMessage()]
    assert len(records) == 1
    assert records[0].getMessage() == "[chatty] hello from inside"
    assert records[0].pass_name == "chatty"
    assert records[0].name == "ctxscan.pipeline.passes.chatty"


def test_report_summaries(tmp_path: Path) -> None:
    report = run_sequential(_context(tmp_path), _diamond(CallLog()))

    data = report.to_dict()
    assert data["runner"] == "sequential"
    assert data["complete"] is True
    assert [item["status"] for item in data["passes"]] == ["success", "failed", "success", "skipped"]
    assert data["passes"][1]["error"].startswith('Pass "B" failed')
    assert data["passes"][3]["reason"] == SKIP_DEPENDENCY
    table = report.format_table()
    assert table.splitlines()[0].startswith("PASS")
    assert "boom" in table
