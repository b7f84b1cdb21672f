"""Sequential and parallel execution of analysis passes."""

from __future__ import annotations

import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from ..errors import PassExecutionError
from ..logging import get_logger, pass_logger
from ..models import ContextDelta, WorkspaceContext
from .base import AnalysisPass, PassLogger
from .registry import PassRegistry
from .report import SKIP_DEPENDENCY, SKIP_DISABLED, PassOutcome, PassStatus, RunReport
from .scheduler import compute_waves, flatten_waves

DEFAULT_MAX_CONCURRENCY = 4

_Result = Tuple[Optional[ContextDelta], float, Optional[PassExecutionError]]


class CancelToken:
    """Thread-safe flag a caller can set to stop a run at the next wave boundary."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


def run_sequential(
    ctx: WorkspaceContext,
    registry: PassRegistry,
    logger: PassLogger | None = None,
    *,
    flags: Mapping[str, bool] | None = None,
    cancel: CancelToken | None = None,
    timeout: float | None = None,
) -> RunReport:
    """Run every pass one at a time in wave order."""
    logger = logger or get_logger("pipeline")
    waves = compute_waves(registry)
    active_flags = ctx.config.flags if flags is None else flags
    deadline = time.monotonic() + timeout if timeout is not None else None
    report = RunReport(runner="sequential")
    started = time.perf_counter()

    logger.info("Running %d analysis passes sequentially...", len(registry))
    for wave_index, wave in enumerate(waves):
        if _stop_requested(cancel, deadline):
            _mark_cancelled(report, waves, wave_index, logger)
            break
        for name in wave:
            reason = _skip_reason(registry, name, active_flags, report)
            if reason is not None:
                report.record(_skipped(name, reason, wave_index, logger))
                continue
            result = _invoke(registry.get(name), ctx, logger)
            report.record(_settle(ctx, name, wave_index, result, logger))

    report.duration = time.perf_counter() - started
    _log_summary(report, logger)
    return report


def run_parallel(
    ctx: WorkspaceContext,
    registry: PassRegistry,
    logger: PassLogger | None = None,
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    *,
    flags: Mapping[str, bool] | None = None,
    cancel: CancelToken | None = None,
    timeout: float | None = None,
) -> RunReport:
    """Run each wave's passes concurrently, with a full barrier between waves.

    Deltas returned by a wave are merged serially, in wave order, once every
    task of the wave has settled, so the final context matches a sequential
    run of the same passes.
    """
    if max_concurrency < 1:
        raise ValueError("max_concurrency must be at least 1")
    logger = logger or get_logger("pipeline")
    waves = compute_waves(registry)
    active_flags = ctx.config.flags if flags is None else flags
    deadline = time.monotonic() + timeout if timeout is not None else None
    report = RunReport(runner="parallel")
    started = time.perf_counter()

    logger.info(
        "Running %d analysis passes across %d waves (max %d concurrent)...",
        len(registry),
        len(waves),
        max_concurrency,
    )
    with ThreadPoolExecutor(
        max_workers=max_concurrency, thread_name_prefix="ctxscan-pass"
    ) as executor:
        for wave_index, wave in enumerate(waves):
            if _stop_requested(cancel, deadline):
                _mark_cancelled(report, waves, wave_index, logger)
                break
            logger.debug("Wave %d: [%s]", wave_index, ", ".join(wave))

            # Eligibility depends only on earlier waves, which have fully settled.
            reasons = {name: _skip_reason(registry, name, active_flags, report) for name in wave}
            futures: Dict[str, Future[_Result]] = {
                name: executor.submit(_invoke, registry.get(name), ctx, logger)
                for name in wave
                if reasons[name] is None
            }
            wait(list(futures.values()))

            for name in wave:
                reason = reasons[name]
                if reason is not None:
                    report.record(_skipped(name, reason, wave_index, logger))
                else:
                    report.record(_settle(ctx, name, wave_index, futures[name].result(), logger))

    report.duration = time.perf_counter() - started
    _log_summary(report, logger)
    return report


def run_pipeline(
    ctx: WorkspaceContext,
    registry: PassRegistry,
    logger: PassLogger | None = None,
    *,
    parallel: bool = True,
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    flags: Mapping[str, bool] | None = None,
    cancel: CancelToken | None = None,
    timeout: float | None = None,
) -> RunReport:
    """Dispatch to the parallel or sequential runner."""
    if parallel:
        return run_parallel(
            ctx,
            registry,
            logger,
            max_concurrency,
            flags=flags,
            cancel=cancel,
            timeout=timeout,
        )
    return run_sequential(ctx, registry, logger, flags=flags, cancel=cancel, timeout=timeout)


def _skip_reason(
    registry: PassRegistry,
    name: str,
    flags: Mapping[str, bool],
    report: RunReport,
) -> Optional[str]:
    for key in registry.config_keys_of(name):
        if not flags.get(key, True):
            return SKIP_DISABLED
    for dependency in registry.dependencies_of(name):
        if report.status_of(dependency) is not PassStatus.SUCCESS:
            return SKIP_DEPENDENCY
    return None


def _invoke(analysis_pass: AnalysisPass, ctx: WorkspaceContext, logger: PassLogger) -> _Result:
    scoped = pass_logger(logger, analysis_pass.name)
    scoped.info("Starting: %s", analysis_pass.description or analysis_pass.name)
    started = time.perf_counter()
    try:
        delta = analysis_pass.execute(ctx, scoped)
        if delta is not None and not isinstance(delta, ContextDelta):
            raise TypeError(
                f"execute() must return a ContextDelta or None, got {type(delta).__name__}"
            )
    except Exception as exc:
        elapsed = time.perf_counter() - started
        scoped.error("Failed after %.3fs: %s", elapsed, exc)
        return None, elapsed, PassExecutionError(analysis_pass.name, exc)
    elapsed = time.perf_counter() - started
    scoped.info("Completed in %.3fs", elapsed)
    return delta, elapsed, None


def _settle(
    ctx: WorkspaceContext,
    name: str,
    wave: int,
    result: _Result,
    logger: PassLogger,
) -> PassOutcome:
    delta, elapsed, error = result
    if error is None:
        try:
            ctx.apply(delta)
        except Exception as exc:
            error = PassExecutionError(name, exc)
            logger.error("Could not merge results of pass %s: %s", name, exc)
    if error is not None:
        return PassOutcome(name=name, status=PassStatus.FAILED, duration=elapsed, error=error, wave=wave)
    return PassOutcome(name=name, status=PassStatus.SUCCESS, duration=elapsed, wave=wave)


def _skipped(name: str, reason: str, wave: int, logger: PassLogger) -> PassOutcome:
    logger.info("Skipping pass %s (%s)", name, reason)
    return PassOutcome(name=name, status=PassStatus.SKIPPED, reason=reason, wave=wave)


def _stop_requested(cancel: CancelToken | None, deadline: float | None) -> bool:
    if cancel is not None and cancel.cancelled:
        return True
    return deadline is not None and time.monotonic() >= deadline


def _mark_cancelled(
    report: RunReport,
    waves: Sequence[Sequence[str]],
    wave_index: int,
    logger: PassLogger,
) -> None:
    report.cancelled = True
    report.pending = flatten_waves(waves[wave_index:])
    logger.warning(
        "Run cancelled before wave %d; %d pass(es) not started", wave_index, len(report.pending)
    )


def _log_summary(report: RunReport, logger: PassLogger) -> None:
    failed: List[str] = report.failed
    logger.info(
        "Pipeline %s: %d succeeded, %d failed, %d skipped in %.2fs",
        "cancelled" if report.cancelled else "complete",
        len(report.succeeded),
        len(failed),
        len(report.skipped),
        report.duration,
    )
    for name in failed:
        logger.warning("Pass %s failed", name)


__all__ = [
    "CancelToken",
    "DEFAULT_MAX_CONCURRENCY",
    "run_parallel",
    "run_pipeline",
    "run_sequential",
]
