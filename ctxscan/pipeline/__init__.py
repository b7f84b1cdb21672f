"""Analysis pipeline: pass registry, wave scheduling and runners."""

from __future__ import annotations

from ..errors import (
    CyclicDependencyError,
    DuplicatePassError,
    PassExecutionError,
    PassRegistryError,
    UnknownDependencyError,
)
from .base import AnalysisPass, PassDefinition, PassLogger
from .registry import PassRegistry
from .report import SKIP_DEPENDENCY, SKIP_DISABLED, PassOutcome, PassStatus, RunReport
from .runner import (
    DEFAULT_MAX_CONCURRENCY,
    CancelToken,
    run_parallel,
    run_pipeline,
    run_sequential,
)
from .scheduler import compute_waves, flatten_waves, wave_indices

__all__ = [
    "AnalysisPass",
    "CancelToken",
    "CyclicDependencyError",
    "DEFAULT_MAX_CONCURRENCY",
    "DuplicatePassError",
    "PassDefinition",
    "PassExecutionError",
    "PassLogger",
    "PassOutcome",
    "PassRegistry",
    "PassRegistryError",
    "PassStatus",
    "RunReport",
    "SKIP_DEPENDENCY",
    "SKIP_DISABLED",
    "UnknownDependencyError",
    "compute_waves",
    "flatten_waves",
    "run_parallel",
    "run_pipeline",
    "run_sequential",
    "wave_indices",
]
