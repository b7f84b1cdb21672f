"""Contract shared by every analysis pass."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional, Protocol, Sequence, Tuple, Union, runtime_checkable

from ..models import ContextDelta, WorkspaceContext

PassLogger = Union[logging.Logger, logging.LoggerAdapter]


@runtime_checkable
class AnalysisPass(Protocol):
    """Structural contract for passes; no base class is required.

    ``execute`` treats the context as read-only and returns the additions it
    wants merged, or ``None`` when it has nothing to contribute. Raising marks
    the pass as failed.
    """

    name: str
    description: str
    dependencies: Sequence[str]
    config_keys: Sequence[str]

    def execute(
        self, ctx: WorkspaceContext, logger: PassLogger
    ) -> Optional[ContextDelta]:  # pragma: no cover - protocol
        ...


ExecuteFn = Callable[[WorkspaceContext, PassLogger], Optional[ContextDelta]]


@dataclass(frozen=True)
class PassDefinition:
    """Immutable, function-backed pass."""

    name: str
    run: ExecuteFn
    description: str = ""
    dependencies: Tuple[str, ...] = field(default_factory=tuple)
    config_keys: Tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        # Accept any sequence from callers but store tuples.
        object.__setattr__(self, "dependencies", tuple(self.dependencies))
        object.__setattr__(self, "config_keys", tuple(self.config_keys))

    def execute(self, ctx: WorkspaceContext, logger: PassLogger) -> Optional[ContextDelta]:
        return self.run(ctx, logger)


__all__ = ["AnalysisPass", "ExecuteFn", "PassDefinition", "PassLogger"]
