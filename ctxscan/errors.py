"""Exception hierarchy for ctxscan."""

from __future__ import annotations

from typing import Sequence


class CtxscanError(RuntimeError):
    """Base class for every error raised by ctxscan."""


class PassRegistryError(CtxscanError):
    """Structural problem with the registered pass set."""


class DuplicatePassError(PassRegistryError):
    """Raised when two passes are registered under the same name."""

    def __init__(self, name: str) -> None:
        super().__init__(f'Pass "{name}" is already registered')
        self.name = name


class UnknownDependencyError(PassRegistryError):
    """Raised when a pass depends on a name that was never registered."""

    def __init__(self, pass_name: str, dependency: str) -> None:
        super().__init__(
            f'Pass "{pass_name}" depends on unknown pass "{dependency}"'
        )
        self.pass_name = pass_name
        self.dependency = dependency


class CyclicDependencyError(PassRegistryError):
    """Raised when the dependency graph contains a cycle."""

    def __init__(self, cycle: Sequence[str]) -> None:
        self.cycle = list(cycle)
        path = " -> ".join([*self.cycle, self.cycle[0]]) if self.cycle else ""
        super().__init__(f"Circular pass dependency: {path}")


class PassExecutionError(CtxscanError):
    """Wraps an exception raised from a pass's ``execute``."""

    def __init__(self, pass_name: str, cause: BaseException) -> None:
        super().__init__(f'Pass "{pass_name}" failed: {cause}')
        self.pass_name = pass_name
        self.cause = cause
        self.__cause__ = cause


__all__ = [
    "CtxscanError",
    "CyclicDependencyError",
    "DuplicatePassError",
    "PassExecutionError",
    "PassRegistryError",
    "UnknownDependencyError",
]
