"""Registry of analysis passes and dependency-graph validation."""

from __future__ import annotations

from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from ..errors import CyclicDependencyError, DuplicatePassError, UnknownDependencyError
from .base import AnalysisPass

_VISITING = 1
_DONE = 2


class PassRegistry:
    """Holds the passes for one run, in registration order."""

    def __init__(self, passes: Iterable[AnalysisPass] = ()) -> None:
        self._passes: Dict[str, AnalysisPass] = {}
        self._dependencies: Dict[str, Tuple[str, ...]] = {}
        self._config_keys: Dict[str, Tuple[str, ...]] = {}
        for item in passes:
            self.register(item)

    def register(self, analysis_pass: AnalysisPass) -> None:
        if not isinstance(analysis_pass, AnalysisPass):
            raise TypeError(f"{analysis_pass!r} does not satisfy the AnalysisPass contract")
        name = analysis_pass.name
        if not isinstance(name, str) or not name:
            raise ValueError("Pass name must be a non-empty string")
        if name in self._passes:
            raise DuplicatePassError(name)
        self._passes[name] = analysis_pass
        # Declarations are fixed at registration time.
        self._dependencies[name] = tuple(analysis_pass.dependencies)
        self._config_keys[name] = tuple(analysis_pass.config_keys)

    def get(self, name: str) -> Optional[AnalysisPass]:
        return self._passes.get(name)

    def names(self) -> List[str]:
        return list(self._passes)

    def passes(self) -> List[AnalysisPass]:
        return list(self._passes.values())

    def dependencies_of(self, name: str) -> Tuple[str, ...]:
        return self._dependencies[name]

    def config_keys_of(self, name: str) -> Tuple[str, ...]:
        return self._config_keys[name]

    def validate(self) -> List[str]:
        """Check the graph and return the passes in dependency order.

        Raises ``UnknownDependencyError`` for dangling references and
        ``CyclicDependencyError`` carrying the full cycle otherwise.
        """
        for name, dependencies in self._dependencies.items():
            for dependency in dependencies:
                if dependency not in self._passes:
                    raise UnknownDependencyError(name, dependency)

        ordered: List[str] = []
        state: Dict[str, int] = {}
        stack: List[str] = []

        def visit(name: str) -> None:
            mark = state.get(name)
            if mark == _DONE:
                return
            if mark == _VISITING:
                raise CyclicDependencyError(stack[stack.index(name):])
            state[name] = _VISITING
            stack.append(name)
            for dependency in self._dependencies[name]:
                visit(dependency)
            stack.pop()
            state[name] = _DONE
            ordered.append(name)

        for name in self._passes:
            visit(name)
        return ordered

    def __contains__(self, name: object) -> bool:
        return name in self._passes

    def __iter__(self) -> Iterator[AnalysisPass]:
        return iter(list(self._passes.values()))

    def __len__(self) -> int:
        return len(self._passes)


__all__ = ["PassRegistry"]
