"""Wave computation over a validated pass registry."""

from __future__ import annotations

from typing import Dict, List, Sequence

from .registry import PassRegistry


def wave_indices(registry: PassRegistry) -> Dict[str, int]:
    """Return the longest-path depth of every pass.

    A pass with no dependencies sits in wave 0; any other pass sits one wave
    after its deepest dependency.
    """
    indices: Dict[str, int] = {}
    for name in registry.validate():
        dependencies = registry.dependencies_of(name)
        indices[name] = 1 + max(indices[dep] for dep in dependencies) if dependencies else 0
    return indices


def compute_waves(registry: PassRegistry) -> List[List[str]]:
    """Group passes into waves ordered by depth, registration order within a wave."""
    indices = wave_indices(registry)
    if not indices:
        return []
    waves: List[List[str]] = [[] for _ in range(max(indices.values()) + 1)]
    for name in registry.names():
        waves[indices[name]].append(name)
    return waves


def flatten_waves(waves: Sequence[Sequence[str]]) -> List[str]:
    """Return the single global order used by the sequential runner."""
    return [name for wave in waves for name in wave]


__all__ = ["compute_waves", "flatten_waves", "wave_indices"]
