"""Built-in analysis passes and plugin discovery."""

from __future__ import annotations

from importlib import metadata
from typing import Callable, Iterable, List, Sequence, Set

from ..logging import get_logger
from ..pipeline.base import AnalysisPass
from ..pipeline.registry import PassRegistry
from .api_discovery import ApiDiscoveryPass
from .base import Pass
from .convention_detection import ConventionDetectionPass
from .env_scanning import EnvScanningPass
from .manifest_parsing import ManifestParsingPass
from .relationship_inference import RelationshipInferencePass
from .repo_detection import RepoDetectionPass
from .structure_mapping import StructureMappingPass
from .type_extraction import TypeExtractionPass

ENTRY_POINT_GROUP = "ctxscan.passes"

logger = get_logger("passes")

# Registration order; within a wave passes run and merge in this order.
_BUILTIN_FACTORIES: dict[str, Callable[[], AnalysisPass]] = {
    "repo-detection": RepoDetectionPass,
    "manifest-parsing": ManifestParsingPass,
    "structure-mapping": StructureMappingPass,
    "api-discovery": ApiDiscoveryPass,
    "type-extraction": TypeExtractionPass,
    "env-scanning": EnvScanningPass,
    "relationship-inference": RelationshipInferencePass,
    "convention-detection": ConventionDetectionPass,
}


def builtin_pass_names() -> List[str]:
    return list(_BUILTIN_FACTORIES)


def discover_passes(
    enabled: Sequence[str] | None = None, *, include_plugins: bool = True
) -> List[AnalysisPass]:
    """Return instantiated passes, built-ins first, honoring optional enabled names."""

    wanted: Set[str] | None = set(enabled) if enabled is not None else None
    missing: Set[str] = set(wanted or ())

    passes: List[AnalysisPass] = []
    seen: Set[str] = set()

    def _add(instance: AnalysisPass, origin: str) -> None:
        name = instance.name
        if wanted is not None and name not in wanted:
            return
        if name in seen:
            logger.warning("Ignoring %s: a pass named '%s' is already registered", origin, name)
            return
        passes.append(instance)
        seen.add(name)
        missing.discard(name)

    for factory in _BUILTIN_FACTORIES.values():
        _add(factory(), "built-in pass")

    if include_plugins:
        for entry in _iter_entry_points():
            try:
                loaded = entry.load()
            except Exception as exc:
                raise RuntimeError(f"Failed to load pass entry point '{entry.name}': {exc}") from exc

            _add(_coerce_pass(loaded), f"plugin entry point '{entry.name}'")

    if missing:
        raise ValueError(f"Unknown passes requested: {', '.join(sorted(missing))}")

    return passes


def default_registry(
    enabled: Sequence[str] | None = None, *, include_plugins: bool = True
) -> PassRegistry:
    """Return a registry holding the built-in passes followed by plugin passes."""
    return PassRegistry(discover_passes(enabled, include_plugins=include_plugins))


def _coerce_pass(obj: object) -> AnalysisPass:
    if isinstance(obj, type):
        obj = obj()
    elif callable(obj) and not isinstance(obj, AnalysisPass):
        obj = obj()
    if isinstance(obj, AnalysisPass):
        return obj
    raise TypeError("Pass entry point must be an AnalysisPass, a pass class, or a factory")


def _iter_entry_points() -> Iterable[metadata.EntryPoint]:
    return metadata.entry_points(group=ENTRY_POINT_GROUP)


__all__ = [
    "ApiDiscoveryPass",
    "ConventionDetectionPass",
    "ENTRY_POINT_GROUP",
    "EnvScanningPass",
    "ManifestParsingPass",
    "Pass",
    "RelationshipInferencePass",
    "RepoDetectionPass",
    "StructureMappingPass",
    "TypeExtractionPass",
    "builtin_pass_names",
    "default_registry",
    "discover_passes",
]
