"""Configuration loading for ctxscan (ctx.yaml)."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

import yaml

from .errors import CtxscanError

CONFIG_FILENAME = "ctx.yaml"

MODES = ("single-repo", "multi-repo", "mono-repo")
RELATIONSHIP_TYPES = ("dependency", "api-consumer", "shared-db", "shared-types", "event")

DEFAULT_EXCLUDES = (
    "node_modules",
    ".git",
    "dist",
    "build",
    "coverage",
    "__pycache__",
    ".venv",
)


class ConfigError(CtxscanError):
    """Raised when the configuration file cannot be parsed."""


@dataclass
class RepoEntry:
    """A repository declared explicitly in ctx.yaml."""

    name: str
    path: str
    language: Optional[str] = None
    framework: Optional[str] = None
    description: Optional[str] = None


@dataclass
class DeclaredRelationship:
    """A relationship asserted by the user rather than inferred."""

    source: str
    target: str
    type: str
    description: Optional[str] = None


@dataclass
class ContextOptions:
    """Scan tuning knobs."""

    output_dir: str = ".ctx"
    max_file_size: int = 100_000
    max_depth: int = 5
    exclude_patterns: List[str] = field(default_factory=lambda: list(DEFAULT_EXCLUDES))


@dataclass
class CtxConfig:
    """Represents the settings defined in ctx.yaml."""

    root: Path
    version: str = "1"
    workspace: str = "."
    mode: Optional[str] = None
    repos: List[RepoEntry] = field(default_factory=list)
    relationships: List[DeclaredRelationship] = field(default_factory=list)
    options: ContextOptions = field(default_factory=ContextOptions)
    flags: Dict[str, bool] = field(default_factory=dict)

    def flag_enabled(self, key: str) -> bool:
        """Return the flag value; keys that were never set count as enabled."""
        return self.flags.get(key, True)


def load_config(config_path: Path) -> CtxConfig:
    """Load configuration from disk."""
    config_file = _resolve_config_path(config_path)
    root = config_file.parent.resolve()

    if not config_file.exists():
        return CtxConfig(root=root)

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{CONFIG_FILENAME} must contain a mapping at the root")

    version = data.get("version", "1")
    if not isinstance(version, (str, int, float)):
        raise ConfigError('"version" must be a string')

    workspace = data.get("workspace", ".")
    if not isinstance(workspace, str):
        raise ConfigError('"workspace" must be a string')

    mode = _as_str(data.get("mode"))
    if mode is not None and mode not in MODES:
        raise ConfigError(f'"mode" must be one of: {", ".join(MODES)}')

    return CtxConfig(
        root=root,
        version=str(version),
        workspace=workspace,
        mode=mode,
        repos=_parse_repos(data.get("repos")),
        relationships=_parse_relationships(data.get("relationships")),
        options=_parse_options(data.get("options")),
        flags=flatten_flags(_as_dict(data.get("flags"))),
    )


def default_config(root: Path, repos: Sequence[RepoEntry] = (), *, mode: str | None = None) -> CtxConfig:
    """Return the configuration written by ``ctxscan init``."""
    return CtxConfig(root=root.resolve(), workspace=".", mode=mode, repos=list(repos))


def serialize_config(config: CtxConfig) -> str:
    """Render ``config`` back into ctx.yaml form."""
    payload: Dict[str, Any] = {
        "version": config.version,
        "workspace": config.workspace,
    }
    if config.mode:
        payload["mode"] = config.mode
    payload["repos"] = [
        {key: value for key, value in vars(entry).items() if value is not None}
        for entry in config.repos
    ]
    payload["relationships"] = [
        _drop_none(
            {
                "from": rel.source,
                "to": rel.target,
                "type": rel.type,
                "description": rel.description,
            }
        )
        for rel in config.relationships
    ]
    payload["options"] = {
        "output_dir": config.options.output_dir,
        "max_file_size": config.options.max_file_size,
        "max_depth": config.options.max_depth,
        "exclude_patterns": list(config.options.exclude_patterns),
    }
    if config.flags:
        payload["flags"] = dict(sorted(config.flags.items()))
    return yaml.safe_dump(payload, sort_keys=False, width=120)


def flatten_flags(data: Mapping[str, Any], prefix: str = "") -> Dict[str, bool]:
    """Flatten nested flag mappings into dotted keys."""
    flags: Dict[str, bool] = {}
    for key, value in data.items():
        dotted = f"{prefix}{key}"
        if isinstance(value, dict):
            flags.update(flatten_flags(value, prefix=f"{dotted}."))
            continue
        parsed = _as_bool(value)
        if parsed is None:
            raise ConfigError(f'flag "{dotted}" must be a boolean')
        flags[dotted] = parsed
    return flags


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded or {}


def _parse_repos(raw: Any) -> List[RepoEntry]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ConfigError('"repos" must be a list')
    repos: List[RepoEntry] = []
    for index, entry in enumerate(raw):
        if not isinstance(entry, dict):
            raise ConfigError(f"repos[{index}] must be a mapping")
        name = entry.get("name")
        path = entry.get("path")
        if not isinstance(path, str):
            raise ConfigError(f"repos[{index}].path must be a string")
        if not isinstance(name, str):
            raise ConfigError(f"repos[{index}].name must be a string")
        repos.append(
            RepoEntry(
                name=name,
                path=path,
                language=_as_str(entry.get("language")),
                framework=_as_str(entry.get("framework")),
                description=_as_str(entry.get("description")),
            )
        )
    return repos


def _parse_relationships(raw: Any) -> List[DeclaredRelationship]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ConfigError('"relationships" must be a list')
    relationships: List[DeclaredRelationship] = []
    for index, entry in enumerate(raw):
        if not isinstance(entry, dict):
            raise ConfigError(f"relationships[{index}] must be a mapping")
        source = entry.get("from")
        target = entry.get("to")
        kind = entry.get("type")
        if not isinstance(source, str):
            raise ConfigError(f"relationships[{index}].from must be a string")
        if not isinstance(target, str):
            raise ConfigError(f"relationships[{index}].to must be a string")
        if kind not in RELATIONSHIP_TYPES:
            raise ConfigError(
                f"relationships[{index}].type must be one of: {', '.join(RELATIONSHIP_TYPES)}"
            )
        relationships.append(
            DeclaredRelationship(
                source=source,
                target=target,
                type=kind,
                description=_as_str(entry.get("description")),
            )
        )
    return relationships


def _parse_options(raw: Any) -> ContextOptions:
    options = ContextOptions()
    if raw is None:
        return options
    if not isinstance(raw, dict):
        raise ConfigError('"options" must be a mapping')
    output_dir = _as_str(raw.get("output_dir"))
    if output_dir:
        options.output_dir = output_dir
    max_file_size = _as_int(raw.get("max_file_size"))
    if max_file_size is not None:
        options.max_file_size = max_file_size
    max_depth = _as_int(raw.get("max_depth"))
    if max_depth is not None:
        options.max_depth = max_depth
    if "exclude_patterns" in raw:
        options.exclude_patterns = _as_str_list(raw.get("exclude_patterns"))
    return options


def _drop_none(values: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in values.items() if value is not None}


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float)) and not isinstance(value, bool) else None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "on", "1"}:
            return True
        if lowered in {"false", "no", "off", "0"}:
            return False
    return None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float))]
    return []


__all__ = [
    "CONFIG_FILENAME",
    "ConfigError",
    "ContextOptions",
    "CtxConfig",
    "DeclaredRelationship",
    "RepoEntry",
    "default_config",
    "flatten_flags",
    "load_config",
    "serialize_config",
]
