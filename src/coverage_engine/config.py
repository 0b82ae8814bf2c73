"""Configuration dataclasses and loader for the coverage engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from src.shared.constants import DEFAULT_MAX_SNAPSHOTS
from src.shared.errors import ConfigurationError


@dataclass
class MatchingConfig:
    """Configuration for oracle calls and verdict aggregation."""

    oracle_timeout_s: float = 60.0
    max_concurrent_oracle_calls: int = 4
    full_confidence_threshold: str = "medium"


@dataclass
class IndexConfig:
    """Configuration for attributing tests to endpoints."""

    patch_markers: list[str] = field(
        default_factory=lambda: ["patch", "partial", "email"]
    )


@dataclass
class PriorityConfig:
    """Priority policy for entries that do not carry their own priority."""

    orphan_api: str = "P0"
    business_orphan_test: str = "P1"


@dataclass
class CompletenessConfig:
    """Configuration for the Phase 2 completeness check."""

    min_common_words: int = 4
    high_priority_categories: list[str] = field(
        default_factory=lambda: ["security", "error_case"]
    )


@dataclass
class ReportingConfig:
    """Configuration for history snapshots."""

    history_dir: str = ".traceability/history"
    max_snapshots: int = DEFAULT_MAX_SNAPSHOTS


@dataclass
class EngineConfig:
    """Top-level configuration composing all sub-configs."""

    matching: MatchingConfig = field(default_factory=MatchingConfig)
    index: IndexConfig = field(default_factory=IndexConfig)
    priority: PriorityConfig = field(default_factory=PriorityConfig)
    completeness: CompletenessConfig = field(default_factory=CompletenessConfig)
    reporting: ReportingConfig = field(default_factory=ReportingConfig)
    service: str = ""


_SECTIONS: dict[str, type] = {
    "matching": MatchingConfig,
    "index": IndexConfig,
    "priority": PriorityConfig,
    "completeness": CompletenessConfig,
    "reporting": ReportingConfig,
}


def _pick(data: dict[str, Any], cls: type) -> dict[str, Any]:
    """Filter *data* to only keys accepted by *cls*."""
    valid = {f.name for f in cls.__dataclass_fields__.values()}
    return {k: v for k, v in data.items() if k in valid}


def _check_types(name: str, cls: type, values: dict[str, Any], path: Path) -> None:
    """Reject values whose type differs from the field default's type."""
    defaults = cls()
    for key, value in values.items():
        expected = type(getattr(defaults, key))
        if expected is float:
            valid = isinstance(value, (int, float)) and not isinstance(value, bool)
        elif expected is int:
            valid = isinstance(value, int) and not isinstance(value, bool)
        else:
            valid = isinstance(value, expected)
        if not valid:
            raise ConfigurationError(
                f"Config field '{name}.{key}' must be {expected.__name__}, "
                f"got {type(value).__name__}",
                source=str(path),
            )


def load_engine_config(path: Path | str | None = None) -> EngineConfig:
    """Load engine configuration from a YAML file.

    Missing top-level sections fall back to defaults.  Unknown keys are
    silently ignored so that forward-compatible config files work.

    Args:
        path: Path to config YAML.  If ``None`` or the file does not
              exist, returns full defaults.

    Returns:
        Populated configuration dataclass.

    Raises:
        ConfigurationError: invalid YAML, a non-mapping file or section,
            or a field of the wrong type.
    """
    if path is None:
        return EngineConfig()

    path = Path(path)
    if not path.exists():
        return EngineConfig()

    try:
        with open(path, "r", encoding="utf-8") as f:
            raw: dict[str, Any] = yaml.safe_load(f) or {}
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Invalid config YAML: {exc}", source=str(path)) from exc
    if not isinstance(raw, dict):
        raise ConfigurationError("Config file must be a mapping", source=str(path))

    top_level = _pick(raw, EngineConfig)
    for key in _SECTIONS:
        top_level.pop(key, None)

    sections: dict[str, Any] = {}
    for name, cls in _SECTIONS.items():
        data = raw.get(name) or {}
        if not isinstance(data, dict):
            raise ConfigurationError(
                f"Config section '{name}' must be a mapping, got {type(data).__name__}",
                source=str(path),
            )
        values = _pick(data, cls)
        _check_types(name, cls, values, path)
        try:
            sections[name] = cls(**values)
        except TypeError as exc:
            raise ConfigurationError(f"Invalid '{name}' section: {exc}", source=str(path)) from exc
    try:
        return EngineConfig(**sections, **top_level)
    except TypeError as exc:
        raise ConfigurationError(f"Invalid config: {exc}", source=str(path)) from exc
