"""Scenario catalogues: baseline and AI-suggested scenarios per endpoint.

A catalogue is a YAML document shaped like::

    service: customer-service
    POST /customers:
      happy_case:
        - Create customer with valid payload returns 201
      error_case:
        - text: Missing email returns 400
          priority: P1
    GET_CustomerById:
      # happy_case:
      #   - Fetch existing customer

The YAML parser collapses several distinct situations into the same value
(an absent key, ``key:`` with nothing under it, and a key whose block is
entirely commented out).  Orphan classification depends on telling "present
but empty" apart from "absent", so the raw text is scanned line by line in
addition to being parsed.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Mapping

import yaml

from src.coverage_engine.registry import EndpointRegistry
from src.coverage_engine.text import strip_markers
from src.shared.constants import SCENARIO_CATEGORIES, SERVICE_KEY
from src.shared.errors import CatalogueFormatError, ConfigurationError, UnknownEndpointError
from src.shared.models import (
    CatalogueEntryState,
    Priority,
    Scenario,
    ScenarioCategory,
    SourceKind,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Raw-text scanning
# ---------------------------------------------------------------------------

_TOP_LEVEL_KEY_RE = re.compile(
    r"""^(?P<key>"(?:[^"\\]|\\.)*"|'[^']*'|[^\s#'"\-][^:]*(?::(?![\s]|$)[^:]*)*):(?:\s+(?P<rest>.*))?$"""
)
_COMMENTED_KEY_RE = re.compile(
    r"""^#\s*(?P<key>(?:GET|POST|PUT|PATCH|DELETE|HEAD|OPTIONS)[\s_][^:]*(?::(?![\s]|$)[^:]*)*):\s*(?:#.*)?$""",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class _RawEntry:
    """What the text scan learned about one top-level key."""
    key: str
    line: int
    inline_value: str | None
    block_lines: int
    commented_lines: int

    @property
    def fully_commented(self) -> bool:
        return (
            self.inline_value is None
            and self.block_lines == 0
            and self.commented_lines > 0
        )


def _unquote(key: str) -> str:
    key = key.strip()
    if len(key) >= 2 and key[0] == key[-1] and key[0] in ("'", '"'):
        return key[1:-1]
    return key


def _strip_inline_comment(value: str) -> str:
    return re.sub(r"(?:^|\s+)#.*$", "", value).strip()


def scan_entries(text: str, source: str = "") -> tuple[dict[str, _RawEntry], dict[str, int]]:
    """Scan raw catalogue text for top-level entries.

    Returns:
        ``(entries, commented_keys)``: present entries by key, and
        endpoint-looking keys that appear only as commented-out lines,
        mapped to their line number.

    Raises:
        CatalogueFormatError: the same top-level key appears twice.
    """
    entries: dict[str, _RawEntry] = {}
    commented: dict[str, int] = {}
    lines = text.splitlines()

    current_key: str | None = None
    current: dict[str, Any] = {}

    def _close() -> None:
        if current_key is not None:
            entries[current_key] = _RawEntry(key=current_key, **current)

    for index, line in enumerate(lines, start=1):
        if not line.strip() or line.strip() == "---":
            continue
        if line[0] in (" ", "\t"):
            if current_key is not None:
                if line.strip().startswith("#"):
                    current["commented_lines"] += 1
                else:
                    current["block_lines"] += 1
            continue
        if line.startswith("#"):
            match = _COMMENTED_KEY_RE.match(line)
            if match:
                commented.setdefault(_unquote(match.group("key")), index)
            continue

        match = _TOP_LEVEL_KEY_RE.match(line)
        if not match:
            # Not a key line; the YAML parser reports anything malformed.
            continue
        _close()
        key = _unquote(match.group("key"))
        if key in entries:
            raise CatalogueFormatError(
                f"Duplicate endpoint entry '{key}' (first defined on line "
                f"{entries[key].line})",
                source=source,
                line=index,
            )
        rest = match.group("rest")
        current_key = key
        current = {
            "line": index,
            "inline_value": _strip_inline_comment(rest) if rest else None,
            "block_lines": 0,
            "commented_lines": 0,
        }
        if current["inline_value"] == "":
            current["inline_value"] = None
    _close()

    for key in list(commented):
        if key in entries:
            del commented[key]
    return entries, commented


# ---------------------------------------------------------------------------
# Priority rules
# ---------------------------------------------------------------------------


def normalize_priority(value: Any) -> Priority:
    """Map free-form priority labels onto P0..P3.  Unknown labels become P3."""
    if value is None or value == "":
        return Priority.P3
    label = str(value).upper()
    if re.search(r"P0|CRITICAL|BLOCKER", label):
        return Priority.P0
    if re.search(r"P1|HIGH|MAJOR", label):
        return Priority.P1
    if re.search(r"P2|MEDIUM|NORMAL", label):
        return Priority.P2
    return Priority.P3


def infer_priority(text: str) -> Priority:
    """Infer a priority from scenario wording."""
    lowered = text.lower()
    if any(word in lowered for word in ("critical", "security", "auth")):
        return Priority.P0
    if any(word in lowered for word in ("error", "invalid", "fail")):
        return Priority.P1
    if any(word in lowered for word in ("edge", "boundary")):
        return Priority.P2
    return Priority.P3


# ---------------------------------------------------------------------------
# Catalogue
# ---------------------------------------------------------------------------


class ScenarioCatalogue:
    """Scenarios of one kind (baseline or AI-suggested), keyed by endpoint.

    Keys are endpoint references as written in the source until
    :meth:`bind` maps them onto canonical registry keys.
    """

    def __init__(
        self,
        source_kind: SourceKind = SourceKind.BASELINE,
        source: str = "",
        service: str = "",
    ) -> None:
        self.source_kind = source_kind
        self.source = source
        self.service = service
        self._scenarios: dict[str, tuple[Scenario, ...]] = {}
        self._states: dict[str, CatalogueEntryState] = {}
        self._lines: dict[str, int] = {}

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_file(cls, path: Path | str, source_kind: SourceKind = SourceKind.BASELINE) -> ScenarioCatalogue:
        path = Path(path)
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ConfigurationError(f"Cannot read scenario catalogue: {exc}", source=str(path)) from exc
        return cls.from_text(text, source_kind=source_kind, source=str(path))

    @classmethod
    def from_text(
        cls,
        text: str,
        source_kind: SourceKind = SourceKind.BASELINE,
        source: str = "",
    ) -> ScenarioCatalogue:
        """Parse catalogue YAML, recording empty, null and commented entries."""
        raw_entries, commented = scan_entries(text, source=source)
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            mark = getattr(exc, "problem_mark", None)
            line = mark.line + 1 if mark is not None else None
            problem = getattr(exc, "problem", None) or str(exc)
            raise CatalogueFormatError(
                f"Invalid YAML: {problem}", source=source, line=line
            ) from exc

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise CatalogueFormatError(
                "Catalogue must be a mapping of endpoint entries", source=source, line=1
            )

        service = data.get(SERVICE_KEY)
        catalogue = cls(
            source_kind=source_kind,
            source=source,
            service=str(service) if service is not None else "",
        )

        for raw_key, value in data.items():
            key = str(raw_key)
            if key == SERVICE_KEY:
                continue
            raw = raw_entries.get(key)
            line = raw.line if raw else None
            scenarios = catalogue._parse_entry(key, value, line)
            if scenarios:
                state = CatalogueEntryState.POPULATED
            elif raw is not None and raw.fully_commented:
                state = CatalogueEntryState.COMMENTED
            elif value is None:
                state = CatalogueEntryState.NULL
            else:
                state = CatalogueEntryState.EMPTY
            catalogue._add(key, scenarios, state, line)

        for key, line in commented.items():
            catalogue._add(key, (), CatalogueEntryState.COMMENTED, line)

        logger.debug(
            "Loaded %s catalogue %s: %d entries, %d scenarios",
            source_kind.value, source or "<memory>", len(catalogue), catalogue.total(),
        )
        return catalogue

    @classmethod
    def from_mapping(
        cls,
        data: Mapping[str, Any],
        source_kind: SourceKind = SourceKind.BASELINE,
        source: str = "",
    ) -> ScenarioCatalogue:
        """Build from an in-memory mapping.

        Values may be sequences of :class:`Scenario` objects, or the same
        category mapping the YAML format uses.  ``None`` marks a present
        but null entry.
        """
        catalogue = cls(source_kind=source_kind, source=source)
        for key, value in data.items():
            if key == SERVICE_KEY:
                catalogue.service = str(value)
                continue
            if isinstance(value, (list, tuple)) and all(isinstance(s, Scenario) for s in value):
                scenarios = tuple(
                    s if s.endpoint_key == key else _rekey(s, key) for s in value
                )
            else:
                scenarios = catalogue._parse_entry(key, value, None)
            if scenarios:
                state = CatalogueEntryState.POPULATED
            elif value is None:
                state = CatalogueEntryState.NULL
            else:
                state = CatalogueEntryState.EMPTY
            catalogue._add(key, scenarios, state, None)
        return catalogue

    def bind(self, registry: EndpointRegistry) -> ScenarioCatalogue:
        """Return a copy keyed by canonical endpoint keys.

        Raises:
            UnknownEndpointError: a reference does not resolve; the error
                names this catalogue's source and the entry's line.
            CatalogueFormatError: two references resolve to the same endpoint.
        """
        bound = ScenarioCatalogue(self.source_kind, self.source, self.service)
        for ref in self._scenarios:
            line = self._lines.get(ref)
            try:
                endpoint = registry.resolve_reference(ref)
            except UnknownEndpointError:
                if self._states[ref] is CatalogueEntryState.COMMENTED and ref not in registry:
                    # A commented-out entry for an endpoint that no longer exists.
                    logger.debug("Ignoring commented-out entry %s in %s", ref, self.source)
                    continue
                raise UnknownEndpointError(ref, source=self.source, line=line) from None
            if endpoint.key in bound._scenarios:
                if self._states[ref] is CatalogueEntryState.COMMENTED:
                    continue
                raise CatalogueFormatError(
                    f"Duplicate endpoint entry: '{ref}' and another entry both "
                    f"refer to {endpoint.key}",
                    source=self.source,
                    line=line,
                )
            scenarios = tuple(_rekey(s, endpoint.key) for s in self._scenarios[ref])
            bound._add(endpoint.key, scenarios, self._states[ref], line)
        return bound

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def scenarios_for(self, key: str) -> tuple[Scenario, ...]:
        """Scenarios for *key*; empty for absent and empty entries alike."""
        return self._scenarios.get(key, ())

    def count(self, key: str) -> int:
        return len(self.scenarios_for(key))

    def state_for(self, key: str) -> CatalogueEntryState:
        return self._states.get(key, CatalogueEntryState.ABSENT)

    def line_for(self, key: str) -> int | None:
        return self._lines.get(key)

    def keys(self) -> list[str]:
        return sorted(self._scenarios)

    def all_scenarios(self) -> list[Scenario]:
        return [s for key in self.keys() for s in self._scenarios[key]]

    def total(self) -> int:
        return sum(len(v) for v in self._scenarios.values())

    def __contains__(self, key: object) -> bool:
        return key in self._scenarios

    def __len__(self) -> int:
        return len(self._scenarios)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _add(
        self,
        key: str,
        scenarios: Iterable[Scenario],
        state: CatalogueEntryState,
        line: int | None,
    ) -> None:
        self._scenarios[key] = tuple(scenarios)
        self._states[key] = state
        if line is not None:
            self._lines[key] = line

    def _parse_entry(self, key: str, value: Any, line: int | None) -> tuple[Scenario, ...]:
        if value is None:
            return ()
        if not isinstance(value, dict):
            raise CatalogueFormatError(
                f"Entry '{key}' must map categories to scenario lists, "
                f"got {type(value).__name__}",
                source=self.source,
                line=line,
            )
        scenarios: list[Scenario] = []
        for category_name, items in value.items():
            if category_name not in SCENARIO_CATEGORIES:
                raise CatalogueFormatError(
                    f"Entry '{key}' has unknown category '{category_name}' "
                    f"(expected one of {', '.join(SCENARIO_CATEGORIES)})",
                    source=self.source,
                    line=line,
                )
            if items is None:
                continue
            if not isinstance(items, list):
                raise CatalogueFormatError(
                    f"Category '{category_name}' of '{key}' must be a list",
                    source=self.source,
                    line=line,
                )
            category = ScenarioCategory(category_name)
            for item in items:
                scenarios.append(self._parse_item(key, category, item, line))
        return tuple(scenarios)

    def _parse_item(
        self,
        key: str,
        category: ScenarioCategory,
        item: Any,
        line: int | None,
    ) -> Scenario:
        explicit_priority: Any = None
        if isinstance(item, dict):
            text = item.get("text", item.get("scenario"))
            explicit_priority = item.get("priority")
        else:
            text = item
        if not isinstance(text, str) or not strip_markers(text):
            raise CatalogueFormatError(
                f"Scenario under '{key}.{category.value}' must be non-empty text",
                source=self.source,
                line=line,
            )
        text = strip_markers(text)
        priority = (
            normalize_priority(explicit_priority)
            if explicit_priority is not None
            else infer_priority(text)
        )
        return Scenario(
            endpoint_key=key,
            category=category,
            text=text,
            source_kind=self.source_kind,
            priority=priority,
        )


def _rekey(scenario: Scenario, key: str) -> Scenario:
    return Scenario(
        endpoint_key=key,
        category=scenario.category,
        text=scenario.text,
        source_kind=scenario.source_kind,
        priority=scenario.priority,
    )


def load_catalogue(
    path: Path | str | None,
    source_kind: SourceKind = SourceKind.BASELINE,
) -> ScenarioCatalogue:
    """Load a catalogue file; a missing AI-suggested file yields an empty catalogue."""
    if path is None or (source_kind is SourceKind.AI_SUGGESTED and not Path(path).exists()):
        if path is not None:
            logger.info("No AI-suggested scenarios at %s", path)
        return ScenarioCatalogue(source_kind=source_kind, source=str(path or ""))
    return ScenarioCatalogue.from_file(path, source_kind=source_kind)
