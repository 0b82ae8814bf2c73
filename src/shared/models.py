"""Data model for scenario traceability and coverage analysis.

Every record produced during a run is a frozen dataclass so that verdicts,
gaps and the final :class:`CoverageResult` cannot be patched after they are
created.  Enumerations subclass ``str`` so they serialise to their plain
values.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from pathlib import PurePath
from types import MappingProxyType
from typing import Any, Mapping


class HttpMethod(str, Enum):
    """HTTP verbs an endpoint can be registered under."""
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"


class ScenarioCategory(str, Enum):
    """Category buckets used by the scenario catalogues."""
    HAPPY_CASE = "happy_case"
    EDGE_CASE = "edge_case"
    ERROR_CASE = "error_case"
    SECURITY = "security"


class SourceKind(str, Enum):
    """Which catalogue a scenario came from."""
    BASELINE = "baseline"
    AI_SUGGESTED = "ai_suggested"


class Priority(str, Enum):
    """Gap priority.  ``P0`` sorts first."""
    P0 = "P0"
    P1 = "P1"
    P2 = "P2"
    P3 = "P3"

    @property
    def rank(self) -> int:
        return int(self.value[1])


class Coverage(str, Enum):
    """Per-scenario coverage verdict."""
    NONE = "none"
    PARTIAL = "partial"
    FULL = "full"


class Confidence(str, Enum):
    """Confidence reported by the semantic match oracle."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _CONFIDENCE_RANK[self]


_CONFIDENCE_RANK: dict[Confidence, int] = {
    Confidence.LOW: 0,
    Confidence.MEDIUM: 1,
    Confidence.HIGH: 2,
}


class CatalogueEntryState(str, Enum):
    """How an endpoint appears in a scenario catalogue."""
    ABSENT = "absent"
    NULL = "null"
    EMPTY = "empty"
    COMMENTED = "commented"
    POPULATED = "populated"


class OrphanKind(str, Enum):
    """Orphan test classification."""
    BUSINESS = "business"
    TECHNICAL = "technical"


class GapKind(str, Enum):
    """Origin of a gap entry."""
    UNCOVERED_SCENARIO = "uncovered_scenario"
    PARTIAL_SCENARIO = "partial_scenario"
    ORPHAN_API = "orphan_api"
    BUSINESS_ORPHAN_TEST = "business_orphan_test"


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Endpoint:
    """A single API operation.  ``key`` is its only identity."""
    key: str
    method: HttpMethod
    path_template: str
    path_segments: frozenset[str] = frozenset()

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "method": self.method.value,
            "path_template": self.path_template,
            "path_segments": sorted(self.path_segments),
        }


@dataclass(frozen=True)
class Scenario:
    """An expected test case for one endpoint."""
    endpoint_key: str
    category: ScenarioCategory
    text: str
    source_kind: SourceKind = SourceKind.BASELINE
    priority: Priority = Priority.P3

    def to_dict(self) -> dict[str, Any]:
        return {
            "endpoint_key": self.endpoint_key,
            "category": self.category.value,
            "text": self.text,
            "source_kind": self.source_kind.value,
            "priority": self.priority.value,
        }


@dataclass(frozen=True)
class UnitTest:
    """A unit test discovered in the codebase."""
    id: str
    file_path: str
    line_number: int = 0
    declared_name: str = ""
    endpoint_key_candidates: frozenset[str] = frozenset()
    method: HttpMethod | None = None
    description: str = ""
    suite: str = ""
    language: str = ""

    @property
    def file_name(self) -> str:
        return PurePath(self.file_path).name

    @property
    def descriptive_text(self) -> str:
        """Lower-cased suite, name and description joined by spaces."""
        parts = [self.suite, self.declared_name, self.description]
        return " ".join(p for p in parts if p).lower()

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "file_path": self.file_path,
            "line_number": self.line_number,
            "declared_name": self.declared_name,
            "description": self.description,
            "suite": self.suite,
            "method": self.method.value if self.method else None,
            "endpoint_key_candidates": sorted(self.endpoint_key_candidates),
        }


# ---------------------------------------------------------------------------
# Oracle exchange
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class OracleMatch:
    """One test the oracle considers relevant to a scenario."""
    test: UnitTest
    confidence: Confidence
    coverage: Coverage
    explanation: str | None = None


@dataclass(frozen=True)
class OracleResponse:
    """Everything the oracle returned for one scenario."""
    matches: tuple[OracleMatch, ...] = ()


# ---------------------------------------------------------------------------
# Derived records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MatchVerdict:
    """Coverage verdict for exactly one baseline scenario."""
    scenario: Scenario
    matched_tests: tuple[UnitTest, ...]
    coverage: Coverage
    confidence: Confidence
    explanation: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "scenario": self.scenario.to_dict(),
            "coverage": self.coverage.value,
            "confidence": self.confidence.value,
            "explanation": self.explanation,
            "matched_tests": [t.id for t in self.matched_tests],
        }


@dataclass(frozen=True)
class EndpointCoverage:
    """Phase 1 view of one endpoint."""
    endpoint: Endpoint
    verdicts: tuple[MatchVerdict, ...]
    baseline_count: int
    full_count: int
    partial_count: int
    none_count: int
    phase1_ratio: float
    fully_covered: bool
    is_orphan: bool
    catalogue_state: CatalogueEntryState
    attributed_tests: tuple[str, ...] = ()
    unmatched_tests: tuple[str, ...] = ()

    @property
    def coverage_percent(self) -> float:
        return round(self.phase1_ratio * 100, 1)

    def to_dict(self) -> dict[str, Any]:
        return {
            "endpoint": self.endpoint.to_dict(),
            "baseline_count": self.baseline_count,
            "full_count": self.full_count,
            "partial_count": self.partial_count,
            "none_count": self.none_count,
            "phase1_ratio": self.phase1_ratio,
            "fully_covered": self.fully_covered,
            "is_orphan": self.is_orphan,
            "catalogue_state": self.catalogue_state.value,
            "attributed_tests": list(self.attributed_tests),
            "unmatched_tests": list(self.unmatched_tests),
            "verdicts": [v.to_dict() for v in self.verdicts],
        }


@dataclass(frozen=True)
class OrphanTest:
    """A test with no scenario-bearing endpoint to belong to."""
    test: UnitTest
    kind: OrphanKind
    subtype: str
    reason: str
    priority: Priority | None = None
    attributed_endpoints: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "test": self.test.to_dict(),
            "kind": self.kind.value,
            "subtype": self.subtype,
            "reason": self.reason,
            "priority": self.priority.value if self.priority else None,
            "attributed_endpoints": list(self.attributed_endpoints),
        }


@dataclass(frozen=True)
class Gap:
    """A missing or incomplete piece of coverage."""
    endpoint_key: str
    scenario: Scenario | None
    priority: Priority
    reason: str
    recommendation: str
    kind: GapKind = GapKind.UNCOVERED_SCENARIO
    test_id: str = ""

    @property
    def scenario_text(self) -> str:
        return self.scenario.text if self.scenario else ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "endpoint_key": self.endpoint_key,
            "scenario": self.scenario.to_dict() if self.scenario else None,
            "priority": self.priority.value,
            "reason": self.reason,
            "recommendation": self.recommendation,
            "kind": self.kind.value,
            "test_id": self.test_id,
        }


@dataclass(frozen=True)
class SharedAttribution:
    """A test attributed to more than one endpoint."""
    test_id: str
    endpoint_keys: tuple[str, ...]

    def to_dict(self) -> dict[str, Any]:
        return {"test_id": self.test_id, "endpoint_keys": list(self.endpoint_keys)}


@dataclass(frozen=True)
class CompletenessSuggestion:
    """An AI-suggested scenario the baseline does not yet satisfy."""
    scenario: Scenario
    high_priority: bool = False
    test_exists: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "scenario": self.scenario.to_dict(),
            "high_priority": self.high_priority,
            "test_exists": self.test_exists,
        }


@dataclass(frozen=True)
class CompletenessView:
    """Phase 2 view of one endpoint.  Informational only."""
    endpoint_key: str
    baseline_count: int
    ai_count: int
    satisfied_count: int
    ratio: float | None
    suggestions: tuple[CompletenessSuggestion, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "endpoint_key": self.endpoint_key,
            "baseline_count": self.baseline_count,
            "ai_count": self.ai_count,
            "satisfied_count": self.satisfied_count,
            "ratio": self.ratio,
            "suggestions": [s.to_dict() for s in self.suggestions],
        }


@dataclass(frozen=True)
class CoverageSummary:
    """Headline numbers across all endpoints."""
    total_endpoints: int = 0
    total_scenarios: int = 0
    fully_covered: int = 0
    partially_covered: int = 0
    not_covered: int = 0
    coverage_percent: float = 0.0
    gaps_by_priority: Mapping[str, int] = field(
        default_factory=lambda: MappingProxyType({})
    )
    orphan_api_count: int = 0
    business_orphan_count: int = 0
    technical_orphan_count: int = 0
    critical_issues: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_endpoints": self.total_endpoints,
            "total_scenarios": self.total_scenarios,
            "fully_covered": self.fully_covered,
            "partially_covered": self.partially_covered,
            "not_covered": self.not_covered,
            "coverage_percent": self.coverage_percent,
            "gaps_by_priority": dict(self.gaps_by_priority),
            "orphan_api_count": self.orphan_api_count,
            "business_orphan_count": self.business_orphan_count,
            "technical_orphan_count": self.technical_orphan_count,
            "critical_issues": self.critical_issues,
        }


@dataclass(frozen=True)
class CoverageResult:
    """Terminal, read-only result of one analysis run.

    ``phase2`` is kept structurally apart from ``per_endpoint`` so that a
    consumer interested only in the binding Phase 1 verdict never touches it.
    """
    per_endpoint: Mapping[str, EndpointCoverage]
    gaps: tuple[Gap, ...]
    orphan_apis: tuple[Endpoint, ...]
    orphan_tests: tuple[OrphanTest, ...]
    shared_attributions: tuple[SharedAttribution, ...]
    summary: CoverageSummary
    phase2: Mapping[str, CompletenessView]

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary": self.summary.to_dict(),
            "per_endpoint": {
                key: cov.to_dict() for key, cov in self.per_endpoint.items()
            },
            "gaps": [g.to_dict() for g in self.gaps],
            "orphan_apis": [e.to_dict() for e in self.orphan_apis],
            "orphan_tests": [o.to_dict() for o in self.orphan_tests],
            "shared_attributions": [s.to_dict() for s in self.shared_attributions],
            "phase2": {key: view.to_dict() for key, view in self.phase2.items()},
        }

    def to_json(self, indent: int | None = 2) -> str:
        """Serialise deterministically.  Key order follows insertion order."""
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)
