"""Report aggregator: merges the derived views into one immutable result."""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping, Sequence

from src.shared.models import (
    CompletenessView,
    CoverageResult,
    CoverageSummary,
    Endpoint,
    EndpointCoverage,
    Gap,
    OrphanKind,
    OrphanTest,
    Priority,
    SharedAttribution,
)


def summarize(
    per_endpoint: Mapping[str, EndpointCoverage],
    gaps: Sequence[Gap],
    orphan_apis: Sequence[Endpoint],
    orphan_tests: Sequence[OrphanTest],
) -> CoverageSummary:
    total = sum(c.baseline_count for c in per_endpoint.values())
    full = sum(c.full_count for c in per_endpoint.values())
    partial = sum(c.partial_count for c in per_endpoint.values())
    by_priority = {p.value: 0 for p in Priority}
    for gap in gaps:
        by_priority[gap.priority.value] += 1
    business = sum(1 for o in orphan_tests if o.kind is OrphanKind.BUSINESS)

    return CoverageSummary(
        total_endpoints=len(per_endpoint),
        total_scenarios=total,
        fully_covered=full,
        partially_covered=partial,
        not_covered=total - full - partial,
        coverage_percent=round(full / total * 100, 1) if total else 0.0,
        gaps_by_priority=MappingProxyType(by_priority),
        orphan_api_count=len(orphan_apis),
        business_orphan_count=business,
        technical_orphan_count=len(orphan_tests) - business,
        critical_issues=by_priority[Priority.P0.value],
    )


def aggregate(
    per_endpoint: Mapping[str, EndpointCoverage],
    gaps: Sequence[Gap],
    orphan_apis: Sequence[Endpoint],
    orphan_tests: Sequence[OrphanTest],
    shared_attributions: Sequence[SharedAttribution],
    phase2: Mapping[str, CompletenessView],
) -> CoverageResult:
    """Assemble the terminal :class:`CoverageResult`.

    Maps are re-keyed in sorted order and wrapped read-only; sequences are
    frozen into tuples.  Ordering inside *gaps* and *orphan_tests* is kept
    as given.
    """
    endpoints = {key: per_endpoint[key] for key in sorted(per_endpoint)}
    completeness = {key: phase2[key] for key in sorted(phase2)}
    return CoverageResult(
        per_endpoint=MappingProxyType(endpoints),
        gaps=tuple(gaps),
        orphan_apis=tuple(sorted(orphan_apis, key=lambda e: e.key)),
        orphan_tests=tuple(orphan_tests),
        shared_attributions=tuple(shared_attributions),
        summary=summarize(endpoints, gaps, orphan_apis, orphan_tests),
        phase2=MappingProxyType(completeness),
    )
