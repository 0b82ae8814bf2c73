"""Gap and priority analysis.

Gaps are derived, never authored: every NONE or PARTIAL verdict becomes a
gap carrying its scenario's priority.  Orphan APIs and business orphan tests
are added with policy priorities.  Technical orphan tests are informational
and never enter the gap list.

Every list produced here uses the same ordering: a stable sort by priority
(P0 first), then endpoint key, then scenario text.
"""

from __future__ import annotations

import logging
from typing import Iterable, Mapping, Sequence

from src.coverage_engine.catalogue import ScenarioCatalogue, normalize_priority
from src.coverage_engine.config import PriorityConfig
from src.coverage_engine.orphan_categorizer import OrphanCategorizer
from src.coverage_engine.registry import EndpointRegistry
from src.coverage_engine.test_index import UnitTestIndex
from src.shared.models import (
    Coverage,
    Endpoint,
    Gap,
    GapKind,
    MatchVerdict,
    OrphanKind,
    OrphanTest,
)

logger = logging.getLogger(__name__)


def gap_sort_key(gap: Gap) -> tuple[int, str, str, str]:
    return (gap.priority.rank, gap.endpoint_key, gap.scenario_text, gap.test_id)


def sort_gaps(gaps: Iterable[Gap]) -> list[Gap]:
    """Stable sort by priority, endpoint key, scenario text."""
    return sorted(gaps, key=gap_sort_key)


def _orphan_test_sort_key(orphan: OrphanTest) -> tuple[int, str, str, str, int]:
    rank = orphan.priority.rank if orphan.priority is not None else 99
    endpoint = orphan.attributed_endpoints[0] if orphan.attributed_endpoints else ""
    return (
        rank,
        endpoint,
        orphan.test.declared_name,
        orphan.test.file_path,
        orphan.test.line_number,
    )


def sort_orphan_tests(orphans: Iterable[OrphanTest]) -> list[OrphanTest]:
    """Business orphans in priority order, then technical orphans."""
    orphans = list(orphans)
    business = [o for o in orphans if o.kind is OrphanKind.BUSINESS]
    technical = [o for o in orphans if o.kind is OrphanKind.TECHNICAL]
    return sorted(business, key=_orphan_test_sort_key) + sorted(
        technical, key=lambda o: (o.subtype, o.test.file_path, o.test.line_number, o.test.id)
    )


class GapAnalyzer:
    """Derives orphans and the prioritised gap list from one run's inputs."""

    def __init__(
        self,
        registry: EndpointRegistry,
        baseline: ScenarioCatalogue,
        test_index: UnitTestIndex,
        config: PriorityConfig | None = None,
    ) -> None:
        self._registry = registry
        self._baseline = baseline
        self._index = test_index
        self._config = config or PriorityConfig()
        self._orphan_api_priority = normalize_priority(self._config.orphan_api)
        self._categorizer = OrphanCategorizer(
            business_priority=normalize_priority(self._config.business_orphan_test)
        )

    # ------------------------------------------------------------------
    # Orphans
    # ------------------------------------------------------------------

    def is_orphan_api(self, endpoint_key: str) -> bool:
        """Zero baseline scenarios *and* zero attributed tests."""
        return (
            self._baseline.count(endpoint_key) == 0
            and not self._index.tests_for(endpoint_key)
        )

    def orphan_apis(self) -> list[Endpoint]:
        return [e for e in self._registry.endpoints() if self.is_orphan_api(e.key)]

    def orphan_tests(self) -> list[OrphanTest]:
        """Tests attributed to no endpoint, or only to scenario-less endpoints."""
        orphans: list[OrphanTest] = []
        for test in self._index.tests:
            keys = self._index.endpoints_for(test)
            if keys and any(self._baseline.count(k) > 0 for k in keys):
                continue
            orphans.append(self._categorizer.categorize(test, keys))
        return sort_orphan_tests(orphans)

    # ------------------------------------------------------------------
    # Gaps
    # ------------------------------------------------------------------

    def gaps(
        self,
        verdicts: Mapping[str, Sequence[MatchVerdict]],
        orphan_apis: Sequence[Endpoint],
        orphan_tests: Sequence[OrphanTest],
    ) -> list[Gap]:
        gaps: list[Gap] = []
        for key in sorted(verdicts):
            for verdict in verdicts[key]:
                gap = self._gap_for_verdict(verdict)
                if gap is not None:
                    gaps.append(gap)

        for endpoint in orphan_apis:
            gaps.append(
                Gap(
                    endpoint_key=endpoint.key,
                    scenario=None,
                    priority=self._orphan_api_priority,
                    reason="No baseline scenarios and no unit tests",
                    recommendation=(
                        f"Add baseline scenarios for {endpoint.method.value} "
                        f"{endpoint.path_template} and create unit tests for them"
                    ),
                    kind=GapKind.ORPHAN_API,
                )
            )

        for orphan in orphan_tests:
            if orphan.kind is not OrphanKind.BUSINESS or orphan.priority is None:
                continue
            test = orphan.test
            gaps.append(
                Gap(
                    endpoint_key=orphan.attributed_endpoints[0] if orphan.attributed_endpoints else "",
                    scenario=None,
                    priority=orphan.priority,
                    reason=orphan.reason,
                    recommendation=(
                        f"Add a baseline scenario for '{test.description or test.declared_name}' "
                        f"({test.file_path}:{test.line_number})"
                    ),
                    kind=GapKind.BUSINESS_ORPHAN_TEST,
                    test_id=test.id,
                )
            )

        ordered = sort_gaps(gaps)
        logger.info("Derived %d gaps", len(ordered))
        return ordered

    @staticmethod
    def _gap_for_verdict(verdict: MatchVerdict) -> Gap | None:
        scenario = verdict.scenario
        if verdict.coverage is Coverage.FULL:
            return None
        if verdict.coverage is Coverage.PARTIAL:
            tests = ", ".join(t.id for t in verdict.matched_tests)
            return Gap(
                endpoint_key=scenario.endpoint_key,
                scenario=scenario,
                priority=scenario.priority,
                reason=verdict.explanation or "Partially covered",
                recommendation=f"Extend {tests} to fully cover: {scenario.text}",
                kind=GapKind.PARTIAL_SCENARIO,
            )
        return Gap(
            endpoint_key=scenario.endpoint_key,
            scenario=scenario,
            priority=scenario.priority,
            reason="No unit test found",
            recommendation=f"Create a unit test covering: {scenario.text}",
            kind=GapKind.UNCOVERED_SCENARIO,
        )
