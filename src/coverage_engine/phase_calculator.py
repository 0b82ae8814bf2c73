"""Two-phase coverage calculation.

Phase 1 is binding: the share of baseline scenarios with a FULL verdict.
Phase 2 is informational: how much of the AI-suggested scenario set the
baseline already satisfies.  The two are computed by separate methods from
separate inputs and land in separate structures, so Phase 2 can never move
the Phase 1 verdict.
"""

from __future__ import annotations

from typing import Iterable, Sequence

from src.coverage_engine.config import CompletenessConfig
from src.coverage_engine.text import common_word_count, normalize_text, split_identifier
from src.shared.models import (
    CatalogueEntryState,
    CompletenessSuggestion,
    CompletenessView,
    Coverage,
    Endpoint,
    EndpointCoverage,
    MatchVerdict,
    Scenario,
    UnitTest,
)


def phase1_ratio(full_count: int, baseline_count: int) -> float:
    """``full / baseline``; 0.0 when there are no baseline scenarios."""
    if baseline_count <= 0:
        return 0.0
    return full_count / baseline_count


def is_fully_covered(full_count: int, baseline_count: int) -> bool:
    return baseline_count > 0 and full_count == baseline_count


class TwoPhaseCalculator:
    """Builds the Phase 1 and Phase 2 views of an endpoint."""

    def __init__(self, config: CompletenessConfig | None = None) -> None:
        self._config = config or CompletenessConfig()
        self._high_priority = {c.lower() for c in self._config.high_priority_categories}

    # ------------------------------------------------------------------
    # Phase 1
    # ------------------------------------------------------------------

    def endpoint_coverage(
        self,
        endpoint: Endpoint,
        verdicts: Sequence[MatchVerdict],
        catalogue_state: CatalogueEntryState,
        is_orphan: bool,
        attributed_tests: Iterable[UnitTest] = (),
    ) -> EndpointCoverage:
        full = sum(1 for v in verdicts if v.coverage is Coverage.FULL)
        partial = sum(1 for v in verdicts if v.coverage is Coverage.PARTIAL)
        none = len(verdicts) - full - partial
        baseline_count = len(verdicts)

        attributed = sorted(t.id for t in attributed_tests)
        matched = {t.id for v in verdicts for t in v.matched_tests}
        return EndpointCoverage(
            endpoint=endpoint,
            verdicts=tuple(verdicts),
            baseline_count=baseline_count,
            full_count=full,
            partial_count=partial,
            none_count=none,
            phase1_ratio=phase1_ratio(full, baseline_count),
            fully_covered=is_fully_covered(full, baseline_count),
            is_orphan=is_orphan,
            catalogue_state=catalogue_state,
            attributed_tests=tuple(attributed),
            unmatched_tests=tuple(t for t in attributed if t not in matched),
        )

    # ------------------------------------------------------------------
    # Phase 2
    # ------------------------------------------------------------------

    def overlaps(self, suggestion: Scenario, baseline: Scenario) -> bool:
        """Same normalised text, or same category with enough shared words."""
        if normalize_text(suggestion.text) == normalize_text(baseline.text):
            return True
        return (
            suggestion.category is baseline.category
            and common_word_count(suggestion.text, baseline.text) >= self._config.min_common_words
        )

    def completeness(
        self,
        endpoint_key: str,
        baseline: Sequence[Scenario],
        suggestions: Sequence[Scenario],
        candidate_tests: Iterable[UnitTest] = (),
    ) -> CompletenessView:
        candidates = list(candidate_tests)
        satisfied = 0
        remaining: list[CompletenessSuggestion] = []
        for suggestion in suggestions:
            if any(self.overlaps(suggestion, b) for b in baseline):
                satisfied += 1
                continue
            remaining.append(
                CompletenessSuggestion(
                    scenario=suggestion,
                    high_priority=suggestion.category.value in self._high_priority,
                    test_exists=self._test_exists(suggestion, candidates),
                )
            )

        remaining.sort(
            key=lambda s: (s.scenario.priority.rank, s.scenario.endpoint_key, s.scenario.text)
        )
        return CompletenessView(
            endpoint_key=endpoint_key,
            baseline_count=len(baseline),
            ai_count=len(suggestions),
            satisfied_count=satisfied,
            ratio=(satisfied / len(suggestions)) if suggestions else None,
            suggestions=tuple(remaining),
        )

    def _test_exists(self, suggestion: Scenario, candidates: Sequence[UnitTest]) -> bool:
        for test in candidates:
            text = f"{test.description} {split_identifier(test.declared_name)}"
            if common_word_count(suggestion.text, text) >= self._config.min_common_words:
                return True
        return False
