"""Entry point of the coverage engine.

:func:`analyze` is a pure function of its inputs and of the oracle's
responses.  All input validation happens before the first oracle call; any
fatal error aborts the run and no partial result is produced.
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from typing import Any, Iterable, Mapping, Union

from src.coverage_engine.aggregator import aggregate
from src.coverage_engine.cache import MatchCache
from src.coverage_engine.catalogue import ScenarioCatalogue
from src.coverage_engine.config import EngineConfig
from src.coverage_engine.gap_analyzer import GapAnalyzer
from src.coverage_engine.match_coordinator import MatchCoordinator
from src.coverage_engine.phase_calculator import TwoPhaseCalculator
from src.coverage_engine.registry import EndpointRegistry
from src.coverage_engine.test_index import UnitTestIndex
from src.shared.logging import run_scope
from src.shared.models import CoverageResult, Endpoint, Scenario, SourceKind, UnitTest
from src.shared.protocols import SemanticMatchOracle

logger = logging.getLogger(__name__)

ScenarioInput = Union[ScenarioCatalogue, Mapping[str, Any], Iterable[Scenario], None]


def _as_registry(endpoints: EndpointRegistry | Iterable[Endpoint]) -> EndpointRegistry:
    if isinstance(endpoints, EndpointRegistry):
        endpoints.freeze()
        return endpoints
    return EndpointRegistry.from_endpoints(endpoints)


def _as_catalogue(scenarios: ScenarioInput, source_kind: SourceKind) -> ScenarioCatalogue:
    if scenarios is None:
        return ScenarioCatalogue(source_kind=source_kind)
    if isinstance(scenarios, ScenarioCatalogue):
        return scenarios
    if isinstance(scenarios, Mapping):
        return ScenarioCatalogue.from_mapping(scenarios, source_kind=source_kind)
    grouped: dict[str, list[Scenario]] = defaultdict(list)
    for scenario in scenarios:
        grouped[scenario.endpoint_key].append(scenario)
    return ScenarioCatalogue.from_mapping(grouped, source_kind=source_kind)


async def analyze_async(
    endpoints: EndpointRegistry | Iterable[Endpoint],
    baseline_scenarios: ScenarioInput,
    ai_scenarios: ScenarioInput,
    tests: UnitTestIndex | Iterable[UnitTest],
    oracle: SemanticMatchOracle,
    *,
    config: EngineConfig | None = None,
    cache: MatchCache | None = None,
) -> CoverageResult:
    """Run the full analysis.

    Args:
        endpoints: Endpoints (or a prepared registry) of the service.
        baseline_scenarios: QA-authored scenarios, as a catalogue, a mapping
            of endpoint reference to scenarios, or a flat scenario iterable.
        ai_scenarios: AI-suggested scenarios in the same shapes, or ``None``.
        tests: Discovered unit tests, or a prepared index.
        oracle: Semantic match oracle.
        config: Engine configuration; defaults apply when omitted.
        cache: Optional oracle response cache owned by the caller.

    Returns:
        The immutable coverage result.

    Raises:
        ConfigurationError: duplicate or unknown endpoint keys, malformed
            catalogues.  Raised before any oracle call.
        OracleError: the oracle was unavailable, timed out, or answered
            outside its contract.
    """
    config = config or EngineConfig()
    with run_scope():
        registry = _as_registry(endpoints)
        baseline = _as_catalogue(baseline_scenarios, SourceKind.BASELINE).bind(registry)
        suggestions = _as_catalogue(ai_scenarios, SourceKind.AI_SUGGESTED).bind(registry)
        if isinstance(tests, UnitTestIndex):
            index = tests
        else:
            index = UnitTestIndex(tests, registry, patch_markers=config.index.patch_markers)

        logger.info(
            "Analyzing %d endpoints, %d baseline scenarios, %d AI scenarios, %d tests",
            len(registry), baseline.total(), suggestions.total(), len(index),
        )

        coordinator = MatchCoordinator(oracle, index, config=config.matching, cache=cache)
        verdicts = await coordinator.run(registry.endpoints(), baseline)

        analyzer = GapAnalyzer(registry, baseline, index, config=config.priority)
        orphan_apis = analyzer.orphan_apis()
        orphan_keys = {e.key for e in orphan_apis}
        orphan_tests = analyzer.orphan_tests()

        calculator = TwoPhaseCalculator(config.completeness)
        per_endpoint = {}
        phase2 = {}
        for endpoint in registry.endpoints():
            attributed = index.tests_for(endpoint.key)
            per_endpoint[endpoint.key] = calculator.endpoint_coverage(
                endpoint,
                verdicts.get(endpoint.key, ()),
                baseline.state_for(endpoint.key),
                endpoint.key in orphan_keys,
                attributed,
            )
            phase2[endpoint.key] = calculator.completeness(
                endpoint.key,
                baseline.scenarios_for(endpoint.key),
                suggestions.scenarios_for(endpoint.key),
                index.sorted_tests_for(endpoint.key),
            )

        result = aggregate(
            per_endpoint,
            analyzer.gaps(verdicts, orphan_apis, orphan_tests),
            orphan_apis,
            orphan_tests,
            index.shared_attributions(),
            phase2,
        )
        logger.info(
            "Analysis complete: %.1f%% covered, %d gaps, %d orphan APIs, %d orphan tests",
            result.summary.coverage_percent,
            len(result.gaps),
            len(result.orphan_apis),
            len(result.orphan_tests),
        )
        return result


def analyze(
    endpoints: EndpointRegistry | Iterable[Endpoint],
    baseline_scenarios: ScenarioInput,
    ai_scenarios: ScenarioInput,
    tests: UnitTestIndex | Iterable[UnitTest],
    oracle: SemanticMatchOracle,
    *,
    config: EngineConfig | None = None,
    cache: MatchCache | None = None,
) -> CoverageResult:
    """Synchronous wrapper around :func:`analyze_async`."""
    return asyncio.run(
        analyze_async(
            endpoints,
            baseline_scenarios,
            ai_scenarios,
            tests,
            oracle,
            config=config,
            cache=cache,
        )
    )
