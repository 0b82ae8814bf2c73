"""Match coordinator: turns oracle responses into per-scenario verdicts.

For every baseline scenario the oracle is asked which of the endpoint's
attributed tests exercise it.  The responses are folded into exactly one
:class:`~src.shared.models.MatchVerdict` per scenario:

* ``FULL`` when some match covers the scenario fully with at least the
  configured confidence (``MEDIUM`` by default);
* ``PARTIAL`` when matches exist but none qualifies, always with an
  explanation of what is missing;
* ``NONE`` otherwise.

.. rubric:: Concurrency

Oracle calls for all scenarios of all endpoints run concurrently, gated by
an ``asyncio.Semaphore`` created per run.  Each call is wrapped in
``asyncio.wait_for``.  There are no retries: the first failure cancels the
outstanding calls and propagates, so a run never yields a result with
missing verdicts.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable, Sequence

from src.coverage_engine.cache import MatchCache
from src.coverage_engine.catalogue import ScenarioCatalogue
from src.coverage_engine.config import MatchingConfig
from src.coverage_engine.test_index import UnitTestIndex
from src.shared.errors import (
    ConfigurationError,
    OracleContractError,
    OracleTimeoutError,
)
from src.shared.models import (
    Confidence,
    Coverage,
    Endpoint,
    MatchVerdict,
    OracleMatch,
    OracleResponse,
    Scenario,
    UnitTest,
)
from src.shared.protocols import SemanticMatchOracle

logger = logging.getLogger(__name__)

_COVERAGE_RANK: dict[Coverage, int] = {
    Coverage.NONE: 0,
    Coverage.PARTIAL: 1,
    Coverage.FULL: 2,
}


def _strength(match: OracleMatch) -> tuple[int, int]:
    return (_COVERAGE_RANK[match.coverage], match.confidence.rank)


def _match_order(match: OracleMatch) -> tuple[int, str, int, str]:
    return (
        -match.confidence.rank,
        match.test.file_path,
        match.test.line_number,
        match.test.id,
    )


def build_verdict(
    scenario: Scenario,
    candidates: Sequence[UnitTest],
    response: OracleResponse,
    full_threshold: Confidence = Confidence.MEDIUM,
) -> MatchVerdict:
    """Fold one oracle response into a verdict.

    Matches naming tests outside *candidates* are discarded so that a test
    of another endpoint can never cover this scenario.  When the oracle
    reports the same test twice the strongest report wins.

    Raises:
        OracleContractError: a PARTIAL match came back without an
            explanation.
    """
    allowed = {t.id: t for t in candidates}
    best: dict[str, OracleMatch] = {}
    for match in response.matches:
        if match.test.id not in allowed:
            logger.warning(
                "Oracle matched %s to '%s' but it is not attributed to %s; ignoring",
                match.test.id, scenario.text, scenario.endpoint_key,
                extra={"endpoint_key": scenario.endpoint_key, "scenario": scenario.text},
            )
            continue
        if match.coverage is Coverage.NONE:
            continue
        if match.coverage is Coverage.PARTIAL and not (match.explanation or "").strip():
            raise OracleContractError(
                f"Oracle returned PARTIAL for '{scenario.text}' ({scenario.endpoint_key}) "
                f"via {match.test.id} without explaining what is missing"
            )
        previous = best.get(match.test.id)
        if previous is None or _strength(match) > _strength(previous):
            best[match.test.id] = match

    if not best:
        return MatchVerdict(
            scenario=scenario,
            matched_tests=(),
            coverage=Coverage.NONE,
            confidence=Confidence.LOW,
        )

    ranked = sorted(best.values(), key=_match_order)
    matched_tests = tuple(allowed[m.test.id] for m in ranked)
    confidence = ranked[0].confidence

    qualifying = [
        m for m in ranked
        if m.coverage is Coverage.FULL and m.confidence.rank >= full_threshold.rank
    ]
    if qualifying:
        return MatchVerdict(
            scenario=scenario,
            matched_tests=matched_tests,
            coverage=Coverage.FULL,
            confidence=confidence,
            explanation=qualifying[0].explanation,
        )

    reasons: list[str] = []
    for m in ranked:
        if m.coverage is Coverage.PARTIAL:
            reason = m.explanation.strip()  # type: ignore[union-attr]
        else:
            reason = (
                f"{m.test.id} appears to cover the scenario but only with "
                f"{m.confidence.value} confidence"
            )
        if reason not in reasons:
            reasons.append(reason)

    return MatchVerdict(
        scenario=scenario,
        matched_tests=matched_tests,
        coverage=Coverage.PARTIAL,
        confidence=confidence,
        explanation="; ".join(reasons),
    )


class MatchCoordinator:
    """Runs the oracle over every baseline scenario of every endpoint."""

    def __init__(
        self,
        oracle: SemanticMatchOracle,
        test_index: UnitTestIndex,
        config: MatchingConfig | None = None,
        cache: MatchCache | None = None,
    ) -> None:
        self._oracle = oracle
        self._index = test_index
        self._config = config or MatchingConfig()
        self._cache = cache
        try:
            self._threshold = Confidence(self._config.full_confidence_threshold.lower())
        except ValueError:
            raise ConfigurationError(
                f"Unknown confidence threshold '{self._config.full_confidence_threshold}'"
            ) from None
        self.oracle_calls = 0

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def run(
        self,
        endpoints: Iterable[Endpoint],
        baseline: ScenarioCatalogue,
    ) -> dict[str, tuple[MatchVerdict, ...]]:
        """Produce verdicts for every baseline scenario.

        Returns:
            Verdicts per endpoint key, in catalogue order within an endpoint.
        """
        semaphore = asyncio.Semaphore(max(1, self._config.max_concurrent_oracle_calls))
        ordered = sorted(endpoints, key=lambda e: e.key)
        verdicts: dict[str, list[MatchVerdict]] = {e.key: [] for e in ordered}
        owners: list[str] = []
        tasks: list[asyncio.Future[MatchVerdict]] = []

        for endpoint in ordered:
            candidates = self._index.sorted_tests_for(endpoint.key)
            for scenario in baseline.scenarios_for(endpoint.key):
                owners.append(endpoint.key)
                tasks.append(
                    asyncio.ensure_future(self._verdict_for(scenario, candidates, semaphore))
                )

        if not tasks:
            return {key: () for key in verdicts}

        try:
            results: list[MatchVerdict] = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        for key, verdict in zip(owners, results):
            verdicts[key].append(verdict)

        logger.info(
            "Resolved %d scenario verdicts with %d oracle calls", len(results), self.oracle_calls
        )
        return {key: tuple(v) for key, v in verdicts.items()}

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _verdict_for(
        self,
        scenario: Scenario,
        candidates: list[UnitTest],
        semaphore: asyncio.Semaphore,
    ) -> MatchVerdict:
        if not candidates:
            return build_verdict(scenario, candidates, OracleResponse(), self._threshold)

        response = self._cache.get(scenario, candidates) if self._cache is not None else None
        if response is None:
            response = await self._call_oracle(scenario, candidates, semaphore)
            if self._cache is not None:
                self._cache.put(scenario, candidates, response)
        return build_verdict(scenario, candidates, response, self._threshold)

    async def _call_oracle(
        self,
        scenario: Scenario,
        candidates: list[UnitTest],
        semaphore: asyncio.Semaphore,
    ) -> OracleResponse:
        timeout = self._config.oracle_timeout_s
        async with semaphore:
            self.oracle_calls += 1
            try:
                response = await asyncio.wait_for(
                    self._oracle.match(scenario, candidates), timeout=timeout
                )
            except asyncio.TimeoutError:
                logger.error(
                    "Oracle timed out after %ss on %s: %s",
                    timeout, scenario.endpoint_key, scenario.text,
                    extra={"endpoint_key": scenario.endpoint_key, "scenario": scenario.text},
                )
                raise OracleTimeoutError(scenario.endpoint_key, scenario.text, timeout) from None
        if not isinstance(response, OracleResponse):
            raise OracleContractError(
                f"Oracle returned {type(response).__name__} for '{scenario.text}', "
                "expected OracleResponse"
            )
        return response
