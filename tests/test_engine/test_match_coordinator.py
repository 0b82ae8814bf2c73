"""Tests for src.coverage_engine.match_coordinator.

Covers verdict folding (FULL / PARTIAL / NONE), deterministic ordering,
mandatory PARTIAL explanations, and oracle failure propagation.
"""
from __future__ import annotations

import asyncio

import pytest

from src.coverage_engine.cache import MatchCache
from src.coverage_engine.catalogue import ScenarioCatalogue
from src.coverage_engine.config import MatchingConfig
from src.coverage_engine.match_coordinator import MatchCoordinator, build_verdict
from src.coverage_engine.test_index import UnitTestIndex
from src.shared.errors import (
    ConfigurationError,
    OracleContractError,
    OracleTimeoutError,
    OracleUnavailableError,
)
from src.shared.models import (
    Confidence,
    Coverage,
    HttpMethod,
    OracleMatch,
    OracleResponse,
)

from tests.conftest import make_scenario, make_test


SCENARIO = make_scenario("GET_CustomerById", "Fetch existing customer returns 200")

TEST_A = make_test("a", HttpMethod.GET, name="test_get_customer", file_path="tests/a_test.py", line=3)
TEST_B = make_test("b", HttpMethod.GET, name="test_get_customer_ok", file_path="tests/b_test.py", line=1)


def _match(test, coverage, confidence, explanation=None):
    return OracleMatch(test=test, confidence=confidence, coverage=coverage, explanation=explanation)


# ---------------------------------------------------------------------------
# Fake oracles
# ---------------------------------------------------------------------------


class RecordingOracle:
    """Returns a fixed response and records the peak concurrency."""

    def __init__(self, response=None, delay: float = 0.0):
        self.response = response or OracleResponse()
        self.delay = delay
        self.calls = 0
        self.active = 0
        self.peak = 0

    async def match(self, scenario, candidate_tests):
        self.calls += 1
        self.active += 1
        self.peak = max(self.peak, self.active)
        try:
            await asyncio.sleep(self.delay)
            return self.response
        finally:
            self.active -= 1


class FailingOracle:
    def __init__(self, exc):
        self.exc = exc

    async def match(self, scenario, candidate_tests):
        raise self.exc


class WrongTypeOracle:
    async def match(self, scenario, candidate_tests):
        return {"matches": []}


# ---------------------------------------------------------------------------
# build_verdict
# ---------------------------------------------------------------------------


class TestBuildVerdict:
    def test_full_with_medium_confidence(self):
        response = OracleResponse((_match(TEST_A, Coverage.FULL, Confidence.MEDIUM),))
        verdict = build_verdict(SCENARIO, [TEST_A], response)
        assert verdict.coverage is Coverage.FULL
        assert verdict.matched_tests == (TEST_A,)

    def test_full_with_low_confidence_is_partial(self):
        response = OracleResponse((_match(TEST_A, Coverage.FULL, Confidence.LOW),))
        verdict = build_verdict(SCENARIO, [TEST_A], response)
        assert verdict.coverage is Coverage.PARTIAL
        assert "low confidence" in verdict.explanation

    def test_partial_requires_explanation(self):
        response = OracleResponse((_match(TEST_A, Coverage.PARTIAL, Confidence.HIGH),))
        with pytest.raises(OracleContractError):
            build_verdict(SCENARIO, [TEST_A], response)

    def test_partial_keeps_explanation(self):
        response = OracleResponse(
            (_match(TEST_A, Coverage.PARTIAL, Confidence.HIGH, "Response body is not asserted"),)
        )
        verdict = build_verdict(SCENARIO, [TEST_A], response)
        assert verdict.coverage is Coverage.PARTIAL
        assert verdict.explanation == "Response body is not asserted"

    def test_no_matches_is_none(self):
        verdict = build_verdict(SCENARIO, [TEST_A], OracleResponse())
        assert verdict.coverage is Coverage.NONE
        assert verdict.matched_tests == ()

    def test_matches_outside_candidates_are_discarded(self):
        stranger = make_test("post_test", HttpMethod.POST)
        response = OracleResponse((_match(stranger, Coverage.FULL, Confidence.HIGH),))
        verdict = build_verdict(SCENARIO, [TEST_A], response)
        assert verdict.coverage is Coverage.NONE

    def test_none_coverage_matches_are_ignored(self):
        response = OracleResponse((_match(TEST_A, Coverage.NONE, Confidence.HIGH),))
        assert build_verdict(SCENARIO, [TEST_A], response).coverage is Coverage.NONE

    def test_all_ties_retained_in_order(self):
        response = OracleResponse(
            (
                _match(TEST_B, Coverage.FULL, Confidence.HIGH),
                _match(TEST_A, Coverage.FULL, Confidence.HIGH),
            )
        )
        verdict = build_verdict(SCENARIO, [TEST_A, TEST_B], response)
        assert [t.id for t in verdict.matched_tests] == ["a", "b"]

    def test_higher_confidence_sorts_first(self):
        response = OracleResponse(
            (
                _match(TEST_A, Coverage.FULL, Confidence.MEDIUM),
                _match(TEST_B, Coverage.FULL, Confidence.HIGH),
            )
        )
        verdict = build_verdict(SCENARIO, [TEST_A, TEST_B], response)
        assert [t.id for t in verdict.matched_tests] == ["b", "a"]
        assert verdict.confidence is Confidence.HIGH

    def test_strongest_report_per_test_wins(self):
        response = OracleResponse(
            (
                _match(TEST_A, Coverage.PARTIAL, Confidence.HIGH, "missing status check"),
                _match(TEST_A, Coverage.FULL, Confidence.HIGH),
            )
        )
        verdict = build_verdict(SCENARIO, [TEST_A], response)
        assert verdict.coverage is Coverage.FULL
        assert verdict.matched_tests == (TEST_A,)

    def test_threshold_high(self):
        response = OracleResponse((_match(TEST_A, Coverage.FULL, Confidence.MEDIUM),))
        verdict = build_verdict(SCENARIO, [TEST_A], response, full_threshold=Confidence.HIGH)
        assert verdict.coverage is Coverage.PARTIAL


# ---------------------------------------------------------------------------
# MatchCoordinator
# ---------------------------------------------------------------------------


@pytest.fixture
def baseline(registry):
    return ScenarioCatalogue.from_mapping(
        {
            "GET_CustomerById": [
                SCENARIO,
                make_scenario("GET_CustomerById", "Unknown customer returns 404"),
            ],
            "POST_CreateCustomer": [make_scenario("POST_CreateCustomer", "Create customer returns 201")],
        }
    ).bind(registry)


@pytest.fixture
def index(registry):
    return UnitTestIndex([TEST_A, TEST_B], registry)


class TestMatchCoordinator:
    @pytest.mark.asyncio
    async def test_one_verdict_per_scenario(self, registry, baseline, index):
        oracle = RecordingOracle(OracleResponse((_match(TEST_A, Coverage.FULL, Confidence.HIGH),)))
        coordinator = MatchCoordinator(oracle, index)
        verdicts = await coordinator.run(registry.endpoints(), baseline)
        assert len(verdicts["GET_CustomerById"]) == 2
        assert all(v.coverage is Coverage.FULL for v in verdicts["GET_CustomerById"])
        assert verdicts["PUT_UpdateCustomer"] == ()

    @pytest.mark.asyncio
    async def test_no_candidates_means_no_oracle_call(self, registry, baseline, index):
        oracle = RecordingOracle()
        coordinator = MatchCoordinator(oracle, index)
        verdicts = await coordinator.run(registry.endpoints(), baseline)
        assert verdicts["POST_CreateCustomer"][0].coverage is Coverage.NONE
        assert oracle.calls == 2
        assert coordinator.oracle_calls == 2

    @pytest.mark.asyncio
    async def test_concurrency_is_bounded(self, registry, baseline, index):
        oracle = RecordingOracle(delay=0.01)
        coordinator = MatchCoordinator(oracle, index, MatchingConfig(max_concurrent_oracle_calls=1))
        await coordinator.run(registry.endpoints(), baseline)
        assert oracle.peak == 1

    @pytest.mark.asyncio
    async def test_cache_is_reused(self, registry, baseline, index):
        cache = MatchCache()
        first = RecordingOracle()
        await MatchCoordinator(first, index, cache=cache).run(registry.endpoints(), baseline)
        second = RecordingOracle()
        await MatchCoordinator(second, index, cache=cache).run(registry.endpoints(), baseline)
        assert first.calls == 2
        assert second.calls == 0
        assert cache.hits == 2

    @pytest.mark.asyncio
    async def test_unavailable_propagates(self, registry, baseline, index):
        coordinator = MatchCoordinator(FailingOracle(OracleUnavailableError("no key")), index)
        with pytest.raises(OracleUnavailableError):
            await coordinator.run(registry.endpoints(), baseline)

    @pytest.mark.asyncio
    async def test_timeout_propagates(self, registry, baseline, index):
        oracle = RecordingOracle(delay=1.0)
        coordinator = MatchCoordinator(oracle, index, MatchingConfig(oracle_timeout_s=0.01))
        with pytest.raises(OracleTimeoutError) as exc_info:
            await coordinator.run(registry.endpoints(), baseline)
        assert exc_info.value.endpoint_key == "GET_CustomerById"
        assert exc_info.value.timeout == 0.01

    @pytest.mark.asyncio
    async def test_wrong_response_type(self, registry, baseline, index):
        coordinator = MatchCoordinator(WrongTypeOracle(), index)
        with pytest.raises(OracleContractError):
            await coordinator.run(registry.endpoints(), baseline)

    def test_invalid_threshold(self, index):
        with pytest.raises(ConfigurationError):
            MatchCoordinator(RecordingOracle(), index, MatchingConfig(full_confidence_threshold="certain"))
