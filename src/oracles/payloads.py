"""Pydantic v2 models for oracle payloads (model replies and replay files)."""
from __future__ import annotations

from typing import Any, Sequence

from pydantic import BaseModel, Field, model_validator

from src.shared.models import Confidence, Coverage, OracleMatch, OracleResponse, UnitTest

HIGH_CONFIDENCE_SCORE = 0.8
MEDIUM_CONFIDENCE_SCORE = 0.5


def confidence_from_score(score: float) -> Confidence:
    """Map a 0..1 (or 0..100) score onto the three confidence levels."""
    if score > 1:
        score = score / 100
    if score >= HIGH_CONFIDENCE_SCORE:
        return Confidence.HIGH
    if score >= MEDIUM_CONFIDENCE_SCORE:
        return Confidence.MEDIUM
    return Confidence.LOW


class MatchPayload(BaseModel):
    """One match as reported by an oracle."""
    test_id: str = Field(..., min_length=1)
    confidence: Confidence
    coverage: Coverage
    explanation: str | None = None

    model_config = {"populate_by_name": True, "extra": "ignore"}

    @model_validator(mode="before")
    @classmethod
    def normalise_fields(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if "test_id" not in data:
            for alias in ("test", "testId", "id"):
                if alias in data:
                    data["test_id"] = data.pop(alias)
                    break
        confidence = data.get("confidence")
        if isinstance(confidence, (int, float)) and not isinstance(confidence, bool):
            data["confidence"] = confidence_from_score(float(confidence))
        elif isinstance(confidence, str):
            data["confidence"] = confidence.strip().lower()
        coverage = data.get("coverage")
        if isinstance(coverage, str):
            data["coverage"] = coverage.strip().lower()
        return data


class OraclePayload(BaseModel):
    """The full answer for one scenario."""
    matches: list[MatchPayload] = Field(default_factory=list)

    model_config = {"extra": "ignore"}

    def to_response(self, candidates: Sequence[UnitTest]) -> OracleResponse:
        """Resolve test ids against *candidates*.

        Unknown ids are kept as bare tests so the coordinator can report
        and discard them.
        """
        by_id = {t.id: t for t in candidates}
        return OracleResponse(
            matches=tuple(
                OracleMatch(
                    test=by_id.get(m.test_id) or UnitTest(id=m.test_id, file_path=""),
                    confidence=m.confidence,
                    coverage=m.coverage,
                    explanation=m.explanation,
                )
                for m in self.matches
            )
        )


class ReplayEntry(BaseModel):
    """Recorded oracle answer for one scenario of one endpoint."""
    endpoint: str
    scenario: str
    matches: list[MatchPayload] = Field(default_factory=list)


class ReplayFile(BaseModel):
    """Replay file consumed by :class:`~src.oracles.static_oracle.StaticOracle`."""
    responses: list[ReplayEntry] = Field(default_factory=list)
