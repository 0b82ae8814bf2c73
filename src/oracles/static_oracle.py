"""Deterministic oracle that replays recorded match decisions.

Used by the test suite and by ``traceability analyze --oracle-responses`` to
re-run an analysis without a live model.  Scenarios without a recorded
answer get an empty response, which the coordinator turns into a NONE
verdict.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Mapping, Sequence

from pydantic import ValidationError

from src.coverage_engine.text import normalize_text
from src.oracles.payloads import MatchPayload, OraclePayload, ReplayFile
from src.shared.errors import ConfigurationError
from src.shared.models import OracleResponse, Scenario, UnitTest

logger = logging.getLogger(__name__)


class StaticOracle:
    """Answers from a fixed table keyed by ``(endpoint key, scenario text)``."""

    def __init__(
        self,
        responses: Mapping[tuple[str, str], Sequence[MatchPayload | Mapping[str, Any]]] | None = None,
    ) -> None:
        self._responses: dict[tuple[str, str], OraclePayload] = {}
        for (endpoint_key, scenario_text), matches in (responses or {}).items():
            self.record(endpoint_key, scenario_text, matches)
        self.calls: list[tuple[str, str]] = []

    @classmethod
    def from_json_file(cls, path: Path | str) -> StaticOracle:
        """Load a replay file.

        Raises:
            ConfigurationError: the file is unreadable or malformed.
        """
        path = Path(path)
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
            replay = ReplayFile.model_validate(raw)
        except (OSError, json.JSONDecodeError, ValidationError) as exc:
            raise ConfigurationError(f"Invalid oracle replay file: {exc}", source=str(path)) from exc

        oracle = cls()
        for entry in replay.responses:
            oracle.record(entry.endpoint, entry.scenario, entry.matches)
        logger.info("Loaded %d recorded oracle answers from %s", len(replay.responses), path)
        return oracle

    def record(
        self,
        endpoint_key: str,
        scenario_text: str,
        matches: Sequence[MatchPayload | Mapping[str, Any]],
    ) -> None:
        payload = OraclePayload.model_validate(
            {"matches": [m.model_dump() if isinstance(m, MatchPayload) else dict(m) for m in matches]}
        )
        self._responses[(endpoint_key, normalize_text(scenario_text))] = payload

    async def match(
        self, scenario: Scenario, candidate_tests: Sequence[UnitTest]
    ) -> OracleResponse:
        self.calls.append((scenario.endpoint_key, scenario.text))
        payload = self._responses.get((scenario.endpoint_key, normalize_text(scenario.text)))
        if payload is None:
            return OracleResponse()
        return payload.to_response(candidate_tests)
