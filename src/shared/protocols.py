"""Runtime-checkable protocols for the collaborators around the engine."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Protocol, Sequence, runtime_checkable

from src.shared.models import Endpoint, OracleResponse, Scenario, UnitTest


@runtime_checkable
class SemanticMatchOracle(Protocol):
    """Decides which candidate tests exercise a scenario."""

    async def match(
        self, scenario: Scenario, candidate_tests: Sequence[UnitTest]
    ) -> OracleResponse:
        """Match one scenario against the tests attributed to its endpoint.

        Args:
            scenario: The baseline scenario to look for.
            candidate_tests: Tests attributed to the scenario's endpoint.

        Returns:
            The matches found, each with confidence and coverage.

        Raises:
            OracleUnavailableError: The backing service or key is missing.
        """
        ...


@runtime_checkable
class SpecParser(Protocol):
    """Turns an API description into endpoints."""

    def parse(self, source: Path | str) -> list[Endpoint]:
        """Parse *source* into endpoints with normalised paths and stable keys."""
        ...


@runtime_checkable
class UnitTestParser(Protocol):
    """Discovers unit tests in source files of one language."""

    language: str

    def parse(self, files: Iterable[Path]) -> list[UnitTest]:
        """Parse *files*, skipping any that cannot be read or parsed."""
        ...
