"""Exception hierarchy for traceability analysis.

Every exception below is fatal to a run: the engine aborts and produces no
partial result.  Attribution ambiguity is deliberately *not* represented
here; it is recorded in the result instead.
"""
from __future__ import annotations


class TraceabilityError(Exception):
    """Base exception for all traceability errors."""

    pass


# ---------------------------------------------------------------------------
# Input problems (raised before any oracle call)
# ---------------------------------------------------------------------------


class ConfigurationError(TraceabilityError):
    """Untrustworthy input: bad keys, malformed catalogues or specs."""

    def __init__(self, message: str, source: str = "", line: int | None = None) -> None:
        self.source = source
        self.line = line
        self.detail = message
        super().__init__(self._format(message, source, line))

    @staticmethod
    def _format(message: str, source: str, line: int | None) -> str:
        if source and line is not None:
            return f"{source}:{line}: {message}"
        if source:
            return f"{source}: {message}"
        return message


class DuplicateKeyError(ConfigurationError):
    """Raised when an endpoint key is registered twice with different routes."""

    def __init__(self, key: str, existing: str, attempted: str, source: str = "") -> None:
        self.key = key
        self.existing = existing
        self.attempted = attempted
        super().__init__(
            f"Endpoint key '{key}' already registered as {existing}, "
            f"cannot re-register as {attempted}",
            source=source,
        )


class UnknownEndpointError(ConfigurationError):
    """Raised when a key or reference does not resolve to any endpoint."""

    def __init__(self, key: str, source: str = "", line: int | None = None) -> None:
        self.key = key
        super().__init__(f"Unknown endpoint '{key}'", source=source, line=line)


class CatalogueFormatError(ConfigurationError):
    """Raised for malformed scenario catalogues."""

    pass


class RegistryFrozenError(ConfigurationError):
    """Raised when registering into a registry that is already in use."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"Registry is frozen; cannot register '{key}'")


# ---------------------------------------------------------------------------
# Oracle failures
# ---------------------------------------------------------------------------


class OracleError(TraceabilityError):
    """Base class for semantic match oracle failures."""

    pass


class OracleUnavailableError(OracleError):
    """Raised when the oracle service or its credentials are missing."""

    pass


class OracleTimeoutError(OracleError):
    """Raised when a single oracle call exceeds its timeout."""

    def __init__(self, endpoint_key: str, scenario_text: str, timeout: float) -> None:
        self.endpoint_key = endpoint_key
        self.scenario_text = scenario_text
        self.timeout = timeout
        super().__init__(
            f"Oracle call for '{endpoint_key}' scenario '{scenario_text}' "
            f"timed out after {timeout}s"
        )


class OracleContractError(OracleError):
    """Raised when the oracle returns something the engine cannot use."""

    pass
