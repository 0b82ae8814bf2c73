"""Tests for the traceability exception hierarchy."""
from __future__ import annotations

import pytest

from src.shared.errors import (
    CatalogueFormatError,
    ConfigurationError,
    DuplicateKeyError,
    OracleContractError,
    OracleError,
    OracleTimeoutError,
    OracleUnavailableError,
    RegistryFrozenError,
    TraceabilityError,
    UnknownEndpointError,
)


class TestConfigurationError:
    """Input errors carry their source location."""

    def test_message_only(self):
        err = ConfigurationError("bad input")
        assert str(err) == "bad input"
        assert err.detail == "bad input"
        assert err.source == ""
        assert err.line is None

    def test_source_prefix(self):
        err = ConfigurationError("bad input", source="baseline.yaml")
        assert str(err) == "baseline.yaml: bad input"

    def test_source_and_line_prefix(self):
        err = ConfigurationError("bad input", source="baseline.yaml", line=7)
        assert str(err) == "baseline.yaml:7: bad input"
        assert err.line == 7


class TestSubclasses:
    def test_duplicate_key(self):
        err = DuplicateKeyError("GET_X", "GET /a", "GET /b", source="api.yaml")
        assert err.key == "GET_X"
        assert (err.existing, err.attempted) == ("GET /a", "GET /b")
        assert str(err).startswith("api.yaml: ")

    def test_unknown_endpoint(self):
        err = UnknownEndpointError("GET_Orders", source="baseline.yaml", line=4)
        assert err.key == "GET_Orders"
        assert str(err) == "baseline.yaml:4: Unknown endpoint 'GET_Orders'"

    def test_registry_frozen(self):
        assert "GET_X" in str(RegistryFrozenError("GET_X"))

    def test_timeout_fields(self):
        err = OracleTimeoutError("GET_X", "Fetch X", 2.5)
        assert (err.endpoint_key, err.scenario_text, err.timeout) == ("GET_X", "Fetch X", 2.5)
        assert "2.5s" in str(err)


class TestHierarchy:
    @pytest.mark.parametrize(
        "cls",
        [CatalogueFormatError, DuplicateKeyError, UnknownEndpointError, RegistryFrozenError],
    )
    def test_input_errors_are_configuration_errors(self, cls):
        assert issubclass(cls, ConfigurationError)
        assert issubclass(cls, TraceabilityError)

    @pytest.mark.parametrize(
        "cls", [OracleUnavailableError, OracleTimeoutError, OracleContractError]
    )
    def test_oracle_errors(self, cls):
        assert issubclass(cls, OracleError)
        assert not issubclass(cls, ConfigurationError)

    def test_catch_all(self):
        with pytest.raises(TraceabilityError):
            raise OracleUnavailableError("no key")
