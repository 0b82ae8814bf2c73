"""Shared fixtures and factories for the traceability test suite."""
from __future__ import annotations

from pathlib import Path
from typing import Iterable

import pytest

from src.coverage_engine.registry import EndpointRegistry
from src.coverage_engine.text import path_segments
from src.oracles.static_oracle import StaticOracle
from src.shared.models import (
    Endpoint,
    HttpMethod,
    Priority,
    Scenario,
    ScenarioCategory,
    SourceKind,
    UnitTest,
)


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


def make_endpoint(key: str, method: str, path: str) -> Endpoint:
    return Endpoint(
        key=key,
        method=HttpMethod(method),
        path_template=path,
        path_segments=path_segments(path),
    )


def make_test(
    test_id: str,
    method: HttpMethod | None = None,
    *,
    name: str = "",
    description: str = "",
    file_path: str = "tests/test_customers.py",
    line: int = 1,
    suite: str = "",
    candidates: Iterable[str] = (),
) -> UnitTest:
    return UnitTest(
        id=test_id,
        file_path=file_path,
        line_number=line,
        declared_name=name or test_id,
        endpoint_key_candidates=frozenset(candidates),
        method=method,
        description=description,
        suite=suite,
    )


def make_scenario(
    endpoint_key: str,
    text: str,
    category: ScenarioCategory = ScenarioCategory.HAPPY_CASE,
    priority: Priority = Priority.P2,
    source_kind: SourceKind = SourceKind.BASELINE,
) -> Scenario:
    return Scenario(
        endpoint_key=endpoint_key,
        category=category,
        text=text,
        source_kind=source_kind,
        priority=priority,
    )


CUSTOMER_ENDPOINTS: tuple[tuple[str, str, str], ...] = (
    ("GET_CustomerById", "GET", "/customers/{id}"),
    ("POST_CreateCustomer", "POST", "/customers"),
    ("PUT_UpdateCustomer", "PUT", "/customers/{id}"),
    ("PATCH_UpdateCustomerEmail", "PATCH", "/customers/{id}/email"),
    ("DELETE_Customer", "DELETE", "/customers/{id}"),
)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def customer_endpoints() -> list[Endpoint]:
    """The five customer-service endpoints used throughout the suite."""
    return [make_endpoint(k, m, p) for k, m, p in CUSTOMER_ENDPOINTS]


@pytest.fixture
def registry(customer_endpoints: list[Endpoint]) -> EndpointRegistry:
    """A frozen registry over the customer endpoints."""
    return EndpointRegistry.from_endpoints(customer_endpoints, source="customer-api.yaml")


@pytest.fixture
def static_oracle() -> StaticOracle:
    """An oracle with no recorded answers."""
    return StaticOracle()


@pytest.fixture
def write_file(tmp_path: Path):
    """Write *content* to *name* under ``tmp_path`` and return the path."""

    def _write(name: str, content: str) -> Path:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path

    return _write
