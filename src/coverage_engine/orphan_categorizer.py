"""Classify orphan tests as technical (informational) or business (needs a scenario)."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import PurePath
from typing import Iterable

from src.shared.models import OrphanKind, OrphanTest, Priority, UnitTest

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Rule:
    subtype: str
    pattern: re.Pattern[str]
    reason: str


# Checked in order; the first match wins.
_TECHNICAL_RULES: tuple[_Rule, ...] = (
    _Rule(
        "Entity/Model Test",
        re.compile(r"Test\.(builder|settersAnd|setters?|getters?|equals|hashCode|toString|constructor|allArgs)", re.I),
        "POJO/entity infrastructure test; no scenario needed",
    ),
    _Rule(
        "DTO Test",
        re.compile(r"(Request|Response|Dto|Model)Test\.", re.I),
        "Data transfer object test; technical infrastructure",
    ),
    _Rule(
        "Mapper Test",
        re.compile(r"MapperTest\.(toEntity|toResponse|to[A-Z]|updateEntity|map|Handle.*Null)", re.I),
        "Data mapping logic; technical layer",
    ),
    _Rule(
        "Exception Test",
        re.compile(r"ExceptionTest\.", re.I),
        "Custom exception test; technical infrastructure",
    ),
    _Rule(
        "Error Handler Test",
        re.compile(r"(ExceptionHandler|ErrorHandler|GlobalExceptionHandler)Test\.", re.I),
        "Global exception handling; business errors are covered by scenarios",
    ),
    _Rule(
        "Error Response Test",
        re.compile(r"Test\.errorResponse|error_response|ErrorResponse", re.I),
        "Error response DTO test; technical infrastructure",
    ),
    _Rule(
        "Validation Test",
        re.compile(
            r"Test\.(validation|Validation).*?(Fail|Pass|Invalid|Valid|Blank|Null|Empty|Short|Long|Young|Old|ShouldFail|ShouldPass)",
            re.I,
        ),
        "Request validation rules; technical constraints",
    ),
    _Rule(
        "Infrastructure Test",
        re.compile(r"Test\.(setup|teardown|before|after|init|cleanup)", re.I),
        "Test infrastructure; no scenario needed",
    ),
)

_BUSINESS_RULES: tuple[_Rule, ...] = (
    _Rule(
        "Controller/API Test",
        re.compile(r"ControllerTest\.(get|post|put|patch|delete|create|update|remove)", re.I),
        "API endpoint test without a matching scenario",
    ),
    _Rule(
        "Service Layer Test",
        re.compile(r"Service.*?Test\.(get|create|update|delete|find|search|list|filter)", re.I),
        "Service layer test; may duplicate a controller scenario",
    ),
    _Rule(
        "Business Logic Test",
        re.compile(r"(get|post|put|delete|create|update|remove|fetch).*?(customer|user|order|product|profile|account)", re.I),
        "Business functionality test without a scenario",
    ),
)

_UNKNOWN_SUBTYPE = "Unknown Business Logic"
_UNKNOWN_REASON = "Could not categorize automatically; needs manual review"


def _classification_text(test: UnitTest) -> str:
    suite = test.suite or PurePath(test.file_path).stem
    return f"{suite}.{test.declared_name} {test.id} {test.description}"


class OrphanCategorizer:
    """Applies technical rules first, then business rules, defaulting to business."""

    def __init__(self, business_priority: Priority = Priority.P1) -> None:
        self._business_priority = business_priority

    def categorize(self, test: UnitTest, attributed_endpoints: Iterable[str] = ()) -> OrphanTest:
        text = _classification_text(test)
        endpoints = tuple(sorted(attributed_endpoints))

        for rule in _TECHNICAL_RULES:
            if rule.pattern.search(text):
                return OrphanTest(
                    test=test,
                    kind=OrphanKind.TECHNICAL,
                    subtype=rule.subtype,
                    reason=rule.reason,
                    priority=None,
                    attributed_endpoints=endpoints,
                )

        subtype, reason = _UNKNOWN_SUBTYPE, _UNKNOWN_REASON
        for rule in _BUSINESS_RULES:
            if rule.pattern.search(text):
                subtype, reason = rule.subtype, rule.reason
                break
        if endpoints:
            reason = f"{reason} (endpoints {', '.join(endpoints)} have no baseline scenarios)"
        return OrphanTest(
            test=test,
            kind=OrphanKind.BUSINESS,
            subtype=subtype,
            reason=reason,
            priority=self._business_priority,
            attributed_endpoints=endpoints,
        )


def orphan_recommendations(orphans: Iterable[OrphanTest]) -> list[str]:
    """Short action list for the QA team."""
    orphans = list(orphans)
    business = [o for o in orphans if o.kind is OrphanKind.BUSINESS]
    technical = len(orphans) - len(business)
    needs_review = sum(1 for o in business if o.subtype in ("Service Layer Test", _UNKNOWN_SUBTYPE))
    recommendations: list[str] = []
    if len(business) > needs_review:
        recommendations.append(
            f"QA action required: {len(business) - needs_review} business test(s) need scenarios"
        )
    if technical:
        recommendations.append(
            f"{technical} technical test(s) are appropriately orphaned (no action needed)"
        )
    if needs_review:
        recommendations.append(
            f"{needs_review} business test(s) need manual review (may duplicate controller scenarios)"
        )
    return recommendations
