"""Tests for src.coverage_engine.catalogue.

Covers:
    1. Parsing populated entries (plain strings and dict items)
    2. Priority normalisation and inference
    3. Present-but-empty entry states (null, empty, commented)
    4. Malformed catalogues with file/line context
    5. Binding references onto canonical endpoint keys
"""
from __future__ import annotations

import pytest

from src.coverage_engine.catalogue import (
    ScenarioCatalogue,
    infer_priority,
    load_catalogue,
    normalize_priority,
    scan_entries,
)
from src.shared.errors import CatalogueFormatError, ConfigurationError, UnknownEndpointError
from src.shared.models import CatalogueEntryState, Priority, ScenarioCategory, SourceKind


BASELINE_YAML = """\
service: customer-service
POST /customers:
  happy_case:
    - Create customer with valid payload returns 201
  error_case:
    - text: Missing email returns 400
      priority: high
GET_CustomerById:
  # happy_case:
  #   - Fetch existing customer
PUT_UpdateCustomer:
DELETE_Customer: {}
# PATCH_UpdateCustomerEmail:
"""


# ---------------------------------------------------------------------------
# 1. Populated entries
# ---------------------------------------------------------------------------


class TestParsePopulated:
    """Scenario lists are parsed per category."""

    def test_service_name(self):
        catalogue = ScenarioCatalogue.from_text(BASELINE_YAML, source="baseline.yaml")
        assert catalogue.service == "customer-service"
        assert "service" not in catalogue

    def test_scenarios_in_file_order(self):
        catalogue = ScenarioCatalogue.from_text(BASELINE_YAML, source="baseline.yaml")
        scenarios = catalogue.scenarios_for("POST /customers")
        assert [s.text for s in scenarios] == [
            "Create customer with valid payload returns 201",
            "Missing email returns 400",
        ]
        assert scenarios[0].category is ScenarioCategory.HAPPY_CASE
        assert scenarios[1].category is ScenarioCategory.ERROR_CASE
        assert catalogue.state_for("POST /customers") is CatalogueEntryState.POPULATED

    def test_explicit_priority_is_normalised(self):
        catalogue = ScenarioCatalogue.from_text(BASELINE_YAML)
        assert catalogue.scenarios_for("POST /customers")[1].priority is Priority.P1

    def test_source_kind_is_stamped(self):
        catalogue = ScenarioCatalogue.from_text(BASELINE_YAML, source_kind=SourceKind.AI_SUGGESTED)
        assert all(s.source_kind is SourceKind.AI_SUGGESTED for s in catalogue.all_scenarios())

    def test_ai_markers_are_stripped(self):
        text = "GET_CustomerById:\n  edge_case:\n    - Fetch customer with unicode name \u2705\n"
        catalogue = ScenarioCatalogue.from_text(text, source_kind=SourceKind.AI_SUGGESTED)
        assert catalogue.scenarios_for("GET_CustomerById")[0].text == "Fetch customer with unicode name"

    def test_line_numbers_are_recorded(self):
        catalogue = ScenarioCatalogue.from_text(BASELINE_YAML)
        assert catalogue.line_for("POST /customers") == 2
        assert catalogue.line_for("DELETE_Customer") == 12

    def test_total(self):
        assert ScenarioCatalogue.from_text(BASELINE_YAML).total() == 2


# ---------------------------------------------------------------------------
# 2. Priorities
# ---------------------------------------------------------------------------


class TestPriorities:
    @pytest.mark.parametrize(
        ("label", "expected"),
        [
            ("P0", Priority.P0),
            ("critical", Priority.P0),
            ("HIGH", Priority.P1),
            ("major", Priority.P1),
            ("normal", Priority.P2),
            ("P3", Priority.P3),
            ("whatever", Priority.P3),
            (None, Priority.P3),
        ],
    )
    def test_normalize_priority(self, label, expected):
        assert normalize_priority(label) is expected

    def test_infer_priority(self):
        assert infer_priority("Unauthenticated request is rejected by auth") is Priority.P0
        assert infer_priority("Invalid email returns 400") is Priority.P1
        assert infer_priority("Boundary length name is accepted") is Priority.P2
        assert infer_priority("Create customer returns 201") is Priority.P3


# ---------------------------------------------------------------------------
# 3. Entry states
# ---------------------------------------------------------------------------


class TestEntryStates:
    """Absent and present-but-empty entries are told apart."""

    def test_commented_block(self):
        catalogue = ScenarioCatalogue.from_text(BASELINE_YAML)
        assert catalogue.state_for("GET_CustomerById") is CatalogueEntryState.COMMENTED
        assert catalogue.count("GET_CustomerById") == 0

    def test_commented_block_after_inline_comment(self):
        text = "GET_X:  # pending QA review\n  # happy_case:\n  #   - Fetch x\n"
        entries, _ = scan_entries(text)
        assert entries["GET_X"].inline_value is None
        catalogue = ScenarioCatalogue.from_text(text)
        assert catalogue.state_for("GET_X") is CatalogueEntryState.COMMENTED

    def test_null_entry_with_inline_comment(self):
        catalogue = ScenarioCatalogue.from_text("GET_X:  # nothing yet\n")
        assert catalogue.state_for("GET_X") is CatalogueEntryState.NULL

    def test_null_entry(self):
        catalogue = ScenarioCatalogue.from_text(BASELINE_YAML)
        assert catalogue.state_for("PUT_UpdateCustomer") is CatalogueEntryState.NULL

    def test_empty_mapping(self):
        catalogue = ScenarioCatalogue.from_text(BASELINE_YAML)
        assert catalogue.state_for("DELETE_Customer") is CatalogueEntryState.EMPTY

    def test_commented_key_line(self):
        catalogue = ScenarioCatalogue.from_text(BASELINE_YAML)
        assert catalogue.state_for("PATCH_UpdateCustomerEmail") is CatalogueEntryState.COMMENTED

    def test_absent_entry(self):
        catalogue = ScenarioCatalogue.from_text(BASELINE_YAML)
        assert catalogue.state_for("GET_Orders") is CatalogueEntryState.ABSENT
        assert catalogue.scenarios_for("GET_Orders") == ()

    def test_empty_category_lists(self):
        catalogue = ScenarioCatalogue.from_text("GET_X:\n  happy_case: []\n  error_case:\n")
        assert catalogue.state_for("GET_X") is CatalogueEntryState.EMPTY

    def test_scan_entries_counts_lines(self):
        entries, commented = scan_entries(BASELINE_YAML)
        assert entries["GET_CustomerById"].fully_commented
        assert not entries["POST /customers"].fully_commented
        assert commented == {"PATCH_UpdateCustomerEmail": 13}


# ---------------------------------------------------------------------------
# 4. Malformed catalogues
# ---------------------------------------------------------------------------


class TestMalformed:
    def test_duplicate_entry_reports_line(self):
        text = "GET_X:\n  happy_case:\n    - a\nGET_X:\n  happy_case:\n    - b\n"
        with pytest.raises(CatalogueFormatError) as exc_info:
            ScenarioCatalogue.from_text(text, source="baseline.yaml")
        assert exc_info.value.line == 4
        assert exc_info.value.source == "baseline.yaml"
        assert str(exc_info.value).startswith("baseline.yaml:4:")

    def test_invalid_yaml_reports_line(self):
        text = "GET_X:\n  happy_case: [unclosed\n"
        with pytest.raises(CatalogueFormatError) as exc_info:
            ScenarioCatalogue.from_text(text, source="baseline.yaml")
        assert exc_info.value.line is not None

    def test_unknown_category(self):
        text = "GET_X:\n  sad_case:\n    - a\n"
        with pytest.raises(CatalogueFormatError, match="unknown category"):
            ScenarioCatalogue.from_text(text)

    def test_category_must_be_list(self):
        with pytest.raises(CatalogueFormatError, match="must be a list"):
            ScenarioCatalogue.from_text("GET_X:\n  happy_case: just text\n")

    def test_entry_must_be_mapping(self):
        with pytest.raises(CatalogueFormatError):
            ScenarioCatalogue.from_text("GET_X:\n  - a\n")

    def test_blank_scenario_text(self):
        with pytest.raises(CatalogueFormatError, match="non-empty text"):
            ScenarioCatalogue.from_text("GET_X:\n  happy_case:\n    - ''\n")

    def test_top_level_must_be_mapping(self):
        with pytest.raises(CatalogueFormatError):
            ScenarioCatalogue.from_text("- a\n- b\n")

    def test_errors_are_configuration_errors(self):
        with pytest.raises(ConfigurationError):
            ScenarioCatalogue.from_text("GET_X:\n  sad_case:\n    - a\n")


# ---------------------------------------------------------------------------
# 5. Binding
# ---------------------------------------------------------------------------


class TestBind:
    def test_references_map_to_canonical_keys(self, registry):
        bound = ScenarioCatalogue.from_text(BASELINE_YAML).bind(registry)
        assert bound.count("POST_CreateCustomer") == 2
        assert all(s.endpoint_key == "POST_CreateCustomer" for s in bound.scenarios_for("POST_CreateCustomer"))
        assert bound.state_for("GET_CustomerById") is CatalogueEntryState.COMMENTED

    def test_unknown_reference_names_source_and_line(self, registry):
        text = "GET_CustomerById:\n  happy_case:\n    - a\nGET_Orders:\n  happy_case:\n    - b\n"
        catalogue = ScenarioCatalogue.from_text(text, source="baseline.yaml")
        with pytest.raises(UnknownEndpointError) as exc_info:
            catalogue.bind(registry)
        assert exc_info.value.key == "GET_Orders"
        assert exc_info.value.line == 4
        assert "baseline.yaml:4" in str(exc_info.value)

    def test_commented_unknown_reference_is_ignored(self, registry):
        catalogue = ScenarioCatalogue.from_text("# GET /orders:\n")
        assert len(catalogue.bind(registry)) == 0

    def test_two_references_to_one_endpoint(self, registry):
        text = "POST /customers:\n  happy_case:\n    - a\nPOST_CreateCustomer:\n  happy_case:\n    - b\n"
        with pytest.raises(CatalogueFormatError, match="Duplicate endpoint entry"):
            ScenarioCatalogue.from_text(text).bind(registry)

    def test_from_mapping(self, registry):
        catalogue = ScenarioCatalogue.from_mapping(
            {
                "GET_CustomerById": {"happy_case": ["Fetch customer"]},
                "DELETE_Customer": None,
            }
        ).bind(registry)
        assert catalogue.count("GET_CustomerById") == 1
        assert catalogue.state_for("DELETE_Customer") is CatalogueEntryState.NULL


class TestLoadCatalogue:
    def test_missing_ai_file_is_empty(self, tmp_path):
        catalogue = load_catalogue(tmp_path / "ai.yaml", SourceKind.AI_SUGGESTED)
        assert len(catalogue) == 0
        assert catalogue.source_kind is SourceKind.AI_SUGGESTED

    def test_missing_baseline_file_fails(self, tmp_path):
        with pytest.raises(ConfigurationError, match="Cannot read"):
            load_catalogue(tmp_path / "baseline.yaml", SourceKind.BASELINE)

    def test_load_from_file(self, write_file):
        path = write_file("baseline.yaml", BASELINE_YAML)
        catalogue = load_catalogue(path)
        assert catalogue.source == str(path)
        assert catalogue.total() == 2
