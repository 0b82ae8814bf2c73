"""Tests for the shared parser helpers in src.test_parsers.base."""
from __future__ import annotations

import pytest

from src.shared.models import HttpMethod
from src.test_parsers.base import endpoint_candidates, infer_method

from tests.conftest import make_endpoint


ENDPOINTS = [
    make_endpoint("GET_CustomerById", "GET", "/customers/{id}"),
    make_endpoint("POST_CreateCustomer", "POST", "/customers"),
    make_endpoint("PATCH_UpdateCustomerEmail", "PATCH", "/customers/{id}/email"),
]


class TestInferMethod:
    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("test_get_customer", HttpMethod.GET),
            ("testFetchCustomerById", HttpMethod.GET),
            ("shouldListCustomers", HttpMethod.GET),
            ("test_create_customer", HttpMethod.POST),
            ("testRegisterUser", HttpMethod.POST),
            ("test_update_customer", HttpMethod.PUT),
            ("testPartialUpdate", HttpMethod.PATCH),
            ("test_remove_customer", HttpMethod.DELETE),
            ("test_customer_payload", None),
        ],
    )
    def test_keywords(self, name, expected):
        assert infer_method(name) is expected

    def test_explicit_route_wins(self):
        assert infer_method("returns 404 for GET /customers/{id} when updating") is HttpMethod.GET

    def test_name_before_description(self):
        assert infer_method("test_delete_customer", "create then delete") is HttpMethod.DELETE

    def test_falls_back_to_later_texts(self):
        assert infer_method("test_customer_payload", "", "CustomerCreateTests") is HttpMethod.POST

    def test_empty(self):
        assert infer_method("", "") is None


class TestEndpointCandidates:
    def test_key_in_text(self):
        found = endpoint_candidates("covers GET_CustomerById happy path", "test_x.py", ENDPOINTS)
        assert found == frozenset({"GET_CustomerById"})

    def test_key_in_file_name(self):
        found = endpoint_candidates("", "POST_CreateCustomer.test.ts", ENDPOINTS)
        assert found == frozenset({"POST_CreateCustomer"})

    def test_route_in_text(self):
        found = endpoint_candidates("PATCH /customers/:customerId/email updates it", "t.py", ENDPOINTS)
        assert found == frozenset({"PATCH_UpdateCustomerEmail"})

    def test_route_needs_matching_method(self):
        assert endpoint_candidates("PUT /customers/{id}", "t.py", ENDPOINTS) == frozenset()

    def test_no_reference(self):
        assert endpoint_candidates("fetches a customer", "t.py", ENDPOINTS) == frozenset()
