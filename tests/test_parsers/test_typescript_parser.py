"""Tests for src.test_parsers.typescript_parser.TypeScriptTestParser."""
from __future__ import annotations

from src.shared.models import HttpMethod
from src.test_parsers.typescript_parser import TypeScriptTestParser


CUSTOMER_SPEC = """\
import request from 'supertest';

describe('CustomerController', () => {
  describe('GET /customers/:id', () => {
    it('returns the customer', async () => {
      await request(app).get('/customers/1');
    });

    it.only(`returns 404 for unknown ids`, async () => {});
  });

  test('should create a customer', () => {});

  it(titleFrom(fixture), () => {});
});
"""

COMPONENT_SPEC = """\
describe('CustomerCard', () => {
  it('renders the name', () => {
    const card = <CustomerCard name="Ada" />;
    expect(card).toBeTruthy();
  });
});
"""


def _parse(tmp_path):
    parser = TypeScriptTestParser(root=tmp_path)
    return parser, parser.parse_directory(tmp_path)


class TestDiscovery:
    def test_tests_and_suites(self, tmp_path, write_file):
        write_file("customer.controller.spec.ts", CUSTOMER_SPEC)
        _, tests = _parse(tmp_path)
        assert [(t.declared_name, t.suite, t.line_number) for t in tests] == [
            ("returns the customer", "CustomerController > GET /customers/:id", 5),
            ("returns 404 for unknown ids", "CustomerController > GET /customers/:id", 9),
            ("should create a customer", "CustomerController", 12),
        ]

    def test_ids(self, tmp_path, write_file):
        write_file("customer.controller.spec.ts", CUSTOMER_SPEC)
        _, tests = _parse(tmp_path)
        assert tests[2].id == "customer.controller.spec.ts::CustomerController::should create a customer"
        assert all(t.language == "typescript" for t in tests)

    def test_method_from_suite_route(self, tmp_path, write_file):
        write_file("customer.controller.spec.ts", CUSTOMER_SPEC)
        _, tests = _parse(tmp_path)
        assert tests[0].method is HttpMethod.GET
        assert tests[2].method is HttpMethod.POST

    def test_tsx_files(self, tmp_path, write_file):
        write_file("components/CustomerCard.test.tsx", COMPONENT_SPEC)
        parser, tests = _parse(tmp_path)
        assert [t.declared_name for t in tests] == ["renders the name"]
        assert parser.warnings == []

    def test_javascript_files(self, tmp_path, write_file):
        write_file("orders.test.js", "it('list orders', () => {});\n")
        _, tests = _parse(tmp_path)
        assert tests[0].id == "orders.test.js::list orders"
        assert tests[0].method is HttpMethod.GET

    def test_non_test_files_ignored(self, tmp_path, write_file):
        write_file("customer.service.ts", "it('looks like a test', () => {});\n")
        _, tests = _parse(tmp_path)
        assert tests == []
