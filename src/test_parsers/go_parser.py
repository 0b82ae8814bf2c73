"""Go test discovery using tree-sitter-go.

``func TestXxx(t *testing.T)`` declarations are tests; each
``t.Run("name", ...)`` inside one is reported as an additional test whose
suite is the enclosing function.
"""

from __future__ import annotations

from pathlib import Path

import tree_sitter_go
from tree_sitter import Language, Node, Query, QueryCursor

from src.coverage_engine.text import split_identifier
from src.test_parsers.base import BaseTestParser, DiscoveredTest, node_text, string_literal


class GoTestParser(BaseTestParser):
    """Extract ``testing`` package tests from ``*_test.go`` files."""

    language = "go"
    file_globs = ("*_test.go",)

    _FUNCTION_QUERY = "(function_declaration name: (identifier) @name) @def"
    _RUN_QUERY = """
    (call_expression
      function: (selector_expression field: (field_identifier) @field)
      arguments: (argument_list) @args) @call
    """

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._lang = Language(tree_sitter_go.language())
        self._function_q = Query(self._lang, self._FUNCTION_QUERY)
        self._run_q = Query(self._lang, self._RUN_QUERY)

    def _language_for(self, path: Path) -> Language:
        return self._lang

    def _extract(self, root: Node, path: Path) -> list[DiscoveredTest]:
        found: list[DiscoveredTest] = []
        cursor = QueryCursor(self._function_q)
        for _pattern_idx, captures in cursor.matches(root):
            def_nodes = captures.get("def", [])
            if not def_nodes:
                continue
            func_node = def_nodes[0]
            name = node_text(func_node.child_by_field_name("name"))
            if not self._is_test_function(func_node, name):
                continue

            found.append(
                DiscoveredTest(
                    name=name,
                    line=func_node.start_point.row + 1,
                    description=split_identifier(name).capitalize(),
                )
            )
            found.extend(self._subtests(func_node, name))
        found.sort(key=lambda t: t.line)
        return found

    @staticmethod
    def _is_test_function(func_node: Node, name: str) -> bool:
        if not name.startswith("Test") or name == "TestMain":
            return False
        rest = name[len("Test"):]
        if rest and rest[0].islower():
            return False
        params = node_text(func_node.child_by_field_name("parameters"))
        return "testing.T" in params

    def _subtests(self, func_node: Node, func_name: str) -> list[DiscoveredTest]:
        subtests: list[DiscoveredTest] = []
        cursor = QueryCursor(self._run_q)
        for _pattern_idx, captures in cursor.matches(func_node):
            field_nodes = captures.get("field", [])
            args_nodes = captures.get("args", [])
            call_nodes = captures.get("call", [])
            if not field_nodes or not args_nodes or not call_nodes:
                continue
            if node_text(field_nodes[0]) != "Run" or not args_nodes[0].named_children:
                continue
            title = string_literal(args_nodes[0].named_children[0])
            if not title:
                continue
            subtests.append(
                DiscoveredTest(
                    name=title,
                    line=call_nodes[0].start_point.row + 1,
                    description=title,
                    suite=func_name,
                )
            )
        return subtests
