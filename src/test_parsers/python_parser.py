"""Pytest / unittest test discovery using tree-sitter-python.

Finds module-level ``test_*`` functions and ``test_*`` methods of classes
whose name starts with ``Test`` (pytest) or that subclass ``TestCase``.
Docstrings become the test description; without one the function name is
turned into words.
"""

from __future__ import annotations

import logging
from pathlib import Path

import tree_sitter_python
from tree_sitter import Language, Node, Query, QueryCursor

from src.coverage_engine.text import split_identifier
from src.test_parsers.base import BaseTestParser, DiscoveredTest, node_text, string_literal

logger = logging.getLogger(__name__)

_FUNCTION_QUERY = "(function_definition name: (identifier) @name) @def"


class PythonTestParser(BaseTestParser):
    """Extract pytest-style tests from ``test_*.py`` / ``*_test.py`` files."""

    language = "python"
    file_globs = ("test_*.py", "*_test.py")

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._lang = Language(tree_sitter_python.language())
        self._function_query = Query(self._lang, _FUNCTION_QUERY)

    def _language_for(self, path: Path) -> Language:
        return self._lang

    def _extract(self, root: Node, path: Path) -> list[DiscoveredTest]:
        found: list[DiscoveredTest] = []
        cursor = QueryCursor(self._function_query)
        for _pattern_idx, captures in cursor.matches(root):
            def_nodes = captures.get("def", [])
            if not def_nodes:
                continue
            func_node = def_nodes[0]
            name = node_text(func_node.child_by_field_name("name"))
            if not name.startswith("test"):
                continue

            span = func_node
            if func_node.parent is not None and func_node.parent.type == "decorated_definition":
                span = func_node.parent

            suite = ""
            class_node = self._enclosing_class(func_node)
            if class_node is not None:
                suite = node_text(class_node.child_by_field_name("name"))
                if not self._is_test_class(class_node, suite):
                    continue
            elif span.parent is None or span.parent.type != "module":
                # Nested helper functions are not collected.
                continue

            docstring = self._docstring(func_node)
            found.append(
                DiscoveredTest(
                    name=name,
                    line=span.start_point.row + 1,
                    description=docstring or split_identifier(name).capitalize(),
                    suite=suite,
                )
            )
        found.sort(key=lambda t: t.line)
        return found

    # ------------------------------------------------------------------
    # AST utilities
    # ------------------------------------------------------------------

    @staticmethod
    def _enclosing_class(node: Node) -> Node | None:
        current = node.parent
        while current is not None:
            if current.type == "class_definition":
                return current
            if current.type == "function_definition":
                return None
            current = current.parent
        return None

    @staticmethod
    def _is_test_class(class_node: Node, name: str) -> bool:
        if name.startswith("Test"):
            return True
        superclasses = class_node.child_by_field_name("superclasses")
        return superclasses is not None and "TestCase" in node_text(superclasses)

    @staticmethod
    def _docstring(func_node: Node) -> str:
        """First line of the function's docstring, if it has one."""
        body = func_node.child_by_field_name("body")
        if body is None or not body.named_children:
            return ""
        first = body.named_children[0]
        if first.type != "expression_statement" or not first.named_children:
            return ""
        literal = first.named_children[0]
        if literal.type != "string":
            return ""
        value = string_literal(literal) or ""
        lines = [line.strip() for line in value.strip().splitlines()]
        return lines[0] if lines else ""
