"""JUnit test discovery using tree-sitter-java.

Methods annotated with ``@Test`` (or one of the JUnit 5 test-template
annotations) are tests.  ``@DisplayName("...")`` becomes the description;
without it the method name is turned into words.  Nested classes are joined
with ``.`` to form the suite.
"""

from __future__ import annotations

from pathlib import Path

import tree_sitter_java
from tree_sitter import Language, Node, Query, QueryCursor

from src.coverage_engine.text import split_identifier
from src.test_parsers.base import BaseTestParser, DiscoveredTest, node_text, string_literal

_METHOD_QUERY = "(method_declaration name: (identifier) @name) @def"

_TEST_ANNOTATIONS = frozenset({
    "Test", "ParameterizedTest", "RepeatedTest", "TestFactory", "TestTemplate",
})


def _annotation_name(annotation: Node) -> str:
    name = node_text(annotation.child_by_field_name("name"))
    return name.rsplit(".", 1)[-1]


class JavaTestParser(BaseTestParser):
    """Extract JUnit tests from ``*Test.java`` / ``*Tests.java`` files."""

    language = "java"
    file_globs = ("*Test.java", "*Tests.java", "*IT.java")

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._lang = Language(tree_sitter_java.language())
        self._method_query = Query(self._lang, _METHOD_QUERY)

    def _language_for(self, path: Path) -> Language:
        return self._lang

    def _extract(self, root: Node, path: Path) -> list[DiscoveredTest]:
        found: list[DiscoveredTest] = []
        cursor = QueryCursor(self._method_query)
        for _pattern_idx, captures in cursor.matches(root):
            def_nodes = captures.get("def", [])
            if not def_nodes:
                continue
            method_node = def_nodes[0]
            annotations = self._annotations(method_node)
            if not _TEST_ANNOTATIONS.intersection(annotations):
                continue

            name = node_text(method_node.child_by_field_name("name"))
            display_name = annotations.get("DisplayName")
            found.append(
                DiscoveredTest(
                    name=name,
                    line=method_node.start_point.row + 1,
                    description=display_name or split_identifier(name).capitalize(),
                    suite=".".join(self._enclosing_classes(method_node)),
                )
            )
        found.sort(key=lambda t: t.line)
        return found

    # ------------------------------------------------------------------
    # AST utilities
    # ------------------------------------------------------------------

    @staticmethod
    def _annotations(method_node: Node) -> dict[str, str]:
        """Annotation name to its first string argument (``""`` when none)."""
        result: dict[str, str] = {}
        for child in method_node.children:
            if child.type != "modifiers":
                continue
            for modifier in child.named_children:
                if modifier.type == "marker_annotation":
                    result[_annotation_name(modifier)] = ""
                elif modifier.type == "annotation":
                    value = ""
                    args = modifier.child_by_field_name("arguments")
                    if args is not None:
                        for arg in args.named_children:
                            if arg.type == "string_literal":
                                value = string_literal(arg) or ""
                                break
                    result[_annotation_name(modifier)] = value
        return result

    @staticmethod
    def _enclosing_classes(node: Node) -> list[str]:
        names: list[str] = []
        current = node.parent
        while current is not None:
            if current.type == "class_declaration":
                names.append(node_text(current.child_by_field_name("name")))
            current = current.parent
        names.reverse()
        return names
