"""Jest / Mocha test discovery using tree-sitter-typescript.

Every ``it(...)`` / ``test(...)`` call whose first argument is a string
becomes one test.  The titles of the enclosing ``describe(...)`` blocks
form the suite, outermost first.
"""

from __future__ import annotations

import logging
from pathlib import Path

import tree_sitter_typescript
from tree_sitter import Language, Node, Query, QueryCursor

from src.test_parsers.base import BaseTestParser, DiscoveredTest, node_text, string_literal

logger = logging.getLogger(__name__)

_CALL_QUERY = """
(call_expression
  function: [(identifier) (member_expression)] @callee
  arguments: (arguments) @args) @call
"""

_TEST_CALLEES = frozenset({"it", "test", "specify"})
_SUITE_CALLEES = frozenset({"describe", "context", "suite"})
_STRING_TYPES = frozenset({"string", "template_string"})


def _callee_name(callee: Node) -> str:
    """``it`` for ``it(...)`` and ``it.only(...)``."""
    if callee.type == "member_expression":
        obj = callee.child_by_field_name("object")
        if obj is None or obj.type != "identifier":
            return ""
        return node_text(obj)
    return node_text(callee)


def _title(args: Node | None) -> str | None:
    if args is None or not args.named_children:
        return None
    first = args.named_children[0]
    if first.type not in _STRING_TYPES:
        return None
    return string_literal(first)


class TypeScriptTestParser(BaseTestParser):
    """Extract Jest-style tests from ``*.test.ts`` / ``*.spec.ts`` files."""

    language = "typescript"
    file_globs = (
        "*.test.ts", "*.spec.ts", "*.test.tsx", "*.spec.tsx",
        "*.test.js", "*.spec.js",
    )

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._ts_lang = Language(tree_sitter_typescript.language_typescript())
        self._tsx_lang = Language(tree_sitter_typescript.language_tsx())
        self._queries = {
            id(self._ts_lang): Query(self._ts_lang, _CALL_QUERY),
            id(self._tsx_lang): Query(self._tsx_lang, _CALL_QUERY),
        }

    def _language_for(self, path: Path) -> Language:
        return self._tsx_lang if path.suffix.lower() == ".tsx" else self._ts_lang

    def _extract(self, root: Node, path: Path) -> list[DiscoveredTest]:
        query = self._queries[id(self._language_for(path))]
        found: list[DiscoveredTest] = []
        cursor = QueryCursor(query)
        for _pattern_idx, captures in cursor.matches(root):
            callee_nodes = captures.get("callee", [])
            call_nodes = captures.get("call", [])
            if not callee_nodes or not call_nodes:
                continue
            if _callee_name(callee_nodes[0]) not in _TEST_CALLEES:
                continue
            call = call_nodes[0]
            title = _title(call.child_by_field_name("arguments"))
            if title is None:
                logger.debug("Skipping test with a computed title in %s:%d", path, call.start_point.row + 1)
                continue
            found.append(
                DiscoveredTest(
                    name=title,
                    line=call.start_point.row + 1,
                    description=title,
                    suite=" > ".join(self._suites(call)),
                )
            )
        found.sort(key=lambda t: t.line)
        return found

    @staticmethod
    def _suites(call: Node) -> list[str]:
        """Titles of the ``describe`` blocks around *call*, outermost first."""
        titles: list[str] = []
        current = call.parent
        while current is not None:
            if current.type == "call_expression":
                callee = current.child_by_field_name("function")
                if callee is not None and _callee_name(callee) in _SUITE_CALLEES:
                    title = _title(current.child_by_field_name("arguments"))
                    if title:
                        titles.append(title)
            current = current.parent
        titles.reverse()
        return titles
