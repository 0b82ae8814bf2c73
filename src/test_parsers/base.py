"""Shared machinery for the language-specific unit-test parsers.

Each parser walks a tree-sitter syntax tree and reports the tests it finds
as :class:`DiscoveredTest` records.  This module turns those into
:class:`~src.shared.models.UnitTest` objects: stable ids, best-effort HTTP
method inference and endpoint key candidates.

Files that cannot be read, or whose syntax tree contains errors, are logged
and skipped.  They never abort a run.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from tree_sitter import Language, Node, Parser

from src.coverage_engine.cache import FileCache
from src.coverage_engine.text import normalize_path, split_identifier
from src.shared.models import Endpoint, HttpMethod, UnitTest

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Method inference
# ---------------------------------------------------------------------------

_METHOD_KEYWORDS: dict[str, HttpMethod] = {
    "get": HttpMethod.GET,
    "fetch": HttpMethod.GET,
    "retrieve": HttpMethod.GET,
    "find": HttpMethod.GET,
    "list": HttpMethod.GET,
    "create": HttpMethod.POST,
    "post": HttpMethod.POST,
    "register": HttpMethod.POST,
    "add": HttpMethod.POST,
    "update": HttpMethod.PUT,
    "put": HttpMethod.PUT,
    "replace": HttpMethod.PUT,
    "patch": HttpMethod.PATCH,
    "partial": HttpMethod.PATCH,
    "delete": HttpMethod.DELETE,
    "remove": HttpMethod.DELETE,
}

_ROUTE_RE = re.compile(
    r"\b(GET|POST|PUT|PATCH|DELETE|OPTIONS|HEAD)\s+(/[^\s'\"`,)]*)", re.IGNORECASE
)
_PARAM_RE = re.compile(r"\{[^}/]*\}")
_WORD_RE = re.compile(r"[a-z]+")

_SKIPPED_DIRS = frozenset({"node_modules", ".git", ".venv", "venv", "__pycache__", "build", "dist", "target", "vendor"})


def infer_method(*texts: str) -> HttpMethod | None:
    """Return the HTTP method implied by the first verb-like word found.

    *texts* are tried in order (declared name first, then description, then
    suite) so the test's own name wins over its surroundings.
    """
    for text in texts:
        if not text:
            continue
        route = _ROUTE_RE.search(text)
        if route:
            return HttpMethod(route.group(1).upper())
        for word in _WORD_RE.findall(split_identifier(text)):
            method = _METHOD_KEYWORDS.get(word)
            if method is not None:
                return method
    return None


def _route_shape(path: str) -> str:
    return _PARAM_RE.sub("{}", normalize_path(path)).lower()


def endpoint_candidates(text: str, file_name: str, endpoints: Iterable[Endpoint]) -> frozenset[str]:
    """Endpoint keys the test names explicitly.

    A test names an endpoint when the key appears verbatim in its text or
    file name, or when the text contains ``METHOD /path`` for that route.
    An empty result means "no explicit reference".
    """
    routes = {
        (m.group(1).upper(), _route_shape(m.group(2).rstrip(".:")))
        for m in _ROUTE_RE.finditer(text)
    }
    found: set[str] = set()
    for endpoint in endpoints:
        if endpoint.key in text or endpoint.key in file_name:
            found.add(endpoint.key)
        elif (endpoint.method.value, _route_shape(endpoint.path_template)) in routes:
            found.add(endpoint.key)
    return frozenset(found)


# ---------------------------------------------------------------------------
# Syntax tree helpers
# ---------------------------------------------------------------------------


def node_text(node: Node | None) -> str:
    """UTF-8 text of *node*, or ``""`` for a missing node."""
    if node is None:
        return ""
    return node.text.decode("utf-8", errors="replace")


def string_literal(node: Node | None) -> str | None:
    """Value of a plain string literal node, without its quotes.

    Template strings with substitutions are returned verbatim, minus the
    backticks.
    """
    if node is None:
        return None
    raw = node_text(node)
    if node.type == "template_string" and "${" in raw:
        return raw.strip("`")
    raw = raw.lstrip("rRbBuU")
    for quote in ('"""', "'''", '"', "'", "`"):
        if len(raw) >= 2 * len(quote) and raw.startswith(quote) and raw.endswith(quote):
            return raw[len(quote):-len(quote)]
    return None


# ---------------------------------------------------------------------------
# Parser base class
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DiscoveredTest:
    """A test as found in one file, before attribution data is added."""
    name: str
    line: int
    description: str = ""
    suite: str = ""


class BaseTestParser:
    """Common ``parse(files)`` pipeline; subclasses supply the tree walk."""

    language: str = ""
    file_globs: tuple[str, ...] = ()

    def __init__(
        self,
        endpoints: Iterable[Endpoint] = (),
        *,
        root: Path | str | None = None,
        cache: FileCache[list[DiscoveredTest]] | None = None,
    ) -> None:
        self._endpoints: tuple[Endpoint, ...] = tuple(endpoints)
        self._root = Path(root).resolve() if root is not None else None
        self._cache = cache
        self._parsers: dict[str, Parser] = {}
        self.warnings: list[str] = []

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def discover(self, directory: Path | str) -> list[Path]:
        """Test files below *directory*, sorted, skipping vendored trees."""
        directory = Path(directory)
        found: set[Path] = set()
        for pattern in self.file_globs:
            for path in directory.rglob(pattern):
                if path.is_file() and not _SKIPPED_DIRS.intersection(path.parts):
                    found.add(path)
        return sorted(found)

    def parse_directory(self, directory: Path | str) -> list[UnitTest]:
        return self.parse(self.discover(directory))

    def parse(self, files: Iterable[Path]) -> list[UnitTest]:
        """Parse *files* into unit tests, skipping unreadable or broken files."""
        tests: list[UnitTest] = []
        for path in files:
            path = Path(path)
            discovered = self._discover_in_file(path)
            if discovered is None:
                continue
            tests.extend(self._to_unit_tests(path, discovered))
        logger.info("Discovered %d %s tests", len(tests), self.language)
        return tests

    # ------------------------------------------------------------------
    # Subclass hooks
    # ------------------------------------------------------------------

    def _language_for(self, path: Path) -> Language:
        raise NotImplementedError

    def _extract(self, root: Node, path: Path) -> list[DiscoveredTest]:
        raise NotImplementedError

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _parser_for(self, path: Path) -> Parser:
        lang = self._language_for(path)
        key = path.suffix.lower()
        parser = self._parsers.get(key)
        if parser is None:
            parser = Parser(lang)
            self._parsers[key] = parser
        return parser

    def _warn(self, message: str, path: Path) -> None:
        self.warnings.append(message)
        logger.warning(message, extra={"test_file": path.as_posix()})

    def _discover_in_file(self, path: Path) -> list[DiscoveredTest] | None:
        if self._cache is not None:
            cached = self._cache.get(path)
            if cached is not None:
                return cached

        try:
            source = path.read_bytes()
        except OSError as exc:
            self._warn(f"Skipping unreadable test file {path}: {exc}", path)
            return None

        tree = self._parser_for(path).parse(source)
        if tree.root_node.has_error:
            self._warn(f"Skipping test file with syntax errors: {path}", path)
            return None

        discovered = self._extract(tree.root_node, path)
        if self._cache is not None:
            self._cache.put(path, discovered)
        return discovered

    def _display_path(self, path: Path) -> str:
        if self._root is not None:
            try:
                return path.resolve().relative_to(self._root).as_posix()
            except ValueError:
                pass
        return path.as_posix()

    def _to_unit_tests(self, path: Path, discovered: list[DiscoveredTest]) -> list[UnitTest]:
        file_path = self._display_path(path)
        seen: set[str] = set()
        tests: list[UnitTest] = []
        for item in discovered:
            qualified = f"{item.suite}::{item.name}" if item.suite else item.name
            test_id = f"{file_path}::{qualified}"
            if test_id in seen:
                test_id = f"{test_id}@{item.line}"
            seen.add(test_id)

            text = " ".join(p for p in (item.suite, item.name, item.description) if p)
            tests.append(
                UnitTest(
                    id=test_id,
                    file_path=file_path,
                    line_number=item.line,
                    declared_name=item.name,
                    endpoint_key_candidates=endpoint_candidates(text, path.name, self._endpoints),
                    method=infer_method(item.name, item.description, item.suite),
                    description=item.description,
                    suite=item.suite,
                    language=self.language,
                )
            )
        return tests
