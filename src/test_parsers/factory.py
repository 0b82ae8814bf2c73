"""Language to test-parser lookup."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable

from src.coverage_engine.cache import FileCache
from src.shared.constants import SUPPORTED_LANGUAGES
from src.shared.errors import ConfigurationError
from src.shared.models import Endpoint
from src.test_parsers.base import BaseTestParser, DiscoveredTest
from src.test_parsers.go_parser import GoTestParser
from src.test_parsers.java_parser import JavaTestParser
from src.test_parsers.python_parser import PythonTestParser
from src.test_parsers.typescript_parser import TypeScriptTestParser

_ALIASES = {
    "py": "python",
    "ts": "typescript",
    "javascript": "typescript",
    "js": "typescript",
    "golang": "go",
}


class ParserFactory:
    """Creates the parser registered for a language."""

    def __init__(self) -> None:
        self._parsers: dict[str, type[BaseTestParser]] = {}
        for parser_cls in (PythonTestParser, TypeScriptTestParser, GoTestParser, JavaTestParser):
            self.register(parser_cls)

    def register(self, parser_cls: type[BaseTestParser]) -> None:
        self._parsers[parser_cls.language] = parser_cls

    def languages(self) -> list[str]:
        return sorted(self._parsers)

    def is_supported(self, language: str) -> bool:
        return self._canonical(language) in self._parsers

    def create(
        self,
        language: str,
        endpoints: Iterable[Endpoint] = (),
        *,
        root: Path | str | None = None,
        cache: FileCache[list[DiscoveredTest]] | None = None,
    ) -> BaseTestParser:
        """Return a parser for *language*.

        Raises:
            ConfigurationError: no parser is registered for *language*.
        """
        canonical = self._canonical(language)
        parser_cls = self._parsers.get(canonical)
        if parser_cls is None:
            raise ConfigurationError(
                f"No test parser for language '{language}' "
                f"(supported: {', '.join(SUPPORTED_LANGUAGES)})"
            )
        return parser_cls(endpoints, root=root, cache=cache)

    @staticmethod
    def _canonical(language: str) -> str:
        lowered = language.strip().lower()
        return _ALIASES.get(lowered, lowered)
