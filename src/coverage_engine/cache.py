"""Explicit cache objects.

Nothing in the engine caches implicitly.  A caller that wants reuse across
runs creates one of these, passes it in, and invalidates it when it detects
that a source changed.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Generic, Hashable, TypeVar

from src.shared.models import OracleResponse, Scenario, UnitTest

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class _Stamp:
    mtime_ns: int
    size: int


class FileCache(Generic[T]):
    """Per-file parse results, dropped automatically when the file changes."""

    def __init__(self) -> None:
        self._entries: dict[str, tuple[_Stamp, T]] = {}
        self.hits = 0
        self.misses = 0

    @staticmethod
    def _stamp(path: Path) -> _Stamp | None:
        try:
            stat = os.stat(path)
        except OSError:
            return None
        return _Stamp(mtime_ns=stat.st_mtime_ns, size=stat.st_size)

    def get(self, path: Path | str) -> T | None:
        key = str(Path(path).resolve())
        entry = self._entries.get(key)
        if entry is None:
            self.misses += 1
            return None
        stamp, value = entry
        if self._stamp(Path(key)) != stamp:
            del self._entries[key]
            self.misses += 1
            logger.debug("Cache entry for %s is stale", key)
            return None
        self.hits += 1
        return value

    def put(self, path: Path | str, value: T) -> None:
        key = str(Path(path).resolve())
        stamp = self._stamp(Path(key))
        if stamp is not None:
            self._entries[key] = (stamp, value)

    def invalidate(self, path: Path | str | None = None) -> None:
        """Drop one file's entry, or everything when *path* is ``None``."""
        if path is None:
            self._entries.clear()
        else:
            self._entries.pop(str(Path(path).resolve()), None)

    def __len__(self) -> int:
        return len(self._entries)


class MatchCache:
    """Oracle responses keyed by scenario and the exact candidate set."""

    def __init__(self) -> None:
        self._entries: dict[Hashable, OracleResponse] = {}
        self.hits = 0
        self.misses = 0

    @staticmethod
    def key_for(scenario: Scenario, candidates: list[UnitTest] | tuple[UnitTest, ...]) -> tuple[Any, ...]:
        return (
            scenario.endpoint_key,
            scenario.category.value,
            scenario.text,
            tuple(sorted(t.id for t in candidates)),
        )

    def get(self, scenario: Scenario, candidates: list[UnitTest] | tuple[UnitTest, ...]) -> OracleResponse | None:
        response = self._entries.get(self.key_for(scenario, candidates))
        if response is None:
            self.misses += 1
        else:
            self.hits += 1
        return response

    def put(
        self,
        scenario: Scenario,
        candidates: list[UnitTest] | tuple[UnitTest, ...],
        response: OracleResponse,
    ) -> None:
        self._entries[self.key_for(scenario, candidates)] = response

    def invalidate(self, endpoint_key: str | None = None) -> None:
        """Drop one endpoint's responses, or everything when *endpoint_key* is ``None``."""
        if endpoint_key is None:
            self._entries.clear()
            return
        for key in [k for k in self._entries if k[0] == endpoint_key]:
            del self._entries[key]

    def __len__(self) -> int:
        return len(self._entries)
