"""Persistent coverage history.

One JSON file per history directory holds the most recent snapshots of the
run summary.  Writes are atomic and the list is trimmed to a bounded length,
so the newest entries always win.
"""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from src.shared.constants import DEFAULT_MAX_SNAPSHOTS, HISTORY_FILE_NAME
from src.shared.models import CoverageResult
from src.shared.utils import atomic_write_json, load_json, now_iso

logger = logging.getLogger(__name__)


class Snapshot(BaseModel):
    """Summary numbers of one run."""
    timestamp: str = Field(default_factory=now_iso)
    service: str = ""
    coverage_percent: float = 0.0
    total_endpoints: int = 0
    total_scenarios: int = 0
    fully_covered: int = 0
    gaps_by_priority: dict[str, int] = Field(default_factory=dict)
    orphan_api_count: int = 0
    business_orphan_count: int = 0
    technical_orphan_count: int = 0
    total_tests: int = 0

    @classmethod
    def from_result(cls, result: CoverageResult, service: str = "", total_tests: int = 0) -> Snapshot:
        summary = result.summary
        return cls(
            service=service,
            coverage_percent=summary.coverage_percent,
            total_endpoints=summary.total_endpoints,
            total_scenarios=summary.total_scenarios,
            fully_covered=summary.fully_covered,
            gaps_by_priority=dict(summary.gaps_by_priority),
            orphan_api_count=summary.orphan_api_count,
            business_orphan_count=summary.business_orphan_count,
            technical_orphan_count=summary.technical_orphan_count,
            total_tests=total_tests,
        )


class Trend(BaseModel):
    """Change between the two most recent snapshots."""
    coverage_change: float = 0.0
    p0_gap_change: int = 0
    test_growth: int = 0
    direction: str = "stable"


class HistoryStore:
    """Reads and appends snapshots under *directory*."""

    def __init__(self, directory: Path | str, max_snapshots: int = DEFAULT_MAX_SNAPSHOTS) -> None:
        if max_snapshots < 1:
            raise ValueError("max_snapshots must be at least 1")
        self._path = Path(directory) / HISTORY_FILE_NAME
        self._max = max_snapshots

    @property
    def path(self) -> Path:
        return self._path

    def load(self, service: str | None = None) -> list[Snapshot]:
        """Stored snapshots, oldest first.  A corrupt file reads as empty."""
        raw = load_json(self._path)
        if raw is None:
            return []
        if not isinstance(raw, list):
            logger.warning("Ignoring malformed history file %s", self._path)
            return []
        snapshots: list[Snapshot] = []
        for item in raw:
            try:
                snapshots.append(Snapshot.model_validate(item))
            except ValidationError as exc:
                logger.warning("Skipping malformed history entry in %s: %s", self._path, exc)
        if service is not None:
            snapshots = [s for s in snapshots if s.service == service]
        return snapshots

    def append(self, snapshot: Snapshot) -> list[Snapshot]:
        """Store *snapshot* and drop the oldest entries beyond the limit."""
        snapshots = self.load()
        snapshots.append(snapshot)
        snapshots = snapshots[-self._max:]
        atomic_write_json(self._path, [s.model_dump() for s in snapshots])
        logger.info("Recorded coverage snapshot (%d kept) in %s", len(snapshots), self._path)
        return snapshots

    def record(self, result: CoverageResult, service: str = "", total_tests: int = 0) -> Snapshot:
        snapshot = Snapshot.from_result(result, service=service, total_tests=total_tests)
        self.append(snapshot)
        return snapshot

    def trend(self, service: str | None = None) -> Trend | None:
        """Compare the last two snapshots, or ``None`` with fewer than one."""
        snapshots = self.load(service)
        if not snapshots:
            return None
        if len(snapshots) == 1:
            return Trend()
        previous, latest = snapshots[-2], snapshots[-1]
        change = round(latest.coverage_percent - previous.coverage_percent, 1)
        if change > 0:
            direction = "improving"
        elif change < 0:
            direction = "declining"
        else:
            direction = "stable"
        return Trend(
            coverage_change=change,
            p0_gap_change=latest.gaps_by_priority.get("P0", 0) - previous.gaps_by_priority.get("P0", 0),
            test_growth=latest.total_tests - previous.total_tests,
            direction=direction,
        )

    def clear(self) -> None:
        self._path.unlink(missing_ok=True)
