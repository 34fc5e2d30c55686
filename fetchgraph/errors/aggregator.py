"""
errors/aggregator.py - Aggregate and report fetch failures
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .taxonomy import FetchFailure


@dataclass
class FailureReport:
    """Aggregated failure report."""

    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    # Counts
    total_failures: int = 0
    by_definition: Dict[str, int] = field(default_factory=dict)

    # Summary
    summary: str = ""

    # Most recent failure per definition
    latest: Dict[str, FetchFailure] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "created_at": self.created_at.isoformat(),
            "total_failures": self.total_failures,
            "by_definition": self.by_definition,
            "summary": self.summary,
            "latest": {k: v.to_dict() for k, v in self.latest.items()},
        }


class FailureAggregator:
    """
    Collects fetch failures in arrival order.

    Bounded: once max_failures is exceeded the oldest entries are dropped.
    """

    def __init__(self, max_failures: int = 1000):
        self._failures: List[FetchFailure] = []
        self._by_definition: Dict[str, List[FetchFailure]] = {}
        self._max_failures = max_failures

    def add(self, failure: FetchFailure) -> None:
        """Add a failure."""
        self._failures.append(failure)
        self._by_definition.setdefault(failure.definition_id, []).append(failure)

        if len(self._failures) > self._max_failures:
            dropped = self._failures[: len(self._failures) - self._max_failures]
            self._failures = self._failures[-self._max_failures:]
            for old in dropped:
                bucket = self._by_definition.get(old.definition_id, [])
                if old in bucket:
                    bucket.remove(old)
                if not bucket:
                    self._by_definition.pop(old.definition_id, None)

    def get_by_definition(self, definition_id: str) -> List[FetchFailure]:
        """Get failures recorded for one definition."""
        return list(self._by_definition.get(definition_id, []))

    def latest(self, definition_id: str) -> Optional[FetchFailure]:
        bucket = self._by_definition.get(definition_id)
        return bucket[-1] if bucket else None

    def has_errors(self) -> bool:
        return bool(self._failures)

    def all(self) -> List[FetchFailure]:
        return list(self._failures)

    def __len__(self) -> int:
        return len(self._failures)

    def generate_report(self) -> FailureReport:
        """Generate aggregated report."""
        report = FailureReport(total_failures=len(self._failures))
        for definition_id, bucket in self._by_definition.items():
            report.by_definition[definition_id] = len(bucket)
            report.latest[definition_id] = bucket[-1]

        if report.total_failures:
            report.summary = (
                f"{report.total_failures} fetch failure(s) across "
                f"{len(report.by_definition)} definition(s)"
            )
        else:
            report.summary = "No fetch failures"
        return report

    def clear(self) -> None:
        """Clear all failures."""
        self._failures.clear()
        self._by_definition.clear()
