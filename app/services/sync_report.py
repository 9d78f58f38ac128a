# app/services/sync_report.py
"""
Per-product sync results, the batch report they roll up into, and a small
TTL cache holding the most recent report for the dashboard endpoint.
"""

import time
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional

from app.core.enums import SyncOutcome

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    """What happened to one product during a pass"""
    product_id: int
    title: str = ""
    success: bool = True
    actions: List[str] = field(default_factory=list)
    error: Optional[str] = None
    outcomes: List[SyncOutcome] = field(default_factory=list)
    stripe_product_id: Optional[str] = None
    stripe_price_id: Optional[str] = None

    def log(self, action: str) -> None:
        self.actions.append(action)
        logger.info(f"Product {self.product_id}: {action}")

    def mark(self, outcome: SyncOutcome) -> None:
        if outcome not in self.outcomes:
            self.outcomes.append(outcome)

    def fail(self, error: Exception) -> None:
        self.success = False
        self.error = str(error) or error.__class__.__name__

    def to_dict(self) -> Dict[str, Any]:
        return {
            "product_id": self.product_id,
            "title": self.title,
            "success": self.success,
            "actions": list(self.actions),
            "error": self.error,
            "outcomes": [o.value for o in self.outcomes],
            "stripe_product_id": self.stripe_product_id,
            "stripe_price_id": self.stripe_price_id,
        }


@dataclass
class SyncReport:
    """Summary report of a catalog sync pass"""
    ready: bool = True
    issues: List[str] = field(default_factory=list)
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    created: int = 0
    updated: int = 0
    reused: int = 0
    skipped: int = 0
    errors: List[Dict[str, Any]] = field(default_factory=list)
    results: List[SyncResult] = field(default_factory=list)
    aborted: List[int] = field(default_factory=list)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @property
    def success(self) -> bool:
        return self.ready and self.failed == 0 and not self.aborted

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.started_at is None or self.finished_at is None:
            return None
        return (self.finished_at - self.started_at).total_seconds()

    @classmethod
    def refused(cls, issues: Iterable[str]) -> "SyncReport":
        now = datetime.now(timezone.utc)
        return cls(ready=False, issues=list(issues), started_at=now, finished_at=now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ready": self.ready,
            "success": self.success,
            "issues": list(self.issues),
            "processed": self.processed,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "created": self.created,
            "updated": self.updated,
            "reused": self.reused,
            "skipped": self.skipped,
            "errors": list(self.errors),
            "aborted": list(self.aborted),
            "results": [r.to_dict() for r in self.results],
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }


def summarize(
    results: Iterable[SyncResult],
    aborted: Iterable[int] = (),
    started_at: Optional[datetime] = None,
    finished_at: Optional[datetime] = None,
) -> SyncReport:
    """Roll per-product results up into a SyncReport. Pure, no I/O."""
    report = SyncReport(started_at=started_at, finished_at=finished_at)
    for result in results:
        report.results.append(result)
        report.processed += 1
        if result.success:
            report.succeeded += 1
        else:
            report.failed += 1
            report.errors.append({
                "product_id": result.product_id,
                "title": result.title,
                "error": result.error,
            })
        if SyncOutcome.CREATED in result.outcomes:
            report.created += 1
        if SyncOutcome.UPDATED in result.outcomes:
            report.updated += 1
        if SyncOutcome.REUSED in result.outcomes:
            report.reused += 1
        if SyncOutcome.SKIPPED in result.outcomes:
            report.skipped += 1
    report.aborted = list(aborted)
    return report


class SyncReportCache:
    """
    Holds the latest SyncReport for ``ttl_seconds``.

    One instance per CatalogSyncService; ``put`` replaces, ``invalidate`` clears.
    """

    def __init__(self, ttl_seconds: float = 300, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._report: Optional[SyncReport] = None
        self._stored_at: Optional[float] = None

    def put(self, report: SyncReport) -> None:
        self._report = report
        self._stored_at = self._clock()

    def get(self) -> Optional[SyncReport]:
        if self._report is None or self._stored_at is None:
            return None
        if self._clock() - self._stored_at > self.ttl_seconds:
            logger.debug("Cached sync report expired")
            self.invalidate()
            return None
        return self._report

    def invalidate(self) -> None:
        self._report = None
        self._stored_at = None
