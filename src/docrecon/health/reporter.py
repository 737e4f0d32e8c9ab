"""
Operational health views.

Read-only aggregation over the document tables, the upload, access and
recovery logs, the stores and the consistency scanner. Each reachability
check runs on its own with a timeout, so one failing dependency only removes
its own share of the score.
"""

from __future__ import annotations

import asyncio
import datetime as dt
import logging
import time
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Iterable, Optional

from docrecon.consistency.findings import FindingKind, ScanReport
from docrecon.consistency.scanner import ConsistencyScanner
from docrecon.db.base import utcnow
from docrecon.db.engine import DBEngine
from docrecon.db.health import db_healthcheck
from docrecon.documents.models import AttemptStatus, StorageStatus
from docrecon.documents.records import UploadAttempt
from docrecon.documents.repository import (
    AccessLogRepository,
    DocumentRepository,
    RecoveryLogRepository,
    UploadAttemptRepository,
)
from docrecon.exceptions import StorageError
from docrecon.storage.base import ObjectStore
from docrecon.storage.fallback import LocalFallbackStore

from .policy import DEFAULT_POLICY, HealthCheckResult, HealthPolicy, HealthStatus

logger = logging.getLogger(__name__)

CheckOutcome = tuple[HealthStatus, Optional[str], Optional[dict[str, Any]]]
CheckFn = Callable[[], Awaitable[CheckOutcome]]


def recovery_priority(missing: int) -> str:
    if missing > 5:
        return "high"
    if missing > 2:
        return "medium"
    return "low"


def success_rate(successes: int, total: int) -> int:
    """Whole-number percentage; 0 when nothing was attempted."""
    return round(successes / total * 100) if total else 0


def hourly_activity(
    attempts: Iterable[UploadAttempt], now: dt.datetime, hours: int = 24
) -> list[dict[str, Any]]:
    """Per-hour attempt counts for the trailing ``hours``, newest bucket first."""
    current = now.replace(minute=0, second=0, microsecond=0)
    buckets: dict[dt.datetime, dict[str, int]] = {
        current - dt.timedelta(hours=i): defaultdict(int) for i in range(hours)
    }
    for attempt in attempts:
        hour = attempt.created_at.replace(minute=0, second=0, microsecond=0)
        if hour in buckets:
            buckets[hour][attempt.status.value] += 1
    rows = []
    for hour in sorted(buckets, reverse=True):
        counts = buckets[hour]
        row: dict[str, Any] = {"hour": hour.isoformat()}
        row.update({s.value: counts.get(s.value, 0) for s in AttemptStatus})
        row["total"] = sum(counts.values())
        rows.append(row)
    return rows


@dataclass
class HealthReport:
    status: HealthStatus
    score: int
    checks: list[HealthCheckResult] = field(default_factory=list)
    recent_uploads: int = 0
    window_seconds: int = 3600
    timestamp: dt.datetime = field(default_factory=utcnow)

    def check(self, name: str) -> Optional[HealthCheckResult]:
        return next((c for c in self.checks if c.name == name), None)

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "score": self.score,
            "checks": {c.name: c.to_dict() for c in self.checks},
            "recent_uploads": self.recent_uploads,
            "window_seconds": self.window_seconds,
            "timestamp": self.timestamp.isoformat(),
        }


class HealthReporter:
    def __init__(
        self,
        engine: DBEngine,
        primary: ObjectStore,
        fallback: LocalFallbackStore,
        scanner: ConsistencyScanner,
        policy: HealthPolicy = DEFAULT_POLICY,
        *,
        check_timeout: float = 5.0,
        activity_window_seconds: int = 3600,
        finding_preview_limit: int = 10,
        fallback_preview_limit: int = 50,
        clock: Callable[[], dt.datetime] = utcnow,
    ):
        self.engine = engine
        self.primary = primary
        self.fallback = fallback
        self.scanner = scanner
        self.policy = policy
        self.check_timeout = check_timeout
        self.activity_window_seconds = activity_window_seconds
        self.finding_preview_limit = finding_preview_limit
        self.fallback_preview_limit = fallback_preview_limit
        self._clock = clock

    # ---------------------------------------------------------------- checks

    async def _run_check(self, name: str, check: CheckFn) -> HealthCheckResult:
        start = time.perf_counter()
        try:
            status, message, details = await asyncio.wait_for(check(), timeout=self.check_timeout)
        except asyncio.TimeoutError:
            status, message, details = (
                HealthStatus.UNHEALTHY,
                f"timed out after {self.check_timeout}s",
                None,
            )
        except Exception as e:
            logger.warning("Health check %s failed: %s", name, e)
            status, message, details = HealthStatus.UNHEALTHY, str(e), None
        latency = (time.perf_counter() - start) * 1000
        return HealthCheckResult(name, status, latency, message, details)

    async def _check_database(self) -> CheckOutcome:
        async with self.engine.session() as session:
            ok = await db_healthcheck(session)
        if ok:
            return HealthStatus.HEALTHY, None, None
        return HealthStatus.UNHEALTHY, "database unreachable or documents table missing", None

    async def _check_primary(self) -> CheckOutcome:
        await self.primary.ping()
        return HealthStatus.HEALTHY, None, {"backend": self.primary.name}

    async def _check_activity(self) -> CheckOutcome:
        since = self._clock() - dt.timedelta(seconds=self.activity_window_seconds)
        async with self.engine.session() as session:
            count = await UploadAttemptRepository(session).count_since(since)
        details = {"uploads": count, "window_seconds": self.activity_window_seconds}
        if count > 0:
            return HealthStatus.HEALTHY, None, details
        return HealthStatus.DEGRADED, "no uploads in window", details

    async def health(self) -> HealthReport:
        db, store, activity = await asyncio.gather(
            self._run_check("database", self._check_database),
            self._run_check("primary_store", self._check_primary),
            self._run_check("recent_activity", self._check_activity),
        )
        score = self.policy.score(db.passed, store.passed, activity.passed)
        recent = int((activity.details or {}).get("uploads", 0))
        return HealthReport(
            status=self.policy.status_for(score),
            score=score,
            checks=[db, store, activity],
            recent_uploads=recent,
            window_seconds=self.activity_window_seconds,
            timestamp=self._clock(),
        )

    # --------------------------------------------------------------- metrics

    async def metrics(self) -> dict[str, Any]:
        now = self._clock()
        async with self.engine.session() as session:
            attempts = UploadAttemptRepository(session)
            docs = DocumentRepository(session)
            upload_counts = await attempts.counts_by_status()
            storage_counts = await docs.count_by_status()
            recent = await attempts.list_since(now - dt.timedelta(hours=24))
            fallback_docs = await docs.list_by_status(
                StorageStatus.FALLBACK, limit=self.fallback_preview_limit
            )

        preview = []
        for doc in fallback_docs:
            present = bool(doc.storage_key) and await self.fallback.exists(doc.storage_key)
            preview.append(
                {
                    "id": str(doc.id),
                    "owning_entity_id": doc.owning_entity_id,
                    "file_name": doc.file_name,
                    "size_bytes": doc.size_bytes,
                    "storage_key": doc.storage_key,
                    "created_at": doc.created_at.isoformat(),
                    "file_status": "file_exists" if present else "file_missing",
                }
            )

        total = sum(upload_counts.values())
        success = upload_counts[AttemptStatus.SUCCESS.value]
        return {
            "totals": {
                "total_uploads": total,
                "success": success,
                "fallback": upload_counts[AttemptStatus.FALLBACK.value],
                "failure": upload_counts[AttemptStatus.FAILURE.value],
                "pending_retry": sum(1 for p in preview if p["file_status"] == "file_exists"),
                "success_rate": success_rate(success, total),
            },
            "upload_counts": upload_counts,
            "storage_status": storage_counts,
            "hourly_activity": hourly_activity(recent, now),
            "fallback_documents": preview,
            "timestamp": now.isoformat(),
        }

    async def audit_report(self) -> dict[str, Any]:
        async with self.engine.session() as session:
            docs = DocumentRepository(session)
            attempts = UploadAttemptRepository(session)
            fallback_count = await docs.count(StorageStatus.FALLBACK)
            success_count = await docs.count(StorageStatus.SUCCESS)
            failed_documents = await docs.count(StorageStatus.FAILURE)
            failed_uploads = (await attempts.counts_by_status())[AttemptStatus.FAILURE.value]
            last_upload = await attempts.last_attempt_at()
            recovery_events = await RecoveryLogRepository(session).counts_by_event(
                self._clock() - dt.timedelta(hours=24)
            )
        return {
            "fallback_documents": fallback_count,
            "successful_documents": success_count,
            "failed_documents": failed_documents,
            "failed_uploads": failed_uploads,
            "last_upload_at": last_upload.isoformat() if last_upload else None,
            "recovery_events_24h": recovery_events,
            "timestamp": self._clock().isoformat(),
        }

    # ----------------------------------------------------------- scan views

    async def extended_scan(self, report: Optional[ScanReport] = None) -> dict[str, Any]:
        """Full scan view. Pass ``report`` to render a scan that already ran."""
        if report is None:
            report = await self.scanner.scan()
        since = self._clock() - dt.timedelta(hours=24)
        async with self.engine.session() as session:
            by_code = await AccessLogRepository(session).counts_by_status_code(since)
        served = by_code.get(200, 0)
        total = sum(by_code.values())
        return {
            "scan": report.to_dict(self.finding_preview_limit),
            "disk_only_files": report.orphaned_file_count,
            "serving": {
                "window_hours": 24,
                "total": total,
                "served": served,
                "failed": total - served,
                "by_status": {str(code): n for code, n in sorted(by_code.items())},
                "success_rate": success_rate(served, total),
            },
            "timestamp": self._clock().isoformat(),
        }

    async def bulk_status(self, owner_ids: Iterable[str]) -> dict[str, Any]:
        ids = list(dict.fromkeys(owner_ids))
        async with self.engine.session() as session:
            records = await DocumentRepository(session).list_by_owners(ids)

        reachable = True
        try:
            await self.primary.ping()
        except StorageError as e:
            logger.warning("Primary store unreachable for bulk status: %s", e)
            reachable = False

        grouped: dict[str, list] = defaultdict(list)
        for r in records:
            grouped[r.owning_entity_id].append(r)

        rows = []
        for owner in ids:
            docs = grouped.get(owner, [])
            findings = [
                await self.scanner.classify(d, primary_reachable=reachable, verify_content=False)
                for d in docs
            ]
            missing = sum(
                1 for f in findings if f is not None and f.kind == FindingKind.MISSING_FILE
            )
            rows.append(
                {
                    "owning_entity_id": owner,
                    "total_documents": len(docs),
                    "missing_documents": missing,
                    "needs_recovery": missing > 0,
                    "recovery_priority": recovery_priority(missing),
                }
            )
        return {
            "entities": rows,
            "summary": {
                "total_entities": len(ids),
                "entities_needing_recovery": sum(1 for r in rows if r["needs_recovery"]),
                "total_missing_documents": sum(r["missing_documents"] for r in rows),
            },
        }
