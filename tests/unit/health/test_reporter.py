"""Tests for HealthReporter."""

import asyncio
import datetime as dt

import pytest

from docrecon.documents.models import AttemptStatus
from docrecon.documents.records import UploadAttempt
from docrecon.exceptions import ObjectNotFoundError
from docrecon.health.policy import HealthStatus
from docrecon.health.reporter import (
    HealthReporter,
    hourly_activity,
    recovery_priority,
    success_rate,
)


def make_reporter(components, **kwargs) -> HealthReporter:
    c = components
    return HealthReporter(c.engine, c.primary, c.fallback, c.scanner, **kwargs)


@pytest.mark.health
class TestHelpers:
    @pytest.mark.parametrize(
        "missing,priority", [(0, "low"), (2, "low"), (3, "medium"), (5, "medium"), (6, "high")]
    )
    def test_recovery_priority(self, missing, priority):
        assert recovery_priority(missing) == priority

    def test_success_rate(self):
        assert success_rate(2, 3) == 67
        assert success_rate(0, 0) == 0

    def test_hourly_activity(self):
        now = dt.datetime(2026, 1, 1, 12, 30, tzinfo=dt.timezone.utc)
        attempts = [
            UploadAttempt(1, None, AttemptStatus.SUCCESS, now),
            UploadAttempt(2, None, AttemptStatus.FALLBACK, now - dt.timedelta(minutes=10)),
            UploadAttempt(3, None, AttemptStatus.FAILURE, now - dt.timedelta(hours=2)),
            UploadAttempt(4, None, AttemptStatus.SUCCESS, now - dt.timedelta(days=3)),
        ]

        rows = hourly_activity(attempts, now, hours=3)

        assert [r["hour"] for r in rows] == [
            "2026-01-01T12:00:00+00:00",
            "2026-01-01T11:00:00+00:00",
            "2026-01-01T10:00:00+00:00",
        ]
        assert rows[0] == {
            "hour": "2026-01-01T12:00:00+00:00",
            "success": 1,
            "fallback": 1,
            "failure": 0,
            "total": 2,
        }
        assert rows[2]["failure"] == 1


@pytest.mark.asyncio
@pytest.mark.health
class TestHealth:
    async def test_all_checks_pass(self, reporter, documents):
        await documents.upload("app-1", "a.pdf", b"abc")

        report = await reporter.health()

        assert report.score == 100
        assert report.status == HealthStatus.HEALTHY
        assert report.recent_uploads == 1
        assert set(report.to_dict()["checks"]) == {"database", "primary_store", "recent_activity"}

    async def test_quiet_window_is_still_healthy(self, reporter):
        report = await reporter.health()

        assert report.score == 80
        assert report.status == HealthStatus.HEALTHY
        assert report.check("recent_activity").status == HealthStatus.DEGRADED

    async def test_primary_down(self, reporter, documents, primary):
        await documents.upload("app-1", "a.pdf", b"abc")
        primary.available = False

        report = await reporter.health()

        assert report.score == 60
        assert report.status == HealthStatus.DEGRADED
        assert report.check("primary_store").status == HealthStatus.UNHEALTHY

    async def test_primary_down_and_quiet(self, reporter, primary):
        primary.available = False

        report = await reporter.health()

        assert report.score == 40
        assert report.status == HealthStatus.UNHEALTHY

    async def test_hanging_check_times_out(self, components, monkeypatch):
        """A slow dependency costs only its own share of the score."""

        async def hang():
            await asyncio.sleep(5)

        monkeypatch.setattr(components.primary, "ping", hang)
        reporter = make_reporter(components, check_timeout=0.05)

        report = await reporter.health()

        check = report.check("primary_store")
        assert check.status == HealthStatus.UNHEALTHY
        assert "timed out" in check.message
        assert report.check("database").passed

    async def test_database_outage_costs_its_share(self, components, documents, monkeypatch):
        """Only the database weight is lost when the connectivity check fails."""
        await documents.upload("app-1", "a.pdf", b"abc")

        async def unreachable(session, **kwargs):
            return False

        monkeypatch.setattr("docrecon.health.reporter.db_healthcheck", unreachable)

        report = await make_reporter(components).health()

        assert report.score == 60
        assert report.status == HealthStatus.DEGRADED
        assert report.check("database").status == HealthStatus.UNHEALTHY
        assert report.check("primary_store").passed
        assert report.check("recent_activity").passed

    async def test_database_down_report_still_renders(self, components, monkeypatch):
        """Sessions that cannot open fail their checks instead of the report."""

        def no_session():
            raise ConnectionRefusedError("database is down")

        monkeypatch.setattr(components.engine, "session", no_session)

        report = await make_reporter(components).health()

        body = report.to_dict()
        assert body["checks"]["database"]["status"] == "unhealthy"
        assert "database is down" in body["checks"]["database"]["message"]
        assert body["checks"]["primary_store"]["status"] == "healthy"
        # upload activity is read from the same database
        assert body["checks"]["recent_activity"]["status"] == "unhealthy"
        assert report.score == 40
        assert report.status == HealthStatus.UNHEALTHY

    async def test_window_follows_clock(self, components, documents):
        await documents.upload("app-1", "a.pdf", b"abc")
        later = dt.datetime.now(dt.timezone.utc) + dt.timedelta(hours=2)
        reporter = make_reporter(components, clock=lambda: later)

        report = await reporter.health()

        assert report.recent_uploads == 0
        assert report.check("recent_activity").status == HealthStatus.DEGRADED


@pytest.mark.asyncio
@pytest.mark.health
class TestMetricsAndAudit:
    async def test_metrics(self, reporter, documents, fallback_upload, fallback):
        await documents.upload("app-1", "a.pdf", b"one")
        await documents.upload("app-1", "b.pdf", b"two")
        present = await fallback_upload(b"three")
        gone = await fallback_upload(b"four")
        await fallback.delete(gone.storage_key)

        metrics = await reporter.metrics()

        totals = metrics["totals"]
        assert totals["total_uploads"] == 4
        assert totals["success"] == 2
        assert totals["fallback"] == 2
        assert totals["success_rate"] == 50
        assert totals["pending_retry"] == 1
        assert metrics["storage_status"]["fallback"] == 2
        statuses = {d["id"]: d["file_status"] for d in metrics["fallback_documents"]}
        assert statuses == {str(present.id): "file_exists", str(gone.id): "file_missing"}
        assert len(metrics["hourly_activity"]) == 24
        assert metrics["hourly_activity"][0]["total"] == 4

    async def test_metrics_empty(self, reporter):
        metrics = await reporter.metrics()

        assert metrics["totals"]["total_uploads"] == 0
        assert metrics["totals"]["success_rate"] == 0
        assert metrics["fallback_documents"] == []

    async def test_fallback_preview_is_capped(self, components, fallback_upload):
        for _ in range(3):
            await fallback_upload()
        reporter = make_reporter(components, fallback_preview_limit=2)

        metrics = await reporter.metrics()

        assert len(metrics["fallback_documents"]) == 2

    async def test_audit_report(self, reporter, documents, fallback_upload):
        await documents.upload("app-1", "a.pdf", b"one")
        await fallback_upload()

        audit = await reporter.audit_report()

        assert audit["fallback_documents"] == 1
        assert audit["successful_documents"] == 1
        assert audit["failed_documents"] == 0
        assert audit["failed_uploads"] == 0
        assert audit["last_upload_at"] is not None
        assert audit["recovery_events_24h"] == {
            "missing_detected": 0,
            "recovery_initiated": 0,
            "recovered": 0,
            "recovery_failed": 0,
        }

    async def test_audit_counts_recovery_events(self, reporter, coordinator, fallback_upload):
        record = await fallback_upload()
        await coordinator.migrate(record.id)

        audit = await reporter.audit_report()

        assert audit["recovery_events_24h"]["recovery_initiated"] == 1
        assert audit["recovery_events_24h"]["recovered"] == 1
        assert audit["successful_documents"] == 1


@pytest.mark.asyncio
@pytest.mark.health
class TestScanViews:
    async def test_extended_scan(self, reporter, documents, primary, fallback):
        ok = await documents.upload("app-1", "a.pdf", b"one")
        lost = await documents.upload("app-1", "b.pdf", b"two")
        await documents.open_document(ok.id)
        primary.clear()
        await fallback.put(b"stray", "documents/app-1/stray.pdf")
        with pytest.raises(ObjectNotFoundError):
            await documents.open_document(lost.id)

        view = await reporter.extended_scan()

        assert view["scan"]["counts"]["missing_file"] == 2
        assert view["disk_only_files"] == 1
        assert view["serving"]["served"] == 1
        assert view["serving"]["failed"] == 1
        assert view["serving"]["success_rate"] == 50
        assert view["serving"]["by_status"] == {"200": 1, "404": 1}

    async def test_extended_scan_reports_corrupted_primary(self, reporter, documents, primary):
        record = await documents.upload("app-1", "a.pdf", b"0123456789")
        primary.corrupt(record.storage_key, b"corrupted!")

        view = await reporter.extended_scan()

        assert view["scan"]["counts"]["checksum_mismatch"] == 1
        assert view["scan"]["counts"]["healthy"] == 0

    async def test_bulk_status(self, reporter, documents, primary):
        lost = [await documents.upload("app-1", f"{i}.pdf", b"x") for i in range(3)]
        await documents.upload("app-2", "ok.pdf", b"y")
        for record in lost:
            await primary.delete(record.storage_key)

        status = await reporter.bulk_status(["app-1", "app-2", "app-3", "app-1"])

        rows = {r["owning_entity_id"]: r for r in status["entities"]}
        assert list(rows) == ["app-1", "app-2", "app-3"]
        assert rows["app-1"]["missing_documents"] == 3
        assert rows["app-1"]["recovery_priority"] == "medium"
        assert rows["app-1"]["needs_recovery"] is True
        assert rows["app-2"]["needs_recovery"] is False
        assert rows["app-3"]["total_documents"] == 0
        assert status["summary"] == {
            "total_entities": 3,
            "entities_needing_recovery": 1,
            "total_missing_documents": 3,
        }

    async def test_bulk_status_with_primary_down(self, reporter, documents, primary):
        await documents.upload("app-1", "a.pdf", b"x")
        primary.available = False

        status = await reporter.bulk_status(["app-1"])

        # unchecked documents are not reported missing
        assert status["entities"][0]["missing_documents"] == 0
