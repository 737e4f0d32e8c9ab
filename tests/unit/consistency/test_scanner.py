"""Tests for ConsistencyScanner."""

import pytest

from docrecon.consistency.findings import (
    ConsistencyFinding,
    FindingKind,
    ScanReport,
    risk_level,
)
from docrecon.consistency.scanner import ByteBudget, ConsistencyScanner
from docrecon.db.uow import UnitOfWork
from docrecon.documents.models import StorageStatus
from docrecon.documents.repository import DocumentRepository


async def pending_record(engine):
    async with UnitOfWork(engine) as uow:
        return await DocumentRepository(uow.session).create(
            owning_entity_id="app-1", file_name="never.pdf", mime_type="application/pdf"
        )


def kinds(report: ScanReport) -> dict[str, int]:
    return {k: v for k, v in report.counts().items() if v}


@pytest.mark.asyncio
@pytest.mark.consistency
class TestConsistencyScanner:
    async def test_empty_store_is_clean(self, scanner):
        report = await scanner.scan()

        assert report.findings == []
        assert report.total_records == 0
        assert report.primary_reachable is True
        assert report.duration_ms is not None

    async def test_healthy_primary_and_fallback(self, scanner, documents, fallback_upload):
        await documents.upload("app-1", "a.pdf", b"primary")
        await fallback_upload(b"fallback")

        report = await scanner.scan()

        assert kinds(report) == {"healthy": 2}
        assert report.disk_file_count == 1
        assert report.document_issue_count == 0

    async def test_missing_primary_object(self, scanner, documents, primary):
        record = await documents.upload("app-1", "a.pdf", b"primary")
        primary.clear()

        report = await scanner.scan()

        [finding] = report.by_kind(FindingKind.MISSING_FILE)
        assert finding.document_id == str(record.id)
        assert finding.storage_status == "success"

    async def test_missing_fallback_file(self, scanner, fallback_upload, fallback):
        record = await fallback_upload()
        await fallback.delete(record.storage_key)

        report = await scanner.scan()

        [finding] = report.by_kind(FindingKind.MISSING_FILE)
        assert finding.document_id == str(record.id)
        assert finding.storage_status == "fallback"

    async def test_changed_fallback_bytes(self, scanner, fallback_upload, fallback):
        record = await fallback_upload(b"original")
        await fallback.put(b"tampered", record.storage_key)

        report = await scanner.scan()

        [finding] = report.by_kind(FindingKind.CHECKSUM_MISMATCH)
        assert finding.document_id == str(record.id)

    async def test_orphaned_record(self, scanner, engine):
        record = await pending_record(engine)

        report = await scanner.scan()

        [finding] = report.by_kind(FindingKind.ORPHANED_RECORD)
        assert finding.document_id == str(record.id)
        assert report.document_issue_count == 0

    async def test_orphaned_file(self, scanner, fallback):
        await fallback.put(b"stray", "documents/app-9/stray.pdf")

        report = await scanner.scan()

        [finding] = report.by_kind(FindingKind.ORPHANED_FILE)
        assert finding.document_id is None
        assert finding.storage_key == "documents/app-9/stray.pdf"
        assert report.orphaned_file_count == 1
        # orphaned files never count against documents
        assert report.total_records == 0

    async def test_orphaned_files_are_never_deleted(self, scanner, fallback):
        await fallback.put(b"stray", "stray.pdf")

        await scanner.scan()
        await scanner.scan()

        assert await fallback.list_files() == ["stray.pdf"]

    async def test_primary_down_leaves_primary_records_unchecked(
        self, scanner, documents, primary, fallback_upload
    ):
        """Outage must not be reported as missing files."""
        primary_doc = await documents.upload("app-1", "a.pdf", b"primary")
        await fallback_upload(b"fallback")
        primary.available = False

        report = await scanner.scan()

        assert report.primary_reachable is False
        assert report.unchecked == [str(primary_doc.id)]
        assert kinds(report) == {"healthy": 1}
        assert report.total_records == 2

    async def test_scan_does_not_mutate_records(self, scanner, documents, primary, engine):
        record = await documents.upload("app-1", "a.pdf", b"primary")
        primary.clear()

        await scanner.scan()

        async with engine.session() as session:
            reloaded = await DocumentRepository(session).get(record.id)
        assert reloaded.storage_status == StorageStatus.SUCCESS

    async def test_corrupted_primary_detected_by_default(self, scanner, documents, primary):
        record = await documents.upload("app-1", "a.pdf", b"0123456789")
        primary.corrupt(record.storage_key, b"corrupted!")

        report = await scanner.scan()

        assert kinds(report) == {"checksum_mismatch": 1}
        [finding] = report.findings
        assert finding.document_id == str(record.id)
        assert finding.risk_level == "medium"

    async def test_over_budget_documents_are_unchecked(self, engine, primary, fallback, documents):
        small = await documents.upload("app-1", "a.pdf", b"abc")
        large = await documents.upload("app-1", "b.pdf", b"0123456789")
        primary.corrupt(large.storage_key, b"corrupted!")
        budgeted = ConsistencyScanner(engine, primary, fallback, primary_verify_max_bytes=5)

        report = await budgeted.scan()

        assert kinds(report) == {"healthy": 1}
        assert report.findings[0].document_id == str(small.id)
        assert report.unchecked == [str(large.id)]

    async def test_verification_can_be_disabled(self, engine, primary, fallback, documents):
        record = await documents.upload("app-1", "a.pdf", b"primary")
        primary.corrupt(record.storage_key, b"changed")
        existence_only = ConsistencyScanner(
            engine, primary, fallback, verify_primary_checksums=False
        )

        report = await existence_only.scan()

        assert kinds(report) == {"healthy": 1}
        assert report.unchecked == []


@pytest.mark.consistency
class TestScanReport:
    def test_preview_limits_per_kind(self):
        report = ScanReport(
            findings=[
                ConsistencyFinding(FindingKind.MISSING_FILE, document_id=str(i)) for i in range(5)
            ]
            + [ConsistencyFinding(FindingKind.HEALTHY, document_id="ok")]
        )

        preview = report.preview(limit=2)

        assert "healthy" not in preview
        assert len(preview["missing_file"]) == 2
        assert preview["orphaned_file"] == []
        assert report.to_dict(preview_limit=2)["counts"]["missing_file"] == 5


@pytest.mark.consistency
class TestByteBudget:
    def test_unlimited(self):
        budget = ByteBudget()
        assert budget.take(10**12)
        assert budget.skipped == 0

    def test_skips_what_does_not_fit(self):
        budget = ByteBudget(10)

        assert budget.take(6)
        assert not budget.take(6)
        assert budget.take(4)

        assert budget.remaining == 0
        assert budget.skipped == 1


@pytest.mark.consistency
class TestRiskLevel:
    @pytest.mark.parametrize(
        "kind,level",
        [
            (FindingKind.MISSING_FILE, "high"),
            (FindingKind.CHECKSUM_MISMATCH, "medium"),
            (FindingKind.ORPHANED_RECORD, "medium"),
            (FindingKind.ORPHANED_FILE, "low"),
            (FindingKind.HEALTHY, "low"),
        ],
    )
    def test_levels(self, kind, level):
        assert risk_level(kind) == level
        assert ConsistencyFinding(kind, document_id="d").to_dict()["risk_level"] == level
