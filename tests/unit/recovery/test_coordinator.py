"""Tests for RecoveryCoordinator migration."""

import asyncio
import uuid

import pytest

from docrecon.db.uow import UnitOfWork
from docrecon.documents.models import StorageStatus
from docrecon.documents.repository import DocumentRepository, UploadAttemptRepository
from docrecon.exceptions import ObjectNotFoundError, ValidationError
from docrecon.recovery.coordinator import MigrationOutcome, RecoveryCoordinator
from docrecon.recovery.jobs import JobStatus


async def reload(engine, document_id):
    async with engine.session() as session:
        return await DocumentRepository(session).get(document_id)


@pytest.mark.asyncio
@pytest.mark.recovery
class TestMigrate:
    async def test_fallback_document_moves_to_primary(
        self, coordinator, fallback_upload, primary, fallback, engine
    ):
        record = await fallback_upload(b"fallback bytes")

        result = await coordinator.migrate(record.id)

        assert result.outcome == MigrationOutcome.MIGRATED
        assert result.storage_key == record.storage_key
        assert await primary.get(record.storage_key) == b"fallback bytes"
        assert primary.stored(record.storage_key).server_side_encryption == "AES256"
        assert await fallback.exists(record.storage_key) is False

        reloaded = await reload(engine, record.id)
        assert reloaded.storage_status == StorageStatus.SUCCESS
        assert reloaded.checksum == record.checksum
        async with engine.session() as session:
            history = await UploadAttemptRepository(session).for_document(record.id)
        assert [a.status.value for a in history] == ["fallback", "success"]

    async def test_second_migrate_is_a_no_op(self, coordinator, fallback_upload, primary):
        record = await fallback_upload()
        await coordinator.migrate(record.id)
        calls = primary.put_calls

        again = await coordinator.migrate(record.id)

        assert again.outcome == MigrationOutcome.SKIPPED
        assert again.succeeded
        assert primary.put_calls == calls

    async def test_fallback_copy_kept_when_configured(self, documents, fallback_upload, fallback):
        record = await fallback_upload()
        keeper = RecoveryCoordinator(documents, delete_fallback_after_migration=False)

        await keeper.migrate(record.id)

        assert await fallback.exists(record.storage_key) is True

    async def test_unknown_document(self, coordinator):
        with pytest.raises(ObjectNotFoundError):
            await coordinator.migrate(uuid.uuid4())

    async def test_non_fallback_document_rejected(self, coordinator, engine):
        async with UnitOfWork(engine) as uow:
            record = await DocumentRepository(uow.session).create(
                owning_entity_id="app-1",
                file_name="a.pdf",
                mime_type="application/pdf",
                storage_status=StorageStatus.FAILURE,
            )

        with pytest.raises(ValidationError):
            await coordinator.migrate(record.id)

    async def test_primary_still_down(
        self, coordinator, fallback_upload, primary, fallback, engine
    ):
        """Failure leaves the document in fallback, ready for another try."""
        record = await fallback_upload()
        primary.available = False

        result = await coordinator.migrate(record.id)

        assert result.outcome == MigrationOutcome.FAILED
        assert result.error_code == "primary_unavailable"
        assert (await reload(engine, record.id)).storage_status == StorageStatus.FALLBACK
        assert await fallback.exists(record.storage_key) is True

        primary.available = True
        retry = await coordinator.migrate(record.id)
        assert retry.outcome == MigrationOutcome.MIGRATED

    async def test_changed_fallback_bytes_never_reach_primary(
        self, coordinator, fallback_upload, primary, fallback, engine
    ):
        record = await fallback_upload(b"original")
        await fallback.put(b"tampered", record.storage_key)
        calls = primary.put_calls

        result = await coordinator.migrate(record.id)

        assert result.outcome == MigrationOutcome.FAILED
        assert result.error_code == "checksum_mismatch"
        assert primary.put_calls == calls
        assert (await reload(engine, record.id)).storage_status == StorageStatus.FALLBACK

    async def test_missing_fallback_file(self, coordinator, fallback_upload, fallback):
        record = await fallback_upload()
        await fallback.delete(record.storage_key)

        result = await coordinator.migrate(record.id)

        assert result.outcome == MigrationOutcome.FAILED
        assert result.error_code == "not_found"


@pytest.mark.asyncio
@pytest.mark.concurrency
class TestConcurrentMigrate:
    async def test_concurrent_migrations_write_once(
        self, coordinator, fallback_upload, primary, engine
    ):
        record = await fallback_upload()
        calls = primary.put_calls

        results = await asyncio.gather(*(coordinator.migrate(record.id) for _ in range(5)))

        assert primary.put_calls == calls + 1
        assert all(r.outcome == MigrationOutcome.MIGRATED for r in results)
        async with engine.session() as session:
            history = await UploadAttemptRepository(session).for_document(record.id)
        assert [a.status.value for a in history] == ["fallback", "success"]


@pytest.mark.asyncio
@pytest.mark.recovery
class TestMigrateAll:
    async def test_partial_failure_is_reported(
        self, coordinator, fallback_upload, fallback, engine
    ):
        """One bad document does not stop the rest of the batch."""
        good = [await fallback_upload(f"doc {i}".encode()) for i in range(3)]
        bad = await fallback_upload(b"will be tampered")
        await fallback.put(b"tampered", bad.storage_key)

        result = await coordinator.migrate_all()

        assert (result.attempted, result.succeeded, result.failed) == (4, 3, 1)
        [failure] = result.failures
        assert failure.document_id == str(bad.id)
        assert result.to_dict()["failures"][0]["code"] == "checksum_mismatch"
        for record in good:
            assert (await reload(engine, record.id)).storage_status == StorageStatus.SUCCESS

    async def test_nothing_to_do(self, coordinator):
        result = await coordinator.migrate_all()
        assert result.attempted == 0

    async def test_progress_callback(self, coordinator, fallback_upload):
        for _ in range(2):
            await fallback_upload()
        seen = []

        async def progress(r):
            seen.append(r.attempted)

        await coordinator.migrate_all(progress=progress)

        assert sorted(seen) == [1, 2]

    async def test_background_job(self, coordinator, fallback_upload):
        for _ in range(2):
            await fallback_upload()

        job = await coordinator.start_migrate_all()
        assert job.status == JobStatus.PENDING
        await coordinator.drain()

        finished = await coordinator.get_job(job.id)
        assert finished.status == JobStatus.COMPLETED
        assert (finished.attempted, finished.succeeded, finished.failed) == (2, 2, 0)
        assert finished.started_at is not None
        assert finished.finished_at is not None
