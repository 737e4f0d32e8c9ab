"""
Recovery coordinator.

Per-document transitions:

- ``fallback`` -> ``success``: copy bytes to primary, verify the read-back
  digest, update key and status.
- ``fallback`` -> ``fallback``: the copy failed (primary unreachable, local
  file unreadable, digest mismatch). Retrying is safe.
- missing bytes -> ``success`` via an operator-supplied replacement, or
  ``failure`` when the replacement is rejected.

At most one migration per document id is in flight at a time, and
migrations and replacements of the same id are serialized. Every attempt
is written to the recovery log as initiated, then recovered or failed.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Awaitable, Callable, Optional

from docrecon.consistency.findings import DOCUMENT_ISSUE_KINDS, ScanReport
from docrecon.db.base import utcnow
from docrecon.db.uow import UnitOfWork
from docrecon.documents.models import (
    AttemptStatus,
    RecoveryAction,
    RecoveryEvent,
    StorageStatus,
)
from docrecon.documents.records import DocumentRecord, RecoveryLogEntry
from docrecon.documents.repository import (
    DocumentRepository,
    RecoveryLogRepository,
    UploadAttemptRepository,
)
from docrecon.documents.service import DocumentService, guess_mime_type, storage_key_for
from docrecon.exceptions import (
    ChecksumMismatchError,
    DocReconError,
    ObjectNotFoundError,
    StorageError,
    ValidationError,
)

from .guard import KeyedLocks, SingleFlight
from .jobs import InMemoryJobStore, Job, JobStatus, JobStore, new_job

logger = logging.getLogger(__name__)


class MigrationOutcome(StrEnum):
    MIGRATED = "migrated"
    SKIPPED = "skipped"  # already in primary
    FAILED = "failed"


@dataclass(frozen=True)
class MigrationResult:
    document_id: str
    outcome: MigrationOutcome
    storage_key: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.outcome != MigrationOutcome.FAILED


@dataclass
class BulkMigrationResult:
    attempted: int = 0
    succeeded: int = 0
    failed: int = 0
    failures: list[MigrationResult] = field(default_factory=list)

    def add(self, result: MigrationResult) -> None:
        self.attempted += 1
        if result.succeeded:
            self.succeeded += 1
        else:
            self.failed += 1
            self.failures.append(result)

    def to_dict(self) -> dict:
        return {
            "attempted": self.attempted,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "failures": [
                {"document_id": f.document_id, "error": f.error, "code": f.error_code}
                for f in self.failures
            ],
        }


ProgressCallback = Callable[[BulkMigrationResult], Awaitable[None]]


class RecoveryCoordinator:
    def __init__(
        self,
        documents: DocumentService,
        job_store: Optional[JobStore] = None,
        *,
        migrate_concurrency: int = 4,
        delete_fallback_after_migration: bool = True,
    ):
        self.documents = documents
        self.engine = documents.engine
        self.primary = documents.primary
        self.fallback = documents.fallback
        self.verifier = documents.verifier
        self.jobs = job_store or InMemoryJobStore()
        self.migrate_concurrency = max(1, migrate_concurrency)
        self.delete_fallback_after_migration = delete_fallback_after_migration
        self._flight: SingleFlight[MigrationResult] = SingleFlight()
        self._locks = KeyedLocks()
        self._tasks: set[asyncio.Task] = set()

    # --------------------------------------------------------------- single

    async def migrate(self, document_id: uuid.UUID) -> MigrationResult:
        """Move one fallback document into primary.

        Raises ``ObjectNotFoundError`` for unknown ids and ``ValidationError``
        for documents that are neither ``fallback`` nor already ``success``.
        Store failures come back as a FAILED result, not as exceptions.
        """
        return await self._flight.do(document_id, lambda: self._migrate_serialized(document_id))

    async def _migrate_serialized(self, document_id: uuid.UUID) -> MigrationResult:
        async with self._locks.hold(document_id):
            return await self._migrate_once(document_id)

    async def _migrate_once(self, document_id: uuid.UUID) -> MigrationResult:
        doc_id = str(document_id)
        record = await self.documents.get_record(document_id)
        if record is None:
            raise ObjectNotFoundError("document not found", document_id=doc_id)
        if record.in_primary:
            return MigrationResult(doc_id, MigrationOutcome.SKIPPED, storage_key=record.storage_key)
        if not record.in_fallback:
            raise ValidationError(
                f"document is {record.storage_status.value}, only fallback documents migrate",
                document_id=doc_id,
            )
        await self._log_event(
            record.id,
            RecoveryEvent.RECOVERY_INITIATED,
            RecoveryAction.MIGRATION,
            previous_status=record.storage_status,
            detail="copying fallback bytes to primary",
        )
        if record.storage_key is None:
            return await self._record_failure(
                record, ObjectNotFoundError("fallback document has no storage key")
            )

        key = record.storage_key
        try:
            data = await self.fallback.read(key)
            if record.checksum:
                await self.verifier.ensure(data, record.checksum, document_id=doc_id)
                expected = record.checksum
            else:
                expected = await self.verifier.adigest(data)
            metadata = {"document-id": doc_id, "sha256": expected}
            await self.primary.put(key, data, record.mime_type, metadata)
            copied = await self.primary.get(key)
            await self.verifier.ensure(copied, expected, document_id=doc_id)
        except (StorageError, ChecksumMismatchError) as e:
            return await self._record_failure(record, e)

        async with UnitOfWork(self.engine) as uow:
            assert uow.session is not None
            await DocumentRepository(uow.session).update_storage(
                record.id, status=StorageStatus.SUCCESS, storage_key=key, checksum=expected
            )
            await UploadAttemptRepository(uow.session).append(record.id, AttemptStatus.SUCCESS)
            await RecoveryLogRepository(uow.session).append(
                record.id,
                RecoveryEvent.RECOVERED,
                action=RecoveryAction.MIGRATION,
                previous_status=StorageStatus.FALLBACK,
                new_status=StorageStatus.SUCCESS,
                detail=key,
            )
        logger.info("Migrated %s to primary", key, extra={"document_id": doc_id})

        if self.delete_fallback_after_migration:
            try:
                await self.fallback.delete(key)
            except StorageError as e:
                logger.warning(
                    "Could not remove migrated fallback file %s: %s",
                    key,
                    e,
                    extra={"document_id": doc_id},
                )
        return MigrationResult(doc_id, MigrationOutcome.MIGRATED, storage_key=key)

    async def _log_event(
        self,
        document_id: uuid.UUID,
        event: RecoveryEvent,
        action: RecoveryAction,
        *,
        previous_status: Optional[StorageStatus] = None,
        new_status: Optional[StorageStatus] = None,
        detail: Optional[str] = None,
    ) -> None:
        async with UnitOfWork(self.engine) as uow:
            assert uow.session is not None
            await RecoveryLogRepository(uow.session).append(
                document_id,
                event,
                action=action,
                previous_status=previous_status,
                new_status=new_status,
                detail=detail,
            )

    async def _record_failure(
        self, record: DocumentRecord, error: DocReconError
    ) -> MigrationResult:
        logger.warning(
            "Migration failed, document stays in fallback: %s",
            error,
            extra={"document_id": record.id},
        )
        async with UnitOfWork(self.engine) as uow:
            assert uow.session is not None
            await UploadAttemptRepository(uow.session).append(
                record.id, AttemptStatus.FAILURE, error=str(error)
            )
            await RecoveryLogRepository(uow.session).append(
                record.id,
                RecoveryEvent.RECOVERY_FAILED,
                action=RecoveryAction.MIGRATION,
                previous_status=record.storage_status,
                new_status=record.storage_status,
                detail=str(error),
            )
        return MigrationResult(
            str(record.id),
            MigrationOutcome.FAILED,
            storage_key=record.storage_key,
            error=str(error),
            error_code=error.code,
        )

    # ----------------------------------------------------------------- bulk

    async def migrate_all(self, progress: Optional[ProgressCallback] = None) -> BulkMigrationResult:
        """Migrate every fallback document. One failure never stops the batch."""
        async with self.engine.session() as session:
            ids = await DocumentRepository(session).list_ids_by_status(StorageStatus.FALLBACK)

        result = BulkMigrationResult()
        sem = asyncio.Semaphore(self.migrate_concurrency)

        async def _one(document_id: uuid.UUID) -> None:
            async with sem:
                try:
                    outcome = await self.migrate(document_id)
                except DocReconError as e:
                    outcome = MigrationResult(
                        str(document_id), MigrationOutcome.FAILED, error=str(e), error_code=e.code
                    )
                except Exception as e:
                    logger.exception(
                        "Unexpected migration error", extra={"document_id": document_id}
                    )
                    outcome = MigrationResult(
                        str(document_id),
                        MigrationOutcome.FAILED,
                        error=str(e),
                        error_code="internal_error",
                    )
            result.add(outcome)
            if progress is not None:
                await progress(result)

        await asyncio.gather(*(_one(d) for d in ids))
        logger.info(
            "Bulk migration finished: attempted=%d succeeded=%d failed=%d",
            result.attempted,
            result.succeeded,
            result.failed,
        )
        return result

    async def start_migrate_all(self) -> Job:
        """Kick off ``migrate_all`` in the background and return its job handle."""
        job = await self.jobs.save(new_job("migrate_all_fallbacks"))
        task = asyncio.create_task(self._run_job(job.id), name=f"recovery-job-{job.id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return job

    async def _run_job(self, job_id: str) -> None:
        await self.jobs.update(job_id, status=JobStatus.RUNNING, started_at=utcnow())
        progress_lock = asyncio.Lock()

        async def _progress(r: BulkMigrationResult) -> None:
            async with progress_lock:
                await self.jobs.update(
                    job_id, attempted=r.attempted, succeeded=r.succeeded, failed=r.failed
                )

        try:
            result = await self.migrate_all(progress=_progress)
        except Exception as e:
            logger.exception("Recovery job failed", extra={"job_id": job_id})
            await self.jobs.update(
                job_id, status=JobStatus.FAILED, finished_at=utcnow(), error=str(e)
            )
            return
        await self.jobs.update(
            job_id,
            status=JobStatus.COMPLETED,
            attempted=result.attempted,
            succeeded=result.succeeded,
            failed=result.failed,
            finished_at=utcnow(),
        )

    async def get_job(self, job_id: str) -> Optional[Job]:
        return await self.jobs.get(job_id)

    async def drain(self) -> None:
        """Wait for background jobs started by this coordinator."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ------------------------------------------------------------ event log

    async def record_detections(self, report: ScanReport) -> int:
        """Log ``missing_detected`` for documents a scan found drifted.

        A document whose latest event is already ``missing_detected`` is not
        logged again, so the first detection keeps its timestamp. Returns the
        number of new events.
        """
        issues = {
            uuid.UUID(f.document_id): f
            for f in report.findings
            if f.kind in DOCUMENT_ISSUE_KINDS and f.document_id
        }
        if not issues:
            return 0
        async with UnitOfWork(self.engine) as uow:
            assert uow.session is not None
            repo = RecoveryLogRepository(uow.session)
            last = await repo.last_events(issues)
            fresh = [d for d in issues if last.get(d) != RecoveryEvent.MISSING_DETECTED]
            for document_id in fresh:
                f = issues[document_id]
                await repo.append(
                    document_id,
                    RecoveryEvent.MISSING_DETECTED,
                    action=RecoveryAction.SCAN,
                    previous_status=StorageStatus(f.storage_status) if f.storage_status else None,
                    detail=f"{f.kind.value}, {f.risk_level} risk: {f.details}",
                )
        if fresh:
            logger.info("Logged %d new drift detections", len(fresh))
        return len(fresh)

    async def history(self, document_id: uuid.UUID) -> list[RecoveryLogEntry]:
        async with self.engine.session() as session:
            return await RecoveryLogRepository(session).for_document(document_id)

    # -------------------------------------------------------------- replace

    async def _bytes_present(self, record: DocumentRecord) -> bool:
        if record.storage_key is None:
            return False
        if record.in_fallback:
            return await self.fallback.exists(record.storage_key)
        if record.in_primary:
            return await self.primary.head_exists(record.storage_key)
        return False

    async def _mark_failed(self, record: DocumentRecord, reason: str) -> None:
        async with UnitOfWork(self.engine) as uow:
            assert uow.session is not None
            if record.storage_status != StorageStatus.FAILURE:
                await DocumentRepository(uow.session).update_storage(
                    record.id, status=StorageStatus.FAILURE
                )
            await UploadAttemptRepository(uow.session).append(
                record.id, AttemptStatus.FAILURE, error=reason
            )
            await RecoveryLogRepository(uow.session).append(
                record.id,
                RecoveryEvent.RECOVERY_FAILED,
                action=RecoveryAction.REPLACEMENT,
                previous_status=record.storage_status,
                new_status=StorageStatus.FAILURE,
                detail=reason,
            )
        logger.warning(
            "Replacement rejected, document marked failed: %s",
            reason,
            extra={"document_id": record.id},
        )

    async def _replacement_failed(
        self, record: DocumentRecord, reason: str, *, log_attempt: bool
    ) -> None:
        # a document whose bytes are still intact keeps its status
        if not await self._bytes_present(record):
            await self._mark_failed(record, reason)
            return
        async with UnitOfWork(self.engine) as uow:
            assert uow.session is not None
            if log_attempt:
                await UploadAttemptRepository(uow.session).append(
                    record.id, AttemptStatus.FAILURE, error=reason
                )
            await RecoveryLogRepository(uow.session).append(
                record.id,
                RecoveryEvent.RECOVERY_FAILED,
                action=RecoveryAction.REPLACEMENT,
                previous_status=record.storage_status,
                new_status=record.storage_status,
                detail=reason,
            )

    async def replace(
        self,
        document_id: uuid.UUID,
        file_name: str,
        data: bytes,
        content_type: Optional[str] = None,
    ) -> DocumentRecord:
        """Re-upload bytes for an existing document, keeping its id and file name."""
        doc_id = str(document_id)
        async with self._locks.hold(document_id):
            record = await self.documents.get_record(document_id)
            if record is None:
                raise ObjectNotFoundError("document not found", document_id=doc_id)
            await self._log_event(
                record.id,
                RecoveryEvent.RECOVERY_INITIATED,
                RecoveryAction.REPLACEMENT,
                previous_status=record.storage_status,
                detail=f"operator re-upload of {file_name}",
            )

            try:
                self.documents.validate_payload(file_name, data)
            except ValidationError as e:
                await self._replacement_failed(record, str(e), log_attempt=False)
                e.document_id = doc_id
                raise

            mime_type = content_type or guess_mime_type(file_name)
            key = storage_key_for(record.owning_entity_id, record.id, file_name)
            checksum = await self.verifier.adigest(data)
            placement = await self.documents.place_bytes(
                key, data, mime_type, document_id=record.id, checksum=checksum
            )

            if placement.status == StorageStatus.FAILURE:
                await self._replacement_failed(
                    record, placement.error or "replacement write failed", log_attempt=True
                )
                raise StorageError(
                    f"replacement could not be stored: {placement.error}", document_id=doc_id
                )

            async with UnitOfWork(self.engine) as uow:
                assert uow.session is not None
                updated = await DocumentRepository(uow.session).update_storage(
                    record.id,
                    status=placement.status,
                    storage_key=key,
                    checksum=checksum,
                    size_bytes=len(data),
                    mime_type=mime_type,
                )
                await UploadAttemptRepository(uow.session).append(
                    record.id, placement.attempt_status
                )
                await RecoveryLogRepository(uow.session).append(
                    record.id,
                    RecoveryEvent.RECOVERED,
                    action=RecoveryAction.REPLACEMENT,
                    previous_status=record.storage_status,
                    new_status=placement.status,
                    detail=key,
                )
            assert updated is not None

            await self._cleanup_previous(record, updated)
            logger.info(
                "Replaced document bytes, now %s at %s",
                updated.storage_status.value,
                key,
                extra={"document_id": doc_id},
            )
            return updated

    async def _cleanup_previous(self, old: DocumentRecord, new: DocumentRecord) -> None:
        if old.storage_key is None:
            return
        try:
            if old.in_fallback and (old.storage_key != new.storage_key or new.in_primary):
                await self.fallback.delete(old.storage_key)
            elif old.in_primary and old.storage_key != new.storage_key:
                await self.primary.delete(old.storage_key)
        except StorageError as e:
            logger.warning(
                "Could not remove superseded copy %s: %s",
                old.storage_key,
                e,
                extra={"document_id": old.id},
            )
