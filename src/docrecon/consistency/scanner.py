"""
Consistency scanner.

Cross-references every DocumentRecord against the primary store, the
fallback store and the raw fallback directory listing. The record is the
authority for what should exist; the stores are the authority for what does.
Output is recomputed from scratch on every run.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import PurePosixPath
from typing import Optional

from docrecon.db.base import utcnow
from docrecon.db.engine import DBEngine
from docrecon.documents.checksum import ChecksumVerifier
from docrecon.documents.records import DocumentRecord
from docrecon.documents.repository import DocumentRepository
from docrecon.exceptions import ObjectNotFoundError, StorageError
from docrecon.storage.base import ObjectStore
from docrecon.storage.fallback import LocalFallbackStore

from .findings import ConsistencyFinding, FindingKind, ScanReport

logger = logging.getLogger(__name__)


class ByteBudget:
    """Bytes of primary content one scan may download for digest checks.

    ``limit=None`` means unlimited. Documents that do not fit are reported
    unchecked rather than healthy.
    """

    def __init__(self, limit: Optional[int] = None):
        self.remaining = limit
        self.skipped = 0

    def take(self, size: int) -> bool:
        if self.remaining is None:
            return True
        if size > self.remaining:
            self.skipped += 1
            return False
        self.remaining -= size
        return True


class ConsistencyScanner:
    def __init__(
        self,
        engine: DBEngine,
        primary: ObjectStore,
        fallback: LocalFallbackStore,
        verifier: Optional[ChecksumVerifier] = None,
        *,
        concurrency: int = 8,
        verify_primary_checksums: bool = True,
        primary_verify_max_bytes: Optional[int] = None,
    ):
        self.engine = engine
        self.primary = primary
        self.fallback = fallback
        self.verifier = verifier or ChecksumVerifier()
        self.concurrency = max(1, concurrency)
        self.verify_primary_checksums = verify_primary_checksums
        self.primary_verify_max_bytes = primary_verify_max_bytes

    async def _load_records(self) -> list[DocumentRecord]:
        async with self.engine.session() as session:
            return await DocumentRepository(session).list_all()

    async def _primary_reachable(self) -> bool:
        try:
            await self.primary.ping()
            return True
        except StorageError as e:
            logger.warning("Primary store unreachable during scan: %s", e)
            return False

    async def scan(self) -> ScanReport:
        report = ScanReport(started_at=utcnow())
        records = await self._load_records()
        report.primary_reachable = await self._primary_reachable()

        sem = asyncio.Semaphore(self.concurrency)
        budget = ByteBudget(self.primary_verify_max_bytes)

        async def _one(record: DocumentRecord) -> Optional[ConsistencyFinding]:
            async with sem:
                return await self.classify(
                    record, primary_reachable=report.primary_reachable, budget=budget
                )

        results = await asyncio.gather(*(_one(r) for r in records))
        for record, finding in zip(records, results):
            if finding is None:
                report.unchecked.append(str(record.id))
            else:
                report.findings.append(finding)
        if budget.skipped:
            logger.warning(
                "Primary verification budget of %d bytes exhausted, %d documents unchecked",
                self.primary_verify_max_bytes,
                budget.skipped,
            )

        disk_files = await self.fallback.list_files()
        report.disk_file_count = len(disk_files)
        report.findings.extend(self.orphaned_files(records, disk_files))

        report.finished_at = utcnow()
        counts = report.counts()
        logger.info(
            "Consistency scan finished: %d records, %d missing, %d mismatched, "
            "%d orphaned records, %d orphaned files",
            len(records),
            counts[FindingKind.MISSING_FILE.value],
            counts[FindingKind.CHECKSUM_MISMATCH.value],
            counts[FindingKind.ORPHANED_RECORD.value],
            counts[FindingKind.ORPHANED_FILE.value],
        )
        return report

    async def classify(
        self,
        record: DocumentRecord,
        *,
        primary_reachable: bool = True,
        budget: Optional[ByteBudget] = None,
        verify_content: bool = True,
    ) -> Optional[ConsistencyFinding]:
        """Classify one record. None means the primary copy could not be checked.

        Primary content is re-digested unless verification is turned off or
        ``budget`` has no room left for the document, in which case the
        document comes back unchecked. ``verify_content=False`` stops at the
        existence check.
        """
        doc_id = str(record.id)
        status = record.storage_status.value

        def finding(kind: FindingKind, details: str = "") -> ConsistencyFinding:
            return ConsistencyFinding(
                kind=kind,
                document_id=doc_id,
                storage_key=record.storage_key,
                storage_status=status,
                details=details,
            )

        if record.storage_key is None:
            return finding(FindingKind.ORPHANED_RECORD, "no write ever completed")

        if record.in_fallback:
            if not await self.fallback.exists(record.storage_key):
                return finding(FindingKind.MISSING_FILE, "fallback file not found")
            if record.checksum:
                try:
                    data = await self.fallback.read(record.storage_key)
                except ObjectNotFoundError:
                    return finding(FindingKind.MISSING_FILE, "fallback file vanished during scan")
                except StorageError as e:
                    return finding(FindingKind.CHECKSUM_MISMATCH, f"fallback file unreadable: {e}")
                if not await self._matches(data, record.checksum):
                    return finding(FindingKind.CHECKSUM_MISMATCH, "fallback bytes changed")
            return finding(FindingKind.HEALTHY)

        if not primary_reachable:
            return None
        if not await self.primary.head_exists(record.storage_key):
            return finding(FindingKind.MISSING_FILE, "object not found in primary store")
        if verify_content and self.verify_primary_checksums and record.checksum:
            if budget is not None and not budget.take(record.size_bytes):
                return None
            try:
                data = await self.primary.get(record.storage_key)
            except ObjectNotFoundError:
                return finding(FindingKind.MISSING_FILE, "object vanished during scan")
            except StorageError as e:
                logger.warning(
                    "Could not read %s for checksum: %s", doc_id, e, extra={"document_id": doc_id}
                )
                return None
            if not await self._matches(data, record.checksum):
                return finding(FindingKind.CHECKSUM_MISMATCH, "primary bytes changed")
        return finding(FindingKind.HEALTHY)

    async def _matches(self, data: bytes, expected: str) -> bool:
        return (await self.verifier.adigest(data)) == expected.lower()

    @staticmethod
    def orphaned_files(
        records: list[DocumentRecord], disk_files: list[str]
    ) -> list[ConsistencyFinding]:
        owned = {PurePosixPath(r.storage_key).name for r in records if r.storage_key}
        return [
            ConsistencyFinding(
                kind=FindingKind.ORPHANED_FILE,
                storage_key=path,
                details="file on disk has no document record",
            )
            for path in disk_files
            if PurePosixPath(path).name not in owned
        ]
