"""
Document write and read paths.

Writes try the primary store first and drop to the local fallback store only
on ``PrimaryUnavailableError``. Metadata updates happen in short units of work
on either side of the store I/O; no database transaction stays open while
bytes are moving.
"""

from __future__ import annotations

import logging
import mimetypes
import re
import uuid
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Iterable, Optional

from docrecon.db.engine import DBEngine
from docrecon.db.uow import UnitOfWork
from docrecon.exceptions import (
    ChecksumMismatchError,
    ObjectNotFoundError,
    PrimaryUnavailableError,
    StorageError,
    ValidationError,
)
from docrecon.storage.base import ObjectStore
from docrecon.storage.fallback import LocalFallbackStore

from .checksum import ChecksumVerifier
from .models import AttemptStatus, StorageStatus
from .records import DocumentRecord
from .repository import AccessLogRepository, DocumentRepository, UploadAttemptRepository

logger = logging.getLogger(__name__)

DEFAULT_MAX_UPLOAD_BYTES = 50 * 1024 * 1024
DEFAULT_MIME_TYPE = "application/octet-stream"

_UNSAFE_SEGMENT = re.compile(r"[^A-Za-z0-9._-]")


def storage_key_for(owning_entity_id: str, document_id: uuid.UUID, file_name: str) -> str:
    """``documents/{owningEntityId}/{documentId}{ext}``; same key in both stores."""
    owner = _UNSAFE_SEGMENT.sub("_", owning_entity_id) or "unassigned"
    ext = PurePosixPath(file_name).suffix.lower()
    if ext and not re.fullmatch(r"\.[a-z0-9]{1,10}", ext):
        ext = ""
    return f"documents/{owner}/{document_id}{ext}"


def guess_mime_type(file_name: str) -> str:
    guessed, _ = mimetypes.guess_type(file_name)
    return guessed or DEFAULT_MIME_TYPE


@dataclass(frozen=True)
class Placement:
    """Where a write landed."""

    status: StorageStatus
    storage_key: Optional[str]
    error: Optional[str] = None

    @property
    def attempt_status(self) -> AttemptStatus:
        return AttemptStatus(self.status.value)


@dataclass(frozen=True)
class ServedDocument:
    record: DocumentRecord
    data: bytes


@dataclass(frozen=True)
class ChecksumCheck:
    document_id: str
    status: str  # valid | mismatch | missing | no_checksum | not_found | error
    expected: Optional[str] = None
    actual: Optional[str] = None
    detail: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == "valid"

    def to_dict(self) -> dict:
        return {
            "document_id": self.document_id,
            "status": self.status,
            "valid": self.ok,
            "expected": self.expected,
            "actual": self.actual,
            "detail": self.detail,
        }


class DocumentService:
    def __init__(
        self,
        engine: DBEngine,
        primary: ObjectStore,
        fallback: LocalFallbackStore,
        verifier: Optional[ChecksumVerifier] = None,
        *,
        max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES,
        signed_url_ttl: int = 3600,
    ):
        self.engine = engine
        self.primary = primary
        self.fallback = fallback
        self.verifier = verifier or ChecksumVerifier()
        self.max_upload_bytes = max_upload_bytes
        self.signed_url_ttl = signed_url_ttl

    # ------------------------------------------------------------------ writes

    def validate_payload(self, file_name: str, data: bytes) -> None:
        if not file_name or not file_name.strip():
            raise ValidationError("file name is required")
        if not data:
            raise ValidationError("file is empty")
        if len(data) > self.max_upload_bytes:
            raise ValidationError(
                f"file is {len(data)} bytes, limit is {self.max_upload_bytes}"
            )

    async def place_bytes(
        self,
        key: str,
        data: bytes,
        content_type: str,
        *,
        document_id: Optional[uuid.UUID] = None,
        checksum: Optional[str] = None,
    ) -> Placement:
        """Write to primary, or to the fallback store when primary is unreachable."""
        metadata = {"document-id": str(document_id)} if document_id else {}
        if checksum:
            metadata["sha256"] = checksum
        try:
            await self.primary.put(key, data, content_type, metadata)
            return Placement(StorageStatus.SUCCESS, key)
        except PrimaryUnavailableError as e:
            logger.warning(
                "Primary store unavailable, writing %s to fallback: %s",
                key,
                e,
                extra={"document_id": document_id},
            )
        except StorageError as e:
            logger.warning(
                "Primary store rejected %s: %s", key, e, extra={"document_id": document_id}
            )
            return Placement(StorageStatus.FAILURE, None, str(e))

        try:
            await self.fallback.put(data, key)
            return Placement(StorageStatus.FALLBACK, key)
        except StorageError as e:
            logger.error(
                "Fallback write failed for %s: %s", key, e, extra={"document_id": document_id}
            )
            return Placement(StorageStatus.FAILURE, None, str(e))

    async def upload(
        self,
        owning_entity_id: str,
        file_name: str,
        data: bytes,
        content_type: Optional[str] = None,
    ) -> DocumentRecord:
        try:
            self.validate_payload(file_name, data)
            if not owning_entity_id:
                raise ValidationError("owning entity id is required")
        except ValidationError as e:
            # rejected before a record exists, logged without a document id
            async with UnitOfWork(self.engine) as uow:
                assert uow.session is not None
                await UploadAttemptRepository(uow.session).append(
                    None, AttemptStatus.FAILURE, error=str(e)
                )
            logger.warning("Upload of %r rejected: %s", file_name, e)
            raise
        mime_type = content_type or guess_mime_type(file_name)

        async with UnitOfWork(self.engine) as uow:
            assert uow.session is not None
            pending = await DocumentRepository(uow.session).create(
                owning_entity_id=owning_entity_id,
                file_name=file_name,
                mime_type=mime_type,
                size_bytes=len(data),
            )

        checksum = await self.verifier.adigest(data)
        key = storage_key_for(owning_entity_id, pending.id, file_name)
        placement = await self.place_bytes(
            key, data, mime_type, document_id=pending.id, checksum=checksum
        )

        async with UnitOfWork(self.engine) as uow:
            assert uow.session is not None
            record = await DocumentRepository(uow.session).update_storage(
                pending.id,
                status=placement.status,
                storage_key=placement.storage_key,
                checksum=checksum,
            )
            await UploadAttemptRepository(uow.session).append(
                pending.id, placement.attempt_status, error=placement.error
            )
        assert record is not None
        logger.info(
            "Uploaded %s as %s (%s)",
            file_name,
            record.storage_status.value,
            key,
            extra={"document_id": record.id},
        )
        return record

    # ------------------------------------------------------------------- reads

    async def get_record(self, document_id: uuid.UUID) -> Optional[DocumentRecord]:
        async with self.engine.session() as session:
            return await DocumentRepository(session).get(document_id)

    async def read_bytes(self, record: DocumentRecord) -> bytes:
        """Bytes from whichever store the record's status points at."""
        if record.storage_key is None:
            raise ObjectNotFoundError(
                "document has no storage location", document_id=str(record.id)
            )
        if record.in_fallback:
            return await self.fallback.read(record.storage_key)
        if record.in_primary:
            return await self.primary.get(record.storage_key)
        raise ObjectNotFoundError(
            f"document is {record.storage_status.value}, no bytes stored",
            document_id=str(record.id),
        )

    async def _log_access(self, document_id: Optional[uuid.UUID], status_code: int) -> None:
        async with UnitOfWork(self.engine) as uow:
            assert uow.session is not None
            await AccessLogRepository(uow.session).append(document_id, status_code)

    async def open_document(self, document_id: uuid.UUID) -> ServedDocument:
        record = await self.get_record(document_id)
        if record is None:
            await self._log_access(document_id, 404)
            raise ObjectNotFoundError("document not found", document_id=str(document_id))
        try:
            data = await self.read_bytes(record)
            if record.checksum:
                await self.verifier.ensure(data, record.checksum, document_id=str(record.id))
        except ObjectNotFoundError:
            await self._log_access(document_id, 404)
            raise
        except ChecksumMismatchError:
            logger.error("Served bytes failed verification", extra={"document_id": document_id})
            await self._log_access(document_id, 409)
            raise
        except StorageError:
            await self._log_access(document_id, 500)
            raise
        await self._log_access(document_id, 200)
        return ServedDocument(record=record, data=data)

    async def signed_url(self, document_id: uuid.UUID, ttl: Optional[int] = None) -> str:
        record = await self.get_record(document_id)
        if record is None:
            raise ObjectNotFoundError("document not found", document_id=str(document_id))
        if not record.in_primary or record.storage_key is None:
            raise ValidationError(
                f"document is {record.storage_status.value}, not resident in primary",
                document_id=str(document_id),
            )
        return await self.primary.issue_signed_url(record.storage_key, ttl or self.signed_url_ttl)

    async def validate_checksum(self, document_id: uuid.UUID) -> ChecksumCheck:
        doc_id = str(document_id)
        record = await self.get_record(document_id)
        if record is None:
            return ChecksumCheck(doc_id, "not_found", detail="document not found")
        if not record.checksum:
            return ChecksumCheck(doc_id, "no_checksum", detail="no stored checksum")
        try:
            data = await self.read_bytes(record)
        except ObjectNotFoundError as e:
            return ChecksumCheck(doc_id, "missing", expected=record.checksum, detail=str(e))
        except StorageError as e:
            return ChecksumCheck(doc_id, "error", expected=record.checksum, detail=str(e))
        actual = await self.verifier.adigest(data)
        if actual != record.checksum.lower():
            return ChecksumCheck(doc_id, "mismatch", expected=record.checksum, actual=actual)
        return ChecksumCheck(doc_id, "valid", expected=record.checksum, actual=actual)

    async def validate_checksums(self, document_ids: Iterable[uuid.UUID]) -> list[ChecksumCheck]:
        return [await self.validate_checksum(d) for d in document_ids]
