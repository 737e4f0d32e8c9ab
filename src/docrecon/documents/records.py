"""
Typed views of persisted rows.

ORM instances never leave the repository layer; everything above it works
with these frozen dataclasses, produced by the explicit mapping functions
below.
"""

from __future__ import annotations

import datetime as dt
import uuid
from dataclasses import dataclass
from typing import Optional

from .models import (
    AccessLogModel,
    AttemptStatus,
    DocumentModel,
    RecoveryAction,
    RecoveryEvent,
    RecoveryLogModel,
    StorageStatus,
    UploadAttemptModel,
)


def as_utc(value: dt.datetime) -> dt.datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns
    if value.tzinfo is None:
        return value.replace(tzinfo=dt.timezone.utc)
    return value.astimezone(dt.timezone.utc)


@dataclass(frozen=True)
class DocumentRecord:
    id: uuid.UUID
    owning_entity_id: str
    file_name: str
    storage_key: Optional[str]
    checksum: Optional[str]
    size_bytes: int
    mime_type: str
    storage_status: StorageStatus
    created_at: dt.datetime
    updated_at: dt.datetime

    @property
    def in_primary(self) -> bool:
        return self.storage_status == StorageStatus.SUCCESS

    @property
    def in_fallback(self) -> bool:
        return self.storage_status == StorageStatus.FALLBACK

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "owning_entity_id": self.owning_entity_id,
            "file_name": self.file_name,
            "storage_key": self.storage_key,
            "checksum": self.checksum,
            "size_bytes": self.size_bytes,
            "mime_type": self.mime_type,
            "storage_status": self.storage_status.value,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


@dataclass(frozen=True)
class UploadAttempt:
    id: int
    document_id: Optional[uuid.UUID]
    status: AttemptStatus
    created_at: dt.datetime
    error: Optional[str] = None


@dataclass(frozen=True)
class AccessLogEntry:
    id: int
    document_id: Optional[uuid.UUID]
    status_code: int
    created_at: dt.datetime


@dataclass(frozen=True)
class RecoveryLogEntry:
    id: int
    document_id: uuid.UUID
    event: RecoveryEvent
    action: Optional[RecoveryAction]
    previous_status: Optional[str]
    new_status: Optional[str]
    detail: Optional[str]
    created_at: dt.datetime

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "document_id": str(self.document_id),
            "event": self.event.value,
            "action": self.action.value if self.action else None,
            "previous_status": self.previous_status,
            "new_status": self.new_status,
            "detail": self.detail,
            "created_at": self.created_at.isoformat(),
        }


def to_document_record(row: DocumentModel) -> DocumentRecord:
    return DocumentRecord(
        id=row.id,
        owning_entity_id=row.owning_entity_id,
        file_name=row.file_name,
        storage_key=row.storage_key,
        checksum=row.checksum,
        size_bytes=int(row.size_bytes or 0),
        mime_type=row.mime_type,
        storage_status=StorageStatus(row.storage_status),
        created_at=as_utc(row.created_at),
        updated_at=as_utc(row.updated_at),
    )


def to_upload_attempt(row: UploadAttemptModel) -> UploadAttempt:
    return UploadAttempt(
        id=row.id,
        document_id=row.document_id,
        status=AttemptStatus(row.status),
        created_at=as_utc(row.created_at),
        error=row.error,
    )


def to_access_log_entry(row: AccessLogModel) -> AccessLogEntry:
    return AccessLogEntry(
        id=row.id,
        document_id=row.document_id,
        status_code=row.status_code,
        created_at=as_utc(row.created_at),
    )


def to_recovery_log_entry(row: RecoveryLogModel) -> RecoveryLogEntry:
    return RecoveryLogEntry(
        id=row.id,
        document_id=row.document_id,
        event=RecoveryEvent(row.event),
        action=RecoveryAction(row.action) if row.action else None,
        previous_status=row.previous_status,
        new_status=row.new_status,
        detail=row.detail,
        created_at=as_utc(row.created_at),
    )
