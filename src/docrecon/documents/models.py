from __future__ import annotations

import datetime as dt
import uuid
from enum import StrEnum
from typing import Optional

from sqlalchemy import BigInteger, DateTime, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from docrecon.db.base import Base, TimestampMixin, UUIDMixin, utcnow


class StorageStatus(StrEnum):
    PENDING = "pending"
    SUCCESS = "success"
    FALLBACK = "fallback"
    FAILURE = "failure"


class AttemptStatus(StrEnum):
    SUCCESS = "success"
    FALLBACK = "fallback"
    FAILURE = "failure"


class RecoveryEvent(StrEnum):
    MISSING_DETECTED = "missing_detected"
    RECOVERY_INITIATED = "recovery_initiated"
    RECOVERED = "recovered"
    RECOVERY_FAILED = "recovery_failed"


class RecoveryAction(StrEnum):
    SCAN = "scan"
    MIGRATION = "migration"
    REPLACEMENT = "replacement"


class DocumentModel(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "documents"

    owning_entity_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    file_name: Mapped[str] = mapped_column(String(512), nullable=False)
    storage_key: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    checksum: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    size_bytes: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    mime_type: Mapped[str] = mapped_column(
        String(255), default="application/octet-stream", nullable=False
    )
    storage_status: Mapped[str] = mapped_column(
        String(16), default=StorageStatus.PENDING.value, index=True, nullable=False
    )

    def __repr__(self) -> str:
        return f"<Document id={self.id} status={self.storage_status} key={self.storage_key}>"


class UploadAttemptModel(Base):
    """Append-only. Rows are inserted, never updated."""

    __tablename__ = "document_upload_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    document_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True, index=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    __table_args__ = (
        Index("ix_document_upload_log_created_at", "created_at"),
        Index("ix_document_upload_log_status_created", "status", "created_at"),
    )


class AccessLogModel(Base):
    """One row per attempt to serve a document's bytes."""

    __tablename__ = "document_access_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    document_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True, index=True)
    status_code: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False, index=True
    )


class RecoveryLogModel(Base):
    """Append-only trail of drift detections, migrations and replacements."""

    __tablename__ = "document_recovery_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    document_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    event: Mapped[str] = mapped_column(String(32), nullable=False)
    action: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    previous_status: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    new_status: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    detail: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False, index=True
    )
