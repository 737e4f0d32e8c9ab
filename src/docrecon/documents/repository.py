from __future__ import annotations

import datetime as dt
import uuid
from typing import Any, Iterable, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from docrecon.db.repository import Repository

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
from .records import (
    DocumentRecord,
    RecoveryLogEntry,
    UploadAttempt,
    as_utc,
    to_document_record,
    to_recovery_log_entry,
    to_upload_attempt,
)

_UNSET: Any = object()


class DocumentRepository:
    """CRUD over ``documents``, returning typed DocumentRecords."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self._repo = Repository[DocumentModel](session, DocumentModel)

    async def get(self, document_id: uuid.UUID) -> Optional[DocumentRecord]:
        row = await self._repo.get(document_id)
        return to_document_record(row) if row is not None else None

    async def create(
        self,
        *,
        owning_entity_id: str,
        file_name: str,
        mime_type: str,
        size_bytes: int = 0,
        document_id: Optional[uuid.UUID] = None,
        storage_status: StorageStatus = StorageStatus.PENDING,
        storage_key: Optional[str] = None,
        checksum: Optional[str] = None,
    ) -> DocumentRecord:
        data: dict[str, Any] = dict(
            owning_entity_id=owning_entity_id,
            file_name=file_name,
            mime_type=mime_type,
            size_bytes=size_bytes,
            storage_status=storage_status.value,
            storage_key=storage_key,
            checksum=checksum,
        )
        if document_id is not None:
            data["id"] = document_id
        row = await self._repo.create(**data)
        await self.session.refresh(row)
        return to_document_record(row)

    async def update_storage(
        self,
        document_id: uuid.UUID,
        *,
        status: StorageStatus,
        storage_key: Optional[str] = _UNSET,
        checksum: Optional[str] = _UNSET,
        size_bytes: int = _UNSET,
        mime_type: str = _UNSET,
    ) -> Optional[DocumentRecord]:
        changes: dict[str, Any] = {"storage_status": status.value}
        for name, value in (
            ("storage_key", storage_key),
            ("checksum", checksum),
            ("size_bytes", size_bytes),
            ("mime_type", mime_type),
        ):
            if value is not _UNSET:
                changes[name] = value
        row = await self._repo.update(document_id, **changes)
        if row is None:
            return None
        await self.session.refresh(row)
        return to_document_record(row)

    async def list_all(self) -> list[DocumentRecord]:
        rows = await self._repo.list(order_by=DocumentModel.created_at)
        return [to_document_record(r) for r in rows]

    async def list_by_status(
        self, status: StorageStatus, *, limit: Optional[int] = None
    ) -> list[DocumentRecord]:
        rows = await self._repo.list(
            where={"storage_status": status.value},
            order_by=DocumentModel.created_at.desc(),
            limit=limit,
        )
        return [to_document_record(r) for r in rows]

    async def list_ids_by_status(self, status: StorageStatus) -> list[uuid.UUID]:
        stmt = (
            select(DocumentModel.id)
            .where(DocumentModel.storage_status == status.value)
            .order_by(DocumentModel.created_at)
        )
        return list((await self.session.execute(stmt)).scalars().all())

    async def list_by_owners(self, owner_ids: Iterable[str]) -> list[DocumentRecord]:
        ids = list(owner_ids)
        if not ids:
            return []
        stmt = select(DocumentModel).where(DocumentModel.owning_entity_id.in_(ids))
        rows = (await self.session.execute(stmt)).scalars().all()
        return [to_document_record(r) for r in rows]

    async def count(self, status: Optional[StorageStatus] = None) -> int:
        where = {"storage_status": status.value} if status is not None else None
        return await self._repo.count(where)

    async def count_by_status(self) -> dict[str, int]:
        stmt = select(DocumentModel.storage_status, func.count()).group_by(
            DocumentModel.storage_status
        )
        rows: Sequence = (await self.session.execute(stmt)).all()
        counts = {s.value: 0 for s in StorageStatus}
        for status, n in rows:
            counts[str(status)] = int(n)
        return counts


class UploadAttemptRepository:
    """Append-only access to ``document_upload_log``."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def append(
        self,
        document_id: Optional[uuid.UUID],
        status: AttemptStatus,
        *,
        error: Optional[str] = None,
    ) -> UploadAttempt:
        row = UploadAttemptModel(document_id=document_id, status=status.value, error=error)
        self.session.add(row)
        await self.session.flush()
        return to_upload_attempt(row)

    async def counts_by_status(self, since: Optional[dt.datetime] = None) -> dict[str, int]:
        stmt = select(UploadAttemptModel.status, func.count()).group_by(UploadAttemptModel.status)
        if since is not None:
            stmt = stmt.where(UploadAttemptModel.created_at >= since)
        counts = {s.value: 0 for s in AttemptStatus}
        for status, n in (await self.session.execute(stmt)).all():
            counts[str(status)] = int(n)
        return counts

    async def count_since(self, since: dt.datetime) -> int:
        stmt = (
            select(func.count())
            .select_from(UploadAttemptModel)
            .where(UploadAttemptModel.created_at >= since)
        )
        return int((await self.session.execute(stmt)).scalar_one())

    async def list_since(self, since: dt.datetime) -> list[UploadAttempt]:
        stmt = (
            select(UploadAttemptModel)
            .where(UploadAttemptModel.created_at >= since)
            .order_by(UploadAttemptModel.created_at)
        )
        rows = (await self.session.execute(stmt)).scalars().all()
        return [to_upload_attempt(r) for r in rows]

    async def for_document(self, document_id: uuid.UUID) -> list[UploadAttempt]:
        stmt = (
            select(UploadAttemptModel)
            .where(UploadAttemptModel.document_id == document_id)
            .order_by(UploadAttemptModel.id)
        )
        rows = (await self.session.execute(stmt)).scalars().all()
        return [to_upload_attempt(r) for r in rows]

    async def last_attempt_at(self) -> Optional[dt.datetime]:
        stmt = select(func.max(UploadAttemptModel.created_at))
        value = (await self.session.execute(stmt)).scalar_one_or_none()
        if value is None:
            return None
        if isinstance(value, str):
            # func.max over a DateTime column comes back untyped on SQLite
            value = dt.datetime.fromisoformat(value)
        return as_utc(value)


class AccessLogRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def append(self, document_id: Optional[uuid.UUID], status_code: int) -> None:
        self.session.add(AccessLogModel(document_id=document_id, status_code=status_code))
        await self.session.flush()

    async def counts_by_status_code(self, since: dt.datetime) -> dict[int, int]:
        stmt = (
            select(AccessLogModel.status_code, func.count())
            .where(AccessLogModel.created_at >= since)
            .group_by(AccessLogModel.status_code)
        )
        return {int(code): int(n) for code, n in (await self.session.execute(stmt)).all()}


class RecoveryLogRepository:
    """Append-only access to ``document_recovery_log``."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def append(
        self,
        document_id: uuid.UUID,
        event: RecoveryEvent,
        *,
        action: Optional[RecoveryAction] = None,
        previous_status: Optional[StorageStatus] = None,
        new_status: Optional[StorageStatus] = None,
        detail: Optional[str] = None,
    ) -> RecoveryLogEntry:
        row = RecoveryLogModel(
            document_id=document_id,
            event=event.value,
            action=action.value if action else None,
            previous_status=previous_status.value if previous_status else None,
            new_status=new_status.value if new_status else None,
            detail=detail,
        )
        self.session.add(row)
        await self.session.flush()
        return to_recovery_log_entry(row)

    async def for_document(self, document_id: uuid.UUID) -> list[RecoveryLogEntry]:
        stmt = (
            select(RecoveryLogModel)
            .where(RecoveryLogModel.document_id == document_id)
            .order_by(RecoveryLogModel.id)
        )
        rows = (await self.session.execute(stmt)).scalars().all()
        return [to_recovery_log_entry(r) for r in rows]

    async def last_events(
        self, document_ids: Iterable[uuid.UUID]
    ) -> dict[uuid.UUID, RecoveryEvent]:
        ids = list(document_ids)
        if not ids:
            return {}
        stmt = (
            select(RecoveryLogModel.document_id, RecoveryLogModel.event)
            .where(RecoveryLogModel.document_id.in_(ids))
            .order_by(RecoveryLogModel.id)
        )
        rows = (await self.session.execute(stmt)).all()
        # later rows overwrite earlier ones
        return {doc_id: RecoveryEvent(event) for doc_id, event in rows}

    async def counts_by_event(self, since: Optional[dt.datetime] = None) -> dict[str, int]:
        stmt = select(RecoveryLogModel.event, func.count()).group_by(RecoveryLogModel.event)
        if since is not None:
            stmt = stmt.where(RecoveryLogModel.created_at >= since)
        counts = {e.value: 0 for e in RecoveryEvent}
        for event, n in (await self.session.execute(stmt)).all():
            counts[str(event)] = int(n)
        return counts
