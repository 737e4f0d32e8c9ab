"""
Operator operations.

Every call returns an ``OperationSuccess`` or an ``OperationError``. Exceptions
never escape: taxonomy errors become their code, anything else is logged
with its traceback and reported as ``internal_error``.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, Union

from docrecon.container import Components
from docrecon.documents.service import ChecksumCheck
from docrecon.exceptions import (
    DocReconError,
    ObjectNotFoundError,
    ValidationError,
    error_for_code,
)
from docrecon.recovery.coordinator import MigrationOutcome

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OperationSuccess:
    data: dict[str, Any] = field(default_factory=dict)
    success: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {"success": True, **self.data}


@dataclass(frozen=True)
class OperationError:
    error: str
    detail: str
    document_id: Optional[str] = None
    success: bool = False

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"success": False, "error": self.error, "detail": self.detail}
        if self.document_id:
            out["document_id"] = self.document_id
        return out


OperationResult = Union[OperationSuccess, OperationError]


def parse_document_id(raw: str) -> uuid.UUID:
    try:
        return uuid.UUID(str(raw))
    except ValueError:
        # an id that cannot parse cannot exist
        raise ObjectNotFoundError("document not found", document_id=str(raw)) from None


class DocumentOperations:
    def __init__(self, components: Components):
        self.c = components

    async def _run(
        self, name: str, fn: Callable[[], Awaitable[dict[str, Any]]]
    ) -> OperationResult:
        try:
            return OperationSuccess(await fn())
        except DocReconError as e:
            logger.warning(
                "%s failed (%s): %s", name, e.code, e, extra={"document_id": e.document_id}
            )
            return OperationError(e.code, e.message or str(e), e.document_id)
        except Exception as e:
            logger.exception("%s failed unexpectedly", name)
            return OperationError("internal_error", f"{name} failed: {e}")

    # ------------------------------------------------------------- reporting

    async def metrics(self) -> OperationResult:
        return await self._run("metrics", self.c.reporter.metrics)

    async def health(self) -> OperationResult:
        async def _health() -> dict[str, Any]:
            return {"health": (await self.c.reporter.health()).to_dict()}

        return await self._run("health", _health)

    async def audit_report(self) -> OperationResult:
        async def _audit() -> dict[str, Any]:
            return {"audit_summary": await self.c.reporter.audit_report()}

        return await self._run("audit_report", _audit)

    async def extended_health(self) -> OperationResult:
        async def _extended() -> dict[str, Any]:
            report = await self.c.scanner.scan()
            detected = await self.c.coordinator.record_detections(report)
            view = await self.c.reporter.extended_scan(report)
            view["new_detections"] = detected
            return view

        return await self._run("extended_health", _extended)

    async def bulk_status(self, owner_ids: list[str]) -> OperationResult:
        async def _bulk() -> dict[str, Any]:
            if not isinstance(owner_ids, list):
                raise ValidationError("owning entity ids must be a list")
            return await self.c.reporter.bulk_status(owner_ids)

        return await self._run("bulk_status", _bulk)

    # -------------------------------------------------------------- recovery

    async def retry_upload(self, raw_id: str) -> OperationResult:
        async def _retry() -> dict[str, Any]:
            document_id = parse_document_id(raw_id)
            record = await self.c.documents.get_record(document_id)
            if record is None or not record.in_fallback:
                raise ObjectNotFoundError(
                    "document not found or not in fallback status", document_id=str(raw_id)
                )
            result = await self.c.coordinator.migrate(document_id)
            if result.outcome == MigrationOutcome.FAILED:
                raise error_for_code(
                    result.error_code or "internal_error",
                    result.error or "migration failed",
                    document_id=str(raw_id),
                )
            return {
                "message": "document uploaded to primary store",
                "document_id": result.document_id,
                "new_storage_key": result.storage_key,
                "outcome": result.outcome.value,
            }

        return await self._run("retry_upload", _retry)

    async def retry_all_fallbacks(self) -> OperationResult:
        async def _start() -> dict[str, Any]:
            job = await self.c.coordinator.start_migrate_all()
            return {"message": "bulk retry started in background", "job": job.to_dict()}

        return await self._run("retry_all_fallbacks", _start)

    async def get_job(self, job_id: str) -> OperationResult:
        async def _get() -> dict[str, Any]:
            job = await self.c.coordinator.get_job(job_id)
            if job is None:
                raise ObjectNotFoundError(f"job {job_id} not found")
            return {"job": job.to_dict()}

        return await self._run("get_job", _get)

    async def replace_document(
        self,
        raw_id: str,
        file_name: str,
        data: bytes,
        content_type: Optional[str] = None,
    ) -> OperationResult:
        async def _replace() -> dict[str, Any]:
            document_id = parse_document_id(raw_id)
            record = await self.c.coordinator.replace(document_id, file_name, data, content_type)
            return {"message": "document replaced", "document": record.to_dict()}

        return await self._run("replace_document", _replace)

    async def validate(self, raw_ids: list[str]) -> OperationResult:
        async def _validate() -> dict[str, Any]:
            if not raw_ids:
                raise ValidationError("at least one document id is required")
            checks: list[ChecksumCheck] = []
            for raw in raw_ids:
                try:
                    document_id = parse_document_id(raw)
                except ObjectNotFoundError:
                    checks.append(ChecksumCheck(str(raw), "not_found", detail="invalid id"))
                    continue
                checks.append(await self.c.documents.validate_checksum(document_id))
            valid = sum(1 for c in checks if c.ok)
            return {
                "results": [c.to_dict() for c in checks],
                "summary": {"checked": len(checks), "valid": valid, "invalid": len(checks) - valid},
            }

        return await self._run("validate", _validate)

    # --------------------------------------------------------------- serving

    async def download(self, raw_id: str) -> OperationResult:
        async def _download() -> dict[str, Any]:
            served = await self.c.documents.open_document(parse_document_id(raw_id))
            return {"document": served.record.to_dict(), "content": served.data}

        return await self._run("download", _download)

    async def signed_url(self, raw_id: str, ttl: Optional[int] = None) -> OperationResult:
        async def _signed() -> dict[str, Any]:
            document_id = parse_document_id(raw_id)
            url = await self.c.documents.signed_url(document_id, ttl)
            return {"document_id": str(document_id), "url": url}

        return await self._run("signed_url", _signed)

    async def recovery_log(self, raw_id: str) -> OperationResult:
        async def _log() -> dict[str, Any]:
            document_id = parse_document_id(raw_id)
            record = await self.c.documents.get_record(document_id)
            if record is None:
                raise ObjectNotFoundError("document not found", document_id=str(raw_id))
            events = await self.c.coordinator.history(document_id)
            return {
                "document_id": str(document_id),
                "storage_status": record.storage_status.value,
                "events": [e.to_dict() for e in events],
            }

        return await self._run("recovery_log", _log)
