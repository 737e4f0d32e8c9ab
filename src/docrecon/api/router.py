from __future__ import annotations

from typing import Annotated, Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, Query, Request, UploadFile
from fastapi.responses import JSONResponse, Response

from .operations import DocumentOperations, OperationError, OperationResult
from .schemas import BulkStatusRequest, ErrorResponse, ValidateRequest

STATUS_BY_CODE = {
    "not_found": 404,
    "validation_error": 400,
    "checksum_mismatch": 409,
    "primary_unavailable": 503,
    "internal_error": 500,
}

_errors = {
    404: {"model": ErrorResponse},
    400: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
    503: {"model": ErrorResponse},
}


def get_operations(request: Request) -> DocumentOperations:
    return request.app.state.operations  # type: ignore[attr-defined]


OperationsDep = Annotated[DocumentOperations, Depends(get_operations)]


def to_response(result: OperationResult, *, success_status: int = 200) -> JSONResponse:
    if isinstance(result, OperationError):
        return JSONResponse(
            status_code=STATUS_BY_CODE.get(result.error, 500), content=result.to_dict()
        )
    return JSONResponse(status_code=success_status, content=result.to_dict())


router = APIRouter(prefix="/admin/documents", tags=["document-recovery"], responses=_errors)


@router.get("/metrics")
async def upload_metrics(ops: OperationsDep):
    return to_response(await ops.metrics())


@router.get("/health")
async def storage_health(ops: OperationsDep):
    return to_response(await ops.health())


@router.get("/health/extended")
async def extended_health(ops: OperationsDep):
    return to_response(await ops.extended_health())


@router.get("/audit-report")
async def audit_report(ops: OperationsDep):
    return to_response(await ops.audit_report())


@router.post("/retry-upload/{document_id}")
async def retry_upload(document_id: str, ops: OperationsDep):
    return to_response(await ops.retry_upload(document_id))


@router.post("/retry-all-fallbacks", status_code=202)
async def retry_all_fallbacks(ops: OperationsDep):
    return to_response(await ops.retry_all_fallbacks(), success_status=202)


@router.get("/jobs/{job_id}")
async def recovery_job(job_id: str, ops: OperationsDep):
    return to_response(await ops.get_job(job_id))


@router.post("/bulk-status")
async def bulk_status(body: BulkStatusRequest, ops: OperationsDep):
    return to_response(await ops.bulk_status(body.owning_entity_ids))


@router.post("/validate")
async def validate_checksums(body: ValidateRequest, ops: OperationsDep):
    return to_response(await ops.validate(body.document_ids))


@router.post("/{document_id}/replace")
async def replace_document(
    document_id: str,
    ops: OperationsDep,
    file: UploadFile = File(...),
):
    data = await file.read()
    result = await ops.replace_document(
        document_id, file.filename or "", data, file.content_type or None
    )
    return to_response(result)


@router.get("/{document_id}/download")
async def download_document(document_id: str, ops: OperationsDep):
    result = await ops.download(document_id)
    if isinstance(result, OperationError):
        return to_response(result)
    doc = result.data["document"]
    disposition = f"attachment; filename*=UTF-8''{quote(doc['file_name'])}"
    return Response(
        content=result.data["content"],
        media_type=doc["mime_type"],
        headers={"Content-Disposition": disposition},
    )


@router.get("/{document_id}/signed-url")
async def document_signed_url(
    document_id: str,
    ops: OperationsDep,
    ttl: Optional[int] = Query(default=None, gt=0, le=7 * 24 * 3600),
):
    return to_response(await ops.signed_url(document_id, ttl))


@router.get("/{document_id}/recovery-log")
async def document_recovery_log(document_id: str, ops: OperationsDep):
    return to_response(await ops.recovery_log(document_id))
