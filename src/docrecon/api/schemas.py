from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class BulkStatusRequest(BaseModel):
    owning_entity_ids: list[str] = Field(default_factory=list, max_length=1000)


class ValidateRequest(BaseModel):
    document_ids: list[str] = Field(min_length=1, max_length=1000)


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
    detail: str
    document_id: Optional[str] = None
