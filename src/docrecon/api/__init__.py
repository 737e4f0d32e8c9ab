from .app import attach_components, create_app
from .operations import (
    DocumentOperations,
    OperationError,
    OperationResult,
    OperationSuccess,
    parse_document_id,
)
from .router import STATUS_BY_CODE, router

__all__ = [
    "attach_components",
    "create_app",
    "DocumentOperations",
    "OperationError",
    "OperationResult",
    "OperationSuccess",
    "parse_document_id",
    "STATUS_BY_CODE",
    "router",
]
