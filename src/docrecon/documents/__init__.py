from .checksum import ChecksumVerifier
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
from .records import AccessLogEntry, DocumentRecord, RecoveryLogEntry, UploadAttempt
from .repository import (
    AccessLogRepository,
    DocumentRepository,
    RecoveryLogRepository,
    UploadAttemptRepository,
)
from .service import (
    ChecksumCheck,
    DocumentService,
    Placement,
    ServedDocument,
    guess_mime_type,
    storage_key_for,
)

__all__ = [
    "ChecksumVerifier",
    "AccessLogModel",
    "AttemptStatus",
    "DocumentModel",
    "RecoveryAction",
    "RecoveryEvent",
    "RecoveryLogModel",
    "StorageStatus",
    "UploadAttemptModel",
    "AccessLogEntry",
    "DocumentRecord",
    "RecoveryLogEntry",
    "UploadAttempt",
    "AccessLogRepository",
    "DocumentRepository",
    "RecoveryLogRepository",
    "UploadAttemptRepository",
    "ChecksumCheck",
    "DocumentService",
    "Placement",
    "ServedDocument",
    "guess_mime_type",
    "storage_key_for",
]
