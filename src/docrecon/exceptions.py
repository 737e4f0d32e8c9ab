from __future__ import annotations

from typing import Optional


class DocReconError(Exception):
    """Base class for every error raised by docrecon."""

    code: str = "internal_error"

    def __init__(self, message: str = "", *, document_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.document_id = document_id


class StorageError(DocReconError):
    """Base for errors raised by store adapters."""


class PrimaryUnavailableError(StorageError):
    """Primary store could not be reached (network, auth or configuration).

    Transient: callers fall back to the local store, they never surface this
    to the uploader as a hard failure.
    """

    code = "primary_unavailable"


class ObjectNotFoundError(StorageError):
    """Requested object or document does not exist.

    An integrity signal, not a retry condition.
    """

    code = "not_found"


class ChecksumMismatchError(DocReconError):
    """Bytes no longer match the digest captured at original write time."""

    code = "checksum_mismatch"

    def __init__(
        self,
        message: str = "",
        *,
        expected: Optional[str] = None,
        actual: Optional[str] = None,
        document_id: Optional[str] = None,
    ):
        super().__init__(message or "checksum mismatch", document_id=document_id)
        self.expected = expected
        self.actual = actual


class ValidationError(DocReconError):
    """Bad input for an admin action. Rejected with no state change."""

    code = "validation_error"


class InternalError(DocReconError):
    """Unexpected failure, logged with context."""

    code = "internal_error"


def error_for_code(
    code: str, message: str, *, document_id: Optional[str] = None
) -> DocReconError:
    """Rebuild a taxonomy error from its code, e.g. for a failed result object."""
    for cls in (
        PrimaryUnavailableError,
        ObjectNotFoundError,
        ChecksumMismatchError,
        ValidationError,
    ):
        if cls.code == code:
            return cls(message, document_id=document_id)
    return InternalError(message, document_id=document_id)


__all__ = [
    "error_for_code",
    "DocReconError",
    "StorageError",
    "PrimaryUnavailableError",
    "ObjectNotFoundError",
    "ChecksumMismatchError",
    "ValidationError",
    "InternalError",
]
