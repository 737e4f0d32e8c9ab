from .exceptions import (
    ChecksumMismatchError,
    DocReconError,
    InternalError,
    ObjectNotFoundError,
    PrimaryUnavailableError,
    StorageError,
    ValidationError,
)

__version__ = "0.1.0"

__all__ = [
    # Base exception
    "DocReconError",
    # Error taxonomy
    "StorageError",
    "PrimaryUnavailableError",
    "ObjectNotFoundError",
    "ChecksumMismatchError",
    "ValidationError",
    "InternalError",
]
