from .backends import MemoryBackend, S3Backend
from .base import InvalidKeyError, ObjectStore, validate_key
from .easy import build_fallback_store, build_primary_store
from .fallback import LocalFallbackStore
from .settings import StorageSettings, get_storage_settings

__all__ = [
    "ObjectStore",
    "InvalidKeyError",
    "validate_key",
    "MemoryBackend",
    "S3Backend",
    "LocalFallbackStore",
    "StorageSettings",
    "get_storage_settings",
    "build_primary_store",
    "build_fallback_store",
]
