from __future__ import annotations

import logging
from typing import Optional

from .backends import MemoryBackend, S3Backend
from .base import ObjectStore
from .fallback import LocalFallbackStore
from .settings import StorageSettings

logger = logging.getLogger(__name__)


def build_primary_store(settings: StorageSettings) -> ObjectStore:
    """Construct the primary ObjectStore selected by ``settings.backend``."""
    if settings.backend == "memory":
        logger.info("Using in-memory primary store")
        return MemoryBackend(server_side_encryption=settings.s3_sse)
    if settings.backend == "s3":
        if not settings.s3_bucket:
            raise ValueError("STORAGE_S3_BUCKET is required for the s3 backend")
        logger.info(
            "Using S3 primary store bucket=%s region=%s endpoint=%s",
            settings.s3_bucket,
            settings.s3_region,
            settings.s3_endpoint or "aws",
        )
        return S3Backend(
            bucket=settings.s3_bucket,
            region=settings.s3_region,
            endpoint=settings.s3_endpoint,
            access_key=settings.s3_access_key,
            secret_key=settings.s3_secret_key,
            server_side_encryption=settings.s3_sse,
            kms_key_id=settings.s3_kms_key_id,
        )
    raise ValueError(f"Unknown storage backend: {settings.backend}")


def build_fallback_store(
    settings: StorageSettings, base_path: Optional[str] = None
) -> LocalFallbackStore:
    return LocalFallbackStore(base_path or settings.fallback_path)
