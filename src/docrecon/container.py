"""Construction of the component graph from settings.

Only this module, the app factory and the CLI read configuration. Every
component below receives its values through its constructor.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from docrecon.consistency.scanner import ConsistencyScanner
from docrecon.db.engine import DBEngine
from docrecon.db.settings import DBSettings, get_db_settings
from docrecon.documents.checksum import ChecksumVerifier
from docrecon.documents.service import DocumentService
from docrecon.health.policy import DEFAULT_POLICY, HealthPolicy
from docrecon.health.reporter import HealthReporter
from docrecon.recovery.coordinator import RecoveryCoordinator
from docrecon.recovery.jobs import JobStore, build_job_store
from docrecon.recovery.settings import RecoverySettings, get_recovery_settings
from docrecon.storage.base import ObjectStore
from docrecon.storage.easy import build_fallback_store, build_primary_store
from docrecon.storage.fallback import LocalFallbackStore
from docrecon.storage.settings import StorageSettings, get_storage_settings

logger = logging.getLogger(__name__)


@dataclass
class Components:
    engine: DBEngine
    primary: ObjectStore
    fallback: LocalFallbackStore
    documents: DocumentService
    scanner: ConsistencyScanner
    coordinator: RecoveryCoordinator
    reporter: HealthReporter
    job_store: JobStore

    async def aclose(self) -> None:
        await self.coordinator.drain()
        await self.job_store.close()
        await self.engine.dispose()


def build_components(
    *,
    db_settings: Optional[DBSettings] = None,
    storage_settings: Optional[StorageSettings] = None,
    recovery_settings: Optional[RecoverySettings] = None,
    engine: Optional[DBEngine] = None,
    primary: Optional[ObjectStore] = None,
    fallback: Optional[LocalFallbackStore] = None,
    job_store: Optional[JobStore] = None,
    policy: HealthPolicy = DEFAULT_POLICY,
) -> Components:
    storage_settings = storage_settings or get_storage_settings()
    recovery_settings = recovery_settings or get_recovery_settings()

    engine = engine or DBEngine(db_settings or get_db_settings())
    primary = primary or build_primary_store(storage_settings)
    fallback = fallback or build_fallback_store(storage_settings)
    job_store = job_store or build_job_store(
        recovery_settings.job_store,
        recovery_settings.redis_url,
        ttl_seconds=recovery_settings.job_ttl_seconds,
    )
    verifier = ChecksumVerifier()

    documents = DocumentService(
        engine,
        primary,
        fallback,
        verifier,
        max_upload_bytes=recovery_settings.max_upload_bytes,
        signed_url_ttl=storage_settings.signed_url_ttl,
    )
    scanner = ConsistencyScanner(
        engine,
        primary,
        fallback,
        verifier,
        concurrency=recovery_settings.scan_concurrency,
        verify_primary_checksums=recovery_settings.verify_primary_checksums,
        primary_verify_max_bytes=recovery_settings.primary_verify_max_bytes,
    )
    coordinator = RecoveryCoordinator(
        documents,
        job_store,
        migrate_concurrency=recovery_settings.migrate_concurrency,
        delete_fallback_after_migration=recovery_settings.delete_fallback_after_migration,
    )
    reporter = HealthReporter(
        engine,
        primary,
        fallback,
        scanner,
        policy,
        check_timeout=recovery_settings.check_timeout,
        activity_window_seconds=recovery_settings.activity_window_seconds,
        finding_preview_limit=recovery_settings.finding_preview_limit,
        fallback_preview_limit=recovery_settings.fallback_preview_limit,
    )
    logger.debug("Components built: db=%s primary=%s", engine.sanitized_url, primary.name)
    return Components(
        engine=engine,
        primary=primary,
        fallback=fallback,
        documents=documents,
        scanner=scanner,
        coordinator=coordinator,
        reporter=reporter,
        job_store=job_store,
    )
