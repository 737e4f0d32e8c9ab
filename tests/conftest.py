"""
Root conftest.py for docrecon tests.

This file provides:
1. Custom pytest markers for test categorization
2. Database, store and component fixtures shared across modules
3. Small helpers for putting documents into a known state

Every test gets its own SQLite file and fallback directory under tmp_path,
so tests never share state.
"""

from __future__ import annotations

from pathlib import Path
from typing import AsyncIterator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from docrecon.api.app import create_app
from docrecon.container import Components, build_components
from docrecon.db.engine import DBEngine
from docrecon.db.schema import create_all, make_sqlite_engine
from docrecon.documents.records import DocumentRecord
from docrecon.documents.service import DocumentService
from docrecon.recovery.jobs import InMemoryJobStore
from docrecon.recovery.settings import RecoverySettings
from docrecon.storage.backends.memory import MemoryBackend
from docrecon.storage.fallback import LocalFallbackStore
from docrecon.storage.settings import StorageSettings

# =============================================================================
# PYTEST CONFIGURATION
# =============================================================================


def pytest_configure(config):
    # Ensure custom markers are registered even if pyproject.toml isn't picked up in some contexts
    for name, desc in [
        ("storage", "Primary and fallback store tests"),
        ("consistency", "Consistency scanner tests"),
        ("recovery", "Migration and replacement tests"),
        ("health", "Health reporting tests"),
        ("concurrency", "Single-flight and serialization tests"),
        ("acceptance", "End-to-end scenarios"),
    ]:
        config.addinivalue_line("markers", f"{name}: {desc}")


# =============================================================================
# DATABASE FIXTURES
# =============================================================================


@pytest_asyncio.fixture
async def engine(tmp_path: Path) -> AsyncIterator[DBEngine]:
    """File-backed SQLite engine with all tables created.

    A file rather than :memory: so concurrent sessions behave like a real
    database instead of sharing one connection.
    """
    db = make_sqlite_engine(str(tmp_path / "docrecon.db"))
    await create_all(db.engine)
    yield db
    await db.dispose()


# =============================================================================
# STORE FIXTURES
# =============================================================================


@pytest.fixture
def primary() -> MemoryBackend:
    return MemoryBackend()


@pytest.fixture
def fallback(tmp_path: Path) -> LocalFallbackStore:
    return LocalFallbackStore(tmp_path / "fallback")


# =============================================================================
# COMPONENT FIXTURES
# =============================================================================


@pytest.fixture
def recovery_settings() -> RecoverySettings:
    return RecoverySettings(
        scan_concurrency=4,
        migrate_concurrency=4,
        max_upload_bytes=1024 * 1024,
        check_timeout=2.0,
    )


@pytest_asyncio.fixture
async def components(
    engine: DBEngine,
    primary: MemoryBackend,
    fallback: LocalFallbackStore,
    recovery_settings: RecoverySettings,
) -> AsyncIterator[Components]:
    c = build_components(
        storage_settings=StorageSettings(backend="memory"),
        recovery_settings=recovery_settings,
        engine=engine,
        primary=primary,
        fallback=fallback,
        job_store=InMemoryJobStore(),
    )
    yield c
    await c.coordinator.drain()


@pytest.fixture
def documents(components: Components) -> DocumentService:
    return components.documents


@pytest.fixture
def coordinator(components: Components):
    return components.coordinator


@pytest.fixture
def scanner(components: Components):
    return components.scanner


@pytest.fixture
def reporter(components: Components):
    return components.reporter


# =============================================================================
# API FIXTURES
# =============================================================================


@pytest_asyncio.fixture
async def client(components: Components) -> AsyncIterator[AsyncClient]:
    app = create_app(components=components, configure_logging=False)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


# =============================================================================
# HELPERS
# =============================================================================


async def upload_to_fallback(
    documents: DocumentService,
    primary: MemoryBackend,
    data: bytes = b"fallback bytes",
    *,
    owner: str = "app-1",
    file_name: str = "statement.pdf",
) -> DocumentRecord:
    """Upload while the primary store is down so the bytes land in fallback."""
    primary.available = False
    try:
        return await documents.upload(owner, file_name, data)
    finally:
        primary.available = True


@pytest.fixture
def fallback_upload(documents: DocumentService, primary: MemoryBackend):
    async def _upload(data: bytes = b"fallback bytes", **kwargs) -> DocumentRecord:
        return await upload_to_fallback(documents, primary, data, **kwargs)

    return _upload
