from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI

from docrecon.app.core.env import get_env
from docrecon.app.core.logging import setup_logging
from docrecon.app.settings import AppSettings, get_app_settings
from docrecon.container import Components, build_components
from docrecon.db.settings import DBSettings
from docrecon.recovery.settings import RecoverySettings
from docrecon.storage.settings import StorageSettings

from .middleware import register_error_handlers
from .operations import DocumentOperations
from .router import router

logger = logging.getLogger(__name__)


def attach_components(app: FastAPI, components: Components) -> None:
    app.state.components = components
    app.state.operations = DocumentOperations(components)


def create_app(
    *,
    app_settings: Optional[AppSettings] = None,
    db_settings: Optional[DBSettings] = None,
    storage_settings: Optional[StorageSettings] = None,
    recovery_settings: Optional[RecoverySettings] = None,
    components: Optional[Components] = None,
    configure_logging: bool = True,
) -> FastAPI:
    """Build the admin API.

    Pass ``components`` to run against an already wired graph (tests do);
    otherwise the graph is built from settings when the lifespan starts and
    torn down when it ends.
    """
    app_settings = app_settings or get_app_settings()
    if configure_logging:
        setup_logging(app_settings.log_level, app_settings.log_format)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        owned: Optional[Components] = None
        if getattr(app.state, "components", None) is None:
            owned = build_components(
                db_settings=db_settings,
                storage_settings=storage_settings,
                recovery_settings=recovery_settings,
            )
            attach_components(app, owned)
        logger.info(
            "%s %s started [env: %s]", app_settings.name, app_settings.version, get_env().value
        )
        try:
            yield
        finally:
            if owned is not None:
                await owned.aclose()
                app.state.components = None
                app.state.operations = None

    app = FastAPI(title=app_settings.name, version=app_settings.version, lifespan=lifespan)
    register_error_handlers(app)
    app.include_router(router)
    if components is not None:
        attach_components(app, components)
    return app
