from __future__ import annotations

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from .engine import DBEngine


class UnitOfWork:
    """Session scope that commits on clean exit and rolls back otherwise.

    Every status transition goes through one of these, so a transition is
    only considered complete once ``__aexit__`` has committed it.
    """

    def __init__(self, engine: DBEngine, *, commit_on_success: bool = True):
        self._engine = engine
        self._commit_on_success = commit_on_success
        self.session: Optional[AsyncSession] = None
        self._session_cm = None

    async def __aenter__(self) -> "UnitOfWork":
        self._session_cm = self._engine.session()
        self.session = await self._session_cm.__aenter__()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        assert self.session is not None and self._session_cm is not None
        try:
            if exc_type is None and self._commit_on_success:
                await self.session.commit()
            else:
                await self.session.rollback()
        finally:
            await self._session_cm.__aexit__(exc_type, exc, tb)
        return False
