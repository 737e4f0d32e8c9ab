from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import literal_column, select, table
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

DOCUMENTS_TABLE = "documents"


async def db_healthcheck(
    session: AsyncSession, *, table_name: Optional[str] = DOCUMENTS_TABLE
) -> bool:
    """True when the database answers and ``table_name`` is readable.

    A reachable database without the documents schema counts as down: every
    upload would fail on its first insert. Pass ``table_name=None`` to test
    connectivity only.
    """
    stmt = select(literal_column("1"))
    if table_name:
        stmt = stmt.select_from(table(table_name)).limit(1)
    try:
        await session.execute(stmt)
        return True
    except (SQLAlchemyError, OSError) as exc:
        logger.warning("Metadata database check failed (table=%s): %s", table_name, exc)
        return False
