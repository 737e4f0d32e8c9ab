from __future__ import annotations

from typing import Any, Generic, Optional, Sequence, Type, TypeVar, cast

from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

T = TypeVar("T")


def apply_filters(stmt, model, where: dict[str, Any] | None):
    if not where:
        return stmt
    return stmt.where(and_(*[(cast(Any, getattr(model, k)) == v) for k, v in where.items()]))


class Repository(Generic[T]):
    """Generic async SQLAlchemy repository over one model class."""

    def __init__(self, session: AsyncSession, model: Type[T]):
        self.session = session
        self.model = model

    async def get(self, id: Any) -> Optional[T]:
        return await self.session.get(self.model, id)

    async def list(
        self,
        *,
        where: Optional[dict[str, Any]] = None,
        order_by: Any | None = None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> Sequence[T]:
        stmt = apply_filters(select(self.model), self.model, where)
        if order_by is not None:
            stmt = stmt.order_by(order_by)
        if limit:
            stmt = stmt.limit(limit)
        if offset:
            stmt = stmt.offset(offset)
        return (await self.session.execute(stmt)).scalars().all()

    async def count(self, where: Optional[dict[str, Any]] = None) -> int:
        stmt = apply_filters(select(func.count()).select_from(self.model), self.model, where)
        return int((await self.session.execute(stmt)).scalar_one())

    async def create(self, **data) -> T:
        obj = self.model(**data)
        self.session.add(obj)
        await self.session.flush()
        return obj

    async def update(self, id: Any, **data) -> Optional[T]:
        obj = await self.get(id)
        if obj is None:
            return None
        for k, v in data.items():
            setattr(obj, k, v)
        await self.session.flush()
        return obj
