"""Offset pagination for list queries."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

T = TypeVar("T")

MAX_PAGE_SIZE = 100


@dataclass
class Page(Generic[T]):
    """One page of results plus the totals needed by the envelope."""

    items: list[T]
    total: int
    page: int
    limit: int

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


async def paginate(session: AsyncSession, query: Select[Any], page: int = 1, limit: int = 20) -> Page[Any]:
    """Run ``query`` for one page; ``page`` is 1-based."""
    page = max(page, 1)
    limit = min(max(limit, 1), MAX_PAGE_SIZE)

    total = await session.scalar(select(func.count()).select_from(query.order_by(None).subquery()))
    result = await session.execute(query.offset((page - 1) * limit).limit(limit))
    return Page(items=list(result.scalars().all()), total=total or 0, page=page, limit=limit)
