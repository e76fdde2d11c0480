# sugar/services/pagination.py
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from sugar.config import DISCUSSIONS_PER_PAGE
from sugar.models.forum_model import ForumCategory, ForumThread
from sugar.models.user_model import User
from sugar.services.visibility import can_see_trusted, visibility_clause


@dataclass
class Paginater:
    """Offset/limit arithmetic for a page of a counted collection."""

    total_count: int
    page: int = 1
    per_page: int = DISCUSSIONS_PER_PAGE

    def __post_init__(self):
        self.page = max(1, int(self.page or 1))
        self.per_page = max(1, int(self.per_page or DISCUSSIONS_PER_PAGE))
        self.total_count = max(0, int(self.total_count or 0))

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.per_page

    @property
    def limit(self) -> int:
        return self.per_page

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_count / self.per_page)

    @property
    def has_prev(self) -> bool:
        return self.page > 1

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages


@dataclass
class Page:
    """One page of results, whether it came from a listing or a search."""

    items: List[Any]
    total_count: int
    page: int
    per_page: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_count / self.per_page) if self.per_page else 0

    @property
    def has_prev(self) -> bool:
        return self.page > 1

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @classmethod
    def from_paginater(cls, items: List[Any], p: Paginater) -> "Page":
        return cls(items=items, total_count=p.total_count, page=p.page, per_page=p.per_page)


def thread_filters(category: Optional[ForumCategory], include_trusted: bool) -> list:
    filters = []
    if category is not None:
        filters.append(ForumThread.category_id == category.id)
    trusted_clause = visibility_clause(include_trusted)
    if trusted_clause is not None:
        filters.append(trusted_clause)
    return filters


def listing_order():
    # pinned threads always precede unpinned ones
    return (
        ForumThread.sticky.desc(),
        ForumThread.last_post_at.desc(),
        ForumThread.id.desc(),
    )


def with_summary_relations(stmt):
    return stmt.options(
        selectinload(ForumThread.author),
        selectinload(ForumThread.last_poster),
        selectinload(ForumThread.category),
    )


async def count_threads(db: AsyncSession, filters: list) -> int:
    stmt = select(func.count(ForumThread.id))
    if filters:
        stmt = stmt.where(*filters)
    return int((await db.execute(stmt)).scalar_one() or 0)


async def find_paginated(
    db: AsyncSession,
    *,
    page: int = 1,
    per_page: int = DISCUSSIONS_PER_PAGE,
    category: Optional[ForumCategory] = None,
    include_trusted: bool = False,
) -> Page:
    """
    Threads sorted by activity, sticky ones on top.

    The category's counter cache counts every thread in it, so it is only
    used for the total when trusted threads are included too; any other
    combination falls back to a COUNT under the same filters.
    """
    filters = thread_filters(category, include_trusted)

    total: Optional[int] = None
    if category is not None and include_trusted:
        total = category.discussions_count
    if total is None:
        total = await count_threads(db, filters)

    pagination = Paginater(total_count=total, page=page, per_page=per_page)

    stmt = with_summary_relations(select(ForumThread)).order_by(*listing_order())
    if filters:
        stmt = stmt.where(*filters)
    stmt = stmt.offset(pagination.offset).limit(pagination.limit)

    rows = (await db.execute(stmt)).scalars().all()
    return Page.from_paginater(list(rows), pagination)


async def count_for(db: AsyncSession, viewer: Optional[User]) -> int:
    """Total threads visible to this viewer."""
    return await count_threads(db, thread_filters(None, can_see_trusted(viewer)))
