# sugar/services/search.py
"""
Full-text search over threads, backed by an external HTTP search index.

The index owns relevance; this module only translates the visibility rules
into index filters, asks for a vitality bias (reply count, then recency)
behind textual relevance, and loads the matching rows back from the
database in index order. Results use the same ``Page`` shape as listings.

Wire format (POST ``{SEARCH_INDEX_URL}/indexes/{name}/search``):
  request:  {"q", "filter", "sort", "field_weights", "offset", "limit"}
  response: {"ids": [int, ...], "total": int}
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional

import httpx
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from sugar.config import (
    DISCUSSIONS_PER_PAGE,
    SEARCH_INDEX_NAME,
    SEARCH_INDEX_URL,
    SEARCH_TIMEOUT,
)
from sugar.errors import SearchUnavailableError
from sugar.models.forum_model import ForumThread
from sugar.services.pagination import Page, Paginater, with_summary_relations
from sugar.services.visibility import is_visible

logger = logging.getLogger(__name__)

# relevance first, then busier threads, then fresher ones
SEARCH_SORT = ["_relevance:desc", "post_count:desc", "last_post_at:desc"]
FIELD_WEIGHTS = {"title": 2}


@dataclass
class SearchHits:
    ids: List[int]
    total: int


class SearchIndexClient:
    def __init__(
        self,
        base_url: str = SEARCH_INDEX_URL,
        index_name: str = SEARCH_INDEX_NAME,
        timeout: float = SEARCH_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.index_name = index_name
        self.timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self._transport,
        )

    async def query(self, text: str, *, filters: dict, offset: int, limit: int) -> SearchHits:
        payload = {
            "q": text,
            "filter": filters,
            "sort": SEARCH_SORT,
            "field_weights": FIELD_WEIGHTS,
            "offset": offset,
            "limit": limit,
        }
        try:
            async with self._client() as client:
                r = await client.post(f"/indexes/{self.index_name}/search", json=payload)
                r.raise_for_status()
                data = r.json()
        except httpx.TimeoutException as e:
            logger.warning("Search index timed out: %r", e)
            raise SearchUnavailableError("Search timed out") from e
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Search index unavailable: %r", e)
            raise SearchUnavailableError("Search is unavailable") from e

        try:
            ids = [int(i) for i in data.get("ids", [])]
            total = int(data.get("total", 0))
        except (AttributeError, TypeError, ValueError) as e:
            raise SearchUnavailableError("Search index returned a malformed response") from e
        return SearchHits(ids=ids, total=total)


def index_filters(include_trusted: bool) -> dict:
    """Visibility rules expressed as index-level conditions."""
    return {} if include_trusted else {"trusted": False}


async def search_paginated(
    db: AsyncSession,
    client: SearchIndexClient,
    *,
    query: str,
    page: int = 1,
    per_page: int = DISCUSSIONS_PER_PAGE,
    include_trusted: bool = False,
) -> Page:
    page = max(1, int(page or 1))
    paging = Paginater(total_count=0, page=page, per_page=per_page)

    try:
        hits = await asyncio.wait_for(
            client.query(
                query,
                filters=index_filters(include_trusted),
                offset=paging.offset,
                limit=paging.limit,
            ),
            timeout=client.timeout,
        )
    except asyncio.TimeoutError as e:
        logger.warning("Search request exceeded %.1fs", client.timeout)
        raise SearchUnavailableError("Search timed out") from e

    pagination = Paginater(total_count=hits.total, page=page, per_page=per_page)
    if not hits.ids:
        return Page.from_paginater([], pagination)

    rows = (
        await db.execute(
            with_summary_relations(select(ForumThread)).where(ForumThread.id.in_(hits.ids))
        )
    ).scalars().all()
    by_id = {t.id: t for t in rows}

    # keep index order; drop stale ids and anything the viewer may not see
    items = [
        by_id[i]
        for i in hits.ids
        if i in by_id and is_visible(by_id[i], include_trusted)
    ]
    return Page.from_paginater(items, pagination)
