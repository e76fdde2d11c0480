from fastapi import APIRouter, Depends, Query, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from sugar.config import DISCUSSIONS_PER_PAGE, POSTS_PER_PAGE, POST_CREATE_RATE, THREAD_CREATE_RATE, WORK_SAFE_URLS
from sugar.database import get_async_session
from sugar.deps.admin import require_moderator
from sugar.errors import NotFoundError, PermissionDeniedError
from sugar.limiter import limiter
from sugar.models.forum_model import ForumPost, ForumThread
from sugar.models.user_model import User
from sugar.schemas.forum_schemas import (
    CategoryOut, CreatePostIn, CreateThreadIn, MarkViewedIn, PageOut, PostOut, PostsPageOut,
    RepairOut, ThreadDetailOut, ThreadOut, UpdateThreadIn,
)
from sugar.services import threads as thread_service
from sugar.services.pagination import Page, count_for, find_paginated
from sugar.services.permissions import editable_by
from sugar.services.search import SearchIndexClient, search_paginated
from sugar.services.visibility import can_see_trusted
from sugar.utils.slug import parse_thread_param, thread_param
from sugar.utils.token_utils import get_current_user, get_current_user_optional

router = APIRouter(prefix="/forum", tags=["forum"])


def get_search_client() -> SearchIndexClient:
    return SearchIndexClient()


# ------------------------------
# Mappers
# ------------------------------
def _ts(value) -> Optional[str]:
    return str(value) if value is not None else None


def _thread_to_out(t: ForumThread) -> ThreadOut:
    return ThreadOut(
        id=t.id,
        param=thread_param(t.id, t.title, work_safe_urls=WORK_SAFE_URLS),
        title=t.title,
        category=CategoryOut(id=t.category.id, name=t.category.name, trusted=bool(t.category.trusted))
        if t.category else None,
        author_username=t.author.username if t.author else None,
        last_poster_username=t.last_poster.username if t.last_poster else None,
        closer_id=t.closer_id,
        post_count=t.post_count or 0,
        last_post_at=str(t.last_post_at),
        created_at=str(t.created_at),
        sticky=bool(t.sticky),
        closed=bool(t.closed),
        trusted=bool(t.trusted),
        nsfw=bool(t.nsfw),
        labels=thread_service.labels(t),
        last_page=max(1, thread_service.last_page(t)),
    )


def _post_to_out(p: ForumPost) -> PostOut:
    return PostOut(
        id=p.id,
        thread_id=p.thread_id,
        author_username=p.author.username if p.author else None,
        content_markdown=p.content_markdown,
        created_at=str(p.created_at),
        edited_at=_ts(p.edited_at),
    )


def _page_to_out(page: Page) -> PageOut:
    return PageOut(
        items=[_thread_to_out(t) for t in page.items],
        total_count=page.total_count,
        page=page.page,
        per_page=page.per_page,
        total_pages=max(1, page.total_pages),
        has_prev=page.has_prev,
        has_next=page.has_next,
    )


def _thread_id(param: str) -> int:
    try:
        return parse_thread_param(param)
    except ValueError:
        raise NotFoundError("Thread", param)


# ------------------------------
# Listing + search
# ------------------------------
@router.get("/discussions", response_model=PageOut)
async def list_discussions(
    page: int = 1,
    per_page: int = Query(DISCUSSIONS_PER_PAGE, ge=1, le=100),
    category_id: Optional[int] = None,
    db: AsyncSession = Depends(get_async_session),
    viewer: Optional[User] = Depends(get_current_user_optional),
):
    include_trusted = can_see_trusted(viewer)
    category = None
    if category_id is not None:
        category = await thread_service.get_category(db, category_id)
        if category.trusted and not include_trusted:
            raise NotFoundError("Category", category_id)

    result = await find_paginated(
        db,
        page=page,
        per_page=per_page,
        category=category,
        include_trusted=include_trusted,
    )
    return _page_to_out(result)


@router.get("/discussions/search", response_model=PageOut)
async def search_discussions(
    q: str = Query(..., min_length=1),
    page: int = 1,
    db: AsyncSession = Depends(get_async_session),
    viewer: Optional[User] = Depends(get_current_user_optional),
    client: SearchIndexClient = Depends(get_search_client),
):
    result = await search_paginated(
        db,
        client,
        query=q,
        page=page,
        include_trusted=can_see_trusted(viewer),
    )
    return _page_to_out(result)


@router.get("/discussions/count")
async def count_discussions(
    db: AsyncSession = Depends(get_async_session),
    viewer: Optional[User] = Depends(get_current_user_optional),
):
    return {"count": await count_for(db, viewer)}


# ------------------------------
# Thread aggregate
# ------------------------------
@router.post("/discussions", response_model=ThreadOut, status_code=201)
@limiter.limit(THREAD_CREATE_RATE)
async def create_discussion(
    request: Request,
    payload: CreateThreadIn,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
):
    thread = await thread_service.create_thread(
        db,
        title=payload.title,
        author=user,
        category_id=payload.category_id,
        body=payload.body,
        nsfw=payload.nsfw,
    )
    return _thread_to_out(thread)


@router.get("/discussions/{param}", response_model=ThreadDetailOut)
async def get_discussion(
    param: str,
    db: AsyncSession = Depends(get_async_session),
    viewer: Optional[User] = Depends(get_current_user_optional),
):
    thread = await thread_service.get_visible_thread(db, _thread_id(param), viewer)
    op = await thread_service.first_post(db, thread.id)
    return ThreadDetailOut(
        thread=_thread_to_out(thread),
        first_post_markdown=op.content_markdown if op else None,
    )


@router.patch("/discussions/{param}", response_model=ThreadOut)
async def update_discussion(
    param: str,
    payload: UpdateThreadIn,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
):
    thread = await thread_service.get_visible_thread(db, _thread_id(param), user)
    if not editable_by(thread, user):
        raise PermissionDeniedError("Moderators or the thread author may edit this thread.")

    thread = await thread_service.update_thread(db, thread, payload, user)
    return _thread_to_out(thread)


@router.delete("/discussions/{param}", status_code=204)
async def delete_discussion(
    param: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
):
    thread = await thread_service.get_visible_thread(db, _thread_id(param), user)
    if not editable_by(thread, user):
        raise PermissionDeniedError("Moderators or the thread author may delete this thread.")

    await thread_service.destroy_thread(db, thread)
    return Response(status_code=204)


@router.post("/discussions/{param}/repair", response_model=RepairOut)
async def repair_discussion(
    param: str,
    _moderator: User = Depends(require_moderator),
    db: AsyncSession = Depends(get_async_session),
):
    thread_id = _thread_id(param)
    delta = await thread_service.repair_counter_cache(db, thread_id)
    thread = await thread_service.get_thread(db, thread_id)
    return RepairOut(id=thread.id, post_count=thread.post_count, delta=delta)


# ------------------------------
# Posts
# ------------------------------
@router.get("/discussions/{param}/posts", response_model=PostsPageOut)
async def list_posts(
    param: str,
    page: int = 1,
    per_page: int = Query(POSTS_PER_PAGE, ge=1, le=200),
    db: AsyncSession = Depends(get_async_session),
    viewer: Optional[User] = Depends(get_current_user_optional),
):
    thread = await thread_service.get_visible_thread(db, _thread_id(param), viewer)
    result = await thread_service.paginated_posts(db, thread, page=page, per_page=per_page)
    return PostsPageOut(
        thread=_thread_to_out(thread),
        posts=[_post_to_out(p) for p in result.items],
        total_count=result.total_count,
        page=result.page,
        per_page=result.per_page,
        total_pages=max(1, result.total_pages),
        has_prev=result.has_prev,
        has_next=result.has_next,
    )


@router.get("/discussions/{param}/posts/since/{index}", response_model=List[PostOut])
async def list_posts_since(
    param: str,
    index: int,
    db: AsyncSession = Depends(get_async_session),
    viewer: Optional[User] = Depends(get_current_user_optional),
):
    thread = await thread_service.get_visible_thread(db, _thread_id(param), viewer)
    posts = await thread_service.posts_since_index(db, thread, index)
    return [_post_to_out(p) for p in posts]


@router.post("/discussions/{param}/posts", response_model=PostOut, status_code=201)
@limiter.limit(POST_CREATE_RATE)
async def create_post(
    request: Request,
    param: str,
    payload: CreatePostIn,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
):
    thread = await thread_service.get_visible_thread(db, _thread_id(param), user)
    post = await thread_service.create_post(db, thread, user, payload.content_markdown)
    return _post_to_out(post)


@router.post("/discussions/{param}/views", status_code=204)
async def mark_discussion_viewed(
    param: str,
    body: MarkViewedIn,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
):
    thread = await thread_service.get_visible_thread(db, _thread_id(param), user)
    await thread_service.mark_viewed(db, thread, user, body.post_index)
    return Response(status_code=204)
