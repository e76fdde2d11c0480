# sugar/services/threads.py
"""
Thread aggregate: creation, updates, replies and destruction.

Every mutation runs as explicit, ordered steps inside one transaction:
validate, persist (flush), then side effects, then commit. Nothing is
written when validation fails.

Counter caches kept here:
  ForumThread.post_count / last_post_at / last_poster_id
  ForumCategory.discussions_count
  User.discussions_count / posts_count
"""
from __future__ import annotations

import logging
import math
from typing import List, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from sugar.config import POSTS_PER_PAGE
from sugar.errors import (
    ConsistencyWarning,
    NotFoundError,
    ThreadClosedError,
    ValidationError,
)
from sugar.models.forum_model import (
    TITLE_MAX_LENGTH,
    ForumCategory,
    ForumPost,
    ForumThread,
    ForumThreadView,
    utcnow,
)
from sugar.models.user_model import User
from sugar.schemas.forum_schemas import UpdateThreadIn
from sugar.services.pagination import Page, Paginater, with_summary_relations
from sugar.services.permissions import CloseCheck, closeable_by
from sugar.services.visibility import can_see_trusted, is_visible

logger = logging.getLogger(__name__)

POSTS_SINCE_LIMIT = 200


# ------------------------------
# lookups
# ------------------------------
async def get_thread(db: AsyncSession, thread_id: int) -> ForumThread:
    stmt = (
        with_summary_relations(select(ForumThread))
        .where(ForumThread.id == thread_id)
        .execution_options(populate_existing=True)
    )
    thread = (await db.execute(stmt)).scalars().first()
    if thread is None:
        raise NotFoundError("Thread", thread_id)
    return thread


async def get_visible_thread(db: AsyncSession, thread_id: int, viewer: Optional[User]) -> ForumThread:
    thread = await get_thread(db, thread_id)
    # hidden threads look exactly like missing ones
    if not is_visible(thread, can_see_trusted(viewer)):
        raise NotFoundError("Thread", thread_id)
    return thread


async def get_category(db: AsyncSession, category_id: int) -> ForumCategory:
    category = await db.get(ForumCategory, category_id)
    if category is None:
        raise NotFoundError("Category", category_id)
    return category


async def first_post(db: AsyncSession, thread_id: int) -> Optional[ForumPost]:
    """Oldest post is the OP."""
    return (
        await db.execute(
            select(ForumPost)
            .where(ForumPost.thread_id == thread_id)
            .order_by(ForumPost.created_at.asc(), ForumPost.id.asc())
            .limit(1)
        )
    ).scalars().first()


async def count_posts(db: AsyncSession, thread_id: int) -> int:
    return int(
        (
            await db.execute(
                select(func.count(ForumPost.id)).where(ForumPost.thread_id == thread_id)
            )
        ).scalar_one()
        or 0
    )


# ------------------------------
# validation
# ------------------------------
def validate_title(title: Optional[str]) -> None:
    if title is None or not title.strip():
        raise ValidationError("title", "can't be blank")
    if len(title) > TITLE_MAX_LENGTH:
        raise ValidationError("title", "is too long")


def transition_closed(
    thread: ForumThread,
    requested: Optional[bool],
    acting_user: Optional[User],
    can_close: CloseCheck = closeable_by,
) -> bool:
    """
    Open/close state machine. Returns True if the state changed.

    Only evaluated when the requested value differs from the current one.
    Closing and reopening need the same authority and an acting user.
    On refusal the thread is left untouched.
    """
    if requested is None or bool(requested) == bool(thread.closed):
        return False

    if acting_user is None or not can_close(thread, acting_user):
        raise ValidationError("closed", "can't be changed!")

    if requested:
        thread.closed = True
        thread.closer_id = acting_user.id
    else:
        thread.closed = False
        thread.closer_id = None
    return True


# ------------------------------
# aggregate operations
# ------------------------------
async def create_thread(
    db: AsyncSession,
    *,
    title: str,
    author: User,
    category_id: Optional[int] = None,
    body: Optional[str] = None,
    nsfw: bool = False,
) -> ForumThread:
    validate_title(title)
    category = await get_category(db, category_id) if category_id is not None else None

    now = utcnow()
    thread = ForumThread(
        title=title,
        author_id=author.id,
        category_id=category.id if category else None,
        last_poster_id=author.id,
        trusted=bool(category and category.trusted),
        nsfw=bool(nsfw),
        post_count=0,
        created_at=now,
        last_post_at=now,
    )
    db.add(thread)
    await db.flush()  # get thread.id

    author.discussions_count = (author.discussions_count or 0) + 1
    if category is not None:
        category.discussions_count = (category.discussions_count or 0) + 1

    # the initiating body becomes the first post, in the same transaction
    if body:
        db.add(
            ForumPost(
                thread_id=thread.id,
                author_id=author.id,
                content_markdown=body,
                created_at=now,
            )
        )
        thread.post_count = 1
        author.posts_count = (author.posts_count or 0) + 1

    await db.commit()
    logger.info("Thread #%s created by user #%s", thread.id, author.id)
    return await get_thread(db, thread.id)


async def sync_first_post(db: AsyncSession, thread: ForumThread, body: Optional[str]) -> Optional[ForumPost]:
    """Edit the first post when ``body`` is non-empty and differs from it."""
    if not body:
        return None
    post = await first_post(db, thread.id)
    if post is None or post.content_markdown == body:
        return None
    post.content_markdown = body
    post.edited_at = utcnow()
    return post


async def update_thread(
    db: AsyncSession,
    thread: ForumThread,
    changes: UpdateThreadIn,
    acting_user: Optional[User],
    *,
    can_close: CloseCheck = closeable_by,
) -> ForumThread:
    data = changes.model_dump(exclude_unset=True)

    # 1) validate everything that can fail before touching the row
    if "title" in data:
        validate_title(data["title"])

    new_category: Optional[ForumCategory] = None
    if data.get("category_id") is not None and data["category_id"] != thread.category_id:
        new_category = await get_category(db, data["category_id"])

    transition_closed(thread, data.get("closed"), acting_user, can_close)

    # 2) main update
    if "title" in data:
        thread.title = data["title"]
    if data.get("nsfw") is not None:
        thread.nsfw = bool(data["nsfw"])
    if new_category is not None:
        await _move_category(db, thread, new_category)

    await db.flush()

    # 3) side effects, only once the update itself went through
    await sync_first_post(db, thread, data.get("first_post_markdown"))

    await db.commit()
    return await get_thread(db, thread.id)


async def _move_category(db: AsyncSession, thread: ForumThread, category: ForumCategory) -> None:
    if thread.category_id is not None:
        old = await db.get(ForumCategory, thread.category_id)
        if old is not None and old.discussions_count:
            old.discussions_count -= 1
    category.discussions_count = (category.discussions_count or 0) + 1
    thread.category_id = category.id
    thread.trusted = bool(category.trusted)


async def destroy_thread(db: AsyncSession, thread: ForumThread) -> None:
    """Delete the thread with its posts and views. Irreversible."""
    thread_id = thread.id

    await db.execute(delete(ForumThreadView).where(ForumThreadView.thread_id == thread_id))
    await db.execute(delete(ForumPost).where(ForumPost.thread_id == thread_id))

    if thread.author_id is not None:
        author = await db.get(User, thread.author_id)
        if author is not None and author.discussions_count:
            author.discussions_count -= 1
    if thread.category_id is not None:
        category = await db.get(ForumCategory, thread.category_id)
        if category is not None and category.discussions_count:
            category.discussions_count -= 1

    await db.delete(thread)
    await db.commit()
    logger.info("Thread #%s destroyed", thread_id)


async def create_post(db: AsyncSession, thread: ForumThread, author: User, body: str) -> ForumPost:
    if not body or not body.strip():
        raise ValidationError("content_markdown", "can't be blank")
    if thread.closed and not author.is_moderator:
        raise ThreadClosedError(thread.id)

    now = utcnow()
    post = ForumPost(
        thread_id=thread.id,
        author_id=author.id,
        content_markdown=body,
        created_at=now,
    )
    db.add(post)

    # not atomic across concurrent replies; repair_counter_cache fixes drift
    thread.post_count = (thread.post_count or 0) + 1
    thread.last_post_at = now
    thread.last_poster_id = author.id
    author.posts_count = (author.posts_count or 0) + 1

    await db.commit()
    await db.refresh(post, attribute_names=["author"])
    return post


# ------------------------------
# counter cache maintenance
# ------------------------------
async def repair_counter_cache(db: AsyncSession, thread_id: int) -> int:
    """
    Recount the posts of a thread and correct ``post_count``.

    The correction is applied as a relative update (``post_count + delta``)
    so increments committed after the recount are kept. Returns the delta.
    """
    thread = await get_thread(db, thread_id)
    cached = thread.post_count or 0
    actual = await count_posts(db, thread_id)
    if cached == actual:
        return 0

    warning = ConsistencyWarning(thread_id, cached, actual)
    logger.warning("%s", warning)
    await db.execute(
        update(ForumThread)
        .where(ForumThread.id == thread_id)
        .values(post_count=ForumThread.post_count + warning.delta)
    )
    await db.commit()
    await db.refresh(thread)
    return warning.delta


async def repair_all(db: AsyncSession) -> int:
    """Repair every thread; returns how many needed fixing."""
    ids = (await db.execute(select(ForumThread.id).order_by(ForumThread.id))).scalars().all()
    fixed = 0
    for thread_id in ids:
        if await repair_counter_cache(db, thread_id):
            fixed += 1
    if fixed:
        logger.warning("Counter cache repaired on %d of %d threads", fixed, len(ids))
    return fixed


# ------------------------------
# reading posts
# ------------------------------
async def paginated_posts(
    db: AsyncSession,
    thread: ForumThread,
    *,
    page: int = 1,
    per_page: int = POSTS_PER_PAGE,
) -> Page:
    pagination = Paginater(total_count=thread.post_count or 0, page=page, per_page=per_page)
    rows = (
        await db.execute(
            select(ForumPost)
            .options(selectinload(ForumPost.author))
            .where(ForumPost.thread_id == thread.id)
            .order_by(ForumPost.created_at.asc(), ForumPost.id.asc())
            .offset(pagination.offset)
            .limit(pagination.limit)
        )
    ).scalars().all()
    return Page.from_paginater(list(rows), pagination)


async def posts_since_index(db: AsyncSession, thread: ForumThread, offset: int) -> List[ForumPost]:
    rows = (
        await db.execute(
            select(ForumPost)
            .options(selectinload(ForumPost.author))
            .where(ForumPost.thread_id == thread.id)
            .order_by(ForumPost.created_at.asc(), ForumPost.id.asc())
            .offset(max(0, offset))
            .limit(POSTS_SINCE_LIMIT)
        )
    ).scalars().all()
    return list(rows)


async def mark_viewed(db: AsyncSession, thread: ForumThread, user: User, post_index: int) -> ForumThreadView:
    view = (
        await db.execute(
            select(ForumThreadView).where(
                ForumThreadView.thread_id == thread.id,
                ForumThreadView.user_id == user.id,
            )
        )
    ).scalars().first()
    if view is None:
        view = ForumThreadView(thread_id=thread.id, user_id=user.id, post_index=0)
        db.add(view)
    # never move the read marker backwards
    view.post_index = max(view.post_index or 0, int(post_index))
    await db.commit()
    return view


# ------------------------------
# presentation helpers
# ------------------------------
def labels(thread: ForumThread) -> List[str]:
    out = []
    if thread.trusted:
        out.append("Trusted")
    if thread.sticky:
        out.append("Sticky")
    if thread.closed:
        out.append("Closed")
    if thread.nsfw:
        out.append("NSFW")
    return out


def last_page(thread: ForumThread, per_page: int = POSTS_PER_PAGE) -> int:
    return math.ceil((thread.post_count or 0) / per_page)
