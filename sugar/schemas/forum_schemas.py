from __future__ import annotations

from pydantic import BaseModel, ConfigDict
from typing import List, Optional


# ------------------------------
# Inputs (allow-lists: anything not named here is rejected)
# ------------------------------
class CreateThreadIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    # title length is checked by the thread service so the error names the field
    title: str
    category_id: Optional[int] = None
    body: str = ""
    nsfw: bool = False


class UpdateThreadIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    # All optional so the client can send only what changed
    title: Optional[str] = None
    category_id: Optional[int] = None
    first_post_markdown: Optional[str] = None
    closed: Optional[bool] = None
    nsfw: Optional[bool] = None


class CreatePostIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    content_markdown: str


class MarkViewedIn(BaseModel):
    post_index: int = 0


# ------------------------------
# Outputs (public field whitelists)
# ------------------------------
class CategoryOut(BaseModel):
    id: int
    name: str
    trusted: bool = False


class ThreadOut(BaseModel):
    id: int
    param: str
    title: str
    category: Optional[CategoryOut] = None
    author_username: Optional[str] = None
    last_poster_username: Optional[str] = None
    closer_id: Optional[int] = None
    post_count: int
    last_post_at: str
    created_at: str
    sticky: bool = False
    closed: bool = False
    trusted: bool = False
    nsfw: bool = False
    labels: List[str] = []
    last_page: int = 1


class PostOut(BaseModel):
    id: int
    thread_id: int
    author_username: Optional[str] = None
    content_markdown: str
    created_at: str
    edited_at: Optional[str] = None


class ThreadDetailOut(BaseModel):
    thread: ThreadOut
    first_post_markdown: Optional[str] = None


class PageOut(BaseModel):
    items: List[ThreadOut]
    total_count: int
    page: int
    per_page: int
    total_pages: int
    has_prev: bool
    has_next: bool


class PostsPageOut(BaseModel):
    thread: ThreadOut
    posts: List[PostOut]
    total_count: int
    page: int
    per_page: int
    total_pages: int
    has_prev: bool
    has_next: bool


class RepairOut(BaseModel):
    id: int
    post_count: int
    delta: int
