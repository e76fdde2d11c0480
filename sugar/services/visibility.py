# sugar/services/visibility.py
from __future__ import annotations

from typing import Optional

from sugar.models.forum_model import ForumThread
from sugar.models.user_model import User


def can_see_trusted(viewer: Optional[User]) -> bool:
    return bool(viewer is not None and viewer.is_trusted)


def is_visible(thread: ForumThread, include_trusted: bool) -> bool:
    """A thread is hidden only when it is trusted and the viewer is not."""
    return include_trusted or not thread.trusted


def visibility_clause(include_trusted: bool):
    """SQL form of `is_visible`; None when nothing needs filtering."""
    if include_trusted:
        return None
    return ForumThread.trusted.is_(False)
