# sugar/services/permissions.py
from __future__ import annotations

from typing import Callable, Optional

from sugar.models.forum_model import ForumThread
from sugar.models.user_model import User

# (thread, acting user) -> may this user open/close the thread?
CloseCheck = Callable[[ForumThread, Optional[User]], bool]


def closeable_by(thread: ForumThread, user: Optional[User]) -> bool:
    if user is None:
        return False
    if user.is_moderator:
        return True
    # authors may close their own thread, and reopen it only if they closed it
    if thread.author_id != user.id:
        return False
    return thread.closer_id is None or thread.closer_id == user.id


def editable_by(thread: ForumThread, user: Optional[User]) -> bool:
    if user is None:
        return False
    return user.is_moderator or thread.author_id == user.id
