# sugar/errors.py
from __future__ import annotations

from typing import Optional


class ForumError(Exception):
    """Base class for errors raised by the forum services."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_detail(self):
        return self.message


class ValidationError(ForumError):
    """A caller-supplied value was rejected; nothing has been persisted."""

    status_code = 422

    def __init__(self, field: str, message: str):
        super().__init__(f"{field} {message}")
        self.field = field
        self.field_message = message

    def to_detail(self):
        return {"field": self.field, "message": self.field_message}


class NotFoundError(ForumError):
    status_code = 404

    def __init__(self, what: str, ident: Optional[object] = None):
        msg = f"{what} not found" if ident is None else f"{what} {ident} not found"
        super().__init__(msg)
        self.what = what
        self.ident = ident


class PermissionDeniedError(ForumError):
    status_code = 403


class ThreadClosedError(ForumError):
    status_code = 423

    def __init__(self, thread_id: int):
        super().__init__("Thread is closed")
        self.thread_id = thread_id


class SearchUnavailableError(ForumError):
    """The search index timed out or could not be reached.

    Distinct from an empty result page so callers can tell "no matches"
    apart from "search is degraded".
    """

    status_code = 503


class ConsistencyWarning(UserWarning):
    """A cached counter disagreed with its source of truth.

    Only ever logged by the repair job; never raised to callers.
    """

    def __init__(self, thread_id: int, cached: int, actual: int):
        super().__init__(
            f"counter cache error detected on thread #{thread_id}: "
            f"post_count={cached}, actual={actual}"
        )
        self.thread_id = thread_id
        self.cached = cached
        self.actual = actual

    @property
    def delta(self) -> int:
        return self.actual - self.cached
