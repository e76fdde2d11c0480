from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    DateTime,
    ForeignKey,
    UniqueConstraint, Boolean,
    Index,
)
from sqlalchemy.orm import relationship
from sugar.database import Base

TITLE_MAX_LENGTH = 100


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ForumCategory(Base):
    __tablename__ = "forum_categories"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    position = Column(Integer, nullable=False, default=0, server_default="0")

    # threads in a trusted category are only visible to trusted users
    trusted = Column(Boolean, nullable=False, default=False, server_default="0")

    # counter cache: every thread in this category, trusted or not
    discussions_count = Column(Integer, nullable=True, default=0, server_default="0")

    threads = relationship("ForumThread", back_populates="category", passive_deletes=True)


class ForumThread(Base):
    __tablename__ = "forum_threads"
    __table_args__ = (
        # listing order: sticky first, then most recent activity
        Index("ix_forum_threads_listing", "sticky", "last_post_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(TITLE_MAX_LENGTH), nullable=False, index=True)

    category_id = Column(
        Integer,
        ForeignKey("forum_categories.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    author_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    closer_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    last_poster_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    # denormalized counters for faster thread list
    post_count = Column(Integer, nullable=False, default=0, server_default="0")
    last_post_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    sticky = Column(Boolean, nullable=False, default=False, server_default="0")
    closed = Column(Boolean, nullable=False, default=False, server_default="0")
    trusted = Column(Boolean, nullable=False, default=False, server_default="0")
    nsfw = Column(Boolean, nullable=False, default=False, server_default="0")

    # relationships
    category = relationship("ForumCategory", back_populates="threads")
    author = relationship("User", foreign_keys=[author_id])
    closer = relationship("User", foreign_keys=[closer_id])
    last_poster = relationship("User", foreign_keys=[last_poster_id])
    posts = relationship(
        "ForumPost",
        back_populates="thread",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="ForumPost.created_at",
    )
    views = relationship(
        "ForumThreadView",
        back_populates="thread",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class ForumPost(Base):
    __tablename__ = "forum_posts"

    id = Column(Integer, primary_key=True, index=True)

    thread_id = Column(
        Integer,
        ForeignKey("forum_threads.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    author_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    content_markdown = Column(Text, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    edited_at = Column(DateTime(timezone=True), nullable=True)

    # relationships
    thread = relationship("ForumThread", back_populates="posts")
    author = relationship("User")


class ForumThreadView(Base):
    """Read receipt: how far a user has read into a thread."""

    __tablename__ = "forum_thread_views"
    __table_args__ = (
        UniqueConstraint("thread_id", "user_id", name="uq_forum_thread_view"),
    )

    id = Column(Integer, primary_key=True, index=True)
    thread_id = Column(
        Integer,
        ForeignKey("forum_threads.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    post_index = Column(Integer, nullable=False, default=0, server_default="0")

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    thread = relationship("ForumThread", back_populates="views")
