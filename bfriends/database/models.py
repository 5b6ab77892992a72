"""
bfriends.database.models — SQLAlchemy 2.0 Data Models
======================================================

Tables:
- users          — Member profiles keyed by the identity provider's user id
- user_campuses  — Campus affiliations (one row per user+campus)
- communities    — Hubs that posts are filed under
- posts          — Posts with a denormalized vote tally (``vote_score``)
- comments       — Flat comments on a post
- votes          — At most one vote per (user, post)
"""

from __future__ import annotations

import enum
import uuid
from datetime import UTC, datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all BFriends ORM models."""


def _new_id() -> str:
    return uuid.uuid4().hex


def _utcnow() -> datetime:
    return datetime.now(UTC)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class VoteType(enum.StrEnum):
    UP = "UP"
    DOWN = "DOWN"


class UserRoleType(enum.StrEnum):
    """Primary role classification of a member."""
    STUDENT = "STUDENT"
    EMPLOYEE = "EMPLOYEE"
    BOTH = "BOTH"

    @property
    def is_student(self) -> bool:
        return self in (UserRoleType.STUDENT, UserRoleType.BOTH)

    @property
    def is_employee(self) -> bool:
        return self in (UserRoleType.EMPLOYEE, UserRoleType.BOTH)


# ---------------------------------------------------------------------------
# Users — one row per identity-provider account
# ---------------------------------------------------------------------------
class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    full_name: Mapped[str | None] = mapped_column(String(100), default=None)
    user_name: Mapped[str | None] = mapped_column(String(30), unique=True, default=None)
    image_url: Mapped[str | None] = mapped_column(String(2048), default=None)
    primary_role: Mapped[UserRoleType | None] = mapped_column(
        Enum(UserRoleType, name="user_role_type"), default=None
    )
    nim: Mapped[str | None] = mapped_column(String(20), unique=True, default=None)
    student_major: Mapped[str | None] = mapped_column(String(100), default=None)
    student_batch: Mapped[str | None] = mapped_column(String(10), default=None)
    employee_id: Mapped[str | None] = mapped_column(String(20), unique=True, default=None)
    employee_department: Mapped[str | None] = mapped_column(String(100), default=None)
    bio_description: Mapped[str | None] = mapped_column(Text, default=None)
    occupation_roles: Mapped[list] = mapped_column(JSONB, default=list)
    custom_links: Mapped[list] = mapped_column(JSONB, default=list)
    profile_complete: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(),
        onupdate=_utcnow,
    )

    # Relationships
    campuses: Mapped[list[UserCampus]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )
    posts: Mapped[list[Post]] = relationship(back_populates="author")
    comments: Mapped[list[Comment]] = relationship(back_populates="author")

    __table_args__ = (
        Index("ix_users_updated_at", "updated_at"),
    )

    @property
    def campus_locations(self) -> list[str]:
        return sorted(c.campus for c in self.campuses)

    def __repr__(self) -> str:
        return f"<User id={self.id!r} user_name={self.user_name!r}>"


class UserCampus(Base):
    """A campus a member is affiliated with.

    Kept as rows rather than an array column so that "shares a campus" is a
    plain ``EXISTS`` on any backend.
    """
    __tablename__ = "user_campuses"

    user_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    campus: Mapped[str] = mapped_column(String(50), primary_key=True)

    user: Mapped[User] = relationship(back_populates="campuses")

    __table_args__ = (
        Index("ix_user_campuses_campus", "campus"),
    )


# ---------------------------------------------------------------------------
# Communities
# ---------------------------------------------------------------------------
class Community(Base):
    """A hub.  The name is the public identifier and never changes."""
    __tablename__ = "communities"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, default=None)
    owner_id: Mapped[str | None] = mapped_column(
        String(64), ForeignKey("users.id", ondelete="SET NULL"), default=None
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )

    posts: Mapped[list[Post]] = relationship(back_populates="community")

    def __repr__(self) -> str:
        return f"<Community id={self.id} name={self.name!r}>"


# ---------------------------------------------------------------------------
# Posts
# ---------------------------------------------------------------------------
class Post(Base):
    __tablename__ = "posts"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    title: Mapped[str] = mapped_column(String(300), nullable=False)
    image_url: Mapped[str | None] = mapped_column(String(2048), default=None)
    text_content: Mapped[dict | None] = mapped_column(JSONB, default=None)
    community_name: Mapped[str] = mapped_column(
        String(50),
        ForeignKey("communities.name", ondelete="RESTRICT"),
        nullable=False,
    )
    user_id: Mapped[str | None] = mapped_column(
        String(64), ForeignKey("users.id", ondelete="SET NULL"), default=None
    )
    vote_score: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(),
        onupdate=_utcnow,
    )

    community: Mapped[Community] = relationship(back_populates="posts")
    author: Mapped[User | None] = relationship(back_populates="posts")
    comments: Mapped[list[Comment]] = relationship(
        back_populates="post", cascade="all, delete-orphan"
    )
    votes: Mapped[list[Vote]] = relationship(
        back_populates="post", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("ix_posts_created_at", "created_at"),
        Index("ix_posts_community_created", "community_name", "created_at"),
        Index("ix_posts_user_id", "user_id"),
    )

    def __repr__(self) -> str:
        return f"<Post id={self.id!r} title={self.title!r} score={self.vote_score}>"


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------
class Comment(Base):
    __tablename__ = "comments"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    post_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("posts.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str | None] = mapped_column(
        String(64), ForeignKey("users.id", ondelete="SET NULL"), default=None
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )

    post: Mapped[Post] = relationship(back_populates="comments")
    author: Mapped[User | None] = relationship(back_populates="comments")

    __table_args__ = (
        Index("ix_comments_post_id", "post_id"),
        Index("ix_comments_user_id", "user_id"),
    )

    def __repr__(self) -> str:
        return f"<Comment id={self.id!r} post={self.post_id!r}>"


# ---------------------------------------------------------------------------
# Votes — the rows behind Post.vote_score
# ---------------------------------------------------------------------------
class Vote(Base):
    __tablename__ = "votes"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.id", ondelete="RESTRICT"), nullable=False
    )
    post_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("posts.id", ondelete="CASCADE"), nullable=False
    )
    vote_type: Mapped[VoteType] = mapped_column(
        Enum(VoteType, name="vote_type"), nullable=False
    )

    post: Mapped[Post] = relationship(back_populates="votes")

    __table_args__ = (
        UniqueConstraint("user_id", "post_id", name="uq_votes_user_post"),
        Index("ix_votes_post_id", "post_id"),
    )

    def __repr__(self) -> str:
        return f"<Vote user={self.user_id!r} post={self.post_id!r} {self.vote_type}>"
