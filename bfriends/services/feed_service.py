"""
bfriends.services.feed_service — Feed Query Engine
===================================================

Builds one page of posts for a *scope* (everything, one community, one
author, or a title search) under a *rank mode* (recent, or top within the
current day / week / month / year).

Every feed shares the same guarantees:

* posts whose author is missing are never shown, and are not counted;
* ``skip = (page - 1) * page_size``, ``take = page_size``;
* ``total_pages = ceil(total / page_size)``; pages past the end are empty;
* when the caller is logged in each item carries their own vote direction.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime, tzinfo
from typing import Any

from sqlalchemy import Engine, func, null, select
from sqlalchemy.orm import Session

from bfriends.constants import LIKE_ESCAPE, contains_pattern
from bfriends.database.models import Comment, Community, Post, User, Vote, VoteType
from bfriends.engine.ranking import (
    RankMode,
    clamp_page,
    page_offset,
    parse_rank_mode,
    total_pages,
    window_bounds,
)
from bfriends.services.errors import NotFoundError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Scopes
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class GlobalScope:
    pass


@dataclass(frozen=True, slots=True)
class CommunityScope:
    name: str


@dataclass(frozen=True, slots=True)
class AuthorScope:
    user_id: str


@dataclass(frozen=True, slots=True)
class SearchScope:
    term: str
    community: str | None = None


FeedScope = GlobalScope | CommunityScope | AuthorScope | SearchScope


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------
@dataclass
class PostSummary:
    id: str
    title: str
    text_content: dict | None
    image_url: str | None
    community_name: str
    author_id: str
    author_user_name: str | None
    author_image_url: str | None
    vote_score: int
    comment_count: int
    created_at: datetime | None
    viewer_vote: VoteType | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "text_content": self.text_content,
            "image_url": self.image_url,
            "community_name": self.community_name,
            "author": {
                "id": self.author_id,
                "user_name": self.author_user_name,
                "image_url": self.author_image_url,
            },
            "vote_score": self.vote_score,
            "comment_count": self.comment_count,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "viewer_vote": self.viewer_vote.value if self.viewer_vote else None,
        }


@dataclass
class FeedPage:
    items: list[PostSummary]
    page: int
    page_size: int
    total: int
    total_pages: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "items": [p.to_dict() for p in self.items],
            "page": self.page,
            "page_size": self.page_size,
            "total": self.total,
            "total_pages": self.total_pages,
        }


@dataclass
class CommentView:
    id: str
    text: str
    author_id: str | None
    author_user_name: str | None
    author_image_url: str | None
    created_at: datetime | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "author": {
                "id": self.author_id,
                "user_name": self.author_user_name,
                "image_url": self.author_image_url,
            },
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass
class PostDetail:
    post: PostSummary
    community_description: str | None
    community_created_at: datetime | None
    comments: list[CommentView] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.post.to_dict(),
            "community": {
                "name": self.post.community_name,
                "description": self.community_description,
                "created_at": (
                    self.community_created_at.isoformat()
                    if self.community_created_at else None
                ),
            },
            "comments": [c.to_dict() for c in self.comments],
        }


# ---------------------------------------------------------------------------
# Query building
# ---------------------------------------------------------------------------
def _scope_filters(scope: FeedScope) -> list:
    if isinstance(scope, CommunityScope):
        return [Post.community_name == scope.name]
    if isinstance(scope, AuthorScope):
        return [Post.user_id == scope.user_id]
    if isinstance(scope, SearchScope):
        filters = [Post.title.ilike(contains_pattern(scope.term.strip()), escape=LIKE_ESCAPE)]
        if scope.community:
            filters.append(Post.community_name == scope.community)
        return filters
    return []


def _summary_columns(viewer_id: str | None):
    comment_count = (
        select(func.count(Comment.id))
        .where(Comment.post_id == Post.id)
        .correlate(Post)
        .scalar_subquery()
    )
    if viewer_id:
        viewer_vote = (
            select(Vote.vote_type)
            .where(Vote.post_id == Post.id, Vote.user_id == viewer_id)
            .correlate(Post)
            .scalar_subquery()
        )
    else:
        viewer_vote = null()
    return (
        Post,
        User.user_name,
        User.image_url,
        comment_count.label("comment_count"),
        viewer_vote.label("viewer_vote"),
    )


def _to_summary(row) -> PostSummary:
    post, user_name, image_url, comment_count, viewer_vote = row
    return PostSummary(
        id=post.id,
        title=post.title,
        text_content=post.text_content,
        image_url=post.image_url,
        community_name=post.community_name,
        author_id=post.user_id,
        author_user_name=user_name,
        author_image_url=image_url,
        vote_score=post.vote_score,
        comment_count=comment_count or 0,
        created_at=post.created_at,
        viewer_vote=VoteType(viewer_vote) if viewer_vote else None,
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def list_feed(
    engine: Engine,
    scope: FeedScope,
    rank_mode: RankMode | str | None = RankMode.RECENT,
    page: int | str | None = 1,
    *,
    page_size: int,
    viewer_id: str | None = None,
    now: datetime | None = None,
    tz: tzinfo = UTC,
) -> FeedPage:
    """Return one page of *scope* ordered by *rank_mode*.

    Never raises for bad paging/sort input: the page is clamped to 1 and an
    unknown mode means Recent.  An unknown community just matches nothing.
    """
    mode = parse_rank_mode(rank_mode)
    page = clamp_page(page)

    if isinstance(scope, SearchScope) and not scope.term.strip():
        return FeedPage(items=[], page=page, page_size=page_size, total=0, total_pages=0)

    filters = _scope_filters(scope)
    bounds = window_bounds(mode, now or datetime.now(UTC), tz)
    if bounds is not None:
        start, end = bounds
        filters += [Post.created_at >= start, Post.created_at < end]

    if mode.is_top:
        order_by = (Post.vote_score.desc(), Post.created_at.desc(), Post.id.desc())
    else:
        order_by = (Post.created_at.desc(), Post.id.desc())

    with Session(engine) as session:
        total = session.scalar(
            select(func.count(Post.id))
            .join(User, Post.user_id == User.id)
            .where(*filters)
        ) or 0

        rows = session.execute(
            select(*_summary_columns(viewer_id))
            .join(User, Post.user_id == User.id)
            .where(*filters)
            .order_by(*order_by)
            .offset(page_offset(page, page_size))
            .limit(page_size)
        ).all()
        items = [_to_summary(r) for r in rows]

    logger.debug(
        "Feed %s/%s page %d → %d of %d items", scope, mode, page, len(items), total,
    )
    return FeedPage(
        items=items,
        page=page,
        page_size=page_size,
        total=total,
        total_pages=total_pages(total, page_size),
    )


def get_post_detail(
    engine: Engine,
    post_id: str,
    *,
    viewer_id: str | None = None,
) -> PostDetail:
    """A single post with its community info and comments, newest first.

    Raises :class:`NotFoundError` if the post is absent or has lost its
    author (such posts are hidden everywhere).
    """
    with Session(engine) as session:
        row = session.execute(
            select(*_summary_columns(viewer_id))
            .join(User, Post.user_id == User.id)
            .where(Post.id == post_id)
        ).first()
        if row is None:
            raise NotFoundError("Post not found.", field="post_id")
        summary = _to_summary(row)

        community = session.scalar(
            select(Community).where(Community.name == summary.community_name)
        )
        comment_rows = session.execute(
            select(Comment, User.user_name, User.image_url)
            .outerjoin(User, Comment.user_id == User.id)
            .where(Comment.post_id == post_id)
            .order_by(Comment.created_at.desc(), Comment.id.desc())
        ).all()
        comments = [
            CommentView(
                id=c.id,
                text=c.text,
                author_id=c.user_id,
                author_user_name=user_name,
                author_image_url=image_url,
                created_at=c.created_at,
            )
            for c, user_name, image_url in comment_rows
        ]

        return PostDetail(
            post=summary,
            community_description=community.description if community else None,
            community_created_at=community.created_at if community else None,
            comments=comments,
        )
