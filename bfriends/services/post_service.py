"""
bfriends.services.post_service — Post & Comment Registry
=========================================================

Creation and deletion of posts and comments.

* A post can only be filed under an existing community.  The community is
  looked up before the insert; if it disappears between lookup and commit
  the FK violation is reported as ``CommunityNotFound`` as well.
* Titles are trimmed and required.  The tally starts at 0.
* Only the author may delete a post or comment.  Deleting a post takes its
  comments and votes with it.
"""

from __future__ import annotations

import logging

from sqlalchemy import Engine, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from bfriends.constants import POST_TITLE_MAX
from bfriends.database.engine import get_session
from bfriends.database.models import Comment, Community, Post, User
from bfriends.services.errors import (
    ForbiddenError,
    NotFoundError,
    UnauthenticatedError,
    ValidationError,
)

logger = logging.getLogger(__name__)


def _require_user(user_id: str | None, action: str) -> str:
    if not user_id:
        raise UnauthenticatedError(f"You must be logged in to {action}.")
    return user_id


def _community_not_found(name: str) -> NotFoundError:
    return NotFoundError(
        f"Community '{name}' does not exist.",
        code="CommunityNotFound",
        field="community_name",
    )


# ---------------------------------------------------------------------------
# Posts
# ---------------------------------------------------------------------------
def create_post(
    engine: Engine,
    author_id: str | None,
    community_name: str,
    title: str,
    text_content: dict | None = None,
    image_url: str | None = None,
) -> Post:
    """Create a post in *community_name* and return it (detached)."""
    author_id = _require_user(author_id, "create a post")
    community_name = (community_name or "").strip()
    title = (title or "").strip()

    if not community_name:
        raise _community_not_found(community_name)
    if not title:
        raise ValidationError("Post title is required.", code="EmptyTitle", field="title")
    if len(title) > POST_TITLE_MAX:
        raise ValidationError(
            f"Post title must be at most {POST_TITLE_MAX} characters.",
            code="TooLong",
            field="title",
        )

    with Session(engine, expire_on_commit=False) as session:
        exists = session.scalar(
            select(Community.id).where(Community.name == community_name)
        )
        if exists is None:
            raise _community_not_found(community_name)
        if session.get(User, author_id) is None:
            raise NotFoundError("User profile not found.", field="user")

        post = Post(
            title=title,
            image_url=(image_url or "").strip() or None,
            text_content=text_content or None,
            community_name=community_name,
            user_id=author_id,
            vote_score=0,
        )
        session.add(post)
        try:
            session.commit()
        except IntegrityError:
            session.rollback()
            raise _community_not_found(community_name) from None
        session.refresh(post)
        session.expunge(post)

    logger.info("Post %s created in '%s' by %s", post.id, community_name, author_id)
    return post


def delete_post(engine: Engine, requester_id: str | None, post_id: str) -> Post:
    """Delete a post the requester authored, with its comments and votes.

    Returns the deleted row (detached) so callers can redirect to its
    community.
    """
    requester_id = _require_user(requester_id, "delete a post")
    with get_session(engine, expire_on_commit=False) as session:
        post = session.get(Post, post_id)
        if post is None:
            raise NotFoundError("Post not found.", field="post_id")
        if post.user_id != requester_id:
            raise ForbiddenError("You are not authorized to delete this post.")
        session.delete(post)

    logger.info("Post %s deleted by %s", post_id, requester_id)
    return post


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------
def create_comment(
    engine: Engine,
    author_id: str | None,
    post_id: str,
    text: str,
) -> Comment:
    author_id = _require_user(author_id, "comment")
    text = (text or "").strip()
    if not text:
        raise ValidationError("Comment cannot be empty.", code="EmptyText", field="text")

    with Session(engine, expire_on_commit=False) as session:
        if session.get(Post, post_id) is None:
            raise NotFoundError("Post not found.", field="post_id")
        if session.get(User, author_id) is None:
            raise NotFoundError("User profile not found.", field="user")
        comment = Comment(text=text, post_id=post_id, user_id=author_id)
        session.add(comment)
        try:
            session.commit()
        except IntegrityError:
            # Post deleted between the lookup and the insert.
            session.rollback()
            raise NotFoundError("Post not found.", field="post_id") from None
        session.refresh(comment)
        session.expunge(comment)

    logger.info("Comment %s on post %s by %s", comment.id, post_id, author_id)
    return comment


def delete_comment(engine: Engine, requester_id: str | None, comment_id: str) -> Comment:
    requester_id = _require_user(requester_id, "delete a comment")
    with get_session(engine, expire_on_commit=False) as session:
        comment = session.get(Comment, comment_id)
        if comment is None:
            raise NotFoundError("Comment not found.", field="comment_id")
        if comment.user_id != requester_id:
            raise ForbiddenError("You are not authorized to delete this comment.")
        session.delete(comment)

    logger.info("Comment %s deleted by %s", comment_id, requester_id)
    return comment
