"""
bfriends.api.routes.posts — Posts, comments and votes
======================================================
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Response, status
from pydantic import BaseModel, Field

from bfriends.api.deps import CurrentUser, EngineDep, OptionalUser
from bfriends.services import post_service, vote_service
from bfriends.services.feed_service import get_post_detail

router = APIRouter(tags=["posts"])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class PostCreate(BaseModel):
    community_name: str
    title: str
    text_content: dict[str, Any] | None = None
    image_url: str | None = Field(default=None, max_length=2048)


class CommentCreate(BaseModel):
    text: str


class VoteRequest(BaseModel):
    direction: str


# ---------------------------------------------------------------------------
# Posts
# ---------------------------------------------------------------------------
@router.post("/posts", status_code=status.HTTP_201_CREATED)
def create_post(body: PostCreate, user_id: CurrentUser, engine: EngineDep):
    post = post_service.create_post(
        engine,
        user_id,
        body.community_name,
        body.title,
        text_content=body.text_content,
        image_url=body.image_url,
    )
    return {
        "id": post.id,
        "community_name": post.community_name,
        "link": f"/p/{post.community_name}/post/{post.id}",
    }


@router.get("/posts/{post_id}")
def get_post(post_id: str, engine: EngineDep, viewer_id: OptionalUser):
    return get_post_detail(engine, post_id, viewer_id=viewer_id).to_dict()


@router.delete("/posts/{post_id}")
def delete_post(post_id: str, user_id: CurrentUser, engine: EngineDep):
    post = post_service.delete_post(engine, user_id, post_id)
    return {"deleted": post_id, "redirect": f"/p/{post.community_name}"}


@router.post("/posts/{post_id}/vote", status_code=status.HTTP_204_NO_CONTENT)
def vote(post_id: str, body: VoteRequest, user_id: CurrentUser, engine: EngineDep):
    """Apply one vote click.  Voting on a vanished post is a silent no-op."""
    vote_service.cast_vote(engine, user_id, post_id, body.direction)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------
@router.post("/posts/{post_id}/comments", status_code=status.HTTP_201_CREATED)
def create_comment(post_id: str, body: CommentCreate, user_id: CurrentUser, engine: EngineDep):
    comment = post_service.create_comment(engine, user_id, post_id, body.text)
    return {
        "id": comment.id,
        "post_id": comment.post_id,
        "text": comment.text,
        "created_at": comment.created_at.isoformat() if comment.created_at else None,
    }


@router.delete("/comments/{comment_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_comment(comment_id: str, user_id: CurrentUser, engine: EngineDep):
    post_service.delete_comment(engine, user_id, comment_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
