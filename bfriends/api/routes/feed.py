"""
bfriends.api.routes.feed — Feed and search endpoints
=====================================================

Every listing takes ``sort`` (``recent`` | ``top-today`` | ``top-week`` |
``top-month`` | ``top-year``) and a 1-based ``page``.  Bad values fall back
to ``recent`` / page 1 rather than failing.
"""

from __future__ import annotations

from fastapi import APIRouter, Query

from bfriends.api.deps import ConfigDep, EngineDep, OptionalUser
from bfriends.services import profile_service
from bfriends.services.feed_service import (
    AuthorScope,
    CommunityScope,
    FeedScope,
    GlobalScope,
    SearchScope,
    list_feed,
)

router = APIRouter(tags=["feed"])


def _page(engine, cfg, scope: FeedScope, size_key: str, sort, page, viewer_id) -> dict:
    return list_feed(
        engine,
        scope,
        sort,
        page,
        page_size=cfg.page_size(size_key),
        viewer_id=viewer_id,
        tz=cfg.tz,
    ).to_dict()


# ---------------------------------------------------------------------------
# GET /feed
# ---------------------------------------------------------------------------
@router.get("/feed")
def home_feed(
    engine: EngineDep,
    cfg: ConfigDep,
    viewer_id: OptionalUser,
    sort: str | None = None,
    page: str | None = None,
):
    """Posts from every community."""
    return _page(engine, cfg, GlobalScope(), "home", sort, page, viewer_id)


# ---------------------------------------------------------------------------
# GET /communities/{name}/posts
# ---------------------------------------------------------------------------
@router.get("/communities/{name}/posts")
def community_feed(
    name: str,
    engine: EngineDep,
    cfg: ConfigDep,
    viewer_id: OptionalUser,
    sort: str | None = None,
    page: str | None = None,
):
    return _page(engine, cfg, CommunityScope(name), "community", sort, page, viewer_id)


# ---------------------------------------------------------------------------
# GET /users/{user_name}/posts
# ---------------------------------------------------------------------------
@router.get("/users/{user_name}/posts")
def user_feed(
    user_name: str,
    engine: EngineDep,
    cfg: ConfigDep,
    viewer_id: OptionalUser,
    sort: str | None = None,
    page: str | None = None,
):
    author_id = profile_service.resolve_user_id(engine, user_name)
    return _page(engine, cfg, AuthorScope(author_id), "profile", sort, page, viewer_id)


# ---------------------------------------------------------------------------
# GET /search
# ---------------------------------------------------------------------------
@router.get("/search")
def search(
    engine: EngineDep,
    cfg: ConfigDep,
    viewer_id: OptionalUser,
    q: str = Query(""),
    community: str | None = None,
    page: str | None = None,
):
    """Title search, optionally narrowed to one community.  Newest first."""
    scope = SearchScope(term=q, community=community or None)
    return _page(engine, cfg, scope, "search", None, page, viewer_id)
