"""
bfriends.api.routes.communities — Community registry endpoints
===============================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Query, status
from pydantic import BaseModel

from bfriends.api.deps import CurrentUser, EngineDep
from bfriends.database.models import Community
from bfriends.services import community_service

router = APIRouter(tags=["communities"])


class CommunityCreate(BaseModel):
    name: str
    description: str | None = None


class CommunityUpdate(BaseModel):
    description: str | None = None


def _community_dict(c: Community) -> dict:
    return {
        "id": c.id,
        "name": c.name,
        "description": c.description,
        "owner_id": c.owner_id,
        "created_at": c.created_at.isoformat() if c.created_at else None,
    }


@router.post("/communities", status_code=status.HTTP_201_CREATED)
def create_community(body: CommunityCreate, user_id: CurrentUser, engine: EngineDep):
    community = community_service.create_community(engine, user_id, body.name, body.description)
    return {**_community_dict(community), "link": f"/p/{community.name}"}


@router.get("/communities/{name}")
def get_community(name: str, engine: EngineDep):
    return _community_dict(community_service.get_community(engine, name))


@router.patch("/communities/{name}")
def update_community(name: str, body: CommunityUpdate, user_id: CurrentUser, engine: EngineDep):
    community = community_service.update_community_description(
        engine, user_id, name, body.description
    )
    return _community_dict(community)


@router.get("/suggest")
def suggest(engine: EngineDep, q: str = Query("")):
    """Search-box type-ahead over community names and people."""
    return {"results": [s.to_dict() for s in community_service.suggest_names(engine, q)]}
