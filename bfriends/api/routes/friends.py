"""
bfriends.api.routes.friends — Friend suggestions
=================================================
"""

from __future__ import annotations

from fastapi import APIRouter

from bfriends.api.deps import ConfigDep, CurrentUser, EngineDep
from bfriends.services.suggestion_service import suggest_friends

router = APIRouter(prefix="/friends", tags=["friends"])


@router.get("/suggestions")
def suggestions(user_id: CurrentUser, engine: EngineDep, cfg: ConfigDep):
    result = suggest_friends(
        engine,
        user_id,
        default_community=cfg.default_community,
        limit=cfg.suggestion_limit,
        top_n=cfg.suggestion_top_communities,
    )
    return result.to_dict()
