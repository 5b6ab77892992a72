"""
bfriends.api.routes.profiles — Public profiles and account settings
====================================================================

``/users/{user_name}`` is public; everything under ``/me`` acts on the
caller's own profile.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, UploadFile
from pydantic import BaseModel

from bfriends.api.deps import ConfigDep, CurrentUser, EngineDep, get_storage
from bfriends.constants import AVATAR_MAX_BYTES
from bfriends.database.models import User
from bfriends.services import profile_service
from bfriends.services.errors import ValidationError
from bfriends.services.profile_service import ProfileForm
from bfriends.services.storage import StorageClient

router = APIRouter(tags=["profiles"])


class UsernameUpdate(BaseModel):
    user_name: str


def _own_profile(user: User) -> dict:
    return {
        "id": user.id,
        "user_name": user.user_name,
        "full_name": user.full_name,
        "primary_role": user.primary_role.value if user.primary_role else None,
        "profile_complete": user.profile_complete,
        "campus_locations": user.campus_locations,
        "link": f"/profile/{user.user_name}" if user.user_name else None,
    }


# ---------------------------------------------------------------------------
# Public
# ---------------------------------------------------------------------------
@router.get("/users/{user_name}")
def get_profile(user_name: str, engine: EngineDep):
    return profile_service.get_profile(engine, user_name).to_dict()


@router.get("/users/{user_name}/comments")
def user_comments(user_name: str, engine: EngineDep, cfg: ConfigDep, page: str | None = None):
    user_id = profile_service.resolve_user_id(engine, user_name)
    items, pages = profile_service.list_user_comments(
        engine, user_id, page, page_size=cfg.page_size("comments")
    )
    return {"items": [c.to_dict() for c in items], "total_pages": pages}


# ---------------------------------------------------------------------------
# Own account
# ---------------------------------------------------------------------------
@router.post("/me/onboarding")
def onboarding(form: ProfileForm, user_id: CurrentUser, engine: EngineDep):
    return _own_profile(profile_service.complete_onboarding(engine, user_id, form))


@router.put("/me/profile")
def update_profile(form: ProfileForm, user_id: CurrentUser, engine: EngineDep):
    return _own_profile(profile_service.update_profile(engine, user_id, form))


@router.put("/me/username")
def update_username(body: UsernameUpdate, user_id: CurrentUser, engine: EngineDep):
    return {"user_name": profile_service.update_username(engine, user_id, body.user_name)}


@router.post("/me/avatar")
async def update_avatar(
    profile_picture: UploadFile,
    user_id: CurrentUser,
    engine: EngineDep,
    storage: StorageClient = Depends(get_storage),
):
    content = await profile_picture.read(AVATAR_MAX_BYTES + 1)
    if not content:
        raise ValidationError("No file uploaded.", field="profile_picture")
    url = await profile_service.update_avatar(
        engine,
        storage,
        user_id,
        filename=profile_picture.filename or "avatar.png",
        content=content,
        content_type=profile_picture.content_type,
    )
    return {"image_url": url}
