"""
bfriends.api.auth — Sign-up, login and session endpoints
=========================================================

Credentials are handled by the identity provider; these routes proxy to it
and keep the local profile row in step.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from bfriends.api.deps import (
    CurrentUser,
    EngineDep,
    get_bearer_token,
    get_identity,
)
from bfriends.database.engine import run_db
from bfriends.database.models import User
from bfriends.services import profile_service
from bfriends.services.errors import NotFoundError, UnauthenticatedError
from bfriends.services.identity import IdentityClient

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/auth", tags=["auth"])


class Credentials(BaseModel):
    email: str
    password: str


def _me_dict(user: User) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "user_name": user.user_name,
        "full_name": user.full_name,
        "image_url": user.image_url,
        "primary_role": user.primary_role.value if user.primary_role else None,
        "profile_complete": user.profile_complete,
    }


@router.post("/signup", status_code=status.HTTP_201_CREATED)
async def signup(
    body: Credentials,
    engine: EngineDep,
    identity: IdentityClient = Depends(get_identity),
):
    """Create the identity and its (incomplete) profile row."""
    created = await identity.sign_up(body.email, body.password)
    user = await run_db(profile_service.register_user, engine, created.id, created.email)
    return {
        "id": user.id,
        "email": user.email,
        "message": "Registration successful! Please check your email to confirm your account.",
    }


@router.post("/login")
async def login(
    body: Credentials,
    engine: EngineDep,
    identity: IdentityClient = Depends(get_identity),
):
    """Exchange credentials for an access token.

    ``next`` tells the client where to go: onboarding until the profile is
    complete, the home feed afterwards.
    """
    session = await identity.sign_in(body.email, body.password)
    user = await run_db(
        profile_service.register_user, engine, session.user.id, session.user.email
    )
    return {
        "access_token": session.access_token,
        "token_type": "bearer",
        "user": _me_dict(user),
        "next": "/" if user.profile_complete else "/onboarding",
    }


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(
    token: str | None = Depends(get_bearer_token),
    identity: IdentityClient = Depends(get_identity),
):
    if token is None:
        raise UnauthenticatedError("Missing token.")
    await identity.sign_out(token)


@router.get("/me")
def me(user_id: CurrentUser, engine: EngineDep):
    user = profile_service.get_user(engine, user_id)
    if user is None:
        raise NotFoundError("User profile not found.", field="user")
    return _me_dict(user)
