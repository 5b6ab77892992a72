"""
bfriends.api.deps — FastAPI dependency injection
=================================================

Request identity comes from the identity provider's access token: an HS256
JWT signed with ``JWT_SECRET`` whose ``sub`` is the user id.  Core services
never read it themselves; routes pass the id in explicitly.
"""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from typing import Annotated

import jwt
from fastapi import Depends, Header
from jwt.exceptions import InvalidTokenError
from sqlalchemy import Engine

from bfriends.config import BFriendsConfig, load_config
from bfriends.database.engine import create_db_engine
from bfriends.services.errors import UnauthenticatedError
from bfriends.services.identity import IdentityClient
from bfriends.services.storage import StorageClient

logger = logging.getLogger(__name__)

_WEAK_SECRETS = frozenset({
    "super-secret-jwt-token-with-at-least-32-characters-long",
    "change-me",
    "secret",
    "dev",
    "",
})

_MIN_SECRET_LENGTH = 32

JWT_ALGORITHM = "HS256"
JWT_AUDIENCE = os.getenv("JWT_AUDIENCE", "authenticated")


def _load_jwt_secret() -> str:
    """Load and validate JWT_SECRET from the environment.

    Raises RuntimeError at import time if the secret is missing, blank,
    too short (< 32 chars), or a known weak default.
    """
    secret = os.getenv("JWT_SECRET", "")
    if not secret:
        raise RuntimeError(
            "JWT_SECRET environment variable is not set. "
            "Use the JWT secret of your identity provider project."
        )
    if secret in _WEAK_SECRETS:
        raise RuntimeError(
            f"JWT_SECRET is set to a known weak default ('{secret}'). "
            "Please set a strong, unique secret."
        )
    if len(secret) < _MIN_SECRET_LENGTH:
        raise RuntimeError(
            f"JWT_SECRET is too short ({len(secret)} chars). "
            f"Minimum length is {_MIN_SECRET_LENGTH} characters."
        )
    return secret


JWT_SECRET: str = _load_jwt_secret()


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    return create_db_engine()


@lru_cache(maxsize=1)
def get_config() -> BFriendsConfig:
    return load_config()


@lru_cache(maxsize=1)
def get_identity() -> IdentityClient:
    return IdentityClient.from_env(allowed_domains=get_config().allowed_email_domains)


@lru_cache(maxsize=1)
def get_storage() -> StorageClient:
    return StorageClient.from_env()


# ---------------------------------------------------------------------------
# Bearer tokens
# ---------------------------------------------------------------------------
def decode_token(token: str) -> str:
    """Verify *token* and return its subject (the user id)."""
    try:
        payload = jwt.decode(
            token, JWT_SECRET, algorithms=[JWT_ALGORITHM], audience=JWT_AUDIENCE
        )
    except InvalidTokenError:
        raise UnauthenticatedError("Invalid or expired token.") from None
    sub = payload.get("sub")
    if not sub:
        raise UnauthenticatedError("Token has no subject.")
    return str(sub)


def get_bearer_token(authorization: Annotated[str | None, Header()] = None) -> str | None:
    if not authorization or not authorization.startswith("Bearer "):
        return None
    return authorization.split(" ", 1)[1].strip() or None


def get_current_user_id(
    token: Annotated[str | None, Depends(get_bearer_token)],
) -> str:
    """Required auth for writes.  Raises 401 if missing or invalid."""
    if token is None:
        raise UnauthenticatedError("Missing token.")
    return decode_token(token)


def get_optional_user_id(
    token: Annotated[str | None, Depends(get_bearer_token)],
) -> str | None:
    """Optional auth for reads.  A bad token reads as anonymous."""
    if token is None:
        return None
    try:
        return decode_token(token)
    except UnauthenticatedError:
        logger.debug("Ignoring invalid bearer token on a public read")
        return None


CurrentUser = Annotated[str, Depends(get_current_user_id)]
OptionalUser = Annotated[str | None, Depends(get_optional_user_id)]
EngineDep = Annotated[Engine, Depends(get_engine)]
ConfigDep = Annotated[BFriendsConfig, Depends(get_config)]
