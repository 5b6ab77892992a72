"""
bfriends.services.community_service — Community Registry
=========================================================

Creation-time rules for communities:

* names are trimmed and must be 3..50 characters;
* names are unique by exact match (case-sensitive) and never change;
* a duplicate name is rejected, never merged, and leaves no partial state.

Communities have no delete operation; ``posts.community_name`` is a
``RESTRICT`` foreign key so the database refuses it as well.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import Engine, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from bfriends.constants import (
    COMMUNITY_DESCRIPTION_MAX,
    COMMUNITY_NAME_MAX,
    COMMUNITY_NAME_MIN,
    LIKE_ESCAPE,
    SUGGEST_COMMUNITY_LIMIT,
    SUGGEST_USER_LIMIT,
    contains_pattern,
)
from bfriends.database.engine import get_session
from bfriends.database.models import Community, User
from bfriends.services.errors import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    UnauthenticatedError,
    ValidationError,
)

logger = logging.getLogger(__name__)


def _validate_name(raw: str | None) -> str:
    name = (raw or "").strip()
    if len(name) < COMMUNITY_NAME_MIN:
        raise ValidationError(
            f"Community name must be at least {COMMUNITY_NAME_MIN} characters.",
            code="TooShort",
            field="name",
        )
    if len(name) > COMMUNITY_NAME_MAX:
        raise ValidationError(
            f"Community name must be at most {COMMUNITY_NAME_MAX} characters.",
            code="TooLong",
            field="name",
        )
    return name


def create_community(
    engine: Engine,
    owner_id: str | None,
    name: str,
    description: str | None = None,
) -> Community:
    """Create a community owned by *owner_id*.

    Raises
    ------
    ValidationError
        ``TooShort`` / ``TooLong`` on the trimmed name.
    ConflictError
        ``AlreadyExists`` if the exact name is taken.
    """
    if not owner_id:
        raise UnauthenticatedError("You must be logged in to create a community.")
    name = _validate_name(name)

    with Session(engine, expire_on_commit=False) as session:
        if session.scalar(select(Community.id).where(Community.name == name)) is not None:
            raise ConflictError(
                "This community name is already taken.", field="name"
            )
        community = Community(
            name=name,
            description=(description or "").strip() or None,
            owner_id=owner_id,
        )
        session.add(community)
        try:
            session.commit()
        except IntegrityError:
            # Lost a race with a concurrent create of the same name.
            session.rollback()
            raise ConflictError(
                "This community name is already taken.", field="name"
            ) from None
        session.refresh(community)
        session.expunge(community)

    logger.info("Community '%s' created by %s", name, owner_id)
    return community


def get_community(engine: Engine, name: str) -> Community:
    with Session(engine) as session:
        community = session.scalar(select(Community).where(Community.name == name))
        if community is None:
            raise NotFoundError(f"Community '{name}' not found.", code="CommunityNotFound")
        session.expunge(community)
        return community


def update_community_description(
    engine: Engine,
    requester_id: str | None,
    name: str,
    description: str | None,
) -> Community:
    """Change a community's description.  Only its owner may do this."""
    if not requester_id:
        raise UnauthenticatedError("You must be logged in to edit a community.")
    text = (description or "").strip()
    if len(text) > COMMUNITY_DESCRIPTION_MAX:
        raise ValidationError(
            f"Description must be at most {COMMUNITY_DESCRIPTION_MAX} characters.",
            code="TooLong",
            field="description",
        )

    with get_session(engine, expire_on_commit=False) as session:
        community = session.scalar(
            select(Community).where(Community.name == name).with_for_update()
        )
        if community is None:
            raise NotFoundError(f"Community '{name}' not found.", code="CommunityNotFound")
        if community.owner_id != requester_id:
            raise ForbiddenError("Only the community owner can edit its description.")
        community.description = text or None
        session.flush()
        session.expunge(community)

    logger.info("Community '%s' description updated by %s", name, requester_id)
    return community


@dataclass
class NameSuggestion:
    kind: str  # "community" | "user"
    name: str
    link: str
    image_url: str | None = None

    def to_dict(self) -> dict:
        return {
            "type": self.kind,
            "name": self.name,
            "link": self.link,
            "image_url": self.image_url,
        }


def suggest_names(engine: Engine, query: str | None) -> list[NameSuggestion]:
    """Type-ahead for the search box: a few communities, then a few people.

    Matching is a case-insensitive substring.  Only completed profiles are
    offered.  An empty query returns nothing.
    """
    q = (query or "").strip()
    if not q:
        return []
    pattern = contains_pattern(q)

    with Session(engine) as session:
        communities = session.scalars(
            select(Community.name)
            .where(Community.name.ilike(pattern, escape=LIKE_ESCAPE))
            .order_by(Community.created_at.desc(), Community.id.desc())
            .limit(SUGGEST_COMMUNITY_LIMIT)
        ).all()
        users = session.execute(
            select(User.user_name, User.full_name, User.image_url)
            .where(
                User.profile_complete.is_(True),
                User.user_name.is_not(None),
                or_(
                    User.user_name.ilike(pattern, escape=LIKE_ESCAPE),
                    User.full_name.ilike(pattern, escape=LIKE_ESCAPE),
                ),
            )
            .order_by(User.updated_at.desc())
            .limit(SUGGEST_USER_LIMIT)
        ).all()

    suggestions = [
        NameSuggestion(kind="community", name=name, link=f"/p/{name}")
        for name in communities
    ]
    suggestions += [
        NameSuggestion(
            kind="user",
            name=f"{full_name or ''} (@{user_name})".strip(),
            link=f"/profile/{user_name}",
            image_url=image_url,
        )
        for user_name, full_name, image_url in users
    ]
    return suggestions
