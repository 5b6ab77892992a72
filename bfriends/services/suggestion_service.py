"""
bfriends.services.suggestion_service — Friend Suggestions
==========================================================

Finds people a member may know, from two kinds of signal:

* shared profile attributes: major, primary role, campus, and batch (batch
  only counts when the requester is a student);
* shared activity: having posted or commented in one of the requester's
  top communities (by their own post + comment count, general hub excluded).

Candidates are other members with a completed profile and a handle.  Up to
``limit`` are returned, most recently updated first, each labelled with the
reasons it matched.  There is no relevance score.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import Engine, exists, or_, select
from sqlalchemy.orm import Session, selectinload

from bfriends.database.models import Comment, Post, User, UserCampus, UserRoleType
from bfriends.engine.affinity import (
    CommunityActivity,
    MatchReason,
    ProfileSignals,
    SuggestionMessage,
    community_activity,
    match_reasons,
)

logger = logging.getLogger(__name__)


@dataclass
class FriendCandidate:
    id: str
    user_name: str
    full_name: str | None
    image_url: str | None
    student_major: str | None
    primary_role: UserRoleType | None
    student_batch: str | None
    campus_locations: list[str]
    reasons: list[MatchReason] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_name": self.user_name,
            "full_name": self.full_name,
            "image_url": self.image_url,
            "student_major": self.student_major,
            "primary_role": self.primary_role.value if self.primary_role else None,
            "student_batch": self.student_batch,
            "campus_locations": self.campus_locations,
            "reasons": [r.value for r in self.reasons],
        }


@dataclass
class SuggestionResult:
    candidates: list[FriendCandidate]
    message: SuggestionMessage | None = None
    top_communities: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "candidates": [c.to_dict() for c in self.candidates],
            "message": self.message.value if self.message else None,
            "top_communities": self.top_communities,
        }


def _signals(user: User) -> ProfileSignals:
    return ProfileSignals(
        student_major=user.student_major,
        primary_role=user.primary_role,
        student_batch=user.student_batch,
        campuses=frozenset(user.campus_locations),
    )


def user_activity(
    session: Session, user_id: str, *, exclude: str | None = None
) -> list[CommunityActivity]:
    """Per-community activity of *user_id*, highest score first."""
    post_names = session.scalars(
        select(Post.community_name)
        .where(Post.user_id == user_id)
        .order_by(Post.created_at)
    ).all()
    comment_names = session.scalars(
        select(Post.community_name)
        .join(Comment, Comment.post_id == Post.id)
        .where(Comment.user_id == user_id)
        .order_by(Comment.created_at)
    ).all()
    return community_activity(post_names, comment_names, exclude=exclude)


def _active_in(session: Session, user_ids: list[str], communities: list[str]) -> dict[str, set[str]]:
    """Which of *communities* each of *user_ids* has posted or commented in."""
    active: dict[str, set[str]] = defaultdict(set)
    if not user_ids or not communities:
        return active
    post_rows = session.execute(
        select(Post.user_id, Post.community_name)
        .where(Post.user_id.in_(user_ids), Post.community_name.in_(communities))
        .distinct()
    ).all()
    comment_rows = session.execute(
        select(Comment.user_id, Post.community_name)
        .join(Post, Comment.post_id == Post.id)
        .where(Comment.user_id.in_(user_ids), Post.community_name.in_(communities))
        .distinct()
    ).all()
    for uid, name in [*post_rows, *comment_rows]:
        active[uid].add(name)
    return active


def suggest_friends(
    engine: Engine,
    user_id: str,
    *,
    default_community: str,
    limit: int = 20,
    top_n: int = 3,
) -> SuggestionResult:
    """Return up to *limit* suggested friends for *user_id*.

    An incomplete (or missing) profile yields ``ProfileIncomplete`` and no
    candidates.  A profile with nothing to match on yields ``NoSignals``.
    """
    with Session(engine) as session:
        me = session.get(User, user_id)
        if me is None or not me.profile_complete:
            return SuggestionResult(candidates=[], message=SuggestionMessage.PROFILE_INCOMPLETE)

        signals = _signals(me)
        top = [
            a.name for a in user_activity(session, user_id, exclude=default_community)[:top_n]
        ]

        clauses = []
        if signals.student_major:
            clauses.append(User.student_major == signals.student_major)
        if signals.primary_role:
            clauses.append(User.primary_role == signals.primary_role)
        if signals.campuses:
            clauses.append(
                exists().where(
                    UserCampus.user_id == User.id,
                    UserCampus.campus.in_(sorted(signals.campuses)),
                )
            )
        if signals.batch_applies:
            clauses.append(User.student_batch == signals.student_batch)
        if top:
            clauses.append(
                exists().where(Post.user_id == User.id, Post.community_name.in_(top))
            )
            clauses.append(
                exists().where(
                    Comment.user_id == User.id,
                    Comment.post_id == Post.id,
                    Post.community_name.in_(top),
                )
            )

        if not clauses:
            return SuggestionResult(
                candidates=[], message=SuggestionMessage.NO_SIGNALS, top_communities=top
            )

        users = session.scalars(
            select(User)
            .options(selectinload(User.campuses))
            .where(
                User.id != user_id,
                User.profile_complete.is_(True),
                User.user_name.is_not(None),
                or_(*clauses),
            )
            .order_by(User.updated_at.desc(), User.id)
            .limit(limit)
        ).all()

        active = _active_in(session, [u.id for u in users], top)
        candidates = [
            FriendCandidate(
                id=u.id,
                user_name=u.user_name,
                full_name=u.full_name,
                image_url=u.image_url,
                student_major=u.student_major,
                primary_role=u.primary_role,
                student_batch=u.student_batch,
                campus_locations=u.campus_locations,
                reasons=match_reasons(
                    signals,
                    _signals(u),
                    candidate_communities=active.get(u.id, ()),
                    top=top,
                ),
            )
            for u in users
        ]

    logger.info(
        "Friend suggestions for %s: %d candidates (top communities %s)",
        user_id, len(candidates), top,
    )
    return SuggestionResult(candidates=candidates, top_communities=top)
