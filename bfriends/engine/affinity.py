"""
bfriends.engine.affinity — Community Activity & Friend Match Reasons
=====================================================================

Pure calculation, no DB I/O.  The suggestion service gathers the raw rows
and hands them here to:

1. score a member's activity per community (1 point per post authored there,
   1 per comment on a post there), and
2. label why a candidate was suggested (shared major, role, batch, campus,
   or activity in one of the requester's top communities).
"""

from __future__ import annotations

import enum
from collections.abc import Iterable
from dataclasses import dataclass, field

from bfriends.database.models import UserRoleType

__all__ = [
    "CommunityActivity",
    "MatchReason",
    "ProfileSignals",
    "SuggestionMessage",
    "community_activity",
    "match_reasons",
]


class MatchReason(enum.StrEnum):
    MAJOR = "major"
    ROLE = "role"
    BATCH = "batch"
    CAMPUS = "campus"
    COMMUNITY = "community"


class SuggestionMessage(enum.StrEnum):
    PROFILE_INCOMPLETE = "ProfileIncomplete"
    NO_SIGNALS = "NoSignals"


@dataclass
class CommunityActivity:
    name: str
    posts: int = 0
    comments: int = 0

    @property
    def score(self) -> int:
        return self.posts + self.comments


@dataclass(frozen=True)
class ProfileSignals:
    """The profile attributes friend matching compares on."""

    student_major: str | None = None
    primary_role: UserRoleType | None = None
    student_batch: str | None = None
    campuses: frozenset[str] = field(default_factory=frozenset)

    @property
    def batch_applies(self) -> bool:
        return bool(
            self.student_batch
            and self.primary_role is not None
            and self.primary_role.is_student
        )


# ---------------------------------------------------------------------------
# Activity scoring
# ---------------------------------------------------------------------------
def community_activity(
    post_communities: Iterable[str | None],
    comment_communities: Iterable[str | None],
    *,
    exclude: str | None = None,
) -> list[CommunityActivity]:
    """Tally activity per community, sorted by score descending.

    Ties keep first-seen order (posts before comments).
    """
    by_name: dict[str, CommunityActivity] = {}
    for name in post_communities:
        if not name or name == exclude:
            continue
        by_name.setdefault(name, CommunityActivity(name)).posts += 1
    for name in comment_communities:
        if not name or name == exclude:
            continue
        by_name.setdefault(name, CommunityActivity(name)).comments += 1
    return sorted(by_name.values(), key=lambda a: a.score, reverse=True)


# ---------------------------------------------------------------------------
# Match reasons
# ---------------------------------------------------------------------------
def match_reasons(
    requester: ProfileSignals,
    candidate: ProfileSignals,
    *,
    candidate_communities: Iterable[str] = (),
    top: Iterable[str] = (),
) -> list[MatchReason]:
    """Return every reason *candidate* matches *requester*, in badge order."""
    reasons: list[MatchReason] = []
    if requester.student_major and candidate.student_major == requester.student_major:
        reasons.append(MatchReason.MAJOR)
    if requester.primary_role and candidate.primary_role == requester.primary_role:
        reasons.append(MatchReason.ROLE)
    if requester.batch_applies and candidate.student_batch == requester.student_batch:
        reasons.append(MatchReason.BATCH)
    if requester.campuses & candidate.campuses:
        reasons.append(MatchReason.CAMPUS)
    if set(top) & set(candidate_communities):
        reasons.append(MatchReason.COMMUNITY)
    return reasons
