"""
bfriends.services.vote_service — Score Ledger
==============================================

Keeps ``votes`` rows and each post's denormalized ``vote_score`` in step.
Every vote action runs in a single transaction:

  1. Lock the caller's existing vote row for the post (``FOR UPDATE``).
  2. Look up the transition in :mod:`bfriends.engine.votes`.
  3. Insert / update / delete the vote row.
  4. ``UPDATE posts SET vote_score = vote_score + :delta`` — SQL-side, so
     concurrent voters on the same post never overwrite each other.
  5. Commit (or roll everything back).

Two racing *first* votes from the same user are caught by
``uq_votes_user_post`` inside a SAVEPOINT; the loser re-reads the winning
row and applies its click as a transition from that state.
"""

from __future__ import annotations

import logging

from sqlalchemy import Engine, case, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from bfriends.database.engine import get_session
from bfriends.database.models import Post, User, Vote, VoteType
from bfriends.engine.votes import RowAction, parse_direction, transition
from bfriends.services.errors import NotFoundError, UnauthenticatedError, ValidationError

logger = logging.getLogger(__name__)


def _locked_vote(session: Session, user_id: str, post_id: str) -> Vote | None:
    return session.scalar(
        select(Vote)
        .where(Vote.user_id == user_id, Vote.post_id == post_id)
        .with_for_update()
    )


def _try_insert(session: Session, user_id: str, post_id: str, vote_type: VoteType) -> bool:
    """Insert a fresh vote row under a SAVEPOINT.

    Returns False if another transaction inserted the same (user, post)
    first; the SAVEPOINT is rolled back and the outer transaction survives.
    """
    try:
        with session.begin_nested():
            session.add(Vote(user_id=user_id, post_id=post_id, vote_type=vote_type))
            session.flush()
    except IntegrityError:
        return False
    return True


def cast_vote(
    engine: Engine,
    user_id: str | None,
    post_id: str,
    direction: str | VoteType,
) -> bool:
    """Apply one vote click by *user_id* on *post_id*.

    Returns True if the ledger changed, False if the post does not exist
    (ignorable no-op; logged).  Callers re-read the post for the new tally.

    Raises
    ------
    UnauthenticatedError
        If *user_id* is empty.  Nothing is written.
    ValidationError
        If *direction* is not UP or DOWN.
    NotFoundError
        If the voter has no profile row.
    """
    if not user_id:
        raise UnauthenticatedError("You must be logged in to vote.")
    vote_type = parse_direction(direction)
    if vote_type is None:
        raise ValidationError("Vote direction must be UP or DOWN.", field="direction")

    with get_session(engine) as session:
        if session.scalar(select(Post.id).where(Post.id == post_id)) is None:
            logger.warning("Vote by %s ignored: post %s does not exist.", user_id, post_id)
            return False
        if session.get(User, user_id) is None:
            raise NotFoundError("User profile not found.", field="user")

        existing = _locked_vote(session, user_id, post_id)
        if existing is None:
            if _try_insert(session, user_id, post_id, vote_type):
                delta = transition(None, vote_type).delta
            else:
                existing = _locked_vote(session, user_id, post_id)
                if existing is None:
                    raise RuntimeError(f"vote row for {user_id}/{post_id} vanished mid-race")

        if existing is not None:
            step = transition(existing.vote_type, vote_type)
            if step.action is RowAction.DELETE:
                session.delete(existing)
            else:
                existing.vote_type = step.new_type
            delta = step.delta

        session.execute(
            update(Post)
            .where(Post.id == post_id)
            .values(vote_score=Post.vote_score + delta)
        )

    logger.info("Vote %s by %s on post %s (tally %+d)", vote_type, user_id, post_id, delta)
    return True


def get_vote(engine: Engine, user_id: str, post_id: str) -> VoteType | None:
    """Return the caller's current vote direction on a post, if any."""
    with Session(engine) as session:
        return session.scalar(
            select(Vote.vote_type).where(Vote.user_id == user_id, Vote.post_id == post_id)
        )


def get_tally(engine: Engine, post_id: str) -> int | None:
    with Session(engine) as session:
        return session.scalar(select(Post.vote_score).where(Post.id == post_id))


def vote_sum(session: Session, post_id: str) -> int:
    """#UP − #DOWN computed from the vote rows themselves."""
    value = case((Vote.vote_type == VoteType.UP, 1), else_=-1)
    return session.scalar(
        select(func.coalesce(func.sum(value), 0)).where(Vote.post_id == post_id)
    ) or 0


def recount_tally(engine: Engine, post_id: str) -> int | None:
    """Rebuild a post's tally from its vote rows.

    Returns the corrected tally, or None if the post does not exist.
    """
    with get_session(engine) as session:
        post = session.scalar(select(Post).where(Post.id == post_id).with_for_update())
        if post is None:
            return None
        actual = vote_sum(session, post_id)
        if post.vote_score != actual:
            logger.warning(
                "Tally drift on post %s: stored %d, votes say %d; repaired.",
                post_id, post.vote_score, actual,
            )
            post.vote_score = actual
        return actual
