"""
bfriends.engine.votes — Vote Transition Table
==============================================

Pure logic, no DB I/O.  Given the caller's existing vote on a post (if any)
and the direction they just clicked, decide what happens to the vote row and
by how much the post's tally moves:

    previous  requested  delta  row
    --------  ---------  -----  ---------------
    none      UP          +1    insert UP
    none      DOWN        -1    insert DOWN
    UP        UP          -1    delete (toggle off)
    DOWN      DOWN        +1    delete (toggle off)
    UP        DOWN        -2    update to DOWN
    DOWN      UP          +2    update to UP
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

from bfriends.database.models import VoteType

__all__ = ["RowAction", "VoteTransition", "parse_direction", "transition", "vote_value"]


class RowAction(enum.StrEnum):
    INSERT = "insert"
    DELETE = "delete"
    UPDATE = "update"


@dataclass(frozen=True, slots=True)
class VoteTransition:
    delta: int
    action: RowAction
    new_type: VoteType | None  # None when the row goes away


def vote_value(vote_type: VoteType) -> int:
    return 1 if vote_type == VoteType.UP else -1


def transition(previous: VoteType | None, requested: VoteType) -> VoteTransition:
    """Return the tally delta and row action for *previous* → *requested*."""
    if previous is None:
        return VoteTransition(vote_value(requested), RowAction.INSERT, requested)
    if previous == requested:
        return VoteTransition(-vote_value(previous), RowAction.DELETE, None)
    return VoteTransition(
        vote_value(requested) - vote_value(previous), RowAction.UPDATE, requested
    )


def parse_direction(raw: str | VoteType) -> VoteType | None:
    """Accept ``UP``/``DOWN`` in any case; anything else → None."""
    if isinstance(raw, VoteType):
        return raw
    try:
        return VoteType((raw or "").strip().upper())
    except ValueError:
        return None
