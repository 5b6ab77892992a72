"""
bfriends.database.seed — Default Community Seeder
==================================================

The general hub (``default_community`` in ``config.yaml``) must exist before
anyone can post to it.  Idempotent — only inserts when missing.
"""

from __future__ import annotations

import logging

from sqlalchemy import Engine, select
from sqlalchemy.orm import Session

from bfriends.database.models import Community

logger = logging.getLogger(__name__)

DEFAULT_COMMUNITY_DESCRIPTION = "The place for everything that doesn't fit a hub."


def seed_default_community(engine: Engine, name: str) -> bool:
    """Insert the default community if it does not exist yet.

    Returns True if a row was created.
    """
    with Session(engine) as session:
        existing = session.scalar(select(Community.id).where(Community.name == name))
        if existing is not None:
            return False
        session.add(Community(name=name, description=DEFAULT_COMMUNITY_DESCRIPTION))
        session.commit()
    logger.info("Seeded default community '%s'.", name)
    return True
