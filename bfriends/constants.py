"""
bfriends.constants — Shared Constants
======================================

Single source of truth for validation limits and fixed vocabularies.
Import from here instead of duplicating in services and routes.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Campus vocabulary (profile form + friend matching)
# ---------------------------------------------------------------------------
CAMPUS_LIST: tuple[str, ...] = (
    "@Kemanggisan",
    "@Alam Sutera",
    "@Bekasi",
    "@Bandung",
    "@Malang",
    "@Semarang",
    "@Senayan",
    "@Medan",
    "@BASE Alam Sutera",
)

# ---------------------------------------------------------------------------
# Length limits
# ---------------------------------------------------------------------------
COMMUNITY_NAME_MIN = 3
COMMUNITY_NAME_MAX = 50
COMMUNITY_DESCRIPTION_MAX = 500
POST_TITLE_MAX = 300
USERNAME_MIN = 3
USERNAME_MAX = 30
BIO_MAX = 500

# ---------------------------------------------------------------------------
# Avatars
# ---------------------------------------------------------------------------
AVATAR_MAX_BYTES = 5 * 1024 * 1024  # 5 MB
AVATAR_PREFIX = "public/"

# Type-ahead ("did you mean") result caps
SUGGEST_COMMUNITY_LIMIT = 3
SUGGEST_USER_LIMIT = 3

# "Most active in" list on profile pages
PROFILE_TOP_COMMUNITIES = 5


# ---------------------------------------------------------------------------
# Text processing helpers
# ---------------------------------------------------------------------------
LIKE_ESCAPE = "\\"


def contains_pattern(term: str) -> str:
    """Build a ``LIKE`` pattern matching *term* anywhere, wildcards escaped.

    Use with ``column.ilike(contains_pattern(term), escape=LIKE_ESCAPE)``.
    """
    escaped = (
        term.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )
    return f"%{escaped}%"
