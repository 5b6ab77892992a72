"""
BFriends — Campus Community Discussion Platform
================================================
Communities, posts and comments with a vote-ranked feed, plus friend
suggestions drawn from shared majors, roles, campuses, batches and
community activity.

Package layout::

    bfriends/
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Campus list, field limits
    ├── logging_setup.py   # Log format shared by the API and scripts
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + async helper
    │   ├── models.py      # ORM models (users, communities, posts, comments, votes)
    │   └── seed.py        # Default community seeder
    ├── engine/
    │   ├── votes.py       # Vote transition table
    │   ├── ranking.py     # Rank modes, calendar windows, paging math
    │   └── affinity.py    # Community activity + match reasons
    ├── services/
    │   ├── errors.py              # Domain error taxonomy
    │   ├── vote_service.py        # Score ledger
    │   ├── feed_service.py        # Feed query engine
    │   ├── community_service.py   # Community registry + type-ahead
    │   ├── post_service.py        # Posts and comments
    │   ├── suggestion_service.py  # Friend suggestions
    │   ├── profile_service.py     # Onboarding, settings, public profiles
    │   ├── identity.py            # Identity provider client (httpx)
    │   └── storage.py             # Object storage client (httpx)
    └── api/
        ├── main.py        # FastAPI app
        ├── deps.py        # Engine/config/auth dependencies
        ├── auth.py        # Sign-up, login, logout
        └── routes/        # Feed, posts, communities, friends, profiles
"""

__version__ = "0.1.0"
