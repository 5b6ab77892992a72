"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import os

# ---------------------------------------------------------------------------
# Ensure a valid JWT_SECRET is always set for test runs.
# This must happen before any import of bfriends.api.deps which validates
# the secret at module-load time.
# ---------------------------------------------------------------------------
_TEST_JWT_SECRET = "test-secret-for-pytest-only-" + "x" * 40  # > 32 chars
os.environ.setdefault("JWT_SECRET", _TEST_JWT_SECRET)

from datetime import UTC, datetime, timedelta  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import Engine, create_engine  # noqa: E402

# ---------------------------------------------------------------------------
# Make JSONB columns work in SQLite for testing.
# SQLite doesn't support JSONB natively, but SQLAlchemy's JSON type works.
# We register a custom type compiler so SQLite renders JSONB as TEXT.
# ---------------------------------------------------------------------------
from sqlalchemy.dialects.postgresql import JSONB as PG_JSONB  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from bfriends.config import BFriendsConfig  # noqa: E402
from bfriends.database.engine import enable_sqlite_foreign_keys  # noqa: E402
from bfriends.database.models import (  # noqa: E402
    Base,
    Comment,
    Community,
    Post,
    User,
    UserCampus,
    UserRoleType,
    Vote,
    VoteType,
)
from bfriends.database.seed import seed_default_community  # noqa: E402

DEFAULT_COMMUNITY = "PublicSphere"

_jsonb_sqlite_registered = False


def _register_jsonb_sqlite_compat():
    """Register SQLite compilation for PG JSONB type (idempotent)."""
    global _jsonb_sqlite_registered
    if _jsonb_sqlite_registered:
        return
    from sqlalchemy.ext.compiler import compiles

    @compiles(PG_JSONB, "sqlite")
    def _compile_jsonb_as_text(type_, compiler, **kw):
        return "TEXT"

    _jsonb_sqlite_registered = True


_register_jsonb_sqlite_compat()


@pytest.fixture
def db_engine() -> Engine:
    """Create an in-memory SQLite engine with all BFriends tables and the
    default community.

    Uses StaticPool so all threads share the same in-memory database
    (required by ``asyncio.to_thread`` used in ``run_db``).
    """
    from sqlalchemy.pool import StaticPool

    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)
    Base.metadata.create_all(engine)
    seed_default_community(engine, DEFAULT_COMMUNITY)
    return engine


@pytest.fixture
def db_session(db_engine: Engine):
    """Provide a session that rolls back after each test."""
    with Session(db_engine) as session:
        yield session
        session.rollback()


@pytest.fixture
def cfg() -> BFriendsConfig:
    return BFriendsConfig(site_name="BFriends", default_community=DEFAULT_COMMUNITY)


# ---------------------------------------------------------------------------
# Row factories
# ---------------------------------------------------------------------------
class Factory:
    """Inserts rows directly, bypassing the services under test."""

    def __init__(self, engine: Engine):
        self.engine = engine
        self._clock = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)

    def tick(self) -> datetime:
        self._clock += timedelta(seconds=1)
        return self._clock

    def user(
        self,
        user_id: str,
        *,
        user_name: str | None = None,
        complete: bool = True,
        role: UserRoleType | None = UserRoleType.STUDENT,
        major: str | None = None,
        batch: str | None = None,
        campuses: tuple[str, ...] = (),
        updated_at: datetime | None = None,
        **fields,
    ) -> str:
        with Session(self.engine) as session:
            user = User(
                id=user_id,
                email=f"{user_id}@binus.ac.id",
                full_name=fields.pop("full_name", f"User {user_id}"),
                user_name=user_name if user_name is not None else (user_id if complete else None),
                primary_role=role if complete else None,
                student_major=major,
                student_batch=batch,
                profile_complete=complete,
                updated_at=updated_at or self.tick(),
                **fields,
            )
            user.campuses = [UserCampus(campus=c) for c in campuses]
            session.add(user)
            session.commit()
        return user_id

    def community(self, name: str, owner_id: str | None = None, description: str | None = None) -> str:
        with Session(self.engine) as session:
            session.add(Community(
                name=name, owner_id=owner_id, description=description, created_at=self.tick(),
            ))
            session.commit()
        return name

    def post(
        self,
        community: str,
        user_id: str | None,
        title: str = "A post",
        *,
        created_at: datetime | None = None,
        vote_score: int = 0,
    ) -> str:
        with Session(self.engine) as session:
            post = Post(
                title=title,
                community_name=community,
                user_id=user_id,
                vote_score=vote_score,
                created_at=created_at or self.tick(),
            )
            session.add(post)
            session.commit()
            return post.id

    def comment(self, post_id: str, user_id: str, text: str = "Nice") -> str:
        with Session(self.engine) as session:
            comment = Comment(text=text, post_id=post_id, user_id=user_id, created_at=self.tick())
            session.add(comment)
            session.commit()
            return comment.id

    def vote(self, post_id: str, user_id: str, vote_type: VoteType) -> None:
        with Session(self.engine) as session:
            session.add(Vote(post_id=post_id, user_id=user_id, vote_type=vote_type))
            session.commit()


@pytest.fixture
def make(db_engine: Engine) -> Factory:
    return Factory(db_engine)


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------
def make_token(sub: str = "u-fixture", *, expires_in: int = 3600, **claims) -> str:
    """Create an identity-provider style access token.  Usable as a plain
    factory from any test module."""
    import jwt

    from bfriends.api.deps import JWT_ALGORITHM, JWT_AUDIENCE, JWT_SECRET

    payload = {
        "sub": sub,
        "aud": JWT_AUDIENCE,
        "exp": datetime.now(UTC) + timedelta(seconds=expires_in),
        **claims,
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def auth(sub: str) -> dict:
    return {"Authorization": f"Bearer {make_token(sub)}"}


@pytest.fixture
def client(db_engine: Engine, cfg: BFriendsConfig):
    """FastAPI TestClient wired to the in-memory database.

    The identity and storage providers are unconfigured here; tests that
    need them override ``get_identity`` / ``get_storage`` themselves.
    """
    from fastapi.testclient import TestClient

    from bfriends.api.deps import get_config, get_engine
    from bfriends.api.main import app

    app.dependency_overrides[get_engine] = lambda: db_engine
    app.dependency_overrides[get_config] = lambda: cfg
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()
