"""
bfriends.services.profile_service — Member Profiles
====================================================

Profile lifecycle:

1. ``register_user`` — the identity provider confirmed a sign-up; create the
   row with a placeholder full name taken from the e-mail address.
2. ``complete_onboarding`` — first full profile; sets ``profile_complete``.
3. ``update_profile`` / ``update_username`` / ``update_avatar`` — settings.

``profile_complete`` never goes back to False.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any

from pydantic import AnyHttpUrl, BaseModel, ConfigDict, Field, field_validator
from sqlalchemy import Engine, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from bfriends.constants import (
    AVATAR_MAX_BYTES,
    AVATAR_PREFIX,
    BIO_MAX,
    CAMPUS_LIST,
    PROFILE_TOP_COMMUNITIES,
    USERNAME_MAX,
    USERNAME_MIN,
)
from bfriends.database.engine import get_session, run_db
from bfriends.database.models import Comment, Post, User, UserCampus, UserRoleType
from bfriends.engine.affinity import CommunityActivity
from bfriends.engine.ranking import clamp_page, page_offset, total_pages
from bfriends.services.errors import (
    ConflictError,
    NotFoundError,
    UnauthenticatedError,
    ValidationError,
)
from bfriends.services.suggestion_service import user_activity

if TYPE_CHECKING:
    from bfriends.services.storage import StorageClient

logger = logging.getLogger(__name__)

USERNAME_PATTERN = r"^[A-Za-z0-9_.]+$"
_USERNAME_RE = re.compile(USERNAME_PATTERN)

# Columns with a unique constraint, and the message shown when taken
_UNIQUE_FIELDS: dict[str, str] = {
    "user_name": "This username is already taken.",
    "nim": "This NIM is already registered.",
    "employee_id": "This Employee ID is already registered.",
}


# ---------------------------------------------------------------------------
# Pydantic forms
# ---------------------------------------------------------------------------
class CustomLink(BaseModel):
    title: str = Field(min_length=1, max_length=50)
    url: AnyHttpUrl


class ProfileForm(BaseModel):
    """Onboarding / settings form.

    Role-specific requirements (students need NIM, major and batch; employees
    need an employee id and department) are checked by the service so the
    error can name the missing field.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    full_name: str = Field(min_length=3, max_length=100)
    user_name: str = Field(
        min_length=USERNAME_MIN, max_length=USERNAME_MAX, pattern=USERNAME_PATTERN
    )
    primary_role: UserRoleType
    nim: str | None = Field(default=None, max_length=20)
    student_major: str | None = Field(default=None, max_length=100)
    student_batch: str | None = Field(default=None, pattern=r"^\d{2}$")
    employee_id: str | None = Field(default=None, max_length=20)
    employee_department: str | None = Field(default=None, max_length=100)
    campus_locations: list[str] = Field(default_factory=list)
    bio_description: str = Field(default="", max_length=BIO_MAX)
    occupation_roles: list[str] = Field(default_factory=list)
    custom_links: list[CustomLink] = Field(default_factory=list)

    @field_validator("campus_locations")
    @classmethod
    def _known_campuses(cls, value: list[str]) -> list[str]:
        unknown = [c for c in value if c not in CAMPUS_LIST]
        if unknown:
            raise ValueError(f"Unknown campus location(s): {', '.join(unknown)}")
        return list(dict.fromkeys(value))

    @field_validator("occupation_roles")
    @classmethod
    def _occupation_lengths(cls, value: list[str]) -> list[str]:
        roles = [r.strip() for r in value if r.strip()]
        if any(len(r) > 50 for r in roles):
            raise ValueError("Occupation role too long (max 50 characters).")
        return roles


# ---------------------------------------------------------------------------
# Views
# ---------------------------------------------------------------------------
@dataclass
class ProfileView:
    id: str
    user_name: str | None
    full_name: str | None
    image_url: str | None
    bio_description: str | None
    primary_role: UserRoleType | None
    nim: str | None
    student_major: str | None
    student_batch: str | None
    employee_id: str | None
    employee_department: str | None
    campus_locations: list[str]
    occupation_roles: list[str]
    custom_links: list[dict]
    profile_complete: bool
    created_at: datetime | None
    post_count: int = 0
    comment_count: int = 0
    top_communities: list[CommunityActivity] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_name": self.user_name,
            "full_name": self.full_name,
            "image_url": self.image_url,
            "bio_description": self.bio_description,
            "primary_role": self.primary_role.value if self.primary_role else None,
            "nim": self.nim,
            "student_major": self.student_major,
            "student_batch": self.student_batch,
            "employee_id": self.employee_id,
            "employee_department": self.employee_department,
            "campus_locations": self.campus_locations,
            "occupation_roles": self.occupation_roles,
            "custom_links": self.custom_links,
            "profile_complete": self.profile_complete,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "post_count": self.post_count,
            "comment_count": self.comment_count,
            "top_communities": [
                {"name": a.name, "posts": a.posts, "comments": a.comments, "score": a.score}
                for a in self.top_communities
            ],
        }


@dataclass
class UserComment:
    id: str
    text: str
    post_id: str
    post_title: str
    community_name: str
    created_at: datetime | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "post": {
                "id": self.post_id,
                "title": self.post_title,
                "community_name": self.community_name,
            },
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _get_user(session: Session, user_id: str | None) -> User:
    if not user_id:
        raise UnauthenticatedError("User not authenticated.")
    user = session.get(User, user_id)
    if user is None:
        raise NotFoundError("User profile not found.", field="user")
    return user


def _check_role_fields(form: ProfileForm) -> None:
    required: list[tuple[str, str]] = []
    if form.primary_role.is_student:
        required += [
            ("nim", "NIM is required for students."),
            ("student_major", "Major is required for students."),
            ("student_batch", "Batch (YY) is required for students."),
        ]
    if form.primary_role.is_employee:
        required += [
            ("employee_id", "Employee ID is required for employees."),
            ("employee_department", "Department is required for employees."),
        ]
    for name, message in required:
        if not getattr(form, name):
            raise ValidationError(message, code="Required", field=name)


def _check_unique(session: Session, user_id: str, values: dict[str, str | None]) -> None:
    for column, value in values.items():
        if value is None:
            continue
        taken = session.scalar(
            select(User.id).where(getattr(User, column) == value, User.id != user_id)
        )
        if taken is not None:
            raise ConflictError(_UNIQUE_FIELDS[column], field=column)


def _conflict_from_integrity(exc: IntegrityError) -> ConflictError:
    detail = str(exc.orig)
    for column, message in _UNIQUE_FIELDS.items():
        if column in detail:
            return ConflictError(message, field=column)
    return ConflictError("A piece of information you provided is already in use.")


def _sync_campuses(user: User, campuses: list[str]) -> None:
    wanted = set(campuses)
    for row in list(user.campuses):
        if row.campus not in wanted:
            user.campuses.remove(row)
    have = {row.campus for row in user.campuses}
    for campus in campuses:
        if campus not in have:
            user.campuses.append(UserCampus(campus=campus))


def _apply_form(user: User, form: ProfileForm) -> None:
    role = form.primary_role
    user.full_name = form.full_name
    user.user_name = form.user_name
    user.primary_role = role
    user.nim = form.nim if role.is_student else None
    user.student_major = form.student_major if role.is_student else None
    user.student_batch = f"B-{form.student_batch}" if role.is_student else None
    user.employee_id = form.employee_id if role.is_employee else None
    user.employee_department = form.employee_department if role.is_employee else None
    user.bio_description = form.bio_description
    user.occupation_roles = list(form.occupation_roles)
    user.custom_links = [{"title": link.title, "url": str(link.url)} for link in form.custom_links]
    _sync_campuses(user, form.campus_locations)


def _save_profile(engine: Engine, user_id: str | None, form: ProfileForm, *, complete: bool) -> User:
    _check_role_fields(form)
    try:
        with get_session(engine, expire_on_commit=False) as session:
            user = _get_user(session, user_id)
            _check_unique(session, user.id, {
                "user_name": form.user_name,
                "nim": form.nim if form.primary_role.is_student else None,
                "employee_id": form.employee_id if form.primary_role.is_employee else None,
            })
            _apply_form(user, form)
            if complete:
                user.profile_complete = True
            session.flush()
            session.refresh(user, ["campuses"])
            session.expunge(user)
    except IntegrityError as exc:
        raise _conflict_from_integrity(exc) from None
    return user


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def register_user(engine: Engine, user_id: str, email: str) -> User:
    """Create the profile row for a freshly confirmed identity.

    Idempotent for the same id.  A different id with the same e-mail is a
    conflict.
    """
    email = (email or "").strip().lower()
    if not user_id or not email:
        raise ValidationError("User id and e-mail are required.", field="email")

    with Session(engine, expire_on_commit=False) as session:
        existing = session.get(User, user_id)
        if existing is not None:
            session.expunge(existing)
            return existing
        if session.scalar(select(User.id).where(User.email == email)) is not None:
            raise ConflictError("This email is already registered.", field="email")
        user = User(id=user_id, email=email, full_name=email.split("@")[0])
        session.add(user)
        try:
            session.commit()
        except IntegrityError:
            session.rollback()
            raise ConflictError("This email is already registered.", field="email") from None
        session.refresh(user)
        session.expunge(user)

    logger.info("Registered user %s", user_id)
    return user


def get_user(engine: Engine, user_id: str) -> User | None:
    with Session(engine) as session:
        user = session.scalar(
            select(User).options(selectinload(User.campuses)).where(User.id == user_id)
        )
        if user is not None:
            session.expunge(user)
        return user


def complete_onboarding(engine: Engine, user_id: str | None, form: ProfileForm) -> User:
    user = _save_profile(engine, user_id, form, complete=True)
    logger.info("Profile completed for %s (@%s)", user.id, user.user_name)
    return user


def update_profile(engine: Engine, user_id: str | None, form: ProfileForm) -> User:
    user = _save_profile(engine, user_id, form, complete=False)
    logger.info("Profile updated for %s", user.id)
    return user


def update_username(engine: Engine, user_id: str | None, user_name: str) -> str:
    """Change the caller's handle and return the stored value."""
    user_name = (user_name or "").strip()
    if len(user_name) < USERNAME_MIN:
        raise ValidationError(
            f"Username must be at least {USERNAME_MIN} characters.",
            code="TooShort",
            field="user_name",
        )
    if len(user_name) > USERNAME_MAX:
        raise ValidationError(
            f"Username must be at most {USERNAME_MAX} characters.",
            code="TooLong",
            field="user_name",
        )
    if not _USERNAME_RE.match(user_name):
        raise ValidationError(
            "Username can only contain letters, numbers, underscores, and periods.",
            field="user_name",
        )
    try:
        with get_session(engine) as session:
            user = _get_user(session, user_id)
            _check_unique(session, user.id, {"user_name": user_name})
            user.user_name = user_name
    except IntegrityError as exc:
        raise _conflict_from_integrity(exc) from None

    logger.info("User %s is now @%s", user_id, user_name)
    return user_name


def _set_image_url(engine: Engine, user_id: str | None, url: str | None) -> str | None:
    """Store *url* as the avatar and return the previous one."""
    with get_session(engine) as session:
        user = _get_user(session, user_id)
        previous = user.image_url
        user.image_url = url
        return previous


def _current_image_url(engine: Engine, user_id: str | None) -> str | None:
    with Session(engine) as session:
        return _get_user(session, user_id).image_url


async def update_avatar(
    engine: Engine,
    storage: StorageClient,
    user_id: str | None,
    *,
    filename: str,
    content: bytes,
    content_type: str | None,
    now: datetime | None = None,
) -> str:
    """Upload a new profile picture and point the profile at it.

    The previous object is removed from storage best-effort; failing to
    remove it never fails the update.
    """
    if not content_type or not content_type.startswith("image/"):
        raise ValidationError("Please upload a valid image file.", field="profile_picture")
    if len(content) > AVATAR_MAX_BYTES:
        raise ValidationError(
            "Image size cannot exceed 5MB.", code="TooLong", field="profile_picture"
        )

    previous = await run_db(_current_image_url, engine, user_id)

    ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else "png"
    stamp = int((now or datetime.now()).timestamp() * 1000)
    path = f"{AVATAR_PREFIX}{user_id}-{stamp}.{ext}"
    url = await storage.upload(content, path, content_type)
    try:
        await run_db(_set_image_url, engine, user_id, url)
    except Exception:
        try:
            await storage.remove(path)
        except Exception:
            logger.warning("Failed to remove orphaned profile picture %s", path, exc_info=True)
        raise

    old_path = storage.path_from_url(previous) if previous else None
    if old_path and old_path != path:
        try:
            await storage.remove(old_path)
        except Exception:
            logger.warning("Failed to remove old profile picture %s", old_path, exc_info=True)

    logger.info("Avatar updated for %s", user_id)
    return url


def get_profile(engine: Engine, user_name: str) -> ProfileView:
    """Public profile by handle, with activity counts and top communities."""
    with Session(engine) as session:
        user = session.scalar(
            select(User).options(selectinload(User.campuses)).where(User.user_name == user_name)
        )
        if user is None:
            raise NotFoundError(f"User @{user_name} not found.", field="user_name")

        post_count = session.scalar(
            select(func.count(Post.id)).where(Post.user_id == user.id)
        ) or 0
        comment_count = session.scalar(
            select(func.count(Comment.id)).where(Comment.user_id == user.id)
        ) or 0

        return ProfileView(
            id=user.id,
            user_name=user.user_name,
            full_name=user.full_name,
            image_url=user.image_url,
            bio_description=user.bio_description,
            primary_role=user.primary_role,
            nim=user.nim,
            student_major=user.student_major,
            student_batch=user.student_batch,
            employee_id=user.employee_id,
            employee_department=user.employee_department,
            campus_locations=user.campus_locations,
            occupation_roles=list(user.occupation_roles or []),
            custom_links=list(user.custom_links or []),
            profile_complete=user.profile_complete,
            created_at=user.created_at,
            post_count=post_count,
            comment_count=comment_count,
            top_communities=user_activity(session, user.id)[:PROFILE_TOP_COMMUNITIES],
        )


def list_user_comments(
    engine: Engine,
    user_id: str,
    page: int | str | None = 1,
    *,
    page_size: int,
) -> tuple[list[UserComment], int]:
    """A member's comments, newest first.  Returns (items, total_pages)."""
    page = clamp_page(page)
    with Session(engine) as session:
        total = session.scalar(
            select(func.count(Comment.id)).where(Comment.user_id == user_id)
        ) or 0
        rows = session.execute(
            select(Comment, Post.title, Post.community_name)
            .join(Post, Comment.post_id == Post.id)
            .where(Comment.user_id == user_id)
            .order_by(Comment.created_at.desc(), Comment.id.desc())
            .offset(page_offset(page, page_size))
            .limit(page_size)
        ).all()
        items = [
            UserComment(
                id=c.id,
                text=c.text,
                post_id=c.post_id,
                post_title=title,
                community_name=community_name,
                created_at=c.created_at,
            )
            for c, title, community_name in rows
        ]
    return items, total_pages(total, page_size)


def resolve_user_id(engine: Engine, user_name: str) -> str:
    """Map a public handle to the user id.  Raises NotFoundError."""
    with Session(engine) as session:
        user_id = session.scalar(select(User.id).where(User.user_name == user_name))
    if user_id is None:
        raise NotFoundError(f"User @{user_name} not found.", field="user_name")
    return user_id
