"""
bfriends.services.identity — Identity Provider Client
======================================================

Thin async client over the hosted auth service's REST API (GoTrue-style
``/signup``, ``/token``, ``/logout``, ``/user`` endpoints).  Credentials and
e-mail confirmation live there; BFriends only keeps the ``users`` profile
row keyed by the provider's user id.

Transport failures and unexpected responses surface as
:class:`~bfriends.services.errors.UpstreamError`.
"""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

import httpx

from bfriends.services.errors import (
    ConflictError,
    UnauthenticatedError,
    UpstreamError,
    ValidationError,
)

logger = logging.getLogger(__name__)

PASSWORD_MIN = 6
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


@dataclass(frozen=True, slots=True)
class IdentityUser:
    id: str
    email: str


@dataclass(frozen=True, slots=True)
class IdentitySession:
    access_token: str
    user: IdentityUser


def validate_credentials(
    email: str, password: str, allowed_domains: Iterable[str] = ()
) -> str:
    """Check sign-up input before it leaves the process.  Returns the
    normalised e-mail."""
    email = (email or "").strip().lower()
    if not _EMAIL_RE.match(email):
        raise ValidationError("Invalid email address.", field="email")
    domains = tuple(d.lower().lstrip("@") for d in allowed_domains)
    if domains and email.rsplit("@", 1)[1] not in domains:
        allowed = ", ".join(f"@{d}" for d in domains)
        raise ValidationError(f"Email must end with {allowed}.", field="email")
    if len(password or "") < PASSWORD_MIN:
        raise ValidationError(
            f"Password must be at least {PASSWORD_MIN} characters.",
            code="TooShort",
            field="password",
        )
    return email


def _error_message(resp: httpx.Response) -> str:
    try:
        data = resp.json()
    except ValueError:
        return resp.text or f"HTTP {resp.status_code}"
    if isinstance(data, dict):
        for key in ("msg", "error_description", "message", "error"):
            if data.get(key):
                return str(data[key])
    return f"HTTP {resp.status_code}"


def _user_from(data: dict[str, Any]) -> IdentityUser:
    user = data.get("user") or data
    try:
        return IdentityUser(id=str(user["id"]), email=str(user.get("email", "")))
    except (KeyError, TypeError):
        raise UpstreamError("Identity provider returned no user.") from None


class IdentityClient:
    """Async client for the identity provider.

    *transport* is passed straight to :class:`httpx.AsyncClient`; tests use
    :class:`httpx.MockTransport`.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        allowed_domains: Iterable[str] = (),
        timeout: float = 10,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.allowed_domains = tuple(allowed_domains)
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_env(cls, allowed_domains: Iterable[str] = ()) -> IdentityClient:
        base_url = os.getenv("IDENTITY_URL", "").strip()
        api_key = os.getenv("IDENTITY_API_KEY", "").strip()
        if not base_url or not api_key:
            raise RuntimeError(
                "Identity provider is not configured: set IDENTITY_URL and IDENTITY_API_KEY."
            )
        return cls(base_url, api_key, allowed_domains=allowed_domains)

    async def _request(
        self, method: str, path: str, *, token: str | None = None, **kwargs: Any
    ) -> httpx.Response:
        headers = {"apikey": self.api_key}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        try:
            transport = self._transport or httpx.AsyncHTTPTransport(retries=1)
            async with httpx.AsyncClient(
                base_url=self.base_url, timeout=self.timeout, transport=transport
            ) as client:
                return await client.request(method, path, headers=headers, **kwargs)
        except httpx.HTTPError as exc:
            logger.error("Identity provider %s %s failed: %s", method, path, exc)
            raise UpstreamError("Identity provider is unreachable.") from exc

    # ------------------------------------------------------------------
    async def sign_up(self, email: str, password: str) -> IdentityUser:
        email = validate_credentials(email, password, self.allowed_domains)
        resp = await self._request("POST", "/signup", json={"email": email, "password": password})
        if resp.status_code in (400, 409, 422):
            message = _error_message(resp)
            if "already" in message.lower():
                raise ConflictError("This email is already registered.", field="email")
            raise ValidationError(message, field="password")
        if resp.status_code != 200:
            logger.error("Sign-up failed (%s): %s", resp.status_code, _error_message(resp))
            raise UpstreamError("Sign-up failed.")
        user = _user_from(resp.json())
        logger.info("Identity created for %s", user.id)
        return user

    async def sign_in(self, email: str, password: str) -> IdentitySession:
        email = (email or "").strip().lower()
        resp = await self._request(
            "POST",
            "/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        if resp.status_code in (400, 401):
            message = _error_message(resp)
            if "not confirmed" in message.lower():
                raise UnauthenticatedError("Please confirm your email before logging in.")
            raise UnauthenticatedError("Invalid email or password.")
        if resp.status_code != 200:
            logger.error("Sign-in failed (%s): %s", resp.status_code, _error_message(resp))
            raise UpstreamError("Sign-in failed.")
        data = resp.json()
        token = data.get("access_token")
        if not token:
            raise UpstreamError("Identity provider returned no access token.")
        return IdentitySession(access_token=token, user=_user_from(data))

    async def sign_out(self, token: str) -> None:
        resp = await self._request("POST", "/logout", token=token)
        if resp.status_code not in (200, 204, 401):
            logger.warning("Sign-out returned %s", resp.status_code)

    async def get_user(self, token: str) -> IdentityUser | None:
        resp = await self._request("GET", "/user", token=token)
        if resp.status_code in (401, 403, 404):
            return None
        if resp.status_code != 200:
            raise UpstreamError("Could not fetch the signed-in user.")
        return _user_from(resp.json())
