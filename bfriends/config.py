"""
bfriends.config — YAML Configuration Loader
============================================

Reads ``config.yaml`` for site-level settings: the name of the general hub,
the timezone that calendar ranking windows are computed in, feed page sizes
and friend-suggestion tuning.  Secrets (database URL, JWT secret, provider
keys) stay in the environment / ``.env``.

Usage::

    from bfriends.config import load_config

    cfg = load_config()              # reads ./config.yaml by default
    print(cfg.default_community)     # "PublicSphere"
    print(cfg.page_size("search"))   # 10
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from zoneinfo import ZoneInfo

import yaml

DEFAULT_PAGE_SIZES: dict[str, int] = {
    "home": 5,
    "community": 5,
    "profile": 5,
    "search": 10,
    "comments": 10,
}


# ---------------------------------------------------------------------------
# Typed settings object
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class BFriendsConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    # Identity
    site_name: str
    default_community: str  # General hub; excluded from affinity scoring

    # Ranking windows ("today", "this week", ...) are computed in this zone
    timezone: str = "UTC"

    # Feed page sizes keyed by scope (home, community, profile, search, comments)
    page_sizes: dict[str, int] = field(default_factory=lambda: dict(DEFAULT_PAGE_SIZES))

    # Friend suggestions
    suggestion_limit: int = 20
    suggestion_top_communities: int = 3

    # Sign-up is restricted to these e-mail domains (empty = any)
    allowed_email_domains: tuple[str, ...] = ()

    log_level: str = "INFO"

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    def page_size(self, scope: str) -> int:
        return self.page_sizes.get(scope, DEFAULT_PAGE_SIZES.get(scope, 5))


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path = "config.yaml") -> BFriendsConfig:
    """Read *path* and return a :class:`BFriendsConfig` instance.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    KeyError
        If a required key is missing from the YAML file.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    page_sizes = dict(DEFAULT_PAGE_SIZES)
    page_sizes.update({k: int(v) for k, v in (raw.get("page_sizes") or {}).items()})

    return BFriendsConfig(
        site_name=raw["site_name"],
        default_community=raw["default_community"],
        timezone=raw.get("timezone") or "UTC",
        page_sizes=page_sizes,
        suggestion_limit=int(raw.get("suggestion_limit", 20)),
        suggestion_top_communities=int(raw.get("suggestion_top_communities", 3)),
        allowed_email_domains=tuple(raw.get("allowed_email_domains") or ()),
        log_level=str(raw.get("log_level", "INFO")).upper(),
    )
