"""
bfriends.api.main — FastAPI application entry point
====================================================

Run with::

    uvicorn bfriends.api.main:app --reload --port 8000
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

load_dotenv()

from bfriends.api.auth import router as auth_router  # noqa: E402
from bfriends.api.deps import get_config, get_engine  # noqa: E402
from bfriends.api.routes.communities import router as communities_router  # noqa: E402
from bfriends.api.routes.feed import router as feed_router  # noqa: E402
from bfriends.api.routes.friends import router as friends_router  # noqa: E402
from bfriends.api.routes.posts import router as posts_router  # noqa: E402
from bfriends.api.routes.profiles import router as profiles_router  # noqa: E402
from bfriends.database.engine import init_db  # noqa: E402
from bfriends.logging_setup import configure_logging  # noqa: E402
from bfriends.services.errors import BFriendsError  # noqa: E402

logger = logging.getLogger(__name__)


def _cors_origins() -> list[str]:
    """Resolve allowed CORS origins from env with safe defaults.

    Priority:
      1) CORS_ALLOW_ORIGINS (comma-separated)
      2) FRONTEND_URL (single origin)
    """
    raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
    if raw:
        return [origin.strip().rstrip("/") for origin in raw.split(",") if origin.strip()]

    frontend_url = os.getenv("FRONTEND_URL", "").strip()
    if frontend_url:
        return [frontend_url.rstrip("/")]

    return []


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle — create tables, seed the hub community."""
    cfg = get_config()
    configure_logging(cfg.log_level)

    engine = get_engine()
    init_db(engine, cfg.default_community)
    logger.info("BFriends API started — engine ready (%s)", engine.url.database)
    yield
    logger.info("BFriends API shutting down")


app = FastAPI(
    title="BFriends API",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Error rendering
# ---------------------------------------------------------------------------
@app.exception_handler(BFriendsError)
async def bfriends_error_handler(request: Request, exc: BFriendsError):
    if exc.status_code >= 500:
        logger.error("%s %s → %s: %s", request.method, request.url.path, exc.code, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Render body/query validation failures in the same shape as
    service-level ``ValidationError``, naming the first offending field."""
    errors = exc.errors()
    first = errors[0] if errors else {}
    loc = [str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path")]
    return JSONResponse(
        status_code=422,
        content={
            "error": "InvalidValue",
            "message": first.get("msg", "Invalid request."),
            "field": ".".join(loc) or None,
        },
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"error": "Unexpected", "message": "Something went wrong.", "field": None},
    )


# Mount routers
app.include_router(auth_router, prefix="/api")
app.include_router(feed_router, prefix="/api")
app.include_router(posts_router, prefix="/api")
app.include_router(communities_router, prefix="/api")
app.include_router(friends_router, prefix="/api")
app.include_router(profiles_router, prefix="/api")


@app.get("/api/health")
def health():
    return {"status": "ok"}
