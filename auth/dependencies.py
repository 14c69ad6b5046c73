"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Two ways to present a session token, checked in order:
  1. session_token cookie -- set by every sign-in path.
  2. Authorization: Bearer <token> header -- API clients.

Both converge on a User reloaded from the store, so a session never outlives
its account and always reflects the current profile image.

try_get_current_user() is the soft variant (returns None on failure).
get_current_user() wraps it and raises HTTP 401 if unauthenticated.

Layer rule: no imports from api/ or web/. May import from fastapi because this
module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.models import User
from auth.tokens import SESSION_COOKIE, decode_session_token


def session_token_from_request(request: Request) -> str | None:
    token = request.cookies.get(SESSION_COOKIE)
    if not token:
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            token = auth_header[7:]
    return token or None


def try_get_current_user(request: Request) -> User | None:
    """Return the signed-in User, or None. Never raises."""
    token = session_token_from_request(request)
    if not token:
        return None
    payload = decode_session_token(token)
    if payload is None:
        return None
    return request.app.state.user_store.get_by_id(payload["user_id"])


def get_current_user(request: Request) -> User:
    """Require authentication. Raises HTTP 401 if the request is not authenticated."""
    user = try_get_current_user(request)
    if user is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
        )
    return user


def safe_next(next_url: str | None) -> str:
    """Validate a post-sign-in redirect target. Only relative paths are accepted.

    Rejects absolute URLs and protocol-relative ones ("//evil.example"), which
    would send the browser off-site after sign-in.
    """
    if next_url and next_url.startswith("/") and not next_url.startswith("//") and "\\" not in next_url:
        return next_url
    return "/"
