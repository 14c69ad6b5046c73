"""
auth/tokens.py -- Password hashing, credential verification, and session tokens.

Security design decisions:
  Passwords: bcrypt used directly (no passlib wrapper). The cost factor comes
       from Settings.bcrypt_rounds. _DUMMY_HASH enables timing equalization in
       authenticate_user() so response time does not reveal whether an email
       is registered.

  Sessions: python-jose with HS256. The token carries the session claims
       (id, email, name parts, image) plus sub / user_id / exp. Verification
       returns None on any failure -- the request layer treats that as
       "not signed in".

  Claims: session_claims() is the single place that decides which user
       fields leave the server. The password hash is never one of them.

Layer rule: no imports from api/ or web/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

import bcrypt
from jose import JWTError, jwt

from core.config import get_settings

if TYPE_CHECKING:
    from auth.models import User
    from auth.store import UserStore

logger = logging.getLogger("fitapp.auth")

_settings = get_settings()

_ALGORITHM = "HS256"

SESSION_COOKIE = "session_token"

# bcrypt only looks at the first 72 bytes of its input; bcrypt>=5 raises on longer input.
MAX_PASSWORD_BYTES = 72

# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a salted bcrypt hash of the given plaintext password."""
    salt = bcrypt.gensalt(rounds=_settings.bcrypt_rounds)
    return bcrypt.hashpw(plain.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except Exception:
        return False


# Computed once at module load so the first sign-in attempt is not measurably
# slower than later ones.
_DUMMY_HASH: str = hash_password("fitapp_timing_dummy")


def authenticate_user(store: UserStore, email: str, password: str) -> User | None:
    """Verify an email/password pair against the stored bcrypt hash.

    Always runs bcrypt whether or not the account exists:
    - Unknown email or OAuth-only account: bcrypt runs against _DUMMY_HASH
    - Wrong password: bcrypt runs against the real hash

    Returns the User (with hashed_password cleared) on success, None otherwise.
    """
    if not email or not password:
        return None
    user = store.get_by_email(email, include_password=True)
    if user is None or user.hashed_password is None:
        verify_password(password, _DUMMY_HASH)
        return None
    if not verify_password(password, user.hashed_password):
        return None
    user.hashed_password = None
    return user


# ---------------------------------------------------------------------------
# Session claims and JWT
# ---------------------------------------------------------------------------


def session_claims(user: User) -> dict:
    """Return the minimal, non-secret claim set for a signed-in user."""
    return {
        "id": str(user.id),
        "email": user.email,
        "name": user.name,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "image": user.image,
    }


def create_session_token(user: User, expire_seconds: int = 0) -> str:
    """Encode a signed JWT carrying the user's session claims.

    Args:
        user:           The authenticated user. Must have an id.
        expire_seconds: Session duration in seconds. If 0 (default), uses
                        Settings.token_expire_seconds.
    """
    duration = expire_seconds if expire_seconds > 0 else _settings.token_expire_seconds
    expire = datetime.now(timezone.utc) + timedelta(seconds=duration)
    payload = session_claims(user)
    payload.update(sub=user.email, user_id=user.id, exp=expire)
    return jwt.encode(payload, _settings.secret_key, algorithm=_ALGORITHM)


def decode_session_token(token: str) -> dict | None:
    """Decode and verify a session JWT. Returns the payload dict or None on any failure."""
    try:
        payload = jwt.decode(token, _settings.secret_key, algorithms=[_ALGORITHM])
    except JWTError:
        return None
    if not isinstance(payload.get("user_id"), int):
        return None
    return payload


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def set_session_cookie(response, token: str, expire_seconds: int = 0) -> None:
    """Write the session JWT as an httpOnly cookie on the response.

    samesite="lax" keeps the cookie off cross-site POSTs; secure follows
    SECURE_COOKIES; max_age matches the JWT expiry so both expire together.
    """
    duration = expire_seconds if expire_seconds > 0 else _settings.token_expire_seconds
    response.set_cookie(
        SESSION_COOKIE,
        value=token,
        httponly=True,
        samesite="lax",
        secure=_settings.secure_cookies,
        max_age=duration,
    )


def clear_session_cookie(response) -> None:
    response.delete_cookie(SESSION_COOKIE)


def issue_session(response, user: User) -> str:
    """Sign a session token for user and attach it to response.

    Used by every sign-in path (API credentials, web form, OAuth callback)
    so all of them produce the same cookie. Returns the encoded token.
    """
    token = create_session_token(user)
    set_session_cookie(response, token)
    response.headers["Cache-Control"] = "no-store"
    logger.info("Session issued for user_id=%s (provider=%s)", user.id, user.provider.value)
    return token
