"""
api/routes/auth.py -- Registration and the sign-in / session endpoints.

Routes (mounted under /api):
  POST /api/auth/register               -- credentials sign-up; 201
  POST /api/auth/callback/credentials   -- email/password sign-in; sets session cookie
  GET  /api/auth/session                -- current session claims, or {}
  GET  /api/auth/providers              -- configured sign-in methods (public)
  GET  /api/auth/signin/{provider}      -- redirect to the OAuth provider
  GET  /api/auth/callback/{provider}    -- OAuth callback; sets session cookie
  POST /api/auth/signout                -- clears the session cookie

Security:
  POST /register and POST /callback/credentials are rate-limited per IP.
  authenticate_user() provides timing equalization -- use it, never inline.
  Sign-in failures return one generic message whether or not the email exists.
  Cache-Control: no-store on every response that issues a session.
  callbackUrl is passed through safe_next() before any redirect.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

import httpx
from authlib.integrations.starlette_client import OAuthError
from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse, RedirectResponse

from api.limiter import limiter
from api.models import (
    CredentialsRequest,
    CredentialsResponse,
    ErrorDetail,
    ErrorResponse,
    MessageResponse,
    ProviderInfo,
    RegisterRequest,
    SessionResponse,
    SessionUser,
    SignoutResponse,
)
from auth.dependencies import safe_next, session_token_from_request
from auth.oauth import get_enabled_providers, get_oauth_profile, sync_oauth_user
from auth.registration import RegistrationError, register_user
from auth.store import UserStore
from auth.tokens import (
    authenticate_user,
    clear_session_cookie,
    decode_session_token,
    issue_session,
    session_claims,
)
from core.config import get_settings

logger = logging.getLogger("fitapp.api.auth")

_settings = get_settings()

# Where the OAuth callback sends the browser; kept in the Starlette session
# between the provider redirect and the callback.
_CALLBACK_URL_KEY = "auth_callback_url"

_OAUTH_FAILED = "/auth/signin?error=oauth_failed"

router = APIRouter()


# ---------------------------------------------------------------------------
# Credentials
# ---------------------------------------------------------------------------


@router.post("/auth/register", response_model=MessageResponse, status_code=201)
@limiter.limit(_settings.register_rate_limit)
def register(request: Request, body: RegisterRequest) -> JSONResponse:
    """Create a credentials account.

    400 for missing fields, mismatched or too short passwords; 409 when the
    email is taken. The browser signs in with a separate call afterwards.
    """
    user_store: UserStore = request.app.state.user_store
    try:
        register_user(
            user_store,
            first_name=body.first_name,
            last_name=body.last_name,
            email=body.email,
            password=body.password,
            confirm_password=body.confirm_password,
        )
    except RegistrationError as exc:
        raise HTTPException(
            status_code=exc.status_code,
            detail={"code": exc.code, "message": exc.message},
        ) from exc
    return JSONResponse(status_code=201, content=MessageResponse(message="Registered successfully").model_dump())


@router.post("/auth/callback/credentials", response_model=CredentialsResponse)
@limiter.limit(_settings.login_rate_limit)
def credentials_signin(request: Request, body: CredentialsRequest) -> JSONResponse:
    """Verify email and password; on success set the session cookie."""
    user_store: UserStore = request.app.state.user_store
    user = authenticate_user(user_store, body.email, body.password)
    if user is None:
        resp = JSONResponse(
            status_code=401,
            content=ErrorResponse(
                error=ErrorDetail(code="bad_credentials", message="Invalid email or password.")
            ).model_dump(),
        )
        resp.headers["Cache-Control"] = "no-store"
        return resp

    resp = JSONResponse(
        content=CredentialsResponse(
            url=safe_next(body.callback_url),
            user=SessionUser(**session_claims(user)),
        ).model_dump()
    )
    issue_session(resp, user)
    return resp


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


@router.get("/auth/session")
def get_session(request: Request) -> JSONResponse:
    """Return {"user": claims, "expires": iso} for a valid session, {} otherwise.

    The claims are rebuilt from the stored account rather than echoed from
    the token, so an updated profile image shows up without signing in again.
    """
    token = session_token_from_request(request)
    payload = decode_session_token(token) if token else None
    user = request.app.state.user_store.get_by_id(payload["user_id"]) if payload else None
    if user is None:
        return JSONResponse(content={})

    expires = datetime.fromtimestamp(payload["exp"], tz=timezone.utc).isoformat()
    session = SessionResponse(user=SessionUser(**session_claims(user)), expires=expires)
    return JSONResponse(content=session.model_dump())


@router.get("/auth/providers", response_model=list[ProviderInfo])
async def list_providers() -> list[ProviderInfo]:
    """Public: the sign-in methods the pages should offer."""
    providers = [
        ProviderInfo(id=p["name"], name=p["label"], type="oauth", signin_url=f"/api/auth/signin/{p['name']}")
        for p in get_enabled_providers()
    ]
    providers.append(
        ProviderInfo(id="credentials", name="Credentials", type="credentials", signin_url="/api/auth/callback/credentials")
    )
    return providers


@router.post("/auth/signout", response_model=SignoutResponse)
async def signout() -> JSONResponse:
    """Clear the session cookie."""
    resp = JSONResponse(content=SignoutResponse().model_dump())
    clear_session_cookie(resp)
    return resp


# ---------------------------------------------------------------------------
# OAuth
# ---------------------------------------------------------------------------


@router.get("/auth/signin/{provider}")
async def oauth_signin(request: Request, provider: str, callbackUrl: str | None = None) -> RedirectResponse:  # noqa: N803
    """Redirect the browser to the provider's authorization page.

    The provider name is checked against the enabled list first so a crafted
    name cannot reach create_client().
    """
    enabled = {p["name"] for p in get_enabled_providers()}
    if provider not in enabled:
        return RedirectResponse(_OAUTH_FAILED, status_code=302)

    request.session[_CALLBACK_URL_KEY] = safe_next(callbackUrl)
    client = request.app.state.oauth.create_client(provider)
    redirect_uri = str(request.url_for("oauth_callback", provider=provider))
    return await client.authorize_redirect(request, redirect_uri)


@router.get("/auth/callback/{provider}", name="oauth_callback")
async def oauth_callback(request: Request, provider: str) -> RedirectResponse:
    """Finish an OAuth sign-in and issue the session cookie.

    Flow:
      1. Exchange the authorization code (authlib checks state via the session).
      2. Extract a confirmed email and profile -- ValueError if unconfirmed.
      3. Create the account on first sign-in, refresh the image otherwise.
      4. Issue the session, redirect to the stored callbackUrl.
    """
    enabled = {p["name"] for p in get_enabled_providers()}
    if provider not in enabled:
        return RedirectResponse(_OAUTH_FAILED, status_code=302)

    client = request.app.state.oauth.create_client(provider)
    try:
        token = await client.authorize_access_token(request)
    except (OAuthError, httpx.HTTPError):
        logger.exception("OAuth token exchange failed for provider %r", provider)
        return RedirectResponse(_OAUTH_FAILED, status_code=302)

    try:
        profile = await get_oauth_profile(client, provider, token)
    except ValueError:
        logger.warning("OAuth sign-in rejected: unverified or missing email from %r", provider)
        return RedirectResponse(_OAUTH_FAILED, status_code=302)

    user = sync_oauth_user(request.app.state.user_store, provider, profile)

    next_url = safe_next(request.session.pop(_CALLBACK_URL_KEY, None))
    resp = RedirectResponse(next_url, status_code=302)
    issue_session(resp, user)
    return resp
