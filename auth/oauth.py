"""
auth/oauth.py -- Authlib OAuth provider configuration and OAuth account sync.

Reads configuration from core.config.get_settings() at module load to decide
which providers are active. Only providers with both client ID and secret
configured get registered -- the sign-in and sign-up pages render buttons from
get_enabled_providers().

Security notes:
  Google: the id_token's email is only accepted when email_verified is True.
  Facebook: the Graph API only returns confirmed emails; an account without
  one is rejected, as is a failed Graph API request. Every such failure raises
  ValueError, which the callback route turns into a redirect to
  /auth/signin?error=oauth_failed.

  OAuth state (CSRF protection) is handled by authlib via Starlette
  SessionMiddleware.

Supported providers:
  google   -- Authorization code flow; OIDC discovery.
  facebook -- Authorization code flow; static Graph API endpoints.

Layer rule: no imports from api/ or web/.
"""

from __future__ import annotations

import logging

import httpx
from authlib.integrations.starlette_client import OAuth
from sqlalchemy.exc import IntegrityError

from auth.models import OAuthProfile, SignupProvider, User
from auth.store import UserStore
from core.config import get_settings

logger = logging.getLogger("fitapp.auth.oauth")

_GRAPH_API = "https://graph.facebook.com/v19.0/"
_FACEBOOK_FIELDS = "id,name,email,first_name,last_name,picture.type(large)"

# ---------------------------------------------------------------------------
# Authlib OAuth registry
# ---------------------------------------------------------------------------

oauth = OAuth()

_cfg = get_settings()

if _cfg.google_client_id and _cfg.google_client_secret:
    oauth.register(
        name="google",
        client_id=_cfg.google_client_id,
        client_secret=_cfg.google_client_secret,
        server_metadata_url="https://accounts.google.com/.well-known/openid-configuration",
        client_kwargs={"scope": "openid email profile"},
    )
    logger.info("Google OAuth provider registered")

if _cfg.facebook_client_id and _cfg.facebook_client_secret:
    oauth.register(
        name="facebook",
        client_id=_cfg.facebook_client_id,
        client_secret=_cfg.facebook_client_secret,
        access_token_url=_GRAPH_API + "oauth/access_token",  # noqa: S106 -- URL, not a password
        authorize_url="https://www.facebook.com/v19.0/dialog/oauth",
        api_base_url=_GRAPH_API,
        client_kwargs={"scope": "email public_profile"},
    )
    logger.info("Facebook OAuth provider registered")


# ---------------------------------------------------------------------------
# Provider metadata
# ---------------------------------------------------------------------------


def get_enabled_providers() -> list[dict]:
    """Return {"name", "label"} for every configured OAuth provider."""
    cfg = get_settings()
    providers: list[dict] = []
    if cfg.google_client_id and cfg.google_client_secret:
        providers.append({"name": "google", "label": "Google"})
    if cfg.facebook_client_id and cfg.facebook_client_secret:
        providers.append({"name": "facebook", "label": "Facebook"})
    return providers


# ---------------------------------------------------------------------------
# Profile extraction -- provider-specific normalization
# ---------------------------------------------------------------------------


def split_display_name(name: str | None) -> tuple[str, str]:
    """Split a display name into (first, last).

    The first whitespace-separated token is the first name ("User" when the
    name is empty); the rest, single-space joined, is the last name.
    """
    parts = (name or "").split()
    if not parts:
        return "User", ""
    return parts[0], " ".join(parts[1:])


async def get_oauth_profile(client, provider: str, token: dict) -> OAuthProfile:
    """Extract an OAuthProfile from a provider token response.

    Args:
        client:   The authlib OAuth client for this provider.
        provider: "google" or "facebook".
        token:    The token dict returned by authlib after code exchange.

    Raises:
        ValueError: If a confirmed email cannot be obtained, or the provider is unknown.
    """
    if provider == "google":
        return _get_google_profile(token)
    elif provider == "facebook":
        return await _get_facebook_profile(client, token)
    else:
        raise ValueError(f"Unknown OAuth provider: {provider!r}")


def _get_google_profile(token: dict) -> OAuthProfile:
    """Build a profile from the parsed Google id_token claims."""
    userinfo = token.get("userinfo")
    if not userinfo:
        raise ValueError("google OAuth: no userinfo in token response")
    if not userinfo.get("email_verified", False):
        raise ValueError("google OAuth: email is not verified")
    email = userinfo.get("email")
    if not email:
        raise ValueError("google OAuth: missing email claim in userinfo")

    first, last = userinfo.get("given_name"), userinfo.get("family_name")
    if not first:
        first, last = split_display_name(userinfo.get("name"))
    return OAuthProfile(
        email=email,
        first_name=first,
        last_name=last or "",
        image=userinfo.get("picture"),
        email_verified=True,
    )


async def _get_facebook_profile(client, token: dict) -> OAuthProfile:
    """Fetch the profile from the Graph API /me endpoint."""
    try:
        resp = await client.get("me", params={"fields": _FACEBOOK_FIELDS}, token=token)
        resp.raise_for_status()
    except httpx.HTTPError as exc:
        # Expired or revoked token, missing permission, or the Graph API is unreachable.
        raise ValueError(f"facebook OAuth: profile request failed: {exc}") from exc
    profile = resp.json()

    email = profile.get("email")
    if not email:
        raise ValueError(
            "facebook OAuth: no email returned. The user must have a confirmed email on Facebook and grant access to it."
        )

    first, last = profile.get("first_name"), profile.get("last_name")
    if not first:
        first, last = split_display_name(profile.get("name"))
    picture = (profile.get("picture") or {}).get("data") or {}
    return OAuthProfile(
        email=email,
        first_name=first,
        last_name=last or "",
        image=picture.get("url"),
        email_verified=True,
    )


# ---------------------------------------------------------------------------
# Account sync
# ---------------------------------------------------------------------------


def sync_oauth_user(store: UserStore, provider: str, profile: OAuthProfile) -> User:
    """Return the account for an OAuth sign-in, creating or refreshing it.

    Existing account (matched by email): the stored image is replaced when the
    provider sends a different one, and email_verified is stamped the first
    time a provider confirms the address. Names are left as the user set them.

    New account: created without a password, provider recorded as the signup
    provider.
    """
    user = store.get_by_email(profile.email)
    if user is not None:
        return _refresh_user(store, user, profile)

    new_user = User(
        email=profile.email,
        first_name=profile.first_name,
        last_name=profile.last_name,
        image=profile.image,
        provider=SignupProvider(provider),
    )
    try:
        user_id = store.create_user(new_user)
    except IntegrityError:
        # A concurrent first sign-in with the same email created the account.
        user = store.get_by_email(profile.email)
        if user is None:
            raise
        return _refresh_user(store, user, profile)
    if profile.email_verified:
        store.mark_email_verified(user_id)
    logger.info("Created user_id=%s from %s sign-in", user_id, provider)
    return store.get_by_id(user_id)


def _refresh_user(store: UserStore, user: User, profile: OAuthProfile) -> User:
    if profile.image and profile.image != user.image:
        store.update_image(user.id, profile.image)
    if profile.email_verified and not user.email_verified:
        store.mark_email_verified(user.id)
    return store.get_by_id(user.id)
