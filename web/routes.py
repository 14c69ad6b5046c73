"""
web/routes.py -- Jinja2 template routes for the FitApp pages.

These routes serve server-rendered HTML. They share app.state with the API
routes (same user store) but return HTML and redirects instead of JSON.
OAuth buttons link to the API's /api/auth/signin/{provider} endpoint; this
module never talks to a provider itself.

Routes:
  GET  /              -- home: welcome or sign-in prompt
  GET  /dashboard     -- account details (sign-in required)
  GET  /auth/signin   -- sign-in form + OAuth buttons
  POST /auth/signin   -- credentials sign-in
  GET  /auth/signup   -- sign-up form + OAuth buttons
  POST /auth/signup   -- register, then sign in
  POST /auth/signout  -- clear cookie, redirect /
"""

import logging
from pathlib import Path
from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates

from auth.dependencies import safe_next, try_get_current_user
from auth.oauth import get_enabled_providers
from auth.registration import RegistrationError, register_user
from auth.store import UserStore
from auth.tokens import authenticate_user, clear_session_cookie, issue_session

logger = logging.getLogger("fitapp.web")

templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))
# layout.html calls this to decide between the sign-in link and the sign-out button.
templates.env.globals["try_get_current_user"] = try_get_current_user
router = APIRouter()

# ---------------------------------------------------------------------------
# Auth helpers
# ---------------------------------------------------------------------------

# Whitelist mapping for ?error= query params on /auth/signin.
# The raw query param is never passed to templates -- only the message from
# this dict is.
_ERROR_MESSAGES: dict[str, str] = {
    "bad_credentials": "Invalid email or password.",
    "oauth_failed": "Sign-in with that provider failed. Please try again.",
}


def _require_auth(request: Request) -> Optional[RedirectResponse]:
    """Return a redirect to the sign-in page if the request is anonymous, None if OK.

    Call at the top of protected route handlers:
        if redirect := _require_auth(request):
            return redirect
    """
    if try_get_current_user(request) is None:
        return RedirectResponse(f"/auth/signin?next={quote(request.url.path)}", status_code=302)
    return None


# ---------------------------------------------------------------------------
# Pages
# ---------------------------------------------------------------------------


@router.get("/", response_class=HTMLResponse)
def home(request: Request) -> HTMLResponse:
    return templates.TemplateResponse(
        request,
        "home.html",
        {"user": try_get_current_user(request)},
    )


@router.get("/dashboard", response_class=HTMLResponse)
def dashboard(request: Request) -> HTMLResponse:
    if redirect := _require_auth(request):
        return redirect
    return templates.TemplateResponse(
        request,
        "dashboard.html",
        {"user": try_get_current_user(request)},
    )


# ---------------------------------------------------------------------------
# Sign-in
# ---------------------------------------------------------------------------


@router.get("/auth/signin", response_class=HTMLResponse)
def signin_form(request: Request) -> HTMLResponse:
    """Render the sign-in page with the credentials form and OAuth buttons."""
    if try_get_current_user(request) is not None:
        return RedirectResponse("/", status_code=302)

    error_msg = _ERROR_MESSAGES.get(request.query_params.get("error", ""), None)
    next_url = safe_next(request.query_params.get("next"))
    return templates.TemplateResponse(
        request,
        "signin.html",
        {
            "error_msg": error_msg,
            "providers": get_enabled_providers(),
            "next": next_url,
            "callback_url": next_url,
        },
    )


@router.post("/auth/signin", response_class=HTMLResponse)
def signin_post(
    request: Request,
    email: str = Form(default=""),
    password: str = Form(default=""),
    next: str = Form(default="/"),
) -> RedirectResponse:
    """Handle the credentials sign-in form."""
    user_store: UserStore = request.app.state.user_store
    user = authenticate_user(user_store, email, password)
    if user is None:
        return RedirectResponse(
            f"/auth/signin?error=bad_credentials&next={quote(safe_next(next))}",
            status_code=302,
        )

    resp = RedirectResponse(safe_next(next), status_code=302)
    issue_session(resp, user)
    return resp


@router.post("/auth/signout")
def signout(request: Request) -> RedirectResponse:
    """Clear the session cookie and go back home."""
    resp = RedirectResponse("/", status_code=302)
    clear_session_cookie(resp)
    return resp


# ---------------------------------------------------------------------------
# Sign-up
# ---------------------------------------------------------------------------


@router.get("/auth/signup", response_class=HTMLResponse)
def signup_form(request: Request) -> HTMLResponse:
    """Render the sign-up page. Signed-in users go straight home."""
    if try_get_current_user(request) is not None:
        return RedirectResponse("/", status_code=302)
    return templates.TemplateResponse(
        request,
        "signup.html",
        {"providers": get_enabled_providers(), "form": {}},
    )


@router.post("/auth/signup", response_class=HTMLResponse)
def signup_post(
    request: Request,
    first_name: str = Form(default=""),
    last_name: str = Form(default=""),
    email: str = Form(default=""),
    password: str = Form(default=""),
    confirm_password: str = Form(default=""),
) -> HTMLResponse:
    """Register a credentials account and sign it in.

    A rejected form is rendered again with the message and the non-secret
    fields filled back in; the status code follows the rejection (400 / 409).
    """
    user_store: UserStore = request.app.state.user_store
    try:
        user = register_user(
            user_store,
            first_name=first_name,
            last_name=last_name,
            email=email,
            password=password,
            confirm_password=confirm_password,
        )
    except RegistrationError as exc:
        return templates.TemplateResponse(
            request,
            "signup.html",
            {
                "providers": get_enabled_providers(),
                "error_msg": exc.message,
                "form": {"first_name": first_name, "last_name": last_name, "email": email},
            },
            status_code=exc.status_code,
        )

    resp = RedirectResponse("/", status_code=302)
    issue_session(resp, user)
    return resp
