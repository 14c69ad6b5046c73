"""
API request and response models for the FitApp auth endpoints.

These Pydantic v2 models define the HTTP transport contract. They are kept
separate from the dataclasses in auth/models.py, which own the domain shape;
route handlers map between the two.

Request models accept the camelCase keys the browser forms send
(firstName, confirmPassword, callbackUrl) as well as snake_case names.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Body for POST /api/auth/register.

    Every field defaults to "" so a missing field reaches register_user() and
    comes back as the 400 "All fields are required" message rather than a
    generic 422.
    """

    model_config = ConfigDict(populate_by_name=True)

    first_name: str = Field(default="", alias="firstName", max_length=100)
    last_name: str = Field(default="", alias="lastName", max_length=100)
    email: str = Field(default="", max_length=320)
    password: str = Field(default="", max_length=255)
    confirm_password: str = Field(default="", alias="confirmPassword", max_length=255)


class CredentialsRequest(BaseModel):
    """Body for POST /api/auth/callback/credentials."""

    model_config = ConfigDict(populate_by_name=True)

    email: str = Field(default="", max_length=320)
    password: str = Field(default="", max_length=255)
    callback_url: Optional[str] = Field(default=None, alias="callbackUrl")


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class SessionUser(BaseModel):
    """The non-secret claim set of a signed-in user."""

    model_config = ConfigDict(frozen=True)

    id: str
    email: str
    name: str
    first_name: str
    last_name: str
    image: Optional[str] = None


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class CredentialsResponse(BaseModel):
    """Successful credentials sign-in. The session itself travels in the cookie."""

    model_config = ConfigDict(frozen=True)

    ok: bool = True
    url: str
    user: SessionUser


class SessionResponse(BaseModel):
    """GET /api/auth/session for a signed-in user. Anonymous callers get {}."""

    model_config = ConfigDict(frozen=True)

    user: SessionUser
    expires: str


class ProviderInfo(BaseModel):
    """One entry of GET /api/auth/providers."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    type: str  # "oauth" or "credentials"
    signin_url: str


class SignoutResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    url: str = "/"


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str]
