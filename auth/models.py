"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, almost no logic). The store and the
routes do the work; these classes own the domain shape.

Layer rule: no imports from api/ or web/.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class SignupProvider(str, Enum):
    """How an account was first created."""

    credentials = "credentials"
    google = "google"
    facebook = "facebook"


@dataclass
class User:
    """A FitApp user account.

    email is stored stripped and lowercased; UserStore normalizes it on every
    write and lookup, so callers may pass user input as typed.

    hashed_password is None for OAuth-only users, and also None on any User
    loaded without include_password=True -- the column is not selected by
    default queries.

    email_verified, created_at and updated_at are ISO 8601 UTC strings.
    """

    email: str
    first_name: str
    last_name: str = ""
    id: int | None = None
    hashed_password: str | None = None  # None = OAuth-only user or not loaded
    image: str | None = None
    email_verified: str | None = None
    provider: SignupProvider = SignupProvider.credentials
    created_at: str | None = None
    updated_at: str | None = None

    @property
    def name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass
class OAuthProfile:
    """Identity returned by an OAuth provider, normalized across providers."""

    email: str
    first_name: str
    last_name: str = ""
    image: str | None = None
    email_verified: bool = False
