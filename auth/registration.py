"""
auth/registration.py -- Credentials sign-up.

register_user() validates a sign-up form, hashes the password and persists the
account. Every rejection is a RegistrationError subclass carrying an HTTP
status and a user-facing message, so API and web routes can render it without
knowing which rule failed.

Check order (first failure wins): missing fields, password mismatch, password
length, duplicate email.

Layer rule: no imports from api/ or web/.
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError

from auth.models import SignupProvider, User
from auth.store import UserStore
from auth.tokens import MAX_PASSWORD_BYTES, hash_password
from core.config import get_settings

logger = logging.getLogger("fitapp.auth")


class RegistrationError(ValueError):
    """Base class for sign-up rejections."""

    code = "registration_failed"
    status_code = 400
    message = "Registration failed."

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)


class MissingFieldsError(RegistrationError):
    code = "missing_fields"
    message = "All fields are required."


class PasswordMismatchError(RegistrationError):
    code = "password_mismatch"
    message = "Passwords do not match."


class WeakPasswordError(RegistrationError):
    code = "weak_password"


class EmailAlreadyRegisteredError(RegistrationError):
    code = "email_in_use"
    status_code = 409
    message = "Email already in use."


def validate_registration(
    first_name: str,
    last_name: str,
    email: str,
    password: str,
    confirm_password: str,
) -> None:
    """Run the form-level checks. Raises RegistrationError on the first failure."""
    if not all(v and v.strip() for v in (first_name, last_name, email, password, confirm_password)):
        raise MissingFieldsError()
    if password != confirm_password:
        raise PasswordMismatchError()
    min_length = get_settings().password_min_length
    if len(password) < min_length:
        raise WeakPasswordError(f"Password must be at least {min_length} characters.")
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise WeakPasswordError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes.")


def register_user(
    store: UserStore,
    first_name: str,
    last_name: str,
    email: str,
    password: str,
    confirm_password: str,
) -> User:
    """Create a credentials account and return it (without the password hash).

    Raises:
        MissingFieldsError, PasswordMismatchError, WeakPasswordError: form rejected.
        EmailAlreadyRegisteredError: the normalized email already has an account.
    """
    validate_registration(first_name, last_name, email, password, confirm_password)

    if store.get_by_email(email) is not None:
        raise EmailAlreadyRegisteredError()

    new_user = User(
        email=email,
        first_name=first_name,
        last_name=last_name,
        hashed_password=hash_password(password),
        provider=SignupProvider.credentials,
    )
    try:
        user_id = store.create_user(new_user)
    except IntegrityError as exc:
        # Concurrent sign-up with the same email got in first.
        raise EmailAlreadyRegisteredError() from exc

    logger.info("Registered user_id=%s", user_id)
    return store.get_by_id(user_id)
