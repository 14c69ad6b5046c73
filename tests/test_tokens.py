"""Unit tests for auth/tokens.py -- hashing, credential verification, session tokens."""

from datetime import datetime, timedelta, timezone

from jose import jwt
from starlette.responses import Response

from auth.models import User
from auth.tokens import (
    SESSION_COOKIE,
    authenticate_user,
    create_session_token,
    decode_session_token,
    hash_password,
    issue_session,
    session_claims,
    verify_password,
)
from conftest import RUNNER_EMAIL, RUNNER_PASSWORD, make_user
from core.config import get_settings

# ---------------------------------------------------------------------------
# Hashing
# ---------------------------------------------------------------------------


def test_password_round_trip():
    hashed = hash_password("s3cret-pass")
    assert hashed != "s3cret-pass"
    assert verify_password("s3cret-pass", hashed) is True
    assert verify_password("wrong-pass", hashed) is False


def test_hash_is_salted():
    assert hash_password("same-password") != hash_password("same-password")


def test_verify_password_never_raises_on_garbage_hash():
    assert verify_password("anything", "not-a-bcrypt-hash") is False


# ---------------------------------------------------------------------------
# authenticate_user
# ---------------------------------------------------------------------------


def test_authenticate_user_success_strips_hash(store):
    uid = make_user(store)
    user = authenticate_user(store, RUNNER_EMAIL, RUNNER_PASSWORD)
    assert user is not None
    assert user.id == uid
    assert user.hashed_password is None


def test_authenticate_user_email_case_insensitive(store):
    make_user(store)
    assert authenticate_user(store, "RUNNER@example.com", RUNNER_PASSWORD) is not None


def test_authenticate_user_wrong_password(store):
    make_user(store)
    assert authenticate_user(store, RUNNER_EMAIL, "not-the-password") is None


def test_authenticate_user_unknown_email(store):
    assert authenticate_user(store, "ghost@example.com", RUNNER_PASSWORD) is None


def test_authenticate_user_oauth_only_account(store):
    make_user(store, email="oauth@example.com", password=None)
    assert authenticate_user(store, "oauth@example.com", "") is None
    assert authenticate_user(store, "oauth@example.com", "anything-at-all") is None


# ---------------------------------------------------------------------------
# Claims and JWT
# ---------------------------------------------------------------------------


def _user() -> User:
    return User(
        id=7,
        email="rita@example.com",
        first_name="Rita",
        last_name="Runner",
        hashed_password="$2b$04$secretsecretsecretsecretsecretsecretsecretsecretsecre",
        image="https://img.example/rita.png",
    )


def test_session_claims_expose_only_public_fields():
    claims = session_claims(_user())
    assert claims == {
        "id": "7",
        "email": "rita@example.com",
        "name": "Rita Runner",
        "first_name": "Rita",
        "last_name": "Runner",
        "image": "https://img.example/rita.png",
    }


def test_session_token_round_trip_without_secret():
    token = create_session_token(_user())
    payload = decode_session_token(token)
    assert payload["user_id"] == 7
    assert payload["sub"] == "rita@example.com"
    assert payload["first_name"] == "Rita"
    assert "hashed_password" not in payload
    assert not any("$2b$" in str(v) for v in payload.values())


def test_decode_rejects_tampered_token():
    header, _payload, signature = create_session_token(_user()).split(".")
    forged = jwt.encode({"user_id": 1, "exp": datetime.now(timezone.utc) + timedelta(hours=1)}, "k" * 40, "HS256")
    forged_payload = forged.split(".")[1]
    assert decode_session_token(f"{header}.{forged_payload}.{signature}") is None


def test_decode_rejects_foreign_key():
    token = jwt.encode({"user_id": 7, "exp": datetime.now(timezone.utc) + timedelta(hours=1)}, "x" * 40, "HS256")
    assert decode_session_token(token) is None


def test_decode_rejects_expired_token():
    past = datetime.now(timezone.utc) - timedelta(minutes=5)
    token = jwt.encode({"user_id": 7, "exp": past}, get_settings().secret_key, "HS256")
    assert decode_session_token(token) is None


def test_issue_session_sets_cookie_and_no_store():
    resp = Response()
    token = issue_session(resp, _user())
    cookie = resp.headers["set-cookie"]
    assert cookie.startswith(f"{SESSION_COOKIE}={token}")
    assert "httponly" in cookie.lower()
    assert "samesite=lax" in cookie.lower()
    assert resp.headers["cache-control"] == "no-store"
