"""Unit tests for auth/dependencies.py -- token lookup, current user, safe_next."""

from types import SimpleNamespace

import pytest
from fastapi import HTTPException
from starlette.requests import Request

from auth.dependencies import get_current_user, safe_next, try_get_current_user
from auth.tokens import SESSION_COOKIE, create_session_token
from conftest import make_user


def _request(store, headers: dict | None = None) -> Request:
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/",
        "query_string": b"",
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
        "app": SimpleNamespace(state=SimpleNamespace(user_store=store)),
    }
    return Request(scope)


def test_anonymous_request_raises_401(store):
    with pytest.raises(HTTPException) as exc_info:
        get_current_user(_request(store))
    assert exc_info.value.status_code == 401
    assert exc_info.value.detail["code"] == "unauthorized"


def test_cookie_session_returns_user(store):
    uid = make_user(store)
    token = create_session_token(store.get_by_id(uid))
    user = get_current_user(_request(store, {"Cookie": f"{SESSION_COOKIE}={token}"}))
    assert user.id == uid
    assert user.hashed_password is None


def test_bearer_header_returns_user(store):
    uid = make_user(store)
    token = create_session_token(store.get_by_id(uid))
    assert get_current_user(_request(store, {"Authorization": f"Bearer {token}"})).id == uid


def test_token_for_deleted_account_is_anonymous(store):
    uid = make_user(store)
    token = create_session_token(store.get_by_id(uid))
    other_store_request = _request(SimpleNamespace(get_by_id=lambda user_id: None), {"Cookie": f"{SESSION_COOKIE}={token}"})
    assert try_get_current_user(other_store_request) is None
    with pytest.raises(HTTPException):
        get_current_user(other_store_request)


def test_invalid_token_is_anonymous(store):
    assert try_get_current_user(_request(store, {"Authorization": "Bearer not-a-jwt"})) is None


@pytest.mark.parametrize(
    ("target", "expected"),
    [
        ("/dashboard", "/dashboard"),
        ("/dashboard?tab=runs", "/dashboard?tab=runs"),
        (None, "/"),
        ("", "/"),
        ("https://evil.example/", "/"),
        ("//evil.example", "/"),
        ("/\\evil.example", "/"),
    ],
)
def test_safe_next(target, expected):
    assert safe_next(target) == expected
