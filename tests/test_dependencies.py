"""
tests/test_dependencies.py -- Unit tests for auth/dependencies.py.

The dependencies are called directly with a hand-built Starlette Request, so
each failure mode is checked without routing in the way:
  - authenticate_token: missing/malformed header, invalid, expired, wrong
    type, deleted user, deactivated user, success populates request.state
  - optional_auth: never raises
  - require_admin / check_ownership_or_admin: 403 semantics
"""

from __future__ import annotations

import asyncio
from types import SimpleNamespace

import pytest
from starlette.requests import Request

from auth.dependencies import (
    authenticate_token,
    check_ownership_or_admin,
    optional_auth,
    require_admin,
    require_ownership_or_admin,
)
from auth.errors import Forbidden, TokenExpired, Unauthorized
from auth.store import UserStore
from auth.tokens import TokenIssuer
from conftest import ACCESS_TTL, FakeClock, user_data


def _request(issuer: TokenIssuer, store: UserStore, authorization: str | None = None) -> Request:
    headers = [(b"authorization", authorization.encode())] if authorization is not None else []
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/test",
        "query_string": b"",
        "headers": headers,
        "app": SimpleNamespace(state=SimpleNamespace(token_issuer=issuer, user_store=store)),
    }
    return Request(scope)


@pytest.fixture
def user(user_store: UserStore):
    return asyncio.run(user_store.create(user_data(email="user@example.com")))


@pytest.fixture
def admin(user_store: UserStore):
    return asyncio.run(user_store.create(user_data(email="admin@example.com", role="admin")))


class TestAuthenticateToken:
    def test_valid_token(self, issuer: TokenIssuer, user_store: UserStore, user) -> None:
        token = issuer.issue_access_token(user)
        request = _request(issuer, user_store, f"Bearer {token}")
        assert authenticate_token(request) is user
        assert request.state.user is user
        assert request.state.token_claims.user_id == user.id

    @pytest.mark.parametrize("header", [None, "", "Basic abc", "bearer abc", "Bearer "])
    def test_missing_or_malformed_header(self, issuer: TokenIssuer, user_store: UserStore, header) -> None:
        with pytest.raises(Unauthorized, match="Access token required"):
            authenticate_token(_request(issuer, user_store, header))

    def test_garbage_token(self, issuer: TokenIssuer, user_store: UserStore) -> None:
        with pytest.raises(Unauthorized, match="Invalid token") as exc_info:
            authenticate_token(_request(issuer, user_store, "Bearer not-a-token"))
        assert not isinstance(exc_info.value, TokenExpired)

    def test_refresh_token_is_not_an_access_token(self, issuer: TokenIssuer, user_store: UserStore, user) -> None:
        token = issuer.issue_refresh_token(user)
        with pytest.raises(Unauthorized, match="Invalid token"):
            authenticate_token(_request(issuer, user_store, f"Bearer {token}"))

    def test_expired_token(self, issuer: TokenIssuer, user_store: UserStore, user, clock: FakeClock) -> None:
        token = issuer.issue_access_token(user)
        clock.advance(ACCESS_TTL + 1)
        with pytest.raises(TokenExpired) as exc_info:
            authenticate_token(_request(issuer, user_store, f"Bearer {token}"))
        assert exc_info.value.code == "token_expired"
        assert exc_info.value.status_code == 401

    def test_deleted_user(self, issuer: TokenIssuer, user_store: UserStore, user) -> None:
        token = issuer.issue_access_token(user)
        user_store.delete(user.id)
        with pytest.raises(Unauthorized, match="User not found"):
            authenticate_token(_request(issuer, user_store, f"Bearer {token}"))

    def test_deactivated_user(self, issuer: TokenIssuer, user_store: UserStore, user) -> None:
        token = issuer.issue_access_token(user)
        user.is_active = False
        with pytest.raises(Unauthorized, match="deactivated"):
            authenticate_token(_request(issuer, user_store, f"Bearer {token}"))


class TestOptionalAuth:
    def test_no_header(self, issuer: TokenIssuer, user_store: UserStore) -> None:
        assert optional_auth(_request(issuer, user_store)) is None

    def test_bad_token_is_anonymous(self, issuer: TokenIssuer, user_store: UserStore) -> None:
        assert optional_auth(_request(issuer, user_store, "Bearer junk")) is None

    def test_expired_token_is_anonymous(
        self, issuer: TokenIssuer, user_store: UserStore, user, clock: FakeClock
    ) -> None:
        token = issuer.issue_access_token(user)
        clock.advance(ACCESS_TTL)
        assert optional_auth(_request(issuer, user_store, f"Bearer {token}")) is None

    def test_valid_token(self, issuer: TokenIssuer, user_store: UserStore, user) -> None:
        token = issuer.issue_access_token(user)
        assert optional_auth(_request(issuer, user_store, f"Bearer {token}")) is user


class TestAuthorization:
    def test_require_admin(self, user, admin) -> None:
        assert require_admin(admin) is admin
        with pytest.raises(Forbidden, match="Admin access required"):
            require_admin(user)

    def test_owner_passes(self, user) -> None:
        check_ownership_or_admin(user, user.id)

    def test_admin_passes_for_anyone(self, admin, user) -> None:
        check_ownership_or_admin(admin, user.id)
        check_ownership_or_admin(admin, None)

    def test_other_user_is_forbidden(self, user, admin) -> None:
        with pytest.raises(Forbidden):
            check_ownership_or_admin(user, admin.id)

    def test_missing_owner_is_forbidden_for_non_admin(self, user) -> None:
        with pytest.raises(Forbidden):
            check_ownership_or_admin(user, None)

    def test_require_ownership_or_admin(self, user, admin) -> None:
        assert require_ownership_or_admin(user.id, user) is user
        assert require_ownership_or_admin(user.id, admin) is admin
        with pytest.raises(Forbidden):
            require_ownership_or_admin(admin.id, user)
