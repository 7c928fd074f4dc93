"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication and authorization.

Credentials: "Authorization: Bearer <access token>" only. The scheme match is
case-sensitive; anything else counts as no credentials.

authenticate_token() is the hard gate: 401 on a missing, invalid or expired
token, or a user who is gone or deactivated. Expired tokens raise
TokenExpired so clients can tell "refresh and retry" from "log in again".

optional_auth() is the soft variant (returns None on any failure). It is
used by public endpoints that enrich their response for signed-in callers.

require_admin() and require_ownership_or_admin() stack on authenticate_token()
and raise Forbidden (403) for an authenticated caller lacking the right role
or ownership. check_ownership_or_admin() is the same predicate for routes
whose owning-user id comes from a loaded resource or a request body.

The authenticated user is also left on request.state.user and the verified
claims on request.state.token_claims for handlers that want them.

Layer rule: no imports from api/, catalog/, or core/.
  auth/dependencies.py may import from fastapi (for Depends/Request)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

import logging

from fastapi import Depends, Request

from auth.errors import Forbidden, TokenExpired, Unauthorized
from auth.models import User
from auth.store import UserStore
from auth.tokens import ACCESS, InvalidToken, TokenIssuer

logger = logging.getLogger("authgate.auth")


def authenticate_token(request: Request) -> User:
    """Require a valid Bearer access token belonging to an active user.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(user: User = Depends(authenticate_token)): ...
    """
    issuer: TokenIssuer = request.app.state.token_issuer
    user_store: UserStore = request.app.state.user_store

    token = issuer.extract_from_header(request.headers.get("Authorization"))
    if token is None:
        raise Unauthorized("Access token required")

    try:
        claims = issuer.verify(token, expected_type=ACCESS)
    except InvalidToken as exc:
        if exc.expired:
            raise TokenExpired("Access token expired") from exc
        raise Unauthorized("Invalid token") from exc

    user = user_store.find_by_id(claims.user_id)
    if user is None:
        raise Unauthorized("User not found")
    if not user.is_active:
        raise Unauthorized("User account is deactivated")

    request.state.user = user
    request.state.token_claims = claims
    return user


def optional_auth(request: Request) -> User | None:
    """Return the authenticated user, or None without raising.

    Every failure is treated like "no token". Malformed or expired tokens are
    logged at DEBUG so they can be told apart from anonymous traffic when
    troubleshooting, but the caller's response is the same either way.
    """
    if request.headers.get("Authorization") is None:
        return None
    try:
        return authenticate_token(request)
    except Unauthorized as exc:
        logger.debug("optional_auth ignored credentials on %s: %s", request.url.path, exc.message)
        return None


def require_admin(user: User = Depends(authenticate_token)) -> User:
    """Require admin role. 401 if unauthenticated, 403 if not admin."""
    if not user.is_admin:
        raise Forbidden("Admin access required")
    return user


def check_ownership_or_admin(principal: User, owner_id: str | None) -> None:
    """Raise Forbidden unless principal is an admin or owner_id is principal's own id."""
    if principal.is_admin or (owner_id is not None and principal.id == owner_id):
        return
    raise Forbidden("Access denied. You can only access your own resources.")


def require_ownership_or_admin(user_id: str, user: User = Depends(authenticate_token)) -> User:
    """Gate routes with a {user_id} path parameter to that user or an admin."""
    check_ownership_or_admin(user, user_id)
    return user
