"""
auth/service.py -- Credential lifecycle orchestration.

AuthService ties UserStore, PasswordHasher and TokenIssuer together:
registration, login, refresh-token rotation, logout, password change, and
the admin user-management operations. Every failure is one of the typed
errors in auth/errors.py; the route layer never decides status codes itself.

Lifecycle of one login session:
  Anonymous -> Authenticated (access token valid)
            -> AccessExpired (access lapsed, refresh token still listed)
            -> refresh() -> Authenticated with a new pair
            -> logout()/change_password()/deactivation -> Revoked -> Anonymous

Layer rule: no imports from api/, catalog/, or core/.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from auth.errors import Conflict, Forbidden, NotFound, TokenExpired, Unauthorized, ValidationFailure
from auth.models import Role, User
from auth.store import UserStore
from auth.tokens import REFRESH, InvalidToken, TokenIssuer, TokenPair

logger = logging.getLogger("authgate.auth")

INVALID_CREDENTIALS = "Invalid credentials"


@dataclass(frozen=True)
class AuthResult:
    user: User
    tokens: TokenPair


class AuthService:
    def __init__(self, store: UserStore, issuer: TokenIssuer) -> None:
        self.store = store
        self.issuer = issuer
        self.hasher = store.hasher

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def _start_session(self, user: User) -> TokenPair:
        tokens = self.issuer.issue_pair(user)
        self.store.add_refresh_token(user.id, tokens.refresh_token)
        self.store.update_last_login(user.id)
        return tokens

    def _check_password_strength(self, password: str | None) -> None:
        violations = self.hasher.validate_strength(password)
        if violations:
            raise ValidationFailure("Password validation failed", errors=violations)

    async def register(self, data: dict[str, Any]) -> AuthResult:
        """Create a regular user and log them straight in.

        Self-registration always yields role "user"; a role in data is ignored.
        Raises ValidationFailure (weak password) or Conflict (email taken).
        """
        self._check_password_strength(data.get("password"))
        if self.store.email_exists(data["email"]):
            raise Conflict()
        user = await self.store.create({**data, "role": Role.user, "is_active": True})
        logger.info("Registered user %s", user.id)
        return AuthResult(user=user, tokens=self._start_session(user))

    async def login(self, email: str, password: str) -> AuthResult:
        user = await self.store.authenticate(email, password)
        if user is None:
            logger.info("Failed login attempt")
            raise Unauthorized(INVALID_CREDENTIALS)
        return AuthResult(user=user, tokens=self._start_session(user))

    async def refresh(self, refresh_token: str) -> TokenPair:
        """Exchange a live refresh token for a new pair, retiring the old one.

        The token must verify (signature, type, expiry) AND still be listed
        on its user. A token removed by logout, rotation or password change is
        refused even if it has not expired yet.
        """
        try:
            claims = self.issuer.verify(refresh_token, expected_type=REFRESH)
        except InvalidToken as exc:
            if exc.expired:
                raise TokenExpired("Refresh token expired") from exc
            raise Unauthorized("Invalid refresh token") from exc

        user = self.store.find_by_id(claims.user_id)
        if user is None or not user.is_active:
            raise Unauthorized("Invalid refresh token")

        tokens = self.issuer.issue_pair(user)
        if not self.store.rotate_refresh_token(user.id, refresh_token, tokens.refresh_token):
            logger.warning("Refresh token reuse refused for user %s", user.id)
            raise Unauthorized("Invalid refresh token")
        return tokens

    def logout(self, user_id: str, refresh_token: str | None = None) -> None:
        """Drop one refresh token (this device) or all of them (everywhere)."""
        if refresh_token:
            self.store.remove_refresh_token(user_id, refresh_token)
        else:
            self.store.clear_refresh_tokens(user_id)

    async def change_password(self, user_id: str, current_password: str, new_password: str) -> None:
        """Verify the current password, store the new one, end every session."""
        user = self.store.find_by_id(user_id)
        if user is None:
            raise NotFound("User not found")
        if not await self.hasher.verify_async(current_password, user.hashed_password):
            raise Unauthorized("Current password is incorrect")
        self._check_password_strength(new_password)

        await self.store.update(user_id, {"password": new_password})
        self.store.clear_refresh_tokens(user_id)
        logger.info("Password changed for user %s; all refresh tokens revoked", user_id)

    # ------------------------------------------------------------------
    # Profile
    # ------------------------------------------------------------------

    async def update_profile(self, user_id: str, patch: dict[str, Any]) -> User:
        if patch.get("password") is not None:
            raise ValidationFailure("Use change password endpoint to update password")
        if patch.get("role") is not None:
            raise ValidationFailure("Role cannot be changed through profile update")
        user = await self.store.update(user_id, patch)
        if user is None:
            raise NotFound("User not found")
        return user

    # ------------------------------------------------------------------
    # Admin user management
    # ------------------------------------------------------------------

    async def create_user(self, data: dict[str, Any]) -> User:
        """Admin create path. The caller may choose the role."""
        self._check_password_strength(data.get("password"))
        user = await self.store.create(data)
        logger.info("Admin created user %s with role %s", user.id, user.role.value)
        return user

    def get_user(self, user_id: str) -> User:
        user = self.store.find_by_id(user_id)
        if user is None:
            raise NotFound("User not found")
        return user

    async def update_user(self, actor: User, user_id: str, patch: dict[str, Any]) -> User:
        """Owner-or-admin update. Only admins may change role or is_active.

        A password can only be set here by an admin for another account; the
        owner must go through change_password(), which checks the current
        one. Either way a new password or a deactivation ends every session.
        """
        self.get_user(user_id)
        if not actor.is_admin:
            if patch.get("role") is not None:
                raise Forbidden("Only admin can change user role")
            if patch.get("is_active") is not None:
                raise Forbidden("Only admin can activate/deactivate users")
        if patch.get("is_active") is False and actor.id == user_id:
            raise ValidationFailure("Cannot deactivate your own account")
        if patch.get("password") is not None:
            if not actor.is_admin or actor.id == user_id:
                raise ValidationFailure("Use change password endpoint to update password")
            self._check_password_strength(patch["password"])

        user = await self.store.update(user_id, patch)
        if user is None:
            raise NotFound("User not found")
        if patch.get("password") is not None or patch.get("is_active") is False:
            self.store.clear_refresh_tokens(user_id)
            logger.info("All refresh tokens revoked for user %s by %s", user_id, actor.id)
        return user

    def delete_user(self, actor: User, user_id: str) -> User:
        if actor.id == user_id:
            raise ValidationFailure("Cannot delete your own account")
        user = self.store.delete(user_id)
        if user is None:
            raise NotFound("User not found")
        logger.info("User %s deleted by %s", user_id, actor.id)
        return user

    async def set_active(self, actor: User, user_id: str, active: bool) -> User:
        """Activate or deactivate an account. Deactivation revokes every refresh token."""
        if not active and actor.id == user_id:
            raise ValidationFailure("Cannot deactivate your own account")
        self.get_user(user_id)
        user = await self.store.update(user_id, {"is_active": active})
        if user is None:
            raise NotFound("User not found")
        if not active:
            self.store.clear_refresh_tokens(user_id)
        logger.info("User %s %s by %s", user_id, "activated" if active else "deactivated", actor.id)
        return user
