"""
auth/tokens.py -- JWT access/refresh token issue and verification.

Security design decisions:
  JWT: python-jose with HS256 (configurable). Tokens are signed with
       SECRET_KEY and carry user_id, email, role, type, jti, iat and exp.
       The signing key is read once when the TokenIssuer is built at startup
       and never rotated at runtime.

  Two token types share one key. The "type" claim stops a refresh token from
       being replayed as an access token and vice versa.

  jti: a random id per token. Without it, two tokens issued to the same user
       in the same second would be byte-identical, and rotating one would
       silently keep the other alive.

  Expiry is checked here, against the injected clock, rather than inside
       jose. That lets verify() tell "expired" apart from "malformed" and lets
       tests move time without sleeping.

Layer rule: no imports from api/, catalog/, or core/. Settings are passed in
by the caller (api/main.py lifespan, tests, main.py).
"""

from __future__ import annotations

import logging
import secrets
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from jose import JWTError, jwt

from auth.models import Role

if TYPE_CHECKING:
    from auth.models import User

logger = logging.getLogger("authgate.auth")

ACCESS = "access"
REFRESH = "refresh"
BEARER_PREFIX = "Bearer "

_REQUIRED_CLAIMS = ("user_id", "email", "role", "type", "jti", "iat", "exp")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class InvalidToken(Exception):
    """Raised by TokenIssuer.verify().

    expired is True only when the signature checked out and the token is past
    its exp claim. Every other failure (bad signature, garbage input, missing
    claims, wrong token type) has expired=False.
    """

    def __init__(self, reason: str, expired: bool = False) -> None:
        self.reason = reason
        self.expired = expired
        super().__init__(reason)


@dataclass(frozen=True)
class TokenClaims:
    user_id: str
    email: str
    role: Role
    token_type: str
    jti: str
    issued_at: datetime
    expires_at: datetime

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "email": self.email,
            "role": self.role.value,
            "type": self.token_type,
            "iat": int(self.issued_at.timestamp()),
            "exp": int(self.expires_at.timestamp()),
        }


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    expires_in: int
    token_type: str = "Bearer"


class TokenIssuer:
    """Create and verify signed, time-limited access and refresh tokens.

    Usage:
        issuer = TokenIssuer(secret_key=settings.secret_key)
        pair = issuer.issue_pair(user)
        claims = issuer.verify(pair.access_token, expected_type="access")

    clock returns the current aware UTC datetime. Tests pass a fake clock to
    issue tokens "in the past" and exercise expiry without sleeping.
    """

    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS256",
        access_expire_seconds: int = 900,
        refresh_expire_seconds: int = 7 * 24 * 3600,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._secret_key = secret_key
        self._algorithm = algorithm
        self.access_expire_seconds = access_expire_seconds
        self.refresh_expire_seconds = refresh_expire_seconds
        self._clock = clock

    # ------------------------------------------------------------------
    # Issue
    # ------------------------------------------------------------------

    def _encode(self, user: User, token_type: str, lifetime: int) -> str:
        issued_at = self._clock()
        expires_at = issued_at + timedelta(seconds=lifetime)
        payload = {
            "user_id": user.id,
            "email": user.email,
            "role": user.role.value,
            "type": token_type,
            "jti": secrets.token_hex(16),
            "iat": int(issued_at.timestamp()),
            "exp": int(expires_at.timestamp()),
        }
        return jwt.encode(payload, self._secret_key, algorithm=self._algorithm)

    def issue_access_token(self, user: User) -> str:
        return self._encode(user, ACCESS, self.access_expire_seconds)

    def issue_refresh_token(self, user: User) -> str:
        return self._encode(user, REFRESH, self.refresh_expire_seconds)

    def issue_pair(self, user: User) -> TokenPair:
        """Issue a fresh access + refresh token for user.

        Recording the refresh token against the user is the caller's job
        (AuthService), so the issuer stays stateless.
        """
        return TokenPair(
            access_token=self.issue_access_token(user),
            refresh_token=self.issue_refresh_token(user),
            expires_in=self.access_expire_seconds,
        )

    # ------------------------------------------------------------------
    # Verify
    # ------------------------------------------------------------------

    def verify(self, token: str, expected_type: str | None = None) -> TokenClaims:
        """Decode token, check signature, claims, type and expiry.

        Raises InvalidToken on any failure. Expiry is "now >= exp".
        """
        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[self._algorithm],
                options={"verify_exp": False},
            )
        except JWTError as exc:
            raise InvalidToken(f"Malformed or tampered token: {exc}") from exc

        missing = [c for c in _REQUIRED_CLAIMS if c not in payload]
        if missing:
            raise InvalidToken(f"Token is missing claims: {', '.join(missing)}")

        try:
            role = Role(payload["role"])
            issued_at = datetime.fromtimestamp(int(payload["iat"]), tz=timezone.utc)
            expires_at = datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc)
        except (TypeError, ValueError) as exc:
            raise InvalidToken(f"Token has malformed claims: {exc}") from exc

        if expected_type is not None and payload["type"] != expected_type:
            raise InvalidToken(f"Expected a {expected_type} token, got {payload['type']!r}")

        if self._clock() >= expires_at:
            raise InvalidToken("Token expired", expired=True)

        return TokenClaims(
            user_id=str(payload["user_id"]),
            email=str(payload["email"]),
            role=role,
            token_type=str(payload["type"]),
            jti=str(payload["jti"]),
            issued_at=issued_at,
            expires_at=expires_at,
        )

    # ------------------------------------------------------------------
    # Header parsing
    # ------------------------------------------------------------------

    @staticmethod
    def extract_from_header(header_value: str | None) -> str | None:
        """Return the token from an "Authorization: Bearer <token>" value.

        The scheme is matched case-sensitively. Anything else -- missing
        header, other schemes, "Bearer" with nothing after it -- returns None
        rather than raising.
        """
        if not header_value or not header_value.startswith(BEARER_PREFIX):
            return None
        token = header_value[len(BEARER_PREFIX) :].strip()
        return token or None
