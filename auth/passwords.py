"""
auth/passwords.py -- Password hashing and strength rules.

Passwords: bcrypt used directly (no passlib wrapper). passlib's internal
    wrap-bug detection builds a password longer than 72 bytes, which bcrypt
    4.x+ rejects with an explicit error. Direct bcrypt usage is simpler and
    has no compatibility shim.

72-byte window: bcrypt only looks at the first 72 bytes of its input, and
    recent releases raise instead of truncating. _encode() trims to that
    window so any valid UTF-8 input hashes and verifies consistently. The API
    layer caps password fields well below the point where this matters.

Work factor: the rounds argument comes from Settings.bcrypt_rounds. Each
    increment doubles the cost; tests run with the minimum (4).

Strength rules are checked all at once -- callers get every unmet rule in one
response rather than fixing them one round-trip at a time.

Layer rule: no imports from api/, catalog/, or core/.
"""

from __future__ import annotations

import asyncio
import re
from functools import cached_property

import bcrypt

SPECIAL_CHARACTERS = "@$!%*?&"
MIN_PASSWORD_LENGTH = 8
_BCRYPT_MAX_BYTES = 72

_STRENGTH_RULES: list[tuple[re.Pattern, str]] = [
    (re.compile(r"[a-z]"), "Password must contain at least one lowercase letter"),
    (re.compile(r"[A-Z]"), "Password must contain at least one uppercase letter"),
    (re.compile(r"\d"), "Password must contain at least one number"),
    (
        re.compile(f"[{re.escape(SPECIAL_CHARACTERS)}]"),
        f"Password must contain at least one special character ({SPECIAL_CHARACTERS})",
    ),
]


def _encode(plain: str) -> bytes:
    return plain.encode("utf-8")[:_BCRYPT_MAX_BYTES]


class PasswordHasher:
    """Salted bcrypt hash/verify with a configurable work factor.

    Usage:
        hasher = PasswordHasher(rounds=12)
        digest = hasher.hash("Passw0rd!")
        hasher.verify("Passw0rd!", digest)       # True
        hasher.validate_strength("short")        # list of violation messages
    """

    def __init__(self, rounds: int = 12) -> None:
        self.rounds = rounds

    def hash(self, plain: str) -> str:
        """Return a bcrypt hash of the given plaintext password."""
        return bcrypt.hashpw(_encode(plain), bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify(self, plain: str, hashed: str) -> bool:
        """Return True if the plaintext password matches the bcrypt hash.

        A digest that is not a valid bcrypt string is a mismatch, not an error.
        """
        try:
            return bcrypt.checkpw(_encode(plain), hashed.encode("utf-8"))
        except ValueError:
            return False

    async def hash_async(self, plain: str) -> str:
        """hash() on a worker thread so the event loop keeps serving requests."""
        return await asyncio.to_thread(self.hash, plain)

    async def verify_async(self, plain: str, hashed: str) -> bool:
        return await asyncio.to_thread(self.verify, plain, hashed)

    @cached_property
    def dummy_hash(self) -> str:
        """Hash compared against when an email is unknown.

        Running bcrypt on every login attempt, whether or not the account
        exists, keeps response time from revealing which emails are registered.
        """
        return self.hash("authgate_timing_dummy")

    @staticmethod
    def validate_strength(plain: str | None) -> list[str]:
        """Return one message per unmet rule; an empty list means the password is acceptable."""
        if not plain:
            return ["Password is required"]

        errors: list[str] = []
        if len(plain) < MIN_PASSWORD_LENGTH:
            errors.append(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
        for pattern, message in _STRENGTH_RULES:
            if not pattern.search(plain):
                errors.append(message)
        return errors
