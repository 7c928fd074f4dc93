"""
auth/store.py -- In-memory repository for User records.

Pattern: Repository. UserStore is built once per process (api/main.py
lifespan) and handed to the service and dependencies through app.state.
Teardown is dropping the reference -- nothing is persisted.

Concurrency:
  Route handlers run on a single event loop. The only await points in this
  module are bcrypt calls, and every check-then-mutate sequence (email
  uniqueness + insert, remove old refresh token + append new one) happens
  after the last await of its method. No other request can interleave
  between the check and the write, so no lock is needed.

  Anything that hashes must finish hashing BEFORE it looks at the users map.
  Reordering that would open a duplicate-email race.

Layer rule: no imports from api/, catalog/, or core/.
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Any

from auth.errors import Conflict
from auth.models import Role, User, now_iso
from auth.passwords import PasswordHasher

logger = logging.getLogger("authgate.auth")

# Fields a patch may touch. id, created_at and the token list are never
# patchable; hashed_password is only reachable via "password".
_PATCHABLE = {"name", "email", "age", "city", "role", "is_active"}

_DEMO_USERS: list[dict[str, Any]] = [
    {
        "name": "Admin User",
        "email": "admin@example.com",
        "password": "Admin123!",
        "age": 30,
        "city": "New York",
        "role": "admin",
    },
    {
        "name": "John Doe",
        "email": "john@example.com",
        "password": "User123!",
        "age": 25,
        "city": "Los Angeles",
        "role": "user",
    },
    {
        "name": "Jane Smith",
        "email": "jane@example.com",
        "password": "User123!",
        "age": 28,
        "city": "Chicago",
        "role": "user",
    },
]


def normalize_email(email: str) -> str:
    return email.strip().lower()


class UserStore:
    """Repository for User entities.

    Usage:
        store = UserStore(PasswordHasher(rounds=12))
        user = await store.create({"name": "Ada", "email": "ada@x.com", "password": "Passw0rd!",
                                   "age": 36, "city": "London"})
        store.find_by_email("ADA@x.com")     # same user -- emails are case-normalised
    """

    def __init__(self, hasher: PasswordHasher) -> None:
        self.hasher = hasher
        self._users: dict[str, User] = {}

    async def seed_demo_data(self) -> None:
        """Create the sample admin and regular accounts if they are missing."""
        for data in _DEMO_USERS:
            if not self.email_exists(data["email"]):
                await self.create(data)
        logger.info("Demo users available: %s", ", ".join(u["email"] for u in _DEMO_USERS))

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def find_all(self) -> list[User]:
        return list(self._users.values())

    def find_by_id(self, user_id: str) -> User | None:
        return self._users.get(user_id)

    def find_by_email(self, email: str) -> User | None:
        wanted = normalize_email(email)
        return next((u for u in self._users.values() if u.email == wanted), None)

    def find_by_role(self, role: Role | str) -> list[User]:
        return [u for u in self._users.values() if u.role == Role(role)]

    def email_exists(self, email: str, exclude_id: str | None = None) -> bool:
        wanted = normalize_email(email)
        return any(u.email == wanted and u.id != exclude_id for u in self._users.values())

    def count(self) -> int:
        return len(self._users)

    def active_count(self) -> int:
        return sum(1 for u in self._users.values() if u.is_active)

    def stats(self) -> dict[str, Any]:
        """Aggregate figures for GET /api/users/stats."""
        users = self.find_all()
        by_city = Counter(u.city for u in users)
        return {
            "total_users": len(users),
            "active_users": self.active_count(),
            "admin_users": len(self.find_by_role(Role.admin)),
            "regular_users": len(self.find_by_role(Role.user)),
            "average_age": round(sum(u.age for u in users) / len(users), 2) if users else 0,
            "cities": len(by_city),
            "users_by_city": dict(by_city),
            "recent_logins": sum(1 for u in users if u.last_login),
        }

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def create(self, data: dict[str, Any]) -> User:
        """Hash the password, then insert a new user.

        data keys: name, email, password, age, city, and optionally role and
        is_active. Raises Conflict if the email is already registered.
        """
        hashed = await self.hasher.hash_async(data["password"])

        # No await below this line -- the uniqueness check and insert are atomic.
        email = normalize_email(data["email"])
        if self.email_exists(email):
            raise Conflict()
        user = User(
            name=data["name"],
            email=email,
            hashed_password=hashed,
            age=data["age"],
            city=data["city"],
            role=Role(data.get("role") or Role.user),
            is_active=data.get("is_active", True),
        )
        self._users[user.id] = user
        logger.info("User created: id=%s role=%s", user.id, user.role.value)
        return user

    async def update(self, user_id: str, patch: dict[str, Any]) -> User | None:
        """Apply patch to an existing user. Returns None if user_id is unknown.

        A "password" key is re-hashed through the hasher before storing; the
        plaintext never reaches the record. An "email" key is normalised and
        must not belong to another user (Conflict). Unknown keys are ignored.
        """
        if self.find_by_id(user_id) is None:
            return None

        hashed = None
        if patch.get("password"):
            hashed = await self.hasher.hash_async(patch["password"])

        # The user may have been deleted while we were hashing.
        user = self.find_by_id(user_id)
        if user is None:
            return None

        changes = {k: v for k, v in patch.items() if k in _PATCHABLE and v is not None}
        if "email" in changes:
            changes["email"] = normalize_email(changes["email"])
            if self.email_exists(changes["email"], exclude_id=user_id):
                raise Conflict()
        if "role" in changes:
            changes["role"] = Role(changes["role"])

        for key, value in changes.items():
            setattr(user, key, value)
        if hashed is not None:
            user.hashed_password = hashed
        user.updated_at = now_iso()
        return user

    def delete(self, user_id: str) -> User | None:
        """Remove and return the user, or None if not found."""
        return self._users.pop(user_id, None)

    async def authenticate(self, email: str, password: str) -> User | None:
        """Return the user if email + password match an active account, else None.

        Fails closed and uniformly: unknown email, wrong password, and
        inactive account all return None after exactly one bcrypt comparison,
        so neither the result nor the timing says which case applied.
        """
        user = self.find_by_email(email)
        if user is None:
            await self.hasher.verify_async(password, self.hasher.dummy_hash)
            return None
        if not await self.hasher.verify_async(password, user.hashed_password):
            return None
        if not user.is_active:
            return None
        return user

    def update_last_login(self, user_id: str) -> None:
        user = self.find_by_id(user_id)
        if user is not None:
            user.last_login = now_iso()

    # ------------------------------------------------------------------
    # Refresh tokens
    # ------------------------------------------------------------------

    def add_refresh_token(self, user_id: str, token: str) -> None:
        user = self.find_by_id(user_id)
        if user is not None:
            user.refresh_tokens.append(token)

    def remove_refresh_token(self, user_id: str, token: str) -> None:
        user = self.find_by_id(user_id)
        if user is not None:
            user.refresh_tokens = [t for t in user.refresh_tokens if t != token]

    def has_refresh_token(self, user_id: str, token: str) -> bool:
        user = self.find_by_id(user_id)
        return user is not None and token in user.refresh_tokens

    def clear_refresh_tokens(self, user_id: str) -> None:
        user = self.find_by_id(user_id)
        if user is not None:
            user.refresh_tokens = []

    def rotate_refresh_token(self, user_id: str, old: str, new: str) -> bool:
        """Swap old for new in one step. Returns False if old was not active.

        The membership check and the swap are one synchronous block, so two
        requests racing with the same refresh token cannot both succeed.
        """
        user = self.find_by_id(user_id)
        if user is None or old not in user.refresh_tokens:
            return False
        user.refresh_tokens = [t for t in user.refresh_tokens if t != old]
        user.refresh_tokens.append(new)
        return True
