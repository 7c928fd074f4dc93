"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class. Dataclasses own domain shape; the store and service do
the work. The two serialisers below are the only place that decides which
fields leave the process -- hashed_password and refresh_tokens never do.

Layer rule: no imports from api/, catalog/, or core/.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class Role(str, Enum):
    user = "user"
    admin = "admin"


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class User:
    """A registered identity.

    id is generated once (uuid4) and never reassigned. email is stored
    normalised (stripped, lowercased) by UserStore, which also owns the
    uniqueness check. refresh_tokens lists every refresh token still honoured
    for this user, oldest first.
    """

    name: str
    email: str
    hashed_password: str
    age: int
    city: str
    role: Role = Role.user
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    is_active: bool = True
    last_login: str | None = None
    refresh_tokens: list[str] = field(default_factory=list)
    created_at: str = field(default_factory=now_iso)
    updated_at: str = field(default_factory=now_iso)

    @property
    def is_admin(self) -> bool:
        return self.role == Role.admin

    def to_dict(self) -> dict:
        """Full view -- for the user themself and for admins."""
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "age": self.age,
            "city": self.city,
            "role": self.role.value,
            "is_active": self.is_active,
            "last_login": self.last_login,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    def to_public_dict(self) -> dict:
        """Reduced view shown to other users and in admin listings."""
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "age": self.age,
            "city": self.city,
            "role": self.role.value,
            "created_at": self.created_at,
        }
