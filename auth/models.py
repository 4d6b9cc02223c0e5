"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores do the work.

The stored secret (password_hash, salt) is deliberately absent from User: it
never leaves auth/store.py.

Layer rule: no imports from outside auth/.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class Role(str, Enum):
    ADMIN = "ADMIN"
    USER = "USER"


@dataclass(frozen=True)
class User:
    id: int
    role: Role
    username: str


@dataclass
class Credentials:
    """What a caller hands in to register, update, or log in.

    password is optional: update_user() without one leaves the stored
    secret untouched. The plaintext is never persisted.
    """

    username: str
    role: Role = Role.USER
    password: str | None = None

    @property
    def has_password(self) -> bool:
        return bool(self.password)

    def __repr__(self) -> str:
        # Keep plaintext out of logs and tracebacks.
        return f"Credentials(username={self.username!r}, role={self.role.value!r}, password=***)"


@dataclass(frozen=True)
class Session:
    """A logged-in user. session_id is the token the client presents."""

    session_id: uuid.UUID
    user: User
    last_seen: datetime
