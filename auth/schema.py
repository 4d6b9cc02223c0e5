"""
auth/schema.py -- SQLAlchemy Core table definitions for users and sessions.

Three tables:
  user_roles  -- lookup of role names, seeded from auth.models.Role
  users       -- identity plus the stored secret (password_hash, salt)
  sessions    -- opaque UUID tokens bound to a user, with a last-seen stamp

The username policy (minimum length) lives here as a CHECK constraint so
it is enforced by storage, not by the stores. A violation reaches callers as
DataQualityError via core.database error translation.

Timestamps are ISO 8601 text, same as every other store in this codebase.

Layer rule: no imports from outside auth/ except core/.
"""

from __future__ import annotations

import logging

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Column,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    select,
)

from auth.models import Role
from core.database import Database

logger = logging.getLogger("userbase.db")

USERNAME_MIN_LENGTH = 4

metadata = MetaData()

user_roles = Table(
    "user_roles",
    metadata,
    Column("role_id", Integer, primary_key=True, autoincrement=True),
    Column("role", String(30), nullable=False, unique=True),
)

users = Table(
    "users",
    metadata,
    Column("user_id", Integer, primary_key=True, autoincrement=True),
    Column("role_id", Integer, ForeignKey("user_roles.role_id"), nullable=False),
    Column("username", String(255), nullable=False, unique=True),
    Column("password_hash", String(64), nullable=False),  # bcrypt-pbkdf hex
    Column("salt", BigInteger, nullable=False),  # signed 64-bit
    CheckConstraint(f"length(username) >= {USERNAME_MIN_LENGTH}", name="ck_users_username_length"),
)

sessions = Table(
    "sessions",
    metadata,
    Column("session_id", String(36), primary_key=True),  # UUID4, canonical text form
    Column("user_id", Integer, ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False),
    Column("last_seen", String(32), nullable=False),
)


def init_schema(db: Database) -> None:
    """Create any missing tables and seed user_roles.

    Idempotent -- safe to call on every startup. Only roles missing from the
    table are inserted, so re-running never trips the UNIQUE(role) constraint.
    """
    metadata.create_all(db.engine)
    existing = set(db.query(select(user_roles.c.role), lambda row: row.role))
    for role in Role:
        if role.value not in existing:
            db.insert(user_roles.insert().values(role=role.value))
            logger.info("Seeded role %s", role.value)
