"""
tests/conftest.py -- Shared fixtures for userbase tests.

This module provides:
  - db: a fresh in-memory SQLite Database with the schema initialised
  - user_store / session_store / authenticator: components wired to db
  - alice: a registered ADMIN user with password "p1"

Each test gets its own Database, so no state leaks between tests. Plain
sqlite:///:memory: is fine here: SQLAlchemy pins one connection per thread
for in-memory SQLite and these tests are single-threaded.

PASSWORD_HASH_ROUNDS must be set before any auth import: auth.passwords
reads the cost factor once at module load.
"""

from __future__ import annotations

import os
from collections.abc import Generator

# CRITICAL: Set before any auth/core import so get_settings() picks them up.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("PASSWORD_HASH_ROUNDS", "1")

import pytest

from auth.authenticator import Authenticator
from auth.models import Credentials, Role, User
from auth.schema import init_schema
from auth.sessions import SessionStore
from auth.store import UserStore
from core.database import Database


@pytest.fixture
def db() -> Generator[Database, None, None]:
    database = Database("sqlite:///:memory:")
    init_schema(database)
    yield database
    database.close()


@pytest.fixture
def user_store(db: Database) -> UserStore:
    return UserStore(db)


@pytest.fixture
def session_store(db: Database) -> SessionStore:
    return SessionStore(db)


@pytest.fixture
def authenticator(user_store: UserStore, session_store: SessionStore) -> Authenticator:
    return Authenticator(user_store, session_store)


@pytest.fixture
def alice(user_store: UserStore) -> User:
    """Registered ADMIN user 'alice' with password 'p1'."""
    return user_store.add_user(Credentials(username="alice", role=Role.ADMIN, password="p1"))
