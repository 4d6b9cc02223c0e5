"""
auth/store.py -- SQLAlchemy Core persistence layer for user accounts.

Pattern: Repository + Data Mapper. UserStore is the repository; _row_to_user
is the mapper. Callers never touch SQL directly.

The stored secret (password_hash, salt) is written and read only here. The
two lookups the Authenticator needs -- get_salt() and find_by_password_hash()
-- return the salt or a User, never the hash.

Security:
  All queries use bound parameters. No f-strings in SQL.
  A fresh salt is generated on creation and on every password change.

Errors (see core/errors.py):
  ConflictError     -- username already taken
  DataQualityError  -- username too short, no password on create
  NotFoundError     -- get_user / update_user on an unknown id

Layer rule: no imports from outside auth/ except core/.
"""

from __future__ import annotations

import logging

from sqlalchemy import func, select

from auth.models import Credentials, Role, User
from auth.passwords import generate_salt, hash_password
from auth.schema import user_roles, users
from core.database import Database
from core.errors import ConflictError, DataQualityError, NotFoundError

logger = logging.getLogger("userbase.auth")


def _role_id(role: Role):
    """Scalar subquery resolving a Role to its user_roles.role_id.

    An unseeded role yields NULL, which trips users.role_id NOT NULL and
    surfaces as DataQualityError.
    """
    return select(user_roles.c.role_id).where(user_roles.c.role == role.value).scalar_subquery()


# Every User-returning query selects these three columns through the role join.
_USER_COLUMNS = (users.c.user_id, users.c.username, user_roles.c.role)
_USERS_JOINED = users.join(user_roles, users.c.role_id == user_roles.c.role_id)


class UserStore:
    """Repository for User records and their stored secrets.

    Usage:
        store = UserStore(db)
        user = store.add_user(Credentials("alice", Role.ADMIN, "p1"))
        store.update_user(user.id, Credentials("alice", Role.USER))
        store.delete_user(user.id)
    """

    def __init__(self, db: Database) -> None:
        self._db = db

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def add_user(self, credentials: Credentials) -> User:
        """Register a new user and return it with its assigned id."""
        if not credentials.has_password:
            raise DataQualityError("A password is required to create a user")
        salt = generate_salt()
        try:
            user_id = self._db.insert(
                users.insert().values(
                    role_id=_role_id(credentials.role),
                    username=credentials.username,
                    password_hash=hash_password(credentials.password, salt),
                    salt=salt,
                )
            )
        except ConflictError as exc:
            raise ConflictError(f"Username {credentials.username!r} is already taken") from exc
        logger.info("Created user %s (id=%s, role=%s)", credentials.username, user_id, credentials.role.value)
        return User(id=user_id, role=credentials.role, username=credentials.username)

    def update_user(self, user_id: int, credentials: Credentials) -> User:
        """Overwrite username and role, plus the password when one is given.

        Without a password the existing hash and salt are left as they are,
        so the old password keeps working.
        """
        values = {"username": credentials.username, "role_id": _role_id(credentials.role)}
        if credentials.has_password:
            salt = generate_salt()
            values["password_hash"] = hash_password(credentials.password, salt)
            values["salt"] = salt
        try:
            updated = self._db.execute(users.update().where(users.c.user_id == user_id).values(**values))
        except ConflictError as exc:
            raise ConflictError(f"Username {credentials.username!r} is already taken") from exc
        if updated == 0:
            raise NotFoundError("User not found")
        logger.info(
            "Updated user id=%s (password %s)", user_id, "changed" if credentials.has_password else "unchanged"
        )
        return self.get_user(user_id)

    def delete_user(self, user_id: int) -> bool:
        """Permanently delete a user. Returns True if deleted, False if not found.

        Idempotent: repeat calls return False rather than raising.
        """
        deleted = self._db.execute(users.delete().where(users.c.user_id == user_id)) > 0
        if deleted:
            logger.info("Deleted user id=%s", user_id)
        return deleted

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_user(self, user_id: int) -> User:
        user = self._db.query_first(
            select(*_USER_COLUMNS).select_from(_USERS_JOINED).where(users.c.user_id == user_id),
            _row_to_user,
        )
        if user is None:
            raise NotFoundError("User not found")
        return user

    def get_by_username(self, username: str) -> User | None:
        """Look up a user by exact username (case-sensitive). Returns None if not found."""
        return self._db.query_first(
            select(*_USER_COLUMNS).select_from(_USERS_JOINED).where(users.c.username == username),
            _row_to_user,
        )

    def get_users(self) -> list[User]:
        """Return all users ordered by id."""
        return self._db.query(
            select(*_USER_COLUMNS).select_from(_USERS_JOINED).order_by(users.c.user_id),
            _row_to_user,
        )

    def has_users(self) -> bool:
        """Return True if at least one user exists. Used for first-run bootstrap checks."""
        count = self._db.query_first(select(func.count()).select_from(users), lambda row: row[0])
        return (count or 0) > 0

    # ------------------------------------------------------------------
    # Credential lookups (used by auth.authenticator)
    # ------------------------------------------------------------------

    def get_salt(self, username: str) -> int | None:
        """Return the stored salt for username, or None if no such user."""
        return self._db.query_first(
            select(users.c.salt).where(users.c.username == username),
            lambda row: row.salt,
        )

    def find_by_password_hash(self, username: str, password_hash: str) -> User | None:
        """Return the user whose username and stored hash both match, else None."""
        return self._db.query_first(
            select(*_USER_COLUMNS)
            .select_from(_USERS_JOINED)
            .where((users.c.username == username) & (users.c.password_hash == password_hash)),
            _row_to_user,
        )


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(id=row.user_id, role=Role(row.role), username=row.username)
