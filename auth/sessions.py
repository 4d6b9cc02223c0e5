"""
auth/sessions.py -- Session token persistence.

A session is an opaque UUID4 handed to the client after login and presented
in place of credentials afterwards. uuid4() draws from os.urandom, giving
122 random bits; collisions are not checked for.

get_session() is two independent statements: the joined lookup, then a
last_seen touch keyed by the same token. If the session is removed in
between, the touch updates zero rows and the lookup result still stands.

Sessions never expire here. last_seen is recorded for callers that want
to impose their own idle policy.

Layer rule: no imports from outside auth/ except core/.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import select

from auth.models import Role, Session, User
from auth.schema import sessions, user_roles, users
from core.database import Database
from core.errors import NotFoundError

logger = logging.getLogger("userbase.sessions")


def _now() -> datetime:
    return datetime.now(timezone.utc)


class SessionStore:
    """Repository for Session records.

    Usage:
        store = SessionStore(db)
        session = store.create_session(user)
        store.get_session(session.session_id)   # touches last_seen
        store.remove_session(session.session_id)
    """

    def __init__(self, db: Database) -> None:
        self._db = db

    def create_session(self, user: User) -> Session:
        """Issue a new session for user and return it."""
        session_id = uuid.uuid4()
        now = _now()
        self._db.insert(
            sessions.insert().values(session_id=str(session_id), user_id=user.id, last_seen=now.isoformat())
        )
        logger.info("Issued session for user id=%s", user.id)
        return Session(session_id=session_id, user=user, last_seen=now)

    def get_session(self, session_id: uuid.UUID) -> Session:
        """Fetch a session and its user, stamping last_seen.

        Raises NotFoundError if the token is unknown (or its user is gone).
        """
        token = str(session_id)
        session = self._db.query_first(
            select(sessions.c.session_id, sessions.c.last_seen, users.c.user_id, users.c.username, user_roles.c.role)
            .select_from(
                sessions.join(users, sessions.c.user_id == users.c.user_id).join(
                    user_roles, users.c.role_id == user_roles.c.role_id
                )
            )
            .where(sessions.c.session_id == token),
            _row_to_session,
        )
        if session is None:
            raise NotFoundError("Session not found")

        now = _now()
        touched = self._db.execute(
            sessions.update().where(sessions.c.session_id == token).values(last_seen=now.isoformat())
        )
        if touched == 0:
            logger.debug("Session for user id=%s removed before last_seen update", session.user.id)
            return session
        return Session(session_id=session.session_id, user=session.user, last_seen=now)

    def remove_session(self, session_id: uuid.UUID) -> bool:
        """Log out. Returns True if the session existed, False otherwise.

        Idempotent: safe to repeat indefinitely.
        """
        removed = self._db.execute(sessions.delete().where(sessions.c.session_id == str(session_id))) > 0
        logger.debug("Remove session: %s", "removed" if removed else "not found")
        return removed

    def remove_user_sessions(self, user_id: int) -> int:
        """Log a user out everywhere. Returns the number of sessions removed."""
        removed = self._db.execute(sessions.delete().where(sessions.c.user_id == user_id))
        logger.info("Removed %d session(s) for user id=%s", removed, user_id)
        return removed


# ---------------------------------------------------------------------------
# Row mapper
# ---------------------------------------------------------------------------


def _row_to_session(row) -> Session:
    return Session(
        session_id=uuid.UUID(row.session_id),
        user=User(id=row.user_id, role=Role(row.role), username=row.username),
        last_seen=datetime.fromisoformat(row.last_seen),
    )
