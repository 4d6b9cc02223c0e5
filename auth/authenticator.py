"""
auth/authenticator.py -- Username/password login.

Protocol:
  1. Fetch the stored salt for the username.
  2. Hash the supplied password with it.
  3. Match (username, hash) in storage.
  4. On a match, issue a new session.

Unknown username and wrong password raise the identical UnauthorizedError so
the response does not reveal which usernames exist. When the username is
unknown a dummy hash is still computed, so response time does not reveal it
either.

The three statements (salt lookup, match, session insert) are not wrapped in
a transaction. A password change racing a login can make the login fail;
it can never make a wrong password succeed.

Layer rule: no imports from outside auth/ except core/.
"""

from __future__ import annotations

import logging

from auth.models import Credentials, Session
from auth.passwords import hash_password
from auth.sessions import SessionStore
from auth.store import UserStore
from core.errors import UnauthorizedError

logger = logging.getLogger("userbase.auth")

_LOGIN_FAILED = "Username or password incorrect"

# Salt for the timing-equalization hash on unknown usernames.
_DUMMY_SALT = 0


class Authenticator:
    """Validates credentials and issues sessions.

    Usage:
        authenticator = Authenticator(UserStore(db), SessionStore(db))
        session = authenticator.authenticate(Credentials("alice", password="p1"))
    """

    def __init__(self, users: UserStore, sessions: SessionStore) -> None:
        self._users = users
        self._sessions = sessions

    def authenticate(self, credentials: Credentials) -> Session:
        """Log in. Returns a fresh Session or raises UnauthorizedError."""
        if not credentials.has_password:
            logger.warning("Login rejected for %r: no password supplied", credentials.username)
            raise UnauthorizedError(_LOGIN_FAILED)

        salt = self._users.get_salt(credentials.username)
        if salt is None:
            # Equalize timing -- do NOT return before hashing.
            hash_password(credentials.password, _DUMMY_SALT)
            logger.warning("Login failed for %r", credentials.username)
            raise UnauthorizedError(_LOGIN_FAILED)

        user = self._users.find_by_password_hash(credentials.username, hash_password(credentials.password, salt))
        if user is None:
            logger.warning("Login failed for %r", credentials.username)
            raise UnauthorizedError(_LOGIN_FAILED)

        return self._sessions.create_session(user)
