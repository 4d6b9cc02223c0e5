"""Unit tests for auth/authenticator.py -- the login protocol.

Covers:
- Register then log in with the same password -> session bound to the user
- Wrong password and unknown username raise the identical UnauthorizedError
- Password updates: without a password the old one still works; with a new
  one the old stops working and the new one works
- Role and username changes flow through to the issued session
- The plaintext password never reaches the logs
- A password change racing a login fails closed
- Concurrent login / lookup / logout cycles on a file database
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import pytest

from auth.authenticator import Authenticator
from auth.models import Credentials, Role, User
from auth.schema import init_schema
from auth.sessions import SessionStore
from auth.store import UserStore
from core.database import Database
from core.errors import ErrorType, UnauthorizedError


def _login_error(authenticator: Authenticator, credentials: Credentials) -> UnauthorizedError:
    with pytest.raises(UnauthorizedError) as exc_info:
        authenticator.authenticate(credentials)
    return exc_info.value


class TestAuthenticate:
    def test_alice_scenario(self, authenticator: Authenticator, user_store: UserStore) -> None:
        """Register alice/ADMIN/p1, log in with p1, then fail with a wrong password."""
        user_store.add_user(Credentials(username="alice", role=Role.ADMIN, password="p1"))

        session = authenticator.authenticate(Credentials(username="alice", password="p1"))
        assert session.user.username == "alice"
        assert session.user.role is Role.ADMIN

        with pytest.raises(UnauthorizedError):
            authenticator.authenticate(Credentials(username="alice", password="wrong"))

    def test_session_is_bound_to_user(
        self, authenticator: Authenticator, session_store: SessionStore, alice: User
    ) -> None:
        session = authenticator.authenticate(Credentials(username="alice", password="p1"))
        assert session.user == alice
        assert session_store.get_session(session.session_id).user == alice

    def test_each_login_issues_new_session(self, authenticator: Authenticator, alice: User) -> None:
        first = authenticator.authenticate(Credentials(username="alice", password="p1"))
        second = authenticator.authenticate(Credentials(username="alice", password="p1"))
        assert first.session_id != second.session_id

    def test_role_in_credentials_is_ignored(self, authenticator: Authenticator, alice: User) -> None:
        """Login takes the role from storage, not from the caller."""
        session = authenticator.authenticate(Credentials(username="alice", role=Role.USER, password="p1"))
        assert session.user.role is Role.ADMIN


class TestLoginFailures:
    def test_wrong_password_and_unknown_user_are_indistinguishable(
        self, authenticator: Authenticator, alice: User
    ) -> None:
        wrong_password = _login_error(authenticator, Credentials(username="alice", password="wrong"))
        unknown_user = _login_error(authenticator, Credentials(username="mallory", password="p1"))
        assert type(wrong_password) is type(unknown_user)
        assert wrong_password.error_type is unknown_user.error_type is ErrorType.UNAUTHORIZED
        assert str(wrong_password) == str(unknown_user)

    def test_missing_password(self, authenticator: Authenticator, alice: User) -> None:
        error = _login_error(authenticator, Credentials(username="alice"))
        assert error.error_type is ErrorType.UNAUTHORIZED

    def test_username_is_case_sensitive(self, authenticator: Authenticator, alice: User) -> None:
        _login_error(authenticator, Credentials(username="ALICE", password="p1"))

    def test_deleted_user_cannot_log_in(
        self, authenticator: Authenticator, user_store: UserStore, alice: User
    ) -> None:
        user_store.delete_user(alice.id)
        _login_error(authenticator, Credentials(username="alice", password="p1"))

    def test_failure_log_omits_password(
        self, authenticator: Authenticator, alice: User, caplog: pytest.LogCaptureFixture
    ) -> None:
        with caplog.at_level(logging.WARNING, logger="userbase.auth"):
            _login_error(authenticator, Credentials(username="alice", password="s3cr3t-guess"))
        assert "alice" in caplog.text
        assert "s3cr3t-guess" not in caplog.text


class TestPasswordChanges:
    def test_update_without_password_keeps_old_password(
        self, authenticator: Authenticator, user_store: UserStore, alice: User
    ) -> None:
        user_store.update_user(alice.id, Credentials(username="alice", role=Role.USER))
        session = authenticator.authenticate(Credentials(username="alice", password="p1"))
        assert session.user.role is Role.USER

    def test_update_with_password_replaces_old_password(
        self, authenticator: Authenticator, user_store: UserStore, alice: User
    ) -> None:
        user_store.update_user(alice.id, Credentials(username="alice", role=Role.ADMIN, password="p2"))
        _login_error(authenticator, Credentials(username="alice", password="p1"))
        assert authenticator.authenticate(Credentials(username="alice", password="p2")).user == alice

    def test_renamed_user_logs_in_under_new_name(
        self, authenticator: Authenticator, user_store: UserStore, alice: User
    ) -> None:
        user_store.update_user(alice.id, Credentials(username="alicia", role=Role.ADMIN))
        _login_error(authenticator, Credentials(username="alice", password="p1"))
        assert authenticator.authenticate(Credentials(username="alicia", password="p1")).user.id == alice.id

    def test_existing_sessions_survive_password_change(
        self, authenticator: Authenticator, user_store: UserStore, session_store: SessionStore, alice: User
    ) -> None:
        """Changing the password does not log out other sessions; remove_user_sessions does."""
        session = authenticator.authenticate(Credentials(username="alice", password="p1"))
        user_store.update_user(alice.id, Credentials(username="alice", role=Role.ADMIN, password="p2"))
        assert session_store.get_session(session.session_id).user == alice
        assert session_store.remove_user_sessions(alice.id) == 1


# ---------------------------------------------------------------------------
# Races and concurrency
# ---------------------------------------------------------------------------


class _PasswordChangedMidLoginStore(UserStore):
    """Changes the password to p2 after the salt is read, before the match.

    The caller gets the salt that was stored *before* the change.
    """

    def __init__(self, db: Database, user: User) -> None:
        super().__init__(db)
        self._user = user
        self.armed = True

    def get_salt(self, username: str) -> int | None:
        salt = super().get_salt(username)
        if self.armed:
            self.armed = False
            self.update_user(
                self._user.id, Credentials(username=self._user.username, role=self._user.role, password="p2")
            )
        return salt


class TestConcurrentPasswordChange:
    def test_old_password_fails_during_change(self, db: Database, session_store: SessionStore, alice: User) -> None:
        """Stale salt + new hash can never match: the login fails, it does not succeed."""
        store = _PasswordChangedMidLoginStore(db, alice)
        with pytest.raises(UnauthorizedError):
            Authenticator(store, session_store).authenticate(Credentials(username="alice", password="p1"))
        assert store.armed is False

    def test_new_password_fails_during_change(self, db: Database, session_store: SessionStore, alice: User) -> None:
        """The new password is hashed with the stale salt, so it fails on the raced call too."""
        store = _PasswordChangedMidLoginStore(db, alice)
        authenticator = Authenticator(store, session_store)
        with pytest.raises(UnauthorizedError):
            authenticator.authenticate(Credentials(username="alice", password="p2"))
        # Once the change has landed, the new password works and the old one does not.
        assert authenticator.authenticate(Credentials(username="alice", password="p2")).user == alice
        with pytest.raises(UnauthorizedError):
            authenticator.authenticate(Credentials(username="alice", password="p1"))


class TestThreadedSessions:
    def test_login_lookup_logout_cycles(self, tmp_path: Path) -> None:
        """Several threads sharing one Database: every cycle completes cleanly."""
        database = Database(f"sqlite:///{tmp_path / 'threads.db'}")
        init_schema(database)
        users = UserStore(database)
        sessions = SessionStore(database)
        authenticator = Authenticator(users, sessions)
        alice = users.add_user(Credentials(username="alice", role=Role.ADMIN, password="p1"))

        def cycle(_: int) -> bool:
            session = authenticator.authenticate(Credentials(username="alice", password="p1"))
            assert sessions.get_session(session.session_id).user == alice
            return sessions.remove_session(session.session_id)

        try:
            with ThreadPoolExecutor(max_workers=4) as pool:
                results = list(pool.map(cycle, range(40)))
            assert results == [True] * 40
            assert sessions.remove_user_sessions(alice.id) == 0
        finally:
            database.close()
