"""
core/database.py -- Injectable storage handle over a SQLAlchemy Engine.

One Database is built per process (or per test) and passed explicitly to
every store. There is no module-level engine: substituting storage in tests
is a constructor argument, not a monkeypatch.

The handle exposes four primitives, mirroring what the stores need:

  query(stmt, mapper)        -> list[T]       zero or more mapped rows
  query_first(stmt, mapper)  -> T | None      explicit optional, never raises NotFound
  execute(stmt)              -> int           affected-row count
  insert(stmt)               -> primary key   generated (or supplied) key

Each call checks out its own connection and commits on its own. There is no
cross-statement transaction; callers that chain statements accept the race
windows that implies.

Error translation: every SQLAlchemyError is re-raised as a DataAccessError
subclass so callers never import sqlalchemy.exc. Unique violations become
ConflictError, other integrity violations become DataQualityError, anything
else (connection refused, locked DB, bad SQL) is a generic DataAccessError.

Layer rule: core/ is the kernel. This module may not import from auth/.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any, TypeVar

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, Row
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from core.config import get_settings
from core.errors import ConflictError, DataAccessError, DataQualityError

logger = logging.getLogger("userbase.db")

T = TypeVar("T")

# SQLSTATE for unique_violation (PostgreSQL) and the MySQL duplicate-key errno.
_PG_UNIQUE_VIOLATION = "23505"
_MYSQL_DUP_ENTRY = 1062


# ---------------------------------------------------------------------------
# SQLite connection pragmas
# ---------------------------------------------------------------------------


def _set_sqlite_pragmas(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode and foreign key enforcement.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool. foreign_keys is off by default in SQLite,
    which would silently ignore ON DELETE CASCADE on sessions.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")
    dbapi_conn.execute("PRAGMA foreign_keys=ON")


# ---------------------------------------------------------------------------
# Error translation
# ---------------------------------------------------------------------------


def _is_unique_violation(exc: IntegrityError) -> bool:
    orig = exc.orig
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate is not None:
        # The message text echoes row values, so a SQLSTATE is authoritative.
        return sqlstate == _PG_UNIQUE_VIOLATION
    args = getattr(orig, "args", ())
    if args and args[0] == _MYSQL_DUP_ENTRY:
        return True
    message = str(orig).upper()
    return "UNIQUE" in message or "DUPLICATE" in message


@contextmanager
def _translate_errors() -> Iterator[None]:
    try:
        yield
    except IntegrityError as exc:
        logger.debug("Integrity violation: %s", exc.orig)
        if _is_unique_violation(exc):
            raise ConflictError("Value violates a uniqueness constraint") from exc
        raise DataQualityError("Value violates a data constraint") from exc
    except SQLAlchemyError as exc:
        logger.debug("Database failure: %s", exc)
        raise DataAccessError("Database operation failed") from exc


# ---------------------------------------------------------------------------
# Handle
# ---------------------------------------------------------------------------


class Database:
    """Storage handle shared by UserStore and SessionStore.

    Usage:
        db = Database("sqlite:///:memory:")
        init_schema(db)
        users = UserStore(db)
        db.close()
    """

    def __init__(self, db_url: str | None = None) -> None:
        db_url = db_url or get_settings().database_url
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_sqlite_pragmas)
        logger.debug("Opened database %s", self.engine.url.render_as_string(hide_password=True))

    def query(self, statement, mapper: Callable[[Row], T]) -> list[T]:
        """Run a SELECT and map every row."""
        with _translate_errors(), self.engine.connect() as conn:
            rows = conn.execute(statement).fetchall()
        return [mapper(r) for r in rows]

    def query_first(self, statement, mapper: Callable[[Row], T]) -> T | None:
        """Run a SELECT and map the first row, or return None when there is none."""
        with _translate_errors(), self.engine.connect() as conn:
            row = conn.execute(statement).first()
        return mapper(row) if row is not None else None

    def execute(self, statement) -> int:
        """Run an UPDATE/DELETE, commit, and return the affected-row count."""
        with _translate_errors(), self.engine.connect() as conn:
            result = conn.execute(statement)
            conn.commit()
        return result.rowcount

    def insert(self, statement) -> Any:
        """Run an INSERT, commit, and return the new row's primary key."""
        with _translate_errors(), self.engine.connect() as conn:
            result = conn.execute(statement)
            conn.commit()
            return result.inserted_primary_key[0]

    def close(self) -> None:
        self.engine.dispose()
