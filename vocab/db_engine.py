"""
SQLAlchemy engine and session management for the vocabulary review system.

The database defaults to a SQLite file in the working directory; set
VOCAB_DATABASE_URL to point at another database.
"""

import os
import sqlite3
from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import create_engine, event, Engine
from sqlalchemy.orm import Session, sessionmaker

from vocab.constants import DATABASE_URL_ENV, DB_NAME

# Module-level engine instance (lazy-initialized)
_engine: Optional[Engine] = None
_session_factory: Optional[sessionmaker] = None


def get_database_url() -> str:
    return os.getenv(DATABASE_URL_ENV) or f"sqlite:///{DB_NAME}"


def _enable_sqlite_foreign_keys(dbapi_connection, _connection_record):
    """SQLite ignores foreign keys unless asked per connection."""
    if not isinstance(dbapi_connection, sqlite3.Connection):
        return

    cursor = dbapi_connection.cursor()
    try:
        cursor.execute("PRAGMA foreign_keys=ON")
    finally:
        cursor.close()


def _bind(engine: Engine):
    global _engine, _session_factory
    _engine = engine
    _session_factory = sessionmaker(bind=engine, expire_on_commit=False)


def get_engine() -> Engine:
    """Get the SQLAlchemy engine, creating it if necessary."""
    if _engine is None:
        engine = create_engine(get_database_url())
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
        _bind(engine)
    return _engine


def set_engine(engine: Engine) -> None:
    """Set a custom engine (for testing or a non-default database)."""
    _bind(engine)


def reset_engine() -> None:
    """Dispose of the current engine (for testing)."""
    global _engine, _session_factory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _session_factory = None


@contextmanager
def get_session() -> Generator[Session, None, None]:
    """Get a session context manager for database operations.

    Each `with` block is one transaction:

        with get_session() as session:
            session.add(obj)
            # commit happens automatically on successful exit
    """
    if _session_factory is None:
        get_engine()

    session = _session_factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
