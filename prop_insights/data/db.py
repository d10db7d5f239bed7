"""Database engine and session management utilities.

Insights run on worker threads, so sessions come from a ``scoped_session``
(one session per thread) and the SQLite connection is opened with
``check_same_thread=False``.

Example:
    >>> from prop_insights.data.db import session_scope, init_db
    >>> init_db()  # Create all tables
    >>> with session_scope() as session:
    ...     session.add(team)
"""

from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from sqlalchemy import Engine, create_engine, event, inspect, text
from sqlalchemy.orm import Session, scoped_session, sessionmaker

from prop_insights.config import get_settings
from prop_insights.data.schema import Base
from prop_insights.logging import get_logger

logger = get_logger(__name__)

# Module-level engine and session factory cache
_engine: Engine | None = None
_session_factory: scoped_session[Session] | None = None


def _set_sqlite_pragmas(
    dbapi_connection: Any,
    connection_record: Any,
) -> None:
    """Apply SQLite pragmas on every new connection.

    Args:
        dbapi_connection: Raw DBAPI connection object.
        connection_record: Connection pool record (unused).
    """
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    # WAL lets insight threads read while a loader writes
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA synchronous=NORMAL")
    cursor.close()


def get_engine() -> Engine:
    """Get or create the SQLAlchemy engine from settings.

    Returns:
        SQLAlchemy Engine bound to settings.db_path.
    """
    global _engine
    if _engine is None:
        settings = get_settings()
        db_path = Path(settings.db_path)
        db_path.parent.mkdir(parents=True, exist_ok=True)

        db_url = f"sqlite:///{db_path}"
        _engine = create_engine(
            db_url,
            echo=False,
            pool_pre_ping=True,
            connect_args={"check_same_thread": False},
        )
        event.listen(_engine, "connect", _set_sqlite_pragmas)
        logger.debug("Created database engine: {}", db_url)

    return _engine


def get_session() -> Session:
    """Get the calling thread's session.

    Returns:
        SQLAlchemy Session instance.
    """
    global _session_factory
    if _session_factory is None:
        factory = sessionmaker(bind=get_engine(), expire_on_commit=False)
        _session_factory = scoped_session(factory)
        logger.debug("Created scoped session factory")

    return _session_factory()


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """Context manager for database sessions with auto-commit/rollback.

    Yields:
        SQLAlchemy Session instance.

    Raises:
        Exception: Re-raises any exception after rollback.

    Example:
        >>> with session_scope() as session:
        ...     session.add(Game(game_id="0022400001", ...))
    """
    session = get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db() -> None:
    """Create all tables. Safe to call repeatedly."""
    # Models must be imported so they register with Base
    from prop_insights.data import models  # noqa: F401

    Base.metadata.create_all(get_engine())
    logger.info("Database initialized - all tables created")


def reset_engine() -> None:
    """Drop the cached engine and session factory (for tests)."""
    global _engine, _session_factory
    if _session_factory is not None:
        _session_factory.remove()
        _session_factory = None
    if _engine is not None:
        _engine.dispose()
        _engine = None


def table_counts() -> dict[str, int]:
    """Row count of every existing table, for status reporting."""
    from prop_insights.data import models  # noqa: F401

    engine = get_engine()
    existing = set(inspect(engine).get_table_names())
    counts: dict[str, int] = {}
    with engine.connect() as conn:
        for name in sorted(Base.metadata.tables):
            if name not in existing:
                continue
            row = conn.execute(text(f"SELECT COUNT(*) FROM {name}")).fetchone()
            counts[name] = int(row[0]) if row else 0
    return counts
