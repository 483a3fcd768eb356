"""Database connection and session management.

This module owns the process-wide engine and session factory. Call
``init_database`` once at startup and ``close_database`` on shutdown; every
store operation then runs inside its own short ``get_session()`` block.
"""

from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from job_alerts.logging import get_logger

from .exceptions import DatabaseConnectionError

# Module-level engine and session factory
_engine: Optional[Engine] = None
_session_factory: Optional[sessionmaker] = None

logger = get_logger(__name__, component="database")


def init_database(database_url: str) -> None:
    """Create the engine, verify the connection and create missing tables.

    For file-backed SQLite URLs the parent directory is created when absent.

    Args:
        database_url: SQLAlchemy URL, e.g. ``sqlite:///./data/job_alerts.db``

    Raises:
        DatabaseConnectionError: If the URL is empty or the database cannot be opened
    """
    global _engine, _session_factory

    if not database_url or not isinstance(database_url, str):
        raise DatabaseConnectionError("Database URL must be a non-empty string")

    logger.info(
        "Initializing database",
        extra={"event": "database.initializing", "database_url": database_url},
    )

    is_sqlite = database_url.startswith("sqlite")
    if database_url.startswith("sqlite:///") and not database_url.endswith(":memory:"):
        db_file = Path(database_url[len("sqlite:///"):])
        if not db_file.parent.exists():
            logger.info(
                "Creating database directory",
                extra={"event": "database.directory_created", "path": str(db_file.parent)},
            )
            db_file.parent.mkdir(parents=True, exist_ok=True)

    try:
        engine = create_engine(
            database_url,
            pool_pre_ping=True,
            # Registration writes from the API side may race the dispatcher
            connect_args={"check_same_thread": False, "timeout": 30} if is_sqlite else {},
        )
        if is_sqlite:
            _configure_sqlite(engine)

        with engine.connect() as conn:
            conn.execute(text("SELECT 1")).fetchone()

        from .schema import create_schema

        create_schema(engine)
    except SQLAlchemyError as e:
        logger.error(
            f"Failed to initialize database: {e}",
            extra={"event": "database.init_failed", "error_type": type(e).__name__},
            exc_info=True,
        )
        raise DatabaseConnectionError(f"Failed to initialize database: {e}") from e

    _engine = engine
    _session_factory = sessionmaker(bind=engine, autoflush=True, expire_on_commit=False)

    logger.info(
        "Database initialized",
        extra={"event": "database.initialized", "database_url": database_url},
    )


def _configure_sqlite(engine: Engine) -> None:
    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()


@contextmanager
def get_session() -> Generator[Session, None, None]:
    """Provide a session that commits on success and rolls back on error.

    Raises:
        DatabaseConnectionError: If ``init_database()`` has not been called

    Example:
        >>> with get_session() as session:
        ...     alerts = AlertRepository(session).list_all()
    """
    if _session_factory is None:
        raise DatabaseConnectionError(
            "Database not initialized. Call init_database() before using get_session()"
        )

    session = _session_factory()
    try:
        yield session
        session.commit()
    except Exception as e:
        session.rollback()
        logger.warning(
            f"Database session rolled back: {e}",
            extra={"event": "database.session.rolled_back", "error_type": type(e).__name__},
        )
        raise
    finally:
        session.close()


def get_engine() -> Engine:
    """Return the engine created by ``init_database()``.

    Raises:
        DatabaseConnectionError: If the database is not initialized
    """
    if _engine is None:
        raise DatabaseConnectionError(
            "Database not initialized. Call init_database() before using get_engine()"
        )
    return _engine


def close_database() -> None:
    """Dispose of the engine; safe to call when not initialized."""
    global _engine, _session_factory

    if _engine is not None:
        _engine.dispose()
        _engine = None
        _session_factory = None
        logger.info("Database connections closed", extra={"event": "database.closed"})
