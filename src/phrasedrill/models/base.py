"""Base model configuration and database lifecycle."""
import logging
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Generator, Optional

from sqlalchemy import Column, DateTime, create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from phrasedrill.config import DatabaseSettings, settings

logger = logging.getLogger(__name__)

# Create declarative base class
Base = declarative_base()


class TimestampMixin:
    """Mixin to add timestamp columns to models."""
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(UTC))
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )


def _configure_sqlite_connection(dbapi_connection, connection_record):
    """Enable foreign keys and hand transaction control to SQLAlchemy.

    pysqlite's own implicit BEGIN breaks SAVEPOINT, which bulk imports rely on.
    """
    dbapi_connection.isolation_level = None
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _begin_sqlite_transaction(conn):
    """Emit our own BEGIN now that pysqlite no longer does."""
    conn.exec_driver_sql("BEGIN")


class Database:
    """Owns the engine and session factory of the phrase store.

    The object is created explicitly and passed to whoever needs it. Nothing is
    opened until ``initialize()`` runs, and ``close()`` releases the engine.
    """

    def __init__(self, url: Optional[str] = None, echo: Optional[bool] = None,
                 database_settings: DatabaseSettings = settings.database):
        self.url = url if url is not None else database_settings.url
        self.echo = echo if echo is not None else database_settings.echo
        self.engine: Optional[Engine] = None
        self._session_factory: Optional[sessionmaker] = None

    @property
    def is_initialized(self) -> bool:
        """Whether the engine has been created."""
        return self.engine is not None

    def initialize(self) -> None:
        """Create the engine and the schema. Calling it twice is harmless."""
        if self.engine is not None:
            return

        kwargs = {"echo": self.echo}
        if self.url.startswith("sqlite"):
            kwargs["connect_args"] = {"check_same_thread": False}
            if self.url in ("sqlite://", "sqlite:///:memory:"):
                # One shared connection, otherwise every session sees an empty database
                kwargs["poolclass"] = StaticPool

        engine = create_engine(self.url, **kwargs)
        if engine.dialect.name == "sqlite":
            if engine.url.database not in (None, "", ":memory:"):
                Path(engine.url.database).parent.mkdir(parents=True, exist_ok=True)
            event.listen(engine, "connect", _configure_sqlite_connection)
            event.listen(engine, "begin", _begin_sqlite_transaction)

        Base.metadata.create_all(bind=engine)  # Create tables if they don't exist
        self.engine = engine
        self._session_factory = sessionmaker(
            bind=engine, autocommit=False, autoflush=False, expire_on_commit=False
        )
        logger.info(f"Database initialized: {engine.url.render_as_string(hide_password=True)}")

    def close(self) -> None:
        """Dispose of the engine."""
        if self.engine is None:
            return
        self.engine.dispose()
        self.engine = None
        self._session_factory = None
        logger.info("Database closed")

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        """Get a database session, rolled back on error and always closed."""
        if self._session_factory is None:
            raise RuntimeError("Database is not initialized, call initialize() first")
        db = self._session_factory()
        try:
            yield db
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()
