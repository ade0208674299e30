"""
Database connection resource and session management.
Uses SQLAlchemy 2.0 patterns.

The engine is owned by an explicitly constructed ``Database`` object. Each
process entry point (API lifespan, worker, CLI) opens it at startup, hands it
to the components that need storage and closes it at shutdown.
"""

from collections.abc import Generator
from contextlib import contextmanager
from typing import Any

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from shared.config.logging import get_logger
from shared.config.settings import settings

logger = get_logger(__name__)


class DatabaseNotOpenError(RuntimeError):
    """Raised when a session is requested before ``Database.open()``."""


class Database:
    """
    Storage connection resource.

    Usage:
        database = Database(settings.database_url)
        database.open()
        with database.session() as db:
            ...
        database.close()
    """

    def __init__(self, url: str, **engine_kwargs: Any):
        self._url = url
        self._engine_kwargs = engine_kwargs
        self._engine: Engine | None = None
        self._session_factory: sessionmaker[Session] | None = None

    @classmethod
    def from_settings(cls) -> "Database":
        """Build a pooled Postgres resource from application settings."""
        return cls(
            settings.database_url,
            pool_pre_ping=True,  # Verify connections before using
            pool_size=5,
            max_overflow=10,
            pool_timeout=settings.database_pool_timeout,
            pool_recycle=1800,  # Recycle connections after 30 minutes
            connect_args={"connect_timeout": settings.database_connect_timeout},
        )

    @property
    def is_open(self) -> bool:
        return self._engine is not None

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            raise DatabaseNotOpenError("Database has not been opened")
        return self._engine

    def open(self) -> None:
        """Create the engine and session factory. Idempotent."""
        if self._engine is not None:
            return
        self._engine = create_engine(self._url, **self._engine_kwargs)
        self._session_factory = sessionmaker(
            bind=self._engine,
            autoflush=False,
            autocommit=False,
            expire_on_commit=False,
        )
        logger.info("Database engine created", dialect=self._engine.dialect.name)

    def close(self) -> None:
        """Dispose the connection pool."""
        if self._engine is None:
            return
        self._engine.dispose()
        self._engine = None
        self._session_factory = None
        logger.info("Database engine disposed")

    def session(self) -> Session:
        """Return a new session. Caller is responsible for closing it."""
        if self._session_factory is None:
            raise DatabaseNotOpenError("Database has not been opened")
        return self._session_factory()

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """
        Context manager for sessions outside of FastAPI.

        Usage:
            with database.session_scope() as db:
                db.scalar(select(Order).where(Order.id == order_id))
        """
        db = self.session()
        try:
            yield db
        finally:
            db.close()


def get_db(request: Request) -> Generator[Session, None, None]:
    """
    FastAPI dependency for database sessions.

    Reads the ``Database`` opened by the application lifespan from
    ``app.state.database``. The session is closed after the request completes.
    """
    database: Database = request.app.state.database
    with database.session_scope() as db:
        yield db


def safe_commit(db: Session) -> None:
    """
    Commit with automatic rollback on failure.

    Raises the original exception after rolling back.
    """
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
