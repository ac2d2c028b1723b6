"""Database engine and session management."""

from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from .config import settings
from .exceptions import ConfigurationError
from .logger import get_logger

logger = get_logger(__name__)

# SQLAlchemy Base for ORM models
Base = declarative_base()


class Database:
    """
    Owns one engine and its session factory.

    Constructed explicitly at startup and handed to every repository and
    service that needs it; nothing in the package holds a module-level engine.
    """

    def __init__(self, url: str | None = None, echo: bool | None = None) -> None:
        """
        Create the engine for the given URL.

        Args:
            url: SQLAlchemy database URL (default: settings.database_url)
            echo: Log SQL statements (default: settings.debug)
        """
        self.url = url or settings.database_url
        if not self.url:
            raise ConfigurationError("DATABASE_URL is not set")

        engine_kwargs: dict = {
            "pool_pre_ping": True,
            "echo": settings.debug if echo is None else echo,
        }

        if self.url.startswith("sqlite"):
            # Sessions are used from worker threads
            engine_kwargs["connect_args"] = {"check_same_thread": False, "timeout": 30}
        else:
            engine_kwargs["pool_size"] = settings.db_pool_size
            engine_kwargs["max_overflow"] = settings.db_max_overflow

        self.engine: Engine = create_engine(self.url, **engine_kwargs)

        if self.url.startswith("sqlite"):
            event.listen(self.engine, "connect", _enable_sqlite_foreign_keys)

        self.SessionLocal = sessionmaker(
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
            bind=self.engine,
        )

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """
        Get database session as context manager (for services/scripts).

        Example:
            with db.session_scope() as session:
                groups = session.query(SupportGroupORM).all()
        """
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def init_schema(self) -> None:
        """Initialize database (create all tables)."""
        # Registers the ORM tables on Base.metadata
        from ticketflow.models import orm  # noqa: F401

        logger.info("Initializing database schema")
        Base.metadata.create_all(bind=self.engine)
        logger.info("Database schema initialized successfully")

    def check_connection(self) -> bool:
        """Check if database connection is healthy."""
        try:
            with self.engine.connect() as connection:
                connection.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error(f"Database connection check failed: {e}")
            return False

    def dispose(self) -> None:
        """Release pooled connections."""
        self.engine.dispose()


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()
