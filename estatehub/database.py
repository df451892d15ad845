"""
Database connection and session management.
Handles async database operations with SQLAlchemy for PostgreSQL (asyncpg) and SQLite (aiosqlite).
"""

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy import text, event, DateTime, Uuid, func
from estatehub.config import settings
from estatehub.utils.exceptions import APIException
from contextlib import asynccontextmanager
from typing import AsyncGenerator, AsyncIterator, Optional
from datetime import datetime
import logging
import uuid

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """
    Base class for all database models.
    Includes common fields: id, created_at, updated_at.
    """

    # Primary key with UUID
    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        index=True
    )

    # Timestamp fields with automatic management
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        index=True
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False
    )

    def __repr__(self) -> str:
        """String representation of the model."""
        return f"<{self.__class__.__name__}(id={self.id})>"


def _configure_sqlite(engine: AsyncEngine) -> None:
    """
    Make SQLite transactions take the write lock up front.

    pysqlite defers BEGIN until the first DML statement, which lets two
    connections both read and then deadlock on lock upgrade. BEGIN IMMEDIATE
    serialises writers so conditional updates behave like row locks.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


class Database:
    """
    Persistence collaborator with an explicit open/close lifecycle.
    Owns the async engine and the session factory.
    """

    def __init__(self, url: str, echo: bool = False):
        self.url = url
        self.echo = echo
        self.engine: Optional[AsyncEngine] = None
        self.session_factory: Optional[async_sessionmaker[AsyncSession]] = None

    @property
    def is_open(self) -> bool:
        return self.engine is not None

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")

    def open(self) -> "Database":
        """Create the engine and session factory."""
        if self.is_open:
            return self

        if self.is_sqlite:
            self.engine = create_async_engine(
                self.url,
                echo=self.echo,
                connect_args={"timeout": 30},
            )
            _configure_sqlite(self.engine)
        else:
            self.engine = create_async_engine(
                self.url,
                echo=self.echo,
                pool_size=10,  # Number of connections to maintain in the pool
                max_overflow=20,  # Additional connections that can be created on demand
                pool_pre_ping=True,  # Validate connections before use
                pool_recycle=3600,  # Recycle connections after 1 hour
                pool_timeout=30,
                connect_args={
                    "server_settings": {
                        "application_name": "estatehub",
                    }
                },
            )

        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
        logger.info(f"Database engine opened ({self.engine.dialect.name})")
        return self

    async def close(self) -> None:
        """Dispose the engine and drop the session factory."""
        if self.engine is not None:
            await self.engine.dispose()
            logger.info("Database connections closed")
        self.engine = None
        self.session_factory = None

    def session(self) -> AsyncSession:
        """Create a new session; the database is opened on first use."""
        if not self.is_open:
            self.open()
        return self.session_factory()

    async def create_tables(self) -> None:
        """Create all database tables."""
        # Import models so every table is registered on the metadata
        import estatehub.models  # noqa: F401

        if not self.is_open:
            self.open()
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created successfully")

    async def drop_tables(self) -> None:
        """
        Drop all database tables.
        This should only be used in testing or development.
        """
        if settings.is_production:
            raise RuntimeError("Cannot drop tables in production environment")

        if not self.is_open:
            self.open()
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        logger.info("Database tables dropped successfully")

    async def ping(self) -> bool:
        """
        Test database connectivity.
        Returns True if connection is successful, False otherwise.
        """
        try:
            async with self.session() as session:
                result = await session.execute(text("SELECT 1"))
                result.scalar()
            logger.info("Database connection successful")
            return True
        except Exception as e:
            logger.error(f"Database connection failed: {e}")
            return False


# Default persistence collaborator for the running application
database = Database(settings.active_database_url, echo=settings.debug)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency to get database session.
    Yields an async database session and ensures it's closed after use.
    """
    async with database.session() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def test_database_connection() -> bool:
    """Test connectivity of the default database."""
    return await database.ping()


async def create_tables() -> None:
    """Create all tables on the default database."""
    await database.create_tables()


async def close_db_connection() -> None:
    """
    Close database connection.
    This should be called during application shutdown.
    """
    await database.close()


@asynccontextmanager
async def unit_of_work(session: AsyncSession, description: str) -> AsyncIterator[AsyncSession]:
    """
    Commit everything done inside the block, or roll all of it back.

    Typed API errors are business outcomes and propagate unchanged;
    anything else is logged before it propagates.
    """
    try:
        yield session
        await session.commit()
    except APIException as e:
        await session.rollback()
        logger.debug(f"{description} refused: {e.error_code}")
        raise
    except Exception as e:
        await session.rollback()
        logger.error(f"{description} failed: {e}")
        raise
