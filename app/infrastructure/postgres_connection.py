# app/infrastructure/postgres_connection.py

import logging
from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from sqlalchemy import text
from config.settings import settings
from exceptions.domain_exceptions import InternalServerException

logger = logging.getLogger(__name__)

# Base class for SQLAlchemy models
Base = declarative_base()


class PostgresConnection:
    """
    Connection pool for the relational challenge history.

    Like the Redis event log, the history database is optional at runtime:
    with `required=False` a failed startup check leaves the pool unset and
    challenge records are kept in memory only.
    """

    def __init__(self):
        self.engine: AsyncEngine | None = None
        self.session_factory: async_sessionmaker[AsyncSession] | None = None

    @property
    def is_connected(self) -> bool:
        return self.session_factory is not None

    async def connect(self, required: bool = True):
        if self.engine is not None:
            return

        engine = create_async_engine(
            settings.DATABASE_URL,
            echo=settings.SQL_ECHO,
            pool_pre_ping=True,
            pool_size=settings.POSTGRES_POOL_SIZE,
            max_overflow=settings.POSTGRES_MAX_OVERFLOW,
            pool_timeout=settings.PERSISTENCE_TIMEOUT_SECONDS,
            # asyncpg connect timeout
            connect_args={"timeout": settings.PERSISTENCE_TIMEOUT_SECONDS},
        )
        try:
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except Exception as e:
            await engine.dispose()
            if required:
                logger.error(f"Failed to connect to PostgreSQL: {e}")
                raise
            logger.warning(f"PostgreSQL unavailable ({e}); challenge history disabled")
            return

        self.engine = engine
        self.session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
        logger.info(f"Connected to PostgreSQL at {settings.POSTGRES_HOST}:{settings.POSTGRES_PORT}/{settings.POSTGRES_DB}")

    async def create_tables(self):
        """Create missing tables (development setups without migrations)"""
        if self.engine is None:
            return
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Ensured history tables exist")

    async def disconnect(self):
        if self.engine:
            await self.engine.dispose()
            self.engine = None
            self.session_factory = None
            logger.info("Disconnected from PostgreSQL")

    def get_session_factory(self) -> async_sessionmaker[AsyncSession]:
        """
        Raises:
            InternalServerException: If the database is not connected
        """
        if not self.session_factory:
            raise InternalServerException(message="Challenge history is unavailable")
        return self.session_factory


# Shared instance
postgres_connection = PostgresConnection()


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    return postgres_connection.get_session_factory()
