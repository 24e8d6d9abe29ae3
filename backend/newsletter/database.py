from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import StaticPool
from sqlalchemy import event
from sqlalchemy.exc import SQLAlchemyError
from newsletter.config import Settings
import os
import logging
import asyncio

logger = logging.getLogger(__name__)


def create_engine_for_database(settings: Settings) -> AsyncEngine:
    """Create the appropriate async engine based on database configuration.

    The engine owns the connection pool. It is created once at startup and
    handed to every component that needs storage.
    """
    if settings.use_sqlite:
        # SQLite configuration (for local development and testing)
        is_memory = ":memory:" in settings.database_url
        if not is_memory and settings.database_url.startswith("sqlite+aiosqlite:///./"):
            os.makedirs("data", exist_ok=True)
        logger.info("Using SQLite database for local development")
        engine_kwargs = dict(
            echo=settings.app_debug,
            connect_args={
                "check_same_thread": False,
            },
        )
        if is_memory:
            # In-memory SQLite needs StaticPool so all connections share
            # the same database (otherwise each connection gets its own).
            engine_kwargs["poolclass"] = StaticPool
        else:
            engine_kwargs["connect_args"]["timeout"] = 30
        engine = create_async_engine(settings.database_url, **engine_kwargs)

        @event.listens_for(engine.sync_engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            if not is_memory:
                cursor.execute("PRAGMA busy_timeout=30000")
            cursor.close()

        return engine

    # PostgreSQL configuration (production)
    logger.info(f"Connecting to PostgreSQL at {settings.postgres_host}:{settings.postgres_port}")
    return create_async_engine(
        settings.database_url,
        echo=settings.app_debug,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_pre_ping=True,  # Verify connections before using
        pool_recycle=settings.db_pool_recycle,
    )


def create_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


# Base class for models
Base = declarative_base()


async def init_db(engine: AsyncEngine, max_retries: int = 5, base_delay: float = 2) -> None:
    """Create database tables with retry logic.

    Schema management beyond ``create_all`` is handled outside the service.
    """
    # Register every model on Base.metadata
    import newsletter.models  # noqa: F401

    for attempt in range(max_retries):
        try:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            logger.info("Database tables initialized")
            return
        except (SQLAlchemyError, OSError) as e:
            if attempt < max_retries - 1:
                delay = base_delay * (2 ** attempt)
                logger.warning(f"Database connection attempt {attempt + 1}/{max_retries} failed: {e}. Retrying in {delay}s...")
                await asyncio.sleep(delay)
            else:
                logger.error(f"Database initialization failed after {max_retries} attempts: {e}")
                raise
