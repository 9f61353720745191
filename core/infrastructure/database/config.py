"""
Database configuration.

Manages engine creation and the session factory.
"""
from typing import Optional
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
import logging

from core.settings.modules.database_settings import DatabaseSettings


logger = logging.getLogger(__name__)


# =============================================================================
# ENGINE CREATION
# =============================================================================

def create_engine(settings: Optional[DatabaseSettings] = None) -> AsyncEngine:
    """
    Create async SQLAlchemy engine.

    Args:
        settings: Database settings (loaded from DB_* env vars if omitted)

    Returns:
        Configured async engine
    """
    settings = settings or DatabaseSettings()
    logger.info(
        "Creating database engine: %s",
        make_url(settings.database_url).render_as_string(hide_password=True),
    )

    if settings.is_sqlite:
        # SQLite drivers do not accept queue pool arguments
        return create_async_engine(settings.database_url, echo=settings.echo_sql)

    return create_async_engine(
        settings.database_url,
        echo=settings.echo_sql,
        pool_size=settings.pool_size,
        max_overflow=settings.max_overflow,
        pool_timeout=settings.pool_timeout,
        pool_recycle=settings.pool_recycle,
        pool_pre_ping=True,  # Test connections before using
    )


# Global engine instance
engine: Optional[AsyncEngine] = None


def get_engine(settings: Optional[DatabaseSettings] = None) -> AsyncEngine:
    """
    Get or create global engine instance.

    Returns:
        Global async engine
    """
    global engine

    if engine is None:
        engine = create_engine(settings)

    return engine


# =============================================================================
# SESSION FACTORY
# =============================================================================

def create_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory for an engine. Stores open one session per operation."""
    return async_sessionmaker(
        bind=bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


# =============================================================================
# DATABASE INITIALIZATION
# =============================================================================

async def init_database(bind: Optional[AsyncEngine] = None):
    """
    Initialize database.

    Creates all tables if they don't exist.
    """
    from core.infrastructure.database.models import Base

    logger.info("Initializing database...")

    bind = bind or get_engine()

    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    logger.info("Database initialized successfully")


async def close_database():
    """Close database connections."""
    global engine

    if engine:
        logger.info("Closing database connections...")
        await engine.dispose()
        engine = None
        logger.info("Database connections closed")
