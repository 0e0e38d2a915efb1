"""Database connection and session management"""

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base

from clubportal.config import settings


def to_async_url(database_url: str) -> str:
    """Swap a sync driver URL for its async driver equivalent"""
    if database_url.startswith("postgresql://"):
        return database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
    if database_url.startswith("sqlite://"):
        return database_url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    return database_url


ASYNC_DATABASE_URL = to_async_url(settings.database_url)

engine_kwargs = {
    "echo": settings.environment == "development",
    "pool_pre_ping": True,
}
# SQLite uses its own pool classes which take no sizing arguments
if not ASYNC_DATABASE_URL.startswith("sqlite"):
    engine_kwargs["pool_size"] = settings.database_pool_size
    engine_kwargs["max_overflow"] = settings.database_max_overflow

async_engine = create_async_engine(ASYNC_DATABASE_URL, **engine_kwargs)

# Autoflush stays off so reads inside a transaction never emit writes early
AsyncSessionLocal = async_sessionmaker(
    async_engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)

# Base class for all models
Base = declarative_base()


def get_session_factory() -> async_sessionmaker:
    """
    FastAPI dependency returning the session factory used by transactions.

    Services open one short-lived session per transaction attempt, so they
    need the factory rather than a single request-scoped session.
    """
    return AsyncSessionLocal

