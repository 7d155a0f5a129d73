"""Database connection and session management."""

from collections.abc import AsyncGenerator

from pgvector.asyncpg import register_vector
from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from reelsynth.config import get_settings

settings = get_settings()

engine = create_async_engine(
    settings.database_url_async,
    echo=settings.is_development,
    pool_pre_ping=True,
    pool_size=10,
    max_overflow=20,
    pool_timeout=30,
    pool_recycle=1800,
)

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


def register_vector_codec(target: AsyncEngine) -> None:
    """Register the pgvector codec on every new asyncpg connection.

    The ``vector`` extension must already exist (migration or ``init_db``).
    """
    if target.dialect.name != "postgresql":
        return

    @event.listens_for(target.sync_engine, "connect")
    def _connect(dbapi_connection, connection_record) -> None:
        dbapi_connection.run_async(register_vector)


register_vector_codec(engine)


async def create_vector_extension(url: str) -> None:
    """Create the pgvector extension on a bare connection (no codec registered yet)."""
    bootstrap = create_async_engine(url, poolclass=NullPool)
    try:
        async with bootstrap.begin() as conn:
            await conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
    finally:
        await bootstrap.dispose()


async def init_db() -> None:
    """Initialize database (create extension and tables if needed)."""
    from reelsynth.models.base import Base

    if engine.dialect.name == "postgresql":
        await create_vector_extension(settings.database_url_async)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for getting database session."""
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()
