"""Database connection and session management."""

from collections.abc import AsyncGenerator

from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from canonlink.config import settings
from canonlink.models import Base


def enable_sqlite_savepoints(engine: AsyncEngine) -> None:
    """Make SAVEPOINT usable on a SQLite engine.

    The sqlite3/aiosqlite drivers manage BEGIN themselves, which breaks nested
    transactions. Hand BEGIN back to SQLAlchemy so ``begin_nested`` works the
    same way it does on PostgreSQL.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):  # type: ignore[no-untyped-def]
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):  # type: ignore[no-untyped-def]
        conn.exec_driver_sql("BEGIN")


def make_engine(url: str, *, echo: bool = False, **kwargs) -> AsyncEngine:  # type: ignore[no-untyped-def]
    """Create an async engine, with savepoint support when the URL is SQLite."""
    engine = create_async_engine(url, echo=echo, **kwargs)
    if engine.dialect.name == "sqlite":
        enable_sqlite_savepoints(engine)
    return engine


engine = make_engine(
    settings.database_url,
    echo=settings.database_echo,
)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for getting async database sessions."""
    async with async_session_factory() as session:
        yield session


async def init_db(bind: AsyncEngine | None = None) -> None:
    """Initialize database tables."""
    bind = bind or engine
    async with bind.begin() as conn:
        if bind.dialect.name == "postgresql" and settings.similarity_backend == "pg_trgm":
            # Trigram similarity() for the native fuzzy-match prefilter
            await conn.execute(text("CREATE EXTENSION IF NOT EXISTS pg_trgm"))
        await conn.run_sync(Base.metadata.create_all)
