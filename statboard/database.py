"""Database engine, session management, and table creation."""

from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from .config import StatboardConfig
from .models import Base
from .utils.logging import get_logger

logger = get_logger("statboard.database")

_engine = None
_session_factory = None


def enable_foreign_keys(engine: AsyncEngine) -> AsyncEngine:
    """Turn on SQLite foreign key enforcement for every new connection."""

    @event.listens_for(engine.sync_engine, "connect")
    def _set_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return engine


def get_engine(config: StatboardConfig):
    """Get or create the async database engine."""
    global _engine
    if _engine is None:
        is_sqlite = config.database_url.startswith("sqlite")
        connect_args = {"timeout": 30} if is_sqlite else {}
        _engine = create_async_engine(
            config.database_url,
            echo=config.debug,
            future=True,
            pool_pre_ping=True,
            connect_args=connect_args,
        )
        if is_sqlite:
            enable_foreign_keys(_engine)
    return _engine


def get_session_factory(config: StatboardConfig) -> async_sessionmaker[AsyncSession]:
    """Get or create the async session factory."""
    global _session_factory
    if _session_factory is None:
        engine = get_engine(config)
        _session_factory = async_sessionmaker(engine, expire_on_commit=False)
    return _session_factory


async def _enable_wal_mode(config: StatboardConfig) -> None:
    """Enable WAL journal mode and busy timeout for file-backed SQLite."""
    if not config.db_wal_mode or not config.database_url.startswith("sqlite"):
        return
    if ":memory:" in config.database_url:
        return
    engine = get_engine(config)
    async with engine.begin() as conn:
        await conn.execute(text("PRAGMA journal_mode=WAL"))
        await conn.execute(text(f"PRAGMA busy_timeout={config.db_busy_timeout}"))
        await conn.execute(text(f"PRAGMA synchronous={config.db_synchronous}"))
    logger.info(
        "sqlite_pragmas_applied",
        busy_timeout=config.db_busy_timeout,
        synchronous=config.db_synchronous,
    )


async def create_tables(config: StatboardConfig) -> None:
    """Create all database tables and apply SQLite PRAGMAs."""
    engine = get_engine(config)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    await _enable_wal_mode(config)


async def get_session(config: StatboardConfig) -> AsyncSession:
    """Yield a new async session."""
    factory = get_session_factory(config)
    async with factory() as session:
        yield session


async def close_engine() -> None:
    """Dispose the engine and forget the session factory."""
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_factory = None
