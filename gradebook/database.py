from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from gradebook.core.config import settings
import logging
from datetime import datetime, timezone
from typing import AsyncGenerator

logger = logging.getLogger(__name__)

Base = declarative_base()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_engine(url: str, **kwargs) -> AsyncEngine:
    """Create an async engine; SQLite connections get foreign key enforcement"""
    is_sqlite = make_url(url).get_backend_name() == "sqlite"
    if not is_sqlite:
        kwargs.setdefault("pool_size", settings.DB_POOL_SIZE)
        kwargs.setdefault("max_overflow", settings.DB_MAX_OVERFLOW)
        kwargs.setdefault("pool_timeout", settings.DB_POOL_TIMEOUT)
        kwargs.setdefault("pool_recycle", settings.DB_POOL_RECYCLE)
        kwargs.setdefault("pool_pre_ping", True)
    kwargs.setdefault("echo", settings.DB_ECHO)

    async_engine = create_async_engine(url, **kwargs)
    if is_sqlite:
        # ON DELETE CASCADE is only honoured by SQLite with this pragma set
        event.listen(async_engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
    return async_engine


def create_session_maker(async_engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False
    )


engine = create_engine(settings.DATABASE_URL)
async_session_maker = create_session_maker(engine)


async def init_db(async_engine: AsyncEngine = None):
    """Create every gradebook table"""
    # register the tables on Base.metadata
    import gradebook.models  # noqa: F401

    async_engine = async_engine or engine
    try:
        async with async_engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
            logger.info("Gradebook tables created")
    except Exception as e:
        logger.error(f"Error while initializing database: {str(e)}")
        raise


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield a session bound to the default engine"""
    async with async_session_maker() as session:
        try:
            yield session
        finally:
            await session.close()

get_db = get_session
