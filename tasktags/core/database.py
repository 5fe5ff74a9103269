import logging
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, Optional

from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base

from .config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()

# Base class for models
Base = declarative_base()


def build_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """
    Create an async SQLAlchemy engine with the listeners this service relies on.

    SQLite needs foreign keys switched on per connection (ON DELETE CASCADE on
    task_tags) and pysqlite's implicit transaction handling disabled so that
    SAVEPOINTs used by the tag find-or-create path behave. Transactions start
    with BEGIN IMMEDIATE, so SQLite serializes writers instead of failing one
    of them with "database is locked".
    """
    is_sqlite = database_url.startswith("sqlite")
    options = {"echo": echo}
    if not is_sqlite:
        options.update(pool_size=10, max_overflow=20, pool_pre_ping=True, pool_recycle=300)

    engine = create_async_engine(database_url, **options)

    @event.listens_for(engine.sync_engine, "connect")
    def receive_connect(dbapi_connection, connection_record):
        """Event listener for database connections"""
        if is_sqlite:
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()
        logger.info("Database connection established")

    @event.listens_for(engine.sync_engine, "checkout")
    def receive_checkout(dbapi_connection, connection_record, connection_proxy):
        """Event listener for connection checkout"""
        logger.debug("Database connection checked out from pool")

    if is_sqlite:
        @event.listens_for(engine.sync_engine, "begin")
        def receive_begin(conn):
            conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


def build_sessionmaker(bind: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(bind=bind, autoflush=False, expire_on_commit=False)


engine = build_engine(settings.database_url, echo=settings.debug)

# Session factory
SessionLocal = build_sessionmaker(engine)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Database dependency for FastAPI

    Yields:
        AsyncSession: Database session
    """
    async with SessionLocal() as db:
        try:
            yield db
        except Exception as e:
            logger.error(f"Database session error: {e}")
            await db.rollback()
            raise


async def init_db(bind: Optional[AsyncEngine] = None) -> bool:
    """
    Initialize database tables

    Returns:
        bool: True if successful, False otherwise
    """
    try:
        # Import all models here to ensure they are registered
        from ..models import tag, task, user  # noqa: F401

        async with (bind or engine).begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created successfully")
        return True
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        return False


async def check_db_connection(bind: Optional[AsyncEngine] = None) -> bool:
    """
    Check database connectivity

    Returns:
        bool: True if connected, False otherwise
    """
    try:
        async with (bind or engine).connect() as connection:
            await connection.execute(text("SELECT 1"))
        logger.info("Database connection check successful")
        return True
    except Exception as e:
        logger.error(f"Database connection check failed: {e}")
        return False


def utcnow() -> datetime:
    """Naive UTC timestamp; SQLite drops tzinfo on round-trip so we never store it."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def next_timestamp(previous: Optional[datetime]) -> datetime:
    """Current time, but always strictly after ``previous``."""
    now = utcnow()
    if previous is not None and now <= previous:
        now = previous + timedelta(microseconds=1)
    return now
