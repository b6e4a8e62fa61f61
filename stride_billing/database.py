import json
import logging
from datetime import date, datetime
from decimal import Decimal
from typing import AsyncGenerator
from uuid import UUID

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase
from psycopg.types.json import set_json_dumps

from stride_billing.config import settings

logger = logging.getLogger(__name__)


def _json_default(obj):
    # Amounts keep their exact cents in JSON columns
    if isinstance(obj, (Decimal, UUID)):
        return str(obj)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    raise TypeError(f"{type(obj).__name__} is not JSON serializable")


def billing_json_dumps(obj) -> str:
    """json.dumps for JSON columns (psycopg and SQLAlchemy's JSON type)."""
    return json.dumps(obj, default=_json_default)


set_json_dumps(billing_json_dumps)


def normalize_database_url(url: str) -> str:
    """Point PostgreSQL URLs at the async psycopg driver."""
    for prefix in ("postgresql+asyncpg://", "postgres://", "postgresql://"):
        if url.startswith(prefix):
            return "postgresql+psycopg://" + url[len(prefix):]
    return url


def _engine_options(url: str) -> dict:
    options = {
        "echo": settings.DEBUG,
        "json_serializer": billing_json_dumps,
    }
    if url.startswith("sqlite"):
        # No connection pool settings for SQLite
        options["connect_args"] = {"check_same_thread": False}
    else:
        options.update(
            pool_pre_ping=True,
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_timeout=settings.DB_POOL_TIMEOUT,
            pool_recycle=settings.DB_POOL_RECYCLE,
        )
    return options


def enable_sqlite_savepoints(async_engine: AsyncEngine) -> AsyncEngine:
    """
    Let SQLAlchemy emit BEGIN itself on SQLite connections.

    The sqlite3 driver otherwise starts transactions lazily, and a SAVEPOINT
    opened before the first write releases as a full commit.
    """
    sync_engine = async_engine.sync_engine

    @event.listens_for(sync_engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(sync_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return async_engine


database_url = normalize_database_url(settings.DATABASE_URL)
engine = create_async_engine(database_url, **_engine_options(database_url))
if database_url.startswith("sqlite"):
    enable_sqlite_savepoints(engine)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


class Base(DeclarativeBase):
    """Declarative base for billing tables."""


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session; services commit their own work."""
    async with async_session_factory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def init_db() -> None:
    """Create billing tables that do not exist yet."""
    from stride_billing import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info(f"Database ready ({len(Base.metadata.tables)} tables)")
