"""
ReDPlAD — Async Database Engine & Session Factory

The profile store is PostgreSQL, reached through SQLAlchemy's asyncio
extension.  Two connection strategies are supported:

1. **Cloud Run** – ``cloud-sql-python-connector`` with IAM authentication,
   used when ``CLOUD_SQL_USE_UNIX_SOCKET`` is set and an instance connection
   name is configured.
2. **Everywhere else** – a plain ``asyncpg`` URL read from ``DATABASE_URL``.

Request handlers obtain a session through the ``get_db`` dependency, which
commits when the handler returns and rolls back when it raises.  Work that
must only happen once the transaction is durable (relay broadcasts, object
store deletes) is queued with ``after_commit`` and run by ``get_db`` after
the commit succeeds.
"""

from __future__ import annotations

import logging
from typing import AsyncGenerator, Awaitable, Callable

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from redplad.config import get_settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Declarative base shared by every ReDPlAD table."""


_POOL_KWARGS = {
    "pool_size": 10,
    "max_overflow": 5,
    "pool_timeout": 30,
    "pool_recycle": 1800,
    "pool_pre_ping": True,
}


def _build_cloud_sql_engine():
    """Engine whose connections are opened by the Cloud SQL connector."""
    from google.cloud.sql.connector import Connector

    settings = get_settings()
    connector = Connector()

    async def _get_connection():
        return await connector.connect_async(
            settings.CLOUD_SQL_INSTANCE_CONNECTION,
            "asyncpg",
            user=settings.DB_USER,
            password=settings.DB_PASSWORD,
            db=settings.DB_NAME,
            enable_iam_auth=True,
        )

    engine = create_async_engine(
        "postgresql+asyncpg://",
        async_creator=_get_connection,
        echo=(settings.LOG_LEVEL == "DEBUG"),
        **_POOL_KWARGS,
    )
    logger.info(
        "Profile store engine created via Cloud SQL Connector (%s)",
        settings.CLOUD_SQL_INSTANCE_CONNECTION,
    )
    return engine


def _build_url_engine():
    """Engine built from ``DATABASE_URL``.

    A bare ``postgresql://`` scheme is rewritten to the asyncpg dialect.
    """
    settings = get_settings()
    url = settings.DATABASE_URL
    if url.startswith("postgresql://"):
        url = url.replace("postgresql://", "postgresql+asyncpg://", 1)

    engine = create_async_engine(
        url,
        echo=(settings.LOG_LEVEL == "DEBUG"),
        **_POOL_KWARGS,
    )
    logger.info("Profile store engine created from DATABASE_URL")
    return engine


def _create_engine():
    settings = get_settings()
    if settings.CLOUD_SQL_USE_UNIX_SOCKET and settings.CLOUD_SQL_INSTANCE_CONNECTION:
        return _build_cloud_sql_engine()
    return _build_url_engine()


engine = _create_engine()

async_session_factory: async_sessionmaker[AsyncSession] = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


# ── Post-commit side effects ─────────────────────────────────────────────

AFTER_COMMIT_KEY = "redplad.after_commit"

AfterCommitCallback = Callable[[], Awaitable[None]]


def after_commit(db: AsyncSession, callback: AfterCommitCallback) -> None:
    """Queue ``callback`` to be awaited once ``db`` has committed.

    Callbacks are dropped if the transaction rolls back.
    """
    db.info.setdefault(AFTER_COMMIT_KEY, []).append(callback)


def discard_after_commit(db: AsyncSession) -> None:
    db.info.pop(AFTER_COMMIT_KEY, None)


async def run_after_commit(db: AsyncSession) -> None:
    """Await queued callbacks in order.  A failing callback is logged and
    does not stop the ones after it; the data is already committed."""
    callbacks = db.info.pop(AFTER_COMMIT_KEY, [])
    for callback in callbacks:
        try:
            await callback()
        except Exception:
            logger.exception(
                "After-commit callback %s failed",
                getattr(callback, "__qualname__", repr(callback)),
            )


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield an ``AsyncSession`` scoped to one request.

    Usage in a route::

        @router.get("/profiles/{profile_id}")
        async def read_profile(profile_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
            ...
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            discard_after_commit(session)
            await session.rollback()
            raise
        await run_after_commit(session)
