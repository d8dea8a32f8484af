"""Async engine and session scope for the trade ledger database.

Every ledger call that writes runs inside one :func:`get_session` block.
The block commits when it finishes and rolls back when it raises, which
is what makes ``batch_import`` all-or-nothing.

Connections are not pooled: the CLI and the tests open one short-lived
session per command, so a pool would only hold idle sockets.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from .models import Base

logger = logging.getLogger(__name__)

# Set by init_engine, cleared by dispose
_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def create_engine(url: str, *, echo: bool = False) -> AsyncEngine:
    """Unpooled engine for ``postgresql+asyncpg://`` or ``sqlite+aiosqlite://``."""
    engine = create_async_engine(url, echo=echo, poolclass=NullPool)
    logger.info("Ledger database engine for %s", url.split("@")[-1])
    return engine


async def init_engine(
    url: str, *, echo: bool = False, create_tables: bool = False
) -> AsyncEngine:
    """Install the process-wide engine used by :func:`get_session`.

    ``create_tables`` builds any missing table from the ORM metadata; a
    managed database is migrated with alembic instead.
    """
    global _engine, _session_factory  # noqa: PLW0603

    if _engine is not None:
        await dispose()
    _engine = create_engine(url, echo=echo)
    _session_factory = async_sessionmaker(_engine, expire_on_commit=False)
    if create_tables:
        await create_all(_engine)
    return _engine


async def create_all(engine: AsyncEngine | None = None) -> None:
    eng = engine or _engine
    if eng is None:
        raise RuntimeError("No ledger database engine; call init_engine() first")
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Ledger tables created / verified")


async def dispose() -> None:
    global _engine, _session_factory  # noqa: PLW0603

    if _engine is None:
        return
    await _engine.dispose()
    _engine = None
    _session_factory = None
    logger.info("Ledger database engine disposed")


@asynccontextmanager
async def get_session() -> AsyncIterator[AsyncSession]:
    """One transaction: commit on success, roll back and re-raise on error.

    Usage::

        async with get_session() as session:
            ledger = TradeLedger(SqlTradeStore(session), SqlSettingsProvider(session))
            await ledger.batch_import(user_id, account_id, drafts)
    """
    if _session_factory is None:
        raise RuntimeError("No ledger database engine; call init_engine() first")

    async with _session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
