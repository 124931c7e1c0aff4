"""Database sessions and transaction scope."""
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession

from app.infra.db import base


async def get_db() -> AsyncIterator[AsyncSession]:
    """FastAPI dependency: one session per request."""
    if base.AsyncSessionLocal is None:
        raise RuntimeError("Database is not configured (AsyncSessionLocal is None)")
    async with base.AsyncSessionLocal() as session:
        yield session


@asynccontextmanager
async def atomic(session: AsyncSession) -> AsyncIterator[AsyncSession]:
    """Commit on success, roll back on any exception.

    Repositories only flush; the service that opens this scope owns the transaction.
    """
    try:
        yield session
        await session.commit()
    except BaseException:
        await session.rollback()
        raise
