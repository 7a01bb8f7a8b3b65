from __future__ import annotations

from collections.abc import AsyncGenerator
from uuid import UUID

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from credit_engine.core.config import settings

engine = create_async_engine(settings.database_url, future=True, pool_pre_ping=True)
AsyncSessionLocal = async_sessionmaker(bind=engine, expire_on_commit=False, class_=AsyncSession)


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    async with AsyncSessionLocal() as session:
        yield session


def scope_lock_key(scope_type: str, scope_id: UUID) -> str:
    return f"credit_ledger:{scope_type}:{scope_id}"


async def acquire_scope_lock(session: AsyncSession, scope_type: str, scope_id: UUID) -> None:
    """Serialize ledger writers of one scope until the transaction ends.

    PostgreSQL only. Other engines serialize whole write transactions.
    """
    bind = session.bind
    if bind is None or bind.dialect.name != "postgresql":
        return
    await session.execute(
        text("SELECT pg_advisory_xact_lock(hashtextextended(:lock_key, 0))"),
        {"lock_key": scope_lock_key(scope_type, scope_id)},
    )
