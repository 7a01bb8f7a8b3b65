from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable
from decimal import Decimal
from pathlib import Path
from types import SimpleNamespace
from uuid import UUID, uuid4

import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from credit_engine.core.ledger import CreditLedger, CreditScope
from credit_engine.models import (
    Base,
    Organization,
    OrganizationMember,
    Question,
    SubscriptionSettings,
)
from credit_engine.models.credit_ledger import REASON_PURCHASE
from credit_engine.models.question import STATUS_SUBMITTED


@pytest_asyncio.fixture
async def session_factory(tmp_path: Path) -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'credit_engine.db'}",
        poolclass=NullPool,
        connect_args={"timeout": 30},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_transactions(dbapi_connection, _record):  # noqa: ANN001
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):  # noqa: ANN001
        # Write lock from the first statement on, so concurrent payers queue up.
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(bind=engine, expire_on_commit=False, class_=AsyncSession)
    await engine.dispose()


@pytest_asyncio.fixture
async def world(session_factory: async_sessionmaker[AsyncSession]) -> SimpleNamespace:
    """One requester owning an organization and one submitted question at 10000 TRY."""
    user_id = uuid4()
    org_id = uuid4()
    question_id = uuid4()

    async with session_factory() as session:
        session.add_all(
            [
                SubscriptionSettings(
                    credit_unit_price=Decimal("100"),
                    credit_discount_user=Decimal("0.10"),
                    credit_discount_org=Decimal("0.20"),
                ),
                Organization(id=org_id, name="Acme", credit_balance=0),
                OrganizationMember(org_id=org_id, user_id=user_id, org_role="owner"),
                Question(
                    id=question_id,
                    user_id=user_id,
                    title="Contract review",
                    price_base=Decimal("10000"),
                    status=STATUS_SUBMITTED,
                ),
            ]
        )
        await session.commit()

    return SimpleNamespace(user_id=user_id, org_id=org_id, question_id=question_id)


@pytest_asyncio.fixture
async def grant(
    session_factory: async_sessionmaker[AsyncSession],
) -> Callable[[str, UUID, int], Awaitable[None]]:
    async def _grant(scope_type: str, scope_id: UUID, amount: int) -> None:
        async with session_factory() as session:
            await CreditLedger(session).append(CreditScope(scope_type, scope_id), amount, REASON_PURCHASE)
            await session.commit()

    return _grant
