from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from credit_engine.core.repositories.base import Repository
from credit_engine.models.credit_ledger import CreditLedgerEntry


class CreditLedgerRepository(Repository[CreditLedgerEntry]):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session=session, model=CreditLedgerEntry)

    def _scoped_select(self, scope_type: str, scope_id: UUID):
        return self._select().where(
            CreditLedgerEntry.scope_type == scope_type,
            CreditLedgerEntry.scope_id == scope_id,
        )

    async def sum_for_scope(self, scope_type: str, scope_id: UUID) -> int:
        total = await self.session.scalar(
            select(func.coalesce(func.sum(CreditLedgerEntry.change), 0)).where(
                CreditLedgerEntry.scope_type == scope_type,
                CreditLedgerEntry.scope_id == scope_id,
            )
        )
        return int(total or 0)

    async def count_for_scope(self, scope_type: str, scope_id: UUID) -> int:
        total = await self.session.scalar(
            select(func.count(CreditLedgerEntry.id)).where(
                CreditLedgerEntry.scope_type == scope_type,
                CreditLedgerEntry.scope_id == scope_id,
            )
        )
        return int(total or 0)

    async def list_for_scope(
        self,
        scope_type: str,
        scope_id: UUID,
        *,
        limit: int = 50,
        offset: int = 0,
    ) -> list[CreditLedgerEntry]:
        result = await self.session.execute(
            self._scoped_select(scope_type, scope_id)
            .order_by(CreditLedgerEntry.created_at.desc(), CreditLedgerEntry.id)
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all())

    async def list_for_question(self, question_id: UUID) -> list[CreditLedgerEntry]:
        result = await self.session.execute(
            self._select()
            .where(CreditLedgerEntry.question_id == question_id)
            .order_by(CreditLedgerEntry.created_at)
        )
        return list(result.scalars().all())
