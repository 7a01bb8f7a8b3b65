from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from credit_engine.core.repositories.base import Repository
from credit_engine.models.question import STATUS_APPROVED, STATUS_SUBMITTED, Question


class QuestionRepository(Repository[Question]):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session=session, model=Question)

    async def approve_if_submitted(self, question_id: UUID, approved_at: datetime) -> bool:
        """Move ``submitted -> approved`` only if nobody has done it yet.

        Returns False when the row is no longer in ``submitted`` state or already
        carries an approval timestamp.
        """
        result = await self.session.execute(
            update(Question)
            .where(Question.id == question_id)
            .where(Question.status == STATUS_SUBMITTED)
            .where(Question.approved_at.is_(None))
            .values(status=STATUS_APPROVED, approved_at=approved_at, updated_at=approved_at)
            .execution_options(synchronize_session=False)
        )
        return (result.rowcount or 0) == 1
