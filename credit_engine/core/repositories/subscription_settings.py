from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from credit_engine.core.repositories.base import Repository
from credit_engine.models.subscription_settings import SubscriptionSettings


class SubscriptionSettingsRepository(Repository[SubscriptionSettings]):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session=session, model=SubscriptionSettings)

    async def get_active(self) -> SubscriptionSettings | None:
        result = await self.session.execute(
            self._select().order_by(SubscriptionSettings.created_at.desc()).limit(1)
        )
        return result.scalar_one_or_none()
