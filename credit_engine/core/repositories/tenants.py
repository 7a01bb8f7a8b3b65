from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from credit_engine.core.repositories.base import Repository
from credit_engine.models.profile import Profile
from credit_engine.models.tenant import Tenant


class TenantRepository(Repository[Tenant]):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session=session, model=Tenant)

    async def get_by_code(self, code: str) -> Tenant | None:
        result = await self.session.execute(self._select().where(Tenant.code == code))
        return result.scalar_one_or_none()

    async def get_by_domain(self, domain: str) -> Tenant | None:
        """``domain`` is already normalized; stored values may differ in case or a ``www.`` prefix."""
        candidates = [domain, f"www.{domain}"]
        result = await self.session.execute(
            self._select()
            .where(func.lower(Tenant.primary_domain).in_(candidates))
            .order_by(Tenant.created_at)
            .limit(1)
        )
        return result.scalar_one_or_none()


class ProfileRepository(Repository[Profile]):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session=session, model=Profile)

    async def get_tenant_key(self, user_id: UUID) -> str | None:
        return await self.session.scalar(select(Profile.tenant_key).where(Profile.id == user_id))

    async def emails_for(self, user_ids: list[UUID]) -> dict[UUID, str]:
        if not user_ids:
            return {}
        result = await self.session.execute(
            select(Profile.id, Profile.email).where(Profile.id.in_(user_ids))
        )
        return {row.id: row.email for row in result if row.email}

    async def full_name_of(self, user_id: UUID) -> str | None:
        return await self.session.scalar(select(Profile.full_name).where(Profile.id == user_id))
