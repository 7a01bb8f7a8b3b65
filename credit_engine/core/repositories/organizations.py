from __future__ import annotations

from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from credit_engine.core.repositories.base import Repository
from credit_engine.models.organization import MEMBERSHIP_ACTIVE, Organization, OrganizationMember


class OrganizationRepository(Repository[Organization]):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session=session, model=Organization)

    async def store_cached_balance(self, org_id: UUID, balance: int) -> None:
        await self.session.execute(
            update(Organization)
            .where(Organization.id == org_id)
            .values(credit_balance=balance)
            .execution_options(synchronize_session=False)
        )


class MembershipRepository(Repository[OrganizationMember]):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session=session, model=OrganizationMember)

    async def active_for_user(self, user_id: UUID) -> list[OrganizationMember]:
        result = await self.session.execute(
            self._select().where(
                OrganizationMember.user_id == user_id,
                OrganizationMember.status == MEMBERSHIP_ACTIVE,
            )
        )
        return list(result.scalars().all())

    async def any_for_user(self, user_id: UUID) -> OrganizationMember | None:
        result = await self.session.execute(
            self._select()
            .where(OrganizationMember.user_id == user_id)
            .order_by(OrganizationMember.created_at)
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def active_owner_ids(self, org_id: UUID) -> list[UUID]:
        result = await self.session.execute(
            select(OrganizationMember.user_id).where(
                OrganizationMember.org_id == org_id,
                OrganizationMember.org_role == "owner",
                OrganizationMember.status == MEMBERSHIP_ACTIVE,
            )
        )
        return list(result.scalars().all())
