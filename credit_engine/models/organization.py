from __future__ import annotations

from uuid import UUID

from sqlalchemy import ForeignKey, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from credit_engine.models.base import EntityBase

MEMBERSHIP_ACTIVE = "active"
MEMBERSHIP_INACTIVE = "inactive"

# Lower rank wins when picking the membership to charge.
ORG_ROLE_RANK: dict[str, int] = {"owner": 0, "admin": 1, "member": 2}


class Organization(EntityBase):
    __tablename__ = "organizations"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    # Read hint only, rewritten from the ledger sum after each org-scope entry.
    credit_balance: Mapped[int] = mapped_column(nullable=False, default=0)


class OrganizationMember(EntityBase):
    __tablename__ = "organization_members"
    __table_args__ = (
        UniqueConstraint("org_id", "user_id", name="uq_organization_members_org_user"),
    )

    org_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("organizations.id"), nullable=False, index=True
    )
    user_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), nullable=False, index=True)
    org_role: Mapped[str] = mapped_column(String(32), nullable=False, default="member")
    status: Mapped[str] = mapped_column(String(32), nullable=False, default=MEMBERSHIP_ACTIVE)

    @property
    def role_rank(self) -> int:
        return ORG_ROLE_RANK.get((self.org_role or "").strip().lower(), len(ORG_ROLE_RANK))
