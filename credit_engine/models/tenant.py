from __future__ import annotations

from decimal import Decimal

from sqlalchemy import CheckConstraint, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from credit_engine.models.base import EntityBase

MAX_PRICING_MULTIPLIER = Decimal("100")


class Tenant(EntityBase):
    __tablename__ = "tenants"
    __table_args__ = (
        CheckConstraint(
            "pricing_multiplier > 0 AND pricing_multiplier <= 100",
            name="ck_tenants_pricing_multiplier_range",
        ),
    )

    code: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    primary_domain: Mapped[str | None] = mapped_column(String(255), unique=True, nullable=True, index=True)
    currency: Mapped[str] = mapped_column(String(8), nullable=False, default="TRY")
    pricing_multiplier: Mapped[Decimal] = mapped_column(Numeric(10, 4), nullable=False, default=Decimal("1"))
