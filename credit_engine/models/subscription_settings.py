from __future__ import annotations

from decimal import Decimal

from sqlalchemy import Numeric
from sqlalchemy.orm import Mapped, mapped_column

from credit_engine.models.base import EntityBase


class SubscriptionSettings(EntityBase):
    """Pricing configuration; the newest row is the active one."""

    __tablename__ = "subscription_settings"

    credit_unit_price: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("1"))
    credit_discount_user: Mapped[Decimal] = mapped_column(Numeric(7, 4), nullable=False, default=Decimal("0"))
    credit_discount_org: Mapped[Decimal] = mapped_column(Numeric(7, 4), nullable=False, default=Decimal("0"))
