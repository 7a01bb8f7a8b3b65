from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import DateTime, Numeric, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from credit_engine.models.base import EntityBase

STATUS_SUBMITTED = "submitted"
STATUS_APPROVED = "approved"
STATUS_PAID = "paid"
STATUS_REJECTED = "rejected"


class Question(EntityBase):
    __tablename__ = "questions"

    user_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), nullable=False, index=True)
    title: Mapped[str | None] = mapped_column(String(500), nullable=True)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default=STATUS_SUBMITTED, index=True)
    price_base: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    price_final: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    assigned_to: Mapped[UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)

    @property
    def effective_price(self) -> Decimal:
        if self.price_final is not None:
            return Decimal(self.price_final)
        return Decimal(self.price_base or 0)
