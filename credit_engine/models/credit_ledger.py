from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import JSON, CheckConstraint, DateTime, Index, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from credit_engine.models.base import Base, utcnow

SCOPE_USER = "user"
SCOPE_ORG = "org"
SCOPE_TYPES = (SCOPE_USER, SCOPE_ORG)

REASON_QUESTION_DEBIT = "question_debit"
REASON_MANUAL_ADJUST = "manual_adjust"
REASON_PURCHASE = "purchase"


class CreditLedgerEntry(Base):
    """Immutable signed credit delta. Balances are sums of these rows."""

    __tablename__ = "credit_ledger"
    __table_args__ = (
        CheckConstraint("scope_type IN ('user', 'org')", name="ck_credit_ledger_scope_type"),
        CheckConstraint("change <> 0", name="ck_credit_ledger_change_nonzero"),
        Index("ix_credit_ledger_scope", "scope_type", "scope_id"),
    )

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    scope_type: Mapped[str] = mapped_column(String(8), nullable=False)
    scope_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    change: Mapped[int] = mapped_column(nullable=False)
    reason: Mapped[str] = mapped_column(String(64), nullable=False)
    question_id: Mapped[UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True, index=True)
    meta: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        index=True,
    )
