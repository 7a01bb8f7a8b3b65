from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class CreditOptionsResponse(BaseModel):
    question_id: UUID
    required_user_credits: int
    required_org_credits: int
    required_credits: int
    user_balance: int
    org_id: UUID | None = None
    org_name: str | None = None
    org_role: str | None = None
    org_balance: int | None = None
    applies: str
    can_user_pay: bool
    can_org_pay: bool
    currency: str
    multiplier: Decimal
    locked_amount: int | None = None
    fx_rate: Decimal | None = None
    fx_as_of: date | None = None
    display_error: str | None = None


class PayOrgRequest(BaseModel):
    org_id: UUID | None = None


class PaymentResponse(BaseModel):
    ok: bool = True
    question_id: UUID
    scope_type: str
    scope_id: UUID
    credits: int
    balance_after: int


class OrgShortfallResponse(BaseModel):
    ok: bool = True
    question_id: UUID
    org_id: UUID
    required_credits: int
    balance: int
    owners_notified: int


class BalanceResponse(BaseModel):
    scope_type: str
    scope_id: UUID
    balance: int


class CreditBalancesResponse(BaseModel):
    user: BalanceResponse
    organizations: list[BalanceResponse]


class LedgerEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    scope_type: str
    scope_id: UUID
    change: int
    reason: str
    question_id: UUID | None = None
    meta: dict[str, Any] | None = None
    created_at: datetime


class LedgerHistoryResponse(BaseModel):
    scope_type: str
    scope_id: UUID
    balance: int
    total: int
    entries: list[LedgerEntryResponse]


class CreditAdjustRequest(BaseModel):
    scope_type: str = Field(pattern="^(user|org)$")
    scope_id: UUID | None = None
    member_user_id: UUID | None = None
    amount: int = Field(gt=0)
    negate: bool = False


class CreditAdjustResponse(BaseModel):
    ok: bool = True
    entry: LedgerEntryResponse
    balance: int
