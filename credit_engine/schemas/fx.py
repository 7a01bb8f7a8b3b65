from __future__ import annotations

from datetime import date
from decimal import Decimal

from pydantic import BaseModel


class FxRateResponse(BaseModel):
    currency: str
    rate: Decimal
    as_of: date | None = None
    source: str


class PriceLockResponse(BaseModel):
    currency: str
    base_currency: str
    base_amount: Decimal
    multiplier: Decimal
    rate: Decimal
    as_of: date | None = None
    locked_amount: int
    tenant_code: str | None = None
