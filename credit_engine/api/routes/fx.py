from __future__ import annotations

from decimal import Decimal

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from credit_engine.core.auth import AuthContext, optional_auth_context
from credit_engine.core.config import settings
from credit_engine.core.context import get_current_request_host
from credit_engine.core.db import get_db_session
from credit_engine.core.errors import InvalidInputError
from credit_engine.core.fx import RequestRateCache, get_rate_source
from credit_engine.core.pricing import lock_price
from credit_engine.core.tenancy import TenantResolver
from credit_engine.schemas.fx import FxRateResponse, PriceLockResponse

router = APIRouter(prefix="/fx", tags=["fx"])


@router.get("/rate", response_model=FxRateResponse)
async def get_fx_rate(
    currency: str = Query(default="USD", min_length=3, max_length=3),
    rates: RequestRateCache = Depends(get_rate_source),
) -> FxRateResponse:
    code = currency.strip().upper()
    if code not in settings.allowed_currencies():
        raise InvalidInputError(f"Currency {code} is not supported", field="currency")

    rate = await rates.fetch_rate(code)
    return FxRateResponse(
        currency=rate.currency,
        rate=rate.units_per_base,
        as_of=rate.as_of,
        source=rate.source,
    )


@router.get("/lock", response_model=PriceLockResponse)
async def lock_display_price(
    amount: Decimal = Query(ge=0),
    auth: AuthContext | None = Depends(optional_auth_context),
    session: AsyncSession = Depends(get_db_session),
    rates: RequestRateCache = Depends(get_rate_source),
) -> PriceLockResponse:
    pricing = await TenantResolver(session).resolve_or_default(
        auth.user_id if auth is not None else None,
        get_current_request_host(),
    )
    rate = await rates.fetch_rate(pricing.currency)
    return PriceLockResponse(
        currency=pricing.currency,
        base_currency=settings.base_currency,
        base_amount=amount,
        multiplier=pricing.multiplier,
        rate=rate.units_per_base,
        as_of=rate.as_of,
        locked_amount=lock_price(amount, pricing.currency, rate.units_per_base, pricing.multiplier),
        tenant_code=pricing.tenant_code,
    )
