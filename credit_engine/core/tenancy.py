from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from credit_engine.core.config import settings
from credit_engine.core.repositories.tenants import ProfileRepository, TenantRepository
from credit_engine.models.tenant import MAX_PRICING_MULTIPLIER, Tenant

logger = logging.getLogger(__name__)

_NUMERIC_PORT = re.compile(r"^\d+$")


@dataclass(slots=True, frozen=True)
class TenantPricing:
    currency: str
    multiplier: Decimal
    tenant_code: str | None = None
    is_default: bool = False


def normalize_host(host: str | None) -> str:
    """``"WWW.Example.com:3000"`` -> ``"example.com"``, ``"[::1]:3000"`` -> ``"::1"``."""
    if not host:
        return ""
    value = host.strip().lower()
    if "," in value:
        value = value.split(",")[0].strip()

    if value.startswith("[") and "]" in value:
        end = value.index("]")
        rest = value[end + 1:]
        value = value[1:end]
        if rest and not (rest.startswith(":") and _NUMERIC_PORT.match(rest[1:])):
            value += rest
    elif value.count(":") == 1:
        name, _, port = value.partition(":")
        if _NUMERIC_PORT.match(port):
            value = name

    if value.startswith("www."):
        value = value[4:]
    if value.endswith("."):
        value = value[:-1]
    return value


def sanitize_currency(raw: str | None) -> str:
    base = settings.base_currency.upper()
    currency = (raw or base).strip().upper()
    return currency if currency in settings.allowed_currencies() else base


def sanitize_multiplier(raw: object) -> Decimal:
    try:
        value = Decimal(str(raw)) if raw is not None else Decimal("1")
    except (InvalidOperation, ValueError):
        return Decimal("1")
    if not value.is_finite() or value <= 0 or value > MAX_PRICING_MULTIPLIER:
        return Decimal("1")
    return value


def default_pricing() -> TenantPricing:
    return TenantPricing(
        currency=settings.base_currency.upper(),
        multiplier=Decimal("1"),
        is_default=True,
    )


def _pricing_for(tenant: Tenant) -> TenantPricing:
    return TenantPricing(
        currency=sanitize_currency(tenant.currency),
        multiplier=sanitize_multiplier(tenant.pricing_multiplier),
        tenant_code=tenant.code,
    )


class TenantResolver:
    def __init__(self, session: AsyncSession) -> None:
        self.tenants = TenantRepository(session)
        self.profiles = ProfileRepository(session)

    async def resolve(
        self,
        principal_id: UUID | None = None,
        host: str | None = None,
    ) -> TenantPricing | None:
        # The principal's home tenant wins over whichever regional domain they are browsing.
        if principal_id is not None:
            tenant_key = await self.profiles.get_tenant_key(principal_id)
            if tenant_key:
                tenant = await self.tenants.get_by_code(tenant_key)
                if tenant is not None:
                    return _pricing_for(tenant)

        normalized = normalize_host(host)
        if normalized:
            tenant = await self.tenants.get_by_domain(normalized)
            if tenant is not None:
                return _pricing_for(tenant)

        return None

    async def resolve_or_default(
        self,
        principal_id: UUID | None = None,
        host: str | None = None,
    ) -> TenantPricing:
        resolved = await self.resolve(principal_id, host)
        if resolved is None:
            logger.debug(
                "No tenant for principal=%s host=%s; using base currency pricing",
                principal_id,
                host,
            )
            return default_pricing()
        return resolved

