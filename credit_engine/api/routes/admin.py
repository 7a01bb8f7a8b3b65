from __future__ import annotations

import logging
from uuid import UUID

import redis.asyncio as redis
from fastapi import APIRouter, Depends
from sqlalchemy import func, select, text
from sqlalchemy.ext.asyncio import AsyncSession

from credit_engine.core.auth import AuthContext, require_super_admin
from credit_engine.core.config import settings
from credit_engine.core.db import get_db_session
from credit_engine.core.errors import InvalidInputError, NotFoundError
from credit_engine.core.ledger import CreditLedger, CreditScope
from credit_engine.core.payments import pick_membership
from credit_engine.core.repositories.organizations import MembershipRepository, OrganizationRepository
from credit_engine.models.credit_ledger import SCOPE_ORG, CreditLedgerEntry
from credit_engine.models.question import STATUS_SUBMITTED, Question
from credit_engine.schemas.admin import ReconcileResponse, SystemHealthResponse
from credit_engine.schemas.credits import CreditAdjustRequest, CreditAdjustResponse, LedgerEntryResponse

router = APIRouter(prefix="/admin", tags=["admin"])
logger = logging.getLogger(__name__)


async def _resolve_adjust_scope(session: AsyncSession, payload: CreditAdjustRequest) -> CreditScope:
    if payload.scope_id is not None:
        scope = CreditScope(payload.scope_type, payload.scope_id)
    elif payload.scope_type == SCOPE_ORG and payload.member_user_id is not None:
        memberships = MembershipRepository(session)
        membership = pick_membership(await memberships.active_for_user(payload.member_user_id))
        if membership is None:
            membership = await memberships.any_for_user(payload.member_user_id)
        if membership is None:
            raise NotFoundError(
                "User is not a member of any organization",
                member_user_id=str(payload.member_user_id),
            )
        scope = CreditScope(SCOPE_ORG, membership.org_id)
    else:
        raise InvalidInputError("scope_id is required", field="scope_id")

    if scope.scope_type == SCOPE_ORG:
        if await OrganizationRepository(session).get(scope.scope_id) is None:
            raise NotFoundError("Organization not found", org_id=str(scope.scope_id))
    return scope


@router.post("/credits/adjust", response_model=CreditAdjustResponse)
async def adjust_credits(
    payload: CreditAdjustRequest,
    admin: AuthContext = Depends(require_super_admin),
    session: AsyncSession = Depends(get_db_session),
) -> CreditAdjustResponse:
    scope = await _resolve_adjust_scope(session, payload)
    entry, balance = await CreditLedger(session).adjust(
        scope,
        payload.amount,
        negate=payload.negate,
        adjusted_by=admin.user_id,
    )
    logger.info(
        "Manual credit adjustment %s%s on %s by %s",
        "-" if payload.negate else "+",
        payload.amount,
        scope,
        admin.subject,
    )
    return CreditAdjustResponse(entry=LedgerEntryResponse.model_validate(entry), balance=balance)


@router.post("/organizations/{org_id}/reconcile", response_model=ReconcileResponse)
async def reconcile_organization_balance(
    org_id: UUID,
    _: AuthContext = Depends(require_super_admin),
    session: AsyncSession = Depends(get_db_session),
) -> ReconcileResponse:
    organization = await OrganizationRepository(session).get(org_id)
    if organization is None:
        raise NotFoundError("Organization not found", org_id=str(org_id))

    cached_before = int(organization.credit_balance or 0)
    balance = await CreditLedger(session).refresh_cached_balance(org_id)
    await session.commit()

    if balance != cached_before:
        logger.warning(
            "Cached balance drift for org=%s: cached=%s ledger=%s",
            org_id,
            cached_before,
            balance,
        )
    return ReconcileResponse(
        org_id=org_id,
        cached_before=cached_before,
        balance=balance,
        drift=balance - cached_before,
    )


@router.get("/system/health", response_model=SystemHealthResponse)
async def system_health(
    _: AuthContext = Depends(require_super_admin),
    session: AsyncSession = Depends(get_db_session),
) -> SystemHealthResponse:
    database_ok = True
    total_ledger_entries = 0
    pending_questions = 0
    try:
        await session.execute(text("SELECT 1"))
        total_ledger_entries = int(await session.scalar(select(func.count(CreditLedgerEntry.id))) or 0)
        pending_questions = int(
            await session.scalar(
                select(func.count(Question.id)).where(Question.status == STATUS_SUBMITTED)
            )
            or 0
        )
    except Exception:
        logger.exception("Database health check failed")
        database_ok = False

    redis_ok = True
    redis_client = redis.from_url(settings.redis_url, decode_responses=True)
    try:
        redis_ok = bool(await redis_client.ping())
    except Exception:
        logger.warning("Redis health check failed", exc_info=True)
        redis_ok = False
    finally:
        await redis_client.aclose()

    status_value = "ok" if database_ok and redis_ok else "degraded"
    return SystemHealthResponse(
        status=status_value,
        database_ok=database_ok,
        redis_ok=redis_ok,
        total_ledger_entries=total_ledger_entries,
        pending_questions=pending_questions,
    )
