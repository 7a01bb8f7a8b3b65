from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Body, Depends

from credit_engine.api.dependencies import get_payment_orchestrator
from credit_engine.core.auth import AuthContext, require_auth_context
from credit_engine.core.context import get_current_request_host
from credit_engine.core.payments import PaymentOrchestrator, PaymentOutcome
from credit_engine.schemas.credits import (
    CreditOptionsResponse,
    OrgShortfallResponse,
    PaymentResponse,
    PayOrgRequest,
)

router = APIRouter(prefix="/questions", tags=["questions"])


def _payment_response(outcome: PaymentOutcome) -> PaymentResponse:
    return PaymentResponse(
        question_id=outcome.question_id,
        scope_type=outcome.scope_type,
        scope_id=outcome.scope_id,
        credits=outcome.credits,
        balance_after=outcome.balance_after,
    )


@router.get("/{question_id}/credit-options", response_model=CreditOptionsResponse)
async def get_credit_options(
    question_id: UUID,
    auth: AuthContext = Depends(require_auth_context),
    orchestrator: PaymentOrchestrator = Depends(get_payment_orchestrator),
) -> CreditOptionsResponse:
    quote = await orchestrator.quote(auth.user_id, question_id, host=get_current_request_host())
    return CreditOptionsResponse(
        question_id=quote.question_id,
        required_user_credits=quote.required_user_credits,
        required_org_credits=quote.required_org_credits,
        required_credits=quote.required_credits,
        user_balance=quote.user_balance,
        org_id=quote.org_id,
        org_name=quote.org_name,
        org_role=quote.org_role,
        org_balance=quote.org_balance,
        applies=quote.applies,
        can_user_pay=quote.can_user_pay,
        can_org_pay=quote.can_org_pay,
        currency=quote.currency,
        multiplier=quote.multiplier,
        locked_amount=quote.locked_amount,
        fx_rate=quote.fx_rate,
        fx_as_of=quote.fx_as_of,
        display_error=quote.display_error,
    )


@router.post("/{question_id}/pay-credit", response_model=PaymentResponse)
async def pay_with_user_credits(
    question_id: UUID,
    auth: AuthContext = Depends(require_auth_context),
    orchestrator: PaymentOrchestrator = Depends(get_payment_orchestrator),
) -> PaymentResponse:
    outcome = await orchestrator.pay_as_individual(
        auth.user_id,
        question_id,
        host=get_current_request_host(),
    )
    return _payment_response(outcome)


@router.post("/{question_id}/pay-org-credit", response_model=PaymentResponse)
async def pay_with_org_credits(
    question_id: UUID,
    payload: PayOrgRequest | None = Body(default=None),
    auth: AuthContext = Depends(require_auth_context),
    orchestrator: PaymentOrchestrator = Depends(get_payment_orchestrator),
) -> PaymentResponse:
    outcome = await orchestrator.pay_as_organization(
        auth.user_id,
        question_id,
        org_id=payload.org_id if payload is not None else None,
        host=get_current_request_host(),
    )
    return _payment_response(outcome)


@router.post("/{question_id}/org-insufficient-notify", response_model=OrgShortfallResponse)
async def notify_org_owners_of_shortfall(
    question_id: UUID,
    payload: PayOrgRequest | None = Body(default=None),
    auth: AuthContext = Depends(require_auth_context),
    orchestrator: PaymentOrchestrator = Depends(get_payment_orchestrator),
) -> OrgShortfallResponse:
    notice = await orchestrator.notify_org_shortfall(
        auth.user_id,
        question_id,
        org_id=payload.org_id if payload is not None else None,
        host=get_current_request_host(),
    )
    return OrgShortfallResponse(
        question_id=notice.question_id,
        org_id=notice.org_id,
        required_credits=notice.required_credits,
        balance=notice.balance,
        owners_notified=notice.owner_count,
    )
