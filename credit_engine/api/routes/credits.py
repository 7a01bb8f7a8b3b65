from __future__ import annotations

import csv
import io
from typing import Literal

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from credit_engine.core.auth import AuthContext, require_auth_context
from credit_engine.core.db import get_db_session
from credit_engine.core.ledger import CreditLedger, CreditScope
from credit_engine.core.repositories.organizations import MembershipRepository
from credit_engine.models.credit_ledger import SCOPE_ORG, SCOPE_USER, CreditLedgerEntry
from credit_engine.schemas.credits import (
    BalanceResponse,
    CreditBalancesResponse,
    LedgerEntryResponse,
    LedgerHistoryResponse,
)

router = APIRouter(prefix="/credits", tags=["credits"])

CSV_COLUMNS = ("id", "scope_type", "scope_id", "change", "reason", "question_id", "created_at")


def _entries_to_csv(entries: list[CreditLedgerEntry]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_COLUMNS)
    for entry in entries:
        writer.writerow(
            [
                entry.id,
                entry.scope_type,
                entry.scope_id,
                entry.change,
                entry.reason,
                entry.question_id or "",
                entry.created_at.isoformat(),
            ]
        )
    return buffer.getvalue()


@router.get("/balance", response_model=CreditBalancesResponse)
async def get_balances(
    auth: AuthContext = Depends(require_auth_context),
    session: AsyncSession = Depends(get_db_session),
) -> CreditBalancesResponse:
    ledger = CreditLedger(session)
    user_scope = CreditScope(SCOPE_USER, auth.user_id)
    memberships = await MembershipRepository(session).active_for_user(auth.user_id)

    organizations: list[BalanceResponse] = []
    for membership in sorted(memberships, key=lambda m: (m.role_rank, str(m.org_id))):
        org_scope = CreditScope(SCOPE_ORG, membership.org_id)
        organizations.append(
            BalanceResponse(
                scope_type=SCOPE_ORG,
                scope_id=membership.org_id,
                balance=await ledger.balance_of(org_scope),
            )
        )

    return CreditBalancesResponse(
        user=BalanceResponse(
            scope_type=SCOPE_USER,
            scope_id=auth.user_id,
            balance=await ledger.balance_of(user_scope),
        ),
        organizations=organizations,
    )


@router.get("/history", response_model=LedgerHistoryResponse)
async def get_history(
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    export_format: Literal["json", "csv"] = Query(default="json", alias="format"),
    auth: AuthContext = Depends(require_auth_context),
    session: AsyncSession = Depends(get_db_session),
) -> LedgerHistoryResponse | Response:
    ledger = CreditLedger(session)
    scope = CreditScope(SCOPE_USER, auth.user_id)
    entries, total = await ledger.history(scope, limit=limit, offset=offset)

    if export_format == "csv":
        return Response(
            content=_entries_to_csv(entries),
            media_type="text/csv",
            headers={"Content-Disposition": 'attachment; filename="credit-history.csv"'},
        )

    return LedgerHistoryResponse(
        scope_type=scope.scope_type,
        scope_id=scope.scope_id,
        balance=await ledger.balance_of(scope),
        total=total,
        entries=[LedgerEntryResponse.model_validate(entry) for entry in entries],
    )
