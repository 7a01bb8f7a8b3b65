"""Append-only credit ledger.

The balance of a scope is the sum of its entries and nothing else. The cached
``organizations.credit_balance`` column is rewritten from that sum whenever an
org-scope entry is written here, and is never consulted for debit decisions.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from credit_engine.core.db import acquire_scope_lock
from credit_engine.core.errors import (
    AlreadyProcessedError,
    InsufficientCreditsError,
    InvalidInputError,
    PaymentError,
    UnexpectedError,
)
from credit_engine.core.repositories.credit_ledger import CreditLedgerRepository
from credit_engine.core.repositories.organizations import OrganizationRepository
from credit_engine.core.repositories.questions import QuestionRepository
from credit_engine.models.base import utcnow
from credit_engine.models.credit_ledger import (
    REASON_MANUAL_ADJUST,
    REASON_QUESTION_DEBIT,
    SCOPE_ORG,
    SCOPE_TYPES,
    CreditLedgerEntry,
)

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class CreditScope:
    scope_type: str
    scope_id: UUID

    def __post_init__(self) -> None:
        if self.scope_type not in SCOPE_TYPES:
            raise InvalidInputError(f"Unknown scope type {self.scope_type!r}", field="scope_type")

    def __str__(self) -> str:
        return f"{self.scope_type}:{self.scope_id}"


@dataclass(slots=True, frozen=True)
class DebitResult:
    entry: CreditLedgerEntry
    balance_before: int
    balance_after: int


class CreditLedger:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.entries = CreditLedgerRepository(session)
        self.organizations = OrganizationRepository(session)
        self.questions = QuestionRepository(session)

    async def balance_of(self, scope: CreditScope) -> int:
        return await self.entries.sum_for_scope(scope.scope_type, scope.scope_id)

    async def history(
        self,
        scope: CreditScope,
        *,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[CreditLedgerEntry], int]:
        entries = await self.entries.list_for_scope(
            scope.scope_type, scope.scope_id, limit=limit, offset=offset
        )
        total = await self.entries.count_for_scope(scope.scope_type, scope.scope_id)
        return entries, total

    async def append(
        self,
        scope: CreditScope,
        change: int,
        reason: str,
        *,
        question_id: UUID | None = None,
        meta: dict[str, Any] | None = None,
    ) -> CreditLedgerEntry:
        """Insert one immutable entry inside the caller's transaction."""
        if isinstance(change, bool) or not isinstance(change, int) or change == 0:
            raise InvalidInputError("Ledger change must be a non-zero integer", field="change")
        if not reason:
            raise InvalidInputError("Ledger reason is required", field="reason")

        entry = await self.entries.create(
            scope_type=scope.scope_type,
            scope_id=scope.scope_id,
            change=change,
            reason=reason,
            question_id=question_id,
            meta=meta,
        )
        if scope.scope_type == SCOPE_ORG:
            await self.refresh_cached_balance(scope.scope_id)
        return entry

    async def refresh_cached_balance(self, org_id: UUID) -> int:
        balance = await self.entries.sum_for_scope(SCOPE_ORG, org_id)
        await self.organizations.store_cached_balance(org_id, balance)
        return balance

    async def debit_for_approval(
        self,
        scope: CreditScope,
        question_id: UUID,
        credits: int,
        *,
        meta: dict[str, Any] | None = None,
    ) -> DebitResult:
        """Debit ``credits`` and approve the question as one transaction.

        The conditional ``submitted -> approved`` update is the idempotency
        guard: a second attempt finds nothing to update and writes nothing.
        """
        if credits <= 0:
            raise InvalidInputError("Debit must be a positive credit amount", field="credits")

        try:
            await acquire_scope_lock(self.session, scope.scope_type, scope.scope_id)

            approved = await self.questions.approve_if_submitted(question_id, utcnow())
            if not approved:
                raise AlreadyProcessedError(
                    "Question has already been paid for",
                    question_id=str(question_id),
                )

            balance = await self.balance_of(scope)
            if balance < credits:
                raise InsufficientCreditsError(
                    "Not enough credits",
                    balance=balance,
                    required=credits,
                    scope_type=scope.scope_type,
                )

            entry = await self.append(
                scope,
                -credits,
                REASON_QUESTION_DEBIT,
                question_id=question_id,
                meta=meta,
            )
            await self.session.commit()
        except PaymentError:
            await self.session.rollback()
            raise
        except SQLAlchemyError as exc:
            await self.session.rollback()
            logger.exception(
                "Credit debit failed scope=%s question=%s credits=%s",
                scope,
                question_id,
                credits,
            )
            raise UnexpectedError("Payment could not be recorded") from exc

        return DebitResult(entry=entry, balance_before=balance, balance_after=balance - credits)

    async def adjust(
        self,
        scope: CreditScope,
        amount: int,
        *,
        negate: bool,
        adjusted_by: UUID,
    ) -> tuple[CreditLedgerEntry, int]:
        """Administrative grant (or, with ``negate``, removal) of credits."""
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise InvalidInputError("Adjustment amount must be a positive integer", field="amount")
        change = -amount if negate else amount

        try:
            await acquire_scope_lock(self.session, scope.scope_type, scope.scope_id)
            balance = await self.balance_of(scope)
            if balance + change < 0:
                raise InsufficientCreditsError(
                    "Adjustment would make the balance negative",
                    balance=balance,
                    required=amount,
                    scope_type=scope.scope_type,
                )
            entry = await self.append(
                scope,
                change,
                REASON_MANUAL_ADJUST,
                meta={
                    "kind": "manual_decrease" if negate else "manual_increase",
                    "credits": amount,
                    "adjusted_by": str(adjusted_by),
                    "source": "admin_api",
                },
            )
            await self.session.commit()
        except PaymentError:
            await self.session.rollback()
            raise
        except SQLAlchemyError as exc:
            await self.session.rollback()
            logger.exception("Credit adjustment failed scope=%s change=%s", scope, change)
            raise UnexpectedError("Adjustment could not be recorded") from exc

        return entry, balance + change
