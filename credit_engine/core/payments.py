from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from credit_engine.core.errors import (
    AlreadyProcessedError,
    ForbiddenError,
    InvalidInputError,
    InvalidPricingError,
    NotFoundError,
    PaymentError,
    RateUnavailableError,
    UnexpectedError,
)
from credit_engine.core.events import (
    EventPublisher,
    OrgCreditsInsufficientEvent,
    PaymentApprovedEvent,
    publish_event,
)
from credit_engine.core.fx import RequestRateCache
from credit_engine.core.ledger import CreditLedger, CreditScope
from credit_engine.core.pricing import CreditRequirement, credit_requirement, ensure_chargeable, lock_price
from credit_engine.core.repositories.organizations import MembershipRepository, OrganizationRepository
from credit_engine.core.repositories.questions import QuestionRepository
from credit_engine.core.repositories.subscription_settings import SubscriptionSettingsRepository
from credit_engine.core.tenancy import TenantPricing, TenantResolver
from credit_engine.models.credit_ledger import SCOPE_ORG, SCOPE_USER
from credit_engine.models.organization import OrganizationMember
from credit_engine.models.question import STATUS_SUBMITTED, Question

logger = logging.getLogger(__name__)


def pick_membership(memberships: Iterable[OrganizationMember]) -> OrganizationMember | None:
    """Highest-privilege membership first; org id breaks ties."""
    return min(memberships, key=lambda m: (m.role_rank, str(m.org_id)), default=None)


@dataclass(slots=True)
class PaymentOutcome:
    question_id: UUID
    scope_type: str
    scope_id: UUID
    credits: int
    balance_after: int


@dataclass(slots=True)
class ShortfallNotice:
    question_id: UUID
    org_id: UUID
    required_credits: int
    balance: int
    owner_count: int


@dataclass(slots=True)
class CreditQuote:
    question_id: UUID
    required_user_credits: int
    required_org_credits: int
    user_balance: int
    org_id: UUID | None
    org_role: str | None
    org_name: str | None
    org_balance: int | None
    applies: str
    currency: str
    multiplier: Decimal
    locked_amount: int | None = None
    fx_rate: Decimal | None = None
    fx_as_of: date | None = None
    display_error: str | None = None

    @property
    def required_credits(self) -> int:
        return self.required_org_credits if self.applies == SCOPE_ORG else self.required_user_credits

    @property
    def can_user_pay(self) -> bool:
        return self.required_user_credits > 0 and self.user_balance >= self.required_user_credits

    @property
    def can_org_pay(self) -> bool:
        return (
            self.org_balance is not None
            and self.required_org_credits > 0
            and self.org_balance >= self.required_org_credits
        )


class PaymentOrchestrator:
    """Pays for questions with credits.

    Tenant pricing and credit cost are worked out first. Then the balance
    check, debit and ``submitted -> approved`` transition commit together.
    """

    def __init__(
        self,
        session: AsyncSession,
        *,
        rate_source: RequestRateCache | None = None,
        publish_event: EventPublisher = publish_event,
    ) -> None:
        self.session = session
        self.rate_source = rate_source
        self.publish_event = publish_event
        self.ledger = CreditLedger(session)
        self.tenants = TenantResolver(session)
        self.questions = QuestionRepository(session)
        self.memberships = MembershipRepository(session)
        self.organizations = OrganizationRepository(session)
        self.subscription_settings = SubscriptionSettingsRepository(session)

    async def pay_as_individual(
        self,
        principal_id: UUID,
        question_id: UUID,
        *,
        host: str | None = None,
    ) -> PaymentOutcome:
        try:
            question = await self._load_owned_question(principal_id, question_id)
            pricing = await self.tenants.resolve_or_default(principal_id, host)
            requirement = await self._requirement(question, pricing)
        except SQLAlchemyError as exc:
            raise self._unexpected(SCOPE_USER, principal_id, question_id) from exc

        credits = ensure_chargeable(requirement.user_credits, scope_type=SCOPE_USER)
        scope = CreditScope(SCOPE_USER, principal_id)
        return await self._charge(scope, question, credits, principal_id, pricing)

    async def pay_as_organization(
        self,
        principal_id: UUID,
        question_id: UUID,
        *,
        org_id: UUID | None = None,
        host: str | None = None,
    ) -> PaymentOutcome:
        try:
            question = await self._load_owned_question(principal_id, question_id)
            membership = await self._charging_membership(principal_id, org_id)
            pricing = await self.tenants.resolve_or_default(principal_id, host)
            requirement = await self._requirement(question, pricing)
        except SQLAlchemyError as exc:
            raise self._unexpected(SCOPE_ORG, org_id, question_id) from exc

        credits = ensure_chargeable(requirement.org_credits, scope_type=SCOPE_ORG)
        scope = CreditScope(SCOPE_ORG, membership.org_id)
        return await self._charge(scope, question, credits, principal_id, pricing)

    async def notify_org_shortfall(
        self,
        principal_id: UUID,
        question_id: UUID,
        *,
        org_id: UUID | None = None,
        host: str | None = None,
    ) -> ShortfallNotice:
        """Ask the organization's owners to top up so the member can pay.

        Nothing is written; the owners are told through the event stream.
        """
        try:
            question = await self._load_owned_question(principal_id, question_id)
            if question.status != STATUS_SUBMITTED:
                raise AlreadyProcessedError(
                    "Question has already been paid for",
                    question_id=str(question_id),
                )
            membership = await self._charging_membership(principal_id, org_id)
            owner_ids = await self.memberships.active_owner_ids(membership.org_id)
            if not owner_ids:
                raise NotFoundError("Organization has no active owner", org_id=str(membership.org_id))

            pricing = await self.tenants.resolve_or_default(principal_id, host)
            requirement = await self._requirement(question, pricing)
            balance = await self.ledger.balance_of(CreditScope(SCOPE_ORG, membership.org_id))
        except SQLAlchemyError as exc:
            raise self._unexpected(SCOPE_ORG, org_id, question_id) from exc

        required = ensure_chargeable(requirement.org_credits, scope_type=SCOPE_ORG)
        if balance >= required:
            raise InvalidInputError(
                "Organization has enough credits for this question",
                balance=balance,
                required=required,
            )

        await self.publish_event(
            OrgCreditsInsufficientEvent(
                question_id=str(question.id),
                org_id=str(membership.org_id),
                actor_id=str(principal_id),
                required_credits=required,
                balance=balance,
            )
        )
        logger.info(
            "Credit shortfall for question %s reported to %s owner(s) of org %s (%s < %s)",
            question.id,
            len(owner_ids),
            membership.org_id,
            balance,
            required,
        )
        return ShortfallNotice(
            question_id=question.id,
            org_id=membership.org_id,
            required_credits=required,
            balance=balance,
            owner_count=len(owner_ids),
        )

    async def quote(
        self,
        principal_id: UUID,
        question_id: UUID,
        *,
        host: str | None = None,
    ) -> CreditQuote:
        try:
            question = await self._load_owned_question(principal_id, question_id)
            pricing = await self.tenants.resolve_or_default(principal_id, host)
            requirement = await self._requirement(question, pricing)
            user_balance = await self.ledger.balance_of(CreditScope(SCOPE_USER, principal_id))

            membership = pick_membership(await self.memberships.active_for_user(principal_id))
            org_balance = org_name = None
            if membership is not None:
                org_balance = await self.ledger.balance_of(CreditScope(SCOPE_ORG, membership.org_id))
                organization = await self.organizations.get(membership.org_id)
                org_name = organization.name if organization is not None else None
        except SQLAlchemyError as exc:
            raise self._unexpected(SCOPE_USER, principal_id, question_id) from exc

        quote = CreditQuote(
            question_id=question.id,
            required_user_credits=requirement.user_credits,
            required_org_credits=requirement.org_credits,
            user_balance=user_balance,
            org_id=membership.org_id if membership is not None else None,
            org_role=membership.org_role if membership is not None else None,
            org_name=org_name,
            org_balance=org_balance,
            applies=SCOPE_ORG if membership is not None else SCOPE_USER,
            currency=pricing.currency,
            multiplier=pricing.multiplier,
        )
        await self._attach_display_price(quote, question.effective_price, pricing)
        return quote

    async def _attach_display_price(
        self,
        quote: CreditQuote,
        base_amount: Decimal,
        pricing: TenantPricing,
    ) -> None:
        if self.rate_source is None:
            return
        # Display conversion is independent of the credit path; a missing rate
        # only blanks the display fields.
        try:
            rate = await self.rate_source.fetch_rate(pricing.currency)
        except RateUnavailableError as exc:
            logger.warning(
                "Display price unavailable for question=%s currency=%s: %s",
                quote.question_id,
                pricing.currency,
                exc.message,
            )
            quote.display_error = exc.code
            return

        quote.fx_rate = rate.units_per_base
        quote.fx_as_of = rate.as_of
        quote.locked_amount = lock_price(base_amount, pricing.currency, rate.units_per_base, pricing.multiplier)

    async def _load_owned_question(self, principal_id: UUID, question_id: UUID) -> Question:
        question = await self.questions.get(question_id)
        if question is None:
            raise NotFoundError("Question not found", question_id=str(question_id))
        if question.user_id != principal_id:
            raise ForbiddenError("Question belongs to another user", question_id=str(question_id))
        return question

    async def _charging_membership(self, principal_id: UUID, org_id: UUID | None) -> OrganizationMember:
        memberships = await self.memberships.active_for_user(principal_id)
        if org_id is not None:
            memberships = [m for m in memberships if m.org_id == org_id]
        membership = pick_membership(memberships)
        if membership is None:
            raise ForbiddenError(
                "No active organization membership",
                org_id=str(org_id) if org_id is not None else None,
            )
        return membership

    async def _requirement(self, question: Question, pricing: TenantPricing) -> CreditRequirement:
        active = await self.subscription_settings.get_active()
        if active is None:
            raise InvalidPricingError("Subscription settings are missing")
        return credit_requirement(
            question.effective_price,
            credit_unit_price=active.credit_unit_price,
            discount_user=active.credit_discount_user,
            discount_org=active.credit_discount_org,
            multiplier=pricing.multiplier,
        )

    async def _charge(
        self,
        scope: CreditScope,
        question: Question,
        credits: int,
        actor_id: UUID,
        pricing: TenantPricing,
    ) -> PaymentOutcome:
        result = await self.ledger.debit_for_approval(
            scope,
            question.id,
            credits,
            meta={
                "actor_id": str(actor_id),
                "tenant_code": pricing.tenant_code,
                "multiplier": str(pricing.multiplier),
                "price_base": str(question.effective_price),
            },
        )
        logger.info(
            "Question %s approved with %s credits from %s (balance %s -> %s)",
            question.id,
            credits,
            scope,
            result.balance_before,
            result.balance_after,
        )

        event = PaymentApprovedEvent(
            question_id=str(question.id),
            scope_type=scope.scope_type,
            scope_id=str(scope.scope_id),
            actor_id=str(actor_id),
            credits=credits,
            balance_after=result.balance_after,
        )
        try:
            await self.publish_event(event)
        except Exception:
            logger.exception("Payment notification failed for question=%s", question.id)

        return PaymentOutcome(
            question_id=question.id,
            scope_type=scope.scope_type,
            scope_id=scope.scope_id,
            credits=credits,
            balance_after=result.balance_after,
        )

    @staticmethod
    def _unexpected(
        scope_type: str,
        scope_id: UUID | None,
        question_id: UUID,
    ) -> PaymentError:
        logger.exception(
            "Payment lookup failed scope=%s:%s question=%s",
            scope_type,
            scope_id,
            question_id,
        )
        return UnexpectedError("Payment could not be processed")
