from credit_engine.models.base import Base, EntityBase
from credit_engine.models.credit_ledger import CreditLedgerEntry
from credit_engine.models.organization import Organization, OrganizationMember
from credit_engine.models.profile import Profile
from credit_engine.models.question import Question
from credit_engine.models.subscription_settings import SubscriptionSettings
from credit_engine.models.tenant import Tenant

__all__ = [
    "Base",
    "EntityBase",
    "CreditLedgerEntry",
    "Organization",
    "OrganizationMember",
    "Profile",
    "Question",
    "SubscriptionSettings",
    "Tenant",
]
