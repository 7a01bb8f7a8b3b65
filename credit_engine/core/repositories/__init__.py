from credit_engine.core.repositories.base import Repository
from credit_engine.core.repositories.credit_ledger import CreditLedgerRepository
from credit_engine.core.repositories.organizations import MembershipRepository, OrganizationRepository
from credit_engine.core.repositories.questions import QuestionRepository
from credit_engine.core.repositories.subscription_settings import SubscriptionSettingsRepository
from credit_engine.core.repositories.tenants import ProfileRepository, TenantRepository

__all__ = [
    "Repository",
    "CreditLedgerRepository",
    "MembershipRepository",
    "OrganizationRepository",
    "ProfileRepository",
    "QuestionRepository",
    "SubscriptionSettingsRepository",
    "TenantRepository",
]
