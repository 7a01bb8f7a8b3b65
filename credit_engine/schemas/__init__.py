from credit_engine.schemas.admin import ReconcileResponse, SystemHealthResponse
from credit_engine.schemas.credits import (
    BalanceResponse,
    CreditAdjustRequest,
    CreditAdjustResponse,
    CreditBalancesResponse,
    CreditOptionsResponse,
    LedgerEntryResponse,
    LedgerHistoryResponse,
    OrgShortfallResponse,
    PaymentResponse,
    PayOrgRequest,
)
from credit_engine.schemas.fx import FxRateResponse, PriceLockResponse

__all__ = [
    "BalanceResponse",
    "CreditAdjustRequest",
    "CreditAdjustResponse",
    "CreditBalancesResponse",
    "CreditOptionsResponse",
    "FxRateResponse",
    "LedgerEntryResponse",
    "LedgerHistoryResponse",
    "OrgShortfallResponse",
    "PaymentResponse",
    "PayOrgRequest",
    "PriceLockResponse",
    "ReconcileResponse",
    "SystemHealthResponse",
]
