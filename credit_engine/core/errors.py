"""Failure taxonomy shared by the pricing, ledger and payment modules."""

from __future__ import annotations

from typing import Any


class PaymentError(Exception):
    code = "unexpected"
    status_code = 500
    # Business outcomes are shown to the caller verbatim; the rest are logged
    # and rendered with a generic message.
    business = False

    def __init__(self, message: str, **details: Any) -> None:
        self.message = message
        self.details = details
        super().__init__(message)

    def payload(self) -> dict[str, Any]:
        return {"error": self.code, "message": self.message, **self.details}


class ForbiddenError(PaymentError):
    code = "forbidden"
    status_code = 403
    business = True


class NotFoundError(PaymentError):
    code = "not_found"
    status_code = 404
    business = True


class InvalidInputError(PaymentError, ValueError):
    code = "invalid_input"
    status_code = 400
    business = True


class InvalidPricingError(PaymentError):
    code = "invalid_pricing"
    status_code = 422
    business = True


class InsufficientCreditsError(PaymentError):
    code = "insufficient_credits"
    status_code = 402
    business = True

    def __init__(self, message: str, *, balance: int, required: int, **details: Any) -> None:
        super().__init__(message, balance=balance, required=required, **details)
        self.balance = balance
        self.required = required


class AlreadyProcessedError(PaymentError):
    code = "already_processed"
    status_code = 409
    business = True


class RateUnavailableError(PaymentError):
    code = "rate_unavailable"
    status_code = 503


class UnexpectedError(PaymentError):
    code = "unexpected"
    status_code = 500
