from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from credit_engine.core.config import settings
from credit_engine.core.errors import InvalidInputError, InvalidPricingError

Number = Decimal | int | float | str


def _to_decimal(value: Number, name: str) -> Decimal:
    try:
        number = Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise InvalidInputError(f"{name} is not a number", field=name) from exc
    if not number.is_finite():
        raise InvalidInputError(f"{name} must be finite", field=name)
    return number


def round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def lock_price(
    base_amount: Number,
    target_currency: str,
    rate: Number,
    multiplier: Number,
) -> int:
    """Convert a base-currency amount into a whole-unit display price.

    ``rate`` is "1 unit of target currency = rate units of base currency".
    """
    amount = _to_decimal(base_amount, "base_amount")
    units_per_base = _to_decimal(rate, "rate")
    factor = _to_decimal(multiplier, "multiplier")
    if units_per_base <= 0:
        raise InvalidInputError("rate must be greater than zero", field="rate")
    if factor <= 0:
        raise InvalidInputError("multiplier must be greater than zero", field="multiplier")

    if (target_currency or "").strip().upper() == settings.base_currency.upper():
        return round_half_up(amount * factor)
    return round_half_up((amount / units_per_base) * factor)


def normalize_discount(discount: Number | None) -> Decimal:
    """Return the discount as a fraction; values above 1 are read as percentages."""
    if discount is None:
        return Decimal("0")
    value = _to_decimal(discount, "discount")
    if value < 0:
        raise InvalidInputError("discount cannot be negative", field="discount")
    if value > 1:
        value = value / 100
    return value


def required_credits(
    base_amount: Number,
    credit_unit_price: Number,
    discount: Number | None,
    multiplier: Number,
) -> int:
    """Credits needed for ``base_amount``. May be <= 0; see ``ensure_chargeable``."""
    amount = _to_decimal(base_amount, "base_amount")
    unit_price = _to_decimal(credit_unit_price, "credit_unit_price")
    factor = _to_decimal(multiplier, "multiplier")
    fraction = normalize_discount(discount)

    discounted = amount * (1 - fraction)
    raw_credits = discounted / (unit_price if unit_price > 0 else Decimal("1"))
    return round_half_up(raw_credits * factor)


def ensure_chargeable(credits: int, *, scope_type: str) -> int:
    if credits <= 0:
        raise InvalidPricingError(
            "Computed credit cost is not positive",
            scope_type=scope_type,
            required=credits,
        )
    return credits


@dataclass(slots=True, frozen=True)
class CreditRequirement:
    user_credits: int
    org_credits: int
    credit_unit_price: Decimal
    discount_user: Decimal
    discount_org: Decimal
    multiplier: Decimal


def credit_requirement(
    base_amount: Number,
    *,
    credit_unit_price: Number,
    discount_user: Number | None,
    discount_org: Number | None,
    multiplier: Number,
) -> CreditRequirement:
    """Price both scopes independently so either can be displayed."""
    return CreditRequirement(
        user_credits=required_credits(base_amount, credit_unit_price, discount_user, multiplier),
        org_credits=required_credits(base_amount, credit_unit_price, discount_org, multiplier),
        credit_unit_price=_to_decimal(credit_unit_price, "credit_unit_price"),
        discount_user=normalize_discount(discount_user),
        discount_org=normalize_discount(discount_org),
        multiplier=_to_decimal(multiplier, "multiplier"),
    )
