from __future__ import annotations

from decimal import Decimal

import pytest

from credit_engine.core.errors import InvalidInputError, InvalidPricingError
from credit_engine.core.pricing import (
    credit_requirement,
    ensure_chargeable,
    lock_price,
    normalize_discount,
    required_credits,
    round_half_up,
)


def test_lock_price_converts_and_applies_multiplier() -> None:
    assert lock_price(1000, "USD", 30, Decimal("1.15")) == 38
    assert lock_price(Decimal("1000"), "usd", "30", "1.15") == 38


def test_lock_price_is_deterministic() -> None:
    results = {lock_price(Decimal("2499.99"), "EUR", Decimal("36.1234"), Decimal("1.07")) for _ in range(20)}
    assert len(results) == 1


def test_lock_price_base_currency_ignores_rate() -> None:
    assert lock_price(1000, "TRY", 30, Decimal("1.15")) == 1150
    assert lock_price(1000, "TRY", 1, 1) == 1000


def test_lock_price_rounds_half_up() -> None:
    assert lock_price(5, "USD", 2, 1) == 3
    assert lock_price(7, "USD", 2, 1) == 4
    assert round_half_up(Decimal("2.4999")) == 2
    assert round_half_up(Decimal("2.5")) == 3


@pytest.mark.parametrize(
    ("rate", "multiplier"),
    [(0, 1), (-2, 1), (30, 0), (30, -1), ("nan", 1), (30, "inf"), ("abc", 1)],
)
def test_lock_price_rejects_invalid_inputs(rate: object, multiplier: object) -> None:
    with pytest.raises(InvalidInputError):
        lock_price(1000, "USD", rate, multiplier)


def test_normalize_discount_accepts_fraction_or_percentage() -> None:
    assert normalize_discount(None) == Decimal("0")
    assert normalize_discount("0.10") == Decimal("0.10")
    assert normalize_discount(10) == Decimal("0.1")
    assert normalize_discount(1) == Decimal("1")

    with pytest.raises(InvalidInputError):
        normalize_discount(-0.1)


def test_required_credits_worked_example() -> None:
    assert required_credits(10000, 100, Decimal("0.10"), 1) == 90
    assert required_credits(10000, 100, 10, 1) == 90
    assert required_credits(10000, 100, Decimal("0.10"), Decimal("1.15")) == 104


def test_required_credits_is_non_increasing_in_discount() -> None:
    discounts = [Decimal(step) / 20 for step in range(21)]
    credits = [required_credits(Decimal("12345.67"), 37, discount, Decimal("1.2")) for discount in discounts]
    assert credits == sorted(credits, reverse=True)
    assert credits[-1] == 0


def test_required_credits_treats_non_positive_unit_price_as_one() -> None:
    assert required_credits(50, 0, 0, 1) == 50
    assert required_credits(50, -3, 0, 1) == 50


def test_ensure_chargeable_rejects_zero_cost() -> None:
    assert ensure_chargeable(5, scope_type="user") == 5
    with pytest.raises(InvalidPricingError) as exc:
        ensure_chargeable(0, scope_type="org")
    assert exc.value.details["scope_type"] == "org"


def test_credit_requirement_prices_both_scopes() -> None:
    requirement = credit_requirement(
        10000,
        credit_unit_price=100,
        discount_user=Decimal("0.10"),
        discount_org=20,
        multiplier=1,
    )
    assert requirement.user_credits == 90
    assert requirement.org_credits == 80
    assert requirement.discount_org == Decimal("0.2")
