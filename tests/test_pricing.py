from decimal import Decimal

import pytest

from cowork.core.errors import DurationOutOfRange
from cowork.core.pricing import (
    Eligibility,
    PricingRates,
    calculate_price,
    member_cafe_price,
    settle_usage,
)

NOBODY = Eligibility()
NFT = Eligibility(is_nft_holder=True)
MEMBER = Eligibility(is_member=True)


def test_hot_desk_without_discounts():
    breakdown = calculate_price("2.50", 4, NOBODY)
    assert breakdown.subtotal == Decimal("10.00")
    assert breakdown.discount_amount == Decimal("0")
    assert breakdown.processing_fee == Decimal("0.59")
    assert breakdown.total_price == Decimal("10.59")
    assert not breakdown.nft_discount_applied
    assert breakdown.payment_method == "card"


def test_hot_desk_for_nft_holder():
    breakdown = calculate_price("2.50", 4, NFT)
    assert breakdown.discount_amount == Decimal("5.00")
    assert breakdown.nft_discount_applied
    assert breakdown.processing_fee == Decimal("0.45")
    assert breakdown.total_price == Decimal("5.45")


def test_meeting_room_fully_covered_by_credits():
    breakdown = calculate_price(
        "25.00", 3, MEMBER, available_credit_hours=5, accepts_credits=True
    )
    assert breakdown.credits_used == Decimal("3")
    assert breakdown.overage_hours == Decimal("0")
    assert breakdown.subtotal == Decimal("0")
    assert breakdown.processing_fee == Decimal("0")
    assert breakdown.total_price == Decimal("0.00")
    assert breakdown.base_amount == Decimal("75.00")
    assert breakdown.payment_method == "credits"


def test_meeting_room_partially_covered_by_credits():
    breakdown = calculate_price(
        "25.00", 5, MEMBER, available_credit_hours=2, accepts_credits=True
    )
    assert breakdown.credits_used == Decimal("2")
    assert breakdown.overage_hours == Decimal("3")
    assert breakdown.subtotal == Decimal("75.00")
    assert breakdown.processing_fee == Decimal("2.48")
    assert breakdown.total_price == Decimal("77.48")


def test_credits_ignored_where_not_accepted_or_declined():
    desk = calculate_price("2.50", 4, MEMBER, available_credit_hours=10, accepts_credits=False)
    declined = calculate_price(
        "25.00", 2, MEMBER, available_credit_hours=10, accepts_credits=True, use_credits=False
    )
    assert desk.credits_used == 0 and desk.total_price == Decimal("10.59")
    assert declined.credits_used == 0 and declined.subtotal == Decimal("50.00")


def test_non_member_cannot_spend_credits():
    breakdown = calculate_price("25.00", 2, NFT, available_credit_hours=10, accepts_credits=True)
    assert breakdown.credits_used == 0
    assert breakdown.discount_amount == Decimal("25.00")


def test_nft_discount_applies_only_to_overage():
    both = Eligibility(is_nft_holder=True, is_member=True)
    breakdown = calculate_price("25.00", 5, both, available_credit_hours=2, accepts_credits=True)
    assert breakdown.subtotal == Decimal("75.00")
    assert breakdown.discount_amount == Decimal("37.50")
    assert breakdown.total_price == Decimal("38.89")

    covered = calculate_price("25.00", 2, both, available_credit_hours=2, accepts_credits=True)
    assert not covered.nft_discount_applied
    assert covered.total_price == 0


def test_quote_is_deterministic():
    args = ("40.00", Decimal("2.5"), NFT)
    first = calculate_price(*args)
    assert all(calculate_price(*args) == first for _ in range(20))


def test_negative_duration_rejected():
    with pytest.raises(DurationOutOfRange):
        calculate_price("2.50", -1, NOBODY)


def test_rates_are_configurable():
    rates = PricingRates(
        nft_discount_rate=Decimal("0.25"),
        card_processing_rate=Decimal("0"),
        fixed_processing_fee=Decimal("0"),
    )
    assert calculate_price("10.00", 2, NFT, rates=rates).total_price == Decimal("15.00")


def test_member_cafe_discount_is_separate():
    assert member_cafe_price("20.00", MEMBER) == Decimal("18.00")
    assert member_cafe_price("20.00", NFT) == Decimal("20.00")


def test_settle_short_stay_returns_unused_credits():
    settlement = settle_usage(
        hourly_rate="25.00",
        booked_hours=3,
        actual_hours=1,
        credits_reserved=3,
        total_paid=0,
        eligibility=MEMBER,
    )
    assert settlement.credits_to_refund == Decimal("2")
    assert settlement.final_charge == 0
    assert settlement.refund_amount == 0


def test_settle_short_stay_reduces_cash_charge():
    settlement = settle_usage(
        hourly_rate="2.50",
        booked_hours=4,
        actual_hours=2,
        credits_reserved=0,
        total_paid="10.59",
        eligibility=NOBODY,
    )
    # 2h at 2.50 plus 0.029 * 5.00 + 0.30
    assert settlement.final_charge == Decimal("5.45")
    assert settlement.refund_amount == Decimal("5.14")
    assert settlement.credits_to_refund == 0


def test_settle_long_stay_charges_overage_at_full_rate():
    settlement = settle_usage(
        hourly_rate="2.50",
        booked_hours=4,
        actual_hours=5,
        credits_reserved=0,
        total_paid="5.45",
        eligibility=NFT,
    )
    assert settlement.overage_charge == Decimal("2.87")
    assert settlement.final_charge == Decimal("8.32")

    discounted = settle_usage(
        hourly_rate="2.50",
        booked_hours=4,
        actual_hours=5,
        credits_reserved=0,
        total_paid="5.45",
        eligibility=NFT,
        discount_overage=True,
    )
    assert discounted.overage_charge == Decimal("1.59")


def test_settle_exact_stay_changes_nothing():
    settlement = settle_usage(
        hourly_rate="2.50",
        booked_hours=4,
        actual_hours=4,
        credits_reserved=0,
        total_paid="10.59",
        eligibility=NOBODY,
    )
    assert settlement.final_charge == Decimal("10.59")
    assert settlement.refund_amount == 0 and settlement.overage_charge == 0
