"""Booking price calculation.

Everything here is a pure function of its arguments so quotes can be
reproduced exactly. Amounts are ``Decimal`` and money is rounded to cents
half-up only at the edges of each breakdown.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from .constants import CENTS, HOURS_QUANTUM
from .errors import DurationOutOfRange

ZERO = Decimal(0)


def to_decimal(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def money(value: Decimal) -> Decimal:
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def hours(value: Decimal) -> Decimal:
    return value.quantize(HOURS_QUANTUM, rounding=ROUND_HALF_UP)


@dataclass(frozen=True, slots=True)
class Eligibility:
    is_nft_holder: bool = False
    is_member: bool = False


@dataclass(frozen=True, slots=True)
class PricingRates:
    nft_discount_rate: Decimal = Decimal("0.50")
    member_cafe_discount_rate: Decimal = Decimal("0.10")
    card_processing_rate: Decimal = Decimal("0.029")
    fixed_processing_fee: Decimal = Decimal("0.30")

    @classmethod
    def from_settings(cls, settings: Any) -> PricingRates:
        return cls(
            nft_discount_rate=to_decimal(settings.nft_workspace_discount_rate),
            member_cafe_discount_rate=to_decimal(settings.member_cafe_discount_rate),
            card_processing_rate=to_decimal(settings.card_processing_rate),
            fixed_processing_fee=to_decimal(settings.fixed_processing_fee),
        )


@dataclass(frozen=True, slots=True)
class PricingBreakdown:
    base_amount: Decimal
    subtotal: Decimal
    discount_amount: Decimal
    nft_discount_applied: bool
    credits_used: Decimal
    overage_hours: Decimal
    processing_fee: Decimal
    total_price: Decimal

    @property
    def payment_method(self) -> str:
        if self.total_price == ZERO and self.credits_used > ZERO:
            return "credits"
        return "card"

    def as_dict(self) -> dict[str, Any]:
        return {
            "base_amount": self.base_amount,
            "subtotal": self.subtotal,
            "discount_amount": self.discount_amount,
            "nft_discount_applied": self.nft_discount_applied,
            "credits_used": self.credits_used,
            "overage_hours": self.overage_hours,
            "processing_fee": self.processing_fee,
            "total_price": self.total_price,
            "payment_method": self.payment_method,
        }


def calculate_price(
    hourly_rate: Any,
    duration_hours: Any,
    eligibility: Eligibility,
    *,
    available_credit_hours: Any = ZERO,
    accepts_credits: bool = False,
    use_credits: bool = True,
    rates: PricingRates | None = None,
) -> PricingBreakdown:
    """Price ``duration_hours`` of a workspace billed at ``hourly_rate``.

    Members spend prepaid hours first when the workspace accepts credits;
    whatever the credits do not cover is billed in cash. NFT holders get the
    workspace discount on the cash part, and a card processing fee is added
    only when cash is actually due.
    """

    rates = rates or PricingRates()
    rate = to_decimal(hourly_rate)
    duration = to_decimal(duration_hours)
    if duration < ZERO:
        raise DurationOutOfRange("Duration cannot be negative")

    base_amount = rate * duration
    credits_used = ZERO
    overage_hours = ZERO
    priceable_hours = duration
    if eligibility.is_member and accepts_credits and use_credits:
        available = max(to_decimal(available_credit_hours), ZERO)
        credits_used = min(duration, available)
        overage_hours = duration - credits_used
        priceable_hours = overage_hours

    priceable_amount = rate * priceable_hours
    discount_amount = ZERO
    nft_discount_applied = False
    if eligibility.is_nft_holder and priceable_amount > ZERO:
        discount_amount = priceable_amount * rates.nft_discount_rate
        nft_discount_applied = True

    net_amount = priceable_amount - discount_amount
    processing_fee = ZERO
    if net_amount > ZERO:
        processing_fee = net_amount * rates.card_processing_rate + rates.fixed_processing_fee

    return PricingBreakdown(
        base_amount=money(base_amount),
        subtotal=money(priceable_amount),
        discount_amount=money(discount_amount),
        nft_discount_applied=nft_discount_applied,
        credits_used=hours(credits_used),
        overage_hours=hours(overage_hours),
        processing_fee=money(processing_fee),
        total_price=money(net_amount + processing_fee),
    )


def member_cafe_price(amount: Any, eligibility: Eligibility, rates: PricingRates | None = None) -> Decimal:
    """Cafe orders get the smaller member discount; workspace bookings never do."""

    rates = rates or PricingRates()
    value = to_decimal(amount)
    if eligibility.is_member:
        value -= value * rates.member_cafe_discount_rate
    return money(value)


@dataclass(frozen=True, slots=True)
class UsageSettlement:
    actual_hours: Decimal
    final_charge: Decimal
    refund_amount: Decimal
    overage_charge: Decimal
    credits_to_refund: Decimal


def settle_usage(
    *,
    hourly_rate: Any,
    booked_hours: Any,
    actual_hours: Any,
    credits_reserved: Any,
    total_paid: Any,
    eligibility: Eligibility,
    discount_overage: bool = False,
    rates: PricingRates | None = None,
) -> UsageSettlement:
    """Reconcile what was booked with what was used at check-out.

    Shorter stays are re-priced for the hours actually used, spending the
    reserved credits first, and the difference is returned as unused credit
    hours and/or a cash refund. Longer stays keep the original charge and add
    the extra hours at the full rate unless ``discount_overage`` is set.
    """

    booked = to_decimal(booked_hours)
    actual = hours(max(to_decimal(actual_hours), ZERO))
    reserved = to_decimal(credits_reserved)
    paid = money(to_decimal(total_paid))

    if actual < booked:
        used = calculate_price(
            hourly_rate,
            actual,
            Eligibility(is_nft_holder=eligibility.is_nft_holder, is_member=reserved > ZERO),
            available_credit_hours=reserved,
            accepts_credits=reserved > ZERO,
            rates=rates,
        )
        final_charge = min(used.total_price, paid)
        return UsageSettlement(
            actual_hours=actual,
            final_charge=final_charge,
            refund_amount=paid - final_charge,
            overage_charge=ZERO,
            credits_to_refund=reserved - used.credits_used,
        )

    if actual > booked:
        extra = calculate_price(
            hourly_rate,
            actual - booked,
            Eligibility(is_nft_holder=eligibility.is_nft_holder and discount_overage),
            rates=rates,
        )
        return UsageSettlement(
            actual_hours=actual,
            final_charge=paid + extra.total_price,
            refund_amount=ZERO,
            overage_charge=extra.total_price,
            credits_to_refund=ZERO,
        )

    return UsageSettlement(
        actual_hours=actual,
        final_charge=paid,
        refund_amount=ZERO,
        overage_charge=ZERO,
        credits_to_refund=ZERO,
    )


__all__ = [
    "Eligibility",
    "PricingRates",
    "PricingBreakdown",
    "UsageSettlement",
    "calculate_price",
    "member_cafe_price",
    "settle_usage",
    "money",
    "hours",
    "to_decimal",
]
