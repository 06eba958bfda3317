"""Prepaid credit ledger.

The ``credit_transactions`` log is the source of truth; ``credit_balances``
rows are a projection kept in step by :func:`_append`, which is the only
place a balance is ever changed. Functions that are part of a larger booking
step only flush, so the caller's transaction decides whether they stick.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..core.errors import InvalidRefund, LedgerInconsistency, NoActiveCycle
from ..core.pricing import to_decimal
from ..db import models
from ..db.session import unit_of_work

logger = logging.getLogger(__name__)

ZERO = Decimal(0)


@dataclass(slots=True)
class Reservation:
    credits_used: Decimal
    overage_hours: Decimal
    transaction: models.CreditTransaction | None = None


def _now() -> datetime:
    return datetime.now(timezone.utc)


def find_balance(
    db: Session,
    user_id: int,
    credit_type: models.CreditType,
    on: date,
    *,
    lock: bool = False,
) -> models.CreditBalance | None:
    stmt = (
        select(models.CreditBalance)
        .where(
            models.CreditBalance.user_id == user_id,
            models.CreditBalance.credit_type == credit_type,
            models.CreditBalance.status == models.CreditBalanceStatus.active,
            models.CreditBalance.cycle_start <= on,
            models.CreditBalance.cycle_end >= on,
        )
        .order_by(models.CreditBalance.cycle_end)
    )
    if lock:
        stmt = stmt.with_for_update()
    return db.execute(stmt).scalars().first()


def get_balance(db: Session, user_id: int, credit_type: models.CreditType, on: date) -> Decimal:
    balance = find_balance(db, user_id, credit_type, on)
    if balance is None:
        raise NoActiveCycle(f"No active {credit_type.value} credits for {on.isoformat()}")
    return to_decimal(balance.remaining_amount)


def available_hours(db: Session, user_id: int, on: date) -> Decimal:
    """Meeting-room hours a member can spend on ``on``; zero without a cycle."""

    balance = find_balance(db, user_id, models.CreditType.meeting_room, on)
    if balance is None:
        return ZERO
    return to_decimal(balance.remaining_amount)


def _append(
    db: Session,
    balance: models.CreditBalance,
    transaction_type: models.CreditTransactionType,
    amount: Decimal,
    *,
    booking_id: int | None = None,
    reverses_id: int | None = None,
    description: str = "",
) -> models.CreditTransaction:
    remaining = to_decimal(balance.remaining_amount) + amount
    if remaining < ZERO:
        logger.error(
            "Credit balance would go negative",
            extra={"balance_id": balance.id, "amount": str(amount)},
        )
        raise LedgerInconsistency(f"Balance {balance.id} would go negative")

    if transaction_type == models.CreditTransactionType.allocation:
        balance.allocated_amount = to_decimal(balance.allocated_amount) + amount
    elif transaction_type in (
        models.CreditTransactionType.usage,
        models.CreditTransactionType.refund,
    ):
        balance.used_amount = to_decimal(balance.used_amount) - amount
    else:
        balance.expired_amount = to_decimal(balance.expired_amount) - amount
    balance.remaining_amount = remaining
    balance.updated_at = _now()

    transaction = models.CreditTransaction(
        user_id=balance.user_id,
        balance_id=balance.id,
        booking_id=booking_id,
        reverses_id=reverses_id,
        transaction_type=transaction_type,
        amount=amount,
        balance_after=remaining,
        description=description,
    )
    db.add(transaction)
    db.flush()
    return transaction


def allocate(
    db: Session,
    *,
    user_id: int,
    credit_type: models.CreditType,
    amount: Decimal,
    cycle_start: date,
    cycle_end: date,
    description: str = "Billing cycle allocation",
) -> models.CreditBalance:
    """Open (or top up) the cycle starting on ``cycle_start``."""

    amount = to_decimal(amount)
    if amount <= ZERO:
        raise ValueError("Allocation amount must be positive")
    with unit_of_work(db):
        balance = db.execute(
            select(models.CreditBalance)
            .where(
                models.CreditBalance.user_id == user_id,
                models.CreditBalance.credit_type == credit_type,
                models.CreditBalance.cycle_start == cycle_start,
            )
            .with_for_update()
        ).scalar_one_or_none()
        if balance is None:
            balance = models.CreditBalance(
                user_id=user_id,
                credit_type=credit_type,
                allocated_amount=ZERO,
                used_amount=ZERO,
                remaining_amount=ZERO,
                expired_amount=ZERO,
                cycle_start=cycle_start,
                cycle_end=cycle_end,
                status=models.CreditBalanceStatus.active,
            )
            db.add(balance)
            db.flush()
        _append(
            db,
            balance,
            models.CreditTransactionType.allocation,
            amount,
            description=description,
        )
    db.commit()
    db.refresh(balance)
    logger.info(
        "Allocated credits",
        extra={"user_id": user_id, "credit_type": credit_type.value, "amount": str(amount)},
    )
    return balance


def reserve(
    db: Session,
    *,
    user_id: int,
    credit_type: models.CreditType,
    hours: Decimal,
    booking_id: int | None,
    on: date,
) -> Reservation:
    """Spend up to ``hours`` credits; the shortfall is reported, never raised."""

    requested = to_decimal(hours)
    balance = find_balance(db, user_id, credit_type, on, lock=True)
    if balance is None:
        return Reservation(credits_used=ZERO, overage_hours=requested)

    covered = min(requested, to_decimal(balance.remaining_amount))
    if covered <= ZERO:
        return Reservation(credits_used=ZERO, overage_hours=requested)

    transaction = _append(
        db,
        balance,
        models.CreditTransactionType.usage,
        -covered,
        booking_id=booking_id,
        description=f"Reserved {covered} {credit_type.value} credits",
    )
    return Reservation(
        credits_used=covered,
        overage_hours=requested - covered,
        transaction=transaction,
    )


def refunded_so_far(db: Session, usage: models.CreditTransaction) -> Decimal:
    amounts = db.execute(
        select(models.CreditTransaction.amount).where(
            models.CreditTransaction.reverses_id == usage.id,
            models.CreditTransaction.transaction_type == models.CreditTransactionType.refund,
        )
    ).scalars()
    return sum((to_decimal(amount) for amount in amounts), ZERO)


def refund(
    db: Session,
    usage: models.CreditTransaction,
    amount: Decimal | None = None,
    *,
    description: str = "Credit refund",
) -> models.CreditTransaction | None:
    """Give back all or part of a usage transaction. Returns ``None`` if nothing is left."""

    if usage.transaction_type != models.CreditTransactionType.usage:
        raise InvalidRefund("Only usage transactions can be refunded")
    refundable = -to_decimal(usage.amount) - refunded_so_far(db, usage)
    amount = refundable if amount is None else to_decimal(amount)
    if amount <= ZERO or refundable <= ZERO:
        return None
    if amount > refundable:
        raise InvalidRefund(f"Only {refundable} credits remain refundable")

    balance = db.execute(
        select(models.CreditBalance)
        .where(models.CreditBalance.id == usage.balance_id)
        .with_for_update()
    ).scalar_one()
    return _append(
        db,
        balance,
        models.CreditTransactionType.refund,
        amount,
        booking_id=usage.booking_id,
        reverses_id=usage.id,
        description=description,
    )


def usage_for_booking(db: Session, booking_id: int) -> models.CreditTransaction | None:
    return db.execute(
        select(models.CreditTransaction)
        .where(
            models.CreditTransaction.booking_id == booking_id,
            models.CreditTransaction.transaction_type == models.CreditTransactionType.usage,
        )
        .order_by(models.CreditTransaction.id)
    ).scalars().first()


def reconcile(db: Session, balance: models.CreditBalance) -> None:
    """Check the cached balance against its transaction log."""

    transactions = (
        db.query(models.CreditTransaction)
        .filter(models.CreditTransaction.balance_id == balance.id)
        .order_by(models.CreditTransaction.id)
        .all()
    )
    totals = {kind: ZERO for kind in models.CreditTransactionType}
    for transaction in transactions:
        totals[transaction.transaction_type] += to_decimal(transaction.amount)

    allocated = totals[models.CreditTransactionType.allocation]
    used = -(totals[models.CreditTransactionType.usage] + totals[models.CreditTransactionType.refund])
    expired = -totals[models.CreditTransactionType.expiration]
    remaining = sum(totals.values(), ZERO)

    expected = {
        "allocated_amount": allocated,
        "used_amount": used,
        "remaining_amount": remaining,
        "expired_amount": expired,
    }
    mismatched = {
        field: (str(to_decimal(getattr(balance, field))), str(value))
        for field, value in expected.items()
        if to_decimal(getattr(balance, field)) != value
    }
    if not mismatched and allocated != used + remaining + expired:
        mismatched["conservation"] = (str(allocated), str(used + remaining + expired))
    if mismatched:
        logger.error(
            "Credit ledger mismatch",
            extra={"balance_id": balance.id, "mismatched": mismatched},
        )
        raise LedgerInconsistency(f"Balance {balance.id} does not reconcile: {mismatched}")


def list_transactions(
    db: Session,
    user_id: int,
    credit_type: models.CreditType | None = None,
) -> list[models.CreditTransaction]:
    query = db.query(models.CreditTransaction).filter(models.CreditTransaction.user_id == user_id)
    if credit_type:
        query = query.join(models.CreditBalance).filter(
            models.CreditBalance.credit_type == credit_type
        )
    return query.order_by(models.CreditTransaction.id.desc()).all()


def expire_cycles(db: Session, as_of: date) -> int:
    """Forfeit what is left of every active cycle that ended before ``as_of``."""

    with unit_of_work(db):
        balances = (
            db.execute(
                select(models.CreditBalance)
                .where(
                    models.CreditBalance.status == models.CreditBalanceStatus.active,
                    models.CreditBalance.cycle_end < as_of,
                )
                .with_for_update()
            )
            .scalars()
            .all()
        )
        for balance in balances:
            remaining = to_decimal(balance.remaining_amount)
            if remaining > ZERO:
                _append(
                    db,
                    balance,
                    models.CreditTransactionType.expiration,
                    -remaining,
                    description=f"Cycle ended {balance.cycle_end.isoformat()}",
                )
            balance.status = models.CreditBalanceStatus.expired
    db.commit()
    if balances:
        logger.info("Expired credit cycles", extra={"count": len(balances)})
    return len(balances)


__all__ = [
    "Reservation",
    "allocate",
    "available_hours",
    "expire_cycles",
    "find_balance",
    "get_balance",
    "list_transactions",
    "reconcile",
    "refund",
    "refunded_so_far",
    "reserve",
    "usage_for_booking",
]
