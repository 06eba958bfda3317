from datetime import date
from decimal import Decimal

import pytest

from cowork.core.errors import InvalidRefund, LedgerInconsistency, NoActiveCycle
from cowork.db import models
from cowork.services import credit_ledger

CYCLE_START = date(2026, 3, 1)
CYCLE_END = date(2026, 3, 31)
ON = date(2026, 3, 10)
ROOM = models.CreditType.meeting_room


def create_user(session, email="member@example.com"):
    user = models.User(email=email, full_name="Member")
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def allocate(session, user, amount="10"):
    return credit_ledger.allocate(
        session,
        user_id=user.id,
        credit_type=ROOM,
        amount=Decimal(amount),
        cycle_start=CYCLE_START,
        cycle_end=CYCLE_END,
    )


def assert_conserved(balance):
    assert balance.remaining_amount >= 0
    assert balance.allocated_amount == (
        balance.used_amount + balance.remaining_amount + balance.expired_amount
    )


def test_allocate_creates_cycle_and_transaction(db_session):
    user = create_user(db_session)
    balance = allocate(db_session, user)
    assert balance.allocated_amount == Decimal("10")
    assert balance.remaining_amount == Decimal("10")
    assert credit_ledger.get_balance(db_session, user.id, ROOM, ON) == Decimal("10")
    transactions = credit_ledger.list_transactions(db_session, user.id)
    assert [t.transaction_type for t in transactions] == [models.CreditTransactionType.allocation]
    assert_conserved(balance)


def test_allocate_tops_up_same_cycle(db_session):
    user = create_user(db_session)
    allocate(db_session, user, "4")
    balance = allocate(db_session, user, "6")
    assert balance.allocated_amount == Decimal("10")
    assert db_session.query(models.CreditBalance).count() == 1


def test_allocate_rejects_non_positive_amount(db_session):
    user = create_user(db_session)
    with pytest.raises(ValueError):
        allocate(db_session, user, "0")


def test_get_balance_without_cycle(db_session):
    user = create_user(db_session)
    with pytest.raises(NoActiveCycle):
        credit_ledger.get_balance(db_session, user.id, ROOM, ON)
    assert credit_ledger.available_hours(db_session, user.id, ON) == 0


def test_reserve_never_overdraws(db_session):
    user = create_user(db_session)
    balance = allocate(db_session, user, "2")
    reservation = credit_ledger.reserve(
        db_session, user_id=user.id, credit_type=ROOM, hours=Decimal("5"), booking_id=None, on=ON
    )
    db_session.commit()
    assert reservation.credits_used == Decimal("2")
    assert reservation.overage_hours == Decimal("3")
    db_session.refresh(balance)
    assert balance.remaining_amount == 0
    assert balance.used_amount == Decimal("2")
    assert_conserved(balance)

    again = credit_ledger.reserve(
        db_session, user_id=user.id, credit_type=ROOM, hours=Decimal("1"), booking_id=None, on=ON
    )
    assert again.credits_used == 0
    assert again.overage_hours == Decimal("1")
    assert again.transaction is None


def test_reserve_without_cycle_is_all_overage(db_session):
    user = create_user(db_session)
    reservation = credit_ledger.reserve(
        db_session, user_id=user.id, credit_type=ROOM, hours=Decimal("3"), booking_id=None, on=ON
    )
    assert reservation.credits_used == 0
    assert reservation.overage_hours == Decimal("3")


def test_partial_then_full_refund(db_session):
    user = create_user(db_session)
    balance = allocate(db_session, user, "5")
    reservation = credit_ledger.reserve(
        db_session, user_id=user.id, credit_type=ROOM, hours=Decimal("3"), booking_id=None, on=ON
    )
    usage = reservation.transaction

    partial = credit_ledger.refund(db_session, usage, Decimal("1"))
    assert partial.reverses_id == usage.id
    assert partial.amount == Decimal("1")
    rest = credit_ledger.refund(db_session, usage)
    assert rest.amount == Decimal("2")
    assert credit_ledger.refund(db_session, usage) is None
    db_session.commit()

    db_session.refresh(balance)
    assert balance.remaining_amount == Decimal("5")
    assert balance.used_amount == 0
    assert_conserved(balance)
    credit_ledger.reconcile(db_session, balance)


def test_refund_larger_than_usage_is_rejected(db_session):
    user = create_user(db_session)
    allocate(db_session, user, "5")
    usage = credit_ledger.reserve(
        db_session, user_id=user.id, credit_type=ROOM, hours=Decimal("2"), booking_id=None, on=ON
    ).transaction
    with pytest.raises(InvalidRefund):
        credit_ledger.refund(db_session, usage, Decimal("3"))


def test_only_usage_can_be_refunded(db_session):
    user = create_user(db_session)
    allocate(db_session, user, "5")
    allocation = credit_ledger.list_transactions(db_session, user.id)[0]
    with pytest.raises(InvalidRefund):
        credit_ledger.refund(db_session, allocation)


def test_reconcile_detects_tampered_projection(db_session):
    user = create_user(db_session)
    balance = allocate(db_session, user, "5")
    credit_ledger.reconcile(db_session, balance)

    balance.remaining_amount = Decimal("7")
    db_session.commit()
    with pytest.raises(LedgerInconsistency):
        credit_ledger.reconcile(db_session, balance)


def test_expire_cycles_forfeits_remaining(db_session):
    user = create_user(db_session)
    balance = allocate(db_session, user, "5")
    credit_ledger.reserve(
        db_session, user_id=user.id, credit_type=ROOM, hours=Decimal("2"), booking_id=None, on=ON
    )
    db_session.commit()

    assert credit_ledger.expire_cycles(db_session, CYCLE_END) == 0
    assert credit_ledger.expire_cycles(db_session, date(2026, 4, 1)) == 1

    db_session.refresh(balance)
    assert balance.status == models.CreditBalanceStatus.expired
    assert balance.remaining_amount == 0
    assert balance.expired_amount == Decimal("3")
    assert_conserved(balance)
    credit_ledger.reconcile(db_session, balance)
    assert credit_ledger.available_hours(db_session, user.id, ON) == 0


def test_transactions_filtered_by_type_newest_first(db_session):
    user = create_user(db_session)
    allocate(db_session, user, "5")
    credit_ledger.allocate(
        db_session,
        user_id=user.id,
        credit_type=models.CreditType.printing,
        amount=Decimal("100"),
        cycle_start=CYCLE_START,
        cycle_end=CYCLE_END,
    )
    credit_ledger.reserve(
        db_session, user_id=user.id, credit_type=ROOM, hours=Decimal("1"), booking_id=None, on=ON
    )
    db_session.commit()

    room = credit_ledger.list_transactions(db_session, user.id, ROOM)
    assert [t.transaction_type for t in room] == [
        models.CreditTransactionType.usage,
        models.CreditTransactionType.allocation,
    ]
    assert len(credit_ledger.list_transactions(db_session, user.id)) == 3
