from datetime import date, time
from decimal import Decimal

import pytest

from cowork.core.errors import InvalidTransition
from cowork.db import models
from cowork.services import booking_service, payment_service
from cowork.services.payments import StripeGateway, StubGateway, get_gateway
from cowork.config import get_settings


def create_booking(session, start=time(9), end=time(13)):
    user = models.User(email=f"payer{start.hour}@example.com")
    desk = models.Workspace(
        name=f"Hot Desk {start.hour}",
        category=models.WorkspaceCategory.desk,
        hourly_rate=Decimal("2.50"),
        min_duration_hours=Decimal("1"),
        max_duration_hours=Decimal("12"),
    )
    session.add_all([user, desk])
    session.commit()
    return booking_service.create_booking(
        session,
        booking_service.BookingRequest(
            user_id=user.id,
            workspace_id=desk.id,
            booking_date=date(2026, 3, 10),
            start_time=start,
            end_time=end,
        ),
    )


def pending_payment(session, booking):
    payment = models.Payment(
        user_id=booking.user_id,
        booking_id=booking.id,
        amount=booking.total_price,
        currency="USD",
        provider=models.PaymentProvider.stripe,
        order_id=f"order-{booking.id}",
    )
    session.add(payment)
    session.commit()
    session.refresh(payment)
    return payment


def test_stub_payment_confirms_booking(db_session):
    booking = create_booking(db_session)
    payment, response = payment_service.start_payment(db_session, booking)

    assert payment.status == models.PaymentStatus.paid
    assert payment.amount == Decimal("10.59")
    assert response["status"] == "paid"
    db_session.refresh(booking)
    assert booking.status == models.BookingStatus.confirmed
    assert booking.payment_status == models.PaymentState.paid

    with pytest.raises(InvalidTransition):
        payment_service.start_payment(db_session, booking)


def test_payment_webhook_idempotent(db_session):
    booking = create_booking(db_session)
    payment = pending_payment(db_session, booking)

    payment_service.handle_webhook(db_session, {"order_id": payment.order_id, "status": "succeeded"})
    payment_service.handle_webhook(db_session, {"order_id": payment.order_id, "status": "succeeded"})

    db_session.refresh(payment)
    db_session.refresh(booking)
    assert payment.status == models.PaymentStatus.paid
    assert booking.status == models.BookingStatus.confirmed
    confirmations = (
        db_session.query(models.AuditLog)
        .filter_by(booking_id=booking.id, action="booking_confirmed")
        .count()
    )
    assert confirmations == 1


def test_failed_payment_keeps_booking_pending(db_session):
    booking = create_booking(db_session)
    payment = pending_payment(db_session, booking)

    payment_service.handle_webhook(db_session, {"order_id": payment.order_id, "status": "failed"})

    db_session.refresh(booking)
    assert payment.status == models.PaymentStatus.failed
    assert booking.status == models.BookingStatus.pending


def test_webhook_for_unknown_order(db_session):
    assert payment_service.handle_webhook(db_session, {"order_id": "missing", "status": "paid"}) is None


def test_cancel_pending_payments(db_session):
    booking = create_booking(db_session)
    payment = pending_payment(db_session, booking)

    assert payment_service.cancel_pending_payments(db_session, booking.id) == 1
    db_session.refresh(payment)
    assert payment.status == models.PaymentStatus.canceled


def test_gateway_selection():
    settings = get_settings()
    assert isinstance(get_gateway(settings), StubGateway)
    stripe = get_gateway(settings.model_copy(update={"payment_provider": "stripe"}))
    assert isinstance(stripe, StripeGateway)
    with pytest.raises(ValueError):
        get_gateway(settings.model_copy(update={"payment_provider": "cash"}))


def test_stripe_webhook_parsing():
    gateway = StripeGateway(get_settings())
    parsed = gateway.parse_webhook(
        {
            "type": "payment_intent.succeeded",
            "data": {"object": {"id": "pi_123", "metadata": {"order_id": "abc"}}},
        }
    )
    assert parsed == {"order_id": "abc", "status": "paid", "provider_payment_id": "pi_123"}
    ignored = gateway.parse_webhook({"type": "payment_intent.created", "data": {"object": {}}})
    assert ignored["status"] == "pending"


def test_payment_after_cancellation_is_flagged_for_refund(db_session):
    booking = create_booking(db_session)
    payment = pending_payment(db_session, booking)
    result = booking_service.cancel_booking(db_session, booking.id, reason="changed plans")
    assert result.should_refund is False

    payment_service.handle_webhook(db_session, {"order_id": payment.order_id, "status": "succeeded"})

    db_session.refresh(booking)
    assert payment.status == models.PaymentStatus.paid
    assert booking.status == models.BookingStatus.cancelled
    assert booking.payment_status == models.PaymentState.refund_due
    flagged = (
        db_session.query(models.AuditLog)
        .filter_by(booking_id=booking.id, action="payment_refund_due")
        .one()
    )
    assert flagged.payload["order_id"] == payment.order_id
    assert flagged.payload["amount"] == "10.59"
