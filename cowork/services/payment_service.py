import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..config import get_settings
from ..core.errors import InvalidTransition
from ..core.pricing import to_decimal
from ..db import models
from . import booking_service, notification_service
from .payments import gateway

logger = logging.getLogger(__name__)


def outstanding_amount(db: Session, booking: models.Booking) -> Decimal:
    paid = db.execute(
        select(func.coalesce(func.sum(models.Payment.amount), 0)).where(
            models.Payment.booking_id == booking.id,
            models.Payment.status == models.PaymentStatus.paid,
        )
    ).scalar_one()
    return to_decimal(booking.total_price) - to_decimal(paid)


def start_payment(db: Session, booking: models.Booking) -> tuple[models.Payment, dict[str, Any]]:
    """Ask the configured gateway to capture what is still owed on ``booking``."""

    if booking.payment_status != models.PaymentState.pending or not booking.is_active:
        raise InvalidTransition("Booking has nothing to pay")
    amount = outstanding_amount(db, booking)
    if amount <= 0:
        raise InvalidTransition("Booking has nothing to pay")

    order_id = str(uuid.uuid4())
    settings = get_settings()
    currency = (settings.payment_currency or "USD").upper()
    payment = models.Payment(
        user_id=booking.user_id,
        booking_id=booking.id,
        amount=amount,
        currency=currency,
        provider=models.PaymentProvider(settings.payment_provider),
        order_id=order_id,
    )
    db.add(payment)
    db.commit()
    db.refresh(payment)
    gateway_client = gateway.get_gateway(settings)
    gateway_response = gateway_client.create_payment(
        order_id=order_id,
        amount=amount,
        currency=currency,
        description=f"Workspace booking {booking.confirmation_code}",
        return_url=settings.payment_return_url,
        metadata={"user_id": booking.user_id, "booking_id": booking.id},
    )
    confirmation_url = gateway_response.get("confirmation_url") or gateway_response.get("return_url")
    provider_payment_id = gateway_response.get("provider_payment_id")
    if confirmation_url or provider_payment_id:
        payment.confirmation_url = confirmation_url
        payment.provider_payment_id = provider_payment_id
        db.commit()
        db.refresh(payment)
    logger.info(
        "Payment started",
        extra={"booking_id": booking.id, "order_id": order_id, "amount": str(amount)},
    )
    if settings.payment_provider == "stub":
        payment = apply_payment(db, payment, models.PaymentStatus.paid)
    return payment, gateway_response


def apply_payment(db: Session, payment: models.Payment, status: models.PaymentStatus) -> models.Payment:
    if payment.status == status:
        return payment
    booking = db.get(models.Booking, payment.booking_id)
    # measured before this payment counts as paid
    settles_booking = (
        status == models.PaymentStatus.paid
        and booking is not None
        and outstanding_amount(db, booking) <= to_decimal(payment.amount)
    )
    payment.status = status
    payment.updated_at = datetime.now(timezone.utc)
    if status != models.PaymentStatus.paid:
        db.commit()
        db.refresh(payment)
        logger.info(
            "Payment not captured",
            extra={"order_id": payment.order_id, "status": status.value},
        )
        return payment

    payment.confirmation_url = None
    if booking is not None and booking.status == models.BookingStatus.cancelled:
        booking.payment_status = models.PaymentState.refund_due
        event = notification_service.record_event(
            db,
            booking,
            notification_service.PAYMENT_REFUND_DUE,
            actor_type=models.ActorType.system,
            payload={"order_id": payment.order_id, "amount": str(payment.amount)},
        )
        db.commit()
        db.refresh(payment)
        logger.warning(
            "Payment captured for a cancelled booking",
            extra={"booking_id": booking.id, "order_id": payment.order_id},
        )
        notification_service.publish([event])
        return payment

    db.commit()
    if settles_booking:
        if booking.status == models.BookingStatus.pending:
            booking_service.confirm_booking(db, booking.id)
        elif booking.payment_status == models.PaymentState.pending:
            booking.payment_status = models.PaymentState.paid
            db.commit()
    db.refresh(payment)
    return payment


_STATUS_MAP = {
    "pending": models.PaymentStatus.pending,
    "succeeded": models.PaymentStatus.paid,
    "paid": models.PaymentStatus.paid,
    "canceled": models.PaymentStatus.canceled,
    "refunded": models.PaymentStatus.refunded,
    "failed": models.PaymentStatus.failed,
}


def find_by_order(db: Session, order_id: str) -> models.Payment | None:
    return db.execute(
        select(models.Payment).where(models.Payment.order_id == order_id)
    ).scalar_one_or_none()


def handle_webhook(db: Session, data: dict[str, Any]) -> models.Payment | None:
    parsed = gateway.get_gateway(get_settings()).parse_webhook(data)
    order_id = parsed.get("order_id")
    if not order_id:
        return None
    payment = find_by_order(db, order_id)
    if payment is None:
        logger.warning("Webhook for unknown order", extra={"order_id": order_id})
        return None
    status = _STATUS_MAP.get(parsed.get("status") or "", models.PaymentStatus.failed)
    if parsed.get("provider_payment_id"):
        payment.provider_payment_id = parsed["provider_payment_id"]
    return apply_payment(db, payment, status)


def cancel_pending_payments(db: Session, booking_id: int) -> int:
    now = datetime.now(timezone.utc)
    pending = (
        db.query(models.Payment)
        .filter(
            models.Payment.booking_id == booking_id,
            models.Payment.status == models.PaymentStatus.pending,
        )
        .all()
    )
    for payment in pending:
        payment.status = models.PaymentStatus.canceled
        payment.updated_at = now
        payment.confirmation_url = None
    db.commit()
    return len(pending)
