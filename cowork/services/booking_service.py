from __future__ import annotations

import logging
import math
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from enum import Enum
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..config import get_settings
from ..core.constants import (
    CONFIRMATION_CODE_LENGTH,
    PAYMENT_TIMEOUT_REASON,
    RESERVATION_PAYMENT_TIMEOUT,
    SYSTEM_ACTOR,
)
from ..core.errors import (
    BookingNotFound,
    CapacityExceeded,
    DurationOutOfRange,
    InvalidInterval,
    InvalidTransition,
    LedgerInconsistency,
    SlotUnavailable,
    WorkspaceNotFound,
)
from ..core.intervals import Interval, parse_time
from ..core.pricing import (
    Eligibility,
    PricingBreakdown,
    PricingRates,
    calculate_price,
    settle_usage,
    to_decimal,
)
from ..core.slots import SlotGrid
from ..db import models
from ..db.session import unit_of_work
from . import credit_ledger, notification_service

logger = logging.getLogger(__name__)

ZERO = Decimal(0)


class BookingAction(str, Enum):
    confirm = "confirm"
    check_in = "check-in"
    check_out = "check-out"
    cancel = "cancel"


_TRANSITIONS: dict[BookingAction, tuple[frozenset[models.BookingStatus], models.BookingStatus]] = {
    BookingAction.confirm: (
        frozenset({models.BookingStatus.pending}),
        models.BookingStatus.confirmed,
    ),
    BookingAction.check_in: (
        frozenset({models.BookingStatus.confirmed}),
        models.BookingStatus.checked_in,
    ),
    BookingAction.check_out: (
        frozenset({models.BookingStatus.checked_in}),
        models.BookingStatus.completed,
    ),
    BookingAction.cancel: (
        frozenset(models.ACTIVE_BOOKING_STATUSES),
        models.BookingStatus.cancelled,
    ),
}


@dataclass(slots=True)
class BookingRequest:
    user_id: int
    workspace_id: int
    booking_date: date
    start_time: time
    end_time: time
    attendees: int = 1
    eligibility: Eligibility = field(default_factory=Eligibility)
    use_credits: bool = True


@dataclass(slots=True)
class CancellationResult:
    booking: models.Booking
    should_refund: bool


@dataclass(slots=True)
class Extension:
    booking: models.Booking
    additional: PricingBreakdown


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def starts_at(day: date, start: time) -> datetime:
    """Wall-clock start of a window at the location, as an aware datetime."""

    return datetime.combine(day, start, tzinfo=ZoneInfo(get_settings().timezone))


def pricing_rates() -> PricingRates:
    return PricingRates.from_settings(get_settings())


def _next_state(booking: models.Booking, action: BookingAction) -> models.BookingStatus:
    allowed, target = _TRANSITIONS[action]
    if booking.status not in allowed:
        raise InvalidTransition(f"Cannot {action.value} a {booking.status.value} booking")
    return target


def get_workspace(db: Session, workspace_id: int, *, lock: bool = False) -> models.Workspace:
    stmt = select(models.Workspace).where(
        models.Workspace.id == workspace_id,
        models.Workspace.is_active.is_(True),
    )
    if lock:
        stmt = stmt.with_for_update()
    workspace = db.execute(stmt).scalar_one_or_none()
    if workspace is None:
        raise WorkspaceNotFound()
    return workspace


def get_booking(db: Session, booking_id: int, *, lock: bool = False) -> models.Booking:
    stmt = select(models.Booking).where(models.Booking.id == booking_id)
    if lock:
        stmt = stmt.with_for_update()
    booking = db.execute(stmt).scalar_one_or_none()
    if booking is None:
        raise BookingNotFound()
    return booking


def operating_window(workspace: models.Workspace) -> tuple[time, time]:
    settings = get_settings()
    opens = workspace.opens_at or parse_time(settings.default_opening_time)
    closes = workspace.closes_at or parse_time(settings.default_closing_time)
    return opens, closes


def active_intervals(
    db: Session,
    workspace_id: int,
    day: date,
    *,
    exclude_booking_id: int | None = None,
) -> list[Interval]:
    query = db.query(models.Booking.start_time, models.Booking.end_time).filter(
        models.Booking.workspace_id == workspace_id,
        models.Booking.booking_date == day,
        models.Booking.status.in_(models.ACTIVE_BOOKING_STATUSES),
    )
    if exclude_booking_id:
        query = query.filter(models.Booking.id != exclude_booking_id)
    return [Interval.from_times(day, start, end) for start, end in query.all()]


def slot_grid(
    db: Session,
    workspace: models.Workspace,
    day: date,
    *,
    exclude_booking_id: int | None = None,
) -> SlotGrid:
    opens, closes = operating_window(workspace)
    booked = active_intervals(db, workspace.id, day, exclude_booking_id=exclude_booking_id)
    return SlotGrid.for_day(day, opens, closes, workspace.granularity_minutes, booked)


def validate_duration(workspace: models.Workspace, duration_hours: Decimal) -> None:
    minimum = to_decimal(workspace.min_duration_hours)
    maximum = to_decimal(workspace.max_duration_hours)
    if duration_hours < minimum:
        raise DurationOutOfRange(f"Minimum booking duration is {minimum} hours")
    if duration_hours > maximum:
        raise DurationOutOfRange(f"Maximum booking duration is {maximum} hours")


def _confirmation_code(db: Session) -> str:
    while True:
        code = uuid.uuid4().hex[:CONFIRMATION_CODE_LENGTH].upper()
        exists = db.execute(
            select(models.Booking.id).where(models.Booking.confirmation_code == code)
        ).first()
        if not exists:
            return code


def create_booking(
    db: Session,
    request: BookingRequest,
    *,
    actor_type: models.ActorType = models.ActorType.user,
) -> models.Booking:
    """Validate, price and store a booking, reserving credits when they cover part of it.

    The active bookings are read inside the transaction with the workspace row
    locked, so the check and the insert see the same state. Callers that may
    race should go through ``availability_service.attempt_booking``.
    """

    interval = Interval.from_times(request.booking_date, request.start_time, request.end_time)
    if starts_at(request.booking_date, request.start_time) < utcnow():
        raise InvalidInterval("Cannot book in the past")
    events: list[notification_service.BookingEvent] = []
    with unit_of_work(db):
        workspace = get_workspace(db, request.workspace_id, lock=True)
        duration = interval.duration_hours()
        validate_duration(workspace, duration)
        if request.attendees > workspace.capacity:
            raise CapacityExceeded(f"Workspace holds at most {workspace.capacity} people")

        grid = slot_grid(db, workspace, request.booking_date)
        if not grid.is_aligned(interval):
            raise SlotUnavailable("Requested window does not match the bookable slots")
        if not grid.is_bookable(interval):
            raise SlotUnavailable()

        eligibility = request.eligibility
        spend_credits = eligibility.is_member and workspace.accepts_credits and request.use_credits
        available = ZERO
        if spend_credits:
            balance = credit_ledger.find_balance(
                db,
                request.user_id,
                models.CreditType.meeting_room,
                request.booking_date,
                lock=True,
            )
            if balance is not None:
                available = to_decimal(balance.remaining_amount)

        breakdown = calculate_price(
            workspace.hourly_rate,
            duration,
            eligibility,
            available_credit_hours=available,
            accepts_credits=workspace.accepts_credits,
            use_credits=request.use_credits,
            rates=pricing_rates(),
        )

        booking = models.Booking(
            user_id=request.user_id,
            workspace_id=workspace.id,
            booking_date=request.booking_date,
            start_time=request.start_time,
            end_time=request.end_time,
            duration_hours=duration,
            attendees=request.attendees,
            base_amount=breakdown.base_amount,
            subtotal=breakdown.subtotal,
            discount_amount=breakdown.discount_amount,
            nft_discount_applied=breakdown.nft_discount_applied,
            nft_holder=eligibility.is_nft_holder,
            credits_used=breakdown.credits_used,
            overage_hours=breakdown.overage_hours,
            processing_fee=breakdown.processing_fee,
            total_price=breakdown.total_price,
            payment_method=breakdown.payment_method,
            status=models.BookingStatus.pending,
            payment_status=models.PaymentState.pending,
            confirmation_code=_confirmation_code(db),
        )
        db.add(booking)
        db.flush()

        if breakdown.credits_used > ZERO:
            reservation = credit_ledger.reserve(
                db,
                user_id=request.user_id,
                credit_type=models.CreditType.meeting_room,
                hours=breakdown.credits_used,
                booking_id=booking.id,
                on=request.booking_date,
            )
            if reservation.credits_used != breakdown.credits_used:
                raise LedgerInconsistency(
                    f"Reserved {reservation.credits_used} credits, priced {breakdown.credits_used}"
                )

        events.append(
            notification_service.record_event(
                db,
                booking,
                notification_service.BOOKING_CREATED,
                actor_type=actor_type,
                actor_id=request.user_id,
                payload={"total_price": str(breakdown.total_price)},
            )
        )
        if breakdown.total_price == ZERO:
            booking.status = models.BookingStatus.confirmed
            booking.payment_status = models.PaymentState.not_required
            events.append(
                notification_service.record_event(
                    db,
                    booking,
                    notification_service.BOOKING_CONFIRMED,
                    actor_type=models.ActorType.system,
                )
            )
    db.commit()
    db.refresh(booking)
    logger.info(
        "Booking created",
        extra={
            "booking_id": booking.id,
            "workspace_id": booking.workspace_id,
            "user_id": booking.user_id,
            "total_price": str(booking.total_price),
        },
    )
    notification_service.publish(events)
    return booking


def confirm_booking(db: Session, booking_id: int) -> models.Booking:
    """Mark a pending booking paid and confirmed; confirming twice changes nothing."""

    events: list[notification_service.BookingEvent] = []
    with unit_of_work(db):
        booking = get_booking(db, booking_id, lock=True)
        if booking.status != models.BookingStatus.confirmed:
            booking.status = _next_state(booking, BookingAction.confirm)
            if booking.payment_status == models.PaymentState.pending:
                booking.payment_status = models.PaymentState.paid
            events.append(
                notification_service.record_event(
                    db, booking, notification_service.BOOKING_CONFIRMED,
                    actor_type=models.ActorType.system,
                )
            )
    db.commit()
    db.refresh(booking)
    notification_service.publish(events)
    return booking


def check_in(db: Session, booking_id: int, at: datetime | None = None) -> models.Booking:
    arrived = _as_utc(at or utcnow())
    with unit_of_work(db):
        booking = get_booking(db, booking_id, lock=True)
        target = _next_state(booking, BookingAction.check_in)
        opens_at = starts_at(booking.booking_date, booking.start_time) - timedelta(
            minutes=get_settings().early_check_in_minutes
        )
        if arrived < opens_at:
            minutes = math.ceil((opens_at - arrived).total_seconds() / 60)
            raise InvalidTransition(f"Check-in available in {minutes} minutes")
        booking.status = target
        booking.check_in_time = arrived
        event = notification_service.record_event(
            db, booking, notification_service.BOOKING_CHECKED_IN, actor_id=booking.user_id
        )
    db.commit()
    db.refresh(booking)
    notification_service.publish([event])
    return booking


def check_out(db: Session, booking_id: int, at: datetime | None = None) -> models.Booking:
    """Close a stay and settle the difference between booked and actual hours."""

    settings = get_settings()
    with unit_of_work(db):
        booking = get_booking(db, booking_id, lock=True)
        target = _next_state(booking, BookingAction.check_out)
        checked_in_at = _as_utc(booking.check_in_time)
        checked_out_at = _as_utc(at or utcnow())
        if checked_out_at < checked_in_at:
            raise InvalidInterval("Check-out cannot be earlier than check-in")

        actual = Decimal(str((checked_out_at - checked_in_at).total_seconds())) / Decimal(3600)
        settlement = settle_usage(
            hourly_rate=booking.workspace.hourly_rate,
            booked_hours=booking.duration_hours,
            actual_hours=actual,
            credits_reserved=booking.credits_used,
            total_paid=booking.total_price,
            eligibility=Eligibility(is_nft_holder=booking.nft_holder),
            discount_overage=settings.discount_overage,
            rates=pricing_rates(),
        )
        if settlement.credits_to_refund > ZERO:
            usage = credit_ledger.usage_for_booking(db, booking.id)
            if usage is None:
                raise LedgerInconsistency(f"Booking {booking.id} has no credit usage to refund")
            credit_ledger.refund(
                db,
                usage,
                settlement.credits_to_refund,
                description="Unused booked hours",
            )

        booking.status = target
        booking.check_out_time = checked_out_at
        booking.actual_duration_hours = settlement.actual_hours
        booking.final_charge = settlement.final_charge
        booking.refund_amount = settlement.refund_amount
        booking.overage_charge = settlement.overage_charge
        event = notification_service.record_event(
            db,
            booking,
            notification_service.BOOKING_CHECKED_OUT,
            actor_id=booking.user_id,
            payload={
                "actual_hours": str(settlement.actual_hours),
                "final_charge": str(settlement.final_charge),
                "refund_amount": str(settlement.refund_amount),
                "overage_charge": str(settlement.overage_charge),
                "credits_refunded": str(settlement.credits_to_refund),
            },
        )
    db.commit()
    db.refresh(booking)
    logger.info(
        "Booking checked out",
        extra={
            "booking_id": booking.id,
            "actual_hours": str(settlement.actual_hours),
            "final_charge": str(settlement.final_charge),
        },
    )
    notification_service.publish([event])
    return booking


def cancel_booking(
    db: Session,
    booking_id: int,
    *,
    reason: str | None = None,
    actor: str = "user",
    actor_type: models.ActorType = models.ActorType.user,
    only_from: models.BookingStatus | None = None,
) -> CancellationResult:
    """Release the slot and return every reserved credit hour.

    Captured card payments are left alone; ``should_refund`` tells the
    refund-policy collaborator whether there is money to give back, which
    holds only for paid bookings cancelled before the refund cutoff.
    ``only_from`` makes the cancellation conditional on the status seen
    under the row lock.
    """

    now = utcnow()
    cutoff = timedelta(hours=get_settings().refund_cutoff_hours)
    with unit_of_work(db):
        booking = get_booking(db, booking_id, lock=True)
        if only_from is not None and booking.status != only_from:
            raise InvalidTransition(f"Booking is {booking.status.value}, not {only_from.value}")
        target = _next_state(booking, BookingAction.cancel)
        usage = credit_ledger.usage_for_booking(db, booking.id)
        refunded = None
        if usage is not None:
            refunded = credit_ledger.refund(db, usage, description="Booking cancelled")

        booking.status = target
        booking.cancelled_at = now
        booking.cancelled_by = actor
        booking.cancellation_reason = reason
        should_refund = (
            booking.payment_status == models.PaymentState.paid
            and to_decimal(booking.total_price) > ZERO
            and starts_at(booking.booking_date, booking.start_time) - now > cutoff
        )
        event = notification_service.record_event(
            db,
            booking,
            notification_service.BOOKING_CANCELLED,
            actor_type=actor_type,
            payload={
                "reason": reason,
                "credits_refunded": str(refunded.amount if refunded is not None else ZERO),
                "should_refund": should_refund,
            },
        )
    db.commit()
    db.refresh(booking)
    logger.info(
        "Booking cancelled",
        extra={"booking_id": booking.id, "actor": actor, "should_refund": should_refund},
    )
    notification_service.publish([event])
    return CancellationResult(booking=booking, should_refund=should_refund)


def extend_booking(db: Session, booking_id: int, new_end_time: time) -> Extension:
    """Push the end of a checked-in stay later, paying cash for the extra hours."""

    with unit_of_work(db):
        booking = get_booking(db, booking_id, lock=True)
        if booking.status != models.BookingStatus.checked_in:
            raise InvalidTransition("Only checked-in bookings can be extended")
        if new_end_time <= booking.end_time:
            raise InvalidInterval("New end time must be after the current end time")

        workspace = get_workspace(db, booking.workspace_id, lock=True)
        day = booking.booking_date
        extended = Interval.from_times(day, booking.start_time, new_end_time)
        validate_duration(workspace, extended.duration_hours())

        extra_window = Interval.from_times(day, booking.end_time, new_end_time)
        grid = slot_grid(db, workspace, day, exclude_booking_id=booking.id)
        if not grid.is_bookable(extra_window):
            raise SlotUnavailable("Extended time slot is not available")

        additional = calculate_price(
            workspace.hourly_rate,
            extra_window.duration_hours(),
            Eligibility(is_nft_holder=booking.nft_holder),
            rates=pricing_rates(),
        )
        booking.end_time = new_end_time
        booking.duration_hours = extended.duration_hours()
        booking.base_amount = to_decimal(booking.base_amount) + additional.base_amount
        booking.subtotal = to_decimal(booking.subtotal) + additional.subtotal
        booking.discount_amount = to_decimal(booking.discount_amount) + additional.discount_amount
        booking.nft_discount_applied = booking.nft_discount_applied or additional.nft_discount_applied
        booking.processing_fee = to_decimal(booking.processing_fee) + additional.processing_fee
        booking.total_price = to_decimal(booking.total_price) + additional.total_price
        if additional.total_price > ZERO:
            booking.payment_status = models.PaymentState.pending
            booking.payment_method = "card"
        event = notification_service.record_event(
            db,
            booking,
            notification_service.BOOKING_EXTENDED,
            actor_id=booking.user_id,
            payload={"additional_price": str(additional.total_price)},
        )
    db.commit()
    db.refresh(booking)
    notification_service.publish([event])
    return Extension(booking=booking, additional=additional)


def cancel_stale_pending(db: Session, now: datetime | None = None) -> list[int]:
    """Cancel pending bookings whose payment never arrived.

    Returns the ids actually cancelled; bookings that left ``pending`` after
    they were selected are skipped.
    """

    cutoff = (now or utcnow()) - RESERVATION_PAYMENT_TIMEOUT
    stale_ids = list(
        db.execute(
            select(models.Booking.id)
            .where(models.Booking.status == models.BookingStatus.pending)
            .where(models.Booking.created_at < cutoff)
            .order_by(models.Booking.id)
        ).scalars()
    )
    cancelled: list[int] = []
    for booking_id in stale_ids:
        try:
            cancel_booking(
                db,
                booking_id,
                reason=PAYMENT_TIMEOUT_REASON,
                actor=SYSTEM_ACTOR,
                actor_type=models.ActorType.system,
                only_from=models.BookingStatus.pending,
            )
        except InvalidTransition as exc:
            logger.info(
                "Skipping stale booking",
                extra={"booking_id": booking_id, "reason": exc.message},
            )
            continue
        cancelled.append(booking_id)
    return cancelled
