"""Availability queries and the serialized entry point for creating bookings.

Booking attempts for the same workspace and day run one at a time inside
this process; the workspace row lock taken by the lifecycle covers other
processes sharing the database.
"""

from __future__ import annotations

import logging
import threading
import weakref
from contextlib import contextmanager
from datetime import date, time
from decimal import Decimal
from typing import Iterator

from sqlalchemy.orm import Session

from ..core.errors import SlotUnavailable
from ..core.intervals import Interval
from ..core.pricing import Eligibility, PricingBreakdown, calculate_price, to_decimal
from ..db import models
from . import booking_service, credit_ledger

logger = logging.getLogger(__name__)

# entries disappear once no caller holds the lock
_section_locks: weakref.WeakValueDictionary[tuple[int, date], threading.Lock] = (
    weakref.WeakValueDictionary()
)
_registry_lock = threading.Lock()


def section_lock(workspace_id: int, day: date) -> threading.Lock:
    key = (workspace_id, day)
    with _registry_lock:
        lock = _section_locks.get(key)
        if lock is None:
            lock = _section_locks[key] = threading.Lock()
        return lock


@contextmanager
def exclusive_section(workspace_id: int, day: date) -> Iterator[None]:
    lock = section_lock(workspace_id, day)
    with lock:
        yield


def compute_availability(db: Session, workspace_id: int, day: date) -> list[Interval]:
    workspace = booking_service.get_workspace(db, workspace_id)
    now = booking_service.utcnow()
    return [
        slot
        for slot in booking_service.slot_grid(db, workspace, day)
        if booking_service.starts_at(day, slot.start_time) >= now
    ]


def quote_price(
    db: Session,
    workspace_id: int,
    duration_hours: Decimal,
    eligibility: Eligibility,
    *,
    user_id: int | None = None,
    on: date | None = None,
    use_credits: bool = True,
) -> PricingBreakdown:
    """Price a prospective booking without reserving anything."""

    workspace = booking_service.get_workspace(db, workspace_id)
    duration = to_decimal(duration_hours)
    booking_service.validate_duration(workspace, duration)

    available = Decimal(0)
    if user_id is not None and on is not None and eligibility.is_member and use_credits:
        available = credit_ledger.available_hours(db, user_id, on)

    return calculate_price(
        workspace.hourly_rate,
        duration,
        eligibility,
        available_credit_hours=available,
        accepts_credits=workspace.accepts_credits,
        use_credits=use_credits,
        rates=booking_service.pricing_rates(),
    )


def attempt_booking(db: Session, request: booking_service.BookingRequest) -> models.Booking:
    """Create a booking unless another attempt already took the window.

    The lifecycle re-reads the active bookings for the day while the section
    is held, so a request that lost the race fails with ``SlotUnavailable``.
    """

    with exclusive_section(request.workspace_id, request.booking_date):
        try:
            return booking_service.create_booking(db, request)
        except SlotUnavailable:
            logger.info(
                "Booking attempt lost the slot",
                extra={
                    "workspace_id": request.workspace_id,
                    "booking_date": request.booking_date.isoformat(),
                    "start_time": request.start_time.isoformat(timespec="minutes"),
                },
            )
            raise


def attempt_extension(db: Session, booking_id: int, new_end_time: time) -> booking_service.Extension:
    booking = booking_service.get_booking(db, booking_id)
    with exclusive_section(booking.workspace_id, booking.booking_date):
        return booking_service.extend_booking(db, booking_id, new_end_time)


__all__ = [
    "attempt_booking",
    "attempt_extension",
    "compute_availability",
    "exclusive_section",
    "quote_price",
    "section_lock",
]
