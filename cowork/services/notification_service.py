from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

from ..config import get_settings
from ..db import models

logger = logging.getLogger(__name__)

BOOKING_CREATED = "booking_created"
BOOKING_CONFIRMED = "booking_confirmed"
BOOKING_CHECKED_IN = "booking_checked_in"
BOOKING_CHECKED_OUT = "booking_checked_out"
BOOKING_CANCELLED = "booking_cancelled"
BOOKING_EXTENDED = "booking_extended"
PAYMENT_REFUND_DUE = "payment_refund_due"


@dataclass(slots=True)
class BookingEvent:
    event: str
    booking_id: int
    user_id: int
    workspace_id: int
    payload: dict[str, Any] = field(default_factory=dict)

    def as_message(self) -> dict[str, Any]:
        return {
            "event": self.event,
            "booking_id": self.booking_id,
            "user_id": self.user_id,
            "workspace_id": self.workspace_id,
            **self.payload,
        }


def record_event(
    db,
    booking: models.Booking,
    event: str,
    *,
    actor_type: models.ActorType = models.ActorType.user,
    actor_id: int | None = None,
    payload: dict[str, Any] | None = None,
) -> BookingEvent:
    """Store the event next to the change it describes and return it for publishing."""

    body = {
        "status": booking.status.value,
        "booking_date": booking.booking_date.isoformat(),
        "start_time": booking.start_time.isoformat(timespec="minutes"),
        "end_time": booking.end_time.isoformat(timespec="minutes"),
        "confirmation_code": booking.confirmation_code,
        **(payload or {}),
    }
    db.add(
        models.AuditLog(
            actor_type=actor_type,
            actor_id=actor_id,
            booking_id=booking.id,
            action=event,
            payload=body,
        )
    )
    return BookingEvent(
        event=event,
        booking_id=booking.id,
        user_id=booking.user_id,
        workspace_id=booking.workspace_id,
        payload=body,
    )


def publish(events: list[BookingEvent]) -> None:
    if not events:
        return

    for event in events:
        logger.info(
            "Booking event %s",
            event.event,
            extra={"booking_id": event.booking_id, "workspace_id": event.workspace_id},
        )

    settings = get_settings()
    url = settings.notification_webhook_url
    if not url:
        return

    with httpx.Client(timeout=10) as client:
        for event in events:
            try:
                response = client.post(url, json=event.as_message())
                response.raise_for_status()
            except httpx.HTTPError:
                logger.exception(
                    "Failed to deliver booking event",
                    extra={"booking_id": event.booking_id, "event_name": event.event},
                )
