from . import (
    availability_service,
    booking_service,
    credit_ledger,
    notification_service,
    payment_service,
)
__all__ = [
    "availability_service",
    "booking_service",
    "credit_ledger",
    "notification_service",
    "payment_service",
]
