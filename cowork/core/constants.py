"""Common application-wide constants."""

from datetime import timedelta
from decimal import Decimal

# How long a booking can remain ``pending`` without payment
RESERVATION_PAYMENT_TIMEOUT = timedelta(minutes=20)

# Metadata for system-driven booking cancellations
PAYMENT_TIMEOUT_REASON = "payment_timeout"
SYSTEM_ACTOR = "system"

CENTS = Decimal("0.01")
HOURS_QUANTUM = Decimal("0.01")

CONFIRMATION_CODE_LENGTH = 8


__all__ = [
    "RESERVATION_PAYMENT_TIMEOUT",
    "PAYMENT_TIMEOUT_REASON",
    "SYSTEM_ACTOR",
    "CENTS",
    "HOURS_QUANTUM",
    "CONFIRMATION_CODE_LENGTH",
]
