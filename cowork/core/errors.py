"""Error kinds raised by the booking engine.

Services raise these; the API layer maps each kind to an HTTP status.
"""


class BookingEngineError(Exception):
    """Base class for every error the engine raises on purpose."""

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    default_message = "Booking engine error"


class InvalidInterval(BookingEngineError):
    default_message = "End time must be after start time"


class SlotUnavailable(BookingEngineError):
    default_message = "This slot was just booked, please choose another time"


class DurationOutOfRange(BookingEngineError):
    default_message = "Booking duration is outside the allowed range"


class NoActiveCycle(BookingEngineError):
    default_message = "No credit allocation for the requested cycle"


class InvalidTransition(BookingEngineError):
    default_message = "Booking cannot move to the requested state"


class InvalidRefund(BookingEngineError):
    default_message = "Refund exceeds the unrefunded part of the usage"


class LedgerInconsistency(BookingEngineError):
    default_message = "Credit balance does not match its transaction log"


class CapacityExceeded(BookingEngineError):
    default_message = "Too many attendees for this workspace"


class BookingNotFound(BookingEngineError):
    default_message = "Booking not found"


class WorkspaceNotFound(BookingEngineError):
    default_message = "Workspace not found or inactive"


__all__ = [
    "BookingEngineError",
    "InvalidInterval",
    "SlotUnavailable",
    "DurationOutOfRange",
    "NoActiveCycle",
    "InvalidTransition",
    "InvalidRefund",
    "LedgerInconsistency",
    "CapacityExceeded",
    "BookingNotFound",
    "WorkspaceNotFound",
]
