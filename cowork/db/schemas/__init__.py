from .workspace import Workspace, FreeSlot, Availability, QuoteRequest
from .pricing import PricingBreakdown
from .booking import (
    Booking,
    BookingCreate,
    BookingCancel,
    BookingCheckIn,
    BookingCheckOut,
    BookingExtend,
    Cancellation,
    Extension,
)
from .credit import CreditAllocate, CreditBalance, CreditTransaction
from .payment import Payment, PaymentStart, PaymentWebhook
