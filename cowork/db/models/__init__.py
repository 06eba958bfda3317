from .user import User
from .workspace import Workspace, WorkspaceCategory
from .booking import Booking, BookingStatus, PaymentState, ACTIVE_BOOKING_STATUSES
from .credit import (
    CreditBalance,
    CreditBalanceStatus,
    CreditTransaction,
    CreditTransactionType,
    CreditType,
)
from .payment import Payment, PaymentStatus, PaymentProvider
from .audit_log import AuditLog, ActorType
