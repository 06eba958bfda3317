from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum as PyEnum
from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Time,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from ..session import Base


class BookingStatus(str, PyEnum):
    pending = "pending"
    confirmed = "confirmed"
    checked_in = "checked-in"
    completed = "completed"
    cancelled = "cancelled"


ACTIVE_BOOKING_STATUSES = (
    BookingStatus.pending,
    BookingStatus.confirmed,
    BookingStatus.checked_in,
)


class PaymentState(str, PyEnum):
    pending = "pending"
    paid = "paid"
    refunded = "refunded"
    not_required = "not-required"
    # captured after the booking was cancelled
    refund_due = "refund-due"


class Booking(Base):
    __tablename__ = "bookings"
    __table_args__ = (
        CheckConstraint("end_time > start_time", name="ck_booking_time_order"),
        CheckConstraint("attendees > 0", name="ck_booking_attendees_positive"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    workspace_id: Mapped[int] = mapped_column(
        ForeignKey("workspaces.id", ondelete="RESTRICT"), index=True
    )
    booking_date: Mapped[date] = mapped_column(Date, index=True)
    start_time: Mapped[time] = mapped_column(Time)
    end_time: Mapped[time] = mapped_column(Time)
    duration_hours: Mapped[Decimal] = mapped_column(Numeric(6, 2))
    attendees: Mapped[int] = mapped_column(Integer, default=1)

    base_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"))
    subtotal: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"))
    discount_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"))
    nft_discount_applied: Mapped[bool] = mapped_column(Boolean, default=False)
    nft_holder: Mapped[bool] = mapped_column(Boolean, default=False)
    credits_used: Mapped[Decimal] = mapped_column(Numeric(6, 2), default=Decimal("0"))
    overage_hours: Mapped[Decimal] = mapped_column(Numeric(6, 2), default=Decimal("0"))
    processing_fee: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"))
    total_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"))
    payment_method: Mapped[str] = mapped_column(String(16), default="card")

    status: Mapped[BookingStatus] = mapped_column(
        Enum(BookingStatus), default=BookingStatus.pending, index=True
    )
    payment_status: Mapped[PaymentState] = mapped_column(
        Enum(PaymentState), default=PaymentState.pending
    )
    confirmation_code: Mapped[str] = mapped_column(String(16), unique=True, index=True)

    check_in_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    check_out_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    actual_duration_hours: Mapped[Decimal | None] = mapped_column(Numeric(6, 2))
    final_charge: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    overage_charge: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    refund_amount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))

    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    cancelled_by: Mapped[str | None] = mapped_column(String(64))
    cancellation_reason: Mapped[str | None] = mapped_column(String(255))

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    user = relationship("User")
    workspace = relationship("Workspace", back_populates="bookings")

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_BOOKING_STATUSES
