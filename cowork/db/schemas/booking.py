from datetime import date, datetime, time
from decimal import Decimal
from pydantic import BaseModel, Field

from .pricing import PricingBreakdown


class BookingCreate(BaseModel):
    workspace_id: int
    booking_date: date
    start_time: time
    end_time: time
    attendees: int = Field(default=1, gt=0)
    use_credits: bool = True


class BookingCancel(BaseModel):
    reason: str | None = None


class BookingCheckOut(BaseModel):
    at: datetime | None = None


class BookingCheckIn(BaseModel):
    at: datetime | None = None


class BookingExtend(BaseModel):
    new_end_time: time


class Booking(BaseModel):
    id: int
    user_id: int
    workspace_id: int
    booking_date: date
    start_time: time
    end_time: time
    duration_hours: Decimal
    attendees: int
    base_amount: Decimal
    subtotal: Decimal
    discount_amount: Decimal
    nft_discount_applied: bool
    credits_used: Decimal
    overage_hours: Decimal
    processing_fee: Decimal
    total_price: Decimal
    payment_method: str
    status: str
    payment_status: str
    confirmation_code: str
    check_in_time: datetime | None = None
    check_out_time: datetime | None = None
    actual_duration_hours: Decimal | None = None
    final_charge: Decimal | None = None
    overage_charge: Decimal | None = None
    refund_amount: Decimal | None = None
    cancelled_at: datetime | None = None
    cancellation_reason: str | None = None
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class Cancellation(BaseModel):
    booking: Booking
    should_refund: bool


class Extension(BaseModel):
    booking: Booking
    additional: PricingBreakdown
