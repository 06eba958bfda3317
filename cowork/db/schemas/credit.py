from datetime import date, datetime
from decimal import Decimal
from pydantic import BaseModel, Field


class CreditAllocate(BaseModel):
    user_id: int
    credit_type: str = "meeting-room"
    amount: Decimal = Field(gt=0)
    cycle_start: date
    cycle_end: date


class CreditBalance(BaseModel):
    id: int
    user_id: int
    credit_type: str
    allocated_amount: Decimal
    used_amount: Decimal
    remaining_amount: Decimal
    expired_amount: Decimal
    cycle_start: date
    cycle_end: date
    status: str

    class Config:
        from_attributes = True


class CreditTransaction(BaseModel):
    id: int
    balance_id: int
    booking_id: int | None = None
    reverses_id: int | None = None
    transaction_type: str
    amount: Decimal
    balance_after: Decimal
    description: str | None = None
    created_at: datetime | None = None

    class Config:
        from_attributes = True
