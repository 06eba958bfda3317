from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel


class PaymentStart(BaseModel):
    booking_id: int


class PaymentWebhook(BaseModel):
    order_id: str
    status: str
    provider_payment_id: str | None = None


class Payment(BaseModel):
    id: int
    user_id: int
    booking_id: int
    amount: Decimal
    currency: str
    status: str
    provider: str
    order_id: str
    confirmation_url: str | None = None
    created_at: datetime

    class Config:
        from_attributes = True
