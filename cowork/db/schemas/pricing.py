from decimal import Decimal
from pydantic import BaseModel


class PricingBreakdown(BaseModel):
    base_amount: Decimal
    subtotal: Decimal
    discount_amount: Decimal
    nft_discount_applied: bool
    credits_used: Decimal
    overage_hours: Decimal
    processing_fee: Decimal
    total_price: Decimal
    payment_method: str
