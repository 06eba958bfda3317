from __future__ import annotations

from decimal import Decimal
from typing import Any

from .gateway import BasePaymentGateway


class StubGateway(BasePaymentGateway):
    """Capture stand-in that reports every payment as paid."""

    def create_payment(
        self,
        order_id: str,
        amount: Decimal,
        currency: str,
        description: str,
        return_url: str,
        metadata: dict[str, Any],
    ) -> dict[str, Any]:
        return {
            "order_id": order_id,
            "amount": str(amount),
            "currency": currency,
            "status": "paid",
            "return_url": return_url,
            "description": description,
            "metadata": metadata,
        }

    def parse_webhook(self, data: dict[str, Any]) -> dict[str, Any]:
        # no real callbacks for the stub; echo what the caller sent
        return {
            "order_id": data.get("order_id"),
            "status": data.get("status", "paid"),
            "provider_payment_id": data.get("provider_payment_id"),
        }
