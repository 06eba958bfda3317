import logging
from decimal import Decimal
from typing import Any

import httpx

from ...core.pricing import money
from .gateway import BasePaymentGateway

logger = logging.getLogger(__name__)

STRIPE_API_URL = "https://api.stripe.com/v1"

_EVENT_STATUSES = {
    "payment_intent.succeeded": "paid",
    "payment_intent.payment_failed": "failed",
    "payment_intent.canceled": "canceled",
}


class StripeGateway(BasePaymentGateway):
    def create_payment(
        self,
        order_id: str,
        amount: Decimal,
        currency: str,
        description: str,
        return_url: str,
        metadata: dict[str, Any],
    ) -> dict[str, Any]:
        logger.info("Creating Stripe payment intent", extra={"order_id": order_id, "amount": str(amount)})
        form = {
            "amount": str(int(money(amount) * 100)),
            "currency": currency.lower(),
            "description": description,
            "metadata[order_id]": order_id,
        }
        for key, value in metadata.items():
            form[f"metadata[{key}]"] = str(value)

        response = httpx.post(
            f"{STRIPE_API_URL}/payment_intents",
            data=form,
            auth=(self.settings.stripe_secret_key, ""),
            timeout=10,
        )
        response.raise_for_status()
        intent = response.json()
        return {
            "order_id": order_id,
            "amount": str(amount),
            "currency": currency,
            "provider_payment_id": intent.get("id"),
            "client_secret": intent.get("client_secret"),
            "confirmation_url": return_url,
        }

    def parse_webhook(self, data: dict[str, Any]) -> dict[str, Any]:
        intent = data.get("data", {}).get("object", {})
        logger.info("Parsing Stripe webhook", extra={"event_type": data.get("type")})
        return {
            "order_id": intent.get("metadata", {}).get("order_id"),
            "status": _EVENT_STATUSES.get(data.get("type", ""), "pending"),
            "provider_payment_id": intent.get("id"),
        }
