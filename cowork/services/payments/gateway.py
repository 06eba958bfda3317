from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Any
from ...config import Settings


class BasePaymentGateway(ABC):
    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    @abstractmethod
    def create_payment(
        self,
        order_id: str,
        amount: Decimal,
        currency: str,
        description: str,
        return_url: str,
        metadata: dict[str, Any],
    ) -> dict[str, Any]:
        raise NotImplementedError

    @abstractmethod
    def parse_webhook(self, data: dict[str, Any]) -> dict[str, Any]:
        """Return ``order_id``, ``status`` and ``provider_payment_id`` from a provider callback."""
        raise NotImplementedError


def get_gateway(settings: Settings) -> BasePaymentGateway:
    if settings.payment_provider == "stub":
        from .stub import StubGateway

        return StubGateway(settings)
    if settings.payment_provider == "stripe":
        from .stripe import StripeGateway

        return StripeGateway(settings)
    raise ValueError(f"Unsupported payment provider {settings.payment_provider}")
