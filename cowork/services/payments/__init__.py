from .gateway import BasePaymentGateway, get_gateway
from .stub import StubGateway
from .stripe import StripeGateway

__all__ = [
    "BasePaymentGateway",
    "get_gateway",
    "StubGateway",
    "StripeGateway",
]
