# app/services/payment/__init__.py
from .provider_interface import PaymentProviderInterface
from .provider_factory import PaymentProviderFactory, get_payment_provider

__all__ = [
    "PaymentProviderInterface",
    "PaymentProviderFactory",
    "get_payment_provider",
]
