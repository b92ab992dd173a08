from typing import Protocol

from src.core.payments.models import PaymentPreference, PaymentPreferenceRequest, PaymentResult


class PaymentGatewayError(Exception):
    pass


class GatewayCreateError(PaymentGatewayError):
    pass


class GatewayLookupError(PaymentGatewayError):
    pass


class PaymentGateway(Protocol):
    def create_preference(self, request: PaymentPreferenceRequest) -> PaymentPreference: ...

    def get_payment(self, payment_id: str) -> PaymentResult: ...
