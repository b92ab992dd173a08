from src.core.payments.gateway import (
    GatewayCreateError,
    GatewayLookupError,
    PaymentGateway,
    PaymentGatewayError,
)
from src.core.payments.models import (
    CreatePaymentRequest,
    CreatePaymentResponse,
    PaymentNotification,
    PaymentPreference,
    PaymentPreferenceRequest,
    PaymentResult,
    PaymentWebhookAck,
)

__all__ = [
    "GatewayCreateError",
    "GatewayLookupError",
    "PaymentGateway",
    "PaymentGatewayError",
    "CreatePaymentRequest",
    "CreatePaymentResponse",
    "PaymentNotification",
    "PaymentPreference",
    "PaymentPreferenceRequest",
    "PaymentResult",
    "PaymentWebhookAck",
]
