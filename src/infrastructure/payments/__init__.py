from src.infrastructure.payments.in_memory import InMemoryPaymentGateway
from src.infrastructure.payments.mercadopago import MercadoPagoGateway

__all__ = ["InMemoryPaymentGateway", "MercadoPagoGateway"]
