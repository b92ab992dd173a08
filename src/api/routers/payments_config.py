import os
from dataclasses import dataclass
from typing import Optional, cast

from src.api.routers import proposals_config
from src.core.payments.gateway import PaymentGateway
from src.infrastructure.payments import InMemoryPaymentGateway, MercadoPagoGateway
from src.infrastructure.payments.mercadopago import DEFAULT_TIMEOUT_SECONDS, MERCADOPAGO_API_BASE


@dataclass(frozen=True)
class PaymentSettings:
    backend: str
    access_token: str
    public_key: str
    webhook_secret: Optional[str]
    api_base_url: str
    timeout_seconds: float
    app_base_url: str

    @property
    def signature_required(self) -> bool:
        return bool(self.webhook_secret)


def payment_gateway_backend_name() -> str:
    backend = os.getenv("PAYMENT_GATEWAY_BACKEND", "IN_MEMORY").strip().upper()
    return "MERCADOPAGO" if backend == "MERCADOPAGO" else "IN_MEMORY"


def load_payment_settings() -> PaymentSettings:
    return PaymentSettings(
        backend=payment_gateway_backend_name(),
        access_token=os.getenv("MP_ACCESS_TOKEN", "").strip(),
        public_key=os.getenv("MP_PUBLIC_KEY", "").strip(),
        webhook_secret=os.getenv("MP_WEBHOOK_SECRET", "").strip() or None,
        api_base_url=os.getenv("MP_API_BASE_URL", MERCADOPAGO_API_BASE).strip(),
        timeout_seconds=_env_timeout("MP_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS),
        app_base_url=proposals_config.app_base_url(),
    )


def build_payment_gateway(settings: PaymentSettings) -> PaymentGateway:
    if settings.backend == "MERCADOPAGO":
        return cast(
            PaymentGateway,
            MercadoPagoGateway(
                access_token=settings.access_token,
                app_base_url=settings.app_base_url,
                api_base_url=settings.api_base_url,
                timeout_seconds=settings.timeout_seconds,
            ),
        )
    return cast(PaymentGateway, InMemoryPaymentGateway())


def _env_timeout(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    return value if value > 0 else default
