from threading import Lock
from typing import Optional

from src.core.payments.gateway import GatewayCreateError, GatewayLookupError
from src.core.payments.models import PaymentPreference, PaymentPreferenceRequest, PaymentResult


class InMemoryPaymentGateway:
    """Local gateway for development and tests.

    Payments are registered up front with ``register_payment``; created preferences
    are kept in ``preferences`` in creation order.
    """

    def __init__(self, *, init_point_base: str = "https://checkout.local/pay") -> None:
        self._lock = Lock()
        self._init_point_base = init_point_base.rstrip("/")
        self._payments: dict[str, PaymentResult] = {}
        self.preferences: list[PaymentPreferenceRequest] = []
        self.fail_create = False

    def register_payment(
        self,
        *,
        payment_id: str,
        status: str,
        external_reference: Optional[str],
        status_detail: Optional[str] = None,
    ) -> PaymentResult:
        result = PaymentResult(
            payment_id=payment_id,
            status=status,
            status_detail=status_detail,
            external_reference=external_reference,
        )
        with self._lock:
            self._payments[payment_id] = result
        return result

    def create_preference(self, request: PaymentPreferenceRequest) -> PaymentPreference:
        if self.fail_create:
            raise GatewayCreateError("GATEWAY_CREATE_FAILED: simulated")
        with self._lock:
            self.preferences.append(request)
            preference_id = f"pref_{len(self.preferences):03d}"
        return PaymentPreference(
            preference_id=preference_id,
            init_point=f"{self._init_point_base}?pref_id={preference_id}",
        )

    def get_payment(self, payment_id: str) -> PaymentResult:
        with self._lock:
            result = self._payments.get(payment_id)
        if result is None:
            raise GatewayLookupError(f"GATEWAY_LOOKUP_FAILED: unknown payment {payment_id}")
        return result.model_copy()
