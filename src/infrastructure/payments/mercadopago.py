import logging
from typing import Any, Optional

import httpx

from src.core.payments.gateway import GatewayCreateError, GatewayLookupError
from src.core.payments.models import PaymentPreference, PaymentPreferenceRequest, PaymentResult

logger = logging.getLogger(__name__)

MERCADOPAGO_API_BASE = "https://api.mercadopago.com"
DEFAULT_TIMEOUT_SECONDS = 10.0
DEFAULT_ITEM_DESCRIPTION = "Sem descrição"


class MercadoPagoGateway:
    """Checkout preferences and payment lookups against the Mercado Pago REST API.

    Errors raised from here never carry the access token or the raw response body;
    they carry the operation, the HTTP status when there is one, and the exception
    class name.
    """

    def __init__(
        self,
        *,
        access_token: str,
        app_base_url: str,
        api_base_url: str = MERCADOPAGO_API_BASE,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        if not access_token:
            raise RuntimeError("MP_ACCESS_TOKEN_REQUIRED")
        self._access_token = access_token
        self._app_base_url = app_base_url.rstrip("/")
        self._api_base_url = api_base_url.rstrip("/")
        self._timeout_seconds = timeout_seconds
        self._transport = transport

    def create_preference(self, request: PaymentPreferenceRequest) -> PaymentPreference:
        body = self.build_preference_body(request)
        try:
            data = self._request("POST", "/checkout/preferences", json=body)
        except httpx.HTTPStatusError as exc:
            raise GatewayCreateError(
                f"GATEWAY_CREATE_FAILED: status={exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise GatewayCreateError(f"GATEWAY_CREATE_FAILED: {type(exc).__name__}") from exc

        preference_id = data.get("id")
        if not preference_id:
            raise GatewayCreateError("GATEWAY_CREATE_FAILED: response missing id")
        logger.debug(
            "mercadopago.preference_created",
            extra={
                "extra_fields": {
                    "proposal_id": request.proposal_id,
                    "preference_id": str(preference_id),
                }
            },
        )
        return PaymentPreference(
            preference_id=str(preference_id),
            init_point=data.get("init_point"),
        )

    def get_payment(self, payment_id: str) -> PaymentResult:
        try:
            data = self._request("GET", f"/v1/payments/{payment_id}")
        except httpx.HTTPStatusError as exc:
            raise GatewayLookupError(
                f"GATEWAY_LOOKUP_FAILED: status={exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise GatewayLookupError(f"GATEWAY_LOOKUP_FAILED: {type(exc).__name__}") from exc

        if not data.get("status"):
            raise GatewayLookupError("GATEWAY_LOOKUP_FAILED: response missing status")
        return PaymentResult(
            payment_id=data.get("id") or payment_id,
            status=data["status"],
            status_detail=data.get("status_detail"),
            external_reference=data.get("external_reference"),
        )

    def build_preference_body(self, request: PaymentPreferenceRequest) -> dict[str, Any]:
        proposal_url = f"{self._app_base_url}/proposta/{request.proposal_id}"
        return {
            "items": [
                {
                    "id": request.proposal_id,
                    "title": request.title,
                    "unit_price": float(request.price),
                    "quantity": 1,
                    "description": request.description or DEFAULT_ITEM_DESCRIPTION,
                    "currency_id": "BRL",
                }
            ],
            "back_urls": {
                "success": f"{proposal_url}/success",
                "failure": f"{proposal_url}/failure",
                "pending": f"{proposal_url}/pending",
            },
            "auto_return": "approved",
            "external_reference": request.external_reference,
            "notification_url": f"{self._app_base_url}/api/webhooks/mercadopago",
        }

    def _request(self, method: str, path: str, json: Optional[dict] = None) -> dict[str, Any]:
        with httpx.Client(
            base_url=self._api_base_url,
            timeout=self._timeout_seconds,
            transport=self._transport,
            headers={"Authorization": f"Bearer {self._access_token}"},
        ) as client:
            response = client.request(method, path, json=json)
            response.raise_for_status()
            try:
                data = response.json() if response.content else {}
            except ValueError as exc:
                raise httpx.DecodingError("invalid JSON response") from exc
        if not isinstance(data, dict):
            raise httpx.DecodingError("unexpected response shape")
        return data
