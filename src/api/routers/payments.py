import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Header, status

from src.api.routers import payments_config
from src.api.routers import proposals as shared
from src.api.routers.proposal_http_errors import ApiErrorResponse
from src.core.payments.models import (
    CreatePaymentRequest,
    CreatePaymentResponse,
    PaymentNotification,
    PaymentWebhookAck,
)
from src.core.payments.reconciler import PaymentWebhookReconciler
from src.core.payments.signatures import verify_webhook_signature
from src.core.proposals import ProposalValidationError, ProposalWorkflowService

router = APIRouter(tags=["Payments"])
logger = logging.getLogger(__name__)


@router.post(
    "/api/create-payment",
    response_model=CreatePaymentResponse,
    status_code=status.HTTP_200_OK,
    summary="Create Checkout Preference",
    description=(
        "Creates a Mercado Pago checkout preference for an accepted proposal and returns "
        "the redirect entry point."
    ),
    responses={
        400: {"model": ApiErrorResponse, "description": "Missing or invalid fields."},
        404: {"model": ApiErrorResponse, "description": "Proposal not found."},
        409: {"model": ApiErrorResponse, "description": "Proposal is not payable."},
        500: {"model": ApiErrorResponse, "description": "Gateway failure."},
    },
)
def create_payment(
    payload: CreatePaymentRequest,
    service: Annotated[
        ProposalWorkflowService, Depends(shared.get_proposal_workflow_service)
    ] = None,
) -> CreatePaymentResponse:
    missing = [
        alias
        for alias, value in (
            ("proposalId", payload.proposal_id),
            ("title", payload.title),
            ("price", payload.price),
        )
        if value is None or (isinstance(value, str) and not value.strip())
    ]
    if missing:
        raise ProposalValidationError(f"MISSING_FIELDS: {', '.join(missing)}")
    if payload.price <= 0:
        raise ProposalValidationError("INVALID_PRICE: price must be greater than zero")

    preference = service.create_payment_preference(
        proposal_id=payload.proposal_id,
        title=payload.title,
        price=payload.price,
        description=payload.description,
        link_id=payload.link_id,
    )
    return CreatePaymentResponse(
        preference_id=preference.preference_id,
        init_point=preference.init_point,
    )


@router.post(
    "/api/webhooks/mercadopago",
    response_model=PaymentWebhookAck,
    status_code=status.HTTP_200_OK,
    summary="Mercado Pago Payment Webhook",
    description=(
        "Fetches the payment named by the notification from the gateway and reconciles the "
        "referenced proposal. Non-payment notifications are acknowledged without changes."
    ),
    responses={
        400: {"model": ApiErrorResponse, "description": "Malformed notification or reference."},
        401: {"model": ApiErrorResponse, "description": "Signature check failed."},
        404: {"model": ApiErrorResponse, "description": "Referenced proposal not found."},
        500: {"model": ApiErrorResponse, "description": "Gateway lookup or persistence failure."},
    },
)
def receive_mercadopago_webhook(
    notification: PaymentNotification,
    x_signature: Annotated[
        Optional[str],
        Header(alias="x-signature", description="Gateway signature `ts=<ts>,v1=<hmac>`."),
    ] = None,
    x_request_id: Annotated[
        Optional[str],
        Header(alias="x-request-id", description="Gateway delivery id used in the signature."),
    ] = None,
    settings: Annotated[
        payments_config.PaymentSettings, Depends(shared.get_payment_settings)
    ] = None,
    reconciler: Annotated[
        PaymentWebhookReconciler, Depends(shared.get_payment_webhook_reconciler)
    ] = None,
) -> PaymentWebhookAck:
    if settings.signature_required:
        verify_webhook_signature(
            secret=settings.webhook_secret,
            signature_header=x_signature,
            request_id=x_request_id,
            data_id=notification.payment_id,
        )
    logger.info(
        "payment.webhook_received",
        extra={
            "extra_fields": {
                "notification_kind": notification.kind,
                "payment_id": notification.payment_id,
            }
        },
    )
    return reconciler.handle_notification(notification)
