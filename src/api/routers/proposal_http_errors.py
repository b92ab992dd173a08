import logging
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from src.core.finance.service import ReceivableNotFoundError
from src.core.payments.gateway import GatewayCreateError, GatewayLookupError, PaymentGatewayError
from src.core.payments.signatures import WebhookSignatureError
from src.core.proposals.notifications import ProposalNotificationError
from src.core.proposals.repository import ProposalPersistenceError
from src.core.proposals.service import (
    ProposalLifecycleError,
    ProposalLinkExpiredError,
    ProposalNotFoundError,
    ProposalStateConflictError,
    ProposalTransitionError,
    ProposalValidationError,
)

logger = logging.getLogger(__name__)


class ApiErrorResponse(BaseModel):
    error: str = Field(description="Short error summary.", examples=["Proposal not found"])
    details: Optional[str] = Field(
        default=None,
        description="Machine-readable reason code and context.",
        examples=["PROPOSAL_NOT_FOUND"],
    )


# Most specific first: ExternalReferenceError subclasses ProposalValidationError and
# ReceivableNotFoundError subclasses ProposalNotFoundError.
_ERROR_MAPPING: list[tuple[type[Exception], int, str]] = [
    (ReceivableNotFoundError, status.HTTP_404_NOT_FOUND, "Receivable not found"),
    (ProposalNotFoundError, status.HTTP_404_NOT_FOUND, "Proposal not found"),
    (ProposalLinkExpiredError, status.HTTP_410_GONE, "Proposal link expired"),
    (ProposalTransitionError, status.HTTP_409_CONFLICT, "Invalid status transition"),
    (ProposalStateConflictError, status.HTTP_409_CONFLICT, "Proposal was modified concurrently"),
    (ProposalValidationError, status.HTTP_400_BAD_REQUEST, "Invalid request"),
    (WebhookSignatureError, status.HTTP_401_UNAUTHORIZED, "Invalid webhook signature"),
    (GatewayCreateError, status.HTTP_500_INTERNAL_SERVER_ERROR, "Error creating payment"),
    (GatewayLookupError, status.HTTP_500_INTERNAL_SERVER_ERROR, "Error processing webhook"),
    (PaymentGatewayError, status.HTTP_500_INTERNAL_SERVER_ERROR, "Payment gateway error"),
    (ProposalNotificationError, status.HTTP_502_BAD_GATEWAY, "Notification dispatch failed"),
    (ProposalPersistenceError, status.HTTP_500_INTERNAL_SERVER_ERROR, "Persistence failure"),
]

HANDLED_EXCEPTIONS: tuple[type[Exception], ...] = (
    ProposalLifecycleError,
    PaymentGatewayError,
    WebhookSignatureError,
    ProposalNotificationError,
    ProposalPersistenceError,
)


def resolve_error_status(exc: Exception) -> tuple[int, str]:
    for exc_type, status_code, summary in _ERROR_MAPPING:
        if isinstance(exc, exc_type):
            return status_code, summary
    return status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal error"


def error_response(*, status_code: int, error: str, details: Optional[str]) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ApiErrorResponse(error=error, details=details).model_dump(),
    )


def _format_validation_errors(exc: RequestValidationError) -> str:
    parts = []
    for item in exc.errors():
        location = ".".join(str(part) for part in item.get("loc", ()) if part != "body")
        parts.append(f"{location}: {item.get('msg')}" if location else str(item.get("msg")))
    return "; ".join(parts)


async def domain_exception_to_error_envelope(request: Request, exc: Exception) -> JSONResponse:
    status_code, summary = resolve_error_status(exc)
    log = logger.error if status_code >= 500 else logger.info
    log(
        "http.domain_error",
        extra={
            "extra_fields": {
                "endpoint": request.url.path,
                "status_code": status_code,
                "error_type": type(exc).__name__,
                "details": str(exc),
            }
        },
    )
    return error_response(status_code=status_code, error=summary, details=str(exc))


async def request_validation_to_error_envelope(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    return error_response(
        status_code=status.HTTP_400_BAD_REQUEST,
        error="Invalid request",
        details=_format_validation_errors(exc),
    )


def register_error_handlers(app: FastAPI) -> None:
    for exc_type in HANDLED_EXCEPTIONS:
        app.add_exception_handler(exc_type, domain_exception_to_error_envelope)
    app.add_exception_handler(RequestValidationError, request_validation_to_error_envelope)
