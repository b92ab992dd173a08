from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Path, Query, Response, status

from src.api.routers import payments_config, proposals_config
from src.api.routers.proposal_http_errors import ApiErrorResponse
from src.core.finance import FinanceService
from src.core.payments.gateway import PaymentGateway
from src.core.payments.reconciler import PaymentWebhookReconciler
from src.core.proposals import (
    ProposalCreateRequest,
    ProposalListResponse,
    ProposalRecord,
    ProposalResponseRequest,
    ProposalSendResponse,
    ProposalUpdateRequest,
    ProposalWorkflowService,
    WhatsAppLinkNotifier,
)
from src.core.proposals.repository import ProposalRepository

router = APIRouter(tags=["Proposal Lifecycle"])

_REPOSITORY: Optional[ProposalRepository] = None
_GATEWAY: Optional[PaymentGateway] = None
_SERVICE: Optional[ProposalWorkflowService] = None
_RECONCILER: Optional[PaymentWebhookReconciler] = None
_PAYMENT_SETTINGS: Optional[payments_config.PaymentSettings] = None

_ERROR_RESPONSES = {
    400: {"model": ApiErrorResponse, "description": "Invalid request."},
    404: {"model": ApiErrorResponse, "description": "Proposal not found."},
    409: {"model": ApiErrorResponse, "description": "Invalid transition or concurrent write."},
}


def get_proposal_repository() -> ProposalRepository:
    global _REPOSITORY
    if _REPOSITORY is None:
        _REPOSITORY = proposals_config.build_repository()
    return _REPOSITORY


def get_payment_settings() -> payments_config.PaymentSettings:
    global _PAYMENT_SETTINGS
    if _PAYMENT_SETTINGS is None:
        _PAYMENT_SETTINGS = payments_config.load_payment_settings()
    return _PAYMENT_SETTINGS


def get_payment_gateway() -> PaymentGateway:
    global _GATEWAY
    if _GATEWAY is None:
        _GATEWAY = payments_config.build_payment_gateway(get_payment_settings())
    return _GATEWAY


def get_proposal_workflow_service() -> ProposalWorkflowService:
    global _SERVICE
    if _SERVICE is None:
        _SERVICE = ProposalWorkflowService(
            repository=get_proposal_repository(),
            notifier=WhatsAppLinkNotifier(),
            gateway=get_payment_gateway(),
            app_base_url=proposals_config.app_base_url(),
            link_ttl=proposals_config.proposal_link_ttl(),
            max_write_attempts=proposals_config.proposal_write_max_attempts(),
        )
    return _SERVICE


def get_payment_webhook_reconciler() -> PaymentWebhookReconciler:
    global _RECONCILER
    if _RECONCILER is None:
        _RECONCILER = PaymentWebhookReconciler(
            repository=get_proposal_repository(),
            gateway=get_payment_gateway(),
            max_write_attempts=proposals_config.proposal_write_max_attempts(),
        )
    return _RECONCILER


def get_finance_service() -> FinanceService:
    return FinanceService(repository=get_proposal_repository())


def reset_proposal_workflow_service_for_tests() -> None:
    global _REPOSITORY
    global _GATEWAY
    global _SERVICE
    global _RECONCILER
    global _PAYMENT_SETTINGS
    _REPOSITORY = proposals_config.build_repository()
    _PAYMENT_SETTINGS = None
    _GATEWAY = None
    _SERVICE = None
    _RECONCILER = None


@router.post(
    "/proposals",
    response_model=ProposalRecord,
    status_code=status.HTTP_201_CREATED,
    summary="Create Proposal",
    description="Creates a proposal in `pending` status after validating category and type.",
    responses={400: _ERROR_RESPONSES[400]},
)
def create_proposal(
    payload: ProposalCreateRequest,
    service: Annotated[ProposalWorkflowService, Depends(get_proposal_workflow_service)] = None,
) -> ProposalRecord:
    return service.create_proposal(payload=payload)


@router.get(
    "/proposals",
    response_model=ProposalListResponse,
    status_code=status.HTTP_200_OK,
    summary="List Proposals",
    description="Lists proposals newest first with optional filters and cursor pagination.",
)
def list_proposals(
    created_by: Annotated[
        Optional[str],
        Query(description="Owning operator filter.", examples=["user_001"]),
    ] = None,
    status_filter: Annotated[
        Optional[str],
        Query(alias="status", description="Lifecycle status filter.", examples=["paid"]),
    ] = None,
    limit: Annotated[
        int,
        Query(description="Page size.", ge=1, le=100, examples=[20]),
    ] = 20,
    cursor: Annotated[
        Optional[str],
        Query(description="Opaque cursor from previous list response.", examples=["pp_123"]),
    ] = None,
    service: Annotated[ProposalWorkflowService, Depends(get_proposal_workflow_service)] = None,
) -> ProposalListResponse:
    return service.list_proposals(
        created_by=created_by,
        status=status_filter,
        limit=limit,
        cursor=cursor,
    )


@router.get(
    "/proposals/{proposal_id}",
    response_model=ProposalRecord,
    status_code=status.HTTP_200_OK,
    summary="Get Proposal",
    responses={404: _ERROR_RESPONSES[404]},
)
def get_proposal(
    proposal_id: Annotated[str, Path(description="Proposal identifier.", examples=["pp_001"])],
    service: Annotated[ProposalWorkflowService, Depends(get_proposal_workflow_service)] = None,
) -> ProposalRecord:
    return service.get_proposal(proposal_id=proposal_id)


@router.patch(
    "/proposals/{proposal_id}",
    response_model=ProposalRecord,
    status_code=status.HTTP_200_OK,
    summary="Update Proposal",
    description=(
        "Partially updates editable proposal fields. `expected_version` makes the write "
        "conditional on the version the caller read."
    ),
    responses=_ERROR_RESPONSES,
)
def update_proposal(
    payload: ProposalUpdateRequest,
    proposal_id: Annotated[str, Path(description="Proposal identifier.", examples=["pp_001"])],
    service: Annotated[ProposalWorkflowService, Depends(get_proposal_workflow_service)] = None,
) -> ProposalRecord:
    return service.update_proposal(proposal_id=proposal_id, payload=payload)


@router.delete(
    "/proposals/{proposal_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete Proposal",
    responses={404: _ERROR_RESPONSES[404]},
)
def delete_proposal(
    proposal_id: Annotated[str, Path(description="Proposal identifier.", examples=["pp_001"])],
    service: Annotated[ProposalWorkflowService, Depends(get_proposal_workflow_service)] = None,
) -> Response:
    service.delete_proposal(proposal_id=proposal_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/proposals/{proposal_id}/send",
    response_model=ProposalSendResponse,
    status_code=status.HTTP_200_OK,
    summary="Send Proposal",
    description=(
        "Generates a public link valid for seven days, moves the proposal to "
        "`waiting_client` and returns the WhatsApp deep link carrying the message."
    ),
    responses={
        **_ERROR_RESPONSES,
        502: {"model": ApiErrorResponse, "description": "Notification could not be built."},
    },
)
def send_proposal(
    proposal_id: Annotated[str, Path(description="Proposal identifier.", examples=["pp_001"])],
    service: Annotated[ProposalWorkflowService, Depends(get_proposal_workflow_service)] = None,
) -> ProposalSendResponse:
    return service.send_proposal(proposal_id=proposal_id)


@router.post(
    "/proposals/{proposal_id}/respond",
    response_model=ProposalRecord,
    status_code=status.HTTP_200_OK,
    summary="Record Client Response",
    description="Records the client decision for a proposal in `waiting_client`.",
    responses=_ERROR_RESPONSES,
)
def respond_to_proposal(
    payload: ProposalResponseRequest,
    proposal_id: Annotated[str, Path(description="Proposal identifier.", examples=["pp_001"])],
    service: Annotated[ProposalWorkflowService, Depends(get_proposal_workflow_service)] = None,
) -> ProposalRecord:
    return service.respond_to_proposal(proposal_id=proposal_id, accept=payload.accept)
