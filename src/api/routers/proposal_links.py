from typing import Annotated

from fastapi import APIRouter, Depends, Path, status

from src.api.routers import proposals as shared
from src.api.routers.proposal_http_errors import ApiErrorResponse
from src.core.proposals import (
    ProposalLinkView,
    ProposalRecord,
    ProposalResponseRequest,
    ProposalWorkflowService,
)

router = APIRouter(tags=["Proposal Public Links"])

_LINK_ERROR_RESPONSES = {
    404: {"model": ApiErrorResponse, "description": "Unknown link."},
    410: {"model": ApiErrorResponse, "description": "Link expired or superseded by a resend."},
}


@router.get(
    "/proposta/{link_id}",
    response_model=ProposalLinkView,
    status_code=status.HTTP_200_OK,
    summary="Open Public Proposal Link",
    description="Resolves the client-facing link to its proposal.",
    responses=_LINK_ERROR_RESPONSES,
)
def open_proposal_link(
    link_id: Annotated[str, Path(description="Public link identifier.", examples=["pl_001"])],
    service: Annotated[
        ProposalWorkflowService, Depends(shared.get_proposal_workflow_service)
    ] = None,
) -> ProposalLinkView:
    return service.open_link(link_id=link_id)


@router.post(
    "/proposta/{link_id}/respond",
    response_model=ProposalRecord,
    status_code=status.HTTP_200_OK,
    summary="Respond Through Public Link",
    description="Accepts or declines the proposal referenced by a live link.",
    responses={
        **_LINK_ERROR_RESPONSES,
        409: {"model": ApiErrorResponse, "description": "Proposal is not awaiting a response."},
    },
)
def respond_through_link(
    payload: ProposalResponseRequest,
    link_id: Annotated[str, Path(description="Public link identifier.", examples=["pl_001"])],
    service: Annotated[
        ProposalWorkflowService, Depends(shared.get_proposal_workflow_service)
    ] = None,
) -> ProposalRecord:
    return service.respond_via_link(link_id=link_id, accept=payload.accept)
