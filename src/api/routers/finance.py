from datetime import datetime, timezone
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Path, Query, Response, status

from src.api.routers import proposals as shared
from src.api.routers.proposal_http_errors import ApiErrorResponse
from src.core.finance import (
    FinanceDashboardResponse,
    FinanceService,
    MonthlyFinanceResponse,
    ReceivableCreateRequest,
    ReceivableListResponse,
    ReceivableUpdateRequest,
)
from src.core.proposals.models import ReceivableRecord, ReceivableStatus

router = APIRouter(tags=["Finance"])

_RECEIVABLE_ERROR_RESPONSES = {
    400: {"model": ApiErrorResponse, "description": "Invalid request."},
    404: {"model": ApiErrorResponse, "description": "Receivable or proposal not found."},
}


@router.get(
    "/finance/dashboard",
    response_model=FinanceDashboardResponse,
    status_code=status.HTTP_200_OK,
    summary="Get Finance Dashboard",
    description="Proposal counts, won and received revenue, and the current-year series.",
)
def get_finance_dashboard(
    created_by: Annotated[
        Optional[str],
        Query(description="Owning operator filter.", examples=["user_001"]),
    ] = None,
    service: Annotated[FinanceService, Depends(shared.get_finance_service)] = None,
) -> FinanceDashboardResponse:
    return service.get_dashboard(created_by=created_by)


@router.get(
    "/finance/monthly",
    response_model=MonthlyFinanceResponse,
    status_code=status.HTTP_200_OK,
    summary="Get Monthly Finance",
    description="Realized and projected revenue per month for the requested year.",
)
def get_monthly_finance(
    year: Annotated[
        Optional[int],
        Query(description="Calendar year, defaults to the current one.", ge=2000, le=2100),
    ] = None,
    created_by: Annotated[
        Optional[str],
        Query(description="Owning operator filter.", examples=["user_001"]),
    ] = None,
    service: Annotated[FinanceService, Depends(shared.get_finance_service)] = None,
) -> MonthlyFinanceResponse:
    return service.get_monthly_finance(
        created_by=created_by,
        year=year or datetime.now(timezone.utc).year,
    )


@router.get(
    "/finance/receivables",
    response_model=ReceivableListResponse,
    status_code=status.HTTP_200_OK,
    summary="List Receivables",
    description="Receivables by due date. Pending entries past their due date read as overdue.",
)
def list_receivables(
    created_by: Annotated[
        Optional[str],
        Query(description="Owning operator filter.", examples=["user_001"]),
    ] = None,
    proposal_id: Annotated[
        Optional[str],
        Query(description="Billed proposal filter.", examples=["pp_001"]),
    ] = None,
    status_filter: Annotated[
        Optional[ReceivableStatus],
        Query(alias="status", description="Status as reported today.", examples=["overdue"]),
    ] = None,
    service: Annotated[FinanceService, Depends(shared.get_finance_service)] = None,
) -> ReceivableListResponse:
    return service.list_receivables(
        created_by=created_by, proposal_id=proposal_id, status=status_filter
    )


@router.post(
    "/finance/receivables",
    response_model=ReceivableRecord,
    status_code=status.HTTP_201_CREATED,
    summary="Create Receivable",
    description="Bills an accepted proposal. Value and client default to the proposal's.",
    responses=_RECEIVABLE_ERROR_RESPONSES,
)
def create_receivable(
    payload: ReceivableCreateRequest,
    service: Annotated[FinanceService, Depends(shared.get_finance_service)] = None,
) -> ReceivableRecord:
    return service.create_receivable(payload)


@router.get(
    "/finance/receivables/{receivable_id}",
    response_model=ReceivableRecord,
    status_code=status.HTTP_200_OK,
    summary="Get Receivable",
    responses=_RECEIVABLE_ERROR_RESPONSES,
)
def get_receivable(
    receivable_id: Annotated[str, Path(description="Receivable identifier.", examples=["rc_001"])],
    service: Annotated[FinanceService, Depends(shared.get_finance_service)] = None,
) -> ReceivableRecord:
    return service.get_receivable(receivable_id=receivable_id)


@router.patch(
    "/finance/receivables/{receivable_id}",
    response_model=ReceivableRecord,
    status_code=status.HTTP_200_OK,
    summary="Update Receivable",
    description="Partial update of value, due date, client or status.",
    responses=_RECEIVABLE_ERROR_RESPONSES,
)
def update_receivable(
    payload: ReceivableUpdateRequest,
    receivable_id: Annotated[str, Path(description="Receivable identifier.", examples=["rc_001"])],
    service: Annotated[FinanceService, Depends(shared.get_finance_service)] = None,
) -> ReceivableRecord:
    return service.update_receivable(receivable_id=receivable_id, request=payload)


@router.delete(
    "/finance/receivables/{receivable_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete Receivable",
    responses=_RECEIVABLE_ERROR_RESPONSES,
)
def delete_receivable(
    receivable_id: Annotated[str, Path(description="Receivable identifier.", examples=["rc_001"])],
    service: Annotated[FinanceService, Depends(shared.get_finance_service)] = None,
) -> Response:
    service.delete_receivable(receivable_id=receivable_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
