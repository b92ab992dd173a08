import logging
import uuid
from collections import Counter
from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, Iterable, Optional

from src.core.finance.models import (
    FinanceDashboardResponse,
    FinanceMetrics,
    MonthlyFinancePoint,
    MonthlyFinanceResponse,
    MonthlyRevenuePoint,
    ReceivableCreateRequest,
    ReceivableListResponse,
    ReceivableUpdateRequest,
)
from src.core.proposals.models import ProposalRecord, ReceivableRecord
from src.core.proposals.repository import ProposalRepository
from src.core.proposals.service import (
    PAYMENT_REGION_STATES,
    ProposalNotFoundError,
    ProposalValidationError,
)

logger = logging.getLogger(__name__)

MONTH_LABELS = ["Jan", "Fev", "Mar", "Abr", "Mai", "Jun", "Jul", "Ago", "Set", "Out", "Nov", "Dez"]
WON_STATES = PAYMENT_REGION_STATES
PROJECTION_WINDOW = 3
PROJECTION_GROWTH = Decimal("1.1")
RECENT_PROPOSALS = 5
RECENT_RECEIVABLES = 5
_PAGE_SIZE = 200
_CENTS = Decimal("0.01")


class ReceivableNotFoundError(ProposalNotFoundError):
    pass


class FinanceService:
    """Revenue views over the proposal store, plus the receivables ledger."""

    def __init__(
        self,
        *,
        repository: ProposalRepository,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._repository = repository
        self._clock = clock or _utc_now

    def get_dashboard(
        self, *, created_by: Optional[str], today: Optional[date] = None
    ) -> FinanceDashboardResponse:
        today = today or self._clock().date()
        proposals = list(self._iter_proposals(created_by=created_by))
        won = [proposal for proposal in proposals if proposal.status in WON_STATES]
        this_month = [
            proposal
            for proposal in won
            if (proposal.business_date.year, proposal.business_date.month)
            == (today.year, today.month)
        ]
        monthly_values = _monthly_values(won, year=today.year)
        receivables = self._receivables_on(created_by=created_by, proposal_id=None, today=today)
        open_receivables = sorted(
            (receivable for receivable in receivables if receivable.status != "paid"),
            key=lambda receivable: receivable.status != "overdue",
        )
        return FinanceDashboardResponse(
            total_proposals=len(proposals),
            status_counts=dict(Counter(proposal.status for proposal in proposals)),
            pending_proposals=sum(1 for proposal in proposals if proposal.status == "pending"),
            active_proposals=len(won),
            total_revenue=_sum_values(won),
            received_revenue=_sum_values(p for p in proposals if p.status == "paid"),
            monthly_revenue=_sum_values(this_month),
            recent_proposals=proposals[:RECENT_PROPOSALS],
            monthly_data=[
                MonthlyRevenuePoint(month=label, value=value)
                for label, value in zip(MONTH_LABELS, monthly_values)
            ],
            pending_receivables=sum(1 for r in receivables if r.status == "pending"),
            overdue_receivables=sum(1 for r in receivables if r.status == "overdue"),
            recent_receivables=open_receivables[:RECENT_RECEIVABLES],
        )

    def get_monthly_finance(
        self, *, created_by: Optional[str], year: int, today: Optional[date] = None
    ) -> MonthlyFinanceResponse:
        today = today or self._clock().date()
        won = [
            proposal
            for proposal in self._iter_proposals(created_by=created_by)
            if proposal.status in WON_STATES
        ]
        values = _monthly_values(won, year=year)
        projected = project_monthly_values(values)
        months = [
            MonthlyFinancePoint(month=label, value=value, projected_value=projection)
            for label, value, projection in zip(MONTH_LABELS, values, projected)
        ]
        return MonthlyFinanceResponse(
            year=year,
            months=months,
            metrics=calculate_metrics(months, reference_month=today.month - 1),
        )

    def list_receivables(
        self,
        *,
        created_by: Optional[str],
        proposal_id: Optional[str] = None,
        status: Optional[str] = None,
        today: Optional[date] = None,
    ) -> ReceivableListResponse:
        today = today or self._clock().date()
        items = self._receivables_on(created_by=created_by, proposal_id=proposal_id, today=today)
        if status is not None:
            items = [item for item in items if item.status == status]
        return ReceivableListResponse(items=items)

    def get_receivable(self, *, receivable_id: str) -> ReceivableRecord:
        receivable = self._repository.get_receivable(receivable_id=receivable_id)
        if receivable is None:
            raise ReceivableNotFoundError("RECEIVABLE_NOT_FOUND")
        return receivable

    def create_receivable(self, request: ReceivableCreateRequest) -> ReceivableRecord:
        proposal = self._repository.get_proposal(proposal_id=request.proposal_id)
        if proposal is None:
            raise ProposalNotFoundError("PROPOSAL_NOT_FOUND")
        if proposal.status not in WON_STATES:
            raise ProposalValidationError(
                f"RECEIVABLE_REQUIRES_ACCEPTED_PROPOSAL: {proposal.status}"
            )
        now = self._clock()
        receivable = ReceivableRecord(
            receivable_id=f"rc_{uuid.uuid4().hex[:12]}",
            proposal_id=proposal.proposal_id,
            client=request.client or proposal.client,
            value=request.value if request.value is not None else proposal.value,
            due_date=request.due_date,
            status=request.status,
            created_by=proposal.created_by,
            created_at=now,
            updated_at=now,
        )
        self._repository.create_receivable(receivable)
        logger.info(
            "receivable.created",
            extra={
                "extra_fields": {
                    "receivable_id": receivable.receivable_id,
                    "proposal_id": receivable.proposal_id,
                    "due_date": receivable.due_date.isoformat(),
                }
            },
        )
        return receivable

    def update_receivable(
        self, *, receivable_id: str, request: ReceivableUpdateRequest
    ) -> ReceivableRecord:
        changes = request.model_dump(exclude_none=True)
        if not changes:
            return self.get_receivable(receivable_id=receivable_id)
        changes["updated_at"] = self._clock()
        updated = self._repository.update_receivable(receivable_id=receivable_id, changes=changes)
        if updated is None:
            raise ReceivableNotFoundError("RECEIVABLE_NOT_FOUND")
        logger.info(
            "receivable.updated",
            extra={
                "extra_fields": {
                    "receivable_id": receivable_id,
                    "fields": sorted(key for key in changes if key != "updated_at"),
                    "status": updated.status,
                }
            },
        )
        return updated

    def delete_receivable(self, *, receivable_id: str) -> None:
        if not self._repository.delete_receivable(receivable_id=receivable_id):
            raise ReceivableNotFoundError("RECEIVABLE_NOT_FOUND")
        logger.info(
            "receivable.deleted", extra={"extra_fields": {"receivable_id": receivable_id}}
        )

    def _receivables_on(
        self, *, created_by: Optional[str], proposal_id: Optional[str], today: date
    ) -> list[ReceivableRecord]:
        return [
            receivable.model_copy(update={"status": receivable.status_on(today)})
            for receivable in self._repository.list_receivables(
                created_by=created_by, proposal_id=proposal_id
            )
        ]

    def _iter_proposals(self, *, created_by: Optional[str]) -> Iterable[ProposalRecord]:
        cursor = None
        while True:
            page, cursor = self._repository.list_proposals(
                created_by=created_by, status=None, limit=_PAGE_SIZE, cursor=cursor
            )
            yield from page
            if cursor is None:
                return


def project_monthly_values(values: list[Decimal]) -> list[Decimal]:
    """Project each month from the average of up to three preceding months, plus 10%.

    The first month, and any month whose history averages to zero, projects from
    its own realized value.
    """
    projected: list[Decimal] = []
    for index, value in enumerate(values):
        history = values[max(0, index - PROJECTION_WINDOW) : index]
        average = sum(history, Decimal("0")) / len(history) if history else Decimal("0")
        base = average or value
        projected.append((base * PROJECTION_GROWTH).quantize(_CENTS, rounding=ROUND_HALF_UP))
    return projected


def calculate_metrics(months: list[MonthlyFinancePoint], *, reference_month: int) -> FinanceMetrics:
    total = sum((month.value for month in months), Decimal("0"))
    projected = sum((month.projected_value for month in months), Decimal("0"))
    realized_months = sum(1 for month in months if month.value > 0) or 1
    current = months[reference_month].value
    previous = months[reference_month - 1].value if reference_month > 0 else months[-1].value
    return FinanceMetrics(
        total=total,
        average=(total / realized_months).quantize(_CENTS, rounding=ROUND_HALF_UP),
        projected=projected,
        growth=_percent_change(total, projected),
        current_month=current,
        previous_month=previous,
        monthly_growth=_percent_change(current, previous),
    )


def _percent_change(value: Decimal, baseline: Decimal) -> Decimal:
    if not value or not baseline:
        return Decimal("0.00")
    return ((value / baseline - 1) * 100).quantize(_CENTS, rounding=ROUND_HALF_UP)


def _monthly_values(proposals: Iterable[ProposalRecord], *, year: int) -> list[Decimal]:
    values = [Decimal("0")] * 12
    for proposal in proposals:
        if proposal.business_date.year == year:
            values[proposal.business_date.month - 1] += proposal.value
    return values


def _sum_values(proposals: Iterable[ProposalRecord]) -> Decimal:
    return sum((proposal.value for proposal in proposals), Decimal("0"))


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)
