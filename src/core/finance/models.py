from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from src.core.proposals.models import ProposalRecord, ReceivableRecord, ReceivableStatus


class MonthlyRevenuePoint(BaseModel):
    month: str = Field(description="Short pt-BR month label.", examples=["Jan"])
    value: Decimal = Field(description="Won proposal value booked in the month.", examples=["0"])


class MonthlyFinancePoint(MonthlyRevenuePoint):
    projected_value: Decimal = Field(
        description="Average of up to three previous months plus 10% growth.",
        examples=["2750.00"],
    )


class FinanceMetrics(BaseModel):
    total: Decimal = Field(description="Realized value for the year.")
    average: Decimal = Field(description="Average over months with realized value.")
    projected: Decimal = Field(description="Sum of projected values for the year.")
    growth: Decimal = Field(description="Realized against projected, in percent.")
    current_month: Decimal = Field(description="Realized value in the reference month.")
    previous_month: Decimal = Field(description="Realized value in the month before.")
    monthly_growth: Decimal = Field(description="Reference month against previous, in percent.")


class MonthlyFinanceResponse(BaseModel):
    year: int = Field(examples=[2026])
    months: List[MonthlyFinancePoint] = Field(description="Twelve entries, January first.")
    metrics: FinanceMetrics


class FinanceDashboardResponse(BaseModel):
    total_proposals: int = Field(examples=[12])
    status_counts: Dict[str, int] = Field(
        description="Proposal count per lifecycle status.",
        examples=[{"pending": 3, "waiting_client": 2, "paid": 1}],
    )
    pending_proposals: int = Field(description="Proposals not yet sent.", examples=[3])
    active_proposals: int = Field(
        description="Accepted proposals, including those in payment.", examples=[4]
    )
    total_revenue: Decimal = Field(description="Value of accepted proposals.")
    received_revenue: Decimal = Field(description="Value of paid proposals.")
    monthly_revenue: Decimal = Field(description="Accepted value booked this month.")
    recent_proposals: List[ProposalRecord] = Field(description="Five most recent proposals.")
    monthly_data: List[MonthlyRevenuePoint] = Field(description="Current-year series.")
    pending_receivables: int = Field(
        description="Receivables awaiting payment and not yet due.", examples=[2]
    )
    overdue_receivables: int = Field(
        description="Receivables past their due date without payment.", examples=[1]
    )
    recent_receivables: List[ReceivableRecord] = Field(
        description="Five open receivables with the nearest due dates, overdue first."
    )


class ReceivableCreateRequest(BaseModel):
    proposal_id: str = Field(description="Proposal being billed.", examples=["pp_001"])
    due_date: date = Field(description="Due date.", examples=["2026-11-10"])
    value: Optional[Decimal] = Field(
        default=None,
        gt=0,
        description="Installment value, defaults to the proposal value.",
        examples=["1250.00"],
    )
    client: Optional[str] = Field(
        default=None,
        min_length=1,
        description="Client display name, defaults to the proposal client.",
        examples=["Padaria Estrela"],
    )
    status: ReceivableStatus = Field(default="pending", examples=["pending"])


class ReceivableUpdateRequest(BaseModel):
    client: Optional[str] = Field(default=None, min_length=1, examples=["Padaria Estrela"])
    value: Optional[Decimal] = Field(default=None, gt=0, examples=["1250.00"])
    due_date: Optional[date] = Field(default=None, examples=["2026-12-10"])
    status: Optional[ReceivableStatus] = Field(default=None, examples=["paid"])


class ReceivableListResponse(BaseModel):
    items: List[ReceivableRecord] = Field(
        description="Receivables by due date, with pending past-due entries reported as overdue."
    )
