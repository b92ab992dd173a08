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
from src.core.finance.service import (
    FinanceService,
    ReceivableNotFoundError,
    calculate_metrics,
    project_monthly_values,
)

__all__ = [
    "FinanceDashboardResponse",
    "FinanceMetrics",
    "MonthlyFinancePoint",
    "MonthlyFinanceResponse",
    "MonthlyRevenuePoint",
    "ReceivableCreateRequest",
    "ReceivableListResponse",
    "ReceivableUpdateRequest",
    "FinanceService",
    "ReceivableNotFoundError",
    "calculate_metrics",
    "project_monthly_values",
]
