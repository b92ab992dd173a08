from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

ProposalStatus = Literal[
    "pending",
    "waiting_client",
    "accepted",
    "declined",
    "payment_pending",
    "paid",
    "payment_failed",
]

ProposalCategory = Literal["Sites", "Configuração e Manutenção", "Infraestrutura"]

ProposalType = Literal[
    "Landing Page",
    "Ecommerce",
    "Sistema Web",
    "Computador",
    "Notebook",
    "Impressora",
    "Configuração de equipamentos de rede",
    "Passagem de Cabos",
]

PROPOSAL_CATEGORY_TYPES: dict[str, tuple[str, ...]] = {
    "Sites": ("Landing Page", "Ecommerce", "Sistema Web"),
    "Configuração e Manutenção": ("Computador", "Notebook", "Impressora"),
    "Infraestrutura": ("Configuração de equipamentos de rede", "Passagem de Cabos"),
}

LEGACY_STATUS_ALIASES = {
    "draft": "pending",
    "sent": "waiting_client",
    "rejected": "declined",
}


def normalize_proposal_status(value: Any) -> Any:
    if isinstance(value, str):
        normalized = value.strip().lower()
        return LEGACY_STATUS_ALIASES.get(normalized, normalized)
    return value


class ProposalCreateRequest(BaseModel):
    created_by: str = Field(
        description="Owning operator user id.",
        examples=["user_001"],
    )
    client: str = Field(
        min_length=1,
        description="Client display name.",
        examples=["Padaria Estrela"],
    )
    phone: str = Field(
        default="",
        description="Client contact phone, free format.",
        examples=["(11) 98765-4321"],
    )
    value: Decimal = Field(
        ge=0,
        description="Proposal value in BRL.",
        examples=["2500.00"],
    )
    category: ProposalCategory = Field(description="Service category.", examples=["Sites"])
    type: ProposalType = Field(
        description="Service type, must belong to the selected category.",
        examples=["Ecommerce"],
    )
    description: Optional[str] = Field(
        default=None,
        description="Optional free-text scope description.",
        examples=["Loja virtual com 30 produtos e integração de frete."],
    )
    business_date: Optional[date] = Field(
        default=None,
        description="Business date of the proposal. Defaults to today (UTC).",
        examples=["2026-10-19"],
    )


class ProposalUpdateRequest(BaseModel):
    client: Optional[str] = Field(default=None, min_length=1, examples=["Padaria Estrela"])
    phone: Optional[str] = Field(default=None, examples=["(11) 98765-4321"])
    value: Optional[Decimal] = Field(default=None, ge=0, examples=["3000.00"])
    category: Optional[ProposalCategory] = Field(default=None, examples=["Sites"])
    type: Optional[ProposalType] = Field(default=None, examples=["Sistema Web"])
    description: Optional[str] = Field(default=None, examples=["Escopo revisado."])
    business_date: Optional[date] = Field(default=None, examples=["2026-10-20"])
    expected_version: Optional[int] = Field(
        default=None,
        ge=1,
        description="Optimistic concurrency token read by the caller.",
        examples=[1],
    )


class ProposalResponseRequest(BaseModel):
    accept: bool = Field(description="Client decision: true accepts, false declines.")


class ProposalRecord(BaseModel):
    proposal_id: str = Field(description="Proposal identifier.", examples=["pp_001"])
    version: int = Field(
        default=1,
        description="Optimistic concurrency token, incremented on every write.",
        examples=[1],
    )
    client: str = Field(description="Client display name.", examples=["Padaria Estrela"])
    phone: str = Field(default="", description="Client contact phone.", examples=["11987654321"])
    value: Decimal = Field(description="Proposal value in BRL.", examples=["2500.00"])
    category: ProposalCategory = Field(description="Service category.", examples=["Sites"])
    type: ProposalType = Field(description="Service type.", examples=["Ecommerce"])
    description: Optional[str] = Field(default=None, description="Free-text description.")
    business_date: date = Field(description="Business date.", examples=["2026-10-19"])
    status: ProposalStatus = Field(description="Lifecycle status.", examples=["pending"])
    created_by: str = Field(description="Owning operator user id.", examples=["user_001"])
    created_at: datetime = Field(description="Creation timestamp (UTC).")
    updated_at: datetime = Field(description="Last-update timestamp (UTC).")
    link_id: Optional[str] = Field(default=None, description="Active public link id.")
    link_url: Optional[str] = Field(default=None, description="Active public link URL.")
    link_expires_at: Optional[datetime] = Field(
        default=None, description="Expiry of the active public link."
    )
    sent_at: Optional[datetime] = Field(default=None, description="Last dispatch timestamp.")
    preference_id: Optional[str] = Field(
        default=None, description="Latest gateway preference id.", examples=["pref_001"]
    )
    payment_id: Optional[str] = Field(
        default=None, description="Gateway payment id.", examples=["PAY123"]
    )
    payment_status: Optional[str] = Field(
        default=None, description="Raw gateway payment status.", examples=["approved"]
    )
    payment_status_detail: Optional[str] = Field(
        default=None, description="Raw gateway status detail.", examples=["accredited"]
    )
    payment_date: Optional[datetime] = Field(
        default=None, description="Timestamp of the last recorded payment notification."
    )

    @field_validator("status", mode="before")
    @classmethod
    def _normalize_status(cls, value: Any) -> Any:
        return normalize_proposal_status(value)


class ProposalLinkRecord(BaseModel):
    link_id: str = Field(description="Public link identifier.", examples=["pl_001"])
    proposal_id: str = Field(description="Referenced proposal id.", examples=["pp_001"])
    created_at: datetime = Field(description="Link creation timestamp (UTC).")
    expires_at: datetime = Field(description="Link expiry timestamp (UTC).")

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


ReceivableStatus = Literal["pending", "paid", "overdue"]


class ReceivableRecord(BaseModel):
    receivable_id: str = Field(description="Receivable identifier.", examples=["rc_001"])
    proposal_id: str = Field(description="Proposal being billed.", examples=["pp_001"])
    client: str = Field(description="Client display name.", examples=["Padaria Estrela"])
    value: Decimal = Field(description="Installment value in BRL.", examples=["1250.00"])
    due_date: date = Field(description="Due date.", examples=["2026-11-10"])
    status: ReceivableStatus = Field(description="Stored collection status.", examples=["pending"])
    created_by: str = Field(description="Owning operator user id.", examples=["user_001"])
    created_at: datetime = Field(description="Creation timestamp (UTC).")
    updated_at: datetime = Field(description="Last-update timestamp (UTC).")

    def status_on(self, today: date) -> str:
        """A pending receivable whose due date has passed reads as overdue."""
        if self.status == "pending" and self.due_date < today:
            return "overdue"
        return self.status


class ProposalListResponse(BaseModel):
    items: List[ProposalRecord] = Field(description="Page of proposals, newest first.")
    next_cursor: Optional[str] = Field(
        default=None,
        description="Cursor for the next page, or null when exhausted.",
        examples=["pp_001"],
    )


class ProposalSendResponse(BaseModel):
    proposal: ProposalRecord = Field(description="Proposal after dispatch.")
    link: ProposalLinkRecord = Field(description="Generated public link.")
    link_url: str = Field(
        description="Client-facing URL.", examples=["https://app.example.com/proposta/pl_001"]
    )
    notification_url: str = Field(
        description="Deep link that delivers the notification message.",
        examples=["https://wa.me/5511987654321?text=..."],
    )


class ProposalLinkView(BaseModel):
    link: ProposalLinkRecord = Field(description="Public link record.")
    proposal: ProposalRecord = Field(description="Referenced proposal.")
    expired: bool = Field(description="Whether the link expiry has passed.")

