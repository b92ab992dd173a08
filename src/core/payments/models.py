from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

PAYMENT_NOTIFICATION_KIND = "payment"


def _coerce_identifier(value: Any) -> Any:
    # gateway payloads carry numeric ids
    if isinstance(value, (int, Decimal)) and not isinstance(value, bool):
        return str(value)
    return value


class PaymentNotificationData(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = Field(default=None, description="Gateway payment id.", examples=["PAY123"])

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        return _coerce_identifier(value)


class PaymentNotification(BaseModel):
    """Inbound webhook body.

    Two delivery shapes are accepted: ``{"type": "payment", "data": {"id": ...}}`` and
    ``{"action": "payment.updated", "data": {"id": ...}}``.
    """

    model_config = ConfigDict(extra="allow")

    type: Optional[str] = Field(default=None, examples=["payment"])
    action: Optional[str] = Field(default=None, examples=["payment.updated"])
    data: Optional[PaymentNotificationData] = Field(default=None)

    @property
    def kind(self) -> Optional[str]:
        if self.type:
            return self.type.strip().lower()
        if self.action:
            return self.action.strip().lower().split(".", maxsplit=1)[0]
        return None

    @property
    def is_payment(self) -> bool:
        return self.kind == PAYMENT_NOTIFICATION_KIND

    @property
    def payment_id(self) -> Optional[str]:
        if self.data is None or self.data.id is None:
            return None
        value = str(self.data.id).strip()
        return value or None


class PaymentResult(BaseModel):
    payment_id: str = Field(description="Gateway payment id.", examples=["PAY123"])
    status: str = Field(description="Gateway payment status.", examples=["approved"])
    status_detail: Optional[str] = Field(default=None, examples=["accredited"])
    external_reference: Optional[str] = Field(default=None, examples=["pp_001"])

    @field_validator("payment_id", "external_reference", mode="before")
    @classmethod
    def _coerce_ids(cls, value: Any) -> Any:
        return _coerce_identifier(value)


class PaymentPreferenceRequest(BaseModel):
    proposal_id: str = Field(examples=["pp_001"])
    title: str = Field(examples=["Proposta - Padaria Estrela"])
    price: Decimal = Field(gt=0, examples=["2500.00"])
    description: Optional[str] = Field(default=None)
    external_reference: str = Field(examples=["pp_001"])


class PaymentPreference(BaseModel):
    preference_id: str = Field(examples=["pref_001"])
    init_point: Optional[str] = Field(
        default=None, examples=["https://www.mercadopago.com.br/checkout/v1/redirect?pref_id=1"]
    )


class CreatePaymentRequest(BaseModel):
    """Body of ``POST /api/create-payment``.

    Fields are optional at the schema level so that missing values produce the
    documented ``{error, details}`` envelope instead of a schema error list.
    """

    model_config = ConfigDict(populate_by_name=True)

    proposal_id: Optional[str] = Field(default=None, alias="proposalId", examples=["pp_001"])
    link_id: Optional[str] = Field(default=None, alias="linkId", examples=["pl_001"])
    title: Optional[str] = Field(default=None, examples=["Proposta - Padaria Estrela"])
    price: Optional[Decimal] = Field(default=None, examples=["2500.00"])
    description: Optional[str] = Field(default=None)


class CreatePaymentResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    preference_id: str = Field(alias="preferenceId", examples=["pref_001"])
    init_point: Optional[str] = Field(default=None, alias="initPoint")


class PaymentWebhookAck(BaseModel):
    received: bool = Field(default=True)
    applied: bool = Field(default=False, description="Whether the proposal record was written.")
    proposal_id: Optional[str] = Field(default=None, examples=["pp_001"])
    status: Optional[str] = Field(
        default=None, description="Proposal status after handling.", examples=["paid"]
    )


@dataclass(frozen=True)
class ProposalReference:
    proposal_id: str
    link_id: Optional[str] = None
