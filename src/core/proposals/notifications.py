import re
from typing import Protocol
from urllib.parse import quote

from src.core.proposals.models import ProposalLinkRecord, ProposalRecord

WHATSAPP_BASE_URL = "https://wa.me"
BRAZIL_COUNTRY_CODE = "55"
LINK_VALIDITY_DAYS = 7


class ProposalNotificationError(Exception):
    pass


class ProposalNotifier(Protocol):
    def notify(self, *, proposal: ProposalRecord, link: ProposalLinkRecord, link_url: str) -> str:
        """Dispatch the link to the client and return the delivery URL."""
        ...


def format_whatsapp_phone(phone: str) -> str:
    digits = re.sub(r"\D", "", phone or "")
    if not digits:
        raise ProposalNotificationError("CLIENT_PHONE_REQUIRED")
    if digits.startswith(BRAZIL_COUNTRY_CODE):
        return digits
    if digits.startswith("0"):
        return BRAZIL_COUNTRY_CODE + digits[1:]
    return BRAZIL_COUNTRY_CODE + digits


def build_proposal_message(*, client: str, link_url: str) -> str:
    return (
        f"Olá {client}! 👋\n\n"
        "Sua proposta está pronta para análise! 📄\n\n"
        "Acesse o link abaixo para visualizar os detalhes e confirmar:\n"
        f"{link_url}\n\n"
        f"O link é válido por {LINK_VALIDITY_DAYS} dias.\n\n"
        "Aguardamos seu retorno! 🤝"
    )


class WhatsAppLinkNotifier:
    """Builds the click-to-chat deep link the operator opens to deliver the proposal."""

    def notify(self, *, proposal: ProposalRecord, link: ProposalLinkRecord, link_url: str) -> str:
        phone = format_whatsapp_phone(proposal.phone)
        message = build_proposal_message(client=proposal.client, link_url=link_url)
        return f"{WHATSAPP_BASE_URL}/{phone}?text={quote(message, safe='')}"
