import logging
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from src.core.payments.gateway import PaymentGateway
from src.core.payments.models import PaymentNotification, PaymentResult, PaymentWebhookAck
from src.core.payments.references import ExternalReferenceError, parse_external_reference
from src.core.proposals.models import ProposalRecord
from src.core.proposals.repository import ProposalRepository
from src.core.proposals.service import (
    DEFAULT_MAX_WRITE_ATTEMPTS,
    PAYMENT_REGION_STATES,
    ProposalTransitionError,
    ProposalValidationError,
    resolve_transition,
    write_proposal_with_retry,
)

logger = logging.getLogger(__name__)

GATEWAY_STATUS_EVENTS = {
    "approved": "PAYMENT_APPROVED",
    "pending": "PAYMENT_PENDING",
    "in_process": "PAYMENT_PENDING",
    "rejected": "PAYMENT_REJECTED",
}


class PaymentWebhookReconciler:
    """Maps gateway payment notifications onto proposal payment state.

    The gateway is the source of truth: the notification only names a payment id,
    the payment itself is always fetched before anything is written. Writes are
    assignments of the payment id and status, so redelivery of the same
    notification is detected and skipped.
    """

    def __init__(
        self,
        *,
        repository: ProposalRepository,
        gateway: PaymentGateway,
        max_write_attempts: int = DEFAULT_MAX_WRITE_ATTEMPTS,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._repository = repository
        self._gateway = gateway
        self._max_write_attempts = max_write_attempts
        self._clock = clock or _utc_now

    def handle_notification(self, notification: PaymentNotification) -> PaymentWebhookAck:
        if not notification.is_payment:
            logger.info(
                "payment.ignored",
                extra={"extra_fields": {"notification_kind": notification.kind}},
            )
            return PaymentWebhookAck(received=True, applied=False)

        payment_id = notification.payment_id
        if payment_id is None:
            raise ProposalValidationError("PAYMENT_ID_REQUIRED: data.id is missing")

        result = self._gateway.get_payment(payment_id)
        return self.apply_payment_result(result)

    def apply_payment_result(self, result: PaymentResult) -> PaymentWebhookAck:
        reference = parse_external_reference(result.external_reference)
        if reference.link_id is not None:
            link = self._repository.get_link(link_id=reference.link_id)
            if link is None or link.proposal_id != reference.proposal_id:
                raise ExternalReferenceError(
                    f"EXTERNAL_REFERENCE_LINK_MISMATCH: {result.external_reference}"
                )

        event_type = GATEWAY_STATUS_EVENTS.get(result.status.strip().lower())
        skipped: dict[str, str] = {}

        def plan(proposal: ProposalRecord) -> Optional[dict[str, Any]]:
            if proposal.status not in PAYMENT_REGION_STATES:
                skipped["reason"] = f"OUTSIDE_PAYMENT_REGION: {proposal.status}"
                return None
            if proposal.status == "paid" and event_type != "PAYMENT_APPROVED":
                skipped["reason"] = f"PAID_PROPOSAL_LOCKED: {result.status}"
                return None

            changes: dict[str, Any] = {}
            if event_type is not None:
                try:
                    next_status = resolve_transition(
                        current_status=proposal.status, event_type=event_type
                    )
                except ProposalTransitionError as exc:
                    skipped["reason"] = str(exc)
                    return None
                if next_status != proposal.status:
                    changes["status"] = next_status

            if (
                not changes
                and proposal.payment_id == result.payment_id
                and proposal.payment_status == result.status
                and proposal.payment_status_detail == result.status_detail
            ):
                skipped["reason"] = "DUPLICATE_NOTIFICATION"
                return None

            now = self._clock()
            changes.update(
                {
                    "payment_id": result.payment_id,
                    "payment_status": result.status,
                    "payment_status_detail": result.status_detail,
                    "payment_date": now,
                    "updated_at": now,
                }
            )
            return changes

        proposal, applied = write_proposal_with_retry(
            repository=self._repository,
            proposal_id=reference.proposal_id,
            plan=plan,
            max_attempts=self._max_write_attempts,
        )

        logger.info(
            "payment.reconciled" if applied else "payment.skipped",
            extra={
                "extra_fields": {
                    "proposal_id": proposal.proposal_id,
                    "payment_id": result.payment_id,
                    "gateway_status": result.status,
                    "proposal_status": proposal.status,
                    "skip_reason": skipped.get("reason"),
                }
            },
        )
        return PaymentWebhookAck(
            received=True,
            applied=applied,
            proposal_id=proposal.proposal_id,
            status=proposal.status,
        )


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)
