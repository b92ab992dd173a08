import logging
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Callable, Optional

from src.core.payments.gateway import PaymentGateway
from src.core.payments.models import PaymentPreference, PaymentPreferenceRequest
from src.core.proposals.models import (
    PROPOSAL_CATEGORY_TYPES,
    ProposalCreateRequest,
    ProposalLinkRecord,
    ProposalLinkView,
    ProposalListResponse,
    ProposalRecord,
    ProposalSendResponse,
    ProposalStatus,
    ProposalUpdateRequest,
    normalize_proposal_status,
)
from src.core.proposals.notifications import ProposalNotificationError, ProposalNotifier
from src.core.proposals.repository import ProposalRepository, ProposalVersionConflictError

logger = logging.getLogger(__name__)

LINK_TTL = timedelta(days=7)
DEFAULT_MAX_WRITE_ATTEMPTS = 3
TERMINAL_STATES = {"declined", "paid"}
PAYMENT_REGION_STATES = {"accepted", "payment_pending", "payment_failed", "paid"}

TRANSITION_MAP: dict[tuple[ProposalStatus, str], ProposalStatus] = {
    ("pending", "SENT"): "waiting_client",
    ("waiting_client", "SENT"): "waiting_client",
    ("waiting_client", "CLIENT_ACCEPTED"): "accepted",
    ("waiting_client", "CLIENT_DECLINED"): "declined",
    ("accepted", "PAYMENT_REQUESTED"): "accepted",
    ("payment_pending", "PAYMENT_REQUESTED"): "payment_pending",
    ("payment_failed", "PAYMENT_REQUESTED"): "payment_failed",
    ("accepted", "PAYMENT_APPROVED"): "paid",
    ("accepted", "PAYMENT_PENDING"): "payment_pending",
    ("accepted", "PAYMENT_REJECTED"): "payment_failed",
    ("payment_pending", "PAYMENT_APPROVED"): "paid",
    ("payment_pending", "PAYMENT_PENDING"): "payment_pending",
    ("payment_pending", "PAYMENT_REJECTED"): "payment_failed",
    ("payment_failed", "PAYMENT_APPROVED"): "paid",
    ("payment_failed", "PAYMENT_PENDING"): "payment_pending",
    ("payment_failed", "PAYMENT_REJECTED"): "payment_failed",
    ("paid", "PAYMENT_APPROVED"): "paid",
}

EVENT_TARGET_STATUS: dict[str, str] = {
    "SENT": "waiting_client",
    "CLIENT_ACCEPTED": "accepted",
    "CLIENT_DECLINED": "declined",
    "PAYMENT_REQUESTED": "payment_requested",
    "PAYMENT_APPROVED": "paid",
    "PAYMENT_PENDING": "payment_pending",
    "PAYMENT_REJECTED": "payment_failed",
}


class ProposalLifecycleError(Exception):
    pass


class ProposalNotFoundError(ProposalLifecycleError):
    pass


class ProposalValidationError(ProposalLifecycleError):
    pass


class ProposalStateConflictError(ProposalLifecycleError):
    pass


class ProposalLinkExpiredError(ProposalLifecycleError):
    pass


class ProposalTransitionError(ProposalLifecycleError):
    def __init__(self, *, current_status: str, event_type: str) -> None:
        self.current_status = current_status
        self.event_type = event_type
        self.requested_status = EVENT_TARGET_STATUS.get(event_type, event_type.lower())
        super().__init__(
            f"INVALID_TRANSITION: {current_status} -> {self.requested_status} ({event_type})"
        )


def resolve_transition(*, current_status: ProposalStatus, event_type: str) -> ProposalStatus:
    next_status = TRANSITION_MAP.get((current_status, event_type))
    if next_status is None:
        raise ProposalTransitionError(current_status=current_status, event_type=event_type)
    return next_status


def validate_category_type(*, category: str, proposal_type: str) -> None:
    allowed = PROPOSAL_CATEGORY_TYPES.get(category)
    if allowed is None:
        raise ProposalValidationError(f"INVALID_CATEGORY: {category}")
    if proposal_type not in allowed:
        raise ProposalValidationError(
            f"INVALID_TYPE_FOR_CATEGORY: {proposal_type} is not offered under {category}"
        )


def write_proposal_with_retry(
    *,
    repository: ProposalRepository,
    proposal_id: str,
    plan: Callable[[ProposalRecord], Optional[dict[str, Any]]],
    max_attempts: int = DEFAULT_MAX_WRITE_ATTEMPTS,
    expected_version: Optional[int] = None,
) -> tuple[ProposalRecord, bool]:
    """Read-plan-write loop guarded by the record version.

    ``plan`` receives the freshly read record and returns the partial changes to
    apply, or ``None`` when nothing needs to be written. It is re-evaluated on
    every attempt. When the caller pins ``expected_version`` a conflict is not
    retried.
    """
    for attempt in range(1, max_attempts + 1):
        proposal = repository.get_proposal(proposal_id=proposal_id)
        if proposal is None:
            raise ProposalNotFoundError("PROPOSAL_NOT_FOUND")
        if expected_version is not None and proposal.version != expected_version:
            raise ProposalStateConflictError("STATE_CONFLICT: expected_version mismatch")

        changes = plan(proposal)
        if not changes:
            return proposal, False
        try:
            updated = repository.update_proposal(
                proposal_id=proposal_id,
                changes=changes,
                expected_version=proposal.version,
            )
        except ProposalVersionConflictError:
            if expected_version is not None:
                raise ProposalStateConflictError(
                    "STATE_CONFLICT: expected_version mismatch"
                ) from None
            logger.info(
                "proposal.write_conflict",
                extra={
                    "extra_fields": {
                        "proposal_id": proposal_id,
                        "attempt": attempt,
                        "read_version": proposal.version,
                    }
                },
            )
            continue
        return updated, True

    raise ProposalStateConflictError("STATE_CONFLICT: concurrent updates exhausted retries")


class ProposalWorkflowService:
    def __init__(
        self,
        *,
        repository: ProposalRepository,
        notifier: ProposalNotifier,
        gateway: Optional[PaymentGateway] = None,
        app_base_url: str = "",
        link_ttl: timedelta = LINK_TTL,
        max_write_attempts: int = DEFAULT_MAX_WRITE_ATTEMPTS,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._repository = repository
        self._notifier = notifier
        self._gateway = gateway
        self._app_base_url = app_base_url.rstrip("/")
        self._link_ttl = link_ttl
        self._max_write_attempts = max_write_attempts
        self._clock = clock or _utc_now

    def create_proposal(self, *, payload: ProposalCreateRequest) -> ProposalRecord:
        validate_category_type(category=payload.category, proposal_type=payload.type)
        now = self._clock()
        proposal = ProposalRecord(
            proposal_id=f"pp_{uuid.uuid4().hex[:12]}",
            version=1,
            client=payload.client,
            phone=payload.phone,
            value=payload.value,
            category=payload.category,
            type=payload.type,
            description=payload.description,
            business_date=payload.business_date or now.date(),
            status="pending",
            created_by=payload.created_by,
            created_at=now,
            updated_at=now,
        )
        self._repository.create_proposal(proposal)
        logger.info(
            "proposal.created",
            extra={"extra_fields": {"proposal_id": proposal.proposal_id}},
        )
        return proposal

    def get_proposal(self, *, proposal_id: str) -> ProposalRecord:
        proposal = self._repository.get_proposal(proposal_id=proposal_id)
        if proposal is None:
            raise ProposalNotFoundError("PROPOSAL_NOT_FOUND")
        return proposal

    def list_proposals(
        self,
        *,
        created_by: Optional[str],
        status: Optional[str],
        limit: int,
        cursor: Optional[str],
    ) -> ProposalListResponse:
        rows, next_cursor = self._repository.list_proposals(
            created_by=created_by,
            status=normalize_proposal_status(status),
            limit=limit,
            cursor=cursor,
        )
        return ProposalListResponse(items=rows, next_cursor=next_cursor)

    def update_proposal(
        self, *, proposal_id: str, payload: ProposalUpdateRequest
    ) -> ProposalRecord:
        requested = payload.model_dump(exclude_unset=True, exclude={"expected_version"})
        requested = {key: value for key, value in requested.items() if value is not None}

        def plan(proposal: ProposalRecord) -> Optional[dict[str, Any]]:
            if proposal.status in TERMINAL_STATES:
                raise ProposalValidationError(
                    f"PROPOSAL_TERMINAL_STATE: cannot edit a {proposal.status} proposal"
                )
            if not requested:
                return None
            validate_category_type(
                category=requested.get("category", proposal.category),
                proposal_type=requested.get("type", proposal.type),
            )
            return {**requested, "updated_at": self._clock()}

        proposal, _ = write_proposal_with_retry(
            repository=self._repository,
            proposal_id=proposal_id,
            plan=plan,
            max_attempts=self._max_write_attempts,
            expected_version=payload.expected_version,
        )
        return proposal

    def delete_proposal(self, *, proposal_id: str) -> None:
        if not self._repository.delete_proposal(proposal_id=proposal_id):
            raise ProposalNotFoundError("PROPOSAL_NOT_FOUND")
        logger.info("proposal.deleted", extra={"extra_fields": {"proposal_id": proposal_id}})

    def send_proposal(self, *, proposal_id: str) -> ProposalSendResponse:
        current = self.get_proposal(proposal_id=proposal_id)
        resolve_transition(current_status=current.status, event_type="SENT")

        now = self._clock()
        link = ProposalLinkRecord(
            link_id=f"pl_{uuid.uuid4().hex[:12]}",
            proposal_id=proposal_id,
            created_at=now,
            expires_at=now + self._link_ttl,
        )
        link_url = self.build_link_url(link.link_id)
        self._repository.create_link(link)

        def plan(proposal: ProposalRecord) -> dict[str, Any]:
            return {
                "status": resolve_transition(current_status=proposal.status, event_type="SENT"),
                "link_id": link.link_id,
                "link_url": link_url,
                "link_expires_at": link.expires_at,
                "sent_at": now,
                "updated_at": now,
            }

        proposal, _ = write_proposal_with_retry(
            repository=self._repository,
            proposal_id=proposal_id,
            plan=plan,
            max_attempts=self._max_write_attempts,
        )

        try:
            notification_url = self._notifier.notify(
                proposal=proposal, link=link, link_url=link_url
            )
        except ProposalNotificationError:
            logger.warning(
                "proposal.notification_failed",
                extra={"extra_fields": {"proposal_id": proposal_id, "link_id": link.link_id}},
            )
            raise

        logger.info(
            "proposal.sent",
            extra={
                "extra_fields": {
                    "proposal_id": proposal_id,
                    "link_id": link.link_id,
                    "from_status": current.status,
                    "link_expires_at": link.expires_at.isoformat(),
                }
            },
        )
        return ProposalSendResponse(
            proposal=proposal,
            link=link,
            link_url=link_url,
            notification_url=notification_url,
        )

    def resolve_link(self, *, link_id: str) -> ProposalLinkView:
        link = self._repository.get_link(link_id=link_id)
        if link is None:
            raise ProposalNotFoundError("PROPOSAL_LINK_NOT_FOUND")
        proposal = self.get_proposal(proposal_id=link.proposal_id)
        superseded = proposal.link_id is not None and proposal.link_id != link.link_id
        return ProposalLinkView(
            link=link,
            proposal=proposal,
            expired=link.is_expired(self._clock()) or superseded,
        )

    def open_link(self, *, link_id: str) -> ProposalLinkView:
        view = self.resolve_link(link_id=link_id)
        if view.expired:
            raise ProposalLinkExpiredError(f"PROPOSAL_LINK_EXPIRED: {link_id}")
        return view

    def respond_via_link(self, *, link_id: str, accept: bool) -> ProposalRecord:
        view = self.open_link(link_id=link_id)
        return self.respond_to_proposal(proposal_id=view.proposal.proposal_id, accept=accept)

    def respond_to_proposal(self, *, proposal_id: str, accept: bool) -> ProposalRecord:
        event_type = "CLIENT_ACCEPTED" if accept else "CLIENT_DECLINED"

        def plan(proposal: ProposalRecord) -> dict[str, Any]:
            return {
                "status": resolve_transition(
                    current_status=proposal.status, event_type=event_type
                ),
                "updated_at": self._clock(),
            }

        proposal, _ = write_proposal_with_retry(
            repository=self._repository,
            proposal_id=proposal_id,
            plan=plan,
            max_attempts=self._max_write_attempts,
        )
        logger.info(
            "proposal.responded",
            extra={"extra_fields": {"proposal_id": proposal_id, "status": proposal.status}},
        )
        return proposal

    def create_payment_preference(
        self,
        *,
        proposal_id: str,
        title: str,
        price: Decimal,
        description: Optional[str],
        link_id: Optional[str] = None,
    ) -> PaymentPreference:
        if self._gateway is None:
            raise RuntimeError("PAYMENT_GATEWAY_NOT_CONFIGURED")
        current = self.get_proposal(proposal_id=proposal_id)
        resolve_transition(current_status=current.status, event_type="PAYMENT_REQUESTED")

        external_reference = proposal_id
        if link_id:
            link = self._repository.get_link(link_id=link_id)
            if link is None or link.proposal_id != proposal_id:
                raise ProposalValidationError("LINK_PROPOSAL_MISMATCH")
            external_reference = f"{proposal_id}-{link_id}"

        preference = self._gateway.create_preference(
            PaymentPreferenceRequest(
                proposal_id=proposal_id,
                title=title,
                price=price,
                description=description,
                external_reference=external_reference,
            )
        )

        def plan(proposal: ProposalRecord) -> dict[str, Any]:
            resolve_transition(current_status=proposal.status, event_type="PAYMENT_REQUESTED")
            return {"preference_id": preference.preference_id, "updated_at": self._clock()}

        write_proposal_with_retry(
            repository=self._repository,
            proposal_id=proposal_id,
            plan=plan,
            max_attempts=self._max_write_attempts,
        )
        logger.info(
            "payment.preference_created",
            extra={
                "extra_fields": {
                    "proposal_id": proposal_id,
                    "preference_id": preference.preference_id,
                    "external_reference": external_reference,
                }
            },
        )
        return preference

    def build_link_url(self, link_id: str) -> str:
        return f"{self._app_base_url}/proposta/{link_id}"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)

