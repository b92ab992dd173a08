from src.core.proposals.models import (
    ProposalCreateRequest,
    ProposalLinkRecord,
    ProposalLinkView,
    ProposalListResponse,
    ProposalRecord,
    ProposalResponseRequest,
    ProposalSendResponse,
    ProposalUpdateRequest,
)
from src.core.proposals.notifications import ProposalNotifier, WhatsAppLinkNotifier
from src.core.proposals.repository import ProposalRepository
from src.core.proposals.service import (
    ProposalLifecycleError,
    ProposalLinkExpiredError,
    ProposalNotFoundError,
    ProposalStateConflictError,
    ProposalTransitionError,
    ProposalValidationError,
    ProposalWorkflowService,
)

__all__ = [
    "ProposalCreateRequest",
    "ProposalLinkRecord",
    "ProposalLinkView",
    "ProposalListResponse",
    "ProposalRecord",
    "ProposalResponseRequest",
    "ProposalSendResponse",
    "ProposalUpdateRequest",
    "ProposalNotifier",
    "WhatsAppLinkNotifier",
    "ProposalRepository",
    "ProposalLifecycleError",
    "ProposalLinkExpiredError",
    "ProposalNotFoundError",
    "ProposalStateConflictError",
    "ProposalTransitionError",
    "ProposalValidationError",
    "ProposalWorkflowService",
]
