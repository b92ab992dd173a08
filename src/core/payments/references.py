from typing import Optional

from src.core.payments.models import ProposalReference
from src.core.proposals.service import ProposalValidationError

REFERENCE_SEPARATOR = "-"


class ExternalReferenceError(ProposalValidationError):
    pass


def parse_external_reference(value: Optional[str]) -> ProposalReference:
    """Parse the gateway external reference into a proposal reference.

    Accepted shapes are ``"<proposalId>"`` and ``"<proposalId>-<linkId>"``. Anything
    else is rejected rather than guessed.
    """
    if value is None or not value.strip():
        raise ExternalReferenceError("EXTERNAL_REFERENCE_MISSING")
    reference = value.strip()
    segments = reference.split(REFERENCE_SEPARATOR)
    if len(segments) == 1:
        return ProposalReference(proposal_id=reference)
    if len(segments) == 2 and all(segment.strip() for segment in segments):
        return ProposalReference(proposal_id=segments[0].strip(), link_id=segments[1].strip())
    raise ExternalReferenceError(f"EXTERNAL_REFERENCE_MALFORMED: {reference}")
