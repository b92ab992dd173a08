from typing import Any, Optional, Protocol

from src.core.proposals.models import ProposalLinkRecord, ProposalRecord, ReceivableRecord


class ProposalVersionConflictError(Exception):
    """Raised by repositories when ``expected_version`` no longer matches the stored record."""


class ProposalPersistenceError(Exception):
    pass


class ProposalRepository(Protocol):
    def create_proposal(self, proposal: ProposalRecord) -> None: ...

    def get_proposal(self, *, proposal_id: str) -> Optional[ProposalRecord]: ...

    def list_proposals(
        self,
        *,
        created_by: Optional[str],
        status: Optional[str],
        limit: int,
        cursor: Optional[str],
    ) -> tuple[list[ProposalRecord], Optional[str]]: ...

    def update_proposal(
        self,
        *,
        proposal_id: str,
        changes: dict[str, Any],
        expected_version: int,
    ) -> ProposalRecord: ...

    def delete_proposal(self, *, proposal_id: str) -> bool: ...

    def create_link(self, link: ProposalLinkRecord) -> None: ...

    def get_link(self, *, link_id: str) -> Optional[ProposalLinkRecord]: ...

    def create_receivable(self, receivable: ReceivableRecord) -> None: ...

    def get_receivable(self, *, receivable_id: str) -> Optional[ReceivableRecord]: ...

    def list_receivables(
        self,
        *,
        created_by: Optional[str],
        proposal_id: Optional[str],
    ) -> list[ReceivableRecord]: ...

    def update_receivable(
        self,
        *,
        receivable_id: str,
        changes: dict[str, Any],
    ) -> Optional[ReceivableRecord]: ...

    def delete_receivable(self, *, receivable_id: str) -> bool: ...
