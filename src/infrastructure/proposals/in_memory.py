from copy import deepcopy
from threading import Lock
from typing import Any, Optional

from src.core.proposals.models import ProposalLinkRecord, ProposalRecord, ReceivableRecord
from src.core.proposals.repository import ProposalRepository, ProposalVersionConflictError


class InMemoryProposalRepository(ProposalRepository):
    def __init__(self) -> None:
        self._lock = Lock()
        self._proposals: dict[str, ProposalRecord] = {}
        self._links: dict[str, ProposalLinkRecord] = {}
        self._receivables: dict[str, ReceivableRecord] = {}

    def create_proposal(self, proposal: ProposalRecord) -> None:
        with self._lock:
            self._proposals[proposal.proposal_id] = deepcopy(proposal)

    def get_proposal(self, *, proposal_id: str) -> Optional[ProposalRecord]:
        with self._lock:
            proposal = self._proposals.get(proposal_id)
            return deepcopy(proposal) if proposal is not None else None

    def list_proposals(
        self,
        *,
        created_by: Optional[str],
        status: Optional[str],
        limit: int,
        cursor: Optional[str],
    ) -> tuple[list[ProposalRecord], Optional[str]]:
        with self._lock:
            rows = list(self._proposals.values())
            anchor = self._proposals.get(cursor) if cursor else None

        if cursor and anchor is None:
            return [], None

        rows = sorted(rows, key=lambda x: (x.created_at, x.proposal_id), reverse=True)

        if created_by is not None:
            rows = [row for row in rows if row.created_by == created_by]
        if status is not None:
            rows = [row for row in rows if row.status == status]
        if anchor is not None:
            anchor_key = (anchor.created_at, anchor.proposal_id)
            rows = [row for row in rows if (row.created_at, row.proposal_id) < anchor_key]

        page = rows[:limit]
        next_cursor = page[-1].proposal_id if len(rows) > limit else None
        return [deepcopy(row) for row in page], next_cursor

    def update_proposal(
        self,
        *,
        proposal_id: str,
        changes: dict[str, Any],
        expected_version: int,
    ) -> ProposalRecord:
        with self._lock:
            current = self._proposals.get(proposal_id)
            if current is None or current.version != expected_version:
                raise ProposalVersionConflictError(
                    f"PROPOSAL_VERSION_CONFLICT: {proposal_id}@{expected_version}"
                )
            updated = ProposalRecord.model_validate(
                {**current.model_dump(), **changes, "version": current.version + 1}
            )
            self._proposals[proposal_id] = updated
            return deepcopy(updated)

    def delete_proposal(self, *, proposal_id: str) -> bool:
        with self._lock:
            removed = self._proposals.pop(proposal_id, None)
            if removed is None:
                return False
            for link_id in [
                link_id
                for link_id, link in self._links.items()
                if link.proposal_id == proposal_id
            ]:
                del self._links[link_id]
            self._receivables = {
                receivable_id: receivable
                for receivable_id, receivable in self._receivables.items()
                if receivable.proposal_id != proposal_id
            }
            return True

    def create_link(self, link: ProposalLinkRecord) -> None:
        with self._lock:
            self._links[link.link_id] = deepcopy(link)

    def get_link(self, *, link_id: str) -> Optional[ProposalLinkRecord]:
        with self._lock:
            link = self._links.get(link_id)
            return deepcopy(link) if link is not None else None

    def create_receivable(self, receivable: ReceivableRecord) -> None:
        with self._lock:
            self._receivables[receivable.receivable_id] = deepcopy(receivable)

    def get_receivable(self, *, receivable_id: str) -> Optional[ReceivableRecord]:
        with self._lock:
            receivable = self._receivables.get(receivable_id)
            return deepcopy(receivable) if receivable is not None else None

    def list_receivables(
        self,
        *,
        created_by: Optional[str],
        proposal_id: Optional[str],
    ) -> list[ReceivableRecord]:
        with self._lock:
            rows = list(self._receivables.values())
        if created_by is not None:
            rows = [row for row in rows if row.created_by == created_by]
        if proposal_id is not None:
            rows = [row for row in rows if row.proposal_id == proposal_id]
        rows = sorted(rows, key=lambda x: (x.due_date, x.receivable_id))
        return [deepcopy(row) for row in rows]

    def update_receivable(
        self,
        *,
        receivable_id: str,
        changes: dict[str, Any],
    ) -> Optional[ReceivableRecord]:
        with self._lock:
            current = self._receivables.get(receivable_id)
            if current is None:
                return None
            updated = ReceivableRecord.model_validate({**current.model_dump(), **changes})
            self._receivables[receivable_id] = updated
            return deepcopy(updated)

    def delete_receivable(self, *, receivable_id: str) -> bool:
        with self._lock:
            return self._receivables.pop(receivable_id, None) is not None
