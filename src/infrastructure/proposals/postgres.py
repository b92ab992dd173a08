import json
from contextlib import closing, contextmanager
from datetime import datetime
from importlib.util import find_spec
from typing import Any, Iterator, Optional, Union

from pydantic_core import to_jsonable_python

from src.core.proposals.models import ProposalLinkRecord, ProposalRecord, ReceivableRecord
from src.core.proposals.repository import (
    ProposalPersistenceError,
    ProposalVersionConflictError,
)
from src.infrastructure.postgres_migrations import apply_postgres_migrations

_PROPOSAL_COLUMNS = """
    proposal_id,
    created_by,
    status,
    created_at,
    version,
    document_json
"""


class PostgresProposalRepository:
    """Proposal documents keyed by id, plus public links and receivables.

    The full record is stored as a JSON document. ``status``, ``created_by`` and
    ``created_at`` are lifted into columns for filtering and ordering, and
    ``version`` guards conditional writes.
    """

    def __init__(self, *, dsn: str) -> None:
        if not dsn:
            raise RuntimeError("PROPOSAL_POSTGRES_DSN_REQUIRED")
        if find_spec("psycopg") is None:
            raise RuntimeError("PROPOSAL_POSTGRES_DRIVER_MISSING")
        self._dsn = dsn
        self._init_db()

    def create_proposal(self, proposal: ProposalRecord) -> None:
        query = """
            INSERT INTO proposals (
                proposal_id,
                created_by,
                status,
                created_at,
                version,
                document_json
            ) VALUES (%s, %s, %s, %s, %s, %s)
        """
        with self._session() as connection:
            connection.execute(
                query,
                (
                    proposal.proposal_id,
                    proposal.created_by,
                    proposal.status,
                    proposal.created_at.isoformat(),
                    proposal.version,
                    _document_json(proposal),
                ),
            )
            connection.commit()

    def get_proposal(self, *, proposal_id: str) -> Optional[ProposalRecord]:
        query = f"""
            SELECT {_PROPOSAL_COLUMNS}
            FROM proposals
            WHERE proposal_id = %s
        """
        with self._session() as connection:
            row = connection.execute(query, (proposal_id,)).fetchone()
        return _to_proposal(row)

    def list_proposals(
        self,
        *,
        created_by: Optional[str],
        status: Optional[str],
        limit: int,
        cursor: Optional[str],
    ) -> tuple[list[ProposalRecord], Optional[str]]:
        where_clauses = []
        args: list[Any] = []
        if created_by is not None:
            where_clauses.append("created_by = %s")
            args.append(created_by)
        if status is not None:
            where_clauses.append("status = %s")
            args.append(status)
        with self._session() as connection:
            if cursor:
                anchor = connection.execute(
                    "SELECT created_at, proposal_id FROM proposals WHERE proposal_id = %s",
                    (cursor,),
                ).fetchone()
                if anchor is None:
                    return [], None
                where_clauses.append("(created_at, proposal_id) < (%s, %s)")
                args.extend([anchor["created_at"], anchor["proposal_id"]])
            where_sql = f"WHERE {' AND '.join(where_clauses)}" if where_clauses else ""
            query = f"""
                SELECT {_PROPOSAL_COLUMNS}
                FROM proposals
                {where_sql}
                ORDER BY created_at DESC, proposal_id DESC
                LIMIT %s
            """
            rows = connection.execute(query, (*args, limit + 1)).fetchall()
        proposals = [_to_proposal(row) for row in rows]
        page = proposals[:limit]
        next_cursor = page[-1].proposal_id if len(proposals) > limit else None
        return page, next_cursor

    def update_proposal(
        self,
        *,
        proposal_id: str,
        changes: dict[str, Any],
        expected_version: int,
    ) -> ProposalRecord:
        select_query = f"""
            SELECT {_PROPOSAL_COLUMNS}
            FROM proposals
            WHERE proposal_id = %s
        """
        update_query = """
            UPDATE proposals
            SET status = %s,
                version = %s,
                document_json = %s
            WHERE proposal_id = %s AND version = %s
            RETURNING version
        """
        with self._session() as connection:
            current = _to_proposal(connection.execute(select_query, (proposal_id,)).fetchone())
            if current is None or current.version != expected_version:
                raise ProposalVersionConflictError(
                    f"PROPOSAL_VERSION_CONFLICT: {proposal_id}@{expected_version}"
                )
            updated = ProposalRecord.model_validate(
                {**current.model_dump(), **changes, "version": current.version + 1}
            )
            row = connection.execute(
                update_query,
                (
                    updated.status,
                    updated.version,
                    _document_json(updated),
                    proposal_id,
                    expected_version,
                ),
            ).fetchone()
            if row is None:
                connection.rollback()
                raise ProposalVersionConflictError(
                    f"PROPOSAL_VERSION_CONFLICT: {proposal_id}@{expected_version}"
                )
            connection.commit()
        return updated

    def delete_proposal(self, *, proposal_id: str) -> bool:
        with self._session() as connection:
            connection.execute("DELETE FROM proposal_links WHERE proposal_id = %s", (proposal_id,))
            connection.execute("DELETE FROM receivables WHERE proposal_id = %s", (proposal_id,))
            row = connection.execute(
                "DELETE FROM proposals WHERE proposal_id = %s RETURNING proposal_id",
                (proposal_id,),
            ).fetchone()
            connection.commit()
        return row is not None

    def create_link(self, link: ProposalLinkRecord) -> None:
        query = """
            INSERT INTO proposal_links (
                link_id,
                proposal_id,
                created_at,
                expires_at
            ) VALUES (%s, %s, %s, %s)
        """
        with self._session() as connection:
            connection.execute(
                query,
                (
                    link.link_id,
                    link.proposal_id,
                    link.created_at.isoformat(),
                    link.expires_at.isoformat(),
                ),
            )
            connection.commit()

    def get_link(self, *, link_id: str) -> Optional[ProposalLinkRecord]:
        query = """
            SELECT link_id, proposal_id, created_at, expires_at
            FROM proposal_links
            WHERE link_id = %s
        """
        with self._session() as connection:
            row = connection.execute(query, (link_id,)).fetchone()
        if row is None:
            return None
        return ProposalLinkRecord(
            link_id=row["link_id"],
            proposal_id=row["proposal_id"],
            created_at=datetime.fromisoformat(row["created_at"]),
            expires_at=datetime.fromisoformat(row["expires_at"]),
        )

    def create_receivable(self, receivable: ReceivableRecord) -> None:
        query = """
            INSERT INTO receivables (
                receivable_id,
                proposal_id,
                created_by,
                due_date,
                document_json
            ) VALUES (%s, %s, %s, %s, %s)
        """
        with self._session() as connection:
            connection.execute(
                query,
                (
                    receivable.receivable_id,
                    receivable.proposal_id,
                    receivable.created_by,
                    receivable.due_date.isoformat(),
                    _document_json(receivable),
                ),
            )
            connection.commit()

    def get_receivable(self, *, receivable_id: str) -> Optional[ReceivableRecord]:
        with self._session() as connection:
            row = connection.execute(
                "SELECT document_json FROM receivables WHERE receivable_id = %s",
                (receivable_id,),
            ).fetchone()
        return _to_receivable(row)

    def list_receivables(
        self,
        *,
        created_by: Optional[str],
        proposal_id: Optional[str],
    ) -> list[ReceivableRecord]:
        where_clauses = []
        args: list[str] = []
        if created_by is not None:
            where_clauses.append("created_by = %s")
            args.append(created_by)
        if proposal_id is not None:
            where_clauses.append("proposal_id = %s")
            args.append(proposal_id)
        where_sql = f"WHERE {' AND '.join(where_clauses)}" if where_clauses else ""
        query = f"""
            SELECT document_json
            FROM receivables
            {where_sql}
            ORDER BY due_date ASC, receivable_id ASC
        """
        with self._session() as connection:
            rows = connection.execute(query, tuple(args)).fetchall()
        return [_to_receivable(row) for row in rows]

    def update_receivable(
        self,
        *,
        receivable_id: str,
        changes: dict[str, Any],
    ) -> Optional[ReceivableRecord]:
        with self._session() as connection:
            current = _to_receivable(
                connection.execute(
                    "SELECT document_json FROM receivables WHERE receivable_id = %s",
                    (receivable_id,),
                ).fetchone()
            )
            if current is None:
                return None
            updated = ReceivableRecord.model_validate({**current.model_dump(), **changes})
            connection.execute(
                """
                UPDATE receivables
                SET due_date = %s,
                    document_json = %s
                WHERE receivable_id = %s
                """,
                (updated.due_date.isoformat(), _document_json(updated), receivable_id),
            )
            connection.commit()
        return updated

    def delete_receivable(self, *, receivable_id: str) -> bool:
        with self._session() as connection:
            row = connection.execute(
                "DELETE FROM receivables WHERE receivable_id = %s RETURNING receivable_id",
                (receivable_id,),
            ).fetchone()
            connection.commit()
        return row is not None

    def _connect(self):
        psycopg, dict_row = _import_psycopg()
        try:
            return psycopg.connect(self._dsn, row_factory=dict_row)
        except psycopg.OperationalError as exc:
            raise ProposalPersistenceError("PROPOSAL_STORE_UNAVAILABLE") from exc

    @contextmanager
    def _session(self) -> Iterator[Any]:
        psycopg, _ = _import_psycopg()
        with closing(self._connect()) as connection:
            try:
                yield connection
            except psycopg.Error as exc:
                if not connection.closed:
                    connection.rollback()
                raise ProposalPersistenceError(
                    f"PROPOSAL_STORE_QUERY_FAILED: {type(exc).__name__}"
                ) from exc

    def _init_db(self) -> None:
        with self._session() as connection:
            apply_postgres_migrations(connection=connection, namespace="proposals")


def _import_psycopg():
    import psycopg
    from psycopg.rows import dict_row

    return psycopg, dict_row


def _document_json(record: Union[ProposalRecord, ReceivableRecord]) -> str:
    document = to_jsonable_python(record.model_dump(exclude={"version"}))
    return json.dumps(document, separators=(",", ":"), sort_keys=True)


def _to_proposal(row) -> Optional[ProposalRecord]:
    if row is None:
        return None
    document = json.loads(row["document_json"])
    document["version"] = int(row["version"])
    return ProposalRecord.model_validate(document)


def _to_receivable(row) -> Optional[ReceivableRecord]:
    if row is None:
        return None
    return ReceivableRecord.model_validate_json(row["document_json"])
