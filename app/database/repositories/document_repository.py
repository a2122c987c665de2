from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

import psycopg
from psycopg.rows import dict_row

from app.database.connection import get_connection
from app.database.exceptions import (
    DocumentNotFoundError,
    DuplicateJobError,
    RecordUpdateError,
)
from app.database.models import DocumentRecord, ProcessingState, Sharing
from app.reconciliation.filters import Page, RecordFilter

_COLUMNS = """
    id, external_job_id, owner_id, name, size_bytes, mime_type, category,
    client_id, processing_state, submitted_at, external_started_at,
    external_finished_at, is_shared, share_token, shared_at, is_team_shared,
    team_shared_by, team_shared_at, updated_at
"""


@dataclass(frozen=True)
class StatusMerge:
    """Fields a reconciliation pass writes to one record in a single statement."""

    external_job_id: str
    state: ProcessingState
    category: str | None = None
    client_id: str | None = None
    started_at: datetime | None = None
    finished_at: datetime | None = None


class MergeOutcome(str, Enum):
    APPLIED = "applied"
    STALE = "stale"
    NOT_FOUND = "not_found"


class DocumentRepository:
    """Database operations for the documents table."""

    def create(
        self,
        *,
        owner_id: int,
        external_job_id: str,
        name: str,
        size_bytes: int,
        mime_type: str,
    ) -> DocumentRecord:
        """Insert a freshly submitted document in the uploading state.

        Raises:
            DuplicateJobError: if a document already exists for the job id.
        """
        try:
            with get_connection() as conn:
                with conn.cursor(row_factory=dict_row) as cur:
                    cur.execute(
                        f"""
                        INSERT INTO documents
                        (external_job_id, owner_id, name, size_bytes, mime_type,
                         processing_state)
                        VALUES (%s, %s, %s, %s, %s, %s)
                        RETURNING {_COLUMNS}
                        """,
                        (
                            external_job_id,
                            owner_id,
                            name,
                            size_bytes,
                            mime_type,
                            ProcessingState.UPLOADING.value,
                        ),
                    )
                    row = cur.fetchone()
                conn.commit()
        except psycopg.errors.UniqueViolation as exc:
            raise DuplicateJobError(
                f"Document for job {external_job_id} already exists"
            ) from exc

        if row is None:
            raise DocumentNotFoundError(f"Insert for job {external_job_id} returned no row")
        return _to_record(row)

    def find_by_id(self, document_id: int) -> DocumentRecord:
        """Find a document by ID.

        Raises:
            DocumentNotFoundError: if no document with this ID exists.
        """
        row = self._fetch_one(
            f"SELECT {_COLUMNS} FROM documents WHERE id = %s", (document_id,)
        )
        if row is None:
            raise DocumentNotFoundError(f"Document {document_id} not found")
        return _to_record(row)

    def find_by_external_job_id(self, external_job_id: str) -> DocumentRecord | None:
        row = self._fetch_one(
            f"SELECT {_COLUMNS} FROM documents WHERE external_job_id = %s",
            (external_job_id,),
        )
        return _to_record(row) if row is not None else None

    def find_by_share_token(self, share_token: str) -> DocumentRecord | None:
        row = self._fetch_one(
            f"""
            SELECT {_COLUMNS} FROM documents
            WHERE share_token = %s AND is_shared
            """,
            (share_token,),
        )
        return _to_record(row) if row is not None else None

    def apply_status(self, merge: StatusMerge) -> MergeOutcome:
        """Conditionally merge external job state into the matching record.

        The row is only touched while its current state accepts the incoming one,
        so a terminal record never regresses and replays converge. Timestamps are
        write-once, and a finish time is kept out until a start time exists and
        precedes it.

        Raises:
            RecordUpdateError: if the database rejects the update for this record.
            StoreUnavailableError: if the database cannot be reached.
        """
        accepting = [
            state.value for state in ProcessingState if state.accepts(merge.state)
        ]
        params = {
            "job_id": merge.external_job_id,
            "state": merge.state.value,
            "accepting": accepting,
            "category": merge.category,
            "client_id": merge.client_id,
            "started": merge.started_at,
            "finished": merge.finished_at,
        }
        try:
            with get_connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(
                        """
                        UPDATE documents
                        SET processing_state = %(state)s,
                            category = COALESCE(%(category)s::text, category),
                            client_id = COALESCE(%(client_id)s::text, client_id),
                            external_started_at = COALESCE(
                                external_started_at, %(started)s::timestamptz
                            ),
                            external_finished_at = CASE
                                WHEN external_finished_at IS NOT NULL
                                    THEN external_finished_at
                                WHEN COALESCE(external_started_at, %(started)s::timestamptz)
                                    <= %(finished)s::timestamptz
                                    THEN %(finished)s::timestamptz
                                ELSE NULL
                            END,
                            updated_at = NOW()
                        WHERE external_job_id = %(job_id)s
                          AND processing_state = ANY(%(accepting)s::text[])
                        """,
                        params,
                    )
                    applied = cur.rowcount > 0
                    if not applied:
                        cur.execute(
                            "SELECT 1 FROM documents WHERE external_job_id = %s",
                            (merge.external_job_id,),
                        )
                        exists = cur.fetchone() is not None
                conn.commit()
        except (psycopg.DataError, psycopg.IntegrityError, psycopg.ProgrammingError) as exc:
            raise RecordUpdateError(
                f"Update rejected for job {merge.external_job_id}: {exc}"
            ) from exc

        if applied:
            return MergeOutcome.APPLIED
        return MergeOutcome.STALE if exists else MergeOutcome.NOT_FOUND

    def list_documents(
        self,
        *,
        owner_id: int | None,
        record_filter: RecordFilter,
        now: datetime,
        page: Page | None = None,
    ) -> list[DocumentRecord]:
        """List documents most-recent-first. ``owner_id=None`` lists every owner."""
        where, params = _where_clause(owner_id, record_filter, now)
        query = f"""
            SELECT {_COLUMNS} FROM documents
            {where}
            ORDER BY submitted_at DESC, id DESC
        """
        if page is not None:
            query += " LIMIT %s OFFSET %s"
            params.extend([page.limit, page.offset])

        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(query, params)
                rows = cur.fetchall()
        return [_to_record(row) for row in rows]

    def count_documents(
        self,
        *,
        owner_id: int | None,
        record_filter: RecordFilter,
        now: datetime,
    ) -> int:
        where, params = _where_clause(owner_id, record_filter, now)
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(f"SELECT COUNT(*) FROM documents {where}", params)
                row = cur.fetchone()
        return int(row[0]) if row is not None else 0

    def delete(self, document_id: int) -> None:
        """Delete a document regardless of its processing state.

        Raises:
            DocumentNotFoundError: if no document with this ID exists.
        """
        self._execute_for_id(
            "DELETE FROM documents WHERE id = %s", (document_id,), document_id
        )

    def mark_shared(self, document_id: int, share_token: str, shared_at: datetime) -> None:
        self._execute_for_id(
            """
            UPDATE documents
            SET is_shared = TRUE, share_token = %s, shared_at = %s, updated_at = NOW()
            WHERE id = %s
            """,
            (share_token, shared_at, document_id),
            document_id,
        )

    def mark_team_shared(self, document_id: int, shared_by: int, shared_at: datetime) -> None:
        self._execute_for_id(
            """
            UPDATE documents
            SET is_team_shared = TRUE, team_shared_by = %s, team_shared_at = %s,
                updated_at = NOW()
            WHERE id = %s
            """,
            (shared_by, shared_at, document_id),
            document_id,
        )

    @staticmethod
    def _fetch_one(query: str, params: tuple[Any, ...]) -> dict[str, Any] | None:
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(query, params)
                return cur.fetchone()

    @staticmethod
    def _execute_for_id(query: str, params: tuple[Any, ...], document_id: int) -> None:
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(query, params)
                if cur.rowcount == 0:
                    raise DocumentNotFoundError(f"Document {document_id} not found")
            conn.commit()


def _where_clause(
    owner_id: int | None, record_filter: RecordFilter, now: datetime
) -> tuple[str, list[Any]]:
    conditions: list[str] = []
    params: list[Any] = []
    if owner_id is not None:
        conditions.append("owner_id = %s")
        params.append(owner_id)
    if record_filter.state is not None:
        conditions.append("processing_state = %s")
        params.append(record_filter.state.value)
    if record_filter.category is not None:
        conditions.append("category = %s")
        params.append(record_filter.category)
    cutoff = record_filter.submitted_after(now)
    if cutoff is not None:
        conditions.append("submitted_at > %s")
        params.append(cutoff)
    if not conditions:
        return "", params
    return "WHERE " + " AND ".join(conditions), params


def _to_record(row: dict[str, Any]) -> DocumentRecord:
    return DocumentRecord(
        id=row["id"],
        external_job_id=row["external_job_id"],
        owner_id=row["owner_id"],
        name=row["name"],
        size_bytes=row["size_bytes"],
        mime_type=row["mime_type"],
        category=row["category"],
        client_id=row["client_id"],
        processing_state=ProcessingState(row["processing_state"]),
        submitted_at=row["submitted_at"],
        external_started_at=row["external_started_at"],
        external_finished_at=row["external_finished_at"],
        sharing=Sharing(
            is_shared=row["is_shared"],
            share_token=row["share_token"],
            shared_at=row["shared_at"],
            is_team_shared=row["is_team_shared"],
            team_shared_by=row["team_shared_by"],
            team_shared_at=row["team_shared_at"],
        ),
        updated_at=row["updated_at"],
    )
