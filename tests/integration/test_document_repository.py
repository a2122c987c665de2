import threading
from datetime import datetime, timedelta, timezone

import pytest

from app.database.exceptions import DocumentNotFoundError, DuplicateJobError
from app.database.models import ProcessingState
from app.database.repositories.document_repository import (
    DocumentRepository,
    MergeOutcome,
    StatusMerge,
)
from app.reconciliation.filters import Page, RecordFilter

T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _merge(job_id: str, state: ProcessingState, **kwargs: object) -> StatusMerge:
    return StatusMerge(external_job_id=job_id, state=state, **kwargs)  # type: ignore[arg-type]


@pytest.mark.integration
class TestCreate:
    def test_create_starts_uploading(self, seed_document) -> None:
        record = seed_document()
        assert record.processing_state is ProcessingState.UPLOADING
        assert record.external_started_at is None
        assert record.submitted_at is not None

    def test_duplicate_job_id_rejected(self, seed_document) -> None:
        record = seed_document()
        with pytest.raises(DuplicateJobError):
            DocumentRepository().create(
                owner_id=record.owner_id,
                external_job_id=record.external_job_id,
                name="again.pdf",
                size_bytes=1,
                mime_type="application/pdf",
            )


@pytest.mark.integration
class TestApplyStatus:
    def test_forward_transition_merges_fields(self, seed_document) -> None:
        record = seed_document()
        repo = DocumentRepository()

        outcome = repo.apply_status(
            _merge(
                record.external_job_id,
                ProcessingState.DONE,
                category="invoice",
                client_id="default",
                started_at=T0,
                finished_at=T0 + timedelta(seconds=30),
            )
        )

        merged = repo.find_by_id(record.id)
        assert outcome is MergeOutcome.APPLIED
        assert merged.processing_state is ProcessingState.DONE
        assert merged.category == "invoice"
        assert merged.client_id == "default"
        assert merged.turnaround_seconds == 30

    def test_terminal_state_does_not_regress(self, seed_document) -> None:
        record = seed_document()
        repo = DocumentRepository()
        repo.apply_status(_merge(record.external_job_id, ProcessingState.DONE))

        outcome = repo.apply_status(_merge(record.external_job_id, ProcessingState.PENDING))

        assert outcome is MergeOutcome.STALE
        assert repo.find_by_id(record.id).processing_state is ProcessingState.DONE

    def test_done_does_not_flip_to_failed(self, seed_document) -> None:
        record = seed_document()
        repo = DocumentRepository()
        repo.apply_status(_merge(record.external_job_id, ProcessingState.DONE))

        outcome = repo.apply_status(_merge(record.external_job_id, ProcessingState.FAILED))

        assert outcome is MergeOutcome.STALE
        assert repo.find_by_id(record.id).processing_state is ProcessingState.DONE

    def test_replay_is_idempotent(self, seed_document) -> None:
        record = seed_document()
        repo = DocumentRepository()
        merge = _merge(
            record.external_job_id,
            ProcessingState.DONE,
            category="invoice",
            started_at=T0,
            finished_at=T0 + timedelta(seconds=5),
        )

        repo.apply_status(merge)
        first = repo.find_by_id(record.id)
        repo.apply_status(merge)
        second = repo.find_by_id(record.id)

        assert first.processing_state == second.processing_state
        assert first.category == second.category
        assert first.external_started_at == second.external_started_at
        assert first.external_finished_at == second.external_finished_at

    def test_finish_without_start_is_held_back(self, seed_document) -> None:
        record = seed_document()
        repo = DocumentRepository()

        repo.apply_status(
            _merge(record.external_job_id, ProcessingState.DONE, finished_at=T0)
        )

        merged = repo.find_by_id(record.id)
        assert merged.processing_state is ProcessingState.DONE
        assert merged.external_finished_at is None

    def test_finish_before_start_is_held_back(self, seed_document) -> None:
        record = seed_document()
        repo = DocumentRepository()

        repo.apply_status(
            _merge(
                record.external_job_id,
                ProcessingState.DONE,
                started_at=T0,
                finished_at=T0 - timedelta(seconds=1),
            )
        )

        merged = repo.find_by_id(record.id)
        assert merged.external_started_at == T0
        assert merged.external_finished_at is None

    def test_missing_category_keeps_existing(self, seed_document) -> None:
        record = seed_document(category="invoice")
        repo = DocumentRepository()

        repo.apply_status(_merge(record.external_job_id, ProcessingState.PENDING))

        assert repo.find_by_id(record.id).category == "invoice"

    def test_unknown_job_is_not_found(self, integration_pool) -> None:
        outcome = DocumentRepository().apply_status(
            _merge("no-such-job", ProcessingState.DONE)
        )
        assert outcome is MergeOutcome.NOT_FOUND

    def test_sharing_untouched_by_merge(self, seed_document) -> None:
        record = seed_document()
        repo = DocumentRepository()
        repo.mark_shared(record.id, f"tok-{record.id}", T0)

        repo.apply_status(_merge(record.external_job_id, ProcessingState.DONE))

        sharing = repo.find_by_id(record.id).sharing
        assert sharing.is_shared
        assert sharing.share_token == f"tok-{record.id}"

    def test_concurrent_passes_converge(self, seed_document) -> None:
        record = seed_document()
        repo = DocumentRepository()
        batch = [
            _merge(record.external_job_id, ProcessingState.PENDING, started_at=T0),
            _merge(
                record.external_job_id,
                ProcessingState.DONE,
                started_at=T0,
                finished_at=T0 + timedelta(seconds=12),
            ),
        ]

        def _pass(merges: list[StatusMerge]) -> None:
            for merge in merges:
                repo.apply_status(merge)

        threads = [
            threading.Thread(target=_pass, args=(batch if i % 2 else batch[::-1],))
            for i in range(6)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        merged = repo.find_by_id(record.id)
        assert merged.processing_state is ProcessingState.DONE
        assert merged.turnaround_seconds == 12


@pytest.mark.integration
class TestListing:
    def test_owned_listing_is_most_recent_first(self, seed_document, owner_id: int) -> None:
        first = seed_document()
        second = seed_document()
        seed_document(owner=owner_id + 1)
        repo = DocumentRepository()
        now = datetime.now(timezone.utc)

        records = repo.list_documents(
            owner_id=owner_id, record_filter=RecordFilter(), now=now, page=Page(limit=10)
        )
        total = repo.count_documents(owner_id=owner_id, record_filter=RecordFilter(), now=now)

        assert [r.id for r in records] == [second.id, first.id]
        assert total == 2

    def test_state_filter(self, seed_document, owner_id: int) -> None:
        done = seed_document()
        seed_document()
        repo = DocumentRepository()
        repo.apply_status(_merge(done.external_job_id, ProcessingState.DONE))

        records = repo.list_documents(
            owner_id=owner_id,
            record_filter=RecordFilter(state=ProcessingState.DONE),
            now=datetime.now(timezone.utc),
        )

        assert [r.id for r in records] == [done.id]

    def test_pagination(self, seed_document, owner_id: int) -> None:
        for _ in range(3):
            seed_document()
        repo = DocumentRepository()

        page_two = repo.list_documents(
            owner_id=owner_id,
            record_filter=RecordFilter(),
            now=datetime.now(timezone.utc),
            page=Page(page=2, limit=2),
        )

        assert len(page_two) == 1


@pytest.mark.integration
class TestDeleteAndShare:
    def test_delete_removes_record(self, seed_document) -> None:
        record = seed_document()
        repo = DocumentRepository()

        repo.delete(record.id)

        with pytest.raises(DocumentNotFoundError):
            repo.find_by_id(record.id)

    def test_find_by_share_token(self, seed_document) -> None:
        record = seed_document()
        repo = DocumentRepository()
        token = f"tok-{record.id}"
        repo.mark_shared(record.id, token, T0)

        found = repo.find_by_share_token(token)

        assert found is not None
        assert found.id == record.id

    def test_mark_team_shared(self, seed_document) -> None:
        record = seed_document()
        repo = DocumentRepository()

        repo.mark_team_shared(record.id, 42, T0)

        sharing = repo.find_by_id(record.id).sharing
        assert sharing.is_team_shared
        assert sharing.team_shared_by == 42
