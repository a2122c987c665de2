from dataclasses import dataclass, field

from app.database.exceptions import RecordUpdateError
from app.database.repositories.document_repository import (
    DocumentRepository,
    MergeOutcome,
    StatusMerge,
)
from app.extraction.models import ExternalJobStatus
from app.logging.logger import Log


@dataclass
class ReconciliationReport:
    """Per-pass counters. ``failed`` holds job ids left for the next pass."""

    applied: int = 0
    stale: int = 0
    unmatched: int = 0
    rejected: int = 0
    failed: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.applied + self.stale + self.unmatched + self.rejected + len(self.failed)


class Reconciler:
    """Fold a batch of external job states into the document store.

    Each job becomes one conditional single-row update, so concurrent passes over
    the same batch interleave safely and replaying a batch changes nothing.
    A StoreUnavailableError aborts the pass; updates already committed stay.
    """

    def __init__(self, doc_repo: DocumentRepository) -> None:
        self._doc_repo = doc_repo

    def reconcile(self, jobs: list[ExternalJobStatus]) -> ReconciliationReport:
        report = ReconciliationReport()
        for job in jobs:
            self._merge_one(job, report)
        Log.info(
            f"Reconciled {report.total} jobs: {report.applied} applied, "
            f"{report.stale} stale, {report.unmatched} unmatched, "
            f"{report.rejected} rejected, {len(report.failed)} failed"
        )
        return report

    def _merge_one(self, job: ExternalJobStatus, report: ReconciliationReport) -> None:
        state = job.state
        if state is None:
            Log.warning(f"Job {job.external_job_id} has unknown status '{job.status}'")
            report.rejected += 1
            return

        merge = StatusMerge(
            external_job_id=job.external_job_id,
            state=state,
            category=job.category,
            client_id=job.client_id,
            started_at=job.created_at,
            finished_at=job.finished_at,
        )
        try:
            outcome = self._doc_repo.apply_status(merge)
        except RecordUpdateError as exc:
            Log.warning(f"Skipping job {job.external_job_id}: {exc}")
            report.failed.append(job.external_job_id)
            return

        if outcome is MergeOutcome.APPLIED:
            report.applied += 1
        elif outcome is MergeOutcome.STALE:
            Log.debug(f"Job {job.external_job_id} is behind local state, ignored")
            report.stale += 1
        else:
            report.unmatched += 1
