import uuid
from collections.abc import Callable
from datetime import datetime, timezone

from app.config.settings import Settings
from app.database.models import DocumentRecord
from app.database.repositories.document_repository import DocumentRepository
from app.extraction.client_base import BaseJobStatusClient
from app.extraction.credentials import BaseCredentialProvider
from app.extraction.exceptions import CredentialUnavailableError, ServiceUnavailableError
from app.extraction.factory import CredentialProviderFactory, JobStatusClientFactory
from app.extraction.models import ExternalJobStatus
from app.logging.logger import Log
from app.reconciliation.aggregator import compute_stats
from app.reconciliation.filters import Page, RecordFilter, Scope
from app.reconciliation.reconciler import Reconciler
from app.service.exceptions import AccessDeniedError
from app.service.models import DashboardReport, ListingResult, Principal


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class DocumentService:
    """Listing, dashboard and sharing operations for document records.

    Every read runs one best-effort reconciliation pass first:
    reconcile -> query -> (aggregate).
    """

    def __init__(
        self,
        doc_repo: DocumentRepository,
        reconciler: Reconciler,
        job_client: BaseJobStatusClient,
        credential_provider: BaseCredentialProvider,
        settings: Settings,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._doc_repo = doc_repo
        self._reconciler = reconciler
        self._job_client = job_client
        self._credential_provider = credential_provider
        self._settings = settings
        self._clock = clock

    def list_with_reconciliation(
        self,
        principal: Principal,
        scope: Scope = Scope.OWNED,
        record_filter: RecordFilter | None = None,
        page: Page | None = None,
    ) -> ListingResult:
        """Reconcile, then return one most-recent-first page visible to the principal.

        Raises:
            AuthExpiredError: if the extraction service rejected the credential.
            CredentialUnavailableError: if no access token could be obtained.
            StoreUnavailableError: if the document store cannot be reached.
        """
        record_filter = record_filter or RecordFilter()
        page = (page or Page(limit=self._settings.default_page_size)).clamped(
            self._settings.max_page_size
        )
        stale = self._reconcile(principal)

        now = self._clock()
        owner_id = self._owner_scope(principal, scope)
        records = self._doc_repo.list_documents(
            owner_id=owner_id, record_filter=record_filter, now=now, page=page
        )
        total = self._doc_repo.count_documents(
            owner_id=owner_id, record_filter=record_filter, now=now
        )
        return ListingResult(
            records=records,
            total=total,
            page=page.page,
            limit=page.limit,
            total_pages=page.total_pages(total),
            stale=stale,
        )

    def dashboard(
        self,
        principal: Principal,
        scope: Scope = Scope.OWNED,
        record_filter: RecordFilter | None = None,
    ) -> DashboardReport:
        """Reconcile, then aggregate every record matching the filter."""
        record_filter = record_filter or RecordFilter()
        stale = self._reconcile(principal)
        records = self._doc_repo.list_documents(
            owner_id=self._owner_scope(principal, scope),
            record_filter=record_filter,
            now=self._clock(),
        )
        return DashboardReport(stats=compute_stats(records), stale=stale)

    def register_submission(
        self,
        principal: Principal,
        *,
        external_job_id: str,
        name: str,
        size_bytes: int,
        mime_type: str,
    ) -> DocumentRecord:
        """Record a document the extraction service accepted as job ``external_job_id``."""
        record = self._doc_repo.create(
            owner_id=principal.id,
            external_job_id=external_job_id,
            name=name,
            size_bytes=size_bytes,
            mime_type=mime_type,
        )
        Log.info(f"Registered document {record.id} for job {external_job_id}")
        return record

    def get(self, principal: Principal, document_id: int) -> DocumentRecord:
        """Return one document the principal may see.

        Team-shared documents are visible to everyone; others need ownership or admin.

        Raises:
            DocumentNotFoundError: if no document with this ID exists.
            AccessDeniedError: if the principal may not see the document.
        """
        document = self._doc_repo.find_by_id(document_id)
        visible = (
            document.owner_id == principal.id
            or principal.is_admin
            or document.sharing.is_team_shared
        )
        if not visible:
            raise AccessDeniedError(
                f"Principal {principal.id} may not view document {document_id}"
            )
        return document

    def share(self, principal: Principal, document_id: int) -> str:
        """Issue a public share link. Owner only."""
        document = self._doc_repo.find_by_id(document_id)
        if document.owner_id != principal.id:
            raise AccessDeniedError(
                f"Principal {principal.id} does not own document {document_id}"
            )
        token = str(uuid.uuid4())
        self._doc_repo.mark_shared(document_id, token, self._clock())
        return f"{self._settings.frontend_url.rstrip('/')}/shared/{token}"

    def share_with_team(self, principal: Principal, document_id: int) -> None:
        """Flag a document as shared with the team. Admin only."""
        if not principal.is_admin:
            raise AccessDeniedError("Team sharing requires the admin role")
        self._doc_repo.mark_team_shared(document_id, principal.id, self._clock())

    def find_shared(self, share_token: str) -> DocumentRecord | None:
        return self._doc_repo.find_by_share_token(share_token)

    def delete(self, principal: Principal, document_id: int) -> None:
        """Delete a document. Owner or admin, in any processing state."""
        document = self._doc_repo.find_by_id(document_id)
        if document.owner_id != principal.id and not principal.is_admin:
            raise AccessDeniedError(
                f"Principal {principal.id} may not delete document {document_id}"
            )
        self._doc_repo.delete(document_id)
        Log.info(f"Deleted document {document_id} ({document.processing_state.value})")

    def close(self) -> None:
        """Close the extraction service and credential clients."""
        self._job_client.close()
        self._credential_provider.close()

    def _reconcile(self, principal: Principal) -> bool:
        """Run one reconciliation pass. Returns True if local data may be stale."""
        token = self._credential_provider.fetch_access_token(principal.id)
        if token is None:
            raise CredentialUnavailableError(
                f"Failed to obtain extraction service token for principal {principal.id}"
            )

        jobs = self._fetch_jobs(token)
        if jobs is None:
            return True

        report = self._reconciler.reconcile(jobs)
        return bool(report.failed)

    def _fetch_jobs(self, token: str) -> list[ExternalJobStatus] | None:
        """Fetch jobs with bounded retries. None means the service stayed unavailable."""
        attempts = max(1, self._settings.extraction_fetch_attempts)
        for attempt in range(1, attempts + 1):
            try:
                return self._job_client.fetch_all_jobs(token)
            except ServiceUnavailableError as exc:
                Log.warning(
                    f"Extraction service unavailable (attempt {attempt}/{attempts}): {exc}"
                )
        Log.error("Serving last-known document state, reconciliation skipped")
        return None

    @staticmethod
    def _owner_scope(principal: Principal, scope: Scope) -> int | None:
        return principal.id if scope is Scope.OWNED else None


def build_document_service(settings: Settings) -> DocumentService:
    """Build a DocumentService with all required adapters."""
    doc_repo = DocumentRepository()
    return DocumentService(
        doc_repo=doc_repo,
        reconciler=Reconciler(doc_repo),
        job_client=JobStatusClientFactory.create(settings),
        credential_provider=CredentialProviderFactory.create(settings),
        settings=settings,
    )
