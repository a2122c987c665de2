from abc import ABC, abstractmethod

from app.extraction.models import ExternalJobStatus


class BaseJobStatusClient(ABC):
    """Contract for extraction service job listing adapters."""

    @abstractmethod
    def fetch_all_jobs(self, access_token: str) -> list[ExternalJobStatus]:
        """Return every job visible to the given credential.

        Raises:
            ServiceUnavailableError: on network failure, timeout or server error.
            AuthExpiredError: if the credential is rejected.
        """

    def close(self) -> None:
        """Release network resources. Adapters without any keep the no-op."""
