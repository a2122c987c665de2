from app.extraction.client_base import BaseJobStatusClient
from app.extraction.models import ExternalJobStatus


class ExampleJobStatusClient(BaseJobStatusClient):
    """Offline client for local runs and tests. Returns a fixed job list."""

    def __init__(self, jobs: list[ExternalJobStatus] | None = None) -> None:
        self._jobs = list(jobs or [])

    def fetch_all_jobs(self, access_token: str) -> list[ExternalJobStatus]:
        return list(self._jobs)
