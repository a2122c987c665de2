from typing import Any

import httpx

from app.extraction.client_base import BaseJobStatusClient
from app.extraction.exceptions import AuthExpiredError, ServiceUnavailableError
from app.extraction.models import ExternalJobStatus
from app.logging.logger import Log


class HttpJobStatusClient(BaseJobStatusClient):
    """Job listing adapter for the extraction service REST API.

    No retries happen here; the caller owns retry policy.
    """

    def __init__(
        self,
        *,
        base_url: str,
        jobs_path: str,
        timeout_seconds: int,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        if not base_url:
            raise ValueError("extraction_base_url is required for the http client")
        self._jobs_path = jobs_path
        self._client = httpx.Client(
            base_url=base_url,
            timeout=timeout_seconds,
            transport=transport,
        )

    def fetch_all_jobs(self, access_token: str) -> list[ExternalJobStatus]:
        try:
            response = self._client.get(
                self._jobs_path,
                headers={
                    "Authorization": f"Bearer {access_token}",
                    "Accept": "application/json",
                },
            )
        except httpx.TimeoutException as exc:
            raise ServiceUnavailableError(
                f"Extraction service timed out: {exc}"
            ) from exc
        except httpx.HTTPError as exc:
            raise ServiceUnavailableError(
                f"Extraction service network error: {exc}"
            ) from exc

        if response.status_code in (401, 403):
            raise AuthExpiredError(
                f"Extraction service rejected credential ({response.status_code})"
            )
        if response.status_code >= 400:
            raise ServiceUnavailableError(
                f"Extraction service returned {response.status_code}"
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise ServiceUnavailableError(
                "Extraction service returned a non-JSON body"
            ) from exc

        results = body.get("results") if isinstance(body, dict) else None
        if not isinstance(results, list):
            raise ServiceUnavailableError("Extraction service response has no results list")
        return self._parse_results(results)

    def close(self) -> None:
        self._client.close()

    @staticmethod
    def _parse_results(results: list[Any]) -> list[ExternalJobStatus]:
        """Parse job entries, dropping malformed ones so a partial listing still merges."""
        jobs: list[ExternalJobStatus] = []
        for entry in results:
            if not isinstance(entry, dict):
                Log.warning(f"Skipping non-object job entry: {entry!r}")
                continue
            try:
                jobs.append(ExternalJobStatus.from_payload(entry))
            except ValueError as exc:
                Log.warning(f"Skipping malformed job entry: {exc}")
        return jobs
