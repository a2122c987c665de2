from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from app.database.models import ProcessingState

_STATUS_MAP: dict[str, ProcessingState] = {
    "PENDING": ProcessingState.PENDING,
    "DONE": ProcessingState.DONE,
    "FAILED": ProcessingState.FAILED,
}


@dataclass(frozen=True)
class ExternalJobStatus:
    """One job as reported by the extraction service."""

    external_job_id: str
    status: str
    category: str | None = None
    client_id: str | None = None
    created_at: datetime | None = None
    finished_at: datetime | None = None

    @property
    def state(self) -> ProcessingState | None:
        """Local state for the reported status, None if the status is unknown."""
        return _STATUS_MAP.get(self.status.strip().upper())

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "ExternalJobStatus":
        """Build from one entry of the service's job listing.

        Raises:
            ValueError: if the entry has no id or status, a label is not a string,
                or a timestamp is malformed.
        """
        job_id = payload.get("id")
        status = payload.get("status")
        if not job_id or not isinstance(status, str):
            raise ValueError(f"Job entry missing id or status: {payload!r}")
        return cls(
            external_job_id=str(job_id),
            status=status,
            category=_optional_label(payload, "documentType"),
            client_id=_optional_label(payload, "clientId"),
            created_at=parse_timestamp(payload.get("createdAt")),
            finished_at=parse_timestamp(payload.get("finished")),
        )


def _optional_label(payload: dict[str, Any], key: str) -> str | None:
    value = payload.get(key)
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise ValueError(f"{key} must be a string, got {type(value).__name__}")
    return value


def parse_timestamp(value: object) -> datetime | None:
    """Parse an ISO 8601 timestamp. Naive values are taken as UTC."""
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise ValueError(f"Timestamp must be a string, got {type(value).__name__}")
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
