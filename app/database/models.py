from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class ProcessingState(str, Enum):
    """Local processing state of a submitted document.

    Order: uploading < pending < done == failed. Done and failed are terminal.
    """

    UPLOADING = "uploading"
    PENDING = "pending"
    DONE = "done"
    FAILED = "failed"

    @property
    def rank(self) -> int:
        return _RANKS[self]

    @property
    def is_terminal(self) -> bool:
        return self in (ProcessingState.DONE, ProcessingState.FAILED)

    def accepts(self, incoming: "ProcessingState") -> bool:
        """Whether a record in this state may take ``incoming`` from a poll.

        Same-state refreshes are accepted so timestamps and category can fill in.
        Terminal states never flip to each other.
        """
        if incoming is self:
            return True
        if self.is_terminal:
            return False
        return incoming.rank >= self.rank


_RANKS: dict[ProcessingState, int] = {
    ProcessingState.UPLOADING: 0,
    ProcessingState.PENDING: 1,
    ProcessingState.DONE: 2,
    ProcessingState.FAILED: 2,
}


@dataclass(frozen=True)
class Sharing:
    """Public-link and team sharing flags. Only changed by share operations."""

    is_shared: bool = False
    share_token: str | None = None
    shared_at: datetime | None = None
    is_team_shared: bool = False
    team_shared_by: int | None = None
    team_shared_at: datetime | None = None


@dataclass(frozen=True)
class DocumentRecord:
    """Represents a row from the documents table."""

    id: int
    external_job_id: str
    owner_id: int
    name: str
    processing_state: ProcessingState
    submitted_at: datetime
    size_bytes: int = 0
    mime_type: str = ""
    category: str | None = None
    client_id: str | None = None
    external_started_at: datetime | None = None
    external_finished_at: datetime | None = None
    sharing: Sharing = field(default_factory=Sharing)
    updated_at: datetime | None = None

    @property
    def turnaround_seconds(self) -> float | None:
        """Seconds between external start and finish, None if either is missing."""
        if self.external_started_at is None or self.external_finished_at is None:
            return None
        return (self.external_finished_at - self.external_started_at).total_seconds()
