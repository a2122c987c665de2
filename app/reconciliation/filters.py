import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

from app.database.models import DocumentRecord, ProcessingState


class Scope(str, Enum):
    """Which records a listing may see."""

    OWNED = "owned"
    ALL = "all"


class CreatedWindow(str, Enum):
    """Submission-time windows offered by the dashboard."""

    TODAY = "today"
    WEEK = "week"
    MONTH = "month"

    @property
    def span(self) -> timedelta:
        return _WINDOW_SPANS[self]


_WINDOW_SPANS: dict[CreatedWindow, timedelta] = {
    CreatedWindow.TODAY: timedelta(days=1),
    CreatedWindow.WEEK: timedelta(days=7),
    CreatedWindow.MONTH: timedelta(days=30),
}


@dataclass(frozen=True)
class RecordFilter:
    """Optional status, category and submission-window constraints.

    A record is inside a window when it was submitted strictly less than the
    window's span before ``now``.
    """

    state: ProcessingState | None = None
    category: str | None = None
    created_window: CreatedWindow | None = None

    def submitted_after(self, now: datetime) -> datetime | None:
        if self.created_window is None:
            return None
        return now - self.created_window.span

    def matches(self, record: DocumentRecord, now: datetime) -> bool:
        if self.state is not None and record.processing_state is not self.state:
            return False
        if self.category is not None and record.category != self.category:
            return False
        cutoff = self.submitted_after(now)
        if cutoff is not None and record.submitted_at <= cutoff:
            return False
        return True


@dataclass(frozen=True)
class Page:
    """1-based page number and page size."""

    page: int = 1
    limit: int = 10

    def __post_init__(self) -> None:
        if self.page < 1:
            raise ValueError(f"page must be >= 1, got {self.page}")
        if self.limit < 1:
            raise ValueError(f"limit must be >= 1, got {self.limit}")

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def total_pages(self, total: int) -> int:
        return math.ceil(total / self.limit)

    def clamped(self, max_limit: int) -> "Page":
        if self.limit <= max_limit:
            return self
        return Page(page=self.page, limit=max_limit)
