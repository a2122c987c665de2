from dataclasses import dataclass

from app.database.models import DocumentRecord
from app.reconciliation.aggregator import DashboardStats

ADMIN_ROLE = "admin"


@dataclass(frozen=True)
class Principal:
    """The authenticated caller. Authentication itself happens upstream."""

    id: int
    role: str = "user"

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE


@dataclass(frozen=True)
class ListingResult:
    """One page of documents. ``stale`` is set when reconciliation was degraded."""

    records: list[DocumentRecord]
    total: int
    page: int
    limit: int
    total_pages: int
    stale: bool = False


@dataclass(frozen=True)
class DashboardReport:
    stats: DashboardStats
    stale: bool = False
