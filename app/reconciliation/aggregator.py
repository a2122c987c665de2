import math
from collections.abc import Iterable
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal

from app.database.models import DocumentRecord, ProcessingState

UNKNOWN_CATEGORY = "unknown"

_IN_PROGRESS = (ProcessingState.UPLOADING, ProcessingState.PENDING)


@dataclass(frozen=True)
class CategoryStats:
    total: int
    done: int
    success_rate: int
    avg_turnaround_seconds: float


@dataclass(frozen=True)
class DashboardStats:
    completed: int
    in_progress: int
    error: int
    total: int
    success_rate: int
    avg_turnaround_seconds: float = 0.0
    by_category: dict[str, CategoryStats] = field(default_factory=dict)


@dataclass
class _CategoryAccumulator:
    total: int = 0
    done: int = 0
    durations: list[float] = field(default_factory=list)


def compute_stats(records: Iterable[DocumentRecord]) -> DashboardStats:
    """Compute dashboard statistics over an already filtered record set.

    The result depends only on the multiset of records: counts are integers,
    duration sums use ``math.fsum`` and every rate or mean is rounded on its own.
    Records without a category are grouped under ``"unknown"``. Turnaround means
    cover records with both external timestamps, overall and per category.
    """
    completed = in_progress = error = 0
    categories: dict[str, _CategoryAccumulator] = {}
    durations: list[float] = []

    for record in records:
        state = record.processing_state
        if state is ProcessingState.DONE:
            completed += 1
        elif state is ProcessingState.FAILED:
            error += 1
        elif state in _IN_PROGRESS:
            in_progress += 1

        name = record.category or UNKNOWN_CATEGORY
        bucket = categories.setdefault(name, _CategoryAccumulator())
        bucket.total += 1
        if state is ProcessingState.DONE:
            bucket.done += 1
        duration = record.turnaround_seconds
        if duration is not None and duration >= 0:
            bucket.durations.append(duration)
            durations.append(duration)

    total = completed + in_progress + error
    by_category = {
        name: CategoryStats(
            total=bucket.total,
            done=bucket.done,
            success_rate=percentage(bucket.done, bucket.total),
            avg_turnaround_seconds=mean_seconds(bucket.durations),
        )
        for name, bucket in sorted(categories.items())
    }
    return DashboardStats(
        completed=completed,
        in_progress=in_progress,
        error=error,
        total=total,
        success_rate=percentage(completed, total),
        avg_turnaround_seconds=mean_seconds(durations),
        by_category=by_category,
    )


def percentage(part: int, whole: int) -> int:
    """Round-half-up percentage; 0 when ``whole`` is 0."""
    if whole == 0:
        return 0
    value = Decimal(part) * 100 / Decimal(whole)
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def mean_seconds(durations: list[float]) -> float:
    """Mean rounded half-up to two decimals; 0.0 for no samples."""
    if not durations:
        return 0.0
    mean = Decimal(repr(math.fsum(durations))) / len(durations)
    return float(mean.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))
