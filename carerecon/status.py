from datetime import date
from enum import StrEnum

from carerecon.models import Administration, DatedRecord


class TaskStatus(StrEnum):
    GIVEN = "given"
    SKIPPED = "skipped"
    PENDING = "pending"
    MISSING = "missing"


OPEN_STATUSES = frozenset({TaskStatus.PENDING, TaskStatus.MISSING})


class DayStatus(StrEnum):
    ALL_DONE = "all_done"
    PENDING = "pending"
    OVERDUE = "overdue"


def classify(overdue: int, pending: int) -> DayStatus:
    if overdue > 0:
        return DayStatus.OVERDUE
    if pending > 0:
        return DayStatus.PENDING
    return DayStatus.ALL_DONE


def resolve_status(
    event: Administration | DatedRecord | None,
    occurrence_date: date,
    today: date,
) -> TaskStatus:
    if event is None:
        # same-day unmatched instances are still pending, never missing
        return TaskStatus.PENDING if occurrence_date >= today else TaskStatus.MISSING
    if not event.is_satisfied:
        return TaskStatus.SKIPPED
    return TaskStatus.GIVEN
