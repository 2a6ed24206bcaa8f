"""
Pairs scheduled occurrences with recorded events.

Medication and tube feeding match exactly on obligation, calendar date and
(hour, minute). Meals match on meal type for the day. Fluid intake is the
only approximate match: any record within the tolerance window around the
scheduled time of day. When several events qualify the first one wins.
"""

from collections import defaultdict
from collections.abc import Callable, Iterable, Sequence
from datetime import date, time
from typing import Generic, NamedTuple, TypeVar

from carerecon.dates import date_key, minutes_since_midnight
from carerecon.models import (
    Administration,
    DatedRecord,
    Domain,
    Event,
    FluidIntakeRecord,
    MealRecord,
    MealSchedule,
    TimedObligation,
)
from carerecon.recurrence import due_on

FLUID_TOLERANCE_MINUTES = 60

EXACT_DOMAINS = frozenset({Domain.MEDICATION, Domain.TUBE_FEEDING})


class Occurrence(NamedTuple):
    """One concrete due instance of a timed obligation."""

    obligation: TimedObligation
    date: date
    time: time


def expand(
    obligations: Iterable[TimedObligation],
    day: date,
    time_filter: Callable[[time], bool] | None = None,
) -> list[Occurrence]:
    """
    Occurrences of ``obligations`` due on ``day``, ordered by time of day with
    ties kept in obligation order.
    """
    occurrences = [
        Occurrence(obligation, day, at)
        for obligation in due_on(obligations, day)
        for at in obligation.times
        if time_filter is None or time_filter(at)
    ]
    # sorted() is stable, so equal times keep insertion order
    return sorted(occurrences, key=lambda o: minutes_since_midnight(o.time))


def match_exact(
    occurrence: Occurrence, candidates: Iterable[Administration]
) -> Administration | None:
    for event in candidates:
        scheduled = event.scheduled_time
        if (
            event.obligation_id == occurrence.obligation.id
            and scheduled.date() == occurrence.date
            and scheduled.hour == occurrence.time.hour
            and scheduled.minute == occurrence.time.minute
        ):
            return event
    return None


def match_meal(occurrence: Occurrence, candidates: Iterable[MealRecord]) -> MealRecord | None:
    obligation = occurrence.obligation
    if not isinstance(obligation, MealSchedule):
        return None
    for record in candidates:
        if (
            record.client_id == obligation.client_id
            and record.record_date == occurrence.date
            and record.meal_type == obligation.meal_type
        ):
            return record
    return None


def match_fluid(
    occurrence: Occurrence,
    candidates: Iterable[FluidIntakeRecord],
    tolerance_minutes: int = FLUID_TOLERANCE_MINUTES,
) -> FluidIntakeRecord | None:
    scheduled = minutes_since_midnight(occurrence.time)
    for record in candidates:
        if record.record_date != occurrence.date:
            continue
        if abs(minutes_since_midnight(record.record_time) - scheduled) <= tolerance_minutes:
            return record
    return None


def match(
    occurrence: Occurrence,
    candidates: Iterable[Event],
    *,
    tolerance_minutes: int = FLUID_TOLERANCE_MINUTES,
) -> Administration | DatedRecord | None:
    domain = occurrence.obligation.domain
    if domain in EXACT_DOMAINS:
        return match_exact(occurrence, candidates)  # type: ignore[arg-type]
    if domain == Domain.MEAL:
        return match_meal(occurrence, candidates)  # type: ignore[arg-type]
    if domain == Domain.FLUID_INTAKE:
        return match_fluid(occurrence, candidates, tolerance_minutes)  # type: ignore[arg-type]
    raise ValueError(f"No matching rule for domain {domain}")


E = TypeVar("E", bound=Event)


class EventIndex(Generic[E]):
    """
    Events grouped by ``(client_id, date key)`` so a multi-day scan can look
    up one day's candidates without another store round trip.
    """

    def __init__(self, events: Iterable[E] = ()) -> None:
        self._by_day: defaultdict[tuple[str, str], list[E]] = defaultdict(list)
        for event in events:
            self.add(event)

    def add(self, event: E) -> None:
        self._by_day[(event.client_id, date_key(event.event_date))].append(event)

    def on(self, client_id: str, day: date) -> Sequence[E]:
        return self._by_day.get((client_id, date_key(day)), ())

    def count(self, client_id: str, day: date) -> int:
        return len(self.on(client_id, day))

    def __len__(self) -> int:
        return sum(len(events) for events in self._by_day.values())
