"""
Decides whether a dated or recurring obligation is due on a calendar date.

Two fallbacks are deliberately asymmetric and both are kept:

- an unrecognized recurrence type is due on every covered date (fail open);
- weekly/specific_days without a parsable weekday set is never due (fail
  closed).
"""

import logging
from collections.abc import Iterable
from datetime import date
from typing import TypeVar

from carerecon.dates import Weekday
from carerecon.models import Obligation, RecurrenceType

logger = logging.getLogger(__name__)

O = TypeVar("O", bound=Obligation)

WEEKDAY_RECURRENCES = frozenset({RecurrenceType.WEEKLY, RecurrenceType.SPECIFIC_DAYS})


def applies(
    obligation: Obligation,
    day: date,
    day_of_week: Weekday | None = None,
) -> bool:
    if not obligation.covers(day):
        return False

    recurrence = obligation.recurrence_type
    if recurrence == RecurrenceType.ONE_TIME:
        return day == obligation.start_date
    if recurrence == RecurrenceType.DAILY:
        return True
    if recurrence in WEEKDAY_RECURRENCES:
        if not obligation.days_of_week:
            return False
        return (day_of_week or Weekday.of(day)) in obligation.days_of_week
    if recurrence == RecurrenceType.AS_NEEDED:
        # caregiver-initiated only, never counted as due or missing
        return False

    logger.debug(
        "Unrecognized recurrence type %r on %s; treating as due",
        recurrence,
        obligation.id,
    )
    return True


def due_on(obligations: Iterable[O], day: date) -> list[O]:
    weekday = Weekday.of(day)
    return [o for o in obligations if applies(o, day, weekday)]
