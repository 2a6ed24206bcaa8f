"""
Shift time windows, including overnight shifts.

An overnight shift (end before start) is evaluated in two passes: the
evening half against obligations on the shift's own date, the morning half
against obligations on the following date. Every caller goes through
``shift_passes`` so the split is the same everywhere.
"""

from collections.abc import Iterable
from datetime import date, time, timedelta
from enum import StrEnum
from typing import NamedTuple

from carerecon.models import ShiftAssignment


class DayPart(StrEnum):
    FULL = "full"
    EVENING = "evening"
    MORNING = "morning"


class ShiftPass(NamedTuple):
    date: date
    day_part: DayPart
    shift_start: time
    shift_end: time

    def contains(self, time_of_day: time) -> bool:
        return in_window(time_of_day, self.shift_start, self.shift_end, self.day_part)


def is_overnight(shift_start: time, shift_end: time) -> bool:
    return shift_end < shift_start


def in_window(
    time_of_day: time,
    shift_start: time,
    shift_end: time,
    day_part: DayPart,
) -> bool:
    if day_part == DayPart.EVENING:
        return time_of_day >= shift_start
    if day_part == DayPart.MORNING:
        return time_of_day <= shift_end
    return shift_start <= time_of_day <= shift_end


def shift_passes(shift_date: date, shift_start: time, shift_end: time) -> list[ShiftPass]:
    if not is_overnight(shift_start, shift_end):
        return [ShiftPass(shift_date, DayPart.FULL, shift_start, shift_end)]
    return [
        ShiftPass(shift_date, DayPart.EVENING, shift_start, shift_end),
        ShiftPass(shift_date + timedelta(days=1), DayPart.MORNING, shift_start, shift_end),
    ]


def passes_for(shift: ShiftAssignment) -> list[ShiftPass]:
    return shift_passes(shift.date, shift.start_time, shift.end_time)


def covering_shift(
    shifts_by_date: dict[date, list[ShiftAssignment]],
    day: date,
    time_of_day: time,
) -> ShiftAssignment | None:
    """
    First shift with a pass on ``day`` that contains ``time_of_day``: a shift
    starting on ``day`` (full/evening) or an overnight shift from the day before
    (morning).
    """
    candidates = shifts_by_date.get(day, []) + [
        s for s in shifts_by_date.get(day - timedelta(days=1), []) if s.is_overnight
    ]
    for shift in candidates:
        for shift_pass in passes_for(shift):
            if shift_pass.date == day and shift_pass.contains(time_of_day):
                return shift
    return None


def group_by_date(
    shifts: Iterable[ShiftAssignment],
) -> dict[date, list[ShiftAssignment]]:
    by_date: dict[date, list[ShiftAssignment]] = {}
    for shift in shifts:
        by_date.setdefault(shift.date, []).append(shift)
    return by_date
