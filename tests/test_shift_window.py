from datetime import date, time

from carerecon.models import ShiftAssignment
from carerecon.shift_window import (
    DayPart,
    covering_shift,
    group_by_date,
    in_window,
    passes_for,
    shift_passes,
)


def _shift(shift_id: str, day: date, start: str, end: str) -> ShiftAssignment:
    return ShiftAssignment(
        id=shift_id,
        caregiver_id="cg-1",
        client_id="cl-1",
        date=day,
        start_time=start,
        end_time=end,
    )


def test_day_shift_is_one_full_pass_inclusive_at_both_ends() -> None:
    (only,) = shift_passes(date(2024, 6, 10), time(9, 0), time(17, 0))
    assert only.day_part == DayPart.FULL
    assert only.date == date(2024, 6, 10)
    assert only.contains(time(9, 0))
    assert only.contains(time(17, 0))
    assert not only.contains(time(8, 59))
    assert not only.contains(time(18, 0))


def test_overnight_shift_splits_into_evening_and_next_morning() -> None:
    evening, morning = passes_for(_shift("n-1", date(2024, 6, 10), "22:00", "07:00"))

    assert (evening.date, evening.day_part) == (date(2024, 6, 10), DayPart.EVENING)
    assert evening.contains(time(22, 0))
    assert evening.contains(time(23, 30))
    assert not evening.contains(time(6, 0))

    assert (morning.date, morning.day_part) == (date(2024, 6, 11), DayPart.MORNING)
    assert morning.contains(time(0, 0))
    assert morning.contains(time(7, 0))
    assert not morning.contains(time(8, 0))


def test_in_window_per_day_part() -> None:
    start, end = time(22, 0), time(7, 0)
    assert in_window(time(23, 0), start, end, DayPart.EVENING)
    assert in_window(time(6, 0), start, end, DayPart.MORNING)
    assert not in_window(time(12, 0), start, end, DayPart.FULL)


def test_covering_shift_finds_previous_nights_morning_half() -> None:
    night = _shift("n-1", date(2024, 6, 10), "22:00", "07:00")
    day = _shift("d-1", date(2024, 6, 11), "09:00", "17:00")
    by_date = group_by_date([night, day])

    assert covering_shift(by_date, date(2024, 6, 11), time(6, 0)) == night
    assert covering_shift(by_date, date(2024, 6, 11), time(10, 0)) == day
    assert covering_shift(by_date, date(2024, 6, 11), time(8, 0)) is None
    assert covering_shift(by_date, date(2024, 6, 10), time(23, 0)) == night
    assert covering_shift(by_date, date(2024, 6, 10), time(6, 0)) is None


def test_group_by_date_keeps_order() -> None:
    a = _shift("a", date(2024, 6, 10), "07:00", "15:00")
    b = _shift("b", date(2024, 6, 11), "07:00", "15:00")
    c = _shift("c", date(2024, 6, 10), "15:00", "23:00")
    assert group_by_date([a, b, c]) == {
        date(2024, 6, 10): [a, c],
        date(2024, 6, 11): [b],
    }
