from datetime import date, datetime, time

import pytest

from carerecon.matching import (
    EventIndex,
    Occurrence,
    expand,
    match,
    match_exact,
    match_fluid,
    match_meal,
)
from carerecon.models import (
    FluidIntakeRecord,
    FluidIntakeSchedule,
    MealRecord,
    MealSchedule,
    MedicationAdministration,
    MedicationPlan,
    NursingProcedure,
)

DAY = date(2024, 6, 10)


def _medication(plan_id: str, times: list[str]) -> MedicationPlan:
    return MedicationPlan(
        id=plan_id,
        client_id="cl-1",
        name=plan_id,
        start_date=date(2024, 6, 1),
        times=times,
    )


def _administration(
    adm_id: str, plan_id: str, scheduled: datetime, was_given: bool = True
) -> MedicationAdministration:
    return MedicationAdministration(
        id=adm_id,
        obligation_id=plan_id,
        client_id="cl-1",
        scheduled_time=scheduled,
        was_given=was_given,
    )


def _fluid_record(record_id: str, at: str, day: date = DAY) -> FluidIntakeRecord:
    return FluidIntakeRecord(
        id=record_id, client_id="cl-1", record_date=day, record_time=at, volume=200
    )


def test_expand_orders_by_time_and_keeps_ties_stable() -> None:
    a = _medication("a", ["18:00", "08:00"])
    b = _medication("b", ["08:00"])
    occurrences = expand([a, b], DAY)
    assert [(o.obligation.id, o.time) for o in occurrences] == [
        ("a", time(8, 0)),
        ("b", time(8, 0)),
        ("a", time(18, 0)),
    ]
    assert all(o.date == DAY for o in occurrences)


def test_expand_with_time_filter() -> None:
    plan = _medication("a", ["08:00", "10:00", "18:00"])
    occurrences = expand([plan], DAY, lambda t: time(9, 0) <= t <= time(17, 0))
    assert [o.time for o in occurrences] == [time(10, 0)]


def test_exact_match_needs_obligation_date_and_minute() -> None:
    plan = _medication("a", ["08:00"])
    (occurrence,) = expand([plan], DAY)

    assert match_exact(
        occurrence, [_administration("x", "a", datetime(2024, 6, 10, 8, 1))]
    ) is None
    assert match_exact(
        occurrence, [_administration("x", "a", datetime(2024, 6, 11, 8, 0))]
    ) is None
    assert match_exact(
        occurrence, [_administration("x", "other", datetime(2024, 6, 10, 8, 0))]
    ) is None

    # seconds are ignored
    hit = _administration("x", "a", datetime(2024, 6, 10, 8, 0, 45))
    assert match_exact(occurrence, [hit]) == hit


def test_first_matching_event_wins() -> None:
    plan = _medication("a", ["08:00"])
    (occurrence,) = expand([plan], DAY)
    first = _administration("x", "a", datetime(2024, 6, 10, 8, 0), was_given=False)
    second = _administration("y", "a", datetime(2024, 6, 10, 8, 0))
    assert match_exact(occurrence, [first, second]) == first
    assert match(occurrence, [second, first]) == second


def test_meal_matches_on_type_for_the_day() -> None:
    schedule = MealSchedule(
        id="ms-1",
        client_id="cl-1",
        start_date=date(2024, 6, 1),
        meal_type="lunch",
        times=["12:00"],
    )
    (occurrence,) = expand([schedule], DAY)
    breakfast = MealRecord(
        id="r-1", client_id="cl-1", record_date=DAY, meal_type="breakfast"
    )
    lunch = MealRecord(
        id="r-2", client_id="cl-1", record_date=DAY, meal_type="lunch"
    )
    assert match_meal(occurrence, [breakfast]) is None
    assert match_meal(occurrence, [breakfast, lunch]) == lunch


@pytest.mark.parametrize(
    ("recorded_at", "matched"),
    [("10:00", True), ("09:00", True), ("11:00", True), ("11:01", False), ("08:30", False)],
)
def test_fluid_tolerance_window(recorded_at: str, matched: bool) -> None:
    schedule = FluidIntakeSchedule(
        id="fs-1", client_id="cl-1", start_date=date(2024, 6, 1), times=["10:00"]
    )
    (occurrence,) = expand([schedule], DAY)
    record = _fluid_record("f-1", recorded_at)
    assert (match_fluid(occurrence, [record]) is not None) is matched


def test_fluid_tolerance_is_configurable_and_date_bound() -> None:
    schedule = FluidIntakeSchedule(
        id="fs-1", client_id="cl-1", start_date=date(2024, 6, 1), times=["10:00"]
    )
    (occurrence,) = expand([schedule], DAY)
    assert match_fluid(occurrence, [_fluid_record("f-1", "10:20")], 15) is None
    assert match_fluid(occurrence, [_fluid_record("f-2", "10:00", date(2024, 6, 11))]) is None


def test_match_rejects_unmatched_domains() -> None:
    procedure = NursingProcedure(
        id="np-1",
        client_id="cl-1",
        name="Katheter wisselen",
        start_date=date(2024, 6, 1),
        next_due_date=DAY,
    )
    with pytest.raises(ValueError):
        match(Occurrence(procedure, DAY, time(8, 0)), [])


def test_event_index_groups_by_client_and_day() -> None:
    a = _administration("x", "a", datetime(2024, 6, 10, 8, 0))
    b = _administration("y", "a", datetime(2024, 6, 11, 8, 0))
    c = MedicationAdministration(
        id="z",
        obligation_id="a",
        client_id="cl-2",
        scheduled_time=datetime(2024, 6, 10, 9, 0),
    )
    index = EventIndex([a, b, c])
    assert list(index.on("cl-1", DAY)) == [a]
    assert index.count("cl-2", DAY) == 1
    assert index.on("cl-1", date(2024, 6, 12)) == ()
    assert len(index) == 3
