from datetime import date, datetime

import pytest

from carerecon.config import Settings
from carerecon.database import InMemoryCareStore
from carerecon.errors import NotFoundError
from carerecon.missed_tasks import MissedTaskScanner
from carerecon.models import (
    CareReport,
    FluidIntakeRecord,
    FluidIntakeSchedule,
    MealRecord,
    MealSchedule,
    MedicationAdministration,
    MedicationPlan,
    ShiftAssignment,
    TubeFeedingAdministration,
    TubeFeedingSchedule,
)

TODAY = date(2024, 6, 15)


def _shift(
    shift_id: str,
    day: date,
    start: str,
    end: str,
    caregiver_id: str = "cg-1",
) -> ShiftAssignment:
    return ShiftAssignment(
        id=shift_id,
        caregiver_id=caregiver_id,
        caregiver_name="Anna de Vries" if caregiver_id == "cg-1" else "Bram Jansen",
        client_id="cl-1",
        date=day,
        start_time=start,
        end_time=end,
    )


def _scanner(store: InMemoryCareStore) -> MissedTaskScanner:
    return MissedTaskScanner(store, Settings())


@pytest.fixture
def medication_store(store: InMemoryCareStore) -> InMemoryCareStore:
    # twice daily from the 12th: six doses up to yesterday
    store.add(
        MedicationPlan(
            id="med-1",
            client_id="cl-1",
            name="Paracetamol",
            dosage="500",
            unit="mg",
            start_date=date(2024, 6, 12),
            times=["08:00", "20:00"],
        ),
        MedicationAdministration(
            id="adm-given",
            obligation_id="med-1",
            client_id="cl-1",
            scheduled_time=datetime(2024, 6, 12, 8, 0),
        ),
        MedicationAdministration(
            id="adm-skipped",
            obligation_id="med-1",
            client_id="cl-1",
            caregiver_id="cg-1",
            caregiver_name="Anna de Vries",
            scheduled_time=datetime(2024, 6, 13, 8, 0),
            was_given=False,
            skip_reason="Client sliep",
        ),
    )
    return store


@pytest.mark.asyncio
async def test_missing_medications_summary(medication_store: InMemoryCareStore) -> None:
    view = await _scanner(medication_store).missing_medications("cl-1", today=TODAY)

    assert view.summary.model_dump() == {
        "total_missing": 4,
        "total_skipped": 1,
        "unique_medications": 1,
        "unique_days": 3,
        "oldest_missing": "2024-06-12",
    }
    payload = view.to_payload()
    assert "missingAdministrations" not in payload
    assert "skippedAdministrations" not in payload


@pytest.mark.asyncio
async def test_missing_medications_details_sorted(
    medication_store: InMemoryCareStore,
) -> None:
    view = await _scanner(medication_store).missing_medications(
        "cl-1", today=TODAY, details=True
    )
    assert [
        (m.scheduled_date, m.scheduled_time) for m in view.missing_administrations
    ] == [
        ("2024-06-12", "20:00"),
        ("2024-06-13", "20:00"),
        ("2024-06-14", "08:00"),
        ("2024-06-14", "20:00"),
    ]
    assert view.missing_administrations[0].days_overdue == 3
    assert view.missing_administrations[0].recurrence_type == "daily"
    (skipped,) = view.skipped_administrations
    assert skipped.skip_reason == "Client sliep"
    assert skipped.caregiver_name == "Anna de Vries"

    payload = view.to_payload()
    assert payload["missingAdministrations"][0]["type"] == "MISSING"
    assert payload["skippedAdministrations"][0]["type"] == "SKIPPED"


@pytest.mark.asyncio
async def test_missing_medications_for_one_caregiver_follow_their_shifts(
    medication_store: InMemoryCareStore,
) -> None:
    medication_store.add(
        _shift("day", date(2024, 6, 13), "07:00", "15:00"),
        _shift("night", date(2024, 6, 13), "19:00", "07:00"),
        _shift("colleague", date(2024, 6, 14), "07:00", "15:00", caregiver_id="cg-2"),
    )
    view = await _scanner(medication_store).missing_medications(
        "cl-1", today=TODAY, caregiver_id="cg-1", details=True
    )
    (missing,) = view.missing_administrations
    assert (missing.scheduled_date, missing.scheduled_time) == ("2024-06-13", "20:00")
    assert missing.assigned_caregiver_id == "cg-1"
    assert len(view.skipped_administrations) == 1
    assert view.summary.unique_days == 1


@pytest.mark.asyncio
async def test_missing_dose_outside_shifts_falls_back_to_first_shift_of_day(
    medication_store: InMemoryCareStore,
) -> None:
    medication_store.add(_shift("colleague", date(2024, 6, 14), "09:00", "17:00", "cg-2"))
    view = await _scanner(medication_store).missing_medications(
        "cl-1", today=TODAY, details=True
    )
    on_14th = [m for m in view.missing_administrations if m.scheduled_date == "2024-06-14"]
    assert [m.assigned_caregiver_name for m in on_14th] == ["Bram Jansen", "Bram Jansen"]


@pytest.fixture
def nutrition_store(store: InMemoryCareStore) -> InMemoryCareStore:
    store.add(
        MealSchedule(
            id="meal-1",
            client_id="cl-1",
            start_date=date(2024, 6, 13),
            meal_type="breakfast",
            times=["08:00"],
        ),
        MealRecord(
            id="mr-1", client_id="cl-1", record_date=date(2024, 6, 14), meal_type="breakfast"
        ),
        TubeFeedingSchedule(
            id="tube-1", client_id="cl-1", start_date=date(2024, 6, 14), times=["12:00"]
        ),
        TubeFeedingAdministration(
            id="ta-1",
            obligation_id="tube-1",
            client_id="cl-1",
            scheduled_time=datetime(2024, 6, 14, 12, 0),
            was_given=False,
        ),
        FluidIntakeSchedule(
            id="fluid-1", client_id="cl-1", start_date=date(2024, 6, 14), times=["10:00"]
        ),
        FluidIntakeRecord(
            id="fr-1",
            client_id="cl-1",
            record_date=date(2024, 6, 14),
            record_time="11:30",
            volume=150,
        ),
    )
    return store


@pytest.mark.asyncio
async def test_missing_nutrition(nutrition_store: InMemoryCareStore) -> None:
    view = await _scanner(nutrition_store).missing_nutrition("cl-1", today=TODAY)
    assert view.to_payload() == {
        "summary": {
            "totalMissingMeals": 1,
            "totalMissingTubeFeeding": 1,
            "totalMissingFluids": 1,
            "total": 3,
        }
    }


@pytest.mark.asyncio
async def test_missing_nutrition_only_on_days_worked(
    nutrition_store: InMemoryCareStore,
) -> None:
    nutrition_store.add(_shift("s-1", date(2024, 6, 14), "07:00", "15:00"))
    view = await _scanner(nutrition_store).missing_nutrition(
        "cl-1", today=TODAY, caregiver_id="cg-1"
    )
    assert view.summary.total_missing_meals == 0
    assert view.summary.total == 2


@pytest.mark.asyncio
async def test_missing_nutrition_without_schedules(store: InMemoryCareStore) -> None:
    view = await _scanner(store).missing_nutrition("cl-2", today=TODAY)
    assert view.summary.total == 0


@pytest.fixture
def report_store(store: InMemoryCareStore) -> InMemoryCareStore:
    store.add(
        _shift("s-12", date(2024, 6, 12), "07:00", "15:00"),
        _shift("s-13", date(2024, 6, 13), "07:00", "15:00"),
        _shift("s-13b", date(2024, 6, 13), "15:00", "23:00", caregiver_id="cg-2"),
        _shift("s-15", TODAY, "07:00", "15:00"),
        CareReport(
            id="r-1", client_id="cl-1", caregiver_id="cg-1", record_date=date(2024, 6, 12)
        ),
        # a colleague's report does not cover someone else's shift
        CareReport(
            id="r-2", client_id="cl-1", caregiver_id="cg-2", record_date=date(2024, 6, 12)
        ),
    )
    return store


@pytest.mark.asyncio
async def test_missing_reports_count(report_store: InMemoryCareStore) -> None:
    view = await _scanner(report_store).missing_reports("cl-1", today=TODAY)
    assert view.to_payload() == {"missingDays": 1}


@pytest.mark.asyncio
async def test_missing_reports_details(report_store: InMemoryCareStore) -> None:
    view = await _scanner(report_store).missing_reports(
        "cl-1", today=TODAY, details=True
    )
    assert [m.shift_id for m in view.missing_reports] == ["s-13", "s-13b"]
    assert view.summary.model_dump() == {
        "total_missing": 2,
        "unique_days": 1,
        "unique_caregivers": 2,
        "oldest_missing_date": "2024-06-13",
    }
    assert view.missing_reports[0].days_overdue == 2
    assert view.missing_reports[0].status == "FILLED"

    mine = await _scanner(report_store).missing_reports(
        "cl-1", today=TODAY, caregiver_id="cg-2", details=True
    )
    assert [m.shift_id for m in mine.missing_reports] == ["s-13b"]


@pytest.mark.asyncio
async def test_unknown_client(store: InMemoryCareStore) -> None:
    with pytest.raises(NotFoundError) as excinfo:
        await _scanner(store).missing_reports("cl-9", today=TODAY)
    assert excinfo.value.to_detail() == "Client not found: cl-9"


@pytest.mark.asyncio
async def test_zero_lookback_reports_no_gaps(
    medication_store: InMemoryCareStore,
) -> None:
    medication_store.add(
        _shift("s-14", date(2024, 6, 14), "07:00", "15:00"),
        MealSchedule(
            id="meal-1",
            client_id="cl-1",
            start_date=date(2024, 6, 13),
            meal_type="breakfast",
            times=["08:00"],
        ),
    )
    scanner = _scanner(medication_store)
    assert (await scanner.missing_reports("cl-1", today=TODAY)).missing_days == 1

    medications = await scanner.missing_medications(
        "cl-1", today=TODAY, details=True, lookback_days=0
    )
    assert medications.summary.total_missing == 0
    assert medications.missing_administrations == []
    assert medications.skipped_administrations == []

    nutrition = await scanner.missing_nutrition("cl-1", today=TODAY, lookback_days=0)
    assert nutrition.summary.total == 0

    reports = await scanner.missing_reports("cl-1", today=TODAY, lookback_days=0)
    assert reports.to_payload() == {"missingDays": 0}
    detailed = await scanner.missing_reports(
        "cl-1", today=TODAY, details=True, lookback_days=0
    )
    assert detailed.missing_reports == []
