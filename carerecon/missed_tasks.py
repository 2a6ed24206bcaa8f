"""
Look-back scans over past days.

``scan_caregiver`` reports, per past shift, the clients whose day still has
open work (no care report, doses not administered, feedings or meals not
recorded). The client views count missing and skipped items for one client,
optionally narrowed to what one caregiver was responsible for.

Every domain is fetched once for the whole window and indexed by
``(client_id, date key)`` before the days are walked; no per-day store reads.
"""

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import TypeVar

from carerecon.config import Settings, get_settings
from carerecon.database import CareStore, guarded, run_all
from carerecon.dates import (
    date_key,
    days_between,
    dutch_date_label,
    format_time_of_day,
    iter_days,
)
from carerecon.errors import NotFoundError
from carerecon.matching import (
    EventIndex,
    expand,
    match_exact,
    match_fluid,
    match_meal,
)
from carerecon.models import (
    Administration,
    CareReport,
    DateRange,
    Domain,
    Event,
    FluidIntakeRecord,
    FluidIntakeSchedule,
    MealRecord,
    MealSchedule,
    MedicationPlan,
    Obligation,
    ShiftAssignment,
    TubeFeedingSchedule,
)
from carerecon.shift_window import (
    DayPart,
    covering_shift,
    group_by_date,
    passes_for,
)
from carerecon.views import (
    MissedClient,
    MissedDay,
    MissedDaysView,
    MissingAdministration,
    MissingMedicationSummary,
    MissingMedicationView,
    MissingNutritionSummary,
    MissingNutritionView,
    MissingReport,
    MissingReportsSummary,
    MissingReportsView,
    SkippedAdministration,
)

logger = logging.getLogger(__name__)


@dataclass
class ClientWindow:
    """Everything one client needs for a multi-day scan, already indexed."""

    client_id: str
    medications: list[MedicationPlan] = field(default_factory=list)
    tube_schedules: list[TubeFeedingSchedule] = field(default_factory=list)
    meal_schedules: list[MealSchedule] = field(default_factory=list)
    fluid_schedules: list[FluidIntakeSchedule] = field(default_factory=list)
    medication_events: EventIndex[Administration] = field(default_factory=EventIndex)
    tube_events: EventIndex[Administration] = field(default_factory=EventIndex)
    meal_records: EventIndex[MealRecord] = field(default_factory=EventIndex)
    fluid_records: EventIndex[FluidIntakeRecord] = field(default_factory=EventIndex)
    care_reports: EventIndex[CareReport] = field(default_factory=EventIndex)


T = TypeVar("T")


def _of_type(items: Sequence[Obligation | Event], kind: type[T]) -> list[T]:
    return [item for item in items if isinstance(item, kind)]


def lookback_window(today: date, lookback_days: int) -> DateRange | None:
    """``[today - lookback_days, today)``; ``None`` for an empty look-back."""
    if lookback_days < 1:
        return None
    return DateRange(
        start=today - timedelta(days=lookback_days), end=today - timedelta(days=1)
    )


class MissedTaskScanner:
    def __init__(self, store: CareStore, settings: Settings | None = None) -> None:
        self.store = store
        self.settings = settings or get_settings()

    @staticmethod
    def _lookback(lookback_days: int | None, default: int) -> int:
        return default if lookback_days is None else lookback_days

    async def _require_caregiver(self, caregiver_id: str) -> None:
        caregiver = await guarded(
            "get_caregiver", self.store.get_caregiver(caregiver_id)
        )
        if caregiver is None:
            raise NotFoundError("caregiver", caregiver_id)

    async def _require_client(self, client_id: str) -> None:
        client = await guarded("get_client", self.store.get_client(client_id))
        if client is None:
            raise NotFoundError("client", client_id)

    async def _obligations(
        self, client_id: str, domain: Domain, date_range: DateRange
    ) -> list[Obligation]:
        return await guarded(
            f"list_obligations({domain})",
            self.store.list_obligations(client_id, domain, date_range),
        )

    async def _events(
        self,
        client_id: str,
        domain: Domain,
        date_range: DateRange,
        *,
        caregiver_id: str | None = None,
    ) -> list[Event]:
        return await guarded(
            f"list_events({domain})",
            self.store.list_events(
                client_id, domain, date_range, caregiver_id=caregiver_id
            ),
        )

    async def _load_window(
        self, client_id: str, date_range: DateRange, *, caregiver_id: str
    ) -> ClientWindow:
        (
            medications,
            medication_events,
            tube_schedules,
            tube_events,
            meal_schedules,
            meal_records,
            fluid_schedules,
            fluid_records,
            care_reports,
        ) = await asyncio.gather(
            self._obligations(client_id, Domain.MEDICATION, date_range),
            self._events(client_id, Domain.MEDICATION, date_range),
            self._obligations(client_id, Domain.TUBE_FEEDING, date_range),
            self._events(client_id, Domain.TUBE_FEEDING, date_range),
            self._obligations(client_id, Domain.MEAL, date_range),
            self._events(client_id, Domain.MEAL, date_range),
            self._obligations(client_id, Domain.FLUID_INTAKE, date_range),
            self._events(client_id, Domain.FLUID_INTAKE, date_range),
            # only this caregiver's own reports clear their shift
            self._events(
                client_id, Domain.CARE_REPORT, date_range, caregiver_id=caregiver_id
            ),
        )
        return ClientWindow(
            client_id=client_id,
            medications=_of_type(medications, MedicationPlan),
            tube_schedules=_of_type(tube_schedules, TubeFeedingSchedule),
            meal_schedules=_of_type(meal_schedules, MealSchedule),
            fluid_schedules=_of_type(fluid_schedules, FluidIntakeSchedule),
            medication_events=EventIndex(_of_type(medication_events, Administration)),
            tube_events=EventIndex(_of_type(tube_events, Administration)),
            meal_records=EventIndex(_of_type(meal_records, MealRecord)),
            fluid_records=EventIndex(_of_type(fluid_records, FluidIntakeRecord)),
            care_reports=EventIndex(_of_type(care_reports, CareReport)),
        )

    # caregiver direction

    async def scan_caregiver(
        self,
        caregiver_id: str,
        *,
        today: date,
        lookback_days: int | None = None,
    ) -> MissedDaysView:
        await self._require_caregiver(caregiver_id)
        lookback = self._lookback(
            lookback_days, self.settings.missed_tasks_lookback_days
        )
        window = lookback_window(today, lookback)
        if window is None:
            return MissedDaysView(missed_days=[])

        shifts = await guarded(
            "list_shifts",
            self.store.list_shifts(caregiver_id=caregiver_id, date_range=window),
        )
        if not shifts:
            return MissedDaysView(missed_days=[])

        # one extra day so overnight shifts on the last day get their morning
        fetch_range = DateRange(start=window.start, end=today)
        client_ids = list(dict.fromkeys(s.client_id for s in shifts))
        windows = await run_all(
            *(
                self._load_window(client_id, fetch_range, caregiver_id=caregiver_id)
                for client_id in client_ids
            )
        )
        by_client = {w.client_id: w for w in windows}

        missed_days: list[MissedDay] = []
        shifts_by_date = group_by_date(shifts)
        for day in sorted(shifts_by_date, reverse=True):
            seen: set[str] = set()
            day_clients: list[MissedClient] = []
            for shift in shifts_by_date[day]:
                if shift.client_id in seen:
                    continue
                seen.add(shift.client_id)
                review = self.review_shift(
                    shift,
                    by_client[shift.client_id],
                    tolerance_minutes=self.settings.fluid_tolerance_minutes,
                )
                if review.has_issues:
                    day_clients.append(review)
            if day_clients:
                missed_days.append(
                    MissedDay(
                        date=date_key(day),
                        date_label=dutch_date_label(day),
                        clients=day_clients,
                    )
                )

        logger.info(
            "Missed-task scan for caregiver %s over %d day(s): %d day(s) with issues",
            caregiver_id,
            lookback,
            len(missed_days),
        )
        return MissedDaysView(missed_days=missed_days)

    @staticmethod
    def review_shift(
        shift: ShiftAssignment,
        window: ClientWindow,
        *,
        tolerance_minutes: int,
    ) -> MissedClient:
        client_id = shift.client_id

        total_doses = 0
        administered = 0
        # doses of the morning half sit on the next calendar date
        next_day_pending_doses = 0
        for shift_pass in passes_for(shift):
            candidates = window.medication_events.on(client_id, shift_pass.date)
            for occurrence in expand(
                window.medications, shift_pass.date, shift_pass.contains
            ):
                total_doses += 1
                if match_exact(occurrence, candidates) is not None:
                    administered += 1
                elif shift_pass.day_part == DayPart.MORNING:
                    next_day_pending_doses += 1
        pending_doses = max(0, total_doses - administered)

        medication_date = shift.date
        if shift.is_overnight and next_day_pending_doses > 0:
            medication_date = shift.date + timedelta(days=1)

        day = shift.date
        tube_occurrences = expand(window.tube_schedules, day)
        tube_candidates = window.tube_events.on(client_id, day)
        pending_tube = 0
        for occurrence in tube_occurrences:
            event = match_exact(occurrence, tube_candidates)
            if event is None or not event.was_given:
                pending_tube += 1

        meal_occurrences = expand(window.meal_schedules, day)
        meal_candidates = window.meal_records.on(client_id, day)
        pending_meals = sum(
            1 for o in meal_occurrences if match_meal(o, meal_candidates) is None
        )

        fluid_occurrences = expand(window.fluid_schedules, day)
        fluid_candidates = window.fluid_records.on(client_id, day)
        pending_fluids = sum(
            1
            for o in fluid_occurrences
            if match_fluid(o, fluid_candidates, tolerance_minutes) is None
        )

        return MissedClient(
            client_id=client_id,
            client_name=shift.client_name,
            shift_type_name=shift.shift_type_name,
            shift_type_color=shift.shift_type_color,
            start_time=format_time_of_day(shift.start_time),
            end_time=format_time_of_day(shift.end_time),
            has_report=window.care_reports.count(client_id, day) > 0,
            pending_medications=pending_doses,
            total_medications=total_doses,
            medication_date=date_key(medication_date),
            pending_sondevoeding=pending_tube,
            total_sondevoeding=len(tube_occurrences),
            pending_meals=pending_meals,
            total_meals=len(meal_occurrences),
            pending_fluids=pending_fluids,
            total_fluids=len(fluid_occurrences),
        )

    # client direction

    async def _client_shifts(
        self,
        client_id: str,
        date_range: DateRange,
        *,
        caregiver_id: str | None,
    ) -> list[ShiftAssignment]:
        shifts = await guarded(
            "list_shifts",
            self.store.list_shifts(
                client_id=client_id, caregiver_id=caregiver_id, date_range=date_range
            ),
        )
        return [s for s in shifts if s.caregiver_id is not None]

    async def missing_medications(
        self,
        client_id: str,
        *,
        today: date,
        caregiver_id: str | None = None,
        details: bool = False,
        lookback_days: int | None = None,
    ) -> MissingMedicationView:
        await self._require_client(client_id)
        lookback = self._lookback(lookback_days, self.settings.medication_lookback_days)
        window = lookback_window(today, lookback)
        if window is None:
            empty = [] if details else None
            return MissingMedicationView(
                summary=MissingMedicationSummary(),
                missing_administrations=empty,
                skipped_administrations=empty,
            )
        # the day before the window can hold an overnight shift ending inside it
        shift_range = DateRange(
            start=window.start - timedelta(days=1), end=window.end
        )

        medications, administrations, shifts = await asyncio.gather(
            self._obligations(client_id, Domain.MEDICATION, window),
            self._events(client_id, Domain.MEDICATION, window),
            self._client_shifts(client_id, shift_range, caregiver_id=caregiver_id),
        )
        events = EventIndex(_of_type(administrations, Administration))
        shifts_by_date = group_by_date(shifts)

        missing: list[MissingAdministration] = []
        skipped: list[SkippedAdministration] = []
        medication_ids: set[str] = set()
        days: set[str] = set()

        for medication in _of_type(medications, MedicationPlan):
            start = max(medication.start_date, window.start)
            for day in iter_days(start, today):
                for occurrence in expand([medication], day):
                    responsible = covering_shift(shifts_by_date, day, occurrence.time)
                    # a caregiver only answers for doses inside their own shifts
                    if caregiver_id is not None and responsible is None:
                        continue

                    event = match_exact(occurrence, events.on(client_id, day))
                    if event is not None and event.was_given:
                        continue

                    medication_ids.add(medication.id)
                    days.add(date_key(day))
                    common = dict(
                        medication_id=medication.id,
                        medication_name=medication.name,
                        dosage=medication.dosage,
                        unit=medication.unit,
                        scheduled_date=date_key(day),
                        scheduled_time=format_time_of_day(occurrence.time),
                        days_overdue=days_between(day, today),
                    )
                    if event is None:
                        if responsible is None and shifts_by_date.get(day):
                            responsible = shifts_by_date[day][0]
                        missing.append(
                            MissingAdministration(
                                **common,
                                recurrence_type=str(medication.recurrence_type),
                                instructions=medication.instructions,
                                assigned_caregiver_id=(
                                    responsible.caregiver_id if responsible else None
                                ),
                                assigned_caregiver_name=(
                                    responsible.caregiver_name if responsible else None
                                ),
                            )
                        )
                    else:
                        skipped.append(
                            SkippedAdministration(
                                **common,
                                skip_reason=event.skip_reason,
                                caregiver_id=event.caregiver_id,
                                caregiver_name=event.caregiver_name,
                                administered_at=event.administered_at,
                            )
                        )

        oldest = min(
            (item.scheduled_date for item in [*missing, *skipped]), default=None
        )
        summary = MissingMedicationSummary(
            total_missing=len(missing),
            total_skipped=len(skipped),
            unique_medications=len(medication_ids),
            unique_days=len(days),
            oldest_missing=oldest,
        )
        logger.debug(
            "Missing medications for client %s: %d missing, %d skipped",
            client_id,
            summary.total_missing,
            summary.total_skipped,
        )
        if not details:
            return MissingMedicationView(summary=summary)
        missing.sort(key=lambda m: (m.scheduled_date, m.scheduled_time))
        skipped.sort(key=lambda s: (s.scheduled_date, s.scheduled_time))
        return MissingMedicationView(
            summary=summary,
            missing_administrations=missing,
            skipped_administrations=skipped,
        )

    async def missing_nutrition(
        self,
        client_id: str,
        *,
        today: date,
        caregiver_id: str | None = None,
        lookback_days: int | None = None,
    ) -> MissingNutritionView:
        await self._require_client(client_id)
        lookback = self._lookback(lookback_days, self.settings.nutrition_lookback_days)
        window = lookback_window(today, lookback)
        if window is None:
            return MissingNutritionView(summary=MissingNutritionSummary())
        limit, yesterday = window.start, window.end

        meal_schedules, tube_schedules, fluid_schedules = await asyncio.gather(
            self._obligations(client_id, Domain.MEAL, window),
            self._obligations(client_id, Domain.TUBE_FEEDING, window),
            self._obligations(client_id, Domain.FLUID_INTAKE, window),
        )
        schedules = [*meal_schedules, *tube_schedules, *fluid_schedules]
        if not schedules:
            return MissingNutritionView(summary=MissingNutritionSummary())

        range_start = max(min(s.start_date for s in schedules), limit)
        scan_range = DateRange(start=range_start, end=yesterday)

        meal_records, tube_events, fluid_records = await asyncio.gather(
            self._events(client_id, Domain.MEAL, scan_range),
            self._events(client_id, Domain.TUBE_FEEDING, scan_range),
            self._events(client_id, Domain.FLUID_INTAKE, scan_range),
        )
        meals_index = EventIndex(_of_type(meal_records, MealRecord))
        tube_index = EventIndex(_of_type(tube_events, Administration))
        fluid_index = EventIndex(_of_type(fluid_records, FluidIntakeRecord))

        worked_days: set[date] | None = None
        if caregiver_id is not None:
            shifts = await self._client_shifts(
                client_id, scan_range, caregiver_id=caregiver_id
            )
            worked_days = {s.date for s in shifts}

        meals = _of_type(meal_schedules, MealSchedule)
        tubes = _of_type(tube_schedules, TubeFeedingSchedule)
        fluids = _of_type(fluid_schedules, FluidIntakeSchedule)
        tolerance = self.settings.fluid_tolerance_minutes
        summary = MissingNutritionSummary()
        for day in iter_days(range_start, today):
            if worked_days is not None and day not in worked_days:
                continue
            day_meals = meals_index.on(client_id, day)
            day_tubes = tube_index.on(client_id, day)
            day_fluids = fluid_index.on(client_id, day)
            summary.total_missing_meals += sum(
                1 for o in expand(meals, day) if match_meal(o, day_meals) is None
            )
            for occurrence in expand(tubes, day):
                event = match_exact(occurrence, day_tubes)
                # a skipped feeding still leaves the client without it
                if event is None or not event.was_given:
                    summary.total_missing_tube_feeding += 1
            summary.total_missing_fluids += sum(
                1
                for o in expand(fluids, day)
                if match_fluid(o, day_fluids, tolerance) is None
            )

        summary.total = (
            summary.total_missing_meals
            + summary.total_missing_tube_feeding
            + summary.total_missing_fluids
        )
        return MissingNutritionView(summary=summary)

    async def missing_reports(
        self,
        client_id: str,
        *,
        today: date,
        caregiver_id: str | None = None,
        details: bool = False,
        lookback_days: int | None = None,
    ) -> MissingReportsView:
        await self._require_client(client_id)
        lookback = self._lookback(lookback_days, self.settings.reports_lookback_days)
        window = lookback_window(today, lookback)
        if window is None:
            if not details:
                return MissingReportsView(missing_days=0)
            return MissingReportsView(
                missing_days=0, summary=MissingReportsSummary(), missing_reports=[]
            )
        shifts, reports = await asyncio.gather(
            self._client_shifts(client_id, window, caregiver_id=caregiver_id),
            self._events(client_id, Domain.CARE_REPORT, window),
        )
        reported = {(r.caregiver_id, r.event_date) for r in reports}

        missing: list[MissingReport] = []
        missing_days: set[str] = set()
        for shift in shifts:
            if (shift.caregiver_id, shift.date) in reported:
                continue
            missing_days.add(date_key(shift.date))
            missing.append(
                MissingReport(
                    shift_id=shift.id,
                    date=date_key(shift.date),
                    caregiver_id=shift.caregiver_id,
                    caregiver_name=shift.caregiver_name,
                    shift_type_name=shift.shift_type_name,
                    start_time=format_time_of_day(shift.start_time),
                    end_time=format_time_of_day(shift.end_time),
                    status=shift.status.value,
                    days_overdue=days_between(shift.date, today),
                )
            )

        if not details:
            return MissingReportsView(missing_days=len(missing_days))
        return MissingReportsView(
            missing_days=len(missing_days),
            summary=MissingReportsSummary(
                total_missing=len(missing),
                unique_days=len(missing_days),
                unique_caregivers=len({m.caregiver_id for m in missing}),
                oldest_missing_date=min((m.date for m in missing), default=None),
            ),
            missing_reports=missing,
        )
