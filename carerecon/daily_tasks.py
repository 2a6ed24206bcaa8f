"""
Daily task overview for one caregiver on one date.

The caregiver's worked shifts decide which clients are in scope. For every
client the domain data is fetched concurrently, obligations are expanded for
the date (both halves of an overnight shift for medication), matched against
the recorded events and summarised into a day status.
"""

import asyncio
import logging
from collections.abc import Sequence
from datetime import date, timedelta
from typing import cast

from carerecon.database import CareStore, guarded, history_range, run_all
from carerecon.dates import date_key, format_time_of_day
from carerecon.errors import NotFoundError
from carerecon.matching import expand, match_exact
from carerecon.models import (
    Administration,
    DateRange,
    Domain,
    Event,
    FluidIntakeRecord,
    MealRecord,
    MedicationPlan,
    NursingProcedure,
    NursingProcedureLog,
    Obligation,
    ShiftAssignment,
    TubeFeedingSchedule,
    UrineRecord,
    WoundCarePlan,
    WoundCareReport,
)
from carerecon.shift_window import passes_for
from carerecon.status import OPEN_STATUSES, TaskStatus, classify, resolve_status
from carerecon.views import (
    AdministrationInfo,
    ClientDayTasks,
    ClientRef,
    ClientSummary,
    DailyTasksView,
    DomainSummary,
    GlobalSummary,
    IntakeOutput,
    LastPerformed,
    MealFlags,
    MedicationItem,
    MedicationSection,
    NursingItem,
    NursingSection,
    ReportSection,
    ShiftInfo,
    TubeFeedingItem,
    TubeFeedingSection,
    VolumeCount,
    WoundCareItem,
    WoundCareSection,
)

logger = logging.getLogger(__name__)


def summarize(items: Sequence[MedicationItem | TubeFeedingItem]) -> DomainSummary:
    return DomainSummary(
        total=len(items),
        given=sum(1 for i in items if i.status == TaskStatus.GIVEN),
        skipped=sum(1 for i in items if i.status == TaskStatus.SKIPPED),
        pending=sum(1 for i in items if i.status in OPEN_STATUSES),
    )


def administration_info(event: Administration | None) -> AdministrationInfo | None:
    if event is None:
        return None
    return AdministrationInfo(
        caregiver_name=event.caregiver_name,
        administered_at=event.administered_at,
        skip_reason=event.skip_reason,
    )


def build_medication_items(
    shift: ShiftAssignment,
    medications_by_date: dict[date, list[MedicationPlan]],
    administrations: Sequence[Administration],
    *,
    today: date,
) -> list[MedicationItem]:
    """
    Medication doses inside the shift window. An overnight shift yields its
    evening doses (shift date) followed by its morning doses (next date), each
    half ordered by time.
    """
    items: list[MedicationItem] = []
    for shift_pass in passes_for(shift):
        medications = medications_by_date.get(shift_pass.date, [])
        for occurrence in expand(medications, shift_pass.date, shift_pass.contains):
            medication = cast(MedicationPlan, occurrence.obligation)
            event = match_exact(occurrence, administrations)
            items.append(
                MedicationItem(
                    medication_id=medication.id,
                    medication_name=medication.name,
                    dosage=medication.dosage,
                    unit=medication.unit,
                    instructions=medication.instructions,
                    date=date_key(occurrence.date),
                    time=format_time_of_day(occurrence.time),
                    day_part=shift_pass.day_part,
                    status=resolve_status(event, occurrence.date, today),
                    administration=administration_info(event),
                )
            )
    return items


def build_tube_feeding_items(
    schedules: Sequence[TubeFeedingSchedule],
    administrations: Sequence[Administration],
    day: date,
    *,
    today: date,
) -> list[TubeFeedingItem]:
    items = []
    for occurrence in expand(schedules, day):
        schedule = cast(TubeFeedingSchedule, occurrence.obligation)
        event = match_exact(occurrence, administrations)
        items.append(
            TubeFeedingItem(
                schedule_id=schedule.id,
                date=date_key(day),
                time=format_time_of_day(occurrence.time),
                volume=schedule.volume,
                feed_speed=schedule.feed_speed,
                feed_type=schedule.feed_type,
                status=resolve_status(event, day, today),
                administration=administration_info(event),
            )
        )
    return items


def build_nursing_items(
    procedures: Sequence[NursingProcedure],
    logs: Sequence[NursingProcedureLog],
    day: date,
) -> list[NursingItem]:
    items = []
    for procedure in procedures:
        if not procedure.is_active or procedure.next_due_date > day:
            continue
        last_log = max(
            (log for log in logs if log.obligation_id == procedure.id),
            key=lambda log: log.performed_at,
            default=None,
        )
        items.append(
            NursingItem(
                id=procedure.id,
                name=procedure.name,
                description=procedure.description,
                next_due_date=date_key(procedure.next_due_date),
                is_overdue=procedure.next_due_date < day,
                last_performed=(
                    LastPerformed(
                        date=last_log.performed_at,
                        caregiver_name=last_log.caregiver_name,
                    )
                    if last_log is not None
                    else None
                ),
            )
        )
    return items


def build_wound_care_items(
    plans: Sequence[WoundCarePlan],
    reports: Sequence[WoundCareReport],
    day: date,
) -> list[WoundCareItem]:
    items = []
    for plan in plans:
        if not plan.is_active:
            continue
        last_report = max(
            (r for r in reports if r.obligation_id == plan.id),
            key=lambda r: r.record_date,
            default=None,
        )
        is_due_today = False
        is_overdue = False
        next_care_date = None
        if last_report is None:
            # active plan that was never reported on needs its first care
            is_due_today = True
        elif last_report.next_care_date is not None:
            next_care_date = date_key(last_report.next_care_date)
            is_due_today = last_report.next_care_date <= day
            is_overdue = last_report.next_care_date < day

        if is_due_today or is_overdue:
            items.append(
                WoundCareItem(
                    plan_id=plan.id,
                    location=plan.location,
                    wound_type=plan.wound_type,
                    frequency=plan.frequency,
                    is_due_today=is_due_today,
                    is_overdue=is_overdue,
                    next_care_date=next_care_date,
                )
            )
    return items


def client_summary(
    medicatie: MedicationSection,
    sondevoeding: TubeFeedingSection,
    verpleegtechnisch: NursingSection,
    wondzorg: WoundCareSection,
) -> ClientSummary:
    nursing_due = len(verpleegtechnisch.items)
    nursing_overdue = sum(1 for n in verpleegtechnisch.items if n.is_overdue)
    wound_due = len(wondzorg.items)
    wound_overdue = sum(1 for w in wondzorg.items if w.is_overdue)

    med, tube = medicatie.summary, sondevoeding.summary
    total_tasks = med.total + tube.total + nursing_due + wound_due
    completed = med.given + med.skipped + tube.given + tube.skipped
    pending = (
        med.pending
        + tube.pending
        + (nursing_due - nursing_overdue)
        + (wound_due - wound_overdue)
    )
    overdue = nursing_overdue + wound_overdue
    return ClientSummary(
        total_tasks=total_tasks,
        completed=completed,
        pending=pending,
        overdue=overdue,
        status=classify(overdue, pending),
    )


class DailyTaskAggregator:
    def __init__(self, store: CareStore) -> None:
        self.store = store

    async def aggregate(
        self, caregiver_id: str, day: date, *, today: date
    ) -> DailyTasksView:
        caregiver = await guarded(
            "get_caregiver", self.store.get_caregiver(caregiver_id)
        )
        if caregiver is None:
            raise NotFoundError("caregiver", caregiver_id)

        shifts = await guarded(
            "list_shifts",
            self.store.list_shifts(
                caregiver_id=caregiver_id, date_range=DateRange.single(day)
            ),
        )

        # a caregiver can hold several shifts for one client; the first one
        # sets the time window
        shifts_by_client: dict[str, list[ShiftAssignment]] = {}
        for shift in shifts:
            shifts_by_client.setdefault(shift.client_id, []).append(shift)

        clients = await run_all(
            *(
                self._client_tasks(client_shifts[0], day, today=today)
                for client_shifts in shifts_by_client.values()
            )
        )

        global_summary = GlobalSummary()
        for client in clients:
            global_summary = global_summary.add(client.summary)

        logger.info(
            "Daily tasks for caregiver %s on %s: %d client(s), %d task(s)",
            caregiver_id,
            date_key(day),
            len(clients),
            global_summary.total_tasks,
        )
        return DailyTasksView(
            date=date_key(day), clients=list(clients), global_summary=global_summary
        )

    async def _obligations(
        self, client_id: str, domain: Domain, date_range: DateRange
    ) -> list[Obligation]:
        return await guarded(
            f"list_obligations({domain})",
            self.store.list_obligations(client_id, domain, date_range),
        )

    async def _events(
        self, client_id: str, domain: Domain, date_range: DateRange
    ) -> list[Event]:
        return await guarded(
            f"list_events({domain})",
            self.store.list_events(client_id, domain, date_range),
        )

    async def _client_tasks(
        self, shift: ShiftAssignment, day: date, *, today: date
    ) -> ClientDayTasks:
        client_id = shift.client_id
        store = self.store
        today_range = DateRange.single(day)
        # overnight shifts reach into the next morning
        med_range = DateRange(
            start=day, end=day + timedelta(days=1) if shift.is_overnight else day
        )

        (
            client,
            medications,
            med_administrations,
            tube_schedules,
            tube_administrations,
            procedures,
            procedure_logs,
            wound_plans,
            wound_reports,
            defecations,
            urine_records,
            fluid_records,
            meal_records,
            care_reports,
        ) = await asyncio.gather(
            guarded("get_client", store.get_client(client_id)),
            self._obligations(client_id, Domain.MEDICATION, med_range),
            self._events(client_id, Domain.MEDICATION, med_range),
            self._obligations(client_id, Domain.TUBE_FEEDING, today_range),
            self._events(client_id, Domain.TUBE_FEEDING, today_range),
            self._obligations(client_id, Domain.NURSING_PROCEDURE, today_range),
            self._events(client_id, Domain.NURSING_PROCEDURE, history_range(day)),
            self._obligations(client_id, Domain.WOUND_CARE, today_range),
            self._events(client_id, Domain.WOUND_CARE, history_range(day)),
            self._events(client_id, Domain.DEFECATION, today_range),
            self._events(client_id, Domain.URINE, today_range),
            self._events(client_id, Domain.FLUID_INTAKE, today_range),
            self._events(client_id, Domain.MEAL, today_range),
            self._events(client_id, Domain.CARE_REPORT, today_range),
        )
        medications_by_date = {
            d: [m for m in medications if isinstance(m, MedicationPlan)]
            for d in (med_range.start, med_range.end)
        }
        med_items = build_medication_items(
            shift, medications_by_date, med_administrations, today=today
        )
        medicatie = MedicationSection(items=med_items, summary=summarize(med_items))

        tube_items = build_tube_feeding_items(
            [s for s in tube_schedules if isinstance(s, TubeFeedingSchedule)],
            tube_administrations,
            day,
            today=today,
        )
        sondevoeding = TubeFeedingSection(items=tube_items, summary=summarize(tube_items))

        verpleegtechnisch = NursingSection(
            items=build_nursing_items(
                [p for p in procedures if isinstance(p, NursingProcedure)],
                procedure_logs,
                day,
            )
        )
        wondzorg = WoundCareSection(
            items=build_wound_care_items(
                [p for p in wound_plans if isinstance(p, WoundCarePlan)],
                wound_reports,
                day,
            )
        )

        meal_types = {r.meal_type for r in meal_records if isinstance(r, MealRecord)}
        voeding = MealFlags(**{meal_type.value: True for meal_type in meal_types})
        io = IntakeOutput(
            defecation=len(defecations),
            urine=VolumeCount(
                count=len(urine_records),
                volume=sum(
                    r.volume for r in urine_records if isinstance(r, UrineRecord)
                ),
            ),
            fluid=VolumeCount(
                count=len(fluid_records),
                volume=sum(
                    r.volume
                    for r in fluid_records
                    if isinstance(r, FluidIntakeRecord)
                ),
            ),
        )

        return ClientDayTasks(
            client=ClientRef(
                id=client_id,
                name=client.name if client else (shift.client_name or client_id),
            ),
            shift=ShiftInfo(
                id=shift.id,
                start_time=format_time_of_day(shift.start_time),
                end_time=format_time_of_day(shift.end_time),
                is_overnight=shift.is_overnight,
                shift_type_name=shift.shift_type_name,
                shift_type_color=shift.shift_type_color,
            ),
            medicatie=medicatie,
            sondevoeding=sondevoeding,
            verpleegtechnisch=verpleegtechnisch,
            wondzorg=wondzorg,
            io=io,
            voeding=voeding,
            rapportage=ReportSection(count=len(care_reports)),
            summary=client_summary(medicatie, sondevoeding, verpleegtechnisch, wondzorg),
        )
