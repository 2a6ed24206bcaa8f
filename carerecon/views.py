"""
Result shapes handed to the presentation layer.

Nothing here is persisted; every view is rebuilt per call. Field names are
snake_case in Python and camelCase on the wire. The Dutch section names
(medicatie, sondevoeding, ...) are the established output contract.
"""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from carerecon.shift_window import DayPart
from carerecon.status import DayStatus, TaskStatus


class ViewModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_payload(self, **kwargs: Any) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, **kwargs)


class ClientRef(ViewModel):
    id: str
    name: str


class ShiftInfo(ViewModel):
    id: str
    start_time: str
    end_time: str
    is_overnight: bool
    shift_type_name: str | None = None
    shift_type_color: str | None = None


class AdministrationInfo(ViewModel):
    caregiver_name: str | None = None
    administered_at: datetime | None = None
    skip_reason: str | None = None


class DomainSummary(ViewModel):
    total: int = 0
    given: int = 0
    skipped: int = 0
    # open items: pending today or later, missing in the past
    pending: int = 0


class MedicationItem(ViewModel):
    medication_id: str
    medication_name: str
    dosage: str
    unit: str
    instructions: str | None = None
    date: str
    time: str
    day_part: DayPart
    status: TaskStatus
    administration: AdministrationInfo | None = None


class MedicationSection(ViewModel):
    items: list[MedicationItem]
    summary: DomainSummary


class TubeFeedingItem(ViewModel):
    schedule_id: str
    date: str
    time: str
    volume: float | None = None
    feed_speed: float | None = None
    feed_type: str | None = None
    status: TaskStatus
    administration: AdministrationInfo | None = None


class TubeFeedingSection(ViewModel):
    items: list[TubeFeedingItem]
    summary: DomainSummary


class LastPerformed(ViewModel):
    date: datetime
    caregiver_name: str | None = None


class NursingItem(ViewModel):
    id: str
    name: str
    description: str | None = None
    next_due_date: str
    is_overdue: bool
    last_performed: LastPerformed | None = None


class NursingSection(ViewModel):
    items: list[NursingItem]


class WoundCareItem(ViewModel):
    plan_id: str
    location: str
    wound_type: str | None = None
    frequency: str | None = None
    is_due_today: bool
    is_overdue: bool
    next_care_date: str | None = None


class WoundCareSection(ViewModel):
    items: list[WoundCareItem]


class VolumeCount(ViewModel):
    count: int = 0
    volume: float = 0


class IntakeOutput(ViewModel):
    defecation: int = 0
    urine: VolumeCount = VolumeCount()
    fluid: VolumeCount = VolumeCount()


class MealFlags(ViewModel):
    breakfast: bool = False
    lunch: bool = False
    dinner: bool = False
    snack: bool = False


class ReportSection(ViewModel):
    count: int = 0


class ClientSummary(ViewModel):
    total_tasks: int
    completed: int
    pending: int
    overdue: int
    status: DayStatus


class ClientDayTasks(ViewModel):
    client: ClientRef
    shift: ShiftInfo
    medicatie: MedicationSection
    sondevoeding: TubeFeedingSection
    verpleegtechnisch: NursingSection
    wondzorg: WoundCareSection
    io: IntakeOutput
    voeding: MealFlags
    rapportage: ReportSection
    summary: ClientSummary


class GlobalSummary(ViewModel):
    total_tasks: int = 0
    completed: int = 0
    pending: int = 0
    overdue: int = 0

    def add(self, summary: ClientSummary) -> "GlobalSummary":
        return GlobalSummary(
            total_tasks=self.total_tasks + summary.total_tasks,
            completed=self.completed + summary.completed,
            pending=self.pending + summary.pending,
            overdue=self.overdue + summary.overdue,
        )


class DailyTasksView(ViewModel):
    date: str
    clients: list[ClientDayTasks]
    global_summary: GlobalSummary


class MissedClient(ViewModel):
    client_id: str
    client_name: str | None = None
    shift_type_name: str | None = None
    shift_type_color: str | None = None
    start_time: str
    end_time: str
    has_report: bool
    pending_medications: int = 0
    total_medications: int = 0
    # next day when the open doses sit in the morning half of an overnight shift
    medication_date: str
    pending_sondevoeding: int = 0
    total_sondevoeding: int = 0
    pending_meals: int = 0
    total_meals: int = 0
    pending_fluids: int = 0
    total_fluids: int = 0

    @property
    def has_issues(self) -> bool:
        return (
            not self.has_report
            or self.pending_medications > 0
            or self.pending_sondevoeding > 0
            or self.pending_meals > 0
            or self.pending_fluids > 0
        )


class MissedDay(ViewModel):
    date: str
    date_label: str
    clients: list[MissedClient]


class MissedDaysView(ViewModel):
    missed_days: list[MissedDay]


class MissingAdministration(ViewModel):
    medication_id: str
    medication_name: str
    dosage: str
    unit: str
    scheduled_date: str
    scheduled_time: str
    type: Literal["MISSING"] = "MISSING"
    days_overdue: int
    recurrence_type: str
    instructions: str | None = None
    assigned_caregiver_id: str | None = None
    assigned_caregiver_name: str | None = None


class SkippedAdministration(ViewModel):
    medication_id: str
    medication_name: str
    dosage: str
    unit: str
    scheduled_date: str
    scheduled_time: str
    type: Literal["SKIPPED"] = "SKIPPED"
    skip_reason: str | None = None
    days_overdue: int
    caregiver_id: str | None = None
    caregiver_name: str | None = None
    administered_at: datetime | None = None


class MissingMedicationSummary(ViewModel):
    total_missing: int = 0
    total_skipped: int = 0
    unique_medications: int = 0
    unique_days: int = 0
    oldest_missing: str | None = None


class MissingMedicationView(ViewModel):
    summary: MissingMedicationSummary
    missing_administrations: list[MissingAdministration] | None = None
    skipped_administrations: list[SkippedAdministration] | None = None

    def to_payload(self, **kwargs: Any) -> dict[str, Any]:
        payload = super().to_payload(**kwargs)
        for key in ("missingAdministrations", "skippedAdministrations"):
            if payload.get(key) is None:
                payload.pop(key, None)
        return payload


class MissingNutritionSummary(ViewModel):
    total_missing_meals: int = 0
    total_missing_tube_feeding: int = 0
    total_missing_fluids: int = 0
    total: int = 0


class MissingNutritionView(ViewModel):
    summary: MissingNutritionSummary


class MissingReport(ViewModel):
    shift_id: str
    date: str
    caregiver_id: str | None = None
    caregiver_name: str | None = None
    shift_type_name: str | None = None
    start_time: str
    end_time: str
    status: str
    days_overdue: int


class MissingReportsSummary(ViewModel):
    total_missing: int = 0
    unique_days: int = 0
    unique_caregivers: int = 0
    oldest_missing_date: str | None = None


class MissingReportsView(ViewModel):
    missing_days: int
    summary: MissingReportsSummary | None = None
    missing_reports: list[MissingReport] | None = None

    def to_payload(self, **kwargs: Any) -> dict[str, Any]:
        payload = super().to_payload(**kwargs)
        for key in ("summary", "missingReports"):
            if payload.get(key) is None:
                payload.pop(key, None)
        return payload
