"""
Care-plan obligations, recorded events and shift assignments.

These are the snapshot types the engine reads from the backing store. Loose
payloads (JSON text lists of times and weekdays, timezone-aware timestamps)
are parsed here once; a payload that cannot be parsed degrades to "no
occurrences" instead of failing the whole reconciliation.
"""

import json
import logging
from datetime import date, datetime, time
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, field_validator, model_validator

from carerecon.config import get_settings
from carerecon.dates import (
    Weekday,
    minutes_since_midnight,
    parse_time_of_day,
    to_local_date,
    to_local_datetime,
)

logger = logging.getLogger(__name__)


class Domain(StrEnum):
    MEDICATION = "medication"
    TUBE_FEEDING = "tube_feeding"
    MEAL = "meal"
    FLUID_INTAKE = "fluid_intake"
    NURSING_PROCEDURE = "nursing_procedure"
    WOUND_CARE = "wound_care"
    DEFECATION = "defecation"
    URINE = "urine"
    CARE_REPORT = "care_report"


class RecurrenceType(StrEnum):
    ONE_TIME = "one_time"
    DAILY = "daily"
    WEEKLY = "weekly"
    SPECIFIC_DAYS = "specific_days"
    AS_NEEDED = "as_needed"


class ShiftStatus(StrEnum):
    UNFILLED = "UNFILLED"
    FILLED = "FILLED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


WORKED_SHIFT_STATUSES = frozenset({ShiftStatus.FILLED, ShiftStatus.COMPLETED})


class MealType(StrEnum):
    BREAKFAST = "breakfast"
    LUNCH = "lunch"
    DINNER = "dinner"
    SNACK = "snack"


def _local_date(value: Any) -> Any:
    if isinstance(value, datetime):
        return to_local_date(value, get_settings().tz)
    return value


def _local_datetime(value: Any) -> Any:
    if isinstance(value, datetime):
        return to_local_datetime(value, get_settings().tz)
    return value


def _load_json_list(value: Any) -> list | None:
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            return None
    if isinstance(value, (list, tuple, set, frozenset)):
        return list(value)
    return None


class Client(BaseModel):
    id: str
    name: str


class Caregiver(BaseModel):
    id: str
    name: str


class Obligation(BaseModel):
    id: str
    client_id: str
    is_active: bool = True
    start_date: date
    end_date: date | None = None
    # unrecognized types are kept as plain strings; see recurrence.applies
    recurrence_type: RecurrenceType | str = RecurrenceType.DAILY
    days_of_week: frozenset[Weekday] | None = None

    domain: Domain

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def _dates_are_local(cls, value: Any) -> Any:
        return _local_date(value)

    @field_validator("recurrence_type", mode="before")
    @classmethod
    def _known_recurrence_type(cls, value: Any) -> Any:
        try:
            return RecurrenceType(value)
        except ValueError:
            return value

    @field_validator("days_of_week", mode="before")
    @classmethod
    def _parse_days_of_week(cls, value: Any) -> frozenset[Weekday] | None:
        if value is None:
            return None
        items = _load_json_list(value)
        if items is None:
            logger.warning("Unparsable daysOfWeek payload: %r", value)
            return None
        days = set()
        for item in items:
            try:
                days.add(Weekday(str(item).strip().lower()))
            except ValueError:
                logger.warning("Ignoring unknown weekday %r", item)
        return frozenset(days)

    @model_validator(mode="after")
    def _end_not_before_start(self) -> "Obligation":
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self

    def covers(self, day: date) -> bool:
        return (
            self.is_active
            and self.start_date <= day
            and (self.end_date is None or day <= self.end_date)
        )


class TimedObligation(Obligation):
    times: tuple[time, ...] = ()

    @field_validator("times", mode="before")
    @classmethod
    def _parse_times(cls, value: Any) -> tuple[time, ...]:
        if value is None:
            return ()
        if isinstance(value, time):
            value = [value]
        elif isinstance(value, str) and not value.lstrip().startswith("["):
            value = [value]
        items = _load_json_list(value)
        if items is None:
            logger.warning("Unparsable times payload: %r", value)
            return ()
        try:
            parsed = [parse_time_of_day(item) for item in items]
        except (TypeError, ValueError, AttributeError):
            logger.warning("Unparsable times payload: %r", value)
            return ()
        return tuple(sorted(parsed, key=minutes_since_midnight))


class MedicationPlan(TimedObligation):
    domain: Domain = Domain.MEDICATION
    name: str
    dosage: str = ""
    unit: str = ""
    instructions: str | None = None


class TubeFeedingSchedule(TimedObligation):
    domain: Domain = Domain.TUBE_FEEDING
    volume: float | None = None
    feed_speed: float | None = None
    feed_type: str | None = None


class FluidIntakeSchedule(TimedObligation):
    domain: Domain = Domain.FLUID_INTAKE
    volume: float | None = None
    fluid_type: str | None = None


class MealSchedule(TimedObligation):
    domain: Domain = Domain.MEAL
    meal_type: MealType
    description: str | None = None


class NursingProcedure(Obligation):
    domain: Domain = Domain.NURSING_PROCEDURE
    name: str
    description: str | None = None
    next_due_date: date

    @field_validator("next_due_date", mode="before")
    @classmethod
    def _due_date_is_local(cls, value: Any) -> Any:
        return _local_date(value)


class WoundCarePlan(Obligation):
    domain: Domain = Domain.WOUND_CARE
    location: str
    wound_type: str | None = None
    frequency: str | None = None


class Event(BaseModel):
    id: str
    obligation_id: str | None = None
    client_id: str
    caregiver_id: str | None = None
    caregiver_name: str | None = None

    domain: Domain

    @property
    def event_date(self) -> date:
        raise NotImplementedError


class Administration(Event):
    scheduled_time: datetime
    was_given: bool = True
    skip_reason: str | None = None
    administered_at: datetime | None = None

    @field_validator("scheduled_time", "administered_at", mode="before")
    @classmethod
    def _times_are_local(cls, value: Any) -> Any:
        return _local_datetime(value)

    @property
    def event_date(self) -> date:
        return self.scheduled_time.date()

    @property
    def is_satisfied(self) -> bool:
        return self.was_given


class MedicationAdministration(Administration):
    domain: Domain = Domain.MEDICATION


class TubeFeedingAdministration(Administration):
    domain: Domain = Domain.TUBE_FEEDING


class DatedRecord(Event):
    record_date: date

    @field_validator("record_date", mode="before")
    @classmethod
    def _record_date_is_local(cls, value: Any) -> Any:
        return _local_date(value)

    @property
    def event_date(self) -> date:
        return self.record_date

    @property
    def is_satisfied(self) -> bool:
        return True


class MealRecord(DatedRecord):
    domain: Domain = Domain.MEAL
    meal_type: MealType
    record_time: time | None = None


class FluidIntakeRecord(DatedRecord):
    domain: Domain = Domain.FLUID_INTAKE
    record_time: time
    volume: float = 0
    fluid_type: str | None = None

    @field_validator("record_time", mode="before")
    @classmethod
    def _record_time_is_local(cls, value: Any) -> Any:
        if isinstance(value, datetime):
            return _local_datetime(value).time()
        return value


class UrineRecord(DatedRecord):
    domain: Domain = Domain.URINE
    volume: float = 0


class DefecationRecord(DatedRecord):
    domain: Domain = Domain.DEFECATION


class CareReport(DatedRecord):
    domain: Domain = Domain.CARE_REPORT


class WoundCareReport(DatedRecord):
    domain: Domain = Domain.WOUND_CARE
    next_care_date: date | None = None

    @field_validator("next_care_date", mode="before")
    @classmethod
    def _next_care_date_is_local(cls, value: Any) -> Any:
        return _local_date(value)


class NursingProcedureLog(Event):
    domain: Domain = Domain.NURSING_PROCEDURE
    performed_at: datetime

    @field_validator("performed_at", mode="before")
    @classmethod
    def _performed_at_is_local(cls, value: Any) -> Any:
        return _local_datetime(value)

    @property
    def event_date(self) -> date:
        return self.performed_at.date()


class ShiftAssignment(BaseModel):
    id: str
    caregiver_id: str | None = None
    caregiver_name: str | None = None
    client_id: str
    client_name: str | None = None
    date: date
    start_time: time
    end_time: time
    status: ShiftStatus = ShiftStatus.FILLED
    shift_type_name: str | None = None
    shift_type_color: str | None = None

    @field_validator("date", mode="before")
    @classmethod
    def _shift_date_is_local(cls, value: Any) -> Any:
        return _local_date(value)

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def _parse_clock_time(cls, value: Any) -> Any:
        if isinstance(value, str):
            return parse_time_of_day(value)
        return value

    @property
    def is_overnight(self) -> bool:
        return self.end_time < self.start_time


class DateRange(BaseModel):
    """Inclusive range of calendar dates."""

    start: date
    end: date

    @model_validator(mode="after")
    def _ordered(self) -> "DateRange":
        if self.end < self.start:
            raise ValueError("date range end must not be before start")
        return self

    def __contains__(self, day: object) -> bool:
        return isinstance(day, date) and self.start <= day <= self.end

    @classmethod
    def single(cls, day: date) -> "DateRange":
        return cls(start=day, end=day)

