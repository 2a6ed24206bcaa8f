"""
Shift-based checks used before a caregiver records care.

``administration_in_shift`` applies the same two-pass overnight split as the
daily overview: a dose early on date D belongs to an overnight shift that
started on D-1.
"""

from datetime import date, datetime, timedelta

from carerecon.config import Settings, get_settings
from carerecon.database import CareStore, guarded
from carerecon.dates import to_local_datetime
from carerecon.models import DateRange
from carerecon.shift_window import covering_shift, group_by_date


class ShiftAccessChecker:
    def __init__(self, store: CareStore, settings: Settings | None = None) -> None:
        self.store = store
        self.settings = settings or get_settings()

    async def has_shift(self, caregiver_id: str, client_id: str, day: date) -> bool:
        shifts = await guarded(
            "list_shifts",
            self.store.list_shifts(
                caregiver_id=caregiver_id,
                client_id=client_id,
                date_range=DateRange.single(day),
            ),
        )
        return bool(shifts)

    async def administration_in_shift(
        self, caregiver_id: str, client_id: str, scheduled_at: datetime
    ) -> bool:
        scheduled_at = to_local_datetime(scheduled_at, self.settings.tz)
        day = scheduled_at.date()
        shifts = await guarded(
            "list_shifts",
            self.store.list_shifts(
                caregiver_id=caregiver_id,
                client_id=client_id,
                date_range=DateRange(start=day - timedelta(days=1), end=day),
            ),
        )
        responsible = covering_shift(group_by_date(shifts), day, scheduled_at.time())
        return responsible is not None
