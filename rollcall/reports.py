"""Daily attendance summary over the ledger."""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone

from rollcall.models import utc_now
from rollcall.store import AttendanceStore


@dataclass(frozen=True)
class DailySummary:
    day: date
    total_identities: int
    present: int
    absent: int

    def to_dict(self) -> dict:
        return {
            "day": self.day.isoformat(),
            "total_students": self.total_identities,
            "present_today": self.present,
            "absent_today": self.absent,
        }


def daily_summary(store: AttendanceStore, day: date = None) -> DailySummary:
    """
    Count enrolled identities and how many were marked present on a UTC day.

    An identity marked several times in the day counts once. Records left
    behind by identities no longer enrolled are ignored.
    """
    day = day or utc_now().date()
    start = datetime.combine(day, time.min, tzinfo=timezone.utc)
    end = start + timedelta(days=1)

    enrolled = {identity.key for identity in store.list_gallery()}
    present = {
        r.identity_key for r in store.list_records(since=start, until=end)
        if r.identity_key in enrolled
    }

    return DailySummary(
        day=day,
        total_identities=len(enrolled),
        present=len(present),
        absent=len(enrolled) - len(present),
    )
