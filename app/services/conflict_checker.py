from datetime import datetime
from typing import List, Optional, Tuple

from app.core.errors import ConflictError
from app.core.logger import logger
from app.models.db_models import AppointmentStatus

APPOINTMENTS_COLLECTION = "appointments"

Interval = Tuple[datetime, datetime]


def overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """Half-open overlap of [a_start, a_end) and [b_start, b_end)."""
    return a_start < b_end and b_start < a_end


def _as_datetime(value) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


class ConflictChecker:
    """
    Decides whether an interval is already taken. The store is authoritative
    for our own bookings; the calendar catches events created elsewhere.
    """

    def __init__(self, store, calendar):
        self.store = store
        self.calendar = calendar

    async def is_busy_in_store(self, tenant_id: str, start: datetime, end: datetime, excluding: Optional[int] = None) -> bool:
        filters = [
            ("tenant_id", "eq", tenant_id),
            ("status", "eq", AppointmentStatus.BOOKED.value),
            ("start_time", "lt", end),
            ("end_time", "gt", start),
        ]
        if excluding is not None:
            filters.append(("id", "neq", excluding))

        rows = await self.store.select(APPOINTMENTS_COLLECTION, filters, limit=1)
        if rows:
            logger.info(f"⛔ Store conflict for tenant {tenant_id}: appointment {rows[0].get('id')}")
        return bool(rows)

    async def is_free_in_calendar(self, tenant_id: str, start: datetime, end: datetime, ignore: Optional[Interval] = None) -> bool:
        """
        True iff the calendar reports no busy blocks over the interval.
        Blocks lying entirely inside `ignore` (the slot an appointment being
        rescheduled already holds) are disregarded.
        """
        busy = await self.calendar.free_busy(tenant_id, start, end)
        if ignore is not None:
            ignore_start, ignore_end = ignore
            busy = [(b_start, b_end) for b_start, b_end in busy
                    if not (ignore_start <= b_start and b_end <= ignore_end)]
        if busy:
            logger.info(f"⛔ Calendar conflict for tenant {tenant_id}: {len(busy)} busy block(s)")
        return not busy

    async def check(
        self,
        tenant_id: str,
        start: datetime,
        end: datetime,
        excluding: Optional[int] = None,
        ignore: Optional[Interval] = None,
    ) -> None:
        """Store first, calendar second. Raises ConflictError on either."""
        if await self.is_busy_in_store(tenant_id, start, end, excluding=excluding):
            raise ConflictError("That time is already booked", source="store")
        if not await self.is_free_in_calendar(tenant_id, start, end, ignore=ignore):
            raise ConflictError("That time is busy in the calendar", source="calendar")

    async def booked_intervals(self, tenant_id: str, start: datetime, end: datetime) -> List[Interval]:
        rows = await self.store.select(APPOINTMENTS_COLLECTION, [
            ("tenant_id", "eq", tenant_id),
            ("status", "eq", AppointmentStatus.BOOKED.value),
            ("start_time", "lt", end),
            ("end_time", "gt", start),
        ])
        return [(_as_datetime(r["start_time"]), _as_datetime(r["end_time"])) for r in rows]
